"""
Deal service tests: creation, edits, deletion and dashboard queries.
"""

import io
import os
from datetime import date, datetime, timedelta

import pytest
from werkzeug.datastructures import FileStorage

from eis_portal.models import Accountant, Deal, Document, Founder, Investor, Milestone, Note
from eis_portal.services import deal_service, document_service, storage_service, token_service
from eis_portal.services.lifecycle_service import DealNotFoundError
from eis_portal.services.token_service import PortalParty, TokenNotFoundError
from eis_portal.time_utils import utcnow
from eis_portal.validation import ValidationError


NOW = datetime(2025, 6, 1, 12, 0)


def deal_payload(**overrides):
    payload = {
        "company_name": "Acme Robotics Ltd",
        "company_number": "12345678",
        "scheme_type": "seis",
        "investment_date": "2025-01-10",
        "investment_amount": "150,000",
        "founder_name": "Ada Lovelace",
        "founder_email": "  ADA@Acme.io ",
        "investors": [
            {
                "name": "Alice Johnson",
                "address_line1": "123 Investment Street",
                "address_line2": "",
                "city": "London",
                "postcode": "SW1A 1AA",
                "shares_issued": "1,000",
                "amount_subscribed": "25000",
            },
        ],
    }
    payload.update(overrides)
    return payload


# =============================================================================
# CREATE
# =============================================================================


def test_create_deal_normalizes_and_links_founder(db_session, ops_user):
    deal, link = deal_service.create_deal(deal_payload(), created_by=ops_user)

    assert deal.status == "AWAITING_ONBOARDING"
    assert deal.scheme_type == "SEIS"
    assert deal.investment_amount_pence == 15_000_000
    assert deal.investment_date == date(2025, 1, 10)
    assert deal.created_by_user_id == ops_user.id

    founder = deal.founder
    assert founder.email == "ada@acme.io"
    assert founder.is_handling_submission is True
    assert link == f"http://portal.test/portal/founder/{founder.magic_token}"

    remaining = founder.token_expires_at - utcnow()
    assert timedelta(days=6, hours=23) < remaining <= timedelta(days=7)


def test_create_deal_applies_investor_defaults(db_session):
    deal, _ = deal_service.create_deal(deal_payload())

    inv = deal.investors[0]
    assert inv.amount_subscribed_pence == 2_500_000
    assert inv.shares_issued == 1000
    assert inv.address_line2 is None
    assert inv.country == "United Kingdom"
    assert inv.share_class == "Ordinary"
    assert inv.share_issue_date == date(2025, 1, 10)


def test_create_deal_keeps_explicit_issue_date(db_session):
    payload = deal_payload(investors=[
        {"name": "Bob", "amount_subscribed": 500, "share_issue_date": "2025-02-14"},
    ])

    deal, _ = deal_service.create_deal(payload)

    assert deal.investors[0].share_issue_date == date(2025, 2, 14)
    assert deal.investors[0].amount_subscribed_pence == 50_000


def test_create_deal_without_investors(db_session):
    deal, _ = deal_service.create_deal(deal_payload(investors=[]))
    assert deal.investors == []


def test_create_deal_reports_all_missing_fields(db_session):
    with pytest.raises(ValidationError) as excinfo:
        deal_service.create_deal({})

    assert str(excinfo.value) == (
        "Missing required fields: company_name, company_number, founder_email, "
        "founder_name, investment_amount, investment_date, scheme_type"
    )


@pytest.mark.parametrize(
    "overrides,message",
    [
        ({"scheme_type": "VCT"}, "scheme_type"),
        ({"investment_amount": "-5"}, "investment_amount"),
        ({"investment_amount": "lots"}, "investment_amount"),
        ({"investment_amount": "1e400"}, "investment_amount must be a finite number"),
        ({"investment_amount": "inf"}, "investment_amount must be a finite number"),
        ({"investment_amount": "nan"}, "investment_amount must be a finite number"),
        ({"investment_amount": 1e308}, "investment_amount must be a finite number"),
        ({"investors": [{"name": "Big", "amount_subscribed": "1e400"}]}, "Investor 1"),
        ({"investment_date": "10/01/2025"}, "investment_date"),
        ({"founder_email": "not-an-email"}, "founder_email"),
        ({"investors": [{"name": "No Money"}]}, "Investor 1"),
        ({"investors": [{"name": "Ok", "amount_subscribed": 1}, {"amount_subscribed": 1}]}, "Investor 2"),
        ({"investors": "Alice"}, "investors must be a list"),
    ],
)
def test_create_deal_validates_before_writing(db_session, overrides, message):
    with pytest.raises(ValidationError, match=message):
        deal_service.create_deal(deal_payload(**overrides))

    assert db_session.query(Deal).count() == 0
    assert db_session.query(Founder).count() == 0
    assert db_session.query(Investor).count() == 0


def test_create_deal_ignores_client_status(db_session):
    deal, _ = deal_service.create_deal(deal_payload(status="COMPLETE"))
    assert deal.status == "AWAITING_ONBOARDING"


# =============================================================================
# UPDATE / DELETE / NOTES
# =============================================================================


def test_update_deal_fields(db_session, make_deal):
    deal = make_deal()

    deal_service.update_deal(deal.id, {"company_name": "Renamed Ltd", "investment_amount": "30,000.50"})

    db_session.refresh(deal)
    assert deal.company_name == "Renamed Ltd"
    assert deal.investment_amount_pence == 3_000_050


def test_update_deal_rejects_fields_outside_allow_list(db_session, make_deal):
    deal = make_deal()

    with pytest.raises(ValidationError, match="Field not allowed"):
        deal_service.update_deal(deal.id, {"created_by_user_id": 42})


def test_update_deal_status_override(db_session, make_deal):
    deal = make_deal("SUBMITTED")

    deal_service.update_deal(deal.id, {"status": "COMPLETE"})
    assert deal.completed_at is not None

    deal_service.update_deal(deal.id, {"status": "AWAITING_ONBOARDING"})
    assert deal.status == "AWAITING_ONBOARDING"
    assert deal.completed_at is None
    assert db_session.query(Milestone).count() == 0


def test_update_deal_invalid_status(db_session, make_deal):
    deal = make_deal()

    with pytest.raises(ValidationError, match="Invalid status"):
        deal_service.update_deal(deal.id, {"status": "FINISHED"})


def test_update_missing_deal(db_session):
    with pytest.raises(DealNotFoundError):
        deal_service.update_deal(999999, {"company_name": "Ghost"})


def test_delete_deal_cascades_and_removes_files(db_session, make_deal):
    deal = make_deal("SUBMITTED", accountant=True)
    deal_id = deal.id
    founder_token = deal.founder.magic_token
    accountant_token = deal.accountant.magic_token
    deal_service.add_note(deal_id, "Chased founder by phone")

    founder = PortalParty(role="founder", record=deal.founder, deal=deal)
    letter = FileStorage(stream=io.BytesIO(b"%PDF-1.4"), filename="eis2.pdf")
    doc = document_service.record_upload(founder, letter, "EIS2")
    stored_path = doc.storage_path

    children = (Founder, Accountant, Investor, Milestone, Document, Note)
    for model in children:
        assert db_session.query(model).filter_by(deal_id=deal_id).count() == 1

    folder = storage_service.deal_dir(deal_id)
    assert os.path.isfile(stored_path)

    deal_service.delete_deal(deal_id)

    assert db_session.query(Deal).filter_by(id=deal_id).first() is None
    for model in children:
        assert db_session.query(model).filter_by(deal_id=deal_id).count() == 0, model.__name__
    assert not os.path.exists(stored_path)
    assert not os.path.exists(folder)
    for token in (founder_token, accountant_token):
        with pytest.raises(TokenNotFoundError):
            token_service.resolve_token(token)


def test_add_note(db_session, make_deal, ops_user):
    deal = make_deal()

    note = deal_service.add_note(deal.id, "  Waiting on cap table  ", author=ops_user)

    assert note.content == "Waiting on cap table"
    assert note.created_by_user_id == ops_user.id


@pytest.mark.parametrize("content", [None, "", "   ", 123])
def test_add_note_requires_content(db_session, make_deal, content):
    deal = make_deal()

    with pytest.raises(ValidationError, match="Note content is required"):
        deal_service.add_note(deal.id, content)


# =============================================================================
# QUERIES
# =============================================================================


def test_list_deals_newest_first_with_id_tiebreak(db_session, make_deal):
    same_time = NOW - timedelta(days=1)
    older = make_deal(created_at=NOW - timedelta(days=3))
    first = make_deal(created_at=same_time)
    second = make_deal(created_at=same_time)

    ids = [d.id for d in deal_service.list_deals()]

    assert ids == [second.id, first.id, older.id]


def test_list_deals_filters(db_session, make_deal):
    seis = make_deal("SUBMITTED", scheme_type="SEIS")
    make_deal("SUBMITTED", scheme_type="EIS")
    make_deal("COMPLETE", scheme_type="SEIS")

    result = deal_service.list_deals(status="SUBMITTED", scheme_type="seis")

    assert [d.id for d in result] == [seis.id]


@pytest.mark.parametrize("kwargs", [{"status": "DONE"}, {"scheme_type": "VCT"}])
def test_list_deals_rejects_unknown_filters(db_session, kwargs):
    with pytest.raises(ValidationError):
        deal_service.list_deals(**kwargs)


def test_search_matches_company_number_and_founder(db_session, make_deal):
    by_number = make_deal(company_name="Alpha Ltd", company_number="SC998877")
    by_founder = make_deal(company_name="Beta Ltd", founder_name="Grace Hopper")
    make_deal(company_name="Gamma Ltd")
    deals = deal_service.list_deals()

    assert [d.id for d in deal_service.filter_and_sort(deals, search="sc9988")] == [by_number.id]
    assert [d.id for d in deal_service.filter_and_sort(deals, search="HOPPER")] == [by_founder.id]
    assert len(deal_service.filter_and_sort(deals, search="  ltd ")) == 3


def test_sort_by_company_and_amount(db_session, make_deal):
    b = make_deal(company_name="bravo Ltd", amount_pence=500)
    a = make_deal(company_name="Alpha Ltd", amount_pence=900)
    c = make_deal(company_name="Charlie Ltd", amount_pence=100)
    deals = deal_service.list_deals()

    by_name = deal_service.filter_and_sort(deals, sort_by="company", order="asc")
    by_amount = deal_service.filter_and_sort(deals, sort_by="amount", order="desc")

    assert [d.id for d in by_name] == [a.id, b.id, c.id]
    assert [d.id for d in by_amount] == [a.id, b.id, c.id]


@pytest.mark.parametrize("kwargs", [{"sort_by": "founder"}, {"order": "sideways"}])
def test_filter_and_sort_rejects_unknown_options(db_session, kwargs):
    with pytest.raises(ValidationError):
        deal_service.filter_and_sort([], **kwargs)


def test_dashboard_stats(db_session, make_deal):
    make_deal("AWAITING_ONBOARDING", created_at=NOW - timedelta(days=6))
    make_deal("AWAITING_ONBOARDING", created_at=NOW - timedelta(days=5))
    make_deal("AWAITING_SUBMISSION", created_at=NOW - timedelta(days=30))
    make_deal("SUBMITTED", created_at=NOW - timedelta(days=30))
    make_deal("AWAITING_EIS2", created_at=NOW - timedelta(days=30))
    make_deal("EIS2_RECEIVED", created_at=NOW - timedelta(days=30))
    make_deal("COMPLETE", created_at=NOW - timedelta(days=30))

    stats = deal_service.dashboard_stats(deal_service.list_deals(), now=NOW)

    assert stats == {
        "total": 7,
        "awaiting_action": 3,
        "awaiting_eis2": 2,
        "completed": 1,
        "overdue": 1,
    }


def test_days_since_floors_whole_days():
    assert deal_service.days_since(NOW - timedelta(days=2, hours=23), now=NOW) == 2
    assert deal_service.days_since(None, now=NOW) == 0
