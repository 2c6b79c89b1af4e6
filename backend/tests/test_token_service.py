"""
Magic-link token tests.

Verifies:
- Tokens expire exactly seven days after issuance, never extended
- Founder and accountant tokens expire independently
- Unknown tokens are "not found", never "expired"
"""

from datetime import datetime, timedelta

import pytest

from eis_portal.services import token_service
from eis_portal.services.token_service import TokenExpiredError, TokenNotFoundError


T0 = datetime(2025, 3, 1, 9, 30)


def test_issue_token_expires_seven_days_after_issuance(app):
    token, expires_at = token_service.issue_token(now=T0)

    assert expires_at == T0 + timedelta(days=7)
    assert len(token) >= 40


def test_issued_tokens_are_unique(app):
    tokens = {token_service.issue_token()[0] for _ in range(50)}
    assert len(tokens) == 50


def test_founder_token_resolves_to_founder(make_deal):
    deal = make_deal(issued_at=T0)

    party = token_service.resolve_token(deal.founder.magic_token, now=T0)

    assert party.role == "founder"
    assert party.is_founder
    assert party.deal.id == deal.id
    assert party.record.id == deal.founder.id


def test_accountant_token_resolves_to_accountant(make_deal):
    deal = make_deal("SUBMITTED", accountant=True, issued_at=T0)

    party = token_service.resolve_token(deal.accountant.magic_token, now=T0)

    assert party.role == "accountant"
    assert not party.is_founder
    assert party.deal.id == deal.id


def test_token_valid_at_expiry_and_expired_just_after(make_deal):
    deal = make_deal(issued_at=T0)
    token = deal.founder.magic_token
    expiry = T0 + timedelta(days=7)

    assert token_service.resolve_token(token, now=expiry).role == "founder"

    with pytest.raises(TokenExpiredError, match="request a new link"):
        token_service.resolve_token(token, now=expiry + timedelta(seconds=1))


def test_founder_and_accountant_tokens_expire_independently(db_session, make_deal):
    deal = make_deal(issued_at=T0)

    acc_issued = T0 + timedelta(days=3)
    acc_token, acc_expiry = token_service.issue_token(now=acc_issued)
    from eis_portal.models import Accountant
    db_session.add(Accountant(
        deal_id=deal.id,
        firm_name="Ledger & Sons",
        contact_name="Lena Ledger",
        email="lena@ledger.co.uk",
        magic_token=acc_token,
        token_expires_at=acc_expiry,
    ))
    db_session.commit()

    founder_token = deal.founder.magic_token
    after_founder_expiry = T0 + timedelta(days=7, seconds=1)

    with pytest.raises(TokenExpiredError):
        token_service.resolve_token(founder_token, now=after_founder_expiry)
    assert token_service.resolve_token(acc_token, now=after_founder_expiry).role == "accountant"

    with pytest.raises(TokenExpiredError):
        token_service.resolve_token(acc_token, now=acc_issued + timedelta(days=7, seconds=1))


def test_resolution_does_not_extend_expiry(make_deal):
    deal = make_deal(issued_at=T0)
    before = deal.founder.token_expires_at

    token_service.resolve_token(deal.founder.magic_token, now=T0 + timedelta(days=6))

    assert deal.founder.token_expires_at == before


@pytest.mark.parametrize("token", ["does-not-exist", "x" * 43, ""])
def test_unknown_token_is_not_found_never_expired(db_session, token):
    far_future = datetime(2099, 1, 1)
    with pytest.raises(TokenNotFoundError) as excinfo:
        token_service.resolve_token(token, now=far_future)

    assert not isinstance(excinfo.value, TokenExpiredError)
    assert str(excinfo.value) == "Invalid or expired link"


def test_magic_link_uses_base_url(app):
    link = token_service.magic_link("abc123", "founder")
    assert link == "http://portal.test/portal/founder/abc123"
