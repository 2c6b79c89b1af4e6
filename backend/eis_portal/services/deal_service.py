# Overview: Service-layer operations for deals; creation, queries, dashboard figures and ops edits.

"""
Deal Service

Ops-side operations on the Deal aggregate (deal + founder + accountant +
investors + milestones + documents + notes).

RULES:
- Deal, founder and investors are created in one transaction, or not at all
- PATCH only touches DEAL_POLICY.writable_fields; status changes go through
  lifecycle_service.override_status
- Deleting a deal cascades to every child row, then removes its upload folder
- List ordering: created_at descending, ties broken by id descending
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from ..extensions import db
from ..models import Deal, Founder, Investor, Note, User
from ..models.deals import DEAL_STATUSES, SCHEME_TYPES
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    enforce_rules_deal,
    enforce_rules_investor,
    to_pence,
    validate_payload,
)
from eis_portal.time_utils import as_utc_naive, utcnow
from . import lifecycle_service, storage_service, token_service
from .lifecycle_service import DealNotFoundError

logger = logging.getLogger(__name__)


DEAL_POLICY = ModelValidationPolicy(
    writable_fields={
        "company_name",
        "company_number",
        "scheme_type",
        "investment_date",
        "investment_amount_pence",
        "status",
    },
    required_on_create={
        "company_name",
        "company_number",
        "scheme_type",
        "investment_date",
        "investment_amount_pence",
    },
)

INVESTOR_POLICY = ModelValidationPolicy(
    writable_fields={
        "name",
        "address_line1",
        "address_line2",
        "city",
        "postcode",
        "country",
        "shares_issued",
        "amount_subscribed_pence",
        "share_issue_date",
        "share_class",
    },
    required_on_create={"name", "amount_subscribed_pence"},
)

FOUNDER_FIELDS = ("founder_name", "founder_email")

ACTION_REQUIRED_STATUSES = ("AWAITING_ONBOARDING", "ONBOARDING_COMPLETE", "AWAITING_SUBMISSION")
AWAITING_EIS2_STATUSES = ("SUBMITTED", "AWAITING_EIS2")
OVERDUE_AFTER_DAYS = 5

SORT_FIELDS = ("date", "company", "amount")
SORT_ORDERS = ("asc", "desc")


def _amount_to_pence(payload: dict, pounds_key: str, pence_key: str) -> dict:
    """Replace a pounds amount in `payload` with its integer pence form."""
    data = dict(payload)
    if pounds_key in data:
        pounds = data.pop(pounds_key)
        if pence_key not in data:
            data[pence_key] = to_pence(pounds, pounds_key)
    return data


def _deal_patch(payload: dict, *, partial: bool) -> dict:
    data = _amount_to_pence(payload, "investment_amount", "investment_amount_pence")
    patch = validate_payload(model=Deal, payload=data, policy=DEAL_POLICY, partial=partial)
    enforce_rules_deal(patch)
    return patch


def _investor_patch(raw: dict, default_issue_date) -> dict:
    if not isinstance(raw, dict):
        raise ValidationError("Each investor must be an object")

    data = _amount_to_pence(raw, "amount_subscribed", "amount_subscribed_pence")
    data.pop("id", None)

    # Blank spreadsheet cells fall back to column defaults
    data = {k: v for k, v in data.items() if v not in (None, "")}

    shares = data.get("shares_issued")
    if isinstance(shares, str):
        data["shares_issued"] = shares.replace(",", "")

    patch = validate_payload(model=Investor, payload=data, policy=INVESTOR_POLICY, partial=False)
    enforce_rules_investor(patch)
    patch.setdefault("share_issue_date", default_issue_date)
    return patch


def _founder_fields(payload: dict) -> tuple[str, str]:
    name = str(payload.get("founder_name") or "").strip()
    email = str(payload.get("founder_email") or "").strip().lower()
    if "@" not in email:
        raise ValidationError("founder_email must be a valid email address")
    if len(name) > 255 or len(email) > 255:
        raise ValidationError("founder details exceed max length 255")
    return name, email


def create_deal(payload: dict, created_by: User | None = None) -> tuple[Deal, str]:
    """
    Create a deal with its founder and investors.

    payload:
        company_name, company_number, scheme_type, investment_date,
        investment_amount (pounds) or investment_amount_pence,
        founder_name, founder_email, investors (list, optional)

    Returns (deal, founder_magic_link).
    """
    if payload is None or not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    deal_payload = {
        k: v for k, v in payload.items()
        if k not in FOUNDER_FIELDS and k != "investors"
    }
    deal_payload.pop("status", None)

    # Deal and founder fields are reported together
    missing = sorted(
        f for f in ("company_name", "company_number", "scheme_type", "investment_date", *FOUNDER_FIELDS)
        if payload.get(f) in (None, "")
    )
    if payload.get("investment_amount") in (None, "") and payload.get("investment_amount_pence") in (None, ""):
        missing.append("investment_amount")
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(sorted(missing))}")

    patch = _deal_patch(deal_payload, partial=False)
    founder_name, founder_email = _founder_fields(payload)

    raw_investors = payload.get("investors") or []
    if not isinstance(raw_investors, list):
        raise ValidationError("investors must be a list")

    investor_patches = []
    for index, raw in enumerate(raw_investors, start=1):
        try:
            investor_patches.append(_investor_patch(raw, patch["investment_date"]))
        except ValidationError as e:
            raise ValidationError(f"Investor {index}: {e}")

    token, expires_at = token_service.issue_token()

    try:
        deal = Deal(
            **patch,
            status="AWAITING_ONBOARDING",
            created_by_user_id=created_by.id if created_by else None,
        )
        db.session.add(deal)
        db.session.flush()

        db.session.add(Founder(
            deal_id=deal.id,
            name=founder_name,
            email=founder_email,
            magic_token=token,
            token_expires_at=expires_at,
            is_handling_submission=True,
        ))
        for inv in investor_patches:
            db.session.add(Investor(deal_id=deal.id, **inv))

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info(
        "Deal %s created for %s with %d investors", deal.id, deal.company_name, len(investor_patches)
    )
    return deal, token_service.magic_link(token, "founder")


def get_deal(deal_id: int) -> Deal:
    deal = db.session.query(Deal).filter_by(id=deal_id).first()
    if not deal:
        raise DealNotFoundError("Deal not found")
    return deal


def update_deal(deal_id: int, payload: dict) -> Deal:
    """
    Ops edit of deal fields.

    Fields outside DEAL_POLICY.writable_fields are rejected. A status in the
    payload is applied with lifecycle_service.override_status.
    """
    deal = get_deal(deal_id)
    if payload is None or not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    patch = _deal_patch(payload, partial=True)
    status = patch.pop("status", None)

    for key, value in patch.items():
        setattr(deal, key, value)

    if status is not None:
        try:
            lifecycle_service.override_status(deal, status)
        except lifecycle_service.LifecycleError as e:
            raise ValidationError(str(e))

    deal.updated_at = utcnow()
    db.session.commit()
    return deal


def delete_deal(deal_id: int) -> None:
    deal = get_deal(deal_id)
    db.session.delete(deal)
    db.session.commit()

    storage_service.delete_deal_files(deal_id)
    logger.info("Deal %s deleted", deal_id)


def add_note(deal_id: int, content: str | None, author: User | None = None) -> Note:
    deal = get_deal(deal_id)

    content = (content or "").strip() if isinstance(content, str) else ""
    if not content:
        raise ValidationError("Note content is required")

    note = Note(
        deal_id=deal.id,
        content=content,
        created_by_user_id=author.id if author else None,
    )
    db.session.add(note)
    db.session.commit()
    return note


def list_deals(status: str | None = None, scheme_type: str | None = None) -> list[Deal]:
    """Deals filtered by status and scheme, newest first."""
    query = db.session.query(Deal)

    if status:
        if status not in DEAL_STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(DEAL_STATUSES)}")
        query = query.filter(Deal.status == status)

    if scheme_type:
        scheme_type = scheme_type.upper()
        if scheme_type not in SCHEME_TYPES:
            raise ValidationError(f"scheme_type must be one of: {', '.join(SCHEME_TYPES)}")
        query = query.filter(Deal.scheme_type == scheme_type)

    return query.order_by(Deal.created_at.desc(), Deal.id.desc()).all()


def _matches(deal: Deal, needle: str) -> bool:
    haystacks = [deal.company_name, deal.company_number]
    if deal.founder:
        haystacks.append(deal.founder.name)
    return any(needle in (h or "").lower() for h in haystacks)


def filter_and_sort(
    deals: list[Deal],
    search: str | None = None,
    sort_by: str = "date",
    order: str = "desc",
) -> list[Deal]:
    """
    Free-text search over company name, company number and founder name,
    then sort by created date, company name or amount.
    """
    sort_by = sort_by or "date"
    order = order or "desc"
    if sort_by not in SORT_FIELDS:
        raise ValidationError(f"sort_by must be one of: {', '.join(SORT_FIELDS)}")
    if order not in SORT_ORDERS:
        raise ValidationError(f"order must be one of: {', '.join(SORT_ORDERS)}")

    result = list(deals)
    needle = (search or "").strip().lower()
    if needle:
        result = [d for d in result if _matches(d, needle)]

    if sort_by == "company":
        key = lambda d: ((d.company_name or "").lower(), d.id)
    elif sort_by == "amount":
        key = lambda d: (d.investment_amount_pence or 0, d.id)
    else:
        key = lambda d: (d.created_at, d.id)

    return sorted(result, key=key, reverse=(order == "desc"))


def days_since(moment: datetime | None, now: datetime | None = None) -> int:
    """Whole days elapsed since `moment` (floored)."""
    if moment is None:
        return 0
    now = now or utcnow()
    return (now - as_utc_naive(moment)) // timedelta(days=1)


def is_overdue(deal: Deal, now: datetime | None = None) -> bool:
    return (
        deal.status == "AWAITING_ONBOARDING"
        and days_since(deal.created_at, now) > OVERDUE_AFTER_DAYS
    )


def dashboard_stats(deals: list[Deal], now: datetime | None = None) -> dict:
    now = now or utcnow()
    return {
        "total": len(deals),
        "awaiting_action": sum(1 for d in deals if d.status in ACTION_REQUIRED_STATUSES),
        "awaiting_eis2": sum(1 for d in deals if d.status in AWAITING_EIS2_STATUSES),
        "completed": sum(1 for d in deals if d.status == "COMPLETE"),
        "overdue": sum(1 for d in deals if is_overdue(d, now)),
    }
