# Overview: Service-layer operations for the founder/accountant portal; deal view and delegation.

from __future__ import annotations

import logging

from ..extensions import db
from ..models import Accountant
from ..validation import ConflictError, ModelValidationPolicy, ValidationError, validate_payload
from . import lifecycle_service, token_service
from .token_service import PortalParty

logger = logging.getLogger(__name__)


class PortalPermissionError(Exception):
    """The token holder may not perform this portal operation."""


ACCOUNTANT_POLICY = ModelValidationPolicy(
    writable_fields={
        "firm_name",
        "contact_name",
        "email",
        "phone",
        "has_been_briefed",
        "has_investor_data",
    },
    required_on_create={"firm_name", "contact_name", "email"},
)


def portal_view(party: PortalParty) -> dict:
    """
    Deal as seen through a magic link.

    Founders see their own details plus the accountant (if any); accountants
    see their own details plus the founder. Ops-only data (notes, other
    party's token) is never included.
    """
    deal = party.deal
    deal_data = deal.to_dict()
    deal_data["documents"] = [d.to_dict() for d in deal.documents]
    deal_data["status_label"] = lifecycle_service.status_label(deal.status)
    deal_data["current_step"] = lifecycle_service.current_step(deal.status, party.role)
    deal_data["steps"] = list(lifecycle_service.PORTAL_STEPS[party.role])

    for key in ("founder", "accountant"):
        if deal_data.get(key):
            deal_data[key].pop("magic_token", None)

    if party.is_founder:
        founder = party.record
        return {
            "type": "founder",
            "founder": {
                "id": founder.id,
                "name": founder.name,
                "email": founder.email,
                "is_handling_submission": founder.is_handling_submission,
            },
            "deal": deal_data,
        }

    accountant = party.record
    return {
        "type": "accountant",
        "accountant": {
            "id": accountant.id,
            "firm_name": accountant.firm_name,
            "contact_name": accountant.contact_name,
            "email": accountant.email,
        },
        "deal": deal_data,
    }


def delegate_to_accountant(party: PortalParty, payload: dict | None) -> tuple[Accountant, str]:
    """
    Founder hands the HMRC submission to an accountant.

    Creates the Accountant with a fresh magic token and clears the founder's
    is_handling_submission flag in one commit.

    Returns (accountant, accountant_magic_link).

    Raises:
        PortalPermissionError: caller is not the founder
        ValidationError: missing or malformed accountant fields
        ConflictError: the deal already has an accountant
    """
    if not party.is_founder:
        raise PortalPermissionError("Only the founder can add an accountant")

    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    # Extra keys from the portal form are ignored
    data = {k: v for k, v in payload.items() if k in ACCOUNTANT_POLICY.writable_fields}
    patch = validate_payload(model=Accountant, payload=data, policy=ACCOUNTANT_POLICY, partial=False)

    patch["email"] = patch["email"].lower()
    if "@" not in patch["email"]:
        raise ValidationError("email must be a valid email address")
    if not patch.get("phone"):
        patch["phone"] = None

    deal = party.deal
    if deal.accountant is not None:
        raise ConflictError("An accountant has already been added to this deal")

    token, expires_at = token_service.issue_token()

    try:
        accountant = Accountant(
            deal_id=deal.id,
            magic_token=token,
            token_expires_at=expires_at,
            **patch,
        )
        db.session.add(accountant)
        party.record.is_handling_submission = False
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info("Deal %s: submission delegated to %s", deal.id, accountant.firm_name)
    return accountant, token_service.magic_link(token, "accountant")
