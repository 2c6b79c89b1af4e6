# Overview: Service-layer operations for portal magic links; issues and resolves bearer tokens.

"""
Portal Token Service

Founders and accountants reach their deal through a magic link
(/portal/<type>/<token>). The token is the whole credential: no login,
no session.

RULES:
- Tokens are opaque, URL-safe and random (secrets module)
- Expiry is fixed at issuance + MAGIC_LINK_TTL_DAYS (7 days); never extended
- Founder and Accountant tokens live in separate tables, each with a
  unique constraint; resolution tries Founder first, then Accountant
- Unknown token and expired token are distinct outcomes: callers show
  "invalid link" for the first and "request a new link" for the second
- Resolution is read-only
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta

from flask import current_app, has_app_context

from ..extensions import db
from ..models import Accountant, Deal, Founder
from eis_portal.time_utils import as_utc_naive, utcnow


DEFAULT_TTL_DAYS = 7


class PortalAccessError(Exception):
    """Base class for token resolution failures."""


class TokenNotFoundError(PortalAccessError):
    """No founder or accountant owns this token."""


class TokenExpiredError(PortalAccessError):
    """The token exists but its expiry has passed."""


@dataclass
class PortalParty:
    """The resolved owner of a portal token."""
    role: str  # "founder" | "accountant"
    record: Founder | Accountant
    deal: Deal

    @property
    def is_founder(self) -> bool:
        return self.role == "founder"


def _ttl() -> timedelta:
    days = DEFAULT_TTL_DAYS
    if has_app_context():
        days = int(current_app.config.get("MAGIC_LINK_TTL_DAYS", DEFAULT_TTL_DAYS))
    return timedelta(days=days)


def issue_token(now: datetime | None = None) -> tuple[str, datetime]:
    """
    Generate a new portal token and its expiry.

    Returns (token, expires_at). Nothing is persisted here; the caller stores
    both on the Founder or Accountant row it creates.
    """
    now = now or utcnow()
    return secrets.token_urlsafe(32), now + _ttl()


def resolve_token(token: str, *, now: datetime | None = None) -> PortalParty:
    """
    Resolve a portal token to its owner.

    Raises:
        TokenNotFoundError: neither a founder nor an accountant owns the token
        TokenExpiredError: the owner was found but now > token_expires_at
    """
    if not token:
        raise TokenNotFoundError("Invalid or expired link")

    now = now or utcnow()

    founder = db.session.query(Founder).filter_by(magic_token=token).first()
    if founder is not None:
        _check_expiry(founder.token_expires_at, now)
        return PortalParty(role="founder", record=founder, deal=founder.deal)

    accountant = db.session.query(Accountant).filter_by(magic_token=token).first()
    if accountant is not None:
        _check_expiry(accountant.token_expires_at, now)
        return PortalParty(role="accountant", record=accountant, deal=accountant.deal)

    raise TokenNotFoundError("Invalid or expired link")


def _check_expiry(expires_at: datetime | None, now: datetime) -> None:
    expires_at = as_utc_naive(expires_at)
    if expires_at is not None and now > expires_at:
        raise TokenExpiredError("Token has expired. Please request a new link.")


def magic_link(token: str, party_type: str) -> str:
    """Absolute portal URL for a founder or accountant token."""
    base_url = "http://localhost:3000"
    if has_app_context():
        base_url = current_app.config.get("APP_BASE_URL") or base_url
    return f"{base_url.rstrip('/')}/portal/{party_type}/{token}"
