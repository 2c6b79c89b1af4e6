from __future__ import annotations

from ..extensions import db
from eis_portal.time_utils import to_utc_z, to_iso_date, utcnow


# Deal status values, in forward order. AWAITING_SUBMISSION is a manual
# ops label and is never reached by the automated transitions.
DEAL_STATUSES = (
    "AWAITING_ONBOARDING",
    "ONBOARDING_COMPLETE",
    "AWAITING_SUBMISSION",
    "SUBMITTED",
    "AWAITING_EIS2",
    "EIS2_RECEIVED",
    "COMPLETE",
)

SCHEME_TYPES = ("SEIS", "EIS")


def _in_list(column: str, values: tuple[str, ...]) -> str:
    quoted = ", ".join(f"'{v}'" for v in values)
    return f"{column} IN ({quoted})"


def pence_to_pounds(pence: int | None) -> float | None:
    if pence is None:
        return None
    return pence / 100


class Deal(db.Model):
    """
    An investment round that needs an HMRC compliance filing.

    Aggregate root: founder, accountant, investors, milestones, documents and
    notes all belong to exactly one deal and are deleted with it.
    """
    __tablename__ = "deals"
    __table_args__ = (
        db.CheckConstraint(_in_list("status", DEAL_STATUSES), name="ck_deals_status"),
        db.CheckConstraint(_in_list("scheme_type", SCHEME_TYPES), name="ck_deals_scheme_type"),
        db.Index("ix_deals_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    company_name = db.Column(db.String(255), nullable=False)
    company_number = db.Column(db.String(32), nullable=False, index=True)
    scheme_type = db.Column(db.String(8), nullable=False, index=True)

    investment_date = db.Column(db.Date, nullable=False)
    investment_amount_pence = db.Column(db.BigInteger, nullable=False)

    status = db.Column(db.String(32), nullable=False, default="AWAITING_ONBOARDING", index=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_by = db.relationship("User")

    founder = db.relationship(
        "Founder", uselist=False, backref="deal", cascade="all, delete-orphan"
    )
    accountant = db.relationship(
        "Accountant", uselist=False, backref="deal", cascade="all, delete-orphan"
    )
    investors = db.relationship(
        "Investor", backref="deal", cascade="all, delete-orphan", order_by="Investor.id"
    )
    milestones = db.relationship(
        "Milestone", backref="deal", cascade="all, delete-orphan",
        order_by="Milestone.confirmed_at.desc()",
    )
    documents = db.relationship(
        "Document", backref="deal", cascade="all, delete-orphan",
        order_by="Document.uploaded_at.desc()",
    )
    notes = db.relationship(
        "Note", backref="deal", cascade="all, delete-orphan",
        order_by="Note.created_at.desc()",
    )

    def to_dict(self, *, detail: bool = False) -> dict:
        data = {
            "id": self.id,
            "company_name": self.company_name,
            "company_number": self.company_number,
            "scheme_type": self.scheme_type,
            "investment_date": to_iso_date(self.investment_date),
            "investment_amount_pence": self.investment_amount_pence,
            "investment_amount": pence_to_pounds(self.investment_amount_pence),
            "status": self.status,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "completed_at": to_utc_z(self.completed_at) if self.completed_at else None,
            "founder": self.founder.to_dict() if self.founder else None,
            "accountant": self.accountant.to_dict() if self.accountant else None,
            "investors": [inv.to_dict() for inv in self.investors],
            "milestones": [m.to_dict() for m in self.milestones],
        }
        if detail:
            data["documents"] = [d.to_dict() for d in self.documents]
            data["notes"] = [n.to_dict() for n in self.notes]
            data["created_by"] = {"name": self.created_by.name} if self.created_by else None
        return data


class Founder(db.Model):
    """
    The company founder. One per deal, created together with the deal.

    magic_token is the founder's portal credential; it is valid until
    token_expires_at and is never extended.
    """
    __tablename__ = "founders"
    __table_args__ = (
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    deal_id = db.Column(
        db.Integer, db.ForeignKey("deals.id", ondelete="CASCADE"), nullable=False, unique=True
    )

    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=False)

    magic_token = db.Column(db.String(128), nullable=False, unique=True, index=True)
    token_expires_at = db.Column(db.DateTime(timezone=True), nullable=False)

    # True: the founder files with HMRC. False: their accountant does.
    is_handling_submission = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "deal_id": self.deal_id,
            "name": self.name,
            "email": self.email,
            "magic_token": self.magic_token,
            "token_expires_at": to_utc_z(self.token_expires_at),
            "is_handling_submission": self.is_handling_submission,
        }


class Accountant(db.Model):
    """
    Optional accountant a founder delegates the HMRC submission to.

    At most one per deal (unique deal_id).
    """
    __tablename__ = "accountants"
    __table_args__ = (
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    deal_id = db.Column(
        db.Integer, db.ForeignKey("deals.id", ondelete="CASCADE"), nullable=False, unique=True
    )

    firm_name = db.Column(db.String(255), nullable=False)
    contact_name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(64), nullable=True)

    magic_token = db.Column(db.String(128), nullable=False, unique=True, index=True)
    token_expires_at = db.Column(db.DateTime(timezone=True), nullable=False)

    has_been_briefed = db.Column(db.Boolean, nullable=False, default=False)
    has_investor_data = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "deal_id": self.deal_id,
            "firm_name": self.firm_name,
            "contact_name": self.contact_name,
            "email": self.email,
            "phone": self.phone,
            "magic_token": self.magic_token,
            "token_expires_at": to_utc_z(self.token_expires_at),
            "has_been_briefed": self.has_been_briefed,
            "has_investor_data": self.has_investor_data,
        }


class Investor(db.Model):
    """Shareholding details for one investor in the round."""
    __tablename__ = "investors"
    __table_args__ = (
        db.Index("ix_investors_deal_id", "deal_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    deal_id = db.Column(db.Integer, db.ForeignKey("deals.id", ondelete="CASCADE"), nullable=False)

    name = db.Column(db.String(255), nullable=False)
    address_line1 = db.Column(db.String(255), nullable=False, default="")
    address_line2 = db.Column(db.String(255), nullable=True)
    city = db.Column(db.String(120), nullable=False, default="")
    postcode = db.Column(db.String(32), nullable=False, default="")
    country = db.Column(db.String(120), nullable=False, default="United Kingdom")

    shares_issued = db.Column(db.Integer, nullable=True)
    amount_subscribed_pence = db.Column(db.BigInteger, nullable=False)
    share_issue_date = db.Column(db.Date, nullable=True)
    share_class = db.Column(db.String(64), nullable=False, default="Ordinary")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "deal_id": self.deal_id,
            "name": self.name,
            "address_line1": self.address_line1,
            "address_line2": self.address_line2,
            "city": self.city,
            "postcode": self.postcode,
            "country": self.country,
            "shares_issued": self.shares_issued,
            "amount_subscribed_pence": self.amount_subscribed_pence,
            "amount_subscribed": pence_to_pounds(self.amount_subscribed_pence),
            "share_issue_date": to_iso_date(self.share_issue_date),
            "share_class": self.share_class,
        }
