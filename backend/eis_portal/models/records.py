from __future__ import annotations

from ..extensions import db
from eis_portal.time_utils import to_utc_z, utcnow


MILESTONE_TYPES = (
    "ONBOARDING_COMPLETE",
    "SUBMISSION_CONFIRMED",
    "EIS2_RECEIVED",
    "EIS2_UPLOADED",
)

DOCUMENT_TYPES = ("INVESTOR_SCHEDULE", "INVESTMENT_DECK", "EIS2", "EIS3")

# Who confirmed a milestone or uploaded a document
PARTY_ROLES = ("founder", "accountant")


class Milestone(db.Model):
    """
    Append-only audit record of a lifecycle event.

    Rows are never updated or deleted except through their deal's cascade.
    """
    __tablename__ = "milestones"
    __table_args__ = (
        db.CheckConstraint(
            "milestone_type IN ('ONBOARDING_COMPLETE', 'SUBMISSION_CONFIRMED', 'EIS2_RECEIVED', 'EIS2_UPLOADED')",
            name="ck_milestones_type",
        ),
        db.CheckConstraint("confirmed_by IN ('founder', 'accountant')", name="ck_milestones_confirmed_by"),
        db.Index("ix_milestones_deal_confirmed", "deal_id", "confirmed_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    deal_id = db.Column(db.Integer, db.ForeignKey("deals.id", ondelete="CASCADE"), nullable=False)

    milestone_type = db.Column(db.String(32), nullable=False)
    confirmed_by = db.Column(db.String(16), nullable=False)
    confirmed_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    # Free text; confirm_submission stores the HMRC submission date here
    notes = db.Column(db.Text, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "deal_id": self.deal_id,
            "milestone_type": self.milestone_type,
            "confirmed_by": self.confirmed_by,
            "confirmed_at": to_utc_z(self.confirmed_at),
            "notes": self.notes,
        }


class Document(db.Model):
    """
    Metadata for an uploaded file. The bytes live on disk under UPLOAD_ROOT.
    """
    __tablename__ = "documents"
    __table_args__ = (
        db.CheckConstraint(
            "document_type IN ('INVESTOR_SCHEDULE', 'INVESTMENT_DECK', 'EIS2', 'EIS3')",
            name="ck_documents_type",
        ),
        db.Index("ix_documents_deal_id", "deal_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    deal_id = db.Column(db.Integer, db.ForeignKey("deals.id", ondelete="CASCADE"), nullable=False)

    document_type = db.Column(db.String(32), nullable=False)
    filename = db.Column(db.String(255), nullable=False)
    storage_path = db.Column(db.String(1024), nullable=False)
    uploaded_by = db.Column(db.String(16), nullable=False)
    uploaded_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "deal_id": self.deal_id,
            "document_type": self.document_type,
            "filename": self.filename,
            "uploaded_by": self.uploaded_by,
            "uploaded_at": to_utc_z(self.uploaded_at),
        }


class Note(db.Model):
    """Ops-only annotation on a deal. Append-only."""
    __tablename__ = "notes"
    __table_args__ = (
        db.Index("ix_notes_deal_id", "deal_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    deal_id = db.Column(db.Integer, db.ForeignKey("deals.id", ondelete="CASCADE"), nullable=False)

    content = db.Column(db.Text, nullable=False)
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    created_by = db.relationship("User")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "deal_id": self.deal_id,
            "content": self.content,
            "created_by_user_id": self.created_by_user_id,
            "created_by": {"name": self.created_by.name} if self.created_by else None,
            "created_at": to_utc_z(self.created_at),
        }
