# Overview: Service-layer operations for deal documents; stores uploads and records their metadata.

"""
Document Record Keeper

Founders and accountants upload files through their portal link. Each
upload is written to disk (storage_service) and recorded as a Document.

An EIS2 approval letter also drives the lifecycle: it appends an
EIS2_UPLOADED milestone and moves the deal to EIS2_RECEIVED. The transition
is checked before any bytes are written, so a rejected EIS2 upload leaves
neither a file nor a row behind.
"""

from __future__ import annotations

import logging
import os

from ..extensions import db
from ..models import Deal, Document
from ..models.records import DOCUMENT_TYPES
from ..validation import ValidationError
from . import lifecycle_service, storage_service
from .lifecycle_service import DealNotFoundError

logger = logging.getLogger(__name__)


class DocumentNotFoundError(ValueError):
    pass


def record_upload(party, file, document_type: str | None) -> Document:
    """
    Store `file` for the party's deal and record it.

    Args:
        party: resolved PortalParty (founder or accountant)
        file: werkzeug FileStorage
        document_type: one of DOCUMENT_TYPES

    Raises:
        ValidationError: no file, or unknown document type
        LifecycleError: EIS2 upload while the deal cannot accept it
    """
    if file is None or not file.filename:
        raise ValidationError("No file provided")

    document_type = (document_type or "").strip().upper()
    if document_type not in DOCUMENT_TYPES:
        raise ValidationError(f"document_type must be one of: {', '.join(DOCUMENT_TYPES)}")

    deal = party.deal
    if document_type == "EIS2":
        lifecycle_service.check_transition(deal, "eis2_uploaded")

    path = storage_service.save_upload(deal.id, file)

    try:
        doc = Document(
            deal_id=deal.id,
            document_type=document_type,
            filename=file.filename,
            storage_path=path,
            uploaded_by=party.role,
        )
        db.session.add(doc)

        if document_type == "EIS2":
            lifecycle_service.apply_transition(deal, "eis2_uploaded", party.role)

        db.session.commit()
    except Exception:
        db.session.rollback()
        storage_service.delete_file(path)
        raise

    logger.info("Deal %s: %s uploaded by %s (document %s)", deal.id, document_type, party.role, doc.id)
    return doc


def document_path(deal_id: int, document_id: int) -> tuple[Document, str]:
    """
    Locate a document's file for download.

    Returns (document, absolute_path).
    """
    deal = db.session.query(Deal).filter_by(id=deal_id).first()
    if not deal:
        raise DealNotFoundError("Deal not found")

    doc = db.session.query(Document).filter_by(id=document_id, deal_id=deal_id).first()
    if not doc:
        raise DocumentNotFoundError("Document not found")

    if not os.path.isfile(doc.storage_path):
        raise DocumentNotFoundError("Document file is missing")

    return doc, doc.storage_path
