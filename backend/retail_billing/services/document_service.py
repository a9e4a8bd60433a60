# Overview: Atomic document number allocation (invoice numbers).

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import DocumentSequence
from .concurrency import lock_for_update

INVOICE_DOCUMENT_TYPE = "SALE_INVOICE"


class DocumentSequenceError(Exception):
    """Raised when document sequence operations fail."""
    pass


def ensure_sequence(document_type: str) -> DocumentSequence:
    """Create the sequence row if missing (flush only, caller commits)."""
    seq = db.session.query(DocumentSequence).filter_by(document_type=document_type).first()
    if seq is None:
        seq = DocumentSequence(document_type=document_type, next_number=1)
        db.session.add(seq)
        db.session.flush()
    return seq


def next_document_number(*, document_type: str, prefix: str, pad: int = 6) -> str:
    """
    Allocate the next number for document_type inside the caller's transaction.

    The sequence row is read FOR UPDATE, so concurrent sales serialize on it
    until the caller commits. Never commits; a rolled back sale does not
    consume a number.
    """
    if not document_type:
        raise DocumentSequenceError("document_type is required")

    seq = lock_for_update(
        db.session.query(DocumentSequence).filter_by(document_type=document_type)
    ).first()
    if seq is None:
        seq = ensure_sequence(document_type)

    next_num = seq.next_number
    seq.next_number = next_num + 1
    db.session.flush()

    return f"{prefix}-{next_num:0{pad}d}"


def next_invoice_number() -> str:
    return next_document_number(
        document_type=INVOICE_DOCUMENT_TYPE,
        prefix=current_app.config.get("INVOICE_PREFIX", "INV"),
    )
