# Overview: Service-layer operations for document numbering.

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DocumentSequence
from almacen.time_utils import utcnow


DOC_SALE = "SALE"
DOC_PURCHASE_ORDER = "PURCHASE_ORDER"
DOC_ADJUSTMENT = "ADJUSTMENT"

# document_type -> (prefix, zero padding)
DOCUMENT_FORMATS = {
    DOC_SALE: ("VTA", 4),
    DOC_PURCHASE_ORDER: ("COMP", 3),
    DOC_ADJUSTMENT: ("AJ", 4),
}


class DocumentSequenceError(Exception):
    """Raised when document sequence operations fail."""
    pass


def _bump(document_type: str, year: int) -> int | None:
    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.document_type == document_type,
            DocumentSequence.year == year,
        )
        .values(next_number=DocumentSequence.next_number + 1)
    )
    result = db.session.execute(stmt)
    if not result.rowcount:
        return None
    current = (
        db.session.query(DocumentSequence.next_number)
        .filter_by(document_type=document_type, year=year)
        .scalar()
    )
    return current - 1


def next_document_number(document_type: str, *, year: int | None = None) -> str:
    """
    Allocate the next number for a document type, e.g. VTA-2026-0001.

    Must be called inside the caller's transaction so the number is
    released again if that transaction rolls back. Numbering restarts
    every calendar year.
    """
    if document_type not in DOCUMENT_FORMATS:
        raise DocumentSequenceError(f"Unknown document type: {document_type}")
    prefix, pad = DOCUMENT_FORMATS[document_type]
    if year is None:
        year = utcnow().year

    next_num = _bump(document_type, year)
    if next_num is None:
        try:
            with db.session.begin_nested():
                db.session.add(DocumentSequence(document_type=document_type, year=year, next_number=2))
            next_num = 1
        except IntegrityError:
            # Another writer created the row first
            next_num = _bump(document_type, year)
            if next_num is None:
                raise

    return f"{prefix}-{year}-{next_num:0{pad}d}"
