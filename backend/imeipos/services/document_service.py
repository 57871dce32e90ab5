# Overview: Service-layer operations for document numbering.

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DocumentSequence
from ..constants import DOC_PREFIXES
from ..errors import ValidationError


def next_document_number(
    document_type: str,
    prefix: str | None = None,
    pad: int = 6,
) -> str:
    """
    Atomically allocate the next document number for a type ("S000001").

    Must run inside the caller's transaction: the UPDATE takes the row lock,
    so two concurrent creates can never receive the same number.
    """
    if not document_type:
        raise ValidationError("document_type is required")
    if prefix is None:
        prefix = DOC_PREFIXES.get(document_type)
        if prefix is None:
            raise ValidationError(f"Unknown document type: {document_type}")

    stmt = (
        update(DocumentSequence)
        .where(DocumentSequence.document_type == document_type)
        .values(next_number=DocumentSequence.next_number + 1)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        next_num = _current_number(document_type) - 1
    else:
        seq = DocumentSequence(document_type=document_type, next_number=2)
        savepoint = db.session.begin_nested()
        try:
            db.session.add(seq)
            db.session.flush()
            savepoint.commit()
            next_num = 1
        except IntegrityError:
            # Another transaction created the row first; take the next number from it.
            savepoint.rollback()
            result = db.session.execute(stmt)
            if not result.rowcount:
                raise
            next_num = _current_number(document_type) - 1

    return f"{prefix}{next_num:0{pad}d}"


def _current_number(document_type: str) -> int:
    db.session.flush()
    return (
        db.session.query(DocumentSequence.next_number)
        .filter_by(document_type=document_type)
        .scalar()
    )
