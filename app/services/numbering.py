# app/services/numbering.py - Sequential human-readable identifiers
from sqlalchemy.orm import Session
from sqlalchemy import select, func
from uuid import UUID


def next_sequence_number(db: Session, column, campus_column, campus_id: UUID, prefix: str, width: int) -> str:
    """
    Next identifier of the form ``{prefix}{counter}`` inside one campus.

    The counter continues from the highest identifier already issued with the
    same prefix, zero-padded to ``width`` digits. Counters that outgrow the
    padding keep counting (``CU/2026/9999`` is followed by ``CU/2026/10000``).
    """
    # Longer identifiers carry larger counters once the padding is exhausted
    last = db.execute(
        select(column)
        .where(campus_column == campus_id, column.like(f"{prefix}%"))
        .order_by(func.length(column).desc(), column.desc())
        .limit(1)
    ).scalar_one_or_none()

    counter = 1
    if last:
        tail = last[len(prefix):]
        if tail.isdigit():
            counter = int(tail) + 1

    return f"{prefix}{counter:0{width}d}"
