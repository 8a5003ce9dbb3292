from typing import List

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..config import settings
from ..models.models import Counter


def ensure_counter(db: Session, name: str) -> None:
    if db.get(Counter, name) is not None:
        return
    db.add(Counter(id=name, sequence=0))
    try:
        db.commit()
    except IntegrityError:
        # Another process created it first
        db.rollback()


def reserve_sequence(db: Session, name: str, count: int = 1) -> List[int]:
    """Atomically advance a named counter by ``count`` and return the reserved values.

    The increment commits on its own so it never waits on the caller's insert;
    a failed insert afterwards leaves a gap, never a duplicate.
    """
    if count < 1:
        return []
    stmt = (
        update(Counter)
        .where(Counter.id == name)
        .values(sequence=Counter.sequence + count)
        .returning(Counter.sequence)
        .execution_options(synchronize_session=False)
    )
    last = db.execute(stmt).scalar_one_or_none()
    if last is None:
        db.rollback()
        ensure_counter(db, name)
        last = db.execute(stmt).scalar_one()
    db.commit()
    return list(range(last - count + 1, last + 1))


def format_order_code(number: int) -> str:
    return f"{settings.order_code_prefix}{number}"


def mint_order_codes(db: Session, count: int = 1) -> List[tuple]:
    """Return ``(order_number, order_code)`` pairs for ``count`` new orders."""
    return [(n, format_order_code(n)) for n in reserve_sequence(db, settings.order_counter_name, count)]
