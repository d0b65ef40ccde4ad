"""
Concurrency control

Two layers guard every status change:
1. SELECT ... FOR UPDATE row locks (pessimistic, Postgres; a no-op on SQLite)
2. compare-and-swap updates: UPDATE ... WHERE status = :expected

If the CAS touches zero rows someone else moved the status first and the
caller gets ConcurrentModification (409).

Rows that may not exist yet (one vote per voter) can not be locked; they
are written with INSERT ... ON CONFLICT DO UPDATE instead.
"""
from typing import Any, Dict
from uuid import UUID

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session, Query

from models import Lanpa, PunishmentNomination
from core.exceptions import ConcurrentModification


def with_lanpa_lock(lanpa_id: UUID, db: Session) -> Query:
    """
    Lock one Lanpa row for the rest of the transaction

    Example:
        lanpa = with_lanpa_lock(lanpa_id, db).first()
        if not lanpa:
            raise LanpaNotFound(lanpa_id)

    Returns:
        Query object (call .first())
    """
    return db.query(Lanpa).filter(
        Lanpa.id == lanpa_id
    ).with_for_update(nowait=False)


def with_nomination_lock(nomination_id: UUID, db: Session) -> Query:
    """Lock one PunishmentNomination row (finalize / vote)"""
    return db.query(PunishmentNomination).filter(
        PunishmentNomination.id == nomination_id
    ).with_for_update(nowait=False)


def compare_and_set_status(
    db: Session,
    model,
    row_id: UUID,
    expected_status,
    values: Dict[str, Any]
) -> None:
    """
    Conditional update keyed on the expected prior status

    Args:
        model: Lanpa or PunishmentNomination
        row_id: primary key
        expected_status: status read earlier in this transaction
        values: columns to write (must include the new status)

    Raises:
        ConcurrentModification: zero rows matched
    """
    updated = db.query(model).filter(
        model.id == row_id,
        model.status == expected_status
    ).update(values, synchronize_session="fetch")

    if updated == 0:
        raise ConcurrentModification(
            f"{model.__name__} {row_id} is no longer {getattr(expected_status, 'value', expected_status)}"
        )


def upsert_statement(db: Session, model):
    """
    INSERT for the session's dialect that supports .on_conflict_do_update()

    Example:
        stmt = upsert_statement(db, GameVote).values(...)
        stmt = stmt.on_conflict_do_update(
            index_elements=["lanpa_id", "user_id"],
            set_={"game_id": stmt.excluded.game_id}
        )
        db.execute(stmt)
    """
    if db.get_bind().dialect.name == "postgresql":
        return pg_insert(model)
    return sqlite_insert(model)
