"""
Compare-and-set status transitions

Every status change that can race (appointment lifecycle, waitlist offers,
notification retries) goes through transition_status(): a single conditional
UPDATE whose affected rowcount tells the caller whether it won.
"""

import logging
from collections.abc import Iterable
from typing import Any, Optional, Union

from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


def transition_status(
    db: Session,
    model: Any,
    row_id: Any,
    expected: Union[str, Iterable[str]],
    new_status: str,
    commit: bool = True,
    where: Optional[list] = None,
    **changes,
) -> bool:
    """
    Move a row to new_status only if its current status is one of `expected`.

    `where` adds further guard clauses to the UPDATE; extra keyword arguments
    are written in the same statement.

    Returns:
        True if this caller performed the transition, False if the row was
        missing or already moved by someone else.
    """
    expected_statuses = [expected] if isinstance(expected, str) else list(expected)
    primary_key = model.__mapper__.primary_key[0]

    values = {"status": new_status, **changes}
    db.flush()
    query = db.query(model).filter(primary_key == row_id, model.status.in_(expected_statuses))
    for clause in where or []:
        query = query.filter(clause)
    updated = query.update(values, synchronize_session=False)

    if commit:
        db.commit()
    else:
        # In-session copies are stale after a bulk UPDATE
        db.expire_all()

    if updated != 1:
        logger.info(
            f"⚠️ {model.__tablename__} {row_id}: transition to '{new_status}' skipped "
            f"(not in {expected_statuses})"
        )
        return False

    return True
