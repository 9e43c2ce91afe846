# Overview: Transaction scoping helpers shared by every multi-write service operation.

from __future__ import annotations

from contextlib import contextmanager

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


@contextmanager
def unit_of_work():
    """
    Scope a group of writes to one transaction.

    Everything written inside the block is committed together when the block
    exits normally. Any exception rolls the whole block back and propagates.

    Usage:
        with unit_of_work() as session:
            session.add(version)
            session.add_all(items)
    """
    session = db.session
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
