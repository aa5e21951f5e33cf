import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker

from erp.core.errors import TransactionFailureError
from erp.database.engine import engine

logger = logging.getLogger(__name__)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,
    bind=engine,
)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction_scope(db: Session) -> Iterator[Session]:
    """All-or-nothing unit of work on ``db``.

    Opens a transaction, or a SAVEPOINT when the session is already inside one
    so the enclosing workflow decides the final commit. Any exception rolls the
    scope back before propagating; storage failures surface as
    TransactionFailureError.
    """
    try:
        if db.in_transaction():
            with db.begin_nested():
                yield db
        else:
            with db.begin():
                yield db
    except OperationalError as exc:
        logger.error("Transaction rolled back after storage failure", exc_info=True)
        raise TransactionFailureError(f"Database could not complete the transaction: {exc.orig}") from exc


__all__ = ["SessionLocal", "get_db", "transaction_scope"]
