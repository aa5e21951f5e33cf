from erp.database.base import Base
from erp.database.engine import build_engine, engine
from erp.database.session import SessionLocal, get_db, transaction_scope


def init_db(bind=None) -> None:
    from erp.models import import_all_models

    import_all_models()
    Base.metadata.create_all(bind=bind or engine)


__all__ = [
    "Base",
    "SessionLocal",
    "build_engine",
    "engine",
    "get_db",
    "init_db",
    "transaction_scope",
]
