# utils/transactions.py
from contextlib import contextmanager
from sqlalchemy.orm import Session, sessionmaker


@contextmanager
def uow(session_factory: sessionmaker, session: Session | None = None):
    """
    Uso:
        with uow(store.session_factory) as db:
            ... # operaciones
        # commit/rollback automático
    Si ya traes una sesión abierta, pásala para no abrir otra.
    """
    owns_session = session is None
    db = session or session_factory()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        if owns_session:
            db.close()
