# utils/transactions.py
from contextlib import contextmanager

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from utils.db import SessionLocal
from utils.errors import PersistenceError


@contextmanager
def uow(session: Session | None = None, *, plan_id=None, operation: str | None = None):
    """
    Uso:
        with uow(db, plan_id=plan_id, operation="generate_snapshots") as db:
            ... # operaciones
        # commit/rollback automático
    Si ya traes una sesión de get_db(), pásala para no abrir otra.
    Los errores del store se re-lanzan como PersistenceError con el contexto
    (plan_id, operation); cualquier otro error se propaga tal cual.
    """
    owns_session = session is None
    db = session or SessionLocal()
    try:
        yield db
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise PersistenceError(
            f"Error de persistencia: {exc.__class__.__name__}",
            plan_id=plan_id,
            operation=operation,
        ) from exc
    except Exception:
        db.rollback()
        raise
    finally:
        if owns_session:
            db.close()


@contextmanager
def store_errors(*, plan_id=None, operation: str | None = None):
    """
    Para lecturas: no hace commit, solo traduce fallos del store a PersistenceError.
        with store_errors(plan_id=plan_id, operation="validate_snapshots"):
            rows = db.execute(...).all()
    """
    try:
        yield
    except SQLAlchemyError as exc:
        raise PersistenceError(
            f"Error leyendo del store: {exc.__class__.__name__}",
            plan_id=plan_id,
            operation=operation,
        ) from exc
