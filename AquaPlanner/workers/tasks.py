import logging

from sqlalchemy import select

from workers.celery_config import app
from models.planner import PlannerPlan
from services import snapshot_service
from utils.db import SessionLocal
from utils.errors import AquaPlannerError, GenerationInProgressError, NoDataError, PersistenceError

logger = logging.getLogger("aquaplanner.workers")


def _active_plan_ids(db) -> list[int]:
    return list(db.scalars(
        select(PlannerPlan.plan_id).where(PlannerPlan.activo.is_(True)).order_by(PlannerPlan.plan_id)
    ))


@app.task(bind=True, max_retries=2)
def refresh_stale_snapshots_task(self):
    """
    Regenera (force) los planes activos que tienen semanas stale o que aún
    no tienen snapshots. Un plan fallido no detiene a los demás.
    """
    db = SessionLocal()
    resultado = {"regenerated": [], "skipped": [], "failed": []}

    try:
        for plan_id in _active_plan_ids(db):
            try:
                stale = snapshot_service.get_stale_snapshots(db, plan_id)
                if not stale:
                    resultado["skipped"].append(plan_id)
                    continue
                metrics = snapshot_service.generate_snapshots(db, plan_id, force_regenerate=True)
                resultado["regenerated"].append(plan_id)
                logger.info("Plan %s refrescado: %d semanas stale, %d snapshots",
                            plan_id, len(stale), metrics.snapshots_created)
            except (NoDataError, GenerationInProgressError) as exc:
                logger.info("Plan %s omitido: %s", plan_id, exc.message)
                resultado["skipped"].append(plan_id)
            except PersistenceError as exc:
                logger.error("Plan %s falló al refrescar: %s", plan_id, exc.message)
                resultado["failed"].append(plan_id)
    finally:
        db.close()

    if resultado["failed"] and not resultado["regenerated"]:
        raise self.retry(
            exc=PersistenceError(f"Fallaron los planes {resultado['failed']}", operation="refresh_stale_snapshots"),
            countdown=60,
        )
    return resultado


@app.task
def cleanup_snapshots_task(keep_days: int | None = None):
    """Limpieza de snapshots viejos en todos los planes activos."""
    db = SessionLocal()
    borrados = {}
    try:
        for plan_id in _active_plan_ids(db):
            try:
                borrados[plan_id] = snapshot_service.cleanup_old_snapshots(db, plan_id, keep_days=keep_days)
            except AquaPlannerError as exc:
                logger.error("Limpieza del plan %s falló: %s", plan_id, exc.message)
    finally:
        db.close()
    return borrados
