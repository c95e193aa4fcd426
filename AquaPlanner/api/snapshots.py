from datetime import date
from typing import Dict, List, Optional

from fastapi import APIRouter, Body, Depends, Query, status
from sqlalchemy.orm import Session

from config.settings import settings
from enums.enums import SortOrderEnum
from schemas.common import DateRange
from schemas.snapshot import (
    CleanupResult,
    SnapshotGenerateIn,
    SnapshotMetrics,
    SnapshotOut,
    SnapshotValidation,
    StaleWeeksOut,
)
from services import snapshot_service
from utils.db import get_db
from utils.errors import InputError

router = APIRouter(prefix="/snapshots", tags=["snapshots"])


@router.post("/plans/{plan_id}/generate", response_model=SnapshotMetrics, status_code=status.HTTP_200_OK)
def generate_snapshots(
    plan_id: int,
    force: bool = Query(False, description="Regenera aunque ya existan snapshots"),
    body: Optional[SnapshotGenerateIn] = Body(default=None),
    db: Session = Depends(get_db),
):
    """
    Genera (o regenera con `force=true`) los snapshots del plan.

    - **404** si el plan no existe o no tiene bloques proyectables
    - **409** si ya hay una generación en curso para el plan
    """
    body = body or SnapshotGenerateIn()
    return snapshot_service.generate_snapshots(
        db,
        plan_id,
        force_regenerate=force or body.force_regenerate,
        mortalidad_semanal=body.mortalidad_semanal,
    )


@router.get("/plans/{plan_id}", response_model=List[SnapshotOut])
def list_snapshots(
    plan_id: int,
    start: Optional[date] = Query(None, description="Semana inicial (inclusive)"),
    end: Optional[date] = Query(None, description="Semana final (inclusive)"),
    order: SortOrderEnum = Query(SortOrderEnum.ASC),
    db: Session = Depends(get_db),
):
    try:
        rango = DateRange(start=start, end=end)
    except ValueError as e:
        raise InputError(str(e), plan_id=plan_id, operation="list_snapshots")
    return snapshot_service.list_snapshots(db, plan_id, rango.start, rango.end, order)


@router.get("/plans/{plan_id}/stale", response_model=StaleWeeksOut)
def get_stale_weeks(plan_id: int, db: Session = Depends(get_db)):
    weeks = snapshot_service.get_stale_snapshots(db, plan_id)
    return StaleWeeksOut(plan_id=plan_id, weeks=weeks, count=len(weeks))


@router.get("/plans/{plan_id}/validate", response_model=SnapshotValidation)
def validate_snapshots(plan_id: int, db: Session = Depends(get_db)):
    return snapshot_service.validate_snapshots(db, plan_id)


@router.delete("/plans/{plan_id}/cleanup", response_model=CleanupResult)
def cleanup_snapshots(
    plan_id: int,
    keep_days: Optional[int] = Query(None, ge=0),
    preserve_latest: Optional[bool] = Query(None),
    db: Session = Depends(get_db),
):
    keep = settings.SNAPSHOT_CLEANUP_KEEP_DAYS if keep_days is None else keep_days
    preserve = settings.SNAPSHOT_CLEANUP_PRESERVE_LATEST if preserve_latest is None else preserve_latest
    deleted = snapshot_service.cleanup_old_snapshots(db, plan_id, keep_days=keep, preserve_latest=preserve)
    return CleanupResult(plan_id=plan_id, deleted=deleted, keep_days=keep, preserve_latest=preserve)


@router.get("/plans/{plan_id}/summary", response_model=Dict[date, Dict[str, float]])
def inventory_summary(plan_id: int, db: Session = Depends(get_db)):
    """{semana: {talla: kg}} sumando todos los estanques (sin descontar ventas)."""
    return snapshot_service.get_inventory_summary(db, plan_id)
