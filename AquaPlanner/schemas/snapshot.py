# schemas/snapshot.py
from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class SnapshotGenerateIn(BaseModel):
    force_regenerate: bool = False
    mortalidad_semanal: Optional[float] = Field(
        default=None, ge=0, lt=1,
        description="Fracción de población perdida por semana. None usa la configuración."
    )


class SnapshotMetrics(BaseModel):
    snapshots_created: int = 0
    snapshots_deleted: int = 0
    generation_time_ms: int = 0
    data_source_records: int = 0
    generated_at: datetime
    generacion_id: Optional[str] = None
    skipped: bool = False


class SnapshotValidation(BaseModel):
    is_valid: bool
    snapshot_count: int
    last_generated: Optional[datetime] = None
    errors: List[str] = []
    warnings: List[str] = []


class SnapshotOut(BaseModel):
    snapshot_id: int
    plan_id: int
    estanque_id: int
    fecha_semana: date
    talla_comercial: str
    inventario_total_kg: float
    source_block_id: Optional[int] = None
    generacion_id: str
    block_info: Optional[Dict[str, Any]] = None
    snapshot_date: datetime

    model_config = {"from_attributes": True}


class StaleWeeksOut(BaseModel):
    plan_id: int
    weeks: List[date]
    count: int


class CleanupResult(BaseModel):
    plan_id: int
    deleted: int
    keep_days: int
    preserve_latest: bool
