# services/snapshot_service.py
"""
Generador de snapshots de inventario proyectado.

A partir de los bloques del planner calcula, para cada (estanque, semana,
talla comercial), la biomasa proyectada en kg y la persiste en
projected_inventory_snapshots.

Ciclo por plan:
    sin snapshots -> generando -> generados
    generados -> generando            (force_regenerate)
    generando -> fallida              (error de persistencia; rollback)

Regeneración (insert-then-swap, una sola transacción):
1. Se insertan las filas nuevas con un generacion_id nuevo.
2. Se borran las filas del plan de generaciones anteriores.
Si algo falla se hace rollback y los snapshots previos quedan intactos.
"""
from __future__ import annotations

import logging
import time
import uuid
from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import Dict, Iterator, List, NamedTuple, Optional, Set, Tuple

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from config.settings import settings
from enums.enums import EstadoBloqueEnum, SnapshotEstadoEnum, SortOrderEnum
from models.planner import PlannerPlan, PlannerBloque
from models.snapshot import InventarioSnapshot
from schemas.snapshot import SnapshotMetrics, SnapshotValidation
from services.calculation_service import (
    calculate_biomasa_kg,
    calculate_peso_promedio,
    calculate_poblacion_semana,
)
from services.generation_lock import plan_generation_lock, set_generation_state
from services.growth_service import GrowthModel
from services.planner_service import get_plan
from services.sizing_service import biomasa_por_talla, talla_index
from utils.datetime_utils import current_week_start, now_local, now_local_precise, week_start
from utils.errors import InputError, NoDataError, StaleStateError
from utils.plan_dates import week_to_date
from utils.transactions import store_errors, uow

logger = logging.getLogger("aquaplanner.snapshots")


class SemanaProyectada(NamedTuple):
    semana: int            # semana del plan
    fecha_semana: date     # lunes de esa semana
    semana_cultivo: int    # 1 = semana de siembra
    poblacion: float
    peso_promedio_g: float
    biomasa_kg: float


# ===================================
# HELPERS
# ===================================

def _get_active_plan(db: Session, plan_id: int, operation: str) -> PlannerPlan:
    plan = get_plan(db, plan_id)
    if not plan.activo:
        raise InputError(f"El plan no está activo: {plan.nombre}", plan_id=plan_id, operation=operation)
    return plan


def _projectable_states() -> List[str]:
    return [EstadoBloqueEnum(s).value for s in settings.SNAPSHOT_PROJECTABLE_STATES]


def _projectable_blocks(db: Session, plan_id: int, desde: Optional[date] = None) -> List[PlannerBloque]:
    """
    Bloques que generan inventario: estado proyectable, población > 0 y
    rango de semanas que toca la semana actual o posteriores.
    """
    desde = desde or current_week_start()
    return list(db.scalars(
        select(PlannerBloque)
        .where(
            PlannerBloque.plan_id == plan_id,
            PlannerBloque.estado.in_(_projectable_states()),
            PlannerBloque.poblacion_inicial > 0,
            PlannerBloque.fecha_fin >= desde,
        )
        .order_by(PlannerBloque.estanque_id, PlannerBloque.semana_inicio)
    ))


def _resolve_mortality(mortalidad_semanal: Optional[float], plan_id: int) -> float:
    m = settings.SNAPSHOT_WEEKLY_MORTALITY_RATE if mortalidad_semanal is None else mortalidad_semanal
    if m < 0 or m >= 1:
        raise InputError(
            f"mortalidad_semanal fuera de rango [0, 1): {m}",
            plan_id=plan_id,
            operation="generate_snapshots",
        )
    return m


def project_block(
    plan: PlannerPlan,
    bloque: PlannerBloque,
    growth: GrowthModel,
    mortalidad_semanal: float,
) -> Iterator[SemanaProyectada]:
    """
    Proyección semana a semana de un bloque.

    Para cada semana w en [semana_inicio, semana_fin]:
        c          = w - semana_inicio + 1
        poblacion  = N0 × (1 - m)^(c - 1)
        peso       = curva(genética, c), tope en peso_objetivo_g
        biomasa_kg = poblacion × peso / 1000
    """
    peso_objetivo = float(bloque.peso_objetivo_g) if bloque.peso_objetivo_g is not None else None

    for semana in range(bloque.semana_inicio, bloque.semana_fin + 1):
        semana_cultivo = semana - bloque.semana_inicio + 1
        poblacion = calculate_poblacion_semana(bloque.poblacion_inicial or 0, mortalidad_semanal, semana_cultivo)
        peso = calculate_peso_promedio(growth.weight_at(bloque.genetica_id, semana_cultivo), peso_objetivo)
        yield SemanaProyectada(
            semana=semana,
            fecha_semana=week_to_date(plan.fecha_inicio, semana),
            semana_cultivo=semana_cultivo,
            poblacion=poblacion,
            peso_promedio_g=peso,
            biomasa_kg=calculate_biomasa_kg(poblacion, peso),
        )


def _block_info(bloque: PlannerBloque, proy: SemanaProyectada) -> dict:
    """Copia congelada de los datos del bloque al momento de generar."""
    return {
        "poblacion": round(proy.poblacion, 3),
        "poblacion_inicial": bloque.poblacion_inicial,
        "peso_promedio_g": round(proy.peso_promedio_g, 4),
        "densidad": float(bloque.densidad_inicial) if bloque.densidad_inicial is not None else None,
        "fecha_siembra": bloque.fecha_inicio.isoformat(),
        "semana_cultivo": proy.semana_cultivo,
        "genetica_id": bloque.genetica_id,
        "generacion_codigo": bloque.generacion_id,
    }


def build_snapshot_rows(
    plan: PlannerPlan,
    bloques: List[PlannerBloque],
    growth: GrowthModel,
    mortalidad_semanal: float,
    generacion_id: str,
    generated_at: datetime,
) -> List[InventarioSnapshot]:
    rows: List[InventarioSnapshot] = []

    for bloque in bloques:
        for proy in project_block(plan, bloque, growth, mortalidad_semanal):
            if proy.biomasa_kg <= 0:
                continue
            info = _block_info(bloque, proy)
            for talla, kg in biomasa_por_talla(proy.biomasa_kg, proy.peso_promedio_g).items():
                if kg <= 0:
                    continue
                rows.append(InventarioSnapshot(
                    plan_id=plan.plan_id,
                    estanque_id=bloque.estanque_id,
                    fecha_semana=proy.fecha_semana,
                    talla_comercial=talla,
                    inventario_total_kg=kg,
                    source_block_id=bloque.bloque_id,
                    generacion_id=generacion_id,
                    block_info=info,
                    snapshot_date=generated_at,
                ))

    return rows


def _chunks(items: List, size: int) -> Iterator[List]:
    size = max(1, size)
    for i in range(0, len(items), size):
        yield items[i:i + size]


def _lock_plan_row(db: Session, plan_id: int) -> None:
    """
    SELECT ... FOR UPDATE sobre la fila del plan. Serializa la regeneración
    entre procesos (workers de uvicorn, Celery) hasta el commit o rollback.
    SQLite lo ignora.
    """
    db.execute(select(PlannerPlan.plan_id).where(PlannerPlan.plan_id == plan_id).with_for_update())


def _count_snapshots(db: Session, plan_id: int) -> int:
    return db.scalar(
        select(func.count(InventarioSnapshot.snapshot_id)).where(InventarioSnapshot.plan_id == plan_id)
    ) or 0


# ===================================
# GENERACIÓN
# ===================================

def generate_snapshots(
    db: Session,
    plan_id: int,
    force_regenerate: bool = False,
    mortalidad_semanal: Optional[float] = None,
) -> SnapshotMetrics:
    """
    Genera los snapshots del plan.

    - Sin bloques proyectables -> NoDataError.
    - Ya hay snapshots y force_regenerate=False -> no-op (skipped=True).
    - Error de escritura -> PersistenceError; los snapshots previos quedan intactos.
    - Otra generación del mismo plan en curso -> GenerationInProgressError.
    """
    started = time.perf_counter()
    operation = "generate_snapshots"

    with plan_generation_lock(plan_id):
        with store_errors(plan_id=plan_id, operation=operation):
            plan = _get_active_plan(db, plan_id, operation)
            m = _resolve_mortality(mortalidad_semanal, plan_id)
            bloques = _projectable_blocks(db, plan_id)
            if not bloques:
                raise NoDataError(
                    f"No hay bloques proyectables vigentes para el plan {plan.nombre}",
                    plan_id=plan_id,
                    operation=operation,
                )
            existentes = _count_snapshots(db, plan_id)

        if existentes and not force_regenerate:
            logger.info("Plan %s ya tiene %d snapshots; generación omitida", plan_id, existentes)
            set_generation_state(plan_id, SnapshotEstadoEnum.generated)
            return SnapshotMetrics(generated_at=now_local(), skipped=True)

        logger.info("Generando snapshots plan=%s bloques=%d force=%s mortalidad=%.4f",
                    plan_id, len(bloques), force_regenerate, m)

        generacion_id = str(uuid.uuid4())
        generated_at = now_local_precise()
        with store_errors(plan_id=plan_id, operation=operation):
            rows = build_snapshot_rows(plan, bloques, GrowthModel(db), m, generacion_id, generated_at)

        try:
            with uow(db, plan_id=plan_id, operation=operation):
                _lock_plan_row(db, plan_id)
                for batch in _chunks(rows, settings.SNAPSHOT_INSERT_BATCH_SIZE):
                    db.bulk_save_objects(batch)
                    db.flush()
                result = db.execute(
                    delete(InventarioSnapshot)
                    .where(
                        InventarioSnapshot.plan_id == plan_id,
                        InventarioSnapshot.generacion_id != generacion_id,
                    )
                    .execution_options(synchronize_session=False)
                )
                deleted = result.rowcount or 0
        except Exception:
            logger.exception("Falló la generación de snapshots plan=%s; se conservan los anteriores", plan_id)
            raise

    set_generation_state(plan_id, SnapshotEstadoEnum.generated)
    metrics = SnapshotMetrics(
        snapshots_created=len(rows),
        snapshots_deleted=deleted,
        generation_time_ms=int((time.perf_counter() - started) * 1000),
        data_source_records=len(bloques),
        generated_at=generated_at,
        generacion_id=generacion_id,
    )
    logger.info("Snapshots generados plan=%s creados=%d borrados=%d bloques=%d %dms",
                plan_id, metrics.snapshots_created, metrics.snapshots_deleted,
                metrics.data_source_records, metrics.generation_time_ms)
    return metrics


# ===================================
# STALENESS Y VALIDACIÓN
# ===================================

def _stale_analysis(db: Session, plan: PlannerPlan) -> Tuple[Set[date], Set[date]]:
    """
    Regresa (semanas_stale, semanas_huerfanas).

    Una semana es stale si:
    - el bloque origen se modificó después de generar su snapshot,
    - el bloque origen ya no existe (snapshot huérfano), o
    - un bloque proyectable tiene biomasa esa semana y no hay snapshot.
    """
    bloques = {
        b.bloque_id: b
        for b in db.scalars(select(PlannerBloque).where(PlannerBloque.plan_id == plan.plan_id))
    }
    snaps = db.execute(
        select(
            InventarioSnapshot.source_block_id,
            InventarioSnapshot.fecha_semana,
            InventarioSnapshot.snapshot_date,
        ).where(InventarioSnapshot.plan_id == plan.plan_id)
    ).all()

    stale: Set[date] = set()
    huerfanas: Set[date] = set()
    cubiertas: Set[Tuple[int, date]] = set()

    for source_block_id, fecha_semana, snapshot_date in snaps:
        bloque = bloques.get(source_block_id)
        if bloque is None:
            huerfanas.add(fecha_semana)
            stale.add(fecha_semana)
            continue
        cubiertas.add((source_block_id, fecha_semana))
        if bloque.updated_at and bloque.updated_at > snapshot_date:
            stale.add(fecha_semana)

    growth = GrowthModel(db)
    m = settings.SNAPSHOT_WEEKLY_MORTALITY_RATE
    for bloque in _projectable_blocks(db, plan.plan_id):
        for proy in project_block(plan, bloque, growth, m):
            if proy.biomasa_kg > 0 and (bloque.bloque_id, proy.fecha_semana) not in cubiertas:
                stale.add(proy.fecha_semana)

    return stale, huerfanas


def get_stale_snapshots(db: Session, plan_id: int) -> List[date]:
    """Semanas (lunes, ordenadas) que ameritan regenerar. No modifica nada."""
    with store_errors(plan_id=plan_id, operation="get_stale_snapshots"):
        plan = get_plan(db, plan_id)
        stale, _ = _stale_analysis(db, plan)
    weeks = sorted(stale)
    logger.debug("Plan %s: %d semanas stale", plan_id, len(weeks))
    return weeks


def validate_snapshots(db: Session, plan_id: int) -> SnapshotValidation:
    """
    Valida consistencia de los snapshots del plan. No modifica nada.

    Errores: sin snapshots habiendo bloques proyectables; biomasa negativa.
    Warnings: semanas stale, snapshots huérfanos, snapshots viejos.
    """
    operation = "validate_snapshots"
    errors: List[str] = []
    warnings: List[str] = []

    with store_errors(plan_id=plan_id, operation=operation):
        plan = get_plan(db, plan_id)
        snapshot_count = _count_snapshots(db, plan_id)
        last_generated = db.scalar(
            select(func.max(InventarioSnapshot.snapshot_date)).where(InventarioSnapshot.plan_id == plan_id)
        )
        negativos = db.scalar(
            select(func.count(InventarioSnapshot.snapshot_id)).where(
                InventarioSnapshot.plan_id == plan_id,
                InventarioSnapshot.inventario_total_kg < 0,
            )
        ) or 0
        bloques = _projectable_blocks(db, plan_id)
        stale, huerfanas = _stale_analysis(db, plan)

    if snapshot_count == 0:
        if bloques:
            errors.append(f"No se encontraron snapshots ({len(bloques)} bloques proyectables)")
        else:
            warnings.append("El plan no tiene bloques proyectables vigentes")

    if negativos:
        errors.append(f"{negativos} snapshots con biomasa negativa")

    if stale:
        warnings.append(str(StaleStateError(
            f"{len(stale)} semanas con snapshots desactualizados (desde {min(stale).isoformat()})",
            plan_id=plan_id,
            operation=operation,
        )))

    if huerfanas:
        warnings.append(f"Snapshots huérfanos (bloque eliminado) en {len(huerfanas)} semanas")

    if last_generated is not None:
        dias = (now_local_precise() - last_generated).days
        if dias > settings.SNAPSHOT_STALE_WARNING_DAYS:
            warnings.append(f"Los snapshots tienen {dias} días de antigüedad")

    return SnapshotValidation(
        is_valid=not errors,
        snapshot_count=snapshot_count,
        last_generated=last_generated,
        errors=errors,
        warnings=warnings,
    )


# ===================================
# LIMPIEZA
# ===================================

def cleanup_old_snapshots(
    db: Session,
    plan_id: int,
    keep_days: Optional[int] = None,
    preserve_latest: Optional[bool] = None,
) -> int:
    """
    Borra snapshots con snapshot_date anterior a now - keep_days.

    preserve_latest=True (default de configuración): nunca borra la generación
    más reciente de cada llave (estanque, semana, talla), aunque sea vieja.
    preserve_latest=False: borrado solo por antigüedad (puede dejar la llave sin datos).
    """
    operation = "cleanup_old_snapshots"
    keep_days = settings.SNAPSHOT_CLEANUP_KEEP_DAYS if keep_days is None else keep_days
    preserve_latest = settings.SNAPSHOT_CLEANUP_PRESERVE_LATEST if preserve_latest is None else preserve_latest
    if keep_days < 0:
        raise InputError("keep_days no puede ser negativo", plan_id=plan_id, operation=operation)

    cutoff = now_local() - timedelta(days=keep_days)

    with store_errors(plan_id=plan_id, operation=operation):
        get_plan(db, plan_id)
        rows = db.execute(
            select(
                InventarioSnapshot.snapshot_id,
                InventarioSnapshot.estanque_id,
                InventarioSnapshot.fecha_semana,
                InventarioSnapshot.talla_comercial,
                InventarioSnapshot.snapshot_date,
            ).where(InventarioSnapshot.plan_id == plan_id)
        ).all()

    ultima_por_llave: Dict[tuple, datetime] = {}
    if preserve_latest:
        for r in rows:
            llave = (r.estanque_id, r.fecha_semana, r.talla_comercial)
            if llave not in ultima_por_llave or r.snapshot_date > ultima_por_llave[llave]:
                ultima_por_llave[llave] = r.snapshot_date

    to_delete = [
        r.snapshot_id for r in rows
        if r.snapshot_date < cutoff
        and not (preserve_latest
                 and r.snapshot_date == ultima_por_llave[(r.estanque_id, r.fecha_semana, r.talla_comercial)])
    ]

    if to_delete:
        with uow(db, plan_id=plan_id, operation=operation):
            for batch in _chunks(to_delete, settings.SNAPSHOT_INSERT_BATCH_SIZE):
                db.execute(
                    delete(InventarioSnapshot)
                    .where(InventarioSnapshot.snapshot_id.in_(batch))
                    .execution_options(synchronize_session=False)
                )

    logger.info("Limpieza plan=%s keep_days=%d preserve_latest=%s borrados=%d",
                plan_id, keep_days, preserve_latest, len(to_delete))
    return len(to_delete)


# ===================================
# CONSULTAS
# ===================================

def list_snapshots(
    db: Session,
    plan_id: int,
    start: Optional[date] = None,
    end: Optional[date] = None,
    sort_order: SortOrderEnum = SortOrderEnum.ASC,
) -> List[InventarioSnapshot]:
    with store_errors(plan_id=plan_id, operation="list_snapshots"):
        get_plan(db, plan_id)
        stmt = select(InventarioSnapshot).where(InventarioSnapshot.plan_id == plan_id)
        if start:
            stmt = stmt.where(InventarioSnapshot.fecha_semana >= start)
        if end:
            stmt = stmt.where(InventarioSnapshot.fecha_semana <= end)
        orden = InventarioSnapshot.fecha_semana.desc() if sort_order == SortOrderEnum.DESC \
            else InventarioSnapshot.fecha_semana.asc()
        stmt = stmt.order_by(orden, InventarioSnapshot.estanque_id, InventarioSnapshot.snapshot_id)
        return list(db.scalars(stmt))


def get_latest_snapshot(db: Session, plan_id: int, fecha_semana: date) -> List[InventarioSnapshot]:
    """Filas de la generación más reciente para una semana."""
    fecha_semana = week_start(fecha_semana)
    with store_errors(plan_id=plan_id, operation="get_latest_snapshot"):
        ultima = db.scalar(
            select(func.max(InventarioSnapshot.snapshot_date)).where(
                InventarioSnapshot.plan_id == plan_id,
                InventarioSnapshot.fecha_semana == fecha_semana,
            )
        )
        if ultima is None:
            return []
        return list(db.scalars(
            select(InventarioSnapshot).where(
                InventarioSnapshot.plan_id == plan_id,
                InventarioSnapshot.fecha_semana == fecha_semana,
                InventarioSnapshot.snapshot_date == ultima,
            ).order_by(InventarioSnapshot.estanque_id, InventarioSnapshot.talla_comercial)
        ))


def get_snapshot_history(
    db: Session,
    plan_id: int,
    estanque_id: int,
    fecha_semana: date,
    talla_comercial: str,
) -> List[InventarioSnapshot]:
    """Historial de una llave, del más reciente al más viejo."""
    with store_errors(plan_id=plan_id, operation="get_snapshot_history"):
        return list(db.scalars(
            select(InventarioSnapshot).where(
                InventarioSnapshot.plan_id == plan_id,
                InventarioSnapshot.estanque_id == estanque_id,
                InventarioSnapshot.fecha_semana == week_start(fecha_semana),
                InventarioSnapshot.talla_comercial == talla_comercial,
            ).order_by(InventarioSnapshot.snapshot_date.desc(), InventarioSnapshot.snapshot_id.desc())
        ))


def get_inventory_summary(db: Session, plan_id: int) -> Dict[date, Dict[str, float]]:
    """{semana: {talla: kg}} sumando todos los estanques."""
    with store_errors(plan_id=plan_id, operation="get_inventory_summary"):
        get_plan(db, plan_id)
        rows = db.execute(
            select(
                InventarioSnapshot.fecha_semana,
                InventarioSnapshot.talla_comercial,
                func.sum(InventarioSnapshot.inventario_total_kg),
            )
            .where(InventarioSnapshot.plan_id == plan_id)
            .group_by(InventarioSnapshot.fecha_semana, InventarioSnapshot.talla_comercial)
        ).all()

    summary: Dict[date, Dict[str, float]] = defaultdict(dict)
    for fecha_semana, talla, kg in sorted(rows, key=lambda r: (r[0], talla_index(r[1]))):
        summary[fecha_semana][talla] = float(kg or 0)
    return dict(summary)
