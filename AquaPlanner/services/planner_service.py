# services/planner_service.py
"""
Bloques del planner: alta, edición y baja.

El generador de snapshots solo lee bloques; este servicio existe para que
las fechas de cada bloque siempre se deriven del plan:
    fecha_X = plan.fecha_inicio + (semana_X - 1) * 7
Borrar un bloque NO borra sus snapshots: quedan huérfanos y se reportan
como stale hasta la siguiente regeneración.
"""
import logging
from typing import List

from sqlalchemy import select
from sqlalchemy.orm import Session

from models.planner import PlannerPlan, PlannerBloque
from schemas.planner import BloqueCreate, BloqueUpdate
from utils.datetime_utils import now_local_precise
from utils.errors import InputError, NotFoundError
from utils.plan_dates import week_to_date
from utils.transactions import uow

logger = logging.getLogger("aquaplanner.planner")


# ===================================
# HELPERS
# ===================================

def get_plan(db: Session, plan_id: int) -> PlannerPlan:
    """Obtiene un plan o lanza NotFoundError"""
    plan = db.get(PlannerPlan, plan_id)
    if not plan:
        raise NotFoundError(f"Plan no encontrado: {plan_id}", plan_id=plan_id, operation="get_plan")
    return plan


def _get_block(db: Session, bloque_id: int) -> PlannerBloque:
    bloque = db.get(PlannerBloque, bloque_id)
    if not bloque:
        raise NotFoundError(f"Bloque no encontrado: {bloque_id}", operation="get_block")
    return bloque


def _apply_weeks(plan: PlannerPlan, bloque: PlannerBloque, semana_inicio: int, duracion: int) -> None:
    """Fija semanas y re-deriva fechas. Valida que el bloque quepa en el plan."""
    semana_fin = semana_inicio + duracion - 1
    if semana_fin > plan.semanas_total:
        raise InputError(
            f"El bloque termina en la semana {semana_fin} y el plan solo tiene {plan.semanas_total}",
            plan_id=plan.plan_id,
            operation="apply_weeks",
        )
    bloque.semana_inicio = semana_inicio
    bloque.semana_fin = semana_fin
    bloque.fecha_inicio = week_to_date(plan.fecha_inicio, semana_inicio)
    bloque.fecha_fin = week_to_date(plan.fecha_inicio, semana_fin)


# ===================================
# CRUD
# ===================================

def list_blocks(db: Session, plan_id: int) -> List[PlannerBloque]:
    get_plan(db, plan_id)
    return list(db.scalars(
        select(PlannerBloque)
        .where(PlannerBloque.plan_id == plan_id)
        .order_by(PlannerBloque.estanque_id, PlannerBloque.semana_inicio)
    ))


def create_block(db: Session, plan_id: int, payload: BloqueCreate) -> PlannerBloque:
    plan = get_plan(db, plan_id)

    bloque = PlannerBloque(
        plan_id=plan.plan_id,
        estanque_id=payload.estanque_id,
        estado=payload.estado.value,
        generacion_id=payload.generacion_id,
        genetica_id=payload.genetica_id,
        poblacion_inicial=payload.poblacion_inicial,
        densidad_inicial=payload.densidad_inicial,
        peso_objetivo_g=payload.peso_objetivo_g,
        observaciones=payload.observaciones,
    )
    _apply_weeks(plan, bloque, payload.semana_inicio, payload.duracion)

    with uow(db, plan_id=plan_id, operation="create_block"):
        db.add(bloque)
    db.refresh(bloque)

    logger.info("Bloque %s creado plan=%s estanque=%s semanas=%s-%s",
                bloque.bloque_id, plan_id, bloque.estanque_id, bloque.semana_inicio, bloque.semana_fin)
    return bloque


def update_block(db: Session, bloque_id: int, payload: BloqueUpdate) -> PlannerBloque:
    bloque = _get_block(db, bloque_id)
    plan = get_plan(db, bloque.plan_id)
    data = payload.model_dump(exclude_unset=True)

    semana_inicio = data.pop("semana_inicio", None)
    duracion = data.pop("duracion", None)
    if semana_inicio is not None or duracion is not None:
        _apply_weeks(
            plan,
            bloque,
            semana_inicio if semana_inicio is not None else bloque.semana_inicio,
            duracion if duracion is not None else bloque.duracion,
        )

    if "estado" in data and data["estado"] is not None:
        data["estado"] = data["estado"].value
    for field, value in data.items():
        setattr(bloque, field, value)

    # Marca explícita: la detección de snapshots stale compara contra updated_at
    bloque.updated_at = now_local_precise()

    with uow(db, plan_id=plan.plan_id, operation="update_block"):
        db.add(bloque)
    db.refresh(bloque)
    return bloque


def delete_block(db: Session, bloque_id: int) -> None:
    bloque = _get_block(db, bloque_id)
    plan_id = bloque.plan_id
    with uow(db, plan_id=plan_id, operation="delete_block"):
        db.delete(bloque)
    logger.info("Bloque %s eliminado plan=%s (sus snapshots quedan huérfanos)", bloque_id, plan_id)
