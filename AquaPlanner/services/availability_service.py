# services/availability_service.py
"""
Inventario disponible = snapshots proyectados - ventas registradas confirmadas,
por llave (semana, talla comercial). Nunca negativo: lo sobrevendido se
reporta como 0 disponible.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from models.sales import VentaRegistrada
from models.snapshot import InventarioSnapshot
from schemas.inventory import (
    DisponibilidadOut,
    ResumenSemanal,
    TallaResumen,
    ValidacionPedidoOut,
)
from services.sizing_service import talla_index, validate_talla
from utils.datetime_utils import week_start
from utils.errors import InputError
from utils.transactions import store_errors

logger = logging.getLogger("aquaplanner.availability")

Llave = Tuple[date, str]


# ===================================
# HELPERS
# ===================================

def _check_talla(talla: str, plan_id: int, operation: str) -> str:
    try:
        return validate_talla(talla)
    except ValueError as e:
        raise InputError(str(e), plan_id=plan_id, operation=operation)


def _base_por_llave(
    db: Session, plan_id: int, fecha_semana: Optional[date] = None, talla: Optional[str] = None
) -> Dict[Llave, float]:
    stmt = (
        select(
            InventarioSnapshot.fecha_semana,
            InventarioSnapshot.talla_comercial,
            func.sum(InventarioSnapshot.inventario_total_kg),
        )
        .where(InventarioSnapshot.plan_id == plan_id)
        .group_by(InventarioSnapshot.fecha_semana, InventarioSnapshot.talla_comercial)
    )
    if fecha_semana is not None:
        stmt = stmt.where(InventarioSnapshot.fecha_semana == fecha_semana)
    if talla is not None:
        stmt = stmt.where(InventarioSnapshot.talla_comercial == talla)
    return {(f, t): float(kg or 0) for f, t, kg in db.execute(stmt).all()}


def _vendido_por_llave(
    db: Session, plan_id: int, fecha_semana: Optional[date] = None, talla: Optional[str] = None
) -> Dict[Llave, float]:
    """Solo ventas confirmadas reducen el inventario."""
    stmt = (
        select(
            VentaRegistrada.fecha_semana,
            VentaRegistrada.talla_comercial,
            func.sum(VentaRegistrada.cantidad_kg),
        )
        .where(VentaRegistrada.plan_id == plan_id, VentaRegistrada.confirmado.is_(True))
        .group_by(VentaRegistrada.fecha_semana, VentaRegistrada.talla_comercial)
    )
    if fecha_semana is not None:
        stmt = stmt.where(VentaRegistrada.fecha_semana == fecha_semana)
    if talla is not None:
        stmt = stmt.where(VentaRegistrada.talla_comercial == talla)
    return {(f, t): float(kg or 0) for f, t, kg in db.execute(stmt).all()}


def _disponible(base: float, vendido: float) -> float:
    return max(0.0, base - vendido)


# ===================================
# CONSULTAS
# ===================================

def compute_availability(db: Session, plan_id: int) -> List[DisponibilidadOut]:
    """Disponibilidad de todas las llaves con snapshots o ventas, ordenadas por semana y talla."""
    with store_errors(plan_id=plan_id, operation="compute_availability"):
        base = _base_por_llave(db, plan_id)
        vendido = _vendido_por_llave(db, plan_id)

    llaves = sorted(set(base) | set(vendido), key=lambda k: (k[0], talla_index(k[1])))
    return [
        DisponibilidadOut(
            plan_id=plan_id,
            fecha_semana=f,
            talla_comercial=t,
            inventario_base=base.get((f, t), 0.0),
            ventas_registradas=vendido.get((f, t), 0.0),
            inventario_disponible=_disponible(base.get((f, t), 0.0), vendido.get((f, t), 0.0)),
        )
        for f, t in llaves
    ]


def availability_detail(db: Session, plan_id: int, fecha_semana: date, talla: str) -> DisponibilidadOut:
    """Base, vendido y disponible de una sola llave; la semana se alinea al lunes."""
    operation = "available_for"
    talla = _check_talla(talla, plan_id, operation)
    semana = week_start(fecha_semana)

    with store_errors(plan_id=plan_id, operation=operation):
        base = _base_por_llave(db, plan_id, semana, talla).get((semana, talla), 0.0)
        vendido = _vendido_por_llave(db, plan_id, semana, talla).get((semana, talla), 0.0)

    return DisponibilidadOut(
        plan_id=plan_id,
        fecha_semana=semana,
        talla_comercial=talla,
        inventario_base=base,
        ventas_registradas=vendido,
        inventario_disponible=_disponible(base, vendido),
    )


def available_for(db: Session, plan_id: int, fecha_semana: date, talla: str) -> float:
    """kg disponibles para (semana, talla)."""
    return availability_detail(db, plan_id, fecha_semana, talla).inventario_disponible


def weekly_summary(db: Session, plan_id: int) -> List[ResumenSemanal]:
    """
    Agrupa por semana y luego por talla. total_disponible es la suma de los
    disponibles por talla (no se recalcula contra el total de la semana).
    """
    semanas: Dict[date, ResumenSemanal] = {}
    por_talla: Dict[date, Dict[str, TallaResumen]] = defaultdict(dict)

    for item in compute_availability(db, plan_id):
        if item.fecha_semana not in semanas:
            semanas[item.fecha_semana] = ResumenSemanal(fecha_semana=item.fecha_semana)
        resumen = por_talla[item.fecha_semana].setdefault(item.talla_comercial, TallaResumen())
        resumen.inventario_base += item.inventario_base
        resumen.ventas_registradas += item.ventas_registradas
        resumen.inventario_disponible += item.inventario_disponible

    out: List[ResumenSemanal] = []
    for fecha in sorted(semanas):
        semana = semanas[fecha]
        semana.inventory_by_size = por_talla[fecha]
        semana.total_disponible = sum(t.inventario_disponible for t in semana.inventory_by_size.values())
        out.append(semana)
    return out


def validate_order(
    db: Session, plan_id: int, fecha_semana: date, talla: str, cantidad_kg: float
) -> ValidacionPedidoOut:
    """Valida si un pedido cabe en el inventario disponible de su semana/talla."""
    if cantidad_kg is None or cantidad_kg < 0:
        raise InputError("cantidad_kg debe ser >= 0", plan_id=plan_id, operation="validate_order")

    available = available_for(db, plan_id, fecha_semana, talla)
    requested = float(cantidad_kg)

    if requested <= available:
        return ValidacionPedidoOut(
            is_valid=True,
            available=available,
            requested=requested,
            message=f"{requested}kg disponible ({round(available - requested, 6)}kg restante)",
        )

    logger.info("Pedido rechazado plan=%s semana=%s talla=%s solicitado=%s disponible=%s",
                plan_id, week_start(fecha_semana), talla, requested, available)
    return ValidacionPedidoOut(
        is_valid=False,
        available=available,
        requested=requested,
        message=f"Inventario insuficiente. Disponible: {available}kg, Solicitado: {requested}kg",
    )
