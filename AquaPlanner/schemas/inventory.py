# schemas/inventory.py
from __future__ import annotations

from datetime import date
from typing import Dict, List

from pydantic import BaseModel, Field


class DisponibilidadOut(BaseModel):
    plan_id: int
    fecha_semana: date
    talla_comercial: str
    inventario_base: float
    ventas_registradas: float
    inventario_disponible: float


class TallaResumen(BaseModel):
    inventario_base: float = 0.0
    ventas_registradas: float = 0.0
    inventario_disponible: float = 0.0


class ResumenSemanal(BaseModel):
    fecha_semana: date
    inventory_by_size: Dict[str, TallaResumen] = {}
    total_disponible: float = 0.0


class ValidacionPedidoIn(BaseModel):
    fecha_semana: date = Field(..., description="Semana de entrega (se alinea al lunes)")
    talla_comercial: str = Field(..., max_length=10)
    cantidad_kg: float = Field(..., ge=0)


class ValidacionPedidoOut(BaseModel):
    is_valid: bool
    available: float
    requested: float
    message: str


class ResumenSemanalList(BaseModel):
    plan_id: int
    semanas: List[ResumenSemanal]
