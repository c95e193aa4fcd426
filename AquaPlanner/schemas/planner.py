# schemas/planner.py
from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field

from enums.enums import EstadoBloqueEnum


class BloqueCreate(BaseModel):
    """Las fechas no se reciben: se derivan de la fecha de inicio del plan."""
    estanque_id: int = Field(..., gt=0)
    semana_inicio: int = Field(..., ge=1)
    duracion: int = Field(..., ge=1, description="Semanas que ocupa el bloque")
    estado: EstadoBloqueEnum
    generacion_id: Optional[str] = Field(default=None, max_length=50)
    genetica_id: Optional[int] = Field(default=None, gt=0)
    poblacion_inicial: Optional[int] = Field(default=None, ge=0)
    densidad_inicial: Optional[float] = Field(default=None, ge=0)
    peso_objetivo_g: Optional[float] = Field(default=None, gt=0)
    observaciones: Optional[str] = None


class BloqueUpdate(BaseModel):
    """
    Actualización parcial. Si cambia semana_inicio o duracion se re-derivan
    semana_fin, fecha_inicio y fecha_fin.
    """
    estanque_id: Optional[int] = Field(default=None, gt=0)
    semana_inicio: Optional[int] = Field(default=None, ge=1)
    duracion: Optional[int] = Field(default=None, ge=1)
    estado: Optional[EstadoBloqueEnum] = None
    generacion_id: Optional[str] = Field(default=None, max_length=50)
    genetica_id: Optional[int] = Field(default=None, gt=0)
    poblacion_inicial: Optional[int] = Field(default=None, ge=0)
    densidad_inicial: Optional[float] = Field(default=None, ge=0)
    peso_objetivo_g: Optional[float] = Field(default=None, gt=0)
    observaciones: Optional[str] = None


class BloqueOut(BaseModel):
    bloque_id: int
    plan_id: int
    estanque_id: int
    semana_inicio: int
    semana_fin: int
    fecha_inicio: date
    fecha_fin: date
    estado: str
    generacion_id: Optional[str] = None
    genetica_id: Optional[int] = None
    poblacion_inicial: Optional[int] = None
    densidad_inicial: Optional[float] = None
    peso_objetivo_g: Optional[float] = None
    observaciones: Optional[str] = None
    updated_at: datetime

    class Config:
        from_attributes = True
