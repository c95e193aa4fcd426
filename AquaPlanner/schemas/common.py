# schemas/common.py
from __future__ import annotations

from datetime import date
from typing import Optional

from pydantic import BaseModel, model_validator


class Msg(BaseModel):
    """Respuesta simple con mensaje plano (útil para deletes, acciones, etc.)."""
    detail: str


class DateRange(BaseModel):
    """Rango de fechas inclusivo; ambos extremos opcionales."""
    start: Optional[date] = None
    end: Optional[date] = None

    @model_validator(mode="after")
    def _check_order(self):
        if self.start and self.end and self.start > self.end:
            raise ValueError("start no puede ser posterior a end")
        return self
