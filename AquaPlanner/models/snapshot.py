from __future__ import annotations

from datetime import datetime, date
from sqlalchemy import BigInteger, Date, Float, Index, JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from utils.db import Base, BigIntPK, DateTimeUS
from utils.datetime_utils import now_local_precise


class InventarioSnapshot(Base):
    """
    Punto materializado de la proyección: biomasa (kg) de una talla comercial
    en un estanque para una semana.

    - source_block_id es una referencia, no propiedad: si el bloque se borra,
      el snapshot queda huérfano (y cuenta como stale).
    - block_info es una copia congelada de los datos del bloque al generar.
    - generacion_id agrupa todas las filas escritas por una misma corrida.
    """
    __tablename__ = "projected_inventory_snapshots"
    __table_args__ = (
        Index("ix_snapshots_plan_semana_talla", "plan_id", "fecha_semana", "talla_comercial"),
    )

    snapshot_id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    plan_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    estanque_id: Mapped[int] = mapped_column(BigInteger, nullable=False)

    fecha_semana: Mapped[date] = mapped_column(Date, nullable=False)  # lunes
    talla_comercial: Mapped[str] = mapped_column(String(10), nullable=False)
    inventario_total_kg: Mapped[float] = mapped_column(Float, nullable=False)

    source_block_id: Mapped[int | None] = mapped_column(BigInteger, index=True)
    generacion_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    block_info: Mapped[dict | None] = mapped_column(JSON)

    snapshot_date: Mapped[datetime] = mapped_column(DateTimeUS, default=now_local_precise, nullable=False)

    @property
    def llave(self) -> tuple:
        return self.estanque_id, self.fecha_semana, self.talla_comercial

    def __repr__(self):
        return (f"<InventarioSnapshot {self.snapshot_id} {self.fecha_semana} "
                f"{self.talla_comercial} {self.inventario_total_kg:.3f}kg>")
