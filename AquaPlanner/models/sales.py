from __future__ import annotations

from datetime import datetime, date
from sqlalchemy import BigInteger, Boolean, Date, DateTime, Float, String
from sqlalchemy.orm import Mapped, mapped_column

from utils.db import Base, BigIntPK
from utils.datetime_utils import now_local


class VentaRegistrada(Base):
    """
    Compromiso de venta que reduce el inventario disponible de una llave (semana, talla).
    Lo administra el módulo de ventas; aquí solo se lee.
    """
    __tablename__ = "registered_sales_inventory"

    venta_id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    plan_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    fecha_semana: Mapped[date] = mapped_column(Date, nullable=False)
    talla_comercial: Mapped[str] = mapped_column(String(10), nullable=False)
    cantidad_kg: Mapped[float] = mapped_column(Float, nullable=False)
    confirmado: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    cliente_id: Mapped[int | None] = mapped_column(BigInteger)
    source_block_id: Mapped[int | None] = mapped_column(BigInteger)
    registered_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), default=now_local, nullable=False)
