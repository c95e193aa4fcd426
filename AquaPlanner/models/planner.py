from __future__ import annotations

from datetime import datetime, date
from sqlalchemy import (
    BigInteger, Boolean, CheckConstraint, Date, DateTime, ForeignKey, Integer, Numeric, String, Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from utils.db import Base, BigIntPK, DateTimeUS
from utils.datetime_utils import now_local, now_local_precise


class PlannerPlan(Base):
    __tablename__ = "planner_planes"

    plan_id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    oficina_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    nombre: Mapped[str] = mapped_column(String(150), nullable=False)
    descripcion: Mapped[str | None] = mapped_column(String(255))

    # Siempre lunes; la semana 1 del plan empieza aquí
    fecha_inicio: Mapped[date] = mapped_column(Date, nullable=False)
    fecha_fin: Mapped[date] = mapped_column(Date, nullable=False)
    semanas_total: Mapped[int] = mapped_column(Integer, nullable=False, default=52)
    activo: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), default=now_local, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), default=now_local, onupdate=now_local,
                                                 nullable=False)

    bloques: Mapped[list["PlannerBloque"]] = relationship(
        "PlannerBloque",
        back_populates="plan",
        cascade="all, delete-orphan",
    )


class PlannerBloque(Base):
    """
    Ocupación contigua de un estanque durante un rango de semanas con un solo estado.
    Las fechas se derivan de plan.fecha_inicio + (semana - 1) * 7.
    """
    __tablename__ = "planner_bloques"
    __table_args__ = (
        CheckConstraint("semana_fin >= semana_inicio", name="semanas_orden"),
    )

    bloque_id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    plan_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("planner_planes.plan_id", ondelete="CASCADE"),
                                         nullable=False, index=True)
    estanque_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)

    semana_inicio: Mapped[int] = mapped_column(Integer, nullable=False)
    semana_fin: Mapped[int] = mapped_column(Integer, nullable=False)
    fecha_inicio: Mapped[date] = mapped_column(Date, nullable=False)
    fecha_fin: Mapped[date] = mapped_column(Date, nullable=False)

    # Ready / Nursery / Growout / Reservoir / Maintenance / Out of order
    estado: Mapped[str] = mapped_column(String(20), nullable=False)

    generacion_id: Mapped[str | None] = mapped_column(String(50))
    genetica_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey("genetics.genetics_id"))
    poblacion_inicial: Mapped[int | None] = mapped_column(BigInteger)
    densidad_inicial: Mapped[float | None] = mapped_column(Numeric(12, 4))
    peso_objetivo_g: Mapped[float | None] = mapped_column(Numeric(7, 3))
    observaciones: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), default=now_local, nullable=False)
    # Con microsegundos: la detección de snapshots stale la compara contra snapshot_date
    updated_at: Mapped[datetime] = mapped_column(DateTimeUS, default=now_local_precise, onupdate=now_local_precise,
                                                 nullable=False)

    plan: Mapped["PlannerPlan"] = relationship("PlannerPlan", back_populates="bloques")

    @property
    def duracion(self) -> int:
        return self.semana_fin - self.semana_inicio + 1

    def __repr__(self):
        return f"<PlannerBloque {self.bloque_id} estanque={self.estanque_id} {self.semana_inicio}-{self.semana_fin}>"
