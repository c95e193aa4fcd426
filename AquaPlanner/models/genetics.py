from __future__ import annotations

from datetime import datetime
from sqlalchemy import Boolean, BigInteger, DateTime, ForeignKey, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from utils.db import Base, BigIntPK
from utils.datetime_utils import now_local


class Genetica(Base):
    __tablename__ = "genetics"

    genetics_id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    description: Mapped[str | None] = mapped_column(String(255))
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), default=now_local, nullable=False)

    curva: Mapped[list["CurvaCrecimiento"]] = relationship(
        "CurvaCrecimiento",
        back_populates="genetica",
        order_by="CurvaCrecimiento.week",
        cascade="all, delete-orphan",
    )


class CurvaCrecimiento(Base):
    """Punto (genética, semana de cultivo, peso en g). Tabla dispersa: puede faltar cualquier semana."""
    __tablename__ = "growth_curves"
    __table_args__ = (UniqueConstraint("genetics_id", "week", name="uq_growth_curves_genetics_week"),)

    growth_curve_id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    genetics_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("genetics.genetics_id", ondelete="CASCADE"),
                                             nullable=False, index=True)
    week: Mapped[int] = mapped_column(Integer, nullable=False)
    weight_grams: Mapped[float] = mapped_column(Numeric(8, 3), nullable=False)

    genetica: Mapped["Genetica"] = relationship("Genetica", back_populates="curva")
