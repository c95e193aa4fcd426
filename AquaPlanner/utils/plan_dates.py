"""
Fechas del plan anual del planner.

Un plan arranca el primer lunes del año y termina el último lunes. La semana
N del plan (1-based) corresponde a `fecha_inicio + (N - 1) * 7` días.
"""
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional

from utils.datetime_utils import today_local, week_start


@dataclass(frozen=True)
class PlanDates:
    start_date: date
    end_date: date
    year: int

    @property
    def label(self) -> str:
        return f"Plan {self.year} ({self.start_date.isoformat()} - {self.end_date.isoformat()})"


def get_plan_year(today: Optional[date] = None) -> int:
    """
    Año del plan según la fecha actual.
    En Q4 (octubre-diciembre) se planifica el año siguiente.
    """
    today = today or today_local()
    return today.year + 1 if today.month >= 10 else today.year


def first_monday(year: int) -> date:
    jan1 = date(year, 1, 1)
    return jan1 + timedelta(days=(7 - jan1.weekday()) % 7)


def last_monday(year: int) -> date:
    dec31 = date(year, 12, 31)
    return dec31 - timedelta(days=dec31.weekday())


def get_plan_dates(year: Optional[int] = None) -> PlanDates:
    year = year or get_plan_year()
    return PlanDates(start_date=first_monday(year), end_date=last_monday(year), year=year)


def is_date_in_plan(d: date, plan_dates: Optional[PlanDates] = None) -> bool:
    plan_dates = plan_dates or get_plan_dates()
    return plan_dates.start_date <= d <= plan_dates.end_date


def week_to_date(plan_start: date, semana: int) -> date:
    """Fecha (lunes) de la semana `semana` del plan."""
    if semana < 1:
        raise ValueError("semana debe ser >= 1")
    return week_start(plan_start) + timedelta(days=(semana - 1) * 7)


def date_to_week(plan_start: date, d: date) -> int:
    """Semana del plan (1-based) que contiene `d`. Puede ser <= 0 si es anterior al plan."""
    return (week_start(d) - week_start(plan_start)).days // 7 + 1
