"""
Utilidades centralizadas para manejo de fechas y timestamps.
Todas las operaciones usan settings.APP_TIMEZONE (America/Mazatlan por
defecto) como zona horaria de referencia.

Convención del sistema:
- Los timestamps se persisten **naive** (sin tzinfo) en hora local.
- Las semanas del planner siempre empiezan en lunes.
"""
from datetime import datetime, date, timedelta
from typing import List
from zoneinfo import ZoneInfo

from config.settings import settings

LOCAL_TZ = ZoneInfo(settings.APP_TIMEZONE)


def now_local() -> datetime:
    """
    Retorna el datetime actual en la zona local (naive para columnas DATETIME).
    """
    return datetime.now(LOCAL_TZ).replace(tzinfo=None, microsecond=0)


def now_local_precise() -> datetime:
    """
    Como now_local() pero conserva microsegundos. Para marcas que se comparan
    entre sí (bloque editado vs. snapshot generado) dentro del mismo segundo.
    """
    return datetime.now(LOCAL_TZ).replace(tzinfo=None)


def today_local() -> date:
    return datetime.now(LOCAL_TZ).date()


def week_start(d: date) -> date:
    """Lunes de la semana que contiene `d`."""
    if isinstance(d, datetime):
        d = d.date()
    return d - timedelta(days=d.weekday())


def current_week_start() -> date:
    return week_start(today_local())


def weeks_in_range(start: date, end: date) -> List[date]:
    """
    Lunes de cada semana entre start y end (inclusive).
    El inicio se alinea al lunes de su semana.
    """
    weeks: List[date] = []
    current = week_start(start)
    while current <= end:
        weeks.append(current)
        current += timedelta(days=7)
    return weeks
