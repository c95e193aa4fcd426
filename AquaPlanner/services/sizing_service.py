# services/sizing_service.py
"""
Conversión de peso por pieza a talla comercial (piezas por kg) y reparto de
biomasa entre tallas.

Reglas:
- piezas_kg = round(1000 / gramos) con redondeo half-up.
- Se toma el PRIMER rango de TALLAS_COMERCIALES_RANGES que contenga piezas_kg
  (el orden importa: '31-40' gana sobre '31-35').
- Fuera de tabla se recorta al borde más cercano:
    piezas_kg > 70  (camarón muy chico)  -> '61-70'
    piezas_kg < 16  (camarón muy grande) -> '16-20'
- Peso <= 0 no lanza error: regresa TALLA_DEFAULT para que el pipeline sea total.
"""
import logging
import math
from typing import Dict, List, NamedTuple

logger = logging.getLogger("aquaplanner.sizing")


class RangoTalla(NamedTuple):
    label: str
    min: int
    max: int


TALLAS_COMERCIALES_RANGES: List[RangoTalla] = [
    RangoTalla("61-70", 61, 70),
    RangoTalla("51-60", 51, 60),
    RangoTalla("41-50", 41, 50),
    RangoTalla("31-40", 31, 40),
    RangoTalla("31-35", 31, 35),
    RangoTalla("26-30", 26, 30),
    RangoTalla("21-25", 21, 25),
    RangoTalla("16-20", 16, 20),
]

TALLAS_COMERCIALES: List[str] = [r.label for r in TALLAS_COMERCIALES_RANGES]

TALLA_DEFAULT = "61-70"        # peso inválido
TALLA_MAS_CHICA = "61-70"      # más piezas por kg
TALLA_MAS_GRANDE = "16-20"     # menos piezas por kg
TALLA_CENTRAL = "41-50"        # hueco en la tabla / distribución sin entrada

_MAX_PIEZAS = max(r.max for r in TALLAS_COMERCIALES_RANGES)
_MIN_PIEZAS = min(r.min for r in TALLAS_COMERCIALES_RANGES)

# Distribución simplificada alrededor de la talla del peso promedio.
# Cada fila suma 1.0
DISTRIBUCIONES: Dict[str, Dict[str, float]] = {
    "61-70": {"61-70": 0.7, "51-60": 0.2, "41-50": 0.1},
    "51-60": {"61-70": 0.1, "51-60": 0.6, "41-50": 0.2, "31-40": 0.1},
    "41-50": {"51-60": 0.1, "41-50": 0.6, "31-40": 0.2, "26-30": 0.1},
    "31-40": {"41-50": 0.1, "31-40": 0.6, "26-30": 0.2, "21-25": 0.1},
    "31-35": {"31-40": 0.3, "31-35": 0.5, "26-30": 0.2},
    "26-30": {"31-40": 0.1, "26-30": 0.6, "21-25": 0.2, "16-20": 0.1},
    "21-25": {"26-30": 0.1, "21-25": 0.6, "16-20": 0.3},
    "16-20": {"21-25": 0.2, "16-20": 0.8},
}


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def piezas_por_kg(gramos: float) -> int:
    """Conteo de piezas por kg para un peso individual (> 0)."""
    return _round_half_up(1000.0 / gramos)


def gramos_to_talla(gramos: float) -> str:
    """Talla comercial para un peso individual en gramos."""
    if gramos is None or gramos <= 0:
        return TALLA_DEFAULT

    conteo = piezas_por_kg(gramos)

    for rango in TALLAS_COMERCIALES_RANGES:
        if rango.min <= conteo <= rango.max:
            return rango.label

    if conteo > _MAX_PIEZAS:
        logger.debug("Peso %.3fg (%d pz/kg) recortado a %s", gramos, conteo, TALLA_MAS_CHICA)
        return TALLA_MAS_CHICA
    if conteo < _MIN_PIEZAS:
        logger.debug("Peso %.3fg (%d pz/kg) recortado a %s", gramos, conteo, TALLA_MAS_GRANDE)
        return TALLA_MAS_GRANDE

    return TALLA_CENTRAL


def distribucion_tallas(peso_promedio_g: float) -> Dict[str, float]:
    """
    Fracción de biomasa por talla para una población con peso promedio dado.
    Regresa una copia (el llamador puede mutarla).
    """
    talla = gramos_to_talla(peso_promedio_g)
    return dict(DISTRIBUCIONES.get(talla, {TALLA_CENTRAL: 1.0}))


def biomasa_por_talla(biomasa_total_kg: float, peso_promedio_g: float) -> Dict[str, float]:
    """
    Reparte la biomasa total entre tallas según distribucion_tallas.
    La suma de los valores es igual a biomasa_total_kg (tolerancia de float).
    """
    distribucion = distribucion_tallas(peso_promedio_g)
    return {talla: biomasa_total_kg * fraccion for talla, fraccion in distribucion.items()}


def talla_index(talla: str) -> int:
    """Posición de la talla en el orden comercial (desconocidas al final)."""
    try:
        return TALLAS_COMERCIALES.index(talla)
    except ValueError:
        return len(TALLAS_COMERCIALES)


def validate_talla(talla: str) -> str:
    if talla not in TALLAS_COMERCIALES:
        raise ValueError(f"Talla comercial desconocida: {talla!r}")
    return talla
