"""
Cálculos de población y biomasa para la proyección de inventario.
"""
from typing import Any, Optional


# ==================== CÁLCULOS BÁSICOS ====================

def calculate_biomasa_kg(org_vivos: float, pp_g: float) -> float:
    """
    Biomasa total en kg.

    Fórmula:
    biomasa_kg = org_vivos × (pp_g / 1000)
    """
    if org_vivos <= 0 or pp_g <= 0:
        return 0.0
    return org_vivos * pp_g / 1000.0


def calculate_poblacion_semana(
    poblacion_inicial: float,
    mortalidad_semanal: float,
    semana_cultivo: int,
) -> float:
    """
    Población viva en la semana de cultivo (1 = siembra).

    Fórmula:
    N(c) = N0 × (1 - m)^(c - 1)
    """
    if poblacion_inicial <= 0:
        return 0.0
    if mortalidad_semanal <= 0 or semana_cultivo <= 1:
        return float(poblacion_inicial)
    return float(poblacion_inicial) * (1 - mortalidad_semanal) ** (semana_cultivo - 1)


def calculate_weekly_mortality_rate(mortalidad_total_pct: float, semanas_ciclo: int) -> float:
    """
    Tasa de mortalidad semanal a partir de la mortalidad total del ciclo.

    Fórmula:
    m = (mortalidad_total% / 100) / semanas
    """
    if semanas_ciclo <= 0:
        return 0.0
    pct = validate_percentage(mortalidad_total_pct, "mortalidad_total_pct")
    return (pct / 100.0) / semanas_ciclo


def calculate_peso_promedio(peso_curva_g: float, peso_objetivo_g: Optional[float]) -> float:
    """El peso de la curva nunca supera el objetivo de cosecha del bloque (si existe)."""
    if peso_objetivo_g is not None and peso_objetivo_g > 0:
        return min(peso_curva_g, float(peso_objetivo_g))
    return peso_curva_g


# ==================== VALIDACIONES ====================

def validate_positive(value: Any, field_name: str) -> float:
    """Valida y convierte a float no negativo."""
    try:
        num = float(value)
    except (ValueError, TypeError) as e:
        raise ValueError(f"{field_name} inválido: {e}")
    if num < 0:
        raise ValueError(f"{field_name} debe ser positivo")
    return num


def validate_percentage(value: Any, field_name: str) -> float:
    """Valida y convierte a porcentaje (0-100)."""
    num = validate_positive(value, field_name)
    if num > 100:
        raise ValueError(f"{field_name} no puede ser mayor a 100%")
    return num
