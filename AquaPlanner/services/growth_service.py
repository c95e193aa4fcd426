# services/growth_service.py
"""
Modelo de crecimiento por genética.

Peso individual esperado (g) por semana de cultivo, interpolando linealmente
sobre la tabla dispersa growth_curves. Fuera de la tabla se recorta al punto
conocido más cercano. Sin curva -> settings.GROWTH_DEFAULT_WEIGHT_G.
"""
from __future__ import annotations

from bisect import bisect_left
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from config.settings import settings
from models.genetics import CurvaCrecimiento
from services.calculation_service import calculate_poblacion_semana

Punto = Tuple[float, float]  # (semana, peso_g)


def interpolate_weight(puntos: Sequence[Punto], semana: float, default: float | None = None) -> float:
    """
    Interpolación lineal sobre puntos (semana, peso) ordenados por semana.

    - semana <= primer punto -> peso del primer punto
    - semana >= último punto -> peso del último punto
    - entre dos puntos -> recta entre ellos (no requiere semanas consecutivas)
    """
    if not puntos:
        return settings.GROWTH_DEFAULT_WEIGHT_G if default is None else default

    semanas = [p[0] for p in puntos]
    if semana <= semanas[0]:
        return float(puntos[0][1])
    if semana >= semanas[-1]:
        return float(puntos[-1][1])

    idx = bisect_left(semanas, semana)
    if semanas[idx] == semana:
        return float(puntos[idx][1])

    w0, p0 = puntos[idx - 1]
    w1, p1 = puntos[idx]
    fraccion = (semana - w0) / (w1 - w0)
    return float(p0) + (float(p1) - float(p0)) * fraccion


class GrowthModel:
    """
    Acceso a curvas de crecimiento con caché por genética.
    Una instancia vive lo que dura una operación (p. ej. una generación de snapshots).
    """

    def __init__(self, db: Session):
        self.db = db
        self._cache: Dict[int, List[Punto]] = {}

    def curve(self, genetica_id: int) -> List[Punto]:
        if genetica_id not in self._cache:
            rows = self.db.execute(
                select(CurvaCrecimiento.week, CurvaCrecimiento.weight_grams)
                .where(CurvaCrecimiento.genetics_id == genetica_id)
                .order_by(CurvaCrecimiento.week)
            ).all()
            self._cache[genetica_id] = [(float(w), float(g)) for w, g in rows]
        return self._cache[genetica_id]

    def weight_at(self, genetica_id: Optional[int], semana: float) -> float:
        """Peso individual (g) en la semana de cultivo `semana`."""
        if genetica_id is None:
            return settings.GROWTH_DEFAULT_WEIGHT_G
        return interpolate_weight(self.curve(genetica_id), semana)

    def total_biomass(self, genetica_id: Optional[int], poblacion: float, semana: float) -> dict:
        peso = self.weight_at(genetica_id, semana)
        biomasa_g = poblacion * peso
        return {
            "peso_individual_g": peso,
            "biomasa_g": biomasa_g,
            "biomasa_kg": biomasa_g / 1000.0,
        }

    def biomass_progression(
        self,
        genetica_id: Optional[int],
        poblacion_inicial: float,
        mortalidad_semanal: float,
        semana_inicio: int,
        semana_fin: int,
    ) -> List[dict]:
        """
        Serie semanal de población y biomasa aplicando mortalidad entre semanas.
        Las semanas son de cultivo (1 = semana de siembra).
        """
        progresion = []

        for semana in range(semana_inicio, semana_fin + 1):
            poblacion = calculate_poblacion_semana(
                poblacion_inicial, mortalidad_semanal, semana - semana_inicio + 1
            )
            datos = self.total_biomass(genetica_id, poblacion, semana)
            progresion.append({
                "semana": semana,
                "poblacion": int(poblacion),
                "peso_individual_g": datos["peso_individual_g"],
                "biomasa_kg": datos["biomasa_kg"],
            })

        return progresion
