# models/__init__.py
from utils.db import Base  # re-export
from .genetics import Genetica, CurvaCrecimiento
from .planner import PlannerPlan, PlannerBloque
from .sales import VentaRegistrada
from .snapshot import InventarioSnapshot
