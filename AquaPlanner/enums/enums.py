from enum import Enum


# =====================================================
# 🗓️ PLANNER
# =====================================================
class EstadoBloqueEnum(str, Enum):
    ready = "Ready"
    nursery = "Nursery"
    growout = "Growout"
    reservoir = "Reservoir"
    maintenance = "Maintenance"
    out_of_order = "Out of order"

    @classmethod
    def _missing_(cls, value):
        """Acepta el estado sin importar mayúsculas ('growout' == 'Growout')"""
        if isinstance(value, str):
            for member in cls:
                if member.value.lower() == value.lower():
                    return member
        return None


# =====================================================
# 📦 SNAPSHOTS DE INVENTARIO
# =====================================================
class SnapshotEstadoEnum(str, Enum):
    """Estado de la generación por plan (solo en memoria, no se persiste)."""
    no_snapshots = "no_snapshots"
    generating = "generating"
    generated = "generated"
    failed = "failed"


# =====================================================
# 🔃 ORDENAMIENTO
# =====================================================
class SortOrderEnum(str, Enum):
    ASC = "asc"
    DESC = "desc"
