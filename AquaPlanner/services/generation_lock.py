# services/generation_lock.py
"""
Serializa la regeneración de snapshots por plan dentro del proceso.

La regeneración hace insert + delete sobre filas compartidas del plan; dos
corridas simultáneas del mismo plan se pisarían. Una segunda solicitud
mientras otra está en curso se rechaza (no se encola).

El registro es por proceso. Entre procesos (workers de uvicorn, Celery) la
exclusión la da el SELECT ... FOR UPDATE sobre la fila del plan que
snapshot_service toma al abrir la transacción de escritura.

Uso:
    with plan_generation_lock(plan_id):
        ...  # generar
"""
import threading
from contextlib import contextmanager
from typing import Dict

from enums.enums import SnapshotEstadoEnum
from utils.errors import GenerationInProgressError, PersistenceError

_registry_lock = threading.Lock()
_in_progress: set = set()
_states: Dict[object, SnapshotEstadoEnum] = {}


def is_generating(plan_id) -> bool:
    with _registry_lock:
        return plan_id in _in_progress


def get_generation_state(plan_id) -> SnapshotEstadoEnum:
    """Último estado conocido en este proceso."""
    with _registry_lock:
        return _states.get(plan_id, SnapshotEstadoEnum.no_snapshots)


def set_generation_state(plan_id, estado: SnapshotEstadoEnum) -> None:
    with _registry_lock:
        _states[plan_id] = estado


@contextmanager
def plan_generation_lock(plan_id):
    with _registry_lock:
        if plan_id in _in_progress:
            raise GenerationInProgressError(
                f"Ya hay una generación de snapshots en curso para el plan {plan_id}",
                plan_id=plan_id,
                operation="generate_snapshots",
            )
        _in_progress.add(plan_id)
        previo = _states.get(plan_id, SnapshotEstadoEnum.no_snapshots)
        _states[plan_id] = SnapshotEstadoEnum.generating

    try:
        yield
    except PersistenceError:
        with _registry_lock:
            _states[plan_id] = SnapshotEstadoEnum.failed
        raise
    except Exception:
        # Plan inexistente, sin datos o parámetros inválidos: no se escribió nada
        with _registry_lock:
            _states[plan_id] = previo
        raise
    finally:
        with _registry_lock:
            _in_progress.discard(plan_id)
