import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import IntegrityError

logger = logging.getLogger("aquaplanner.errors")


# ==========================================
# Errores de dominio
# ==========================================

class AquaPlannerError(Exception):
    """
    Error base del dominio. Lleva el contexto suficiente para que el
    llamador decida si reintenta (plan y operación).
    """
    code = "aquaplanner_error"
    status_code = 400

    def __init__(self, message: str, *, plan_id=None, operation: str | None = None):
        super().__init__(message)
        self.message = message
        self.plan_id = plan_id
        self.operation = operation

    def to_dict(self) -> dict:
        return {
            "error": self.code,
            "detail": self.message,
            "plan_id": self.plan_id,
            "operation": self.operation,
        }


class InputError(AquaPlannerError):
    """Semana, talla, peso o parámetro mal formado."""
    code = "invalid_input"
    status_code = 422


class NotFoundError(AquaPlannerError):
    code = "not_found"
    status_code = 404


class NoDataError(AquaPlannerError):
    """No hay bloques proyectables para el plan. No se reintenta."""
    code = "no_data"
    status_code = 404


class PersistenceError(AquaPlannerError):
    """Fallo de lectura/escritura en el store. El llamador decide si reintenta."""
    code = "persistence_error"
    status_code = 503


class GenerationInProgressError(AquaPlannerError):
    code = "generation_in_progress"
    status_code = 409


class StaleStateError(AquaPlannerError):
    """Inconsistencia detectada en validación; se reporta como warning."""
    code = "stale_state"
    status_code = 409


# ==========================================
# Handlers HTTP
# ==========================================

def _normalize_errors(errs):
    norm = []
    for e in errs:
        e = dict(e)
        val = e.get("input")
        if isinstance(val, (bytes, bytearray)):
            e["input"] = val.decode("utf-8", errors="ignore")
        ctx = e.get("ctx")
        if isinstance(ctx, dict):
            e["ctx"] = {k: str(v) for k, v in ctx.items()}
        norm.append(e)
    return norm


def install_error_handlers(app: FastAPI):
    @app.exception_handler(AquaPlannerError)
    async def domain_handler(request: Request, exc: AquaPlannerError):
        if isinstance(exc, PersistenceError):
            logger.error("%s plan=%s op=%s: %s", exc.code, exc.plan_id, exc.operation, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=422,
            content={"error": "validation_error", "detail": _normalize_errors(exc.errors())},
        )

    @app.exception_handler(IntegrityError)
    async def integrity_handler(request: Request, exc: IntegrityError):
        return JSONResponse(status_code=409, content={"error": "conflict", "detail": str(exc.orig)})
