from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from schemas.inventory import (
    DisponibilidadOut,
    ResumenSemanalList,
    ValidacionPedidoIn,
    ValidacionPedidoOut,
)
from services import availability_service
from services.planner_service import get_plan
from utils.db import get_db

router = APIRouter(prefix="/inventory", tags=["inventory"])


@router.get("/plans/{plan_id}/available", response_model=DisponibilidadOut)
def get_available(
    plan_id: int,
    week: date = Query(..., description="Cualquier día de la semana; se alinea al lunes"),
    size: str = Query(..., max_length=10, description="Talla comercial, p. ej. 41-50"),
    db: Session = Depends(get_db),
):
    get_plan(db, plan_id)
    return availability_service.availability_detail(db, plan_id, week, size)


@router.get("/plans/{plan_id}/weekly-summary", response_model=ResumenSemanalList)
def get_weekly_summary(plan_id: int, db: Session = Depends(get_db)):
    get_plan(db, plan_id)
    return ResumenSemanalList(plan_id=plan_id, semanas=availability_service.weekly_summary(db, plan_id))


@router.post("/plans/{plan_id}/validate-order", response_model=ValidacionPedidoOut)
def validate_order(plan_id: int, body: ValidacionPedidoIn, db: Session = Depends(get_db)):
    get_plan(db, plan_id)
    return availability_service.validate_order(
        db, plan_id, body.fecha_semana, body.talla_comercial, body.cantidad_kg
    )
