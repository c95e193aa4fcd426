from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from schemas.common import Msg
from schemas.planner import BloqueCreate, BloqueOut, BloqueUpdate
from services import planner_service
from utils.db import get_db

router = APIRouter(prefix="/planner", tags=["planner"])


@router.get("/plans/{plan_id}/blocks", response_model=List[BloqueOut])
def list_blocks(plan_id: int, db: Session = Depends(get_db)):
    return planner_service.list_blocks(db, plan_id)


@router.post("/plans/{plan_id}/blocks", response_model=BloqueOut, status_code=status.HTTP_201_CREATED)
def create_block(plan_id: int, body: BloqueCreate, db: Session = Depends(get_db)):
    """Las fechas del bloque se derivan de semana_inicio, duracion y el inicio del plan."""
    return planner_service.create_block(db, plan_id, body)


@router.patch("/blocks/{bloque_id}", response_model=BloqueOut)
def update_block(bloque_id: int, body: BloqueUpdate, db: Session = Depends(get_db)):
    return planner_service.update_block(db, bloque_id, body)


@router.delete("/blocks/{bloque_id}", response_model=Msg)
def delete_block(bloque_id: int, db: Session = Depends(get_db)):
    # Los snapshots del bloque quedan huérfanos hasta la siguiente regeneración
    planner_service.delete_block(db, bloque_id)
    return Msg(detail="deleted")
