# tests/test_planner_service.py
from datetime import timedelta

import pytest

from models.planner import PlannerBloque
from schemas.planner import BloqueCreate, BloqueUpdate
from services import planner_service
from utils.errors import InputError, NotFoundError

from factories import make_block, make_plan


def test_create_block_deriva_fechas(db):
    plan = make_plan(db)
    bloque = make_block(db, plan, semana_inicio=3, duracion=4)

    assert bloque.semana_fin == 6
    assert bloque.duracion == 4
    assert bloque.fecha_inicio == plan.fecha_inicio + timedelta(weeks=2)
    assert bloque.fecha_fin == plan.fecha_inicio + timedelta(weeks=5)
    assert bloque.estado == "Growout"


def test_create_block_fuera_del_plan(db):
    plan = make_plan(db, semanas_total=10)
    with pytest.raises(InputError):
        make_block(db, plan, semana_inicio=8, duracion=5)


def test_create_block_plan_inexistente(db):
    payload = BloqueCreate(estanque_id=1, semana_inicio=1, duracion=2, estado="Growout")
    with pytest.raises(NotFoundError):
        planner_service.create_block(db, 404, payload)


def test_update_block_rederiva_semanas_y_marca_updated_at(db):
    plan = make_plan(db)
    bloque = make_block(db, plan, semana_inicio=1, duracion=4)
    antes = bloque.updated_at - timedelta(days=1)
    bloque.updated_at = antes
    db.commit()

    actualizado = planner_service.update_block(db, bloque.bloque_id, BloqueUpdate(semana_inicio=5))

    assert actualizado.semana_inicio == 5
    assert actualizado.semana_fin == 8
    assert actualizado.fecha_inicio == plan.fecha_inicio + timedelta(weeks=4)
    assert actualizado.updated_at > antes


def test_update_block_estado_case_insensitive(db):
    plan = make_plan(db)
    bloque = make_block(db, plan)
    actualizado = planner_service.update_block(db, bloque.bloque_id, BloqueUpdate(estado="maintenance"))
    assert actualizado.estado == "Maintenance"


def test_delete_y_list_blocks(db):
    plan = make_plan(db)
    b1 = make_block(db, plan, estanque_id=2)
    make_block(db, plan, estanque_id=1)

    assert [b.estanque_id for b in planner_service.list_blocks(db, plan.plan_id)] == [1, 2]

    planner_service.delete_block(db, b1.bloque_id)
    assert db.get(PlannerBloque, b1.bloque_id) is None
    assert len(planner_service.list_blocks(db, plan.plan_id)) == 1

    with pytest.raises(NotFoundError):
        planner_service.delete_block(db, b1.bloque_id)
