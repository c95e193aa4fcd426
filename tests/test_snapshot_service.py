# tests/test_snapshot_service.py
from datetime import timedelta

import pytest
from sqlalchemy import select, update
from sqlalchemy.dialects import mysql
from sqlalchemy.exc import SQLAlchemyError

from enums.enums import SnapshotEstadoEnum, SortOrderEnum
from models.snapshot import InventarioSnapshot
from schemas.planner import BloqueUpdate
from services import planner_service, snapshot_service
from services.generation_lock import get_generation_state, plan_generation_lock
from utils.datetime_utils import current_week_start, now_local
from utils.errors import (
    GenerationInProgressError,
    InputError,
    NoDataError,
    NotFoundError,
    PersistenceError,
)
from utils.plan_dates import week_to_date

from factories import make_block, make_genetics, make_plan, make_snapshot


@pytest.fixture
def escenario(db):
    """
    10 000 organismos sembrados en la semana 1, 15 g en la semana de cultivo 10,
    sin mortalidad, cosecha en la semana 10.
    """
    plan = make_plan(db)
    gen = make_genetics(db, [(1, 1.0), (10, 15.0)])
    bloque = make_block(db, plan, semana_inicio=1, duracion=10, poblacion_inicial=10_000,
                        genetica_id=gen.genetics_id)
    return plan, bloque


def _ids(db, plan_id):
    return set(db.scalars(select(InventarioSnapshot.snapshot_id).where(InventarioSnapshot.plan_id == plan_id)))


def _age_snapshots(db, plan_id, days):
    db.execute(
        update(InventarioSnapshot)
        .where(InventarioSnapshot.plan_id == plan_id)
        .values(snapshot_date=now_local() - timedelta(days=days))
    )
    db.commit()


# ===================================
# GENERACIÓN
# ===================================

def test_generate_escenario_150kg(db, escenario):
    plan, bloque = escenario
    metrics = snapshot_service.generate_snapshots(db, plan.plan_id)

    assert not metrics.skipped
    assert metrics.data_source_records == 1
    # todas las semanas caen en '61-70' (>= 67 pz/kg) -> 3 tallas por semana
    assert metrics.snapshots_created == 10 * 3

    semana_10 = week_to_date(plan.fecha_inicio, 10)
    filas = db.scalars(
        select(InventarioSnapshot).where(InventarioSnapshot.fecha_semana == semana_10)
    ).all()
    por_talla = {f.talla_comercial: f.inventario_total_kg for f in filas}
    assert por_talla == pytest.approx({"61-70": 105.0, "51-60": 30.0, "41-50": 15.0})
    assert sum(por_talla.values()) == pytest.approx(150.0)

    fila = filas[0]
    assert fila.source_block_id == bloque.bloque_id
    assert fila.generacion_id == metrics.generacion_id
    assert fila.block_info["semana_cultivo"] == 10
    assert fila.block_info["poblacion_inicial"] == 10_000
    assert get_generation_state(plan.plan_id) == SnapshotEstadoEnum.generated


def test_generate_sin_force_es_noop(db, escenario):
    plan, _ = escenario
    snapshot_service.generate_snapshots(db, plan.plan_id)
    antes = _ids(db, plan.plan_id)

    metrics = snapshot_service.generate_snapshots(db, plan.plan_id)

    assert metrics.skipped
    assert metrics.snapshots_created == 0
    assert _ids(db, plan.plan_id) == antes


def test_force_reemplaza_generacion_anterior(db, escenario):
    plan, _ = escenario
    primera = snapshot_service.generate_snapshots(db, plan.plan_id)
    segunda = snapshot_service.generate_snapshots(db, plan.plan_id, force_regenerate=True)

    assert segunda.generacion_id != primera.generacion_id
    assert segunda.snapshots_deleted == primera.snapshots_created
    generaciones = set(db.scalars(
        select(InventarioSnapshot.generacion_id).where(InventarioSnapshot.plan_id == plan.plan_id)
    ))
    assert generaciones == {segunda.generacion_id}


def test_mortalidad_reduce_biomasa(db, escenario):
    plan, _ = escenario
    snapshot_service.generate_snapshots(db, plan.plan_id, mortalidad_semanal=0.1)
    semana_10 = week_to_date(plan.fecha_inicio, 10)
    total = sum(db.scalars(
        select(InventarioSnapshot.inventario_total_kg).where(InventarioSnapshot.fecha_semana == semana_10)
    ))
    assert total == pytest.approx(150.0 * 0.9 ** 9)


def test_peso_objetivo_topa_el_peso(db):
    plan = make_plan(db)
    gen = make_genetics(db, [(1, 30.0)])
    make_block(db, plan, duracion=1, poblacion_inicial=1000, genetica_id=gen.genetics_id, peso_objetivo_g=20.0)

    snapshot_service.generate_snapshots(db, plan.plan_id)

    filas = db.scalars(select(InventarioSnapshot)).all()
    # 20 g -> 50 pz/kg -> distribución de '41-50'
    assert {f.talla_comercial for f in filas} == {"51-60", "41-50", "31-40", "26-30"}
    assert sum(f.inventario_total_kg for f in filas) == pytest.approx(20.0)


def test_sin_bloques_proyectables(db):
    plan = make_plan(db)
    make_block(db, plan, estado="Maintenance")
    make_block(db, plan, estanque_id=2, poblacion_inicial=0)

    with pytest.raises(NoDataError):
        snapshot_service.generate_snapshots(db, plan.plan_id)


def test_bloque_terminado_no_es_proyectable(db):
    # plan que empezó hace 20 semanas; el bloque terminó hace 10
    plan = make_plan(db, fecha_inicio=current_week_start() - timedelta(weeks=20))
    make_block(db, plan, semana_inicio=1, duracion=10)

    with pytest.raises(NoDataError):
        snapshot_service.generate_snapshots(db, plan.plan_id)


def test_plan_inexistente_o_inactivo(db):
    with pytest.raises(NotFoundError):
        snapshot_service.generate_snapshots(db, 12345)

    plan = make_plan(db, activo=False)
    with pytest.raises(InputError):
        snapshot_service.generate_snapshots(db, plan.plan_id)


def test_generacion_concurrente_rechazada(db, escenario):
    plan, _ = escenario
    with plan_generation_lock(plan.plan_id):
        with pytest.raises(GenerationInProgressError):
            snapshot_service.generate_snapshots(db, plan.plan_id, force_regenerate=True)


def test_falla_de_escritura_conserva_snapshots(db, escenario, monkeypatch):
    plan, _ = escenario
    snapshot_service.generate_snapshots(db, plan.plan_id)
    antes = _ids(db, plan.plan_id)

    def boom(*args, **kwargs):
        raise SQLAlchemyError("disco lleno")

    monkeypatch.setattr(db, "bulk_save_objects", boom)

    with pytest.raises(PersistenceError) as exc_info:
        snapshot_service.generate_snapshots(db, plan.plan_id, force_regenerate=True)

    assert exc_info.value.plan_id == plan.plan_id
    assert exc_info.value.operation == "generate_snapshots"
    assert _ids(db, plan.plan_id) == antes
    assert get_generation_state(plan.plan_id) == SnapshotEstadoEnum.failed


def test_generacion_bloquea_fila_del_plan_antes_de_escribir(db, escenario, monkeypatch):
    plan, _ = escenario
    eventos = []
    sentencias = []

    real_execute = db.execute
    real_bulk = db.bulk_save_objects

    def execute(stmt, *args, **kwargs):
        sentencias.append(stmt)
        return real_execute(stmt, *args, **kwargs)

    def bulk(objs, *args, **kwargs):
        eventos.append("insert")
        return real_bulk(objs, *args, **kwargs)

    real_lock = snapshot_service._lock_plan_row

    def lock(session, plan_id):
        eventos.append(("lock", plan_id))
        real_lock(session, plan_id)

    monkeypatch.setattr(db, "execute", execute)
    monkeypatch.setattr(db, "bulk_save_objects", bulk)
    monkeypatch.setattr(snapshot_service, "_lock_plan_row", lock)

    snapshot_service.generate_snapshots(db, plan.plan_id)

    assert eventos[0] == ("lock", plan.plan_id)
    assert "insert" in eventos[1:]

    compiladas = [str(s.compile(dialect=mysql.dialect())) for s in sentencias if hasattr(s, "compile")]
    assert any("FOR UPDATE" in sql and "planner_planes" in sql for sql in compiladas)


def test_generacion_omitida_no_bloquea_fila_del_plan(db, escenario, monkeypatch):
    plan, _ = escenario
    snapshot_service.generate_snapshots(db, plan.plan_id)

    llamadas = []
    monkeypatch.setattr(snapshot_service, "_lock_plan_row", lambda session, plan_id: llamadas.append(plan_id))

    metrics = snapshot_service.generate_snapshots(db, plan.plan_id)

    assert metrics.skipped
    assert llamadas == []


# ===================================
# STALENESS Y VALIDACIÓN
# ===================================

def test_validacion_despues_de_generar(db, escenario):
    plan, _ = escenario
    snapshot_service.generate_snapshots(db, plan.plan_id, force_regenerate=True)

    resultado = snapshot_service.validate_snapshots(db, plan.plan_id)

    assert resultado.is_valid
    assert resultado.snapshot_count == 1 * 10 * 3
    assert resultado.errors == []
    assert resultado.warnings == []
    assert snapshot_service.get_stale_snapshots(db, plan.plan_id) == []


def test_validacion_sin_snapshots_es_error(db, escenario):
    plan, _ = escenario
    resultado = snapshot_service.validate_snapshots(db, plan.plan_id)

    assert not resultado.is_valid
    assert resultado.snapshot_count == 0
    assert len(resultado.errors) == 1
    # todas las semanas del bloque faltan
    assert len(snapshot_service.get_stale_snapshots(db, plan.plan_id)) == 10


def test_bloque_modificado_despues_de_generar_es_stale(db, escenario):
    plan, bloque = escenario
    snapshot_service.generate_snapshots(db, plan.plan_id)
    _age_snapshots(db, plan.plan_id, days=1)

    planner_service.update_block(db, bloque.bloque_id, BloqueUpdate(observaciones="ajuste de densidad"))

    stale = snapshot_service.get_stale_snapshots(db, plan.plan_id)
    assert len(stale) == 10
    assert stale == sorted(stale)

    resultado = snapshot_service.validate_snapshots(db, plan.plan_id)
    assert resultado.is_valid
    assert any("desactualizados" in w for w in resultado.warnings)


def test_edicion_en_el_mismo_segundo_es_stale(db, escenario):
    plan, bloque = escenario
    snapshot_service.generate_snapshots(db, plan.plan_id)

    # sin envejecer los snapshots: la edición cae en el mismo segundo que la generación
    planner_service.update_block(db, bloque.bloque_id, BloqueUpdate(poblacion_inicial=1))

    assert len(snapshot_service.get_stale_snapshots(db, plan.plan_id)) == 10


def test_bloque_eliminado_deja_huerfanos(db, escenario):
    plan, bloque = escenario
    snapshot_service.generate_snapshots(db, plan.plan_id)
    planner_service.delete_block(db, bloque.bloque_id)

    assert len(snapshot_service.get_stale_snapshots(db, plan.plan_id)) == 10
    resultado = snapshot_service.validate_snapshots(db, plan.plan_id)
    assert any("huérfanos" in w for w in resultado.warnings)


def test_biomasa_negativa_es_error(db, escenario):
    plan, bloque = escenario
    snapshot_service.generate_snapshots(db, plan.plan_id)
    make_snapshot(db, plan, plan.fecha_inicio, "41-50", -5.0, source_block_id=bloque.bloque_id)

    resultado = snapshot_service.validate_snapshots(db, plan.plan_id)
    assert not resultado.is_valid
    assert any("negativa" in e for e in resultado.errors)


def test_snapshots_viejos_generan_warning(db, escenario):
    plan, bloque = escenario
    snapshot_service.generate_snapshots(db, plan.plan_id)
    _age_snapshots(db, plan.plan_id, days=10)
    # el bloque no cambió después de la generación
    bloque.updated_at = now_local() - timedelta(days=20)
    db.commit()

    resultado = snapshot_service.validate_snapshots(db, plan.plan_id)
    assert resultado.is_valid
    assert any("antigüedad" in w for w in resultado.warnings)


# ===================================
# LIMPIEZA
# ===================================

def test_cleanup_preserva_la_unica_copia(db, escenario):
    plan, bloque = escenario
    snapshot_service.generate_snapshots(db, plan.plan_id)
    _age_snapshots(db, plan.plan_id, days=45)

    assert snapshot_service.cleanup_old_snapshots(db, plan.plan_id, keep_days=30, preserve_latest=True) == 0
    assert len(_ids(db, plan.plan_id)) == 30


def test_cleanup_sin_guardia_borra_todo(db, escenario):
    plan, _ = escenario
    snapshot_service.generate_snapshots(db, plan.plan_id)
    _age_snapshots(db, plan.plan_id, days=45)

    assert snapshot_service.cleanup_old_snapshots(db, plan.plan_id, keep_days=30, preserve_latest=False) == 30
    assert _ids(db, plan.plan_id) == set()


def test_cleanup_borra_copias_viejas_de_una_llave(db):
    plan = make_plan(db)
    semana = plan.fecha_inicio
    make_snapshot(db, plan, semana, "41-50", 10.0, snapshot_date=now_local() - timedelta(days=60))
    make_snapshot(db, plan, semana, "41-50", 12.0, snapshot_date=now_local() - timedelta(days=40))

    assert snapshot_service.cleanup_old_snapshots(db, plan.plan_id, keep_days=30) == 1
    restante = db.scalars(select(InventarioSnapshot)).one()
    assert restante.inventario_total_kg == 12.0


def test_cleanup_keep_days_negativo(db):
    plan = make_plan(db)
    with pytest.raises(InputError):
        snapshot_service.cleanup_old_snapshots(db, plan.plan_id, keep_days=-1)


# ===================================
# CONSULTAS
# ===================================

def test_consultas(db, escenario):
    plan, _ = escenario
    snapshot_service.generate_snapshots(db, plan.plan_id)
    semana_2 = week_to_date(plan.fecha_inicio, 2)
    semana_3 = week_to_date(plan.fecha_inicio, 3)

    rango = snapshot_service.list_snapshots(db, plan.plan_id, start=semana_2, end=semana_3)
    assert {s.fecha_semana for s in rango} == {semana_2, semana_3}

    desc = snapshot_service.list_snapshots(db, plan.plan_id, sort_order=SortOrderEnum.DESC)
    assert desc[0].fecha_semana == week_to_date(plan.fecha_inicio, 10)

    # cualquier día de la semana se alinea al lunes
    ultimas = snapshot_service.get_latest_snapshot(db, plan.plan_id, semana_2 + timedelta(days=3))
    assert len(ultimas) == 3

    historial = snapshot_service.get_snapshot_history(db, plan.plan_id, 1, semana_2, "61-70")
    assert len(historial) == 1

    resumen = snapshot_service.get_inventory_summary(db, plan.plan_id)
    assert len(resumen) == 10
    assert list(resumen[week_to_date(plan.fecha_inicio, 10)]) == ["61-70", "51-60", "41-50"]
