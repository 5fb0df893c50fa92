import pytest

from kuaagro.enums.enums import CampoEnum
from kuaagro.schemas.registro import Borrador
from kuaagro.services.form_service import FieldRecordForm, compute_derived, next_record_id, parse_count
from kuaagro.utils.errors import WriteFailure


@pytest.mark.parametrize("value", ["", "12", "12.", ".5", "12.5", "007", "."])
def test_partial_decimals_are_accepted(value):
    form = FieldRecordForm(clock_ms=lambda: 1)
    assert form.update_field("presente", value) is True
    assert form.borrador.presente == value


@pytest.mark.parametrize("value", ["12.3.4", "-1", "1e5", "abc", " 12", "12\n", "1,5", "١٢"])
def test_invalid_keystrokes_leave_draft_unchanged(value):
    form = FieldRecordForm(clock_ms=lambda: 1)
    form.update_field("cosecha", "9")
    before = form.borrador.model_copy()

    assert form.update_field("cosecha", value) is False
    assert form.borrador == before


def test_select_fields_are_stored_verbatim():
    form = FieldRecordForm(clock_ms=lambda: 1)
    assert form.update_field(CampoEnum.lote, "Lote 3") is True
    assert form.update_field("color", "Café con Negro") is True
    assert form.borrador.lote == "Lote 3"
    assert form.borrador.color == "Café con Negro"


def test_unknown_field_is_rejected():
    form = FieldRecordForm(clock_ms=lambda: 1)
    assert form.update_field("embolse", "5") is False


def test_parse_count_treats_blank_and_partial_as_zero():
    assert parse_count("") == 0
    assert parse_count(".") == 0
    assert parse_count("12.") == 12
    assert parse_count(".5") == 0.5


def test_derived_fields():
    derived = compute_derived(Borrador(presente="10", novedades="2", cosecha="9"))
    assert derived.embolse == 12
    assert derived.faltante == 3
    assert isinstance(derived.embolse, int)

    derived = compute_derived(Borrador(presente="1.5", novedades="", cosecha="4"))
    assert derived.embolse == 1.5
    assert derived.faltante == -2.5


def test_derived_fields_follow_every_change():
    form = FieldRecordForm(clock_ms=lambda: 1)
    form.update_field("presente", "10")
    assert form.derived_fields().embolse == 10
    form.update_field("novedades", "5")
    assert form.derived_fields().embolse == 15
    form.update_field("cosecha", "20")
    assert form.derived_fields().faltante == -5


def test_commit_snapshots_and_resets_counts():
    form = FieldRecordForm(clock_ms=lambda: 1_000)
    form.update_field("lote", "Lote 2")
    form.update_field("color", "Azul")
    form.update_field("presente", "10")
    form.update_field("novedades", "2")
    form.update_field("cosecha", "9")

    written = []
    registro = form.commit("A7", 11, written.append)

    assert written == [registro]
    assert registro.id == 1_000
    assert registro.week == 11
    assert registro.agricultor == "A7"
    assert registro.prematuro == ""
    assert (registro.embolse, registro.faltante) == (12, 3)

    assert form.borrador.lote == "Lote 2"
    assert form.borrador.color == "Azul"
    for campo in ("prematuro", "presente", "novedades", "cosecha"):
        assert getattr(form.borrador, campo) == ""


def test_failed_sink_keeps_draft():
    form = FieldRecordForm(clock_ms=lambda: 1_000)
    form.update_field("presente", "10")

    def failing_sink(_registro):
        raise WriteFailure("rechazado")

    with pytest.raises(WriteFailure):
        form.commit("A7", 11, failing_sink)
    assert form.borrador.presente == "10"


def test_record_ids_stay_unique_within_ledger():
    assert next_record_id([5, 6], 5) == 7
    assert next_record_id([], 5) == 5

    form = FieldRecordForm(clock_ms=lambda: 42)
    registro = form.commit("A7", 1, lambda r: None, existing_ids=[42])
    assert registro.id == 43
