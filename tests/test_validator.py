from agenda.services.requisicion_validator import CONFIRMED_DATE_DENIED, Mode, validate

from conftest import VALID_INPUT, requisicion

CATALOGS = {
    "proveedores": {
        "prov-1": {"id": "prov-1", "activo": True},
        "prov-old": {"id": "prov-old", "activo": False},
    },
}


def _fields(outcome):
    return {e.field for e in outcome.errors}


def test_create_with_required_fields_only_fills_optionals_with_none():
    outcome = validate(VALID_INPUT, Mode.create, "admin")
    assert outcome.ok
    for key in ("numero_oc", "fecha_confirmada", "cantidad_entregada", "comentarios"):
        assert outcome.value[key] is None
    assert outcome.value["cantidad_solicitada"] == 100.0


def test_create_reports_every_missing_field_at_once():
    outcome = validate({}, Mode.create, "admin")
    assert _fields(outcome) == {
        "fecha_recepcion", "proveedor_id", "producto_id", "presentacion_id",
        "destino_id", "estatus_id", "cantidad_solicitada", "unidad_cantidad_id",
    }
    messages = {e.field: e.message for e in outcome.errors}
    assert messages["proveedor_id"] == "Selecciona un proveedor"
    assert messages["fecha_recepcion"] == "La fecha es requerida"


def test_cantidad_solicitada_must_be_positive():
    for bad in (0, -5, "abc", True):
        outcome = validate({**VALID_INPUT, "cantidad_solicitada": bad}, Mode.create, "admin")
        assert _fields(outcome) == {"cantidad_solicitada"}


def test_empty_strings_become_none():
    data = {**VALID_INPUT, "numero_oc": "", "comentarios": "   ", "fecha_oc": ""}
    outcome = validate(data, Mode.create, "admin")
    assert outcome.ok
    assert outcome.value["numero_oc"] is None
    assert outcome.value["comentarios"] is None
    assert outcome.value["fecha_oc"] is None


def test_nan_delivered_quantity_is_stored_as_none():
    outcome = validate({"cantidad_entregada": float("nan")}, Mode.update, "admin", existing=requisicion())
    assert outcome.ok
    assert outcome.value == {"cantidad_entregada": None}


def test_delivered_quantity_cannot_be_negative_or_exceed_requested():
    existing = requisicion(cantidad_solicitada=100.0)
    assert _fields(validate({"cantidad_entregada": -1}, Mode.update, "admin", existing=existing)) == {"cantidad_entregada"}
    assert _fields(validate({"cantidad_entregada": 150}, Mode.update, "admin", existing=existing)) == {"cantidad_entregada"}
    assert validate({"cantidad_entregada": 100}, Mode.update, "admin", existing=existing).ok
    # si la misma llamada sube lo solicitado, se compara contra el nuevo valor
    assert validate({"cantidad_solicitada": 200, "cantidad_entregada": 150}, Mode.update, "admin", existing=existing).ok


def test_invalid_dates_are_rejected():
    outcome = validate({**VALID_INPUT, "fecha_recepcion": "2026-02-30", "fecha_oc": "10/03/2026"}, Mode.create, "admin")
    assert _fields(outcome) == {"fecha_recepcion", "fecha_oc"}


def test_update_only_touches_present_fields_in_order():
    outcome = validate({"comentarios": "nota", "numero_oc": "OC-7"}, Mode.update, "admin", existing=requisicion())
    assert list(outcome.value) == ["comentarios", "numero_oc"]


def test_update_cannot_clear_required_field():
    outcome = validate({"fecha_recepcion": ""}, Mode.update, "admin", existing=requisicion())
    assert _fields(outcome) == {"fecha_recepcion"}


def test_unknown_keys_are_dropped():
    outcome = validate({"id": "otro", "created_by": "x", "comentarios": "ok"}, Mode.update, "admin", existing=requisicion())
    assert outcome.value == {"comentarios": "ok"}


def test_inactive_catalog_entry_only_allowed_when_already_selected():
    data = {**VALID_INPUT, "proveedor_id": "prov-old"}
    assert _fields(validate(data, Mode.create, "admin", catalogs=CATALOGS)) == {"proveedor_id"}

    already = requisicion(proveedor_id="prov-old")
    assert validate({"proveedor_id": "prov-old"}, Mode.update, "admin", catalogs=CATALOGS, existing=already).ok

    outcome = validate({"proveedor_id": "prov-nope"}, Mode.update, "admin", catalogs=CATALOGS, existing=already)
    assert outcome.errors[0].message == "No existe en el catálogo"


def test_confirmed_date_change_requires_capability():
    existing = requisicion(fecha_confirmada=None)
    payload = {"comentarios": "ok", "fecha_confirmada": "2026-03-12"}

    assert validate(payload, Mode.update, "coordinadora", existing=existing).ok

    outcome = validate(payload, Mode.update, "cedis", existing=existing)
    assert not outcome.ok
    assert outcome.value is None
    assert [(e.field, e.message) for e in outcome.errors] == [("fecha_confirmada", CONFIRMED_DATE_DENIED)]


def test_confirmed_date_unchanged_is_not_a_change():
    existing = requisicion(fecha_confirmada="2026-03-12")
    assert validate({"fecha_confirmada": "2026-03-12"}, Mode.update, "laboratorio", existing=existing).ok
    assert not validate({"fecha_confirmada": None}, Mode.update, "laboratorio", existing=existing).ok


def test_non_mapping_payload():
    outcome = validate(["x"], Mode.create, "admin")
    assert not outcome.ok


def test_lowering_requested_below_stored_delivered_is_rejected():
    """Bajar lo solicitado por debajo de lo ya entregado tampoco se permite."""
    existing = requisicion(cantidad_solicitada=100.0, cantidad_entregada=60.0)
    outcome = validate({"cantidad_solicitada": 10}, Mode.update, "admin", existing=existing)
    assert [(e.field, e.message) for e in outcome.errors] == [
        ("cantidad_solicitada", "No puede ser menor que la cantidad entregada"),
    ]
    assert validate({"cantidad_solicitada": 60}, Mode.update, "admin", existing=existing).ok
    assert validate({"cantidad_solicitada": 10, "cantidad_entregada": None}, Mode.update, "admin",
                    existing=existing).ok


def test_create_checks_delivered_against_requested():
    outcome = validate({**VALID_INPUT, "cantidad_entregada": 101}, Mode.create, "admin")
    assert _fields(outcome) == {"cantidad_entregada"}
