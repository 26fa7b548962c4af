import pytest

from formdesk.forms.definition import (
    DOWN,
    MISSING_OPTIONS,
    UP,
    FieldDefinition,
    apply_update,
    derive_field_name,
    normalize_form,
    reorder,
)
from formdesk.forms.exceptions import FormValidationError


@pytest.mark.parametrize("label,expected", [
    ("Full Name", "full_name"),
    ("  E-mail -- Address ", "e_mail_address"),
    ("What's your age?", "whats_your_age"),
    ("__Already_Snake__", "alreadysnake"),
    ("???", ""),
])
def test_derive_field_name(label, expected):
    assert derive_field_name(label) == expected


def test_select_without_options_is_rejected():
    with pytest.raises(FormValidationError) as exc:
        normalize_form("Survey", None, [{"field_type": "select", "label": "Color"}])
    assert "option" in exc.value.field_errors["0"]
    assert exc.value.field_errors["0"] == MISSING_OPTIONS


def test_select_with_options_is_normalized():
    form = normalize_form("Survey", None, [
        {"field_type": "select", "label": "Color", "options": ["Red", "Blue"]},
    ])
    field = form.fields[0]
    assert field.options == '["Red","Blue"]'
    assert field.name == "color"
    assert field.order == 0


def test_non_option_types_drop_options():
    form = normalize_form("Survey", None, [
        {"field_type": "text", "label": "Name", "options": '["x"]'},
    ])
    assert form.fields[0].options is None


def test_errors_are_collected_together():
    with pytest.raises(FormValidationError) as exc:
        normalize_form("  ", None, [
            {"field_type": "text", "label": "Ok"},
            {"field_type": "", "label": "No type"},
            {"field_type": "rating", "label": "Stars"},
            {"field_type": "text", "label": "  "},
        ])
    errors = exc.value.field_errors
    assert set(errors) == {"title", "1", "2", "3"}
    assert "Unknown field type" in errors["2"]


def test_names_are_unique_in_display_order():
    form = normalize_form("Survey", None, [
        {"field_type": "text", "label": "Name"},
        {"field_type": "text", "label": "name!"},
        {"field_type": "text", "label": "NAME"},
        {"field_type": "text", "label": "???"},
    ])
    assert [f.name for f in form.fields] == ["name", "name_2", "name_3", "field_4"]


def test_orders_sort_and_duplicates_are_renumbered():
    form = normalize_form("Survey", None, [
        {"field_type": "text", "label": "B", "order": 5},
        {"field_type": "text", "label": "A", "order": 1},
        {"field_type": "text", "label": "C", "order": 5},
    ])
    assert [f.label for f in form.fields] == ["A", "B", "C"]
    assert [f.order for f in form.fields] == [0, 1, 2]


def _fields():
    return [
        FieldDefinition(id="a", field_type="text", label="A", name="a", order=0),
        FieldDefinition(id="b", field_type="text", label="B", name="b", order=1),
        FieldDefinition(id="c", field_type="text", label="C", name="c", order=2),
    ]


def test_reorder_round_trip():
    moved = reorder(_fields(), "b", UP)
    assert [f.id for f in moved] == ["b", "a", "c"]
    assert [f.order for f in moved] == [0, 1, 2]

    back = reorder(moved, "b", DOWN)
    assert [f.id for f in back] == ["a", "b", "c"]


def test_reorder_is_noop_at_boundaries_and_for_unknown_ids():
    assert [f.id for f in reorder(_fields(), "a", UP)] == ["a", "b", "c"]
    assert [f.id for f in reorder(_fields(), "c", DOWN)] == ["a", "b", "c"]
    assert [f.id for f in reorder(_fields(), "zzz", UP)] == ["a", "b", "c"]


def test_reorder_rejects_unknown_direction():
    with pytest.raises(ValueError):
        reorder(_fields(), "a", "sideways")


def test_apply_update_keeps_known_ids_only():
    current = normalize_form("Survey", None, [
        {"id": "a", "field_type": "text", "label": "A"},
        {"id": "b", "field_type": "text", "label": "B"},
    ])
    updated = apply_update(current, title="Renamed", fields=[
        {"id": "b", "field_type": "text", "label": "B2"},
        {"id": "foreign", "field_type": "number", "label": "Age"},
    ])
    assert updated.title == "Renamed"
    assert [f.id for f in updated.fields] == ["b", None]
    assert updated.fields[0].label == "B2"


def test_apply_update_repeated_id_keeps_first_only():
    current = normalize_form("Survey", None, [{"id": "a", "field_type": "text", "label": "A"}])
    updated = apply_update(current, fields=[
        {"id": "a", "field_type": "text", "label": "First"},
        {"id": "a", "field_type": "text", "label": "Second"},
    ])
    assert [f.id for f in updated.fields] == ["a", None]
    assert [f.label for f in updated.fields] == ["First", "Second"]


def test_apply_update_without_fields_keeps_them():
    current = normalize_form("Survey", "desc", [{"id": "a", "field_type": "text", "label": "A"}])
    updated = apply_update(current, description="new")
    assert updated.description == "new"
    assert [f.id for f in updated.fields] == ["a"]
