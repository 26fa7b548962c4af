import asyncio

import pytest

from formdesk.forms.definition import DOWN, MISSING_OPTIONS, UP
from formdesk.forms.editor import FieldEditState, FormEditor
from formdesk.forms.exceptions import FormValidationError


def test_field_state_transitions():
    editor = FormEditor("Survey")
    key = editor.add_field()
    assert editor.state(key) == FieldEditState.type_unset

    editor.set_field_type(key, "text")
    assert editor.state(key) == FieldEditState.type_set_no_options

    editor.set_field_type(key, "select")
    assert editor.state(key) == FieldEditState.type_set_options_invalid
    assert editor.options(key) == [""]

    editor.set_option(key, 0, "Red")
    assert editor.state(key) == FieldEditState.type_set_options_valid

    editor.remove_option(key, 0)
    assert editor.state(key) == FieldEditState.type_set_options_invalid
    assert editor.errors[key] == MISSING_OPTIONS

    editor.add_option(key, "Blue")
    assert editor.state(key) == FieldEditState.type_set_options_valid
    assert key not in editor.errors

    editor.set_field_type(key, "number")
    assert editor.state(key) == FieldEditState.type_set_no_options
    assert editor.options(key) == []


def test_options_rejected_for_plain_types():
    editor = FormEditor("Survey")
    key = editor.add_field("text", "Name")
    with pytest.raises(ValueError):
        editor.add_option(key, "x")


def test_removing_a_field_keeps_options_with_their_fields():
    editor = FormEditor("Survey")
    a = editor.add_field("select", "A")
    editor.set_option(a, 0, "optA")
    b = editor.add_field("text", "B")
    c = editor.add_field("select", "C")
    editor.set_option(c, 0, "optC")
    assert editor.options_by_position() == {0: ["optA"], 2: ["optC"]}

    editor.remove_field(b)
    assert editor.options_by_position() == {0: ["optA"], 1: ["optC"]}


def test_errors_follow_moved_fields():
    editor = FormEditor("Survey")
    a = editor.add_field("text", "A")
    b = editor.add_field("select", "B")
    with pytest.raises(FormValidationError):
        editor.build_payload()
    assert editor.errors_by_position() == {1: MISSING_OPTIONS}

    assert editor.move_field(b, UP)
    assert editor.errors_by_position() == {0: MISSING_OPTIONS}
    assert not editor.move_field(b, UP)
    assert editor.keys == [b, a]

    assert editor.move_field(b, DOWN)
    assert editor.keys == [a, b]


def test_set_label_derives_name():
    editor = FormEditor("Survey")
    key = editor.add_field("text")
    editor.set_label(key, "Your E-mail")
    assert editor.field(key).name == "your_e_mail"


@pytest.mark.anyio
async def test_submit_is_blocked_until_options_are_valid():
    editor = FormEditor("Survey")
    key = editor.add_field("select", "Color")
    saved = []

    with pytest.raises(FormValidationError) as exc:
        await editor.submit(saved.append)
    assert exc.value.message == MISSING_OPTIONS
    assert exc.value.field_errors == {key: MISSING_OPTIONS}
    assert saved == []
    assert not editor.saved

    editor.set_option(key, 0, "Red")
    editor.add_option(key, "Blue")

    async def save(payload):
        saved.append(payload)
        return {"id": "form-1", **payload}

    await editor.submit(save)
    assert editor.saved
    assert editor.form_id == "form-1"
    field = saved[0]["fields"][0]
    assert field["options"] == '["Red","Blue"]'
    assert field["name"] == "color"
    assert "id" not in field

    with pytest.raises(RuntimeError):
        editor.add_field("text", "Late")


@pytest.mark.anyio
async def test_failed_save_keeps_drafts():
    editor = FormEditor("Survey")
    key = editor.add_field("text", "Name")

    async def save(payload):
        raise ConnectionError("offline")

    with pytest.raises(ConnectionError):
        await editor.submit(save)
    assert not editor.saved
    assert editor.field(key).label == "Name"


@pytest.mark.anyio
async def test_overlapping_submits_save_once():
    editor = FormEditor("Survey")
    editor.add_field("text", "Name")
    calls = []

    async def save(payload):
        calls.append(payload)
        await asyncio.sleep(0.01)
        return {"id": f"form-{len(calls)}"}

    first, second = await asyncio.gather(editor.submit(save), editor.submit(save), return_exceptions=True)
    assert first == {"id": "form-1"}
    assert isinstance(second, RuntimeError)
    assert len(calls) == 1
    assert editor.form_id == "form-1"
    assert not editor.saving


def test_blank_title_is_reported():
    editor = FormEditor("  ")
    editor.add_field("text", "Name")
    with pytest.raises(FormValidationError) as exc:
        editor.build_payload()
    assert "title" in exc.value.field_errors


def test_from_form_keeps_persisted_ids():
    editor = FormEditor.from_form({
        "id": "form-1",
        "title": "Survey",
        "fields": [
            {"id": "f2", "field_type": "select", "label": "Color", "name": "color",
             "order": 1, "options": '["Red"]'},
            {"id": "f1", "field_type": "text", "label": "Name", "name": "name", "order": 0},
        ],
    })
    assert editor.keys == ["f1", "f2"]
    assert editor.options("f2") == ["Red"]

    new_key = editor.add_field("number", "Age")
    payload = editor.build_payload()
    assert [f.get("id") for f in payload["fields"]] == ["f1", "f2", None]
    assert new_key not in [f.get("id") for f in payload["fields"]]
