"""Field type registry: every tag resolves, unknown tags degrade to text."""
import pytest

from formdesk.forms.field_types import (
    REGISTRY,
    FieldType,
    RenderCategory,
    ValidationCategory,
    has_options,
    is_known,
    lookup,
)


def test_registry_covers_every_field_type():
    assert set(REGISTRY) == {t.value for t in FieldType}
    for field_type in FieldType:
        ftype = lookup(field_type)
        assert ftype.known
        assert ftype.tag == field_type.value


def test_option_types():
    assert {t for t in REGISTRY if has_options(t)} == {"select", "multiselect"}
    assert lookup("multiselect").multi_valued
    assert not lookup("select").multi_valued


def test_categories():
    assert lookup("files").render == RenderCategory.file
    assert lookup("signature").validation == ValidationCategory.image
    assert lookup("textarea").render == RenderCategory.multi_line
    assert lookup("phone").validation == ValidationCategory.phone


def test_unknown_tag_is_permissive_text():
    ftype = lookup("rating")
    assert not ftype.known
    assert ftype.validation == ValidationCategory.text
    assert ftype.check("anything at all") is None
    assert not is_known("rating")
    assert not has_options("rating")


def test_lookup_is_case_and_space_insensitive():
    assert lookup(" Email ").tag == "email"
    assert is_known("SELECT")


@pytest.mark.parametrize("tag,value,ok", [
    ("number", "42", True),
    ("number", "-3.5", True),
    ("number", "four", False),
    ("date", "2024-02-29", True),
    ("date", "2023-02-29", False),
    ("date", "2024-01-05T10:00", False),
    ("email", "alice@example.com", True),
    ("email", "not-an-email", False),
    ("phone", "+1 (555) 123-4567", True),
    ("phone", "call me", False),
    ("signature", "data:image/png;base64,iVBORw0KGgo=", True),
    ("signature", "hello", False),
])
def test_value_rules(tag, value, ok):
    assert (lookup(tag).check(value) is None) is ok


def test_choice_rules_use_options():
    assert lookup("select").check("Red", ["Red", "Blue"]) is None
    assert lookup("select").check("Green", ["Red", "Blue"]) is not None
    assert lookup("multiselect").check('["Red"]', ["Red", "Blue"]) is None
    assert lookup("multiselect").check(["Red", "Green"], ["Red", "Blue"]) is not None
    assert lookup("multiselect").check("Red", ["Red"]) is not None
