import pytest

from formdesk.forms import options


@pytest.mark.parametrize("values", [
    ["Red", "Blue"],
    ["  Red ", "", "Blue", "   "],
    ["Café", "Über"],
    [1, 2.5, "three"],
])
def test_decode_of_encode_is_trimmed_nonblank(values):
    assert options.decode(options.encode(values)) == options.trim_nonblank(values)


def test_encode_is_compact_json():
    assert options.encode(["Red", "Blue"]) == '["Red","Blue"]'


def test_empty_collapses_to_none():
    assert options.encode([]) is None
    assert options.encode(["", "   "]) is None
    assert options.encode(None) is None


@pytest.mark.parametrize("raw", [None, "", "not json", "{\"a\": 1}", "42", "[", "null"])
def test_decode_never_raises(raw):
    assert options.decode(raw) == []


def test_decode_stringifies_and_drops_blank_items():
    assert options.decode('[1, " two ", "", null, "three"]') == ["1", "two", "three"]


def test_normalize_accepts_list_or_string():
    assert options.normalize(["Red", " Blue "]) == '["Red","Blue"]'
    assert options.normalize('["Red", "Blue"]') == '["Red","Blue"]'
    assert options.normalize("garbage") is None
