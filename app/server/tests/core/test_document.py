import pytest
from core.document import (
    NodeKind,
    collection_wrapper_member,
    contains_collections,
    kind_of,
    remove_plural_suffix,
    to_snake_case,
    unwrap_document
)


class TestKindOf:

    @pytest.mark.parametrize("value,expected", [
        ({"a": 1}, NodeKind.OBJECT),
        ([1], NodeKind.COLLECTION),
        ("x", NodeKind.SCALAR),
        (1.5, NodeKind.SCALAR),
        (True, NodeKind.SCALAR),
        (None, NodeKind.SCALAR),
    ])
    def test_kind_of(self, value, expected):
        assert kind_of(value) is expected


class TestContainsCollections:

    def test_nested_collection(self):
        assert contains_collections({"a": {"b": [1]}}) is True

    def test_no_collection(self):
        assert contains_collections({"a": {"b": 1}}) is False
        assert contains_collections(3) is False

    def test_collection_itself(self):
        assert contains_collections([]) is True


class TestUnwrapDocument:

    def test_unwraps_collection(self):
        assert unwrap_document({"users": [1, 2]}) == ("users", [1, 2])

    def test_unwraps_object_containing_collection(self):
        inner = {"Profile": [{"id": 1}]}

        assert unwrap_document({"Profiles": inner}) == ("Profiles", inner)

    def test_keeps_plain_envelope(self):
        document = {"config": {"debug": True}}

        assert unwrap_document(document) == (None, document)

    def test_keeps_multi_key_object(self):
        document = {"a": [1], "b": 2}

        assert unwrap_document(document) == (None, document)


class TestNaming:

    @pytest.mark.parametrize("name,expected", [
        ("tags", "tags"),
        ("MeterReading", "meter_reading"),
        ("phoneNumbers", "phone_numbers"),
        ("userID", "user_i_d"),
        ("line items", "line_items"),
    ])
    def test_to_snake_case(self, name, expected):
        assert to_snake_case(name) == expected

    @pytest.mark.parametrize("name,expected", [
        ("items", "item"),
        ("Meters", "Meter"),
        ("is", "is"),
        ("data", "data"),
    ])
    def test_remove_plural_suffix(self, name, expected):
        assert remove_plural_suffix(name) == expected

    def test_collection_wrapper_member(self):
        assert collection_wrapper_member({"Meter": [1]}) == ("Meter", [1])
        assert collection_wrapper_member({"Meter": [1], "x": 1}) is None
        assert collection_wrapper_member({"Meter": {"a": 1}}) is None
