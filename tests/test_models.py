"""
Tests for model serialization round-trips.

Verifies that spans and items can be serialized to dict and reconstructed
without data loss.
"""
import pytest

from docskel.models import ItemKind, Visibility, Span, Item


class TestSpan:
    """Tests for Span model."""

    def test_round_trip(self):
        """Span serializes and deserializes correctly."""
        original = Span(file="src/net.rs", start_line=3, end_line=5, start_column=0, end_column=1)

        restored = Span.from_dict(original.to_dict())

        assert restored == original
        assert restored.line_count == 3

    def test_from_dict_defaults_end_to_start(self):
        """A span without end_line covers a single line."""
        span = Span.from_dict({"file": "src/lib.rs", "start_line": 7})

        assert span.end_line == 7
        assert str(span) == "src/lib.rs:7"

    def test_str_shows_range(self):
        """Multi-line spans print as a range, compact form as the start."""
        span = Span(file="src/lib.rs", start_line=1, end_line=8)

        assert str(span) == "src/lib.rs:1-8"
        assert span.to_compact_string() == "src/lib.rs:1"


class TestItem:
    """Tests for Item model."""

    def test_round_trip_function(self):
        """Function item round-trips correctly."""
        original = Item(
            id="4",
            kind=ItemKind.ASSOCIATED_FUNCTION,
            name="send",
            docs="Send a message.",
            signature="pub fn send(&self) -> usize",
            span=Span(file="src/net.rs", start_line=9, end_line=11),
            parent="3",
        )

        restored = Item.from_dict("4", original.to_dict())

        assert restored == original

    def test_round_trip_reexport(self):
        """Re-export fields survive serialization."""
        original = Item(
            id="20",
            kind=ItemKind.REEXPORT,
            name="connect",
            parent="0",
            target="11",
            source="net::connect",
            glob=False,
        )

        data = original.to_dict()
        restored = Item.from_dict("20", data)

        assert data["target"] == "11"
        assert restored.target == "11"
        assert restored.source == "net::connect"

    def test_round_trip_interface_impl(self):
        """Interface implementation fields survive serialization."""
        original = Item(
            id="8",
            kind=ItemKind.IMPLEMENTATION,
            name="Transport",
            parent="1",
            children=("9",),
            for_type="2",
            interface="6",
        )

        restored = Item.from_dict("8", original.to_dict())

        assert restored.is_interface_impl
        assert restored.children == ("9",)
        assert restored.for_type == "2"

    def test_bodiless_function_keeps_flag(self):
        """A function without a body keeps has_body False."""
        item = Item(id="7", kind=ItemKind.ASSOCIATED_FUNCTION, name="send", has_body=False)

        data = item.to_dict()

        assert data["has_body"] is False
        assert Item.from_dict("7", data).has_body is False

    def test_numeric_ids_become_strings(self):
        """Ids given as JSON numbers are normalized to strings."""
        item = Item.from_dict(5, {"kind": "function", "name": "f", "parent": 1, "children": []})

        assert item.id == "5"
        assert item.parent == "1"

    def test_defaults(self):
        """Missing optional fields take their defaults."""
        item = Item.from_dict("1", {"kind": "module", "name": "net"})

        assert item.visibility is Visibility.PUBLIC
        assert item.is_public
        assert item.docs == ""
        assert item.span is None

    def test_unknown_kind_raises(self):
        """An unknown kind is rejected."""
        with pytest.raises(ValueError):
            Item.from_dict("1", {"kind": "widget", "name": "x"})

    def test_unknown_visibility_raises(self):
        """An unknown visibility is rejected."""
        with pytest.raises(ValueError):
            Item.from_dict("1", {"kind": "module", "name": "x", "visibility": "secret"})


class TestItemKind:
    """Tests for ItemKind helpers."""

    def test_every_kind_has_label(self):
        """Every kind has a display label."""
        for kind in ItemKind:
            assert kind.label

    def test_containers(self):
        """Only modules, types and implementations are containers."""
        assert ItemKind.MODULE.is_container
        assert ItemKind.RECORD.is_container
        assert ItemKind.IMPLEMENTATION.is_container
        assert not ItemKind.FUNCTION.is_container
        assert not ItemKind.REEXPORT.is_container

    def test_types(self):
        """Records and sums are types; interfaces are not."""
        assert ItemKind.RECORD.is_type
        assert ItemKind.SUM.is_type
        assert not ItemKind.INTERFACE.is_type
