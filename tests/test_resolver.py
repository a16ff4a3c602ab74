"""
Tests for path resolution: the strategy chain, ranking and suggestions.
"""
import pytest

from docskel.document import DocumentModel
from docskel.errors import AmbiguousMatch, NoMatch
from docskel.resolver import (
    ExactPathStrategy,
    PathResolver,
    TargetSpec,
    normalize_qualified_form,
)
from docskel.search import SearchIndex

from conftest import model_document, span, tome_items


def resolver_for(package, include_private=False) -> PathResolver:
    index = SearchIndex(package.model, include_private=include_private)
    return PathResolver(index, package_root=package.root)


def resolver_from_items(items, root_dir) -> PathResolver:
    model = DocumentModel.from_dict(model_document(items))
    return PathResolver(SearchIndex(model), package_root=root_dir)


class TestTargetSpec:
    """Parsing of path specs."""

    def test_plain_path(self):
        """A bare item path has no entrypoint."""
        spec = TargetSpec.parse("net::Client")

        assert spec.entrypoint is None
        assert spec.segments == ["net", "Client"]

    def test_package_prefix(self):
        """A leading directory is the package entrypoint."""
        spec = TargetSpec.parse("./crates/tome::net::Client")

        assert spec.entrypoint == "./crates/tome"
        assert spec.item_path == "net::Client"

    def test_json_prefix(self):
        """A model file may prefix the item path."""
        spec = TargetSpec.parse("model.json::version")

        assert spec.entrypoint == "model.json"
        assert spec.item_path == "version"

    def test_package_only(self):
        """A path with no item part names the package."""
        spec = TargetSpec.parse("/abs/pkg")

        assert spec.entrypoint == "/abs/pkg"
        assert spec.item_path == ""

    def test_str_round_trip(self):
        """A parsed spec prints as it was written."""
        assert str(TargetSpec.parse("./pkg::net::Client")) == "./pkg::net::Client"

    def test_qualified_form(self):
        """Qualified forms normalize to type then interface segments."""
        assert normalize_qualified_form("<Client as Transport>::send") == "Client::Transport::send"
        assert normalize_qualified_form("<net::Client as io::Transport>::send") == "net::Client::Transport::send"
        assert TargetSpec.parse("<Client as Transport>::send").segments == ["Client", "Transport", "send"]


class TestStrategies:
    """Each strategy of the chain."""

    def test_exact_path(self, tome):
        """The full path resolves exactly."""
        resolution = resolver_for(tome).resolve("tome::net::Client")

        assert resolution.item_id == "2"
        assert resolution.strategy == "exact"

    def test_prefix_substitution(self, tome):
        """A package name that differs from the root name is replaced."""
        resolution = resolver_for(tome).resolve("tome_term::version")

        assert resolution.item_id == "40"
        assert resolution.strategy == "package-prefix"

    def test_crate_prefix(self, tome):
        """The crate keyword stands for the root."""
        assert resolver_for(tome).resolve("crate::version").item_id == "40"

    def test_prefix_prepended(self, tome):
        """A path missing the root name still resolves."""
        resolution = resolver_for(tome).resolve("net::connect")

        assert resolution.item_id == "11"
        assert resolution.canonical_path == "tome::net::connect"

    def test_suffix(self, tome):
        """A trailing path fragment resolves by suffix."""
        resolution = resolver_for(tome).resolve("Client::status")

        assert resolution.item_id == "5"
        assert resolution.strategy == "suffix"

    def test_reexport_alias(self, tome):
        """The alias path resolves to the re-exported item."""
        assert resolver_for(tome).resolve("tome::connect").item_id == "11"

    def test_custom_chain(self, tome):
        """A resolver uses only the strategies it is given."""
        index = SearchIndex(tome.model)
        resolver = PathResolver(index, package_root=tome.root, strategies=[ExactPathStrategy()])

        with pytest.raises(NoMatch):
            resolver.resolve("Client::status")

    def test_private_hidden(self, tome):
        """Private items resolve only with include_private."""
        with pytest.raises(NoMatch):
            resolver_for(tome).resolve("internal::helper")

        assert resolver_for(tome, include_private=True).resolve("internal::helper").item_id == "31"


class TestMemberDisambiguation:
    """Inherent and interface members of the same name."""

    def test_type_member_is_ambiguous(self, tome):
        """Inherent and interface members of one name are ambiguous."""
        with pytest.raises(AmbiguousMatch) as exc:
            resolver_for(tome).resolve("Client::send")

        candidates = exc.value.candidates
        assert "tome::net::Client::send" in candidates
        assert "<tome::net::Client as Transport>::send" in candidates

    def test_full_path_is_inherent(self, tome):
        """The full type path picks the inherent member."""
        assert resolver_for(tome).resolve("tome::net::Client::send").item_id == "4"

    def test_qualified_form_is_interface_member(self, tome):
        """The qualified form picks the interface member."""
        assert resolver_for(tome).resolve("<Client as Transport>::send").item_id == "9"

    def test_interface_path(self, tome):
        """Type, interface and member segments pick the interface member."""
        assert resolver_for(tome).resolve("Client::Transport::send").item_id == "9"

    def test_disambiguated_specs_resolve(self, tome):
        """Every candidate listed by the error resolves to exactly one item."""
        resolver = resolver_for(tome)
        with pytest.raises(AmbiguousMatch) as exc:
            resolver.resolve("Client::send")

        resolved = {resolver.resolve(c).item_id for c in exc.value.candidates}

        assert resolved == {"4", "9"}


class TestRanking:
    """Tie-breaking between candidates."""

    def test_local_preferred_over_external(self, tmp_path):
        """Items in the package beat external ones."""
        items = tome_items()
        items["0"]["children"].append("60")
        items["60"] = {
            "kind": "module", "name": "vendored", "parent": "0", "signature": "pub mod vendored",
            "span": span("/registry/dep/src/lib.rs", 1, 10), "children": ["61"],
        }
        items["61"] = {
            "kind": "function", "name": "status", "parent": "60",
            "signature": "pub fn status()", "span": span("/registry/dep/src/lib.rs", 2, 2),
        }
        resolver = resolver_from_items(items, tmp_path / "tome")

        assert resolver.resolve("status").item_id == "5"

    def test_external_tie_is_ambiguous(self, tmp_path):
        """Equal external candidates are ambiguous."""
        items = tome_items()
        items["0"]["children"] += ["60", "70"]
        for module_id, fn_id, name in (("60", "61", "left"), ("70", "71", "right")):
            items[module_id] = {
                "kind": "module", "name": name, "parent": "0",
                "span": span(f"/registry/{name}/src/lib.rs", 1, 3), "children": [fn_id],
            }
            items[fn_id] = {
                "kind": "function", "name": "shared", "parent": module_id,
                "span": span(f"/registry/{name}/src/lib.rs", 2, 2),
            }
        resolver = resolver_from_items(items, tmp_path / "tome")

        with pytest.raises(AmbiguousMatch) as exc:
            resolver.resolve("shared")

        assert sorted(exc.value.candidates) == ["tome::left::shared", "tome::right::shared"]

    def test_local_tie_picks_first_path(self, tmp_path):
        """Equal local candidates resolve to the first path."""
        items = tome_items()
        items["0"]["children"] += ["60", "70"]
        for module_id, fn_id, name in (("60", "61", "beta"), ("70", "71", "alpha")):
            items[module_id] = {
                "kind": "module", "name": name, "parent": "0",
                "span": span(f"src/{name}.rs", 1, 3), "children": [fn_id],
            }
            items[fn_id] = {
                "kind": "function", "name": "shared", "parent": module_id,
                "span": span(f"src/{name}.rs", 2, 2),
            }
        resolver = resolver_from_items(items, tmp_path / "tome")

        assert resolver.resolve("shared").canonical_path == "tome::alpha::shared"

    def test_kind_rank_prefers_items_over_modules(self, tmp_path):
        """An item beats a module with the same path."""
        items = tome_items()
        items["40"]["name"] = "net"
        items["40"]["signature"] = "pub fn net()"
        items["1"]["name"] = "net"
        resolver = resolver_from_items(items, tmp_path / "tome")

        # Both tome::net (module) and tome::net (function) match exactly
        assert resolver.resolve("tome::net").item_id == "40"


class TestIdempotency:
    """Resolving a canonical path returns the same item."""

    @pytest.mark.parametrize("spec", [
        "Client",
        "Client::status",
        "net::connect",
        "<Client as Transport>::send",
        "Transport",
        "version",
    ])
    def test_canonical_path_round_trip(self, tome, spec):
        """The disambiguated spec resolves to the same item."""
        resolver = resolver_for(tome)
        first = resolver.resolve(spec)

        again = resolver.resolve(resolver.disambiguated_spec(first.entry))

        assert again.item_id == first.item_id


class TestSuggestions:
    """NoMatch carries suggestions and a next command."""

    def test_suggestions_by_name(self, tome):
        """Items sharing the last segment are suggested first."""
        with pytest.raises(NoMatch) as exc:
            resolver_for(tome).resolve("net::Missing::status")

        assert exc.value.suggestions[0] == "tome::net::Client::status"
        assert "Did you mean" in str(exc.value)
        assert exc.value.hint.startswith("Try: docskel render")

    def test_fuzzy_suggestions(self, tome):
        """Misspelled names get close suggestions."""
        with pytest.raises(NoMatch) as exc:
            resolver_for(tome).resolve("Clinet")

        assert "tome::net::Client" in exc.value.suggestions

    def test_suggestion_limit(self, tome):
        """At most five suggestions are offered."""
        with pytest.raises(NoMatch) as exc:
            resolver_for(tome).resolve("nothing::s")

        assert len(exc.value.suggestions) <= 5

    def test_attempted_strategies_listed(self, tome):
        """The error lists every strategy tried."""
        with pytest.raises(NoMatch) as exc:
            resolver_for(tome).resolve("zzz")

        assert exc.value.attempted == ["exact", "package-prefix", "suffix"]
        assert "search" in exc.value.hint

    def test_empty_spec(self, tome):
        """An empty spec matches nothing."""
        with pytest.raises(NoMatch):
            resolver_for(tome).resolve("")
