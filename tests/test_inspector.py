"""
Tests for single-shot search and listing through PackageInspector.
"""
import pytest

from docskel.errors import AmbiguousMatch, NoMatch
from docskel.inspector import PackageInspector
from docskel.listing import format_list_tree
from docskel.models import OutputFormat
from docskel.search import SearchDomain, SearchOptions


@pytest.fixture
def inspector(tome) -> PackageInspector:
    return PackageInspector(tome, output_format=OutputFormat.SKELETON)


class TestSearch:
    """Search renders its hits with structural context."""

    def test_direct_match_only_collapses_containers(self, inspector):
        """Direct-match-only shows the hit inside collapsed ancestors."""
        outcome = inspector.search(SearchOptions(
            query="status", domains=SearchDomain.NAMES, expand_containers=False,
        ))

        assert [r.item_id for r in outcome.results] == ["5"]
        assert "pub fn status(&self) -> u8 {}" in outcome.text
        assert "pub struct Client {\n        // ...\n    }" in outcome.text
        assert "pub fn send" not in outcome.text

    def test_direct_match_container_hides_children(self, inspector):
        """A container hit in direct mode shows its declaration only."""
        outcome = inspector.search(SearchOptions(
            query="Client", domains=SearchDomain.NAMES, expand_containers=False,
        ))

        assert "pub struct Client {\n        pub addr: String,\n    }" in outcome.text
        assert "pub fn status" not in outcome.text
        assert "impl Client" not in outcome.text

    def test_default_mode_expands_matched_containers(self, inspector):
        """A container hit expands to its members and impls."""
        outcome = inspector.search(SearchOptions(query="Client", domains=SearchDomain.NAMES))

        assert "pub fn status(&self) -> u8 {}" in outcome.text
        assert "pub fn send(&self, msg: &str) -> usize {}" in outcome.text
        assert "impl Transport for Client" in outcome.text

    def test_default_mode_expands_ancestors_of_leaf_hit(self, inspector):
        """A leaf hit shows its type, impl blocks and module in full."""
        options = SearchOptions(query="status", domains=SearchDomain.NAMES)

        text = inspector.search(options).text

        assert "pub fn status(&self) -> u8 {}" in text
        assert "pub fn send(&self, msg: &str) -> usize {}" in text
        assert "pub trait Transport {" in text
        assert "pub addr: String" in text
        assert "//! Networking." in text

    def test_direct_mode_differs_from_default(self, inspector):
        """Direct-match-only hides everything the default mode expands."""
        default = inspector.search(SearchOptions(query="status", domains=SearchDomain.NAMES)).text
        direct = inspector.search(SearchOptions(
            query="status", domains=SearchDomain.NAMES, expand_containers=False,
        )).text

        assert default != direct
        assert "pub fn status(&self) -> u8 {}" in direct
        assert "pub fn send" not in direct
        assert "Transport" not in direct

    def test_direct_mode_collapsed_ancestors_have_no_docs(self, inspector):
        """Collapsed containers render by name only."""
        direct = inspector.search(SearchOptions(
            query="status", domains=SearchDomain.NAMES, expand_containers=False,
        )).text

        assert "Networking." not in direct
        assert "A network client." not in direct
        assert "Terminal tome." not in direct
        assert "pub mod net {" in direct

    def test_package_root_stays_collapsed(self, inspector):
        """Expansion stops below the package root."""
        text = inspector.search(SearchOptions(query="status", domains=SearchDomain.NAMES)).text

        assert "pub fn version" not in text

    def test_doc_domain(self, inspector):
        """Doc search finds items by their documentation."""
        outcome = inspector.search(SearchOptions(query="send a message", domains=SearchDomain.DOCS))

        assert [r.entry.path_string for r in outcome.results] == ["tome::net::Client::send"]

    def test_private_search(self, inspector):
        """Private search renders private hits."""
        outcome = inspector.search(SearchOptions(
            query="helper", domains=SearchDomain.NAMES, include_private=True,
        ))

        assert "pub(crate) fn helper() -> u8 {}" in outcome.text

    def test_no_results(self, inspector):
        """An empty search suggests paths and other domains."""
        with pytest.raises(NoMatch) as exc:
            inspector.search(SearchOptions(query="statsu", domains=SearchDomain.NAMES))

        assert "tome::net::Client::status" in exc.value.suggestions
        assert "--domains" in exc.value.hint

    def test_search_with_implementation(self, inspector):
        """implementation renders the hits' source bodies."""
        outcome = inspector.search(
            SearchOptions(query="connect", domains=SearchDomain.NAMES),
            implementation=True,
        )

        assert "Client { addr: addr.to_string() }" in outcome.text


class TestRender:
    """Single-shot render errors are fatal."""

    def test_unknown_target(self, inspector):
        """An unknown target raises NoMatch."""
        with pytest.raises(NoMatch):
            inspector.render("net::Nothing")

    def test_ambiguous_target(self, inspector):
        """An ambiguous target raises AmbiguousMatch."""
        with pytest.raises(AmbiguousMatch):
            inspector.render("Client::send")

    def test_from_entrypoint(self, tome_dir):
        """An inspector loads straight from a path."""
        inspector = PackageInspector.from_entrypoint(tome_dir, output_format=OutputFormat.SKELETON)

        assert "pub fn version() -> &'static str {}" in inspector.render("version")


class TestList:
    """Hierarchical listing."""

    def test_tree(self, inspector):
        """Listing nests modules and their items."""
        nodes = inspector.list()

        assert len(nodes) == 1
        root = nodes[0]
        assert root.entry.path_string == "tome"
        assert [c.entry.path_string for c in root.children] == ["tome::net", "tome::version"]
        net = root.children[0]
        assert [c.entry.path_string for c in net.children] == [
            "tome::net::Client",
            "tome::net::Transport",
            "tome::net::connect",
        ]

    def test_members_left_out(self, inspector):
        """Type members are not listed."""
        lines = format_list_tree(inspector.list())

        assert not any("send" in line for line in lines)
        assert not any("status" in line for line in lines)

    def test_format(self, inspector):
        """Lines show kind, path and location."""
        lines = format_list_tree(inspector.list())

        assert lines[0] == "package  tome  (src/lib.rs:1)"
        assert lines[1] == "  mod      tome::net  (src/net.rs:1)"

    def test_filtered_by_query(self, inspector):
        """A query restricts the listing to its hits."""
        nodes = inspector.list(SearchOptions(query="connect", domains=SearchDomain.NAMES))

        assert [n.entry.path_string for n in nodes] == ["tome::net::connect"]

    def test_to_dict(self, inspector):
        """List nodes serialize with their children."""
        data = inspector.list()[0].to_dict()

        assert data["kind"] == "package"
        assert data["children"][0]["path"] == "tome::net"
