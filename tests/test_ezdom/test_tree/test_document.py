"""Tests for the document arena and element handles."""

import pytest

from ezdom.api.parser import parse_string
from ezdom.shared.config import ParserConfig
from ezdom.shared.errors import TreeError
from ezdom.shared.result import DiagnosticSeverity
from ezdom.tree.document import ROOT_INDEX, Document, Element
from ezdom.tree.nodes import Ownership, Path, PathStep, PIPosition

LIBRARY = (
    "<library>"
    "<shelf><book>A</book><book>B</book></shelf>"
    "<shelf><book>C</book><book>D</book><book>E</book></shelf>"
    "</library>"
)


class TestDocument:
    """Tests for Document."""

    def test_new_document(self) -> None:
        document = Document("root")

        assert document.root.name == "root"
        assert document.root.node_id == ROOT_INDEX
        assert document.error == ""
        assert document.node_count == 1
        assert document.entities["amp"] == "&#38;"
        assert repr(document) == "<Document root='root' nodes=1>"

    def test_unnamed_root(self) -> None:
        document = Document()

        assert document.root.name is None
        assert document.to_xml() == ""

    def test_element_lookup(self) -> None:
        document = Document("r")
        child = document.root.add_child("c")

        assert document.element(child.node_id) == child
        with pytest.raises(TreeError, match="no element"):
            document.element(99)

    def test_record_error_truncates_to_capacity(self) -> None:
        document = Document("r", config=ParserConfig(error_capacity=20))
        entry = document.record_error("a very long message indeed", 4, "test")

        assert entry.severity is DiagnosticSeverity.ERROR
        assert document.error == "[error near line 4]:"
        assert document.diagnostics == [entry]

    def test_latest_error_wins(self) -> None:
        document = Document("r")
        document.record_error("first", 1, "test")
        document.record_error("second", 2, "test")

        assert document.error == "[error near line 2]: second"
        assert len(document.diagnostics) == 2

    def test_warnings_do_not_set_error(self) -> None:
        document = Document("r")
        document.record_warning("lossy decoding", "encoding")

        assert document.error == ""
        assert document.diagnostics[0].severity is DiagnosticSeverity.WARNING

    def test_processing_instruction_table(self) -> None:
        document = Document("r")
        document.add_processing_instruction("style", "a", PIPosition.BEFORE_ROOT)
        document.add_processing_instruction("style", "b", PIPosition.AFTER_ROOT)

        assert document.root.processing_instructions("style") == ["a", "b"]
        assert document.root.processing_instructions("none") == []

    def test_free_document(self) -> None:
        document = parse_string("<r><a/></r>")
        root = document.root
        child = root.child("a")

        root.free()

        assert document.is_freed
        assert child.is_freed
        assert document.entities == {}
        assert repr(document) == "<Document freed>"
        with pytest.raises(TreeError, match="document has been freed"):
            root.name
        with pytest.raises(TreeError):
            document.create_element("x")
        # freeing twice is harmless
        document.free()


class TestElementNavigation:
    """Tests for element queries."""

    def test_child_and_index(self) -> None:
        root = parse_string(LIBRARY).root
        shelf = root.child("shelf")

        assert shelf.child("book").text == "A"
        assert shelf.child("book").index(1).text == "B"
        assert shelf.child("book").index(2) is None
        assert root.child("missing") is None
        with pytest.raises(ValueError):
            shelf.index(-1)

    def test_get_with_steps(self) -> None:
        root = parse_string(LIBRARY).root

        assert root.get([("shelf", 1), ("book", 2)]).text == "E"
        assert root.get(["shelf", "book"]).text == "A"
        assert root.get([PathStep("shelf", 1), PathStep("book")]).text == "C"
        assert root.get(Path.parse("shelf[1]/book[1]")).text == "D"
        assert root.get("shelf[1]/book[1]").text == "D"
        assert root.get([]) == root
        assert root.get([("shelf", 2)]) is None
        assert root.get([("shelf", 0), ("book", 5)]) is None

    def test_children(self) -> None:
        root = parse_string("<r><a/><b/><a/></r>").root

        assert [child.name for child in root.children()] == ["a", "b", "a"]
        assert len(list(root.children("a"))) == 2
        assert list(root.children("z")) == []

    def test_links(self) -> None:
        root = parse_string("<r><a/><b/><a/></r>").root
        a0 = root.first_child

        assert a0.parent == root
        assert a0.ordered.name == "b"
        assert a0.sibling.name == "b"
        assert a0.next == a0.ordered.ordered
        assert a0.root == root
        assert root.parent is None
        assert root.is_root and not a0.is_root

    def test_handles_compare_by_node(self) -> None:
        document = parse_string("<r><a/></r>")
        first = document.root.child("a")
        second = document.element(first.node_id)

        assert first == second
        assert hash(first) == hash(second)
        assert first != document.root
        assert first != Element(Document("r"), first.node_id)
        assert repr(first) == "<Element 'a' #1>"

    def test_error_is_shared(self) -> None:
        document = parse_string("<r><a>")

        assert document.root.child("a").error == document.error != ""


class TestElementMutation:
    """Tests for element data changes."""

    def test_set_text(self) -> None:
        root = Document("r").root
        root.set_text("owned", Ownership.OWNED)

        assert root.text == "owned"
        assert root.text_ownership is Ownership.OWNED

    def test_set_attribute(self) -> None:
        root = Document("r").root
        root.set_attribute("a", "1").set_attribute("b", "2").set_attribute("a", "3")

        assert root.attributes == [("a", "3"), ("b", "2")]
        root.set_attribute("a", None)
        assert root.attributes == [("b", "2")]
        root.set_attribute("missing", None)
        assert root.attributes == [("b", "2")]

    def test_attribute_falls_back_to_default(self) -> None:
        root = parse_string(
            '<!DOCTYPE r [<!ATTLIST r a CDATA "def" b ID #IMPLIED>]><r b="x"/>'
        ).root

        assert root.attribute("a") == "def"
        assert root.attribute("b") == "x"
        assert root.attribute("c") is None
        assert root.attributes == [("b", "x")]

    def test_free_subtree(self) -> None:
        document = parse_string("<r><a><x/></a><b/></r>")
        root = document.root
        a = root.child("a")
        x = a.child("x")

        a.free()

        assert a.is_freed and x.is_freed
        assert [child.name for child in root.children()] == ["b"]
        assert document.node_count == 2
        assert repr(a) == f"<Element #{a.node_id} freed>"
        with pytest.raises(TreeError, match="element has been freed"):
            a.text

    def test_remove_detached_element(self) -> None:
        document = Document("r")
        orphan = document.create_element("o")
        orphan.add_child("inner")

        orphan.remove()

        assert orphan.is_freed
        assert document.node_count == 1

    def test_name_ownership(self) -> None:
        root = Document("r", root_ownership=Ownership.OWNED).root
        child = root.add_child("c", ownership=Ownership.OWNED)

        assert root.name_ownership is Ownership.OWNED
        assert child.name_ownership is Ownership.OWNED


class TestPath:
    """Tests for Path and PathStep."""

    def test_parse(self) -> None:
        path = Path.parse("a/b[2]/ c ")

        assert list(path) == [PathStep("a"), PathStep("b", 2), PathStep("c")]
        assert len(path) == 3
        assert str(path) == "a/b[2]/c"

    def test_child(self) -> None:
        assert Path().child("a").child("b", 1) == Path((PathStep("a"), PathStep("b", 1)))

    def test_invalid_steps(self) -> None:
        with pytest.raises(ValueError):
            PathStep("")
        with pytest.raises(ValueError):
            PathStep("a", -1)
        with pytest.raises(ValueError, match="invalid path step"):
            Path.parse("a[x]")
