"""Tests for tree building from source text."""

import pytest

from ezdom.shared.config import ParserConfig
from ezdom.shared.result import DiagnosticSeverity
from ezdom.tree.builder import XMLTreeBuilder, line_of
from ezdom.tree.document import Document
from ezdom.tree.nodes import Ownership, PIPosition


@pytest.fixture
def builder() -> XMLTreeBuilder:
    return XMLTreeBuilder()


class TestWellFormedDocuments:
    """Tests for documents that build without errors."""

    def test_children_in_order(self, builder: XMLTreeBuilder) -> None:
        document = builder.build("<r><a>1</a><b>2</b></r>")
        root = document.root

        assert document.error == ""
        assert root.name == "r"
        assert [child.name for child in root.children()] == ["a", "b"]
        assert root.child("a").text == "1"
        assert root.child("b").text == "2"

    def test_self_closed_root(self, builder: XMLTreeBuilder) -> None:
        root = builder.build('<r x="1"/>').root

        assert root.name == "r"
        assert root.attributes == [("x", "1")]
        assert root.text == ""
        assert root.first_child is None

    def test_text_and_offsets(self, builder: XMLTreeBuilder) -> None:
        root = builder.build("<r>ab<c/>de<c/>f</r>").root
        first, second = root.children("c")

        assert root.text == "abdef"
        assert first.offset == 2
        assert second.offset == 4

    def test_references_in_text(self, builder: XMLTreeBuilder) -> None:
        document = builder.build("<r>&lt;hi&gt;</r>")

        assert document.root.text == "<hi>"
        assert document.to_xml() == "<r>&lt;hi&gt;</r>"

    def test_cdata_is_literal(self, builder: XMLTreeBuilder) -> None:
        root = builder.build("<r>a<![CDATA[<&amp;>]]>b</r>").root

        assert root.text == "a<&amp;>b"

    def test_line_endings_normalized(self, builder: XMLTreeBuilder) -> None:
        root = builder.build("<r>a\r\nb\rc</r>").root

        assert root.text == "a\nb\nc"

    def test_comments_and_outside_text_are_ignored(self, builder: XMLTreeBuilder) -> None:
        document = builder.build("lead<r>a<!-- note -->b</r>tail")

        assert document.error == ""
        assert document.root.text == "ab"

    def test_text_ownership(self, builder: XMLTreeBuilder) -> None:
        root = builder.build("<r><a>plain</a><b>x&amp;y</b><c>1<d/>2</c></r>").root

        assert root.child("a").text_ownership is Ownership.BORROWED
        assert root.child("b").text_ownership is Ownership.OWNED
        assert root.child("c").text_ownership is Ownership.OWNED

    def test_attribute_decoding(self, builder: XMLTreeBuilder) -> None:
        root = builder.build('<r a=" x \n y " b="&lt;&#65;"/>').root

        assert root.attribute("a") == "x y"
        assert root.attribute("b") == "<A"

    def test_undeclared_attributes_kept_when_configured(self) -> None:
        config = ParserConfig().override(decoder__normalize_undeclared_attributes=False)
        text = (
            '<!DOCTYPE r [<!ATTLIST r t NMTOKEN #IMPLIED>]>'
            '<r t=" a  b " u=" a \tb "/>'
        )
        root = XMLTreeBuilder(config).build(text).root

        assert root.attribute("t") == "a b"
        assert root.attribute("u") == " a  b "

    def test_doctype_entities_and_defaults(self, builder: XMLTreeBuilder) -> None:
        document = builder.build(
            '<!DOCTYPE r [<!ENTITY x "hello"><!ATTLIST r a CDATA "def">]><r>&x;</r>'
        )
        root = document.root

        assert document.error == ""
        assert root.text == "hello"
        assert root.attributes == []
        assert root.attribute("a") == "def"
        assert document.to_xml() == '<r a="def">hello</r>'

    def test_processing_instructions(self, builder: XMLTreeBuilder) -> None:
        document = builder.build("<?a one?><?a two?><r><?b?></r><?c x  y?>")
        table = document.processing_instructions

        assert [pi.content for pi in table["a"]] == ["one", "two"]
        assert table["a"][0].position is PIPosition.BEFORE_ROOT
        assert table["b"][0].position is PIPosition.AFTER_ROOT
        assert table["b"][0].content == ""
        assert table["c"][0].content == "x  y"
        assert document.statistics.processing_instructions == 4

    def test_xml_declaration_is_not_recorded(self, builder: XMLTreeBuilder) -> None:
        document = builder.build('<?xml version="1.0"?><r/>')

        assert document.processing_instructions == {}
        assert document.standalone is False

    def test_standalone_enables_declarations_after_parameter_reference(
        self, builder: XMLTreeBuilder
    ) -> None:
        body = '<!DOCTYPE r [%ext; <!ENTITY x "1">]><r>&x;</r>'
        standalone = builder.build('<?xml version="1.0" standalone="yes"?>' + body)
        dependent = builder.build('<?xml version="1.0"?>' + body)

        assert standalone.standalone is True
        assert standalone.root.text == "1"
        assert dependent.root.text == "&x;"

    def test_statistics(self, builder: XMLTreeBuilder) -> None:
        text = '<!DOCTYPE r [<!ENTITY e "v">]><r a="1"><b c="2" d="3"/></r>'
        statistics = builder.build(text).statistics

        assert statistics.elements == 2
        assert statistics.attributes == 3
        assert statistics.entities_declared == 1
        assert statistics.characters_processed == len(text)
        assert statistics.processing_time_ms >= 0

    def test_builder_is_reusable(self, builder: XMLTreeBuilder) -> None:
        first = builder.build("<a/>")
        second = builder.build("<b/>")

        assert first.root.name == "a"
        assert second.root.name == "b"

    def test_fills_given_document(self, builder: XMLTreeBuilder) -> None:
        document = Document()
        result = builder.build("<r/>", document)

        assert result is document
        assert document.text == "<r/>"


class TestStructuralErrors:
    """Tests for documents whose building stops early."""

    @pytest.mark.parametrize(
        "text,error",
        [
            ("", "[error near line 1]: root tag missing"),
            ("just text", "[error near line 1]: root tag missing"),
            ("<!-- only -->", "[error near line 1]: root tag missing"),
            ("<r>", "[error near line 1]: unclosed tag <r>"),
            ("<r><a></r>", "[error near line 1]: unexpected closing tag </r>"),
            ("</r>", "[error near line 1]: unexpected closing tag </r>"),
            ("<r/><s/>", "[error near line 1]: markup outside of root element"),
            ("<r>\n<a>\n</b></r>", "[error near line 3]: unexpected closing tag </b>"),
            ("<r>\n\n<a x='1></r>", "[error near line 3]: missing '"),
        ],
    )
    def test_error_messages(self, builder: XMLTreeBuilder, text: str, error: str) -> None:
        document = builder.build(text)

        assert document.error == error
        assert document.diagnostics[-1].severity is DiagnosticSeverity.FATAL

    def test_partial_tree_is_kept(self, builder: XMLTreeBuilder) -> None:
        document = builder.build("<r>a<b>in</b>c<d>open<e/>")
        root = document.root

        assert "unclosed tag <d>" in document.error
        assert root.text == "ac"
        assert root.child("b").text == "in"
        assert root.child("d").text == "open"
        assert root.child("d").child("e") is not None

    def test_declaration_errors_do_not_stop_parsing(self, builder: XMLTreeBuilder) -> None:
        document = builder.build('<!DOCTYPE r [\n<!ENTITY a "&a;">]><r>ok</r>')

        assert document.error == "[error near line 2]: circular entity declaration &a"
        assert document.root.text == "ok"
        entry = document.diagnostics[0]
        assert entry.severity is DiagnosticSeverity.ERROR
        assert entry.component == "dtd"

    def test_error_capacity(self) -> None:
        builder = XMLTreeBuilder(ParserConfig(error_capacity=16))
        document = builder.build("<r><a></r>")

        assert document.error == "[error near line"
        assert document.diagnostics[0].message == "unexpected closing tag </r>"


class TestLineOf:
    """Tests for line_of."""

    def test_line_numbers(self) -> None:
        text = "a\nb\nc"

        assert line_of(text, 0) == 1
        assert line_of(text, 2) == 2
        assert line_of(text, 4) == 3
