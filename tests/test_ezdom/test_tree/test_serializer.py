"""Tests for XML serialization."""

import pytest

from ezdom.api.parser import new, parse_string
from ezdom.tree.document import Document, Element
from ezdom.tree.serializer import XMLSerializer


def shape(element: Element):
    """Structure, attributes, text and offsets of a subtree, for comparison."""
    return (
        element.name,
        element.attributes,
        element.text,
        element.offset,
        [shape(child) for child in element.children()],
    )


def instructions(document: Document):
    return {
        target: [(pi.content, pi.position) for pi in table]
        for target, table in document.processing_instructions.items()
    }


class TestRoundTrip:
    """Serialized output parses back to the same tree."""

    @pytest.mark.parametrize(
        "text",
        [
            '<r a="x&#10;y&#9;z" b="p\nq\tr"/>',
            "<r>He said \"hi\" and 'bye' &amp; &lt;left&gt;</r>",
            "<a><a><a>deep</a></a>mid<a/><b/><a>last</a></a>",
            "<?style sheet?><?proc one?><r><x/><?in place?></r><?after data?>",
            '<r>a<b c="1">t</b>d<e/>f</r>',
            "<r><![CDATA[<raw> & ]]>tail</r>",
            "<r>line\r\nbreak</r>",
            '<r q="&quot;it&apos;s&quot;">&#x1F600;</r>',
        ],
    )
    def test_parse_serialize_parse(self, text: str) -> None:
        first = parse_string(text)
        output = first.to_xml()
        second = parse_string(output)

        assert first.error == ""
        assert second.error == ""
        assert shape(second.root) == shape(first.root)
        assert instructions(second) == instructions(first)
        assert second.to_xml() == output

    def test_attribute_whitespace_survives(self) -> None:
        document = parse_string('<r a="x&#10;y&#9;z"/>')

        assert document.root.attribute("a") == "x\ny\tz"
        assert document.to_xml() == '<r a="x&#xA;y&#x9;z"></r>'


class TestSerializer:
    """Tests for XMLSerializer."""

    def test_round_trip(self) -> None:
        text = '<r a="1"><x>one</x>mid<y b="2"></y>end</r>'

        assert parse_string(text).to_xml() == text

    def test_empty_elements_are_expanded(self) -> None:
        assert parse_string("<r><a/></r>").to_xml() == "<r><a></a></r>"

    def test_escaping(self) -> None:
        document = parse_string('<r q="&quot;&lt;">&lt;hi&gt; &amp;</r>')

        assert document.root.text == "<hi> &"
        assert document.to_xml() == '<r q="&quot;&lt;">&lt;hi&gt; &amp;</r>'

    def test_text_interleaved_by_offset(self) -> None:
        root = new("r")
        root.set_text("abc")
        root.add_child("x", 1)
        root.add_child("y", 1)
        root.add_child("z")

        assert root.to_xml() == "<r>a<x></x><y></y>bc<z></z></r>"

    def test_offsets_beyond_text_are_clamped(self) -> None:
        root = new("r")
        root.set_text("ab")
        root.add_child("x", 10)

        assert root.to_xml() == "<r>ab<x></x></r>"

    def test_default_attributes_are_written(self) -> None:
        document = parse_string(
            '<!DOCTYPE r [<!ATTLIST r a CDATA "def" b CDATA "bee">]><r b="own"/>'
        )

        assert document.to_xml() == '<r b="own" a="def"></r>'

    def test_duplicate_attributes_written_once(self) -> None:
        assert parse_string('<r a="1" a="2"/>').to_xml() == '<r a="1"></r>'

    def test_processing_instructions_around_root(self) -> None:
        document = parse_string("<?style a?><r><?inner x?></r><?tail?>")

        assert document.to_xml() == "<?style a?>\n<r></r>\n<?inner x?>\n<?tail?>"

    def test_subtree_serialization(self) -> None:
        document = parse_string("<?pi?><r>t<a>in<b/>side</a>u</r>")
        a = document.root.child("a")

        assert a.to_xml() == "<a>in<b></b>side</a>"
        assert str(a) == a.to_xml()

    def test_nameless_root(self) -> None:
        assert XMLSerializer(Document()).serialize(0) == ""

    def test_deep_nesting(self) -> None:
        depth = 5000
        text = "<a>" * depth + "x" + "</a>" * depth

        assert parse_string(text).to_xml() == text
