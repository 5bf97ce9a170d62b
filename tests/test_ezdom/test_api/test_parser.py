"""Tests for the public parsing API."""

import codecs
import io
from pathlib import Path

import pytest

from ezdom.api.parser import (
    EzdomParser,
    free,
    new,
    parse,
    parse_bytes,
    parse_file,
    parse_stream,
    parse_string,
    to_xml,
)
from ezdom.shared.config import ParserConfig
from ezdom.shared.errors import AllocationError, TreeError
from ezdom.shared.result import DiagnosticSeverity
from ezdom.tree.nodes import Ownership

SAMPLE = "<r><a>1</a><b>2</b></r>"


class TestParseFunctions:
    """Tests for the module-level functions."""

    @pytest.mark.parametrize(
        "source",
        [
            SAMPLE,
            SAMPLE.encode("utf-8"),
            bytearray(SAMPLE.encode("utf-8")),
            memoryview(SAMPLE.encode("utf-8")),
            io.BytesIO(SAMPLE.encode("utf-8")),
            io.StringIO(SAMPLE),
        ],
    )
    def test_parse_dispatch(self, source) -> None:
        document = parse(source)

        assert document.error == ""
        assert document.root.child("a").text == "1"

    def test_parse_path(self, tmp_path: Path) -> None:
        path = tmp_path / "doc.xml"
        path.write_text(SAMPLE, encoding="utf-8")

        document = parse(path)

        assert document.root.child("b").text == "2"
        assert document.source_owned is True
        assert document.source == SAMPLE.encode("utf-8")

    def test_parse_unsupported_type(self) -> None:
        with pytest.raises(TypeError, match="cannot parse input of type int"):
            parse(42)  # type: ignore[arg-type]

    def test_parse_string_keeps_source(self) -> None:
        document = parse_string(SAMPLE)

        assert document.source == SAMPLE
        assert document.source_owned is False
        assert document.text == SAMPLE

    def test_parse_bytes_utf16(self) -> None:
        data = codecs.BOM_UTF16_BE + "<r>é</r>".encode("utf-16-be")
        document = parse_bytes(data)

        assert document.error == ""
        assert document.root.text == "é"
        assert document.transcoded == "<r>é</r>".encode("utf-8")
        assert document.statistics.transcoded is True

    @pytest.mark.parametrize(
        "bom,codec",
        [(codecs.BOM_UTF16_LE, "utf-16-le"), (codecs.BOM_UTF16_BE, "utf-16-be")],
    )
    def test_utf16_surrogate_pair_matches_utf8(self, bom: bytes, codec: str) -> None:
        text = '<r a="\U0001F600"><s>x\U0001F600y</s>\U00010348</r>'
        wide = parse_bytes(bom + text.encode(codec))
        narrow = parse_bytes(text.encode("utf-8"))

        assert wide.error == ""
        assert wide.root.attribute("a") == "\U0001F600"
        assert wide.root.child("s").text == "x\U0001F600y"
        assert wide.root.text == narrow.root.text == "\U00010348"
        assert wide.to_xml() == narrow.to_xml()

    def test_unpaired_utf16_surrogate_is_replaced(self) -> None:
        data = codecs.BOM_UTF16_LE + "<r>".encode("utf-16-le") + b"\x00\xd8"
        data += "</r>".encode("utf-16-le")
        document = parse_bytes(data)

        assert document.error == ""
        assert document.root.text == "\ufffd"
        assert document.to_xml().encode("utf-8") == "<r>\ufffd</r>".encode("utf-8")
        assert document.diagnostics[0].severity is DiagnosticSeverity.WARNING
        assert document.diagnostics[0].component == "encoding"

    def test_parse_bytes_ownership_flag(self) -> None:
        assert parse_bytes(b"<r/>").source_owned is False
        assert parse_bytes(b"<r/>", owned=True).source_owned is True

    def test_fallback_decoding_is_a_warning(self) -> None:
        document = parse_bytes(b"<r>caf\xe9</r>")

        assert document.error == ""
        assert document.root.text == "café"
        assert document.diagnostics[0].severity is DiagnosticSeverity.WARNING
        assert document.diagnostics[0].component == "encoding"

    def test_parse_file(self, tmp_path: Path) -> None:
        path = tmp_path / "doc.xml"
        path.write_bytes(codecs.BOM_UTF16_LE + SAMPLE.encode("utf-16-le"))

        document = parse_file(str(path))

        assert document.root.child("a").text == "1"
        assert document.transcoded == SAMPLE.encode("utf-8")

    def test_parse_file_missing(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            parse_file(tmp_path / "missing.xml")

    def test_parse_stream_text(self) -> None:
        document = parse_stream(io.StringIO("<r>x</r>"))

        assert document.root.text == "x"
        assert document.source_owned is True

    def test_malformed_input_does_not_raise(self) -> None:
        document = parse_string("<r><a></r>")

        assert document.error == "[error near line 1]: unexpected closing tag </r>"
        assert document.root.child("a") is not None

    def test_correlation_id_is_recorded(self) -> None:
        document = parse_string("<r>", correlation_id="job-7")

        assert document.config.correlation_id == "job-7"
        assert document.diagnostics[0].correlation_id == "job-7"

    def test_input_size_limit(self) -> None:
        config = ParserConfig().override(character__max_input_size_bytes=8)

        with pytest.raises(AllocationError) as exc_info:
            parse_string(SAMPLE, config=config)
        assert exc_info.value.requested == len(SAMPLE)
        with pytest.raises(AllocationError):
            parse_bytes(SAMPLE.encode("utf-8"), config=config)
        assert parse_string("<r/>", config=config).error == ""


class TestConstruction:
    """Tests for new, to_xml and free."""

    def test_build_document(self) -> None:
        root = new("inventory")
        item = root.add_child("item")
        item.set_text("bolt")
        item.set_attribute("qty", "5")
        root.add_child("item").set_text("nut & washer")

        assert to_xml(root) == (
            '<inventory><item qty="5">bolt</item><item>nut &amp; washer</item></inventory>'
        )
        assert to_xml(root.document) == to_xml(root)

    def test_new_with_ownership(self) -> None:
        root = new("r", Ownership.OWNED)

        assert root.name_ownership is Ownership.OWNED
        assert root.is_root

    def test_free(self) -> None:
        root = new("r")
        child = root.add_child("c")

        free(child)
        assert root.first_child is None

        free(root.document)
        with pytest.raises(TreeError):
            root.to_xml()


class TestEzdomParser:
    """Tests for the configured parser."""

    def test_statistics(self) -> None:
        parser = EzdomParser()
        parser.parse_string(SAMPLE)
        parser.parse_string("<broken>")

        stats = parser.statistics
        assert stats["total_parses"] == 2
        assert stats["failed_parses"] == 1
        assert stats["average_processing_time_ms"] >= 0

        parser.reset_statistics()
        assert parser.statistics["total_parses"] == 0
        assert parser.statistics["average_processing_time_ms"] == 0.0

    def test_strict_configuration(self) -> None:
        parser = EzdomParser(ParserConfig.strict())
        document = parser.parse_bytes(b"<r>caf\xe9</r>")

        assert document.root.text == "caf\ufffd"
        assert parser.statistics["correlation_id"] is None

    def test_entity_budget_from_configuration(self) -> None:
        config = ParserConfig().override(decoder__max_entity_expansions=1)
        document = EzdomParser(config).parse_string(
            '<!DOCTYPE r [<!ENTITY a "x"><!ENTITY b "&a;&a;">]><r>&b;</r>'
        )

        # one expansion of &b; leaves its references undecoded
        assert document.root.text == "&a;&a;"
