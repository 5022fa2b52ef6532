"""
Tests for the streaming XML parser.
"""

from __future__ import annotations

from pathlib import Path

import pytest
from lxml import etree

from src.registry_sync.errors import ParseError
from src.registry_sync.parser import element_to_value, iter_records, parse_batches

from registry_samples import fop_subject, xml_document


class TestElementToValue:
    """Tests for converting elements to RawRecords."""

    def test_leaf_becomes_stripped_text(self):
        assert element_to_value(etree.fromstring("<NAME>  ТОВ  </NAME>")) == "ТОВ"

    def test_blank_leaf_becomes_none(self):
        assert element_to_value(etree.fromstring("<NAME>   </NAME>")) is None
        assert element_to_value(etree.fromstring("<NAME/>")) is None

    def test_repeated_children_become_list(self):
        elem = etree.fromstring(
            "<FOUNDERS><FOUNDER>A</FOUNDER><FOUNDER>B</FOUNDER><FOUNDER>C</FOUNDER></FOUNDERS>"
        )
        assert element_to_value(elem) == {"FOUNDER": ["A", "B", "C"]}

    def test_single_child_stays_scalar(self):
        elem = etree.fromstring("<FOUNDERS><FOUNDER>A</FOUNDER></FOUNDERS>")
        assert element_to_value(elem) == {"FOUNDER": "A"}

    def test_comments_are_ignored(self):
        elem = etree.fromstring("<SUBJECT><!-- note --><RECORD>1</RECORD></SUBJECT>")
        assert element_to_value(elem) == {"RECORD": "1"}


class TestIterRecords:
    """Tests for iter_records."""

    def test_yields_one_mapping_per_subject(self, uo_xml_path: Path):
        records = list(iter_records(uo_xml_path))

        assert [r["RECORD"] for r in records] == ["1001", "1002", "1003"]
        assert records[0]["FOUNDERS"]["FOUNDER"] == [
            "ІВАНЕНКО ІВАН ІВАНОВИЧ",
            "ПЕТРЕНКО ПЕТРО ПЕТРОВИЧ",
        ]
        assert len(records[0]["BRANCHES"]["BRANCH"]) == 2

    def test_empty_document_yields_nothing(self, tmp_path: Path):
        path = tmp_path / "empty.xml"
        path.write_text(xml_document(), encoding="utf-8")

        assert list(iter_records(path)) == []

    def test_malformed_xml_raises_parse_error(self, tmp_path: Path):
        path = tmp_path / "broken.xml"
        path.write_text(
            '<?xml version="1.0"?><DATA>' + fop_subject("1") + "<SUBJECT><RECORD>2</RECO",
            encoding="utf-8",
        )

        with pytest.raises(ParseError) as exc_info:
            list(iter_records(path))

        assert exc_info.value.path == path
        assert "broken.xml" in str(exc_info.value)


class TestParseBatches:
    """Tests for batched parsing."""

    @pytest.fixture
    def five_records(self, tmp_path: Path) -> Path:
        path = tmp_path / "FOP_FULL_out.xml"
        path.write_text(xml_document(*(fop_subject(str(i)) for i in range(1, 6))), encoding="utf-8")
        return path

    @pytest.mark.asyncio
    async def test_batches_with_partial_tail(self, five_records: Path):
        """Full batches first, then the remainder."""
        sizes = []

        async def on_batch(batch):
            sizes.append(len(batch))

        count = await parse_batches(five_records, 2, on_batch)

        assert count == 5
        assert sizes == [2, 2, 1]

    @pytest.mark.asyncio
    async def test_parser_waits_for_consumer(self, five_records: Path):
        """No record is parsed while a batch callback is still running."""
        parsed = 0
        seen_at_delivery = []

        def on_parsed():
            nonlocal parsed
            parsed += 1

        async def on_batch(batch):
            seen_at_delivery.append(parsed)

        await parse_batches(five_records, 2, on_batch, on_parsed=on_parsed)

        assert seen_at_delivery == [2, 4, 5]

    @pytest.mark.asyncio
    async def test_empty_file_never_calls_back(self, tmp_path: Path):
        path = tmp_path / "empty.xml"
        path.write_text(xml_document(), encoding="utf-8")
        calls = []

        async def on_batch(batch):
            calls.append(batch)

        assert await parse_batches(path, 10, on_batch) == 0
        assert calls == []

    @pytest.mark.asyncio
    async def test_rejects_non_positive_batch_size(self, five_records: Path):
        async def on_batch(batch):
            pass

        with pytest.raises(ValueError):
            await parse_batches(five_records, 0, on_batch)
