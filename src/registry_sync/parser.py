"""
Streaming Entity Parser

Pull-parses a registry XML dump one SUBJECT element at a time with
lxml.etree.iterparse. Each element is converted to a RawRecord and then
cleared together with its already-processed siblings, so memory stays
bounded by a single record no matter how large the file is.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterator
from pathlib import Path
from typing import Any

from lxml import etree

from src.registry_sync.errors import ParseError

logger = logging.getLogger(__name__)

RECORD_TAG = "SUBJECT"

RawRecord = dict[str, Any]
BatchCallback = Callable[[list[RawRecord]], Awaitable[None]]


def element_to_value(elem: etree._Element) -> Any:
    """
    Convert an element into text or a nested mapping.

    Leaf elements become their stripped text (None when blank). Elements with
    children become a dict keyed by child tag; a tag that repeats collects its
    values into a list in document order.
    """
    children = list(elem)
    if not children:
        text = elem.text.strip() if elem.text else ""
        return text or None
    grouped: dict[str, Any] = {}
    for child in children:
        if not isinstance(child.tag, str):
            # comments and processing instructions
            continue
        key = etree.QName(child).localname
        value = element_to_value(child)
        if key in grouped:
            if not isinstance(grouped[key], list):
                grouped[key] = [grouped[key]]
            grouped[key].append(value)
        else:
            grouped[key] = value
    return grouped


def iter_records(xml_path: Path | str) -> Iterator[RawRecord]:
    """
    Lazily yield one RawRecord per SUBJECT element.

    The iterator is finite and cannot be restarted; open a new one to
    re-read the file.

    Raises:
        ParseError: If the document is not well-formed XML
    """
    path = Path(xml_path)
    context = etree.iterparse(
        str(path),
        events=("end",),
        tag=RECORD_TAG,
        huge_tree=True,
        remove_comments=True,
    )
    try:
        for _, elem in context:
            value = element_to_value(elem)
            yield value if isinstance(value, dict) else {}

            elem.clear(keep_tail=False)
            parent = elem.getparent()
            if parent is not None:
                while elem.getprevious() is not None:
                    del parent[0]
    except etree.XMLSyntaxError as e:
        raise ParseError(f"Malformed XML in {path.name}: {e}", path=path) from e
    finally:
        del context


async def parse_batches(
    xml_path: Path | str,
    batch_size: int,
    on_batch: BatchCallback,
    on_parsed: Callable[[], None] | None = None,
) -> int:
    """
    Stream records from an XML file in fixed-size batches.

    Parsing pauses while each ``on_batch`` call is awaited, so the parser
    never runs more than one batch ahead of its consumer.

    Args:
        xml_path: XML file to read
        batch_size: Records per batch (the last batch may be smaller)
        on_batch: Async callback receiving each batch
        on_parsed: Optional callback invoked once per parsed record

    Returns:
        Number of records parsed
    """
    if batch_size < 1:
        raise ValueError("batch_size must be positive")

    count = 0
    batch: list[RawRecord] = []
    for record in iter_records(xml_path):
        count += 1
        if on_parsed:
            on_parsed()
        batch.append(record)
        if len(batch) >= batch_size:
            await on_batch(batch)
            batch = []

    if batch:
        await on_batch(batch)

    logger.info(f"Parsed {count} records from {Path(xml_path).name}")
    return count
