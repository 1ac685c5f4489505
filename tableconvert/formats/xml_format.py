"""XML documents shaped as ``<dataset><record><field>value</field>...</record>...</dataset>``."""

from __future__ import annotations

import re
import xml.etree.ElementTree as ET
from typing import Dict, List

from ..errors import EncodeError
from ..table import Table
from .base import BaseDecoder, BaseEncoder

DEFAULT_ROOT = "dataset"
DEFAULT_ROW = "record"
XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>\n'

_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_.\-]*$")


def valid_element_name(name: str) -> bool:
    return bool(_NAME_RE.match(name)) and not name.lower().startswith("xml")


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1] if tag.startswith("{") else tag


def _element_text(elem: ET.Element) -> str:
    if len(elem):
        inner = "".join(ET.tostring(child, encoding="unicode") for child in elem)
        return ((elem.text or "") + inner).strip()
    return elem.text or ""


class XmlDecoder(BaseDecoder):
    """Field names are the union of child element (and attribute) names across records."""

    format_name = "xml"

    def decode(self, stream, options, cancel=None):
        data = stream.read()
        table = Table(cancel=cancel)
        if not data.strip():
            return table
        try:
            root = ET.fromstring(data)
        except ET.ParseError as e:
            line, column = e.position
            raise self.error(f"invalid XML: {e}", line=line, column=column + 1) from e

        row_name = options.extra_str("row_element")
        records = [r for r in root if row_name is None or _local(r.tag) == row_name]
        columns: Dict[str, int] = {}
        parsed: List[Dict[str, str]] = []
        for record in records:
            values: Dict[str, str] = {}
            for key, value in record.attrib.items():
                values.setdefault(_local(key), value)
            for field in record:
                values.setdefault(_local(field.tag), _element_text(field))
            for key in values:
                columns.setdefault(key, len(columns))
            parsed.append(values)

        table.columns = list(columns)
        for values in parsed:
            table.append_row([values.get(c, "") for c in table.columns])
        return table


class XmlEncoder(BaseEncoder):
    """Extras: ``root_element``, ``row_element``, ``declaration`` (default true), ``minify``."""

    format_name = "xml"

    def encode(self, table, options, hints):
        root_name = options.extra_str("root_element", DEFAULT_ROOT)
        row_name = options.extra_str("row_element", DEFAULT_ROW)
        for name in (root_name, row_name):
            if not valid_element_name(name):
                raise EncodeError(f"invalid XML element name {name!r}", format_name=self.format_name)
        for column in table.columns:
            if not valid_element_name(column):
                raise EncodeError(
                    f"column {column!r} is not a valid XML element name",
                    column=column,
                    format_name=self.format_name,
                )

        root = ET.Element(root_name)
        for row in table.iter_rows():
            record = ET.SubElement(root, row_name)
            for name, cell in zip(table.columns, row):
                ET.SubElement(record, name).text = cell
        if options.pretty and not options.extra_bool("minify", False):
            ET.indent(root, space="  ")
        body = ET.tostring(root, encoding="unicode")
        prefix = XML_DECLARATION if options.extra_bool("declaration", True) else ""
        return self.to_bytes(prefix + body + "\n", options)
