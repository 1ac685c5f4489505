"""Format registry: maps format ids to decoder/encoder factories and capabilities."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Flag, auto
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from .errors import RegistryFrozen, UnknownFormat, UnsupportedCapability
from .formats.base import BaseDecoder, BaseEncoder, StreamingDecoder, StreamingEncoder

logger = logging.getLogger(__name__)


class Capability(Flag):
    NONE = 0
    STREAMING_DECODE = auto()
    STREAMING_ENCODE = auto()
    NESTED_VALUES = auto()
    REQUIRES_HEADER = auto()
    TYPED_OUTPUT = auto()
    BINARY = auto()


DecoderFactory = Callable[[], BaseDecoder]
EncoderFactory = Callable[[], BaseEncoder]


@dataclass(frozen=True)
class FormatDescriptor:
    id: str
    decoder_factory: Optional[DecoderFactory]
    encoder_factory: Optional[EncoderFactory]
    capabilities: Capability = Capability.NONE
    aliases: Tuple[str, ...] = ()
    extensions: Tuple[str, ...] = field(default=())

    @property
    def readable(self) -> bool:
        return self.decoder_factory is not None

    @property
    def writable(self) -> bool:
        return self.encoder_factory is not None

    def supports(self, capability: Capability) -> bool:
        return capability in self.capabilities

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "read": self.readable,
            "write": self.writable,
            "aliases": list(self.aliases),
            "extensions": list(self.extensions),
            "capabilities": [c.name for c in Capability if c and c in self.capabilities],
        }


def _key(name: str) -> str:
    return str(name).strip().lower()


class FormatRegistry:
    """Registration happens up front; after ``freeze()`` the registry is read-only."""

    def __init__(self):
        self._formats: Dict[str, FormatDescriptor] = {}
        self._names: Dict[str, str] = {}
        self._extensions: Dict[str, str] = {}
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    def register(
        self,
        format_id: str,
        decoder_factory: Optional[DecoderFactory],
        encoder_factory: Optional[EncoderFactory],
        capabilities: Capability = Capability.NONE,
        aliases: Iterable[str] = (),
        extensions: Iterable[str] = (),
    ) -> FormatDescriptor:
        if self._frozen:
            raise RegistryFrozen(f"cannot register {format_id!r}: registry is frozen")
        if decoder_factory is None and encoder_factory is None:
            raise ValueError(f"format {format_id!r} needs a decoder or an encoder")
        if Capability.STREAMING_DECODE in capabilities and not (
            isinstance(decoder_factory, type) and issubclass(decoder_factory, StreamingDecoder)
        ):
            raise ValueError(f"format {format_id!r} declares streaming decode without a StreamingDecoder")
        if Capability.STREAMING_ENCODE in capabilities and not (
            isinstance(encoder_factory, type) and issubclass(encoder_factory, StreamingEncoder)
        ):
            raise ValueError(f"format {format_id!r} declares streaming encode without a StreamingEncoder")

        key = _key(format_id)
        names = [key] + [_key(a) for a in aliases]
        for name in names:
            if name in self._names:
                raise ValueError(f"format name already registered: {name}")
        exts = tuple(e.lower() if e.startswith(".") else "." + e.lower() for e in extensions)

        descriptor = FormatDescriptor(key, decoder_factory, encoder_factory, capabilities, tuple(names[1:]), exts)
        self._formats[key] = descriptor
        for name in names:
            self._names[name] = key
        for ext in exts:
            self._extensions.setdefault(ext, key)
        logger.debug("registered format %s (aliases=%s)", key, list(descriptor.aliases))
        return descriptor

    def freeze(self) -> "FormatRegistry":
        self._frozen = True
        return self

    def resolve(self, name: str) -> FormatDescriptor:
        key = self._names.get(_key(name))
        if key is None:
            raise UnknownFormat(f"unknown format: {name!r}")
        return self._formats[key]

    def decoder_for(self, name: str) -> BaseDecoder:
        descriptor = self.resolve(name)
        if descriptor.decoder_factory is None:
            raise UnsupportedCapability(f"format '{descriptor.id}' is write-only", format_name=descriptor.id)
        return descriptor.decoder_factory()

    def encoder_for(self, name: str) -> BaseEncoder:
        descriptor = self.resolve(name)
        if descriptor.encoder_factory is None:
            raise UnsupportedCapability(f"format '{descriptor.id}' is read-only", format_name=descriptor.id)
        return descriptor.encoder_factory()

    def format_for_extension(self, suffix: str) -> Optional[str]:
        return self._extensions.get(suffix.lower())

    def ids(self) -> List[str]:
        return list(self._formats)

    def list_formats(self) -> List[Dict[str, object]]:
        return [d.to_dict() for d in self._formats.values()]

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and _key(name) in self._names

    def __iter__(self):
        return iter(self._formats.values())

    def __len__(self) -> int:
        return len(self._formats)


# -----------------------------
# Built-in formats
# -----------------------------


def build_default_registry() -> FormatRegistry:
    """Fresh, frozen registry holding every built-in format."""
    from .formats.ascii_grid import AsciiGridDecoder, AsciiGridEncoder
    from .formats.delimited import CsvDecoder, CsvEncoder, TsvDecoder, TsvEncoder
    from .formats.excel import ExcelDecoder, ExcelEncoder
    from .formats.html_table import HtmlDecoder, HtmlEncoder
    from .formats.ini_format import IniDecoder, IniEncoder
    from .formats.json_formats import JsonDecoder, JsonEncoder, JsonlDecoder, JsonlEncoder
    from .formats.latex import LatexDecoder, LatexEncoder
    from .formats.markdown_table import MarkdownDecoder, MarkdownEncoder
    from .formats.mediawiki import MediaWikiDecoder, MediaWikiEncoder
    from .formats.sql_insert import SqlDecoder, SqlEncoder
    from .formats.template import TemplateEncoder
    from .formats.twiki import TwikiDecoder, TwikiEncoder
    from .formats.xml_format import XmlDecoder, XmlEncoder
    from .formats.yaml_format import YamlDecoder, YamlEncoder

    C = Capability
    streaming = C.STREAMING_DECODE | C.STREAMING_ENCODE
    reg = FormatRegistry()
    reg.register("csv", CsvDecoder, CsvEncoder, streaming, extensions=[".csv"])
    reg.register("tsv", TsvDecoder, TsvEncoder, streaming, aliases=["tab"], extensions=[".tsv", ".tab"])
    reg.register("json", JsonDecoder, JsonEncoder, C.TYPED_OUTPUT | C.NESTED_VALUES, extensions=[".json"])
    reg.register(
        "jsonl",
        JsonlDecoder,
        JsonlEncoder,
        streaming | C.TYPED_OUTPUT | C.NESTED_VALUES,
        aliases=["ndjson", "jsonlines"],
        extensions=[".jsonl", ".ndjson"],
    )
    reg.register("yaml", YamlDecoder, YamlEncoder, C.TYPED_OUTPUT | C.NESTED_VALUES, aliases=["yml"], extensions=[".yaml", ".yml"])
    reg.register("excel", ExcelDecoder, ExcelEncoder, C.BINARY | C.TYPED_OUTPUT, aliases=["xlsx", "xls"], extensions=[".xlsx", ".xls"])
    reg.register(
        "sql",
        SqlDecoder,
        SqlEncoder,
        C.STREAMING_ENCODE | C.TYPED_OUTPUT,
        aliases=["insert"],
        extensions=[".sql"],
    )
    reg.register("markdown", MarkdownDecoder, MarkdownEncoder, C.REQUIRES_HEADER, aliases=["md"], extensions=[".md", ".markdown"])
    reg.register("html", HtmlDecoder, HtmlEncoder, C.STREAMING_ENCODE, aliases=["htm"], extensions=[".html", ".htm"])
    reg.register("ascii", AsciiGridDecoder, AsciiGridEncoder, C.NONE, aliases=["mysql", "box"])
    reg.register("latex", LatexDecoder, LatexEncoder, C.NONE, aliases=["tex"], extensions=[".tex"])
    reg.register("mediawiki", MediaWikiDecoder, MediaWikiEncoder, C.NONE, aliases=["wiki"], extensions=[".mediawiki", ".wiki"])
    reg.register("twiki", TwikiDecoder, TwikiEncoder, C.NONE, aliases=["foswiki"], extensions=[".twiki"])
    reg.register("xml", XmlDecoder, XmlEncoder, C.NONE, extensions=[".xml"])
    reg.register("ini", IniDecoder, IniEncoder, C.NONE, aliases=["properties"], extensions=[".ini", ".properties"])
    reg.register("template", None, TemplateEncoder, C.TYPED_OUTPUT, aliases=["jinja"], extensions=[".j2", ".jinja"])
    return reg.freeze()


# -----------------------------
# Format detection
# -----------------------------


def detect_format(path, registry: Optional[FormatRegistry] = None) -> Optional[str]:
    """Format id for a file path based on its extension, or ``None``."""
    reg = registry or build_default_registry()
    return reg.format_for_extension(Path(str(path)).suffix)


_MARKDOWN_SEPARATOR = re.compile(r"^\s*\|?\s*:?-{3,}:?\s*(\|\s*:?-{3,}:?\s*)*\|?\s*$", re.MULTILINE)
_ASCII_BORDER = re.compile(r"^\s*\+(-+\+)+\s*$", re.MULTILINE)


def sniff_format(sample: bytes) -> Optional[str]:
    """Best guess of a text format from the first bytes of a document."""
    text = sample.decode("utf-8", errors="replace").lstrip("\ufeff").lstrip()
    lowered = text[:2048].lower()
    if not text:
        return None
    if "<table" in lowered or lowered.startswith("<!doctype html") or lowered.startswith("<html"):
        return "html"
    if lowered.startswith("<?xml") or lowered.startswith("<"):
        return "xml"
    if "\\begin{tabular" in lowered or "\\documentclass" in lowered:
        return "latex"
    if text.startswith("{|") or "\n{|" in text:
        return "mediawiki"
    if _ASCII_BORDER.search(text):
        return "ascii"
    if _MARKDOWN_SEPARATOR.search(text):
        return "markdown"
    if text.startswith("{") and "\n{" in text:
        return "jsonl"
    if text.startswith(("[", "{")):
        return "json"
    if re.match(r"(?is)^(insert|replace)\s+into\b", text):
        return "sql"
    if text.startswith("|") and "=|" in text.splitlines()[0]:
        return "twiki"
    return None


__all__ = [
    "Capability",
    "FormatDescriptor",
    "FormatRegistry",
    "build_default_registry",
    "detect_format",
    "sniff_format",
]
