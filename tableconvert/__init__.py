"""Table format conversion: decode a table from one format, optionally transform
it, infer column types, and encode it into another format.

Public entry point:
    run_conversion_pipeline(source, source_format, target, target_format, *,
                            decode_config=None, encode_config=None,
                            transforms=None, registry=None, cancel=None)

Formats:
    csv tsv json jsonl yaml excel sql markdown html ascii latex mediawiki
    twiki xml ini, and the write-only Jinja2 template output
"""

from .errors import (  # noqa: F401
    ConversionCancelled,
    ConversionWarning,
    DecodeError,
    EncodeError,
    RegistryFrozen,
    TableConvertError,
    UnknownFormat,
    UnsupportedCapability,
    WarningCode,
)
from .pipeline import ConversionResult, ExecutionMode, PipelineState, run_conversion_pipeline  # noqa: F401
from .registry import Capability, FormatRegistry, build_default_registry, detect_format  # noqa: F401
from .table import Table  # noqa: F401

__all__ = [
    "run_conversion_pipeline",
    "ConversionResult",
    "ExecutionMode",
    "PipelineState",
    "Capability",
    "FormatRegistry",
    "build_default_registry",
    "detect_format",
    "Table",
    "TableConvertError",
    "DecodeError",
    "EncodeError",
    "UnknownFormat",
    "UnsupportedCapability",
    "RegistryFrozen",
    "ConversionCancelled",
    "ConversionWarning",
    "WarningCode",
]
