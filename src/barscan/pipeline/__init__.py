"""
Decode orchestration.

Runs detection once per image, then rectifies, enhances and decodes every
candidate, collecting the results in detection order.

Example:
    >>> from barscan.pipeline import BarcodePipeline
    >>> result = BarcodePipeline().process(gray)
    >>> [info.code for info in result.codes]
"""

from barscan.pipeline.capabilities import (
    CandidateDetector,
    OpenCVBarcodeEngine,
    SymbolDecoder,
)
from barscan.pipeline.config_loader import (
    PipelineConfig,
    get_default_config,
    get_preset_config,
    list_presets,
    load_config,
)
from barscan.pipeline.observers import DebugImageWriter
from barscan.pipeline.processor import (
    BarcodePipeline,
    detect_and_decode,
    partition_candidates,
    payload_to_text,
)
from barscan.pipeline.types import CandidateFailure, FailurePolicy, ScanResult

__all__ = [
    "BarcodePipeline",
    "detect_and_decode",
    "partition_candidates",
    "payload_to_text",
    "PipelineConfig",
    "load_config",
    "get_default_config",
    "get_preset_config",
    "list_presets",
    "CandidateDetector",
    "SymbolDecoder",
    "OpenCVBarcodeEngine",
    "DebugImageWriter",
    "FailurePolicy",
    "CandidateFailure",
    "ScanResult",
]
