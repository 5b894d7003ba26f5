"""
ABOUTME: Style-preserving text segmentation over a StyledTree
ABOUTME: Line detection, character/word/line units, position mapping and completion callbacks
"""

from .callbacks import (
    CallbackConfig,
    CallbackManagerStats,
    NotificationResult,
    SplitCallbackManager,
)
from .common import LineDetectionResult, Rect, SplitType, StyleFact, WrapConfig, default_wrap_config
from .html_parsing import HTMLParsingService, ParsingConfig
from .position_mapping import (
    PositionFallbackStrategy,
    PositionMappingConfig,
    PositionMappingResult,
    PositionMappingService,
    PositionMappingStats,
)
from .splitter import TextProcessingConfig, TextSplitResult, TextSplitter
from .style_preservation import StyleCaptureConfig, StyleCaptureResult, StylePreservationService
from .styled_tree import HtmlStyledTree, StyledTree

__all__ = [
    'CallbackConfig',
    'CallbackManagerStats',
    'HTMLParsingService',
    'HtmlStyledTree',
    'LineDetectionResult',
    'NotificationResult',
    'ParsingConfig',
    'PositionFallbackStrategy',
    'PositionMappingConfig',
    'PositionMappingResult',
    'PositionMappingService',
    'PositionMappingStats',
    'Rect',
    'SplitCallbackManager',
    'SplitType',
    'StyleCaptureConfig',
    'StyleCaptureResult',
    'StyleFact',
    'StylePreservationService',
    'StyledTree',
    'TextProcessingConfig',
    'TextSplitResult',
    'TextSplitter',
    'WrapConfig',
    'default_wrap_config',
]
