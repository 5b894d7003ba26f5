"""
ABOUTME: Shared constants, data classes and diagnostics helpers for style-split
ABOUTME: Results are plain dataclasses carrying success/error instead of raising
"""

import os
import sys
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional


# ============================================================
# Constants
# ============================================================

# Pixel tolerance when comparing measured heights / unit tops
DEFAULT_LINE_TOLERANCE = 5
# Stricter tolerance used when a re-split forces line recalculation
FORCED_LINE_TOLERANCE = 2

# Styled markup shorter than this is kept as a single line
SMALL_CONTENT_THRESHOLD = 500
# split_html_by_word_indices keeps styled markup whole below this length
SHORT_HTML_PRESERVE_THRESHOLD = 200

DEFAULT_MAX_PROCESSING_TIME_MS = 5000
DEFAULT_MAX_CALLBACKS = 100
DEFAULT_MAX_WARNINGS = 10

# Attribute holding the opaque id that links an element to the service stores
ELEMENT_ID_ATTR = 'data-split-element-id'

# Tags whose presence alone marks a styled fragment
INLINE_EMPHASIS_TAGS = frozenset({
    'em', 'strong', 'b', 'i', 'u', 's', 'mark', 'small',
    'sub', 'sup', 'code', 'kbd', 'samp', 'var',
})

DEBUG_ENV_VAR = 'STYLE_SPLIT_DEBUG'


# ============================================================
# Diagnostics
# ============================================================

def debug_default() -> bool:
    """
    Default debug flag for every service.

    Returns:
        True if STYLE_SPLIT_DEBUG is set to 'true', False otherwise
    """
    return os.getenv(DEBUG_ENV_VAR, "").lower() == "true"


def log_debug(component: str, message: str, enabled: bool) -> None:
    """Print a tagged diagnostic line when debug output is enabled."""
    if enabled:
        print(f"  [{component}] {message}")


def log_warning(component: str, message: str) -> None:
    """Print a tagged warning to stderr regardless of the debug flag."""
    print(f"  [{component}] Warning: {message}", file=sys.stderr)


# ============================================================
# Data Classes
# ============================================================

class SplitType(str, Enum):
    """Kind of segmentation unit handed to completion callbacks"""
    CHARACTERS = "characters"
    WORDS = "words"
    LINES = "lines"


@dataclass(frozen=True)
class Rect:
    """Bounding geometry in tree coordinates (pixels, origin top-left)"""
    top: float = 0.0
    left: float = 0.0
    width: float = 0.0
    height: float = 0.0

    @property
    def bottom(self) -> float:
        return self.top + self.height

    @property
    def right(self) -> float:
        return self.left + self.width


@dataclass(frozen=True)
class StyleFact:
    """One styled sub-range [start_index, end_index) of an owner's text"""
    text: str
    start_index: int
    end_index: int
    computed_properties: Mapping[str, str]
    tag_name: str
    inline_style_raw: str = ''

    def __post_init__(self):
        # Read-only view so a captured fact cannot be edited in place
        object.__setattr__(
            self, 'computed_properties',
            MappingProxyType(dict(self.computed_properties))
        )

    def contains(self, index: int) -> bool:
        return self.start_index <= index < self.end_index

    def overlaps(self, start: int, end: int) -> bool:
        return max(self.start_index, start) < min(self.end_index, end)


@dataclass
class WrapConfig:
    """How wrap_characters / wrap_words / wrap_lines build their units"""
    use_inline_container: bool = True   # span when True, div otherwise
    class_name: str = ''
    base_styles: Dict[str, str] = field(default_factory=dict)
    data_attributes: Dict[str, str] = field(default_factory=dict)
    inline_block: bool = True


@dataclass
class LineDetectionResult:
    """Result of detect_lines; lines are HTML fragments"""
    lines: List[str]
    success: bool
    line_count: int
    original_text: str
    html_preserved: bool
    error: Optional[str] = None


def default_wrap_config(split_type: SplitType) -> WrapConfig:
    """Build the default WrapConfig for a segmentation kind."""
    if split_type == SplitType.LINES:
        return WrapConfig(
            class_name='split-line',
            base_styles={
                'display': 'block',
                'width': '100%',
                'transform-origin': 'left top',
                'will-change': 'transform',
                'margin': '0',
                'padding': '0',
                'line-height': 'inherit',
                'font-family': 'inherit',
            },
            data_attributes={'split': 'line'},
            inline_block=False,
        )

    unit_name = 'character' if split_type == SplitType.CHARACTERS else 'word'
    return WrapConfig(
        class_name='split-char' if split_type == SplitType.CHARACTERS else 'split-word',
        base_styles={
            'display': 'inline-block',
            'will-change': 'transform, opacity',
            'transform-origin': 'center center',
        },
        data_attributes={'split': unit_name},
        inline_block=True,
    )
