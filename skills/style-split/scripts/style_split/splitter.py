"""
ABOUTME: TextSplitter composes the four services into the end-to-end split flow
ABOUTME: Capture styles, build the line foundation, create units, assign ids, notify
"""

import uuid
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Union

from text_utils import format_text_preview

from .callbacks import NotificationResult, SplitCallbackManager, SplitCompleteCallback
from .common import ELEMENT_ID_ATTR, SplitType, debug_default, log_debug, log_warning
from .html_parsing import HTMLParsingService
from .line_foundation import LineFoundationMixin
from .position_mapping import PositionMappingService
from .style_preservation import StylePreservationService
from .styled_tree import StyledTree
from .unit_builder import UnitBuilderMixin

COMPONENT = 'TextSplitter'


@dataclass
class TextProcessingConfig:
    enabled: bool = True
    animate_by: Union[SplitType, str] = SplitType.CHARACTERS
    mask_lines: bool = False
    wrap_in_spans: bool = True
    force_line_recalculation: bool = False


@dataclass
class TextSplitResult:
    """Outcome of split_text / resplit"""
    success: bool
    split_elements: List = field(default_factory=list)
    split_type: SplitType = SplitType.CHARACTERS
    error: Optional[str] = None
    original_text: str = ''
    element_count: int = 0
    line_count: int = 0
    element_id: Optional[str] = None
    notification: Optional[NotificationResult] = None


class TextSplitter(LineFoundationMixin, UnitBuilderMixin):
    """
    End-to-end text splitting over one StyledTree.

    The services are created here unless passed in; all of them are keyed
    by the element id, which is the only link between them.

    Usage:
        tree = HtmlStyledTree('<p>Hello <b>World</b>!</p>', width=320)
        splitter = TextSplitter(tree)
        para = tree.children(tree.root)[0]
        result = splitter.split_text(para, TextProcessingConfig(animate_by='words'))
    """

    def __init__(self, tree: StyledTree,
                 parser: Optional[HTMLParsingService] = None,
                 styles: Optional[StylePreservationService] = None,
                 positions: Optional[PositionMappingService] = None,
                 callbacks: Optional[SplitCallbackManager] = None,
                 debug: Optional[bool] = None):
        self.tree = tree
        self.debug = debug_default() if debug is None else debug
        self.parser = parser or HTMLParsingService(tree)
        self.styles = styles or StylePreservationService(tree)
        self.positions = positions or PositionMappingService()
        self.callbacks = callbacks or SplitCallbackManager()

        # Original markup per element id, recorded on the first split
        self._original_html: Dict[str, str] = {}
        self._configs: Dict[str, TextProcessingConfig] = {}

    # ============================================================
    # Callbacks
    # ============================================================

    def register_split_complete_callback(self, element_id: str,
                                         callback: SplitCompleteCallback) -> bool:
        registered = self.callbacks.register(element_id, callback)
        log_debug(COMPONENT, f"Callback registration for {element_id}: {registered}",
                  self.debug)
        return registered

    def unregister_split_complete_callback(self, element_id: str) -> bool:
        return self.callbacks.unregister(element_id)

    # ============================================================
    # Splitting
    # ============================================================

    def get_element_id(self, element) -> str:
        """Element id from data-split-element-id or id; generated and stored if absent."""
        element_id = (self.tree.get_attribute(element, ELEMENT_ID_ATTR)
                      or self.tree.get_attribute(element, 'id'))
        if not element_id:
            element_id = f"split-text-{uuid.uuid4().hex[:12]}"
            self.tree.set_attribute(element, ELEMENT_ID_ATTR, element_id)
        return element_id

    def split_text(self, element, config: Optional[TextProcessingConfig] = None) -> TextSplitResult:
        """
        Split element into characters, words or lines.

        The element's original markup is recorded on the first split and
        restored before any later split, so splitting twice starts from the
        same source. Failures come back as success=False results.

        Args:
            element: Owner node in self.tree
            config: TextProcessingConfig (defaults split by characters)

        Returns:
            TextSplitResult with the created units in document order
        """
        config = config or TextProcessingConfig()
        if element is None or not config.enabled:
            return self._failure(element, "Invalid input or disabled")

        try:
            split_type = SplitType(config.animate_by)
        except ValueError:
            return self._failure(element, f"Unsupported animate_by: {config.animate_by}")

        element_id = self.get_element_id(element)
        if element_id in self._original_html:
            self.tree.set_inner_html(element, self._original_html[element_id])

        capture = self.styles.capture(element, element_id)
        log_debug(COMPONENT, f"Captured {len(capture.style_facts)} style facts for "
                             f"{element_id}", self.debug)
        self._original_html.setdefault(element_id, self.tree.inner_html(element))
        self._configs[element_id] = config

        original_text = self.tree.text_content(element)
        if not original_text.strip():
            return self._failure(element, "No text content", element_id)

        try:
            font_size = self.tree.computed_style(element).get('font-size', '')
            self.tree.set_text(element, original_text)

            foundation = self._create_line_foundation(element, element_id, config)
            self._apply_overflow_styling(foundation, config.mask_lines)

            if split_type == SplitType.LINES:
                units = [text_line for _, text_line in foundation]
            else:
                units = self._create_units_in_lines(
                    foundation, split_type, config, element_id, font_size)

            self._assign_stable_ids(units, split_type, element_id)

            notification = None
            if self.callbacks.has(element_id):
                notification = self.callbacks.notify(element_id, units, split_type)

            log_debug(COMPONENT, f"Split '{format_text_preview(original_text)}' into "
                                 f"{len(units)} {split_type.value}", self.debug)
            return TextSplitResult(
                success=True,
                split_elements=units,
                split_type=split_type,
                original_text=original_text,
                element_count=len(units),
                line_count=len(foundation),
                element_id=element_id,
                notification=notification,
            )
        except Exception as e:
            log_warning(COMPONENT, f"Splitting failed for {element_id}: {e}")
            return self._failure(element, f"Splitting failed: {e}", element_id)

    def resplit(self, element, config: Optional[TextProcessingConfig] = None) -> TextSplitResult:
        """
        Split again from the original markup with stricter line tolerance.

        Uses the config of the previous split when none is given.
        """
        element_id = self.get_element_id(element)
        base = config or self._configs.get(element_id) or TextProcessingConfig()
        if not self.tree.is_connected(element):
            log_warning(COMPONENT, f"Element {element_id} is not connected, skipping re-split")
            return self._failure(element, "Element not connected", element_id)
        return self.split_text(element, replace(base, force_line_recalculation=True))

    def _failure(self, element, error: str, element_id: Optional[str] = None) -> TextSplitResult:
        original_text = self.tree.text_content(element) if element is not None else ''
        return TextSplitResult(
            success=False,
            error=error,
            original_text=original_text,
            element_id=element_id,
        )

    # ============================================================
    # Cleanup
    # ============================================================

    def cleanup_split_text(self, element) -> bool:
        """Restore element's original markup and drop its stored state."""
        element_id = self.get_element_id(element)
        original = self._original_html.pop(element_id, None)
        if original is None:
            return False
        self.tree.set_inner_html(element, original)
        self._configs.pop(element_id, None)
        self.styles.clear_element_styles(element_id)
        self.positions.delete(element_id)
        log_debug(COMPONENT, f"Cleaned up {element_id}", self.debug)
        return True

    def cleanup_all(self) -> None:
        self._original_html.clear()
        self._configs.clear()
        self.styles.clear_all_styles()
        self.callbacks.clear_all_callbacks()
        self.positions.clear_all()
        log_debug(COMPONENT, "All split state cleared", self.debug)

    def get_debug_summary(self) -> Dict:
        return {
            'tracked_elements': len(self._original_html),
            'registered_callbacks': self.callbacks.get_stats().total_callbacks,
            'stored_maps': self.positions.get_stats().total_maps,
            'style_segments': self.styles.get_debug_summary()['total_style_segments'],
        }

    def dispose(self) -> None:
        self.cleanup_all()
        self.styles.dispose()
        self.positions.dispose()
        self.callbacks.dispose()
