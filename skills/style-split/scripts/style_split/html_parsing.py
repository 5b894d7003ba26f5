"""
ABOUTME: Line detection and character/word/line wrapping over a StyledTree
ABOUTME: Groups existing units back into line wrappers by their rendered top coordinate
"""

import html
import re
import time
from dataclasses import dataclass, field, replace
from typing import List, Optional, Sequence

from .common import (
    DEFAULT_LINE_TOLERANCE,
    DEFAULT_MAX_PROCESSING_TIME_MS,
    SHORT_HTML_PRESERVE_THRESHOLD,
    SMALL_CONTENT_THRESHOLD,
    LineDetectionResult,
    SplitType,
    WrapConfig,
    debug_default,
    default_wrap_config,
    log_debug,
    log_warning,
)
from .styled_tree import StyledTree

COMPONENT = 'HTMLParsing'

INDEX_ATTRIBUTES = {
    SplitType.CHARACTERS: 'data-char-index',
    SplitType.WORDS: 'data-word-index',
    SplitType.LINES: 'data-line-index',
}

# Styles of the wrappers created by group_into_lines
LINE_WRAPPER_STYLES = {
    'display': 'inline-block',
    'width': '100%',
    'transform-origin': 'left top',
    'will-change': 'transform',
    'position': 'relative',
    'z-index': '1',
}

_WORD_TOKENS = re.compile(r'(\s+)')
_SPLIT_HTML_MARKERS = ('<span', '<em>', '<strong>')


@dataclass
class ParsingConfig:
    use_inline_container: bool = True
    line_tolerance: float = DEFAULT_LINE_TOLERANCE
    preserve_whitespace: bool = True
    debug: bool = field(default_factory=debug_default)
    max_processing_time_ms: float = DEFAULT_MAX_PROCESSING_TIME_MS
    small_content_threshold: int = SMALL_CONTENT_THRESHOLD


class HTMLParsingService:
    """
    Segmentation over a StyledTree: line detection, unit wrapping and
    geometric line grouping.

    Line detection measures by forcing a reflow after every word, so its
    cost grows with the word count; accuracy is preferred over speed.
    """

    def __init__(self, tree: StyledTree, config: Optional[ParsingConfig] = None):
        self.tree = tree
        self.config = config or ParsingConfig()

    def _resolve_config(self, overrides: dict) -> ParsingConfig:
        return replace(self.config, **overrides) if overrides else self.config

    # ============================================================
    # Line detection
    # ============================================================

    def detect_lines(self, element, **overrides) -> LineDetectionResult:
        """
        Detect where visual line breaks fall in element.

        Unstyled content is measured word by word. Styled content shorter
        than small_content_threshold is kept whole as one line; longer styled
        content is measured like plain text and loses its markup. Measured
        lines are escaped text, so every line is an HTML fragment. The
        element's original markup is restored before returning.

        Args:
            element: Owner node in self.tree
            **overrides: ParsingConfig fields for this call

        Returns:
            LineDetectionResult; on error the whole markup as one line with
            success=False
        """
        original_html = ''
        plain_text = ''
        config = self.config
        try:
            config = self._resolve_config(overrides)
            original_html = self.tree.inner_html(element)
            plain_text = self.tree.text_content(element)
            log_debug(COMPONENT, f"Analyzing {len(plain_text)} characters", config.debug)

            if not plain_text.strip():
                return LineDetectionResult(
                    lines=[original_html],
                    success=True,
                    line_count=1,
                    original_text=plain_text,
                    html_preserved=True,
                )

            if not self._has_styling(element):
                log_debug(COMPONENT, "No styling detected, measuring plain text", config.debug)
                return self._detect_plain_lines(element, original_html, plain_text, config)

            if len(original_html) < config.small_content_threshold:
                log_debug(COMPONENT, "Short styled content kept as a single line", config.debug)
                return LineDetectionResult(
                    lines=[original_html],
                    success=True,
                    line_count=1,
                    original_text=plain_text,
                    html_preserved=True,
                )

            log_debug(COMPONENT, "Long styled content, measuring plain text", config.debug)
            return self._detect_plain_lines(element, original_html, plain_text, config)
        except Exception as e:
            log_warning(COMPONENT, f"Line detection failed: {e}")
            return LineDetectionResult(
                lines=[original_html],
                success=False,
                line_count=1,
                original_text=plain_text,
                html_preserved=False,
                error=str(e),
            )

    def _has_styling(self, element) -> bool:
        # Inline styles and emphasis tags only exist on child elements
        return bool(self.tree.children(element))

    def _detect_plain_lines(self, element, original_html: str, plain_text: str,
                            config: ParsingConfig) -> LineDetectionResult:
        words = plain_text.split()
        if not words:
            return LineDetectionResult(
                lines=[html.escape(plain_text, quote=False)],
                success=True,
                line_count=1,
                original_text=plain_text,
                html_preserved=False,
            )

        try:
            breaks = self._detect_break_indices(element, words, config)
        finally:
            self.tree.set_inner_html(element, original_html)

        lines = []
        last = 0
        for end in breaks + [len(words)]:
            line_words = words[last:end]
            if line_words:
                lines.append(html.escape(' '.join(line_words), quote=False))
            last = end
        if not lines:
            lines = [html.escape(plain_text, quote=False)]

        log_debug(COMPONENT, f"Detected {len(lines)} lines", config.debug)
        return LineDetectionResult(
            lines=lines,
            success=True,
            line_count=len(lines),
            original_text=plain_text,
            html_preserved=False,
        )

    def _detect_break_indices(self, element, words: List[str],
                              config: ParsingConfig) -> List[int]:
        """Word indices that start a new line, found by growing a test line."""
        start = time.perf_counter()
        breaks: List[int] = []
        current: List[str] = []
        last_bottom = None
        for index, word in enumerate(words):
            elapsed_ms = (time.perf_counter() - start) * 1000.0
            if elapsed_ms > config.max_processing_time_ms:
                log_warning(COMPONENT, f"Line detection exceeded "
                                       f"{config.max_processing_time_ms}ms; "
                                       f"{len(words) - index} words kept on the last line")
                break

            self.tree.set_text(element, ' '.join(current + [word]))
            height = self.tree.scroll_height(element)
            if last_bottom is not None and height > last_bottom + config.line_tolerance:
                breaks.append(index)
                current = [word]
                self.tree.set_text(element, word)
                last_bottom = self.tree.scroll_height(element)
            else:
                current.append(word)
                last_bottom = height
        return breaks

    def split_html_by_word_indices(self, markup: str, break_indices: Sequence[int],
                                   **overrides) -> List[str]:
        """
        Split markup into line strings at the given word indices.

        Styled markup is kept whole when it would form a single line or is
        shorter than the preserve threshold; otherwise each line is the escaped
        plain text of its words.
        """
        config = self.config
        try:
            config = self._resolve_config(overrides)
            if not break_indices:
                return [markup]

            scratch = self.tree.create_element('div')
            self.tree.set_inner_html(scratch, markup)
            words = self.tree.text_content(scratch).split()
            if len(words) <= 1:
                return [markup]

            lines = []
            last = 0
            for end in list(break_indices) + [len(words)]:
                line_words = words[last:end]
                if line_words:
                    lines.append(html.escape(' '.join(line_words), quote=False))
                last = end

            if any(marker in markup for marker in _SPLIT_HTML_MARKERS):
                if len(lines) == 1:
                    log_debug(COMPONENT, "Single styled line, markup preserved", config.debug)
                    return [markup]
                if len(markup) < SHORT_HTML_PRESERVE_THRESHOLD:
                    log_debug(COMPONENT, "Short styled markup preserved whole", config.debug)
                    return [markup]

            log_debug(COMPONENT, f"Split markup into {len(lines)} lines", config.debug)
            return lines or [markup]
        except Exception as e:
            log_warning(COMPONENT, f"Splitting markup failed: {e}")
            return [markup]

    # ============================================================
    # Wrapping
    # ============================================================

    def _wrap_config(self, split_type: SplitType, wrap_config: Optional[WrapConfig],
                     overrides: dict) -> WrapConfig:
        base = wrap_config or replace(default_wrap_config(split_type),
                                      use_inline_container=self.config.use_inline_container)
        return replace(base, **overrides) if overrides else base

    def create_unit(self, wrap: WrapConfig, split_type: SplitType, index: int, text: str):
        unit = self.tree.create_element('span' if wrap.use_inline_container else 'div')
        self.tree.set_text(unit, text)
        if wrap.class_name:
            self.tree.set_attribute(unit, 'class', wrap.class_name)
        self.tree.set_attribute(unit, INDEX_ATTRIBUTES[split_type], index)
        for key, value in wrap.data_attributes.items():
            self.tree.set_attribute(unit, f'data-{key}', value)
        if wrap.inline_block and 'display' not in wrap.base_styles:
            self.tree.set_style_property(unit, 'display', 'inline-block')
        for prop, value in wrap.base_styles.items():
            self.tree.set_style_property(unit, prop, value)
        return unit

    def wrap_characters(self, element, wrap_config: Optional[WrapConfig] = None,
                        **overrides) -> List:
        """Replace element's content with one unit per code point."""
        wrap = self._wrap_config(SplitType.CHARACTERS, wrap_config, overrides)
        return self._wrap_tokens(element, wrap, SplitType.CHARACTERS, list)

    def wrap_words(self, element, wrap_config: Optional[WrapConfig] = None,
                   **overrides) -> List:
        """Replace element's content with one unit per word or whitespace run."""
        wrap = self._wrap_config(SplitType.WORDS, wrap_config, overrides)
        return self._wrap_tokens(
            element, wrap, SplitType.WORDS,
            lambda text: [token for token in _WORD_TOKENS.split(text) if token])

    def _wrap_tokens(self, element, wrap: WrapConfig, split_type: SplitType,
                     tokenize) -> List:
        """
        Build one unit per token of element's text and make them its content.

        On error the element's original markup is put back and [] returned.
        """
        original_html = None
        try:
            original_html = self.tree.inner_html(element)
            text = self.tree.text_content(element)

            units = []
            for index, token in enumerate(tokenize(text)):
                unit = self.create_unit(wrap, split_type, index, token)
                if token.isspace() and self.config.preserve_whitespace:
                    self.tree.set_style_property(unit, 'white-space', 'pre')
                units.append(unit)

            self.tree.clear(element)
            for unit in units:
                self.tree.append_child(element, unit)
        except Exception as e:
            log_warning(COMPONENT, f"Wrapping {split_type.value} failed: {e}")
            if original_html is not None:
                try:
                    self.tree.set_inner_html(element, original_html)
                except Exception as restore_error:
                    log_warning(COMPONENT, f"Could not restore markup: {restore_error}")
            return []

        log_debug(COMPONENT, f"Created {len(units)} {split_type.value} units", self.config.debug)
        return units

    def wrap_lines(self, element, wrap_config: Optional[WrapConfig] = None,
                   **overrides) -> List:
        """
        Replace element's content with one container per detected line.

        Line markup is assigned as HTML so preserved styling survives.
        Returns [] for blank text, detached elements, failed detection or
        any error while building the containers (the original markup is put
        back in that case).
        """
        wrap = self._wrap_config(SplitType.LINES, wrap_config, overrides)
        original_html = None
        try:
            if not self.tree.text_content(element).strip():
                log_debug(COMPONENT, "Empty text content, no lines created", self.config.debug)
                return []
            if not self.tree.is_connected(element):
                log_warning(COMPONENT, "Element not connected to the tree, cannot create lines")
                return []

            detection = self.detect_lines(element)
            if not detection.success:
                log_warning(COMPONENT, f"Line detection failed: {detection.error}")
                return []

            original_html = self.tree.inner_html(element)
            units = []
            for index, line_html in enumerate(detection.lines):
                unit = self.create_unit(wrap, SplitType.LINES, index, '')
                self.tree.set_inner_html(unit, line_html)
                units.append(unit)

            self.tree.clear(element)
            for unit in units:
                self.tree.append_child(element, unit)
        except Exception as e:
            log_warning(COMPONENT, f"Wrapping lines failed: {e}")
            if original_html is not None:
                try:
                    self.tree.set_inner_html(element, original_html)
                except Exception as restore_error:
                    log_warning(COMPONENT, f"Could not restore markup: {restore_error}")
            return []

        log_debug(COMPONENT, f"Created {len(units)} line units", self.config.debug)
        return units

    # ============================================================
    # Grouping
    # ============================================================

    def group_into_lines(self, units: Sequence, **overrides) -> List:
        """
        Group units into line wrappers by their rendered top coordinate.

        A unit whose rounded top differs from the previous unit's by more
        than line_tolerance starts a new line. Each wrapper is inserted before
        the first attached unit of its line and the line's units move into
        it. Lines with no attached unit, or whose wrapper cannot be inserted,
        get a detached fallback wrapper, so no unit is dropped and nothing
        raises.

        Args:
            units: Units in document order, e.g. from wrap_characters
            **overrides: ParsingConfig fields for this call

        Returns:
            One wrapper per line, in order
        """
        config = self._resolve_config(overrides)
        units = list(units or [])
        if not units:
            log_debug(COMPONENT, "No units to group", config.debug)
            return []

        groups: List[List] = []
        current: List = []
        last_top = None
        for unit in units:
            try:
                top = round(self.tree.bounding_rect(unit).top)
            except Exception as e:
                # Unmeasurable units stay on the current line
                log_warning(COMPONENT, f"Could not measure unit: {e}")
                top = last_top
            if last_top is None or top is None or abs(top - last_top) <= config.line_tolerance:
                current.append(unit)
            else:
                if current:
                    groups.append(current)
                current = [unit]
            if top is not None:
                last_top = top
        if current:
            groups.append(current)

        log_debug(COMPONENT, f"Grouped {len(units)} units into {len(groups)} lines",
                  config.debug)

        wrappers = []
        for line_index, group in enumerate(groups):
            wrapper = self._create_line_wrapper(line_index)
            try:
                anchor = next((unit for unit in group if self.tree.is_connected(unit)), None)
                if anchor is None:
                    log_debug(COMPONENT, f"Line {line_index} has no attached unit, "
                                         f"using a fallback wrapper", config.debug)
                    self._fill_fallback_wrapper(wrapper, group, line_index)
                else:
                    self.tree.insert_before(anchor, wrapper)
                    for unit in group:
                        self.tree.set_attribute(unit, INDEX_ATTRIBUTES[SplitType.LINES],
                                                line_index)
                        self.tree.append_child(wrapper, unit)
            except Exception as e:
                log_warning(COMPONENT, f"Line {line_index} could not be placed, "
                                       f"using a fallback wrapper: {e}")
                self._fill_fallback_wrapper(wrapper, group, line_index)
            wrappers.append(wrapper)

        return wrappers

    def _fill_fallback_wrapper(self, wrapper, group: Sequence, line_index: int) -> None:
        """Detach wrapper and move every unit of the line into it."""
        try:
            self.tree.remove(wrapper)
        except Exception as e:
            log_warning(COMPONENT, f"Could not detach line wrapper: {e}")
        for unit in group:
            try:
                self.tree.set_attribute(unit, INDEX_ATTRIBUTES[SplitType.LINES], line_index)
                if self.tree.parent(unit) is not wrapper:
                    self.tree.append_child(wrapper, unit)
            except Exception as e:
                log_warning(COMPONENT, f"Could not move unit into line {line_index}: {e}")

    def _create_line_wrapper(self, line_index: int):
        wrapper = self.tree.create_element('div')
        self.tree.set_attribute(wrapper, 'class', 'split-line')
        self.tree.set_attribute(wrapper, INDEX_ATTRIBUTES[SplitType.LINES], line_index)
        self.tree.set_attribute(wrapper, 'data-split', 'line')
        for prop, value in LINE_WRAPPER_STYLES.items():
            self.tree.set_style_property(wrapper, prop, value)
        return wrapper

