"""
ABOUTME: Line foundation for TextSplitter: one mask container + text line per detected line
ABOUTME: Builds the position map and reconstructs each line's styled markup through it
"""

import html
from typing import List, Tuple

from text_utils import format_text_preview

from .common import (
    DEFAULT_MAX_PROCESSING_TIME_MS,
    FORCED_LINE_TOLERANCE,
    log_debug,
    log_warning,
)

MASK_CLASS = 'split-line-mask'
TEXT_LINE_CLASS = 'split-line'

MASK_STYLES = {
    'display': 'block',
    'width': '100%',
    'position': 'relative',
    'transform-origin': 'left top',
    'will-change': 'transform',
    'margin': '0',
    'padding': '0',
}

TEXT_LINE_STYLES = {
    'display': 'block',
    'width': '100%',
    'line-height': 'inherit',
    'font-family': 'inherit',
    'margin': '0',
    'padding': '0',
    'will-change': 'transform, opacity',
    'transform-origin': 'center center',
}


class LineFoundationMixin:
    """Requires self.tree, self.parser, self.styles, self.positions, self.debug."""

    def _create_line_foundation(self, element, element_id: str,
                                config) -> List[Tuple[object, object]]:
        """
        Replace element's content with mask containers, one per detected line.

        Returns (mask, text_line) pairs in line order. The position map of the
        original text against the detected line texts is stored under
        element_id, and each text line gets its styled markup back from the
        captured style facts.
        """
        if not self.tree.is_connected(element):
            log_warning('TextSplitter', "Element not connected to the tree, "
                                        "skipping line foundation")
            return []

        original_text = self.tree.text_content(element)
        line_markup = self._detect_line_markup(element, config.force_line_recalculation)

        self.tree.clear(element)
        foundation = []
        for index, markup in enumerate(line_markup):
            mask = self.tree.create_element('div')
            self.tree.set_attribute(mask, 'class', MASK_CLASS)
            self.tree.set_attribute(mask, 'data-line-index', index)
            for prop, value in MASK_STYLES.items():
                self.tree.set_style_property(mask, prop, value)

            text_line = self.tree.create_element('span')
            self.tree.set_attribute(text_line, 'class', TEXT_LINE_CLASS)
            self.tree.set_attribute(text_line, 'data-line-index', index)
            self.tree.set_attribute(text_line, 'data-split', 'line')
            for prop, value in TEXT_LINE_STYLES.items():
                self.tree.set_style_property(text_line, prop, value)
            self.tree.set_inner_html(text_line, markup)

            self.tree.append_child(mask, text_line)
            self.tree.append_child(element, mask)
            foundation.append((mask, text_line))

        line_texts = [self.tree.text_content(text_line) for _, text_line in foundation]
        mapping = self.positions.build_map(original_text, line_texts)
        if mapping.success:
            self.positions.store(element_id, mapping.position_map)
            log_debug('TextSplitter', f"Position map stored for {element_id} "
                                      f"({mapping.mapped_character_count} chars, "
                                      f"{mapping.warning_count} warnings)", self.debug)
        else:
            log_warning('TextSplitter', f"Position map failed for {element_id}: "
                                        f"{mapping.error}")

        if self.styles.has_element_styles(element_id):
            self._restyle_lines(foundation, line_texts, element_id)

        log_debug('TextSplitter', f"Line foundation: {len(foundation)} lines", self.debug)
        return foundation

    def _detect_line_markup(self, element, force_recalculation: bool) -> List[str]:
        """Detected lines as HTML fragments."""
        overrides = {}
        if force_recalculation:
            # Stricter tolerance and more time when re-splitting
            overrides = {
                'line_tolerance': FORCED_LINE_TOLERANCE,
                'max_processing_time_ms': DEFAULT_MAX_PROCESSING_TIME_MS * 2,
            }
        detection = self.parser.detect_lines(element, **overrides)
        if not detection.success:
            log_warning('TextSplitter', f"Line detection failed: {detection.error}")
            return [self.tree.inner_html(element)]
        return detection.lines

    def _apply_overflow_styling(self, foundation, mask_lines: bool) -> None:
        overflow = 'hidden' if mask_lines else 'visible'
        for mask, _ in foundation:
            self.tree.set_style_property(mask, 'overflow', overflow)
            if mask_lines:
                self.tree.set_style_property(mask, 'height', 'auto')

    def _restyle_lines(self, foundation, line_texts: List[str], element_id: str) -> None:
        """Rebuild each text line's markup from style facts at mapped positions."""
        offset = 0
        for (_, text_line), line_text in zip(foundation, line_texts):
            markup = self._reconstruct_line(line_text, offset, element_id)
            if markup != html.escape(line_text, quote=False):
                self.tree.set_inner_html(text_line, markup)
                log_debug('TextSplitter', f"Restyled line "
                                          f"'{format_text_preview(line_text)}'", self.debug)
            offset += len(line_text)

    def _reconstruct_line(self, line_text: str, split_offset: int, element_id: str) -> str:
        """
        Reconstruct one line run by run.

        A run is a stretch of characters whose mapped original positions are
        consecutive, so each run is reconstructed at its true original start.
        """
        if not line_text:
            return line_text

        parts = []
        run_start = 0
        run_origin = self.positions.map_position(element_id, split_offset)
        previous = run_origin
        for index in range(1, len(line_text) + 1):
            if index < len(line_text):
                current = self.positions.map_position(element_id, split_offset + index)
                if current == previous + 1:
                    previous = current
                    continue
            run_text = line_text[run_start:index]
            styled = None
            if self.styles.find_overlapping_facts(element_id, run_origin,
                                                  run_origin + len(run_text)):
                styled = self.styles.reconstruct(run_text, run_origin, element_id)
            # Unchanged text means no markup was produced
            if styled is None or styled == run_text:
                styled = html.escape(run_text, quote=False)
            parts.append(styled)
            if index < len(line_text):
                run_start = index
                run_origin = current
                previous = current
        return ''.join(parts)
