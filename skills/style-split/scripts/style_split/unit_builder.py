"""
ABOUTME: Character and word units inside the line foundation, plus stable unit ids
ABOUTME: Each unit gets its captured style looked up through the stored position map
"""

import re
from dataclasses import replace
from typing import List, Optional

from .common import ELEMENT_ID_ATTR, SplitType, StyleFact, default_wrap_config, log_debug
from .css import merge_style

_WORD_TOKENS = re.compile(r'(\s+)')


class UnitBuilderMixin:
    """Requires self.tree, self.parser, self.styles, self.positions, self.debug."""

    def _create_units_in_lines(self, foundation, split_type: SplitType, config,
                               element_id: str, font_size: str) -> List:
        """
        Split every text line of the foundation into character or word units.

        Split offsets run across lines in order, matching the position map
        built from the same line texts.
        """
        wrap = replace(default_wrap_config(split_type),
                       use_inline_container=config.wrap_in_spans)
        units = []
        split_offset = 0
        for line_index, (_, text_line) in enumerate(foundation):
            line_text = self.tree.text_content(text_line)
            if not line_text.strip():
                split_offset += len(line_text)
                continue

            if split_type == SplitType.CHARACTERS:
                tokens = list(line_text)
            else:
                tokens = [token for token in _WORD_TOKENS.split(line_text) if token]

            self.tree.clear(text_line)
            for token_index, token in enumerate(tokens):
                unit = self.parser.create_unit(wrap, split_type, token_index, token)
                self.tree.set_attribute(unit, 'data-line-index', line_index)
                if font_size:
                    self.tree.set_style_property(unit, 'font-size', font_size)
                if token.isspace():
                    self.tree.set_style_property(unit, 'white-space', 'pre')

                fact = self._fact_for_range(element_id, split_offset, len(token))
                if fact is not None:
                    css = self.styles.to_css_string(fact)
                    if css:
                        existing = self.tree.get_attribute(unit, 'style', '') or ''
                        self.tree.set_attribute(unit, 'style', merge_style(existing, css))

                self.tree.append_child(text_line, unit)
                units.append(unit)
                split_offset += len(token)

        log_debug('TextSplitter', f"Created {len(units)} {split_type.value} units", self.debug)
        return units

    def _fact_for_range(self, element_id: str, split_start: int,
                        length: int) -> Optional[StyleFact]:
        """Last style fact overlapping the original range of a split range."""
        start = self.positions.map_position(element_id, split_start)
        end = self.positions.map_position(element_id, split_start + length - 1) + 1
        facts = self.styles.find_overlapping_facts(element_id, start, max(end, start + 1))
        return facts[-1] if facts else None

    def _assign_stable_ids(self, units, split_type: SplitType, owner_id: str) -> None:
        """Give units without an id a predictable one derived from their position."""
        for index, unit in enumerate(units):
            if self.tree.get_attribute(unit, ELEMENT_ID_ATTR):
                continue
            line_index = self.tree.get_attribute(unit, 'data-line-index') or '0'
            if split_type == SplitType.CHARACTERS:
                char_index = self.tree.get_attribute(unit, 'data-char-index') or str(index)
                stable_id = f"split-char-{owner_id}-line{line_index}-char{char_index}"
            elif split_type == SplitType.WORDS:
                word_index = self.tree.get_attribute(unit, 'data-word-index') or str(index)
                stable_id = f"split-word-{owner_id}-line{line_index}-word{word_index}"
            else:
                stable_id = f"split-line-{owner_id}-line{index}"
            self.tree.set_attribute(unit, ELEMENT_ID_ATTR, stable_id)
