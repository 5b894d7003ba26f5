"""
ABOUTME: Deterministic inline layout model backing HtmlStyledTree geometry queries
ABOUTME: Greedy line wrapping with collapsible whitespace, atomic inline-blocks and blocks
"""

import re
import unicodedata
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from .common import Rect
from .css import parse_px, resolve_letter_spacing, resolve_line_height


BLOCK_DISPLAYS = frozenset({'block', 'list-item', 'flex', 'grid', 'table'})
PRESERVED_WHITE_SPACE = frozenset({'pre', 'pre-wrap', 'break-spaces'})

_TOKEN_PATTERN = re.compile(r'(\s+)')


@dataclass
class TextMetrics:
    """
    Glyph metrics of the layout model.

    Every glyph advances font_size * char_width_ratio, wide East Asian
    glyphs advance a full em. 'normal' line height is
    font_size * line_height_ratio.
    """
    char_width_ratio: float = 0.5
    line_height_ratio: float = 1.2

    def char_width(self, char: str, font_px: float) -> float:
        if unicodedata.east_asian_width(char) in ('W', 'F'):
            return font_px
        if unicodedata.combining(char):
            return 0.0
        return font_px * self.char_width_ratio

    def text_width(self, text: str, font_px: float, letter_spacing: float = 0.0) -> float:
        return sum(self.char_width(ch, font_px) + letter_spacing for ch in text)


@dataclass
class _Fragment:
    chain: Tuple            # elements enclosing this piece, outermost first
    x: float
    width: float
    line_height: float


@dataclass
class _Line:
    fragments: List[_Fragment] = field(default_factory=list)
    width: float = 0.0
    min_height: float = 0.0


@dataclass
class LayoutResult:
    """Geometry of one layout pass"""
    rects: Dict = field(default_factory=dict)
    line_tops: List[float] = field(default_factory=list)
    line_heights: List[float] = field(default_factory=list)
    content_height: float = 0.0

    @property
    def line_count(self) -> int:
        return len(self.line_heights)


class InlineLayout:
    """
    One layout pass over an element subtree.

    The pass walks the tree in document order, placing words and atomic
    boxes on lines no wider than the container. Element rectangles are the
    union of the fragments they enclose; blocks span the container width.
    """

    def __init__(self, metrics: TextMetrics, container_width: float,
                 style_of: Callable, text_of: Callable):
        self.metrics = metrics
        self.container_width = container_width
        self._style_of = style_of   # (element, parent_style) -> computed style
        self._text_of = text_of     # element -> text content
        self._lines: List[_Line] = [_Line()]
        self._pending_space: Optional[_Fragment] = None
        self._block_spans: List[Tuple[object, int, int]] = []
        self._atomic_children: Dict = {}
        self._empty_line_height = 0.0

    def run(self, root, root_style: Dict[str, str]) -> LayoutResult:
        root_px = parse_px(root_style.get('font-size', ''), 16.0)
        self._empty_line_height = resolve_line_height(
            root_style.get('line-height', ''), root_px, self.metrics.line_height_ratio)
        self._flow(root, root_style, (root,))
        self._finish_line(force=False)
        return self._build_result(root)

    # ------------------------------------------------------------
    # Flow
    # ------------------------------------------------------------

    def _flow(self, element, style: Dict[str, str], chain: Tuple) -> None:
        if element.text:
            self._place_text(element.text, chain, style)
        for child in element:
            if not isinstance(child.tag, str):
                if child.tail:
                    self._place_text(child.tail, chain, style)
                continue

            child_style = self._style_of(child, style)
            display = child_style.get('display', 'inline')
            child_chain = chain + (child,)
            tag = child.tag.lower()

            if display == 'none':
                pass
            elif tag == 'br':
                self._place_break(child_chain, child_style)
            elif display in BLOCK_DISPLAYS:
                self._place_block(child, child_style, child_chain)
            elif display == 'inline-block':
                self._place_atomic(child, child_style, child_chain)
            else:
                self._flow(child, child_style, child_chain)

            if child.tail:
                self._place_text(child.tail, chain, style)

    def _place_text(self, text: str, chain: Tuple, style: Dict[str, str]) -> None:
        font_px = parse_px(style.get('font-size', ''), 16.0)
        spacing = resolve_letter_spacing(style.get('letter-spacing', ''), font_px)
        line_height = resolve_line_height(
            style.get('line-height', ''), font_px, self.metrics.line_height_ratio)
        preserve = style.get('white-space', 'normal') in PRESERVED_WHITE_SPACE

        if preserve:
            for index, segment in enumerate(text.split('\n')):
                if index > 0:
                    self._finish_line(force=True, min_height=line_height)
                if segment:
                    width = self.metrics.text_width(segment, font_px, spacing)
                    self._place_box(chain, width, line_height, wrap=False)
            return

        for token in _TOKEN_PATTERN.split(text):
            if not token:
                continue
            if token.isspace():
                if self._current.fragments and self._pending_space is None:
                    width = self.metrics.text_width(' ', font_px, spacing)
                    self._pending_space = _Fragment(chain, 0.0, width, line_height)
                continue
            width = self.metrics.text_width(token, font_px, spacing)
            self._place_box(chain, width, line_height, wrap=True)

    def _place_atomic(self, element, style: Dict[str, str], chain: Tuple) -> None:
        font_px = parse_px(style.get('font-size', ''), 16.0)
        spacing = resolve_letter_spacing(style.get('letter-spacing', ''), font_px)
        line_height = resolve_line_height(
            style.get('line-height', ''), font_px, self.metrics.line_height_ratio)
        text = self._text_of(element)
        if style.get('white-space', 'normal') in PRESERVED_WHITE_SPACE:
            text = text.replace('\n', '')
        else:
            text = ' '.join(text.split())
        width = self._explicit_width(style.get('width', 'auto'))
        if width is None:
            width = self.metrics.text_width(text, font_px, spacing)
        self._place_box(chain, width, line_height, wrap=True)
        for descendant in element.iterdescendants():
            self._atomic_children[descendant] = element

    def _explicit_width(self, value: str) -> Optional[float]:
        """Width of an atomic box from its 'width' (px or % of container)."""
        value = (value or '').strip()
        if value.endswith('%'):
            try:
                return self.container_width * float(value[:-1]) / 100.0
            except ValueError:
                return None
        if value.endswith('px'):
            return parse_px(value, None)
        return None

    def _place_block(self, element, style: Dict[str, str], chain: Tuple) -> None:
        self._finish_line(force=False)
        start = len(self._lines) - 1
        self._flow(element, style, chain)
        self._finish_line(force=False)
        self._block_spans.append((element, start, len(self._lines) - 1))

    def _place_break(self, chain: Tuple, style: Dict[str, str]) -> None:
        font_px = parse_px(style.get('font-size', ''), 16.0)
        line_height = resolve_line_height(
            style.get('line-height', ''), font_px, self.metrics.line_height_ratio)
        self._current.fragments.append(_Fragment(chain, self._current.width, 0.0, line_height))
        self._finish_line(force=True, min_height=line_height)

    def _place_box(self, chain: Tuple, width: float, line_height: float, wrap: bool) -> None:
        line = self._current
        pending = self._pending_space
        pending_width = pending.width if pending is not None else 0.0
        if (wrap and line.fragments
                and line.width + pending_width + width > self.container_width + 1e-6):
            self._finish_line(force=True)
            line = self._current
            pending = None
        if pending is not None:
            pending.x = line.width
            line.fragments.append(pending)
            line.width += pending.width
        self._pending_space = None
        line.fragments.append(_Fragment(chain, line.width, width, line_height))
        line.width += width

    @property
    def _current(self) -> _Line:
        return self._lines[-1]

    def _finish_line(self, force: bool, min_height: float = 0.0) -> None:
        """Close the current line; empty lines are only kept when forced."""
        self._pending_space = None
        line = self._current
        if min_height:
            line.min_height = max(line.min_height, min_height)
        if line.fragments or force:
            if not line.fragments and not line.min_height:
                line.min_height = self._empty_line_height
            self._lines.append(_Line())

    # ------------------------------------------------------------
    # Geometry
    # ------------------------------------------------------------

    def _build_result(self, root) -> LayoutResult:
        result = LayoutResult()
        lines = self._lines
        while lines and not lines[-1].fragments and not lines[-1].min_height:
            lines = lines[:-1]

        top = 0.0
        for line in lines:
            height = max([line.min_height] + [f.line_height for f in line.fragments])
            result.line_tops.append(top)
            result.line_heights.append(height)
            top += height
        result.content_height = top

        boxes: Dict = {}
        for index, line in enumerate(lines):
            line_top = result.line_tops[index]
            line_height = result.line_heights[index]
            for fragment in line.fragments:
                box = Rect(line_top, fragment.x, fragment.width, line_height)
                for element in fragment.chain:
                    boxes[element] = _union(boxes.get(element), box)

        for element, start, end in self._block_spans:
            if start < len(lines):
                block_top = result.line_tops[start]
                last = min(end, len(lines))
                block_height = sum(result.line_heights[start:last])
            else:
                block_top = result.content_height
                block_height = 0.0
            boxes[element] = Rect(block_top, 0.0, self.container_width, block_height)

        for descendant, atomic in self._atomic_children.items():
            if atomic in boxes:
                boxes[descendant] = boxes[atomic]

        boxes[root] = Rect(0.0, 0.0, self.container_width, result.content_height)
        result.rects = boxes
        return result


def _union(first: Optional[Rect], second: Rect) -> Rect:
    if first is None:
        return second
    top = min(first.top, second.top)
    left = min(first.left, second.left)
    bottom = max(first.bottom, second.bottom)
    right = max(first.right, second.right)
    return Rect(top, left, right - left, bottom - top)
