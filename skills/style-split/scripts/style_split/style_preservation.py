"""
ABOUTME: Captures styled sub-ranges of an element's text and re-emits them as inline CSS
ABOUTME: Reconstructs per-line HTML so styling survives text segmentation
"""

import html as html_lib
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Tuple

from text_utils import format_text_preview

from .common import INLINE_EMPHASIS_TAGS, StyleFact, debug_default, log_debug, log_warning
from .css import parse_declarations, serialize_declarations
from .styled_tree import StyledTree

COMPONENT = 'StylePreservation'

# Custom properties that carry a text colour in design-tool markup
TEXT_COLOR_VARIABLES = ('--text-color', '--framer-text-color')

# Computed text properties worth re-emitting, in emission order
MEANINGFUL_PROPERTIES = (
    'color', 'font-family', 'font-size', 'font-weight', 'font-style',
    'line-height', 'text-decoration', 'text-transform', 'letter-spacing',
    'word-spacing', 'text-shadow', 'background-color',
)

DEFAULT_VALUES = frozenset({
    'normal', 'none', 'inherit', 'initial', 'auto', 'transparent',
    'rgba(0, 0, 0, 0)', '0px',
})

GENERIC_FONT_FAMILIES = frozenset({
    'serif', 'sans-serif', 'monospace', 'cursive', 'fantasy', 'system-ui',
    '-apple-system', 'blinkmacsystemfont', 'segoe ui', 'roboto', 'helvetica',
    'helvetica neue', 'arial',
})

SEMANTIC_TAG_STYLES: Dict[str, Tuple[Tuple[str, str], ...]] = {
    'b': (('font-weight', 'bold'),),
    'strong': (('font-weight', 'bold'),),
    'em': (('font-style', 'italic'),),
    'i': (('font-style', 'italic'),),
    'u': (('text-decoration', 'underline'),),
    's': (('text-decoration', 'line-through'),),
    'small': (('font-size', 'smaller'),),
    'sub': (('vertical-align', 'sub'), ('font-size', 'smaller')),
    'sup': (('vertical-align', 'super'), ('font-size', 'smaller')),
    'code': (('font-family', 'monospace'),),
    'kbd': (('font-family', 'monospace'),),
    'samp': (('font-family', 'monospace'),),
    'var': (('font-family', 'monospace'),),
    'mark': (('background-color', 'yellow'), ('color', 'black')),
}


@dataclass
class StyleCaptureConfig:
    include_computed_styles: bool = True
    process_text_color_variables: bool = True
    convert_semantic_tags: bool = True
    exclude_properties: Tuple[str, ...] = ('position', 'display', 'margin', 'padding')
    debug: bool = field(default_factory=debug_default)


@dataclass
class StyleCaptureResult:
    """Outcome of capture"""
    style_facts: List[StyleFact]
    element_count: int
    styled_character_count: int
    success: bool
    error: Optional[str] = None


class StylePreservationService:
    """
    Owns the StyleFact store, keyed by element id.

    A capture replaces whatever was stored for the same id. Facts are
    located by first-occurrence search in the owner's text, so repeated
    styled text resolves to its first occurrence.
    """

    def __init__(self, tree: StyledTree, config: Optional[StyleCaptureConfig] = None):
        self.tree = tree
        self.config = config or StyleCaptureConfig()
        self._facts: Dict[str, List[StyleFact]] = {}

    def set_default_config(self, **overrides) -> StyleCaptureConfig:
        self.config = replace(self.config, **overrides)
        log_debug(COMPONENT, "Default configuration updated", self.config.debug)
        return self.config

    def _resolve_config(self, overrides: dict) -> StyleCaptureConfig:
        return replace(self.config, **overrides) if overrides else self.config

    # ============================================================
    # Capture
    # ============================================================

    def capture(self, element, element_id: str, **overrides) -> StyleCaptureResult:
        """
        Record a StyleFact for every styled descendant of element.

        A descendant counts as styled when it has a style or class attribute,
        carries a data-* attribute, or is an inline emphasis tag. Its text is
        located in the owner's text by first-occurrence search; descendants
        whose text cannot be found are skipped.

        Args:
            element: Owner node in self.tree
            element_id: Key under which the facts are stored
            **overrides: StyleCaptureConfig fields for this call

        Returns:
            StyleCaptureResult; on failure the store is left untouched
        """
        try:
            config = self._resolve_config(overrides)
            full_text = self.tree.text_content(element)
            log_debug(COMPONENT, f"Capturing {element_id}: "
                                 f"'{format_text_preview(full_text, 50)}'", config.debug)

            candidates = [node for node in self.tree.descendants(element)
                          if self._is_styled(node)]
            owner_style = self.tree.computed_style(element)

            facts: List[StyleFact] = []
            styled_chars = 0
            for node in candidates:
                text = self.tree.text_content(node)
                if not text.strip():
                    continue
                start = full_text.find(text)
                if start == -1:
                    log_debug(COMPONENT, f"Could not locate '{format_text_preview(text)}'",
                              config.debug)
                    continue

                style = self.tree.computed_style(node)
                own_values = {prop: value for prop, value in style.items()
                              if owner_style.get(prop) != value}
                facts.append(StyleFact(
                    text=text,
                    start_index=start,
                    end_index=start + len(text),
                    computed_properties=own_values,
                    tag_name=self.tree.tag_name(node),
                    inline_style_raw=self.tree.get_attribute(node, 'style', '') or '',
                ))
                styled_chars += len(text)
                log_debug(COMPONENT, f"Captured '{format_text_preview(text)}' "
                                     f"at {start}-{start + len(text)}", config.debug)

            self._facts[element_id] = facts
            return StyleCaptureResult(
                style_facts=list(facts),
                element_count=len(candidates),
                styled_character_count=styled_chars,
                success=True,
            )
        except Exception as e:
            message = f"Style capture failed for {element_id}: {e}"
            log_warning(COMPONENT, message)
            return StyleCaptureResult(
                style_facts=[],
                element_count=0,
                styled_character_count=0,
                success=False,
                error=message,
            )

    def _is_styled(self, node) -> bool:
        attrs = self.tree.attributes(node)
        if 'style' in attrs or 'class' in attrs:
            return True
        if self.tree.tag_name(node) in INLINE_EMPHASIS_TAGS:
            return True
        return any(name.startswith('data-') for name in attrs)

    # ============================================================
    # CSS emission
    # ============================================================

    def to_css_string(self, fact: StyleFact, **overrides) -> str:
        """
        Render a fact as an inline style string.

        Stages run in order and a property set by an earlier stage is never
        overridden: semantic tag defaults, the raw inline style (text colour
        variables rewritten to color), then meaningful computed values.
        """
        config = self._resolve_config(overrides)
        declarations: Dict[str, str] = {}

        def add(prop: str, value: str) -> None:
            if prop and value and prop not in declarations:
                declarations[prop] = value

        if config.convert_semantic_tags:
            for prop, value in SEMANTIC_TAG_STYLES.get(fact.tag_name.lower(), ()):
                add(prop, value)

        for prop, value in parse_declarations(fact.inline_style_raw):
            if config.process_text_color_variables and prop in TEXT_COLOR_VARIABLES:
                prop = 'color'
            add(prop, value)

        if config.include_computed_styles:
            for prop in MEANINGFUL_PROPERTIES:
                if prop in config.exclude_properties or prop in declarations:
                    continue
                value = fact.computed_properties.get(prop, '')
                if _is_meaningful(prop, value):
                    add(prop, value)

        css = serialize_declarations(declarations.items())
        if css:
            log_debug(COMPONENT, f"CSS for '{format_text_preview(fact.text)}': {css}",
                      config.debug)
        return css

    # ============================================================
    # Reconstruction
    # ============================================================

    def find_overlapping_facts(self, element_id: str, start: int, end: int) -> List[StyleFact]:
        """Facts for element_id whose range overlaps [start, end), in capture order."""
        return [fact for fact in self._facts.get(element_id, [])
                if fact.overlaps(start, end)]

    def fact_at(self, element_id: str, index: int) -> Optional[StyleFact]:
        """The fact styling original position index; the last one wins."""
        active = None
        for fact in self._facts.get(element_id, []):
            if fact.contains(index):
                active = fact
        return active

    def reconstruct(self, line_text: str, line_start_index: int, element_id: str,
                    **overrides) -> str:
        """
        Rebuild styled HTML for line_text starting at line_start_index.

        Each character takes the last captured fact containing its global
        position; a span opens and closes whenever that fact changes. Spans
        whose CSS is empty are omitted. Text without any overlapping fact is
        returned unchanged.

        Args:
            line_text: Plain text of one segment
            line_start_index: Position of line_text[0] in the owner's text
            element_id: Key of the captured facts
            **overrides: StyleCaptureConfig fields for this call

        Returns:
            HTML string
        """
        try:
            config = self._resolve_config(overrides)
            relevant = self.find_overlapping_facts(
                element_id, line_start_index, line_start_index + len(line_text))
            if not relevant:
                return line_text

            css_cache: Dict[int, str] = {}
            parts: List[str] = []
            active = None
            open_span = False
            for offset, char in enumerate(line_text):
                position = line_start_index + offset
                current = None
                for fact in relevant:
                    if fact.contains(position):
                        current = fact
                if current is not active:
                    if open_span:
                        parts.append('</span>')
                        open_span = False
                    if current is not None:
                        key = id(current)
                        if key not in css_cache:
                            css_cache[key] = self.to_css_string(current, **overrides)
                        if css_cache[key]:
                            parts.append(f'<span style="{html_lib.escape(css_cache[key])}">')
                            open_span = True
                    active = current
                parts.append(html_lib.escape(char, quote=False))
            if open_span:
                parts.append('</span>')

            markup = ''.join(parts)
            log_debug(COMPONENT, f"Reconstructed '{format_text_preview(line_text)}' "
                                 f"with {len(relevant)} facts", config.debug)
            return markup
        except Exception as e:
            log_warning(COMPONENT, f"Reconstruction failed for {element_id}: {e}")
            return line_text

    # ============================================================
    # Store accessors
    # ============================================================

    def get_element_styles(self, element_id: str) -> List[StyleFact]:
        return list(self._facts.get(element_id, []))

    def has_element_styles(self, element_id: str) -> bool:
        return bool(self._facts.get(element_id))

    def clear_element_styles(self, element_id: str) -> bool:
        existed = self._facts.pop(element_id, None) is not None
        if existed:
            log_debug(COMPONENT, f"Cleared styles for {element_id}", self.config.debug)
        return existed

    def clear_all_styles(self) -> int:
        count = len(self._facts)
        self._facts.clear()
        log_debug(COMPONENT, f"Cleared styles for {count} elements", self.config.debug)
        return count

    def get_debug_summary(self) -> Dict:
        return {
            'element_count': len(self._facts),
            'total_style_segments': sum(len(facts) for facts in self._facts.values()),
            'debug_enabled': self.config.debug,
        }

    def dispose(self) -> None:
        self.clear_all_styles()


def _is_meaningful(prop: str, value: str) -> bool:
    """Whether a computed value carries styling worth re-emitting."""
    if not value or value.strip().lower() in DEFAULT_VALUES:
        return False
    if prop == 'font-family':
        families = [name.strip().strip('"\'').lower() for name in value.split(',')]
        return any(name and name not in GENERIC_FONT_FAMILIES
                   and not name.startswith('ui-') for name in families)
    if prop == 'font-style':
        return value == 'italic'
    if prop == 'font-weight':
        return value not in ('normal', '400')
    return True
