"""
ABOUTME: Inline CSS declaration parsing and the style cascade used by HtmlStyledTree
ABOUTME: Resolves tag defaults, class rules and inline styles into computed values
"""

import re
from typing import Dict, Iterable, List, Optional, Tuple


# Properties a child inherits from its parent when it does not set them
INHERITED_PROPERTIES = (
    'color', 'font-family', 'font-size', 'font-weight', 'font-style',
    'line-height', 'letter-spacing', 'word-spacing', 'text-transform',
    'text-shadow', 'white-space',
)

# Initial values of the non-inherited properties tracked by the cascade
INITIAL_VALUES = {
    'text-decoration': 'none',
    'background-color': 'rgba(0, 0, 0, 0)',
    'vertical-align': 'baseline',
    'display': 'inline',
    'width': 'auto',
    'position': 'static',
}

# User-agent defaults per tag
TAG_DEFAULT_STYLES = {
    'b': {'font-weight': '700'},
    'strong': {'font-weight': '700'},
    'em': {'font-style': 'italic'},
    'i': {'font-style': 'italic'},
    'var': {'font-style': 'italic', 'font-family': 'monospace'},
    'u': {'text-decoration': 'underline'},
    's': {'text-decoration': 'line-through'},
    'small': {'font-size': 'smaller'},
    'sub': {'vertical-align': 'sub', 'font-size': 'smaller'},
    'sup': {'vertical-align': 'super', 'font-size': 'smaller'},
    'code': {'font-family': 'monospace'},
    'kbd': {'font-family': 'monospace'},
    'samp': {'font-family': 'monospace'},
    'mark': {'background-color': 'yellow', 'color': 'black'},
    'div': {'display': 'block'},
    'p': {'display': 'block'},
    'h1': {'display': 'block', 'font-size': '2em', 'font-weight': '700'},
    'h2': {'display': 'block', 'font-size': '1.5em', 'font-weight': '700'},
    'h3': {'display': 'block', 'font-size': '1.17em', 'font-weight': '700'},
    'li': {'display': 'list-item'},
    'ul': {'display': 'block'},
    'ol': {'display': 'block'},
    'blockquote': {'display': 'block'},
    'pre': {'display': 'block', 'white-space': 'pre', 'font-family': 'monospace'},
}

FONT_SIZE_KEYWORDS = {
    'xx-small': 9.0, 'x-small': 10.0, 'small': 13.0, 'medium': 16.0,
    'large': 18.0, 'x-large': 24.0, 'xx-large': 32.0,
}

_LENGTH_PATTERN = re.compile(r'^(-?\d*\.?\d+)(px|em|rem|%)?$')


def parse_declarations(style: str) -> List[Tuple[str, str]]:
    """
    Parse an inline style string into (property, value) pairs.

    Semicolons inside parentheses or quotes do not end a declaration, so
    values like url("a;b") or rgb(0, 0, 0) survive intact. Declarations
    without a colon or with an empty value are skipped.

    Args:
        style: Raw style attribute value

    Returns:
        Ordered list of (lower-cased property, stripped value) tuples
    """
    if not style:
        return []

    chunks = []
    depth = 0
    quote = None
    current = []
    for ch in style:
        if quote:
            if ch == quote:
                quote = None
        elif ch in ('"', "'"):
            quote = ch
        elif ch == '(':
            depth += 1
        elif ch == ')':
            depth = max(0, depth - 1)
        elif ch == ';' and depth == 0:
            chunks.append(''.join(current))
            current = []
            continue
        current.append(ch)
    chunks.append(''.join(current))

    declarations = []
    for chunk in chunks:
        if ':' not in chunk:
            continue
        prop, value = chunk.split(':', 1)
        prop = prop.strip().lower()
        value = value.strip()
        if prop and value:
            declarations.append((prop, value))
    return declarations


def serialize_declarations(declarations: Iterable[Tuple[str, str]]) -> str:
    """Join (property, value) pairs as 'prop: value; prop: value'."""
    return '; '.join(f"{prop}: {value}" for prop, value in declarations)


def merge_style(existing: str, extra: str) -> str:
    """
    Merge two style strings; properties in extra replace those in existing.

    Property order follows first appearance so the result stays stable.
    """
    merged: Dict[str, str] = {}
    for prop, value in parse_declarations(existing):
        merged[prop] = value
    for prop, value in parse_declarations(extra):
        merged[prop] = value
    return serialize_declarations(merged.items())


def set_style_property(style: str, prop: str, value: str) -> str:
    """Return style with prop set to value (replacing any earlier value)."""
    return merge_style(style, f"{prop}: {value}")


def get_style_property(style: str, prop: str) -> str:
    """Return the last declared value of prop in style, or ''."""
    value = ''
    for name, declared in parse_declarations(style):
        if name == prop.lower():
            value = declared
    return value


def format_px(value: float) -> str:
    """Format a pixel length the way computed styles report it."""
    rounded = round(value, 2)
    if rounded == int(rounded):
        return f"{int(rounded)}px"
    return f"{rounded:g}px"


def parse_px(value: str, default: float = 0.0) -> float:
    """Parse a 'NNpx' (or bare number) string into a float."""
    if not value:
        return default
    match = _LENGTH_PATTERN.match(value.strip())
    if not match or match.group(2) not in (None, 'px'):
        return default
    return float(match.group(1))


def resolve_font_size(value: str, parent_px: float, root_px: float) -> float:
    """
    Resolve a font-size declaration to pixels.

    Supports px, em, rem, %, bare numbers, the absolute keywords and
    smaller/larger. Anything unrecognised inherits the parent size.
    """
    value = (value or '').strip().lower()
    if not value or value in ('inherit', 'initial', 'unset'):
        return parent_px
    if value == 'smaller':
        return parent_px / 1.2
    if value == 'larger':
        return parent_px * 1.2
    if value in FONT_SIZE_KEYWORDS:
        return FONT_SIZE_KEYWORDS[value]

    match = _LENGTH_PATTERN.match(value)
    if not match:
        return parent_px
    number = float(match.group(1))
    unit = match.group(2)
    if unit == 'em':
        return number * parent_px
    if unit == 'rem':
        return number * root_px
    if unit == '%':
        return number * parent_px / 100.0
    return number


def resolve_line_height(value: str, font_px: float, normal_ratio: float) -> float:
    """Resolve a computed line-height to pixels for a given font size."""
    value = (value or '').strip().lower()
    if not value or value in ('normal', 'inherit', 'initial'):
        return font_px * normal_ratio

    match = _LENGTH_PATTERN.match(value)
    if not match:
        return font_px * normal_ratio
    number = float(match.group(1))
    unit = match.group(2)
    if unit is None:
        return number * font_px
    if unit in ('em', 'rem'):
        return number * font_px
    if unit == '%':
        return number * font_px / 100.0
    return number


def resolve_letter_spacing(value: str, font_px: float) -> float:
    """Extra advance per glyph in pixels ('normal' means none)."""
    value = (value or '').strip().lower()
    if not value or value == 'normal':
        return 0.0
    match = _LENGTH_PATTERN.match(value)
    if not match:
        return 0.0
    number = float(match.group(1))
    if match.group(2) == 'em':
        return number * font_px
    return number


def cascade(parent_style: Optional[Dict[str, str]], tag: str, class_attr: str,
            inline_style: str, stylesheet: Optional[Dict[str, Dict[str, str]]],
            root_px: float) -> Dict[str, str]:
    """
    Compute the style of one element from its parent's computed style.

    Order: inherited values, initial values for non-inherited properties,
    tag defaults, class rules (in class attribute order), inline style.
    font-size is resolved to px against the parent; line-height keeps its
    declared form (unitless numbers stay relative).

    Args:
        parent_style: Computed style of the parent (None for a detached top)
        tag: Lower-cased tag name
        class_attr: Raw class attribute value
        inline_style: Raw style attribute value
        stylesheet: Optional {class_name: {prop: value}} rules
        root_px: Root font size used for rem units

    Returns:
        New computed style dict
    """
    parent_style = parent_style or {}
    computed: Dict[str, str] = {}
    for prop in INHERITED_PROPERTIES:
        if prop in parent_style:
            computed[prop] = parent_style[prop]
    computed.update(INITIAL_VALUES)

    declared: List[Tuple[str, str]] = list(TAG_DEFAULT_STYLES.get(tag, {}).items())
    if stylesheet and class_attr:
        for class_name in class_attr.split():
            declared.extend(stylesheet.get(class_name, {}).items())
    declared.extend(parse_declarations(inline_style))

    parent_px = parse_px(parent_style.get('font-size', ''), root_px)
    for prop, value in declared:
        if value.lower() == 'inherit':
            if prop in parent_style:
                computed[prop] = parent_style[prop]
            continue
        if prop == 'font-size':
            computed[prop] = format_px(resolve_font_size(value, parent_px, root_px))
        elif prop == 'font-weight':
            computed[prop] = _normalize_font_weight(value)
        else:
            computed[prop] = value

    if 'font-size' not in computed:
        computed['font-size'] = format_px(parent_px)
    return computed


def _normalize_font_weight(value: str) -> str:
    """Report keyword weights numerically, as computed styles do."""
    keyword = value.strip().lower()
    if keyword == 'normal':
        return '400'
    if keyword == 'bold':
        return '700'
    return value.strip()
