"""
Tests for the inline CSS helpers and the style cascade
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "skills" / "style-split" / "scripts"))

import pytest  # noqa: E402

from style_split.css import (  # noqa: E402  # type: ignore[import-not-found]
    cascade,
    format_px,
    get_style_property,
    merge_style,
    parse_declarations,
    parse_px,
    resolve_font_size,
    resolve_line_height,
    set_style_property,
)


class TestParseDeclarations:
    """Tests for parse_declarations"""

    def test_basic(self):
        assert parse_declarations("color: red; font-size: 12px") == [
            ('color', 'red'), ('font-size', '12px')]

    def test_semicolon_inside_parentheses(self):
        """Semicolons inside url(...) do not split the declaration"""
        decls = parse_declarations('background: url("a;b.png"); color: red')
        assert decls == [('background', 'url("a;b.png")'), ('color', 'red')]

    def test_skips_malformed(self):
        assert parse_declarations("color; : red; width:") == []

    def test_lowercases_property(self):
        assert parse_declarations("COLOR: Red") == [('color', 'Red')]

    def test_empty(self):
        assert parse_declarations("") == []
        assert parse_declarations(None) == []


class TestStyleHelpers:
    """Tests for merge_style / set_style_property / get_style_property"""

    def test_merge_replaces_in_place(self):
        merged = merge_style("color: red; width: 10px", "color: blue; height: 5px")
        assert merged == "color: blue; width: 10px; height: 5px"

    def test_set_style_property(self):
        assert set_style_property("", "display", "block") == "display: block"

    def test_get_style_property_last_wins(self):
        assert get_style_property("color: red; color: blue", "color") == "blue"
        assert get_style_property("color: red", "width") == ""


class TestLengths:
    """Tests for px formatting and resolution"""

    def test_format_px(self):
        assert format_px(16.0) == "16px"
        assert format_px(13.3333) == "13.33px"

    def test_parse_px(self):
        assert parse_px("12.5px") == 12.5
        assert parse_px("2em", default=-1.0) == -1.0
        assert parse_px("", default=3.0) == 3.0

    @pytest.mark.parametrize("value,expected", [
        ("20px", 20.0),
        ("2em", 32.0),
        ("1.5rem", 15.0),
        ("50%", 8.0),
        ("large", 18.0),
        ("inherit", 16.0),
    ])
    def test_resolve_font_size(self, value, expected):
        assert resolve_font_size(value, 16.0, 10.0) == pytest.approx(expected)

    def test_resolve_line_height(self):
        assert resolve_line_height("normal", 20.0, 1.2) == pytest.approx(24.0)
        assert resolve_line_height("1.5", 20.0, 1.2) == pytest.approx(30.0)
        assert resolve_line_height("18px", 20.0, 1.2) == pytest.approx(18.0)


class TestCascade:
    """Tests for cascade"""

    def test_inherits_and_resolves(self):
        parent = {'color': 'red', 'font-size': '16px', 'display': 'block'}
        style = cascade(parent, 'b', '', 'font-size: 2em', None, 16.0)
        assert style['color'] == 'red'
        assert style['font-weight'] == '700'
        assert style['font-size'] == '32px'
        assert style['display'] == 'inline'

    def test_class_rules_before_inline(self):
        sheet = {'brand': {'color': 'green', 'font-weight': 'bold'}}
        style = cascade({'font-size': '16px'}, 'span', 'brand', 'color: blue', sheet, 16.0)
        assert style['color'] == 'blue'
        assert style['font-weight'] == '700'

    def test_normal_weight_normalized(self):
        style = cascade({'font-size': '16px'}, 'span', '', 'font-weight: normal', None, 16.0)
        assert style['font-weight'] == '400'
