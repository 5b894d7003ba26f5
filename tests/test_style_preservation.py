"""
Tests for StylePreservationService: capture, CSS emission and per-line reconstruction
"""

import sys
from pathlib import Path
from unittest.mock import patch

sys.path.insert(0, str(Path(__file__).parent.parent / "skills" / "style-split" / "scripts"))

import pytest  # noqa: E402

from style_split import (  # noqa: E402  # type: ignore[import-not-found]
    HtmlStyledTree,
    StyleCaptureConfig,
    StyleFact,
    StylePreservationService,
)


def make_owner(markup, **tree_kwargs):
    """Tree with one owner div holding markup; returns (tree, owner)"""
    tree = HtmlStyledTree(**tree_kwargs)
    owner = tree.create_element('div')
    tree.append_child(tree.root, owner)
    tree.set_inner_html(owner, markup)
    return tree, owner


def captured(markup, element_id='el', **tree_kwargs):
    tree, owner = make_owner(markup, **tree_kwargs)
    service = StylePreservationService(tree, StyleCaptureConfig(debug=False))
    result = service.capture(owner, element_id)
    return service, result


class FailingDescendantsTree(HtmlStyledTree):
    """HtmlStyledTree whose descendants() raises once fail is set"""

    fail = False

    def descendants(self, node):
        if self.fail:
            raise RuntimeError("descendants unavailable")
        return super().descendants(node)


# ============================================================
# Capture
# ============================================================

class TestCapture:
    """Tests for capture"""

    def test_bold_word(self):
        """One fact covering the bold text"""
        service, result = captured('Hello <b>World</b>!')
        assert result.success
        assert len(result.style_facts) == 1
        fact = result.style_facts[0]
        assert (fact.text, fact.start_index, fact.end_index, fact.tag_name) == (
            'World', 6, 11, 'b')
        assert result.styled_character_count == 5

    def test_fact_text_matches_owner_slice(self):
        markup = 'A <em>quick</em> brown <span style="color: red">fox</span> jumps'
        tree, owner = make_owner(markup)
        service = StylePreservationService(tree)
        result = service.capture(owner, 'el')
        full_text = tree.text_content(owner)
        assert len(result.style_facts) == 2
        for fact in result.style_facts:
            assert full_text[fact.start_index:fact.end_index] == fact.text

    def test_unstyled_elements_ignored(self):
        _, result = captured('<span>plain</span> <p>para</p>')
        assert result.style_facts == []
        assert result.element_count == 0

    def test_data_attribute_marks_styled(self):
        _, result = captured('x <span data-framer-name="t">tagged</span>')
        assert [fact.text for fact in result.style_facts] == ['tagged']

    def test_whitespace_only_descendants_skipped(self):
        _, result = captured('a<b> </b>c')
        assert result.style_facts == []
        assert result.element_count == 1

    def test_repeated_text_resolves_to_first_occurrence(self):
        _, result = captured('World <b>World</b>')
        assert result.style_facts[0].start_index == 0

    def test_computed_properties_are_read_only(self):
        _, result = captured('Hello <b>World</b>!')
        with pytest.raises(TypeError):
            result.style_facts[0].computed_properties['color'] = 'red'

    def test_recapture_replaces(self):
        tree, owner = make_owner('<b>one</b> two')
        service = StylePreservationService(tree)
        service.capture(owner, 'el')
        tree.set_inner_html(owner, 'one <i>two</i>')
        service.capture(owner, 'el')
        assert [f.text for f in service.get_element_styles('el')] == ['two']

    def test_get_element_styles_returns_copy(self):
        service, _ = captured('Hello <b>World</b>!')
        styles = service.get_element_styles('el')
        styles.clear()
        assert len(service.get_element_styles('el')) == 1

    def test_failed_capture_keeps_store(self, capsys):
        tree = FailingDescendantsTree()
        owner = tree.create_element('div')
        tree.append_child(tree.root, owner)
        tree.set_inner_html(owner, 'Hello <b>World</b>!')
        service = StylePreservationService(tree, StyleCaptureConfig(debug=False))
        assert service.capture(owner, 'el').success

        tree.fail = True
        result = service.capture(owner, 'el')
        assert not result.success
        assert result.style_facts == []
        assert result.error == "Style capture failed for el: descendants unavailable"
        assert [f.text for f in service.get_element_styles('el')] == ['World']
        assert "descendants unavailable" in capsys.readouterr().err


# ============================================================
# CSS emission
# ============================================================

class TestToCssString:
    """Tests for to_css_string"""

    def test_semantic_bold(self):
        """Bold renders exactly as font-weight: bold"""
        service, result = captured('Hello <b>World</b>!')
        assert service.to_css_string(result.style_facts[0]) == 'font-weight: bold'

    def test_text_color_variable_becomes_color(self):
        service, result = captured(
            'a <span style="--framer-text-color: rgb(255, 0, 0)">Red</span>')
        assert service.to_css_string(result.style_facts[0]) == 'color: rgb(255, 0, 0)'

    def test_text_color_variable_kept_when_disabled(self):
        service, result = captured('a <span style="--text-color: blue">x</span>')
        css = service.to_css_string(result.style_facts[0],
                                    process_text_color_variables=False)
        assert css == '--text-color: blue'

    def test_inline_style_preserved(self):
        service, result = captured('a <span style="color: red; font-size: 20px">x</span>')
        assert service.to_css_string(result.style_facts[0]) == 'color: red; font-size: 20px'

    def test_semantic_wins_over_inline(self):
        service, result = captured('a <b style="font-weight: 300; color: red">x</b>')
        css = service.to_css_string(result.style_facts[0])
        assert css == 'font-weight: bold; color: red'

    def test_class_computed_font_family(self):
        """Non-generic font families from class rules are re-emitted"""
        service, result = captured(
            'a <span class="brand">Logo</span>',
            stylesheet={'brand': {'font-family': 'Satoshi, sans-serif'}})
        assert service.to_css_string(result.style_facts[0]) == 'font-family: Satoshi, sans-serif'

    def test_generic_font_family_not_emitted(self):
        service, result = captured(
            'a <span class="mono">x</span>',
            stylesheet={'mono': {'font-family': 'monospace'}})
        assert service.to_css_string(result.style_facts[0]) == ''

    def test_semantic_tags_disabled(self):
        service, result = captured('Hello <b>World</b>!')
        css = service.to_css_string(result.style_facts[0], convert_semantic_tags=False)
        # Falls back to the computed weight
        assert css == 'font-weight: 700'

    def test_computed_styles_disabled(self):
        service, result = captured('a <b>x</b>')
        css = service.to_css_string(result.style_facts[0], convert_semantic_tags=False,
                                    include_computed_styles=False)
        assert css == ''

    def test_handwritten_fact(self):
        service = StylePreservationService(HtmlStyledTree())
        fact = StyleFact(text='x', start_index=0, end_index=1,
                         computed_properties={'font-style': 'normal', 'color': 'blue'},
                         tag_name='em')
        assert service.to_css_string(fact) == 'font-style: italic; color: blue'


# ============================================================
# Reconstruction
# ============================================================

class TestReconstruct:
    """Tests for reconstruct and fact lookups"""

    def test_no_facts_returns_text_unchanged(self):
        service = StylePreservationService(HtmlStyledTree())
        assert service.reconstruct('a < b', 0, 'unknown') == 'a < b'

    def test_line_outside_facts_unchanged(self):
        service, _ = captured('Hello <b>World</b>!')
        assert service.reconstruct('Hello', 0, 'el') == 'Hello'

    def test_full_line(self):
        service, _ = captured('Hello <b>World</b>!')
        assert service.reconstruct('Hello World!', 0, 'el') == (
            'Hello <span style="font-weight: bold">World</span>!')

    def test_line_with_offset(self):
        service, _ = captured('Hello <b>World</b>!')
        assert service.reconstruct('World!', 6, 'el') == (
            '<span style="font-weight: bold">World</span>!')

    def test_partial_fact(self):
        service, _ = captured('Hello <b>World</b>!')
        assert service.reconstruct('Wo', 6, 'el') == '<span style="font-weight: bold">Wo</span>'

    def test_text_is_escaped(self):
        service, _ = captured('a&lt;b <b>c</b>')
        assert service.reconstruct('a<b c', 0, 'el') == (
            'a&lt;b <span style="font-weight: bold">c</span>')

    def test_failure_returns_text_unchanged(self, capsys):
        service, _ = captured('Hello <b>World</b>!')
        with patch.object(service, 'to_css_string', side_effect=RuntimeError("no css")):
            assert service.reconstruct('Hello World!', 0, 'el') == 'Hello World!'
        assert "Reconstruction failed for el" in capsys.readouterr().err

    def test_nested_facts_last_wins(self):
        """Inner element styling overrides its enclosing styled element"""
        service, _ = captured('<span style="color: red">ab <b>cd</b></span>')
        assert service.reconstruct('ab cd', 0, 'el') == (
            '<span style="color: red">ab </span>'
            '<span style="font-weight: bold; color: red">cd</span>')

    def test_fact_with_empty_css_gets_no_span(self):
        service, _ = captured('a <span class="unknown">b</span>')
        assert service.reconstruct('a b', 0, 'el') == 'a b'

    def test_find_overlapping_and_fact_at(self):
        service, _ = captured('Hello <b>World</b>!')
        assert len(service.find_overlapping_facts('el', 0, 7)) == 1
        assert service.find_overlapping_facts('el', 0, 6) == []
        assert service.fact_at('el', 8).text == 'World'
        assert service.fact_at('el', 11) is None


# ============================================================
# Store management
# ============================================================

class TestStore:
    """Tests for clearing and summaries"""

    def test_clear_element_styles(self):
        service, _ = captured('Hello <b>World</b>!')
        assert service.has_element_styles('el')
        assert service.clear_element_styles('el')
        assert not service.has_element_styles('el')
        assert not service.clear_element_styles('el')

    def test_debug_summary(self):
        service, _ = captured('<b>a</b> <i>b</i>')
        summary = service.get_debug_summary()
        assert summary['element_count'] == 1
        assert summary['total_style_segments'] == 2

    def test_clear_all_and_dispose(self):
        service, _ = captured('<b>a</b>')
        assert service.clear_all_styles() == 1
        service.dispose()
        assert service.get_debug_summary()['element_count'] == 0

    def test_set_default_config(self):
        service = StylePreservationService(HtmlStyledTree())
        config = service.set_default_config(convert_semantic_tags=False)
        assert not config.convert_semantic_tags
        assert not service.config.convert_semantic_tags
