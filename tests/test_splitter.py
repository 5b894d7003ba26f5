"""
Tests for TextSplitter: the end-to-end split flow over a styled tree
"""

import sys
from pathlib import Path
from unittest.mock import patch

sys.path.insert(0, str(Path(__file__).parent.parent / "skills" / "style-split" / "scripts"))

import pytest  # noqa: E402

from style_split import (  # noqa: E402  # type: ignore[import-not-found]
    HtmlStyledTree,
    SplitType,
    TextProcessingConfig,
    TextSplitter,
)
from style_split.common import ELEMENT_ID_ATTR  # noqa: E402  # type: ignore[import-not-found]

PANGRAM = "The quick brown fox jumps over the lazy dog"


def make_splitter(markup, width=600.0, element_id='hero'):
    """Splitter over a tree with one owner div; returns (tree, splitter, owner)"""
    tree = HtmlStyledTree(width=width)
    owner = tree.create_element('div')
    tree.append_child(tree.root, owner)
    tree.set_inner_html(owner, markup)
    if element_id:
        tree.set_attribute(owner, ELEMENT_ID_ATTR, element_id)
    return tree, TextSplitter(tree, debug=False), owner


# ============================================================
# Characters
# ============================================================

class TestSplitCharacters:
    """Tests for splitting into character units"""

    def test_units_and_text(self):
        tree, splitter, owner = make_splitter('Hello <b>World</b>!')
        result = splitter.split_text(owner)
        assert result.success
        assert result.split_type == SplitType.CHARACTERS
        assert result.element_count == 12
        assert result.line_count == 1
        assert result.original_text == 'Hello World!'
        assert ''.join(tree.text_content(u) for u in result.split_elements) == 'Hello World!'

    def test_captured_style_applied_to_units(self):
        """Characters of the bold word carry the bold style"""
        tree, splitter, owner = make_splitter('Hello <b>World</b>!')
        units = splitter.split_text(owner).split_elements
        assert tree.get_style_property(units[6], 'font-weight') == 'bold'
        assert tree.get_style_property(units[10], 'font-weight') == 'bold'
        assert tree.get_style_property(units[0], 'font-weight') == ''
        assert tree.get_style_property(units[11], 'font-weight') == ''

    def test_unit_attributes(self):
        tree, splitter, owner = make_splitter('Hi there')
        units = splitter.split_text(owner).split_elements
        assert tree.get_attribute(units[0], 'class') == 'split-char'
        assert tree.get_attribute(units[0], 'data-line-index') == '0'
        assert tree.get_style_property(units[0], 'font-size') == '16px'
        assert tree.get_style_property(units[2], 'white-space') == 'pre'

    def test_stable_ids(self):
        tree, splitter, owner = make_splitter('Hello <b>World</b>!')
        units = splitter.split_text(owner).split_elements
        assert tree.get_attribute(units[6], ELEMENT_ID_ATTR) == 'split-char-hero-line0-char6'

    def test_units_live_inside_line_masks(self):
        tree, splitter, owner = make_splitter(PANGRAM, width=100)
        result = splitter.split_text(owner)
        masks = tree.children(owner)
        assert len(masks) == result.line_count == 4
        assert all(tree.get_attribute(m, 'class') == 'split-line-mask' for m in masks)
        line_of_last = tree.get_attribute(result.split_elements[-1], 'data-line-index')
        assert line_of_last == '3'
        assert tree.get_attribute(result.split_elements[-1], ELEMENT_ID_ATTR) == (
            'split-char-hero-line3-char11')


# ============================================================
# Words and lines
# ============================================================

class TestSplitWordsAndLines:
    """Tests for word and line units"""

    def test_words(self):
        tree, splitter, owner = make_splitter('Hello <b>World</b>!')
        result = splitter.split_text(owner, TextProcessingConfig(animate_by='words'))
        assert result.split_type == SplitType.WORDS
        texts = [tree.text_content(u) for u in result.split_elements]
        assert texts == ['Hello', ' ', 'World!']
        assert tree.get_style_property(result.split_elements[2], 'font-weight') == 'bold'
        assert tree.get_attribute(result.split_elements[2], ELEMENT_ID_ATTR) == (
            'split-word-hero-line0-word2')

    def test_lines_keep_styled_markup(self):
        tree, splitter, owner = make_splitter('Hello <b>World</b>!')
        result = splitter.split_text(owner, TextProcessingConfig(animate_by=SplitType.LINES))
        assert result.element_count == 1
        line = result.split_elements[0]
        assert tree.inner_html(line) == 'Hello <span style="font-weight: bold">World</span>!'
        assert tree.get_attribute(line, ELEMENT_ID_ATTR) == 'split-line-hero-line0'

    def test_multi_line_split(self):
        tree, splitter, owner = make_splitter(PANGRAM, width=100)
        result = splitter.split_text(owner, TextProcessingConfig(animate_by='lines'))
        assert [tree.text_content(u) for u in result.split_elements] == [
            "The quick", "brown fox", "jumps over", "the lazy dog"]

    def test_styles_follow_position_map_across_lines(self):
        """Styled text on a later line keeps its style after line breaks drop spaces"""
        markup = 'The quick brown fox jumps over the <em>lazy</em> dog'
        tree, splitter, owner = make_splitter(markup, width=100)
        result = splitter.split_text(owner, TextProcessingConfig(animate_by='words'))
        styled = [tree.text_content(u) for u in result.split_elements
                  if tree.get_style_property(u, 'font-style') == 'italic']
        assert styled == ['lazy']

    def test_mask_lines(self):
        tree, splitter, owner = make_splitter('Hello world')
        splitter.split_text(owner, TextProcessingConfig(mask_lines=True))
        mask = tree.children(owner)[0]
        assert tree.get_style_property(mask, 'overflow') == 'hidden'

    def test_unmasked_lines_visible(self):
        tree, splitter, owner = make_splitter('Hello world')
        splitter.split_text(owner)
        mask = tree.children(owner)[0]
        assert tree.get_style_property(mask, 'overflow') == 'visible'

    @pytest.mark.parametrize("animate_by", ['characters', 'lines'])
    def test_markup_characters_survive(self, animate_by):
        """Text holding < and & is split as text, never parsed as tags"""
        tree, splitter, owner = make_splitter('a &lt;b&gt; &amp; c')
        result = splitter.split_text(owner, TextProcessingConfig(animate_by=animate_by))
        assert result.success
        assert ''.join(tree.text_content(u) for u in result.split_elements) == 'a <b> & c'

    def test_failed_restyle_keeps_text(self):
        tree, splitter, owner = make_splitter('x &lt; <b>y</b>')
        with patch.object(splitter.styles, 'to_css_string', side_effect=RuntimeError("no css")):
            result = splitter.split_text(owner, TextProcessingConfig(animate_by='lines'))
        assert result.success
        assert tree.text_content(result.split_elements[0]) == 'x < y'

    def test_div_units(self):
        tree, splitter, owner = make_splitter('ab')
        result = splitter.split_text(owner, TextProcessingConfig(wrap_in_spans=False))
        assert [tree.tag_name(u) for u in result.split_elements] == ['div', 'div']


# ============================================================
# Failures
# ============================================================

class TestSplitFailures:
    """Tests for split_text failure results"""

    def test_disabled(self):
        tree, splitter, owner = make_splitter('Hello')
        result = splitter.split_text(owner, TextProcessingConfig(enabled=False))
        assert not result.success
        assert result.error == "Invalid input or disabled"
        assert tree.inner_html(owner) == 'Hello'

    def test_none_element(self):
        _, splitter, _ = make_splitter('Hello')
        assert not splitter.split_text(None).success

    def test_blank_text(self):
        _, splitter, owner = make_splitter('   ')
        result = splitter.split_text(owner)
        assert not result.success
        assert result.error == "No text content"

    def test_unknown_split_type(self):
        _, splitter, owner = make_splitter('Hello')
        result = splitter.split_text(owner, TextProcessingConfig(animate_by='sentences'))
        assert not result.success
        assert 'sentences' in result.error


# ============================================================
# Element ids, callbacks, re-split and cleanup
# ============================================================

class TestLifecycle:
    """Tests for ids, notification, resplit and cleanup"""

    def test_generated_element_id(self):
        tree, splitter, owner = make_splitter('Hello', element_id=None)
        result = splitter.split_text(owner)
        assert result.element_id.startswith('split-text-')
        assert tree.get_attribute(owner, ELEMENT_ID_ATTR) == result.element_id

    def test_id_attribute_used(self):
        tree, splitter, owner = make_splitter('Hello', element_id=None)
        tree.set_attribute(owner, 'id', 'title')
        assert splitter.split_text(owner).element_id == 'title'

    def test_callback_notified(self):
        _, splitter, owner = make_splitter('Hello world')
        received = []
        assert splitter.register_split_complete_callback(
            'hero', lambda units, split_type: received.append((len(units), split_type)))
        result = splitter.split_text(owner, TextProcessingConfig(animate_by='words'))
        assert received == [(3, SplitType.WORDS)]
        assert result.notification.success

    def test_no_callback_no_notification(self):
        _, splitter, owner = make_splitter('Hello world')
        result = splitter.split_text(owner)
        assert result.notification is None
        assert splitter.callbacks.get_stats().total_notifications == 0

    def test_failing_callback_does_not_fail_split(self):
        _, splitter, owner = make_splitter('Hello world')

        def boom(units, split_type):
            raise RuntimeError("consumer broke")
        splitter.register_split_complete_callback('hero', boom)
        result = splitter.split_text(owner)
        assert result.success
        assert not result.notification.success
        assert result.notification.error == "consumer broke"

    def test_unregister_callback(self):
        _, splitter, owner = make_splitter('Hello')
        splitter.register_split_complete_callback('hero', lambda units, split_type: None)
        assert splitter.unregister_split_complete_callback('hero')
        assert splitter.split_text(owner).notification is None

    def test_split_twice_is_repeatable(self):
        """A second split starts again from the original markup"""
        tree, splitter, owner = make_splitter('Hello <b>World</b>!')
        first = splitter.split_text(owner)
        second = splitter.split_text(owner)
        assert second.element_count == first.element_count
        assert tree.get_style_property(second.split_elements[6], 'font-weight') == 'bold'

    def test_resplit_uses_stored_config(self):
        tree, splitter, owner = make_splitter(PANGRAM, width=100)
        splitter.split_text(owner, TextProcessingConfig(animate_by='lines'))
        result = splitter.resplit(owner)
        assert result.success
        assert result.split_type == SplitType.LINES
        assert result.line_count == 4

    def test_resplit_detached(self):
        tree = HtmlStyledTree()
        element = tree.create_element('div')
        tree.set_text(element, 'floating')
        splitter = TextSplitter(tree, debug=False)
        result = splitter.resplit(element)
        assert not result.success
        assert result.error == "Element not connected"

    def test_cleanup_restores_markup(self):
        tree, splitter, owner = make_splitter('Hello <b>World</b>!')
        splitter.split_text(owner)
        assert splitter.positions.has('hero')
        assert splitter.cleanup_split_text(owner)
        assert tree.inner_html(owner) == 'Hello <b>World</b>!'
        assert not splitter.positions.has('hero')
        assert not splitter.styles.has_element_styles('hero')
        assert not splitter.cleanup_split_text(owner)

    def test_debug_summary_and_dispose(self):
        _, splitter, owner = make_splitter('Hello <b>World</b>!')
        splitter.register_split_complete_callback('hero', lambda units, split_type: None)
        splitter.split_text(owner)
        summary = splitter.get_debug_summary()
        assert summary == {
            'tracked_elements': 1,
            'registered_callbacks': 1,
            'stored_maps': 1,
            'style_segments': 1,
        }
        splitter.dispose()
        assert splitter.get_debug_summary() == {
            'tracked_elements': 0,
            'registered_callbacks': 0,
            'stored_maps': 0,
            'style_segments': 0,
        }

    @pytest.mark.parametrize("animate_by", ['characters', 'words', 'lines'])
    def test_text_preserved_for_every_unit_kind(self, animate_by):
        tree, splitter, owner = make_splitter(PANGRAM, width=100)
        result = splitter.split_text(owner, TextProcessingConfig(animate_by=animate_by))
        joined = ''.join(tree.text_content(u) for u in result.split_elements)
        # Line breaks drop the spaces they replace
        assert ''.join(joined.split()) == ''.join(PANGRAM.split())
