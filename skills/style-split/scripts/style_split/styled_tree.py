"""
ABOUTME: StyledTree capability used by every style-split service
ABOUTME: HtmlStyledTree implements it over lxml.html with a deterministic layout model
"""

import html as html_lib
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

import lxml.html
from lxml import etree

from text_utils import sanitize_xml_string

from .common import Rect
from .css import (
    INITIAL_VALUES,
    cascade,
    format_px,
    get_style_property as _get_style_property,
    set_style_property as _set_style_property,
)
from .layout import InlineLayout, LayoutResult, TextMetrics


class StyledTree(ABC):
    """
    Live styled content tree: markup, computed styles and geometry.

    Nodes are opaque to the services; they only ever hand nodes back to the
    tree that produced them.
    """

    @property
    @abstractmethod
    def root(self):
        """Top element of the tree"""

    # Content

    @abstractmethod
    def text_content(self, node) -> str:
        ...

    @abstractmethod
    def inner_html(self, node) -> str:
        ...

    @abstractmethod
    def set_inner_html(self, node, markup: str) -> None:
        ...

    @abstractmethod
    def set_text(self, node, text: str) -> None:
        ...

    @abstractmethod
    def clear(self, node) -> None:
        ...

    # Structure

    @abstractmethod
    def create_element(self, tag: str):
        ...

    @abstractmethod
    def append_child(self, parent, child) -> None:
        ...

    @abstractmethod
    def insert_before(self, reference, new_node) -> None:
        ...

    @abstractmethod
    def remove(self, node) -> None:
        """Detach node from its parent; its tail text stays in place"""

    @abstractmethod
    def parent(self, node):
        ...

    @abstractmethod
    def children(self, node) -> List:
        ...

    @abstractmethod
    def descendants(self, node) -> List:
        ...

    @abstractmethod
    def tag_name(self, node) -> str:
        ...

    # Attributes and inline style

    @abstractmethod
    def get_attribute(self, node, name: str, default: Optional[str] = None) -> Optional[str]:
        ...

    @abstractmethod
    def set_attribute(self, node, name: str, value) -> None:
        ...

    @abstractmethod
    def remove_attribute(self, node, name: str) -> None:
        ...

    @abstractmethod
    def attributes(self, node) -> Dict[str, str]:
        ...

    @abstractmethod
    def set_style_property(self, node, prop: str, value: str) -> None:
        ...

    @abstractmethod
    def get_style_property(self, node, prop: str) -> str:
        ...

    # Style and geometry

    @abstractmethod
    def computed_style(self, node) -> Dict[str, str]:
        ...

    @abstractmethod
    def bounding_rect(self, node) -> Rect:
        ...

    @abstractmethod
    def scroll_height(self, node) -> float:
        ...

    @abstractmethod
    def is_connected(self, node) -> bool:
        ...

    @abstractmethod
    def reflow(self) -> None:
        """Force a synchronous layout recomputation"""


class HtmlStyledTree(StyledTree):
    """
    StyledTree over an lxml.html element tree.

    Geometry comes from InlineLayout; every geometry query runs a fresh
    layout pass and bumps layout_passes, mirroring a forced reflow.

    Usage:
        tree = HtmlStyledTree('<p>Hello <b>World</b>!</p>', width=320)
        para = tree.children(tree.root)[0]
        tree.bounding_rect(para)
    """

    def __init__(self, markup: str = '', width: float = 600.0, font_size: float = 16.0,
                 font_family: str = "system-ui, sans-serif", color: str = "rgb(0, 0, 0)",
                 line_height_ratio: float = 1.2, char_width_ratio: float = 0.5,
                 stylesheet: Optional[Dict[str, Dict[str, str]]] = None,
                 root_tag: str = 'div'):
        self.width = float(width)
        self.font_size = float(font_size)
        self.stylesheet = stylesheet or {}
        self.metrics = TextMetrics(char_width_ratio=char_width_ratio,
                                   line_height_ratio=line_height_ratio)
        self.layout_passes = 0

        self._root = lxml.html.Element(root_tag)
        self._root_style = dict(INITIAL_VALUES)
        self._root_style.update({
            'display': 'block',
            'width': format_px(self.width),
            'color': color,
            'font-family': font_family,
            'font-size': format_px(self.font_size),
            'font-weight': '400',
            'font-style': 'normal',
            'line-height': 'normal',
            'letter-spacing': 'normal',
            'word-spacing': '0px',
            'text-transform': 'none',
            'text-shadow': 'none',
            'white-space': 'normal',
        })
        if markup:
            self.set_inner_html(self._root, markup)

    @property
    def root(self):
        return self._root

    # ============================================================
    # Content
    # ============================================================

    def text_content(self, node) -> str:
        return etree.tostring(node, method='text', encoding='unicode', with_tail=False)

    def inner_html(self, node) -> str:
        parts = [html_lib.escape(node.text or '', quote=False)]
        for child in node:
            parts.append(etree.tostring(child, method='html', encoding='unicode',
                                        with_tail=True))
        return ''.join(parts)

    def set_inner_html(self, node, markup: str) -> None:
        self.clear(node)
        markup = sanitize_xml_string(markup or '')
        if not markup.strip():
            # libxml2 drops whitespace-only fragments
            node.text = markup or None
            return
        wrapper = lxml.html.fragment_fromstring(markup, create_parent='div')
        node.text = wrapper.text
        for child in list(wrapper):
            node.append(child)

    def set_text(self, node, text: str) -> None:
        self.clear(node)
        node.text = sanitize_xml_string(text) or None

    def clear(self, node) -> None:
        node.text = None
        for child in list(node):
            node.remove(child)

    # ============================================================
    # Structure
    # ============================================================

    def create_element(self, tag: str):
        return lxml.html.Element(tag)

    def append_child(self, parent, child) -> None:
        parent.append(child)

    def insert_before(self, reference, new_node) -> None:
        parent = reference.getparent()
        if parent is None:
            raise ValueError("Reference node has no parent")
        parent.insert(parent.index(reference), new_node)

    def remove(self, node) -> None:
        parent = node.getparent()
        if parent is None:
            return
        if node.tail:
            previous = node.getprevious()
            if previous is not None:
                previous.tail = (previous.tail or '') + node.tail
            else:
                parent.text = (parent.text or '') + node.tail
            node.tail = None
        parent.remove(node)

    def parent(self, node):
        return node.getparent()

    def children(self, node) -> List:
        return [child for child in node if isinstance(child.tag, str)]

    def descendants(self, node) -> List:
        return [d for d in node.iterdescendants() if isinstance(d.tag, str)]

    def tag_name(self, node) -> str:
        return node.tag.lower() if isinstance(node.tag, str) else ''

    # ============================================================
    # Attributes
    # ============================================================

    def get_attribute(self, node, name: str, default: Optional[str] = None) -> Optional[str]:
        return node.get(name, default)

    def set_attribute(self, node, name: str, value) -> None:
        node.set(name, sanitize_xml_string(str(value)))

    def remove_attribute(self, node, name: str) -> None:
        if name in node.attrib:
            del node.attrib[name]

    def attributes(self, node) -> Dict[str, str]:
        return dict(node.attrib)

    def set_style_property(self, node, prop: str, value: str) -> None:
        node.set('style', _set_style_property(node.get('style', ''), prop, value))

    def get_style_property(self, node, prop: str) -> str:
        return _get_style_property(node.get('style', ''), prop)

    # ============================================================
    # Style and geometry
    # ============================================================

    def computed_style(self, node) -> Dict[str, str]:
        if node is self._root:
            return dict(self._root_style)

        chain = []
        current = node
        while current is not None and current is not self._root:
            chain.append(current)
            current = current.getparent()
        # Detached subtrees inherit from the root defaults as if inserted
        style = self._root_style
        for element in reversed(chain):
            style = self._style_of(element, style)
        return style

    def bounding_rect(self, node) -> Rect:
        if not self.is_connected(node):
            return Rect()
        layout = self._layout()
        return layout.rects.get(node, Rect())

    def scroll_height(self, node) -> float:
        if not self.is_connected(node):
            return 0.0
        layout = self._layout()
        if node is self._root:
            return layout.content_height
        return layout.rects.get(node, Rect()).height

    def is_connected(self, node) -> bool:
        current = node
        while current is not None:
            if current is self._root:
                return True
            current = current.getparent()
        return False

    def reflow(self) -> None:
        self._layout()

    def line_count(self) -> int:
        """Number of rendered lines in the whole tree"""
        return self._layout().line_count

    def _style_of(self, element, parent_style: Dict[str, str]) -> Dict[str, str]:
        return cascade(
            parent_style,
            self.tag_name(element),
            element.get('class', ''),
            element.get('style', ''),
            self.stylesheet,
            self.font_size,
        )

    def _layout(self) -> LayoutResult:
        self.layout_passes += 1
        layout = InlineLayout(self.metrics, self.width, self._style_of, self.text_content)
        return layout.run(self._root, self._root_style)
