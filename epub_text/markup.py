"""Permissive (X)HTML parsing into a small owned node tree.

BeautifulSoup does the tolerant parsing; the result is then copied into
plain :class:`Element`/:class:`Text` nodes, classifying every tag exactly
once into a :class:`TagKind`. Comments, doctypes and processing
instructions are dropped at this point.
"""

import re
from dataclasses import dataclass, field
from enum import Enum

from bs4 import BeautifulSoup, NavigableString, Tag
from bs4.builder import ParserRejectedMarkup
from bs4.element import CData, Comment, Declaration, Doctype, ProcessingInstruction

from .errors import MalformedMarkupError, MissingRootError

BODY_TAG = "body"

_HEADING_RE = re.compile(r"^h(\d+)$")
_IGNORED_STRINGS = (Comment, Declaration, Doctype, ProcessingInstruction)


class TagKind(Enum):
    HEADING = "heading"
    PARAGRAPH = "paragraph"
    CODE = "code"
    PRE = "pre"
    LIST_UNORDERED = "list_unordered"
    LIST_ORDERED = "list_ordered"
    LIST_ITEM = "list_item"
    IMAGE = "image"
    ANCHOR = "anchor"
    EMPHASIS = "emphasis"
    STRONG = "strong"
    BREAK = "break"
    SKIP = "skip"
    OTHER = "other"


_TAG_KINDS: dict[str, TagKind] = {
    "p": TagKind.PARAGRAPH,
    "code": TagKind.CODE,
    "kbd": TagKind.CODE,
    "samp": TagKind.CODE,
    "tt": TagKind.CODE,
    "pre": TagKind.PRE,
    "ul": TagKind.LIST_UNORDERED,
    "ol": TagKind.LIST_ORDERED,
    "li": TagKind.LIST_ITEM,
    "img": TagKind.IMAGE,
    "a": TagKind.ANCHOR,
    "em": TagKind.EMPHASIS,
    "i": TagKind.EMPHASIS,
    "cite": TagKind.EMPHASIS,
    "dfn": TagKind.EMPHASIS,
    "strong": TagKind.STRONG,
    "b": TagKind.STRONG,
    "br": TagKind.BREAK,
    "script": TagKind.SKIP,
    "style": TagKind.SKIP,
}


def classify(tag: str) -> tuple[TagKind, int | None]:
    """Return the kind of a tag name and, for headings, its level.

    Only ``h1`` through ``h6`` are headings; ``h0``, ``h7`` or ``hx`` are
    :attr:`TagKind.OTHER`.
    """
    name = tag.lower()
    # Drop any namespace prefix such as "xhtml:p"
    if ":" in name:
        name = name.rsplit(":", 1)[1]

    match = _HEADING_RE.match(name)
    if match:
        level = int(match.group(1))
        if 1 <= level <= 6:
            return TagKind.HEADING, level
        return TagKind.OTHER, None

    return _TAG_KINDS.get(name, TagKind.OTHER), None


@dataclass(frozen=True)
class Text:
    data: str


@dataclass(frozen=True)
class Element:
    tag: str
    kind: TagKind
    attrs: dict[str, str] = field(default_factory=dict)
    children: tuple["Node", ...] = ()
    level: int | None = None

    def get(self, name: str, default: str | None = None) -> str | None:
        return self.attrs.get(name, default)


Node = Element | Text


def _attr_value(value) -> str:
    # bs4 returns multi-valued attributes such as class as lists
    if isinstance(value, (list, tuple)):
        return " ".join(value)
    return str(value)


def _convert(tag: Tag) -> Element:
    children: list[Node] = []
    for child in tag.children:
        if isinstance(child, Tag):
            children.append(_convert(child))
        elif isinstance(child, CData):
            children.append(Text(str(child)))
        elif isinstance(child, _IGNORED_STRINGS):
            continue
        elif isinstance(child, NavigableString):
            children.append(Text(str(child)))

    kind, level = classify(tag.name)
    return Element(
        tag=tag.name.lower(),
        kind=kind,
        attrs={k.lower(): _attr_value(v) for k, v in tag.attrs.items()},
        children=tuple(children),
        level=level,
    )


def parse_markup(markup: bytes | str) -> Element:
    """Parse a content document into a node tree.

    Malformed tags do not abort parsing; unknown tags become
    :attr:`TagKind.OTHER` elements.

    Args:
        markup: Raw document bytes (encoding is sniffed) or text

    Returns:
        The document root element (tag ``[document]``)

    Raises:
        MalformedMarkupError: If the parser rejects the input outright.
    """
    try:
        soup = BeautifulSoup(markup, "html.parser")
    except (ParserRejectedMarkup, AssertionError, UnicodeDecodeError) as e:
        raise MalformedMarkupError(f"Failed to parse HTML: {e}") from e
    return _convert(soup)


def find_body(node: Node) -> Element:
    """Return the first ``body`` element in depth-first pre-order.

    Raises:
        MissingRootError: If the tree has no ``body`` element.
    """
    stack: list[Node] = [node]
    while stack:
        current = stack.pop()
        if isinstance(current, Element):
            if current.tag == BODY_TAG:
                return current
            stack.extend(reversed(current.children))
    raise MissingRootError("no <body> tag found")


def descendant_text(node: Node, exclude: frozenset[TagKind] = frozenset()) -> str:
    """Concatenate the trimmed text of every descendant text node.

    Each text node is stripped on its own, empty ones are dropped, and the
    rest are joined with single spaces. Subtrees whose kind is in
    ``exclude`` are not entered.
    """
    parts: list[str] = []

    def walk(current: Node) -> None:
        if isinstance(current, Text):
            text = current.data.strip()
            if text:
                parts.append(text)
            return
        if current.kind is TagKind.SKIP:
            return
        for child in current.children:
            if isinstance(child, Element) and child.kind in exclude:
                continue
            walk(child)

    walk(node)
    return " ".join(parts).strip()


def raw_text(node: Node) -> str:
    """Concatenate descendant text exactly as written."""
    if isinstance(node, Text):
        return node.data
    if node.kind is TagKind.BREAK:
        return "\n"
    return "".join(raw_text(child) for child in node.children)
