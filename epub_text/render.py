"""Turn a content document tree into role-tagged fragments.

The renderer decides *what* each piece of text is (a level-2 heading, a
list item at depth 1, an emphasised span, ...). How it looks is left to a
:class:`~epub_text.styles.Theme`, applied by :func:`format_fragments`.
"""

import re

from .fragments import (
    BlockSeparator,
    CodeBlock,
    Fragment,
    Heading,
    ImagePlaceholder,
    ListItem,
    Paragraph,
    Span,
)
from .markup import (
    Element,
    Node,
    TagKind,
    Text,
    descendant_text,
    find_body,
    parse_markup,
    raw_text,
)
from .styles import Theme, format_fragments

_WHITESPACE_RE = re.compile(r"\s+")
_LIST_KINDS = frozenset({TagKind.LIST_UNORDERED, TagKind.LIST_ORDERED})

_INLINE_ROLES = {
    TagKind.EMPHASIS: "emphasis",
    TagKind.STRONG: "strong",
    TagKind.CODE: "code",
    TagKind.ANCHOR: "link",
}


def _alt_text(element: Element) -> str | None:
    alt = (element.get("alt") or "").strip()
    return alt or None


def _list_start(element: Element) -> int:
    try:
        return int((element.get("start") or "1").strip())
    except ValueError:
        return 1


def _images(node: Element, exclude: frozenset[TagKind] = frozenset()) -> list[Element]:
    """Image elements below ``node`` in document order."""
    found: list[Element] = []

    def walk(current: Node) -> None:
        if not isinstance(current, Element):
            return
        if current.kind is TagKind.IMAGE:
            found.append(current)
            return
        if current.kind is TagKind.SKIP or current.kind in exclude:
            return
        for child in current.children:
            walk(child)

    for child in node.children:
        walk(child)
    return found


def _code_text(element: Element) -> str:
    text = raw_text(element)
    # Keep indentation, drop blank leading/trailing lines
    lines = text.split("\n")
    while lines and not lines[0].strip():
        lines.pop(0)
    while lines and not lines[-1].strip():
        lines.pop()
    return "\n".join(line.rstrip() for line in lines)


def _inline_spans(element: Element) -> list[Span]:
    spans: list[Span] = []

    def walk(node: Node) -> None:
        if isinstance(node, Text):
            text = _WHITESPACE_RE.sub(" ", node.data)
            if text:
                spans.append(Span("text", text))
            return

        kind = node.kind
        if kind in _INLINE_ROLES:
            text = descendant_text(node)
            raw = raw_text(node)
            if text:
                # "a<em> b</em>" keeps the space that sits inside the tag
                if raw[:1].isspace():
                    spans.append(Span("text", " "))
                href = node.get("href") if kind is TagKind.ANCHOR else None
                spans.append(Span(_INLINE_ROLES[kind], text, href))
            # A linked image has no text of its own but still gets a placeholder
            for image in _images(node):
                spans.append(Span("image", _alt_text(image) or ""))
            if text and raw[-1:].isspace():
                spans.append(Span("text", " "))
        elif kind is TagKind.IMAGE:
            spans.append(Span("image", _alt_text(node) or ""))
        elif kind is TagKind.BREAK:
            spans.append(Span("break", "\n"))
        elif kind is TagKind.SKIP:
            return
        else:
            for child in node.children:
                walk(child)

    for child in element.children:
        walk(child)
    return _trim_spans(spans)


def _trim_spans(spans: list[Span]) -> list[Span]:
    """Collapse doubled spaces across span edges and trim the paragraph."""
    result: list[Span] = []
    for span in spans:
        if span.role == "text":
            text = span.text
            if not result or result[-1].role == "break" or result[-1].text.endswith(" "):
                text = text.lstrip(" ")
            if not text:
                continue
            span = Span("text", text)
        elif span.role == "break" and result and result[-1].role == "text":
            stripped = result[-1].text.rstrip(" ")
            if stripped:
                result[-1] = Span("text", stripped)
            else:
                result.pop()
        result.append(span)

    while result and result[-1].role == "text" and not result[-1].text.strip():
        result.pop()
    if result and result[-1].role == "text":
        result[-1] = Span("text", result[-1].text.rstrip(" "))
    while result and result[-1].role == "break":
        result.pop()
    while result and result[0].role == "break":
        result.pop(0)
    return result


class _Walker:
    """Collects fragments from a single body element."""

    def __init__(self) -> None:
        self.fragments: list[Fragment] = []

    def emit(self, *fragments: Fragment) -> None:
        self.fragments.extend(fragments)

    def visit(self, node: Node) -> None:
        # Loose text outside a recognised block is not rendered
        if isinstance(node, Text):
            return

        kind = node.kind
        if kind is TagKind.HEADING:
            text = descendant_text(node)
            images = _images(node)
            if text or not images:
                self.emit(Heading(node.level, text))
            self.emit(*(ImagePlaceholder(_alt_text(image)) for image in images))
            self.emit(BlockSeparator())
        elif kind is TagKind.PARAGRAPH:
            spans = _inline_spans(node)
            if any(span.text.strip() or span.role == "image" for span in spans):
                self.emit(Paragraph(tuple(spans)), BlockSeparator())
        elif kind in (TagKind.PRE, TagKind.CODE):
            self.emit(CodeBlock(_code_text(node)), BlockSeparator())
        elif kind in _LIST_KINDS:
            self.visit_list(node, depth=0)
            self.emit(BlockSeparator())
        elif kind is TagKind.IMAGE:
            self.emit(ImagePlaceholder(_alt_text(node)), BlockSeparator())
        elif kind in (TagKind.BREAK, TagKind.SKIP):
            return
        else:
            for child in node.children:
                self.visit(child)

    def visit_list(self, node: Element, depth: int) -> None:
        ordered = node.kind is TagKind.LIST_ORDERED
        ordinal = _list_start(node) if ordered else 1
        for child in node.children:
            if not isinstance(child, Element) or child.kind is not TagKind.LIST_ITEM:
                continue
            text = descendant_text(child, exclude=_LIST_KINDS)
            self.emit(ListItem(text, ordered, ordinal, depth))
            for image in _images(child, exclude=_LIST_KINDS):
                self.emit(ImagePlaceholder(_alt_text(image)))
            ordinal += 1
            for nested in _nested_lists(child):
                self.visit_list(nested, depth + 1)


def _nested_lists(item: Element) -> list[Element]:
    """Lists inside a list item, not counting lists nested deeper still."""
    found: list[Element] = []

    def walk(node: Node) -> None:
        if not isinstance(node, Element):
            return
        if node.kind in _LIST_KINDS:
            found.append(node)
            return
        for child in node.children:
            walk(child)

    for child in item.children:
        walk(child)
    return found


def render_tree(body: Element) -> list[Fragment]:
    """Render an already-located body element into fragments."""
    walker = _Walker()
    for child in body.children:
        walker.visit(child)
    return walker.fragments


def render_fragments(markup: bytes | str) -> list[Fragment]:
    """Parse a content document and render its body into fragments.

    Raises:
        MalformedMarkupError: If the markup cannot be parsed at all.
        MissingRootError: If the document has no ``body`` element.
    """
    return render_tree(find_body(parse_markup(markup)))


def render_document(markup: bytes | str, theme: Theme | None = None) -> str:
    """Render a content document to styled text.

    Args:
        markup: Raw content document
        theme: :class:`~epub_text.styles.Theme`; the default theme if None

    Returns:
        The styled text of the document body
    """
    return format_fragments(render_fragments(markup), theme)
