"""Role-tagged output of the renderer.

Fragments say *what* a piece of text is; a theme decides how it looks.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class Span:
    """A run of inline text inside a paragraph.

    ``role`` is one of ``text``, ``emphasis``, ``strong``, ``code``,
    ``link``, ``image`` or ``break``.
    """

    role: str
    text: str = ""
    href: str | None = None


@dataclass(frozen=True)
class Heading:
    level: int
    text: str


@dataclass(frozen=True)
class Paragraph:
    spans: tuple[Span, ...]

    @property
    def text(self) -> str:
        return "".join(span.text for span in self.spans)


@dataclass(frozen=True)
class CodeBlock:
    text: str


@dataclass(frozen=True)
class ListItem:
    """One list entry; ``ordinal`` is its 1-based position for ordered lists."""

    text: str
    ordered: bool
    ordinal: int
    depth: int = 0


@dataclass(frozen=True)
class ImagePlaceholder:
    alt: str | None = None


@dataclass(frozen=True)
class BlockSeparator:
    pass


Fragment = Heading | Paragraph | CodeBlock | ListItem | ImagePlaceholder | BlockSeparator
