"""
Presentation of rendered fragments.

A :class:`Theme` maps every fragment role to a :class:`Style` and carries
the glyphs used for bullets, ordered-list markers and image placeholders.
Themes are plain values: the same fragments can be re-rendered with any
theme without parsing the book again. Escape sequences come from rich.
"""

import json
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, TypeVar

from rich.color import ColorParseError, ColorSystem
from rich.style import Style as RichStyle

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

T = TypeVar("T", bound="Theme")

ROLES = (
    "heading1",
    "heading2",
    "heading3",
    "heading4",
    "heading5",
    "heading6",
    "paragraph",
    "code",
    "list_item",
    "image",
    "emphasis",
    "strong",
    "inline_code",
    "link",
)


@dataclass(frozen=True)
class Style:
    """Terminal presentation attributes for one role.

    Attributes:
        bold: Bold weight
        italic: Italic
        underline: Underline
        foreground: Any rich color (``#rrggbb``, ``color(60)``, ``red``),
            None for the terminal default
        background: Same format as ``foreground``
        padding: Spaces added on both sides of every line
        prefix: Text placed before the styled text (unstyled)
        suffix: Text placed after the styled text (unstyled)
    """

    bold: bool = False
    italic: bool = False
    underline: bool = False
    foreground: str | None = None
    background: str | None = None
    padding: int = 0
    prefix: str = ""
    suffix: str = ""

    def __post_init__(self) -> None:
        if self.padding < 0:
            raise ValueError(f"padding must be non-negative, got {self.padding}")
        self.to_rich()

    def to_rich(self) -> RichStyle:
        """Return the equivalent rich style.

        Raises:
            ValueError: If a color cannot be parsed.
        """
        try:
            return RichStyle(
                bold=self.bold,
                italic=self.italic,
                underline=self.underline,
                color=self.foreground,
                bgcolor=self.background,
            )
        except ColorParseError as e:
            raise ValueError(f"Invalid color: {e}") from e

    def render(self, text: str) -> str:
        """Apply the style to ``text``, line by line."""
        rich_style = self.to_rich()
        pad = " " * self.padding
        lines = [
            rich_style.render(f"{pad}{line}{pad}", color_system=ColorSystem.TRUECOLOR)
            for line in text.split("\n")
        ]
        return self.prefix + "\n".join(lines) + self.suffix

    def to_dict(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass
class Theme:
    """
    Role-to-style mapping plus list and image glyphs.

    Attributes:
        styles: Role name to :class:`Style`; missing roles render unstyled
        bullet: Marker for unordered list items
        ordered_marker: Format string for ordered items, ``{n}`` is the ordinal
        indent: Spaces per nesting level of lists
        image_placeholder: Format string for images with alt text (``{alt}``)
        image_placeholder_bare: Text for images without alt text
    """

    styles: dict[str, Style] = field(default_factory=dict)
    bullet: str = "•"
    ordered_marker: str = "{n}."
    indent: int = 2
    image_placeholder: str = "[image: {alt}]"
    image_placeholder_bare: str = "[image]"

    def __post_init__(self) -> None:
        styles = {}
        for role, style in self.styles.items():
            if role not in ROLES:
                raise ValueError(f"Unknown style role: {role!r}")
            styles[role] = style if isinstance(style, Style) else Style(**style)
        self.styles = styles

        if self.indent < 0:
            raise ValueError(f"indent must be non-negative, got {self.indent}")
        if "{n}" not in self.ordered_marker:
            raise ValueError("ordered_marker must contain '{n}'")

    def style(self, role: str) -> Style:
        return self.styles.get(role) or _PLAIN_STYLE

    @classmethod
    def default(cls: type[T]) -> T:
        """Colored theme for dark terminals."""
        heading = Style(bold=True, foreground="color(60)")
        code = "#458588"
        return cls(
            styles={
                "heading1": Style(bold=True, foreground="#cc241d"),
                "heading2": Style(bold=True, foreground="#98971a"),
                "heading3": Style(bold=True, foreground="#b16286"),
                "heading4": heading,
                "heading5": heading,
                "heading6": heading,
                "paragraph": Style(foreground="#ffffff"),
                "code": Style(foreground=code, background="#1d2021", padding=1),
                "image": Style(italic=True, foreground="color(245)"),
                "emphasis": Style(italic=True),
                "strong": Style(bold=True),
                "inline_code": Style(foreground=code),
                "link": Style(underline=True, foreground="#83a598"),
            }
        )

    @classmethod
    def plain(cls: type[T]) -> T:
        """Theme without any escape sequences."""
        return cls()

    @classmethod
    def from_dict(cls: type[T], config_dict: dict[str, Any]) -> T:
        """
        Create a theme from a dictionary.

        Args:
            config_dict: Theme fields; ``styles`` values may be dicts.

        Returns:
            Theme instance.
        """
        return cls(**config_dict)

    @classmethod
    def from_json(cls: type[T], json_path: str | Path) -> T:
        """
        Load a theme from a JSON file.

        Raises:
            FileNotFoundError: If the JSON file doesn't exist.
            json.JSONDecodeError: If the JSON file is invalid.
        """
        path = Path(json_path)
        with path.open("r", encoding="utf-8") as f:
            config_dict = json.load(f)
        return cls.from_dict(config_dict)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["styles"] = {role: style.to_dict() for role, style in self.styles.items()}
        return data

    def to_json(self, json_path: str | Path, indent: int = 2) -> None:
        path = Path(json_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=indent, ensure_ascii=False)


_PLAIN_STYLE = Style()

_SPAN_ROLES = {
    "emphasis": "emphasis",
    "strong": "strong",
    "code": "inline_code",
    "link": "link",
}


def _image_text(theme: Theme, alt: str | None) -> str:
    if alt:
        return theme.image_placeholder.format(alt=alt)
    return theme.image_placeholder_bare


def _format_span(span: Span, theme: Theme) -> str:
    if span.role == "break":
        return "\n"
    if span.role == "image":
        return theme.style("image").render(_image_text(theme, span.text or None))
    if span.role in _SPAN_ROLES:
        return theme.style(_SPAN_ROLES[span.role]).render(span.text)
    return theme.style("paragraph").render(span.text)


def format_fragment(fragment: Fragment, theme: Theme) -> str:
    """Render a single fragment to text using ``theme``."""
    if isinstance(fragment, BlockSeparator):
        return "\n"
    if isinstance(fragment, Heading):
        return theme.style(f"heading{fragment.level}").render(fragment.text) + "\n"
    if isinstance(fragment, Paragraph):
        return "".join(_format_span(span, theme) for span in fragment.spans) + "\n"
    if isinstance(fragment, CodeBlock):
        return theme.style("code").render(fragment.text) + "\n"
    if isinstance(fragment, ListItem):
        if fragment.ordered:
            marker = theme.ordered_marker.format(n=fragment.ordinal)
        else:
            marker = theme.bullet
        indent = " " * (theme.indent * fragment.depth)
        return f"{indent}{marker} {theme.style('list_item').render(fragment.text)}\n"
    if isinstance(fragment, ImagePlaceholder):
        return theme.style("image").render(_image_text(theme, fragment.alt)) + "\n"
    raise TypeError(f"Unknown fragment: {fragment!r}")


def format_fragments(fragments: list[Fragment], theme: Theme | None = None) -> str:
    """Render fragments in order and concatenate the result.

    Args:
        fragments: Output of :func:`~epub_text.render.render_fragments`
        theme: Theme to apply; :meth:`Theme.default` if None
    """
    theme = theme if theme is not None else Theme.default()
    return "".join(format_fragment(fragment, theme) for fragment in fragments)
