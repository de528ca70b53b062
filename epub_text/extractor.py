"""EPUB text extraction pipeline.

archive -> container.xml -> package document -> render each spine entry ->
concatenate. Failures before the spine is known abort the extraction;
failures inside a single spine entry only drop that entry.
"""

import json
import sys
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, TypeVar

from .archive import Archive, open_archive
from .descriptors import Metadata, PackageDescriptor, parse_package, resolve_container
from .errors import ExtractionError, FatalExtractionError
from .fragments import Fragment
from .render import render_fragments
from .styles import Theme, format_fragments

T = TypeVar("T", bound="ExtractorConfig")


@dataclass
class ExtractorConfig:
    """
    Configuration for :func:`extract`.

    Attributes:
        verbose: Print progress and skipped entries.
        fix_text: Repair mojibake in metadata with ftfy.
        workers: Threads used to render content documents; 1 renders inline.
        theme: Theme (or theme dict) used for ``Document.text``;
            the default theme if None.
    """

    verbose: bool = False
    fix_text: bool = True
    workers: int = 1
    theme: Theme | dict[str, Any] | None = None

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if self.workers < 1:
            raise ValueError(f"workers must be at least 1, got {self.workers}")
        if isinstance(self.theme, dict):
            self.theme = Theme.from_dict(self.theme)

    @classmethod
    def from_dict(cls: type[T], config_dict: dict[str, Any]) -> T:
        """
        Create a configuration instance from a dictionary.

        Args:
            config_dict: Dictionary containing configuration parameters.

        Returns:
            Configuration instance.
        """
        return cls(**config_dict)

    @classmethod
    def from_json(cls: type[T], json_path: str | Path) -> T:
        """
        Load configuration from a JSON file.

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
        data["theme"] = self.theme.to_dict() if self.theme is not None else None
        return data

    def to_json(self, json_path: str | Path, indent: int = 2) -> None:
        path = Path(json_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=indent, ensure_ascii=False)


@dataclass(frozen=True)
class Section:
    """One rendered content document."""

    path: str
    fragments: tuple[Fragment, ...]


@dataclass(frozen=True)
class SkippedEntry:
    path: str
    reason: str


@dataclass
class Document:
    """The extracted book.

    Attributes:
        metadata: Title, author, description and language
        sections: Rendered content documents in spine order
        skipped: Spine entries that could not be read or rendered
        text: All sections rendered with the extraction theme
    """

    metadata: Metadata
    sections: list[Section] = field(default_factory=list)
    skipped: list[SkippedEntry] = field(default_factory=list)
    text: str = ""

    @property
    def title(self) -> str:
        return self.metadata.title

    def render(self, theme: Theme | None = None) -> str:
        """Re-render every section with another theme."""
        return "".join(
            format_fragments(list(section.fragments), theme) for section in self.sections
        )


def _read_entries(
    archive: Archive, paths: list[str]
) -> list[tuple[str, bytes | None, str | None]]:
    """Read every spine entry, recording failures instead of raising."""
    entries = []
    for path in paths:
        try:
            entries.append((path, archive.read(path), None))
        except ExtractionError as e:
            entries.append((path, None, str(e)))
    return entries


def _render_entry(
    entry: tuple[str, bytes | None, str | None],
) -> tuple[str, list[Fragment] | None, str | None]:
    path, data, error = entry
    if data is None:
        return path, None, error
    try:
        return path, render_fragments(data), None
    except Exception as e:
        return path, None, f"{type(e).__name__}: {e}"


def extract(path: str | Path, config: ExtractorConfig | None = None) -> Document:
    """Extract the readable text of an EPUB file.

    Args:
        path: Path to the EPUB file
        config: Extraction options; defaults if None

    Returns:
        The extracted :class:`Document`. Its text is empty when the spine
        resolves to nothing or every entry failed.

    Raises:
        FatalExtractionError: If the archive, ``container.xml`` or the
            package document cannot be read. ``stage`` names which one.
    """
    config = config or ExtractorConfig()
    verbose = config.verbose

    if verbose:
        print(f"Extracting text from: {path}")

    try:
        archive = open_archive(path)
    except ExtractionError as e:
        raise FatalExtractionError("archive", e) from e

    with archive:
        try:
            package_path = resolve_container(archive)
        except ExtractionError as e:
            raise FatalExtractionError("container", e) from e

        try:
            package: PackageDescriptor = parse_package(
                archive, package_path, fix_text=config.fix_text
            )
        except ExtractionError as e:
            raise FatalExtractionError("package", e) from e

        content_paths = package.content_paths
        if verbose:
            print(f"Package document: {package_path}")
            print(f"Title: {package.metadata.title or '(untitled)'}")
            print(f"Found {len(content_paths)} spine entries")

        entries = _read_entries(archive, content_paths)

    if config.workers > 1 and len(entries) > 1:
        with ThreadPoolExecutor(max_workers=config.workers) as pool:
            # map() yields in submission order, i.e. spine order
            results = list(pool.map(_render_entry, entries))
    else:
        results = [_render_entry(entry) for entry in entries]

    document = Document(metadata=package.metadata)
    for index, (entry_path, fragments, error) in enumerate(results, 1):
        if fragments is None:
            document.skipped.append(SkippedEntry(entry_path, error or "unknown error"))
            if verbose:
                print(f"  [{index:04d}] skipped {entry_path} ({error})", file=sys.stderr)
            continue
        document.sections.append(Section(entry_path, tuple(fragments)))
        if verbose:
            print(f"  [{index:04d}] {entry_path} ({len(fragments)} fragments)")

    document.text = document.render(config.theme)

    if verbose:
        print(
            f"\nRendered {len(document.sections)} of {len(content_paths)} entries "
            f"({len(document.text)} chars)"
        )

    return document
