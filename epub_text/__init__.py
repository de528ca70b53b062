"""
epub-text - readable, styled text from EPUB books.

This package resolves an EPUB's container and package documents into the
spine reading order and renders every content document into role-tagged
text fragments, styled by a swappable theme.
"""

from .archive import Archive, EntryHandle, open_archive
from .descriptors import (
    ManifestItem,
    Metadata,
    PackageDescriptor,
    parse_package,
    resolve_container,
)
from .errors import (
    ArchiveError,
    DescriptorParseError,
    EntryNotFoundError,
    ExtractionError,
    FatalExtractionError,
    MalformedMarkupError,
    MissingRootError,
    ParseError,
)
from .extractor import Document, ExtractorConfig, Section, SkippedEntry, extract
from .render import render_document, render_fragments
from .styles import Style, Theme, format_fragments

__version__ = "0.1.0"

__all__ = [
    # Pipeline
    "extract",
    "ExtractorConfig",
    "Document",
    "Section",
    "SkippedEntry",
    # Archive
    "Archive",
    "EntryHandle",
    "open_archive",
    # Descriptors
    "resolve_container",
    "parse_package",
    "PackageDescriptor",
    "ManifestItem",
    "Metadata",
    # Rendering
    "render_document",
    "render_fragments",
    "format_fragments",
    "Style",
    "Theme",
    # Errors
    "ExtractionError",
    "ArchiveError",
    "EntryNotFoundError",
    "ParseError",
    "DescriptorParseError",
    "MalformedMarkupError",
    "MissingRootError",
    "FatalExtractionError",
]
