"""Exception hierarchy for EPUB text extraction.

Package-level failures (archive, container, package document) abort an
extraction and surface as :class:`FatalExtractionError`. Failures inside a
single content document are recoverable and only ever recorded.
"""


class ExtractionError(Exception):
    """Base class for every error raised by epub_text."""


class ArchiveError(ExtractionError, OSError):
    """The archive cannot be opened, or an entry cannot be read."""


class EntryNotFoundError(ExtractionError, LookupError):
    """A required named entry is absent from the archive."""

    def __init__(self, name: str):
        super().__init__(f"Entry not found in archive: {name}")
        self.name = name


class ParseError(ExtractionError):
    """Structured content could not be turned into something usable."""


class DescriptorParseError(ParseError):
    """A container or package descriptor is malformed or incomplete."""


class MalformedMarkupError(ParseError):
    """A content document could not be parsed into any tree at all."""


class MissingRootError(ParseError):
    """A parsed content document has no <body> element."""


class FatalExtractionError(ExtractionError):
    """Extraction aborted at a package-level stage.

    Args:
        stage: One of ``"archive"``, ``"container"`` or ``"package"``
        cause: The underlying exception
    """

    def __init__(self, stage: str, cause: BaseException):
        super().__init__(f"Failed to read {stage}: {cause}")
        self.stage = stage
        self.cause = cause
