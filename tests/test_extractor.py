"""Tests for the extraction pipeline."""

from unittest.mock import patch

import pytest

from epub_text import extract
from epub_text.archive import open_archive
from epub_text.errors import (
    ArchiveError,
    DescriptorParseError,
    EntryNotFoundError,
    FatalExtractionError,
)
from epub_text.extractor import Document, ExtractorConfig
from epub_text.render import render_document, render_fragments
from epub_text.styles import Theme

from epub_builder import CONTAINER_XML, build_opf, xhtml

CH1 = xhtml("<h1>One</h1><p>First chapter.</p>")
CH2 = xhtml("<h1>Two</h1><p>SECOND-CHAPTER body.</p>")
CH3 = xhtml("<h1>Three</h1><ul><li>a</li><li>b</li></ul>")

PLAIN = ExtractorConfig(theme=Theme.plain())


def plain_text(markup: str) -> str:
    return render_document(markup, Theme.plain())


class TestExtractorConfig:
    """Tests for ExtractorConfig."""

    def test_defaults(self) -> None:
        config = ExtractorConfig()
        assert config.verbose is False
        assert config.fix_text is True
        assert config.workers == 1
        assert config.theme is None

    def test_invalid_workers(self) -> None:
        with pytest.raises(ValueError, match="workers"):
            ExtractorConfig(workers=0)

    def test_theme_from_dict(self) -> None:
        config = ExtractorConfig.from_dict({"theme": {"bullet": "*"}})
        assert isinstance(config.theme, Theme)
        assert config.theme.bullet == "*"

    def test_json_roundtrip(self, tmp_path) -> None:  # type: ignore[no-untyped-def]
        """Test that config survives a JSON save/load cycle."""
        original = ExtractorConfig(verbose=True, workers=3, theme=Theme.default())
        json_path = tmp_path / "config.json"
        original.to_json(json_path)

        loaded = ExtractorConfig.from_json(json_path)
        assert loaded == original


class TestExtract:
    """Tests for the happy path."""

    def test_extract_in_spine_order(self, make_epub) -> None:  # type: ignore[no-untyped-def]
        """Test that text follows the spine, not the manifest."""
        path = make_epub(
            chapters=[("ch1.xhtml", CH1), ("ch2.xhtml", CH2), ("ch3.xhtml", CH3)],
            spine=["c3", "c1", "c2"],
        )
        document = extract(path, PLAIN)

        assert isinstance(document, Document)
        assert document.text == plain_text(CH3) + plain_text(CH1) + plain_text(CH2)
        assert [s.path for s in document.sections] == ["ch3.xhtml", "ch1.xhtml", "ch2.xhtml"]
        assert document.skipped == []

    def test_metadata(self, make_epub) -> None:  # type: ignore[no-untyped-def]
        path = make_epub(
            chapters=[("ch1.xhtml", CH1)],
            title="My Book",
            creator="Some Writer",
            description="Blurb",
        )
        document = extract(path, PLAIN)

        assert document.title == "My Book"
        assert document.metadata.author == "Some Writer"
        assert document.metadata.description == "Blurb"
        assert document.metadata.language == "en"

    def test_unresolved_spine_ids_dropped(self, make_epub) -> None:  # type: ignore[no-untyped-def]
        path = make_epub(
            chapters=[("ch1.xhtml", CH1), ("ch2.xhtml", CH2)],
            spine=["c2", "c1", "missing"],
        )
        document = extract(path, PLAIN)

        assert [s.path for s in document.sections] == ["ch2.xhtml", "ch1.xhtml"]
        assert document.skipped == []

    def test_default_theme(self, make_epub) -> None:  # type: ignore[no-untyped-def]
        path = make_epub(chapters=[("ch1.xhtml", CH1)])
        document = extract(path)

        assert document.text == render_document(CH1)
        assert "\x1b[" in document.text

    def test_render_with_other_theme(self, make_epub) -> None:  # type: ignore[no-untyped-def]
        """Test that re-rendering does not parse the content again."""
        path = make_epub(chapters=[("ch1.xhtml", CH1), ("ch2.xhtml", CH2)])
        document = extract(path)

        with patch("epub_text.render.parse_markup") as mock_parse:
            text = document.render(Theme.plain())
        mock_parse.assert_not_called()
        assert text == plain_text(CH1) + plain_text(CH2)

    def test_workers_keep_order(self, make_epub) -> None:  # type: ignore[no-untyped-def]
        """Test that threaded rendering yields the sequential result."""
        chapters = [(f"ch{i}.xhtml", xhtml(f"<p>Chapter {i}</p>")) for i in range(1, 9)]
        path = make_epub(chapters=chapters, spine=[f"c{i}" for i in range(8, 0, -1)])

        sequential = extract(path, ExtractorConfig(theme=Theme.plain()))
        threaded = extract(path, ExtractorConfig(theme=Theme.plain(), workers=4))

        assert threaded.text == sequential.text
        assert threaded.text.startswith("Chapter 8\n\n")

    def test_accepts_str_path(self, make_epub) -> None:  # type: ignore[no-untyped-def]
        path = make_epub(chapters=[("ch1.xhtml", CH1)])
        assert extract(str(path), PLAIN).text == plain_text(CH1)

    def test_verbose_output(self, make_epub, capsys) -> None:  # type: ignore[no-untyped-def]
        path = make_epub(chapters=[("ch1.xhtml", CH1)], title="Loud")
        extract(path, ExtractorConfig(verbose=True, theme=Theme.plain()))

        captured = capsys.readouterr()
        assert "Title: Loud" in captured.out
        assert "Found 1 spine entries" in captured.out
        assert "[0001] ch1.xhtml" in captured.out


class TestEmptyResults:
    """Tests for books with nothing to display."""

    def test_empty_spine(self, make_epub) -> None:  # type: ignore[no-untyped-def]
        path = make_epub(chapters=[("ch1.xhtml", CH1)], spine=[])
        document = extract(path, PLAIN)

        assert document.text == ""
        assert document.sections == []
        assert document.skipped == []

    def test_all_entries_fail(self, make_epub) -> None:  # type: ignore[no-untyped-def]
        path = make_epub(
            chapters=[("ch1.xhtml", "<html><head></head></html>")],
        )
        document = extract(path, PLAIN)

        assert document.text == ""
        assert len(document.skipped) == 1


class TestRecoverableFailures:
    """Tests for per-entry failures being skipped."""

    def test_corrupt_middle_entry(self, make_epub) -> None:  # type: ignore[no-untyped-def]
        """Test that a failed read drops only that entry, with no placeholder."""
        path = make_epub(
            chapters=[("ch1.xhtml", CH1), ("ch2.xhtml", CH2), ("ch3.xhtml", CH3)]
        )
        raw = path.read_bytes()
        path.write_bytes(raw.replace(b"SECOND-CHAPTER", b"BROKEN-CHAPTER"))

        document = extract(path, PLAIN)

        assert document.text == plain_text(CH1) + plain_text(CH3)
        assert [s.path for s in document.sections] == ["ch1.xhtml", "ch3.xhtml"]
        assert [s.path for s in document.skipped] == ["ch2.xhtml"]

    def test_encrypted_middle_entry(self, make_epub) -> None:  # type: ignore[no-untyped-def]
        """Test that an entry needing a password is skipped, not raised."""
        path = make_epub(
            chapters=[("ch1.xhtml", CH1), ("ch2.xhtml", CH2), ("ch3.xhtml", CH3)],
            encrypted=("OEBPS/ch2.xhtml",),
        )
        document = extract(path, PLAIN)

        assert document.text == plain_text(CH1) + plain_text(CH3)
        assert [s.path for s in document.skipped] == ["ch2.xhtml"]
        assert "encrypted" in document.skipped[0].reason

    def test_missing_entry_skipped(self, make_epub) -> None:  # type: ignore[no-untyped-def]
        """Test that a manifest entry with no file behind it is skipped."""
        opf = build_opf(
            manifest=[("c1", "ch1.xhtml"), ("c2", "gone.xhtml"), ("c3", "ch3.xhtml")],
            spine=["c1", "c2", "c3"],
        )
        path = make_epub(chapters=[("ch1.xhtml", CH1), ("ch3.xhtml", CH3)], opf=opf)
        document = extract(path, PLAIN)

        assert document.text == plain_text(CH1) + plain_text(CH3)
        assert document.skipped[0].path == "gone.xhtml"
        assert "gone.xhtml" in document.skipped[0].reason

    def test_missing_body_skipped(self, make_epub) -> None:  # type: ignore[no-untyped-def]
        path = make_epub(
            chapters=[
                ("ch1.xhtml", CH1),
                ("nobody.xhtml", "<html><head><title>x</title></head></html>"),
                ("ch3.xhtml", CH3),
            ]
        )
        document = extract(path, PLAIN)

        assert document.text == plain_text(CH1) + plain_text(CH3)
        assert "MissingRootError" in document.skipped[0].reason

    def test_unexpected_render_error_skipped(self, make_epub) -> None:  # type: ignore[no-untyped-def]
        """Test that any exception while rendering one entry is contained."""
        path = make_epub(chapters=[("ch1.xhtml", CH1), ("ch2.xhtml", CH2)])

        def flaky(data):  # type: ignore[no-untyped-def]
            if b"SECOND-CHAPTER" in data:
                raise RecursionError("too deep")
            return render_fragments(data)

        with patch("epub_text.extractor.render_fragments", side_effect=flaky):
            document = extract(path, PLAIN)

        assert document.text == plain_text(CH1)
        assert document.skipped[0].reason == "RecursionError: too deep"

    def test_verbose_reports_skips(self, make_epub, capsys) -> None:  # type: ignore[no-untyped-def]
        path = make_epub(chapters=[("bad.xhtml", "<html></html>")])
        extract(path, ExtractorConfig(verbose=True, theme=Theme.plain()))

        assert "skipped bad.xhtml" in capsys.readouterr().err


class TestFatalFailures:
    """Tests for package-level failures aborting extraction."""

    def test_not_a_zip(self, tmp_path) -> None:  # type: ignore[no-untyped-def]
        path = tmp_path / "fake.epub"
        path.write_text("plain text", encoding="utf-8")

        with pytest.raises(FatalExtractionError) as exc_info:
            extract(path)
        assert exc_info.value.stage == "archive"
        assert isinstance(exc_info.value.cause, ArchiveError)
        assert exc_info.value.__cause__ is exc_info.value.cause

    def test_missing_file(self, tmp_path) -> None:  # type: ignore[no-untyped-def]
        with pytest.raises(FatalExtractionError, match="Failed to read archive"):
            extract(tmp_path / "missing.epub")

    def test_missing_container(self, make_epub) -> None:  # type: ignore[no-untyped-def]
        path = make_epub(chapters=[("ch1.xhtml", CH1)], container=False)

        with pytest.raises(FatalExtractionError) as exc_info:
            extract(path)
        assert exc_info.value.stage == "container"
        assert isinstance(exc_info.value.cause, EntryNotFoundError)

    def test_malformed_container(self, make_epub) -> None:  # type: ignore[no-untyped-def]
        path = make_epub(chapters=[("ch1.xhtml", CH1)], container="<container")

        with pytest.raises(FatalExtractionError) as exc_info:
            extract(path)
        assert exc_info.value.stage == "container"
        assert isinstance(exc_info.value.cause, DescriptorParseError)

    def test_encrypted_container(self, make_epub) -> None:  # type: ignore[no-untyped-def]
        path = make_epub(
            chapters=[("ch1.xhtml", CH1)], encrypted=("META-INF/container.xml",)
        )

        with pytest.raises(FatalExtractionError) as exc_info:
            extract(path)
        assert exc_info.value.stage == "container"
        assert isinstance(exc_info.value.cause, ArchiveError)

    def test_encrypted_package(self, make_epub) -> None:  # type: ignore[no-untyped-def]
        path = make_epub(chapters=[("ch1.xhtml", CH1)], encrypted=("OEBPS/content.opf",))

        with pytest.raises(FatalExtractionError) as exc_info:
            extract(path)
        assert exc_info.value.stage == "package"
        assert isinstance(exc_info.value.cause, ArchiveError)

    def test_missing_package(self, make_epub) -> None:  # type: ignore[no-untyped-def]
        path = make_epub(
            chapters=[("ch1.xhtml", CH1)],
            container=CONTAINER_XML.format(opf_path="OEBPS/other.opf"),
        )
        with pytest.raises(FatalExtractionError) as exc_info:
            extract(path)
        assert exc_info.value.stage == "package"
        assert isinstance(exc_info.value.cause, EntryNotFoundError)

    def test_malformed_package(self, make_epub) -> None:  # type: ignore[no-untyped-def]
        path = make_epub(chapters=[("ch1.xhtml", CH1)], opf="<package><spine>")

        with pytest.raises(FatalExtractionError, match="Failed to read package") as exc_info:
            extract(path)
        assert isinstance(exc_info.value.cause, DescriptorParseError)

    @pytest.mark.parametrize("opf", [None, "<package><spine>"])
    def test_archive_closed_on_every_exit(self, make_epub, opf) -> None:  # type: ignore[no-untyped-def]
        """Test that the archive is released on success and on fatal errors."""
        path = make_epub(chapters=[("ch1.xhtml", CH1)], opf=opf)
        opened = []

        def tracking_open(p):  # type: ignore[no-untyped-def]
            archive = open_archive(p)
            opened.append(archive)
            return archive

        with patch("epub_text.extractor.open_archive", side_effect=tracking_open):
            try:
                extract(path, PLAIN)
            except FatalExtractionError:
                pass

        assert len(opened) == 1
        assert opened[0].closed
