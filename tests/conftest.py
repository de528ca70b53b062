"""Shared fixtures: EPUB files built on the fly."""

from pathlib import Path

import pytest

from epub_builder import CONTAINER_XML, build_opf, write_zip


@pytest.fixture
def make_epub(tmp_path):  # type: ignore[no-untyped-def]
    """Factory fixture building an EPUB from chapter markup.

    ``chapters`` is a list of ``(href, markup)`` pairs stored under
    ``OEBPS/``; their manifest ids are ``c1``, ``c2``, ... and the spine
    lists them in order unless ``spine`` is given. ``container=False``
    leaves out ``META-INF/container.xml``. Archive names in ``encrypted``
    are flagged as encrypted.
    """

    def _make(
        chapters: list[tuple[str, str]] | None = None,
        spine: list[str] | None = None,
        name: str = "book.epub",
        opf: str | None = None,
        container: str | bool | None = None,
        extra: dict[str, str | bytes] | None = None,
        encrypted: tuple[str, ...] = (),
        **metadata: str,
    ) -> Path:
        chapters = chapters or []
        manifest = [(f"c{i}", href) for i, (href, _) in enumerate(chapters, 1)]
        if spine is None:
            spine = [item_id for item_id, _ in manifest]

        entries: dict[str, str | bytes] = {"mimetype": "application/epub+zip"}
        if container is not False:
            entries["META-INF/container.xml"] = (
                container
                if container is not None
                else CONTAINER_XML.format(opf_path="OEBPS/content.opf")
            )
        entries["OEBPS/content.opf"] = opf if opf is not None else build_opf(
            manifest, spine, **metadata
        )
        for href, markup in chapters:
            entries[f"OEBPS/{href}"] = markup
        entries.update(extra or {})
        return write_zip(tmp_path / name, entries, encrypted)

    return _make
