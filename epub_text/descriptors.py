"""Container and package (OPF) descriptor parsing.

An EPUB names its package document in ``META-INF/container.xml``. The
package document declares the book metadata, a manifest of every part, and
the spine, which fixes reading order.
"""

import posixpath
import re
from dataclasses import dataclass, field
from urllib.parse import unquote

import ftfy
from lxml import etree

from .archive import Archive
from .errors import DescriptorParseError

CONTAINER_PATH = "META-INF/container.xml"
PACKAGE_MEDIA_TYPE = "application/oebps-package+xml"

_WHITESPACE_RE = re.compile(r"\s+")


@dataclass(frozen=True)
class Metadata:
    """Book metadata from the package document. Every field may be empty."""

    title: str = ""
    author: str = ""
    description: str = ""
    language: str = ""


@dataclass(frozen=True)
class ManifestItem:
    id: str
    href: str
    media_type: str = ""


@dataclass(frozen=True)
class PackageDescriptor:
    """Parsed package document.

    Args:
        metadata: Book metadata
        manifest: Item id to manifest item; ids are unique
        spine: Item ids in declared reading order (may repeat, may dangle)
    """

    metadata: Metadata = field(default_factory=Metadata)
    manifest: dict[str, ManifestItem] = field(default_factory=dict)
    spine: tuple[str, ...] = ()

    @property
    def content_paths(self) -> list[str]:
        """Spine ids resolved through the manifest, in spine order.

        Ids without a manifest entry are dropped.
        """
        return [
            self.manifest[idref].href for idref in self.spine if idref in self.manifest
        ]


def _xml_parser() -> etree.XMLParser:
    return etree.XMLParser(
        resolve_entities=False,
        no_network=True,
        remove_comments=True,
        remove_pis=True,
        huge_tree=False,
    )


def _parse_xml(data: bytes, what: str) -> etree._Element:
    try:
        root = etree.fromstring(data, parser=_xml_parser())
    except etree.XMLSyntaxError as e:
        raise DescriptorParseError(f"Failed to parse {what}: {e}") from e
    if root is None:
        raise DescriptorParseError(f"Failed to parse {what}: empty document")
    return root


def normalize_href(href: str) -> str:
    """Clean a manifest href into an archive-relative path.

    Percent-escapes are decoded, fragments dropped, ``.``/``..`` segments
    collapsed, and the result never climbs above the archive root.
    """
    path = unquote(href.split("#", 1)[0].strip())
    if not path:
        return ""
    path = posixpath.normpath(path.replace("\\", "/"))
    parts = [part for part in path.split("/") if part not in ("", ".", "..")]
    return "/".join(parts)


def _clean_text(value: str | None, fix_text: bool) -> str:
    if not value:
        return ""
    text = _WHITESPACE_RE.sub(" ", value).strip()
    if fix_text and text:
        text = ftfy.fix_text(text)
    return text


def _first_text(metadata: etree._Element | None, tag: str, fix_text: bool) -> str:
    if metadata is None:
        return ""
    for element in metadata.iterfind(f"{{*}}{tag}"):
        text = _clean_text("".join(element.itertext()), fix_text)
        if text:
            return text
    return ""


def resolve_container(archive: Archive) -> str:
    """Return the package document path declared in ``container.xml``.

    The value is returned verbatim; it is not checked against the archive.

    Raises:
        EntryNotFoundError: If ``META-INF/container.xml`` is absent.
        DescriptorParseError: If the container is malformed or declares no
            usable rootfile.
    """
    root = _parse_xml(archive.read(CONTAINER_PATH), "container.xml")

    rootfiles = list(root.iterfind(".//{*}rootfile"))
    if not rootfiles:
        raise DescriptorParseError("container.xml declares no rootfile")

    # Prefer the OPF rootfile when several renditions are listed
    preferred = [
        rf for rf in rootfiles if rf.get("media-type", "") == PACKAGE_MEDIA_TYPE
    ]
    rootfile = (preferred or rootfiles)[0]

    full_path = rootfile.get("full-path")
    if not full_path or not full_path.strip():
        raise DescriptorParseError("container.xml rootfile has no full-path")
    return full_path


def parse_package(archive: Archive, path: str, fix_text: bool = True) -> PackageDescriptor:
    """Parse the package document at ``path``.

    Args:
        archive: Open archive
        path: Package document path, usually from :func:`resolve_container`
        fix_text: Repair mojibake in metadata strings with ftfy

    Returns:
        The parsed :class:`PackageDescriptor`

    Raises:
        EntryNotFoundError: If ``path`` is not in the archive.
        DescriptorParseError: If the package document is not well-formed XML.
    """
    root = _parse_xml(archive.read(path), f"package document {path}")

    metadata_el = root.find("{*}metadata")
    metadata = Metadata(
        title=_first_text(metadata_el, "title", fix_text),
        author=_first_text(metadata_el, "creator", fix_text),
        description=_first_text(metadata_el, "description", fix_text),
        language=_first_text(metadata_el, "language", fix_text),
    )

    manifest: dict[str, ManifestItem] = {}
    for item in root.iterfind("{*}manifest/{*}item"):
        item_id = item.get("id")
        href = item.get("href")
        if not item_id or not href or item_id in manifest:
            continue
        normalized = normalize_href(href)
        if not normalized:
            continue
        manifest[item_id] = ManifestItem(
            id=item_id,
            href=normalized,
            media_type=item.get("media-type", ""),
        )

    spine = tuple(
        idref
        for idref in (
            itemref.get("idref", "").strip()
            for itemref in root.iterfind("{*}spine/{*}itemref")
        )
        if idref
    )

    return PackageDescriptor(metadata=metadata, manifest=manifest, spine=spine)
