"""Read-only access to the ZIP container of an EPUB file."""

import zipfile
import zlib
from pathlib import Path

from .errors import ArchiveError, EntryNotFoundError


def _matches(stored: str, query: str) -> bool:
    """Case-insensitive equality, or ``stored`` ending in ``/query``."""
    stored = stored.lower()
    query = query.lower()
    return stored == query or stored.endswith("/" + query)


class EntryHandle:
    """A single archive entry that can be read exactly once."""

    def __init__(self, archive: "Archive", info: zipfile.ZipInfo):
        self._archive = archive
        self._info = info
        self._consumed = False

    @property
    def name(self) -> str:
        return self._info.filename

    def read(self) -> bytes:
        """Return the decompressed bytes of the entry and consume the handle.

        Raises:
            ArchiveError: If the handle was already read, the archive is
                closed, or the entry data is corrupt.
        """
        if self._consumed:
            raise ArchiveError(f"Entry already read: {self.name}")
        self._consumed = True
        return self._archive._read(self._info)

    def __repr__(self) -> str:
        return f"EntryHandle(name={self.name!r}, consumed={self._consumed})"


class Archive:
    """An open EPUB container.

    Use :func:`open_archive` to create one. Closing the archive invalidates
    every handle obtained from it.
    """

    def __init__(self, zip_file: zipfile.ZipFile, path: Path):
        self._zip = zip_file
        self.path = path

    @property
    def closed(self) -> bool:
        return self._zip is None

    def names(self) -> list[str]:
        """Return stored entry names in archive order."""
        return [info.filename for info in self._infos()]

    def find_entry(self, name: str) -> EntryHandle:
        """Look up an entry by name.

        The first entry, in archive order, whose name equals ``name``
        case-insensitively or ends with ``/name`` wins. Two entries sharing
        the same suffix are not disambiguated.

        Raises:
            EntryNotFoundError: If no entry matches.
        """
        query = name.strip()
        while query.startswith("./"):
            query = query[2:]
        query = query.lstrip("/")
        if query:
            for info in self._infos():
                if info.is_dir():
                    continue
                if _matches(info.filename, query):
                    return EntryHandle(self, info)
        raise EntryNotFoundError(name)

    def read(self, name: str) -> bytes:
        """Find an entry and read it in one step."""
        return self.find_entry(name).read()

    def close(self) -> None:
        if self._zip is not None:
            self._zip.close()
            self._zip = None

    def _infos(self) -> list[zipfile.ZipInfo]:
        if self._zip is None:
            raise ArchiveError(f"Archive is closed: {self.path}")
        return self._zip.infolist()

    def _read(self, info: zipfile.ZipInfo) -> bytes:
        if self._zip is None:
            raise ArchiveError(f"Archive is closed: {self.path}")
        try:
            return self._zip.read(info)
        # NotImplementedError: unsupported compression method
        # RuntimeError: encrypted entry, no password
        except (
            zipfile.BadZipFile,
            zlib.error,
            OSError,
            EOFError,
            NotImplementedError,
            RuntimeError,
        ) as e:
            raise ArchiveError(f"Cannot read entry {info.filename}: {e}") from e

    def __enter__(self) -> "Archive":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "closed" if self.closed else "open"
        return f"Archive(path={str(self.path)!r}, {state})"


def open_archive(path: str | Path) -> Archive:
    """Open an EPUB container for reading.

    Args:
        path: Path to the EPUB file

    Returns:
        An open :class:`Archive`

    Raises:
        ArchiveError: If the file does not exist, cannot be read, or is not
            a ZIP container.
    """
    path = Path(path)
    if not path.exists():
        raise ArchiveError(f"EPUB file not found: {path}")

    try:
        zip_file = zipfile.ZipFile(path, "r")
    except (zipfile.BadZipFile, OSError) as e:
        raise ArchiveError(f"Not a valid EPUB container: {path}: {e}") from e

    return Archive(zip_file, path)
