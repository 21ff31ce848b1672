"""File-system capability used by the file-backed provider."""

from __future__ import annotations

import contextlib
import os
import tempfile
from dataclasses import dataclass
from typing import Protocol

import anyio


@dataclass(frozen=True)
class EntryInfo:
    name: str
    is_file: bool
    is_directory: bool


@dataclass(frozen=True)
class StatInfo:
    is_file: bool
    is_directory: bool


class FileSystem(Protocol):
    """Async file operations. Implementations raise OSError only on real I/O failure."""

    async def read_file(self, path: str) -> str: ...

    async def write_file(self, path: str, content: str) -> None: ...

    async def file_exists(self, path: str) -> bool: ...

    async def create_directory(self, path: str) -> None: ...

    async def read_directory(self, path: str) -> list[EntryInfo]: ...

    async def stat(self, path: str) -> StatInfo: ...


class LocalFileSystem:
    """FileSystem backed by the local disk."""

    async def read_file(self, path: str) -> str:
        return await anyio.Path(path).read_text(encoding="utf-8")

    async def write_file(self, path: str, content: str) -> None:
        """Replace ``path`` in full; readers see either the old or the new file."""
        target = anyio.Path(path)
        await target.parent.mkdir(parents=True, exist_ok=True)
        await anyio.to_thread.run_sync(_replace_file, str(target), content)

    async def file_exists(self, path: str) -> bool:
        return await anyio.Path(path).exists()

    async def create_directory(self, path: str) -> None:
        await anyio.Path(path).mkdir(parents=True, exist_ok=True)

    async def read_directory(self, path: str) -> list[EntryInfo]:
        entries = []
        async for child in anyio.Path(path).iterdir():
            entries.append(EntryInfo(name=child.name, is_file=await child.is_file(), is_directory=await child.is_dir()))
        return sorted(entries, key=lambda e: e.name)

    async def stat(self, path: str) -> StatInfo:
        target = anyio.Path(path)
        await target.stat()
        return StatInfo(is_file=await target.is_file(), is_directory=await target.is_dir())


def _replace_file(path: str, content: str) -> None:
    directory = os.path.dirname(path) or "."
    fd, tmp_path = tempfile.mkstemp(prefix=".wfbridge-", suffix=".tmp", dir=directory)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, path)
    except BaseException:
        with contextlib.suppress(OSError):
            os.unlink(tmp_path)
        raise
