"""Read-only virtual filesystem over embedded assets.

An AssetFS serves name-addressed byte blobs, plus a synthetic directory tree
over their names, through the file contract a static-file server expects:
read, seek, close, readdir and stat.

Example:
    assets = EmbeddedAssets({"a.txt": "hello", "dir/b.txt": "world"})
    fs = AssetFS(asset=assets.asset, asset_dir=assets.asset_dir)
    with fs.open("/a.txt") as f:
        f.read()  # b"hello"
"""

import builtins
import logging
import mimetypes
import os
import stat
import time
from dataclasses import dataclass, field
from typing import Callable

logger = logging.getLogger(__name__)


class AssetError(Exception):
    """Base error for asset filesystem operations."""
    pass


class NotFoundError(AssetError):
    """Path is neither an embedded directory nor an embedded file."""
    pass


class NotADirectoryError(AssetError, builtins.NotADirectoryError):
    """Directory listing requested on a plain file. Also a built-in NotADirectoryError."""
    pass


class OutOfRangeError(AssetError):
    """Seek target lies outside the file contents."""
    pass


def _join(*parts: str) -> str:
    """Join slash-separated paths and clean the result lexically.

    Repeated slashes and "." segments are dropped and ".." removes the
    previous segment. A leading slash is preserved; the empty path stays empty.
    """
    path = "/".join(p for p in parts if p)
    if not path:
        return ""
    rooted = path.startswith("/")
    segments: list[str] = []
    for seg in path.split("/"):
        if seg in ("", "."):
            continue
        if seg == "..":
            if segments and segments[-1] != "..":
                segments.pop()
            elif not rooted:
                segments.append(seg)
            continue
        segments.append(seg)
    cleaned = "/".join(segments)
    return "/" + cleaned if rooted else cleaned


@dataclass
class AssetInfo:
    """Metadata about an embedded file or directory.

    timestamp is the fixed modification time of the owning filesystem. A live
    entry ignores it and reports the current time on every query.
    """
    path: str
    is_dir: bool = False
    size: int = 0
    timestamp: float = 0.0
    live: bool = False

    @property
    def name(self) -> str:
        return self.path.rsplit("/", 1)[-1]

    @property
    def mode(self) -> int:
        if self.is_dir:
            return stat.S_IFDIR | 0o644
        return 0o644

    @property
    def mtime(self) -> float:
        if self.live:
            return time.time()
        return self.timestamp

    @property
    def content_type(self) -> str:
        return mimetypes.guess_type(self.name)[0] or "application/octet-stream"


class AssetFile:
    """A readable, seekable, non-directory file over an in-memory buffer."""

    def __init__(self, info: AssetInfo, content: bytes):
        self._info = info
        self._content = bytes(content)
        self._pos = 0

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return True

    def read(self, size: int | None = -1) -> bytes:
        """Return up to size bytes from the cursor; b"" at end of file."""
        end = len(self._content)
        if size is not None and size >= 0:
            end = min(end, self._pos + size)
        if self._pos >= end:
            return b""
        data = self._content[self._pos:end]
        self._pos = end
        return data

    def readinto(self, buffer) -> int:
        view = memoryview(buffer).cast("B")
        data = self.read(len(view))
        view[:len(data)] = data
        return len(data)

    def seek(self, offset: int, whence: int = os.SEEK_SET) -> int:
        if whence == os.SEEK_SET:
            target = offset
        elif whence == os.SEEK_CUR:
            target = self._pos + offset
        elif whence == os.SEEK_END:
            target = len(self._content) + offset
        else:
            raise ValueError(f"Invalid whence: {whence}")
        if target < 0 or target > len(self._content):
            raise OutOfRangeError(
                f"Seek to {target} outside {self._info.path} ({len(self._content)} bytes)"
            )
        self._pos = target
        return target

    def tell(self) -> int:
        return self._pos

    def close(self):
        pass

    def readdir(self, count: int = 0) -> list[AssetInfo]:
        raise NotADirectoryError(f"Not a directory: {self._info.path}")

    def stat(self) -> AssetInfo:
        return self._info


class AssetDirectory(AssetFile):
    """A directory entry with a fixed, paginated listing of its children.

    The directory itself has no content: read and seek see an empty buffer.
    """

    def __init__(self, info: AssetInfo, children: list[AssetInfo]):
        super().__init__(info, b"")
        self._children = list(children)
        self._children_read = 0

    @classmethod
    def from_listing(cls, path: str, names: list[str], fs: "AssetFS") -> "AssetDirectory":
        """Build a directory, classifying each child by probing fs.asset_dir."""
        children = [
            AssetInfo(name, is_dir=fs.is_dir(_join(path, name)), timestamp=fs.timestamp)
            for name in names
        ]
        info = AssetInfo(path, is_dir=True, timestamp=fs.timestamp)
        return cls(info, children)

    def readdir(self, count: int = 0) -> list[AssetInfo]:
        """Return the next count children, or all remaining ones if count <= 0."""
        remaining = len(self._children) - self._children_read
        if count <= 0 or count > remaining:
            count = remaining
        start = self._children_read
        self._children_read += count
        return self._children[start:self._children_read]


@dataclass(frozen=True)
class AssetFS:
    """Filesystem view over a pair of asset lookup functions.

    asset(path) returns file content and asset_dir(path) returns the child
    names of a directory; both raise NotFoundError for unknown paths. prefix
    is prepended to every requested path. debug makes opened files report
    the current time as their modification time.
    """
    asset: Callable[[str], bytes]
    asset_dir: Callable[[str], list[str]]
    prefix: str = ""
    debug: bool = False
    timestamp: float = field(default_factory=time.time)

    def is_dir(self, path: str) -> bool:
        try:
            self.asset_dir(path)
        except NotFoundError:
            return False
        return True

    def open(self, name: str) -> AssetFile:
        """Open the directory or file at name. Raises NotFoundError if neither."""
        path = _join(self.prefix, name)
        if path.startswith("/"):
            path = path[1:]

        try:
            children = self.asset_dir(path)
        except NotFoundError:
            pass
        else:
            logger.debug("Opening directory %r (%d entries)", path, len(children))
            return AssetDirectory.from_listing(path, children, self)

        content = self.asset(path)
        logger.debug("Opening file %r (%d bytes)", path, len(content))
        info = AssetInfo(path, size=len(content), timestamp=self.timestamp, live=self.debug)
        return AssetFile(info, content)
