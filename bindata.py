"""Asset lookup tables that feed an AssetFS.

EmbeddedAssets holds every file in memory, keyed by its slash-separated path.
DiskAssets reads a real directory on every lookup, for use during development
in place of an embedded table.
"""

import logging
import os
import zipfile

from assetfs import AssetFS, AssetError, NotFoundError

logger = logging.getLogger(__name__)


def _clean(path: str) -> str:
    """Normalize an asset name: forward slashes, no leading, trailing or doubled slashes."""
    return "/".join(p for p in path.replace("\\", "/").split("/") if p)


class EmbeddedAssets:
    """In-memory asset table with a directory tree synthesized from file names.

    Values are bytes, or str encoded to UTF-8. Directory listings follow the
    insertion order of the mapping.

    Example:
        EmbeddedAssets({
            "static/index.html": "<h1>Hello</h1>",
            "static/css/site.css": b"body {}",
        })
    """

    def __init__(self, files: dict):
        self._files: dict[str, bytes] = {}
        self._tree: dict = {}  # nested dicts are directories, None marks a file

        for name, data in files.items():
            path = _clean(name)
            if not path:
                raise AssetError(f"Invalid asset name: {name!r}")
            self._files[path] = data.encode("utf-8") if isinstance(data, str) else bytes(data)

            parts = path.split("/")
            node = self._tree
            for part in parts[:-1]:
                node = node.setdefault(part, {})
                if node is None:
                    raise AssetError(f"Asset {path!r} is nested under a file")
            if isinstance(node.get(parts[-1]), dict):
                raise AssetError(f"Asset {path!r} collides with a directory")
            node[parts[-1]] = None

    @classmethod
    def from_directory(cls, root: str) -> "EmbeddedAssets":
        """Snapshot every file below root into a new table."""
        if not os.path.isdir(root):
            raise AssetError(f"Not a directory: {root}")
        files = {}
        try:
            for dirpath, dirnames, filenames in os.walk(root):
                dirnames.sort()
                for filename in sorted(filenames):
                    full = os.path.join(dirpath, filename)
                    rel = os.path.relpath(full, root).replace(os.sep, "/")
                    with open(full, "rb") as f:
                        files[rel] = f.read()
        except OSError as e:
            raise AssetError(f"Cannot read asset directory: {e}") from e
        logger.debug("Loaded %d assets from %s", len(files), root)
        return cls(files)

    @classmethod
    def from_zip(cls, path: str) -> "EmbeddedAssets":
        """Load every file of a ZIP archive into a new table."""
        try:
            with zipfile.ZipFile(path, "r") as zf:
                files = {zi.filename: zf.read(zi) for zi in zf.infolist() if not zi.is_dir()}
        except (zipfile.BadZipFile, OSError) as e:
            raise AssetError(f"Cannot open ZIP file: {e}") from e
        logger.debug("Loaded %d assets from %s", len(files), path)
        return cls(files)

    def _node(self, path: str):
        node = self._tree
        for part in path.split("/") if path else []:
            if not isinstance(node, dict) or part not in node:
                raise NotFoundError(f"Not found: {path}")
            node = node[part]
        return node

    def asset(self, path: str) -> bytes:
        """Return the content of an embedded file. Raises NotFoundError otherwise."""
        path = _clean(path)
        if path not in self._files:
            raise NotFoundError(f"Not found: {path}")
        return self._files[path]

    def asset_dir(self, path: str) -> list[str]:
        """Return the child names of an embedded directory. Raises NotFoundError otherwise."""
        path = _clean(path)
        node = self._node(path)
        if not isinstance(node, dict):
            raise NotFoundError(f"Not a directory: {path}")
        return list(node)

    def asset_names(self) -> list[str]:
        return list(self._files)

    def asset_fs(self, debug: bool = False) -> AssetFS:
        """Return an AssetFS rooted at the first top-level directory of the table."""
        for name, node in self._tree.items():
            if isinstance(node, dict):
                return AssetFS(asset=self.asset, asset_dir=self.asset_dir, prefix=name, debug=debug)
        raise AssetError("No top-level asset directory")


class DiskAssets:
    """Asset lookups answered live from a directory on disk.

    Paths resolving outside root (through ".." or symlinks) are not found.
    """

    def __init__(self, root: str):
        self._root = os.path.realpath(root)

    def _resolve(self, path: str) -> str:
        parts = _clean(path).split("/")
        full = os.path.realpath(os.path.join(self._root, *parts))
        if full != self._root and not full.startswith(self._root + os.sep):
            raise NotFoundError(f"Not found: {path}")
        return full

    def asset(self, path: str) -> bytes:
        full = self._resolve(path)
        if not os.path.isfile(full):
            raise NotFoundError(f"Not found: {path}")
        try:
            with open(full, "rb") as f:
                return f.read()
        except OSError as e:
            raise AssetError(f"Cannot read {path}: {e}") from e

    def asset_dir(self, path: str) -> list[str]:
        full = self._resolve(path)
        if not os.path.isdir(full):
            raise NotFoundError(f"Not a directory: {path}")
        try:
            return sorted(os.listdir(full))
        except OSError as e:
            raise AssetError(f"Cannot list {path}: {e}") from e
