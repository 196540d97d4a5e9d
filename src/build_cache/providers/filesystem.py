"""Local filesystem storage provider.

Stores each blob as a file under a root directory. Useful on CI runners that
share a persistent volume, and as a stand-in for object storage in tests.
"""

import os
import shutil
import tempfile
from pathlib import Path
from typing import BinaryIO, Union

from build_cache.config import CacheConfig
from build_cache.errors import NotFound, TransportError
from build_cache.providers.base import StorageProvider


class FilesystemProvider(StorageProvider):
    """Storage provider backed by a local directory."""

    name = "filesystem"

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root).resolve()

    @classmethod
    def from_config(cls, config: CacheConfig) -> "FilesystemProvider":
        return cls(config.root)

    def _path_for(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if not path.is_relative_to(self.root):
            raise TransportError(f"Key escapes storage root: {key}", key=key)
        return path

    def upload(self, key: str, content: BinaryIO) -> None:
        path = self._path_for(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            # Write beside the target then rename, so readers never see a partial blob
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".upload-")
            try:
                with os.fdopen(fd, "wb") as f:
                    shutil.copyfileobj(content, f)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise TransportError(f"Could not write {path}: {e}", key=key) from e

    def download(self, key: str) -> BinaryIO:
        path = self._path_for(key)
        try:
            return open(path, "rb")
        except FileNotFoundError as e:
            raise NotFound(f"No cache entry at {path}", key=key) from e
        except OSError as e:
            raise TransportError(f"Could not read {path}: {e}", key=key) from e
