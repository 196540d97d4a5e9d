"""Move a single mount between the local workspace and a storage provider."""

from pathlib import Path
from typing import Union

from build_cache.archive import archive, extract
from build_cache.providers.base import StorageProvider


def upload(provider: StorageProvider, src: Union[str, Path], path: str) -> None:
    """Archive ``src`` and store it at ``path``."""
    stream = archive(src)
    try:
        provider.upload(path, stream)
    finally:
        stream.close()


def download(provider: StorageProvider, path: str, dst: Union[str, Path]) -> None:
    """Fetch the archive at ``path`` and extract it into ``dst``."""
    stream = provider.download(path)
    try:
        extract(stream, dst)
    finally:
        stream.close()
