"""Directory archiving for the remote cache.

A mount is stored as a single gzip-compressed tar stream whose member names
are relative to the mount directory, so it can be extracted anywhere.
"""

import logging
import tarfile
import tempfile
from pathlib import Path
from typing import BinaryIO, Union

from build_cache.errors import ArchiveFailure, ExtractFailure

logger = logging.getLogger(__name__)

# Archives smaller than this stay in memory
SPOOL_MAX_SIZE = 16 * 1024 * 1024


def new_spool() -> BinaryIO:
    """Create a temporary binary buffer that spills to disk when large."""
    return tempfile.SpooledTemporaryFile(max_size=SPOOL_MAX_SIZE, mode="w+b")


def archive(local_dir: Union[str, Path]) -> BinaryIO:
    """Archive the contents of a directory into a rewound byte stream.

    Args:
        local_dir: Directory to archive

    Returns:
        Readable stream positioned at offset 0; the caller closes it

    Raises:
        ArchiveFailure: If the directory is missing or cannot be read
    """
    src = Path(local_dir)
    if not src.is_dir():
        raise ArchiveFailure(f"Not a directory: {src}")

    stream = new_spool()
    try:
        with tarfile.open(fileobj=stream, mode="w:gz") as tar:
            for child in sorted(src.iterdir()):
                tar.add(child, arcname=child.name)
    except (OSError, tarfile.TarError) as e:
        stream.close()
        raise ArchiveFailure(f"Could not archive {src}: {e}") from e

    size = stream.tell()
    stream.seek(0)
    logger.debug("Archived %s (%d bytes)", src, size)
    return stream


def extract(stream: BinaryIO, local_dir: Union[str, Path]) -> None:
    """Extract an archive stream into a directory.

    The directory is created if missing. Existing files with the same names
    are overwritten; other files are left alone. Members with absolute paths
    or ``..`` components are refused.

    Args:
        stream: Stream produced by archive()
        local_dir: Destination directory

    Raises:
        ExtractFailure: If the stream is not a valid archive or cannot be written
    """
    dst = Path(local_dir)
    try:
        dst.mkdir(parents=True, exist_ok=True)
        with tarfile.open(fileobj=stream, mode="r:*") as tar:
            tar.extractall(dst, filter="data")
    except (OSError, tarfile.TarError) as e:
        raise ExtractFailure(f"Could not extract into {dst}: {e}") from e

    logger.debug("Extracted archive into %s", dst)
