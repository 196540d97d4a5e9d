"""Exception hierarchy for build-cache.

Every failure is fatal to the current run. Wrapping errors keep the original
cause chained (``raise ... from cause``) and render it in their message.
"""

from typing import Optional


class CacheError(Exception):
    """Base class for all build-cache errors."""


class ConfigError(CacheError):
    """Invalid or incomplete configuration."""


class ArchiveFailure(CacheError):
    """A local directory could not be archived."""


class ExtractFailure(CacheError):
    """An archive stream could not be extracted."""


class ProviderError(CacheError):
    """Error raised by a storage provider."""

    def __init__(self, message: str, key: Optional[str] = None):
        super().__init__(message)
        self.key = key


class NotFound(ProviderError):
    """No object is stored under the requested key."""


class TransportError(ProviderError):
    """Network, authentication or permission failure talking to the backend."""


class _WrappingError(CacheError):
    """Error that annotates an underlying cause with a short message."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause

    def __str__(self) -> str:
        if self.cause is None:
            return self.message
        return f"{self.message}: {self.cause}"


class TransferError(_WrappingError):
    """Failure moving one mount to or from the remote cache."""

    def __init__(
        self,
        message: str,
        cause: Optional[BaseException] = None,
        mount: Optional[str] = None,
        path: Optional[str] = None,
    ):
        super().__init__(message, cause)
        self.mount = mount
        self.path = path


class UploadFailure(TransferError):
    """A mount could not be uploaded during rebuild."""


class DownloadFailure(TransferError):
    """A mount could not be downloaded during restore."""


class PhaseError(_WrappingError):
    """A rebuild or restore phase failed."""

    def __init__(self, message: str, cause: Optional[BaseException] = None, phase=None):
        super().__init__(message, cause)
        self.phase = phase
