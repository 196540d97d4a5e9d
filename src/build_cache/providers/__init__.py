"""Storage providers for the remote cache.

Backends are looked up by name, so adding one only requires registering it
in PROVIDERS.
"""

from build_cache.config import CacheConfig
from build_cache.errors import ConfigError
from build_cache.providers.base import StorageProvider
from build_cache.providers.filesystem import FilesystemProvider
from build_cache.providers.s3 import S3Provider

PROVIDERS = {
    S3Provider.name: S3Provider,
    FilesystemProvider.name: FilesystemProvider,
}


def get_provider(config: CacheConfig) -> StorageProvider:
    """Build the storage provider selected by the configuration.

    Args:
        config: Run configuration

    Returns:
        Configured provider instance

    Raises:
        ConfigError: If the provider name is unknown
    """
    try:
        provider_cls = PROVIDERS[config.provider]
    except KeyError:
        raise ConfigError(
            f"Unknown provider {config.provider!r} (valid: {', '.join(PROVIDERS)})"
        ) from None
    return provider_cls.from_config(config)


__all__ = [
    "FilesystemProvider",
    "PROVIDERS",
    "S3Provider",
    "StorageProvider",
    "get_provider",
]
