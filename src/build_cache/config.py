"""Configuration management for build-cache.

Handles loading, saving, and validating TOML configuration stored in:
- macOS: ~/.config/build-cache/config.toml
- Linux: ~/.config/build-cache/config.toml (XDG_CONFIG_HOME)
- Windows: %APPDATA%\\build-cache\\config.toml

Every setting can be overridden by a ``BUILD_CACHE_<FIELD>`` environment
variable. Credentials are only ever read from the environment.
"""

import dataclasses
import logging
import os
import sys
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import tomllib
import tomli_w

from build_cache.errors import ConfigError

ENV_PREFIX = "BUILD_CACHE_"


class Acl(str, Enum):
    """Canned ACLs accepted by S3-compatible stores."""

    PRIVATE = "private"
    PUBLIC_READ = "public-read"
    PUBLIC_READ_WRITE = "public-read-write"
    AUTHENTICATED_READ = "authenticated-read"
    BUCKET_OWNER_READ = "bucket-owner-read"
    BUCKET_OWNER_FULL_CONTROL = "bucket-owner-full-control"


class Encryption(str, Enum):
    """Server-side encryption modes. NONE disables encryption headers."""

    NONE = ""
    AES256 = "AES256"
    KMS = "aws:kms"


class Phase(str, Enum):
    """Run phases, in execution order."""

    REBUILD = "rebuild"
    RESTORE = "restore"


# TOML table -> field names read from it
_FILE_LAYOUT = {
    "cache": ("branch", "default_branch", "repo", "mounts", "rebuild", "restore"),
    "storage": (
        "provider",
        "bucket",
        "acl",
        "encryption",
        "endpoint",
        "region",
        "path_style",
        "root",
    ),
    "logging": ("log_level",),
}

_SECRET_FIELDS = ("access_key", "secret_key")
_BOOL_FIELDS = ("path_style", "rebuild", "restore")


@dataclass(frozen=True)
class CacheConfig:
    """Configuration for a build-cache run.

    Attributes:
        acl: Canned ACL applied to uploaded objects
        branch: Branch the cache is keyed on
        bucket: Bucket name (s3 provider)
        default_branch: Branch used when ``branch`` is empty
        encryption: Server-side encryption mode
        endpoint: Custom endpoint URL; the scheme decides TLS vs plaintext
        access_key: Static access key (optional, paired with secret_key)
        secret_key: Static secret key (optional, paired with access_key)
        mounts: Directories to cache, processed in order
        path_style: Use path-style addressing (MinIO) instead of virtual-hosted
        rebuild: Archive mounts and upload them
        restore: Download archives and extract them into mounts
        region: Bucket region
        repo: Repository namespace prefixed to every cache key
        provider: Storage backend name ("s3" or "filesystem")
        root: Root directory for the filesystem provider
        log_level: Logging level name
    """

    acl: Acl = Acl.PRIVATE
    branch: str = ""
    bucket: str = ""
    default_branch: str = "master"
    encryption: Encryption = Encryption.NONE
    endpoint: str = ""
    access_key: str = field(default="", repr=False)
    secret_key: str = field(default="", repr=False)
    mounts: Tuple[str, ...] = ()
    path_style: bool = False
    rebuild: bool = False
    restore: bool = False
    region: str = "us-east-1"
    repo: str = ""
    provider: str = "s3"
    root: str = ""
    log_level: str = "INFO"

    def __post_init__(self):
        # Coerce raw strings coming from TOML/env/CLI into enums and tuples
        try:
            object.__setattr__(self, "acl", Acl(self.acl))
        except ValueError:
            valid = ", ".join(a.value for a in Acl)
            raise ConfigError(f"Invalid ACL {self.acl!r} (valid: {valid})") from None
        try:
            object.__setattr__(self, "encryption", Encryption(self.encryption or ""))
        except ValueError:
            valid = ", ".join(e.value for e in Encryption if e.value)
            raise ConfigError(
                f"Invalid encryption mode {self.encryption!r} (valid: {valid})"
            ) from None
        object.__setattr__(self, "mounts", tuple(self.mounts))

        for name in _BOOL_FIELDS:
            value = getattr(self, name)
            if isinstance(value, str):
                value = _parse_bool(value, name)
            elif not isinstance(value, bool):
                raise ConfigError(f"Invalid value for {name}: {value!r} (expected a boolean)")
            object.__setattr__(self, name, value)

        level = str(self.log_level).upper()
        if level not in logging.getLevelNamesMapping():
            raise ConfigError(f"Invalid log level {self.log_level!r}")
        object.__setattr__(self, "log_level", level)

    @property
    def effective_branch(self) -> str:
        """Branch used for cache keys, falling back to the default branch."""
        return self.branch or self.default_branch

    @property
    def phases(self) -> Tuple[Phase, ...]:
        """Requested phases in execution order."""
        requested = []
        if self.rebuild:
            requested.append(Phase.REBUILD)
        if self.restore:
            requested.append(Phase.RESTORE)
        return tuple(requested)

    @property
    def has_static_credentials(self) -> bool:
        return bool(self.access_key and self.secret_key)

    def validate(self) -> None:
        """Check the configuration before any work starts.

        Raises:
            ConfigError: If no phase is requested, the credential pair is
                incomplete, the backend location is missing, or there is
                nothing to cache
        """
        if not self.phases:
            raise ConfigError("Nothing to do: neither rebuild nor restore is enabled")

        if bool(self.access_key) != bool(self.secret_key):
            raise ConfigError(
                "Incomplete credentials: set both access key and secret key, or neither"
            )

        if self.provider == "s3" and not self.bucket:
            raise ConfigError("No bucket configured for the s3 provider")
        if self.provider == "filesystem" and not self.root:
            raise ConfigError("No root directory configured for the filesystem provider")

        if not self.mounts:
            raise ConfigError("No mounts configured")

    def replace(self, **changes: Any) -> "CacheConfig":
        """Return a copy with the given fields changed. None values are ignored."""
        changes = {k: v for k, v in changes.items() if v is not None}
        return dataclasses.replace(self, **changes)

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "CacheConfig":
        """Load configuration from a TOML file, then apply environment overrides.

        Args:
            path: Path to config file (defaults to standard location)

        Returns:
            CacheConfig instance with loaded values

        Raises:
            FileNotFoundError: If config file doesn't exist
            ConfigError: If a value is invalid
        """
        if path is None:
            path = get_config_path()

        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path, "rb") as f:
            try:
                data = tomllib.load(f)
            except tomllib.TOMLDecodeError as e:
                raise ConfigError(f"Invalid config file {path}: {e}") from e

        values: Dict[str, Any] = {}
        for table, names in _FILE_LAYOUT.items():
            section = data.get(table, {})
            for name in names:
                # [logging] level maps onto log_level
                file_key = "level" if name == "log_level" else name
                if file_key in section:
                    values[name] = section[file_key]

        if "mounts" in values and isinstance(values["mounts"], str):
            values["mounts"] = _split_list(values["mounts"])

        values.update(_read_env())
        return cls(**values)

    @classmethod
    def from_env(cls) -> "CacheConfig":
        """Build configuration from BUILD_CACHE_* environment variables only."""
        return cls(**_read_env())

    def save(self, path: Optional[Path] = None) -> None:
        """Save configuration to TOML file. Credentials are never written.

        Args:
            path: Path to save config (defaults to standard location)
        """
        if path is None:
            path = get_config_path()

        path.parent.mkdir(parents=True, exist_ok=True)

        data: Dict[str, Dict[str, Any]] = {}
        for table, names in _FILE_LAYOUT.items():
            section = data.setdefault(table, {})
            for name in names:
                value = getattr(self, name)
                if isinstance(value, Enum):
                    value = value.value
                elif isinstance(value, tuple):
                    value = list(value)
                section["level" if name == "log_level" else name] = value

        with open(path, "wb") as f:
            tomli_w.dump(data, f)

    def as_display_dict(self) -> Dict[str, str]:
        """Render settings for display, masking credentials."""
        shown = {}
        for f in dataclasses.fields(self):
            value = getattr(self, f.name)
            if f.name in _SECRET_FIELDS:
                value = "****" if value else "[not set]"
            elif isinstance(value, Enum):
                value = value.value or "[none]"
            elif isinstance(value, tuple):
                value = ", ".join(value) or "[none]"
            shown[f.name] = str(value)
        return shown


def _split_list(value: str) -> Tuple[str, ...]:
    return tuple(part.strip() for part in value.split(",") if part.strip())


def _parse_bool(value: str, name: str) -> bool:
    normalized = value.strip().lower()
    if normalized in ("true", "1", "yes", "on"):
        return True
    if normalized in ("false", "0", "no", "off", ""):
        return False
    raise ConfigError(f"Invalid value for {name}: {value!r} (expected a boolean)")


def _read_env() -> Dict[str, Any]:
    """Collect BUILD_CACHE_* overrides from the environment."""
    values: Dict[str, Any] = {}
    for f in dataclasses.fields(CacheConfig):
        raw = os.environ.get(get_env_var_name(f.name))
        if raw is None or raw == "":
            continue
        if f.name == "mounts":
            values[f.name] = _split_list(raw)
        elif f.name in _BOOL_FIELDS:
            values[f.name] = _parse_bool(raw, f.name)
        else:
            values[f.name] = raw
    return values


def get_env_var_name(key: str) -> str:
    """Get the environment variable name for a config key.

    Args:
        key: Configuration key (e.g., "path_style")

    Returns:
        Environment variable name (e.g., "BUILD_CACHE_PATH_STYLE")
    """
    return f"{ENV_PREFIX}{key.upper().replace('.', '_')}"


def get_config_dir() -> Path:
    """Get the platform-specific config directory.

    Returns:
        Path to the config directory for build-cache.
    """
    if sys.platform == "win32":
        appdata = os.environ.get("APPDATA")
        if appdata:
            return Path(appdata) / "build-cache"
        return Path.home() / "AppData" / "Roaming" / "build-cache"

    xdg_config = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config:
        return Path(xdg_config) / "build-cache"
    return Path.home() / ".config" / "build-cache"


def get_config_path() -> Path:
    """Get the path to the config.toml file."""
    return get_config_dir() / "config.toml"


def load_config(path: Optional[Path] = None) -> CacheConfig:
    """Load the config file if one exists, otherwise use the environment alone.

    Args:
        path: Explicit config file; must exist when given

    Returns:
        CacheConfig instance
    """
    if path is not None:
        return CacheConfig.load(path)

    default_path = get_config_path()
    if default_path.exists():
        return CacheConfig.load(default_path)
    return CacheConfig.from_env()
