"""Rebuild and restore orchestration.

The orchestrator walks the configured mounts in order. Each phase is
fail-fast: the first mount that fails aborts the phase and the remaining
mounts are never attempted. Nothing is rolled back; entries uploaded before
the failure stay in the remote cache.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Type

from build_cache import cache
from build_cache.config import CacheConfig, Phase
from build_cache.errors import DownloadFailure, PhaseError, TransferError, UploadFailure
from build_cache.keys import derive_key, remote_path
from build_cache.providers import StorageProvider, get_provider

logger = logging.getLogger(__name__)


@dataclass
class RunReport:
    """Outcome of a successful run.

    Attributes:
        phases: Phases executed, in order
        elapsed: Wall-clock seconds per phase
        paths: Remote path used for each mount
    """

    phases: List[Phase] = field(default_factory=list)
    elapsed: Dict[Phase, float] = field(default_factory=dict)
    paths: Dict[str, str] = field(default_factory=dict)


class CacheOrchestrator:
    """Drives rebuild and restore for every mount against one provider."""

    def __init__(self, config: CacheConfig, provider: StorageProvider):
        self.config = config
        self.provider = provider

    def cache_path(self, mount: str) -> str:
        """Remote path of the cache entry for a mount on the configured branch."""
        key = derive_key(mount, self.config.effective_branch)
        return remote_path(self.config.repo, key)

    def _process(
        self,
        log_message: str,
        action: Callable[[str, str], None],
        failure: Type[TransferError],
        failure_message: str,
    ) -> float:
        start = time.monotonic()
        for mount in self.config.mounts:
            path = self.cache_path(mount)
            logger.info(log_message, mount, path)
            try:
                action(mount, path)
            except Exception as e:
                raise failure(failure_message, e, mount=mount, path=path) from e
        return time.monotonic() - start

    def rebuild(self) -> float:
        """Archive every mount and upload it to the remote cache.

        Returns:
            Elapsed wall-clock seconds

        Raises:
            UploadFailure: For the first mount that could not be archived or uploaded
        """
        elapsed = self._process(
            "archiving directory <%s> to remote cache <%s>",
            lambda mount, path: cache.upload(self.provider, mount, path),
            UploadFailure,
            "could not upload",
        )
        logger.info("cache built in %.3fs", elapsed)
        return elapsed

    def restore(self) -> float:
        """Download every mount's cache entry and extract it locally.

        A missing entry is an ordinary failure and aborts the phase.

        Returns:
            Elapsed wall-clock seconds

        Raises:
            DownloadFailure: For the first mount that could not be downloaded or extracted
        """
        elapsed = self._process(
            "restoring directory <%s> from remote cache <%s>",
            lambda mount, path: cache.download(self.provider, path, mount),
            DownloadFailure,
            "could not download",
        )
        logger.info("cache restored in %.3fs", elapsed)
        return elapsed

    def run(self) -> RunReport:
        """Run the requested phases in order, rebuild before restore.

        Raises:
            PhaseError: Wrapping the first phase failure
        """
        handlers = {Phase.REBUILD: self.rebuild, Phase.RESTORE: self.restore}
        report = RunReport(paths={m: self.cache_path(m) for m in self.config.mounts})

        for phase in self.config.phases:
            try:
                report.elapsed[phase] = handlers[phase]()
            except TransferError as e:
                raise PhaseError(f"process {phase.value} failed", e, phase=phase) from e
            report.phases.append(phase)

        return report


def execute(config: CacheConfig, provider: Optional[StorageProvider] = None) -> RunReport:
    """Validate the configuration, build the provider and run the cache.

    Args:
        config: Run configuration
        provider: Provider to use instead of the one named in the configuration

    Returns:
        RunReport for the completed run

    Raises:
        ConfigError: If the configuration is invalid
        PhaseError: If a phase fails
    """
    config.validate()
    if provider is None:
        provider = get_provider(config)
    logger.debug(
        "Using %s provider, branch %r, %s credentials",
        provider.name,
        config.effective_branch,
        "static" if config.has_static_credentials else "default",
    )
    return CacheOrchestrator(config, provider).run()
