"""
Main prune manager - orchestrates one pruning run.

Crawls the package versions through the configured registry handler,
filters them against the retention policy, spares the newest candidates and
deletes the rest one at a time. All logging of the run happens here; the
crawler, filter and executor stay free of side effects.
"""

from datetime import datetime, timezone
from typing import Optional

import structlog

from ghcrprune.config.prune_config import PruneConfig
from ghcrprune.connectors.base import PackageRegistryHandler, Version
from ghcrprune.connectors.factory import create_registry_handler
from ghcrprune.retention.pruning import keep_last_versions, prune_versions
from ghcrprune.retention.retention_crawler import PAGE_SIZE, get_pruning_list
from ghcrprune.retention.retention_logging import PruneReporter
from ghcrprune.retention.retention_models import PruneResult
from ghcrprune.retention.version_filter import version_filter

logger = structlog.get_logger(__name__)


class DryRunPruner:
    """Deletion capability that only reports what would be deleted."""

    async def __call__(self, version: Version) -> None:
        logger.info("Dry-run pruning of version", **version.summary())


class PruneManager:
    """
    Main prune manager that runs the retention engine for one package.

    This class wires configuration, the registry handler and reporting.
    """

    def __init__(
        self,
        config: PruneConfig,
        handler: Optional[PackageRegistryHandler] = None,
        reporter: Optional[PruneReporter] = None,
        page_size: int = PAGE_SIZE,
    ):
        self.config = config
        self.policy = config.retention_policy()
        self.handler = handler or create_registry_handler(config)
        self.reporter = reporter or PruneReporter()
        self.page_size = page_size

        self.log = logger.bind(container=config.container, scope=config.scope.describe())

    async def run(self, now: Optional[datetime] = None) -> PruneResult:
        """
        Run the full crawl, filter, reduce and prune sequence.

        Args:
            now: Evaluation time for version ages, defaults to the current UTC time

        Returns:
            PruneResult; a failed deletion is reported on the result, not raised

        Raises:
            UpstreamListError: If listing the versions fails
        """
        now = now or datetime.now(timezone.utc)
        dry_run = self.config.dry_run

        async with self.handler:
            self.log.info("Crawling through all versions to build pruning list...")
            candidates = await get_pruning_list(
                self.handler.list_versions,
                version_filter(self.policy, now),
                page_size=self.page_size,
                on_page=self._log_page,
            )
            self.log.info(f"Found a total of {len(candidates)} versions to prune")

            pruning_list = keep_last_versions(candidates, self.policy.keep_last)
            if len(pruning_list) < len(candidates):
                self.log.info(
                    f"Keeping the {len(candidates) - len(pruning_list)} most recent versions "
                    f"matching the pruning criteria",
                    keep_last=self.policy.keep_last,
                )

            self.log.info(f"Pruning {len(pruning_list)} versions...", dry_run=dry_run)
            prune_version = DryRunPruner() if dry_run else self.handler.delete_version
            result = await prune_versions(
                prune_version,
                pruning_list,
                dry_run=dry_run,
                on_pruned=self._log_pruned,
            )

        self.reporter.log_result(result)
        return result

    def publish_result(self, result: PruneResult) -> None:
        """Write the step summary, workflow outputs and audit entry for a run."""
        self.reporter.write_step_summary(result, self.config.container)
        self.reporter.write_outputs(result)
        self.reporter.write_audit_entry(result, self.config)

    def _log_page(self, page: int, fetched: int, matched: int) -> None:
        self.log.info(f"Found {matched} versions to prune out of {fetched} on page {page}")

    def _log_pruned(self, version: Version) -> None:
        self.log.info(f"Pruned version #{version.id} named '{version.name}'")


def create_prune_manager(config: PruneConfig, audit_dir: Optional[str] = None) -> PruneManager:
    """Create a new PruneManager instance."""
    return PruneManager(config, reporter=PruneReporter(audit_dir))
