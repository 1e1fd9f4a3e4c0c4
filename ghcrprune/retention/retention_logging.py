"""
Logging and reporting for prune runs.

This module handles run summaries: log lines, the GitHub Actions step
summary and outputs, and an optional JSONL audit trail.
"""

import json
import os
import uuid
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

import structlog

from ghcrprune.retention.retention_models import PruneResult

logger = structlog.get_logger(__name__)


class PruneReporter:
    """Renders the outcome of a prune run for humans and workflows."""

    def __init__(self, logs_dir: Optional[str] = None):
        self.logs_dir = Path(logs_dir) if logs_dir else None

    def log_result(self, result: PruneResult):
        """Log the run summary with a level matching its status."""
        if result.status == 'success':
            logger.info(
                f"✅ Pruned {result.pruned_count} of {result.candidates_count} versions",
                dry_run=result.dry_run,
                pruned_ids=result.pruned_ids,
            )
        else:
            logger.error(
                f"❌ Pruned only {result.pruned_count} of {result.candidates_count} versions",
                dry_run=result.dry_run,
                pruned_ids=result.pruned_ids,
                error=str(result.error) if result.error else None,
            )

    def render_step_summary(self, result: PruneResult, container: str) -> str:
        """Render the run as a markdown job summary."""
        lines = [f"## Pruning of container `{container}`", ""]
        if result.dry_run:
            lines += ["> **Dry run**: no version was actually deleted.", ""]

        lines.append(f"Pruned **{result.pruned_count}** of {result.candidates_count} versions.")
        if result.error is not None:
            lines += ["", f"**Failed:** {result.error}"]

        if result.pruned:
            lines += [
                "",
                "| ID | Name | Created at | Tags |",
                "|---|---|---|---|",
            ]
            for version in result.pruned:
                tags = ", ".join(f"`{tag}`" for tag in version.tags) or "_untagged_"
                lines.append(
                    f"| {version.id} | `{version.name}` | {version.created_at.isoformat()} | {tags} |"
                )

        return "\n".join(lines) + "\n"

    def write_step_summary(self, result: PruneResult, container: str, path: Optional[str] = None) -> bool:
        """Append the markdown summary to $GITHUB_STEP_SUMMARY, if available."""
        path = path or os.environ.get("GITHUB_STEP_SUMMARY")
        if not path:
            return False

        with open(path, 'a', encoding='utf-8') as f:
            f.write(self.render_step_summary(result, container))
        return True

    def write_outputs(self, result: PruneResult, path: Optional[str] = None) -> bool:
        """Append count, prunedVersionIds and dryRun to $GITHUB_OUTPUT, if available."""
        path = path or os.environ.get("GITHUB_OUTPUT")
        if not path:
            return False

        outputs = {
            "count": str(result.pruned_count),
            "prunedVersionIds": json.dumps(result.pruned_ids),
            "dryRun": "true" if result.dry_run else "false",
        }
        with open(path, 'a', encoding='utf-8') as f:
            for name, value in outputs.items():
                f.write(f"{name}={value}\n")
        return True

    def write_audit_entry(self, result: PruneResult, config) -> Optional[Path]:
        """Append one JSON line describing the run to the audit trail."""
        if self.logs_dir is None:
            return None

        self.logs_dir.mkdir(parents=True, exist_ok=True)
        now = datetime.now(timezone.utc)
        entry: Dict[str, Any] = {
            "run_id": str(uuid.uuid4()),
            "timestamp": now.isoformat(),
            "scope": config.scope.describe(),
            "container": config.container,
            "dry_run": result.dry_run,
            "status": result.status,
            "candidates_count": result.candidates_count,
            "pruned_count": result.pruned_count,
            "pruned": [version.summary() for version in result.pruned],
            "error": str(result.error) if result.error else None,
            "policy": asdict(config.retention_policy()),
        }

        log_file = self.logs_dir / f"prune_runs_{now.strftime('%Y-%m-%d')}.jsonl"
        with open(log_file, 'a', encoding='utf-8') as f:
            f.write(json.dumps(entry, default=list) + '\n')

        logger.debug("Audit entry written", path=str(log_file))
        return log_file
