"""
Unit tests for prune run reporting.
"""

import json
from datetime import datetime, timezone

from ghcrprune.config.prune_config import build_prune_config
from ghcrprune.connectors.base import Version
from ghcrprune.errors import DeletionError
from ghcrprune.retention.retention_logging import PruneReporter
from ghcrprune.retention.retention_models import PruneResult


def make_version(version_id, tags):
    return Version(
        id=version_id,
        name=f"sha256:{version_id}",
        created_at=datetime(2020, 1, version_id, tzinfo=timezone.utc),
        tags=tags,
    )


class TestPruneReporter:
    """Test summaries, outputs and audit trail."""

    def setup_method(self):
        self.reporter = PruneReporter()
        self.pruned = [make_version(1, []), make_version(2, ["pr-1", "pr-2"])]

    def test_step_summary_lists_pruned_versions(self):
        result = PruneResult(candidates_count=2, pruned=self.pruned)

        summary = self.reporter.render_step_summary(result, "app")

        assert "## Pruning of container `app`" in summary
        assert "Pruned **2** of 2 versions." in summary
        assert "| 1 | `sha256:1` | 2020-01-01T00:00:00+00:00 | _untagged_ |" in summary
        assert "`pr-1`, `pr-2`" in summary
        assert "Dry run" not in summary

    def test_step_summary_dry_run_and_failure(self):
        error = DeletionError("Failed to prune version #3", version=make_version(3, []))
        result = PruneResult(candidates_count=3, pruned=self.pruned, dry_run=True, error=error)

        summary = self.reporter.render_step_summary(result, "app")

        assert "**Dry run**" in summary
        assert "Pruned **2** of 3 versions." in summary
        assert "**Failed:** Failed to prune version #3" in summary

    def test_step_summary_without_pruned_versions(self):
        summary = self.reporter.render_step_summary(PruneResult(candidates_count=0), "app")
        assert "| ID |" not in summary

    def test_write_step_summary(self, tmp_path, monkeypatch):
        summary_file = tmp_path / "summary.md"
        monkeypatch.setenv("GITHUB_STEP_SUMMARY", str(summary_file))

        assert self.reporter.write_step_summary(PruneResult(candidates_count=2, pruned=self.pruned), "app")
        assert "Pruned **2** of 2" in summary_file.read_text()

    def test_write_step_summary_without_target(self, monkeypatch):
        monkeypatch.delenv("GITHUB_STEP_SUMMARY", raising=False)
        assert not self.reporter.write_step_summary(PruneResult(candidates_count=0), "app")

    def test_write_outputs(self, tmp_path):
        output_file = tmp_path / "output"

        self.reporter.write_outputs(PruneResult(candidates_count=2, pruned=self.pruned, dry_run=True), str(output_file))

        assert output_file.read_text().splitlines() == [
            "count=2",
            "prunedVersionIds=[1, 2]",
            "dryRun=true",
        ]

    def test_write_outputs_without_target(self, monkeypatch):
        monkeypatch.delenv("GITHUB_OUTPUT", raising=False)
        assert not self.reporter.write_outputs(PruneResult(candidates_count=0))

    def test_audit_entry(self, tmp_path):
        reporter = PruneReporter(str(tmp_path / "audit"))
        config = build_prune_config({
            "token": "ghp_secret",
            "container": "app",
            "organization": "acme",
            "prune-tags-regexes": ["^pr-"],
        })

        log_file = reporter.write_audit_entry(PruneResult(candidates_count=2, pruned=self.pruned), config)

        entry = json.loads(log_file.read_text().splitlines()[0])
        assert entry["scope"] == "organization 'acme'"
        assert entry["container"] == "app"
        assert entry["status"] == "success"
        assert [v["id"] for v in entry["pruned"]] == [1, 2]
        assert entry["policy"]["prune_tags_regexes"] == ["^pr-"]
        assert "ghp_secret" not in log_file.read_text()

    def test_audit_disabled_by_default(self):
        config = build_prune_config({"token": "t", "container": "app"})
        assert self.reporter.write_audit_entry(PruneResult(candidates_count=0), config) is None
