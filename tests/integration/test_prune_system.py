"""
Integration tests for the pruning system.

Runs configuration, the GitHub handler, the retention engine and reporting
together against an in-memory GitHub Packages API.
"""

import json
import logging
import re
from datetime import datetime, timedelta, timezone

import httpx
import pytest
import structlog

from ghcrprune.config.prune_config import load_prune_config
from ghcrprune.connectors.factory import create_registry_handler
from ghcrprune.errors import ConfigurationError, UpstreamListError
from ghcrprune.retention.retention_cli import setup_logging
from ghcrprune.retention.retention_manager import PruneManager, create_prune_manager

NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)
VERSIONS_PATH = re.compile(r"^/orgs/acme/packages/container/app/versions(?:/(\d+))?$")


class FakeGitHubPackages:
    """Minimal GitHub Packages API for one organization package."""

    def __init__(self, versions, fail_delete_ids=(), fail_list_status=None):
        self.versions = list(versions)
        self.fail_delete_ids = set(fail_delete_ids)
        self.fail_list_status = fail_list_status
        self.list_requests = []
        self.delete_requests = []

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def handle(self, request: httpx.Request) -> httpx.Response:
        match = VERSIONS_PATH.match(request.url.path)
        if match is None:
            return httpx.Response(404, json={"message": "Not Found"})

        if request.method == "GET":
            if self.fail_list_status:
                return httpx.Response(self.fail_list_status, json={"message": "Server Error"})
            page = int(request.url.params["page"])
            per_page = int(request.url.params["per_page"])
            self.list_requests.append(page)
            start = (page - 1) * per_page
            return httpx.Response(200, json=self.versions[start:start + per_page])

        if request.method == "DELETE":
            version_id = int(match.group(1))
            self.delete_requests.append(version_id)
            if version_id in self.fail_delete_ids:
                return httpx.Response(403, json={"message": "Forbidden"})
            self.versions = [v for v in self.versions if v["id"] != version_id]
            return httpx.Response(204)

        return httpx.Response(405)


def payload(version_id, days_old, tags):
    created = (NOW - timedelta(days=days_old)).isoformat().replace("+00:00", "Z")
    return {
        "id": version_id,
        "name": f"sha256:{version_id:064x}",
        "created_at": created,
        "updated_at": created,
        "metadata": {"package_type": "container", "container": {"tags": tags}},
    }


def make_manager(api, audit_dir=None, **inputs):
    environ = {"INPUT_TOKEN": "ghp_token", "INPUT_CONTAINER": "app", "INPUT_ORGANIZATION": "acme"}
    config = load_prune_config(inputs, environ=environ)
    handler = create_registry_handler(config, transport=api.transport())
    manager = create_prune_manager(config, audit_dir=audit_dir)
    manager.handler = handler
    return manager


class TestPruneSystem:
    """End-to-end pruning runs."""

    @pytest.mark.asyncio
    async def test_tag_policy_with_keep_rules(self):
        api = FakeGitHubPackages([
            payload(1, 30, ["pr-123", "pr-demo"]),
            payload(2, 30, ["pr-456", "pr-alpha"]),
            payload(3, 30, ["pr-789", "pr-beta"]),
            payload(4, 30, []),
            payload(5, 1, ["pr-999"]),
        ])
        manager = make_manager(api, **{
            "prune-tags-regexes": ["^pr-"],
            "keep-tags": ["pr-demo", "pr-beta"],
            "prune-untagged": True,
            "keep-younger-than": 7,
        })

        result = await manager.run(now=NOW)

        assert result.pruned_ids == [2, 4]
        assert api.delete_requests == [2, 4]
        assert [v["id"] for v in api.versions] == [1, 3, 5]

    @pytest.mark.asyncio
    async def test_exact_multiple_of_page_size(self):
        api = FakeGitHubPackages([payload(i, 30, []) for i in range(1, 201)])
        manager = make_manager(api, **{"prune-untagged": True, "dry-run": True})

        result = await manager.run(now=NOW)

        assert api.list_requests == [1, 2, 3]
        assert result.pruned_count == 200
        assert api.delete_requests == []

    @pytest.mark.asyncio
    async def test_keep_last_across_pages(self):
        api = FakeGitHubPackages([payload(i, 300 - i, ["nightly"]) for i in range(1, 151)])
        manager = make_manager(api, **{"prune-tags-regexes": ["^nightly$"], "keep-last": 10})

        result = await manager.run(now=NOW)

        assert result.pruned_count == 140
        assert [v["id"] for v in api.versions] == list(range(141, 151))

    @pytest.mark.asyncio
    async def test_deletion_failure_stops_run(self, tmp_path):
        api = FakeGitHubPackages([payload(i, 30, []) for i in range(1, 4)], fail_delete_ids={2})
        manager = make_manager(api, audit_dir=str(tmp_path), **{"prune-untagged": True})

        result = await manager.run(now=NOW)
        manager.publish_result(result)

        assert result.pruned_ids == [1]
        assert result.status == 'failed'
        assert api.delete_requests == [1, 2]
        assert isinstance(result.error.__cause__, httpx.HTTPStatusError)

        entry = json.loads(next(tmp_path.glob("*.jsonl")).read_text())
        assert entry["pruned_count"] == 1
        assert entry["candidates_count"] == 3

    @pytest.mark.asyncio
    async def test_listing_failure(self):
        api = FakeGitHubPackages([payload(1, 30, [])], fail_list_status=502)
        manager = make_manager(api, **{"prune-untagged": True})

        with pytest.raises(UpstreamListError):
            await manager.run(now=NOW)

        assert api.delete_requests == []

    def test_conflicting_scopes_fail_before_any_request(self):
        api = FakeGitHubPackages([])

        with pytest.raises(ConfigurationError):
            make_manager(api, user="octocat")

        assert api.list_requests == []

    @pytest.fixture
    def restore_logging(self):
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        yield
        root.handlers = handlers
        root.setLevel(level)
        structlog.reset_defaults()

    @pytest.mark.asyncio
    async def test_structured_logging_output(self, capsys, restore_logging):
        setup_logging(verbose=True, json_output=True)
        api = FakeGitHubPackages([payload(1, 30, [])])
        manager = make_manager(api, **{"prune-untagged": True, "dry-run": True})

        await manager.run(now=NOW)

        lines = [json.loads(line) for line in capsys.readouterr().out.splitlines() if line.startswith("{")]
        events = [line["event"] for line in lines]
        assert "Dry-run pruning of version" in events
        assert any(event.startswith("✅ Pruned 1 of 1") for event in events)
        assert all("ghp_token" not in json.dumps(line) for line in lines)


def test_manager_builds_handler_from_config():
    config = load_prune_config(environ={"INPUT_TOKEN": "t", "INPUT_CONTAINER": "app", "INPUT_USER": "octocat"})

    manager = PruneManager(config)

    assert manager.handler.scope.owner == "octocat"
