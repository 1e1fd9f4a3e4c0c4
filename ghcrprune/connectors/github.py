"""
GitHub Packages registry handlers.

This module implements the PackageRegistryHandler interface for container
packages hosted on ghcr.io, with one handler per owner scope: organization,
named user and the authenticated user.
"""

import asyncio
import logging
import time
from abc import abstractmethod
from typing import List, Optional
from urllib.parse import quote

import httpx

from ghcrprune.connectors.base import (
    PackageRegistryHandler, RegistryScope, Version
)

DEFAULT_API_URL = "https://api.github.com"
GITHUB_API_VERSION = "2022-11-28"


class GitHubPackagesHandler(PackageRegistryHandler):
    """
    Shared GitHub Packages REST client for container packages.

    Subclasses only decide which URL prefix addresses the package versions;
    listing, deletion and authentication are common to every scope.
    """

    def __init__(
        self,
        container: str,
        scope: RegistryScope,
        token: str,
        api_url: str = DEFAULT_API_URL,
        rate_limit_delay_ms: int = 0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize GitHub Packages handler.

        Args:
            container: Container package name (may contain '/')
            scope: Owner scope of the package
            token: GitHub token with read:packages and delete:packages
            api_url: GitHub REST API base URL
            rate_limit_delay_ms: Minimum delay between two requests
            transport: Optional httpx transport, used by tests
        """
        super().__init__(container, scope)
        if not token:
            raise ValueError("GitHub token is required")
        if not container:
            raise ValueError("Container package name is required")

        self.token = token
        self.base_url = api_url.rstrip("/")
        self.client: Optional[httpx.AsyncClient] = None
        self.logger = logging.getLogger(__name__)
        self._transport = transport
        self._rate_limit_delay = rate_limit_delay_ms / 1000.0
        self._last_request_time = 0.0

    @abstractmethod
    def _versions_path(self) -> str:
        """Path of the package versions collection for this scope."""

    def _package_name(self) -> str:
        return quote(self.container, safe="")

    async def connect(self) -> None:
        """Initialize the HTTP client."""
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={
                "Authorization": f"Bearer {self.token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": GITHUB_API_VERSION,
            },
            timeout=30.0,
            transport=self._transport,
        )
        self.logger.info(f"Connected to GitHub Packages API for {self.scope.describe()}")

    async def disconnect(self) -> None:
        """Close the HTTP client."""
        if self.client:
            await self.client.aclose()
            self.client = None
            self.logger.info("Disconnected from GitHub Packages API")

    async def _rate_limit(self):
        """Keep a minimum spacing between consecutive requests."""
        if self._rate_limit_delay <= 0:
            return

        time_since_last = time.monotonic() - self._last_request_time
        if time_since_last < self._rate_limit_delay:
            await asyncio.sleep(self._rate_limit_delay - time_since_last)

        self._last_request_time = time.monotonic()

    async def _make_request(self, method: str, endpoint: str, **kwargs) -> httpx.Response:
        """Make a single request and raise on any non-2xx status."""
        if not self.client:
            raise RuntimeError("Handler not connected. Call connect() first.")

        await self._rate_limit()

        response = await self.client.request(method, endpoint, **kwargs)

        if response.status_code == 401:
            self.logger.error("Authentication failed - check the GitHub token")
        elif response.status_code == 403:
            self.logger.error("Forbidden - the token may lack the packages scopes")

        response.raise_for_status()
        return response

    async def list_versions(self, page_size: int, page: int = 1) -> List[Version]:
        """List one page of active versions of the container package."""
        response = await self._make_request(
            "GET",
            self._versions_path(),
            params={
                "page": page,
                "per_page": page_size,
                "state": "active",
            },
        )
        return [Version.from_api(item) for item in response.json()]

    async def delete_version(self, version: Version) -> None:
        """Delete a container package version by id."""
        await self._make_request("DELETE", f"{self._versions_path()}/{version.id}")
        self.logger.debug(f"Deleted version {version.id} of {self.container}")


class OrgContainerHandler(GitHubPackagesHandler):
    """Container packages owned by an organization."""

    def _versions_path(self) -> str:
        org = quote(self.scope.owner or "", safe="")
        return f"/orgs/{org}/packages/container/{self._package_name()}/versions"


class UserContainerHandler(GitHubPackagesHandler):
    """Container packages owned by a named user."""

    def _versions_path(self) -> str:
        user = quote(self.scope.owner or "", safe="")
        return f"/users/{user}/packages/container/{self._package_name()}/versions"


class AuthenticatedUserContainerHandler(GitHubPackagesHandler):
    """Container packages owned by the user the token belongs to."""

    def _versions_path(self) -> str:
        return f"/user/packages/container/{self._package_name()}/versions"
