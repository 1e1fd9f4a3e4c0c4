"""
Abstract base class for package registry handlers.

This module defines the PackageRegistryHandler abstract base class that all
scope-specific implementations must inherit from. This allows for easy
switching between owner scopes (organization, named user or the authenticated
user) via configuration, without the retention engine knowing which one it
talks to.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Any


class ScopeKind(Enum):
    """Owner scope enumeration."""
    ORGANIZATION = "organization"
    USER = "user"
    AUTHENTICATED_USER = "authenticated_user"


@dataclass(frozen=True)
class RegistryScope:
    """Owner context under which package versions are listed and deleted."""
    kind: ScopeKind
    owner: Optional[str] = None

    def describe(self) -> str:
        if self.kind is ScopeKind.AUTHENTICATED_USER:
            return "authenticated user"
        return f"{self.kind.value} '{self.owner}'"


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO-8601 timestamp into a timezone-aware datetime (UTC if naive)."""
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class Version:
    """Represents one stored container package version."""
    id: int
    name: str
    created_at: datetime
    tags: List[str] = field(default_factory=list)
    updated_at: Optional[datetime] = None

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> "Version":
        """
        Build a Version from a GitHub package version payload.

        Args:
            payload: Package version object as returned by the REST API

        Returns:
            Version with tags read from metadata.container.tags
        """
        metadata = payload.get("metadata") or {}
        container = metadata.get("container") or {}
        tags = container.get("tags") or []
        updated_at = payload.get("updated_at")

        return cls(
            id=payload["id"],
            name=payload.get("name", ""),
            created_at=parse_timestamp(payload["created_at"]),
            tags=list(tags),
            updated_at=parse_timestamp(updated_at) if updated_at else None,
        )

    @property
    def is_untagged(self) -> bool:
        return not self.tags

    def summary(self) -> Dict[str, Any]:
        """Short, log-friendly view of the version."""
        return {
            "id": self.id,
            "name": self.name,
            "created_at": self.created_at.isoformat(),
            "tags": list(self.tags),
        }


class PackageRegistryHandler(ABC):
    """
    Abstract base class for package registry handlers.

    All scope-specific implementations must inherit from this class
    and implement all abstract methods.
    """

    def __init__(self, container: str, scope: RegistryScope):
        """
        Initialize the registry handler.

        Args:
            container: Name of the container package
            scope: Owner scope the package lives under
        """
        self.container = container
        self.scope = scope
        self.logger = None  # Will be set by subclasses

    @abstractmethod
    async def connect(self) -> None:
        """Open the connection to the registry."""
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """Close the connection to the registry."""
        pass

    @abstractmethod
    async def list_versions(self, page_size: int, page: int = 1) -> List[Version]:
        """
        List one page of active package versions.

        Args:
            page_size: Number of versions per page
            page: 1-based page number

        Returns:
            List of Version objects on the requested page

        Raises:
            Exception: If the registry request fails
        """
        pass

    @abstractmethod
    async def delete_version(self, version: Version) -> None:
        """
        Delete a single package version by its id.

        Args:
            version: Version to delete

        Raises:
            Exception: If the deletion fails
        """
        pass

    # Context manager support
    async def __aenter__(self):
        """Async context manager entry."""
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.disconnect()
