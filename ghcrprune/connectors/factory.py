"""
Registry handler factory.

This module provides a factory for creating registry handlers based on the
configured owner scope. It allows switching between organization, named user
and authenticated user packages without the retention engine branching on it.
"""

from typing import Dict, Type

from ghcrprune.connectors.base import PackageRegistryHandler, RegistryScope, ScopeKind
from ghcrprune.connectors.github import (
    AuthenticatedUserContainerHandler,
    OrgContainerHandler,
    UserContainerHandler,
)


class RegistryHandlerFactory:
    """Factory for creating registry handlers."""

    _handlers: Dict[ScopeKind, Type[PackageRegistryHandler]] = {
        ScopeKind.ORGANIZATION: OrgContainerHandler,
        ScopeKind.USER: UserContainerHandler,
        ScopeKind.AUTHENTICATED_USER: AuthenticatedUserContainerHandler,
    }

    @classmethod
    def create_handler(
        cls,
        container: str,
        scope: RegistryScope,
        token: str,
        **kwargs,
    ) -> PackageRegistryHandler:
        """
        Create a registry handler instance.

        Args:
            container: Container package name
            scope: Owner scope selecting the handler type
            token: GitHub token
            **kwargs: Extra handler options (api_url, rate_limit_delay_ms, transport)

        Returns:
            PackageRegistryHandler instance

        Raises:
            ValueError: If no handler is registered for the scope kind
        """
        if scope.kind not in cls._handlers:
            available = ", ".join(kind.value for kind in cls._handlers)
            raise ValueError(f"Unknown scope kind: {scope.kind}. Available: {available}")

        handler_class = cls._handlers[scope.kind]
        return handler_class(container, scope, token, **kwargs)

    @classmethod
    def get_available_scopes(cls) -> list[str]:
        """Get list of supported scope kinds."""
        return [kind.value for kind in cls._handlers]

    @classmethod
    def register_handler(cls, kind: ScopeKind, handler_class: Type[PackageRegistryHandler]) -> None:
        """
        Register a handler class for a scope kind.

        Args:
            kind: Scope kind the handler serves
            handler_class: Handler class that inherits from PackageRegistryHandler
        """
        cls._handlers[kind] = handler_class


def create_registry_handler(config, **kwargs) -> PackageRegistryHandler:
    """
    Create the registry handler described by a PruneConfig.

    Args:
        config: Validated PruneConfig
        **kwargs: Extra handler options, e.g. an httpx transport

    Returns:
        PackageRegistryHandler for the configured scope
    """
    return RegistryHandlerFactory.create_handler(
        config.container,
        config.scope,
        config.token.get_secret_value(),
        api_url=config.api_url,
        rate_limit_delay_ms=config.rate_limit_delay_ms,
        **kwargs,
    )
