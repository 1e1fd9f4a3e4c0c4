"""
Package registry connectors.
"""

from .base import PackageRegistryHandler, RegistryScope, ScopeKind, Version

__all__ = [
    'PackageRegistryHandler',
    'RegistryScope',
    'ScopeKind',
    'Version',
]
