"""Access-level resolution."""

from .resolver import AccessResolver, access_resolver, resolve_access

__all__ = [
    'AccessResolver',
    'access_resolver',
    'resolve_access',
]
