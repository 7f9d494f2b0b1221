"""Axie Studio (workspace product) API integration."""

from .client import AxieStudioClient

__all__ = [
    'AxieStudioClient',
]
