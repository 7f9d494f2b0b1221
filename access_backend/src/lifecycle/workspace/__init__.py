"""Workspace (Axie Studio) account bridge."""

from .bridge import WorkspaceAccountBridge, workspace_bridge

__all__ = [
    'WorkspaceAccountBridge',
    'workspace_bridge',
]
