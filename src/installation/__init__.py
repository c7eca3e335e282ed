"""Component installation package.

This package plans install operations from a component descriptor, applies
them to the install root with sync semantics and removes or backs up content
that is no longer declared.
"""

from .environment import InstallEnvironment, OSType, detect_os, is_applicable
from .content_policy import ContentPolicy, InstallOperation, SyncMode
from .sync import SyncEngine, WorkResult
from .cleanup import CleanupEngine, CleanupReport, TreeNode
from .reconciler import ComponentReconciler, InstallComponent, ReconcileResult

__all__ = [
    "InstallEnvironment",
    "OSType",
    "detect_os",
    "is_applicable",
    "ContentPolicy",
    "InstallOperation",
    "SyncMode",
    "SyncEngine",
    "WorkResult",
    "CleanupEngine",
    "CleanupReport",
    "TreeNode",
    "ComponentReconciler",
    "InstallComponent",
    "ReconcileResult",
]
