"""Sync engine for cloudmirror - remote tree to document store mirroring."""

from .comparator import (
    DiffPlanner,
    ItemComparison,
    PlanDiagnostics,
    SizeComparator,
    SyncPlan,
    SyncReason,
    build_plan,
)
from .engine import SyncEngine
from .folders import FolderMap, FolderMaterializer
from .operations import SyncOperations
from .protocols import ContentSource, DestinationStore
from .scanner import RemoteTreeScanner, parse_listing
from .source import RcloneSource, RemoteStream
from .transfer import TransferPipeline

__all__ = [
    "SyncEngine",
    "SyncOperations",
    "SyncPlan",
    "SyncReason",
    "DiffPlanner",
    "ItemComparison",
    "PlanDiagnostics",
    "SizeComparator",
    "build_plan",
    "FolderMap",
    "FolderMaterializer",
    "TransferPipeline",
    "ContentSource",
    "DestinationStore",
    "RemoteTreeScanner",
    "parse_listing",
    "RcloneSource",
    "RemoteStream",
]
