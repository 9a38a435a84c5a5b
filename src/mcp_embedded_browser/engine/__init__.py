"""Embedded engine session, completion signals and download tracking."""

from .downloads import DownloadState, DownloadTracker, TrackedDownload, format_download_status, matches_glob
from .session import EngineSession, NavigationOutcome
from .signals import CompletionSignal, wait_any

__all__ = [
    "DownloadState",
    "DownloadTracker",
    "TrackedDownload",
    "format_download_status",
    "matches_glob",
    "EngineSession",
    "NavigationOutcome",
    "CompletionSignal",
    "wait_any",
]
