"""Download tracking fed by Browser.download* events."""

import os
import time
import threading
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

import logging
logger = logging.getLogger(__name__)


class DownloadState(Enum):
    IN_PROGRESS = "inProgress"
    COMPLETED = "completed"
    INTERRUPTED = "canceled"

    @classmethod
    def from_event(cls, value: Optional[str]) -> "DownloadState":
        if value == "completed":
            return cls.COMPLETED
        if value in ("canceled", "interrupted"):
            return cls.INTERRUPTED
        return cls.IN_PROGRESS


@dataclass
class TrackedDownload:
    """One observed download. Mutated only by the event-delivery thread."""

    guid: str
    path: str
    started_at: float = field(default_factory=time.time)
    url: str = ""
    state: DownloadState = DownloadState.IN_PROGRESS
    bytes_received: int = 0
    total_bytes: Optional[int] = None

    @property
    def file_name(self) -> str:
        return os.path.basename(self.path)

    @property
    def is_terminal(self) -> bool:
        return self.state is not DownloadState.IN_PROGRESS

    def apply_progress(
        self,
        state: Optional[DownloadState] = None,
        received: Optional[int] = None,
        total: Optional[int] = None,
    ) -> bool:
        """
        Apply a progress delta. Terminal states never change again.

        Returns:
            bool: True if the record changed
        """
        if self.is_terminal:
            return False
        if received is not None and received >= 0:
            self.bytes_received = received
        if total is not None:
            self.total_bytes = total if total > 0 else None
        if state is not None:
            self.state = state
        return True


def matches_glob(file_path: str, pattern: Optional[str]) -> bool:
    """
    Loose file-name match: '*' matches all, '*.ext' matches the suffix,
    anything else is a case-insensitive substring with '*' removed.
    """
    if not pattern or pattern == "*":
        return True
    name = os.path.basename(file_path).lower()
    pattern = pattern.lower()
    if pattern.startswith("*."):
        return name.endswith(pattern[1:])
    return pattern.replace("*", "") in name


def format_download_status(download: TrackedDownload, now: Optional[float] = None) -> str:
    """Describe a download for the calling agent."""
    name = download.file_name
    received = download.bytes_received
    total = download.total_bytes

    if download.state is DownloadState.COMPLETED:
        size = total if total else received
        return f"Downloaded: {download.path} ({size:,} bytes)"

    if download.state is DownloadState.INTERRUPTED:
        total_text = f"{total:,}" if total else "unknown"
        return f"Download interrupted: {name} ({received:,} of {total_text} bytes received)"

    # Small files can land on disk before the completed event arrives. An older
    # file of the same name does not count.
    try:
        if os.path.isfile(download.path) and os.path.getmtime(download.path) >= download.started_at:
            size = os.path.getsize(download.path)
            if size > 0:
                return f"Downloaded: {os.path.abspath(download.path)} ({size:,} bytes)"
    except OSError:
        pass

    if total:
        pct = received / total * 100
        elapsed = (now if now is not None else time.time()) - download.started_at
        eta = ""
        if elapsed > 1 and received > 0:
            remaining = (total - received) / (received / elapsed)
            eta = f", ~{remaining:.0f}s remaining" if remaining < 60 else f", ~{remaining / 60:.1f}min remaining"
        return f"Downloading: {name} ({pct:.0f}% - {received:,}/{total:,} bytes{eta})"

    return f"Downloading: {name} ({received:,} bytes so far)"


class DownloadTracker:
    """Bounded history of recent downloads, newest last."""

    def __init__(self, download_dir: str, capacity: int = 10):
        self.download_dir = download_dir
        self._ring: deque = deque(maxlen=capacity)
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._ring)

    def on_will_begin(self, params: dict) -> Optional[TrackedDownload]:
        """Handle Browser.downloadWillBegin. Returns the new record."""
        guid = params.get("guid")
        file_name = params.get("suggestedFilename") or ""
        if not guid or not file_name:
            return None
        download = TrackedDownload(
            guid=guid,
            path=os.path.join(self.download_dir, file_name),
            url=params.get("url") or "",
        )
        with self._lock:
            self._ring.append(download)
        logger.info("Download started: %s", download.path)
        return download

    def on_progress(self, params: dict) -> Optional[TrackedDownload]:
        """Handle Browser.downloadProgress for a download still in the ring."""
        download = self.get(params.get("guid"))
        if download is None:
            return None
        # Chrome reports where the file really went; duplicates get renamed.
        file_path = params.get("filePath")
        if file_path and not download.is_terminal:
            download.path = file_path
        state = DownloadState.from_event(params.get("state"))
        total = params.get("totalBytes")
        changed = download.apply_progress(
            state=state,
            received=int(params.get("receivedBytes") or 0),
            total=int(total) if total is not None else None,
        )
        if changed and download.is_terminal:
            logger.info("Download %s: %s", state.name.lower(), download.path)
        return download

    def get(self, guid: Optional[str]) -> Optional[TrackedDownload]:
        with self._lock:
            for download in self._ring:
                if download.guid == guid:
                    return download
        return None

    def since(self, started_after: float, pattern: Optional[str] = None) -> List[TrackedDownload]:
        """Downloads started at or after started_after, oldest first."""
        with self._lock:
            items = list(self._ring)
        return [d for d in items if d.started_at >= started_after and matches_glob(d.path, pattern)]

    def latest(self) -> Optional[TrackedDownload]:
        with self._lock:
            return self._ring[-1] if self._ring else None

    def find_by_path(self, path: str) -> Optional[TrackedDownload]:
        with self._lock:
            for download in reversed(self._ring):
                if download.path == path:
                    return download
        return None


__all__ = [
    "DownloadState",
    "TrackedDownload",
    "DownloadTracker",
    "matches_glob",
    "format_download_status",
]
