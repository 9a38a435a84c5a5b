# tests/test_downloads.py
import os
import time

from mcp_embedded_browser.engine.downloads import (
    DownloadState,
    DownloadTracker,
    TrackedDownload,
    format_download_status,
    matches_glob,
)


def _begin(tracker, guid="g1", name="report.csv"):
    return tracker.on_will_begin({"guid": guid, "suggestedFilename": name, "url": "https://x/" + name})


def test_will_begin_creates_in_progress_record(tmp_path):
    tracker = DownloadTracker(str(tmp_path))
    d = _begin(tracker)
    assert d.state is DownloadState.IN_PROGRESS
    assert d.path == str(tmp_path / "report.csv")
    assert tracker.get("g1") is d
    assert tracker.find_by_path(d.path) is d


def test_will_begin_without_guid_is_ignored(tmp_path):
    tracker = DownloadTracker(str(tmp_path))
    assert tracker.on_will_begin({"suggestedFilename": "x.bin"}) is None
    assert len(tracker) == 0


def test_state_transitions_are_monotonic(tmp_path):
    tracker = DownloadTracker(str(tmp_path))
    d = _begin(tracker)
    tracker.on_progress({"guid": "g1", "state": "inProgress", "receivedBytes": 10, "totalBytes": 100})
    tracker.on_progress({"guid": "g1", "state": "completed", "receivedBytes": 100, "totalBytes": 100})
    assert d.state is DownloadState.COMPLETED

    # Late deltas never move a finished download backwards.
    tracker.on_progress({"guid": "g1", "state": "inProgress", "receivedBytes": 5, "totalBytes": 100})
    tracker.on_progress({"guid": "g1", "state": "canceled", "receivedBytes": 5})
    assert d.state is DownloadState.COMPLETED
    assert d.bytes_received == 100


def test_interrupted_is_terminal():
    d = TrackedDownload(guid="g", path="/nowhere/file.zip")
    assert d.apply_progress(DownloadState.INTERRUPTED, 40, 0)
    assert d.total_bytes is None
    assert not d.apply_progress(DownloadState.COMPLETED, 100, 100)
    assert d.state is DownloadState.INTERRUPTED


def test_terminal_status_is_stable():
    d = TrackedDownload(guid="g", path="/nowhere/report.pdf", bytes_received=2048, total_bytes=2048,
                        state=DownloadState.COMPLETED)
    first = format_download_status(d)
    assert first == format_download_status(d) == format_download_status(d, now=time.time() + 999)
    assert first == "Downloaded: /nowhere/report.pdf (2,048 bytes)"


def test_interrupted_status():
    d = TrackedDownload(guid="g", path="/nowhere/big.iso", bytes_received=10, state=DownloadState.INTERRUPTED)
    assert format_download_status(d) == "Download interrupted: big.iso (10 of unknown bytes received)"


def test_in_progress_status_with_total_and_eta(tmp_path):
    d = TrackedDownload(guid="g", path=str(tmp_path / "video.mp4"), started_at=1000.0,
                        bytes_received=50, total_bytes=100)
    out = format_download_status(d, now=1010.0)
    assert out == "Downloading: video.mp4 (50% - 50/100 bytes, ~10s remaining)"


def test_in_progress_status_without_total(tmp_path):
    d = TrackedDownload(guid="g", path=str(tmp_path / "stream.bin"), bytes_received=4096)
    assert format_download_status(d) == "Downloading: stream.bin (4,096 bytes so far)"


def test_in_progress_falls_back_to_file_on_disk(tmp_path):
    target = tmp_path / "small.txt"
    d = TrackedDownload(guid="g", path=str(target), started_at=time.time() - 60)
    target.write_bytes(b"hello")
    assert format_download_status(d) == f"Downloaded: {target} (5 bytes)"


def test_older_file_with_same_name_is_not_reported_as_done(tmp_path):
    stale = tmp_path / "report.csv"
    stale.write_bytes(b"old contents")
    os.utime(stale, (time.time() - 3600, time.time() - 3600))

    tracker = DownloadTracker(str(tmp_path))
    d = _begin(tracker)
    tracker.on_progress({"guid": "g1", "state": "inProgress", "receivedBytes": 10, "totalBytes": 1000000})

    assert format_download_status(d).startswith("Downloading: report.csv (0% - 10/1,000,000 bytes")


def test_progress_records_path_chosen_by_browser(tmp_path):
    tracker = DownloadTracker(str(tmp_path))
    d = _begin(tracker)
    renamed = str(tmp_path / "report (1).csv")
    tracker.on_progress({"guid": "g1", "state": "inProgress", "receivedBytes": 1, "totalBytes": 10,
                         "filePath": renamed})
    tracker.on_progress({"guid": "g1", "state": "completed", "receivedBytes": 10, "totalBytes": 10,
                         "filePath": renamed})

    assert d.path == renamed
    assert d.file_name == "report (1).csv"
    assert tracker.find_by_path(renamed) is d
    assert format_download_status(d) == f"Downloaded: {renamed} (10 bytes)"

    # A finished record keeps its path.
    tracker.on_progress({"guid": "g1", "state": "completed", "filePath": "/elsewhere/x.csv"})
    assert d.path == renamed


def test_history_ring_evicts_oldest(tmp_path):
    tracker = DownloadTracker(str(tmp_path), capacity=3)
    for i in range(5):
        _begin(tracker, guid=f"g{i}", name=f"f{i}.txt")
    assert len(tracker) == 3
    assert tracker.get("g0") is None
    assert tracker.latest().guid == "g4"


def test_since_filters_by_time_and_pattern(tmp_path):
    tracker = DownloadTracker(str(tmp_path))
    old = _begin(tracker, guid="old", name="old.csv")
    old.started_at = 10.0
    _begin(tracker, guid="a", name="a.csv")
    _begin(tracker, guid="b", name="b.pdf")
    recent = tracker.since(100.0)
    assert [d.guid for d in recent] == ["a", "b"]
    assert [d.guid for d in tracker.since(100.0, "*.csv")] == ["a"]


def test_matches_glob():
    assert matches_glob("/d/Report.CSV", "*.csv")
    assert matches_glob("/d/invoice-2024.pdf", "invoice*")
    assert matches_glob("/d/anything", None)
    assert not matches_glob("/d/photo.png", "*.csv")
