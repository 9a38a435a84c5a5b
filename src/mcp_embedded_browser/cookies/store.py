"""
Cookie database access.

A running browser keeps its cookie database open, so it is never read in
place: it is copied to a private temp file first and opened read-only.
"""

import os
import time
import shutil
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Union

from ..browser.chrome_process import terminate_browser_processes
from ..config import temp_cookie_copy_path
from ..constants import COOKIE_COPY_RETRY_WAIT_SECS
from ..errors import CookieStoreError

import logging
logger = logging.getLogger(__name__)


_CHROME_EPOCH = datetime(1601, 1, 1, tzinfo=timezone.utc)

_COOKIE_QUERY = (
    "SELECT host_key, name, encrypted_value, value, path, "
    "is_secure, is_httponly, samesite, expires_utc FROM cookies"
)


@dataclass(frozen=True)
class RawCookieRow:
    """One row of the cookies table, value still encrypted."""

    host: str
    name: str
    encrypted_value: Union[bytes, str, None]
    value: Optional[str]
    path: str
    secure: bool
    http_only: bool
    same_site: int
    expires_utc: int


def chrome_time_to_datetime(value) -> Optional[datetime]:
    """
    Convert a Chrome timestamp (microseconds since 1601-01-01 UTC).

    Returns:
        Optional[datetime]: UTC datetime, or None for 0/negative (session) or out-of-range values
    """
    try:
        micros = int(value or 0)
    except (TypeError, ValueError):
        return None
    if micros <= 0:
        return None
    try:
        return _CHROME_EPOCH + timedelta(microseconds=micros)
    except OverflowError:
        return None


def _copy_shared(source: str, dest: str) -> None:
    with open(source, "rb") as src, open(dest, "wb") as dst:
        shutil.copyfileobj(src, dst)


def copy_cookie_database(source: str, dest: str, process_names: Iterable[str] = ()) -> None:
    """
    Copy a cookie database that a running browser may hold locked.

    On a locking failure, background instances of the same browser family
    (no visible window) are terminated and the copy is retried once. Visible
    instances are never touched here.

    Raises:
        CookieStoreError: If the copy still fails after the retry
    """
    try:
        _copy_shared(source, dest)
        return
    except FileNotFoundError as e:
        raise CookieStoreError(f"Cookie database not found: {source}") from e
    except OSError as e:
        logger.warning("Cookie database %s is locked (%s); stopping background browser processes", source, e)

    terminate_browser_processes(process_names, include_visible=False)
    time.sleep(COOKIE_COPY_RETRY_WAIT_SECS)

    try:
        _copy_shared(source, dest)
    except OSError as e:
        raise CookieStoreError(f"Could not copy cookie database {source}: {e}") from e


def remove_quietly(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning("Could not remove temporary cookie copy %s: %s", path, e)


@contextmanager
def private_copy(cookie_file: str, process_names: Iterable[str] = ()) -> Iterator[str]:
    """Yield the path of a temp copy of cookie_file; the copy is deleted on exit."""
    dest = temp_cookie_copy_path()
    try:
        copy_cookie_database(cookie_file, dest, process_names)
        yield dest
    finally:
        remove_quietly(dest)


def _connect_read_only(db_path: str) -> sqlite3.Connection:
    uri = f"file:{Path(db_path).as_posix()}?mode=ro"
    return sqlite3.connect(uri, uri=True)


def read_cookie_rows(db_path: str) -> List[RawCookieRow]:
    """
    Read every row of the cookies table.

    Raises:
        CookieStoreError: If the file is not a readable cookie database
    """
    try:
        conn = _connect_read_only(db_path)
    except sqlite3.Error as e:
        raise CookieStoreError(f"Could not open cookie database {db_path}: {e}") from e

    rows = []
    try:
        for host, name, enc, plain, path, secure, http_only, same_site, expires in conn.execute(_COOKIE_QUERY):
            rows.append(
                RawCookieRow(
                    host=host or "",
                    name=name or "",
                    encrypted_value=enc,
                    value=plain,
                    path=path or "/",
                    secure=bool(secure),
                    http_only=bool(http_only),
                    same_site=int(same_site if same_site is not None else -1),
                    expires_utc=int(expires or 0),
                )
            )
    except sqlite3.Error as e:
        raise CookieStoreError(f"Could not read cookies from {db_path}: {e}") from e
    finally:
        conn.close()
    return rows


def distinct_cookie_names(db_path: str, host_pattern: str) -> List[str]:
    """Distinct cookie names whose host matches a SQL LIKE pattern."""
    try:
        conn = _connect_read_only(db_path)
    except sqlite3.Error as e:
        raise CookieStoreError(f"Could not open cookie database {db_path}: {e}") from e
    try:
        cursor = conn.execute("SELECT DISTINCT name FROM cookies WHERE host_key LIKE ?", (host_pattern,))
        return [row[0] for row in cursor if row[0] is not None]
    except sqlite3.Error as e:
        raise CookieStoreError(f"Could not read cookies from {db_path}: {e}") from e
    finally:
        conn.close()


__all__ = [
    "RawCookieRow",
    "chrome_time_to_datetime",
    "copy_cookie_database",
    "remove_quietly",
    "private_copy",
    "read_cookie_rows",
    "distinct_cookie_names",
]
