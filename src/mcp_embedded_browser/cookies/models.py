"""Value types shared by the cookie reader, decryptor, extraction client and importer."""

import os
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple


class SameSite(Enum):
    NONE = "None"
    LAX = "Lax"
    STRICT = "Strict"

    @classmethod
    def from_chrome_code(cls, code) -> "SameSite":
        """Cookie database column: 2 strict, 1 lax, anything else (-1 unspecified, 0) none."""
        try:
            code = int(code)
        except (TypeError, ValueError):
            return cls.NONE
        if code == 2:
            return cls.STRICT
        if code == 1:
            return cls.LAX
        return cls.NONE

    @classmethod
    def from_protocol(cls, value: Optional[str]) -> "SameSite":
        """Remote-debugging cookie field: 'Strict', 'Lax', anything else none."""
        if value == "Strict":
            return cls.STRICT
        if value == "Lax":
            return cls.LAX
        return cls.NONE


@dataclass(frozen=True)
class BrowserInfo:
    """
    One locally installable browser family.

    Attributes:
        name: Display name, e.g. "Google Chrome"
        user_data_path: Root of the browser's profile tree ("User Data")
        process_names: Executable names without extension
        executable_candidates: Absolute paths checked in order when launching it
    """

    name: str
    user_data_path: str
    process_names: Tuple[str, ...] = ()
    executable_candidates: Tuple[str, ...] = ()


@dataclass(frozen=True)
class BrowserProfile:
    """A named profile directory ("Default", "Profile 1", ...) inside one browser's tree."""

    name: str
    folder: str
    browser: BrowserInfo

    @property
    def path(self) -> str:
        return os.path.join(self.browser.user_data_path, self.folder)


@dataclass(frozen=True)
class CookieRecord:
    """
    One decrypted or extracted cookie.

    expires is a timezone-aware UTC datetime, or None for a session cookie.
    """

    host: str
    name: str
    value: str
    path: str = "/"
    secure: bool = False
    http_only: bool = False
    same_site: SameSite = SameSite.NONE
    expires: Optional[datetime] = field(default=None)

    @property
    def is_session(self) -> bool:
        return self.expires is None

    def expires_timestamp(self) -> Optional[int]:
        """Expiry as unix seconds, or None for session cookies."""
        if self.expires is None:
            return None
        return int(self.expires.timestamp())


__all__ = [
    "SameSite",
    "BrowserInfo",
    "BrowserProfile",
    "CookieRecord",
]
