"""Diagnostics and debugging information utility functions."""

import sys
import platform
from typing import Optional

import selenium
from selenium.common.exceptions import WebDriverException

from ..browser.chrome_executable import get_chrome_binary_for_platform


def collect_diagnostics(session, exc: Optional[Exception] = None) -> str:
    """
    Collect diagnostic information about the engine, driver and environment.

    Args:
        session: EngineSession to describe
        exc: Exception that occurred (can be None)

    Returns:
        str: Formatted diagnostic information
    """
    config = session.config
    try:
        chrome_path = get_chrome_binary_for_platform(config)
    except FileNotFoundError:
        chrome_path = "<unknown>"

    state = session.describe()
    parts = [
        f"OS                : {platform.system()} {platform.release()}",
        f"Python            : {sys.version.split()[0]}",
        f"Selenium          : {getattr(selenium, '__version__', '?')}",
        f"User-data dir     : {config.get('user_data_dir')}",
        f"Download dir      : {state.get('download_dir')}",
        f"Chrome binary     : {chrome_path}",
        f"Engine initialized: {state.get('initialized')}",
        f"Debugger address  : {state.get('debugger') or '<none>'}",
        f"Surface handle    : {state.get('surface_handle') or '<none>'}",
    ]

    driver = session.driver
    if driver is not None:
        try:
            ver = driver.execute_cdp_cmd("Browser.getVersion", {}) or {}
            parts.append(f"Browser version   : {ver.get('product', '<unknown>')}")
        except WebDriverException:
            parts.append("Browser version   : <unknown>")

        cap = getattr(driver, "capabilities", None) or {}
        chrome_caps = cap.get("chrome") or {}
        drv_ver = chrome_caps.get("chromedriverVersion") or cap.get("browserVersion") or "<unknown>"
        parts.append(f"Driver version    : {drv_ver}")

    if exc:
        parts += [
            "---- ERROR ----",
            f"Error type        : {type(exc).__name__}",
            f"Error message     : {exc}",
        ]

    return "\n".join(parts)


__all__ = ["collect_diagnostics"]
