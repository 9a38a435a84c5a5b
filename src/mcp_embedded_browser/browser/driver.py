"""Selenium controller attached to an already running engine."""

from selenium import webdriver
from selenium.webdriver.chrome.options import Options
from selenium.webdriver.chrome.service import Service as ChromeService

from ..config import chromedriver_log_path

import logging
logger = logging.getLogger(__name__)


def create_webdriver(debugger_host: str, debugger_port: int, config: dict) -> webdriver.Chrome:
    """Attach a Chrome WebDriver to the browser listening on debugger_host:debugger_port."""
    options = Options()
    chrome_path = config.get("chrome_path")
    if chrome_path:
        options.binary_location = chrome_path
    options.add_experimental_option("debuggerAddress", f"{debugger_host}:{debugger_port}")

    service = ChromeService(log_output=chromedriver_log_path())
    driver = webdriver.Chrome(service=service, options=options)
    logger.debug("WebDriver attached to %s:%s", debugger_host, debugger_port)
    return driver


def current_target_id(driver: webdriver.Chrome) -> str:
    """DevTools target id of the page the driver is bound to."""
    info = driver.execute_cdp_cmd("Target.getTargetInfo", {}) or {}
    target_id = (info.get("targetInfo") or {}).get("targetId") or info.get("targetId")
    if not target_id:
        raise RuntimeError("Could not resolve the DevTools target id of the controlled page")
    return target_id


__all__ = [
    "create_webdriver",
    "current_target_id",
]
