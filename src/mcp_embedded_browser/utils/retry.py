"""Retry logic for transient Selenium failures."""

import time
import random
from typing import Callable

from selenium.common.exceptions import (
    JavascriptException,
    NoSuchWindowException,
    StaleElementReferenceException,
    WebDriverException,
)


def retry_op(fn: Callable, retries: int = 2, base_delay: float = 0.15):
    """
    Retry a function call that may fail due to transient Selenium exceptions.

    Script errors raised by the page itself are not transient and propagate
    immediately.

    Args:
        fn: The function to call
        retries: Number of retry attempts (default: 2)
        base_delay: Base delay between retries in seconds (default: 0.15)

    Returns:
        The result of the function call

    Raises:
        The last exception if all retries fail
    """
    for attempt in range(retries + 1):
        try:
            return fn()
        except JavascriptException:
            raise
        except (NoSuchWindowException, StaleElementReferenceException, WebDriverException):
            if attempt == retries:
                raise
            time.sleep(base_delay * (1.0 + random.random()))


__all__ = ["retry_op"]
