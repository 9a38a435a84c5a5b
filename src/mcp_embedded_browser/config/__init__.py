"""Configuration management for the embedded browser."""

from .environment import (
    get_env_config,
    log_level,
    app_data_root,
)

from .paths import (
    APP_DIR_NAME,
    default_engine_user_data_dir,
    chromedriver_log_path,
    chrome_log_dir,
    temp_cookie_copy_path,
)

__all__ = [
    "get_env_config",
    "log_level",
    "app_data_root",
    "APP_DIR_NAME",
    "default_engine_user_data_dir",
    "chromedriver_log_path",
    "chrome_log_dir",
    "temp_cookie_copy_path",
]
