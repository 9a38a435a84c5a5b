# tests/test_browsers.py
import json

import pytest

from mcp_embedded_browser.cookies.browsers import (
    find_browser,
    find_cookie_file,
    find_profile,
    known_browsers,
    list_installed_browsers,
    list_profiles,
    read_profile_name,
)

from _utils import make_cookie_db


@pytest.fixture
def chrome_tree(tmp_path, monkeypatch):
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
    root = tmp_path / "google-chrome"
    make_cookie_db(root / "Default" / "Network" / "Cookies", [])
    (root / "Default" / "Preferences").write_text(json.dumps({"profile": {"name": "Work"}}), encoding="utf-8")
    make_cookie_db(root / "Profile 2" / "Cookies", [])
    (root / "Profile 1").mkdir()
    (root / "System Profile").mkdir()
    return root


def test_known_browsers_per_platform():
    for system in ("Windows", "Darwin", "Linux"):
        names = [b.name for b in known_browsers(system)]
        assert names == ["Google Chrome", "Microsoft Edge", "Brave", "Vivaldi", "Opera"]


def test_only_browsers_with_a_profile_tree_are_installed(chrome_tree):
    installed = list_installed_browsers("Linux")
    assert [b.name for b in installed] == ["Google Chrome"]
    assert installed[0].user_data_path == str(chrome_tree)


def test_find_browser_ignores_case(chrome_tree):
    assert find_browser("google chrome", "Linux").name == "Google Chrome"
    assert find_browser("Brave", "Linux") is None


def test_cookie_file_locations(chrome_tree):
    assert find_cookie_file(str(chrome_tree / "Default")).endswith("Network/Cookies")
    assert find_cookie_file(str(chrome_tree / "Profile 2")).endswith("Cookies")
    assert find_cookie_file(str(chrome_tree / "Profile 1")) is None


def test_profile_names(chrome_tree):
    assert read_profile_name(str(chrome_tree / "Default")) == "Work"
    assert read_profile_name(str(chrome_tree / "Profile 2")) is None
    (chrome_tree / "Profile 2" / "Preferences").write_text("{broken", encoding="utf-8")
    assert read_profile_name(str(chrome_tree / "Profile 2")) is None


def test_list_profiles_default_first(chrome_tree):
    browser = find_browser("Google Chrome", "Linux")
    profiles = list_profiles(browser)
    assert [(p.name, p.folder) for p in profiles] == [("Work", "Default"), ("Profile 2", "Profile 2")]
    assert profiles[1].path == str(chrome_tree / "Profile 2")


def test_find_profile(chrome_tree):
    browser = find_browser("Google Chrome", "Linux")
    assert find_profile(browser).folder == "Default"
    assert find_profile(browser, "work").folder == "Default"
    assert find_profile(browser, "profile 2").folder == "Profile 2"
    assert find_profile(browser, "Profile 1") is None
