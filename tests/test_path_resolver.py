import pytest

from path_resolver import expand_home, home_directory


@pytest.mark.parametrize(
    "template, expected",
    [
        ("$HOME/cache", "/home/me/cache"),
        ("$HOME", "/home/me"),
        ("~/Library/Caches", "/home/me/Library/Caches"),
        ("~", "/home/me"),
        ("/var/tmp", "/var/tmp"),
        ("relative/dir", "relative/dir"),
        ("/opt/$HOME/x", "/opt/$HOME/x"),
        ("/opt/~/x", "/opt/~/x"),
    ],
)
def test_expand_home(template: str, expected: str) -> None:
    assert expand_home(template, {"HOME": "/home/me"}) == expected


def test_only_the_leading_token_is_replaced() -> None:
    assert expand_home("$HOME/$HOME", {"HOME": "/h"}) == "/h/$HOME"


def test_other_variables_are_not_expanded() -> None:
    assert expand_home("$TMPDIR/x", {"HOME": "/h", "TMPDIR": "/tmp"}) == "$TMPDIR/x"


def test_unset_home_degrades_to_empty() -> None:
    assert expand_home("$HOME/.cache", {}) == "/.cache"
    assert home_directory({}) == ""


def test_reads_process_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HOME", "/users/test")
    assert expand_home("~/x") == "/users/test/x"
