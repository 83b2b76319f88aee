from __future__ import annotations

from pathlib import Path

import pytest
from hypothesis import given
from hypothesis import strategies as st

from deeplink.ipc.naming import (
    channel_name,
    endpoint_path_for,
    is_deep_link,
    lock_path_for,
    normalize_scheme,
    scheme_prefix,
    socket_path_for,
)
from deeplink.limits import MAX_SOCKET_PATH_LENGTH

schemes = st.from_regex(r"[a-z][a-z0-9+.\-]{0,20}", fullmatch=True)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("myapp", "myapp"),
        ("MyApp", "myapp"),
        ("myapp://", "myapp"),
        ("myapp:", "myapp"),
        ("  x-custom+v1.2 ", "x-custom+v1.2"),
    ],
)
def test_normalize_scheme_accepts_rfc3986_schemes(raw: str, expected: str) -> None:
    assert normalize_scheme(raw) == expected


@pytest.mark.parametrize("raw", ["", "://", "1app", "my app", "my_app", "-app", "app/x", "ünï"])
def test_normalize_scheme_rejects_invalid_schemes(raw: str) -> None:
    with pytest.raises(ValueError, match="Invalid URL scheme"):
        normalize_scheme(raw)


@given(scheme=schemes)
def test_channel_name_depends_only_on_scheme(scheme: str) -> None:
    assert channel_name(scheme) == channel_name(scheme.upper())
    assert channel_name(scheme) == channel_name(f"{scheme}://")
    assert channel_name(scheme).endswith(scheme)


@given(first=schemes, second=schemes)
def test_distinct_schemes_get_distinct_channels(first: str, second: str) -> None:
    if first != second:
        assert channel_name(first) != channel_name(second)


def test_scheme_prefix_and_deep_link_detection() -> None:
    assert scheme_prefix("MyApp") == "myapp://"
    assert is_deep_link("myapp://open?id=42", "myapp")
    assert is_deep_link("MYAPP://open", "myapp")
    assert not is_deep_link("--verbose", "myapp")
    assert not is_deep_link("otherapp://open", "myapp")
    assert not is_deep_link("myapp:/open", "myapp")


def test_paths_live_in_runtime_dir(tmp_path: Path) -> None:
    name = channel_name("myapp")

    assert socket_path_for(name, tmp_path) == tmp_path / "deeplink-myapp.sock"
    assert endpoint_path_for(name, tmp_path) == tmp_path / "deeplink-myapp.endpoint.json"
    assert lock_path_for(name, tmp_path) == tmp_path / "deeplink-myapp.lock"


def test_socket_path_falls_back_to_short_hashed_name(tmp_path: Path) -> None:
    deep = tmp_path / ("d" * MAX_SOCKET_PATH_LENGTH)
    name = channel_name("myapp")

    first = socket_path_for(name, deep)
    second = socket_path_for(name, deep)

    assert first == second
    assert first.name.startswith("deeplink-")
    assert first.suffix == ".sock"
    assert len(str(first)) <= MAX_SOCKET_PATH_LENGTH
    assert socket_path_for(channel_name("other"), deep) != first
