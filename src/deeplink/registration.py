"""OS-level URL scheme association for the current user.

Windows writes the per-user ``HKCU\\Software\\Classes\\<scheme>`` key; Linux
installs an XDG desktop entry and makes it the default
``x-scheme-handler/<scheme>``. Both operations are idempotent.
"""

from __future__ import annotations

import contextlib
import logging
import os
import shutil
import subprocess
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from platformdirs import user_data_dir

from deeplink.atomic import atomic_write
from deeplink.errors import RegistrationError
from deeplink.ipc.naming import CHANNEL_PREFIX, normalize_scheme

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)

_XDG_MIME_TIMEOUT_SECONDS = 10.0


def register_scheme(
    scheme: str,
    executable_path: str | Path,
    *,
    arguments: Sequence[str] = (),
) -> None:
    """Associate *scheme* with *executable_path* for the current user.

    Args:
        scheme: URL scheme to register (e.g. ``myapp``).
        executable_path: Program the OS launches with the URL as last argument.
        arguments: Extra arguments placed before the URL on the command line.

    Raises:
        RegistrationError: If the association cannot be written.
    """
    normalized = normalize_scheme(scheme)
    executable = str(executable_path)
    if sys.platform == "win32":
        _register_windows(normalized, executable, arguments)
    elif sys.platform.startswith("linux"):
        _register_linux(normalized, executable, arguments)
    else:
        raise RegistrationError(
            f"Scheme registration is not supported on {sys.platform}; "
            "declare the scheme in the application bundle instead"
        )
    logger.info("Registered %s:// -> %s", normalized, executable)


def unregister_scheme(scheme: str) -> None:
    """Remove the association for *scheme*; a missing entry is not an error.

    Raises:
        RegistrationError: If an existing association cannot be removed.
    """
    normalized = normalize_scheme(scheme)
    if sys.platform == "win32":
        _unregister_windows(normalized)
    elif sys.platform.startswith("linux"):
        _unregister_linux(normalized)
    else:
        raise RegistrationError(f"Scheme registration is not supported on {sys.platform}")
    logger.info("Unregistered %s://", normalized)


def default_executable() -> list[str]:
    """Return the command that re-launches the current program.

    Frozen builds (PyInstaller) are their own executable; otherwise the
    interpreter runs the ``deeplink`` module.
    """
    if getattr(sys, "frozen", False):
        return [sys.executable]
    return [sys.executable, "-m", "deeplink"]


# ---------------------------------------------------------------------------
# Windows registry
# ---------------------------------------------------------------------------


def _registry_path(scheme: str) -> str:
    return rf"Software\Classes\{scheme}"


def _windows_command(executable: str, arguments: Sequence[str]) -> str:
    parts = [f'"{executable}"', *(f'"{arg}"' for arg in arguments), '"%1"']
    return " ".join(parts)


def _register_windows(scheme: str, executable: str, arguments: Sequence[str]) -> None:
    import winreg

    root = _registry_path(scheme)
    try:
        with winreg.CreateKeyEx(winreg.HKEY_CURRENT_USER, root, 0, winreg.KEY_ALL_ACCESS) as key:
            winreg.SetValueEx(key, None, 0, winreg.REG_SZ, f"URL:{scheme}")
            winreg.SetValueEx(key, "URL Protocol", 0, winreg.REG_SZ, "")
            with winreg.CreateKeyEx(key, "DefaultIcon", 0, winreg.KEY_ALL_ACCESS) as icon_key:
                winreg.SetValueEx(icon_key, None, 0, winreg.REG_SZ, f"{executable},0")
            with winreg.CreateKeyEx(
                key, r"shell\open\command", 0, winreg.KEY_ALL_ACCESS
            ) as command_key:
                winreg.SetValueEx(
                    command_key,
                    None,
                    0,
                    winreg.REG_SZ,
                    _windows_command(executable, arguments),
                )
    except OSError as exc:
        raise RegistrationError(f"Scheme registration for '{scheme}' failed: {exc}") from exc


def _delete_registry_tree(root: object, path: str) -> None:
    """Delete *path* and all of its subkeys (``winreg`` only removes leaf keys)."""
    import winreg

    with winreg.OpenKey(root, path, 0, winreg.KEY_ALL_ACCESS) as key:
        while True:
            try:
                child = winreg.EnumKey(key, 0)
            except OSError:
                break
            _delete_registry_tree(root, rf"{path}\{child}")
    winreg.DeleteKey(root, path)


def _unregister_windows(scheme: str) -> None:
    import winreg

    try:
        _delete_registry_tree(winreg.HKEY_CURRENT_USER, _registry_path(scheme))
    except FileNotFoundError:
        return
    except OSError as exc:
        raise RegistrationError(f"Failed to delete registry key for '{scheme}': {exc}") from exc


# ---------------------------------------------------------------------------
# Linux / XDG
# ---------------------------------------------------------------------------


def applications_dir() -> Path:
    """Return the per-user XDG applications directory."""
    xdg_data_home = os.environ.get("XDG_DATA_HOME")
    base = Path(xdg_data_home) if xdg_data_home else Path(user_data_dir())
    return base / "applications"


def desktop_file_name(scheme: str) -> str:
    return f"{CHANNEL_PREFIX}-{normalize_scheme(scheme)}.desktop"


# Characters that force an Exec argument into double quotes.
_EXEC_RESERVED = frozenset(" \t\n\"'\\><~|&;$*?#()`")
_EXEC_QUOTED_ESCAPES = str.maketrans({c: "\\" + c for c in '"`$\\'})
_STRING_ESCAPES = str.maketrans({"\\": "\\\\", "\n": "\\n", "\t": "\\t", "\r": "\\r"})


def _exec_argument(arg: str) -> str:
    """Quote one argument for a desktop entry ``Exec`` key."""
    if arg and not _EXEC_RESERVED.intersection(arg):
        quoted = arg
    else:
        quoted = '"' + arg.translate(_EXEC_QUOTED_ESCAPES) + '"'
    # Field codes start with "%"; the string-value escapes apply on top of the quoting.
    return quoted.replace("%", "%%").translate(_STRING_ESCAPES)


def _desktop_entry(scheme: str, executable: str, arguments: Sequence[str]) -> str:
    exec_line = " ".join(_exec_argument(arg) for arg in [executable, *arguments]) + " %u"
    return "\n".join(
        [
            "[Desktop Entry]",
            "Type=Application",
            f"Name={scheme} URL handler",
            f"Exec={exec_line}",
            "Terminal=false",
            "NoDisplay=true",
            f"MimeType=x-scheme-handler/{scheme};",
            "",
        ]
    )


def _register_linux(scheme: str, executable: str, arguments: Sequence[str]) -> None:
    file_name = desktop_file_name(scheme)
    desktop_path = applications_dir() / file_name
    try:
        atomic_write(desktop_path, _desktop_entry(scheme, executable, arguments))
    except OSError as exc:
        raise RegistrationError(f"Failed to write {desktop_path}: {exc}") from exc

    xdg_mime = shutil.which("xdg-mime")
    if xdg_mime is None:
        logger.warning(
            "xdg-mime not found; %s written but not set as default handler", desktop_path
        )
        return

    try:
        result = subprocess.run(
            [xdg_mime, "default", file_name, f"x-scheme-handler/{scheme}"],
            capture_output=True,
            text=True,
            timeout=_XDG_MIME_TIMEOUT_SECONDS,
            check=False,
        )
    except (OSError, subprocess.TimeoutExpired) as exc:
        raise RegistrationError(f"xdg-mime failed for '{scheme}': {exc}") from exc
    if result.returncode != 0:
        detail = result.stderr.strip() or f"exit code {result.returncode}"
        raise RegistrationError(f"xdg-mime failed for '{scheme}': {detail}")


def _unregister_linux(scheme: str) -> None:
    desktop_path = applications_dir() / desktop_file_name(scheme)
    try:
        desktop_path.unlink()
    except FileNotFoundError:
        return
    except OSError as exc:
        raise RegistrationError(f"Failed to remove {desktop_path}: {exc}") from exc

    update_db = shutil.which("update-desktop-database")
    if update_db is not None:
        with contextlib.suppress(OSError, subprocess.TimeoutExpired):
            subprocess.run(
                [update_db, str(desktop_path.parent)],
                capture_output=True,
                timeout=_XDG_MIME_TIMEOUT_SECONDS,
                check=False,
            )


__all__ = [
    "applications_dir",
    "default_executable",
    "desktop_file_name",
    "register_scheme",
    "unregister_scheme",
]
