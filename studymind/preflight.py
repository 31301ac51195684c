"""Environment and dependency preflight checks.

StudyMind needs a graphical session, the GTK 4/libadwaita bindings, a
cairo build with PNG and PDF surfaces (for export) and a writable data
directory for its SQLite store.
Set STUDYMIND_SKIP_PREFLIGHT=1 to bypass (useful for development).
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


@dataclass(frozen=True)
class PreflightResult:
    ok: bool
    message: str


def _has_display() -> bool:
    return bool(os.environ.get("WAYLAND_DISPLAY") or os.environ.get("DISPLAY"))


def _check_cairo() -> Optional[str]:
    try:
        import cairo  # type: ignore[import-not-found]
    except ImportError as exc:
        return (
            "Missing Python dependency 'pycairo'. "
            "Install it with pip (pycairo) and ensure cairo is available. "
            f"Underlying error: {exc}"
        )

    missing = [feature for feature in ("HAS_PNG_FUNCTIONS", "HAS_PDF_SURFACE")
               if not getattr(cairo, feature, False)]
    if missing:
        return (
            "The installed cairo library cannot export mind maps "
            f"(missing: {', '.join(missing)}). Rebuild pycairo against a cairo "
            "with PNG and PDF support."
        )
    return None


def _check_gtk() -> Optional[str]:
    try:
        import gi  # type: ignore[import-not-found]

        gi.require_version("Gtk", "4.0")
        gi.require_version("Adw", "1")
        gi.require_version("Gdk", "4.0")
        from gi.repository import Gtk, Adw, Gdk  # type: ignore[import-not-found]  # noqa: F401
    except (ImportError, ValueError) as exc:
        return (
            "Missing GTK 4/libadwaita bindings. Install PyGObject plus the GTK 4 "
            "and libadwaita introspection data from your distribution. "
            f"Underlying error: {exc}"
        )
    return None


def _check_python_deps() -> Optional[str]:
    """Return an error message if required deps are missing."""
    return _check_cairo() or _check_gtk()


def _data_dir() -> Path:
    override = os.environ.get("STUDYMIND_DATA_DIR")
    if override:
        return Path(override)
    return Path.home() / ".local" / "share" / "studymind"


def _check_data_dir() -> Optional[str]:
    """The map database lives here, so it has to be writable."""
    data_dir = _data_dir()
    # Walk up to the closest directory that already exists
    existing = data_dir
    while not existing.exists() and existing != existing.parent:
        existing = existing.parent
    if not existing.is_dir() or not os.access(existing, os.W_OK | os.X_OK):
        return (
            f"StudyMind cannot write its data directory {data_dir}. "
            "Fix its permissions or point STUDYMIND_DATA_DIR somewhere writable."
        )
    return None


def run_preflight(*, require_display: bool = True, check_deps: bool = True,
                  check_storage: bool = True) -> PreflightResult:
    """Run checks and return a structured result.

    The display check depends on session env vars, so it is only enforced
    at runtime (not during `pip install`).
    """
    if os.environ.get("STUDYMIND_SKIP_PREFLIGHT") == "1":
        return PreflightResult(True, "Preflight skipped via STUDYMIND_SKIP_PREFLIGHT=1")

    if require_display and not _has_display():
        return PreflightResult(
            False,
            "StudyMind needs a graphical session, but neither WAYLAND_DISPLAY nor "
            "DISPLAY is set. Set STUDYMIND_SKIP_PREFLIGHT=1 to bypass.",
        )

    if check_deps:
        dep_error = _check_python_deps()
        if dep_error:
            return PreflightResult(False, dep_error)

    if check_storage:
        storage_error = _check_data_dir()
        if storage_error:
            return PreflightResult(False, storage_error)

    return PreflightResult(True, "Preflight OK")


def run_preflight_or_die(*, require_display: bool = True, check_deps: bool = True,
                         check_storage: bool = True) -> None:
    result = run_preflight(require_display=require_display, check_deps=check_deps,
                           check_storage=check_storage)
    if result.ok:
        return

    sys.stderr.write("\nStudyMind preflight check failed:\n")
    sys.stderr.write(result.message)
    sys.stderr.write("\n\n")
    raise SystemExit(1)
