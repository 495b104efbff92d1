"""Locate the built CSS bundle the critical CSS is extracted from.

The Vite manifest is tried first.  When it is missing, unreadable, or has no
CSS for the configured entry, the ``web/dist/assets`` directory is scanned
instead.  Only when both come up empty is the run aborted.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

DIST_DIR = Path("web") / "dist"
ASSETS_DIR = DIST_DIR / "assets"
DIST_URL = "/dist"


class AssetNotFoundError(FileNotFoundError):
    """Raised when no built CSS file can be found at all."""


@dataclass(frozen=True)
class CssAssetInfo:
    """The built CSS file on disk and the URL path it is served from."""

    absolute_path: Path
    href: str


def _asset_info(project_root: Path, css_file: str) -> CssAssetInfo:
    return CssAssetInfo(
        absolute_path=project_root / DIST_DIR / css_file,
        href=f"{DIST_URL}/{css_file}",
    )


def css_from_manifest(manifest_file: Path, app_entry: str) -> str | None:
    """Return the first CSS file listed for *app_entry*, or ``None``.

    Every failure mode (missing file, bad JSON, absent entry, empty list) is
    reported as ``None`` with a warning.
    """
    try:
        manifest = json.loads(manifest_file.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.warning("Could not read Vite manifest at %s (%s)", manifest_file, exc)
        return None

    entry = manifest.get(app_entry) if isinstance(manifest, dict) else None
    css = entry.get("css") if isinstance(entry, dict) else None
    if not isinstance(css, list) or not css or not isinstance(css[0], str):
        logger.warning("Vite manifest has no CSS for entry %r", app_entry)
        return None
    return css[0]


def css_from_assets_dir(assets_dir: Path) -> str | None:
    """Return ``assets/<name>`` for the first ``.css`` file in *assets_dir*, or ``None``.

    Files are taken in name order so repeated runs pick the same bundle.
    """
    try:
        names = sorted(p.name for p in assets_dir.iterdir() if p.is_file())
    except OSError:
        return None
    for name in names:
        if name.endswith(".css"):
            return f"assets/{name}"
    return None


def locate_css_asset(project_root: Path, manifest_path: str, app_entry: str) -> CssAssetInfo:
    """Find the built CSS bundle for *app_entry*.

    Args:
        project_root: Absolute project root.
        manifest_path: Manifest location relative to *project_root*.
        app_entry: Key of the entry in the manifest.

    Raises:
        AssetNotFoundError: If neither the manifest nor the assets directory
            yields a CSS file.
    """
    css_file = css_from_manifest(project_root / manifest_path, app_entry)
    if css_file is None:
        logger.warning("Looking for CSS files directly in %s", project_root / ASSETS_DIR)
        css_file = css_from_assets_dir(project_root / ASSETS_DIR)

    if css_file is None:
        raise AssetNotFoundError("No CSS files found in web/dist/. Run your Vite build first.")
    return _asset_info(project_root, css_file)
