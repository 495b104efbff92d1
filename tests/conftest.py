"""Shared fixtures: a throwaway Craft + Vite project tree in ``tmp_path``."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from critical_css.config import DEFAULTS, PageSpec, ResolvedConfig

BASE_URL = "https://site.test"
BUNDLE = "assets/app-3f2a1c.css"


def write_bundle(root: Path, css: str, name: str = BUNDLE, manifest: bool = True) -> Path:
    """Write a built CSS bundle (and optionally its manifest) under *root*."""
    css_file = root / "web" / "dist" / name
    css_file.parent.mkdir(parents=True, exist_ok=True)
    css_file.write_text(css, encoding="utf-8")
    if manifest:
        manifest_file = root / DEFAULTS.manifest_path
        manifest_file.parent.mkdir(parents=True, exist_ok=True)
        manifest_file.write_text(
            json.dumps({DEFAULTS.app_entry: {"file": "assets/app.js", "css": [name]}}),
            encoding="utf-8",
        )
    return css_file


def make_config(root: Path, pages: list[PageSpec], **overrides) -> ResolvedConfig:
    values = dict(
        project_root=root,
        base_url=BASE_URL,
        output_dir=root / DEFAULTS.output_dir,
        manifest_path=DEFAULTS.manifest_path,
        app_entry=DEFAULTS.app_entry,
        public_dir=DEFAULTS.public_dir,
        public_path=DEFAULTS.public_path,
        pages=tuple(pages),
    )
    values.update(overrides)
    return ResolvedConfig(**values)


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """An empty project root."""
    return tmp_path / "site"
