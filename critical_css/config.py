"""Configuration for critical CSS generation.

Three layers feed the pipeline:

* :data:`DEFAULTS` — the values that fit a standard Craft CMS + Vite project.
* the user's ``critical-css.toml`` in the project root, merged over them.
* environment variables (``CRITICAL_URL`` and friends), read by
  :class:`Settings` once ``.env`` has been loaded.

:func:`resolve_config` turns the merged result into a :class:`ResolvedConfig`
whose paths are already absolute, which is all the pipeline ever sees.
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

from critical_css.engine.core import LOG_LEVELS, PRELOAD_STRATEGIES
from critical_css.engine.stylesheet import KEYFRAMES_POLICIES

CONFIG_FILENAME = "critical-css.toml"

EXAMPLE_CONFIG = """\
[[pages]]
uri = "/"
template = "index"

[[pages]]
uri = "/about"
template = "about/index"
"""


class ConfigError(ValueError):
    """Raised when the user configuration cannot be turned into a ResolvedConfig."""


@dataclass(frozen=True)
class PageSpec:
    """A page to fetch (``uri``) and the template its CSS is written for."""

    uri: str
    template: str


@dataclass(frozen=True)
class Defaults:
    output_dir: str = "web/dist/criticalcss"
    manifest_path: str = "web/dist/.vite/manifest.json"
    app_entry: str = "src/js/app.ts"
    public_dir: str = "web"
    public_path: str = "/"
    extraction: Mapping[str, Any] = field(
        default_factory=lambda: MappingProxyType(
            {
                "reduce_inline_styles": True,
                "preload": "none",
                "fonts": True,
                "log_level": "info",
            }
        )
    )


DEFAULTS = Defaults()

# Options understood by critical_css.engine.CriticalEngine.
EXTRACTION_OPTIONS = frozenset(
    {"reduce_inline_styles", "preload", "fonts", "keyframes", "log_level"}
)
_EXTRACTION_CHOICES = {
    "preload": PRELOAD_STRATEGIES,
    "keyframes": KEYFRAMES_POLICIES,
    "log_level": tuple(LOG_LEVELS),
}
_EXTRACTION_FLAGS = ("fonts", "reduce_inline_styles")

PATH_KEYS = ("output_dir", "manifest_path", "app_entry", "public_dir", "public_path")


@dataclass(frozen=True)
class ResolvedConfig:
    """Fully merged configuration handed to the pipeline.

    ``output_dir`` and ``project_root`` are absolute.  ``manifest_path`` and
    ``public_dir`` stay relative to ``project_root``.
    """

    project_root: Path
    base_url: str
    output_dir: Path
    manifest_path: str
    app_entry: str
    public_dir: str
    public_path: str
    pages: tuple[PageSpec, ...]
    extraction: Mapping[str, Any] = field(default_factory=lambda: DEFAULTS.extraction)
    request_timeout: float | None = None


@dataclass
class Settings:
    """Environment-derived settings.  Instantiate after ``load_dotenv``."""

    critical_url: str | None = field(
        default_factory=lambda: os.environ.get("CRITICAL_URL") or None
    )
    request_timeout: float | None = field(
        default_factory=lambda: _optional_float(os.environ.get("CRITICAL_REQUEST_TIMEOUT"))
    )


def _optional_float(value: str | None) -> float | None:
    if not value:
        return None
    try:
        return float(value)
    except ValueError as exc:
        raise ConfigError(f"CRITICAL_REQUEST_TIMEOUT must be a number, got {value!r}") from exc


def load_user_config(path: Path) -> dict[str, Any]:
    """Read the TOML config file at *path*.

    Raises:
        ConfigError: If the file is missing or is not valid TOML.
    """
    if not path.is_file():
        raise ConfigError(f"Config file not found at {path}")
    try:
        with path.open("rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Failed to load {path}: {exc}") from exc


def _parse_pages(raw: Any) -> tuple[PageSpec, ...]:
    if not isinstance(raw, list) or not raw:
        raise ConfigError(f'"pages" must be a non-empty array in {CONFIG_FILENAME}.')

    pages = []
    for i, page in enumerate(raw):
        if not isinstance(page, dict):
            raise ConfigError(f"pages[{i}] must be a table.\n  Got: {page!r}")
        uri = page.get("uri")
        if not uri or not isinstance(uri, str):
            raise ConfigError(f'pages[{i}] is missing a "uri" string.\n  Got: {page!r}')
        template = page.get("template")
        if not template or not isinstance(template, str):
            raise ConfigError(f'pages[{i}] is missing a "template" string.\n  Got: {page!r}')
        pages.append(PageSpec(uri=uri, template=template))
    return tuple(pages)


def _merge_extraction(raw: Any) -> Mapping[str, Any]:
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigError('"extraction" must be a table.')
    unknown = sorted(set(raw) - EXTRACTION_OPTIONS)
    if unknown:
        raise ConfigError(f"Unknown extraction option(s): {', '.join(unknown)}")

    for key, choices in _EXTRACTION_CHOICES.items():
        if key in raw and raw[key] not in choices:
            raise ConfigError(f'"extraction.{key}" must be one of {", ".join(choices)}, got {raw[key]!r}')
    for key in _EXTRACTION_FLAGS:
        if key in raw and not isinstance(raw[key], bool):
            raise ConfigError(f'"extraction.{key}" must be true or false, got {raw[key]!r}')
    return MappingProxyType({**DEFAULTS.extraction, **raw})


def resolve_config(
    user: Mapping[str, Any],
    project_root: Path,
    base_url: str | None,
    request_timeout: float | None = None,
) -> ResolvedConfig:
    """Merge *user* over :data:`DEFAULTS` and resolve paths against *project_root*.

    Raises:
        ConfigError: If pages are missing or malformed, the base URL is
            missing, a path setting is not a string, or an extraction
            option is unknown or has an invalid value.
    """
    if not isinstance(user, Mapping):
        raise ConfigError(f"{CONFIG_FILENAME} must contain a table of settings.")

    pages = _parse_pages(user.get("pages"))

    if not base_url:
        raise ConfigError("CRITICAL_URL environment variable is required.")

    paths = {key: user.get(key, getattr(DEFAULTS, key)) for key in PATH_KEYS}
    for key, value in paths.items():
        if not isinstance(value, str):
            raise ConfigError(f'"{key}" must be a string.')

    root = project_root.resolve()
    return ResolvedConfig(
        project_root=root,
        base_url=base_url.rstrip("/"),
        output_dir=(root / paths["output_dir"]).resolve(),
        manifest_path=paths["manifest_path"],
        app_entry=paths["app_entry"],
        public_dir=paths["public_dir"],
        public_path=paths["public_path"],
        pages=pages,
        extraction=_merge_extraction(user.get("extraction")),
        request_timeout=request_timeout,
    )
