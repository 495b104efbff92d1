"""Critical CSS generation for server-rendered sites built with Vite."""

from critical_css.assets import AssetNotFoundError, CssAssetInfo, locate_css_asset
from critical_css.config import ConfigError, PageSpec, ResolvedConfig, resolve_config
from critical_css.pipeline import PageResult, RunSummary, generate_critical_css

__all__ = [
    "generate_critical_css",
    "locate_css_asset",
    "resolve_config",
    "AssetNotFoundError",
    "ConfigError",
    "CssAssetInfo",
    "PageResult",
    "PageSpec",
    "ResolvedConfig",
    "RunSummary",
]
