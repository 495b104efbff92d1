"""Critical CSS extraction engine."""

from critical_css.engine.core import PRELOAD_STRATEGIES, CriticalEngine, SelectorMatcher
from critical_css.engine.stylesheet import StylesheetPruner, minify_css

__all__ = ["CriticalEngine", "SelectorMatcher", "StylesheetPruner", "PRELOAD_STRATEGIES", "minify_css"]
