"""Stylesheet pruning and minification.

:class:`StylesheetPruner` keeps the rules of a stylesheet whose selectors
match the current document and serialises them compactly.  Matching is
delegated to a callable so the pruner never touches the HTML itself.
"""

from __future__ import annotations

from typing import Callable, Iterable, Iterator

import tinycss2
from tinycss2.ast import AtRule, Declaration, Node, QualifiedRule
from tinycss2.serializer import serialize_identifier

GROUPING_AT_RULES = frozenset({"media", "supports", "layer", "container", "document", "-moz-document"})
KEYFRAMES_AT_RULES = frozenset({"keyframes", "-webkit-keyframes", "-moz-keyframes", "-o-keyframes"})
KEYFRAMES_POLICIES = ("critical", "all", "none")

# Whitespace next to these literals is never significant.
_TIGHT_LITERALS = frozenset({",", ">", ";", "{", "}"})

Matcher = Callable[[str], bool]


# ---------------------------------------------------------------------------
# Minification
# ---------------------------------------------------------------------------

def _is_tight(node: Node) -> bool:
    return node.type == "literal" and node.value in _TIGHT_LITERALS


def _serialize_node(node: Node) -> str:
    if node.type == "function":
        return f"{serialize_identifier(node.name)}({minify_tokens(node.arguments)})"
    if node.type == "() block":
        return f"({minify_tokens(node.content)})"
    if node.type == "[] block":
        return f"[{minify_tokens(node.content)}]"
    if node.type == "{} block":
        return f"{{{minify_tokens(node.content)}}}"
    return node.serialize()


def minify_tokens(tokens: Iterable[Node]) -> str:
    """Serialise component values with comments dropped and whitespace collapsed."""
    out: list[str] = []
    previous: Node | None = None
    pending_space = False
    for node in tokens:
        if node.type == "comment":
            continue
        if node.type == "whitespace":
            pending_space = previous is not None
            continue
        if pending_space and not _is_tight(previous) and not _is_tight(node):
            out.append(" ")
        pending_space = False
        out.append(_serialize_node(node))
        previous = node
    return "".join(out)


def _serialize_declaration(decl: Declaration) -> str:
    important = "!important" if decl.important else ""
    return f"{decl.name}:{minify_tokens(decl.value)}{important}"


def _join_items(items: Iterable[Node]) -> str:
    out: list[str] = []
    previous_was_declaration = False
    for item in items:
        if item.type == "declaration":
            if previous_was_declaration:
                out.append(";")
            out.append(_serialize_declaration(item))
            previous_was_declaration = True
        elif item.type in ("qualified-rule", "at-rule"):
            out.append(serialize_rule(item))
            previous_was_declaration = False
    return "".join(out)


def _at_rule_head(rule: AtRule) -> str:
    prelude = minify_tokens(rule.prelude)
    return f"@{rule.at_keyword} {prelude}" if prelude else f"@{rule.at_keyword}"


def serialize_rule(rule: QualifiedRule | AtRule) -> str:
    """Serialise *rule* and everything nested in it, minified."""
    if rule.type == "qualified-rule":
        body = tinycss2.parse_blocks_contents(rule.content, skip_comments=True, skip_whitespace=True)
        return f"{minify_tokens(rule.prelude)}{{{_join_items(body)}}}"
    if rule.content is None:
        return f"{_at_rule_head(rule)};"
    if rule.lower_at_keyword in KEYFRAMES_AT_RULES or rule.lower_at_keyword in GROUPING_AT_RULES:
        body = tinycss2.parse_rule_list(rule.content, skip_comments=True, skip_whitespace=True)
    else:
        body = tinycss2.parse_blocks_contents(rule.content, skip_comments=True, skip_whitespace=True)
    return f"{_at_rule_head(rule)}{{{_join_items(body)}}}"


def minify_css(css: str) -> str:
    """Minify a whole stylesheet without dropping any rule."""
    rules = tinycss2.parse_stylesheet(css, skip_comments=True, skip_whitespace=True)
    return "".join(serialize_rule(r) for r in rules if r.type in ("qualified-rule", "at-rule"))


# ---------------------------------------------------------------------------
# Helpers for font / animation usage
# ---------------------------------------------------------------------------

def split_on_commas(tokens: Iterable[Node]) -> list[list[Node]]:
    """Split a top-level token list on ``,`` literals."""
    groups: list[list[Node]] = [[]]
    for node in tokens:
        if node.type == "literal" and node.value == ",":
            groups.append([])
        else:
            groups[-1].append(node)
    return groups


def _names_in(group: Iterable[Node]) -> str | None:
    words = []
    for node in group:
        if node.type == "string":
            return node.value.lower()
        if node.type == "ident":
            words.append(node.value)
    return " ".join(words).lower() or None


def font_family_names(decl: Declaration) -> list[str]:
    """Return the lower-cased font families named by a ``font``/``font-family`` value."""
    groups = split_on_commas(decl.value)
    if decl.lower_name == "font" and groups:
        first = groups[0]
        numeric = [i for i, n in enumerate(first) if n.type in ("dimension", "percentage", "number")]
        if numeric:
            groups[0] = first[numeric[-1] + 1:]
    names = (_names_in(group) for group in groups)
    return [name for name in names if name]


def _animation_names(decl: Declaration) -> set[str]:
    return {node.value for node in decl.value if node.type in ("ident", "string")}


def _keyframes_name(rule: AtRule) -> str:
    for node in rule.prelude:
        if node.type in ("ident", "string"):
            return node.value
    return ""


# ---------------------------------------------------------------------------
# Pruning
# ---------------------------------------------------------------------------

class StylesheetPruner:
    """Reduce stylesheets to the rules needed by one document.

    Args:
        matcher: Returns ``True`` when a selector matches the document.
        fonts: Keep ``@font-face`` rules for families used by kept rules.
        keyframes: ``"critical"``, ``"all"`` or ``"none"``.
    """

    def __init__(self, matcher: Matcher, fonts: bool = True, keyframes: str = "critical") -> None:
        if keyframes not in KEYFRAMES_POLICIES:
            raise ValueError(f"keyframes must be one of {', '.join(KEYFRAMES_POLICIES)}, got {keyframes!r}")
        self.matcher = matcher
        self.fonts = fonts
        self.keyframes = keyframes
        self._animations: set[str] = set()
        self._families: set[str] = set()

    def prune(self, css: str) -> str:
        """Return the minified critical subset of *css* (possibly empty)."""
        rules = tinycss2.parse_stylesheet(css, skip_comments=True, skip_whitespace=True)
        self._animations = set()
        self._families = set()
        self._collect(rules)
        return "".join(self._emit(rules))

    def critical_selectors(self, rule: QualifiedRule) -> list[str]:
        selectors = (minify_tokens(group) for group in split_on_commas(rule.prelude))
        return [s for s in selectors if s and self.matcher(s)]

    @staticmethod
    def _children(rule: AtRule) -> list[Node]:
        return tinycss2.parse_rule_list(rule.content, skip_comments=True, skip_whitespace=True)

    @staticmethod
    def _declarations(rule: QualifiedRule | AtRule) -> list[Node]:
        return tinycss2.parse_blocks_contents(rule.content, skip_comments=True, skip_whitespace=True)

    def _collect(self, rules: Iterable[Node]) -> None:
        for rule in rules:
            if rule.type == "qualified-rule":
                if not self.critical_selectors(rule):
                    continue
                for decl in self._declarations(rule):
                    if decl.type != "declaration":
                        continue
                    if decl.lower_name in ("animation", "animation-name"):
                        self._animations |= _animation_names(decl)
                    elif decl.lower_name in ("font", "font-family"):
                        self._families.update(font_family_names(decl))
            elif rule.type == "at-rule" and rule.lower_at_keyword in GROUPING_AT_RULES and rule.content is not None:
                self._collect(self._children(rule))

    def _emit(self, rules: Iterable[Node]) -> Iterator[str]:
        for rule in rules:
            if rule.type == "qualified-rule":
                selectors = self.critical_selectors(rule)
                body = _join_items(self._declarations(rule)) if selectors else ""
                if body:
                    yield f"{','.join(selectors)}{{{body}}}"
            elif rule.type == "at-rule":
                yield from self._emit_at_rule(rule)

    def _emit_at_rule(self, rule: AtRule) -> Iterator[str]:
        keyword = rule.lower_at_keyword
        if keyword == "charset":
            return
        if keyword in GROUPING_AT_RULES and rule.content is not None:
            inner = "".join(self._emit(self._children(rule)))
            if inner:
                yield f"{_at_rule_head(rule)}{{{inner}}}"
        elif keyword == "font-face":
            if self._font_face_is_used(rule):
                yield serialize_rule(rule)
        elif keyword in KEYFRAMES_AT_RULES:
            if self.keyframes == "all" or (
                self.keyframes == "critical" and _keyframes_name(rule) in self._animations
            ):
                yield serialize_rule(rule)
        else:
            yield serialize_rule(rule)

    def _font_face_is_used(self, rule: AtRule) -> bool:
        if not self.fonts:
            return False
        for decl in self._declarations(rule):
            if decl.type == "declaration" and decl.lower_name == "font-family":
                return any(name in self._families for name in font_family_names(decl))
        return False
