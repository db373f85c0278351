"""
css.py

A CSS subset over markup.Element trees: tag, *, .class, #id, [attr],
[attr=value] (also ~= ^= $= *=), descendant and child combinators and
comma-separated alternatives. Enough to describe where a timetable keeps
its rows without writing per-site traversal code.
"""
import re
from collections import Counter
from dataclasses import dataclass
from functools import lru_cache

from .markup import Element


class SelectorError(ValueError):
    pass


_TOKEN = re.compile(
    r"(?P<child>\s*>\s*)|(?P<descendant>\s+)|(?P<compound>(?:[^\s>\[\]]|\[[^\]]*\])+)"
)
_TAG = re.compile(r"[A-Za-z][\w-]*|\*")
_PART = re.compile(
    r"\.(?P<cls>[\w-]+)"
    r"|#(?P<id>[\w-]+)"
    r"|\[\s*(?P<attr>[\w:-]+)\s*(?:(?P<op>[~^$*]?=)\s*(?P<val>\"[^\"]*\"|'[^']*'|[^\]\s]*)\s*)?\]"
)


@dataclass(frozen=True)
class Compound:
    tag: str = None
    classes: tuple = ()
    attrs: tuple = ()  # (name, op, value); op None means presence only

    def matches(self, node):
        if self.tag and node.tag != self.tag:
            return False
        if self.classes:
            have = node.classes
            if any(c not in have for c in self.classes):
                return False
        for name, op, value in self.attrs:
            actual = node.get(name)
            if actual is None:
                return False
            if op is None:
                continue
            if op == "=" and actual != value:
                return False
            if op == "~=" and value not in actual.split():
                return False
            if op == "^=" and not actual.startswith(value):
                return False
            if op == "$=" and not actual.endswith(value):
                return False
            if op == "*=" and value not in actual:
                return False
        return True


@dataclass(frozen=True)
class Match:
    node: Element
    ancestors: tuple  # from the search root down to the parent
    path: tuple  # location labels below the search root, ending with node


def _parse_compound(text):
    tag = None
    pos = 0
    m = _TAG.match(text)
    if m:
        tag = None if m.group() == "*" else m.group().lower()
        pos = m.end()
    classes, attrs = [], []
    while pos < len(text):
        m = _PART.match(text, pos)
        if not m:
            raise SelectorError(f"cannot parse {text[pos:]!r}")
        if m.group("cls"):
            classes.append(m.group("cls"))
        elif m.group("id"):
            attrs.append(("id", "=", m.group("id")))
        else:
            value = m.group("val")
            if value is not None and value[:1] in "\"'":
                value = value[1:-1]
            attrs.append((m.group("attr").lower(), m.group("op"), value))
        pos = m.end()
    return Compound(tag, tuple(classes), tuple(attrs))


def _parse_alternative(text):
    steps = []
    combinator = None
    pos = 0
    text = text.strip()
    while pos < len(text):
        m = _TOKEN.match(text, pos)
        if not m:
            raise SelectorError(f"unexpected {text[pos:]!r}")
        if m.group("compound"):
            steps.append((combinator, _parse_compound(m.group("compound"))))
            combinator = None
        elif not steps:
            raise SelectorError(f"selector {text!r} starts with a combinator")
        else:
            combinator = ">" if m.group("child") else " "
        pos = m.end()
    if not steps or combinator:
        raise SelectorError(f"incomplete selector {text!r}")
    return tuple(steps)


@lru_cache(maxsize=256)
def compile_selector(selector):
    alternatives = [a for a in selector.split(",") if a.strip()]
    if not alternatives:
        raise SelectorError("empty selector")
    return tuple(_parse_alternative(a) for a in alternatives)


def _matches_from(steps, i, node, ancestors):
    combinator, compound = steps[i]
    if not compound.matches(node):
        return False
    if i == 0:
        return True
    if combinator == ">":
        return bool(ancestors) and _matches_from(steps, i - 1, ancestors[-1], ancestors[:-1])
    for k in range(len(ancestors) - 1, -1, -1):
        if _matches_from(steps, i - 1, ancestors[k], ancestors[:k]):
            return True
    return False


def _walk(element, ancestors, path):
    totals = Counter(c.tag for c in element.elements())
    seen = Counter()
    for child in element.elements():
        seen[child.tag] += 1
        label = child.tag if totals[child.tag] == 1 else f"{child.tag}[{seen[child.tag]}]"
        yield child, ancestors, path + (label,)
        yield from _walk(child, ancestors + (child,), path + (label,))


def select(root, selector):
    """All matches below ``root`` in document order; ``root`` itself is never a match."""
    compiled = compile_selector(selector)
    for node, ancestors, path in _walk(root, (root,), ()):
        if any(_matches_from(steps, len(steps) - 1, node, ancestors) for steps in compiled):
            yield Match(node, ancestors, path)


def select_one(root, selector):
    return next(select(root, selector), None)


def matches(node, selector, ancestors=()):
    """True if ``node`` (with the given ancestor chain) matches ``selector``."""
    return any(
        _matches_from(steps, len(steps) - 1, node, tuple(ancestors))
        for steps in compile_selector(selector)
    )
