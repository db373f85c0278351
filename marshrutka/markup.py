"""
markup.py

Turns a timetable page into a small tree of Element and Text nodes.
BeautifulSoup does the tokenising; this module owns the node types, the
auto-close policy for sloppy tables and lists, and the checks that decide a
buffer is too broken to parse at all.
"""
import re
from dataclasses import dataclass

from bs4 import BeautifulSoup
from bs4.builder import ParserRejectedMarkup
from bs4.element import NavigableString, PreformattedString, Tag

from .errors import MarkupError

DOCUMENT = "#document"

_SECTIONS = frozenset(["thead", "tbody", "tfoot"])
_BLOCKS = frozenset(
    ["p", "div", "table", "ul", "ol", "dl", "section", "h1", "h2", "h3", "h4", "h5", "h6", "pre", "blockquote"]
)

# tag -> opening tags that implicitly close it
AUTO_CLOSE = {
    "td": frozenset(["td", "th", "tr"]) | _SECTIONS,
    "th": frozenset(["td", "th", "tr"]) | _SECTIONS,
    "tr": frozenset(["tr"]) | _SECTIONS,
    "thead": _SECTIONS,
    "tbody": _SECTIONS,
    "tfoot": _SECTIONS,
    "li": frozenset(["li"]),
    "p": _BLOCKS,
    "option": frozenset(["option", "optgroup"]),
    "dt": frozenset(["dt", "dd"]),
    "dd": frozenset(["dt", "dd"]),
}

_BINARY = re.compile(r"[\x00-\x08\x0b\x0e-\x1f]")


@dataclass(frozen=True)
class Text:
    content: str


@dataclass(frozen=True)
class Element:
    tag: str
    attrs: tuple = ()
    children: tuple = ()

    def get(self, name, default=None):
        for key, value in self.attrs:
            if key == name:
                return value
        return default

    @property
    def classes(self):
        return (self.get("class") or "").split()

    def elements(self):
        return [c for c in self.children if isinstance(c, Element)]


def text_content(node):
    """Whitespace-normalised text of a node and everything under it."""
    parts = []
    _collect_text(node, parts)
    return " ".join("".join(parts).split())


def _collect_text(node, parts):
    if isinstance(node, Text):
        parts.append(node.content)
    elif isinstance(node, Element):
        for child in node.children:
            _collect_text(child, parts)


def _check_buffer(text):
    if isinstance(text, (bytes, bytearray)):
        try:
            text = bytes(text).decode("utf-8")
        except UnicodeDecodeError as e:
            raise MarkupError(f"buffer is not UTF-8 text: {e}")
    if not isinstance(text, str):
        raise MarkupError(f"expected markup text, got {type(text).__name__}")
    if not text.strip():
        raise MarkupError("empty document")
    bad = _BINARY.search(text)
    if bad:
        raise MarkupError(f"binary content at offset {bad.start()}")
    last_open = text.rfind("<")
    if last_open != -1 and text.find(">", last_open) == -1:
        raise MarkupError(f"unterminated tag at offset {last_open}")
    last_comment = text.rfind("<!--")
    if last_comment != -1 and text.find("-->", last_comment + 4) == -1:
        raise MarkupError(f"unterminated comment at offset {last_comment}")
    return text


def parse_markup(text):
    """
    Parse markup text into an Element rooted at ``#document``.

    Raises MarkupError for truncated or binary buffers. Recoverable damage
    (unclosed cells, rows and list items, unknown attributes) is repaired
    by the auto-close policy instead.
    """
    text = _check_buffer(text)
    try:
        soup = BeautifulSoup(text, "html.parser", multi_valued_attributes=None)
    except ParserRejectedMarkup as e:
        raise MarkupError(f"markup rejected: {e}")
    return Element(DOCUMENT, (), tuple(_convert_children(soup)))


def _convert_children(tag):
    # A child may come back with hoisted siblings; flatten them in order
    nodes = []
    for child in tag.children:
        nodes.extend(_convert(child))
    return nodes


def _convert(child):
    if isinstance(child, Tag):
        return _convert_element(child)
    if isinstance(child, NavigableString) and not isinstance(child, PreformattedString):
        return [Text(str(child))]
    return []


def _convert_element(tag):
    name = tag.name.lower()
    closers = AUTO_CLOSE.get(name, frozenset())
    kept, hoisted = [], []
    for node in _convert_children(tag):
        if hoisted or (isinstance(node, Element) and node.tag in closers):
            hoisted.append(node)
        else:
            kept.append(node)
    attrs = tuple((k.lower(), v if isinstance(v, str) else " ".join(v)) for k, v in tag.attrs.items())
    return [Element(name, attrs, tuple(kept))] + hoisted
