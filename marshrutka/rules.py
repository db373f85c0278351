"""
rules.py

Declarative selection rules: which nodes become route, stop and departure
records and where each field of a record is found. One interpreter
(extractor.extract) runs any rule table, so supporting a new site means
writing a new table, not new traversal code.
"""
import enum
from dataclasses import dataclass, field


class RecordKind(enum.Enum):
    ROUTE = "route"
    STOP = "stop"
    DEPARTURE = "departure"


REQUIRED_FIELDS = {
    RecordKind.ROUTE: ("route_id",),
    RecordKind.STOP: ("route_id", "stop_id"),
    RecordKind.DEPARTURE: ("route_id", "stop_id", "time"),
}


@dataclass(frozen=True)
class FieldRule:
    """
    Where a field lives relative to a matched node.

    ancestor: start from the nearest enclosing node matching this selector
        instead of the matched node itself
    selector: then take the first descendant matching this selector
        (None means the starting node)
    attr: read this attribute (None means the whitespace-normalised text)
    pattern: keep only group 1 (or the whole match) of this regex
    fallback: rule tried when this one yields nothing
    page: start from the top of the tree being searched (the page, for
        top-level rules) instead of the matched node
    """

    selector: str = None
    attr: str = None
    ancestor: str = None
    pattern: str = None
    fallback: "FieldRule" = None
    page: bool = False


@dataclass(frozen=True)
class SelectionRule:
    kind: RecordKind
    selector: str
    fields: dict = field(default_factory=dict)
    constants: dict = field(default_factory=dict)
    # fields copied from the enclosing record when not extracted here
    inherit: tuple = ("route_id",)
    children: tuple = ()
    # skip matches nested inside a node matching this selector
    outside: str = None


# Sectioned pages, one <section class="route"> per route:
#
#   <section class="route" data-route="12" data-fare="45">
#     <h2 class="route-name">Market - Station</h2>
#     <ol class="stops">
#       <li class="stop" data-stop="A" data-distance="1.5">Market</li> ...
#     </ol>
#     <table class="schedule" data-day="weekday">
#       <thead><tr><th>Stop</th><th>Time</th></tr></thead>
#       <tr><td class="stop">A</td><td class="time">08:00</td></tr> ...
#     </table>
#   </section>
DEFAULT_RULES = (
    SelectionRule(
        RecordKind.ROUTE,
        "section.route",
        fields={
            "route_id": FieldRule(attr="data-route"),
            "name": FieldRule(".route-name", fallback=FieldRule("h2")),
            "fare": FieldRule(attr="data-fare"),
        },
        inherit=(),
        children=(
            SelectionRule(
                RecordKind.STOP,
                ".stops .stop",
                fields={
                    "stop_id": FieldRule(attr="data-stop"),
                    "name": FieldRule(),
                    "sequence": FieldRule(attr="data-seq"),
                    "distance": FieldRule(attr="data-distance"),
                    "minutes": FieldRule(attr="data-minutes"),
                    "fare": FieldRule(attr="data-fare"),
                },
            ),
            SelectionRule(
                RecordKind.DEPARTURE,
                "table.schedule > tr, table.schedule > tbody > tr",
                fields={
                    "stop_id": FieldRule("td.stop"),
                    "time": FieldRule("td.time"),
                    "day_type": FieldRule(attr="data-day", ancestor="table"),
                },
            ),
        ),
    ),
)

_STOP_HREF = r"/stops/([^/?#]+)"

# bustimes.org service pages: each <div class="grouping"> is one direction,
# a timetable row is a stop and every cell in it a departure. Services with a
# single direction have one ungrouped table named by the page header:
#
#   <h1 class="service-header"><strong class="name">3</strong>
#     <span class="description">Douglas - Ramsey</span></h1>
#   <table class="timetable"><tbody><tr><th><a href="/stops/1001">...


def _grid_rules(table=""):
    """Stop and departure rules for a timetable grid under ``table``."""
    scope = f"{table} " if table else ""
    return (
        SelectionRule(
            RecordKind.STOP,
            f"{scope}tbody tr > th",
            fields={
                "stop_id": FieldRule("a[href]", attr="href", pattern=_STOP_HREF, fallback=FieldRule()),
                "name": FieldRule(),
            },
        ),
        SelectionRule(
            RecordKind.DEPARTURE,
            f"{scope}tbody tr > td",
            fields={
                "stop_id": FieldRule(
                    "th a[href]",
                    attr="href",
                    ancestor="tr",
                    pattern=_STOP_HREF,
                    fallback=FieldRule("th", ancestor="tr"),
                ),
                "time": FieldRule(),
            },
        ),
    )


_SERVICE_HEADER = FieldRule("h1.service-header", page=True, fallback=FieldRule("h1", page=True))

BUSTIMES_RULES = (
    SelectionRule(
        RecordKind.ROUTE,
        "div.grouping",
        fields={
            "route_id": FieldRule("h2, h3, h4"),
            "name": FieldRule("h2, h3, h4"),
        },
        inherit=(),
        children=_grid_rules("table.timetable"),
    ),
    SelectionRule(
        RecordKind.ROUTE,
        "table.timetable",
        fields={"route_id": _SERVICE_HEADER, "name": _SERVICE_HEADER},
        inherit=(),
        children=_grid_rules(),
        outside="div.grouping",
    ),
)
