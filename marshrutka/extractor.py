"""
extractor.py

Walks a parsed page with a rule table and pulls out route, stop and
departure records. Nothing here raises for bad content: a record missing a
required field, or carrying one that cannot be parsed, is dropped and a
Diagnostic says where and why.
"""
import re
from dataclasses import dataclass, field

from . import css
from .config import DayType, ScheduleConfig
from .errors import Diagnostic, DiagnosticKind
from .logging_utils import get_logger
from .markup import text_content
from .rational import parse_rational
from .rules import DEFAULT_RULES, REQUIRED_FIELDS, RecordKind
from .timeparse import parse_time

log = get_logger("extractor")


@dataclass(frozen=True)
class RawRecord:
    kind: RecordKind
    fields: dict = field(default_factory=dict)
    source_path: str = "/"
    times: tuple = ()
    recurrence: object = None

    @property
    def route_id(self):
        return self.fields.get("route_id")

    @property
    def stop_id(self):
        return self.fields.get("stop_id")


def _parse_sequence(text, config):
    value = int(text)
    if value < 0:
        raise ValueError(f"negative sequence {value}")
    return value


def _parse_amount(text, config):
    return parse_rational(text, limit=config.max_denominator)


def _parse_day_type(text, config):
    day = DayType.parse(text)
    if day is None:
        raise ValueError(f"unknown day-type {text!r}")
    if day not in config.day_types:
        raise ValueError(f"day-type {day.value!r} is not accepted")
    return day


_PARSERS = {
    "sequence": _parse_sequence,
    "fare": _parse_amount,
    "distance": _parse_amount,
    "minutes": _parse_amount,
    "day_type": _parse_day_type,
}


def field_value(rule, match):
    """Resolve one FieldRule against a css.Match; None when nothing usable is there."""
    start = match.node
    if rule.page:
        start = match.ancestors[0] if match.ancestors else match.node
    elif rule.ancestor:
        start = None
        ancestors = match.ancestors
        for k in range(len(ancestors) - 1, -1, -1):
            if css.matches(ancestors[k], rule.ancestor, ancestors[:k]):
                start = ancestors[k]
                break
    target = start
    if start is not None and rule.selector:
        found = css.select_one(start, rule.selector)
        target = found.node if found else None

    value = None
    if target is not None:
        value = target.get(rule.attr) if rule.attr else text_content(target)
    if value and rule.pattern:
        m = re.search(rule.pattern, value)
        if m is None:
            value = None
        else:
            value = m.group(1) if m.groups() else m.group()
    value = value.strip() if value else None
    if not value and rule.fallback is not None:
        return field_value(rule.fallback, match)
    return value or None


def extract(root, rules=DEFAULT_RULES, config=None):
    """
    Run ``rules`` over the tree under ``root``.

    Returns (records, diagnostics). Records come out in document order,
    each rule's matches before its children's.
    """
    config = config or ScheduleConfig()
    records, diagnostics = [], []
    dropped_stops = set()
    _apply(rules, root, (), {}, config, records, diagnostics, dropped_stops)
    if dropped_stops:
        records = _without_dropped_stops(records, dropped_stops, diagnostics)
    for d in diagnostics:
        log.warning("%s", d)
    log.info("Extracted %d records with %d diagnostics", len(records), len(diagnostics))
    return records, diagnostics


def _apply(rules, base, base_path, context, config, records, diagnostics, dropped_stops):
    for rule in rules:
        for match in css.select(base, rule.selector):
            if rule.outside and _inside(match, rule.outside):
                continue
            path = base_path + match.path
            raw = dict(rule.constants)
            for name, frule in rule.fields.items():
                value = field_value(frule, match)
                if value is not None:
                    raw[name] = value
            for name in rule.inherit:
                if name not in raw and name in context:
                    raw[name] = context[name]

            record = _make_record(rule.kind, raw, "/" + "/".join(path), config, diagnostics)
            if record is None:
                if rule.kind is RecordKind.STOP and raw.get("stop_id"):
                    dropped_stops.add((raw.get("route_id"), raw["stop_id"]))
                # nothing below a dropped record can be attributed to it
                continue
            records.append(record)
            if rule.children:
                _apply(rule.children, match.node, path, raw, config, records, diagnostics, dropped_stops)


def _inside(match, selector):
    ancestors = match.ancestors
    return any(css.matches(a, selector, ancestors[:k]) for k, a in enumerate(ancestors))


def _without_dropped_stops(records, dropped_stops, diagnostics):
    dropped_stops = dropped_stops - {
        (rec.route_id, rec.stop_id) for rec in records if rec.kind is RecordKind.STOP
    }
    kept = []
    for rec in records:
        if rec.kind is RecordKind.DEPARTURE and (rec.route_id, rec.stop_id) in dropped_stops:
            diagnostics.append(
                Diagnostic(
                    DiagnosticKind.MISSING_FIELD,
                    f"departure record lacks stop {rec.stop_id}, which was dropped",
                    rec.source_path,
                )
            )
            continue
        kept.append(rec)
    return kept


def _make_record(kind, raw, source_path, config, diagnostics):
    missing = [name for name in REQUIRED_FIELDS[kind] if not raw.get(name)]
    if missing:
        diagnostics.append(
            Diagnostic(
                DiagnosticKind.MISSING_FIELD,
                f"{kind.value} record lacks {', '.join(missing)}",
                source_path,
            )
        )
        return None

    values = {}
    times, recurrence = (), None
    for name, text in raw.items():
        try:
            if name == "time" and kind is RecordKind.DEPARTURE:
                parsed = parse_time(text, config.time_formats, config.recurrence_cap)
                times, recurrence = parsed.times, parsed.recurrence
                values[name] = text
            elif name in _PARSERS:
                values[name] = _PARSERS[name](text, config)
            else:
                values[name] = text
        except (ValueError, ArithmeticError) as e:
            diagnostics.append(
                Diagnostic(
                    DiagnosticKind.UNPARSEABLE_FIELD,
                    f"{kind.value} field {name}={text!r}: {e}",
                    source_path,
                )
            )
            return None

    if kind is RecordKind.DEPARTURE and "day_type" not in values:
        values["day_type"] = config.default_day_type
    return RawRecord(kind, values, source_path, times, recurrence)
