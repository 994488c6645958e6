"""Shared filter predicate for summary and point queries.

Both response shapes build their WHERE clause here so that a given filter
always selects the same rows. Bad filter input from the boundary is
normalised away rather than rejected.
"""
import re
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple, Union

from crashmap.models.severity import canonical_severity_label
from crashmap.utils.config import settings

ISO_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


@dataclass(frozen=True)
class FilterCriteria:
    """Normalised filter input: inclusive date bounds and a severity set."""

    date_from: Optional[str] = None
    date_to: Optional[str] = None
    severity: Tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not (self.date_from or self.date_to or self.severity)


@dataclass(frozen=True)
class FilterClause:
    """Conjunction of column comparisons plus its ordered bound parameters."""

    sql: str = ""
    params: Tuple[Tuple[str, Any], ...] = ()

    def as_dict(self) -> Dict[str, Any]:
        return dict(self.params)

    def and_clause(self) -> str:
        """Predicate prefixed with AND, or empty when there is no constraint."""
        return f" AND {self.sql}" if self.sql else ""


def _clean_date(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    value = value.strip()
    if not ISO_DATE_PATTERN.match(value):
        return None
    try:
        date.fromisoformat(value)
    except ValueError:
        return None
    return value


def _clean_severity(values: Any, limit: int) -> Tuple[str, ...]:
    if isinstance(values, str):
        values = [values]
    elif isinstance(values, Mapping):
        # {label: included} selection sets keep only the included labels
        values = [label for label, included in values.items() if included is True]
    if not isinstance(values, Iterable):
        return ()

    cleaned: list[str] = []
    for value in values:
        if not isinstance(value, str):
            continue
        label = canonical_severity_label(value)
        if label and label not in cleaned:
            cleaned.append(label)
    return tuple(cleaned[:limit])


def normalize_filters(
    raw: Union[FilterCriteria, Mapping[str, Any], None],
    max_severity_values: Optional[int] = None,
) -> FilterCriteria:
    """Normalise a sparse filter object from the request boundary.

    Accepts camelCase (``dateFrom``) or snake_case (``date_from``) keys.
    Malformed dates are dropped, severity labels are trimmed, canonicalised,
    de-duplicated in first-seen order and capped.
    """
    if raw is None:
        return FilterCriteria()

    limit = max_severity_values or settings.query.max_severity_values

    if isinstance(raw, FilterCriteria):
        return FilterCriteria(
            date_from=_clean_date(raw.date_from),
            date_to=_clean_date(raw.date_to),
            severity=_clean_severity(raw.severity, limit),
        )

    if not isinstance(raw, Mapping):
        return FilterCriteria()

    return FilterCriteria(
        date_from=_clean_date(raw.get("dateFrom", raw.get("date_from"))),
        date_to=_clean_date(raw.get("dateTo", raw.get("date_to"))),
        severity=_clean_severity(raw.get("severity"), limit),
    )


def build_filter_clause(
    filters: Union[FilterCriteria, Mapping[str, Any], None],
    table_alias: str = "crashes",
) -> FilterClause:
    """Turn filter input into a parameterised predicate.

    Placeholders appear in the SQL in the same order as ``params``:
    date_from, date_to, then one ``severity_N`` per label.
    """
    criteria = normalize_filters(filters)
    clauses: list[str] = []
    params: list[Tuple[str, Any]] = []

    if criteria.date_from:
        clauses.append(f"{table_alias}.accident_date >= CAST(:date_from AS DATE)")
        params.append(("date_from", criteria.date_from))

    if criteria.date_to:
        clauses.append(f"{table_alias}.accident_date <= CAST(:date_to AS DATE)")
        params.append(("date_to", criteria.date_to))

    if criteria.severity:
        names = [f"severity_{index}" for index in range(len(criteria.severity))]
        placeholders = ", ".join(f":{name}" for name in names)
        clauses.append(f"{table_alias}.severity IN ({placeholders})")
        params.extend(zip(names, criteria.severity))

    return FilterClause(sql=" AND ".join(clauses), params=tuple(params))
