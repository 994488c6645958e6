"""Crash severity classification with an explicit ranking."""
from enum import Enum
from typing import Optional

UNKNOWN_LABEL = "Unknown"


class Severity(Enum):
    """Severity classes, ordered by ``rank`` (higher is more severe).

    Non-injury and unrecognised labels share the unranked ``OTHER`` class.
    """

    FATAL = ("Fatal accident", 4)
    SERIOUS_INJURY = ("Serious injury accident", 3)
    OTHER_INJURY = ("Other injury accident", 2)
    OTHER = ("Non injury accident", 0)

    def __init__(self, label: str, rank: int):
        self.label = label
        self.rank = rank

    def outranks(self, other: "Severity") -> bool:
        return self.rank > other.rank

    @classmethod
    def from_label(cls, value: Optional[str]) -> "Severity":
        """Classify a raw label; anything unrecognised ranks as ``OTHER``."""
        if value is None:
            return cls.OTHER
        return _ALIASES.get(value.strip().lower(), cls.OTHER)


# Lower-cased canonical labels plus the short forms found in older extracts
_ALIASES = {
    "fatal accident": Severity.FATAL,
    "fatal": Severity.FATAL,
    "serious injury accident": Severity.SERIOUS_INJURY,
    "serious injury": Severity.SERIOUS_INJURY,
    "other injury accident": Severity.OTHER_INJURY,
    "other injury": Severity.OTHER_INJURY,
    "non injury accident": Severity.OTHER,
    "non injury": Severity.OTHER,
}


def canonical_severity_label(value: Optional[str]) -> Optional[str]:
    """Map a severity label to its canonical (store) spelling.

    Known aliases are rewritten, unknown labels are returned stripped and
    unchanged, ``None`` stays ``None``.
    """
    if value is None:
        return None
    stripped = value.strip()
    severity = _ALIASES.get(stripped.lower())
    return severity.label if severity else stripped


def severity_rank(value: Optional[str]) -> int:
    return Severity.from_label(value).rank


SEVERITY_LABELS = [severity.label for severity in Severity]
