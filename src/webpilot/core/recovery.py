from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple


class Remedy(str, Enum):
    SCROLL = "scroll"
    WAIT = "wait"
    NONE = "none"


@dataclass(frozen=True)
class RecoveryRule:
    signal: str
    remedy: Remedy


@dataclass(frozen=True)
class RecoveryVerdict:
    remedy: Remedy
    rule: Optional[RecoveryRule]

    @property
    def recoverable(self) -> bool:
        return self.remedy is not Remedy.NONE


# First matching signal wins; anything unmatched is fatal.
RECOVERY_RULES: Tuple[RecoveryRule, ...] = (
    RecoveryRule("element not found", Remedy.SCROLL),
    RecoveryRule("not visible", Remedy.SCROLL),
    RecoveryRule("navigation", Remedy.WAIT),
)

FATAL = RecoveryVerdict(Remedy.NONE, None)


def classify_error(message: str, rules: Tuple[RecoveryRule, ...] = RECOVERY_RULES) -> RecoveryVerdict:
    lowered = message.lower()
    for rule in rules:
        if rule.signal in lowered:
            return RecoveryVerdict(rule.remedy, rule)
    return FATAL
