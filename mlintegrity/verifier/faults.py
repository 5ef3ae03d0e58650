"""Faults and results reported by trust rules.

A fault is a finding that a host does not meet its trust baseline. Faults
are collected in the RuleResult of the rule that found them; they are never
raised. A rule that cannot be evaluated at all raises an exception instead.
"""

import enum
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from mlintegrity import json
from mlintegrity.flavor import FlavorPart


class FaultKind(str, enum.Enum):
    LOG_MISSING = "XmlMeasurementLogMissing"
    LOG_INVALID = "XmlMeasurementLogInvalid"
    VALUE_MISMATCH = "XmlMeasurementValueMismatch"
    PCR_EVENT_LOG_MISSING = "PcrEventLogMissing"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Fault:
    kind: FaultKind
    description: str
    expected: Optional[str] = None
    actual: Optional[str] = None
    flavor_id: Optional[uuid.UUID] = None
    pcr_index: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"name": self.kind.value, "description": self.description}
        if self.expected is not None:
            data["expectedValue"] = self.expected
        if self.actual is not None:
            data["actualValue"] = self.actual
        if self.flavor_id is not None:
            data["flavorId"] = str(self.flavor_id)
        if self.pcr_index is not None:
            data["pcrIndex"] = self.pcr_index
        return data


def log_missing_fault(flavor_id: uuid.UUID) -> Fault:
    return Fault(
        kind=FaultKind.LOG_MISSING,
        description=f"Host report does not contain XML Measurement log for flavor {flavor_id}.",
        flavor_id=flavor_id,
    )


def log_invalid_fault() -> Fault:
    return Fault(kind=FaultKind.LOG_INVALID, description="Host report contains an invalid XML measurement log.")


def value_mismatch_fault(expected: str, actual: str, description: Optional[str] = None) -> Fault:
    if description is None:
        description = f"Host XML measurement log final hash with value '{actual}' does not match the expected value '{expected}'"
    return Fault(kind=FaultKind.VALUE_MISMATCH, description=description, expected=expected, actual=actual)


def pcr_event_log_missing_fault(pcr_index: int) -> Fault:
    return Fault(
        kind=FaultKind.PCR_EVENT_LOG_MISSING,
        description=f"Host report does not contain a PCR Event Log for PCR {pcr_index}.",
        pcr_index=pcr_index,
    )


@dataclass(frozen=True)
class RuleInfo:
    name: str
    flavor_id: Optional[uuid.UUID] = None
    flavor_name: Optional[str] = None
    expected_value: Optional[str] = None
    markers: Tuple[FlavorPart, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"name": self.name, "markers": [m.value for m in self.markers]}
        if self.flavor_id is not None:
            data["flavorId"] = str(self.flavor_id)
        if self.flavor_name is not None:
            data["flavorName"] = self.flavor_name
        if self.expected_value is not None:
            data["expectedValue"] = self.expected_value
        return data


@dataclass
class RuleResult:
    """Outcome of applying one rule to one host manifest

    The result is trusted as long as no fault was added to it.
    """

    rule: RuleInfo
    faults: List[Fault] = field(default_factory=list)

    @property
    def trusted(self) -> bool:
        return not self.faults

    def add_fault(self, fault: Fault) -> None:
        self.faults.append(fault)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rule": self.rule.to_dict(),
            "faults": [f.to_dict() for f in self.faults],
            "trusted": self.trusted,
        }

    def to_json(self, **kwargs: Any) -> str:
        return json.dumps(self.to_dict(), **kwargs)
