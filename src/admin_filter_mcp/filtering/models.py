"""
Filter tree data models.

A filter is a two-level tree: an AdvancedFilterConfig combines FilterGroups,
and each FilterGroup combines FilterConditions. Every node is immutable so the
state store can replace nodes structurally instead of editing them in place.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union


class FilterLogic(str, Enum):
    """Combinator applied to the children of a group or config."""

    AND = "AND"
    OR = "OR"

    @classmethod
    def parse(cls, value: Any, default: "FilterLogic") -> "FilterLogic":
        if isinstance(value, cls):
            return value
        if isinstance(value, str) and value in cls.__members__:
            return cls[value]
        return default


class OperatorKind(str, Enum):
    """Operators understood by the condition evaluator."""

    EQ = "eq"
    NEQ = "neq"
    CONTAINS = "contains"
    STARTS_WITH = "startsWith"
    ENDS_WITH = "endsWith"
    IN = "in"
    NOT_IN = "notIn"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    BETWEEN = "between"
    IS_EMPTY = "isEmpty"
    IS_NOT_EMPTY = "isNotEmpty"
    IS_NULL = "isNull"
    IS_NOT_NULL = "isNotNull"

    @classmethod
    def parse(cls, value: Any) -> Union["OperatorKind", str]:
        """Return the matching member, or the raw value when it is not a known operator."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return value


def _operator_value(operator: Union[OperatorKind, str]) -> Any:
    return operator.value if isinstance(operator, OperatorKind) else operator


@dataclass(frozen=True)
class FilterCondition:
    """A single predicate against one named field of a record."""

    id: str
    field: Optional[str] = ""
    operator: Union[OperatorKind, str] = OperatorKind.EQ
    value: Any = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FilterCondition":
        """Create FilterCondition from a JSON-style mapping."""
        return cls(
            id=str(data.get("id") or ""),
            field=data.get("field") or "",
            operator=OperatorKind.parse(data.get("operator", OperatorKind.EQ)),
            value=data.get("value"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "field": self.field,
            "operator": _operator_value(self.operator),
            "value": list(self.value) if isinstance(self.value, tuple) else self.value,
        }


@dataclass(frozen=True)
class FilterGroup:
    """A set of conditions combined by one logic operator."""

    id: str
    logic: FilterLogic = FilterLogic.AND
    conditions: tuple[FilterCondition, ...] = ()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FilterGroup":
        """Create FilterGroup from a JSON-style mapping.

        Any logic other than AND combines with OR semantics, so unknown values
        are read as OR.
        """
        return cls(
            id=str(data.get("id") or ""),
            logic=FilterLogic.parse(data.get("logic"), FilterLogic.OR) if "logic" in data else FilterLogic.AND,
            conditions=tuple(
                c if isinstance(c, FilterCondition) else FilterCondition.from_dict(c)
                for c in data.get("conditions") or []
                if c is not None
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "logic": self.logic.value,
            "conditions": [condition.to_dict() for condition in self.conditions],
        }


@dataclass(frozen=True)
class AdvancedFilterConfig:
    """Root of the filter tree."""

    logic: FilterLogic = FilterLogic.AND
    groups: tuple[FilterGroup, ...] = field(default_factory=tuple)

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> "AdvancedFilterConfig":
        """Create AdvancedFilterConfig from a JSON-style mapping."""
        if not data:
            return cls()
        return cls(
            logic=FilterLogic.parse(data.get("logic"), FilterLogic.OR) if "logic" in data else FilterLogic.AND,
            groups=tuple(
                g if isinstance(g, FilterGroup) else FilterGroup.from_dict(g)
                for g in data.get("groups") or []
                if g is not None
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "logic": self.logic.value,
            "groups": [group.to_dict() for group in self.groups],
        }

    @property
    def condition_count(self) -> int:
        return sum(len(group.conditions) for group in self.groups)
