"""
Base utilities for embedding policies.

This module provides shared helpers and the OperationReport dataclass
used across all policy-driven operations.
"""

from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List
import json


def coerce_float(value: Any, default: float = 0.0) -> float:
    """
    Coerce a value to float, with fallback to default.

    Parameters
    ----------
    value : Any
        Value to coerce
    default : float
        Default value if coercion fails

    Returns
    -------
    float
        Coerced float value
    """
    if value is None:
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


@dataclass
class OperationReport:
    """
    Standard report structure for embedding operations.

    Validation passes and other checks return a report with the
    requested policy, warnings, errors, and operation-specific metadata.
    """
    operation: str = "unknown"
    success: bool = True
    requested_policy: Dict[str, Any] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)

    def add_warning(self, message: str) -> None:
        """Add a warning message."""
        self.warnings.append(message)

    def add_error(self, message: str) -> None:
        """Add an error message and mark as failed."""
        self.errors.append(message)
        self.success = False

    def merge(self, other: "OperationReport") -> None:
        """Merge another report into this one."""
        self.warnings.extend(other.warnings)
        self.errors.extend(other.errors)
        if not other.success:
            self.success = False
        self.metadata.update(other.metadata)


__all__ = [
    "OperationReport",
    "coerce_float",
]
