"""Validation plumbing shared by helm-oss configuration types.

A configuration object collects every problem it finds into a
ConfigValidationResult instead of failing on the first one, so the CLI can
report them all at once.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List

from ..exceptions import ConfigurationError


@dataclass
class ConfigValidationResult:
    """Outcome of validating a configuration.

    Attributes:
        success: False as soon as any problem was recorded
        errors: human-readable problems, in the order they were found
    """

    success: bool
    errors: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return self.success

    def add_error(self, error: str) -> None:
        self.errors.append(error)
        self.success = False

    def render(self) -> str:
        """Multi-line message listing every problem as a bullet."""
        lines = ["Configuration validation failed:"]
        lines.extend(f"  - {error}" for error in self.errors)
        return "\n".join(lines)

    @classmethod
    def success_result(cls) -> ConfigValidationResult:
        return cls(success=True)

    @classmethod
    def failure_result(cls, errors: List[str]) -> ConfigValidationResult:
        return cls(success=False, errors=list(errors))


class Configuration(ABC):
    """Settings object that can check itself and round-trip through a dict."""

    @abstractmethod
    def validate(self) -> ConfigValidationResult:
        ...

    @abstractmethod
    def to_dict(self) -> Dict[str, Any]:
        """Plain mapping that from_dict() accepts back."""

    @classmethod
    @abstractmethod
    def from_dict(cls, data: Dict[str, Any]) -> Configuration:
        ...

    def is_valid(self) -> bool:
        return self.validate().success

    def validate_or_raise(self) -> None:
        """Raise ConfigurationError carrying every problem found."""
        result = self.validate()
        if not result.success:
            raise ConfigurationError(result.render(), {"errors": list(result.errors)})
