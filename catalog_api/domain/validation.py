"""Validation result helpers.

Hierarchy checks report plain messages instead of raising so that
several problems can be gathered and shown together.
"""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of a batched validation.

    Attributes:
        valid: True when no errors were collected.
        errors: Collected messages, in the order they were found.
    """

    valid: bool
    errors: list[str] = field(default_factory=list)


class ErrorCollector:
    """Accumulates validation messages.

    Example usage:
        collector = ErrorCollector()
        collector.add_many(validator.validate_level(level))
        collector.add_if(len(name) > 100, "Name is too long")
        result = collector.to_result()
    """

    def __init__(self) -> None:
        self._errors: list[str] = []

    def add(self, error: str) -> None:
        self._errors.append(error)

    def add_many(self, errors: list[str]) -> None:
        self._errors.extend(errors)

    def add_if(self, condition: bool, error: str) -> None:
        if condition:
            self._errors.append(error)

    @property
    def errors(self) -> list[str]:
        """Copy of the collected messages."""
        return list(self._errors)

    def has_errors(self) -> bool:
        return bool(self._errors)

    def clear(self) -> None:
        self._errors.clear()

    def to_result(self) -> ValidationResult:
        return ValidationResult(valid=not self.has_errors(), errors=self.errors)
