from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class ValidationResult(BaseModel):
    """Outcome of one or more checks, serialized as ``{isValid, errors, warnings}``."""

    model_config = ConfigDict(populate_by_name=True)

    is_valid: bool = Field(default=True, alias="isValid")
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    def add_error(self, message: str) -> None:
        self.errors.append(message)
        self.is_valid = False

    def add_warning(self, message: str) -> None:
        self.warnings.append(message)

    def merge(self, other: ValidationResult) -> ValidationResult:
        self.errors.extend(other.errors)
        self.warnings.extend(other.warnings)
        self.is_valid = self.is_valid and other.is_valid and not self.errors
        return self

    @classmethod
    def combine(cls, *results: ValidationResult) -> ValidationResult:
        combined = cls()
        for result in results:
            combined.merge(result)
        return combined
