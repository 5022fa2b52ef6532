"""
Entity Validation

Validates normalized registry entities before import.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta

from src.registry_sync.models import (
    Entrepreneur,
    LegalEntity,
    PublicAssociation,
    RegistryEntity,
    RegistryType,
)

# EDRPOU code: exactly 8 digits
EDRPOU_PATTERN = re.compile(r"^\d{8}$")

# Registration fields are free text that may embed a date, e.g. "зареєстровано 01.01.2020"
DMY_DATE_PATTERN = re.compile(r"(\d{2})\.(\d{2})\.(\d{4})")
ISO_DATE_PATTERN = re.compile(r"(\d{4})-(\d{2})-(\d{2})")

MAX_FUTURE = timedelta(days=365)

_ENTITY_CLASSES: dict[RegistryType, type[RegistryEntity]] = {
    RegistryType.UO: LegalEntity,
    RegistryType.FOP: Entrepreneur,
    RegistryType.FSU: PublicAssociation,
}


@dataclass
class ValidationResult:
    """Result of entity validation."""

    is_valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def add_error(self, message: str) -> None:
        """Add an error message."""
        self.errors.append(message)
        self.is_valid = False

    def add_warning(self, message: str) -> None:
        """Add a warning message."""
        self.warnings.append(message)


@dataclass
class ValidationSummary:
    """Running totals across every entity validated in one run."""

    total: int = 0
    valid: int = 0
    invalid: int = 0
    warnings: int = 0


class EntityValidator:
    """Validates registry entities before import."""

    def __init__(self, strict_mode: bool = False, today: date | None = None):
        """
        Initialize validator.

        Args:
            strict_mode: If True, warnings become errors
            today: Reference date for future-date checks (defaults to today)
        """
        self.strict_mode = strict_mode
        self._today = today
        self.summary = ValidationSummary()

    def validate(
        self,
        entity: RegistryEntity,
        registry_type: RegistryType | None = None,
    ) -> ValidationResult:
        """
        Validate an entity.

        Args:
            entity: Normalized entity
            registry_type: Registry the entity is being imported into; an
                entity of a different shape is rejected

        Returns:
            ValidationResult with is_valid, errors, and warnings
        """
        result = ValidationResult(is_valid=True)

        if not self._validate_type(entity, registry_type, result):
            self._record(result)
            return result

        self._validate_required_fields(entity, result)

        if isinstance(entity, (LegalEntity, PublicAssociation)):
            self._validate_edrpou(entity.edrpou, result)

        self._validate_date_field(entity.registration, "registration", result)
        self._validate_date_field(entity.terminated_info, "terminated_info", result)

        if isinstance(entity, LegalEntity):
            self._validate_capital(entity.authorized_capital, result)

        if self.strict_mode and result.warnings:
            result.errors.extend(result.warnings)
            result.is_valid = False

        self._record(result)
        return result

    def reset_summary(self) -> None:
        self.summary = ValidationSummary()

    def _record(self, result: ValidationResult) -> None:
        self.summary.total += 1
        if result.is_valid:
            self.summary.valid += 1
        else:
            self.summary.invalid += 1
        if result.warnings:
            self.summary.warnings += 1

    def _validate_type(
        self,
        entity: RegistryEntity,
        registry_type: RegistryType | None,
        result: ValidationResult,
    ) -> bool:
        """
        Entity must be one of the known shapes and match the target registry.

        Returns False when the entity is not a registry entity at all, in which
        case no further checks can run.
        """
        entity_type = getattr(entity, "registry_type", None)
        if entity_type not in _ENTITY_CLASSES or not isinstance(
            entity, _ENTITY_CLASSES[entity_type]
        ):
            result.add_error(f"Unknown entity type: {type(entity).__name__}")
            return False
        if registry_type is not None and entity_type != registry_type:
            result.add_error(
                f"Entity of type {entity_type.value} cannot be imported into {registry_type.value}"
            )
        return True

    def _validate_required_fields(self, entity: RegistryEntity, result: ValidationResult) -> None:
        """Check required fields are present."""
        if not entity.record:
            result.add_error("Missing required field: record")

        if not entity.name:
            result.add_error("Missing required field: name")

    def _validate_edrpou(self, edrpou: str | None, result: ValidationResult) -> None:
        """Validate EDRPOU format (8 digits)."""
        if not edrpou:
            result.add_warning("Missing EDRPOU")
            return

        if not EDRPOU_PATTERN.match(edrpou):
            result.add_error(f"Invalid EDRPOU format: {edrpou} (expected 8 digits)")

    def _validate_date_field(self, value: str | None, field_name: str, result: ValidationResult) -> None:
        """Warn about impossible dates or dates more than a year in the future."""
        if not value:
            return

        match = DMY_DATE_PATTERN.search(value)
        if match:
            day, month, year = (int(g) for g in match.groups())
            shown = match.group(0)
        else:
            match = ISO_DATE_PATTERN.search(value)
            if not match:
                return
            year, month, day = (int(g) for g in match.groups())
            shown = match.group(0)

        try:
            parsed = date(year, month, day)
        except ValueError:
            result.add_warning(f"Invalid date in {field_name}: {value[:50]}")
            return

        today = self._today or datetime.now().date()
        if parsed > today + MAX_FUTURE:
            result.add_warning(f"Future date in {field_name}: {shown}")

    def _validate_capital(self, capital: str | None, result: ValidationResult) -> None:
        if not capital:
            return
        try:
            float(capital.replace(" ", "").replace(",", "."))
        except ValueError:
            result.add_warning(f"Invalid authorized_capital: {capital}")
