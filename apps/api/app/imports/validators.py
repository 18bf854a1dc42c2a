"""Row validation for imports.

Validation never touches the database. Every failing check for a row is
collected so the operator sees all problems with a row at once.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Mapping, Optional

from app.imports.config import EntityType, ImportConfig, RuleKind, ValidationRule

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_PATTERN = re.compile(r"^\+?[\d\s\-().]+$")


@dataclass
class ValidationError:
    """A single failed check for one field of a row."""

    field: str
    error_type: str
    message: str
    value: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "field": self.field,
            "error_type": self.error_type,
            "message": self.message,
            "value": self.value,
        }


class RowValidationError(ValueError):
    """Raised by the write path when a mapped row fails validation."""

    def __init__(self, errors: list[ValidationError]):
        self.errors = errors
        super().__init__("; ".join(error.message for error in errors))

    @property
    def field(self) -> Optional[str]:
        return self.errors[0].field if self.errors else None


def split_values(value: Optional[str], separator: str = ",") -> list[str]:
    """Split a multi-value cell, trimming tokens and dropping empty ones."""
    if not value:
        return []
    return [token.strip() for token in value.split(separator) if token.strip()]


def is_blank(value: Optional[str]) -> bool:
    return value is None or not str(value).strip()


def validate_required(value: Optional[str], field_name: str) -> Optional[str]:
    """Return an error message when a required value is missing or blank."""
    if is_blank(value):
        return f"{field_name} is required"
    return None


def validate_email_format(value: str) -> Optional[str]:
    """Validate one or more comma-separated email addresses."""
    for email in split_values(value):
        if not EMAIL_PATTERN.match(email):
            return f"Invalid email format: {email}"
    return None


def validate_phone_format(value: str) -> Optional[str]:
    """Validate one or more comma-separated phone numbers (no letters allowed)."""
    for phone in split_values(value):
        if not PHONE_PATTERN.match(phone):
            return f"Invalid phone number format: {phone}"
    return None


def parse_number(value: str) -> Optional[float]:
    """Parse a decimal string; None when unparseable or not finite."""
    try:
        number = float(value.strip())
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def validate_number(
    value: str,
    min_value: Optional[float] = None,
    max_value: Optional[float] = None,
) -> Optional[str]:
    """Validate a numeric value and optional inclusive bounds."""
    number = parse_number(value)
    if number is None:
        return f"'{value}' is not a valid number"
    if min_value is not None and number < min_value:
        return f"Value must be at least {min_value:g}"
    if max_value is not None and number > max_value:
        return f"Value must be at most {max_value:g}"
    return None


def validate_enum(value: str, options: tuple[str, ...]) -> Optional[str]:
    """Validate exact (case-sensitive) membership in ``options``."""
    if value not in options:
        return f"Must be one of: {', '.join(options)}"
    return None


def validate_social_accounts(value: str) -> Optional[str]:
    """Every comma-separated token must look like ``platform:handle``."""
    for account in split_values(value):
        platform, sep, handle = account.partition(":")
        if not sep or not platform.strip() or not handle.strip():
            return (
                f"Invalid social media account '{account}'. "
                "Use platform:handle format"
            )
    return None


def _apply_rule(rule: ValidationRule, value: str) -> Optional[str]:
    if rule.kind == RuleKind.REQUIRED:
        return validate_required(value, "Value")
    if rule.kind == RuleKind.EMAIL:
        return validate_email_format(value)
    if rule.kind == RuleKind.PHONE:
        return validate_phone_format(value)
    if rule.kind == RuleKind.NUMBER:
        return validate_number(value, rule.min, rule.max)
    if rule.kind == RuleKind.ENUM:
        return validate_enum(value, rule.options)
    return None


def validate_row(row: Mapping[str, str], config: ImportConfig) -> list[ValidationError]:
    """
    Validate a mapped row against an entity's config.

    Args:
        row: Mapped row (target field -> trimmed string)
        config: Import config of the session's entity type

    Returns:
        All failures for the row; an empty list means the row is valid
    """
    errors: list[ValidationError] = []
    failed_fields: set[str] = set()

    for field_name in config.required_fields:
        value = row.get(field_name)
        message = validate_required(value, field_name)
        if message:
            rule = config.validation_rules.get(field_name)
            errors.append(
                ValidationError(
                    field=field_name,
                    error_type="required",
                    message=(rule.message if rule and rule.message else message),
                    value=value,
                )
            )
            failed_fields.add(field_name)

    for field_name, rule in config.validation_rules.items():
        value = row.get(field_name)
        if is_blank(value) or field_name in failed_fields:
            continue
        detail = _apply_rule(rule, value)
        if detail:
            message = f"{rule.message}: {detail}" if rule.message else detail
            errors.append(
                ValidationError(
                    field=field_name,
                    error_type=rule.kind.value,
                    message=message,
                    value=value,
                )
            )
            failed_fields.add(field_name)

    social = row.get("socialMediaAccounts")
    if not is_blank(social):
        message = validate_social_accounts(social)
        if message:
            errors.append(
                ValidationError(
                    field="socialMediaAccounts",
                    error_type="format",
                    message=message,
                    value=social,
                )
            )

    amount = row.get("amount")
    if (
        config.entity_type == EntityType.DONATIONS
        and not is_blank(amount)
        and "amount" not in failed_fields
    ):
        number = parse_number(amount)
        if number is None or number < 0:
            errors.append(
                ValidationError(
                    field="amount",
                    error_type="number",
                    message="Amount must be a positive number",
                    value=amount,
                )
            )

    return errors
