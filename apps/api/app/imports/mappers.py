"""Row mapping and column auto-detection for imports."""

from __future__ import annotations

import re
from typing import Any, Mapping, Optional

from fuzzywuzzy import fuzz

from app.imports.config import (
    FIELD_DISPLAY_NAMES,
    ImportConfig,
    get_import_config,
)

# Values treated as "no value" after trimming (compared case-insensitively)
EMPTY_MARKERS = frozenset({"", "null", "undefined"})

# Extra header spellings seen in CRM exports, beyond field and display names
FIELD_VARIATIONS: dict[str, list[str]] = {
    "firstName": ["first", "given name", "fname"],
    "lastName": ["last", "surname", "family name", "lname"],
    "middleName": ["middle", "middle initial"],
    "genderId": ["gender", "sex"],
    "raceId": ["race", "ethnicity"],
    "vanid": ["van id", "van"],
    "emails": ["email", "email address", "e-mail"],
    "phoneNumbers": ["phone", "phone number", "mobile", "telephone"],
    "socialMediaAccounts": ["social", "social media accounts"],
    "streetAddress": ["street", "address line 1", "address 1"],
    "secondaryStreetAddress": ["address line 2", "address 2", "apartment", "suite", "unit"],
    "zipCode": ["zip", "zipcode", "postal code", "postcode"],
    "businessName": ["business", "company", "company name", "organization"],
    "amount": ["donation amount", "gift amount"],
    "paymentType": ["payment method", "method"],
    "donorEmail": ["donor e-mail"],
    "donorName": ["donor", "donor full name"],
}

HIGH_CONFIDENCE_SCORE = 85
LOW_CONFIDENCE_SCORE = 70

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def normalize_value(value: Any) -> Optional[str]:
    """Stringify and trim a raw cell; None when the cell carries no value."""
    if value is None:
        return None
    if isinstance(value, bool):
        text = "true" if value else "false"
    elif isinstance(value, float) and value.is_integer():
        text = str(int(value))
    else:
        text = value if isinstance(value, str) else str(value)
    text = text.strip()
    if text.lower() in EMPTY_MARKERS:
        return None
    return text


def map_row(
    raw_row: Mapping[str, Any],
    field_mapping: Optional[Mapping[str, str]],
    config: Optional[ImportConfig] = None,
) -> dict[str, str]:
    """
    Translate a raw parsed row into a row keyed by target field names.

    Args:
        raw_row: Source column name -> raw cell value
        field_mapping: Source column -> target field. Empty or None maps each
            column to itself.
        config: When given, target fields unknown to the entity are dropped

    Returns:
        Mapped row containing only non-empty, trimmed string values
    """
    mapped: dict[str, str] = {}
    for source_column, raw_value in raw_row.items():
        if field_mapping:
            target = field_mapping.get(source_column)
            if not target:
                continue
        else:
            target = source_column

        if config is not None and not config.is_known_field(target):
            continue

        value = normalize_value(raw_value)
        if value is not None:
            mapped[target] = value
    return mapped


def normalize_column_name(name: str) -> str:
    """Normalize column name for matching ("phone_Number" -> "phone number")."""
    name = _CAMEL_BOUNDARY.sub(" ", name.strip())
    return re.sub(r"[\s_\-.]+", " ", name).lower().strip()


def calculate_similarity(source: str, target: str) -> int:
    """Calculate similarity score between source and target column names."""
    return fuzz.ratio(normalize_column_name(source), normalize_column_name(target))


def _variations(field_name: str) -> list[str]:
    return [
        field_name,
        FIELD_DISPLAY_NAMES.get(field_name, field_name),
        *FIELD_VARIATIONS.get(field_name, []),
    ]


def _best_target(
    source_col: str, target_fields: tuple[str, ...], used_targets: set[str]
) -> tuple[Optional[str], int]:
    best_target = None
    best_score = 0
    for target_field in target_fields:
        if target_field in used_targets:
            continue
        for variation in _variations(target_field):
            score = calculate_similarity(source_col, variation)
            if score > best_score:
                best_score = score
                best_target = target_field
    return best_target, best_score


def auto_map_columns(source_columns: list[str], entity_type: str) -> dict[str, str]:
    """
    Suggest a field mapping (source column -> target field) for CSV headers.

    Exact and high-confidence fuzzy matches are assigned first, then the
    remaining columns get a lower-confidence pass. Each target is used once;
    columns without a good match are left out.

    Args:
        source_columns: Header names from the uploaded file
        entity_type: Target entity type

    Returns:
        Field mapping suitable for creating an import session
    """
    config = get_import_config(entity_type)
    if config is None:
        return {}

    target_fields = config.all_fields
    mapping: dict[str, str] = {}
    used_targets: set[str] = set()

    for threshold in (HIGH_CONFIDENCE_SCORE, LOW_CONFIDENCE_SCORE):
        for source_col in source_columns:
            if source_col in mapping:
                continue
            best_target, best_score = _best_target(source_col, target_fields, used_targets)
            if best_target and best_score >= threshold:
                mapping[source_col] = best_target
                used_targets.add(best_target)

    return mapping


def suggest_mappings(
    source_columns: list[str], entity_type: str
) -> dict[str, dict[str, Any]]:
    """
    Suggest column mappings with confidence scores.

    Args:
        source_columns: List of source column names
        entity_type: Target entity type

    Returns:
        Dictionary with the best match and top five candidates per column
    """
    config = get_import_config(entity_type)
    if config is None:
        return {}

    suggestions: dict[str, dict[str, Any]] = {}
    for source_col in source_columns:
        candidates = []
        for target_field in config.all_fields:
            score = max(
                calculate_similarity(source_col, variation)
                for variation in _variations(target_field)
            )
            if score > 0:
                candidates.append(
                    {
                        "target_field": target_field,
                        "score": score,
                        "required": target_field in config.required_fields,
                    }
                )

        candidates.sort(key=lambda x: x["score"], reverse=True)
        suggestions[source_col] = {
            "best_match": candidates[0] if candidates else None,
            "all_candidates": candidates[:5],
        }

    return suggestions
