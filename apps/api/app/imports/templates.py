"""CSV templates and failed-row exports for imports."""

from __future__ import annotations

import csv
import io
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

import pandas as pd

from app.imports.config import (
    FIELD_DESCRIPTIONS,
    IMPORT_CONFIGS,
    EntityType,
    ImportConfig,
    get_display_name,
    get_import_config,
)

DISPLAY_NAMES = {
    EntityType.CONTACTS: "Contacts",
    EntityType.BUSINESSES: "Businesses",
    EntityType.DONATIONS: "Donations",
}

DESCRIPTIONS = {
    EntityType.CONTACTS: "Import people with their emails, phones, addresses and tags",
    EntityType.BUSINESSES: "Import organizations with their phones, addresses and tags",
    EntityType.DONATIONS: "Import donations attributed to existing contacts or businesses",
}

SAMPLE_DATA: Mapping[EntityType, dict[str, str]] = {
    EntityType.CONTACTS: {
        "firstName": "John",
        "lastName": "Doe",
        "middleName": "M",
        "genderId": "Male",
        "raceId": "White",
        "pronouns": "he/him",
        "vanid": "VAN123456",
        "emails": "john.doe@example.com,j.doe@work.com",
        "phoneNumbers": "+1-555-123-4567,+1-555-987-6543",
        "addresses": "123 Main St, Anytown; 9 Oak Ave, Springfield",
        "socialMediaAccounts": "facebook:johndoe,twitter:@johndoe",
        "tags": "volunteer,donor",
        "streetAddress": "123 Main St",
        "secondaryStreetAddress": "Apt 4B",
        "city": "Anytown",
        "state": "WI",
        "zipCode": "53703",
    },
    EntityType.BUSINESSES: {
        "businessName": "Acme Corporation",
        "status": "active",
        "phoneNumbers": "+1-555-987-6543",
        "addresses": "456 Business Ave, Business City",
        "socialMediaAccounts": "facebook:acmecorp",
        "employees": "",
        "tags": "retail,sponsor",
        "streetAddress": "456 Business Ave",
        "secondaryStreetAddress": "Suite 200",
        "city": "Business City",
        "state": "Wisconsin",
        "zipCode": "53704",
    },
    EntityType.DONATIONS: {
        "amount": "100.00",
        "contactId": "",
        "businessId": "",
        "status": "promise",
        "paymentType": "check",
        "notes": "Monthly donation pledge",
        "donorEmail": "donor@example.com",
        "donorName": "John Doe",
        "businessName": "",
    },
}


@dataclass
class CSVTemplate:
    entity_type: EntityType
    headers: list[str]
    sample_data: dict[str, str] = field(default_factory=dict)

    @property
    def filename(self) -> str:
        return f"{self.entity_type.value}_template.csv"


@dataclass
class TemplateValidation:
    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def _require_config(entity_type: str | EntityType) -> ImportConfig:
    config = get_import_config(entity_type)
    if config is None:
        raise ValueError(f"Invalid import type: {entity_type}")
    return config


def _csv_line(values: Iterable[str]) -> str:
    buffer = io.StringIO()
    csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\n").writerow(values)
    return buffer.getvalue()


def generate_csv_template(entity_type: str | EntityType) -> CSVTemplate:
    """
    Build the header row and a sample row for an entity type.

    Raises:
        ValueError: unknown entity type
    """
    config = _require_config(entity_type)
    headers = list(config.all_fields)
    samples = SAMPLE_DATA.get(config.entity_type, {})
    return CSVTemplate(
        entity_type=config.entity_type,
        headers=headers,
        sample_data={header: samples.get(header, "") for header in headers},
    )


def template_to_csv(template: CSVTemplate) -> str:
    """Render a template as a header line plus one sample line."""
    return _csv_line(template.headers) + _csv_line(
        template.sample_data.get(header, "") for header in template.headers
    )


def get_field_descriptions(entity_type: str | EntityType) -> dict[str, str]:
    config = get_import_config(entity_type)
    if config is None:
        return {}
    return {
        name: FIELD_DESCRIPTIONS.get(name, "No description available")
        for name in config.all_fields
    }


def generate_template_with_instructions(entity_type: str | EntityType) -> str:
    """Template CSV preceded by ``#`` comment lines describing every field."""
    config = _require_config(entity_type)
    template = generate_csv_template(config.entity_type)
    descriptions = get_field_descriptions(config.entity_type)

    lines = [
        f"# {DISPLAY_NAMES[config.entity_type]} Import Template",
        f"# {DESCRIPTIONS[config.entity_type]}",
        "#",
        "# Instructions:",
        "# 1. Fill in your data below the sample row",
        f"# 2. Required fields: {', '.join(config.required_fields)}",
        "# 3. Delete this instruction section before importing",
        "# 4. Keep the header row intact",
        "#",
        "# Field Descriptions:",
    ]
    for header in template.headers:
        required = "Required" if header in config.required_fields else "Optional"
        lines.append(
            f"# {header} ({get_display_name(header)}, {required}): {descriptions[header]}"
        )
    lines.append("#")
    return "\n".join(lines) + "\n" + template_to_csv(template)


def validate_template_headers(
    headers: list[str], entity_type: str | EntityType
) -> TemplateValidation:
    """
    Check uploaded headers against an entity's fields.

    Missing required fields are errors; unknown headers are warnings because
    they are ignored on import.
    """
    config = get_import_config(entity_type)
    if config is None:
        return TemplateValidation(valid=False, errors=[f"Invalid import type: {entity_type}"])
    if not headers:
        return TemplateValidation(valid=False, errors=["CSV file has no header row"])

    errors = [
        f"Missing required field: {name}"
        for name in config.required_fields
        if name not in headers
    ]
    warnings = [
        f"Unknown field: {header} (will be ignored)"
        for header in headers
        if not config.is_known_field(header)
    ]
    return TemplateValidation(valid=not errors, errors=errors, warnings=warnings)


def get_available_import_types() -> list[dict[str, Any]]:
    return [
        {
            "type": entity_type.value,
            "display_name": DISPLAY_NAMES[entity_type],
            "description": DESCRIPTIONS[entity_type],
            "required_fields": list(config.required_fields),
            "optional_fields": list(config.optional_fields),
            "duplicate_fields": list(config.duplicate_fields),
        }
        for entity_type, config in IMPORT_CONFIGS.items()
    ]


def export_failed_rows(errors: Iterable[Any]) -> str:
    """
    Render logged import errors as CSV for correction and re-upload.

    Columns are ``row_number``, ``error`` and then the raw source columns in
    first-seen order. Accepts ImportError rows or anything with the same
    attributes.
    """
    records = []
    columns: list[str] = ["row_number", "error"]
    for error in errors:
        raw = dict(error.raw_data or {})
        for key in raw:
            if key not in columns:
                columns.append(key)
        records.append({**raw, "row_number": error.row_number, "error": error.error_message})

    df = pd.DataFrame(records, columns=columns)
    buffer = io.StringIO()
    df.to_csv(buffer, index=False, lineterminator="\n")
    return buffer.getvalue()
