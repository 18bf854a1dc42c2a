"""Static import configuration per entity type.

Field names are the canonical target names used in CSV headers and field
mappings (``firstName``, ``phoneNumbers`` ...). Each entity type has bespoke
create/update code in ``app.imports.processors``; adding an entity type means
adding a config here and a processor there.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional


class EntityType(str, Enum):
    """Kinds of records an import session can target."""

    CONTACTS = "contacts"
    BUSINESSES = "businesses"
    DONATIONS = "donations"


class ImportModeType(str, Enum):
    CREATE_ONLY = "create_only"
    UPDATE_OR_CREATE = "update_or_create"


class RuleKind(str, Enum):
    REQUIRED = "required"
    EMAIL = "email"
    PHONE = "phone"
    NUMBER = "number"
    ENUM = "enum"


@dataclass(frozen=True)
class ValidationRule:
    """A declarative check applied to one field of a mapped row."""

    kind: RuleKind
    min: Optional[float] = None
    max: Optional[float] = None
    options: tuple[str, ...] = ()
    message: Optional[str] = None


@dataclass(frozen=True)
class RelatedEntityConfig:
    """Reference lookup performed while importing (never auto-creates)."""

    table: str
    search_fields: tuple[str, ...]
    create_if_not_found: bool = False


@dataclass(frozen=True)
class ImportConfig:
    entity_type: EntityType
    required_fields: tuple[str, ...]
    optional_fields: tuple[str, ...]
    validation_rules: Mapping[str, ValidationRule] = field(
        default_factory=lambda: MappingProxyType({})
    )
    duplicate_fields: tuple[str, ...] = ()
    related_entities: Mapping[str, RelatedEntityConfig] = field(
        default_factory=lambda: MappingProxyType({})
    )

    @property
    def all_fields(self) -> tuple[str, ...]:
        return self.required_fields + self.optional_fields

    def is_known_field(self, name: str) -> bool:
        return name in self.required_fields or name in self.optional_fields


ADDRESS_FIELDS = (
    "streetAddress",
    "secondaryStreetAddress",
    "city",
    "state",
    "zipCode",
)

CONTACT_STATUS_DEFAULT = "active"
BUSINESS_STATUS_DEFAULT = "active"
DONATION_STATUS_DEFAULT = "promise"

BUSINESS_STATUSES = ("active", "inactive", "closed")
DONATION_STATUSES = ("promise", "donated", "processing", "cleared")

# Fields holding comma-separated lists of values
MULTI_VALUE_FIELDS = frozenset(
    {"emails", "phoneNumbers", "tags", "socialMediaAccounts", "employees"}
)


IMPORT_CONFIGS: Mapping[EntityType, ImportConfig] = MappingProxyType(
    {
        EntityType.CONTACTS: ImportConfig(
            entity_type=EntityType.CONTACTS,
            required_fields=("firstName", "lastName"),
            optional_fields=(
                "middleName",
                "genderId",
                "raceId",
                "pronouns",
                "vanid",
                "emails",
                "phoneNumbers",
                "addresses",
                "socialMediaAccounts",
                "tags",
            )
            + ADDRESS_FIELDS,
            validation_rules=MappingProxyType(
                {
                    "firstName": ValidationRule(
                        RuleKind.REQUIRED, message="First name is required"
                    ),
                    "lastName": ValidationRule(
                        RuleKind.REQUIRED, message="Last name is required"
                    ),
                    "emails": ValidationRule(
                        RuleKind.EMAIL, message="Invalid email format"
                    ),
                    "phoneNumbers": ValidationRule(
                        RuleKind.PHONE, message="Invalid phone number format"
                    ),
                }
            ),
            duplicate_fields=("emails", "phoneNumbers", "vanid", "firstName", "lastName"),
            related_entities=MappingProxyType(
                {
                    "gender": RelatedEntityConfig("genders", ("gender",)),
                    "race": RelatedEntityConfig("races", ("race",)),
                }
            ),
        ),
        EntityType.BUSINESSES: ImportConfig(
            entity_type=EntityType.BUSINESSES,
            required_fields=("businessName",),
            optional_fields=(
                "status",
                "phoneNumbers",
                "addresses",
                "socialMediaAccounts",
                "employees",
                "tags",
            )
            + ADDRESS_FIELDS,
            validation_rules=MappingProxyType(
                {
                    "businessName": ValidationRule(
                        RuleKind.REQUIRED, message="Business name is required"
                    ),
                    "phoneNumbers": ValidationRule(
                        RuleKind.PHONE, message="Invalid phone number format"
                    ),
                    "status": ValidationRule(
                        RuleKind.ENUM,
                        options=BUSINESS_STATUSES,
                        message="Invalid business status",
                    ),
                }
            ),
            duplicate_fields=("businessName", "phoneNumbers"),
            related_entities=MappingProxyType(
                {"employees": RelatedEntityConfig("contacts", ("firstName", "lastName"))}
            ),
        ),
        EntityType.DONATIONS: ImportConfig(
            entity_type=EntityType.DONATIONS,
            required_fields=("amount",),
            optional_fields=(
                "contactId",
                "businessId",
                "status",
                "paymentType",
                "notes",
                "donorEmail",
                "donorName",
                "businessName",
            ),
            validation_rules=MappingProxyType(
                {
                    "amount": ValidationRule(
                        RuleKind.NUMBER, min=0, message="Amount must be a positive number"
                    ),
                    "status": ValidationRule(
                        RuleKind.ENUM,
                        options=DONATION_STATUSES,
                        message="Invalid donation status",
                    ),
                    "donorEmail": ValidationRule(
                        RuleKind.EMAIL, message="Invalid donor email format"
                    ),
                }
            ),
            duplicate_fields=("contactId", "businessId", "amount"),
            related_entities=MappingProxyType(
                {
                    "contact": RelatedEntityConfig(
                        "contacts", ("emails", "firstName", "lastName")
                    ),
                    "business": RelatedEntityConfig("businesses", ("businessName",)),
                }
            ),
        ),
    }
)


FIELD_DISPLAY_NAMES: Mapping[str, str] = MappingProxyType(
    {
        "firstName": "First Name",
        "lastName": "Last Name",
        "middleName": "Middle Name",
        "genderId": "Gender",
        "raceId": "Race",
        "pronouns": "Pronouns",
        "vanid": "VAN ID",
        "emails": "Email Addresses",
        "phoneNumbers": "Phone Numbers",
        "addresses": "Addresses",
        "socialMediaAccounts": "Social Media",
        "tags": "Tags",
        "streetAddress": "Street Address",
        "secondaryStreetAddress": "Secondary Street Address",
        "city": "City",
        "state": "State",
        "zipCode": "Zip Code",
        "businessName": "Business Name",
        "status": "Status",
        "employees": "Employees",
        "amount": "Amount",
        "contactId": "Contact ID",
        "businessId": "Business ID",
        "paymentType": "Payment Type",
        "notes": "Notes",
        "donorEmail": "Donor Email",
        "donorName": "Donor Name",
    }
)

FIELD_DESCRIPTIONS: Mapping[str, str] = MappingProxyType(
    {
        "firstName": "Contact's first name (required)",
        "lastName": "Contact's last name (required)",
        "middleName": "Contact's middle name (optional)",
        "genderId": "Gender name, matched case-insensitively (e.g., Male, Female)",
        "raceId": "Race name, matched case-insensitively",
        "pronouns": "Preferred pronouns (e.g., he/him, she/her, they/them)",
        "vanid": "Voter Activation Network ID",
        "emails": "Email addresses separated by commas",
        "phoneNumbers": "Phone numbers separated by commas",
        "addresses": "Addresses separated by semicolons, each as 'street, city'",
        "socialMediaAccounts": "Accounts as 'platform:handle' separated by commas",
        "tags": "Tags separated by commas",
        "streetAddress": "Street address (requires city)",
        "secondaryStreetAddress": "Apartment, suite, unit",
        "city": "City (requires street address)",
        "state": "State name or two-letter abbreviation",
        "zipCode": "ZIP code",
        "businessName": "Name of the business (required)",
        "status": "Record status",
        "employees": "Employee names (managed through the business API, ignored on import)",
        "amount": "Donation amount in dollars (e.g., 19.99)",
        "contactId": "ID of an existing contact in this workspace",
        "businessId": "ID of an existing business in this workspace",
        "paymentType": "Payment method (e.g., cash, check, card)",
        "notes": "Free-text notes",
        "donorEmail": "Email of an existing contact to attribute the donation to",
        "donorName": "Full name of an existing contact ('First Last')",
    }
)


def get_import_config(entity_type: str | EntityType | None) -> Optional[ImportConfig]:
    """Return the config for an entity type, or None when unknown."""
    if entity_type is None:
        return None
    try:
        return IMPORT_CONFIGS.get(EntityType(entity_type))
    except ValueError:
        return None


def get_display_name(field_name: str) -> str:
    return FIELD_DISPLAY_NAMES.get(field_name, field_name)


def validate_registry() -> None:
    """Fail fast if an entity type lacks a usable config."""
    for entity_type in EntityType:
        config = IMPORT_CONFIGS.get(entity_type)
        if config is None:
            raise RuntimeError(f"No import config registered for '{entity_type.value}'")
        if not config.required_fields:
            raise RuntimeError(
                f"Import config for '{entity_type.value}' has no required fields"
            )
        for rule_field in config.validation_rules:
            if not config.is_known_field(rule_field):
                raise RuntimeError(
                    f"Validation rule for unknown field '{rule_field}' "
                    f"in '{entity_type.value}' config"
                )


validate_registry()
