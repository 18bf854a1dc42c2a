"""Entity processors: create and update CRM records from mapped import rows.

One processor per entity type. Related collections (emails, phones,
addresses, social accounts, tags) are created one record per token on create
and merged on update: existing values are kept and only values not already
present are appended.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from app.common.models import (
    Business,
    BusinessAddress,
    BusinessPhoneNumber,
    BusinessSocialMediaAccount,
    BusinessTag,
    Contact,
    ContactAddress,
    ContactEmail,
    ContactPhoneNumber,
    ContactSocialMediaAccount,
    ContactTag,
    Donation,
    Gender,
    Race,
    State,
    ZipCode,
)
from app.imports.config import (
    BUSINESS_STATUS_DEFAULT,
    CONTACT_STATUS_DEFAULT,
    DONATION_STATUS_DEFAULT,
    EntityType,
)
from app.imports.duplicates import DuplicateDetector, dollars_to_cents
from app.imports.validators import is_blank, split_values

logger = logging.getLogger(__name__)


def parse_social_accounts(value: Optional[str]) -> list[tuple[str, str]]:
    """Parse ``platform:handle`` tokens; platform is lower-cased."""
    accounts = []
    for token in split_values(value):
        platform, sep, handle = token.partition(":")
        platform, handle = platform.strip().lower(), handle.strip()
        if sep and platform and handle:
            accounts.append((platform, handle))
    return accounts


def parse_combined_addresses(value: Optional[str]) -> list[tuple[str, str]]:
    """Naively parse ``street, city`` addresses separated by semicolons.

    Only the first two comma-separated parts are used; anything after the
    city (state, zip) is ignored. Tokens without a city are skipped.
    """
    addresses = []
    for token in split_values(value, separator=";"):
        parts = [part.strip() for part in token.split(",")]
        if len(parts) >= 2 and parts[0] and parts[1]:
            addresses.append((parts[0], parts[1]))
    return addresses


@dataclass(frozen=True)
class RelatedModels:
    """Sub-record tables of an owning entity."""

    owner_field: str
    phone: Any
    address: Any
    social: Any
    tag: Any
    email: Any = None


CONTACT_RELATED = RelatedModels(
    owner_field="contact_id",
    phone=ContactPhoneNumber,
    address=ContactAddress,
    social=ContactSocialMediaAccount,
    tag=ContactTag,
    email=ContactEmail,
)

BUSINESS_RELATED = RelatedModels(
    owner_field="business_id",
    phone=BusinessPhoneNumber,
    address=BusinessAddress,
    social=BusinessSocialMediaAccount,
    tag=BusinessTag,
)


class EntityProcessor(ABC):
    """Create/update logic for one entity type.

    The database session is injected; processors never commit. The batch
    processor owns transaction boundaries.
    """

    entity_type: EntityType
    related: Optional[RelatedModels] = None

    def __init__(self, db: Session):
        self.db = db

    @abstractmethod
    def create(self, row: Mapping[str, str], workspace_id: UUID) -> UUID:
        """Create a new record from a mapped row and return its ID."""

    @abstractmethod
    def update(self, record_id: UUID, row: Mapping[str, str], workspace_id: UUID) -> UUID:
        """Update an existing record from a mapped row and return its ID."""

    def soft_check(self, row: Mapping[str, str], workspace_id: UUID) -> list[str]:
        """Return warnings for a row without failing it."""
        return []

    # Reference lookups

    def resolve_gender(self, value: Optional[str]) -> Optional[int]:
        if is_blank(value):
            return None
        return self.db.execute(
            select(Gender.id).where(func.lower(Gender.gender) == value.strip().lower())
        ).scalars().first()

    def resolve_race(self, value: Optional[str]) -> Optional[int]:
        if is_blank(value):
            return None
        return self.db.execute(
            select(Race.id).where(func.lower(Race.race) == value.strip().lower())
        ).scalars().first()

    def resolve_state(self, value: Optional[str]) -> Optional[int]:
        if is_blank(value):
            return None
        needle = value.strip().lower()
        return self.db.execute(
            select(State.id).where(
                or_(
                    func.lower(State.name) == needle,
                    func.lower(State.abbreviation) == needle,
                )
            )
        ).scalars().first()

    def resolve_zip_code(self, value: Optional[str], state_id: Optional[int]) -> Optional[int]:
        """Find a zip code by exact name, creating it when missing."""
        if is_blank(value):
            return None
        name = value.strip()
        zip_id = self.db.execute(
            select(ZipCode.id).where(ZipCode.name == name)
        ).scalars().first()
        if zip_id is not None:
            return zip_id
        zip_code = ZipCode(name=name, state_id=state_id)
        self.db.add(zip_code)
        self.db.flush()
        logger.debug(f"Created zip code {name}")
        return zip_code.id

    # Related records

    def address_specs(self, row: Mapping[str, str]) -> list[dict[str, Any]]:
        """Addresses described by a row: structured fields and/or ``addresses``."""
        specs = []
        street, city = row.get("streetAddress"), row.get("city")
        if street and city:
            state_id = self.resolve_state(row.get("state"))
            if row.get("state") and state_id is None:
                logger.info(f"State '{row['state']}' not found, address saved without state")
            specs.append(
                {
                    "street_address": street,
                    "secondary_street_address": row.get("secondaryStreetAddress"),
                    "city": city,
                    "state_id": state_id,
                    "zip_code_id": self.resolve_zip_code(row.get("zipCode"), state_id),
                }
            )
        for street, city in parse_combined_addresses(row.get("addresses")):
            specs.append({"street_address": street, "city": city})
        return specs

    def _existing(self, model, owner_id: UUID) -> list:
        owner_column = getattr(model, self.related.owner_field)
        return list(self.db.execute(select(model).where(owner_column == owner_id)).scalars())

    def _append_values(
        self,
        model,
        owner_id: UUID,
        values: list,
        build: Callable[[Any], dict],
        key: Callable[[Any], Any],
        existing_key: Callable[[Any], Any],
        merge: bool,
    ) -> int:
        seen = {existing_key(record) for record in self._existing(model, owner_id)} if merge else set()
        added = 0
        for value in values:
            if merge:
                value_key = key(value)
                if value_key in seen:
                    continue
                seen.add(value_key)
            self.db.add(model(**{self.related.owner_field: owner_id}, **build(value)))
            added += 1
        return added

    def write_related(self, owner_id: UUID, row: Mapping[str, str], merge: bool) -> None:
        """Write sub-records for an owner; ``merge`` skips values already present."""
        models = self.related

        if models.email is not None:
            self._append_values(
                models.email,
                owner_id,
                split_values(row.get("emails")),
                build=lambda email: {"email": email},
                key=str.lower,
                existing_key=lambda record: record.email.lower(),
                merge=merge,
            )

        self._append_values(
            models.phone,
            owner_id,
            split_values(row.get("phoneNumbers")),
            build=lambda phone: {"phone_number": phone},
            key=lambda phone: phone,
            existing_key=lambda record: record.phone_number,
            merge=merge,
        )

        self._append_values(
            models.social,
            owner_id,
            parse_social_accounts(row.get("socialMediaAccounts")),
            build=lambda account: {
                "service_type": account[0],
                "social_media_account": account[1],
            },
            key=lambda account: (account[0], account[1].lower()),
            existing_key=lambda record: (
                record.service_type,
                record.social_media_account.lower(),
            ),
            merge=merge,
        )

        self._append_values(
            models.tag,
            owner_id,
            split_values(row.get("tags")),
            build=lambda tag: {"tag": tag},
            key=str.lower,
            existing_key=lambda record: record.tag.lower(),
            merge=merge,
        )

        self._append_values(
            models.address,
            owner_id,
            self.address_specs(row),
            build=lambda address: address,
            key=lambda address: (address["street_address"].lower(), address["city"].lower()),
            existing_key=lambda record: (
                record.street_address.lower(),
                record.city.lower(),
            ),
            merge=merge,
        )


class ContactProcessor(EntityProcessor):
    entity_type = EntityType.CONTACTS
    related = CONTACT_RELATED

    def _require_names(self, row: Mapping[str, str]) -> None:
        if is_blank(row.get("firstName")) or is_blank(row.get("lastName")):
            raise ValueError("First name and last name are required")

    def _lookup_references(self, row: Mapping[str, str]) -> dict[str, Optional[int]]:
        references = {}
        for field, column, resolve in (
            ("genderId", "gender_id", self.resolve_gender),
            ("raceId", "race_id", self.resolve_race),
        ):
            value = row.get(field)
            if not value:
                continue
            resolved = resolve(value)
            if resolved is None:
                logger.info(f"{field} value '{value}' not found, leaving it unset")
            references[column] = resolved
        return references

    def _get_contact(self, contact_id: UUID, workspace_id: UUID) -> Contact:
        contact = self.db.execute(
            select(Contact).where(Contact.id == contact_id, Contact.workspace_id == workspace_id)
        ).scalar_one_or_none()
        if contact is None:
            raise ValueError(f"Contact {contact_id} not found in workspace")
        return contact

    def create(self, row: Mapping[str, str], workspace_id: UUID) -> UUID:
        self._require_names(row)
        references = self._lookup_references(row)
        contact = Contact(
            workspace_id=workspace_id,
            first_name=row["firstName"],
            last_name=row["lastName"],
            middle_name=row.get("middleName"),
            pronouns=row.get("pronouns"),
            vanid=row.get("vanid"),
            gender_id=references.get("gender_id"),
            race_id=references.get("race_id"),
            status=CONTACT_STATUS_DEFAULT,
        )
        self.db.add(contact)
        self.db.flush()
        self.write_related(contact.id, row, merge=False)
        return contact.id

    def update(self, record_id: UUID, row: Mapping[str, str], workspace_id: UUID) -> UUID:
        self._require_names(row)
        contact = self._get_contact(record_id, workspace_id)
        contact.first_name = row["firstName"]
        contact.last_name = row["lastName"]
        contact.middle_name = row.get("middleName")
        contact.pronouns = row.get("pronouns")
        contact.vanid = row.get("vanid")
        for column, value in self._lookup_references(row).items():
            if value is not None:
                setattr(contact, column, value)
        self.db.flush()
        self.write_related(contact.id, row, merge=True)
        return contact.id

    def soft_check(self, row: Mapping[str, str], workspace_id: UUID) -> list[str]:
        warnings = []
        if row.get("genderId") and self.resolve_gender(row["genderId"]) is None:
            warnings.append(f"Gender '{row['genderId']}' not found; it will be left unset")
        if row.get("raceId") and self.resolve_race(row["raceId"]) is None:
            warnings.append(f"Race '{row['raceId']}' not found; it will be left unset")
        if row.get("state") and self.resolve_state(row["state"]) is None:
            warnings.append(f"State '{row['state']}' not found; address saved without state")
        return warnings


class BusinessProcessor(EntityProcessor):
    entity_type = EntityType.BUSINESSES
    related = BUSINESS_RELATED

    def _get_business(self, business_id: UUID, workspace_id: UUID) -> Business:
        business = self.db.execute(
            select(Business).where(
                Business.id == business_id, Business.workspace_id == workspace_id
            )
        ).scalar_one_or_none()
        if business is None:
            raise ValueError(f"Business {business_id} not found in workspace")
        return business

    def create(self, row: Mapping[str, str], workspace_id: UUID) -> UUID:
        if is_blank(row.get("businessName")):
            raise ValueError("Business name is required")
        business = Business(
            workspace_id=workspace_id,
            business_name=row["businessName"],
            status=row.get("status") or BUSINESS_STATUS_DEFAULT,
        )
        self.db.add(business)
        self.db.flush()
        self.write_related(business.id, row, merge=False)
        return business.id

    def update(self, record_id: UUID, row: Mapping[str, str], workspace_id: UUID) -> UUID:
        if is_blank(row.get("businessName")):
            raise ValueError("Business name is required")
        business = self._get_business(record_id, workspace_id)
        business.business_name = row["businessName"]
        business.status = row.get("status") or BUSINESS_STATUS_DEFAULT
        self.db.flush()
        self.write_related(business.id, row, merge=True)
        return business.id

    def soft_check(self, row: Mapping[str, str], workspace_id: UUID) -> list[str]:
        warnings = []
        if row.get("employees"):
            warnings.append("Employees are not imported; link them through the business record")
        if row.get("state") and self.resolve_state(row["state"]) is None:
            warnings.append(f"State '{row['state']}' not found; address saved without state")
        return warnings


class DonationProcessor(EntityProcessor):
    entity_type = EntityType.DONATIONS

    def _parse_amount(self, row: Mapping[str, str]) -> int:
        cents = dollars_to_cents(row.get("amount") or "")
        if cents is None:
            raise ValueError(f"Invalid donation amount: {row.get('amount')}")
        if cents < 0:
            raise ValueError("Donation amount cannot be negative")
        return cents

    def _workspace_record(self, model, value: str, workspace_id: UUID) -> UUID:
        label = model.__name__
        try:
            record_id = UUID(value)
        except ValueError:
            raise ValueError(f"Invalid {label.lower()} ID: {value}") from None
        found = self.db.execute(
            select(model.id).where(model.id == record_id, model.workspace_id == workspace_id)
        ).scalar_one_or_none()
        if found is None:
            raise ValueError(f"{label} {value} not found in workspace")
        return found

    def resolve_donor(
        self, row: Mapping[str, str], workspace_id: UUID
    ) -> tuple[Optional[UUID], Optional[UUID]]:
        """
        Resolve the donor of a donation row.

        Explicit ``contactId``/``businessId`` win; otherwise the donor is looked
        up by ``donorEmail``, then ``donorName``, then ``businessName``.

        Returns:
            (contact_id, business_id), at least one of them set

        Raises:
            ValueError: no donor could be resolved in the workspace
        """
        contact_id = business_id = None
        if row.get("contactId"):
            contact_id = self._workspace_record(Contact, row["contactId"], workspace_id)
        if row.get("businessId"):
            business_id = self._workspace_record(Business, row["businessId"], workspace_id)

        if contact_id is None and business_id is None:
            related = DuplicateDetector(self.db).find_related_entities(row, workspace_id)
            if related["contacts"]:
                contact_id = related["contacts"][0]["id"]
            elif related["businesses"]:
                business_id = related["businesses"][0]["id"]

        if contact_id is None and business_id is None:
            raise ValueError("No valid contact or business found for donation")
        return contact_id, business_id

    def _get_donation(self, donation_id: UUID, workspace_id: UUID) -> Donation:
        donation = self.db.execute(
            select(Donation).where(
                Donation.id == donation_id,
                or_(
                    Donation.contact_id.in_(
                        select(Contact.id).where(Contact.workspace_id == workspace_id)
                    ),
                    Donation.business_id.in_(
                        select(Business.id).where(Business.workspace_id == workspace_id)
                    ),
                ),
            )
        ).scalar_one_or_none()
        if donation is None:
            raise ValueError(f"Donation {donation_id} not found in workspace")
        return donation

    def create(self, row: Mapping[str, str], workspace_id: UUID) -> UUID:
        amount = self._parse_amount(row)
        contact_id, business_id = self.resolve_donor(row, workspace_id)
        donation = Donation(
            contact_id=contact_id,
            business_id=business_id,
            amount=amount,
            status=row.get("status") or DONATION_STATUS_DEFAULT,
            payment_type=row.get("paymentType"),
            notes=row.get("notes"),
        )
        self.db.add(donation)
        self.db.flush()
        return donation.id

    def update(self, record_id: UUID, row: Mapping[str, str], workspace_id: UUID) -> UUID:
        donation = self._get_donation(record_id, workspace_id)
        donation.amount = self._parse_amount(row)
        donation.status = row.get("status") or DONATION_STATUS_DEFAULT
        donation.payment_type = row.get("paymentType")
        donation.notes = row.get("notes")
        self.db.flush()
        return donation.id

    def soft_check(self, row: Mapping[str, str], workspace_id: UUID) -> list[str]:
        try:
            self.resolve_donor(row, workspace_id)
        except ValueError as e:
            return [f"{e}; the row will fail on import"]
        return []


PROCESSORS: dict[EntityType, type[EntityProcessor]] = {
    EntityType.CONTACTS: ContactProcessor,
    EntityType.BUSINESSES: BusinessProcessor,
    EntityType.DONATIONS: DonationProcessor,
}

_missing = set(EntityType) - set(PROCESSORS)
if _missing:
    raise RuntimeError(f"No import processor for: {sorted(m.value for m in _missing)}")


def get_processor(entity_type: str | EntityType, db: Session) -> EntityProcessor:
    """Return the processor for an entity type.

    Raises:
        ValueError: unknown entity type
    """
    try:
        processor_class = PROCESSORS[EntityType(entity_type)]
    except ValueError:
        raise ValueError(f"Invalid import type: {entity_type}") from None
    return processor_class(db)
