"""Duplicate detection for imported rows.

Email, phone and VAN ID lookups are exact (case-sensitive on the stored value)
while name lookups are case-insensitive substring matches. Both behaviours are
relied upon by existing imports, so they are kept as they are.
"""

from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Callable, Mapping, Optional
from uuid import UUID

from sqlalchemy import and_, func, or_, select
from sqlalchemy.orm import Session

from app.common.models import (
    Business,
    BusinessPhoneNumber,
    Contact,
    ContactEmail,
    ContactPhoneNumber,
    Donation,
)
from app.imports.config import EntityType, MULTI_VALUE_FIELDS
from app.imports.validators import parse_number, split_values

logger = logging.getLogger(__name__)

# Columns searched with a case-insensitive substring match
CONTACT_NAME_COLUMNS = {
    "firstName": Contact.first_name,
    "lastName": Contact.last_name,
    "middleName": Contact.middle_name,
}

Candidate = dict[str, Any]


def dollars_to_cents(value: str) -> Optional[int]:
    """Convert a decimal dollar string to integer cents, rounding half up."""
    if parse_number(value) is None:
        return None
    cents = (Decimal(value.strip()) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return int(cents)


LIKE_ESCAPE = "\\"


def contains_pattern(value: str) -> str:
    """Build an ILIKE substring pattern that matches ``value`` literally."""
    escaped = (
        value.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )
    return f"%{escaped}%"


def cents_to_dollars(cents: int) -> str:
    return f"{Decimal(cents) / 100:.2f}"


def _parse_uuid(value: Optional[str]) -> Optional[UUID]:
    if not value:
        return None
    try:
        return UUID(value)
    except ValueError:
        return None


def _unique_by_id(candidates: list[Candidate]) -> list[Candidate]:
    seen: set = set()
    unique = []
    for candidate in candidates:
        if candidate["id"] in seen:
            continue
        seen.add(candidate["id"])
        unique.append(candidate)
    return unique


class DuplicateDetector:
    """Find existing records that an imported row may duplicate.

    All queries are scoped to one workspace. Results are lightweight
    projections keyed by import field names so they can be scored with
    ``calculate_duplicate_score``.
    """

    def __init__(self, db: Session):
        self.db = db

    def find_duplicates(
        self,
        entity_type: str | EntityType,
        row: Mapping[str, str],
        workspace_id: UUID,
        duplicate_field: Optional[str],
    ) -> list[Candidate]:
        """
        Find candidate matches for a mapped row.

        Args:
            entity_type: Entity type of the import
            row: Mapped row
            workspace_id: Workspace to search in
            duplicate_field: Field designated for duplicate matching. Ignored
                for donations, which match on amount/contact/business.

        Returns:
            Matching records, oldest first; empty when nothing matches or the
            row has no value for the duplicate field
        """
        entity_type = EntityType(entity_type)
        if entity_type == EntityType.DONATIONS:
            return self._find_donations(row, workspace_id)

        if not duplicate_field:
            return []
        value = row.get(duplicate_field)
        if not value:
            return []

        finders: dict[EntityType, Callable[[str, str, UUID], list[Candidate]]] = {
            EntityType.CONTACTS: self._find_contacts,
            EntityType.BUSINESSES: self._find_businesses,
        }
        return finders[entity_type](duplicate_field, value, workspace_id)

    def find_existing(
        self,
        entity_type: str | EntityType,
        row: Mapping[str, str],
        workspace_id: UUID,
        duplicate_field: Optional[str],
    ) -> Optional[Candidate]:
        """Return the first duplicate candidate, if any."""
        candidates = self.find_duplicates(entity_type, row, workspace_id, duplicate_field)
        return candidates[0] if candidates else None

    # Contacts

    def _find_contacts(self, field: str, value: str, workspace_id: UUID) -> list[Candidate]:
        if field == "emails":
            return self._find_contacts_by_related(
                ContactEmail, ContactEmail.email, "emails", value, workspace_id
            )
        if field == "phoneNumbers":
            return self._find_contacts_by_related(
                ContactPhoneNumber,
                ContactPhoneNumber.phone_number,
                "phoneNumbers",
                value,
                workspace_id,
            )

        stmt = select(Contact).where(Contact.workspace_id == workspace_id)
        if field == "vanid":
            stmt = stmt.where(Contact.vanid == value)
        elif field in CONTACT_NAME_COLUMNS:
            column = CONTACT_NAME_COLUMNS[field]
            stmt = stmt.where(column.ilike(contains_pattern(value), escape=LIKE_ESCAPE))
        else:
            pattern = contains_pattern(value)
            stmt = stmt.where(
                or_(
                    Contact.first_name.ilike(pattern, escape=LIKE_ESCAPE),
                    Contact.last_name.ilike(pattern, escape=LIKE_ESCAPE),
                )
            )

        contacts = self.db.execute(stmt.order_by(Contact.created_at)).scalars().all()
        return [
            {
                "id": contact.id,
                "firstName": contact.first_name,
                "lastName": contact.last_name,
                "middleName": contact.middle_name,
                "vanid": contact.vanid,
            }
            for contact in contacts
        ]

    def _find_contacts_by_related(
        self, model, column, field: str, value: str, workspace_id: UUID
    ) -> list[Candidate]:
        tokens = split_values(value)
        if not tokens:
            return []
        stmt = (
            select(Contact.id, Contact.first_name, Contact.last_name, column)
            .join(model, model.contact_id == Contact.id)
            .where(Contact.workspace_id == workspace_id, column.in_(tokens))
            .order_by(Contact.created_at)
        )
        rows = self.db.execute(stmt).all()
        return _unique_by_id(
            [
                {"id": row[0], "firstName": row[1], "lastName": row[2], field: row[3]}
                for row in rows
            ]
        )

    # Businesses

    def _find_businesses(self, field: str, value: str, workspace_id: UUID) -> list[Candidate]:
        if field == "businessName":
            businesses = self.db.execute(
                select(Business)
                .where(
                    Business.workspace_id == workspace_id,
                    Business.business_name.ilike(contains_pattern(value), escape=LIKE_ESCAPE),
                )
                .order_by(Business.created_at)
            ).scalars().all()
            return [
                {"id": business.id, "businessName": business.business_name}
                for business in businesses
            ]

        if field == "phoneNumbers":
            tokens = split_values(value)
            if not tokens:
                return []
            rows = self.db.execute(
                select(Business.id, Business.business_name, BusinessPhoneNumber.phone_number)
                .join(BusinessPhoneNumber, BusinessPhoneNumber.business_id == Business.id)
                .where(
                    Business.workspace_id == workspace_id,
                    BusinessPhoneNumber.phone_number.in_(tokens),
                )
                .order_by(Business.created_at)
            ).all()
            return _unique_by_id(
                [
                    {"id": row[0], "businessName": row[1], "phoneNumbers": row[2]}
                    for row in rows
                ]
            )

        logger.debug(f"No business duplicate strategy for field '{field}'")
        return []

    # Donations

    def _find_donations(self, row: Mapping[str, str], workspace_id: UUID) -> list[Candidate]:
        conditions = []
        if row.get("amount"):
            cents = dollars_to_cents(row["amount"])
            if cents is None:
                return []
            conditions.append(Donation.amount == cents)
        if row.get("contactId"):
            contact_id = _parse_uuid(row["contactId"])
            if contact_id is None:
                return []
            conditions.append(Donation.contact_id == contact_id)
        if row.get("businessId"):
            business_id = _parse_uuid(row["businessId"])
            if business_id is None:
                return []
            conditions.append(Donation.business_id == business_id)
        if not conditions:
            return []

        in_workspace = or_(
            Donation.contact_id.in_(
                select(Contact.id).where(Contact.workspace_id == workspace_id)
            ),
            Donation.business_id.in_(
                select(Business.id).where(Business.workspace_id == workspace_id)
            ),
        )
        donations = self.db.execute(
            select(Donation)
            .where(and_(*conditions), in_workspace)
            .order_by(Donation.created_at)
        ).scalars().all()
        return [
            {
                "id": donation.id,
                "amount": cents_to_dollars(donation.amount),
                "contactId": str(donation.contact_id) if donation.contact_id else None,
                "businessId": str(donation.business_id) if donation.business_id else None,
                "status": donation.status,
            }
            for donation in donations
        ]

    # Donor lookups

    def find_related_entities(
        self, row: Mapping[str, str], workspace_id: UUID
    ) -> dict[str, list[Candidate]]:
        """
        Look up donors referenced by a donation row.

        Contacts are matched by ``donorEmail`` (exact) or ``donorName``
        ("First Rest", case-insensitive exact); businesses by ``businessName``
        (case-insensitive exact).
        """
        contacts: list[Candidate] = []
        businesses: list[Candidate] = []

        if row.get("donorEmail"):
            contacts = self._find_contacts_by_related(
                ContactEmail, ContactEmail.email, "emails", row["donorEmail"], workspace_id
            )

        if not contacts and row.get("donorName"):
            parts = row["donorName"].split(None, 1)
            stmt = select(Contact).where(
                Contact.workspace_id == workspace_id,
                func.lower(Contact.first_name) == parts[0].lower(),
            )
            if len(parts) > 1:
                stmt = stmt.where(func.lower(Contact.last_name) == parts[1].lower())
            contacts = [
                {"id": contact.id, "firstName": contact.first_name, "lastName": contact.last_name}
                for contact in self.db.execute(stmt.order_by(Contact.created_at)).scalars()
            ]

        if row.get("businessName"):
            businesses = [
                {"id": business.id, "businessName": business.business_name}
                for business in self.db.execute(
                    select(Business)
                    .where(
                        Business.workspace_id == workspace_id,
                        func.lower(Business.business_name) == row["businessName"].lower(),
                    )
                    .order_by(Business.created_at)
                ).scalars()
            ]

        return {"contacts": contacts, "businesses": businesses}


def calculate_duplicate_score(
    import_row: Mapping[str, Any],
    existing_record: Mapping[str, Any],
    match_fields: list[str] | tuple[str, ...],
) -> float:
    """
    Score how closely an existing record matches an imported row.

    Each field earns 1.0 for a full match (any shared token for multi-value
    fields, case-insensitive equality otherwise), 0.5 when one value contains
    the other, else 0. The result is a percentage of ``match_fields``.
    Advisory only: create-vs-update decisions use existence of a match.
    """
    if not match_fields:
        return 0.0

    score = 0.0
    for field in match_fields:
        import_value = import_row.get(field)
        existing_value = existing_record.get(field)
        if import_value is None or existing_value is None:
            continue
        import_text = str(import_value).strip().lower()
        existing_text = str(existing_value).strip().lower()
        if not import_text or not existing_text:
            continue

        if field in MULTI_VALUE_FIELDS:
            import_tokens = set(split_values(import_text))
            existing_tokens = set(split_values(existing_text))
            if import_tokens & existing_tokens:
                score += 1.0
                continue
        elif import_text == existing_text:
            score += 1.0
            continue

        if import_text in existing_text or existing_text in import_text:
            score += 0.5

    return score / len(match_fields) * 100
