"""Tests for import entity processors."""

from __future__ import annotations

from uuid import uuid4

import pytest
from sqlalchemy import select

from app.common.models import (
    Business,
    BusinessAddress,
    BusinessTag,
    Contact,
    ContactAddress,
    ContactEmail,
    ContactPhoneNumber,
    ContactSocialMediaAccount,
    ContactTag,
    Donation,
    ZipCode,
)
from app.imports.processors import (
    BusinessProcessor,
    ContactProcessor,
    DonationProcessor,
    get_processor,
    parse_combined_addresses,
    parse_social_accounts,
)


def _values(db, column, owner_column, owner_id):
    return sorted(db.execute(select(column).where(owner_column == owner_id)).scalars())


class TestParsing:
    def test_parse_social_accounts(self):
        assert parse_social_accounts("Twitter:@ada, facebook: ada.l, broken") == [
            ("twitter", "@ada"),
            ("facebook", "ada.l"),
        ]

    def test_parse_combined_addresses(self):
        assert parse_combined_addresses("1 Main St, Springfield, IL; 2 Oak Ave, Shelbyville; Nowhere") == [
            ("1 Main St", "Springfield"),
            ("2 Oak Ave", "Shelbyville"),
        ]
        assert parse_combined_addresses(None) == []


class TestGetProcessor:
    def test_returns_processor_for_each_type(self, db):
        assert isinstance(get_processor("contacts", db), ContactProcessor)
        assert isinstance(get_processor("businesses", db), BusinessProcessor)
        assert isinstance(get_processor("donations", db), DonationProcessor)

    def test_unknown_type(self, db):
        with pytest.raises(ValueError, match="Invalid import type"):
            get_processor("volunteers", db)


class TestContactProcessor:
    """Tests for ContactProcessor."""

    def test_create_with_related_records(self, db, workspace_id, lookups):
        row = {
            "firstName": "Ada",
            "lastName": "Lovelace",
            "genderId": "female",
            "raceId": "Unknown",
            "emails": "ada@example.com, ada@work.com",
            "phoneNumbers": "555-0100",
            "socialMediaAccounts": "Twitter:@ada",
            "tags": "volunteer, donor",
            "streetAddress": "1 Main St",
            "city": "Madison",
            "state": "wi",
            "zipCode": "53703",
            "addresses": "2 Oak Ave, Springfield",
        }
        contact_id = ContactProcessor(db).create(row, workspace_id)
        db.commit()

        contact = db.get(Contact, contact_id)
        assert contact.workspace_id == workspace_id
        assert contact.first_name == "Ada"
        assert contact.gender_id == lookups["Female"]
        assert contact.race_id is None
        assert contact.status == "active"

        assert _values(db, ContactEmail.email, ContactEmail.contact_id, contact_id) == [
            "ada@example.com",
            "ada@work.com",
        ]
        assert _values(db, ContactPhoneNumber.phone_number, ContactPhoneNumber.contact_id, contact_id) == ["555-0100"]
        assert _values(db, ContactTag.tag, ContactTag.contact_id, contact_id) == ["donor", "volunteer"]

        social = db.execute(
            select(ContactSocialMediaAccount).where(ContactSocialMediaAccount.contact_id == contact_id)
        ).scalar_one()
        assert (social.service_type, social.social_media_account) == ("twitter", "@ada")

        addresses = db.execute(
            select(ContactAddress)
            .where(ContactAddress.contact_id == contact_id)
            .order_by(ContactAddress.street_address)
        ).scalars().all()
        assert [(a.street_address, a.city) for a in addresses] == [
            ("1 Main St", "Madison"),
            ("2 Oak Ave", "Springfield"),
        ]
        assert addresses[0].state_id == lookups["Wisconsin"]
        assert addresses[0].zip_code_id is not None
        assert addresses[1].state_id is None

    def test_zip_code_reused(self, db, workspace_id):
        processor = ContactProcessor(db)
        base = {"streetAddress": "1 Main St", "city": "Madison", "zipCode": "53703"}
        processor.create({"firstName": "A", "lastName": "One", **base}, workspace_id)
        processor.create({"firstName": "B", "lastName": "Two", **base}, workspace_id)
        db.commit()

        assert len(db.execute(select(ZipCode)).scalars().all()) == 1

    def test_street_without_city_skipped(self, db, workspace_id):
        contact_id = ContactProcessor(db).create(
            {"firstName": "Ada", "lastName": "Lovelace", "streetAddress": "1 Main St"},
            workspace_id,
        )
        db.commit()
        assert _values(db, ContactAddress.id, ContactAddress.contact_id, contact_id) == []

    def test_create_requires_names(self, db, workspace_id):
        with pytest.raises(ValueError):
            ContactProcessor(db).create({"firstName": "Ada"}, workspace_id)

    def test_update_merges_related_records(self, db, workspace_id, lookups):
        processor = ContactProcessor(db)
        contact_id = processor.create(
            {
                "firstName": "Ada",
                "lastName": "Lovelace",
                "middleName": "King",
                "genderId": "Female",
                "emails": "ada@example.com",
                "tags": "Volunteer",
                "addresses": "1 Main St, Madison",
            },
            workspace_id,
        )
        db.commit()

        processor.update(
            contact_id,
            {
                "firstName": "Augusta",
                "lastName": "Lovelace",
                "genderId": "nonexistent",
                "emails": "ADA@example.com, new@example.com",
                "tags": "volunteer, donor",
                "addresses": "1 main st, MADISON; 9 Elm St, Madison",
            },
            workspace_id,
        )
        db.commit()

        contact = db.get(Contact, contact_id)
        db.refresh(contact)
        assert contact.first_name == "Augusta"
        assert contact.middle_name is None
        assert contact.gender_id == lookups["Female"]
        assert _values(db, ContactEmail.email, ContactEmail.contact_id, contact_id) == [
            "ada@example.com",
            "new@example.com",
        ]
        assert _values(db, ContactTag.tag, ContactTag.contact_id, contact_id) == ["Volunteer", "donor"]
        assert _values(db, ContactAddress.street_address, ContactAddress.contact_id, contact_id) == [
            "1 Main St",
            "9 Elm St",
        ]

    def test_update_keeps_values_missing_from_row(self, db, workspace_id):
        processor = ContactProcessor(db)
        contact_id = processor.create(
            {
                "firstName": "Ada",
                "lastName": "Lovelace",
                "emails": "ada@example.com",
                "phoneNumbers": "555-0100",
                "tags": "volunteer",
                "addresses": "1 Main St, Madison",
            },
            workspace_id,
        )
        db.commit()
        row = {
            "firstName": "Ada",
            "lastName": "Lovelace",
            "emails": "new@example.com",
            "phoneNumbers": "555-0199",
        }

        for _ in range(2):
            processor.update(contact_id, row, workspace_id)
            db.commit()

        assert _values(db, ContactEmail.email, ContactEmail.contact_id, contact_id) == [
            "ada@example.com",
            "new@example.com",
        ]
        assert _values(
            db, ContactPhoneNumber.phone_number, ContactPhoneNumber.contact_id, contact_id
        ) == ["555-0100", "555-0199"]
        assert _values(db, ContactTag.tag, ContactTag.contact_id, contact_id) == ["volunteer"]
        assert _values(
            db, ContactAddress.street_address, ContactAddress.contact_id, contact_id
        ) == ["1 Main St"]

    def test_update_other_workspace_contact_fails(self, db, workspace_id, other_workspace):
        processor = ContactProcessor(db)
        contact_id = processor.create({"firstName": "Ada", "lastName": "Lovelace"}, workspace_id)
        db.commit()

        with pytest.raises(ValueError, match="not found"):
            processor.update(contact_id, {"firstName": "X", "lastName": "Y"}, other_workspace.id)

    def test_soft_check_warnings(self, db, workspace_id, lookups):
        warnings = ContactProcessor(db).soft_check(
            {"firstName": "Ada", "lastName": "L", "genderId": "Male", "raceId": "Martian", "state": "Atlantis"},
            workspace_id,
        )
        assert len(warnings) == 2
        assert "Martian" in warnings[0]
        assert "Atlantis" in warnings[1]


class TestBusinessProcessor:
    """Tests for BusinessProcessor."""

    def test_create(self, db, workspace_id):
        business_id = BusinessProcessor(db).create(
            {
                "businessName": "Acme",
                "tags": "retail",
                "addresses": "456 Business Ave, Business City",
                "employees": "someone@example.com",
            },
            workspace_id,
        )
        db.commit()

        business = db.get(Business, business_id)
        assert business.business_name == "Acme"
        assert business.status == "active"
        assert _values(db, BusinessTag.tag, BusinessTag.business_id, business_id) == ["retail"]
        assert _values(db, BusinessAddress.city, BusinessAddress.business_id, business_id) == ["Business City"]

    def test_update_sets_status(self, db, workspace_id):
        processor = BusinessProcessor(db)
        business_id = processor.create({"businessName": "Acme", "tags": "retail"}, workspace_id)
        db.commit()

        processor.update(
            business_id, {"businessName": "Acme Corp", "status": "closed", "tags": "RETAIL"}, workspace_id
        )
        db.commit()

        business = db.get(Business, business_id)
        db.refresh(business)
        assert business.business_name == "Acme Corp"
        assert business.status == "closed"
        assert _values(db, BusinessTag.tag, BusinessTag.business_id, business_id) == ["retail"]

    def test_soft_check_mentions_employees(self, db, workspace_id):
        warnings = BusinessProcessor(db).soft_check(
            {"businessName": "Acme", "employees": "a@example.com"}, workspace_id
        )
        assert len(warnings) == 1
        assert "Employees" in warnings[0]


class TestDonationProcessor:
    """Tests for DonationProcessor."""

    @pytest.fixture
    def donor(self, db, workspace_id) -> Contact:
        contact = Contact(workspace_id=workspace_id, first_name="Ada", last_name="Lovelace")
        db.add(contact)
        db.flush()
        db.add(ContactEmail(contact_id=contact.id, email="ada@example.com"))
        db.commit()
        return contact

    def test_amount_stored_in_cents(self, db, workspace_id, donor):
        donation_id = DonationProcessor(db).create(
            {"amount": "19.99", "contactId": str(donor.id)}, workspace_id
        )
        db.commit()

        donation = db.get(Donation, donation_id)
        assert donation.amount == 1999
        assert donation.contact_id == donor.id
        assert donation.status == "promise"

    def test_donor_by_email(self, db, workspace_id, donor):
        donation_id = DonationProcessor(db).create(
            {"amount": "5", "donorEmail": "ada@example.com", "status": "donated"}, workspace_id
        )
        db.commit()

        donation = db.get(Donation, donation_id)
        assert donation.contact_id == donor.id
        assert donation.status == "donated"

    def test_donor_by_business_name(self, db, workspace_id):
        business = Business(workspace_id=workspace_id, business_name="Acme")
        db.add(business)
        db.commit()

        donation_id = DonationProcessor(db).create(
            {"amount": "5", "businessName": "acme"}, workspace_id
        )
        assert db.get(Donation, donation_id).business_id == business.id

    def test_explicit_id_from_other_workspace_rejected(self, db, workspace_id, other_workspace):
        stranger = Contact(workspace_id=other_workspace.id, first_name="Eve", last_name="X")
        db.add(stranger)
        db.commit()

        with pytest.raises(ValueError, match="not found in workspace"):
            DonationProcessor(db).create({"amount": "5", "contactId": str(stranger.id)}, workspace_id)

    def test_no_donor_fails(self, db, workspace_id):
        with pytest.raises(ValueError, match="No valid contact or business"):
            DonationProcessor(db).create(
                {"amount": "5", "donorEmail": f"{uuid4()}@example.com"}, workspace_id
            )

    def test_soft_check_warns_about_missing_donor(self, db, workspace_id):
        warnings = DonationProcessor(db).soft_check({"amount": "5"}, workspace_id)
        assert len(warnings) == 1
        assert "No valid contact or business" in warnings[0]

    def test_update(self, db, workspace_id, donor):
        processor = DonationProcessor(db)
        donation_id = processor.create({"amount": "10", "contactId": str(donor.id)}, workspace_id)
        db.commit()

        processor.update(donation_id, {"amount": "12.50", "status": "cleared"}, workspace_id)
        db.commit()

        donation = db.get(Donation, donation_id)
        db.refresh(donation)
        assert donation.amount == 1250
        assert donation.status == "cleared"
