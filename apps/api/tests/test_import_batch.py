"""Tests for BatchProcessor: row isolation, upserts, completion and cancellation."""

from __future__ import annotations

from uuid import uuid4

import pytest
from sqlalchemy import func, select

from app.common.models import (
    Business,
    Contact,
    ContactAddress,
    ContactEmail,
    ContactPhoneNumber,
    ContactTag,
    Donation,
)
from app.core.errors import NotFoundError, SessionStateError, ValidationAPIError
from app.imports.batch import BatchProcessor
from app.imports.models import ImportError
from app.imports.processors import ContactProcessor
from app.imports.service import ImportSessionService


def _count(db, model, *criteria) -> int:
    return db.execute(select(func.count()).select_from(model).where(*criteria)).scalar_one()


def _contact_rows(count: int, start: int = 0) -> list[dict]:
    return [
        {"First": f"Person{i}", "Last": "Test", "Email": f"person{i}@example.com"}
        for i in range(start, start + count)
    ]


CONTACT_MAPPING = {"First": "firstName", "Last": "lastName", "Email": "emails"}


class TestProcessBatch:
    """Core batch behaviour."""

    def test_rows_are_isolated(self, db, make_session, workspace_id):
        session = make_session(total_records=3, field_mapping=CONTACT_MAPPING)
        rows = [
            {"First": "Ada", "Last": "Lovelace", "Email": "ada@example.com"},
            {"First": "Bob", "Last": "", "Email": "bob@example.com"},
            {"First": "Cy", "Last": "Young", "Email": "cy@example.com"},
        ]

        result = BatchProcessor(db).process_batch(session.id, rows)

        assert (result.successful, result.failed) == (2, 1)
        assert result.stopped is False
        error = result.errors[0]
        assert error.row_number == 2
        assert error.error_type == "validation"
        assert error.field == "lastName"
        assert error.data == rows[1]
        assert _count(db, Contact, Contact.workspace_id == workspace_id) == 2

        logged = db.execute(select(ImportError).where(ImportError.session_id == session.id)).scalar_one()
        assert logged.row_number == 2
        assert logged.error_type == "validation"
        assert logged.raw_data == rows[1]

    def test_counters_and_completion_across_batches(self, db, make_session):
        session = make_session(total_records=10, field_mapping=CONTACT_MAPPING)
        processor = BatchProcessor(db)
        sessions = ImportSessionService(db)

        processor.process_batch(session.id, _contact_rows(3), start_index=0)
        assert sessions.get_status(session.id) == "processing"

        processor.process_batch(session.id, _contact_rows(3, 3), start_index=3)
        assert sessions.get_status(session.id) == "processing"

        processor.process_batch(session.id, _contact_rows(4, 6), start_index=6)

        session = sessions.get_session(session.id)
        db.refresh(session)
        assert session.status == "completed"
        assert session.processed_records == 10
        assert session.successful_records == 10
        assert session.failed_records == 0

    def test_row_numbers_use_start_index(self, db, make_session):
        session = make_session(total_records=12, field_mapping=CONTACT_MAPPING)
        rows = _contact_rows(2, 10)
        rows[1]["Email"] = "not-an-email"

        processor = BatchProcessor(db)
        processor.process_batch(session.id, _contact_rows(10))
        result = processor.process_batch(session.id, rows, start_index=10)

        assert [e.row_number for e in result.errors] == [12]

    def test_processing_errors_are_classified(self, db, make_session):
        session = make_session("donations", total_records=1)
        rows = [{"amount": "10", "donorEmail": "nobody@example.com"}]

        result = BatchProcessor(db).process_batch(session.id, rows)

        assert result.failed == 1
        assert result.errors[0].error_type == "processing"
        assert "No valid contact or business" in result.errors[0].error
        assert _count(db, Donation) == 0

    def test_empty_mapping_uses_field_names(self, db, make_session, workspace_id):
        session = make_session("businesses", total_records=1)

        result = BatchProcessor(db).process_batch(
            session.id, [{"businessName": "Acme", "status": "inactive"}]
        )

        assert result.successful == 1
        business = db.execute(select(Business).where(Business.workspace_id == workspace_id)).scalar_one()
        assert business.status == "inactive"

    def test_donation_batch(self, db, make_session, workspace_id):
        contact = Contact(workspace_id=workspace_id, first_name="Ada", last_name="Lovelace")
        db.add(contact)
        db.flush()
        db.add(ContactEmail(contact_id=contact.id, email="ada@example.com"))
        db.commit()
        session = make_session("donations", total_records=1)

        result = BatchProcessor(db).process_batch(
            session.id, [{"amount": "19.99", "donorEmail": "ada@example.com"}]
        )

        assert result.successful == 1
        donation = db.execute(select(Donation)).scalar_one()
        assert donation.amount == 1999
        assert donation.contact_id == contact.id


class TestUpdateOrCreate:
    def test_later_row_updates_record_from_earlier_row(self, db, make_session, workspace_id):
        session = make_session(
            total_records=2,
            import_mode="update_or_create",
            duplicate_field="emails",
            field_mapping={**CONTACT_MAPPING, "Tags": "tags"},
        )
        rows = [
            {"First": "Ada", "Last": "Lovelace", "Email": "ada@example.com", "Tags": "volunteer"},
            {"First": "Augusta", "Last": "Lovelace", "Email": "ada@example.com", "Tags": "donor"},
        ]

        result = BatchProcessor(db).process_batch(session.id, rows)

        assert result.successful == 2
        contact = db.execute(select(Contact).where(Contact.workspace_id == workspace_id)).scalar_one()
        assert contact.first_name == "Augusta"
        assert _count(db, ContactEmail, ContactEmail.contact_id == contact.id) == 1
        tags = sorted(db.execute(select(ContactTag.tag).where(ContactTag.contact_id == contact.id)).scalars())
        assert tags == ["donor", "volunteer"]

    def test_update_keeps_existing_related_records(self, db, make_session, workspace_id):
        contact = Contact(workspace_id=workspace_id, first_name="Ada", last_name="Lovelace")
        db.add(contact)
        db.flush()
        db.add_all(
            [
                ContactEmail(contact_id=contact.id, email="ada@example.com"),
                ContactPhoneNumber(contact_id=contact.id, phone_number="555-0100"),
                ContactTag(contact_id=contact.id, tag="volunteer"),
                ContactAddress(contact_id=contact.id, street_address="1 Main St", city="Madison"),
            ]
        )
        db.commit()
        session = make_session(
            total_records=2,
            import_mode="update_or_create",
            duplicate_field="lastName",
            field_mapping={**CONTACT_MAPPING, "Phone": "phoneNumbers"},
        )
        row = {"First": "Ada", "Last": "Lovelace", "Email": "new@example.com", "Phone": "555-0199"}

        result = BatchProcessor(db).process_batch(session.id, [row, dict(row)])

        assert result.successful == 2
        assert _count(db, Contact, Contact.workspace_id == workspace_id) == 1
        emails = sorted(
            db.execute(select(ContactEmail.email).where(ContactEmail.contact_id == contact.id)).scalars()
        )
        assert emails == ["ada@example.com", "new@example.com"]
        phones = sorted(
            db.execute(
                select(ContactPhoneNumber.phone_number).where(
                    ContactPhoneNumber.contact_id == contact.id
                )
            ).scalars()
        )
        assert phones == ["555-0100", "555-0199"]
        assert _count(db, ContactTag, ContactTag.contact_id == contact.id) == 1
        assert _count(db, ContactAddress, ContactAddress.contact_id == contact.id) == 1

    def test_name_with_wildcards_does_not_update_unrelated_business(
        self, db, make_session, workspace_id
    ):
        existing = Business(workspace_id=workspace_id, business_name="A1B Corp")
        db.add(existing)
        db.commit()
        session = make_session(
            entity_type="businesses",
            total_records=1,
            import_mode="update_or_create",
            duplicate_field="businessName",
        )

        result = BatchProcessor(db).process_batch(session.id, [{"businessName": "A_B"}])

        assert result.successful == 1
        db.refresh(existing)
        assert existing.business_name == "A1B Corp"
        names = sorted(
            db.execute(
                select(Business.business_name).where(Business.workspace_id == workspace_id)
            ).scalars()
        )
        assert names == ["A1B Corp", "A_B"]

    def test_create_only_always_creates(self, db, make_session, workspace_id):
        session = make_session(total_records=2, field_mapping=CONTACT_MAPPING)
        rows = [
            {"First": "Ada", "Last": "Lovelace", "Email": "ada@example.com"},
            {"First": "Ada", "Last": "Lovelace", "Email": "ada@example.com"},
        ]

        BatchProcessor(db).process_batch(session.id, rows)

        assert _count(db, Contact, Contact.workspace_id == workspace_id) == 2

    def test_matches_only_within_workspace(self, db, make_session, workspace_id, other_workspace):
        stranger = Contact(workspace_id=other_workspace.id, first_name="Ada", last_name="Other")
        db.add(stranger)
        db.flush()
        db.add(ContactEmail(contact_id=stranger.id, email="ada@example.com"))
        db.commit()
        session = make_session(
            total_records=1,
            import_mode="update_or_create",
            duplicate_field="emails",
            field_mapping=CONTACT_MAPPING,
        )

        BatchProcessor(db).process_batch(
            session.id, [{"First": "Ada", "Last": "Lovelace", "Email": "ada@example.com"}]
        )

        db.refresh(stranger)
        assert stranger.last_name == "Other"
        assert _count(db, Contact, Contact.workspace_id == workspace_id) == 1


class TestValidateOnly:
    def test_writes_nothing_but_advances_counters(self, db, make_session, workspace_id, lookups):
        session = make_session(
            total_records=2,
            field_mapping={**CONTACT_MAPPING, "Gender": "genderId"},
        )
        rows = [
            {"First": "Ada", "Last": "Lovelace", "Email": "ada@example.com", "Gender": "Robot"},
            {"First": "Bob", "Last": "", "Email": "bob@example.com"},
        ]

        result = BatchProcessor(db).process_batch(session.id, rows, validate_only=True)

        assert (result.successful, result.failed) == (1, 1)
        assert [w.row_number for w in result.warnings] == [1]
        assert "Robot" in result.warnings[0].message
        assert _count(db, Contact, Contact.workspace_id == workspace_id) == 0

        session = ImportSessionService(db).get_session(session.id)
        db.refresh(session)
        assert session.processed_records == 2
        assert session.status == "completed"

    def test_warns_about_update(self, db, make_session, workspace_id):
        contact = Contact(workspace_id=workspace_id, first_name="Ada", last_name="Lovelace", vanid="V1")
        db.add(contact)
        db.commit()
        session = make_session(
            total_records=1, import_mode="update_or_create", duplicate_field="vanid"
        )

        result = BatchProcessor(db).process_batch(
            session.id, [{"firstName": "Ada", "lastName": "L", "vanid": "V1"}], validate_only=True
        )

        assert len(result.warnings) == 1
        assert str(contact.id) in result.warnings[0].message


class TestBatchPreconditions:
    def test_unknown_session(self, db):
        with pytest.raises(NotFoundError):
            BatchProcessor(db).process_batch(uuid4(), [])

    def test_batch_beyond_total_rejected(self, db, make_session):
        session = make_session(total_records=2, field_mapping=CONTACT_MAPPING)

        with pytest.raises(ValidationAPIError, match="exceeds"):
            BatchProcessor(db).process_batch(session.id, _contact_rows(3))

        assert ImportSessionService(db).get_status(session.id) == "pending"

    @pytest.mark.parametrize("status", ["completed", "failed", "cancelled"])
    def test_terminal_session_rejected(self, db, make_session, status):
        session = make_session(total_records=5, field_mapping=CONTACT_MAPPING)
        ImportSessionService(db).update_session_progress(session, status=status)

        with pytest.raises(SessionStateError):
            BatchProcessor(db).process_batch(session.id, _contact_rows(1))

    def test_empty_batch_on_empty_import_completes(self, db, make_session):
        session = make_session(total_records=0)

        result = BatchProcessor(db).process_batch(session.id, [])

        assert (result.successful, result.failed) == (0, 0)
        assert ImportSessionService(db).get_status(session.id) == "completed"


class TestCancellation:
    """Cancelling while a batch runs stops the remaining rows."""

    def test_cancel_mid_batch(self, db, make_session, workspace_id, monkeypatch):
        session = make_session(total_records=10, field_mapping=CONTACT_MAPPING)
        session_id = session.id
        original_create = ContactProcessor.create

        def create_then_cancel(self, row, ws_id):
            record_id = original_create(self, row, ws_id)
            if row["firstName"] == "Person2":
                ImportSessionService(self.db).cancel_session(session_id)
            return record_id

        monkeypatch.setattr(ContactProcessor, "create", create_then_cancel)

        result = BatchProcessor(db).process_batch(session_id, _contact_rows(5))

        assert result.stopped is True
        assert result.successful == 3
        assert result.failed == 0
        names = sorted(
            db.execute(select(Contact.first_name).where(Contact.workspace_id == workspace_id)).scalars()
        )
        assert names == ["Person0", "Person1", "Person2"]

        session = ImportSessionService(db).get_session(session_id)
        db.refresh(session)
        assert session.status == "cancelled"
        assert session.processed_records == 5
        assert session.successful_records == 3

    def test_batch_after_cancel_rejected(self, db, make_session):
        session = make_session(total_records=4, field_mapping=CONTACT_MAPPING)
        processor = BatchProcessor(db)
        processor.process_batch(session.id, _contact_rows(2))

        ImportSessionService(db).cancel_session(session.id)

        with pytest.raises(SessionStateError):
            processor.process_batch(session.id, _contact_rows(2, 2), start_index=2)
