"""Tests for ImportSessionService."""

from __future__ import annotations

from uuid import uuid4

import pytest
from sqlalchemy import select

from app.common.models import AuditLog
from app.core.errors import NotFoundError, SessionStateError, ValidationAPIError
from app.imports.models import ImportError, ImportSession
from app.imports.service import ImportProgress


class TestCreateSession:
    """Tests for create_session."""

    def test_creates_pending_session(self, db, make_session, workspace, test_user):
        session = make_session(
            "contacts",
            total_records=10,
            field_mapping={"First": "firstName", "Last": "lastName"},
        )

        assert session.status == "pending"
        assert session.workspace_id == workspace.id
        assert session.total_records == 10
        assert session.processed_records == 0
        assert session.successful_records == 0
        assert session.failed_records == 0
        assert session.import_mode == "create_only"
        assert session.field_mapping == {"First": "firstName", "Last": "lastName"}
        assert session.created_by == test_user.id

        audit = db.execute(
            select(AuditLog).where(AuditLog.entity_id == session.id)
        ).scalar_one()
        assert audit.action == "import_session.create"
        assert audit.after_json["total_records"] == 10

    def test_invalid_entity_type(self, make_session):
        with pytest.raises(ValidationAPIError, match="Invalid import type"):
            make_session("volunteers")

    def test_invalid_import_mode(self, make_session):
        with pytest.raises(ValidationAPIError, match="Invalid import mode"):
            make_session("contacts", import_mode="merge")

    def test_negative_total(self, make_session):
        with pytest.raises(ValidationAPIError):
            make_session("contacts", total_records=-1)

    def test_duplicate_field_must_be_allowed(self, make_session):
        with pytest.raises(ValidationAPIError) as exc_info:
            make_session("contacts", duplicate_field="pronouns")
        assert exc_info.value.details["errors"][0]["field"] == "duplicate_field"

    def test_update_or_create_requires_duplicate_field(self, make_session):
        with pytest.raises(ValidationAPIError, match="duplicate_field"):
            make_session("contacts", import_mode="update_or_create")

    def test_update_or_create_donations_without_duplicate_field(self, make_session):
        session = make_session("donations", import_mode="update_or_create")
        assert session.duplicate_field is None

    def test_unknown_mapping_target(self, make_session):
        with pytest.raises(ValidationAPIError) as exc_info:
            make_session("businesses", field_mapping={"Name": "businessName", "First": "firstName"})
        assert exc_info.value.details["errors"][0]["unknown"] == ["firstName"]

    def test_zero_rows_allowed(self, make_session):
        assert make_session(total_records=0).total_records == 0


class TestGetAndListSessions:
    def test_get_session_scoped_to_workspace(self, sessions, make_session, other_workspace):
        session = make_session()

        assert sessions.get_session(session.id).id == session.id
        with pytest.raises(NotFoundError):
            sessions.get_session(session.id, other_workspace.id)

    def test_get_unknown_session(self, sessions):
        with pytest.raises(NotFoundError):
            sessions.get_session(uuid4())

    def test_get_status(self, sessions, make_session):
        session = make_session()
        assert sessions.get_status(session.id) == "pending"
        assert sessions.get_status(uuid4()) is None

    def test_list_sessions_paginates(self, sessions, make_session, workspace, other_workspace):
        for _ in range(3):
            make_session()

        page, total = sessions.list_sessions(workspace.id, limit=2, offset=0)
        assert total == 3
        assert len(page) == 2

        page, total = sessions.list_sessions(workspace.id, limit=2, offset=2)
        assert len(page) == 1

        page, total = sessions.list_sessions(other_workspace.id)
        assert (page, total) == ([], 0)


class TestUpdateSessionProgress:
    def test_sets_counters_and_status(self, db, sessions, make_session):
        session = make_session(total_records=5)

        sessions.update_session_progress(
            session, processed=5, successful=4, failed=1, status="completed"
        )

        reloaded = db.get(ImportSession, session.id)
        assert (reloaded.processed_records, reloaded.successful_records, reloaded.failed_records) == (5, 4, 1)
        assert reloaded.status == "completed"

    def test_partial_update_keeps_other_counters(self, sessions, make_session):
        session = make_session(total_records=5)
        sessions.update_session_progress(session, processed=2, successful=2)
        sessions.update_session_progress(session, status="processing")

        assert session.processed_records == 2
        assert session.successful_records == 2
        assert session.status == "processing"


class TestCancelSession:
    """Tests for cancel_session."""

    def test_cancel_pending(self, db, sessions, make_session, workspace, test_user):
        session = make_session()

        cancelled = sessions.cancel_session(session.id, workspace.id, actor_id=test_user.id)

        assert cancelled.status == "cancelled"
        assert sessions.get_status(session.id) == "cancelled"
        actions = db.execute(
            select(AuditLog.action).where(AuditLog.entity_id == session.id)
        ).scalars().all()
        assert "import_session.cancel" in actions

    def test_cancel_twice_is_noop(self, sessions, make_session):
        session = make_session()
        sessions.cancel_session(session.id)
        assert sessions.cancel_session(session.id).status == "cancelled"

    @pytest.mark.parametrize("status", ["completed", "failed"])
    def test_cancel_terminal_session_rejected(self, sessions, make_session, status):
        session = make_session()
        sessions.update_session_progress(session, status=status)

        with pytest.raises(SessionStateError) as exc_info:
            sessions.cancel_session(session.id)
        assert exc_info.value.status_code == 409
        assert exc_info.value.current_status == status

    def test_cancel_other_workspace(self, sessions, make_session, other_workspace):
        session = make_session()
        with pytest.raises(NotFoundError):
            sessions.cancel_session(session.id, other_workspace.id)


class TestErrorLog:
    def test_log_and_read_errors(self, sessions, make_session):
        session = make_session(total_records=3)
        sessions.log_import_error(session.id, 3, "Last name is required", {"firstName": "Ada"}, "lastName", "validation")
        sessions.log_import_error(session.id, 1, "boom")

        errors = sessions.get_import_errors(session.id)
        assert [e.row_number for e in errors] == [1, 3]
        assert errors[0].error_type == "processing"
        assert errors[1].field_name == "lastName"
        assert errors[1].raw_data == {"firstName": "Ada"}

    def test_raw_data_made_json_safe(self, sessions, make_session):
        session = make_session()
        marker = uuid4()
        error = sessions.log_import_error(session.id, 1, "bad", {"id": marker, "n": 2, "x": None})
        assert error.raw_data == {"id": str(marker), "n": 2, "x": None}

    def test_progress(self, sessions, make_session):
        session = make_session(total_records=4)
        sessions.update_session_progress(session, processed=1, failed=1, status="processing")
        sessions.log_import_error(session.id, 1, "bad row")

        progress = sessions.get_import_progress(session.id)
        assert isinstance(progress, ImportProgress)
        assert progress.percentage == 25.0
        assert len(progress.errors) == 1

    def test_progress_of_empty_import(self, sessions, make_session):
        session = make_session(total_records=0)
        assert sessions.get_import_progress(session.id).percentage == 0.0
        sessions.update_session_progress(session, status="completed")
        assert sessions.get_import_progress(session.id).percentage == 100.0


class TestDeleteSession:
    def test_delete_removes_errors(self, db, sessions, make_session, workspace):
        session = make_session()
        sessions.log_import_error(session.id, 1, "bad row")
        session_id = session.id

        sessions.delete_session(session_id, workspace.id)

        assert db.get(ImportSession, session_id) is None
        assert db.execute(
            select(ImportError).where(ImportError.session_id == session_id)
        ).scalars().all() == []
        audit = db.execute(
            select(AuditLog).where(
                AuditLog.entity_id == session_id, AuditLog.action == "import_session.delete"
            )
        ).scalar_one()
        assert audit.before_json["filename"] == "contacts.csv"

    def test_delete_unknown(self, sessions):
        with pytest.raises(NotFoundError):
            sessions.delete_session(uuid4())
