"""Base classes and enums shared across all models."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Enum, MetaData
from sqlalchemy.orm import DeclarativeBase


NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

metadata = MetaData(naming_convention=NAMING_CONVENTION)


class Base(DeclarativeBase):
    metadata = metadata


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# Workspace Enums
WorkspaceRole = Enum("owner", "admin", "member", "viewer", name="workspace_role")

# CRM Enums
ContactStatus = Enum("active", "inactive", name="contact_status")
BusinessStatus = Enum("active", "inactive", "closed", name="business_status")
DonationStatus = Enum(
    "promise", "donated", "processing", "cleared", name="donation_status"
)
AddressStatus = Enum("active", "inactive", name="address_status")

# Import Enums
ImportEntityType = Enum("contacts", "businesses", "donations", name="import_entity_type")
ImportMode = Enum("create_only", "update_or_create", name="import_mode")
ImportSessionStatus = Enum(
    "pending",
    "processing",
    "completed",
    "failed",
    "cancelled",
    name="import_session_status",
)
ImportErrorType = Enum("validation", "duplicate", "processing", name="import_error_type")
