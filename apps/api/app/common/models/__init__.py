"""Models package - re-exports all shared models.

Models are organized into:
- base: Base class, metadata, and enums
- iam: users, workspaces, membership and audit log
- crm: contacts, businesses, donations, their sub-records and lookup tables

Import session models live in ``app.imports.models``.
"""

from __future__ import annotations

from app.common.models.base import (
    Base,
    metadata,
    NAMING_CONVENTION,
    utcnow,
    WorkspaceRole,
    ContactStatus,
    BusinessStatus,
    DonationStatus,
    AddressStatus,
    ImportEntityType,
    ImportMode,
    ImportSessionStatus,
    ImportErrorType,
)

from app.common.models.iam import (
    User,
    Workspace,
    WorkspaceMember,
    AuditLog,
)

from app.common.models.crm import (
    Gender,
    Race,
    State,
    ZipCode,
    Contact,
    ContactEmail,
    ContactPhoneNumber,
    ContactAddress,
    ContactSocialMediaAccount,
    ContactTag,
    Business,
    BusinessPhoneNumber,
    BusinessAddress,
    BusinessSocialMediaAccount,
    BusinessTag,
    BusinessEmployee,
    Donation,
)

__all__ = [
    "Base",
    "metadata",
    "NAMING_CONVENTION",
    "utcnow",
    "WorkspaceRole",
    "ContactStatus",
    "BusinessStatus",
    "DonationStatus",
    "AddressStatus",
    "ImportEntityType",
    "ImportMode",
    "ImportSessionStatus",
    "ImportErrorType",
    "User",
    "Workspace",
    "WorkspaceMember",
    "AuditLog",
    "Gender",
    "Race",
    "State",
    "ZipCode",
    "Contact",
    "ContactEmail",
    "ContactPhoneNumber",
    "ContactAddress",
    "ContactSocialMediaAccount",
    "ContactTag",
    "Business",
    "BusinessPhoneNumber",
    "BusinessAddress",
    "BusinessSocialMediaAccount",
    "BusinessTag",
    "BusinessEmployee",
    "Donation",
]
