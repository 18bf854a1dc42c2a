"""CRM domain models: contacts, businesses, donations and their sub-records.

Lookup tables (genders, races, states, zip codes) are global; contacts and
businesses are scoped by workspace, donations through their donor.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import uuid4, UUID

from sqlalchemy import (
    String,
    ForeignKey,
    Index,
    Integer,
    TIMESTAMP,
    Uuid,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.common.models.base import (
    Base,
    AddressStatus,
    BusinessStatus,
    ContactStatus,
    DonationStatus,
    utcnow,
)


# Lookup tables

class Gender(Base):
    __tablename__ = "genders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    gender: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)


class Race(Base):
    __tablename__ = "races"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    race: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)


class State(Base):
    __tablename__ = "states"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    abbreviation: Mapped[str] = mapped_column(String(2), nullable=False, unique=True)


class ZipCode(Base):
    __tablename__ = "zip_codes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(10), nullable=False, index=True)
    state_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("states.id", ondelete="SET NULL")
    )


# Contacts

class Contact(Base):
    __tablename__ = "contacts"
    __table_args__ = (
        Index("ix_contacts_workspace_vanid", "workspace_id", "vanid"),
    )

    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid4
    )
    workspace_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("workspaces.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    middle_name: Mapped[Optional[str]] = mapped_column(String(100))
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    gender_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("genders.id", ondelete="SET NULL")
    )
    race_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("races.id", ondelete="SET NULL")
    )
    pronouns: Mapped[Optional[str]] = mapped_column(String(50))
    vanid: Mapped[Optional[str]] = mapped_column(String(50))
    status: Mapped[str] = mapped_column(ContactStatus, nullable=False, default="active")
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), default=utcnow, onupdate=utcnow
    )


class ContactEmail(Base):
    __tablename__ = "contact_emails"

    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid4
    )
    contact_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("contacts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    email: Mapped[str] = mapped_column(String(320), nullable=False, index=True)


class ContactPhoneNumber(Base):
    __tablename__ = "contact_phone_numbers"

    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid4
    )
    contact_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("contacts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    phone_number: Mapped[str] = mapped_column(String(32), nullable=False, index=True)


class ContactAddress(Base):
    __tablename__ = "contact_addresses"

    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid4
    )
    contact_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("contacts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    street_address: Mapped[str] = mapped_column(String(200), nullable=False)
    secondary_street_address: Mapped[Optional[str]] = mapped_column(String(200))
    city: Mapped[str] = mapped_column(String(100), nullable=False)
    state_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("states.id", ondelete="SET NULL")
    )
    zip_code_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("zip_codes.id", ondelete="SET NULL")
    )
    status: Mapped[str] = mapped_column(AddressStatus, nullable=False, default="active")


class ContactSocialMediaAccount(Base):
    __tablename__ = "contact_social_media_accounts"

    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid4
    )
    contact_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("contacts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    service_type: Mapped[str] = mapped_column(String(50), nullable=False)
    social_media_account: Mapped[str] = mapped_column(String(200), nullable=False)


class ContactTag(Base):
    __tablename__ = "contact_tags"

    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid4
    )
    contact_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("contacts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    tag: Mapped[str] = mapped_column(String(100), nullable=False)


# Businesses

class Business(Base):
    __tablename__ = "businesses"

    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid4
    )
    workspace_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("workspaces.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    business_name: Mapped[str] = mapped_column(String(200), nullable=False)
    status: Mapped[str] = mapped_column(BusinessStatus, nullable=False, default="active")
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), default=utcnow, onupdate=utcnow
    )


class BusinessPhoneNumber(Base):
    __tablename__ = "business_phone_numbers"

    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid4
    )
    business_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("businesses.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    phone_number: Mapped[str] = mapped_column(String(32), nullable=False, index=True)


class BusinessAddress(Base):
    __tablename__ = "business_addresses"

    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid4
    )
    business_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("businesses.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    street_address: Mapped[str] = mapped_column(String(200), nullable=False)
    secondary_street_address: Mapped[Optional[str]] = mapped_column(String(200))
    city: Mapped[str] = mapped_column(String(100), nullable=False)
    state_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("states.id", ondelete="SET NULL")
    )
    zip_code_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("zip_codes.id", ondelete="SET NULL")
    )
    status: Mapped[str] = mapped_column(AddressStatus, nullable=False, default="active")


class BusinessSocialMediaAccount(Base):
    __tablename__ = "business_social_media_accounts"

    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid4
    )
    business_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("businesses.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    service_type: Mapped[str] = mapped_column(String(50), nullable=False)
    social_media_account: Mapped[str] = mapped_column(String(200), nullable=False)


class BusinessTag(Base):
    __tablename__ = "business_tags"

    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid4
    )
    business_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("businesses.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    tag: Mapped[str] = mapped_column(String(100), nullable=False)


class BusinessEmployee(Base):
    """Link between a business and a contact. Maintained by the business API."""

    __tablename__ = "business_employees"

    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid4
    )
    business_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("businesses.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    contact_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("contacts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title: Mapped[Optional[str]] = mapped_column(String(100))


# Donations

class Donation(Base):
    __tablename__ = "donations"

    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid4
    )
    contact_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("contacts.id", ondelete="CASCADE"),
        index=True,
    )
    business_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("businesses.id", ondelete="CASCADE"),
        index=True,
    )
    amount: Mapped[int] = mapped_column(Integer, nullable=False)  # cents
    status: Mapped[str] = mapped_column(DonationStatus, nullable=False, default="promise")
    payment_type: Mapped[Optional[str]] = mapped_column(String(50))
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), default=utcnow, onupdate=utcnow
    )
