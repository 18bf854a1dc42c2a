"""crm and import schema

Revision ID: 20250301120000
Revises:
Create Date: 2025-03-01 12:00:00.000000

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "20250301120000"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ENUMS = {
    "workspace_role": ("owner", "admin", "member", "viewer"),
    "contact_status": ("active", "inactive"),
    "business_status": ("active", "inactive", "closed"),
    "donation_status": ("promise", "donated", "processing", "cleared"),
    "address_status": ("active", "inactive"),
    "import_entity_type": ("contacts", "businesses", "donations"),
    "import_mode": ("create_only", "update_or_create"),
    "import_session_status": ("pending", "processing", "completed", "failed", "cancelled"),
    "import_error_type": ("validation", "duplicate", "processing"),
}


def _enum(name: str) -> postgresql.ENUM:
    return postgresql.ENUM(*ENUMS[name], name=name, create_type=False)


def _uuid_pk() -> sa.Column:
    return sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False)


def _owner_fk(column: str, table: str, owner: str) -> sa.ForeignKeyConstraint:
    return sa.ForeignKeyConstraint(
        [column],
        [f"{owner}.id"],
        name=op.f(f"fk_{table}_{column}_{owner}"),
        ondelete="CASCADE",
    )


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=False),
    ]


def _create_value_table(table: str, owner: str, owner_column: str, *columns: sa.Column) -> None:
    """Child table holding one value (email, phone, tag ...) per row."""
    op.create_table(
        table,
        _uuid_pk(),
        sa.Column(owner_column, postgresql.UUID(as_uuid=True), nullable=False),
        *columns,
        sa.PrimaryKeyConstraint("id", name=op.f(f"pk_{table}")),
        _owner_fk(owner_column, table, owner),
    )
    op.create_index(op.f(f"ix_{table}_{owner_column}"), table, [owner_column], unique=False)


def _address_columns() -> list[sa.Column]:
    return [
        sa.Column("street_address", sa.String(length=200), nullable=False),
        sa.Column("secondary_street_address", sa.String(length=200), nullable=True),
        sa.Column("city", sa.String(length=100), nullable=False),
        sa.Column(
            "state_id",
            sa.Integer(),
            sa.ForeignKey("states.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "zip_code_id",
            sa.Integer(),
            sa.ForeignKey("zip_codes.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("status", _enum("address_status"), nullable=False, server_default="active"),
    ]


def upgrade() -> None:
    """Create workspace, CRM and import tables."""
    # Create enums only if they don't exist
    for name, values in ENUMS.items():
        labels = ", ".join(f"'{value}'" for value in values)
        op.execute(f"""
            DO $$ BEGIN
                CREATE TYPE {name} AS ENUM ({labels});
            EXCEPTION
                WHEN duplicate_object THEN null;
            END $$;
        """)

    # Users and workspaces
    op.create_table(
        "users",
        _uuid_pk(),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("display_name", sa.String(length=200), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_users")),
        sa.UniqueConstraint("email", name=op.f("uq_users_email")),
    )
    op.create_table(
        "workspaces",
        _uuid_pk(),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("created_by", postgresql.UUID(as_uuid=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_workspaces")),
        sa.ForeignKeyConstraint(
            ["created_by"],
            ["users.id"],
            name=op.f("fk_workspaces_created_by_users"),
            ondelete="SET NULL",
        ),
    )
    op.create_table(
        "workspace_members",
        _uuid_pk(),
        sa.Column("workspace_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("role", _enum("workspace_role"), nullable=False, server_default="member"),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_workspace_members")),
        _owner_fk("workspace_id", "workspace_members", "workspaces"),
        _owner_fk("user_id", "workspace_members", "users"),
        sa.UniqueConstraint(
            "workspace_id", "user_id", name=op.f("uq_workspace_members_workspace_id")
        ),
    )
    op.create_index(op.f("ix_workspace_members_workspace_id"), "workspace_members", ["workspace_id"], unique=False)
    op.create_index(op.f("ix_workspace_members_user_id"), "workspace_members", ["user_id"], unique=False)

    op.create_table(
        "audit_logs",
        _uuid_pk(),
        sa.Column("workspace_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("actor_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("action", sa.String(length=100), nullable=False),
        sa.Column("entity_type", sa.String(length=100), nullable=True),
        sa.Column("entity_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("before_json", postgresql.JSON(astext_type=sa.Text()), nullable=True),
        sa.Column("after_json", postgresql.JSON(astext_type=sa.Text()), nullable=True),
        sa.Column("ip", sa.String(length=64), nullable=True),
        sa.Column("user_agent", sa.String(length=255), nullable=True),
        sa.Column("occurred_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_audit_logs")),
    )
    op.create_index(op.f("ix_audit_logs_workspace_id"), "audit_logs", ["workspace_id"], unique=False)

    # Lookup tables
    op.create_table(
        "genders",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("gender", sa.String(length=100), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_genders")),
        sa.UniqueConstraint("gender", name=op.f("uq_genders_gender")),
    )
    op.create_table(
        "races",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("race", sa.String(length=100), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_races")),
        sa.UniqueConstraint("race", name=op.f("uq_races_race")),
    )
    op.create_table(
        "states",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("abbreviation", sa.String(length=2), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_states")),
        sa.UniqueConstraint("name", name=op.f("uq_states_name")),
        sa.UniqueConstraint("abbreviation", name=op.f("uq_states_abbreviation")),
    )
    op.create_table(
        "zip_codes",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=10), nullable=False),
        sa.Column("state_id", sa.Integer(), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_zip_codes")),
        sa.ForeignKeyConstraint(
            ["state_id"],
            ["states.id"],
            name=op.f("fk_zip_codes_state_id_states"),
            ondelete="SET NULL",
        ),
    )
    op.create_index(op.f("ix_zip_codes_name"), "zip_codes", ["name"], unique=False)

    # Contacts
    op.create_table(
        "contacts",
        _uuid_pk(),
        sa.Column("workspace_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("first_name", sa.String(length=100), nullable=False),
        sa.Column("middle_name", sa.String(length=100), nullable=True),
        sa.Column("last_name", sa.String(length=100), nullable=False),
        sa.Column(
            "gender_id",
            sa.Integer(),
            sa.ForeignKey("genders.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "race_id",
            sa.Integer(),
            sa.ForeignKey("races.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("pronouns", sa.String(length=50), nullable=True),
        sa.Column("vanid", sa.String(length=50), nullable=True),
        sa.Column("status", _enum("contact_status"), nullable=False, server_default="active"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_contacts")),
        _owner_fk("workspace_id", "contacts", "workspaces"),
    )
    op.create_index(op.f("ix_contacts_workspace_id"), "contacts", ["workspace_id"], unique=False)
    op.create_index("ix_contacts_workspace_vanid", "contacts", ["workspace_id", "vanid"], unique=False)

    _create_value_table(
        "contact_emails", "contacts", "contact_id",
        sa.Column("email", sa.String(length=320), nullable=False),
    )
    op.create_index(op.f("ix_contact_emails_email"), "contact_emails", ["email"], unique=False)
    _create_value_table(
        "contact_phone_numbers", "contacts", "contact_id",
        sa.Column("phone_number", sa.String(length=32), nullable=False),
    )
    op.create_index(op.f("ix_contact_phone_numbers_phone_number"), "contact_phone_numbers", ["phone_number"], unique=False)
    _create_value_table("contact_addresses", "contacts", "contact_id", *_address_columns())
    _create_value_table(
        "contact_social_media_accounts", "contacts", "contact_id",
        sa.Column("service_type", sa.String(length=50), nullable=False),
        sa.Column("social_media_account", sa.String(length=200), nullable=False),
    )
    _create_value_table(
        "contact_tags", "contacts", "contact_id",
        sa.Column("tag", sa.String(length=100), nullable=False),
    )

    # Businesses
    op.create_table(
        "businesses",
        _uuid_pk(),
        sa.Column("workspace_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("business_name", sa.String(length=200), nullable=False),
        sa.Column("status", _enum("business_status"), nullable=False, server_default="active"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_businesses")),
        _owner_fk("workspace_id", "businesses", "workspaces"),
    )
    op.create_index(op.f("ix_businesses_workspace_id"), "businesses", ["workspace_id"], unique=False)

    _create_value_table(
        "business_phone_numbers", "businesses", "business_id",
        sa.Column("phone_number", sa.String(length=32), nullable=False),
    )
    op.create_index(op.f("ix_business_phone_numbers_phone_number"), "business_phone_numbers", ["phone_number"], unique=False)
    _create_value_table("business_addresses", "businesses", "business_id", *_address_columns())
    _create_value_table(
        "business_social_media_accounts", "businesses", "business_id",
        sa.Column("service_type", sa.String(length=50), nullable=False),
        sa.Column("social_media_account", sa.String(length=200), nullable=False),
    )
    _create_value_table(
        "business_tags", "businesses", "business_id",
        sa.Column("tag", sa.String(length=100), nullable=False),
    )
    _create_value_table(
        "business_employees", "businesses", "business_id",
        sa.Column(
            "contact_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("contacts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("title", sa.String(length=100), nullable=True),
    )
    op.create_index(op.f("ix_business_employees_contact_id"), "business_employees", ["contact_id"], unique=False)

    # Donations (amount in cents)
    op.create_table(
        "donations",
        _uuid_pk(),
        sa.Column("contact_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("business_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("status", _enum("donation_status"), nullable=False, server_default="promise"),
        sa.Column("payment_type", sa.String(length=50), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_donations")),
        _owner_fk("contact_id", "donations", "contacts"),
        _owner_fk("business_id", "donations", "businesses"),
    )
    op.create_index(op.f("ix_donations_contact_id"), "donations", ["contact_id"], unique=False)
    op.create_index(op.f("ix_donations_business_id"), "donations", ["business_id"], unique=False)

    # Import sessions and errors
    op.create_table(
        "import_sessions",
        _uuid_pk(),
        sa.Column("workspace_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("entity_type", _enum("import_entity_type"), nullable=False),
        sa.Column("filename", sa.String(length=500), nullable=False),
        sa.Column("total_records", sa.Integer(), nullable=False),
        sa.Column("import_mode", _enum("import_mode"), nullable=False, server_default="create_only"),
        sa.Column("duplicate_field", sa.String(length=100), nullable=True),
        sa.Column("field_mapping", postgresql.JSON(astext_type=sa.Text()), nullable=False),
        sa.Column("processed_records", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("successful_records", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("failed_records", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status", _enum("import_session_status"), nullable=False, server_default="pending"),
        sa.Column("created_by", postgresql.UUID(as_uuid=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_import_sessions")),
        _owner_fk("workspace_id", "import_sessions", "workspaces"),
        sa.ForeignKeyConstraint(
            ["created_by"],
            ["users.id"],
            name=op.f("fk_import_sessions_created_by_users"),
            ondelete="SET NULL",
        ),
    )
    op.create_index(op.f("ix_import_sessions_workspace_id"), "import_sessions", ["workspace_id"], unique=False)
    op.create_index(op.f("ix_import_sessions_status"), "import_sessions", ["status"], unique=False)
    op.create_index("ix_import_sessions_workspace_created", "import_sessions", ["workspace_id", "created_at"], unique=False)

    op.create_table(
        "import_errors",
        _uuid_pk(),
        sa.Column("session_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("row_number", sa.Integer(), nullable=False),
        sa.Column("field_name", sa.String(length=100), nullable=True),
        sa.Column("error_type", _enum("import_error_type"), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=False),
        sa.Column("raw_data", postgresql.JSON(astext_type=sa.Text()), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_import_errors")),
        _owner_fk("session_id", "import_errors", "import_sessions"),
    )
    op.create_index("ix_import_errors_session_row", "import_errors", ["session_id", "row_number"], unique=False)


def downgrade() -> None:
    """Drop workspace, CRM and import tables."""
    for table in (
        "import_errors",
        "import_sessions",
        "donations",
        "business_employees",
        "business_tags",
        "business_social_media_accounts",
        "business_addresses",
        "business_phone_numbers",
        "businesses",
        "contact_tags",
        "contact_social_media_accounts",
        "contact_addresses",
        "contact_phone_numbers",
        "contact_emails",
        "contacts",
        "zip_codes",
        "states",
        "races",
        "genders",
        "audit_logs",
        "workspace_members",
        "workspaces",
        "users",
    ):
        op.drop_table(table)

    for name in reversed(list(ENUMS)):
        op.execute(f"DROP TYPE IF EXISTS {name}")
