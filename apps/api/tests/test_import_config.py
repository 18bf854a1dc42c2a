"""Tests for the static import configuration registry."""

from __future__ import annotations

import pytest

from app.imports.config import (
    FIELD_DESCRIPTIONS,
    FIELD_DISPLAY_NAMES,
    IMPORT_CONFIGS,
    EntityType,
    RuleKind,
    get_display_name,
    get_import_config,
    validate_registry,
)


class TestImportConfigRegistry:
    """Every entity type has a complete config."""

    def test_every_entity_type_registered(self):
        assert set(IMPORT_CONFIGS) == set(EntityType)

    def test_registry_validates(self):
        validate_registry()

    @pytest.mark.parametrize("entity_type", list(EntityType))
    def test_fields_have_display_names_and_descriptions(self, entity_type):
        config = IMPORT_CONFIGS[entity_type]
        for name in config.all_fields:
            assert name in FIELD_DISPLAY_NAMES
            assert name in FIELD_DESCRIPTIONS

    def test_registry_is_read_only(self):
        with pytest.raises(TypeError):
            IMPORT_CONFIGS[EntityType.CONTACTS] = None  # type: ignore[index]


class TestGetImportConfig:
    def test_lookup_by_string(self):
        config = get_import_config("contacts")
        assert config is not None
        assert config.entity_type == EntityType.CONTACTS
        assert config.required_fields == ("firstName", "lastName")

    def test_lookup_by_enum(self):
        assert get_import_config(EntityType.DONATIONS).required_fields == ("amount",)

    def test_unknown_type_returns_none(self):
        assert get_import_config("volunteers") is None
        assert get_import_config(None) is None

    def test_business_status_rule(self):
        rule = get_import_config("businesses").validation_rules["status"]
        assert rule.kind == RuleKind.ENUM
        assert rule.options == ("active", "inactive", "closed")

    def test_contact_duplicate_fields(self):
        config = get_import_config("contacts")
        assert "emails" in config.duplicate_fields
        assert "vanid" in config.duplicate_fields

    def test_is_known_field(self):
        config = get_import_config("businesses")
        assert config.is_known_field("businessName")
        assert config.is_known_field("zipCode")
        assert not config.is_known_field("firstName")


class TestDisplayNames:
    def test_known_field(self):
        assert get_display_name("vanid") == "VAN ID"

    def test_unknown_field_falls_back_to_name(self):
        assert get_display_name("favoriteColor") == "favoriteColor"
