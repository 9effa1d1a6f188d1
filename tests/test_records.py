"""
Record construction tests — initial state of organizations, flags, revisions
and rule validation.
"""

import pytest

from togglelabs.core.exceptions import ValidationError
from togglelabs.models.base import is_object_id
from togglelabs.models.feature_flag import (
    ARCHIVED,
    BOOLEAN,
    DRAFT,
    FLAG_TYPES,
    JSON,
    LIVE,
    NUMBER,
    STRING,
    make_rule,
    new_feature_flag_record,
    new_revision_record,
    validate_rules,
    validate_value,
)
from togglelabs.models.organization import ADMIN, new_organization_record


# ═══════════════════════════════════════════════════════════════
# Organization
# ═══════════════════════════════════════════════════════════════

class TestNewOrganizationRecord:
    def test_single_admin_member(self):
        org = new_organization_record("Acme", "a1")
        assert org.members == [{"user_id": "a1", "permission_level": ADMIN}]
        assert org.invites == []

    def test_timestamps_equal_at_creation(self):
        org = new_organization_record("Acme", "a1")
        assert org.created_at is not None
        assert org.created_at == org.updated_at
        assert org.created_at.tzinfo is not None

    def test_id_unassigned_and_omitted_from_wire(self):
        org = new_organization_record("Acme", "a1")
        assert org.id is None
        assert "id" not in org.to_dict()

    @pytest.mark.parametrize("name", ["Acme", "Globex Corporation", "x"])
    def test_any_name_gives_one_admin(self, name):
        org = new_organization_record(name, "creator")
        assert len(org.members) == 1
        assert org.members[0]["permission_level"] == ADMIN
        assert org.member("creator") is not None
        assert org.member("someone-else") is None


# ═══════════════════════════════════════════════════════════════
# Feature flag
# ═══════════════════════════════════════════════════════════════

class TestNewFeatureFlagRecord:
    def test_dark_mode_scenario(self):
        flag = new_feature_flag_record("dark-mode", "false", BOOLEAN, [], "org1", "a1")
        assert flag.version == 1
        assert flag.name == "dark-mode"
        assert flag.type == BOOLEAN
        assert len(flag.revisions) == 1
        rev = flag.revisions[0]
        assert rev["status"] == DRAFT
        assert rev["user_id"] == "a1"
        assert rev["default_value"] == "false"
        assert rev["rules"] == []
        assert is_object_id(rev["id"])

    def test_timestamps_equal_at_creation(self):
        flag = new_feature_flag_record("f", "x", STRING, [], "org1", "a1")
        assert flag.created_at == flag.updated_at

    def test_rules_are_kept_in_order(self):
        rules = [
            make_rule("country == 'BR'", "true", "production", True),
            make_rule("beta", "false", "staging", False),
        ]
        flag = new_feature_flag_record("f", "false", BOOLEAN, rules, "org1", "a1")
        assert flag.revisions[0]["rules"] == rules

    def test_unknown_type_rejected(self):
        with pytest.raises(ValidationError):
            new_feature_flag_record("f", "x", "color", [], "org1", "a1")

    def test_default_must_match_type(self):
        with pytest.raises(ValidationError):
            new_feature_flag_record("f", "maybe", BOOLEAN, [], "org1", "a1")

    @pytest.mark.parametrize("flag_type,value", [
        (BOOLEAN, "true"), (NUMBER, "3.5"), (JSON, '{"a": 1}'), (STRING, "anything"),
    ])
    def test_every_type_starts_at_version_one(self, flag_type, value):
        assert flag_type in FLAG_TYPES
        flag = new_feature_flag_record("f", value, flag_type, [], "org1", "a1")
        assert flag.version == 1
        assert [r["status"] for r in flag.revisions] == [DRAFT]


class TestNewRevisionRecord:
    def test_defaults_to_draft_with_fresh_id(self):
        a = new_revision_record("true", [], "a1")
        b = new_revision_record("true", [], "a1")
        assert a["status"] == DRAFT
        assert a["id"] != b["id"]

    def test_explicit_status(self):
        assert new_revision_record("true", [], "a1", status=LIVE)["status"] == LIVE
        assert new_revision_record("true", [], "a1", status=ARCHIVED)["status"] == ARCHIVED

    def test_unknown_status_rejected(self):
        with pytest.raises(ValidationError):
            new_revision_record("true", [], "a1", status="published")


# ═══════════════════════════════════════════════════════════════
# Validation
# ═══════════════════════════════════════════════════════════════

class TestValidateRules:
    def test_none_is_empty(self):
        assert validate_rules(None) == []

    def test_valid_rules(self):
        raw = [{"predicate": "p", "value": "v", "env": "production", "is_enabled": True}]
        assert validate_rules(raw) == [make_rule("p", "v", "production", True)]

    def test_missing_fields_reported_per_index(self):
        raw = [
            {"predicate": "p", "value": "v", "env": "staging", "is_enabled": True},
            {"predicate": "", "value": "v", "is_enabled": "yes"},
        ]
        with pytest.raises(ValidationError) as exc:
            validate_rules(raw)
        assert set(exc.value.details) == {
            "rules[1].predicate", "rules[1].env", "rules[1].is_enabled",
        }

    def test_not_a_list(self):
        with pytest.raises(ValidationError):
            validate_rules({"predicate": "p"})

    def test_rule_value_checked_against_type(self):
        raw = [{"predicate": "p", "value": "abc", "env": "production", "is_enabled": True}]
        with pytest.raises(ValidationError):
            validate_rules(raw, NUMBER)


class TestValidateValue:
    def test_non_string_rejected(self):
        with pytest.raises(ValidationError):
            validate_value(STRING, 5)

    def test_invalid_json(self):
        with pytest.raises(ValidationError):
            validate_value(JSON, "{not json")

    def test_number(self):
        assert validate_value(NUMBER, "-12") == "-12"
