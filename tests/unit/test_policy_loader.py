"""Policy document loading tests."""

import pytest
import yaml

from authz_engine.domain.entities.rule import AllOf, AnyOf, Comparison, Not
from authz_engine.domain.errors import ConfigError, EvaluationError
from authz_engine.infrastructure.policy_loader import (
    build_snapshot,
    load_policy,
    parse_condition,
    parse_policy_document,
    read_policy_file,
)

from factories import scenario_document


def build(document, **kwargs):
    return build_snapshot(parse_policy_document(document), **kwargs)


@pytest.mark.unit
class TestDocumentValidation:
    """Test schema-level validation of policy documents."""

    def test_scenario_document_loads(self):
        snapshot = build(scenario_document(), version=4)
        assert snapshot.version == 4
        assert set(snapshot.registry.roles) == {"admin", "viewer", "editor"}
        assert [rule.rule_id for rule in snapshot.rules] == ["office-hours-on-site"]
        assert snapshot.dead_rules == ()
        assert str(snapshot.timezone) == "UTC"

    def test_unknown_top_level_key(self):
        document = scenario_document()
        document["groups"] = []
        with pytest.raises(ConfigError, match="groups"):
            parse_policy_document(document)

    def test_missing_role_name(self):
        document = scenario_document()
        del document["roles"][0]["name"]
        with pytest.raises(ConfigError, match="roles -> 0 -> name"):
            parse_policy_document(document)

    def test_unsupported_schema_version(self):
        document = scenario_document()
        document["version"] = 2
        with pytest.raises(ConfigError, match="schema version"):
            build(document)

    def test_duplicate_role_id(self):
        document = scenario_document()
        document["roles"].append({"id": "admin", "name": "Other admin"})
        with pytest.raises(ConfigError, match="Duplicate role id"):
            build(document)

    def test_duplicate_permission_id(self):
        document = scenario_document()
        document["permissions"].append({"id": "read:*"})
        with pytest.raises(ConfigError, match="Duplicate permission id"):
            build(document)

    def test_role_with_undefined_permission(self):
        document = scenario_document()
        document["roles"][1]["permissions"].append("export:*")
        with pytest.raises(ConfigError, match="Role viewer references undefined permission export:\\*"):
            build(document)

    def test_malformed_wildcard(self):
        document = scenario_document()
        document["permissions"].append({"id": "read:data*"})
        with pytest.raises(ConfigError, match="partial wildcard"):
            build(document)

    def test_malformed_scope(self):
        document = scenario_document()
        document["rules"][0]["scopes"] = ["write:datasets.*.x*"]
        with pytest.raises(ConfigError):
            build(document)

    def test_rule_with_undefined_permission(self):
        document = scenario_document()
        document["rules"][0]["permissions"] = ["write:nowhere"]
        with pytest.raises(ConfigError, match="Rule office-hours-on-site references undefined"):
            build(document)

    def test_unknown_timezone(self):
        document = scenario_document()
        document["timezone"] = "Mars/Olympus_Mons"
        with pytest.raises(ConfigError, match="timezone"):
            build(document)

    def test_default_timezone_applies(self):
        document = scenario_document()
        del document["timezone"]
        assert str(build(document, default_timezone="Europe/Paris").timezone) == "Europe/Paris"

    def test_dead_rule_loads_with_warning(self):
        document = scenario_document()
        document["permissions"].append({"id": "export:reports"})
        document["rules"].append({
            "id": "export-guard",
            "permissions": ["export:reports"],
            "condition": {"attribute": "subject.region", "op": "eq", "value": "eu"},
        })
        assert build(document).dead_rules == ("export-guard",)
        with pytest.raises(ConfigError):
            build(document, fail_on_dead_rules=True)


@pytest.mark.unit
class TestConditionParsing:
    """Test the condition tree document form."""

    def test_nested_tree(self):
        condition = parse_condition({
            "any": [
                {"all": [
                    {"attribute": "subject.region", "op": "eq", "value": "eu"},
                    {"not": {"attribute": "resource.sensitivity", "op": "eq", "value": "high"}},
                ]},
                {"attribute": "subject.clearance", "op": ">=", "value": 3},
            ]
        })
        assert isinstance(condition, AnyOf)
        first, second = condition.children
        assert isinstance(first, AllOf)
        assert isinstance(first.children[1], Not)
        assert isinstance(second, Comparison)

    def test_error_names_position(self):
        with pytest.raises(EvaluationError, match=r"condition\.all\[1\]: Unsupported operator"):
            parse_condition({
                "all": [
                    {"attribute": "subject.region", "op": "eq", "value": "eu"},
                    {"attribute": "subject.region", "op": "like", "value": "e%"},
                ]
            })

    @pytest.mark.parametrize(
        "node",
        [
            "subject.region = eu",
            {"all": {"attribute": "subject.region", "op": "eq", "value": "eu"}},
            {"all": []},
            {"attribute": "subject.region", "op": "eq"},
            {"attribute": "subject.region", "op": "eq", "value": "eu", "extra": 1},
            {"xor": []},
        ],
    )
    def test_malformed_nodes(self, node):
        with pytest.raises(EvaluationError):
            parse_condition(node)

    def test_rule_error_names_rule(self):
        document = scenario_document()
        document["rules"][0]["condition"] = {"attribute": "tenant.id", "op": "eq", "value": "x"}
        with pytest.raises(EvaluationError, match="Rule office-hours-on-site"):
            build(document)


@pytest.mark.unit
class TestPolicyFiles:
    """Test reading YAML policy files."""

    def test_load_yaml_file(self, tmp_path):
        path = tmp_path / "policy.yaml"
        path.write_text(yaml.safe_dump(scenario_document()), encoding="utf-8")
        snapshot = load_policy(path, version=2)
        assert snapshot.version == 2
        assert len(snapshot.registry) == 3

    def test_rejects_other_extensions(self, tmp_path):
        path = tmp_path / "policy.json"
        path.write_text("{}", encoding="utf-8")
        with pytest.raises(ConfigError, match="Unsupported policy file extension"):
            read_policy_file(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="Error reading policy file"):
            read_policy_file(tmp_path / "absent.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "policy.yml"
        path.write_text("roles: [unclosed", encoding="utf-8")
        with pytest.raises(ConfigError):
            read_policy_file(path)

    def test_top_level_must_be_mapping(self, tmp_path):
        path = tmp_path / "policy.yaml"
        path.write_text("- just\n- a list\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="mapping"):
            read_policy_file(path)
