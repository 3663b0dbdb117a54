"""
Unit tests for repository definitions and manifests.

Tests the capability table, soft-delete installation and manifest
schema validation.
"""

import pytest
from bson import ObjectId

from mdb_data.exceptions import ConfigurationError, ManifestValidationError, RelationshipError
from mdb_data.repositories import QueryMethod, RepositoryDefinition, validate_manifest


class TestQueryMethod:
    def test_defaults(self):
        method = QueryMethod()
        assert method.action == "find_all"
        assert not method.replaces_default
        assert method.plan.is_empty

    def test_unknown_action(self):
        with pytest.raises(ConfigurationError, match="Unknown query action"):
            QueryMethod(action="aggregate")

    def test_update_requires_document(self):
        with pytest.raises(ConfigurationError, match="update document"):
            QueryMethod(action="update", query={"name": ":name"})

    def test_insert_takes_params_only(self):
        with pytest.raises(ConfigurationError, match="from params only"):
            QueryMethod(action="insert", query={"name": ":name"}, params=("name",))

    def test_insert_requires_params(self):
        with pytest.raises(ConfigurationError, match="require params"):
            QueryMethod(action="insert")

    def test_lists_become_tuples(self):
        method = QueryMethod(params=["id"], joins=["courses"])
        assert method.params == ("id",)
        assert method.joins == ("courses",)

    def test_bind_positional_and_keyword(self):
        method = QueryMethod(query={"name": ":name", "age": ":age"}, params=("name", "age"))
        assert method.bind(("Joe",), {"age": 30}) == {"name": "Joe", "age": 30}

    def test_bind_surplus_positional(self):
        with pytest.raises(ConfigurationError, match="positional"):
            QueryMethod(params=("id",)).bind((1, 2), {})

    def test_bind_unknown_keyword(self):
        with pytest.raises(ConfigurationError, match="Unknown query parameter"):
            QueryMethod(params=("id",)).bind((), {"name": "Joe"})

    def test_bind_missing(self):
        with pytest.raises(ConfigurationError, match="Missing query parameters: id"):
            QueryMethod(params=("id",)).bind((), {})

    def test_predicate_and_update_document(self):
        oid = ObjectId()
        method = QueryMethod(
            action="update",
            query={"_id": ":id"},
            update={"$set": {"name": ":name"}},
            params=("id", "name"),
        )
        values = method.bind((str(oid), "Joe"), {})
        assert method.predicate(values) == {"_id": oid}
        assert method.update_document(values) == {"$set": {"name": "Joe"}}


class TestRepositoryDefinition:
    def test_default_table_for_unflagged_entity(self, models):
        definition = RepositoryDefinition(models.Course)
        assert dict(definition.methods) == {}
        assert definition.collection_name == "course"
        assert definition.override("delete_by_id") is None

    def test_soft_delete_installed_for_flagged_entity(self, models):
        definition = RepositoryDefinition(models.User)
        soft = definition.override("delete_by_id")
        assert soft is not None
        assert soft.action == "update"
        assert soft.update == {"$set": {"enabled": False}}
        assert soft.raw

    def test_join_only_delete_entry_becomes_soft_delete(self, models):
        definition = RepositoryDefinition(
            models.User, methods={"delete_by_id": QueryMethod(joins=())}
        )
        assert definition.override("delete_by_id").action == "update"

    def test_physical_delete_rejected_for_flagged_entity(self, models):
        with pytest.raises(ConfigurationError, match="must not physically delete"):
            RepositoryDefinition(
                models.User,
                methods={
                    "delete_by_id": QueryMethod(
                        action="delete", query={"_id": ":id"}, params=("id",)
                    )
                },
            )

    def test_custom_soft_delete_override_accepted(self, models):
        custom = QueryMethod(
            action="update",
            query={"_id": ":id"},
            update={"$set": {"enabled": False, "reason": "deleted"}},
            params=("id",),
            raw=True,
        )
        definition = RepositoryDefinition(models.User, methods={"delete_by_id": custom})
        assert definition.override("delete_by_id") is custom

    def test_entity_by_name(self, models):
        assert RepositoryDefinition("Student").entity is models.Student

    def test_join_only_entry_is_not_override(self, student_definition):
        assert student_definition.override("find_by_id") is None
        assert student_definition.join_plan("find_by_id").paths() == ["courses"]

    def test_query_entry_is_override(self, student_definition):
        assert student_definition.override("query_by_id") is not None
        assert set(student_definition.join_plan("query_by_id").paths()) == {
            "courses",
            "ratings",
            "ratings.course",
            "ratings.student",
        }

    def test_join_plan_for_undeclared_method(self, student_definition):
        assert student_definition.join_plan("find_all").is_empty

    def test_invalid_join_path(self, models):
        with pytest.raises(RelationshipError):
            RepositoryDefinition(models.Student, methods={"find_by_id": QueryMethod(joins=("name",))})

    def test_underscore_method_name(self, models):
        with pytest.raises(ConfigurationError, match="underscore"):
            RepositoryDefinition(models.Course, methods={"_hidden": QueryMethod()})

    def test_non_query_method_entry(self, models):
        with pytest.raises(ConfigurationError, match="must be a QueryMethod"):
            RepositoryDefinition(models.Course, methods={"find_math": {"query": {}}})

    def test_insert_params_must_be_fields(self, models):
        with pytest.raises(ConfigurationError, match="unknown Course fields: code"):
            RepositoryDefinition(
                models.Course,
                methods={"add": QueryMethod(action="insert", params=("name", "code"))},
            )

    def test_insert_cannot_reuse_builtin_name(self, models):
        with pytest.raises(ConfigurationError, match="built-in operation"):
            RepositoryDefinition(
                models.Course,
                methods={"save": QueryMethod(action="insert", params=("name",))},
            )

    def test_methods_read_only(self, user_definition):
        with pytest.raises(TypeError):
            user_definition.methods["other"] = QueryMethod()


class TestManifest:
    def test_from_manifest(self, models):
        definition = RepositoryDefinition.from_manifest(
            {
                "entity": "User",
                "methods": {
                    "find_disabled": {"query": {"enabled": False}, "raw": True},
                    "count_named": {
                        "action": "count",
                        "query": {"name": ":name"},
                        "params": ["name"],
                    },
                    "rename": {
                        "query": {"_id": ":id"},
                        "update": {"$set": {"name": ":name"}},
                        "params": ["id", "name"],
                    },
                },
            }
        )
        assert definition.entity is models.User
        assert definition.method("find_disabled").raw
        assert definition.method("find_disabled").action == "find_all"
        assert definition.method("count_named").action == "count"
        assert definition.method("rename").action == "update"
        assert definition.override("delete_by_id") is not None

    def test_from_manifest_joins(self, models):
        definition = RepositoryDefinition.from_manifest(
            {"entity": "Parent", "methods": {"find_by_id": {"joins": ["children"]}}}
        )
        assert definition.join_plan("find_by_id").paths() == ["children"]

    def test_missing_entity(self):
        with pytest.raises(ManifestValidationError) as exc_info:
            validate_manifest({"methods": {}})
        assert exc_info.value.error_paths == ["root"]

    def test_bad_action_reports_path(self):
        with pytest.raises(ManifestValidationError) as exc_info:
            validate_manifest({"entity": "User", "methods": {"find_x": {"action": "drop"}}})
        assert exc_info.value.error_paths == ["methods.find_x.action"]
        assert exc_info.value.entity == "User"

    def test_unknown_method_property(self):
        with pytest.raises(ManifestValidationError):
            validate_manifest({"entity": "User", "methods": {"find_x": {"sql": "SELECT"}}})

    def test_bad_join_path(self):
        with pytest.raises(ManifestValidationError) as exc_info:
            validate_manifest({"entity": "User", "methods": {"find_x": {"joins": ["a..b"]}}})
        assert exc_info.value.error_paths == ["methods.find_x.joins.0"]

    def test_not_a_mapping(self):
        with pytest.raises(ManifestValidationError):
            validate_manifest(["entity", "User"])

    def test_valid_manifest(self):
        validate_manifest({"entity": "User"})
