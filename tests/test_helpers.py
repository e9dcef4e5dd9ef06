"""Tests for pure helpers"""

import json

from webstack import _helpers


class TestResourcePrefix:
    def test_joins_project_and_environment(self):
        assert _helpers.resource_prefix("blog-api", "dev") == "blog-api-dev"


class TestEnvVarKey:
    def test_uppercases_name(self):
        assert _helpers.env_var_key("DYNAMODB_TABLE", "Users") == "DYNAMODB_TABLE_USERS"

    def test_replaces_invalid_characters(self):
        assert (
            _helpers.env_var_key("DYNAMODB_TABLE", "tenant-data")
            == "DYNAMODB_TABLE_TENANT_DATA"
        )


class TestKeyAttributes:
    def test_partition_key_only(self):
        assert _helpers.key_attributes("id", None, []) == [{"name": "id", "type": "S"}]

    def test_declares_index_keys_once(self):
        result = _helpers.key_attributes(
            "postId",
            "createdAt",
            [("authorId", "createdAt"), ("category", "createdAt")],
        )
        assert [attr["name"] for attr in result] == [
            "postId",
            "createdAt",
            "authorId",
            "category",
        ]

    def test_index_without_sort_key(self):
        result = _helpers.key_attributes("userId", None, [("email", None)])
        assert [attr["name"] for attr in result] == ["userId", "email"]


class TestStatements:
    def test_dynamodb_covers_tables_and_indexes(self):
        statement = _helpers.dynamodb_read_write_statement(["arn:t1", "arn:t2"])
        assert statement["Resource"] == [
            "arn:t1",
            "arn:t1/index/*",
            "arn:t2",
            "arn:t2/index/*",
        ]
        assert "dynamodb:PutItem" in statement["Action"]
        assert "dynamodb:Query" in statement["Action"]

    def test_rds_data_actions_on_cluster(self):
        statement = _helpers.rds_data_statement("arn:cluster")
        assert statement["Resource"] == ["arn:cluster"]
        assert "rds-data:ExecuteStatement" in statement["Action"]
        assert "rds-data:RollbackTransaction" in statement["Action"]

    def test_secret_read(self):
        statement = _helpers.secret_read_statement("arn:secret")
        assert statement["Action"] == [
            "secretsmanager:GetSecretValue",
            "secretsmanager:DescribeSecret",
        ]

    def test_policy_document_wraps_statements(self):
        document = json.loads(
            _helpers.policy_document([_helpers.secret_read_statement("arn:secret")])
        )
        assert document["Version"] == "2012-10-17"
        assert len(document["Statement"]) == 1


class TestPlaceholderHandler:
    def test_node_runtime(self):
        file_name, source, handler = _helpers.placeholder_handler("nodejs18.x", "GetItems")
        assert file_name == "index.js"
        assert handler == "index.handler"
        assert "Hello from GetItems!" in source

    def test_python_runtime(self):
        file_name, source, handler = _helpers.placeholder_handler("python3.11", "GetUser")
        assert file_name == "index.py"
        assert handler == "index.handler"
        assert "def handler(event, context):" in source
