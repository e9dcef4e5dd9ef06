"""Tests for configuration parsing and presets"""

import pytest

from webstack import presets
from webstack.config import (
    DEFAULT_ROUTES,
    AppConfig,
    AuroraSpec,
    ComputeBudget,
    DynamoDbSpec,
    TableSpec,
    is_production,
)
from webstack.errors import ConfigurationError


def _mapping(**overrides):
    data = {
        "project_name": "shop",
        "environment": "dev",
        "database": {
            "type": "dynamodb",
            "dynamo_tables": [{"name": "Items", "partition_key": "id"}],
        },
    }
    data.update(overrides)
    return data


class FakeConfig:
    """Duck-typed stand-in for pulumi.Config."""

    def __init__(self, values):
        self.values = values

    def get(self, key):
        return self.values.get(key)

    def get_object(self, key):
        return self.values.get(key)


class TestIsProduction:
    def test_prod(self):
        assert is_production("prod") is True

    @pytest.mark.parametrize("environment", ["dev", "staging"])
    def test_non_prod(self, environment):
        assert is_production(environment) is False

    def test_unknown_tag_is_an_error(self):
        with pytest.raises(ConfigurationError):
            is_production("production")


class TestFromMapping:
    def test_dynamodb_tier(self):
        config = AppConfig.from_mapping(
            _mapping(
                database={
                    "type": "dynamodb",
                    "dynamo_tables": [
                        {
                            "name": "Users",
                            "partition_key": "userId",
                            "gsi": [{"index_name": "EmailIndex", "partition_key": "email"}],
                        }
                    ],
                }
            )
        )
        assert isinstance(config.database, DynamoDbSpec)
        table = config.database.tables[0]
        assert table.name == "Users"
        assert table.indexes[0].index_name == "EmailIndex"
        assert table.indexes[0].sort_key is None

    def test_aurora_tier(self):
        config = AppConfig.from_mapping(
            _mapping(
                database={
                    "type": "aurora-serverless",
                    "aurora_config": {
                        "database_name": "shop",
                        "master_username": "admin",
                        "engine": "mysql",
                    },
                }
            )
        )
        assert isinstance(config.database, AuroraSpec)
        assert config.database.enable_http_endpoint is False

    def test_defaults(self):
        config = AppConfig.from_mapping(_mapping())
        assert config.routes == DEFAULT_ROUTES
        assert config.monitoring is None
        assert config.api.stage_name == "api"
        assert config.compute == ComputeBudget()
        assert config.assets.enable_cloudfront is False

    def test_routes_override_and_uppercase_method(self):
        config = AppConfig.from_mapping(
            _mapping(routes=[{"name": "Health", "method": "get", "path": "/health"}])
        )
        assert len(config.routes) == 1
        assert config.routes[0].method == "GET"

    def test_monitoring_false_means_absent(self):
        assert AppConfig.from_mapping(_mapping(monitoring=False)).monitoring is None

    def test_monitoring_defaults(self):
        monitoring = AppConfig.from_mapping(_mapping(monitoring={})).monitoring
        assert monitoring.log_retention_days == 14
        assert monitoring.enable_xray is True

    def test_dynamodb_without_tables_is_an_error(self):
        with pytest.raises(ConfigurationError):
            AppConfig.from_mapping(_mapping(database={"type": "dynamodb"}))

    def test_aurora_without_cluster_config_is_an_error(self):
        with pytest.raises(ConfigurationError):
            AppConfig.from_mapping(_mapping(database={"type": "aurora-serverless"}))

    def test_unknown_tier_type_is_an_error(self):
        with pytest.raises(ConfigurationError):
            AppConfig.from_mapping(_mapping(database={"type": "mongodb"}))

    def test_unknown_environment_is_an_error(self):
        with pytest.raises(ConfigurationError):
            AppConfig.from_mapping(_mapping(environment="qa"))

    def test_empty_project_name_is_an_error(self):
        with pytest.raises(ConfigurationError):
            AppConfig.from_mapping(_mapping(project_name="  "))

    def test_unknown_runtime_is_an_error(self):
        with pytest.raises(ConfigurationError):
            AppConfig.from_mapping(_mapping(**{"lambda": {"runtime": "go1.x"}}))

    @pytest.mark.parametrize(
        "overrides",
        [
            {"lambda": {"timeout": "abc"}},
            {"lambda": {"memory_size": None}},
            {"monitoring": {"log_retention_days": "two weeks"}},
            {"api": {"throttle": {"rate_limit": "fast", "burst_limit": 10}}},
            {"api": {"throttle": {"rate_limit": 100, "burst_limit": "lots"}}},
        ],
    )
    def test_malformed_number_is_a_configuration_error(self, overrides):
        with pytest.raises(ConfigurationError, match="must be a number"):
            AppConfig.from_mapping(_mapping(**overrides))

    def test_unknown_aurora_engine_is_an_error(self):
        with pytest.raises(ConfigurationError):
            AuroraSpec(database_name="db", master_username="admin", engine="oracle")

    def test_clashing_table_names_are_an_error(self):
        with pytest.raises(ConfigurationError):
            DynamoDbSpec(
                tables=(
                    TableSpec(name="tenant-data", partition_key="id"),
                    TableSpec(name="tenant_data", partition_key="id"),
                )
            )


class TestFromPulumiConfig:
    def test_uses_default_preset(self):
        config = AppConfig.from_pulumi_config(FakeConfig({}))
        assert config.project_name == "my-serverless-app"
        assert [t.name for t in config.database.tables] == ["Users", "Items"]
        assert config.monitoring is not None

    def test_overrides_layer_on_preset(self):
        config = AppConfig.from_pulumi_config(
            FakeConfig(
                {
                    "preset": "ecommerce",
                    "project_name": "shop",
                    "environment": "staging",
                }
            )
        )
        assert config.project_name == "shop"
        assert config.environment == "staging"
        assert isinstance(config.database, AuroraSpec)
        assert config.database.engine == "postgres"

    def test_object_override_replaces_section(self):
        config = AppConfig.from_pulumi_config(
            FakeConfig({"s3": {"enable_website_hosting": False}})
        )
        assert config.assets.enable_website_hosting is False
        assert config.assets.enable_cloudfront is False

    def test_unknown_preset_is_an_error(self):
        with pytest.raises(ConfigurationError):
            AppConfig.from_pulumi_config(FakeConfig({"preset": "nope"}))


class TestPresets:
    def test_every_preset_parses(self):
        for name in presets.names():
            AppConfig.from_mapping(presets.load(name))

    def test_load_returns_a_fresh_copy(self):
        first = presets.load("default")
        first["database"]["dynamo_tables"].clear()
        assert presets.load("default")["database"]["dynamo_tables"]
