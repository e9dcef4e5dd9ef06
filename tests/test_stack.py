"""End-to-end composition tests, run against Pulumi mocks (see conftest)"""

import json

import pulumi
import pytest

from webstack import presets
from webstack.config import AppConfig, MonitoringSpec, RouteSpec
from webstack.errors import ConfigurationError
from webstack.monitoring import aggregate
from webstack.stack import compose


def _config(name="default", **overrides):
    data = presets.load(name)
    data.update(overrides)
    return AppConfig.from_mapping(data)


def _output_names(stack):
    return [entry.name for entry in stack.outputs]


class TestCompose:
    @pulumi.runtime.test
    def test_default_preset(self):
        stack = compose(_config(project_name="compose-default"))

        assert len(stack.database.tables) == 2
        assert len(stack.api.units) == 8
        assert stack.monitoring is not None
        assert _output_names(stack) == [
            "api_url",
            "website_url",
            "cloudfront_url",
            "s3_bucket_name",
            "dynamo_table_users",
            "dynamo_table_items",
        ]

        outputs = {entry.name: entry.value for entry in stack.outputs}

        def check(values):
            users, website, cloudfront = values
            assert users == "compose-default-dev-Users"
            assert website == cloudfront

        return pulumi.Output.all(
            outputs["dynamo_table_users"],
            outputs["website_url"],
            outputs["cloudfront_url"],
        ).apply(check)

    @pulumi.runtime.test
    def test_aurora_preset_exports_cluster_endpoint(self):
        stack = compose(_config("ecommerce", project_name="compose-shop"))

        names = _output_names(stack)
        assert "aurora_cluster_endpoint" in names
        assert not any(name.startswith("dynamo_table_") for name in names)
        assert stack.database.capability.is_relational

        endpoint = dict((e.name, e.value) for e in stack.outputs)["aurora_cluster_endpoint"]

        def check(value):
            assert value.endswith(":5432")

        return endpoint.apply(check)

    @pulumi.runtime.test
    def test_hosting_without_distribution(self):
        stack = compose(
            _config(
                project_name="compose-public",
                s3={"enable_website_hosting": True, "enable_cloudfront": False},
            )
        )
        names = _output_names(stack)
        assert "website_url" in names
        assert "cloudfront_url" not in names

    @pulumi.runtime.test
    def test_private_bucket_only_exports_bucket_name(self):
        stack = compose(
            _config(
                project_name="compose-private",
                s3={"enable_website_hosting": False, "enable_cloudfront": False},
            )
        )
        names = _output_names(stack)
        assert "s3_bucket_name" in names
        assert "website_url" not in names
        assert "cloudfront_url" not in names

    @pulumi.runtime.test
    def test_monitoring_disabled(self):
        stack = compose(_config("simple-crud", project_name="compose-nomon"))
        assert stack.monitoring is None

    @pulumi.runtime.test
    def test_output_manifest_depends_only_on_shape(self):
        first = compose(_config(project_name="compose-one"))
        second = compose(_config(project_name="compose-two"))
        assert _output_names(first) == _output_names(second)
        assert [u.name for u in first.api.units] == [u.name for u in second.api.units]

    def test_duplicate_route_fails_before_any_resource(self):
        config = _config(
            project_name="compose-dupe",
            routes=[
                {"name": "ListA", "method": "GET", "path": "/items"},
                {"name": "ListB", "method": "GET", "path": "/items"},
            ],
        )
        with pytest.raises(ConfigurationError):
            compose(config)

    def test_route_names_colliding_after_lowercasing_fail(self):
        config = _config(
            "simple-crud",
            project_name="compose-case",
            routes=[
                {"name": "GetItem", "method": "GET", "path": "/a"},
                {"name": "getitem", "method": "GET", "path": "/b"},
            ],
        )
        with pytest.raises(ConfigurationError):
            compose(config)

    def test_duplicate_route_name_fails(self):
        config = _config(project_name="compose-dupe-name")
        config = AppConfig(
            project_name=config.project_name,
            environment=config.environment,
            database=config.database,
            api=config.api,
            compute=config.compute,
            assets=config.assets,
            routes=(
                RouteSpec("Same", "GET", "/a"),
                RouteSpec("Same", "GET", "/b"),
            ),
        )
        with pytest.raises(ConfigurationError):
            compose(config)


class TestMonitoring:
    @pulumi.runtime.test
    def test_dashboard_covers_every_unit(self):
        stack = compose(_config(project_name="compose-dash"))

        def check(body):
            widgets = json.loads(body)["widgets"]
            assert len(widgets) == 3
            assert {w["properties"]["region"] for w in widgets} == {"us-east-1"}
            duration = widgets[1]["properties"]
            assert duration["title"] == "Lambda Duration"
            assert len(duration["metrics"]) == 8

        return stack.monitoring.dashboard.dashboard_body.apply(check)

    def test_absent_monitoring_builds_nothing(self):
        assert aggregate("unused", None, [], None, "unused-dev") is None

    @pulumi.runtime.test
    def test_monitoring_spec_controls_log_groups(self):
        stack = compose(
            _config(
                project_name="compose-nologs",
                monitoring={"enable_cloudwatch_logs": False, "enable_xray": False},
            )
        )
        assert stack.config.monitoring == MonitoringSpec(
            enable_xray=False, enable_cloudwatch_logs=False
        )

        def check(mode):
            assert mode == "PassThrough"

        return stack.api.functions["GetItems"].tracing_config.apply(
            lambda config: check(config.mode)
        )
