"""
Composition root: builds every tier in order and derives the stack outputs.

Order is fixed: database -> API -> assets -> monitoring. The API reads the
database's capability handle; monitoring reads the API's metric references.
Assets depend on neither but are built after the API so resource naming and
registration order are deterministic.

Everything the blueprint validates itself (config snapshot, route table) is
checked before the first resource is registered, so a ConfigurationError
never leaves a partial graph behind.

``collect_outputs`` walks a fixed manifest of candidate outputs and keeps only
those whose source exists; the DynamoDB variant expands to one output per
table.
"""

from dataclasses import dataclass
from typing import Any

import pulumi

from webstack._helpers import env_var_key, resource_prefix
from webstack.api import ApiInfra
from webstack.assets import AssetsInfra
from webstack.config import AppConfig
from webstack.database import DatabaseInfra
from webstack.errors import ConfigurationError
from webstack.monitoring import MonitoringInfra, aggregate
from webstack.routes import plan_routes


@dataclass(frozen=True)
class OutputEntry:
    name: str
    label: str
    value: pulumi.Output[Any]


@dataclass(frozen=True)
class WebAppStack:
    """
    Handles to every tier built for one configuration snapshot.
    """

    config: AppConfig
    database: DatabaseInfra
    api: ApiInfra
    assets: AssetsInfra
    monitoring: MonitoringInfra | None
    outputs: tuple[OutputEntry, ...]


def _component_name(project_name: str, environment: str, prefix: str) -> str:
    return f"{prefix}-{project_name}-{environment}"


def collect_outputs(
    database: DatabaseInfra,
    api: ApiInfra,
    assets: AssetsInfra,
) -> tuple[OutputEntry, ...]:
    """
    Emit one OutputEntry per candidate whose source was created.
    """
    capability = database.capability
    candidates: list[tuple[str, str, pulumi.Output[Any] | None]] = [
        ("api_url", "API Gateway URL", api.url),
        ("website_url", "Website URL", assets.website_url),
        ("cloudfront_url", "CloudFront Distribution URL", assets.distribution_url),
        ("s3_bucket_name", "S3 Bucket Name for static assets", assets.bucket_name),
    ]
    if capability.is_keyed:
        for table_name, table in capability.tables.items():
            candidates.append(
                (
                    env_var_key("dynamo_table", table_name).lower(),
                    f"DynamoDB Table: {table_name}",
                    table.name,
                )
            )
    elif capability.is_relational:
        cluster = capability.cluster
        candidates.append(
            (
                "aurora_cluster_endpoint",
                "Aurora Serverless Cluster Endpoint",
                pulumi.Output.concat(cluster.endpoint, ":", cluster.port.apply(str)),
            )
        )
    else:
        raise ConfigurationError(f"Unknown data tier kind {capability.kind!r}")

    entries: dict[str, OutputEntry] = {}
    for name, label, value in candidates:
        if value is None:
            continue
        entries.setdefault(name, OutputEntry(name=name, label=label, value=value))
    return tuple(entries.values())


def compose(
    config: AppConfig,
) -> WebAppStack:
    """
    Build all tiers for ``config`` and return their handles and outputs.

    Raises:
        ConfigurationError: The route table is invalid. Raised before any
            resource is registered.
    """
    plan_routes(config.routes)

    prefix = resource_prefix(config.project_name, config.environment)

    def name(component: str) -> str:
        return _component_name(config.project_name, config.environment, component)

    database = DatabaseInfra(
        name=name("database"),
        spec=config.database,
        prefix=prefix,
        environment=config.environment,
    )

    api = ApiInfra(
        name=name("api"),
        routes=config.routes,
        capability=database.capability,
        budget=config.compute,
        api=config.api,
        project_name=config.project_name,
        environment=config.environment,
        prefix=prefix,
        monitoring=config.monitoring,
    )

    assets = AssetsInfra(
        name=name("assets"),
        spec=config.assets,
        prefix=prefix,
        environment=config.environment,
    )

    monitoring = aggregate(
        name=name("monitoring"),
        spec=config.monitoring,
        units=api.units,
        entry_point=api,
        prefix=prefix,
    )

    return WebAppStack(
        config=config,
        database=database,
        api=api,
        assets=assets,
        monitoring=monitoring,
        outputs=collect_outputs(database, api, assets),
    )
