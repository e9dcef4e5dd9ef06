"""
Serverless web-app blueprint components.

Each tier is its own ComponentResource. Use ``compose`` from the Pulumi
entrypoint (e.g. __main__.py) with an ``AppConfig`` snapshot:

- **DatabaseInfra**: DynamoDB tables or Aurora Serverless; exposes
  ``capability`` for the API tier.
- **ApiInfra**: API Gateway REST API + one Lambda per route, sharing one role
  and one environment mapping; exposes ``units`` and ``url``.
- **AssetsInfra**: S3 bucket with optional CloudFront; exposes
  ``website_url`` and ``distribution_url`` (None when not built).
- **MonitoringInfra**: CloudWatch dashboard over the API and its functions.
"""

from webstack.api import ApiInfra
from webstack.assets import AssetsInfra
from webstack.config import AppConfig
from webstack.database import DatabaseInfra
from webstack.errors import ConfigurationError
from webstack.monitoring import MonitoringInfra
from webstack.stack import compose

__all__ = [
    "ApiInfra",
    "AppConfig",
    "AssetsInfra",
    "ConfigurationError",
    "DatabaseInfra",
    "MonitoringInfra",
    "compose",
]
