"""
Named base configurations, selectable with the ``preset`` stack config key.

Each preset is a plain mapping in the shape ``AppConfig.from_mapping`` reads.
``load`` returns a deep copy so callers can layer overrides on top without
touching the catalog.
"""

import copy
from typing import Any

from webstack.errors import ConfigurationError

DEFAULT = "default"

_CATALOG: dict[str, dict[str, Any]] = {
    DEFAULT: {
        "project_name": "my-serverless-app",
        "environment": "dev",
        "database": {
            "type": "dynamodb",
            "dynamo_tables": [
                {
                    "name": "Users",
                    "partition_key": "userId",
                    "gsi": [{"index_name": "EmailIndex", "partition_key": "email"}],
                },
                {"name": "Items", "partition_key": "id", "sort_key": "createdAt"},
            ],
        },
        "api": {
            "stage_name": "api",
            "throttle": {"rate_limit": 1000, "burst_limit": 2000},
            "cors": {
                "allow_origins": ["*"],
                "allow_methods": ["GET", "POST", "PUT", "DELETE", "OPTIONS"],
                "allow_headers": ["Content-Type", "Authorization"],
            },
        },
        "lambda": {"runtime": "nodejs18.x", "timeout": 30, "memory_size": 256},
        "s3": {"enable_website_hosting": True, "enable_cloudfront": True},
        "monitoring": {
            "enable_xray": True,
            "enable_cloudwatch_logs": True,
            "log_retention_days": 14,
        },
    },
    # Blog API on DynamoDB with a custom domain (no certificate yet).
    "blog-api": {
        "project_name": "blog-api",
        "environment": "dev",
        "database": {
            "type": "dynamodb",
            "dynamo_tables": [
                {
                    "name": "Posts",
                    "partition_key": "postId",
                    "sort_key": "createdAt",
                    "gsi": [
                        {
                            "index_name": "AuthorIndex",
                            "partition_key": "authorId",
                            "sort_key": "createdAt",
                        },
                        {
                            "index_name": "CategoryIndex",
                            "partition_key": "category",
                            "sort_key": "createdAt",
                        },
                    ],
                },
                {
                    "name": "Authors",
                    "partition_key": "authorId",
                    "gsi": [{"index_name": "EmailIndex", "partition_key": "email"}],
                },
                {
                    "name": "Comments",
                    "partition_key": "commentId",
                    "sort_key": "postId",
                    "gsi": [
                        {
                            "index_name": "PostCommentsIndex",
                            "partition_key": "postId",
                            "sort_key": "createdAt",
                        }
                    ],
                },
            ],
        },
        "api": {
            "stage_name": "v1",
            "throttle": {"rate_limit": 500, "burst_limit": 1000},
            "cors": {
                "allow_origins": ["https://myblog.com", "http://localhost:3000"],
                "allow_methods": ["GET", "POST", "PUT", "DELETE", "OPTIONS"],
                "allow_headers": ["Content-Type", "Authorization", "X-Requested-With"],
            },
        },
        "lambda": {"runtime": "nodejs18.x", "timeout": 30, "memory_size": 512},
        "s3": {
            "enable_website_hosting": True,
            "enable_cloudfront": True,
            # No certificate yet: the alias is skipped until one is configured.
            "custom_domain": {"domain_name": "blog.mydomain.com"},
        },
        "monitoring": {
            "enable_xray": True,
            "enable_cloudwatch_logs": True,
            "log_retention_days": 30,
        },
    },
    # E-commerce API on Aurora Serverless (PostgreSQL) in production.
    "ecommerce": {
        "project_name": "ecommerce-api",
        "environment": "prod",
        "database": {
            "type": "aurora-serverless",
            "aurora_config": {
                "database_name": "ecommerce",
                "master_username": "admin",
                "engine": "postgres",
                "enable_http_endpoint": True,
            },
        },
        "api": {
            "stage_name": "v2",
            "throttle": {"rate_limit": 2000, "burst_limit": 5000},
            "cors": {
                "allow_origins": ["https://shop.mydomain.com"],
                "allow_methods": ["GET", "POST", "PUT", "DELETE", "PATCH"],
                "allow_headers": ["Content-Type", "Authorization", "X-API-Key"],
            },
        },
        "lambda": {"runtime": "nodejs20.x", "timeout": 60, "memory_size": 1024},
        "s3": {
            "enable_website_hosting": True,
            "enable_cloudfront": True,
            "custom_domain": {
                "domain_name": "shop.mydomain.com",
                "certificate_arn": (
                    "arn:aws:acm:us-east-1:123456789012:certificate/abcd1234"
                ),
            },
        },
        "monitoring": {
            "enable_xray": True,
            "enable_cloudwatch_logs": True,
            "log_retention_days": 90,
        },
    },
    # Minimal CRUD API: one table, no hosting, no monitoring.
    "simple-crud": {
        "project_name": "simple-crud",
        "environment": "dev",
        "database": {
            "type": "dynamodb",
            "dynamo_tables": [{"name": "Items", "partition_key": "id"}],
        },
        "api": {"stage_name": "api"},
        "lambda": {"runtime": "nodejs18.x", "timeout": 15, "memory_size": 128},
        "s3": {"enable_website_hosting": False},
    },
    # Multi-tenant SaaS on DynamoDB in production.
    "saas": {
        "project_name": "saas-platform",
        "environment": "prod",
        "database": {
            "type": "dynamodb",
            "dynamo_tables": [
                {
                    "name": "Tenants",
                    "partition_key": "tenantId",
                    "gsi": [{"index_name": "DomainIndex", "partition_key": "domain"}],
                },
                {
                    "name": "Users",
                    "partition_key": "userId",
                    "sort_key": "tenantId",
                    "gsi": [
                        {
                            "index_name": "TenantUsersIndex",
                            "partition_key": "tenantId",
                            "sort_key": "email",
                        },
                        {"index_name": "EmailIndex", "partition_key": "email"},
                    ],
                },
                {
                    "name": "TenantData",
                    "partition_key": "tenantId",
                    "sort_key": "dataType#entityId",
                },
            ],
        },
        "api": {
            "stage_name": "v1",
            "throttle": {"rate_limit": 5000, "burst_limit": 10000},
            "cors": {
                "allow_origins": ["*"],
                "allow_methods": ["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
                "allow_headers": ["Content-Type", "Authorization", "X-Tenant-ID"],
            },
        },
        "lambda": {"runtime": "nodejs20.x", "timeout": 45, "memory_size": 512},
        "s3": {"enable_website_hosting": True, "enable_cloudfront": True},
        "monitoring": {
            "enable_xray": True,
            "enable_cloudwatch_logs": True,
            "log_retention_days": 365,
        },
    },
}


def names() -> list[str]:
    return sorted(_CATALOG)


def load(
    name: str,
) -> dict[str, Any]:
    """
    Return a fresh copy of the named preset mapping.

    Raises:
        ConfigurationError: If ``name`` is not in the catalog.
    """
    if name not in _CATALOG:
        raise ConfigurationError(f"Unknown preset {name!r}; expected one of {names()}")
    return copy.deepcopy(_CATALOG[name])
