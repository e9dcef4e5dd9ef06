"""
Configuration snapshot for the web-app stack.

Provides a typed, immutable view of every setting the blueprint branches on.
The snapshot is built once, either from a plain mapping (``from_mapping``) or
from Pulumi stack config layered over a named preset (``from_pulumi_config``),
and validated while it is built: a snapshot that exists is composable, apart
from route conflicts which are detected when routes are planned.

The data tier is a tagged union: ``DynamoDbSpec`` or ``AuroraSpec``. Consumers
dispatch on the type and treat anything else as a ``ConfigurationError``.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, ClassVar

import pulumi

from webstack import presets
from webstack._helpers import env_var_key
from webstack.errors import ConfigurationError

ENVIRONMENTS: tuple[str, ...] = ("dev", "staging", "prod")
PRODUCTION = "prod"

DYNAMODB = "dynamodb"
AURORA_SERVERLESS = "aurora-serverless"

AURORA_ENGINES: tuple[str, ...] = ("mysql", "postgres")

RUNTIMES: tuple[str, ...] = (
    "nodejs18.x",
    "nodejs20.x",
    "python3.9",
    "python3.10",
    "python3.11",
    "python3.12",
)


def is_production(
    environment: str,
) -> bool:
    """
    Return True for the production tag; reject tags outside ENVIRONMENTS.

    Every retention, capacity and pricing branch goes through here so an
    unknown tag can never fall through to a silent default.
    """
    if environment not in ENVIRONMENTS:
        raise ConfigurationError(
            f"Unknown environment {environment!r}; expected one of {ENVIRONMENTS}"
        )
    return environment == PRODUCTION


@dataclass(frozen=True)
class IndexSpec:
    """Global secondary index; names are passed through unchecked."""

    index_name: str
    partition_key: str
    sort_key: str | None = None


@dataclass(frozen=True)
class TableSpec:
    name: str
    partition_key: str
    sort_key: str | None = None
    indexes: tuple[IndexSpec, ...] = ()


@dataclass(frozen=True)
class DynamoDbSpec:
    """Keyed-table data tier: one DynamoDB table per entry."""

    tables: tuple[TableSpec, ...]

    kind: ClassVar[str] = DYNAMODB

    def __post_init__(self):
        if not self.tables:
            raise ConfigurationError("dynamodb data tier requires at least one table")
        # Table names become env var keys and output names; those must not clash.
        keys = [env_var_key("DYNAMODB_TABLE", table.name) for table in self.tables]
        if len(set(keys)) != len(keys):
            raise ConfigurationError(
                f"Table names must be unique: {[table.name for table in self.tables]}"
            )


@dataclass(frozen=True)
class AuroraSpec:
    """Relational data tier: one Aurora Serverless cluster."""

    database_name: str
    master_username: str
    engine: str
    enable_http_endpoint: bool = False

    kind: ClassVar[str] = AURORA_SERVERLESS

    def __post_init__(self):
        if self.engine not in AURORA_ENGINES:
            raise ConfigurationError(
                f"Unknown Aurora engine {self.engine!r}; expected one of {AURORA_ENGINES}"
            )


DataTierSpec = DynamoDbSpec | AuroraSpec


@dataclass(frozen=True)
class RouteSpec:
    """One compute unit bound to ``method`` on ``path`` (e.g. "/items/{id}")."""

    name: str
    method: str
    path: str


DEFAULT_ROUTES: tuple[RouteSpec, ...] = (
    RouteSpec("GetItems", "GET", "/items"),
    RouteSpec("CreateItem", "POST", "/items"),
    RouteSpec("GetItem", "GET", "/items/{id}"),
    RouteSpec("UpdateItem", "PUT", "/items/{id}"),
    RouteSpec("DeleteItem", "DELETE", "/items/{id}"),
    RouteSpec("GetUsers", "GET", "/users"),
    RouteSpec("CreateUser", "POST", "/users"),
    RouteSpec("GetUser", "GET", "/users/{id}"),
)


@dataclass(frozen=True)
class ThrottleSpec:
    rate_limit: float
    burst_limit: int


@dataclass(frozen=True)
class CorsSpec:
    allow_origins: tuple[str, ...]
    allow_methods: tuple[str, ...]
    allow_headers: tuple[str, ...]


@dataclass(frozen=True)
class ApiSpec:
    stage_name: str = "api"
    throttle: ThrottleSpec | None = None
    cors: CorsSpec | None = None


@dataclass(frozen=True)
class ComputeBudget:
    """
    Runtime, timeout (seconds) and memory (MB) shared by every compute unit.
    """

    runtime: str = "nodejs18.x"
    timeout: int = 30
    memory_size: int = 256

    def __post_init__(self):
        if self.runtime not in RUNTIMES:
            raise ConfigurationError(
                f"Unknown runtime {self.runtime!r}; expected one of {RUNTIMES}"
            )
        if self.timeout <= 0 or self.memory_size <= 0:
            raise ConfigurationError("timeout and memory_size must be positive")


@dataclass(frozen=True)
class CustomDomainSpec:
    domain_name: str
    certificate_arn: str | None = None


@dataclass(frozen=True)
class AssetsSpec:
    enable_website_hosting: bool
    enable_cloudfront: bool = False
    custom_domain: CustomDomainSpec | None = None


@dataclass(frozen=True)
class MonitoringSpec:
    enable_xray: bool = True
    enable_cloudwatch_logs: bool = True
    log_retention_days: int = 14


@dataclass(frozen=True)
class AppConfig:
    """
    Full configuration snapshot.

    Attributes:
        project_name: Prefix for every physical resource name (required).
        environment: One of ENVIRONMENTS; drives retention and capacity.
        database: The active data-tier variant.
        api: Stage, throttling and CORS settings for the entry point.
        compute: Budget shared by all compute units.
        assets: Hosting / CloudFront switches for static assets.
        routes: Ordered compute-unit descriptors (DEFAULT_ROUTES by default).
        monitoring: Present to build the dashboard; None skips it.
    """

    project_name: str
    environment: str
    database: DataTierSpec
    api: ApiSpec = field(default_factory=ApiSpec)
    compute: ComputeBudget = field(default_factory=ComputeBudget)
    assets: AssetsSpec = field(
        default_factory=lambda: AssetsSpec(enable_website_hosting=False)
    )
    routes: tuple[RouteSpec, ...] = DEFAULT_ROUTES
    monitoring: MonitoringSpec | None = None

    def __post_init__(self):
        if not self.project_name or not self.project_name.strip():
            raise ConfigurationError("project_name must be a non-empty string")
        is_production(self.environment)
        if not isinstance(self.database, (DynamoDbSpec, AuroraSpec)):
            raise ConfigurationError(
                f"Unsupported data tier spec {type(self.database).__name__}"
            )

    @property
    def production(self) -> bool:
        return is_production(self.environment)

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> "AppConfig":
        """
        Build AppConfig from a plain mapping (snake_case keys, as in presets).
        """
        routes = data.get("routes")
        return cls(
            project_name=_require(data, "project_name", "config"),
            environment=_require(data, "environment", "config"),
            database=_parse_database(_require(data, "database", "config")),
            api=_parse_api(data.get("api") or {}),
            compute=_parse_compute(data.get("lambda") or {}),
            assets=_parse_assets(data.get("s3") or {}),
            routes=_parse_routes(routes) if routes is not None else DEFAULT_ROUTES,
            monitoring=_parse_monitoring(data.get("monitoring")),
        )

    @classmethod
    def from_pulumi_config(cls, config: pulumi.Config) -> "AppConfig":
        """
        Build AppConfig from pulumi.Config() layered over a preset.

        ``preset`` picks the base mapping (default "default"); any of
        _OVERRIDE_KEYS present in stack config replaces the preset's value.
        """
        data = presets.load(config.get("preset") or presets.DEFAULT)
        for key, reader in _OVERRIDE_KEYS:
            value = reader(config, key)
            if value is not None:
                data[key] = value
        return cls.from_mapping(data)


def _get_str(config: pulumi.Config, key: str) -> str | None:
    return config.get(key)


def _get_object(config: pulumi.Config, key: str) -> Any:
    return config.get_object(key)


# (key, reader); reader receives (config, key) and returns value or None.
_OVERRIDE_KEYS = [
    ("project_name", _get_str),
    ("environment", _get_str),
    ("database", _get_object),
    ("api", _get_object),
    ("lambda", _get_object),
    ("s3", _get_object),
    ("monitoring", _get_object),
    ("routes", _get_object),
]


def _require(data: dict[str, Any], key: str, where: str) -> Any:
    if not isinstance(data, dict):
        raise ConfigurationError(f"{where} must be a mapping")
    if data.get(key) is None:
        raise ConfigurationError(f"{where}.{key} is required")
    return data[key]


def _number(value: Any, cast: Callable[[Any], Any], where: str) -> Any:
    try:
        return cast(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"{where} must be a number, got {value!r}") from exc


def _parse_database(raw: dict[str, Any]) -> DataTierSpec:
    tier = _require(raw, "type", "database")
    if tier == DYNAMODB:
        tables = _require(raw, "dynamo_tables", "database")
        return DynamoDbSpec(tables=tuple(_parse_table(t) for t in tables))
    if tier == AURORA_SERVERLESS:
        aurora = _require(raw, "aurora_config", "database")
        return AuroraSpec(
            database_name=_require(aurora, "database_name", "database.aurora_config"),
            master_username=_require(
                aurora, "master_username", "database.aurora_config"
            ),
            engine=_require(aurora, "engine", "database.aurora_config"),
            enable_http_endpoint=bool(aurora.get("enable_http_endpoint", False)),
        )
    raise ConfigurationError(
        f"Unknown database type {tier!r}; expected {DYNAMODB!r} or {AURORA_SERVERLESS!r}"
    )


def _parse_table(raw: dict[str, Any]) -> TableSpec:
    return TableSpec(
        name=_require(raw, "name", "dynamo_tables[]"),
        partition_key=_require(raw, "partition_key", "dynamo_tables[]"),
        sort_key=raw.get("sort_key"),
        indexes=tuple(
            IndexSpec(
                index_name=_require(gsi, "index_name", "gsi[]"),
                partition_key=_require(gsi, "partition_key", "gsi[]"),
                sort_key=gsi.get("sort_key"),
            )
            for gsi in raw.get("gsi") or []
        ),
    )


def _parse_api(raw: dict[str, Any]) -> ApiSpec:
    throttle = raw.get("throttle")
    cors = raw.get("cors")
    return ApiSpec(
        stage_name=raw.get("stage_name", "api"),
        throttle=(
            ThrottleSpec(
                rate_limit=_number(
                    _require(throttle, "rate_limit", "api.throttle"),
                    float,
                    "api.throttle.rate_limit",
                ),
                burst_limit=_number(
                    _require(throttle, "burst_limit", "api.throttle"),
                    int,
                    "api.throttle.burst_limit",
                ),
            )
            if throttle
            else None
        ),
        cors=(
            CorsSpec(
                allow_origins=tuple(_require(cors, "allow_origins", "api.cors")),
                allow_methods=tuple(_require(cors, "allow_methods", "api.cors")),
                allow_headers=tuple(_require(cors, "allow_headers", "api.cors")),
            )
            if cors
            else None
        ),
    )


def _parse_compute(raw: dict[str, Any]) -> ComputeBudget:
    defaults = ComputeBudget()
    return ComputeBudget(
        runtime=raw.get("runtime", defaults.runtime),
        timeout=_number(raw.get("timeout", defaults.timeout), int, "lambda.timeout"),
        memory_size=_number(
            raw.get("memory_size", defaults.memory_size), int, "lambda.memory_size"
        ),
    )


def _parse_assets(raw: dict[str, Any]) -> AssetsSpec:
    domain = raw.get("custom_domain")
    return AssetsSpec(
        enable_website_hosting=bool(raw.get("enable_website_hosting", False)),
        enable_cloudfront=bool(raw.get("enable_cloudfront", False)),
        custom_domain=(
            CustomDomainSpec(
                domain_name=_require(domain, "domain_name", "s3.custom_domain"),
                certificate_arn=domain.get("certificate_arn"),
            )
            if domain
            else None
        ),
    )


def _parse_routes(raw: list[dict[str, Any]]) -> tuple[RouteSpec, ...]:
    return tuple(
        RouteSpec(
            name=_require(route, "name", "routes[]"),
            method=str(_require(route, "method", "routes[]")).upper(),
            path=_require(route, "path", "routes[]"),
        )
        for route in raw
    )


def _parse_monitoring(raw: dict[str, Any] | bool | None) -> MonitoringSpec | None:
    # Absent (or explicitly false) monitoring is a valid skip, not an error.
    if raw is None or raw is False:
        return None
    if raw is True:
        return MonitoringSpec()
    defaults = MonitoringSpec()
    return MonitoringSpec(
        enable_xray=bool(raw.get("enable_xray", defaults.enable_xray)),
        enable_cloudwatch_logs=bool(
            raw.get("enable_cloudwatch_logs", defaults.enable_cloudwatch_logs)
        ),
        log_retention_days=_number(
            raw.get("log_retention_days", defaults.log_retention_days),
            int,
            "monitoring.log_retention_days",
        ),
    )
