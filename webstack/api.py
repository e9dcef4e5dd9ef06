"""
API tier: one Lambda per route behind a single API Gateway REST API.

All compute units share one IAM role (``AccessGrant``) and one environment
mapping, both derived from the data tier's ``CapabilityHandle``:

- DynamoDB: read-write data access on every table and its indexes, plus one
  ``DYNAMODB_TABLE_<NAME>`` variable per table.
- Aurora: the RDS Data API statement actions on the cluster and read access
  to the credential secret, plus ``AURORA_CLUSTER_ARN`` / ``AURORA_SECRET_ARN``.

Sharing is deliberate: every unit trusts the same boundary, traded against
per-function least privilege. Routes are planned (and rejected) by
``webstack.routes`` before anything is created. An empty route list still
creates the REST API so ``url`` stays a stable output; no deployment is made
because API Gateway refuses to deploy an API without methods.
"""

import hashlib
import json
from dataclasses import dataclass

import pulumi
import pulumi_aws as aws

from webstack._helpers import (
    dynamodb_read_write_statement,
    env_var_key,
    placeholder_handler,
    policy_document,
    rds_data_statement,
    secret_read_statement,
)
from webstack.config import (
    ApiSpec,
    ComputeBudget,
    CorsSpec,
    MonitoringSpec,
    RouteSpec,
)
from webstack.database import CapabilityHandle
from webstack.errors import ConfigurationError
from webstack.metrics import Metric, api_metric, lambda_metric
from webstack.routes import (
    RoutePlan,
    is_path_parameter,
    parent_path,
    plan_routes,
    split_path,
)

ID: str = "webstack:api:ApiInfra"

LAMBDA_ASSUME_ROLE_POLICY = json.dumps(
    {
        "Version": "2012-10-17",
        "Statement": [
            {
                "Effect": "Allow",
                "Principal": {"Service": "lambda.amazonaws.com"},
                "Action": "sts:AssumeRole",
            }
        ],
    }
)

APIGATEWAY_ASSUME_ROLE_POLICY = json.dumps(
    {
        "Version": "2012-10-17",
        "Statement": [
            {
                "Effect": "Allow",
                "Principal": {"Service": "apigateway.amazonaws.com"},
                "Action": "sts:AssumeRole",
            }
        ],
    }
)

LAMBDA_MANAGED_POLICIES: dict[str, str] = {
    "basic-exec": "arn:aws:iam::aws:policy/service-role/AWSLambdaBasicExecutionRole",
    "xray-write": "arn:aws:iam::aws:policy/AWSXRayDaemonWriteAccess",
}

APIGATEWAY_LOGS_POLICY = (
    "arn:aws:iam::aws:policy/service-role/AmazonAPIGatewayPushToCloudWatchLogs"
)

DEFAULT_LOG_RETENTION_DAYS = 14


@dataclass(frozen=True)
class AccessGrant:
    """
    The single role every compute unit assumes.

    Attributes:
        role: IAM role passed to each function.
        policy: Inline data-access policy attached to ``role``.
        targets: Data-tier resources the policy covers (tables, or cluster
            and secret).
    """

    role: aws.iam.Role
    policy: aws.iam.RolePolicy
    targets: tuple[pulumi.Resource, ...]


@dataclass(frozen=True)
class ComputeUnit:
    """
    One Lambda bound to one route.

    ``grant`` and ``environment`` are the objects shared by every unit of the
    same ApiInfra, not copies.
    """

    name: str
    method: str
    path: str
    function: aws.lambda_.Function
    grant: AccessGrant
    environment: dict[str, pulumi.Input[str]]

    def metric_duration(self) -> Metric:
        return lambda_metric(self.function.name, "Duration", "Average", self.name)

    def metric_invocations(self) -> Metric:
        return lambda_metric(self.function.name, "Invocations", "Sum", self.name)

    def metric_errors(self) -> Metric:
        return lambda_metric(self.function.name, "Errors", "Sum", self.name)


def shared_environment(
    capability: CapabilityHandle,
    project_name: str,
    environment: str,
) -> dict[str, pulumi.Input[str]]:
    """
    Environment variables every compute unit receives.
    """
    variables: dict[str, pulumi.Input[str]] = {
        "PROJECT_NAME": project_name,
        "ENVIRONMENT": environment,
        "DATABASE_TYPE": capability.kind,
    }
    if capability.is_keyed:
        for table_name, table in capability.tables.items():
            variables[env_var_key("DYNAMODB_TABLE", table_name)] = table.name
    elif capability.is_relational:
        variables["AURORA_CLUSTER_ARN"] = capability.cluster.arn
        variables["AURORA_SECRET_ARN"] = capability.secret.arn
    else:
        raise ConfigurationError(f"Unknown data tier kind {capability.kind!r}")
    return variables


def path_slug(
    path: str,
) -> str:
    """
    Resource-name fragment for a path: "/items/{id}" -> "items-by-id".
    """
    parts = []
    for segment in split_path(path):
        parts.append(f"by-{segment[1:-1]}" if is_path_parameter(segment) else segment)
    return "-".join(parts).lower() or "root"


def permission_path(
    method: str,
    path: str,
) -> str:
    """
    Execute-API ARN suffix for a route: ("GET", "/items/{id}") -> "/*/GET/items/*".
    """
    segments = ["*" if is_path_parameter(s) else s for s in split_path(path)]
    verb = "*" if method == "ANY" else method
    return f"/*/{verb}/" + "/".join(segments)


def cors_origin_template(
    origins: tuple[str, ...],
) -> str | None:
    """
    VTL response template echoing the caller's Origin when it is allowed.

    A single origin (or "*") is sent as a static header, so no template is
    needed and None is returned.
    """
    if len(origins) <= 1 or "*" in origins:
        return None
    condition = " || ".join(f'$origin == "{origin}"' for origin in origins)
    return (
        '#set($origin = $input.params("Origin"))\n'
        '#if($origin == "") #set($origin = $input.params("origin")) #end\n'
        f"#if({condition})\n"
        "  #set($context.responseOverride.header.Access-Control-Allow-Origin = $origin)\n"
        "#end\n"
    )


def deployment_fingerprint(
    plan: RoutePlan,
    cors: CorsSpec | None,
) -> str:
    """
    Hash of everything that changes the API surface; forces a redeploy.
    """
    payload = {
        "routes": [[r.name, r.method, r.path] for r in plan.routes],
        "cors": None if cors is None else [
            list(cors.allow_origins),
            list(cors.allow_methods),
            list(cors.allow_headers),
        ],
    }
    return hashlib.sha1(json.dumps(payload, sort_keys=True).encode()).hexdigest()


class ApiInfra(pulumi.ComponentResource):
    """
    REST API + one Lambda per route, sharing a role and environment mapping.

    Resources: RestApi, Resource tree, Method/Integration/Permission per
    route, Lambda Function (+ LogGroup) per route, IAM Role + policy
    attachments + inline RolePolicy, optional CORS OPTIONS methods,
    Deployment, Stage, MethodSettings, API Gateway account logging role.
    """

    def __init__(
        self,
        name: str,
        routes: tuple[RouteSpec, ...],
        capability: CapabilityHandle | None,
        budget: ComputeBudget,
        api: ApiSpec,
        project_name: str,
        environment: str,
        prefix: str,
        monitoring: MonitoringSpec | None = None,
        opts: pulumi.ResourceOptions | None = None,
    ):
        """
        Create the shared grant, the compute units and the REST API.

        Args:
            name: Pulumi resource name; child names derive from it.
            routes: Ordered route descriptors, one compute unit each.
            capability: Handle from DatabaseInfra (required).
            budget: Runtime, timeout and memory for every function.
            api: Stage name, throttling and CORS.
            project_name: Passed to functions as PROJECT_NAME.
            environment: Passed to functions as ENVIRONMENT.
            prefix: "<project>-<environment>" prefix for physical names.
            monitoring: Tracing and log retention settings when present.
            opts: Options for the component (e.g. parent).

        Raises:
            ConfigurationError: Missing capability or invalid route table.

        Outputs (set on self, registered for the component):
            url: Base URL of the deployed stage.
            rest_api_name: Name of the REST API (metric dimension).
        """
        if capability is None:
            raise ConfigurationError("API tier needs a data tier capability handle")
        plan = plan_routes(routes)

        super().__init__(ID, name, None, opts)

        child_opts = pulumi.ResourceOptions(parent=self)
        tracing = monitoring.enable_xray if monitoring else True

        self.plan = plan
        self.rest_api = aws.apigateway.RestApi(
            resource_name=f"{name}-rest",
            name=f"{prefix}-api",
            description=f"API for {project_name} {environment}",
            opts=child_opts,
        )

        self.grant = self._create_grant(name, capability)
        self.environment = shared_environment(capability, project_name, environment)

        self.units: list[ComputeUnit] = [
            self._create_unit(name, route, budget, prefix, tracing, monitoring)
            for route in plan.routes
        ]
        self.functions: dict[str, aws.lambda_.Function] = {
            unit.name: unit.function for unit in self.units
        }

        resources = self._create_resource_tree(name, plan)
        methods: list[pulumi.Resource] = []
        self.preflight: dict[str, aws.apigateway.IntegrationResponse] = {}
        for unit in self.units:
            methods.extend(self._bind_route(name, unit, resources))
        if api.cors is not None and self.units:
            methods.extend(self._add_preflight(name, plan, api.cors, resources))

        self.stage: aws.apigateway.Stage | None = None
        if self.units:
            self.stage = self._deploy(name, plan, api, tracing, methods)
            self.url: pulumi.Output[str] = self.stage.invoke_url
        else:
            pulumi.log.info(
                "No routes configured; REST API created without a deployment",
                resource=self,
            )
            region = aws.get_region_output().region
            self.url = pulumi.Output.concat(
                "https://",
                self.rest_api.id,
                ".execute-api.",
                region,
                ".amazonaws.com/",
                api.stage_name,
            )

        pulumi.log.info(
            f"Bound {len(self.units)} compute unit(s) across "
            f"{len(plan.route_paths)} path(s)",
            resource=self,
        )
        self.rest_api_name: pulumi.Output[str] = self.rest_api.name
        self.register_outputs({"url": self.url, "rest_api_name": self.rest_api_name})

    def metric_count(self) -> Metric:
        return api_metric(self.rest_api.name, "Count", "Sum")

    def metric_latency(self) -> Metric:
        return api_metric(self.rest_api.name, "Latency", "Average")

    def metric_client_error(self) -> Metric:
        return api_metric(self.rest_api.name, "4XXError", "Sum")

    def metric_server_error(self) -> Metric:
        return api_metric(self.rest_api.name, "5XXError", "Sum")

    def _create_grant(
        self,
        name: str,
        capability: CapabilityHandle,
    ) -> AccessGrant:
        child_opts = pulumi.ResourceOptions(parent=self)
        role = aws.iam.Role(
            resource_name=f"{name}-lambda-role",
            assume_role_policy=LAMBDA_ASSUME_ROLE_POLICY,
            opts=child_opts,
        )
        for key, policy_arn in LAMBDA_MANAGED_POLICIES.items():
            aws.iam.RolePolicyAttachment(
                resource_name=f"{name}-{key}",
                role=role.name,
                policy_arn=policy_arn,
                opts=child_opts,
            )

        if capability.is_keyed:
            tables = list(capability.tables.values())
            targets: tuple[pulumi.Resource, ...] = tuple(tables)
            document = pulumi.Output.all(*[table.arn for table in tables]).apply(
                lambda arns: policy_document([dynamodb_read_write_statement(list(arns))])
            )
        elif capability.is_relational:
            targets = (capability.cluster, capability.secret)
            document = pulumi.Output.all(
                capability.cluster.arn, capability.secret.arn
            ).apply(
                lambda arns: policy_document(
                    [rds_data_statement(arns[0]), secret_read_statement(arns[1])]
                )
            )
        else:
            raise ConfigurationError(f"Unknown data tier kind {capability.kind!r}")

        policy = aws.iam.RolePolicy(
            resource_name=f"{name}-data-access",
            role=role.id,
            policy=document,
            opts=child_opts,
        )
        return AccessGrant(role=role, policy=policy, targets=targets)

    def _create_unit(
        self,
        name: str,
        route: RouteSpec,
        budget: ComputeBudget,
        prefix: str,
        tracing: bool,
        monitoring: MonitoringSpec | None,
    ) -> ComputeUnit:
        function_name = f"{prefix}-{route.name.lower()}"
        depends_on: list[pulumi.Resource] = [self.grant.policy]

        # Pre-create the log group so retention applies from the first invoke.
        if monitoring is None or monitoring.enable_cloudwatch_logs:
            retention = (
                monitoring.log_retention_days if monitoring else DEFAULT_LOG_RETENTION_DAYS
            )
            depends_on.append(
                aws.cloudwatch.LogGroup(
                    resource_name=f"{name}-{route.name.lower()}-logs",
                    name=f"/aws/lambda/{function_name}",
                    retention_in_days=retention,
                    opts=pulumi.ResourceOptions(parent=self),
                )
            )

        file_name, source, handler = placeholder_handler(budget.runtime, route.name)
        function = aws.lambda_.Function(
            resource_name=f"{name}-{route.name.lower()}",
            name=function_name,
            runtime=budget.runtime,
            handler=handler,
            code=pulumi.AssetArchive({file_name: pulumi.StringAsset(source)}),
            role=self.grant.role.arn,
            timeout=budget.timeout,
            memory_size=budget.memory_size,
            environment=aws.lambda_.FunctionEnvironmentArgs(
                variables=self.environment,
            ),
            tracing_config=aws.lambda_.FunctionTracingConfigArgs(
                mode="Active" if tracing else "PassThrough",
            ),
            opts=pulumi.ResourceOptions(parent=self, depends_on=depends_on),
        )
        return ComputeUnit(
            name=route.name,
            method=route.method,
            path=route.path,
            function=function,
            grant=self.grant,
            environment=self.environment,
        )

    def _resource_id(
        self,
        path: str,
        resources: dict[str, aws.apigateway.Resource],
    ) -> pulumi.Output[str]:
        if path == "/":
            return self.rest_api.root_resource_id
        return resources[path].id

    def _create_resource_tree(
        self,
        name: str,
        plan: RoutePlan,
    ) -> dict[str, aws.apigateway.Resource]:
        resources: dict[str, aws.apigateway.Resource] = {}
        # resource_paths lists parents first, so the parent lookup never misses.
        for path in plan.resource_paths:
            resources[path] = aws.apigateway.Resource(
                resource_name=f"{name}-resource-{path_slug(path)}",
                rest_api=self.rest_api.id,
                parent_id=self._resource_id(parent_path(path), resources),
                path_part=split_path(path)[-1],
                opts=pulumi.ResourceOptions(parent=self),
            )
        return resources

    def _bind_route(
        self,
        name: str,
        unit: ComputeUnit,
        resources: dict[str, aws.apigateway.Resource],
    ) -> list[pulumi.Resource]:
        child_opts = pulumi.ResourceOptions(parent=self)
        key = f"{name}-{unit.name.lower()}"
        resource_id = self._resource_id(unit.path, resources)
        params = {
            f"method.request.path.{segment[1:-1]}": True
            for segment in split_path(unit.path)
            if is_path_parameter(segment)
        }

        method = aws.apigateway.Method(
            resource_name=f"{key}-method",
            rest_api=self.rest_api.id,
            resource_id=resource_id,
            http_method=unit.method,
            authorization="NONE",
            request_parameters=params or None,
            opts=child_opts,
        )
        integration = aws.apigateway.Integration(
            resource_name=f"{key}-integration",
            rest_api=self.rest_api.id,
            resource_id=resource_id,
            http_method=method.http_method,
            integration_http_method="POST",
            type="AWS_PROXY",
            uri=unit.function.invoke_arn,
            opts=child_opts,
        )
        aws.lambda_.Permission(
            resource_name=f"{key}-invoke",
            action="lambda:InvokeFunction",
            function=unit.function.name,
            principal="apigateway.amazonaws.com",
            source_arn=self.rest_api.execution_arn.apply(
                lambda arn: f"{arn}{permission_path(unit.method, unit.path)}"
            ),
            opts=child_opts,
        )
        return [method, integration]

    def _add_preflight(
        self,
        name: str,
        plan: RoutePlan,
        cors: CorsSpec,
        resources: dict[str, aws.apigateway.Resource],
    ) -> list[pulumi.Resource]:
        """
        OPTIONS mock method on the root and every path resource.

        Each integration response is recorded in ``self.preflight`` by path.

        Paths that already route OPTIONS (or ANY) keep their own handler.
        """
        child_opts = pulumi.ResourceOptions(parent=self)
        origins = cors.allow_origins
        template = cors_origin_template(origins)
        static_origin = "*" if "*" in origins or not origins else origins[0]
        header_values = {
            "method.response.header.Access-Control-Allow-Headers": (
                "'" + ",".join(cors.allow_headers) + "'"
            ),
            "method.response.header.Access-Control-Allow-Methods": (
                "'" + ",".join(cors.allow_methods) + "'"
            ),
            "method.response.header.Access-Control-Allow-Origin": f"'{static_origin}'",
        }
        if template is not None:
            header_values["method.response.header.Vary"] = "'Origin'"

        created: list[pulumi.Resource] = []
        for path in ["/", *plan.resource_paths]:
            routed = plan.methods_on(path)
            if "OPTIONS" in routed or "ANY" in routed:
                continue
            key = f"{name}-preflight-{path_slug(path)}"
            resource_id = self._resource_id(path, resources)
            method = aws.apigateway.Method(
                resource_name=f"{key}-method",
                rest_api=self.rest_api.id,
                resource_id=resource_id,
                http_method="OPTIONS",
                authorization="NONE",
                opts=child_opts,
            )
            integration = aws.apigateway.Integration(
                resource_name=f"{key}-integration",
                rest_api=self.rest_api.id,
                resource_id=resource_id,
                http_method=method.http_method,
                type="MOCK",
                request_templates={"application/json": '{"statusCode": 204}'},
                opts=child_opts,
            )
            method_response = aws.apigateway.MethodResponse(
                resource_name=f"{key}-method-response",
                rest_api=self.rest_api.id,
                resource_id=resource_id,
                http_method=method.http_method,
                status_code="204",
                response_parameters={header: True for header in header_values},
                opts=child_opts,
            )
            integration_response = aws.apigateway.IntegrationResponse(
                resource_name=f"{key}-integration-response",
                rest_api=self.rest_api.id,
                resource_id=resource_id,
                http_method=method.http_method,
                status_code=method_response.status_code,
                response_parameters=header_values,
                response_templates=(
                    {"application/json": template} if template is not None else None
                ),
                opts=pulumi.ResourceOptions(
                    parent=self, depends_on=[integration, method_response]
                ),
            )
            self.preflight[path] = integration_response
            created.extend([method, integration, integration_response])
        return created

    def _deploy(
        self,
        name: str,
        plan: RoutePlan,
        api: ApiSpec,
        tracing: bool,
        methods: list[pulumi.Resource],
    ) -> aws.apigateway.Stage:
        child_opts = pulumi.ResourceOptions(parent=self)

        # Account-wide setting: lets API Gateway write execution logs.
        logs_role = aws.iam.Role(
            resource_name=f"{name}-cloudwatch-role",
            assume_role_policy=APIGATEWAY_ASSUME_ROLE_POLICY,
            opts=child_opts,
        )
        aws.iam.RolePolicyAttachment(
            resource_name=f"{name}-cloudwatch-logs",
            role=logs_role.name,
            policy_arn=APIGATEWAY_LOGS_POLICY,
            opts=child_opts,
        )
        account = aws.apigateway.Account(
            resource_name=f"{name}-account",
            cloudwatch_role_arn=logs_role.arn,
            opts=child_opts,
        )

        deployment = aws.apigateway.Deployment(
            resource_name=f"{name}-deployment",
            rest_api=self.rest_api.id,
            triggers={"redeployment": deployment_fingerprint(plan, api.cors)},
            opts=pulumi.ResourceOptions(
                parent=self,
                depends_on=methods,
            ),
        )
        stage = aws.apigateway.Stage(
            resource_name=f"{name}-stage",
            rest_api=self.rest_api.id,
            deployment=deployment.id,
            stage_name=api.stage_name,
            xray_tracing_enabled=tracing,
            opts=child_opts,
        )
        throttle = api.throttle
        aws.apigateway.MethodSettings(
            resource_name=f"{name}-method-settings",
            rest_api=self.rest_api.id,
            stage_name=stage.stage_name,
            method_path="*/*",
            settings=aws.apigateway.MethodSettingsSettingsArgs(
                metrics_enabled=True,
                logging_level="INFO",
                data_trace_enabled=True,
                throttling_rate_limit=throttle.rate_limit if throttle else None,
                throttling_burst_limit=throttle.burst_limit if throttle else None,
            ),
            opts=pulumi.ResourceOptions(parent=self, depends_on=[account]),
        )
        return stage
