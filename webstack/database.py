"""
Data tier: DynamoDB tables or an Aurora Serverless v2 cluster, never both.

The component reads the tagged ``DataTierSpec`` and builds exactly one
topology:

- **DynamoDB**: one on-demand table per ``TableSpec`` with its global
  secondary indexes copied verbatim (index names are not checked; duplicates
  surface as provider errors). Server-side encryption is always on; point-in-
  time recovery and retain-on-delete are production only.
- **Aurora**: an isolated VPC across two availability zones, a Secrets
  Manager secret holding the master credentials (password generated by AWS
  with ``EXCLUDED_PASSWORD_CHARACTERS`` removed), and a Serverless v2 cluster
  whose capacity and auto-pause follow the environment.

Dependents never inspect the tier settings: they receive ``capability``, a
``CapabilityHandle`` whose accessors fail for the variant that was not built.
"""

import pulumi
import pulumi_aws as aws

from webstack._helpers import key_attributes
from webstack.config import (
    AURORA_SERVERLESS,
    DYNAMODB,
    AuroraSpec,
    DataTierSpec,
    DynamoDbSpec,
    TableSpec,
    is_production,
)
from webstack.errors import ConfigurationError

ID: str = "webstack:database:DatabaseInfra"

# Characters AWS must not put in the generated master password.
EXCLUDED_PASSWORD_CHARACTERS = '"@/\\'
PASSWORD_LENGTH = 32

AVAILABILITY_ZONES = 2
VPC_CIDR = "10.0.0.0/16"

AURORA_ENGINES: dict[str, tuple[str, str, int]] = {
    # dialect tag: (engine, engine_version, port)
    "mysql": ("aurora-mysql", "8.0.mysql_aurora.3.08.0", 3306),
    "postgres": ("aurora-postgresql", "16.6", 5432),
}

# Production stays warm; everything else scales to zero after 10 idle minutes.
PRODUCTION_SCALING: dict[str, float | int | None] = {
    "min_capacity": 2,
    "max_capacity": 64,
    "seconds_until_auto_pause": None,
}
NON_PRODUCTION_SCALING: dict[str, float | int | None] = {
    "min_capacity": 0,
    "max_capacity": 16,
    "seconds_until_auto_pause": 600,
}


class CapabilityHandle:
    """
    Read-only reference to whichever data tier was built.

    Exactly one variant is populated. Asking a DynamoDB handle for its
    cluster (or an Aurora handle for its tables) raises ConfigurationError
    instead of returning an empty value.
    """

    def __init__(
        self,
        kind: str,
        tables: dict[str, aws.dynamodb.Table] | None = None,
        cluster: aws.rds.Cluster | None = None,
        secret: aws.secretsmanager.Secret | None = None,
    ):
        if kind == DYNAMODB:
            if tables is None or cluster is not None or secret is not None:
                raise ConfigurationError("dynamodb capability takes tables only")
        elif kind == AURORA_SERVERLESS:
            if cluster is None or secret is None or tables is not None:
                raise ConfigurationError(
                    "aurora-serverless capability takes cluster and secret only"
                )
        else:
            raise ConfigurationError(f"Unknown data tier kind {kind!r}")
        self.kind = kind
        self._tables = tables
        self._cluster = cluster
        self._secret = secret

    @classmethod
    def keyed(cls, tables: dict[str, aws.dynamodb.Table]) -> "CapabilityHandle":
        return cls(DYNAMODB, tables=tables)

    @classmethod
    def relational(
        cls,
        cluster: aws.rds.Cluster,
        secret: aws.secretsmanager.Secret,
    ) -> "CapabilityHandle":
        return cls(AURORA_SERVERLESS, cluster=cluster, secret=secret)

    @property
    def is_keyed(self) -> bool:
        return self.kind == DYNAMODB

    @property
    def is_relational(self) -> bool:
        return self.kind == AURORA_SERVERLESS

    @property
    def tables(self) -> dict[str, aws.dynamodb.Table]:
        if self._tables is None:
            raise ConfigurationError(f"{self.kind} data tier has no DynamoDB tables")
        return self._tables

    @property
    def cluster(self) -> aws.rds.Cluster:
        if self._cluster is None:
            raise ConfigurationError(f"{self.kind} data tier has no Aurora cluster")
        return self._cluster

    @property
    def secret(self) -> aws.secretsmanager.Secret:
        if self._secret is None:
            raise ConfigurationError(f"{self.kind} data tier has no credential secret")
        return self._secret


class DatabaseInfra(pulumi.ComponentResource):
    """
    DynamoDB tables or Aurora Serverless v2 cluster, selected by spec type.

    Resources (DynamoDB): Table per TableSpec.
    Resources (Aurora): Vpc, isolated Subnet per zone, SubnetGroup,
    SecurityGroup, Secret, SecretVersion, Cluster, ClusterInstance.
    """

    def __init__(
        self,
        name: str,
        spec: DataTierSpec,
        prefix: str,
        environment: str,
        opts: pulumi.ResourceOptions | None = None,
    ):
        """
        Build the selected data tier.

        Args:
            name: Pulumi resource name; child resource names derive from it.
            spec: DynamoDbSpec or AuroraSpec.
            prefix: "<project>-<environment>" prefix for physical names.
            environment: Environment tag; "prod" switches on retention.
            opts: Options for the component (e.g. parent).

        Raises:
            ConfigurationError: Unknown spec type or environment tag.

        Outputs (set on self, registered for the component):
            capability: CapabilityHandle for dependents.
        """
        if not isinstance(spec, (DynamoDbSpec, AuroraSpec)):
            raise ConfigurationError(
                f"Unsupported data tier spec {type(spec).__name__}"
            )
        production = is_production(environment)

        super().__init__(ID, name, None, opts)

        self.tables: dict[str, aws.dynamodb.Table] = {}
        self.cluster: aws.rds.Cluster | None = None
        self.secret: aws.secretsmanager.Secret | None = None
        self.vpc: aws.ec2.Vpc | None = None

        if isinstance(spec, DynamoDbSpec):
            for table_spec in spec.tables:
                self.tables[table_spec.name] = self._create_table(
                    name, table_spec, prefix, production
                )
            self.capability = CapabilityHandle.keyed(self.tables)
            pulumi.log.info(
                f"Data tier: dynamodb with {len(self.tables)} table(s)", resource=self
            )
            self.register_outputs(
                {f"table_{key}": table.name for key, table in self.tables.items()}
            )
        else:
            self.cluster, self.secret = self._create_cluster(
                name, spec, prefix, production
            )
            self.capability = CapabilityHandle.relational(self.cluster, self.secret)
            pulumi.log.info(
                f"Data tier: aurora-serverless ({spec.engine})", resource=self
            )
            self.register_outputs(
                {
                    "cluster_endpoint": self.cluster.endpoint,
                    "secret_arn": self.secret.arn,
                }
            )

    def _create_table(
        self,
        name: str,
        table: TableSpec,
        prefix: str,
        production: bool,
    ) -> aws.dynamodb.Table:
        attributes = key_attributes(
            table.partition_key,
            table.sort_key,
            [(index.partition_key, index.sort_key) for index in table.indexes],
        )
        indexes = [
            aws.dynamodb.TableGlobalSecondaryIndexArgs(
                name=index.index_name,
                hash_key=index.partition_key,
                range_key=index.sort_key,
                projection_type="ALL",
            )
            for index in table.indexes
        ]
        # Production data survives `pulumi destroy`; the table is only dropped
        # from state.
        table_opts = pulumi.ResourceOptions(parent=self, retain_on_delete=production)
        return aws.dynamodb.Table(
            resource_name=f"{name}-{table.name.lower()}",
            name=f"{prefix}-{table.name}",
            attributes=[aws.dynamodb.TableAttributeArgs(**attr) for attr in attributes],
            hash_key=table.partition_key,
            range_key=table.sort_key,
            billing_mode="PAY_PER_REQUEST",
            global_secondary_indexes=indexes or None,
            point_in_time_recovery=aws.dynamodb.TablePointInTimeRecoveryArgs(
                enabled=production,
            ),
            server_side_encryption=aws.dynamodb.TableServerSideEncryptionArgs(
                enabled=True,
            ),
            opts=table_opts,
        )

    def _create_cluster(
        self,
        name: str,
        spec: AuroraSpec,
        prefix: str,
        production: bool,
    ) -> tuple[aws.rds.Cluster, aws.secretsmanager.Secret]:
        child_opts = pulumi.ResourceOptions(parent=self)
        engine, engine_version, port = AURORA_ENGINES[spec.engine]

        # Isolated subnets only: no internet gateway, no NAT. Functions reach
        # the cluster through the Data API.
        zones = aws.get_availability_zones_output(state="available")
        self.vpc = aws.ec2.Vpc(
            resource_name=f"{name}-vpc",
            cidr_block=VPC_CIDR,
            enable_dns_hostnames=True,
            enable_dns_support=True,
            tags={"Name": f"{prefix}-vpc"},
            opts=child_opts,
        )
        subnets = [
            aws.ec2.Subnet(
                resource_name=f"{name}-isolated-{index}",
                vpc_id=self.vpc.id,
                cidr_block=f"10.0.{index}.0/24",
                availability_zone=zones.names[index],
                tags={"Name": f"{prefix}-isolated-{index}"},
                opts=child_opts,
            )
            for index in range(AVAILABILITY_ZONES)
        ]
        subnet_group = aws.rds.SubnetGroup(
            resource_name=f"{name}-subnets",
            subnet_ids=[subnet.id for subnet in subnets],
            opts=child_opts,
        )
        security_group = aws.ec2.SecurityGroup(
            resource_name=f"{name}-db-sg",
            vpc_id=self.vpc.id,
            description=f"Aurora access from inside {prefix}-vpc",
            ingress=[
                aws.ec2.SecurityGroupIngressArgs(
                    protocol="tcp",
                    from_port=port,
                    to_port=port,
                    cidr_blocks=[VPC_CIDR],
                )
            ],
            opts=child_opts,
        )

        # Generated once: later runs would draw a new password, so both the
        # secret value and the cluster password ignore changes after create.
        password = aws.secretsmanager.get_random_password_output(
            password_length=PASSWORD_LENGTH,
            exclude_characters=EXCLUDED_PASSWORD_CHARACTERS,
        ).random_password
        password = pulumi.Output.secret(password)

        secret = aws.secretsmanager.Secret(
            resource_name=f"{name}-credentials",
            name=f"{prefix}-aurora-credentials",
            opts=pulumi.ResourceOptions(parent=self, retain_on_delete=production),
        )
        aws.secretsmanager.SecretVersion(
            resource_name=f"{name}-credentials-value",
            secret_id=secret.id,
            secret_string=pulumi.Output.json_dumps(
                {"username": spec.master_username, "password": password}
            ),
            opts=pulumi.ResourceOptions(parent=self, ignore_changes=["secret_string"]),
        )

        scaling = PRODUCTION_SCALING if production else NON_PRODUCTION_SCALING
        cluster = aws.rds.Cluster(
            resource_name=f"{name}-cluster",
            cluster_identifier=f"{prefix}-aurora",
            engine=engine,
            engine_mode="provisioned",
            engine_version=engine_version,
            database_name=spec.database_name,
            master_username=spec.master_username,
            master_password=password,
            db_subnet_group_name=subnet_group.name,
            vpc_security_group_ids=[security_group.id],
            enable_http_endpoint=spec.enable_http_endpoint,
            serverlessv2_scaling_configuration=aws.rds.ClusterServerlessv2ScalingConfigurationArgs(
                **scaling
            ),
            storage_encrypted=True,
            deletion_protection=production,
            skip_final_snapshot=not production,
            final_snapshot_identifier=f"{prefix}-aurora-final" if production else None,
            opts=pulumi.ResourceOptions(
                parent=self,
                retain_on_delete=production,
                ignore_changes=["master_password"],
            ),
        )
        aws.rds.ClusterInstance(
            resource_name=f"{name}-writer",
            cluster_identifier=cluster.id,
            instance_class="db.serverless",
            engine=engine,
            engine_version=engine_version,
            db_subnet_group_name=subnet_group.name,
            opts=pulumi.ResourceOptions(parent=self, retain_on_delete=production),
        )
        return cluster, secret
