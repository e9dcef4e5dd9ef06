"""
Observability: one CloudWatch dashboard over the API and its functions.

Pure consumer of the API tier. It reads metric references from the entry
point (request count, latency, 4XX, 5XX) and from each compute unit
(duration, invocations, errors); it never creates metrics or touches the
resources they describe. CloudWatch does the aggregation.

Layout, one graph per concern:

- row 1: API Gateway traffic (count + latency left, errors right)
- row 2: Lambda duration | Lambda invocations (left) and errors (right)
"""

import pulumi
import pulumi_aws as aws

from webstack.api import ApiInfra, ComputeUnit
from webstack.config import MonitoringSpec
from webstack.metrics import GraphWidget, Metric, dashboard_body

ID: str = "webstack:monitoring:MonitoringInfra"


def _resolved(metrics: list[Metric]) -> pulumi.Output[list[Metric]]:
    return pulumi.Output.all(*[metric.resolve() for metric in metrics])


class MonitoringInfra(pulumi.ComponentResource):
    """
    CloudWatch Dashboard built from metric references.

    Resources: Dashboard.
    """

    def __init__(
        self,
        name: str,
        units: list[ComputeUnit],
        entry_point: ApiInfra,
        prefix: str,
        opts: pulumi.ResourceOptions | None = None,
    ):
        """
        Args:
            name: Pulumi resource name.
            units: Compute units whose metrics are graphed.
            entry_point: API tier whose request metrics are graphed.
            prefix: "<project>-<environment>" prefix for the dashboard name.
            opts: Options for the component (e.g. parent).

        Outputs (set on self, registered for the component):
            dashboard_name: Physical dashboard name.
        """
        super().__init__(ID, name, None, opts)

        self.widgets: list[list[GraphWidget]] = [
            [
                GraphWidget(
                    title="API Gateway Metrics",
                    left=[entry_point.metric_count(), entry_point.metric_latency()],
                    right=[
                        entry_point.metric_client_error(),
                        entry_point.metric_server_error(),
                    ],
                )
            ],
            [
                GraphWidget(
                    title="Lambda Duration",
                    left=[unit.metric_duration() for unit in units],
                ),
                GraphWidget(
                    title="Lambda Invocations & Errors",
                    left=[unit.metric_invocations() for unit in units],
                    right=[unit.metric_errors() for unit in units],
                ),
            ],
        ]

        # Widgets are flattened to (left, right) Output pairs, resolved, then
        # rebuilt in the same order for rendering.
        flat = [widget for row in self.widgets for widget in row]
        resolved = pulumi.Output.all(
            aws.get_region_output().region,
            *[
                pulumi.Output.all(_resolved(w.left), _resolved(w.right))
                for w in flat
            ],
        )

        def render(values: list) -> str:
            region, pairs = values[0], iter(values[1:])
            rows = []
            for row in self.widgets:
                rebuilt = []
                for widget in row:
                    left, right = next(pairs)
                    rebuilt.append(
                        GraphWidget(title=widget.title, left=list(left), right=list(right))
                    )
                rows.append(rebuilt)
            return dashboard_body(rows, region)

        self.dashboard = aws.cloudwatch.Dashboard(
            resource_name=f"{name}-dashboard",
            dashboard_name=f"{prefix}-dashboard",
            dashboard_body=resolved.apply(render),
            opts=pulumi.ResourceOptions(parent=self),
        )

        self.dashboard_name: pulumi.Output[str] = self.dashboard.dashboard_name
        self.register_outputs({"dashboard_name": self.dashboard_name})


def aggregate(
    name: str,
    spec: MonitoringSpec | None,
    units: list[ComputeUnit],
    entry_point: ApiInfra,
    prefix: str,
    opts: pulumi.ResourceOptions | None = None,
) -> MonitoringInfra | None:
    """
    Build the dashboard when monitoring is configured; otherwise do nothing.
    """
    if spec is None:
        pulumi.log.info("Monitoring not configured; skipping dashboard")
        return None
    return MonitoringInfra(name, units, entry_point, prefix, opts)
