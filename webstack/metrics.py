"""
CloudWatch metric references and dashboard body rendering.

A ``Metric`` is a reference (namespace, name, dimensions, statistic), never a
value: the dashboard only tells CloudWatch what to plot. Dimensions may hold
``Output`` values (e.g. a function name that is only known after create);
``Metric.resolve`` turns a metric into an ``Output[Metric]`` with plain
dimensions so ``dashboard_body`` can stay a pure function.
"""

import json
from dataclasses import dataclass, field, replace
from typing import Any

import pulumi

DEFAULT_PERIOD_SECONDS = 300
WIDGET_WIDTH = 12
WIDGET_HEIGHT = 6


@dataclass(frozen=True)
class Metric:
    namespace: str
    metric_name: str
    dimensions: dict[str, Any] = field(default_factory=dict)
    statistic: str = "Average"
    label: str | None = None

    def resolve(self) -> pulumi.Output["Metric"]:
        return pulumi.Output.all(**self.dimensions).apply(
            lambda dims: replace(self, dimensions=dict(dims))
        )


@dataclass(frozen=True)
class GraphWidget:
    title: str
    left: list[Metric]
    right: list[Metric] = field(default_factory=list)


def lambda_metric(
    function_name: pulumi.Input[str],
    metric_name: str,
    statistic: str,
    label: str,
) -> Metric:
    return Metric(
        namespace="AWS/Lambda",
        metric_name=metric_name,
        dimensions={"FunctionName": function_name},
        statistic=statistic,
        label=label,
    )


def api_metric(
    api_name: pulumi.Input[str],
    metric_name: str,
    statistic: str,
) -> Metric:
    return Metric(
        namespace="AWS/ApiGateway",
        metric_name=metric_name,
        dimensions={"ApiName": api_name},
        statistic=statistic,
    )


def _metric_row(
    metric: Metric,
    axis: str,
) -> list:
    row: list = [metric.namespace, metric.metric_name]
    for name, value in metric.dimensions.items():
        row.extend([name, value])
    options: dict[str, Any] = {"stat": metric.statistic, "yAxis": axis}
    if metric.label:
        options["label"] = metric.label
    row.append(options)
    return row


def graph_widget(
    widget: GraphWidget,
    region: str,
    x: int,
    y: int,
) -> dict:
    """
    Render one time-series widget. Metrics must already be resolved.
    """
    rows = [_metric_row(m, "left") for m in widget.left]
    rows += [_metric_row(m, "right") for m in widget.right]
    return {
        "type": "metric",
        "x": x,
        "y": y,
        "width": WIDGET_WIDTH,
        "height": WIDGET_HEIGHT,
        "properties": {
            "view": "timeSeries",
            "stacked": False,
            "title": widget.title,
            "region": region,
            "period": DEFAULT_PERIOD_SECONDS,
            "metrics": rows,
        },
    }


def dashboard_body(
    rows: list[list[GraphWidget]],
    region: str,
) -> str:
    """
    Lay out widget rows left to right, top to bottom, and serialize to JSON.

    Each inner list is one row, mirroring how widgets are added row by row.
    """
    widgets = []
    for row_index, row in enumerate(rows):
        for column, widget in enumerate(row):
            widgets.append(
                graph_widget(
                    widget,
                    region,
                    x=column * WIDGET_WIDTH,
                    y=row_index * WIDGET_HEIGHT,
                )
            )
    return json.dumps({"widgets": widgets})
