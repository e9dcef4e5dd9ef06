"""Tests for dashboard rendering"""

import json

from webstack.metrics import GraphWidget, Metric, dashboard_body, graph_widget


def _metric(name="Duration", function="fn-a"):
    return Metric(
        namespace="AWS/Lambda",
        metric_name=name,
        dimensions={"FunctionName": function},
        statistic="Average",
        label=function,
    )


class TestGraphWidget:
    def test_metric_rows_carry_axis_and_stat(self):
        widget = graph_widget(
            GraphWidget(title="t", left=[_metric()], right=[_metric("Errors")]),
            "eu-west-1",
            x=0,
            y=0,
        )
        rows = widget["properties"]["metrics"]
        assert rows[0] == [
            "AWS/Lambda",
            "Duration",
            "FunctionName",
            "fn-a",
            {"stat": "Average", "yAxis": "left", "label": "fn-a"},
        ]
        assert rows[1][-1]["yAxis"] == "right"
        assert widget["properties"]["region"] == "eu-west-1"


class TestDashboardBody:
    def test_rows_are_laid_out_left_to_right(self):
        body = json.loads(
            dashboard_body(
                [
                    [GraphWidget(title="api", left=[])],
                    [
                        GraphWidget(title="duration", left=[_metric()]),
                        GraphWidget(title="invocations", left=[_metric("Invocations")]),
                    ],
                ],
                "us-east-1",
            )
        )
        positions = [(w["properties"]["title"], w["x"], w["y"]) for w in body["widgets"]]
        assert positions == [("api", 0, 0), ("duration", 0, 6), ("invocations", 12, 6)]
