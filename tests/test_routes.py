"""Tests for route planning"""

import pytest

from webstack import routes
from webstack.config import DEFAULT_ROUTES, RouteSpec
from webstack.errors import ConfigurationError


class TestNormalizePath:
    def test_strips_trailing_slash(self):
        assert routes.normalize_path("/items/") == "/items"

    def test_root(self):
        assert routes.normalize_path("/") == "/"

    def test_requires_leading_slash(self):
        with pytest.raises(ConfigurationError):
            routes.normalize_path("items")

    def test_single_path_parameter(self):
        assert routes.normalize_path("/items/{id}") == "/items/{id}"

    def test_rejects_two_path_parameters(self):
        with pytest.raises(ConfigurationError):
            routes.normalize_path("/users/{userId}/items/{itemId}")

    def test_rejects_malformed_segment(self):
        with pytest.raises(ConfigurationError):
            routes.normalize_path("/items/{id")


class TestParentPath:
    def test_nested(self):
        assert routes.parent_path("/items/{id}") == "/items"

    def test_top_level(self):
        assert routes.parent_path("/items") == "/"


class TestPlanRoutes:
    def test_default_catalog(self):
        plan = routes.plan_routes(DEFAULT_ROUTES)
        assert len(plan.routes) == 8
        assert plan.resource_paths == ("/items", "/items/{id}", "/users", "/users/{id}")
        assert plan.methods_on("/items/{id}") == ["GET", "PUT", "DELETE"]

    def test_empty_route_list(self):
        plan = routes.plan_routes([])
        assert plan.routes == ()
        assert plan.resource_paths == ()

    def test_parents_created_before_children(self):
        plan = routes.plan_routes([RouteSpec("GetOrder", "GET", "/shop/orders/{id}")])
        assert plan.resource_paths == ("/shop", "/shop/orders", "/shop/orders/{id}")

    def test_same_method_on_two_paths(self):
        plan = routes.plan_routes(
            [RouteSpec("A", "GET", "/items"), RouteSpec("B", "GET", "/users")]
        )
        assert len(plan.routes) == 2

    def test_duplicate_method_and_path_is_an_error(self):
        with pytest.raises(ConfigurationError):
            routes.plan_routes(
                [RouteSpec("A", "GET", "/items"), RouteSpec("B", "GET", "/items/")]
            )

    def test_duplicate_name_is_an_error(self):
        with pytest.raises(ConfigurationError):
            routes.plan_routes(
                [RouteSpec("A", "GET", "/items"), RouteSpec("A", "POST", "/items")]
            )

    def test_route_names_differing_only_in_case_are_an_error(self):
        with pytest.raises(ConfigurationError):
            routes.plan_routes(
                [RouteSpec("GetItem", "GET", "/a"), RouteSpec("getitem", "GET", "/b")]
            )

    def test_unknown_method_is_an_error(self):
        with pytest.raises(ConfigurationError):
            routes.plan_routes([RouteSpec("A", "FETCH", "/items")])

    def test_route_paths_in_registration_order(self):
        plan = routes.plan_routes(DEFAULT_ROUTES)
        assert plan.route_paths == ["/items", "/items/{id}", "/users", "/users/{id}"]
