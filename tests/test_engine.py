"""Tests for block_visibility/engine.py - Combination and the evaluate API."""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from block_visibility.config import Settings
from block_visibility.controls import ControlDefinition, EvaluationContext, TriState
from block_visibility.engine import (
    ControlResult,
    combine,
    explain_block_visibility,
    is_block_visible,
)

from conftest import wp_fusion


def result(state, short_circuit=False, identifier="control"):
    return ControlResult(identifier, state, "", short_circuit)


def context_at(timestamp: str, **kwargs) -> EvaluationContext:
    return EvaluationContext(
        now=datetime.fromisoformat(timestamp.replace("Z", "+00:00")), **kwargs
    )


class TestCombine:
    """Tests for combine()."""

    def test_empty_is_visible(self):
        assert combine([]) is True

    def test_only_not_applicable_is_visible(self):
        assert combine([result(TriState.NOT_APPLICABLE), result(TriState.NOT_APPLICABLE)]) is True

    def test_all_true(self):
        assert combine([result(TriState.TRUE), result(TriState.TRUE)]) is True

    def test_any_false_hides(self):
        assert combine([result(TriState.TRUE), result(TriState.FALSE)]) is False

    def test_not_applicable_ignored(self):
        assert combine([result(TriState.TRUE), result(TriState.NOT_APPLICABLE)]) is True

    def test_short_circuit_stops_consumption(self):
        """Results after a short-circuit FALSE are never pulled."""
        consumed = []

        def results():
            for item in (result(TriState.FALSE, short_circuit=True), result(TriState.TRUE)):
                consumed.append(item)
                yield item

        assert combine(results()) is False
        assert len(consumed) == 1


class TestScenarios:
    """End-to-end decisions for representative blocks."""

    def test_empty_attributes_visible(self, anonymous_context, editor_context):
        assert is_block_visible({}, anonymous_context) is True
        assert is_block_visible({}, editor_context) is True
        assert is_block_visible({}, EvaluationContext()) is True

    @pytest.mark.parametrize("roles", [set(), {"administrator"}])
    def test_hide_block_always_hidden(self, roles):
        context = EvaluationContext(user_roles=roles)
        assert is_block_visible({"hideBlock": True}, context) is False

    def test_restricted_role(self):
        attributes = {"visibilityByRole": "logged-in", "restrictedRoles": ["editor"]}

        assert is_block_visible(attributes, EvaluationContext(user_roles={"subscriber"})) is False
        assert is_block_visible(attributes, EvaluationContext(user_roles={"editor"})) is True

    def test_date_range(self):
        attributes = {"dateTime": {"start": "2024-01-01T00:00:00Z", "end": "2024-01-31T23:59:59Z"}}

        assert is_block_visible(attributes, context_at("2024-02-01T00:00:00Z")) is False
        assert is_block_visible(attributes, context_at("2024-01-15T00:00:00Z")) is True

    def test_query_string(self):
        attributes = {"queryString": [{"param": "ref", "operator": "=", "value": "newsletter"}]}

        assert is_block_visible(attributes, EvaluationContext(query_params={"ref": "newsletter"})) is True
        assert is_block_visible(attributes, EvaluationContext(query_params={})) is False

    def test_tags_with_role(self):
        context = EvaluationContext(user_roles={"subscriber"}, integrations=wp_fusion(["vip"]))

        logged_in = {
            "userRole": {"visibilityByRole": "logged-in"},
            "wpFusion": {"tagsAny": ["vip"]},
        }
        assert is_block_visible(logged_in, context) is True

    def test_tags_ignored_for_public_role(self):
        """A public role setting turns the tag control's any/all fields off."""
        public = {
            "userRole": {"visibilityByRole": "public"},
            "wpFusion": {"tagsAny": ["vip"]},
        }

        for user_tags in (["vip"], [], ["other"]):
            context = EvaluationContext(user_roles={"subscriber"}, integrations=wp_fusion(user_tags))
            visible, results = explain_block_visibility(public, context)

            assert visible is True
            states = {r.identifier: r.state for r in results}
            assert states["wpFusion"] is TriState.NOT_APPLICABLE

    def test_tags_need_active_integration(self):
        attributes = {
            "userRole": {"visibilityByRole": "logged-in"},
            "wpFusion": {"tagsAny": ["vip"]},
        }
        context = EvaluationContext(
            user_roles={"subscriber"}, integrations=wp_fusion(["other"], active=False)
        )

        assert is_block_visible(attributes, context) is True


class TestProperties:
    """Properties that hold for any block configuration."""

    ROLE_ALLOWS = {"userRole": {"visibilityByRole": "logged-in"}}
    QUERY_FAILS = {"queryString": [{"param": "missing", "operator": "exists"}]}

    def test_hide_block_beats_permissive_role(self, editor_context):
        attributes = dict(self.ROLE_ALLOWS, hideBlock=True)

        assert is_block_visible(self.ROLE_ALLOWS, editor_context) is True
        assert is_block_visible(attributes, editor_context) is False

    def test_hide_block_skips_other_evaluators(self, empty_registry, editor_context):
        """Once hideBlock hides the block, no other evaluator runs."""
        from block_visibility.controls.user import HIDE_BLOCK

        spy = MagicMock(return_value=(TriState.TRUE, "spy"))
        empty_registry.register(HIDE_BLOCK)
        empty_registry.register(ControlDefinition("spy", spy))

        assert is_block_visible({"spy": {"x": 1}, "hideBlock": True}, editor_context,
                                registry=empty_registry) is False
        spy.assert_not_called()

    def test_and_composition(self, editor_context):
        attributes = dict(self.ROLE_ALLOWS, **self.QUERY_FAILS)

        assert is_block_visible(self.ROLE_ALLOWS, editor_context) is True
        assert is_block_visible(attributes, editor_context) is False

    def test_not_applicable_controls_do_not_change_result(self, editor_context):
        unconfigured = {
            "dateTime": {},
            "screenSize": {"hideOn": ["small"]},
            "cookie": [],
            "wpFusion": {"tagsAny": ["vip"]},
        }

        for base in (self.ROLE_ALLOWS, dict(self.ROLE_ALLOWS, **self.QUERY_FAILS)):
            expected = is_block_visible(base, editor_context)
            assert is_block_visible(dict(base, **unconfigured), editor_context) is expected

    def test_disabled_control_does_not_change_result(self, editor_context):
        settings = Settings.from_dict({"visibility_controls": {"query_string": {"enable": False}}})
        attributes = dict(self.ROLE_ALLOWS, **self.QUERY_FAILS)

        assert is_block_visible(attributes, editor_context, settings) is True

    def test_idempotent(self, editor_context):
        attributes = dict(self.ROLE_ALLOWS, **self.QUERY_FAILS)

        first = is_block_visible(attributes, editor_context)
        second = is_block_visible(attributes, editor_context)
        assert first is second

    def test_removed_control_resolves_as_absent(self, fresh_registry, editor_context):
        """A control removed from the registry is ignored in stored attributes."""
        attributes = dict(self.ROLE_ALLOWS, **self.QUERY_FAILS)
        assert is_block_visible(attributes, editor_context, registry=fresh_registry) is False

        fresh_registry._controls.pop("queryString")

        assert is_block_visible(attributes, editor_context, registry=fresh_registry) is True
        assert is_block_visible(attributes, editor_context, registry=fresh_registry) \
            is is_block_visible(self.ROLE_ALLOWS, editor_context, registry=fresh_registry)

    def test_all_controls_disabled_is_visible(self, editor_context):
        settings = Settings.from_dict({
            "visibility_controls": {
                slug: {"enable": False}
                for slug in Settings().get("visibility_controls")
            }
        })

        assert is_block_visible({"hideBlock": True}, editor_context, settings) is True
        assert is_block_visible(dict(self.QUERY_FAILS), editor_context, settings) is True


class TestErrorHandling:
    """Evaluation never raises."""

    def test_evaluator_error_counts_as_hidden(self, empty_registry, editor_context):
        def broken(attributes, context, control_set):
            raise RuntimeError("boom")

        empty_registry.register(ControlDefinition("broken", broken))

        visible, results = explain_block_visibility(
            {"broken": {}}, editor_context, registry=empty_registry
        )

        assert visible is False
        assert results[0].state is TriState.FALSE
        assert "boom" in results[0].description

    def test_resolution_error_hides_block(self, editor_context):
        settings = MagicMock()
        settings.is_control_enabled.side_effect = RuntimeError("settings broke")

        assert is_block_visible({"hideBlock": True}, editor_context, settings) is False

    @pytest.mark.parametrize("attributes", [None, [], "hideBlock", 42, {"controls": "x"}])
    def test_odd_attributes_are_visible(self, attributes, editor_context):
        assert is_block_visible(attributes, editor_context) is True

    def test_wrapped_attributes(self, editor_context):
        attributes = {"align": "wide", "blockVisibility": {"hideBlock": True}}
        assert is_block_visible(attributes, editor_context) is False


class TestExplain:
    """Tests for explain_block_visibility()."""

    def test_reports_every_control(self, editor_context):
        visible, results = explain_block_visibility(
            {"cookie": [{"cookie": "x", "operator": "exists"}],
             "userRole": {"visibilityByRole": "logged-in"}},
            editor_context,
        )

        assert visible is False
        assert [(r.identifier, r.state) for r in results] == [
            ("userRole", TriState.TRUE),
            ("cookie", TriState.FALSE),
        ]

    def test_controls_after_hide_block_are_skipped(self, empty_registry, editor_context):
        from block_visibility.controls.user import HIDE_BLOCK

        spy = MagicMock(return_value=(TriState.TRUE, "spy"))
        empty_registry.register(HIDE_BLOCK)
        empty_registry.register(ControlDefinition("spy", spy))

        visible, results = explain_block_visibility(
            {"spy": {"x": 1}, "hideBlock": True}, editor_context, registry=empty_registry
        )

        assert visible is False
        assert [(r.identifier, r.state) for r in results] == [
            ("hideBlock", TriState.FALSE),
            ("spy", TriState.NOT_APPLICABLE),
        ]
        assert results[1].description.startswith("Skipped")
        spy.assert_not_called()

    def test_matches_is_block_visible(self):
        attributes = {"dateTime": {"start": "2024-01-01T00:00:00Z"}, "cookie": [{"cookie": "x", "operator": "exists"}]}
        context = EvaluationContext(
            now=datetime(2024, 6, 1, tzinfo=timezone.utc), cookies={"x": "1"}
        )

        visible, _ = explain_block_visibility(attributes, context)
        assert visible is is_block_visible(attributes, context)
