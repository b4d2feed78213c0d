"""Unit tests for first-match rule lookup."""

from surface_id_agent.matcher import iter_matches, match
from surface_id_agent.models.config import DefaultPolicy, DesktopAppRule
from surface_id_agent.models.rule import SurfaceObservation
from surface_id_agent.rule_store import load_rule_store


def make_store(*records):
    return load_rule_store(list(records), DefaultPolicy(enabled=False))


class TestMatch:

    def test_first_match_wins(self):
        """Earlier broad rule wins over later specific one."""
        store = make_store(
            DesktopAppRule(surface_id=1, app_id="a"),
            DesktopAppRule(surface_id=2, app_id="a", app_title="t"),
        )
        rule = match(SurfaceObservation(app_id="a", title="t"), store)
        assert rule.surface_id == 1

    def test_title_only_rule_is_app_wildcard(self):
        store = make_store(DesktopAppRule(surface_id=3, app_title="X"))

        assert match(SurfaceObservation(app_id="anything", title="X"), store).surface_id == 3
        assert match(SurfaceObservation(app_id="other", title="X"), store).surface_id == 3
        assert match(SurfaceObservation(app_id=None, title="X"), store).surface_id == 3

    def test_present_pattern_requires_present_field(self):
        store = make_store(DesktopAppRule(surface_id=4, app_id="a", app_title="t"))

        assert match(SurfaceObservation(app_id="a", title=None), store) is None
        assert match(SurfaceObservation(app_id=None, title="t"), store) is None

    def test_exact_match_only(self):
        store = make_store(DesktopAppRule(surface_id=5, app_id="nav"))

        assert match(SurfaceObservation(app_id="Nav"), store) is None
        assert match(SurfaceObservation(app_id="nav-app"), store) is None
        assert match(SurfaceObservation(app_id="nav"), store).surface_id == 5

    def test_no_match_returns_none(self):
        store = make_store(DesktopAppRule(surface_id=6, app_id="a"))
        assert match(SurfaceObservation(app_id="b", title="b"), store) is None

    def test_iter_matches_in_configuration_order(self):
        store = make_store(
            DesktopAppRule(surface_id=9, app_title="t"),
            DesktopAppRule(surface_id=8, app_id="x"),
            DesktopAppRule(surface_id=7, app_id="a"),
        )
        ids = [r.surface_id for r in iter_matches(SurfaceObservation(app_id="a", title="t"), store)]
        assert ids == [9, 7]

    def test_fallback_title_matches_app_id_rule(self):
        """Title stands in as app id when the app declares none."""
        store = make_store(DesktopAppRule(surface_id=11, app_id="T"))
        observation = SurfaceObservation.observe(None, "T")
        assert match(observation, store).surface_id == 11
