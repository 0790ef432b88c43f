# /// script
# requires-python = ">=3.12"
# dependencies = ["pydantic>=2.0", "pytest>=7.0"]
# ///
"""Tests for default fielding credit."""

import sys
from pathlib import Path

# Ensure project root is on the path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from fielding import assign_players, default_fielding_actions
from models import (
    Base,
    FieldingAction,
    FieldingActionKind,
    FieldingQuality,
    OutDetail,
    RunnerEvent,
    RunnerEventType,
)


def _kinds(actions):
    return [(a.position, a.action) for a in actions]


class TestBatterCredit:
    """Putouts, assists and errors implied by the batting result."""

    def test_strikeout_credits_catcher(self):
        actions = default_fielding_actions("strikeout_looking", None, True)
        assert _kinds(actions) == [("2", FieldingActionKind.PUTOUT)]

    def test_fly_out(self):
        actions = default_fielding_actions("flyout", "8", True)
        assert _kinds(actions) == [("8", FieldingActionKind.PUTOUT)]

    def test_ground_out_assist_and_putout(self):
        actions = default_fielding_actions("groundout", "6", True)
        assert _kinds(actions) == [("6", FieldingActionKind.ASSIST),
                                   ("3", FieldingActionKind.PUTOUT)]

    def test_unassisted_ground_out_at_first(self):
        actions = default_fielding_actions("groundout", "3", True)
        assert _kinds(actions) == [("3", FieldingActionKind.PUTOUT)]

    def test_reached_on_error(self):
        [action] = default_fielding_actions("error", "5", False)
        assert action.action == FieldingActionKind.ERROR
        assert action.quality == FieldingQuality.MISSED

    def test_hit_fielded(self):
        assert _kinds(default_fielding_actions("double", "7", False)) == [
            ("7", FieldingActionKind.FIELDED)]

    def test_no_fielder_no_credit(self):
        assert default_fielding_actions("single", None, False) == []

    def test_walk_has_no_credit(self):
        assert default_fielding_actions("walk", None, False) == []


class TestRunnerOuts:
    """Runner outs credit the thrower and the fielder who caught the ball."""

    def _out(self, caught_by, thrown_by=None):
        return RunnerEvent(
            event_id="e1", kind=RunnerEventType.CAUGHT_STEALING, runner_id="r1",
            from_base=Base.FIRST, is_out=True, reason="caught_stealing",
            out_detail=OutDetail(base=Base.SECOND, caught_by=caught_by, thrown_by=thrown_by),
        )

    def test_caught_stealing(self):
        actions = default_fielding_actions(None, None, False, [self._out("6", "2")])
        assert _kinds(actions) == [("2", FieldingActionKind.ASSIST),
                                   ("6", FieldingActionKind.PUTOUT)]

    def test_unassisted_tag(self):
        actions = default_fielding_actions(None, None, False, [self._out("4")])
        assert _kinds(actions) == [("4", FieldingActionKind.PUTOUT)]

    def test_double_play_credits(self):
        actions = default_fielding_actions("groundout", "6", True, [self._out("4", "6")])
        assert _kinds(actions) == [
            ("6", FieldingActionKind.ASSIST), ("3", FieldingActionKind.PUTOUT),
            ("6", FieldingActionKind.ASSIST), ("4", FieldingActionKind.PUTOUT),
        ]


class TestAssignPlayers:
    """Player ids come from the defensive alignment."""

    def test_fills_missing_ids(self):
        actions = [FieldingAction(position="6", action=FieldingActionKind.ASSIST)]
        [assigned] = assign_players(actions, {"6": "h2"})
        assert assigned.player_id == "h2"

    def test_keeps_explicit_ids(self):
        actions = [FieldingAction(player_id="x9", position="6",
                                  action=FieldingActionKind.ASSIST)]
        assert assign_players(actions, {"6": "h2"})[0].player_id == "x9"

    def test_unknown_position_left_empty(self):
        actions = [FieldingAction(position="7", action=FieldingActionKind.PUTOUT)]
        assert assign_players(actions, {})[0].player_id is None
