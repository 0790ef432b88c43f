# /// script
# requires-python = ">=3.12"
# dependencies = ["pydantic>=2.0", "pytest>=7.0"]
# ///
"""Tests for the Runner Resolution Engine.

Tests cover:
  1. Default movement for every advance rule
  2. Score candidates must be confirmed before a play finalizes
  3. Operator corrections: moves, outs and their reasons
  4. Fielder validation on outs and the three-out ceiling
  5. Between-pitch runner plays (steals, wild pitches, caught stealing)
  6. RBI and runner-event generation
  7. apply_resolution writes runners, runs, outs and closes the half
"""

import sys
from pathlib import Path

# Ensure project root is on the path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import pytest

from data.store import MemoryStore
from game_state import GameStateEngine
from models import (
    AdvanceReason,
    Base,
    Half,
    OutReason,
    RunnerEventType,
    Runners,
)
from runner_resolution import (
    ADVANCE_EVENT_KINDS,
    ADVANCE_RULES,
    OUT_EVENT_KINDS,
    PlayResolution,
    ResolutionValidationError,
    apply_resolution,
    default_movement,
)
from taxonomy import AdvanceRule, BattingResultCode


LOADED = Runners(first="r1", second="r2", third="r3")


# ---------------------------------------------------------------------------
# Step 1: Default movement
# ---------------------------------------------------------------------------

class TestDefaultMovement:
    """Standard advancement per batting result."""

    def test_rule_tables_are_complete(self):
        assert set(ADVANCE_RULES) == set(AdvanceRule)
        assert set(ADVANCE_EVENT_KINDS) == set(AdvanceReason)
        assert set(OUT_EVENT_KINDS) == set(OutReason)

    def test_single_bases_empty(self):
        move = default_movement("single", Runners(), "b")
        assert move.runners == Runners(first="b")
        assert move.scored == [] and move.score_candidates == []
        assert move.batter_base == Base.FIRST

    def test_single_moves_everyone_one_base(self):
        move = default_movement("single", LOADED, "b")
        assert move.runners == Runners(first="b", second="r1", third="r2")
        assert move.score_candidates == ["r3"]

    def test_double(self):
        move = default_movement("double", Runners(first="r1", second="r2"), "b")
        assert move.runners == Runners(second="b", third="r1")
        assert move.score_candidates == ["r2"]

    def test_triple_clears_the_bases(self):
        move = default_movement("triple", LOADED, "b")
        assert move.runners == Runners(third="b")
        assert move.score_candidates == ["r3", "r2", "r1"]

    def test_home_run_scores_without_confirmation(self):
        move = default_movement("homerun", Runners(first="r1"), "b")
        assert move.runners == Runners()
        assert move.scored == ["r1", "b"]
        assert move.score_candidates == []

    def test_walk_bases_loaded_forces_run(self):
        move = default_movement("walk", LOADED, "b")
        assert move.runners == Runners(first="b", second="r1", third="r2")
        assert move.scored == ["r3"]

    def test_walk_runner_on_second_holds(self):
        move = default_movement("walk", Runners(second="r2"), "b")
        assert move.runners == Runners(first="b", second="r2")
        assert move.scored == []

    def test_walk_first_and_third(self):
        move = default_movement("deadball", Runners(first="r1", third="r3"), "b")
        assert move.runners == Runners(first="b", second="r1", third="r3")

    def test_sacrifice_bunt_advances_runners_only(self):
        move = default_movement("sacrifice_bunt", Runners(first="r1"), "b")
        assert move.runners == Runners(second="r1")

    def test_sacrifice_fly_only_third_tags(self):
        move = default_movement("sac_fly", Runners(first="r1", third="r3"), "b")
        assert move.runners == Runners(first="r1")
        assert move.score_candidates == ["r3"]

    def test_out_leaves_runners(self):
        move = default_movement(BattingResultCode.FLYOUT, LOADED, "b")
        assert move.runners == LOADED


# ---------------------------------------------------------------------------
# Step 2: Score confirmation
# ---------------------------------------------------------------------------

class TestScoreConfirmation:
    """Runs are never assumed."""

    def test_bases_empty_single(self):
        play = PlayResolution(Runners(), 0, "b", "single").finalize()
        assert play.runners_after == Runners(first="b")
        assert play.outs_after == 0
        assert play.scored == []
        assert play.runner_events == []
        assert play.rbi == 0

    def test_sacrifice_fly_needs_confirmation(self):
        res = PlayResolution(Runners(third="r3"), 1, "b", "sacrifice_fly")
        problems = res.problems()
        assert any("r3" in p and "confirm" in p for p in problems)
        with pytest.raises(ResolutionValidationError):
            res.finalize()

    def test_sacrifice_fly_with_confirmed_run(self):
        res = PlayResolution(Runners(third="r3"), 1, "b", "sacrifice_fly")
        res.confirm_score("r3")
        play = res.finalize()
        assert play.runners_after == Runners()
        assert play.outs_after == 2
        assert play.scored == ["r3"]
        assert play.batter_retired
        assert play.rbi == 1
        [event] = play.runner_events
        assert (event.runner_id, event.from_base, event.to_base) == ("r3", Base.THIRD, Base.HOME)

    def test_two_run_homer(self):
        play = PlayResolution(Runners(first="r1"), 0, "b", "homerun").finalize()
        assert play.runners_after == Runners()
        assert sorted(play.scored) == ["b", "r1"]
        assert play.outs_after == 0
        assert play.rbi == 2
        assert [e.runner_id for e in play.runner_events] == ["r1"]

    def test_confirm_all_scores(self):
        res = PlayResolution(LOADED, 0, "b", "triple")
        res.confirm_all_scores()
        play = res.finalize()
        assert sorted(play.scored) == ["r1", "r2", "r3"]
        assert play.runners_after == Runners(third="b")

    def test_candidate_thrown_out_at_home(self):
        res = PlayResolution(Runners(third="r3"), 0, "b", "single")
        res.put_out("r3", OutReason.TAG_OUT, caught_by="2", thrown_by="7")
        play = res.finalize()
        assert play.outs_after == 1
        assert play.scored == []
        out = next(e for e in play.runner_events if e.is_out)
        assert out.out_detail.base == Base.HOME
        assert out.out_detail.caught_by == "2"

    def test_confirm_non_candidate_raises(self):
        res = PlayResolution(Runners(first="r1"), 0, "b", "single")
        with pytest.raises(ResolutionValidationError):
            res.confirm_score("r1")


# ---------------------------------------------------------------------------
# Step 3: Operator corrections
# ---------------------------------------------------------------------------

class TestCorrections:
    """Moves and outs entered by the operator."""

    def test_extra_base_needs_reason(self):
        res = PlayResolution(Runners(first="r1"), 0, "b", "single")
        res.move("r1", Base.THIRD)
        assert any("r1" in p and "reason" in p for p in res.problems())
        res.annotate_advance("r1", AdvanceReason.HIT)
        play = res.finalize()
        assert play.runners_after == Runners(first="b", third="r1")

    def test_move_to_occupied_base_rejected(self):
        res = PlayResolution(Runners(first="r1", second="r2"), 0, "b", "single")
        with pytest.raises(ResolutionValidationError, match="occupied"):
            res.move("r1", Base.THIRD)

    def test_move_base(self):
        res = PlayResolution(Runners(first="r1"), 0, "b", "double")
        res.move_base(Base.THIRD, Base.HOME, AdvanceReason.HIT)
        play = res.finalize()
        assert play.scored == ["r1"]
        assert play.runners_after == Runners(second="b")

    def test_move_base_empty_raises(self):
        res = PlayResolution(Runners(), 0, "b", "single")
        with pytest.raises(ResolutionValidationError, match="No runner"):
            res.move_base(Base.SECOND, Base.THIRD)

    def test_unknown_runner_rejected(self):
        res = PlayResolution(Runners(first="r1"), 0, "b", "single")
        with pytest.raises(ResolutionValidationError):
            res.move("zz", Base.SECOND)

    def test_double_play(self):
        res = PlayResolution(Runners(first="r1"), 0, "b", "groundout")
        res.put_out("r1", OutReason.FORCE_OUT, caught_by="4", thrown_by="6", base=Base.SECOND)
        play = res.finalize()
        assert play.outs_after == 2
        assert play.batter_retired
        [event] = play.runner_events
        assert event.kind == RunnerEventType.OUT
        assert event.from_base == Base.FIRST

    def test_batter_out_stretching(self):
        res = PlayResolution(Runners(), 0, "b", "single")
        res.put_out("b", OutReason.TAG_OUT, caught_by="4", thrown_by="8", base=Base.SECOND)
        play = res.finalize()
        assert play.outs_after == 1
        assert not play.batter_retired
        assert play.runner_events[0].from_base is None

    def test_moving_runner_after_out_rejected(self):
        res = PlayResolution(Runners(first="r1"), 0, "b", "groundout")
        res.put_out("r1", OutReason.FORCE_OUT, caught_by="4")
        with pytest.raises(ResolutionValidationError, match="already been put out"):
            res.move("r1", Base.SECOND)

    def test_cancel(self):
        res = PlayResolution(Runners(), 0, "b", "single")
        res.cancel()
        with pytest.raises(ResolutionValidationError, match="cancelled"):
            res.finalize()

    def test_result_needs_batter(self):
        with pytest.raises(ResolutionValidationError):
            PlayResolution(Runners(), 0, None, "single")


# ---------------------------------------------------------------------------
# Step 4: Fielders and the out ceiling
# ---------------------------------------------------------------------------

class TestOutValidation:
    """Outs name real fielders and never exceed three."""

    def test_caught_by_must_be_field_position(self):
        res = PlayResolution(Runners(first="r1"), 0, "b", "groundout")
        res.put_out("r1", OutReason.FORCE_OUT, caught_by="SS")
        assert any("caught-by" in p for p in res.problems())

    def test_thrown_by_must_be_field_position(self):
        res = PlayResolution(Runners(first="r1"), 0, "b", "groundout")
        res.put_out("r1", OutReason.FORCE_OUT, caught_by="4", thrown_by="DP")
        assert any("thrown-by" in p for p in res.problems())

    def test_more_than_three_outs_rejected(self):
        res = PlayResolution(Runners(first="r1"), 2, "b", "groundout")
        res.put_out("r1", OutReason.FORCE_OUT, caught_by="4", thrown_by="6")
        assert any("at most 3" in p for p in res.problems())

    def test_outs_after_preview(self):
        res = PlayResolution(Runners(first="r1"), 1, "b", "flyout")
        assert res.outs_after == 2


# ---------------------------------------------------------------------------
# Step 5: Runner plays between pitches
# ---------------------------------------------------------------------------

class TestRunnerPlays:
    """Steals, wild pitches and pick-offs have no batter."""

    def test_steal(self):
        res = PlayResolution(Runners(first="r1"), 0, pitch_seq=2)
        res.move("r1", Base.SECOND, AdvanceReason.STEAL)
        play = res.finalize()
        assert play.code is None
        [event] = play.runner_events
        assert event.kind == RunnerEventType.STEAL
        assert event.pitch_seq == 2
        assert play.rbi == 0

    def test_unexplained_move_rejected(self):
        res = PlayResolution(Runners(first="r1"), 0)
        res.move("r1", Base.SECOND)
        with pytest.raises(ResolutionValidationError, match="needs a reason"):
            res.finalize()

    def test_wild_pitch_run(self):
        res = PlayResolution(Runners(third="r3"), 1, pitch_seq=4)
        res.move("r3", Base.HOME, AdvanceReason.WILD_PITCH)
        play = res.finalize()
        assert play.scored == ["r3"]
        assert play.runner_events[0].kind == RunnerEventType.WILD_PITCH

    def test_caught_stealing(self):
        res = PlayResolution(Runners(first="r1"), 2, pitch_seq=1)
        res.put_out("r1", OutReason.CAUGHT_STEALING, caught_by="6", thrown_by="2",
                    base=Base.SECOND)
        play = res.finalize()
        assert play.outs_after == 3
        assert play.runner_events[0].kind == RunnerEventType.CAUGHT_STEALING

    def test_runner_play_ignores_batter(self):
        res = PlayResolution(Runners(first="r1"), 0, batter_id="b")
        assert res.batter_id is None


# ---------------------------------------------------------------------------
# Step 6: RBI
# ---------------------------------------------------------------------------

class TestRbi:
    """Runs batted in."""

    def test_no_rbi_on_error(self):
        res = PlayResolution(Runners(third="r3"), 0, "b", "error")
        res.confirm_score("r3")
        play = res.finalize()
        assert play.scored == ["r3"]
        assert play.rbi == 0
        assert play.runner_events[0].reason == AdvanceReason.ERROR.value

    def test_bases_loaded_walk_rbi(self):
        play = PlayResolution(LOADED, 0, "b", "walk").finalize()
        assert play.scored == ["r3"]
        assert play.rbi == 1


# ---------------------------------------------------------------------------
# Step 7: Applying to the game state
# ---------------------------------------------------------------------------

class TestApplyResolution:
    """Writes go runners, runs, outs, close."""

    @pytest.fixture
    def engine(self):
        engine = GameStateEngine(MemoryStore())
        engine.init("g1")
        return engine

    def test_two_run_homer_updates_score(self, engine):
        engine.update_runners("g1", Runners(first="r1"))
        play = PlayResolution(Runners(first="r1"), 0, "b", "homerun").finalize()
        state = apply_resolution(engine, "g1", Half.TOP, play)
        assert state.scores.top_total == 2
        assert state.scores.innings[1].top == 2
        assert state.runners == Runners()

    def test_strikeout_for_third_out_closes_half(self, engine):
        engine.update_runners("g1", Runners(first="r1"))
        engine.update_counts("g1", balls=1, strikes=2, outs=2)
        play = PlayResolution(Runners(first="r1"), 2, "b", "strikeout_swinging").finalize()
        state = apply_resolution(engine, "g1", Half.TOP, play)
        assert (state.inning, state.half) == (1, Half.BOTTOM)
        assert state.count.outs == 0
        assert state.runners == Runners()
        assert state.scores.innings[1].left_on_base_top == 1

    def test_runner_play_keeps_count(self, engine):
        engine.update_runners("g1", Runners(first="r1"))
        engine.update_counts("g1", balls=2, strikes=1)
        res = PlayResolution(Runners(first="r1"), 0, pitch_seq=4)
        res.move("r1", Base.SECOND, AdvanceReason.STEAL)
        state = apply_resolution(engine, "g1", Half.TOP, res.finalize(),
                                 end_plate_appearance=False)
        assert (state.count.balls, state.count.strikes) == (2, 1)
        assert state.runners == Runners(second="r1")

    def test_abandoned_resolution_writes_nothing(self, engine):
        before = engine.get("g1")
        res = PlayResolution(Runners(), 0, "b", "double")
        res.cancel()
        assert engine.get("g1") == before
