# /// script
# requires-python = ">=3.12"
# dependencies = ["pytest>=7.0"]
# ///
"""Tests for the result taxonomy.

Tests cover:
  1. Every batting result code resolves to exactly one catalog entry
  2. Legacy aliases resolve to their canonical codes
  3. Statistical flags for hits, outs, walks and sacrifices
  4. Pitch results and the count they produce
  5. Fielding position metadata
  6. Completeness checks reject a catalog with a missing entry
"""

import sys
from pathlib import Path

# Ensure project root is on the path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import pytest

from taxonomy import (
    BATTING_RESULT_ALIASES,
    BATTING_RESULTS,
    FIELD_POSITIONS,
    PITCH_RESULTS,
    PITCH_TYPE_LABELS,
    POSITIONS,
    AdvanceRule,
    BattingResultCode,
    PitchResultCode,
    PitchType,
    PositionKind,
    TaxonomyError,
    apply_pitch,
    batting_result,
    check_exhaustive,
    pitch_result,
    position,
    position_abbr,
)


# ---------------------------------------------------------------------------
# Step 1: Catalog completeness
# ---------------------------------------------------------------------------

class TestCatalogCompleteness:
    """Every enum member has a catalog entry."""

    def test_every_batting_code_has_entry(self):
        for code in BattingResultCode:
            assert BATTING_RESULTS[code].code == code

    def test_every_pitch_code_has_entry(self):
        for code in PitchResultCode:
            assert PITCH_RESULTS[code].code == code

    def test_every_pitch_type_has_label(self):
        assert set(PITCH_TYPE_LABELS) == set(PitchType)

    def test_field_positions_are_one_to_nine(self):
        assert FIELD_POSITIONS == ("1", "2", "3", "4", "5", "6", "7", "8", "9")
        for code in FIELD_POSITIONS:
            assert code in POSITIONS


# ---------------------------------------------------------------------------
# Step 2: Aliases
# ---------------------------------------------------------------------------

class TestAliases:
    """Codes written by older clients map to canonical codes."""

    @pytest.mark.parametrize("alias,code", [
        ("sac_bunt", BattingResultCode.SACRIFICE_BUNT),
        ("sac_fly", BattingResultCode.SACRIFICE_FLY),
        ("runninghomerun", BattingResultCode.RUNNING_HOMERUN),
        ("droppedthird", BattingResultCode.DROPPED_THIRD),
    ])
    def test_alias_resolves(self, alias, code):
        assert batting_result(alias).code == code

    def test_aliases_point_at_cataloged_codes(self):
        for code in BATTING_RESULT_ALIASES.values():
            assert code in BATTING_RESULTS

    def test_canonical_string_resolves(self):
        assert batting_result("single").code == BattingResultCode.SINGLE

    def test_unknown_code_raises(self):
        with pytest.raises(TaxonomyError, match="Unknown batting result"):
            batting_result("bloop")


# ---------------------------------------------------------------------------
# Step 3: Statistical flags
# ---------------------------------------------------------------------------

class TestBattingFlags:
    """Flags drive at-bat, hit and on-base counting."""

    def test_single(self):
        info = batting_result(BattingResultCode.SINGLE)
        assert info.is_ab and info.is_hit and info.is_on_base
        assert info.bases == 1
        assert info.advance == AdvanceRule.SINGLE_BASE
        assert not info.batter_out

    def test_home_runs_count_four_bases(self):
        for code in (BattingResultCode.HOMERUN, BattingResultCode.RUNNING_HOMERUN):
            info = batting_result(code)
            assert info.bases == 4
            assert info.advance == AdvanceRule.HOME_RUN
            assert not info.batter_out

    def test_walk_is_not_an_at_bat(self):
        info = batting_result(BattingResultCode.WALK)
        assert not info.is_ab
        assert info.is_four_ball
        assert info.advance == AdvanceRule.FORCE

    def test_hit_by_pitch_is_four_ball(self):
        info = batting_result(BattingResultCode.DEADBALL)
        assert info.is_four_ball and info.is_on_base and not info.is_ab

    def test_sacrifices_are_outs_without_at_bat(self):
        for code in (BattingResultCode.SACRIFICE_BUNT, BattingResultCode.SACRIFICE_FLY):
            info = batting_result(code)
            assert info.is_sacrifice and info.is_out and not info.is_ab
            assert info.batter_out

    def test_strikeouts(self):
        for code in (BattingResultCode.STRIKEOUT_SWINGING, BattingResultCode.STRIKEOUT_LOOKING):
            info = batting_result(code)
            assert info.is_strikeout and info.batter_out

    def test_dropped_third_strike_batter_reaches(self):
        info = batting_result(BattingResultCode.DROPPED_THIRD)
        assert info.is_strikeout
        assert info.batter_reaches
        assert not info.batter_out

    def test_error_is_at_bat_without_hit(self):
        info = batting_result(BattingResultCode.ERROR)
        assert info.is_ab and not info.is_hit and not info.is_on_base
        assert info.batter_reaches


# ---------------------------------------------------------------------------
# Step 4: Pitches and the count
# ---------------------------------------------------------------------------

class TestPitches:
    """Pitch results move the count."""

    def test_ball_adds_ball(self):
        assert apply_pitch(0, 0, PitchResultCode.BALL) == (1, 0)

    def test_called_and_swinging_strikes(self):
        assert apply_pitch(0, 0, "looking") == (0, 1)
        assert apply_pitch(0, 1, "swing") == (0, 2)

    def test_foul_adds_strike_before_two(self):
        assert apply_pitch(1, 1, PitchResultCode.FOUL) == (1, 2)

    def test_foul_with_two_strikes_keeps_count(self):
        assert apply_pitch(2, 2, PitchResultCode.FOUL) == (2, 2)

    def test_fourth_ball_and_third_strike_are_reported(self):
        assert apply_pitch(3, 0, PitchResultCode.BALL) == (4, 0)
        assert apply_pitch(0, 2, PitchResultCode.SWING) == (0, 3)

    def test_in_play_leaves_count(self):
        assert apply_pitch(2, 1, PitchResultCode.IN_PLAY) == (2, 1)

    def test_unknown_pitch_result_raises(self):
        with pytest.raises(TaxonomyError):
            pitch_result("beanball")


# ---------------------------------------------------------------------------
# Step 5: Positions
# ---------------------------------------------------------------------------

class TestPositions:
    """Position codes and abbreviations."""

    def test_pitcher(self):
        info = position("1")
        assert info.abbr == "P"
        assert info.kind == PositionKind.INFIELD

    def test_outfield(self):
        assert position("8").kind == PositionKind.OUTFIELD
        assert position_abbr("7") == "LF"

    def test_non_field_positions(self):
        for code in ("DP", "PH", "PR", "TR"):
            assert position(code).kind == PositionKind.NOT_ON_FIELD

    def test_unknown_abbr_is_empty(self):
        assert position_abbr(None) == ""
        assert position_abbr("XX") == ""

    def test_unknown_position_raises(self):
        with pytest.raises(TaxonomyError):
            position("10")


# ---------------------------------------------------------------------------
# Step 6: Completeness checks
# ---------------------------------------------------------------------------

class TestCheckExhaustive:
    """A catalog missing a member is reported at import."""

    def test_complete_catalog_passes(self):
        check_exhaustive(BATTING_RESULTS, BattingResultCode, "BATTING_RESULTS")

    def test_missing_entry_raises(self):
        partial = {k: v for k, v in PITCH_RESULTS.items() if k != PitchResultCode.FOUL}
        with pytest.raises(TaxonomyError, match="foul"):
            check_exhaustive(partial, PitchResultCode, "PITCH_RESULTS")
