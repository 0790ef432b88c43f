# /// script
# requires-python = ">=3.12"
# dependencies = []
# ///
"""Result taxonomy for softball scorekeeping.

Static catalogs that map every batting-result code and pitch-result code to
its statistical effect, plus the pitch-type and fielding-position metadata
used by the scoring tools.

Every code must resolve to exactly one catalog entry.  The catalogs are
checked for completeness against their enums when this module is imported,
so a missing entry fails loudly at startup instead of surfacing as a wrong
statistic later.

Usage::

    from taxonomy import BattingResultCode, batting_result

    info = batting_result(BattingResultCode.SINGLE)
    info.is_hit        # True
    batting_result("sac_fly").code   # legacy alias -> SACRIFICE_FLY
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Mapping


class TaxonomyError(Exception):
    """Raised when a code cannot be resolved or a catalog is incomplete."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class BattingResultCode(str, Enum):
    SINGLE = "single"
    DOUBLE = "double"
    TRIPLE = "triple"
    HOMERUN = "homerun"
    RUNNING_HOMERUN = "running_homerun"
    GROUNDOUT = "groundout"
    FLYOUT = "flyout"
    BUNT_OUT = "bunt_out"
    STRIKEOUT_SWINGING = "strikeout_swinging"
    STRIKEOUT_LOOKING = "strikeout_looking"
    DROPPED_THIRD = "dropped_third"
    WALK = "walk"
    DEADBALL = "deadball"  # hit by pitch
    SACRIFICE_BUNT = "sacrifice_bunt"
    SACRIFICE_FLY = "sacrifice_fly"
    INTERFERENCE = "interference"
    ERROR = "error"


class AdvanceRule(str, Enum):
    """Default runner movement applied for a batting result."""
    SINGLE_BASE = "single_base"
    DOUBLE = "double"
    TRIPLE = "triple"
    HOME_RUN = "home_run"
    SACRIFICE_BUNT = "sacrifice_bunt"
    SACRIFICE_FLY = "sacrifice_fly"
    NO_ADVANCE = "no_advance"
    FORCE = "force"


class PitchResultCode(str, Enum):
    BALL = "ball"
    LOOKING = "looking"
    SWING = "swing"
    FOUL = "foul"
    IN_PLAY = "in_play"
    DEADBALL = "deadball"


class PitchType(str, Enum):
    RISE = "rise"
    DROP = "drop"
    CURVE = "curve"
    CUT = "cut"
    CHANGEUP = "changeup"
    SLIDER = "slider"
    UNKNOWN = "unknown"


class PositionKind(str, Enum):
    INFIELD = "infield"
    OUTFIELD = "outfield"
    NOT_ON_FIELD = "not_on_field"


# ---------------------------------------------------------------------------
# Catalog entries
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BattingResultInfo:
    code: BattingResultCode
    label: str
    is_ab: bool
    is_hit: bool
    is_on_base: bool
    is_sacrifice: bool
    is_four_ball: bool
    is_out: bool
    advance: AdvanceRule
    bases: int = 0
    is_strikeout: bool = False
    batter_reaches: bool = False

    @property
    def batter_out(self) -> bool:
        """True when the batter is retired by the result itself."""
        return not self.batter_reaches and self.advance != AdvanceRule.HOME_RUN


@dataclass(frozen=True)
class PitchResultInfo:
    code: PitchResultCode
    label: str
    balls: int = 0
    strikes: int = 0
    counts_past_two_strikes: bool = True


@dataclass(frozen=True)
class PositionInfo:
    code: str
    name: str
    abbr: str
    kind: PositionKind


def _br(code, label, *, ab, hit=False, on_base=False, sac=False, four_ball=False,
        out=False, advance, bases=0, strikeout=False, reaches=False):
    return BattingResultInfo(
        code=code, label=label, is_ab=ab, is_hit=hit, is_on_base=on_base,
        is_sacrifice=sac, is_four_ball=four_ball, is_out=out, advance=advance,
        bases=bases, is_strikeout=strikeout, batter_reaches=reaches,
    )


_B = BattingResultCode
_A = AdvanceRule

BATTING_RESULTS: dict[BattingResultCode, BattingResultInfo] = {
    _B.SINGLE: _br(_B.SINGLE, "Single", ab=True, hit=True, on_base=True,
                   advance=_A.SINGLE_BASE, bases=1, reaches=True),
    _B.DOUBLE: _br(_B.DOUBLE, "Double", ab=True, hit=True, on_base=True,
                   advance=_A.DOUBLE, bases=2, reaches=True),
    _B.TRIPLE: _br(_B.TRIPLE, "Triple", ab=True, hit=True, on_base=True,
                   advance=_A.TRIPLE, bases=3, reaches=True),
    _B.HOMERUN: _br(_B.HOMERUN, "Home run", ab=True, hit=True, on_base=True,
                    advance=_A.HOME_RUN, bases=4),
    _B.RUNNING_HOMERUN: _br(_B.RUNNING_HOMERUN, "Inside-the-park home run", ab=True,
                            hit=True, on_base=True, advance=_A.HOME_RUN, bases=4),
    _B.GROUNDOUT: _br(_B.GROUNDOUT, "Ground out", ab=True, out=True, advance=_A.NO_ADVANCE),
    _B.FLYOUT: _br(_B.FLYOUT, "Fly out", ab=True, out=True, advance=_A.NO_ADVANCE),
    _B.BUNT_OUT: _br(_B.BUNT_OUT, "Bunt out", ab=True, out=True, advance=_A.NO_ADVANCE),
    _B.STRIKEOUT_SWINGING: _br(_B.STRIKEOUT_SWINGING, "Strikeout swinging", ab=True,
                               out=True, advance=_A.NO_ADVANCE, strikeout=True),
    _B.STRIKEOUT_LOOKING: _br(_B.STRIKEOUT_LOOKING, "Strikeout looking", ab=True,
                              out=True, advance=_A.NO_ADVANCE, strikeout=True),
    # Batter reaches on the uncaught third strike; still a strikeout for the pitcher.
    _B.DROPPED_THIRD: _br(_B.DROPPED_THIRD, "Dropped third strike", ab=True, out=True,
                          advance=_A.SINGLE_BASE, strikeout=True, reaches=True),
    _B.WALK: _br(_B.WALK, "Walk", ab=False, on_base=True, four_ball=True,
                 advance=_A.FORCE, reaches=True),
    _B.DEADBALL: _br(_B.DEADBALL, "Hit by pitch", ab=False, on_base=True, four_ball=True,
                     advance=_A.FORCE, reaches=True),
    _B.SACRIFICE_BUNT: _br(_B.SACRIFICE_BUNT, "Sacrifice bunt", ab=False, sac=True,
                           out=True, advance=_A.SACRIFICE_BUNT),
    _B.SACRIFICE_FLY: _br(_B.SACRIFICE_FLY, "Sacrifice fly", ab=False, sac=True,
                          out=True, advance=_A.SACRIFICE_FLY),
    _B.INTERFERENCE: _br(_B.INTERFERENCE, "Interference", ab=False, on_base=True,
                         advance=_A.FORCE, reaches=True),
    _B.ERROR: _br(_B.ERROR, "Reached on error", ab=True, advance=_A.SINGLE_BASE,
                  reaches=True),
}

# Codes written by older scoring clients.
BATTING_RESULT_ALIASES: dict[str, BattingResultCode] = {
    "sac_bunt": _B.SACRIFICE_BUNT,
    "sac_fly": _B.SACRIFICE_FLY,
    "runninghomerun": _B.RUNNING_HOMERUN,
    "droppedthird": _B.DROPPED_THIRD,
}

_P = PitchResultCode

PITCH_RESULTS: dict[PitchResultCode, PitchResultInfo] = {
    _P.BALL: PitchResultInfo(_P.BALL, "Ball", balls=1),
    _P.LOOKING: PitchResultInfo(_P.LOOKING, "Called strike", strikes=1),
    _P.SWING: PitchResultInfo(_P.SWING, "Swinging strike", strikes=1),
    _P.FOUL: PitchResultInfo(_P.FOUL, "Foul", strikes=1, counts_past_two_strikes=False),
    _P.IN_PLAY: PitchResultInfo(_P.IN_PLAY, "In play"),
    _P.DEADBALL: PitchResultInfo(_P.DEADBALL, "Hit by pitch"),
}

PITCH_TYPE_LABELS: dict[PitchType, str] = {
    PitchType.RISE: "Rise",
    PitchType.DROP: "Drop",
    PitchType.CURVE: "Curve",
    PitchType.CUT: "Cut",
    PitchType.CHANGEUP: "Changeup",
    PitchType.SLIDER: "Slider",
    PitchType.UNKNOWN: "Unknown",
}

_K = PositionKind

POSITIONS: dict[str, PositionInfo] = {
    p.code: p for p in (
        PositionInfo("1", "Pitcher", "P", _K.INFIELD),
        PositionInfo("2", "Catcher", "C", _K.INFIELD),
        PositionInfo("3", "First base", "1B", _K.INFIELD),
        PositionInfo("4", "Second base", "2B", _K.INFIELD),
        PositionInfo("5", "Third base", "3B", _K.INFIELD),
        PositionInfo("6", "Shortstop", "SS", _K.INFIELD),
        PositionInfo("7", "Left field", "LF", _K.OUTFIELD),
        PositionInfo("8", "Center field", "CF", _K.OUTFIELD),
        PositionInfo("9", "Right field", "RF", _K.OUTFIELD),
        PositionInfo("DP", "Designated player", "DP", _K.NOT_ON_FIELD),
        PositionInfo("PH", "Pinch hitter", "PH", _K.NOT_ON_FIELD),
        PositionInfo("PR", "Pinch runner", "PR", _K.NOT_ON_FIELD),
        PositionInfo("TR", "Temporary runner", "TR", _K.NOT_ON_FIELD),
    )
}

PITCHER = "1"
CATCHER = "2"
FIRST_BASEMAN = "3"
FIELD_POSITIONS = tuple(str(n) for n in range(1, 10))


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

def batting_result(code: BattingResultCode | str) -> BattingResultInfo:
    """Resolve a batting-result code (canonical or legacy alias)."""
    if isinstance(code, BattingResultCode):
        return BATTING_RESULTS[code]
    if code in BATTING_RESULT_ALIASES:
        return BATTING_RESULTS[BATTING_RESULT_ALIASES[code]]
    try:
        return BATTING_RESULTS[BattingResultCode(code)]
    except ValueError:
        raise TaxonomyError(f"Unknown batting result code: {code!r}") from None


def pitch_result(code: PitchResultCode | str) -> PitchResultInfo:
    try:
        return PITCH_RESULTS[PitchResultCode(code)]
    except ValueError:
        raise TaxonomyError(f"Unknown pitch result code: {code!r}") from None


def position(code: str) -> PositionInfo:
    try:
        return POSITIONS[code]
    except KeyError:
        raise TaxonomyError(f"Unknown fielding position: {code!r}") from None


def position_abbr(code: str | None) -> str:
    """Short label for a position code, or an empty string when unknown."""
    if code is None or code not in POSITIONS:
        return ""
    return POSITIONS[code].abbr


def apply_pitch(balls: int, strikes: int, code: PitchResultCode | str) -> tuple[int, int]:
    """Return the count after a pitch.

    A foul with two strikes leaves the count unchanged.  The returned count
    may read 4 balls or 3 strikes; the caller decides what that ends.
    """
    info = pitch_result(code)
    if info.strikes and strikes >= 2 and not info.counts_past_two_strikes:
        return balls, strikes
    return balls + info.balls, strikes + info.strikes


# ---------------------------------------------------------------------------
# Completeness checks
# ---------------------------------------------------------------------------

def check_exhaustive(catalog: Mapping, members: Iterable, name: str) -> None:
    """Raise TaxonomyError if *catalog* lacks an entry for any member."""
    missing = [m.value if isinstance(m, Enum) else m for m in members if m not in catalog]
    if missing:
        raise TaxonomyError(f"{name} has no entry for: {', '.join(map(str, missing))}")


check_exhaustive(BATTING_RESULTS, BattingResultCode, "BATTING_RESULTS")
check_exhaustive(PITCH_RESULTS, PitchResultCode, "PITCH_RESULTS")
check_exhaustive(PITCH_TYPE_LABELS, PitchType, "PITCH_TYPE_LABELS")
check_exhaustive(POSITIONS, FIELD_POSITIONS, "POSITIONS")
