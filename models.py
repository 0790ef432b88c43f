# /// script
# requires-python = ">=3.12"
# dependencies = ["pydantic>=2.0"]
# ///
"""Data models for the softball scorekeeping engine."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from taxonomy import BattingResultCode, PitchResultCode, PitchType, batting_result


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class Half(str, Enum):
    TOP = "top"
    BOTTOM = "bottom"


class Side(str, Enum):
    HOME = "home"
    AWAY = "away"


class GameStatus(str, Enum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    FINISHED = "finished"


class Base(str, Enum):
    FIRST = "1"
    SECOND = "2"
    THIRD = "3"
    HOME = "home"


BASES = (Base.FIRST, Base.SECOND, Base.THIRD)


class RunnerEventType(str, Enum):
    STEAL = "steal"
    WILD_PITCH = "wild_pitch"
    PASSED_BALL = "passed_ball"
    ILLEGAL_PITCH = "illegal_pitch"
    PICK_OFF = "pick_off"
    CAUGHT_STEALING = "caught_stealing"
    ADVANCE = "advance"
    OUT = "out"


class AdvanceReason(str, Enum):
    STEAL = "steal"
    WILD_PITCH = "wild_pitch"
    PASSED_BALL = "passed_ball"
    ILLEGAL_PITCH = "illegal_pitch"
    HIT = "hit"
    ERROR = "error"


class OutReason(str, Enum):
    CAUGHT_STEALING = "caught_stealing"
    PICK_OFF = "pick_off"
    RUN_OUT = "run_out"
    FORCE_OUT = "force_out"
    TAG_OUT = "tag_out"
    LEFT_BASE = "left_base"


class FieldingActionKind(str, Enum):
    FIELDED = "fielded"
    ASSIST = "assist"
    PUTOUT = "putout"
    ERROR = "error"


class FieldingQuality(str, Enum):
    CLEAN = "clean"
    BOBBLED = "bobbled"
    MISSED = "missed"


class BatType(str, Enum):
    GROUND = "ground"
    FLY = "fly"
    LINER = "liner"
    BUNT = "bunt"


class ParticipationStatus(str, Enum):
    STARTER = "starter"
    PINCH_HITTER = "pinch_hitter"
    PINCH_RUNNER = "pinch_runner"
    REPLACEMENT = "replacement"
    REENTRY = "reentry"
    SUBSTITUTED = "substituted"
    POSITION_CHANGE = "position_change"
    FINISHED = "finished"


def other_half(half: Half) -> Half:
    return Half.BOTTOM if half == Half.TOP else Half.TOP


def batting_side(half: Half) -> Side:
    """The visiting team bats in the top half."""
    return Side.AWAY if half == Half.TOP else Side.HOME


def fielding_side(half: Half) -> Side:
    return Side.HOME if half == Half.TOP else Side.AWAY


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Game state
# ---------------------------------------------------------------------------

class Count(BaseModel):
    model_config = ConfigDict(frozen=True)

    balls: int = Field(default=0, ge=0, le=3)
    strikes: int = Field(default=0, ge=0, le=2)
    outs: int = Field(default=0, ge=0, le=3, description="3 only while a half-inning is closing")


class Runners(BaseModel):
    """Base occupancy keyed by base; values are player ids."""
    model_config = ConfigDict(frozen=True)

    first: Optional[str] = None
    second: Optional[str] = None
    third: Optional[str] = None

    @model_validator(mode="after")
    def _one_base_per_runner(self) -> Runners:
        ids = [pid for pid in (self.first, self.second, self.third) if pid]
        if len(ids) != len(set(ids)):
            raise ValueError(f"a runner cannot occupy two bases: {ids}")
        return self

    @classmethod
    def from_bases(cls, bases: dict[Base, Optional[str]]) -> Runners:
        return cls(
            first=bases.get(Base.FIRST),
            second=bases.get(Base.SECOND),
            third=bases.get(Base.THIRD),
        )

    def get(self, base: Base) -> Optional[str]:
        return {Base.FIRST: self.first, Base.SECOND: self.second, Base.THIRD: self.third}.get(base)

    def as_bases(self) -> dict[Base, Optional[str]]:
        return {base: self.get(base) for base in BASES}

    def occupied(self) -> dict[Base, str]:
        return {base: pid for base, pid in self.as_bases().items() if pid}

    def player_ids(self) -> list[str]:
        return list(self.occupied().values())

    def base_of(self, player_id: str) -> Optional[Base]:
        for base, pid in self.occupied().items():
            if pid == player_id:
                return base
        return None

    def replace_runner(self, old_id: str, new_id: str) -> Runners:
        bases = {b: (new_id if pid == old_id else pid) for b, pid in self.as_bases().items()}
        return Runners.from_bases(bases)

    @property
    def count(self) -> int:
        return len(self.occupied())


class InningScore(BaseModel):
    top: Optional[int] = Field(default=0, ge=0)
    bottom: Optional[int] = Field(default=None, ge=0)
    left_on_base_top: int = Field(default=0, ge=0)
    left_on_base_bottom: int = Field(default=0, ge=0)

    def runs(self, half: Half) -> int:
        value = self.top if half == Half.TOP else self.bottom
        return value or 0


class Scoreboard(BaseModel):
    top_total: int = Field(default=0, ge=0)
    bottom_total: int = Field(default=0, ge=0)
    innings: dict[int, InningScore] = Field(default_factory=lambda: {1: InningScore()})

    def total(self, half: Half) -> int:
        return self.top_total if half == Half.TOP else self.bottom_total


class Matchup(BaseModel):
    batter_id: Optional[str] = None
    pitcher_id: Optional[str] = None


class DueUp(BaseModel):
    """Next batting-order slot for each half (slot 10 never bats)."""
    top: int = Field(default=1, ge=1, le=9)
    bottom: int = Field(default=1, ge=1, le=9)

    def slot(self, half: Half) -> int:
        return self.top if half == Half.TOP else self.bottom


class GameState(BaseModel):
    """Authoritative live state of one game."""
    model_config = ConfigDict(validate_assignment=True)

    game_id: str = Field(min_length=1)
    status: GameStatus = GameStatus.SCHEDULED
    inning: int = Field(default=1, ge=1)
    half: Half = Half.TOP
    count: Count = Field(default_factory=Count)
    runners: Runners = Field(default_factory=Runners)
    matchup: Matchup = Field(default_factory=Matchup)
    scores: Scoreboard = Field(default_factory=Scoreboard)
    due_up: DueUp = Field(default_factory=DueUp)
    last_updated: datetime = Field(default_factory=utcnow)


# ---------------------------------------------------------------------------
# At-bat ledger records
# ---------------------------------------------------------------------------

class Situation(BaseModel):
    model_config = ConfigDict(frozen=True)

    outs: int = Field(default=0, ge=0, le=3)
    runners: Runners = Field(default_factory=Runners)
    balls: int = Field(default=0, ge=0, le=3)
    strikes: int = Field(default=0, ge=0, le=2)


class BattingResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    code: BattingResultCode
    fielded_by: Optional[str] = Field(default=None, description="Position code that fielded the ball")
    rbi: int = Field(default=0, ge=0)

    @field_validator("code", mode="before")
    @classmethod
    def _resolve_alias(cls, v):
        return batting_result(v).code


ZONE_COLUMNS = 5
ZONE_ROWS = 5


class PitchRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    seq: int = Field(ge=1)
    pitch_type: PitchType = PitchType.UNKNOWN
    course: Optional[int] = Field(default=None, ge=1, le=ZONE_ROWS * ZONE_COLUMNS,
                                  description="Zone course on a 5x5 grid, row by row")
    x: Optional[float] = Field(default=None, ge=0.0, le=100.0)
    y: Optional[float] = Field(default=None, ge=0.0, le=100.0)
    result: PitchResultCode
    velocity: Optional[float] = Field(default=None, ge=0.0)


class OutDetail(BaseModel):
    model_config = ConfigDict(frozen=True)

    base: Base
    thrown_by: Optional[str] = None
    caught_by: str = Field(min_length=1)


class RunnerEvent(BaseModel):
    """One runner movement.  ``from_base`` is None for the batter."""
    model_config = ConfigDict(frozen=True)

    event_id: str
    pitch_seq: Optional[int] = None
    kind: RunnerEventType
    runner_id: str
    from_base: Optional[Base] = None
    to_base: Optional[Base] = None
    is_out: bool = False
    reason: Optional[str] = None
    out_detail: Optional[OutDetail] = None

    @model_validator(mode="after")
    def _out_needs_detail(self) -> RunnerEvent:
        if self.is_out and self.out_detail is None:
            raise ValueError(f"out event for {self.runner_id} requires out_detail")
        if self.is_out and self.to_base is not None:
            raise ValueError(f"out event for {self.runner_id} cannot have a destination")
        return self


class FieldingAction(BaseModel):
    model_config = ConfigDict(frozen=True)

    player_id: Optional[str] = None
    position: str
    action: FieldingActionKind
    quality: FieldingQuality = FieldingQuality.CLEAN


class PlayDetails(BaseModel):
    model_config = ConfigDict(frozen=True)

    bat_type: Optional[BatType] = None
    direction: Optional[str] = None
    fielding: list[FieldingAction] = Field(default_factory=list)


class AtBatInput(BaseModel):
    """A plate appearance before the ledger assigns its index.

    ``result`` is None for an inning-ending runner play that interrupted
    the plate appearance.
    """
    model_config = ConfigDict(frozen=True)

    game_id: str = Field(min_length=1)
    inning: int = Field(ge=1)
    half: Half
    batter_id: str
    pitcher_id: Optional[str] = None
    batting_order: int = Field(ge=1, le=10)
    result: Optional[BattingResult] = None
    situation_before: Situation
    situation_at_result: Optional[Situation] = None
    situation_after: Situation
    scored_runners: list[str] = Field(default_factory=list)
    pitches: list[PitchRecord] = Field(default_factory=list)
    runner_events: list[RunnerEvent] = Field(default_factory=list)
    play_details: PlayDetails = Field(default_factory=PlayDetails)
    note: Optional[str] = None

    @model_validator(mode="after")
    def _scored_runners_left_the_bases(self) -> AtBatInput:
        if len(set(self.scored_runners)) != len(self.scored_runners):
            raise ValueError("scored_runners contains duplicates")
        still_on = set(self.scored_runners) & set(self.situation_after.runners.player_ids())
        if still_on:
            raise ValueError(f"scored runners still on base: {sorted(still_on)}")
        return self


class AtBat(AtBatInput):
    play_id: str
    index: int = Field(ge=1)
    timestamp: datetime = Field(default_factory=utcnow)


# ---------------------------------------------------------------------------
# Participation and lineups
# ---------------------------------------------------------------------------

class ParticipationEntry(BaseModel):
    """One stint of a player at a batting-order slot."""
    player_id: str = Field(min_length=1)
    side: Side
    batting_order: int = Field(ge=1, le=10)
    status: ParticipationStatus
    start_inning: int = Field(ge=1)
    end_inning: Optional[int] = Field(default=None, ge=1)
    position: Optional[str] = None
    position_at_end: Optional[str] = None
    entered_as: Optional[ParticipationStatus] = Field(
        default=None, description="Status when the stint opened; kept after it closes")

    @model_validator(mode="after")
    def _remember_entry_status(self) -> ParticipationEntry:
        if self.entered_as is None:
            self.entered_as = self.status
        return self

    @property
    def is_open(self) -> bool:
        return self.end_inning is None


class LineupEntry(BaseModel):
    batting_order: int = Field(ge=1, le=10)
    position: Optional[str] = None
    player_id: Optional[str] = None


def empty_lineup_entries() -> list[LineupEntry]:
    return [LineupEntry(batting_order=n) for n in range(1, 11)]


class Lineup(BaseModel):
    """Batting order -> position -> player for both sides."""
    game_id: str
    home: list[LineupEntry] = Field(default_factory=empty_lineup_entries)
    away: list[LineupEntry] = Field(default_factory=empty_lineup_entries)

    def entries(self, side: Side) -> list[LineupEntry]:
        return self.home if side == Side.HOME else self.away

    def entry(self, side: Side, batting_order: int) -> Optional[LineupEntry]:
        for e in self.entries(side):
            if e.batting_order == batting_order:
                return e
        return None
