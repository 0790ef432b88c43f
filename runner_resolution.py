# /// script
# requires-python = ">=3.12"
# dependencies = ["pydantic>=2.0"]
# ///
"""Runner Resolution Engine.

Turns a batting result (or a between-pitch runner play) into the post-play
base, out and run state:

1. :func:`default_movement` applies the standard advancement for the
   batting result (a single moves everyone up one base, a walk forces
   runners only when the bases behind them are occupied, and so on).
2. :class:`PlayResolution` lets the operator correct that default by
   moving runners base-to-base or home, putting runners out and
   confirming which score candidates actually scored.
3. :meth:`PlayResolution.reconcile` diffs where each runner started
   against where the runner finished: gone and scored is a run, gone otherwise is
   an out, a different base is an advancement.
4. :meth:`PlayResolution.finalize` refuses to produce a result until every
   out and advancement carries a reason and every out names the fielder
   who caught the ball.
5. :func:`apply_resolution` writes the result to the Game State Engine in
   a fixed order: runners, runs, outs, then the half-inning close when
   the third out was recorded.

Nothing touches the game state before :func:`apply_resolution`, so
abandoning a resolution leaves the game exactly as it was.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Callable, Optional

from game_state import OUTS_PER_HALF, GameStateEngine
from models import (
    BASES,
    AdvanceReason,
    Base,
    GameState,
    Half,
    OutDetail,
    OutReason,
    RunnerEvent,
    RunnerEventType,
    Runners,
)
from taxonomy import (
    FIELD_POSITIONS,
    AdvanceRule,
    BattingResultCode,
    BattingResultInfo,
    batting_result,
    check_exhaustive,
)

logger = logging.getLogger(__name__)


class ResolutionValidationError(Exception):
    """Raised when a play cannot be finalized as entered."""

    def __init__(self, message: str, details: list[str] | None = None):
        self.details = details or []
        super().__init__(message if not self.details else f"{message}: {'; '.join(self.details)}")


# ---------------------------------------------------------------------------
# Default movement per batting result
# ---------------------------------------------------------------------------

@dataclass
class DefaultMovement:
    """Occupancy after the standard advancement for a batting result.

    ``scored`` runs need no confirmation (home runs, a run forced in);
    ``score_candidates`` left the bases and must be confirmed as scored or
    put out by the operator.
    """
    runners: Runners
    scored: list[str] = field(default_factory=list)
    score_candidates: list[str] = field(default_factory=list)
    batter_base: Optional[Base] = None


def _advance_all(runners: Runners, bases: int) -> tuple[dict[Base, str], list[str]]:
    moved: dict[Base, str] = {}
    off_the_bases: list[str] = []
    # lead runner first
    for base in reversed(BASES):
        pid = runners.get(base)
        if not pid:
            continue
        target = int(base.value) + bases
        if target > 3:
            off_the_bases.append(pid)
        else:
            moved[Base(str(target))] = pid
    return moved, off_the_bases


def _with_batter(bases: dict[Base, str], batter_id: Optional[str], base: Base) -> Runners:
    if batter_id:
        bases = {**bases, base: batter_id}
    return Runners.from_bases(bases)


def _single_base(runners: Runners, batter_id: Optional[str]) -> DefaultMovement:
    moved, candidates = _advance_all(runners, 1)
    return DefaultMovement(_with_batter(moved, batter_id, Base.FIRST),
                           score_candidates=candidates, batter_base=Base.FIRST)


def _double(runners: Runners, batter_id: Optional[str]) -> DefaultMovement:
    moved, candidates = _advance_all(runners, 2)
    return DefaultMovement(_with_batter(moved, batter_id, Base.SECOND),
                           score_candidates=candidates, batter_base=Base.SECOND)


def _triple(runners: Runners, batter_id: Optional[str]) -> DefaultMovement:
    _, candidates = _advance_all(runners, 3)
    return DefaultMovement(_with_batter({}, batter_id, Base.THIRD),
                           score_candidates=candidates, batter_base=Base.THIRD)


def _home_run(runners: Runners, batter_id: Optional[str]) -> DefaultMovement:
    _, scored = _advance_all(runners, 4)
    if batter_id:
        scored.append(batter_id)
    return DefaultMovement(Runners(), scored=scored)


def _sacrifice_bunt(runners: Runners, batter_id: Optional[str]) -> DefaultMovement:
    moved, candidates = _advance_all(runners, 1)
    return DefaultMovement(Runners.from_bases(moved), score_candidates=candidates)


def _sacrifice_fly(runners: Runners, batter_id: Optional[str]) -> DefaultMovement:
    bases = runners.occupied()
    candidates = [bases.pop(Base.THIRD)] if Base.THIRD in bases else []
    return DefaultMovement(Runners.from_bases(bases), score_candidates=candidates)


def _no_advance(runners: Runners, batter_id: Optional[str]) -> DefaultMovement:
    return DefaultMovement(runners)


def _force(runners: Runners, batter_id: Optional[str]) -> DefaultMovement:
    """Batter to first; a runner moves only if every base behind it is occupied."""
    bases = runners.occupied()
    scored: list[str] = []
    if Base.FIRST in bases:
        if Base.SECOND in bases:
            if Base.THIRD in bases:
                scored.append(bases.pop(Base.THIRD))
            bases[Base.THIRD] = bases.pop(Base.SECOND)
        bases[Base.SECOND] = bases.pop(Base.FIRST)
    return DefaultMovement(_with_batter(bases, batter_id, Base.FIRST),
                           scored=scored, batter_base=Base.FIRST)


ADVANCE_RULES: dict[AdvanceRule, Callable[[Runners, Optional[str]], DefaultMovement]] = {
    AdvanceRule.SINGLE_BASE: _single_base,
    AdvanceRule.DOUBLE: _double,
    AdvanceRule.TRIPLE: _triple,
    AdvanceRule.HOME_RUN: _home_run,
    AdvanceRule.SACRIFICE_BUNT: _sacrifice_bunt,
    AdvanceRule.SACRIFICE_FLY: _sacrifice_fly,
    AdvanceRule.NO_ADVANCE: _no_advance,
    AdvanceRule.FORCE: _force,
}

ADVANCE_EVENT_KINDS: dict[AdvanceReason, RunnerEventType] = {
    AdvanceReason.STEAL: RunnerEventType.STEAL,
    AdvanceReason.WILD_PITCH: RunnerEventType.WILD_PITCH,
    AdvanceReason.PASSED_BALL: RunnerEventType.PASSED_BALL,
    AdvanceReason.ILLEGAL_PITCH: RunnerEventType.ILLEGAL_PITCH,
    AdvanceReason.HIT: RunnerEventType.ADVANCE,
    AdvanceReason.ERROR: RunnerEventType.ADVANCE,
}

OUT_EVENT_KINDS: dict[OutReason, RunnerEventType] = {
    OutReason.CAUGHT_STEALING: RunnerEventType.CAUGHT_STEALING,
    OutReason.PICK_OFF: RunnerEventType.PICK_OFF,
    OutReason.RUN_OUT: RunnerEventType.OUT,
    OutReason.FORCE_OUT: RunnerEventType.OUT,
    OutReason.TAG_OUT: RunnerEventType.OUT,
    OutReason.LEFT_BASE: RunnerEventType.OUT,
}

check_exhaustive(ADVANCE_RULES, AdvanceRule, "ADVANCE_RULES")
check_exhaustive(ADVANCE_EVENT_KINDS, AdvanceReason, "ADVANCE_EVENT_KINDS")
check_exhaustive(OUT_EVENT_KINDS, OutReason, "OUT_EVENT_KINDS")


def default_movement(code: BattingResultCode | str, runners: Runners,
                     batter_id: Optional[str]) -> DefaultMovement:
    """Standard occupancy after *code* with *runners* on base."""
    info = batting_result(code)
    return ADVANCE_RULES[info.advance](runners, batter_id)


# ---------------------------------------------------------------------------
# Operator corrections and reconciliation
# ---------------------------------------------------------------------------

@dataclass
class AdvanceNote:
    reason: AdvanceReason
    pitch_seq: Optional[int] = None


@dataclass
class OutNote:
    reason: OutReason
    caught_by: str
    thrown_by: Optional[str] = None
    base: Optional[Base] = None
    pitch_seq: Optional[int] = None


@dataclass
class Reconciliation:
    """Per-runner classification of a play."""
    outs: list[str] = field(default_factory=list)
    advancements: list[tuple[str, Optional[Base], Base]] = field(default_factory=list)
    runs: list[str] = field(default_factory=list)
    batter_retired: bool = False


@dataclass
class ResolvedPlay:
    """The validated outcome of a play, ready to be recorded and applied."""
    code: Optional[BattingResultCode]
    batter_id: Optional[str]
    runners_before: Runners
    runners_after: Runners
    outs_before: int
    outs_after: int
    scored: list[str]
    runner_events: list[RunnerEvent]
    batter_retired: bool

    @property
    def outs_added(self) -> int:
        return self.outs_after - self.outs_before

    @property
    def rbi(self) -> int:
        if self.code is None or self.code == BattingResultCode.ERROR:
            return 0
        return len(self.scored)


class PlayResolution:
    """Working copy of one play's runner movement.

    Args:
        runners_before: Occupancy when the play started.
        outs_before: Outs when the play started.
        batter_id: The batter; ignored for a runner play.
        code: Batting result, or None for a between-pitch runner play
            (steal, wild pitch, pick-off) where only manual moves apply.
        pitch_seq: Pitch during which a runner play happened.
    """

    def __init__(self, runners_before: Runners, outs_before: int,
                 batter_id: Optional[str] = None,
                 code: BattingResultCode | str | None = None,
                 pitch_seq: Optional[int] = None) -> None:
        self.info: Optional[BattingResultInfo] = batting_result(code) if code else None
        self.code = self.info.code if self.info else None
        self.batter_id = batter_id if self.info else None
        if self.info and not batter_id:
            raise ResolutionValidationError("A batting result needs a batter")
        self.runners_before = runners_before
        self.outs_before = outs_before
        self.pitch_seq = pitch_seq
        self.cancelled = False

        self._initial: dict[str, Optional[Base]] = {
            pid: base for base, pid in runners_before.occupied().items()
        }
        if self.batter_id:
            self._initial[self.batter_id] = None

        self._advance_notes: dict[str, AdvanceNote] = {}
        self._out_notes: dict[str, OutNote] = {}
        if self.info:
            movement = default_movement(self.code, runners_before, self.batter_id)
        else:
            movement = DefaultMovement(runners_before)
        self._bases: dict[Base, str] = movement.runners.occupied()
        self._scored: list[str] = list(movement.scored)
        self._candidates: list[str] = list(movement.score_candidates)
        self._default_batter_base = movement.batter_base

        default_reason = (AdvanceReason.ERROR if self.code == BattingResultCode.ERROR
                          else AdvanceReason.HIT)
        for pid in self._initial:
            if pid in self._scored or pid in self._candidates or self._base_of(pid) != self._initial[pid]:
                if pid == self.batter_id and pid not in self._scored and self._base_of(pid) is None:
                    continue
                self._advance_notes[pid] = AdvanceNote(default_reason, pitch_seq)

    # -- views ---------------------------------------------------------------

    @property
    def runners(self) -> Runners:
        """Current occupancy including operator corrections."""
        return Runners.from_bases(self._bases)

    @property
    def scored(self) -> list[str]:
        return list(self._scored)

    @property
    def score_candidates(self) -> list[str]:
        return list(self._candidates)

    @property
    def outs_after(self) -> int:
        rec = self.reconcile()
        return self.outs_before + len(rec.outs) + (1 if rec.batter_retired else 0)

    # -- operator corrections ----------------------------------------------

    def move(self, runner_id: str, to_base: Base,
             reason: AdvanceReason | None = None) -> None:
        """Put *runner_id* on *to_base*, or score the runner with ``Base.HOME``."""
        self._require_participant(runner_id)
        if runner_id in self._out_notes:
            raise ResolutionValidationError(f"{runner_id} has already been put out")
        if to_base != Base.HOME:
            occupant = self._bases.get(to_base)
            if occupant and occupant != runner_id:
                raise ResolutionValidationError(
                    f"Base {to_base.value} is occupied by {occupant}")
        self._lift(runner_id)
        if to_base == Base.HOME:
            self._scored.append(runner_id)
        else:
            self._bases[to_base] = runner_id
        if reason is not None:
            self._advance_notes[runner_id] = AdvanceNote(reason, self.pitch_seq)
        else:
            self._advance_notes.pop(runner_id, None)

    def move_base(self, from_base: Base, to_base: Base,
                  reason: AdvanceReason | None = None) -> None:
        runner_id = self._bases.get(from_base)
        if not runner_id:
            raise ResolutionValidationError(f"No runner on base {from_base.value}")
        self.move(runner_id, to_base, reason)

    def put_out(self, runner_id: str, reason: OutReason, caught_by: str,
                thrown_by: Optional[str] = None, base: Optional[Base] = None) -> None:
        """Retire *runner_id*; *caught_by* is the fielding position making the putout."""
        self._require_participant(runner_id)
        if base is None:
            base = self._base_of(runner_id) or (
                Base.HOME if runner_id in self._candidates or runner_id in self._scored
                else Base.FIRST)
        self._lift(runner_id)
        self._advance_notes.pop(runner_id, None)
        self._out_notes[runner_id] = OutNote(reason, caught_by, thrown_by, base, self.pitch_seq)

    def confirm_score(self, runner_id: str) -> None:
        if runner_id not in self._candidates:
            raise ResolutionValidationError(f"{runner_id} is not waiting to score")
        self._candidates.remove(runner_id)
        self._scored.append(runner_id)

    def confirm_all_scores(self) -> None:
        for runner_id in list(self._candidates):
            self.confirm_score(runner_id)

    def annotate_advance(self, runner_id: str, reason: AdvanceReason) -> None:
        self._require_participant(runner_id)
        self._advance_notes[runner_id] = AdvanceNote(reason, self.pitch_seq)

    def cancel(self) -> None:
        self.cancelled = True

    # -- reconciliation ----------------------------------------------------

    def reconcile(self) -> Reconciliation:
        rec = Reconciliation()
        for pid, start in self._initial.items():
            final = self._base_of(pid)
            if final is None:
                if pid in self._scored:
                    rec.runs.append(pid)
                elif (pid == self.batter_id and pid not in self._out_notes
                      and self.info is not None and self.info.batter_out):
                    rec.batter_retired = True
                else:
                    rec.outs.append(pid)
            elif final != start:
                rec.advancements.append((pid, start, final))
        return rec

    def problems(self) -> list[str]:
        problems: list[str] = []
        if self.cancelled:
            return ["resolution was cancelled"]
        rec = self.reconcile()
        for pid in rec.outs:
            note = self._out_notes.get(pid)
            if note is None:
                if pid in self._candidates:
                    problems.append(f"{pid}: confirm the run or record the out")
                else:
                    problems.append(f"{pid}: out needs a reason and the fielder who caught the ball")
                continue
            if note.caught_by not in FIELD_POSITIONS:
                problems.append(f"{pid}: caught-by must be a fielding position, got {note.caught_by!r}")
            if note.thrown_by is not None and note.thrown_by not in FIELD_POSITIONS:
                problems.append(f"{pid}: thrown-by must be a fielding position, got {note.thrown_by!r}")
        for pid, start, final in rec.advancements:
            if pid == self.batter_id and final == self._default_batter_base:
                continue
            if pid not in self._advance_notes:
                problems.append(f"{pid}: advance {start.value if start else 'batter'}"
                                f" -> {final.value} needs a reason")
        for pid in rec.runs:
            if pid not in self._advance_notes and pid != self.batter_id:
                problems.append(f"{pid}: run needs a reason")
        outs = self.outs_before + len(rec.outs) + (1 if rec.batter_retired else 0)
        if outs > OUTS_PER_HALF:
            problems.append(f"play records {outs} outs; at most {OUTS_PER_HALF} allowed")
        return problems

    def finalize(self) -> ResolvedPlay:
        problems = self.problems()
        if problems:
            raise ResolutionValidationError("Play cannot be finalized", problems)
        rec = self.reconcile()
        events: list[RunnerEvent] = []
        for pid in rec.outs:
            note = self._out_notes[pid]
            events.append(RunnerEvent(
                event_id=_event_id(),
                pitch_seq=note.pitch_seq,
                kind=OUT_EVENT_KINDS[note.reason],
                runner_id=pid,
                from_base=self._initial[pid],
                is_out=True,
                reason=note.reason.value,
                out_detail=OutDetail(base=note.base, thrown_by=note.thrown_by,
                                     caught_by=note.caught_by),
            ))
        for pid, start, final in rec.advancements:
            if pid == self.batter_id and final == self._default_batter_base:
                continue
            events.append(self._advance_event(pid, start, final))
        for pid in rec.runs:
            if pid == self.batter_id:
                continue
            events.append(self._advance_event(pid, self._initial[pid], Base.HOME))
        outs_after = self.outs_before + len(rec.outs) + (1 if rec.batter_retired else 0)
        return ResolvedPlay(
            code=self.code,
            batter_id=self.batter_id,
            runners_before=self.runners_before,
            runners_after=self.runners,
            outs_before=self.outs_before,
            outs_after=outs_after,
            scored=list(rec.runs),
            runner_events=events,
            batter_retired=rec.batter_retired,
        )

    # -- helpers -----------------------------------------------------------

    def _advance_event(self, pid: str, start: Optional[Base], final: Base) -> RunnerEvent:
        note = self._advance_notes[pid]
        return RunnerEvent(
            event_id=_event_id(),
            pitch_seq=note.pitch_seq,
            kind=ADVANCE_EVENT_KINDS[note.reason],
            runner_id=pid,
            from_base=start,
            to_base=final,
            reason=note.reason.value,
        )

    def _require_participant(self, runner_id: str) -> None:
        if runner_id not in self._initial:
            raise ResolutionValidationError(f"{runner_id} is not on base or batting")

    def _base_of(self, runner_id: str) -> Optional[Base]:
        for base, pid in self._bases.items():
            if pid == runner_id:
                return base
        return None

    def _lift(self, runner_id: str) -> None:
        base = self._base_of(runner_id)
        if base is not None:
            del self._bases[base]
        if runner_id in self._scored:
            self._scored.remove(runner_id)
        if runner_id in self._candidates:
            self._candidates.remove(runner_id)


def _event_id() -> str:
    return uuid.uuid4().hex[:12]


# ---------------------------------------------------------------------------
# Commit
# ---------------------------------------------------------------------------

def apply_resolution(engine: GameStateEngine, game_id: str, half: Half,
                     resolved: ResolvedPlay, end_plate_appearance: bool = True) -> GameState:
    """Write *resolved* to the game state: runners, runs, outs, then close.

    Balls and strikes are reset only when the plate appearance ended.
    """
    state = engine.update_runners(game_id, resolved.runners_after)
    if resolved.scored:
        state = engine.add_runs(game_id, half, len(resolved.scored))
    if end_plate_appearance:
        state = engine.update_counts(game_id, balls=0, strikes=0, outs=resolved.outs_after)
    else:
        state = engine.update_counts(game_id, outs=resolved.outs_after)
    if resolved.outs_after >= OUTS_PER_HALF:
        state = engine.close_half_inning(game_id)
    return state
