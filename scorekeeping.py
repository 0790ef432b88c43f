# /// script
# requires-python = ">=3.12"
# dependencies = ["pydantic>=2.0"]
# ///
"""Live scorekeeping service.

:class:`Scorekeeper` turns operator intents (a pitch, a batting result, a
stolen base, a lineup change) into writes against the game ledgers, in the
order the ledgers require:

1. the play is resolved and validated in memory (nothing is written if the
   operator left an out or advancement unexplained);
2. the plate appearance is appended to the at-bat ledger;
3. the game state is updated: runners, runs, outs, then the half-inning
   close on the third out;
4. the batting order moves to the next slot and the matchup is refreshed.

All of this runs under the game's lock.  The at-bat ledger is the record of
truth: if step 3 or 4 fails the game state is rebuilt from the ledger and
the operator gets a :class:`ScoringError`.

Run as a script to inspect games in the configured store::

    python scorekeeping.py status g1
    python scorekeeping.py box-score g1
    python scorekeeping.py pitching g1
    python scorekeeping.py reconcile g1
"""

from __future__ import annotations

import json
import logging
import sys
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional

from at_bat_ledger import AtBatLedger
from data.store import DocumentStore, MemoryStore, StoreError
from data.subscriptions import ChangeBroadcast, SubscriptionManager
from fielding import assign_players, default_fielding_actions
from game_state import GameStateEngine, GameStateError, next_batting_slot
from game_stats import (
    BoxScore,
    PitchLocations,
    PitchingLine,
    StatsProjection,
    WinningPitcherSelections,
    build_box_score,
    pitch_locations,
    pitcher_stats,
    winning_pitcher,
    winning_side,
)
from models import (
    AtBat,
    AtBatInput,
    BatType,
    BattingResult,
    FieldingAction,
    GameState,
    GameStatus,
    Half,
    PitchRecord,
    PlayDetails,
    RunnerEvent,
    Side,
    Situation,
    ZONE_COLUMNS,
    ZONE_ROWS,
    batting_side,
    fielding_side,
    utcnow,
)
from participation import (
    LineupChange,
    LineupChangeKind,
    LineupDrafts,
    ParticipationError,
    ParticipationLedger,
)
from runner_resolution import (
    PlayResolution,
    ResolutionValidationError,
    ResolvedPlay,
    apply_resolution,
)
from taxonomy import PITCHER, PitchResultCode, PitchType, apply_pitch, pitch_result

logger = logging.getLogger(__name__)


class ScoringError(Exception):
    """A play could not be recorded; the operator should retry."""


class PitchOutcome(str, Enum):
    CONTINUE = "continue"
    WALK = "walk"
    STRIKEOUT = "strikeout"
    HIT_BY_PITCH = "hit_by_pitch"
    IN_PLAY = "in_play"


def zone_course(x: float, y: float) -> int:
    """Course 1-25 for a pitch at (*x*, *y*) percent of the zone, row by row."""
    col = min(int(x / (100 / ZONE_COLUMNS)), ZONE_COLUMNS - 1)
    row = min(int(y / (100 / ZONE_ROWS)), ZONE_ROWS - 1)
    return row * ZONE_COLUMNS + col + 1


def _ordinal(n: int) -> str:
    """Return ordinal string for an integer (1st, 2nd, 3rd, etc.)."""
    if 11 <= n % 100 <= 13:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
    return f"{n}{suffix}"


@dataclass
class PlateAppearance:
    """A plate appearance in progress: pitches and runner plays so far."""
    inning: int
    half: Half
    batter_id: str
    pitcher_id: Optional[str]
    batting_order: int
    situation_before: Situation
    pitches: list[PitchRecord] = field(default_factory=list)
    runner_events: list[RunnerEvent] = field(default_factory=list)
    scored: list[str] = field(default_factory=list)
    fielding: list[FieldingAction] = field(default_factory=list)


class Scorekeeper:
    """Operator-facing entry point for one scoring client.

    Args:
        store: Authoritative document store shared with viewers.
        draft_store: Client-local store for lineup drafts.
        broadcast: Cross-view change signal.
    """

    def __init__(self, store: DocumentStore, draft_store: DocumentStore | None = None,
                 broadcast: ChangeBroadcast | None = None, clock=utcnow) -> None:
        self.store = store
        self.subscriptions = SubscriptionManager(store)
        self.state = GameStateEngine(store, self.subscriptions, clock)
        self.ledger = AtBatLedger(store, self.subscriptions, clock)
        self.participation = ParticipationLedger(store, self.subscriptions)
        self.lineups = LineupDrafts(store, draft_store or MemoryStore(), self.participation)
        self.winning_pitchers = WinningPitcherSelections(store)
        self.broadcast = broadcast or ChangeBroadcast()
        self._pending: dict[str, PlateAppearance] = {}

    # -- game lifecycle ------------------------------------------------------

    def start_game(self, game_id: str) -> GameState:
        """Create the game, record the drafted starters and set it in progress."""
        with self.store.lock(game_id):
            self.state.init(game_id)
            if not self.participation.entries(game_id):
                self.lineups.commit(game_id, inning=1)
            self.state.set_status(game_id, GameStatus.IN_PROGRESS)
            state = self._refresh_matchup(game_id)
        logger.info("Game %s started", game_id)
        self.broadcast.signal(game_id)
        return state

    def finish_game(self, game_id: str) -> GameState:
        with self.store.lock(game_id):
            state = self.state.require(game_id)
            if self._pending.pop(game_id, None) is not None:
                logger.warning("Game %s finished with a plate appearance in progress", game_id)
            plays = self.ledger.list(game_id)
            final_inning = max((p.inning for p in plays), default=state.inning)
            self.participation.close_on_game_end(game_id, final_inning)
            state = self.state.set_status(game_id, GameStatus.FINISHED)
        logger.info("Game %s finished after %d inning(s)", game_id, final_inning)
        self.broadcast.signal(game_id)
        return state

    def current_batter(self, game_id: str) -> tuple[int, Optional[str]]:
        """``(slot, player_id)`` of the batter due up."""
        state = self.state.require(game_id)
        slot = state.due_up.slot(state.half)
        return slot, self.participation.player_at(game_id, batting_side(state.half), slot)

    def current_pitcher(self, game_id: str) -> Optional[str]:
        state = self.state.require(game_id)
        return self.participation.defense(game_id, fielding_side(state.half)).get(PITCHER)

    # -- pitches ---------------------------------------------------------------

    def record_pitch(self, game_id: str, result: PitchResultCode | str,
                     pitch_type: PitchType | str = PitchType.UNKNOWN,
                     x: float | None = None, y: float | None = None,
                     velocity: float | None = None) -> PitchOutcome:
        """Add a pitch to the plate appearance and move the count.

        Ball four and strike three are reported, not committed; the operator
        confirms them with :meth:`begin_play` / :meth:`confirm_play`.
        """
        info = pitch_result(result)
        with self.store.lock(game_id):
            state = self._in_progress(game_id)
            pa = self._plate_appearance(game_id, state)
            pa.pitches.append(PitchRecord(
                seq=len(pa.pitches) + 1,
                pitch_type=pitch_type,
                course=zone_course(x, y) if x is not None and y is not None else None,
                x=x,
                y=y,
                result=info.code,
                velocity=velocity,
            ))
            balls, strikes = apply_pitch(state.count.balls, state.count.strikes, info.code)
            if balls >= 4:
                outcome = PitchOutcome.WALK
            elif strikes >= 3:
                outcome = PitchOutcome.STRIKEOUT
            else:
                self.state.update_counts(game_id, balls=balls, strikes=strikes)
                outcome = {
                    PitchResultCode.IN_PLAY: PitchOutcome.IN_PLAY,
                    PitchResultCode.DEADBALL: PitchOutcome.HIT_BY_PITCH,
                }.get(info.code, PitchOutcome.CONTINUE)
        self.broadcast.signal(game_id)
        return outcome

    # -- batting plays -----------------------------------------------------------

    def begin_play(self, game_id: str, code) -> PlayResolution:
        """Start resolving a batting result; nothing is written until confirmed."""
        with self.store.lock(game_id):
            state = self._in_progress(game_id)
            pa = self._plate_appearance(game_id, state)
            return PlayResolution(state.runners, state.count.outs, pa.batter_id, code)

    def confirm_play(self, game_id: str, resolution: PlayResolution,
                     fielded_by: str | None = None, bat_type: BatType | None = None,
                     direction: str | None = None,
                     fielding: Iterable[FieldingAction] = (),
                     note: str | None = None) -> AtBat:
        """Record the plate appearance and apply it to the game state."""
        with self.store.lock(game_id):
            state = self._in_progress(game_id)
            pa = self._plate_appearance(game_id, state)
            self._check_current(state, resolution)
            if resolution.batter_id != pa.batter_id:
                raise ResolutionValidationError(
                    f"Play was started for {resolution.batter_id}, {pa.batter_id} is batting")
            resolved = resolution.finalize()

            defense = self.participation.defense(game_id, fielding_side(state.half))
            actions = assign_players(
                list(fielding) + default_fielding_actions(
                    resolved.code, fielded_by, resolved.batter_retired, resolved.runner_events),
                defense,
            )
            record = AtBatInput(
                game_id=game_id,
                inning=pa.inning,
                half=pa.half,
                batter_id=pa.batter_id,
                pitcher_id=pa.pitcher_id,
                batting_order=pa.batting_order,
                result=BattingResult(code=resolved.code, fielded_by=fielded_by,
                                     rbi=resolved.rbi),
                situation_before=pa.situation_before,
                situation_at_result=Situation(
                    outs=state.count.outs, runners=state.runners,
                    balls=state.count.balls, strikes=state.count.strikes,
                ),
                situation_after=Situation(outs=resolved.outs_after,
                                          runners=resolved.runners_after),
                scored_runners=pa.scored + resolved.scored,
                pitches=pa.pitches,
                runner_events=pa.runner_events + resolved.runner_events,
                play_details=PlayDetails(bat_type=bat_type, direction=direction,
                                         fielding=pa.fielding + actions),
                note=note,
            )
            at_bat = self._append(game_id, record)
            del self._pending[game_id]
            self._commit(game_id, state.half, resolved, end_plate_appearance=True,
                         batted_slot=pa.batting_order)
        self.broadcast.signal(game_id)
        return at_bat

    # -- runner plays between pitches ------------------------------------------

    def begin_runner_play(self, game_id: str) -> PlayResolution:
        """Start a steal, wild pitch, passed ball or pick-off during the plate appearance."""
        with self.store.lock(game_id):
            state = self._in_progress(game_id)
            pa = self._plate_appearance(game_id, state)
            return PlayResolution(state.runners, state.count.outs,
                                  pitch_seq=len(pa.pitches) or None)

    def confirm_runner_play(self, game_id: str, resolution: PlayResolution) -> Optional[AtBat]:
        """Apply a runner play.

        A third out ends the half-inning: the interrupted plate appearance is
        recorded without a result and the batter leads off next time.
        """
        with self.store.lock(game_id):
            state = self._in_progress(game_id)
            pa = self._plate_appearance(game_id, state)
            self._check_current(state, resolution)
            if resolution.code is not None:
                raise ResolutionValidationError("Use confirm_play for a batting result")
            resolved = resolution.finalize()

            defense = self.participation.defense(game_id, fielding_side(state.half))
            runner_events = pa.runner_events + resolved.runner_events
            scored = pa.scored + resolved.scored
            fielding = pa.fielding + assign_players(
                default_fielding_actions(None, None, False, resolved.runner_events), defense)

            at_bat = None
            if resolved.outs_after >= 3:
                at_bat = self._append(game_id, AtBatInput(
                    game_id=game_id,
                    inning=pa.inning,
                    half=pa.half,
                    batter_id=pa.batter_id,
                    pitcher_id=pa.pitcher_id,
                    batting_order=pa.batting_order,
                    situation_before=pa.situation_before,
                    situation_after=Situation(outs=resolved.outs_after,
                                              runners=resolved.runners_after),
                    scored_runners=scored,
                    pitches=pa.pitches,
                    runner_events=runner_events,
                    play_details=PlayDetails(fielding=fielding),
                ))
                del self._pending[game_id]
            self._commit(game_id, state.half, resolved,
                         end_plate_appearance=at_bat is not None)
            if at_bat is None:
                pa.runner_events, pa.scored, pa.fielding = runner_events, scored, fielding
        self.broadcast.signal(game_id)
        return at_bat

    # -- lineup changes ----------------------------------------------------------

    def commit_lineup(self, game_id: str) -> list[LineupChange]:
        """Commit the lineup draft mid-game.

        A pinch runner takes the replaced player's base, and a pinch hitter
        takes over the plate appearance in progress.
        """
        with self.store.lock(game_id):
            state = self.state.require(game_id)
            changes = self.lineups.commit(game_id, inning=state.inning)
            runners = state.runners
            pa = self._pending.get(game_id)
            for change in changes:
                if change.kind != LineupChangeKind.SUBSTITUTION or not change.out_player_id:
                    continue
                if runners.base_of(change.out_player_id):
                    runners = runners.replace_runner(change.out_player_id, change.in_player_id)
                if pa is not None:
                    pa.situation_before = pa.situation_before.model_copy(update={
                        "runners": pa.situation_before.runners.replace_runner(
                            change.out_player_id, change.in_player_id),
                    })
                    if pa.batter_id == change.out_player_id:
                        pa.batter_id = change.in_player_id
            if pa is not None:
                pa.pitcher_id = self.participation.defense(
                    game_id, fielding_side(state.half)).get(PITCHER)
            if runners != state.runners:
                self.state.update_runners(game_id, runners)
            self._refresh_matchup(game_id)
        self.broadcast.signal(game_id)
        return changes

    # -- decisions and statistics ------------------------------------------------

    def choose_winning_pitcher(self, game_id: str, pitcher_id: str) -> None:
        """Record the operator's pick when the rules leave the decision open."""
        plays = self.ledger.list(game_id)
        side = winning_side(plays)
        decision = winning_pitcher(plays)
        if side is None or decision.rule != "undecided":
            raise ValueError(f"Game {game_id} does not need a manual winning pitcher")
        if pitcher_id not in decision.candidates:
            raise ValueError(f"{pitcher_id} is not a reliever for the winning side; "
                             f"choose from {decision.candidates}")
        self.winning_pitchers.set(game_id, side, pitcher_id)
        self.broadcast.signal(game_id)

    def box_score(self, game_id: str) -> BoxScore:
        state = self.state.require(game_id)
        selected = {side: pick for side in Side
                    if (pick := self.winning_pitchers.get(game_id, side))}
        return build_box_score(
            self.ledger.list(game_id),
            self.participation.entries(game_id),
            finished=state.status == GameStatus.FINISHED,
            selected_winners=selected,
        )

    def pitching(self, game_id: str) -> dict[str, PitchingLine]:
        return pitcher_stats(self.ledger.list(game_id))

    def pitch_locations(self, game_id: str, pitcher_id: str) -> PitchLocations:
        return pitch_locations(self.ledger.list(game_id), pitcher_id)

    def project(self, game_id: str) -> StatsProjection:
        """Live statistics that follow the ledgers until closed."""
        def finished() -> bool:
            state = self.state.get(game_id)
            return state is not None and state.status == GameStatus.FINISHED
        return StatsProjection(game_id, self.ledger, self.participation,
                               finished, self.winning_pitchers)

    def reconcile(self, game_id: str) -> GameState:
        """Rebuild the game state from the at-bat ledger."""
        with self.store.lock(game_id):
            if self._pending.pop(game_id, None) is not None:
                logger.warning("Discarding plate appearance in progress for %s", game_id)
            self.state.rebuild_from_ledger(game_id, self.ledger.list(game_id))
            state = self._refresh_matchup(game_id)
        self.broadcast.signal(game_id)
        return state

    # -- helpers -----------------------------------------------------------------

    def _in_progress(self, game_id: str) -> GameState:
        state = self.state.require(game_id)
        if state.status != GameStatus.IN_PROGRESS:
            raise GameStateError(f"Game {game_id} is {state.status.value}", game_id)
        return state

    def _plate_appearance(self, game_id: str, state: GameState) -> PlateAppearance:
        pa = self._pending.get(game_id)
        if pa is not None and (pa.inning, pa.half) == (state.inning, state.half):
            return pa
        slot = state.due_up.slot(state.half)
        batter = self.participation.player_at(game_id, batting_side(state.half), slot)
        if batter is None:
            raise ParticipationError(
                f"No {batting_side(state.half).value} batter in slot {slot}", game_id)
        pa = PlateAppearance(
            inning=state.inning,
            half=state.half,
            batter_id=batter,
            pitcher_id=self.participation.defense(game_id, fielding_side(state.half)).get(PITCHER),
            batting_order=slot,
            situation_before=Situation(
                outs=state.count.outs, runners=state.runners,
                balls=state.count.balls, strikes=state.count.strikes,
            ),
        )
        self._pending[game_id] = pa
        return pa

    @staticmethod
    def _check_current(state: GameState, resolution: PlayResolution) -> None:
        if (resolution.runners_before != state.runners
                or resolution.outs_before != state.count.outs):
            raise ResolutionValidationError("The game state changed since the play was started")

    def _append(self, game_id: str, record: AtBatInput) -> AtBat:
        try:
            return self.ledger.append(record)
        except StoreError as exc:
            logger.error("Failed to record play for %s: %s", game_id, exc)
            raise ScoringError("Failed to record the play") from exc

    def _commit(self, game_id: str, half: Half, resolved: ResolvedPlay,
                end_plate_appearance: bool, batted_slot: int | None = None) -> None:
        try:
            apply_resolution(self.state, game_id, half, resolved, end_plate_appearance)
            if batted_slot is not None:
                self.state.set_due_up(game_id, half, next_batting_slot(batted_slot))
            self._refresh_matchup(game_id)
        except StoreError as exc:
            logger.error("Failed to update game state for %s: %s", game_id, exc)
            try:
                self.state.rebuild_from_ledger(game_id, self.ledger.list(game_id))
            except StoreError as rebuild_exc:
                logger.error("Rebuild of %s from the play log failed: %s", game_id, rebuild_exc)
            raise ScoringError("Failed to update the game state") from exc

    def _refresh_matchup(self, game_id: str) -> GameState:
        state = self.state.require(game_id)
        slot = state.due_up.slot(state.half)
        batter = self.participation.player_at(game_id, batting_side(state.half), slot)
        pitcher = self.participation.defense(game_id, fielding_side(state.half)).get(PITCHER)
        if (batter, pitcher) == (state.matchup.batter_id, state.matchup.pitcher_id):
            return state
        return self.state.update_matchup(game_id, batter_id=batter, pitcher_id=pitcher)


# ---------------------------------------------------------------------------
# Command line
# ---------------------------------------------------------------------------

def describe_state(state: GameState) -> str:
    runners = ", ".join(f"{base.value}B {pid}" for base, pid in state.runners.occupied().items())
    return (
        f"{state.game_id} [{state.status.value}] {state.half.value.capitalize()} "
        f"{_ordinal(state.inning)} | {state.count.outs} out | "
        f"{state.count.balls}-{state.count.strikes} | "
        f"runners: {runners or 'none'} | "
        f"away {state.scores.top_total} - home {state.scores.bottom_total}"
    )


def main(argv: list[str] | None = None) -> int:
    import argparse

    import config
    from game_stats import format_box_score

    parser = argparse.ArgumentParser(description="Inspect softball games in the scoring store.")
    parser.add_argument("--data-dir", default=None,
                        help=f"Store directory (default ${config.DATA_DIR_ENV} or data/games)")
    parser.add_argument("--json", action="store_true", help="Print JSON instead of text")
    parser.add_argument("command", choices=["status", "box-score", "pitching", "reconcile"])
    parser.add_argument("game_id")
    args = parser.parse_args(argv)

    config.configure_logging()
    keeper = Scorekeeper(config.open_store(args.data_dir), config.open_draft_store())

    try:
        if args.command == "status":
            state = keeper.state.require(args.game_id)
            print(state.model_dump_json(indent=2) if args.json else describe_state(state))
        elif args.command == "box-score":
            box = keeper.box_score(args.game_id)
            if args.json:
                from dataclasses import asdict
                print(json.dumps(asdict(box), indent=2, default=str))
            else:
                print(format_box_score(box, title=f"BOX SCORE: {args.game_id}"))
        elif args.command == "pitching":
            lines = keeper.pitching(args.game_id)
            print(json.dumps([p.to_dict() for p in lines.values()], indent=2, default=str))
        else:
            print(describe_state(keeper.reconcile(args.game_id)))
    except (GameStateError, StoreError) as exc:
        logger.error("%s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
