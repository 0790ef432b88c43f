# /// script
# requires-python = ">=3.12"
# dependencies = ["pydantic>=2.0"]
# ///
"""Game State Engine.

The authoritative live record of a game: inning, half, count, runners,
matchup and scoreboard.  State is only changed through the transitions
defined here.  Each transition is a pure function over :class:`GameState`
so it can be replayed from the at-bat ledger; :class:`GameStateEngine`
wraps them with persistence, per-game locking and change notification.

Invariants kept by the transitions:
- outs returns to 0 and the bases clear exactly when a half-inning closes;
- the half alternates on every close and the inning only advances on a
  bottom -> top close.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Iterable, Optional

from pydantic import ValidationError

from data.store import DocumentStore, StoreError
from data.subscriptions import Subscription, SubscriptionManager
from models import (
    AtBat,
    Count,
    DueUp,
    GameState,
    GameStatus,
    Half,
    InningScore,
    Runners,
    utcnow,
)

logger = logging.getLogger(__name__)

GAME_STATES = "game_states"
OUTS_PER_HALF = 3


class GameStateError(Exception):
    """Raised for an unknown game or an illegal transition."""

    def __init__(self, message: str, game_id: str | None = None):
        self.game_id = game_id
        super().__init__(message)


# ---------------------------------------------------------------------------
# Pure transitions
# ---------------------------------------------------------------------------

def new_game_state(game_id: str, now: datetime | None = None) -> GameState:
    """Zeroed state: inning 1, top, 0-0-0, no runners, scheduled."""
    return GameState(game_id=game_id, last_updated=now or utcnow())


def _ensure_inning(state: GameState, inning: int, half: Half) -> None:
    innings = dict(state.scores.innings)
    cell = innings.get(inning)
    if cell is None:
        cell = InningScore(top=0, bottom=0 if half == Half.BOTTOM else None)
    elif half == Half.BOTTOM and cell.bottom is None:
        cell = cell.model_copy(update={"bottom": 0})
    innings[inning] = cell
    state.scores = state.scores.model_copy(update={"innings": innings})


def with_inning_and_half(state: GameState, inning: int, half: Half) -> GameState:
    if inning < 1:
        raise GameStateError(f"Inning must be >= 1, got {inning}", state.game_id)
    new = state.model_copy(deep=True)
    new.inning = inning
    new.half = half
    _ensure_inning(new, inning, half)
    return new


def with_counts(state: GameState, balls: int | None = None,
                strikes: int | None = None, outs: int | None = None) -> GameState:
    new = state.model_copy(deep=True)
    new.count = Count(
        balls=state.count.balls if balls is None else balls,
        strikes=state.count.strikes if strikes is None else strikes,
        outs=state.count.outs if outs is None else outs,
    )
    return new


def with_runners(state: GameState, runners: Runners) -> GameState:
    new = state.model_copy(deep=True)
    new.runners = runners
    return new


def with_runs(state: GameState, half: Half, runs: int) -> GameState:
    """Credit *runs* to *half* in the current inning and the running total."""
    if runs < 0:
        raise GameStateError(f"Runs must be >= 0, got {runs}", state.game_id)
    new = state.model_copy(deep=True)
    if runs == 0:
        return new
    _ensure_inning(new, state.inning, half)
    innings = dict(new.scores.innings)
    cell = innings[state.inning]
    if half == Half.TOP:
        innings[state.inning] = cell.model_copy(update={"top": (cell.top or 0) + runs})
        totals = {"top_total": new.scores.top_total + runs}
    else:
        innings[state.inning] = cell.model_copy(update={"bottom": (cell.bottom or 0) + runs})
        totals = {"bottom_total": new.scores.bottom_total + runs}
    new.scores = new.scores.model_copy(update={"innings": innings, **totals})
    return new


def closed_half_inning(state: GameState) -> GameState:
    """Close the half-inning if it has three outs; otherwise return *state*."""
    if state.count.outs < OUTS_PER_HALF:
        return state
    new = state.model_copy(deep=True)
    innings = dict(new.scores.innings)
    cell = innings.get(state.inning) or InningScore()
    lob_field = "left_on_base_top" if state.half == Half.TOP else "left_on_base_bottom"
    innings[state.inning] = cell.model_copy(update={lob_field: state.runners.count})
    new.scores = new.scores.model_copy(update={"innings": innings})
    new.runners = Runners()
    new.count = Count()
    if state.half == Half.TOP:
        new.half = Half.BOTTOM
    else:
        new.half = Half.TOP
        new.inning = state.inning + 1
    _ensure_inning(new, new.inning, new.half)
    return new


def replay_at_bats(state: GameState, at_bats: Iterable[AtBat]) -> GameState:
    """Recompute position, count, runners, score and due-up slots from ledger records.

    Status and matchup come from *state*; everything the ledger records is
    rebuilt from a zeroed game.
    """
    current = new_game_state(state.game_id, state.last_updated)
    current.status = state.status
    current.matchup = state.matchup
    current.due_up = state.due_up
    for ab in sorted(at_bats, key=lambda a: a.index):
        if (current.inning, current.half) != (ab.inning, ab.half):
            current = with_inning_and_half(current, ab.inning, ab.half)
        current = with_runners(current, ab.situation_after.runners)
        current = with_runs(current, ab.half, len(ab.scored_runners))
        current = with_counts(current, balls=0, strikes=0, outs=ab.situation_after.outs)
        if ab.result is not None and ab.batting_order <= 9:
            current.due_up = DueUp(**{**current.due_up.model_dump(),
                                      ab.half.value: next_batting_slot(ab.batting_order)})
        current = closed_half_inning(current)
    return current


def next_batting_slot(slot: int) -> int:
    """Slot after *slot* in a nine-batter order; slot 10 never bats."""
    return slot % 9 + 1


# ---------------------------------------------------------------------------
# Store-backed engine
# ---------------------------------------------------------------------------

class GameStateEngine:
    """Persists game state transitions, one document per game."""

    def __init__(self, store: DocumentStore,
                 subscriptions: SubscriptionManager | None = None,
                 clock: Callable[[], datetime] = utcnow) -> None:
        self._store = store
        self._subscriptions = subscriptions or SubscriptionManager(store)
        self._clock = clock

    def init(self, game_id: str) -> GameState:
        """Create the zeroed state, or return the existing one."""
        with self._store.lock(game_id):
            existing = self.get(game_id)
            if existing is not None:
                return existing
            state = new_game_state(game_id, self._clock())
            self._save(state)
        logger.info("Initialised game %s", game_id)
        return state

    def get(self, game_id: str) -> Optional[GameState]:
        doc = self._store.get(GAME_STATES, game_id)
        if doc is None:
            return None
        try:
            return GameState.model_validate(doc)
        except ValidationError as exc:
            raise StoreError(f"Corrupt game state for {game_id}: {exc}",
                             GAME_STATES, game_id) from exc

    def require(self, game_id: str) -> GameState:
        state = self.get(game_id)
        if state is None:
            raise GameStateError(f"Game {game_id} has not been initialised", game_id)
        return state

    def set_status(self, game_id: str, status: GameStatus) -> GameState:
        def change(state: GameState) -> GameState:
            new = state.model_copy(deep=True)
            new.status = status
            return new
        return self._mutate(game_id, change)

    def set_inning_and_half(self, game_id: str, inning: int, half: Half) -> GameState:
        return self._mutate(game_id, lambda s: with_inning_and_half(s, inning, half))

    def update_counts(self, game_id: str, *, balls: int | None = None,
                      strikes: int | None = None, outs: int | None = None) -> GameState:
        return self._mutate(game_id, lambda s: with_counts(s, balls, strikes, outs))

    def reset_counts(self, game_id: str) -> GameState:
        """Zero balls and strikes; outs are untouched."""
        return self._mutate(game_id, lambda s: with_counts(s, balls=0, strikes=0))

    def update_runners(self, game_id: str, runners: Runners) -> GameState:
        return self._mutate(game_id, lambda s: with_runners(s, runners))

    def add_runs(self, game_id: str, half: Half, runs: int) -> GameState:
        return self._mutate(game_id, lambda s: with_runs(s, half, runs))

    def update_matchup(self, game_id: str, *, batter_id: str | None = None,
                       pitcher_id: str | None = None) -> GameState:
        def change(state: GameState) -> GameState:
            new = state.model_copy(deep=True)
            new.matchup = state.matchup.model_copy(update={
                "batter_id": batter_id or state.matchup.batter_id,
                "pitcher_id": pitcher_id or state.matchup.pitcher_id,
            })
            return new
        return self._mutate(game_id, change)

    def set_due_up(self, game_id: str, half: Half, slot: int) -> GameState:
        def change(state: GameState) -> GameState:
            new = state.model_copy(deep=True)
            new.due_up = DueUp(**{**state.due_up.model_dump(), half.value: slot})
            return new
        return self._mutate(game_id, change)

    def close_half_inning(self, game_id: str) -> GameState:
        """Flip the half-inning when three outs are recorded; no-op otherwise."""
        with self._store.lock(game_id):
            state = self.require(game_id)
            if state.count.outs < OUTS_PER_HALF:
                logger.debug("Close requested for %s with %d outs; ignored",
                             game_id, state.count.outs)
                return state
            new = self._mutate(game_id, closed_half_inning)
        logger.info("Game %s: end of %s %d, LOB %d", game_id, state.half.value,
                    state.inning, state.runners.count)
        return new

    def rebuild_from_ledger(self, game_id: str, at_bats: Iterable[AtBat]) -> GameState:
        """Replace the stored state with one replayed from *at_bats*."""
        with self._store.lock(game_id):
            state = self.require(game_id)
            rebuilt = replay_at_bats(state, at_bats)
            rebuilt.last_updated = self._clock()
            self._save(rebuilt)
        logger.info("Rebuilt game %s from ledger: %s %d, %d out",
                    game_id, rebuilt.half.value, rebuilt.inning, rebuilt.count.outs)
        return rebuilt

    def subscribe(self, game_id: str,
                  observer: Callable[[Optional[GameState]], None]) -> Subscription:
        return self._subscriptions.subscribe(
            GAME_STATES, game_id, observer, lambda: self.get(game_id),
        )

    # -- helpers -----------------------------------------------------------

    def _mutate(self, game_id: str,
                change: Callable[[GameState], GameState]) -> GameState:
        with self._store.lock(game_id):
            state = self.require(game_id)
            new = change(state)
            if new is state:
                return state
            new.last_updated = self._clock()
            self._save(new)
            return new

    def _save(self, state: GameState) -> None:
        self._store.put(GAME_STATES, state.game_id, state.model_dump(mode="json"))
