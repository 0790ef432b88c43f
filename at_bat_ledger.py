# /// script
# requires-python = ">=3.12"
# dependencies = ["pydantic>=2.0"]
# ///
"""At-Bat Ledger: the append-only, ordered record of plate appearances.

Each game's plays are numbered 1..N in the order they are appended and
stored under a play id derived from the game id and index
(``g1_001``, ``g1_002``, ...).  Plays are never updated or deleted.

Before a play is written its out and runner accounting is checked:

- the outs added equal the outs recorded in runner events plus one if the
  batter was retired;
- every runner on base before the play, plus the batter, ends up exactly
  once on base, among the scored runners, or put out.

A play that fails either check, or an index sequence with a gap or a
duplicate, raises :class:`LedgerError` instead of being written.
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime
from typing import Callable, Union

from pydantic import ValidationError

from data.store import DocumentStore, StoreError
from data.subscriptions import Subscription, SubscriptionManager
from models import AtBat, AtBatInput, utcnow

logger = logging.getLogger(__name__)

AT_BATS = "at_bats"

PlayRecord = Union[AtBat, AtBatInput]


class LedgerError(Exception):
    """Raised when a play would break the ledger's ordering or accounting."""

    def __init__(self, message: str, game_id: str | None = None,
                 details: list[str] | None = None):
        self.game_id = game_id
        self.details = details or []
        super().__init__(message if not self.details else f"{message}: {'; '.join(self.details)}")


def collection_for(game_id: str) -> str:
    return f"{AT_BATS}/{game_id}"


def make_play_id(game_id: str, index: int) -> str:
    return f"{game_id}_{index:03d}"


# ---------------------------------------------------------------------------
# Play accounting
# ---------------------------------------------------------------------------

def batter_was_retired(play: PlayRecord) -> bool:
    """True when the batter neither reached, scored, nor was put out on a runner event."""
    if play.result is None:
        return False
    put_out = {e.runner_id for e in play.runner_events if e.is_out}
    return (
        play.batter_id not in play.situation_after.runners.player_ids()
        and play.batter_id not in play.scored_runners
        and play.batter_id not in put_out
    )


def outs_on_play(play: PlayRecord) -> int:
    return play.situation_after.outs - play.situation_before.outs


def accounting_problems(play: PlayRecord) -> list[str]:
    """Return a description of every accounting imbalance in *play*."""
    problems: list[str] = []
    put_out = [e.runner_id for e in play.runner_events if e.is_out]
    retired = batter_was_retired(play)

    expected_outs = len(put_out) + (1 if retired else 0)
    if outs_on_play(play) != expected_outs:
        problems.append(
            f"outs went {play.situation_before.outs} -> {play.situation_after.outs} "
            f"but {expected_outs} out(s) were recorded"
        )

    started = set(play.situation_before.runners.player_ids())
    if play.result is not None:
        started.add(play.batter_id)
    finished = (
        play.situation_after.runners.player_ids()
        + list(play.scored_runners)
        + put_out
        + ([play.batter_id] if retired else [])
    )
    twice = sorted(pid for pid, n in Counter(finished).items() if n > 1)
    if twice:
        problems.append(f"runners accounted for more than once: {twice}")
    missing = sorted(started - set(finished))
    if missing:
        problems.append(f"runners not accounted for: {missing}")
    unexpected = sorted(set(finished) - started)
    if unexpected:
        problems.append(f"runners who were not on base or batting: {unexpected}")
    return problems


def _check_sequence(game_id: str, plays: list[AtBat]) -> None:
    indices = [p.index for p in plays]
    if indices != list(range(1, len(plays) + 1)):
        raise LedgerError(f"Play index sequence for {game_id} is broken",
                          game_id, [f"indices: {indices}"])


# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------

class AtBatLedger:
    """Append-only play storage, one collection per game."""

    def __init__(self, store: DocumentStore,
                 subscriptions: SubscriptionManager | None = None,
                 clock: Callable[[], datetime] = utcnow) -> None:
        self._store = store
        self._subscriptions = subscriptions or SubscriptionManager(store)
        self._clock = clock

    def append(self, record: AtBatInput) -> AtBat:
        """Number *record* as the game's next play and persist it."""
        game_id = record.game_id
        problems = accounting_problems(record)
        if problems:
            raise LedgerError("Play accounting does not balance", game_id, problems)

        with self._store.lock(game_id):
            existing = self.list(game_id)
            index = len(existing) + 1
            play_id = make_play_id(game_id, index)
            at_bat = AtBat.model_validate({
                **record.model_dump(),
                "play_id": play_id,
                "index": index,
                "timestamp": self._clock(),
            })
            created = self._store.put_if_absent(
                collection_for(game_id), play_id, at_bat.model_dump(mode="json"),
            )
            if not created:
                raise LedgerError(f"Play {play_id} already exists", game_id)
        logger.debug("Appended play %s (%s)", play_id,
                     record.result.code.value if record.result else "runner play")
        return at_bat

    def list(self, game_id: str) -> list[AtBat]:
        """All plays for *game_id* ordered by index."""
        try:
            plays = [AtBat.model_validate(doc)
                     for doc in self._store.list(collection_for(game_id))]
        except ValidationError as exc:
            raise StoreError(f"Corrupt play record for {game_id}: {exc}",
                             collection_for(game_id)) from exc
        plays.sort(key=lambda p: p.index)
        _check_sequence(game_id, plays)
        return plays

    def count(self, game_id: str) -> int:
        return len(self.list(game_id))

    def subscribe(self, game_id: str,
                  observer: Callable[[list[AtBat]], None]) -> Subscription:
        return self._subscriptions.subscribe(
            collection_for(game_id), None, observer, lambda: self.list(game_id),
        )
