# /// script
# requires-python = ">=3.12"
# dependencies = ["pydantic>=2.0"]
# ///
"""Participation ledger and lineup drafts.

The participation ledger records who occupied each batting-order slot and
when: one entry per stint, opened when a player enters the slot and closed
(``end_inning`` set) when the player leaves it.  Entries are never deleted.  For
each side and slot at most one entry is open at any time.

Lineup edits are two-phase.  The operator edits a local draft (kept in the
client's draft store, keyed by game id); :meth:`LineupDrafts.commit` diffs
the draft against the committed lineup and records each difference in the
participation ledger as a substitution or position change.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterable, Optional

from pydantic import ValidationError

from data.store import DocumentStore, StoreError
from data.subscriptions import Subscription, SubscriptionManager
from models import (
    Lineup,
    LineupEntry,
    ParticipationEntry,
    ParticipationStatus,
    Side,
)
from taxonomy import FIELD_POSITIONS, POSITIONS, position

logger = logging.getLogger(__name__)

PARTICIPATION = "participation"
LINEUPS = "lineups"
LINEUP_DRAFTS = "lineup_drafts"

BATTING_SLOTS = range(1, 10)
FLEX_SLOT = 10

_PINCH_STATUSES = {
    "PH": ParticipationStatus.PINCH_HITTER,
    "PR": ParticipationStatus.PINCH_RUNNER,
    "TR": ParticipationStatus.PINCH_RUNNER,
}


class ParticipationError(Exception):
    """Raised when a lineup change would break slot occupancy."""

    def __init__(self, message: str, game_id: str | None = None,
                 details: list[str] | None = None):
        self.game_id = game_id
        self.details = details or []
        super().__init__(message if not self.details else f"{message}: {'; '.join(self.details)}")


# ---------------------------------------------------------------------------
# Slot views
# ---------------------------------------------------------------------------

@dataclass
class SlotOccupant:
    """All stints one player had at one slot, shown as a single row."""
    player_id: str
    side: Side
    batting_order: int
    stints: list[ParticipationEntry] = field(default_factory=list)

    @property
    def role(self) -> ParticipationStatus:
        """Status the player first entered the slot with."""
        return self.stints[0].entered_as

    @property
    def is_starter(self) -> bool:
        return self.role == ParticipationStatus.STARTER

    @property
    def first_inning(self) -> int:
        return self.stints[0].start_inning

    @property
    def positions(self) -> list[str]:
        seen: list[str] = []
        for stint in self.stints:
            if stint.position and stint.position not in seen:
                seen.append(stint.position)
        return seen


def open_entry(entries: Iterable[ParticipationEntry], side: Side,
               batting_order: int) -> Optional[ParticipationEntry]:
    for entry in entries:
        if entry.side == side and entry.batting_order == batting_order and entry.is_open:
            return entry
    return None


def occupancy_problems(entries: Iterable[ParticipationEntry]) -> list[str]:
    """Slots with more than one open entry."""
    open_slots: dict[tuple[Side, int], list[str]] = {}
    for entry in entries:
        if entry.is_open:
            open_slots.setdefault((entry.side, entry.batting_order), []).append(entry.player_id)
    return [
        f"{side.value} slot {order} has {len(players)} open entries: {players}"
        for (side, order), players in sorted(open_slots.items(), key=lambda kv: (kv[0][0].value, kv[0][1]))
        if len(players) > 1
    ]


def stitch_slot(entries: Iterable[ParticipationEntry], side: Side,
                batting_order: int) -> list[SlotOccupant]:
    """Group a slot's stints by player; the starter first, then in order of entry."""
    occupants: dict[str, SlotOccupant] = {}
    for entry in entries:
        if entry.side != side or entry.batting_order != batting_order:
            continue
        occupant = occupants.get(entry.player_id)
        if occupant is None:
            occupant = occupants[entry.player_id] = SlotOccupant(
                entry.player_id, side, batting_order)
        occupant.stints.append(entry)
    for occupant in occupants.values():
        occupant.stints.sort(key=lambda e: e.start_inning)
    return sorted(occupants.values(), key=lambda o: (not o.is_starter, o.first_inning))


# ---------------------------------------------------------------------------
# Participation ledger
# ---------------------------------------------------------------------------

class ParticipationLedger:
    """Stints per game, stored as one document per game."""

    def __init__(self, store: DocumentStore,
                 subscriptions: SubscriptionManager | None = None) -> None:
        self._store = store
        self._subscriptions = subscriptions or SubscriptionManager(store)

    def entries(self, game_id: str) -> list[ParticipationEntry]:
        doc = self._store.get(PARTICIPATION, game_id)
        if doc is None:
            return []
        try:
            return [ParticipationEntry.model_validate(e) for e in doc.get("entries", [])]
        except ValidationError as exc:
            raise StoreError(f"Corrupt participation for {game_id}: {exc}",
                             PARTICIPATION, game_id) from exc

    def record_starters(self, game_id: str, lineup: Lineup) -> list[ParticipationEntry]:
        """Open a starter stint (inning 1) for every filled slot on both sides."""
        with self._store.lock(game_id):
            if self.entries(game_id):
                raise ParticipationError("Starters already recorded", game_id)
            problems = []
            for side in Side:
                filled = {e.batting_order for e in lineup.entries(side) if e.player_id}
                missing = [n for n in BATTING_SLOTS if n not in filled]
                if missing:
                    problems.append(f"{side.value} lineup has no player at slot(s) {missing}")
            if problems:
                raise ParticipationError("Lineup is incomplete", game_id, problems)
            entries = [
                ParticipationEntry(
                    player_id=e.player_id,
                    side=side,
                    batting_order=e.batting_order,
                    status=ParticipationStatus.STARTER,
                    start_inning=1,
                    position=e.position,
                )
                for side in Side
                for e in sorted(lineup.entries(side), key=lambda x: x.batting_order)
                if e.player_id
            ]
            self._save(game_id, entries)
        logger.info("Recorded %d starters for game %s", len(entries), game_id)
        return entries

    def record_substitution(self, game_id: str, side: Side, batting_order: int,
                            player_id: str, inning: int,
                            status: ParticipationStatus = ParticipationStatus.PINCH_HITTER,
                            position: Optional[str] = None) -> ParticipationEntry:
        """Close the slot's open stint and open one for *player_id*."""
        with self._store.lock(game_id):
            entries = self.entries(game_id)
            current = open_entry(entries, side, batting_order)
            if current is None:
                raise ParticipationError(
                    f"No player in {side.value} slot {batting_order} to replace", game_id)
            if current.player_id == player_id:
                raise ParticipationError(
                    f"{player_id} already occupies {side.value} slot {batting_order}", game_id)
            elsewhere = [e for e in entries if e.is_open and e.side == side
                         and e.player_id == player_id]
            if elsewhere:
                raise ParticipationError(
                    f"{player_id} is already in the lineup at slot {elsewhere[0].batting_order}",
                    game_id)
            closed = current.model_copy(update={
                "end_inning": inning,
                "status": ParticipationStatus.SUBSTITUTED,
                "position_at_end": current.position,
            })
            incoming = ParticipationEntry(
                player_id=player_id,
                side=side,
                batting_order=batting_order,
                status=status,
                start_inning=inning,
                position=position or current.position,
            )
            entries = [closed if e is current else e for e in entries] + [incoming]
            self._save(game_id, entries)
        logger.info("Game %s: %s slot %d %s -> %s (%s, inning %d)", game_id, side.value,
                    batting_order, current.player_id, player_id, status.value, inning)
        return incoming

    def record_player_change(self, game_id: str, side: Side, batting_order: int,
                             player_id: str, inning: int,
                             position: Optional[str] = None) -> ParticipationEntry:
        """Defensive replacement, or a re-entry when the player held this slot before."""
        with self._store.lock(game_id):
            previous = [e for e in self.entries(game_id) if e.side == side
                        and e.batting_order == batting_order and e.player_id == player_id]
            status = ParticipationStatus.REENTRY if previous else ParticipationStatus.REPLACEMENT
            return self.record_substitution(game_id, side, batting_order, player_id,
                                            inning, status, position)

    def record_position_change(self, game_id: str, side: Side, batting_order: int,
                               new_position: str, inning: int) -> ParticipationEntry:
        position(new_position)
        with self._store.lock(game_id):
            entries = self.entries(game_id)
            current = open_entry(entries, side, batting_order)
            if current is None:
                raise ParticipationError(
                    f"No player in {side.value} slot {batting_order}", game_id)
            closed = current.model_copy(update={
                "end_inning": inning,
                "status": ParticipationStatus.POSITION_CHANGE,
                "position_at_end": current.position,
            })
            reopened = current.model_copy(update={
                "start_inning": inning,
                "position": new_position,
            })
            entries = [closed if e is current else e for e in entries] + [reopened]
            self._save(game_id, entries)
        return reopened

    def close_on_game_end(self, game_id: str, final_inning: int) -> int:
        """Close every open stint at *final_inning*.  Returns how many were closed."""
        with self._store.lock(game_id):
            entries = self.entries(game_id)
            closed = 0
            updated = []
            for e in entries:
                if e.is_open:
                    e = e.model_copy(update={
                        "end_inning": max(final_inning, e.start_inning),
                        "status": ParticipationStatus.FINISHED,
                        "position_at_end": e.position,
                    })
                    closed += 1
                updated.append(e)
            self._save(game_id, updated)
        return closed

    def current_lineup(self, game_id: str, side: Side) -> list[ParticipationEntry]:
        """Open stints for *side* ordered by batting order."""
        return sorted(
            (e for e in self.entries(game_id) if e.side == side and e.is_open),
            key=lambda e: e.batting_order,
        )

    def player_at(self, game_id: str, side: Side, batting_order: int) -> Optional[str]:
        entry = open_entry(self.entries(game_id), side, batting_order)
        return entry.player_id if entry else None

    def defense(self, game_id: str, side: Side) -> dict[str, str]:
        """Fielding position code -> player id for the players now on the field."""
        return {
            e.position: e.player_id
            for e in self.current_lineup(game_id, side)
            if e.position in FIELD_POSITIONS
        }

    def occupants(self, game_id: str, side: Side) -> dict[int, list[SlotOccupant]]:
        entries = self.entries(game_id)
        return {n: stitch_slot(entries, side, n) for n in range(1, FLEX_SLOT + 1)}

    def subscribe(self, game_id: str,
                  observer: Callable[[list[ParticipationEntry]], None]) -> Subscription:
        return self._subscriptions.subscribe(
            PARTICIPATION, game_id, observer, lambda: self.entries(game_id),
        )

    def _save(self, game_id: str, entries: list[ParticipationEntry]) -> None:
        problems = occupancy_problems(entries)
        if problems:
            raise ParticipationError("Slot occupancy violated", game_id, problems)
        self._store.put(PARTICIPATION, game_id, {
            "game_id": game_id,
            "entries": [e.model_dump(mode="json") for e in entries],
        })


# ---------------------------------------------------------------------------
# Lineup drafts
# ---------------------------------------------------------------------------

class LineupChangeKind(str, Enum):
    STARTER = "starter"
    SUBSTITUTION = "substitution"
    POSITION_CHANGE = "position_change"


@dataclass
class LineupChange:
    kind: LineupChangeKind
    side: Side
    batting_order: int
    in_player_id: str
    out_player_id: Optional[str] = None
    position: Optional[str] = None
    status: Optional[ParticipationStatus] = None


class LineupDrafts:
    """Local lineup edits with an explicit commit.

    Args:
        store: Authoritative store holding committed lineups.
        draft_store: Client-local store holding the drafts.
        participation: Ledger that receives the committed changes.
    """

    def __init__(self, store: DocumentStore, draft_store: DocumentStore,
                 participation: ParticipationLedger) -> None:
        self._store = store
        self._drafts = draft_store
        self._participation = participation

    def committed(self, game_id: str) -> Optional[Lineup]:
        doc = self._store.get(LINEUPS, game_id)
        return Lineup.model_validate(doc) if doc else None

    def draft(self, game_id: str) -> Lineup:
        """The pending draft, else a copy of the committed lineup, else empty slots."""
        doc = self._drafts.get(LINEUP_DRAFTS, game_id)
        if doc:
            return Lineup.model_validate(doc)
        return self.committed(game_id) or Lineup(game_id=game_id)

    def set_player(self, game_id: str, side: Side, batting_order: int,
                   player_id: Optional[str], position: Optional[str] = None) -> Lineup:
        def edit(entry: LineupEntry) -> LineupEntry:
            update = {"player_id": player_id}
            if position is not None:
                update["position"] = position
            return entry.model_copy(update=update)
        return self._edit(game_id, side, batting_order, edit)

    def set_position(self, game_id: str, side: Side, batting_order: int,
                     position_code: Optional[str]) -> Lineup:
        if position_code is not None:
            position(position_code)
        return self._edit(game_id, side, batting_order,
                          lambda e: e.model_copy(update={"position": position_code}))

    def set_lineup(self, game_id: str, side: Side,
                   players: Iterable[tuple[str, str]]) -> Lineup:
        """Fill slots 1.. in order from ``(player_id, position)`` pairs."""
        lineup = self.draft(game_id)
        for order, (player_id, pos) in enumerate(players, start=1):
            position(pos)
            lineup = self._replace(lineup, side, order,
                                   lambda e: e.model_copy(update={"player_id": player_id,
                                                                  "position": pos}))
        self._drafts.put(LINEUP_DRAFTS, game_id, lineup.model_dump(mode="json"))
        return lineup

    def has_draft(self, game_id: str) -> bool:
        return self._drafts.get(LINEUP_DRAFTS, game_id) is not None

    def discard(self, game_id: str) -> bool:
        return self._drafts.delete(LINEUP_DRAFTS, game_id)

    def commit(self, game_id: str, inning: int = 1) -> list[LineupChange]:
        """Record the draft's differences and make it the committed lineup."""
        with self._store.lock(game_id):
            draft = self.draft(game_id)
            self._check_draft(game_id, draft)
            if not self._participation.entries(game_id):
                entries = self._participation.record_starters(game_id, draft)
                changes = [
                    LineupChange(LineupChangeKind.STARTER, e.side, e.batting_order,
                                 e.player_id, position=e.position, status=e.status)
                    for e in entries
                ]
            else:
                self._check_differences(game_id, draft)
                changes = self._apply_differences(game_id, draft, inning)
            self._store.put(LINEUPS, game_id, draft.model_dump(mode="json"))
            self._drafts.delete(LINEUP_DRAFTS, game_id)
        logger.info("Committed lineup for game %s: %d change(s)", game_id, len(changes))
        return changes

    # -- helpers -----------------------------------------------------------

    def _apply_differences(self, game_id: str, draft: Lineup,
                           inning: int) -> list[LineupChange]:
        committed = self.committed(game_id) or Lineup(game_id=game_id)
        changes: list[LineupChange] = []
        for side in Side:
            for new in sorted(draft.entries(side), key=lambda e: e.batting_order):
                old = committed.entry(side, new.batting_order) or LineupEntry(
                    batting_order=new.batting_order)
                if new.player_id == old.player_id:
                    if new.player_id and new.position != old.position and new.position:
                        self._participation.record_position_change(
                            game_id, side, new.batting_order, new.position, inning)
                        changes.append(LineupChange(
                            LineupChangeKind.POSITION_CHANGE, side, new.batting_order,
                            new.player_id, new.player_id, new.position,
                            ParticipationStatus.POSITION_CHANGE))
                    continue
                if new.player_id is None:
                    raise ParticipationError(
                        f"{side.value} slot {new.batting_order} cannot be emptied", game_id)
                status = _PINCH_STATUSES.get(new.position or "")
                if status is not None:
                    entry = self._participation.record_substitution(
                        game_id, side, new.batting_order, new.player_id, inning,
                        status, new.position)
                else:
                    entry = self._participation.record_player_change(
                        game_id, side, new.batting_order, new.player_id, inning,
                        new.position)
                changes.append(LineupChange(
                    LineupChangeKind.SUBSTITUTION, side, new.batting_order,
                    new.player_id, old.player_id, entry.position, entry.status))
        return changes

    def _check_differences(self, game_id: str, draft: Lineup) -> None:
        """Walk the draft's changes against the open stints without writing."""
        committed = self.committed(game_id) or Lineup(game_id=game_id)
        occupied = {(e.side, e.batting_order): e.player_id
                    for e in self._participation.entries(game_id) if e.is_open}
        problems = []
        for side in Side:
            for new in sorted(draft.entries(side), key=lambda e: e.batting_order):
                slot = (side, new.batting_order)
                old = committed.entry(side, new.batting_order) or LineupEntry(
                    batting_order=new.batting_order)
                if new.player_id == old.player_id:
                    if new.player_id and new.position and new.position != old.position:
                        if slot not in occupied:
                            problems.append(f"No player in {side.value} slot {new.batting_order}")
                        elif new.position not in POSITIONS:
                            problems.append(f"Unknown fielding position {new.position!r} "
                                            f"at {side.value} slot {new.batting_order}")
                    continue
                if new.player_id is None:
                    problems.append(f"{side.value} slot {new.batting_order} cannot be emptied")
                    continue
                current = occupied.get(slot)
                if current is None:
                    problems.append(f"No player in {side.value} slot {new.batting_order} to replace")
                elif current == new.player_id:
                    problems.append(f"{new.player_id} already occupies {side.value} "
                                    f"slot {new.batting_order}")
                elif any(s == side and pid == new.player_id for (s, _), pid in occupied.items()):
                    problems.append(f"{new.player_id} is already in the lineup")
                else:
                    occupied[slot] = new.player_id
        if problems:
            raise ParticipationError("Lineup change rejected", game_id, problems)

    def _check_draft(self, game_id: str, draft: Lineup) -> None:
        problems = []
        for side in Side:
            seen: dict[str, int] = {}
            for e in draft.entries(side):
                if not e.player_id:
                    continue
                if e.player_id in seen:
                    problems.append(f"{e.player_id} is at {side.value} slots "
                                    f"{seen[e.player_id]} and {e.batting_order}")
                seen[e.player_id] = e.batting_order
        if problems:
            raise ParticipationError("Lineup draft is inconsistent", game_id, problems)

    def _edit(self, game_id: str, side: Side, batting_order: int,
              edit: Callable[[LineupEntry], LineupEntry]) -> Lineup:
        lineup = self._replace(self.draft(game_id), side, batting_order, edit)
        self._drafts.put(LINEUP_DRAFTS, game_id, lineup.model_dump(mode="json"))
        return lineup

    @staticmethod
    def _replace(lineup: Lineup, side: Side, batting_order: int,
                 edit: Callable[[LineupEntry], LineupEntry]) -> Lineup:
        if lineup.entry(side, batting_order) is None:
            raise ParticipationError(f"No slot {batting_order} in the {side.value} lineup",
                                     lineup.game_id)
        entries = [edit(e) if e.batting_order == batting_order else e
                   for e in lineup.entries(side)]
        return lineup.model_copy(update={side.value: entries})
