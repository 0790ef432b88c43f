# /// script
# requires-python = ">=3.12"
# dependencies = ["pydantic>=2.0"]
# ///
"""Statistics derived from the game ledgers.

Everything here is a read-side projection: pure functions over the list of
at-bats (and the participation entries for the box score) that can be
recomputed at any time with the same result.

- :func:`batting_stats` -- per-player batting and fielding lines.
- :func:`pitcher_stats` -- per-pitcher lines including earned runs.
- :func:`is_earned_run` -- traces a run back to the play where the runner
  reached and looks for errors, passed balls and wild pitches on the way.
- :func:`losing_pitcher` / :func:`winning_pitcher` -- decisions.
- :func:`pitch_locations` -- a pitcher's pitches counted on the 5x5 zone grid.
- :func:`build_box_score` / :func:`format_box_score` -- the scorebook grid
  and its plain-text rendering.
- :class:`StatsProjection` -- keeps the stat lines and box score current by
  subscribing to the ledgers.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from data.store import DocumentStore
from data.subscriptions import Subscription
from models import (
    AtBat,
    FieldingActionKind,
    Half,
    ParticipationEntry,
    RunnerEventType,
    Side,
    ZONE_COLUMNS,
    ZONE_ROWS,
    batting_side,
    fielding_side,
)
from participation import FLEX_SLOT, SlotOccupant, stitch_slot
from taxonomy import (
    BattingResultCode,
    PitchType,
    batting_result,
    check_exhaustive,
    position_abbr,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Game rules
# ---------------------------------------------------------------------------

REGULATION_INNINGS = 7
MAX_BOX_SCORE_INNINGS = 7
STARTER_MIN_OUTS = 12            # 4 innings
SHORT_GAME_STARTER_MIN_OUTS = 9  # 3 innings
SHORT_GAME_FINAL_INNINGS = (5, 6)

WINNING_PITCHERS = "winning_pitchers"


# ---------------------------------------------------------------------------
# Stat lines
# ---------------------------------------------------------------------------

@dataclass
class BattingLine:
    pa: int = 0
    ab: int = 0
    hits: int = 0
    singles: int = 0
    doubles: int = 0
    triples: int = 0
    hr: int = 0
    walks: int = 0
    hbp: int = 0
    sac_bunts: int = 0
    sac_flies: int = 0
    strikeouts: int = 0
    stolen_bases: int = 0
    runs: int = 0
    rbi: int = 0
    putouts: int = 0
    assists: int = 0
    errors: int = 0

    @property
    def sacrifices(self) -> int:
        return self.sac_bunts + self.sac_flies

    def to_dict(self) -> dict:
        return {
            "PA": self.pa, "AB": self.ab, "H": self.hits, "1B": self.singles,
            "2B": self.doubles, "3B": self.triples, "HR": self.hr,
            "BB": self.walks, "HBP": self.hbp, "SH": self.sac_bunts,
            "SF": self.sac_flies, "K": self.strikeouts, "SB": self.stolen_bases,
            "R": self.runs, "RBI": self.rbi, "PO": self.putouts,
            "A": self.assists, "E": self.errors,
        }


@dataclass
class PitchingLine:
    pitcher_id: str
    side: Side
    ip_outs: int = 0  # outs recorded (3 = 1.0 IP)
    batters_faced: int = 0
    pitches: int = 0
    hits: int = 0
    hr_allowed: int = 0
    strikeouts: int = 0
    walks: int = 0
    hbp: int = 0
    sac_bunts: int = 0
    sac_flies: int = 0
    runs: int = 0
    earned_runs: int = 0
    wild_pitches: int = 0
    decision: Optional[str] = None

    @property
    def ip(self) -> float:
        full = self.ip_outs // 3
        partial = self.ip_outs % 3
        return full + partial / 10.0

    def to_dict(self) -> dict:
        return {
            "pitcher_id": self.pitcher_id, "IP": self.ip, "BF": self.batters_faced,
            "pitches": self.pitches, "H": self.hits, "HR": self.hr_allowed,
            "K": self.strikeouts, "BB": self.walks, "HBP": self.hbp,
            "SH": self.sac_bunts, "SF": self.sac_flies, "R": self.runs,
            "ER": self.earned_runs, "WP": self.wild_pitches, "decision": self.decision,
        }


def _outs_on(ab: AtBat) -> int:
    return ab.situation_after.outs - ab.situation_before.outs


def batting_stats(at_bats: Iterable[AtBat]) -> dict[str, BattingLine]:
    """Batting and fielding lines keyed by player id, merged across stints."""
    lines: dict[str, BattingLine] = {}

    def line(pid: str) -> BattingLine:
        return lines.setdefault(pid, BattingLine())

    for ab in sorted(at_bats, key=lambda a: a.index):
        if ab.result is not None:
            info = batting_result(ab.result.code)
            b = line(ab.batter_id)
            b.pa += 1
            b.ab += info.is_ab
            if info.is_hit:
                b.hits += 1
                b.singles += info.bases == 1
                b.doubles += info.bases == 2
                b.triples += info.bases == 3
                b.hr += info.bases == 4
            b.walks += info.code == BattingResultCode.WALK
            b.hbp += info.code == BattingResultCode.DEADBALL
            b.sac_bunts += info.code == BattingResultCode.SACRIFICE_BUNT
            b.sac_flies += info.code == BattingResultCode.SACRIFICE_FLY
            b.strikeouts += info.is_strikeout
            b.rbi += ab.result.rbi
        for pid in ab.scored_runners:
            line(pid).runs += 1
        for event in ab.runner_events:
            if event.kind == RunnerEventType.STEAL and not event.is_out:
                line(event.runner_id).stolen_bases += 1
        for action in ab.play_details.fielding:
            if not action.player_id:
                continue
            f = line(action.player_id)
            f.putouts += action.action == FieldingActionKind.PUTOUT
            f.assists += action.action == FieldingActionKind.ASSIST
            f.errors += action.action == FieldingActionKind.ERROR
    return lines


# ---------------------------------------------------------------------------
# Earned runs and pitching lines
# ---------------------------------------------------------------------------

_UNEARNED_RUNNER_EVENTS = {RunnerEventType.PASSED_BALL, RunnerEventType.WILD_PITCH}


def _pinch_ran_for(runner_id: str, ab: AtBat, previous: Optional[AtBat]) -> Optional[str]:
    """The runner *runner_id* took over from between *previous* and *ab*, if any."""
    base = ab.situation_before.runners.base_of(runner_id)
    if base is None or previous is None:
        return None
    if (previous.inning, previous.half) != (ab.inning, ab.half):
        return None
    left_on = previous.situation_after.runners
    if left_on.base_of(runner_id) is not None:
        return None
    return left_on.get(base)


def is_earned_run(runner_id: str, scoring_index: int, at_bats: Iterable[AtBat]) -> bool:
    """Whether the run *runner_id* scored on play *scoring_index* is earned.

    Walks back from the scoring play to the plate appearance where the
    runner reached, following pinch runners back to the player they ran
    for.  The run is unearned if the runner reached on an error, or if any
    play in between charged a fielding error, or if the runner moved up on a
    passed ball, a wild pitch or an advance credited to an error.
    """
    plays = {ab.index: ab for ab in at_bats}
    if scoring_index not in plays:
        raise KeyError(f"No play with index {scoring_index}")
    runners = {runner_id}
    current = runner_id
    reached_at = scoring_index
    for index in range(scoring_index, 0, -1):
        ab = plays.get(index)
        if ab is None:
            continue
        if ab.batter_id == current and ab.result is not None:
            reached_at = index
            if ab.result.code == BattingResultCode.ERROR:
                return False
            break
        replaced = _pinch_ran_for(current, ab, plays.get(index - 1))
        if replaced:
            current = replaced
            runners.add(replaced)

    for index in range(reached_at, scoring_index + 1):
        ab = plays.get(index)
        if ab is None:
            continue
        if any(a.action == FieldingActionKind.ERROR for a in ab.play_details.fielding):
            return False
        for event in ab.runner_events:
            if event.runner_id not in runners:
                continue
            if event.kind in _UNEARNED_RUNNER_EVENTS or event.reason == "error":
                return False
    return True


def pitcher_stats(at_bats: Iterable[AtBat]) -> dict[str, PitchingLine]:
    """Pitching lines keyed by pitcher id, in order of first appearance."""
    plays = sorted(at_bats, key=lambda a: a.index)
    lines: dict[str, PitchingLine] = {}
    for ab in plays:
        if not ab.pitcher_id:
            continue
        p = lines.get(ab.pitcher_id)
        if p is None:
            p = lines[ab.pitcher_id] = PitchingLine(ab.pitcher_id, fielding_side(ab.half))
        p.ip_outs += _outs_on(ab)
        p.pitches += len(ab.pitches)
        if ab.result is not None:
            info = batting_result(ab.result.code)
            p.batters_faced += 1
            p.hits += info.is_hit
            p.hr_allowed += info.bases == 4
            p.strikeouts += info.is_strikeout
            p.walks += info.code == BattingResultCode.WALK
            p.hbp += info.code == BattingResultCode.DEADBALL
            p.sac_bunts += info.code == BattingResultCode.SACRIFICE_BUNT
            p.sac_flies += info.code == BattingResultCode.SACRIFICE_FLY
        wild = {e.pitch_seq if e.pitch_seq is not None else e.event_id
                for e in ab.runner_events if e.kind == RunnerEventType.WILD_PITCH}
        p.wild_pitches += len(wild)
        p.runs += len(ab.scored_runners)
        p.earned_runs += sum(is_earned_run(pid, ab.index, plays) for pid in ab.scored_runners)
    return lines


# ---------------------------------------------------------------------------
# Score progression and decisions
# ---------------------------------------------------------------------------

@dataclass
class ScoreStep:
    at_bat: AtBat
    before: dict[Side, int]
    after: dict[Side, int]


def score_progression(at_bats: Iterable[AtBat]) -> list[ScoreStep]:
    score = {Side.AWAY: 0, Side.HOME: 0}
    steps = []
    for ab in sorted(at_bats, key=lambda a: a.index):
        before = dict(score)
        score[batting_side(ab.half)] += len(ab.scored_runners)
        steps.append(ScoreStep(ab, before, dict(score)))
    return steps


def final_score(at_bats: Iterable[AtBat]) -> dict[Side, int]:
    steps = score_progression(at_bats)
    return steps[-1].after if steps else {Side.AWAY: 0, Side.HOME: 0}


def winning_side(at_bats: Iterable[AtBat]) -> Optional[Side]:
    score = final_score(at_bats)
    if score[Side.HOME] == score[Side.AWAY]:
        return None
    return Side.HOME if score[Side.HOME] > score[Side.AWAY] else Side.AWAY


def _other(side: Side) -> Side:
    return Side.AWAY if side == Side.HOME else Side.HOME


def pitchers_for(at_bats: Iterable[AtBat], side: Side) -> list[str]:
    """Pitchers who worked for *side*, in order of appearance."""
    seen: list[str] = []
    for ab in sorted(at_bats, key=lambda a: a.index):
        if ab.pitcher_id and fielding_side(ab.half) == side and ab.pitcher_id not in seen:
            seen.append(ab.pitcher_id)
    return seen


def losing_pitcher(at_bats: Iterable[AtBat]) -> Optional[str]:
    """Pitcher charged with the play on which the winners took the lead for good."""
    plays = list(at_bats)
    winner = winning_side(plays)
    if winner is None:
        return None
    loser = _other(winner)
    deciding: Optional[AtBat] = None
    for step in reversed(score_progression(plays)):
        if step.before[winner] <= step.before[loser] and step.after[winner] > step.after[loser]:
            deciding = step.at_bat
            break
    return deciding.pitcher_id if deciding else None


@dataclass
class WinningPitcherDecision:
    pitcher_id: Optional[str]
    rule: str  # starter | sole_reliever | manual | undecided | no_decision
    candidates: list[str] = field(default_factory=list)

    @property
    def needs_selection(self) -> bool:
        return self.rule == "undecided"


def starter_qualifies(at_bats: Iterable[AtBat], side: Side) -> bool:
    """Starter pitched the minimum and left with a lead that was never lost."""
    plays = sorted(at_bats, key=lambda a: a.index)
    pitchers = pitchers_for(plays, side)
    if not pitchers:
        return False
    starter = pitchers[0]
    final_inning = plays[-1].inning
    min_outs = (SHORT_GAME_STARTER_MIN_OUTS if final_inning in SHORT_GAME_FINAL_INNINGS
                else STARTER_MIN_OUTS)
    outs = sum(_outs_on(ab) for ab in plays
               if ab.pitcher_id == starter and fielding_side(ab.half) == side)
    if outs < min_outs:
        return False

    steps = score_progression(plays)
    other = _other(side)
    departed_at = next(
        (i for i, s in enumerate(steps)
         if fielding_side(s.at_bat.half) == side and s.at_bat.pitcher_id
         and s.at_bat.pitcher_id != starter),
        len(steps),
    )
    at_departure = steps[departed_at].before if departed_at < len(steps) else steps[-1].after
    if at_departure[side] <= at_departure[other]:
        return False
    return all(s.after[side] > s.after[other] for s in steps[departed_at:])


def winning_pitcher(at_bats: Iterable[AtBat],
                    selected: Optional[str] = None) -> WinningPitcherDecision:
    """Apply the winning-pitcher rules; *selected* is the operator's manual pick."""
    plays = list(at_bats)
    winner = winning_side(plays)
    if winner is None:
        return WinningPitcherDecision(None, "no_decision")
    pitchers = pitchers_for(plays, winner)
    if not pitchers:
        return WinningPitcherDecision(None, "no_decision")
    starter, relievers = pitchers[0], pitchers[1:]
    if not relievers or starter_qualifies(plays, winner):
        return WinningPitcherDecision(starter, "starter", [starter])
    if len(relievers) == 1:
        return WinningPitcherDecision(relievers[0], "sole_reliever", relievers)
    if selected in relievers:
        return WinningPitcherDecision(selected, "manual", relievers)
    return WinningPitcherDecision(None, "undecided", relievers)


class WinningPitcherSelections:
    """Operator-chosen winning pitchers, one per game and side."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    def get(self, game_id: str, side: Side) -> Optional[str]:
        doc = self._store.get(WINNING_PITCHERS, game_id) or {}
        return doc.get(side.value)

    def set(self, game_id: str, side: Side, pitcher_id: str) -> None:
        with self._store.lock(game_id):
            doc = self._store.get(WINNING_PITCHERS, game_id) or {}
            doc[side.value] = pitcher_id
            self._store.put(WINNING_PITCHERS, game_id, doc)


def apply_decisions(lines: dict[str, PitchingLine], winner_id: Optional[str],
                    loser_id: Optional[str]) -> None:
    if winner_id in lines:
        lines[winner_id].decision = "W"
    if loser_id in lines:
        lines[loser_id].decision = "L"


# ---------------------------------------------------------------------------
# Box score
# ---------------------------------------------------------------------------

BOX_LABELS: dict[BattingResultCode, str] = {
    BattingResultCode.SINGLE: "1B",
    BattingResultCode.DOUBLE: "2B",
    BattingResultCode.TRIPLE: "3B",
    BattingResultCode.HOMERUN: "HR",
    BattingResultCode.RUNNING_HOMERUN: "IHR",
    BattingResultCode.GROUNDOUT: "GO",
    BattingResultCode.FLYOUT: "FO",
    BattingResultCode.BUNT_OUT: "BO",
    BattingResultCode.STRIKEOUT_SWINGING: "K",
    BattingResultCode.STRIKEOUT_LOOKING: "KL",
    BattingResultCode.DROPPED_THIRD: "K3",
    BattingResultCode.WALK: "BB",
    BattingResultCode.DEADBALL: "HBP",
    BattingResultCode.SACRIFICE_BUNT: "SAC",
    BattingResultCode.SACRIFICE_FLY: "SF",
    BattingResultCode.INTERFERENCE: "INT",
    BattingResultCode.ERROR: "E",
}
check_exhaustive(BOX_LABELS, BattingResultCode, "BOX_LABELS")

_DOUBLE_PLAY_CODES = {BattingResultCode.GROUNDOUT, BattingResultCode.FLYOUT,
                      BattingResultCode.BUNT_OUT}


def at_bat_label(ab: AtBat) -> str:
    """Scorebook shorthand for a plate appearance, e.g. ``LF 1B`` or ``SS DP``."""
    if ab.result is None:
        return ""
    code = ab.result.code
    label = BOX_LABELS[code]
    if code in _DOUBLE_PLAY_CODES and _outs_on(ab) >= 2:
        label = "DP"
    fielder = position_abbr(ab.result.fielded_by)
    return f"{fielder} {label}" if fielder else label


def slot_label(batting_order: int) -> str:
    return "FP" if batting_order == FLEX_SLOT else str(batting_order)


@dataclass
class BoxScoreCell:
    play_index: int
    label: str
    is_hit: bool
    rbi: int


@dataclass
class BoxScoreRow:
    side: Side
    batting_order: int
    player_id: str
    positions: list[str]
    role: str
    is_substitute: bool
    cells: dict[int, list[BoxScoreCell]] = field(default_factory=dict)
    stats: BattingLine = field(default_factory=BattingLine)

    @property
    def slot(self) -> str:
        return slot_label(self.batting_order)


@dataclass
class TeamLine:
    runs_by_inning: list[Optional[int]]
    runs: int = 0
    hits: int = 0
    errors: int = 0


@dataclass
class BoxScore:
    innings: int
    rows: dict[Side, list[BoxScoreRow]]
    line_score: dict[Side, TeamLine]
    pitching: dict[Side, list[PitchingLine]]
    winning_pitcher: Optional[WinningPitcherDecision] = None


def _occupants_from_plays(plays: list[AtBat], side: Side, slot: int) -> list[SlotOccupant]:
    seen: dict[str, SlotOccupant] = {}
    for ab in plays:
        if batting_side(ab.half) == side and ab.batting_order == slot and ab.batter_id not in seen:
            seen[ab.batter_id] = SlotOccupant(ab.batter_id, side, slot)
    return list(seen.values())


def build_box_score(at_bats: Iterable[AtBat],
                    entries: Iterable[ParticipationEntry] = (),
                    finished: bool = False,
                    selected_winners: Optional[dict[Side, str]] = None) -> BoxScore:
    """Scorebook grid, line score and pitching lines for a game.

    Rows follow the batting order; a slot's starter comes first and each
    substitute follows immediately after.  A player who left and came back
    keeps a single row.  Pitching decisions are only made once *finished*.
    """
    plays = sorted(at_bats, key=lambda a: a.index)
    entries = list(entries)
    stats = batting_stats(plays)
    last_inning = max((ab.inning for ab in plays), default=1)
    innings = max(MAX_BOX_SCORE_INNINGS, last_inning)

    rows: dict[Side, list[BoxScoreRow]] = {}
    for side in (Side.AWAY, Side.HOME):
        side_rows: list[BoxScoreRow] = []
        has_entries = any(e.side == side for e in entries)
        for slot in range(1, FLEX_SLOT + 1):
            occupants = (stitch_slot(entries, side, slot) if has_entries
                         else _occupants_from_plays(plays, side, slot))
            for n, occupant in enumerate(occupants):
                row = BoxScoreRow(
                    side=side,
                    batting_order=slot,
                    player_id=occupant.player_id,
                    positions=[position_abbr(p) or p for p in occupant.positions],
                    role=occupant.role.value if occupant.stints else "starter",
                    is_substitute=n > 0,
                    stats=stats.get(occupant.player_id, BattingLine()),
                )
                for ab in plays:
                    if (ab.result is not None and ab.batter_id == occupant.player_id
                            and ab.batting_order == slot and batting_side(ab.half) == side):
                        row.cells.setdefault(ab.inning, []).append(BoxScoreCell(
                            ab.index, at_bat_label(ab),
                            batting_result(ab.result.code).is_hit, ab.result.rbi,
                        ))
                side_rows.append(row)
        rows[side] = side_rows

    line_score: dict[Side, TeamLine] = {}
    for side, half in ((Side.AWAY, Half.TOP), (Side.HOME, Half.BOTTOM)):
        batted = {ab.inning for ab in plays if ab.half == half}
        runs_by_inning: list[Optional[int]] = []
        for inning in range(1, innings + 1):
            if inning in batted:
                runs_by_inning.append(sum(len(ab.scored_runners) for ab in plays
                                          if ab.half == half and ab.inning == inning))
            else:
                runs_by_inning.append(None)
        line_score[side] = TeamLine(
            runs_by_inning=runs_by_inning,
            runs=sum(r or 0 for r in runs_by_inning),
            hits=sum(1 for ab in plays if ab.half == half and ab.result is not None
                     and batting_result(ab.result.code).is_hit),
            errors=sum(1 for ab in plays if fielding_side(ab.half) == side
                       for a in ab.play_details.fielding
                       if a.action == FieldingActionKind.ERROR),
        )

    lines = pitcher_stats(plays)
    decision = None
    if finished:
        winner = winning_side(plays)
        selected = (selected_winners or {}).get(winner) if winner else None
        decision = winning_pitcher(plays, selected)
        apply_decisions(lines, decision.pitcher_id, losing_pitcher(plays))
    pitching = {side: [p for p in lines.values() if p.side == side]
                for side in (Side.AWAY, Side.HOME)}
    return BoxScore(innings, rows, line_score, pitching, decision)


def format_box_score(box: BoxScore, title: str = "BOX SCORE") -> str:
    """Plain-text rendering of a :class:`BoxScore`."""
    lines = []
    lines.append("=" * 72)
    lines.append(title)
    lines.append("=" * 72)

    header = f"{'Team':<8}"
    for i in range(1, box.innings + 1):
        header += f" {i:>3}"
    header += "  |   R   H   E"
    lines.append(header)
    lines.append("-" * len(header))
    for side in (Side.AWAY, Side.HOME):
        team = box.line_score[side]
        row = f"{side.value:<8}"
        for r in team.runs_by_inning:
            row += f" {'x' if r is None else r:>3}"
        row += f"  | {team.runs:>3} {team.hits:>3} {team.errors:>3}"
        lines.append(row)

    for side in (Side.AWAY, Side.HOME):
        lines.append(f"\n{side.value.capitalize()} Batting:")
        lines.append(f"  {'#':>2} {'Player':<14} {'Pos':<8} {'AB':>3} {'H':>3} "
                     f"{'R':>3} {'RBI':>4} {'BB':>3} {'K':>3}  Results")
        for row in box.rows[side]:
            results = " ".join(
                f"{inning}:{cell.label}{'*' if cell.is_hit or cell.rbi else ''}"
                for inning, cells in sorted(row.cells.items()) for cell in cells
            )
            slot = f"-{row.slot}" if row.is_substitute else row.slot
            s = row.stats
            lines.append(
                f"  {slot:>2} {row.player_id:<14} {'/'.join(row.positions):<8} {s.ab:>3} "
                f"{s.hits:>3} {s.runs:>3} {s.rbi:>4} {s.walks + s.hbp:>3} {s.strikeouts:>3}"
                f"  {results}"
            )

    for side in (Side.AWAY, Side.HOME):
        lines.append(f"\n{side.value.capitalize()} Pitching:")
        lines.append(f"  {'Pitcher':<14} {'IP':>5} {'H':>3} {'R':>3} {'ER':>3} "
                     f"{'BB':>3} {'K':>3} {'P':>4}  Dec")
        for p in box.pitching[side]:
            lines.append(
                f"  {p.pitcher_id:<14} {p.ip:>5.1f} {p.hits:>3} {p.runs:>3} "
                f"{p.earned_runs:>3} {p.walks:>3} {p.strikeouts:>3} {p.pitches:>4}  "
                f"{p.decision or ''}"
            )
    if box.winning_pitcher is not None and box.winning_pitcher.needs_selection:
        lines.append("\nWinning pitcher not decided; choose from: "
                     + ", ".join(box.winning_pitcher.candidates))
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Pitch locations
# ---------------------------------------------------------------------------

def _empty_grid() -> list[list[int]]:
    return [[0] * ZONE_COLUMNS for _ in range(ZONE_ROWS)]


@dataclass
class PitchLocations:
    """One pitcher's located pitches on the 5x5 zone grid, top row first."""
    pitcher_id: str
    grid: list[list[int]] = field(default_factory=_empty_grid)
    by_type: dict[PitchType, list[list[int]]] = field(default_factory=dict)
    unlocated: int = 0

    @property
    def total(self) -> int:
        return sum(map(sum, self.grid))

    def counts(self, pitch_type: Optional[PitchType] = None) -> list[list[int]]:
        if pitch_type is None:
            return self.grid
        return self.by_type.get(pitch_type) or _empty_grid()

    def ratios(self, pitch_type: Optional[PitchType] = None) -> list[list[float]]:
        """Share of the located pitches (of *pitch_type*, if given) in each cell."""
        grid = self.counts(pitch_type)
        total = sum(map(sum, grid))
        if not total:
            return [[0.0] * ZONE_COLUMNS for _ in range(ZONE_ROWS)]
        return [[n / total for n in row] for row in grid]

    def at(self, course: int, pitch_type: Optional[PitchType] = None) -> int:
        row, col = divmod(course - 1, ZONE_COLUMNS)
        return self.counts(pitch_type)[row][col]

    def to_dict(self) -> dict:
        return {
            "pitcher_id": self.pitcher_id,
            "total": self.total,
            "unlocated": self.unlocated,
            "grid": self.grid,
            "by_type": {t.value: g for t, g in self.by_type.items()},
        }


def pitch_locations(at_bats: Iterable[AtBat], pitcher_id: str) -> PitchLocations:
    """Count *pitcher_id*'s pitches by zone course and pitch type.

    Pitches recorded without a course only add to ``unlocated``.
    """
    chart = PitchLocations(pitcher_id)
    for ab in at_bats:
        if ab.pitcher_id != pitcher_id:
            continue
        for pitch in ab.pitches:
            if pitch.course is None:
                chart.unlocated += 1
                continue
            row, col = divmod(pitch.course - 1, ZONE_COLUMNS)
            chart.grid[row][col] += 1
            chart.by_type.setdefault(pitch.pitch_type, _empty_grid())[row][col] += 1
    return chart


# ---------------------------------------------------------------------------
# Reactive projection
# ---------------------------------------------------------------------------

class StatsProjection:
    """Box score and stat lines for one game, recomputed on every ledger change.

    Args:
        game_id: Game to follow.
        ledger: :class:`at_bat_ledger.AtBatLedger` for the plays.
        participation: :class:`participation.ParticipationLedger` for the rows.
        finished: Callable reporting whether the game is over, so decisions
            can be shown.
        selections: Manual winning-pitcher picks.
    """

    def __init__(self, game_id: str, ledger, participation,
                 finished=lambda: False,
                 selections: Optional[WinningPitcherSelections] = None) -> None:
        self.game_id = game_id
        self._finished = finished
        self._selections = selections
        self._plays: list[AtBat] = []
        self._entries: list[ParticipationEntry] = []
        self.box_score: Optional[BoxScore] = None
        self.batting: dict[str, BattingLine] = {}
        self.pitching: dict[str, PitchingLine] = {}
        self.recomputations = 0
        self._subscriptions: list[Subscription] = [
            ledger.subscribe(game_id, self._on_plays),
            participation.subscribe(game_id, self._on_entries),
        ]

    def _on_plays(self, plays: list[AtBat]) -> None:
        self._plays = plays
        self._recompute()

    def _on_entries(self, entries: list[ParticipationEntry]) -> None:
        self._entries = entries
        self._recompute()

    def _recompute(self) -> None:
        selected = {}
        if self._selections is not None:
            for side in Side:
                pick = self._selections.get(self.game_id, side)
                if pick:
                    selected[side] = pick
        self.batting = batting_stats(self._plays)
        self.pitching = pitcher_stats(self._plays)
        self.box_score = build_box_score(self._plays, self._entries,
                                         self._finished(), selected)
        self.recomputations += 1

    def close(self) -> None:
        for sub in self._subscriptions:
            sub.close()
