# /// script
# requires-python = ">=3.12"
# dependencies = ["pydantic>=2.0"]
# ///
"""Default fielding credit for a play.

Given the batting result, the position that fielded the ball and the
runner outs the operator recorded, work out the putouts, assists and
errors a scorer would normally credit:

- strikeout: putout to the catcher;
- fly ball or sacrifice fly: putout to the fielder;
- ground ball, bunt or sacrifice bunt: assist to the fielder and putout to
  first base (unassisted when the first baseman fields it);
- reach on error: error charged to the fielder;
- hit: the fielder is credited with fielding the ball;
- runner out: assist to the thrower, putout to the fielder who caught it.

Player ids are filled in from the defensive alignment afterwards.
"""

from __future__ import annotations

from typing import Iterable, Optional

from models import FieldingAction, FieldingActionKind, FieldingQuality, RunnerEvent
from taxonomy import CATCHER, FIRST_BASEMAN, BattingResultCode, batting_result

_FLY_BALL_OUTS = {BattingResultCode.FLYOUT, BattingResultCode.SACRIFICE_FLY}
_THROWN_OUTS = {
    BattingResultCode.GROUNDOUT,
    BattingResultCode.BUNT_OUT,
    BattingResultCode.SACRIFICE_BUNT,
}


def _action(position: str, kind: FieldingActionKind,
            quality: FieldingQuality = FieldingQuality.CLEAN) -> FieldingAction:
    return FieldingAction(position=position, action=kind, quality=quality)


def default_fielding_actions(code: Optional[BattingResultCode | str],
                             fielded_by: Optional[str],
                             batter_retired: bool,
                             runner_events: Iterable[RunnerEvent] = ()) -> list[FieldingAction]:
    """Fielding actions implied by the result and the recorded runner outs."""
    actions: list[FieldingAction] = []
    info = batting_result(code) if code else None

    if info is not None:
        if info.is_strikeout and batter_retired:
            actions.append(_action(CATCHER, FieldingActionKind.PUTOUT))
        elif info.code in _FLY_BALL_OUTS and batter_retired and fielded_by:
            actions.append(_action(fielded_by, FieldingActionKind.PUTOUT))
        elif info.code in _THROWN_OUTS and batter_retired and fielded_by:
            if fielded_by != FIRST_BASEMAN:
                actions.append(_action(fielded_by, FieldingActionKind.ASSIST))
            actions.append(_action(FIRST_BASEMAN, FieldingActionKind.PUTOUT))
        elif info.code == BattingResultCode.ERROR and fielded_by:
            actions.append(_action(fielded_by, FieldingActionKind.ERROR, FieldingQuality.MISSED))
        elif info.is_hit and fielded_by:
            actions.append(_action(fielded_by, FieldingActionKind.FIELDED))

    for event in runner_events:
        if not event.is_out or event.out_detail is None:
            continue
        detail = event.out_detail
        if detail.thrown_by and detail.thrown_by != detail.caught_by:
            actions.append(_action(detail.thrown_by, FieldingActionKind.ASSIST))
        actions.append(_action(detail.caught_by, FieldingActionKind.PUTOUT))
    return actions


def assign_players(actions: Iterable[FieldingAction],
                   defense: dict[str, str]) -> list[FieldingAction]:
    """Fill ``player_id`` from *defense* (position code -> player id)."""
    return [
        a if a.player_id else a.model_copy(update={"player_id": defense.get(a.position)})
        for a in actions
    ]
