"""
Match result propagation: winner advancement, third-place match synthesis
and tournament completion.
"""
import logging
from typing import Dict, List, Optional, Union

from season.errors import ValidationError
from season.models import (THIRD_PLACE_MATCH_ID, Bracket, Match, MatchId,
                           Participant, Phase, SessionState)

logger = logging.getLogger(__name__)


def _resolve_winner(match: Match, winner: Union[Participant, int, str]) -> Participant:
    """Return the slot participant matching `winner`, or raise ValidationError."""
    winner_id = winner.id if isinstance(winner, Participant) else winner
    for participant in (match.participant1, match.participant2):
        if participant is not None and participant.id == winner_id:
            return participant
    raise ValidationError(f"participant {winner_id} is not playing in match {match.id}")


def _advance(bracket: Bracket, match: Match):
    """Place the winner of `match` into its linked next-round match."""
    if match.next_match_id is None:
        return
    next_match = bracket.find(match.next_match_id)
    if next_match is None:
        logger.warning("Match %s links to missing match %s", match.id, match.next_match_id)
        return

    # First of each pair feeds slot 1, second feeds slot 2
    if match.match_index % 2 == 0:
        next_match.participant1 = match.winner
    else:
        next_match.participant2 = match.winner
    next_match.order_by_seed()


def synthesize_third_place(bracket: Bracket) -> Optional[Match]:
    """
    Create the third-place match once both semifinals are decided.

    Returns None while a semifinal is still open, when there is no distinct
    semifinal round, or when neither semifinal produced a loser. A single
    loser (the other semifinal was a bye) gets a pre-decided match.
    """
    semifinals = bracket.semifinal_round
    if not semifinals or not all(m.winner is not None for m in semifinals):
        return None

    losers = [m.loser() for m in semifinals]
    losers = [p for p in losers if p is not None]

    if len(losers) == 2:
        first, second = sorted(losers, key=lambda p: p.seed)
        return Match(THIRD_PLACE_MATCH_ID, -1, 0, first, second)
    elif len(losers) == 1:
        return Match(THIRD_PLACE_MATCH_ID, -1, 0, losers[0], None, winner=losers[0])
    return None


def is_finished(bracket: Bracket, third_place_match: Optional[Match]) -> bool:
    """Final decided, and the third-place match too if there is one."""
    final_match = bracket.final_match
    if final_match is None or final_match.winner is None:
        return False
    return third_place_match is None or third_place_match.winner is not None


def set_winner(state: SessionState, match_id: MatchId,
               winner: Union[Participant, int, str]) -> SessionState:
    """
    Record the winner of a match and propagate it through the bracket.

    Unknown match ids, already decided matches and calls outside the bracket
    phases are ignored. A winner that is not one of the match's participants
    raises ValidationError before anything changes.
    """
    if state.phase not in (Phase.BRACKET, Phase.FINISHED):
        logger.info("Ignoring winner for match %r during %s", match_id, state.phase.value)
        return state

    bracket = state.bracket
    third_place = state.third_place_match

    if third_place is not None and match_id == THIRD_PLACE_MATCH_ID:
        match = third_place
    else:
        match = bracket.find(match_id)

    if match is None:
        logger.warning("Ignoring winner for unknown match %r", match_id)
    elif match.winner is not None:
        logger.info("Match %r already decided, ignoring", match_id)
    else:
        match.winner = _resolve_winner(match, winner)
        if not match.is_third_place:
            _advance(bracket, match)

    if state.third_place_match is None:
        state.third_place_match = synthesize_third_place(bracket)

    if is_finished(bracket, state.third_place_match):
        state.phase = Phase.FINISHED
    return state


def final_placings(bracket: Bracket, third_place_match: Optional[Match]) -> Dict[str, Optional[Participant]]:
    """Champion, runner-up, third and fourth place. Missing places are None."""
    final_match = bracket.final_match
    champion = final_match.winner if final_match else None
    runner_up = final_match.loser() if final_match else None
    third = third_place_match.winner if third_place_match else None
    fourth = third_place_match.loser() if third_place_match else None
    return {'champion': champion, 'runner_up': runner_up, 'third': third, 'fourth': fourth}


def round_losers(round_matches: List[Match]) -> List[Participant]:
    """Participants knocked out in a round, skipping byes and open matches."""
    return [m.loser() for m in round_matches if m.loser() is not None]
