"""
Season points: qualification rank points, bracket placement points and
round-elimination bonuses, folded into the championship standings.
"""
import logging
from typing import Dict, List, Optional

from season.elimination import rank_qualifiers
from season.errors import PhaseError
from season.models import Bracket, ChampionshipStanding, Match, Participant, Phase, SessionState
from season.resolver import final_placings, round_losers

logger = logging.getLogger(__name__)

# (last rank of the range, points), checked in order
QUALIFICATION_POINTS = [
    (1, 12),
    (2, 10),
    (3, 8),
    (4, 6),
    (6, 4),
    (8, 3),
    (12, 2),
    (16, 1),
    (24, 0.5),
    (32, 0.25),
]

PLACEMENT_POINTS = {
    'champion': 100,
    'runner_up': 88,
    'third': 76,
    'fourth': 64,
}

# Participants in a round -> points for each loser of that round
ROUND_BONUS_POINTS = {
    8: 48,
    16: 32,
    32: 16,
    64: 10,
}


def qualification_points(rank: int) -> float:
    """Points for a 1-based qualification rank. Ranks beyond 32 score nothing."""
    if rank < 1:
        return 0
    for last_rank, points in QUALIFICATION_POINTS:
        if rank <= last_rank:
            return points
    return 0


def calculate_competition_points(participants: List[Participant], bracket: Bracket,
                                 third_place_match: Optional[Match]) -> Dict:
    """
    Points earned in one competition, keyed by participant id.

    Every qualifier gets rank points. On top of that a participant gets
    exactly one of: a top-four placement, or the bonus for the round they
    were knocked out in.
    """
    points = {}

    for rank, participant in enumerate(rank_qualifiers(participants), start=1):
        points[participant.id] = points.get(participant.id, 0) + qualification_points(rank)

    placings = final_placings(bracket, third_place_match)
    for place, participant in placings.items():
        if participant is not None:
            points[participant.id] = points.get(participant.id, 0) + PLACEMENT_POINTS[place]

    top_four = {p.id for p in placings.values() if p is not None}
    for round_matches in bracket:
        bonus = ROUND_BONUS_POINTS.get(len(round_matches) * 2)
        if bonus is None:
            continue
        for loser in round_losers(round_matches):
            if loser.id not in top_four:
                points[loser.id] = points.get(loser.id, 0) + bonus

    return points


def merge_points(standings: List[ChampionshipStanding], points: Dict) -> List[ChampionshipStanding]:
    """
    Append this competition's points to every standing and re-rank.

    Standings without a result this competition get 0. The sort is stable.
    """
    for standing in standings:
        standing.points_per_competition.append(points.get(standing.id, 0))
    return sorted(standings, key=lambda s: s.total_points, reverse=True)


def finish_competition(state: SessionState) -> SessionState:
    """Fold the finished competition into the standings and return to the season view."""
    if state.phase != Phase.FINISHED:
        raise PhaseError(f"cannot close a competition during {state.phase.value}")

    points = calculate_competition_points(state.competition_participants, state.bracket,
                                          state.third_place_match)
    state.standings = merge_points(state.standings, points)
    state.competitions_held += 1
    state.phase = Phase.CHAMPIONSHIP_VIEW
    logger.info("Competition %d closed, %d participants scored",
                state.competitions_held, len(points))
    return state
