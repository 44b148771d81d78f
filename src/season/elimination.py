"""
Single elimination bracket generation from ranked qualifiers.
"""
import logging
import math
from typing import List

from season.errors import PhaseError, ValidationError
from season.models import Bracket, Match, Participant, Phase, SessionState

logger = logging.getLogger(__name__)

MIN_QUALIFIERS = 2


def get_round_name(participants_in_round: int) -> str:
    """Get the name of a round based on number of participants."""
    if participants_in_round == 2:
        return "Final"
    elif participants_in_round == 4:
        return "Semifinal"
    elif participants_in_round == 8:
        return "Quarterfinal"
    else:
        return f"Round of {participants_in_round}"


def calculate_bracket_size(num_participants: int) -> int:
    """Calculate the bracket size (next power of 2)."""
    if num_participants <= 0:
        return 0
    return 2 ** math.ceil(math.log2(num_participants))


def calculate_byes(num_participants: int) -> int:
    """Calculate number of byes needed."""
    return calculate_bracket_size(num_participants) - num_participants


def generate_bracket_order(bracket_size: int) -> List[int]:
    """
    Generate the standard tournament bracket order.
    This ensures that if all higher seeds win, they meet in the proper rounds.

    For 8 participants: [1, 8, 4, 5, 2, 7, 3, 6]
    This gives matchups: 1v8, 4v5, 2v7, 3v6
    Winners: 1v4 side, 2v3 side
    Final: 1v2 (if chalk)
    """
    if bracket_size <= 1:
        return [1]

    # Each doubling pairs every seed with its complement at the new size
    order = [1]
    while len(order) < bracket_size:
        current_size = len(order) * 2
        next_order = []
        for seed in order:
            next_order.extend([seed, current_size + 1 - seed])
        order = next_order

    return order


def rank_qualifiers(participants: List[Participant]) -> List[Participant]:
    """
    Return copies of the participants that qualified, seeded by score.

    A participant qualifies with a score above zero. Sorting is stable, so
    equal scores keep their input order.
    """
    qualified = [p for p in participants if p.score is not None and p.score > 0]
    qualified = sorted(qualified, key=lambda p: p.score, reverse=True)
    return [p.copy(seed=rank) for rank, p in enumerate(qualified, start=1)]


def build_bracket(participants: List[Participant]) -> Bracket:
    """
    Build a fully linked bracket from qualification results.

    Round 0 byes are resolved immediately and their winners already sit in
    round 1. Raises ValidationError with fewer than two qualifiers.
    """
    qualifiers = rank_qualifiers(participants)
    if len(qualifiers) < MIN_QUALIFIERS:
        raise ValidationError(
            f"insufficient qualifiers: at least {MIN_QUALIFIERS} participants "
            f"need a score greater than 0 (got {len(qualifiers)})")

    bracket_size = calculate_bracket_size(len(qualifiers))
    total_rounds = int(math.log2(bracket_size))
    seed_to_participant = {p.seed: p for p in qualifiers}
    bracket_order = generate_bracket_order(bracket_size)

    rounds = []
    match_id = 0

    first_round = []
    for i in range(0, len(bracket_order), 2):
        participant1 = seed_to_participant.get(bracket_order[i])
        participant2 = seed_to_participant.get(bracket_order[i + 1])

        match = Match(match_id, 0, i // 2, participant1, participant2)
        # Bye - the present participant advances without playing
        if match.is_bye:
            match.winner = participant1 or participant2

        first_round.append(match)
        match_id += 1
    rounds.append(first_round)

    for round_index in range(1, total_rounds):
        previous_round = rounds[round_index - 1]
        current_round = []
        for match_index in range(len(previous_round) // 2):
            match = Match(match_id, round_index, match_index,
                          previous_round[match_index * 2].winner,
                          previous_round[match_index * 2 + 1].winner)
            match.order_by_seed()
            current_round.append(match)
            match_id += 1

        for i, previous_match in enumerate(previous_round):
            previous_match.next_match_id = current_round[i // 2].id
        rounds.append(current_round)

    logger.debug("Built bracket of size %d for %d qualifiers (%d byes)",
                 bracket_size, len(qualifiers), calculate_byes(len(qualifiers)))
    return Bracket(rounds)


def start_bracket(state: SessionState) -> SessionState:
    """
    Generate the bracket for the active competition.

    Seeds are written back onto the competition participants. Any previous
    bracket and third-place match are discarded.
    """
    if state.phase != Phase.QUALIFICATION:
        raise PhaseError(f"cannot generate a bracket during {state.phase.value}")

    bracket = build_bracket(state.competition_participants)

    seeds = {p.id: p.seed for r in bracket for m in r
             for p in (m.participant1, m.participant2) if p is not None}
    for participant in state.competition_participants:
        participant.seed = seeds.get(participant.id, 0)

    state.bracket = bracket
    state.third_place_match = None
    state.phase = Phase.BRACKET
    return state
