# Command line runner: play one competition of a season from a YAML file of scores

import argparse
import random
import sys
import yaml
from season.errors import ValidationError
from season.models import Phase, SessionState
from season.session import add_participant, start_competition, record_score
from season.elimination import start_bracket, get_round_name
from season.resolver import set_winner, final_placings
from season.points import finish_competition


def load_scores(file_path):
    """Read a mapping of participant name -> qualification score."""
    with open(file_path, mode='r', encoding='utf-8') as file:
        data = yaml.safe_load(file) or {}
    if not isinstance(data, dict):
        raise ValidationError(f"{file_path} must map names to scores")
    return data


def play_competition(state, scores, rng=None):
    """Run qualification and the whole bracket. Better seed wins unless rng is given."""
    start_competition(state)
    by_name = {p.name: p for p in state.competition_participants}
    for name, score in scores.items():
        record_score(state, by_name[name.strip()].id, score)
    start_bracket(state)

    while state.phase == Phase.BRACKET:
        open_matches = [m for r in state.bracket for m in r
                        if m.winner is None and m.participant1 and m.participant2]
        if state.third_place_match and state.third_place_match.winner is None:
            open_matches.append(state.third_place_match)
        if not open_matches:
            break
        match = open_matches[0]
        if rng is not None:
            winner = rng.choice([match.participant1, match.participant2])
        else:
            winner = match.participant1
        set_winner(state, match.id, winner)
    return state


def print_bracket(state):
    for round_matches in state.bracket:
        print(f"\n{get_round_name(len(round_matches) * 2)}")
        for match in round_matches:
            p1 = match.participant1.name if match.participant1 else 'BYE'
            p2 = match.participant2.name if match.participant2 else 'BYE'
            winner = match.winner.name if match.winner else '-'
            print(f"  M{match.id}: {p1} vs {p2} -> {winner}")
    if state.third_place_match:
        match = state.third_place_match
        p2 = match.participant2.name if match.participant2 else '-'
        winner = match.winner.name if match.winner else '-'
        print(f"\nThird place: {match.participant1.name} vs {p2} -> {winner}")


def main(argv=None):
    parser = argparse.ArgumentParser(description='Play one competition from qualification scores.')
    parser.add_argument('scores', help='YAML file mapping participant names to scores')
    parser.add_argument('--random-seed', type=int, default=None,
                        help='Pick match winners at random with this seed (default: better seed wins)')
    args = parser.parse_args(argv)

    try:
        scores = load_scores(args.scores)
        state = SessionState()
        for name in scores:
            add_participant(state, name)
        rng = random.Random(args.random_seed) if args.random_seed is not None else None
        play_competition(state, scores, rng)
    except ValidationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print("\n--- Bracket ---")
    print_bracket(state)

    placings = final_placings(state.bracket, state.third_place_match)
    print("\n--- Podium ---")
    for place, participant in placings.items():
        if participant:
            print(f"  {place}: {participant.name}")

    finish_competition(state)
    print("\n--- Standings ---")
    for position, standing in enumerate(state.standings, start=1):
        print(f"  {position}. {standing.name}: {standing.total_points}")
    return 0


if __name__ == '__main__':
    sys.exit(main())
