"""
Shared pytest fixtures for season tournament tests.

Running tests:
    pytest tests/
"""
import pytest
import sys
import os

# Add src directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from season.models import Participant, ChampionshipStanding, Phase, SessionState
from season.elimination import start_bracket
from season.resolver import set_winner


def _better_seed(match):
    return min((match.participant1, match.participant2), key=lambda p: p.seed)


@pytest.fixture
def make_participants():
    """Participants P1..Pn with the given scores; ids run from 1."""
    def _make(scores):
        return [Participant(id=i, name=f"P{i}", score=score)
                for i, score in enumerate(scores, start=1)]
    return _make


@pytest.fixture
def make_bracket_state(make_participants):
    """Session in the bracket phase, built from the given qualification scores."""
    def _make(scores):
        participants = make_participants(scores)
        standings = [ChampionshipStanding(id=p.id, name=p.name) for p in participants]
        state = SessionState(phase=Phase.QUALIFICATION, standings=standings,
                             competition_participants=participants)
        return start_bracket(state)
    return _make


@pytest.fixture
def play_out():
    """Decide every open match until the tournament finishes (better seed wins by default)."""
    def _play(state, pick=None):
        pick = pick or _better_seed
        while state.phase == Phase.BRACKET:
            open_matches = [m for r in state.bracket for m in r
                            if m.winner is None and m.participant1 and m.participant2]
            third_place = state.third_place_match
            if third_place is not None and third_place.winner is None:
                open_matches.append(third_place)
            if not open_matches:
                break
            match = open_matches[0]
            set_winner(state, match.id, pick(match))
        return state
    return _play
