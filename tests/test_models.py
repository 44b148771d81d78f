"""
Unit tests for data models.
"""
import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from season.models import (
    THIRD_PLACE_MATCH_ID,
    Participant,
    Match,
    Bracket,
    ChampionshipStanding,
    Phase,
    SessionState,
)


class TestParticipant:
    """Tests for the Participant class."""

    def test_defaults(self):
        p = Participant(1, 'Alice')
        assert p.score is None
        assert p.seed == 0

    def test_equality_by_id(self):
        assert Participant(1, 'Alice', score=10) == Participant(1, 'Alice', seed=3)
        assert Participant(1, 'Alice') != Participant(2, 'Alice')

    def test_copy_with_changes(self):
        p = Participant(1, 'Alice', score=10)
        seeded = p.copy(seed=2)
        assert seeded.seed == 2
        assert seeded.score == 10
        assert p.seed == 0

    def test_from_dict_none(self):
        assert Participant.from_dict(None) is None


class TestMatch:
    """Tests for the Match class."""

    def test_is_bye(self):
        a, b = Participant(1, 'A'), Participant(2, 'B')
        assert Match(0, 0, 0, a, None).is_bye
        assert Match(0, 0, 0, None, b).is_bye
        assert not Match(0, 0, 0, a, b).is_bye
        assert not Match(0, 0, 0).is_bye

    def test_loser(self):
        a, b = Participant(1, 'A'), Participant(2, 'B')
        match = Match(0, 0, 0, a, b)
        assert match.loser() is None
        match.winner = b
        assert match.loser() is a

    def test_bye_has_no_loser(self):
        a = Participant(1, 'A')
        assert Match(0, 0, 0, a, None, winner=a).loser() is None

    def test_order_by_seed(self):
        a, b = Participant(1, 'A', seed=4), Participant(2, 'B', seed=1)
        match = Match(0, 0, 0, a, b)
        match.order_by_seed()
        assert match.participant1 is b
        assert match.participant2 is a

    def test_order_by_seed_with_empty_slot(self):
        a = Participant(1, 'A', seed=4)
        match = Match(0, 0, 0, None, a)
        match.order_by_seed()
        assert match.participant1 is None

    def test_third_place_flag(self):
        assert Match(THIRD_PLACE_MATCH_ID, -1, 0).is_third_place
        assert not Match(0, 0, 0).is_third_place


class TestBracket:
    """Tests for the Bracket container."""

    def _bracket(self):
        a, b, c = Participant(1, 'A', seed=1), Participant(2, 'B', seed=2), Participant(3, 'C', seed=3)
        return Bracket([
            [Match(0, 0, 0, a, None, winner=a, next_match_id=2), Match(1, 0, 1, b, c, next_match_id=2)],
            [Match(2, 1, 0, a, None)],
        ])

    def test_empty(self):
        bracket = Bracket()
        assert not bracket
        assert bracket.bracket_size == 0
        assert bracket.final_match is None
        assert bracket.semifinal_round is None

    def test_find(self):
        bracket = self._bracket()
        assert bracket.find(1).participant2.id == 3
        assert bracket.find(99) is None

    def test_shape(self):
        bracket = self._bracket()
        assert bracket.bracket_size == 4
        assert len(bracket) == 2
        assert bracket.final_match.id == 2
        assert [m.id for m in bracket.semifinal_round] == [0, 1]

    def test_find_returns_round_match(self):
        """Mutating a found match is visible through the rounds."""
        bracket = self._bracket()
        bracket.find(1).winner = Participant(2, 'B')
        assert bracket.rounds[0][1].winner.id == 2

    def test_list_round_trip(self):
        bracket = Bracket.from_list(self._bracket().to_list())
        assert bracket.find(0).winner.id == 1
        assert bracket.find(1).next_match_id == 2
        assert bracket.final_match.participant2 is None


class TestChampionshipStanding:
    """Tests for the ChampionshipStanding class."""

    def test_total_points(self):
        assert ChampionshipStanding(1, 'A', [10, 0.5, 2]).total_points == 12.5
        assert ChampionshipStanding(1, 'A').total_points == 0

    def test_history_is_copied(self):
        history = [1, 2]
        standing = ChampionshipStanding(1, 'A', history)
        history.append(3)
        assert standing.points_per_competition == [1, 2]


class TestSessionState:
    """Tests for the SessionState aggregate."""

    def test_defaults(self):
        state = SessionState()
        assert state.phase == Phase.CHAMPIONSHIP_VIEW
        assert state.standings == []
        assert not state.bracket
        assert state.third_place_match is None
        assert state.total_competitions is None
        assert state.competitions_held == 0

    def test_phase_serialized_as_string(self):
        data = SessionState(phase=Phase.BRACKET).to_dict()
        assert data['phase'] == 'BRACKET'
        assert SessionState.from_dict(data).phase is Phase.BRACKET

    def test_from_empty_document(self):
        assert SessionState.from_dict(None).phase == Phase.CHAMPIONSHIP_VIEW
        assert SessionState.from_dict({}).competitions_held == 0

    def test_round_trip_keeps_third_place(self):
        a, b = Participant(1, 'A', seed=3), Participant(2, 'B', seed=4)
        state = SessionState(
            phase=Phase.BRACKET,
            standings=[ChampionshipStanding(1, 'A', [5])],
            competition_participants=[a, b],
            third_place_match=Match(THIRD_PLACE_MATCH_ID, -1, 0, a, b),
            total_competitions=4,
            competitions_held=1,
        )
        restored = SessionState.from_dict(state.to_dict())
        assert restored.to_dict() == state.to_dict()
        assert restored.third_place_match.is_third_place

    @pytest.mark.parametrize("phase", list(Phase))
    def test_every_phase_round_trips(self, phase):
        assert SessionState.from_dict(SessionState(phase=phase).to_dict()).phase == phase
