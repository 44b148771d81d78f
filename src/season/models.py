"""
Data models for a season: participants, matches, brackets, standings and
the session state that ties them together.
"""
from enum import Enum
from typing import Dict, List, Optional, Union

# Tag for the synthesized third-place match. Regular bracket matches use
# integer ids, so a string tag can never collide with them.
THIRD_PLACE_MATCH_ID = 'third_place'

MatchId = Union[int, str]


class Phase(str, Enum):
    CHAMPIONSHIP_VIEW = 'CHAMPIONSHIP_VIEW'
    QUALIFICATION = 'QUALIFICATION'
    BRACKET = 'BRACKET'
    FINISHED = 'FINISHED'


class Participant:
    def __init__(self, id, name, score=None, seed=0):
        self.id = id
        self.name = name
        self.score = score  # None until qualification scoring
        self.seed = seed  # 0 = unseeded

    def copy(self, **changes) -> 'Participant':
        data = {'id': self.id, 'name': self.name, 'score': self.score, 'seed': self.seed}
        data.update(changes)
        return Participant(**data)

    def to_dict(self) -> Dict:
        return {'id': self.id, 'name': self.name, 'score': self.score, 'seed': self.seed}

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> Optional['Participant']:
        if data is None:
            return None
        return cls(id=data['id'], name=data['name'], score=data.get('score'), seed=data.get('seed', 0))

    def __eq__(self, other):
        if not isinstance(other, Participant):
            return NotImplemented
        return self.id == other.id

    def __hash__(self):
        return hash(self.id)

    def __repr__(self):
        return f"Participant(id={self.id}, name={self.name}, score={self.score}, seed={self.seed})"


class Match:
    def __init__(self, id: MatchId, round_index: int, match_index: int,
                 participant1: Optional[Participant] = None,
                 participant2: Optional[Participant] = None,
                 winner: Optional[Participant] = None,
                 next_match_id: Optional[MatchId] = None):
        self.id = id
        self.round_index = round_index  # -1 for the third-place match
        self.match_index = match_index
        self.participant1 = participant1
        self.participant2 = participant2
        self.winner = winner
        self.next_match_id = next_match_id

    @property
    def is_bye(self) -> bool:
        """One slot filled, the other empty."""
        return (self.participant1 is None) != (self.participant2 is None)

    @property
    def is_third_place(self) -> bool:
        return self.id == THIRD_PLACE_MATCH_ID

    def loser(self) -> Optional[Participant]:
        """The slot participant that did not win, or None if there is none."""
        if self.winner is None or self.participant1 is None or self.participant2 is None:
            return None
        if self.winner.id == self.participant1.id:
            return self.participant2
        return self.participant1

    def order_by_seed(self):
        """Put the better (numerically lower) seed in slot 1."""
        if (self.participant1 is not None and self.participant2 is not None
                and self.participant1.seed > self.participant2.seed):
            self.participant1, self.participant2 = self.participant2, self.participant1

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'round_index': self.round_index,
            'match_index': self.match_index,
            'participant1': self.participant1.to_dict() if self.participant1 else None,
            'participant2': self.participant2.to_dict() if self.participant2 else None,
            'winner': self.winner.to_dict() if self.winner else None,
            'next_match_id': self.next_match_id,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> Optional['Match']:
        if data is None:
            return None
        return cls(
            id=data['id'],
            round_index=data['round_index'],
            match_index=data['match_index'],
            participant1=Participant.from_dict(data.get('participant1')),
            participant2=Participant.from_dict(data.get('participant2')),
            winner=Participant.from_dict(data.get('winner')),
            next_match_id=data.get('next_match_id'),
        )

    def __repr__(self):
        return (f"Match(id={self.id}, round={self.round_index}, index={self.match_index}, "
                f"p1={self.participant1 and self.participant1.name}, "
                f"p2={self.participant2 and self.participant2.name}, "
                f"winner={self.winner and self.winner.name})")


class Bracket:
    """
    Rounds of matches plus an id index over all of them.

    Matches are mutated in place through the index; the round lists only
    fix display order.
    """

    def __init__(self, rounds: Optional[List[List[Match]]] = None):
        self.rounds = rounds if rounds else []
        self._matches = {m.id: m for r in self.rounds for m in r}

    def find(self, match_id: MatchId) -> Optional[Match]:
        return self._matches.get(match_id)

    @property
    def bracket_size(self) -> int:
        if not self.rounds:
            return 0
        return len(self.rounds[0]) * 2

    @property
    def final_match(self) -> Optional[Match]:
        if not self.rounds:
            return None
        return self.rounds[-1][0]

    @property
    def semifinal_round(self) -> Optional[List[Match]]:
        """Second-to-last round, or None when the final is the only round."""
        if len(self.rounds) < 2:
            return None
        return self.rounds[-2]

    def __iter__(self):
        return iter(self.rounds)

    def __len__(self):
        return len(self.rounds)

    def __bool__(self):
        return bool(self.rounds)

    def to_list(self) -> List[List[Dict]]:
        return [[m.to_dict() for m in r] for r in self.rounds]

    @classmethod
    def from_list(cls, data: Optional[List[List[Dict]]]) -> 'Bracket':
        return cls([[Match.from_dict(m) for m in r] for r in (data or [])])

    def __repr__(self):
        return f"Bracket(size={self.bracket_size}, rounds={len(self.rounds)})"


class ChampionshipStanding:
    def __init__(self, id, name, points_per_competition=None):
        self.id = id
        self.name = name
        # One entry per completed competition, in calendar order
        self.points_per_competition = list(points_per_competition) if points_per_competition else []

    @property
    def total_points(self):
        return sum(self.points_per_competition)

    def to_dict(self) -> Dict:
        return {'id': self.id, 'name': self.name,
                'points_per_competition': list(self.points_per_competition)}

    @classmethod
    def from_dict(cls, data: Dict) -> 'ChampionshipStanding':
        return cls(id=data['id'], name=data['name'],
                   points_per_competition=data.get('points_per_competition', []))

    def __repr__(self):
        return f"ChampionshipStanding(id={self.id}, name={self.name}, points={self.points_per_competition})"


class SessionState:
    """Everything one admin session owns. Passed explicitly into every operation."""

    def __init__(self, phase: Phase = Phase.CHAMPIONSHIP_VIEW,
                 standings: Optional[List[ChampionshipStanding]] = None,
                 competition_participants: Optional[List[Participant]] = None,
                 bracket: Optional[Bracket] = None,
                 third_place_match: Optional[Match] = None,
                 total_competitions: Optional[int] = None,
                 competitions_held: int = 0):
        self.phase = phase
        self.standings = standings if standings else []
        self.competition_participants = competition_participants if competition_participants else []
        self.bracket = bracket if bracket is not None else Bracket()
        self.third_place_match = third_place_match
        self.total_competitions = total_competitions
        self.competitions_held = competitions_held

    def to_dict(self) -> Dict:
        return {
            'phase': self.phase.value,
            'standings': [s.to_dict() for s in self.standings],
            'competition_participants': [p.to_dict() for p in self.competition_participants],
            'bracket': self.bracket.to_list(),
            'third_place_match': self.third_place_match.to_dict() if self.third_place_match else None,
            'total_competitions': self.total_competitions,
            'competitions_held': self.competitions_held,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> 'SessionState':
        if not data:
            return cls()
        return cls(
            phase=Phase(data.get('phase', Phase.CHAMPIONSHIP_VIEW.value)),
            standings=[ChampionshipStanding.from_dict(s) for s in data.get('standings') or []],
            competition_participants=[Participant.from_dict(p) for p in data.get('competition_participants') or []],
            bracket=Bracket.from_list(data.get('bracket')),
            third_place_match=Match.from_dict(data.get('third_place_match')),
            total_competitions=data.get('total_competitions'),
            competitions_held=data.get('competitions_held', 0),
        )

    def __repr__(self):
        return (f"SessionState(phase={self.phase.value}, standings={len(self.standings)}, "
                f"competitions_held={self.competitions_held})")
