"""
Season lifecycle: roster management, self-registration, qualification and
the transitions between phases.
"""
import logging
import math
import secrets
import time
from datetime import datetime
from typing import Dict, List, Optional

from season.errors import PhaseError, ValidationError
from season.models import Bracket, ChampionshipStanding, Participant, Phase, SessionState

logger = logging.getLogger(__name__)

MIN_COMPETITION_PARTICIPANTS = 2


def generate_admin_secret() -> str:
    return secrets.token_urlsafe(16)


def create_session() -> SessionState:
    """Fresh season in the championship view."""
    return SessionState()


def reset_championship(state: SessionState) -> SessionState:
    """Throw the whole season away."""
    state.phase = Phase.CHAMPIONSHIP_VIEW
    state.standings = []
    state.competition_participants = []
    state.bracket = Bracket()
    state.third_place_match = None
    state.total_competitions = None
    state.competitions_held = 0
    return state


def _normalize_name(name: str) -> str:
    return (name or '').strip().lower()


def _clean_name(name) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("name is required")
    return name.strip()


def _next_participant_id(state: SessionState, registrations: Optional[List[Dict]] = None) -> int:
    """Millisecond timestamp, bumped past any id already in use."""
    used = [s.id for s in state.standings]
    used.extend(r['participant_id'] for r in registrations or [])
    candidate = int(time.time() * 1000)
    if used:
        candidate = max(candidate, max(used) + 1)
    return candidate


def set_total_competitions(state: SessionState, count) -> SessionState:
    """Planned number of competitions in the season."""
    if isinstance(count, bool) or not isinstance(count, int) or count < 1:
        raise ValidationError("season length must be a positive whole number")
    state.total_competitions = count
    return state


def add_participant(state: SessionState, name: str) -> ChampionshipStanding:
    """Add a participant to the season roster (admin)."""
    name = _clean_name(name)
    if any(_normalize_name(s.name) == _normalize_name(name) for s in state.standings):
        raise ValidationError(f"'{name}' is already in the standings")

    standing = ChampionshipStanding(
        id=_next_participant_id(state),
        name=name,
        points_per_competition=[0] * state.competitions_held,
    )
    state.standings.append(standing)
    return standing


def remove_participant(state: SessionState, participant_id) -> SessionState:
    """Drop a participant from the season roster. Unknown ids are ignored."""
    state.standings = [s for s in state.standings if s.id != participant_id]
    return state


def register_participant(state: SessionState, name: str, registrations: List[Dict]) -> Dict:
    """
    Public self-registration.

    Checks for the name among current standings and registration records
    that have not been merged yet, then appends both a standing and a
    registration record. This is a best-effort guard: two registrations
    racing each other can both get through.
    """
    name = _clean_name(name)
    wanted = _normalize_name(name)
    if any(_normalize_name(s.name) == wanted for s in state.standings):
        raise ValidationError(f"'{name}' is already registered")
    if any(_normalize_name(r['name']) == wanted for r in registrations if not r.get('processed')):
        raise ValidationError(f"'{name}' is already registered")

    participant_id = _next_participant_id(state, registrations)
    record = {
        'participant_id': participant_id,
        'name': name,
        'created_at': datetime.now().isoformat(),
        'processed': False,
    }
    registrations.append(record)
    state.standings.append(ChampionshipStanding(
        id=participant_id,
        name=name,
        points_per_competition=[0] * state.competitions_held,
    ))
    logger.info("Registered participant %s (%s)", name, participant_id)
    return record


def mark_registrations_processed(state: SessionState, registrations: List[Dict]) -> List[Dict]:
    """Flag records whose participant is now part of the standings."""
    standing_ids = {s.id for s in state.standings}
    for record in registrations:
        if record['participant_id'] in standing_ids:
            record['processed'] = True
    return registrations


def start_competition(state: SessionState) -> SessionState:
    """Snapshot the roster into a new competition and open qualification."""
    if state.phase != Phase.CHAMPIONSHIP_VIEW:
        raise PhaseError(f"cannot start a competition during {state.phase.value}")
    if len(state.standings) < MIN_COMPETITION_PARTICIPANTS:
        raise ValidationError(
            f"at least {MIN_COMPETITION_PARTICIPANTS} participants are needed to start a competition")

    state.competition_participants = [
        Participant(id=s.id, name=s.name, score=None, seed=0) for s in state.standings
    ]
    state.bracket = Bracket()
    state.third_place_match = None
    state.phase = Phase.QUALIFICATION
    return state


def record_score(state: SessionState, participant_id, score) -> Participant:
    """Enter (or clear, with None) a qualification score."""
    if state.phase != Phase.QUALIFICATION:
        raise PhaseError(f"cannot record scores during {state.phase.value}")
    if score is not None:
        if isinstance(score, bool) or not isinstance(score, (int, float)):
            raise ValidationError("score must be a number")
        if isinstance(score, float) and not math.isfinite(score):
            raise ValidationError("score must be a finite number")
        if score < 0:
            raise ValidationError("score cannot be negative")

    for participant in state.competition_participants:
        if participant.id == participant_id:
            participant.score = score
            return participant
    raise ValidationError(f"participant {participant_id} is not in this competition")


def qualification_leaderboard(participants: List[Participant]) -> List[Participant]:
    """Scored participants, best first."""
    scored = [p for p in participants if p.score is not None]
    return sorted(scored, key=lambda p: p.score, reverse=True)
