"""
Flask web application for the season tournament manager.
"""
import os
import re
import json
import time
import logging
import threading
from datetime import datetime
from functools import wraps
from flask import Flask, request, jsonify, Response, stream_with_context, g, abort
from season.errors import ValidationError
from season.models import Phase, SessionState
from season.store import SessionStore, SessionNotFound, DebouncedSaver
from season.session import (set_total_competitions, add_participant, remove_participant,
                            register_participant, mark_registrations_processed,
                            start_competition, record_score, reset_championship,
                            qualification_leaderboard)
from season.elimination import start_bracket, get_round_name
from season.resolver import set_winner, final_placings
from season.points import finish_competition

app = Flask(__name__)

BASE_DIR = os.path.dirname(os.path.dirname(__file__))
DATA_DIR = os.environ.get('SEASON_DATA_DIR', os.path.join(BASE_DIR, 'data'))
SAVE_DEBOUNCE_SECONDS = float(os.environ.get('SAVE_DEBOUNCE_SECONDS', '0.5'))
LIVE_POLL_SECONDS = float(os.environ.get('LIVE_POLL_SECONDS', '3'))
LIVE_HEARTBEAT_SECONDS = 15
ADMIN_SECRET_HEADER = 'X-Admin-Secret'

logging.basicConfig(level=os.environ.get('LOG_LEVEL', 'INFO'))

# In-memory session states are authoritative; the store is written behind them.
_states = {}
_savers = {}
_state_lock = threading.RLock()


def get_store() -> SessionStore:
    """Store rooted at the configured data directory."""
    return SessionStore(DATA_DIR)


def _get_state(session_id: str) -> SessionState:
    """Cached state for a session, loaded from the store on first use."""
    key = (DATA_DIR, session_id)
    state = _states.get(key)
    if state is None:
        try:
            state = get_store().load(session_id)
        except SessionNotFound:
            state = None
        if state is None:
            abort(404)
        _states[key] = state
    return state


def _commit(session_id: str, state: SessionState):
    """Queue the state for a debounced write."""
    key = (DATA_DIR, session_id)
    saver = _savers.get(key)
    if saver is None or saver.delay != SAVE_DEBOUNCE_SECONDS:
        saver = DebouncedSaver(get_store(), session_id, delay=SAVE_DEBOUNCE_SECONDS)
        _savers[key] = saver
    saver.schedule(state)


def drop_cached_states():
    """Flush pending writes and forget every cached state."""
    with _state_lock:
        for key in list(_states.keys() | _savers.keys()):
            _states.pop(key, None)
            saver = _savers.pop(key, None)
            if saver is not None:
                saver.flush()


def _public_view(state: SessionState) -> dict:
    """State as spectators see it, plus derived leaderboards."""
    data = state.to_dict()
    data['round_names'] = [get_round_name(len(r) * 2) for r in state.bracket]
    data['qualification'] = [p.to_dict() for p in qualification_leaderboard(state.competition_participants)]
    data['standings_totals'] = {str(s.id): s.total_points for s in state.standings}
    placings = final_placings(state.bracket, state.third_place_match)
    data['placings'] = {k: (p.to_dict() if p else None) for k, p in placings.items()}
    return data


def require_admin_secret(f):
    """Require the session's admin secret in the X-Admin-Secret header."""
    @wraps(f)
    def decorated_function(session_id, *args, **kwargs):
        store = get_store()
        if not store.exists(session_id):
            return jsonify({'error': 'Session not found'}), 404
        provided = request.headers.get(ADMIN_SECRET_HEADER, '')
        if not store.verify_secret(session_id, provided):
            app.logger.warning(f'Rejected admin request for session {session_id}')
            return jsonify({'error': 'Invalid admin secret'}), 401
        with _state_lock:
            g.state = _get_state(session_id)
            response = f(session_id, *args, **kwargs)
        return response
    return decorated_function


@app.errorhandler(ValidationError)
def handle_validation_error(e):
    return jsonify({'error': str(e)}), 400


@app.errorhandler(404)
def handle_not_found(e):
    return jsonify({'error': 'Not found'}), 404


def _json_body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _parse_match_id(raw: str):
    """Bracket match ids are integers; anything else is a tag like the third-place id."""
    return int(raw) if re.fullmatch(r'\d+', raw) else raw


@app.route('/api/sessions', methods=['POST'])
def api_create_session():
    """Create a season session and return its admin credentials."""
    data = _json_body()
    session_id = data.get('session_id') or f"season-{int(time.time() * 1000)}-{os.urandom(3).hex()}"
    try:
        credentials = get_store().create(session_id)
    except SessionNotFound:
        return jsonify({'error': 'Invalid session id'}), 400
    return jsonify(credentials), 201


@app.route('/api/sessions/<session_id>', methods=['GET'])
def api_get_session(session_id):
    """Public read-only state (never includes the admin secret)."""
    with _state_lock:
        state = _get_state(session_id)
        return jsonify(_public_view(state))


@app.route('/api/sessions/<session_id>/stream')
def api_session_stream(session_id):
    """Server-Sent Events stream carrying the state whenever it changes."""
    store = get_store()
    if not store.exists(session_id):
        abort(404)
    poll_seconds = LIVE_POLL_SECONDS

    def generate():
        """Yield SSE events from the store's change feed."""
        yield "event: connected\ndata: ok\n\n"
        for state in store.subscribe(session_id, poll_interval=poll_seconds,
                                     heartbeat_interval=LIVE_HEARTBEAT_SECONDS):
            if state is None:
                yield ": heartbeat\n\n"
            else:
                yield f"event: update\ndata: {json.dumps(_public_view(state))}\n\n"

    return Response(
        stream_with_context(generate()),
        mimetype='text/event-stream',
        headers={
            'Cache-Control': 'no-cache',
            'X-Accel-Buffering': 'no',
        },
    )


@app.route('/api/sessions/<session_id>/register', methods=['POST'])
def api_register(session_id):
    """Public self-registration for the season."""
    store = get_store()
    if not store.exists(session_id):
        return jsonify({'error': 'Session not found'}), 404
    name = _json_body().get('name', '')

    with _state_lock:
        state = _get_state(session_id)
        registrations = store.load_registrations(session_id)
        record = register_participant(state, name, registrations)
        store.save_registrations(session_id, registrations)
        _commit(session_id, state)

    return jsonify({'participant_id': record['participant_id'], 'name': record['name']}), 201


@app.route('/api/sessions/<session_id>/season-length', methods=['POST'])
@require_admin_secret
def api_set_season_length(session_id):
    """Set how many competitions the season will have."""
    set_total_competitions(g.state, _json_body().get('total_competitions'))
    _commit(session_id, g.state)
    return jsonify({'success': True, 'total_competitions': g.state.total_competitions})


@app.route('/api/sessions/<session_id>/participants', methods=['POST'])
@require_admin_secret
def api_add_participant(session_id):
    """Add a participant to the season roster."""
    standing = add_participant(g.state, _json_body().get('name', ''))
    _commit(session_id, g.state)
    return jsonify(standing.to_dict()), 201


@app.route('/api/sessions/<session_id>/participants/<int:participant_id>', methods=['DELETE'])
@require_admin_secret
def api_remove_participant(session_id, participant_id):
    """Remove a participant from the season roster."""
    remove_participant(g.state, participant_id)
    _commit(session_id, g.state)
    return jsonify({'success': True})


@app.route('/api/sessions/<session_id>/competition/start', methods=['POST'])
@require_admin_secret
def api_start_competition(session_id):
    """Open qualification for a new competition."""
    start_competition(g.state)
    store = get_store()
    registrations = mark_registrations_processed(g.state, store.load_registrations(session_id))
    store.save_registrations(session_id, registrations)
    _commit(session_id, g.state)
    return jsonify({'success': True, 'phase': g.state.phase.value})


@app.route('/api/sessions/<session_id>/competition/score', methods=['POST'])
@require_admin_secret
def api_record_score(session_id):
    """Record a qualification score."""
    data = _json_body()
    participant = record_score(g.state, data.get('participant_id'), data.get('score'))
    _commit(session_id, g.state)
    return jsonify(participant.to_dict())


@app.route('/api/sessions/<session_id>/bracket', methods=['POST'])
@require_admin_secret
def api_generate_bracket(session_id):
    """Generate the elimination bracket from qualification scores."""
    start_bracket(g.state)
    _commit(session_id, g.state)
    app.logger.info(f'Bracket generated for {session_id}: size {g.state.bracket.bracket_size}')
    return jsonify({'success': True, 'bracket': g.state.bracket.to_list()})


@app.route('/api/sessions/<session_id>/matches/<match_id>/winner', methods=['POST'])
@require_admin_secret
def api_set_winner(session_id, match_id):
    """Record a match winner and advance them."""
    winner_id = _json_body().get('winner_id')
    if winner_id is None:
        return jsonify({'error': 'Missing winner_id'}), 400
    set_winner(g.state, _parse_match_id(match_id), winner_id)
    _commit(session_id, g.state)
    return jsonify({
        'success': True,
        'phase': g.state.phase.value,
        'third_place_match': g.state.third_place_match.to_dict() if g.state.third_place_match else None,
    })


@app.route('/api/sessions/<session_id>/competition/finish', methods=['POST'])
@require_admin_secret
def api_finish_competition(session_id):
    """Award season points and return to the championship view."""
    finish_competition(g.state)
    _commit(session_id, g.state)
    return jsonify({
        'success': True,
        'competitions_held': g.state.competitions_held,
        'standings': [s.to_dict() for s in g.state.standings],
    })


@app.route('/api/sessions/<session_id>/reset', methods=['POST'])
@require_admin_secret
def api_reset(session_id):
    """Reset the whole season."""
    reset_championship(g.state)
    store = get_store()
    store.save_registrations(session_id, [])
    saver = _savers.get((DATA_DIR, session_id))
    if saver is not None:
        saver.cancel()
    _commit(session_id, g.state)
    app.logger.info(f'Season {session_id} reset at {datetime.now().isoformat()}')
    return jsonify({'success': True, 'phase': Phase.CHAMPIONSHIP_VIEW.value})


if __name__ == '__main__':
    app.run(debug=True, port=5000)
