"""
YAML-backed session persistence and change notification.

One document per session under <data_dir>/sessions/. Writes are full-state
overwrites guarded by a file lock; readers poll the document's mtime.
"""
import hmac
import logging
import os
import re
import threading
import time
from datetime import datetime
from typing import Dict, Iterator, List, Optional

import yaml
from filelock import FileLock

from season.models import SessionState
from season.session import create_session, generate_admin_secret

logger = logging.getLogger(__name__)

SESSION_ID_PATTERN = re.compile(r'^[A-Za-z0-9][A-Za-z0-9_-]*$')


class SessionNotFound(LookupError):
    pass


class SessionStore:
    def __init__(self, data_dir: str, lock_timeout: float = 10):
        self.data_dir = data_dir
        self.sessions_dir = os.path.join(data_dir, 'sessions')
        self.lock_timeout = lock_timeout

    def _path(self, session_id: str) -> str:
        if not session_id or not SESSION_ID_PATTERN.match(session_id):
            raise SessionNotFound(session_id)
        return os.path.join(self.sessions_dir, f'{session_id}.yaml')

    def _lock(self, session_id: str) -> FileLock:
        return FileLock(self._path(session_id) + '.lock', timeout=self.lock_timeout)

    def _read(self, session_id: str) -> Optional[Dict]:
        path = self._path(session_id)
        if not os.path.exists(path):
            return None
        with open(path, 'r', encoding='utf-8') as f:
            return yaml.safe_load(f) or None

    def _write(self, session_id: str, document: Dict):
        os.makedirs(self.sessions_dir, exist_ok=True)
        path = self._path(session_id)
        tmp_path = path + '.tmp'
        with open(tmp_path, 'w', encoding='utf-8') as f:
            yaml.safe_dump(document, f, default_flow_style=False, sort_keys=False)
        os.replace(tmp_path, path)

    def exists(self, session_id: str) -> bool:
        try:
            return os.path.exists(self._path(session_id))
        except SessionNotFound:
            return False

    def create(self, session_id: str) -> Dict:
        """Create a session, or return the existing one's credentials."""
        os.makedirs(self.sessions_dir, exist_ok=True)
        with self._lock(session_id):
            document = self._read(session_id)
            if document:
                return {'session_id': session_id, 'admin_secret': document['admin_secret']}

            now = datetime.now().isoformat()
            document = {
                'session_id': session_id,
                'admin_secret': generate_admin_secret(),
                'created_at': now,
                'updated_at': now,
                'state': create_session().to_dict(),
                'registrations': [],
            }
            self._write(session_id, document)
        logger.info("Created session %s", session_id)
        return {'session_id': session_id, 'admin_secret': document['admin_secret']}

    def load(self, session_id: str) -> Optional[SessionState]:
        document = self._read(session_id)
        if document is None:
            return None
        return SessionState.from_dict(document.get('state'))

    def save(self, session_id: str, state: SessionState):
        """Overwrite the stored state. Saving the same state twice is harmless."""
        os.makedirs(self.sessions_dir, exist_ok=True)
        with self._lock(session_id):
            document = self._read(session_id)
            if document is None:
                raise SessionNotFound(session_id)
            document['state'] = state.to_dict()
            document['updated_at'] = datetime.now().isoformat()
            self._write(session_id, document)

    def verify_secret(self, session_id: str, secret: Optional[str]) -> bool:
        document = self._read(session_id)
        if document is None or not secret:
            return False
        return hmac.compare_digest(str(document.get('admin_secret', '')), str(secret))

    def load_registrations(self, session_id: str) -> List[Dict]:
        document = self._read(session_id)
        if document is None:
            raise SessionNotFound(session_id)
        return document.get('registrations') or []

    def save_registrations(self, session_id: str, registrations: List[Dict],
                           state: Optional[SessionState] = None):
        """Store registration records, together with the state they changed."""
        os.makedirs(self.sessions_dir, exist_ok=True)
        with self._lock(session_id):
            document = self._read(session_id)
            if document is None:
                raise SessionNotFound(session_id)
            document['registrations'] = registrations
            if state is not None:
                document['state'] = state.to_dict()
            document['updated_at'] = datetime.now().isoformat()
            self._write(session_id, document)

    def mtime(self, session_id: str) -> float:
        path = self._path(session_id)
        return os.path.getmtime(path) if os.path.exists(path) else 0.0

    def subscribe(self, session_id: str, poll_interval: float = 3,
                  heartbeat_interval: Optional[float] = None) -> Iterator[Optional[SessionState]]:
        """
        Yield the current state, then a fresh state every time it changes.

        With a heartbeat interval, None is yielded whenever that long passes
        without a change. Read-only; never returns on its own.
        """
        last_mtime = None
        idle = 0.0
        while True:
            current_mtime = self.mtime(session_id)
            if current_mtime != last_mtime:
                last_mtime = current_mtime
                idle = 0.0
                state = self.load(session_id)
                if state is not None:
                    yield state
            elif heartbeat_interval is not None and idle >= heartbeat_interval:
                idle = 0.0
                yield None
            time.sleep(poll_interval)
            idle += poll_interval


class DebouncedSaver:
    """
    Coalesce rapid state changes into a single write.

    The first change is written immediately, later ones wait `delay` seconds
    for the burst to settle. Write failures are logged and dropped; the
    in-memory state stays authoritative.
    """

    def __init__(self, store: SessionStore, session_id: str, delay: float = 0.5):
        self.store = store
        self.session_id = session_id
        self.delay = delay
        self._timer = None
        self._pending = None
        self._synced = False
        self._lock = threading.Lock()

    def schedule(self, state: SessionState):
        snapshot = SessionState.from_dict(state.to_dict())
        with self._lock:
            if not self._synced or self.delay <= 0:
                self._synced = True
                self._pending = None
                immediate = True
            else:
                immediate = False
                self._pending = snapshot
                if self._timer is not None:
                    self._timer.cancel()
                self._timer = threading.Timer(self.delay, self.flush)
                self._timer.daemon = True
                self._timer.start()
        if immediate:
            self._write(snapshot)

    def flush(self):
        with self._lock:
            snapshot, self._pending = self._pending, None
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
        if snapshot is not None:
            self._write(snapshot)

    def cancel(self):
        """Drop any pending write. The next change is written immediately."""
        with self._lock:
            self._pending = None
            self._synced = False
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def _write(self, state: SessionState):
        try:
            self.store.save(self.session_id, state)
        except Exception as e:
            logger.warning('Failed to save session %s: %s', self.session_id, e)
