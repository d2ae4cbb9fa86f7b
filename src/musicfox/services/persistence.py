"""Session state on disk: the last play queue and the chosen play mode."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from musicfox.config.paths import SECURE_FILE_MODE, SESSION_STATE_FILE
from musicfox.core.models import PlayMode, QueueSnapshot

logger = logging.getLogger(__name__)

# Keep the state file a reasonable size.
_MAX_SAVED_TRACKS = 500


class SessionStore:
    """JSON-file implementation of the session's persistence hooks.

    Read or write failures are logged and otherwise ignored; losing the
    resume state must never interrupt playback.
    """

    def __init__(self, path: Path = SESSION_STATE_FILE) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> dict[str, Any]:
        try:
            if self._path.exists():
                state = json.loads(self._path.read_text())
                if isinstance(state, dict):
                    return state
        except (OSError, ValueError):
            logger.debug("Could not read session state", exc_info=True)
        return {}

    def _update(self, **values: Any) -> None:
        state = self._read()
        state.update(values)
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(state))
            os.chmod(self._path, SECURE_FILE_MODE)
        except OSError:
            logger.warning("Could not save session state", exc_info=True)

    def save_queue_snapshot(self, snapshot: QueueSnapshot) -> None:
        data = snapshot.to_dict()
        if len(snapshot.tracks) > _MAX_SAVED_TRACKS:
            # Keep a window that still contains the current track.
            start = max(0, min(snapshot.current_index, len(snapshot.tracks) - _MAX_SAVED_TRACKS))
            data["tracks"] = data["tracks"][start : start + _MAX_SAVED_TRACKS]
            data["current_index"] = snapshot.current_index - start
        self._update(queue=data)

    def load_queue_snapshot(self) -> QueueSnapshot | None:
        data = self._read().get("queue")
        if not isinstance(data, dict):
            return None
        snapshot = QueueSnapshot.from_dict(data)
        return snapshot if snapshot.tracks else None

    def save_play_mode(self, mode: PlayMode) -> None:
        self._update(play_mode=str(mode))

    def load_play_mode(self) -> PlayMode | None:
        value = self._read().get("play_mode")
        try:
            return PlayMode(value) if value else None
        except ValueError:
            logger.debug("Ignoring unknown saved play mode %r", value)
            return None
