"""Process-wide persisted key/value state (the active hike id)."""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

ACTIVE_SESSION_KEY = "active_session_id"


class AppStateStore:
    """Small JSON key/value file read at process start."""

    def __init__(self, state_file: str):
        self.state_file = Path(state_file)
        self.state_file.parent.mkdir(parents=True, exist_ok=True)

    def _read(self) -> Dict[str, Any]:
        if not self.state_file.exists():
            return {}
        try:
            with open(self.state_file, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"Could not read app state {self.state_file}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: Dict[str, Any]) -> None:
        tmp_path = self.state_file.with_name(self.state_file.name + ".tmp")
        with open(tmp_path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2)
        os.replace(tmp_path, self.state_file)

    def get_active_session_id(self) -> Optional[str]:
        return self._read().get(ACTIVE_SESSION_KEY)

    def set_active_session_id(self, session_id: Optional[str]) -> None:
        data = self._read()
        if session_id is None:
            data.pop(ACTIVE_SESSION_KEY, None)
        else:
            data[ACTIVE_SESSION_KEY] = session_id
        self._write(data)
        logger.debug(f"Persisted active session id: {session_id}")
