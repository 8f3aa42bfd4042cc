# -*- coding: utf-8 -*-

"""
Session store for the CLI: API settings, polling overrides and the last
upload / batch, kept in a YAML file in the user config directory.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional

import platformdirs

from .misc import read_yaml, write_yaml


# Global session instance
_session = None


def _empty_session() -> Dict:
    return {"api_url": None, "polling": {}, "last_upload": None, "last_batch": None}


class SessionRegistry:
    """Persists CLI settings and the last batch between invocations."""

    def __init__(self, path: Optional[str | Path] = None):
        self.path = Path(path) if path else self._get_session_path()
        self._ensure_session_exists()

    def _get_session_path(self) -> Path:
        """Get the platform-specific session path."""
        config_dir = platformdirs.user_config_dir("sced-bulk-verifier", "sced")
        return Path(config_dir) / "session.yaml"

    def _ensure_session_exists(self):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if not self.path.exists():
            self._save(_empty_session())

    def _load(self) -> Dict:
        try:
            data = read_yaml(self.path)
        except Exception as e:
            logging.warning(f"Error loading session file: {e}. Starting a new session.")
            return _empty_session()
        session = _empty_session()
        session.update(data or {})
        return session

    def _save(self, session: Dict):
        try:
            write_yaml(session, self.path)
        except Exception as e:
            logging.error(f"Error saving session file: {e}")
            raise

    #=======================================================================
    # Settings
    #=======================================================================

    def get_api_url(self) -> Optional[str]:
        return self._load()["api_url"]

    def get_polling(self) -> Dict:
        return dict(self._load()["polling"] or {})

    def update_settings(self, api_url: Optional[str] = None, polling: Optional[Dict] = None) -> Dict:
        """Update stored settings; ``None`` values keep the current ones."""
        session = self._load()
        if api_url is not None:
            session["api_url"] = api_url
        if polling:
            current = dict(session["polling"] or {})
            current.update({k: v for k, v in polling.items() if v is not None})
            session["polling"] = current
        self._save(session)
        logging.debug(f"Updated session settings in {self.path}")
        return session

    #=======================================================================
    # Upload / Batch tracking
    #=======================================================================

    def record_upload(self, file_name: str, file_path: str, total_contacts: int, cte_contacts: int):
        session = self._load()
        session["last_upload"] = {
            "file_name": file_name,
            "file_path": file_path,
            "total_contacts": total_contacts,
            "cte_contacts": cte_contacts,
            "uploaded_at": datetime.now().isoformat(),
        }
        self._save(session)

    def get_last_upload(self) -> Optional[Dict]:
        return self._load()["last_upload"]

    def record_batch(self, batch_id: str, cte_only: bool, status: Optional[str] = None):
        """Remember the batch just started; it replaces any previous one."""
        session = self._load()
        session["last_batch"] = {
            "id": batch_id,
            "cte_only": cte_only,
            "status": status,
            "started_at": datetime.now().isoformat(),
        }
        self._save(session)

    def update_batch_status(self, batch_id: str, status: str):
        session = self._load()
        last_batch = session["last_batch"]
        if last_batch and last_batch.get("id") == batch_id:
            last_batch["status"] = status
            self._save(session)

    def get_last_batch(self) -> Optional[Dict]:
        return self._load()["last_batch"]

    def clear_batch(self) -> bool:
        """Forget the last batch. Returns False if there was none."""
        session = self._load()
        if not session["last_batch"]:
            return False
        session["last_batch"] = None
        self._save(session)
        return True


def get_session() -> SessionRegistry:
    """Get the global session instance."""
    global _session
    if _session is None:
        _session = SessionRegistry()
    return _session
