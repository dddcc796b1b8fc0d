"""Persisted portal state: login flag, project configuration, display settings.

Everything lives in one JSON file keyed like the original browser storage:

    {
      "isAuthenticated": true,
      "username": "jane.smith",
      "projectConfig": {"projectName": ..., "tables": [...], ...},
      "displaySettings": {"notifications": true, ...}
    }
"""

import json
import logging
import os
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ..models import DatabaseType, ProjectStatus
from .errors import ValidationError

logger = logging.getLogger(__name__)

DEFAULT_STATE_FILE = ".metaportal_state.json"

AUTH_KEY = "isAuthenticated"
USERNAME_KEY = "username"
PROJECT_CONFIG_KEY = "projectConfig"
DISPLAY_SETTINGS_KEY = "displaySettings"


class ProjectConfig(BaseModel):
    """The single configured project created by the admin setup flow."""
    project_name: str = Field(alias="projectName")
    project_description: str = Field(default="", alias="projectDescription")
    database_type: DatabaseType = Field(default=DatabaseType.ORACLE, alias="databaseType")
    connection_string: str = Field(alias="connectionString")
    tables: List[str] = Field(default_factory=list)
    setup_date: datetime = Field(default_factory=datetime.utcnow, alias="setupDate")
    status: ProjectStatus = ProjectStatus.ACTIVE

    class Config:
        populate_by_name = True


class DisplaySettings(BaseModel):
    """User-facing display preferences."""
    notifications: bool = True
    auto_save: bool = Field(default=True, alias="autoSave")
    compact_view: bool = Field(default=False, alias="compactView")
    date_format: str = Field(default="YYYY-MM-DD", alias="dateFormat")
    time_format: str = Field(default="24h", alias="timeFormat")
    language: str = "en"
    page_size: int = Field(default=25, ge=1, le=500, alias="pageSize")

    class Config:
        populate_by_name = True


class PortalStateStore:
    """Key-value store for the small amount of state that survives restarts."""

    def __init__(self, path: Optional[str] = None):
        self.path = Path(path or os.getenv("METAPORTAL_STATE_FILE", DEFAULT_STATE_FILE))
        self._lock = threading.Lock()

    # Authentication

    def login(self, username: str, password: str) -> bool:
        """Accept any non-empty username and password."""
        if not (username and username.strip()) or not password:
            logger.info("Rejected login with empty credentials")
            return False
        with self._lock:
            state = self._read()
            state[AUTH_KEY] = True
            state[USERNAME_KEY] = username.strip()
            self._write(state)
        logger.info(f"User {username.strip()} signed in")
        return True

    def logout(self):
        with self._lock:
            state = self._read()
            state.pop(AUTH_KEY, None)
            state.pop(USERNAME_KEY, None)
            self._write(state)
        logger.info("User signed out")

    def is_authenticated(self) -> bool:
        return bool(self._read().get(AUTH_KEY))

    def current_user(self) -> Optional[str]:
        state = self._read()
        if not state.get(AUTH_KEY):
            return None
        return state.get(USERNAME_KEY) or "User"

    # Project configuration

    def get_project_config(self) -> Optional[ProjectConfig]:
        data = self._read().get(PROJECT_CONFIG_KEY)
        if not data:
            return None
        return ProjectConfig.model_validate(data)

    def save_project_config(self, config: ProjectConfig) -> ProjectConfig:
        with self._lock:
            state = self._read()
            state[PROJECT_CONFIG_KEY] = config.model_dump(by_alias=True, mode="json")
            self._write(state)
        logger.info(f"Saved configuration for project {config.project_name}")
        return config

    def clear_project_config(self) -> bool:
        with self._lock:
            state = self._read()
            removed = state.pop(PROJECT_CONFIG_KEY, None) is not None
            self._write(state)
        if removed:
            logger.info("Cleared project configuration")
        return removed

    # Display settings

    def get_display_settings(self) -> DisplaySettings:
        data = self._read().get(DISPLAY_SETTINGS_KEY)
        if not data:
            return DisplaySettings()
        return DisplaySettings.model_validate(data)

    def save_display_settings(self, settings: DisplaySettings) -> DisplaySettings:
        with self._lock:
            state = self._read()
            state[DISPLAY_SETTINGS_KEY] = settings.model_dump(by_alias=True)
            self._write(state)
        logger.info("Saved display settings")
        return settings

    def reset(self):
        """Delete the state file (for testing or reset)."""
        with self._lock:
            if self.path.exists():
                self.path.unlink()
        logger.info(f"Removed portal state file {self.path}")

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r") as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            raise ValidationError(f"Portal state file {self.path} is not valid JSON: {e}") from e

    def _write(self, state: Dict[str, Any]):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, "w") as f:
            json.dump(state, f, indent=2)
        os.replace(tmp_path, self.path)


_store_instance: Optional[PortalStateStore] = None


def get_state_store() -> PortalStateStore:
    """Return the process-wide state store."""
    global _store_instance

    if _store_instance is None:
        _store_instance = PortalStateStore()
    return _store_instance
