"""Persisted scheduling settings: the auto-scheduling flag and working hours."""

import logging
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from coaching_backend.core import config
from coaching_backend.models.setting import AUTO_SCHEDULING, WORKING_HOURS, Setting
from coaching_backend.scheduling.errors import StoreUnavailable
from coaching_backend.scheduling.sessions import SessionCalendar

logger = logging.getLogger(__name__)


class SettingsStore:
    def __init__(self, session_factory: sessionmaker, duration_minutes: int = config.APPOINTMENT_DURATION_MINUTES):
        self._session_factory = session_factory
        self._duration_minutes = duration_minutes

    def _get(self, key: str) -> dict | None:
        db = self._session_factory()
        try:
            setting = db.query(Setting).filter(Setting.key == key).first()
            return dict(setting.value) if setting else None
        except SQLAlchemyError as exc:
            raise StoreUnavailable(f'Could not read setting {key}.') from exc
        finally:
            db.close()

    def _put(self, key: str, value: dict) -> None:
        db = self._session_factory()
        try:
            setting = db.query(Setting).filter(Setting.key == key).first()
            if setting is None:
                db.add(Setting(key=key, value=value, updated_at=datetime.now()))
            else:
                setting.value = value
                setting.updated_at = datetime.now()
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise StoreUnavailable(f'Could not save setting {key}.') from exc
        finally:
            db.close()

    def get_auto_scheduling(self) -> bool:
        value = self._get(AUTO_SCHEDULING)
        return bool(value and value.get('enabled'))

    def set_auto_scheduling(self, enabled: bool) -> None:
        self._put(AUTO_SCHEDULING, {'enabled': bool(enabled)})
        logger.info('Auto-scheduling %s', 'enabled' if enabled else 'disabled')

    def get_working_hours(self) -> dict[str, str]:
        return {**config.DEFAULT_WORKING_HOURS, **(self._get(WORKING_HOURS) or {})}

    def set_working_hours(self, working_hours: dict[str, str]) -> SessionCalendar:
        hours = {**config.DEFAULT_WORKING_HOURS, **working_hours}
        # Validates the new hours before they are persisted.
        calendar = SessionCalendar.from_working_hours(hours, self._duration_minutes)
        self._put(WORKING_HOURS, {key: hours[key] for key in config.DEFAULT_WORKING_HOURS})
        return calendar

    def load_calendar(self) -> SessionCalendar:
        """Build the session calendar from the current working hours."""
        return SessionCalendar.from_working_hours(self.get_working_hours(), self._duration_minutes)
