"""
Stored user preferences for the budget details screen.

Controllers read these once, when they are created; changing a preference
affects the next controller, never a live one.
"""
import logging
from typing import Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from offshore.config import Settings, get_settings
from offshore.domain.period import BudgetPeriod
from offshore.domain.sorting import Segment, SortMode, parse_enum
from offshore.infrastructure.db.models import AppPreference

logger = logging.getLogger(__name__)

KEY_DEFAULT_SORT = "budget_details.default_sort"
KEY_DEFAULT_SEGMENT = "budget_details.default_segment"
KEY_DEFAULT_PERIOD = "budget.default_period"


class PreferencesStore(Protocol):
    def default_sort(self) -> SortMode: ...

    def default_segment(self) -> Segment: ...

    def default_period(self) -> BudgetPeriod: ...


class SettingsPreferences:
    """Defaults straight from environment settings."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    def default_sort(self) -> SortMode:
        return parse_enum(SortMode, self.settings.DEFAULT_SORT, SortMode.DATE_NEW_OLD)

    def default_segment(self) -> Segment:
        return parse_enum(Segment, self.settings.DEFAULT_SEGMENT, Segment.PLANNED)

    def default_period(self) -> BudgetPeriod:
        return BudgetPeriod.parse(self.settings.DEFAULT_BUDGET_PERIOD, BudgetPeriod.MONTHLY)


class SqlPreferencesStore:
    """
    Preferences stored in ``app_preferences``, falling back to settings when
    a key is missing, holds an unknown value or cannot be read.
    """

    def __init__(self, session_factory: sessionmaker, settings: Settings | None = None):
        self.session_factory = session_factory
        self.fallback = SettingsPreferences(settings)

    def _get(self, key: str) -> str | None:
        db = self.session_factory()
        try:
            pref = db.get(AppPreference, key)
            return pref.value if pref else None
        except SQLAlchemyError as exc:
            logger.warning("Preference %s unreadable, using settings: %s", key, exc)
            return None
        finally:
            db.close()

    def set(self, key: str, value: str) -> None:
        db = self.session_factory()
        try:
            pref = db.get(AppPreference, key)
            if pref is None:
                db.add(AppPreference(key=key, value=value))
            else:
                pref.value = value
            db.commit()
        finally:
            db.close()
        logger.info("Preference %s set to %r", key, value)

    def default_sort(self) -> SortMode:
        return parse_enum(SortMode, self._get(KEY_DEFAULT_SORT), self.fallback.default_sort())

    def default_segment(self) -> Segment:
        return parse_enum(Segment, self._get(KEY_DEFAULT_SEGMENT), self.fallback.default_segment())

    def default_period(self) -> BudgetPeriod:
        return BudgetPeriod.parse(self._get(KEY_DEFAULT_PERIOD), self.fallback.default_period())

    def set_default_sort(self, sort: SortMode) -> None:
        self.set(KEY_DEFAULT_SORT, SortMode(sort).value)

    def set_default_segment(self, segment: Segment) -> None:
        self.set(KEY_DEFAULT_SEGMENT, Segment(segment).value)

    def set_default_period(self, period: BudgetPeriod) -> None:
        self.set(KEY_DEFAULT_PERIOD, BudgetPeriod(period).value)
