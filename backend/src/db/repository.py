"""Persistence for the single service settings record."""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, Mapping, Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from mysql_db.config import ServiceSettings
from mysql_db.errors import ValidationError

from .models import SETTINGS_ROW_ID, Base, ServiceSettingsRecord
from .session import session_scope

logger = logging.getLogger(__name__)

SettingsListener = Callable[[ServiceSettings, ServiceSettings], None]


def validate_settings(payload: Mapping[str, Any]) -> ServiceSettings:
    try:
        return ServiceSettings.model_validate(dict(payload))
    except PydanticValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in exc.errors()
        )
        raise ValidationError(f"Invalid settings: {problems}") from exc


class ServiceSettingsRepository:
    """Read and replace the persisted settings.

    Listeners receive ``(previous, current)`` after a successful save; they are
    how dependent modules learn that they must regenerate their configuration.
    """

    def __init__(
        self,
        engine: Engine,
        session_factory: sessionmaker,
        *,
        listeners: Optional[Iterable[SettingsListener]] = None,
    ) -> None:
        self.engine = engine
        self.session_factory = session_factory
        self.listeners: list[SettingsListener] = list(listeners or [])
        self._initialized = False

    def _ensure_initialized(self) -> None:
        if self._initialized:
            return
        Base.metadata.create_all(self.engine)
        self._initialized = True

    def get(self) -> ServiceSettings:
        self._ensure_initialized()
        with session_scope(self.session_factory) as session:
            record = session.get(ServiceSettingsRecord, SETTINGS_ROW_ID)
            if record is None:
                return ServiceSettings()
            return ServiceSettings.model_validate(record.data)

    def save(self, payload: Mapping[str, Any] | ServiceSettings) -> ServiceSettings:
        current = payload if isinstance(payload, ServiceSettings) else validate_settings(payload)
        previous = self.get()
        with session_scope(self.session_factory) as session:
            record = session.get(ServiceSettingsRecord, SETTINGS_ROW_ID)
            if record is None:
                session.add(ServiceSettingsRecord(id=SETTINGS_ROW_ID, data=current.model_dump()))
            else:
                record.data = current.model_dump()
        logger.info("Saved service settings (enabled=%s, port=%d)", current.enabled, current.port)

        if previous != current:
            for listener in self.listeners:
                listener(previous, current)
        return current
