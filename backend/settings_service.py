"""User settings, stored as one JSON document in the settings table."""
import json
import logging

from pydantic import ValidationError

import database
from errors import StorageError
from models import SettingsUpdate, UserSettings

logger = logging.getLogger(__name__)

SETTINGS_KEY = "user_settings"


async def get_settings() -> UserSettings:
    """Stored settings merged over the defaults. Falls back to defaults when unreadable."""
    defaults = UserSettings()
    try:
        raw = await database.get_setting_value(SETTINGS_KEY)
        if not raw:
            return defaults
        stored = json.loads(raw)
        # Merge with defaults so fields added later still get a value
        return UserSettings.model_validate({**defaults.model_dump(mode="json"), **stored})
    except (StorageError, ValueError, ValidationError):
        logger.exception("Error loading settings; using defaults")
        return defaults


async def update_settings(update: SettingsUpdate) -> UserSettings:
    current = await get_settings()
    merged = current.model_copy(update=update.model_dump(exclude_unset=True, exclude_none=True))
    # model_copy skips validation
    settings = UserSettings.model_validate(merged.model_dump())
    await database.set_setting_value(SETTINGS_KEY, settings.model_dump_json())
    logger.info("Settings updated: %s", settings.model_dump(mode="json"))
    return settings


async def reset_settings() -> UserSettings:
    settings = UserSettings()
    await database.set_setting_value(SETTINGS_KEY, settings.model_dump_json())
    return settings
