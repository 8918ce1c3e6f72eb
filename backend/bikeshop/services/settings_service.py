# Overview: Shop-wide business settings; each section is written under its own capability.

from __future__ import annotations

import re

from flask import current_app

from ..extensions import db
from ..models import BusinessSettings
from ..permissions import Capability
from . import permission_service
from bikeshop.time_utils import utcnow


SETTINGS_ID = 1

FEATURES = ("sales", "jobs")
WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
BIKE_OPTION_KEYS = ("brands", "colors", "sizes")
BUSINESS_FIELDS = ("name", "email", "phone", "mobile", "address", "logo", "notes")

COLOR_RE = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")
TIME_RE = re.compile(r"^(?:[01]\d|2[0-3]):[0-5]\d$")

DEFAULT_PRIMARY_COLOR = "#2563eb"


class SettingsError(ValueError):
    pass


def _default_opening_hours() -> dict:
    hours = {}
    for day in WEEKDAYS:
        closed = day == "sunday"
        hours[day] = {"open": "09:00", "close": "17:00", "closed": closed}
    return hours


def get_settings() -> BusinessSettings:
    """Return the settings row, creating it with defaults on first use."""
    settings = db.session.get(BusinessSettings, SETTINGS_ID)
    if settings is None:
        settings = BusinessSettings(
            id=SETTINGS_ID,
            name="",
            features_json={name: True for name in FEATURES},
            opening_hours_json=_default_opening_hours(),
            theme_json={"primary": DEFAULT_PRIMARY_COLOR},
            bike_options_json={key: [] for key in BIKE_OPTION_KEYS},
            photos=[],
        )
        db.session.add(settings)
        db.session.commit()
    return settings


def is_feature_enabled(name: str) -> bool:
    if name not in FEATURES:
        raise SettingsError(f"Unknown feature '{name}'")
    features = get_settings().features_json or {}
    return bool(features.get(name, True))


def _save(settings: BusinessSettings, user_id: str, section: str) -> BusinessSettings:
    settings.updated_by_user_id = user_id
    settings.updated_at = utcnow()
    db.session.commit()
    current_app.logger.info("Settings section '%s' updated by %s", section, user_id)
    return settings


def update_business_info(*, patch: dict, user_id: str) -> BusinessSettings:
    """Business details, photos and feature toggles."""
    permission_service.require_capability(user_id, Capability.EDIT_BUSINESS_INFO, resource="settings")

    updates = {}
    for key in BUSINESS_FIELDS:
        if key not in patch:
            continue
        value = patch[key]
        if value is not None and not isinstance(value, str):
            raise SettingsError(f"{key} must be a string")
        updates[key] = value.strip() if isinstance(value, str) else None

    if "name" in updates and not updates["name"]:
        raise SettingsError("Business name is required")
    if updates.get("email") and "@" not in updates["email"]:
        raise SettingsError("Invalid email address")

    features = None
    if "features" in patch:
        raw = patch["features"]
        if not isinstance(raw, dict):
            raise SettingsError("features must be an object")
        unknown = set(raw) - set(FEATURES)
        if unknown:
            raise SettingsError(f"Unknown features: {', '.join(sorted(unknown))}")
        for name, enabled in raw.items():
            if not isinstance(enabled, bool):
                raise SettingsError(f"Feature '{name}' must be true or false")
        features = raw

    photos = None
    if "photos" in patch:
        raw = patch["photos"]
        if not isinstance(raw, list) or not all(isinstance(p, str) for p in raw):
            raise SettingsError("photos must be a list of strings")
        photos = [p.strip() for p in raw if p.strip()]

    settings = get_settings()
    for key, value in updates.items():
        setattr(settings, key, value)
    if features is not None:
        settings.features_json = {**(settings.features_json or {}), **features}
    if photos is not None:
        settings.photos = photos
    return _save(settings, user_id, "business")


def update_opening_hours(*, hours: dict, user_id: str) -> BusinessSettings:
    permission_service.require_capability(user_id, Capability.EDIT_OPENING_HOURS, resource="settings")
    if not isinstance(hours, dict):
        raise SettingsError("opening_hours must be an object")

    settings = get_settings()
    merged = dict(settings.opening_hours_json or _default_opening_hours())
    for day, entry in hours.items():
        if day not in WEEKDAYS:
            raise SettingsError(f"Unknown day '{day}'")
        if not isinstance(entry, dict):
            raise SettingsError(f"Hours for {day} must be an object")
        current = dict(merged.get(day) or {})
        current.update({k: entry[k] for k in ("open", "close", "closed") if k in entry})

        closed = current.get("closed", False)
        if not isinstance(closed, bool):
            raise SettingsError(f"closed for {day} must be true or false")
        if not closed:
            opens, closes = current.get("open"), current.get("close")
            if not (isinstance(opens, str) and TIME_RE.match(opens)):
                raise SettingsError(f"Invalid opening time for {day}")
            if not (isinstance(closes, str) and TIME_RE.match(closes)):
                raise SettingsError(f"Invalid closing time for {day}")
            if closes <= opens:
                raise SettingsError(f"Closing time must be after opening time on {day}")
        merged[day] = current

    settings.opening_hours_json = merged
    return _save(settings, user_id, "opening_hours")


def update_bike_options(*, options: dict, user_id: str) -> BusinessSettings:
    """Replace the brand/colour/size pick lists offered on the bike form."""
    permission_service.require_capability(user_id, Capability.EDIT_BIKE_OPTIONS, resource="settings")
    if not isinstance(options, dict):
        raise SettingsError("bike_options must be an object")

    settings = get_settings()
    merged = dict(settings.bike_options_json or {})
    for key, values in options.items():
        if key not in BIKE_OPTION_KEYS:
            raise SettingsError(f"Unknown bike option '{key}'")
        if not isinstance(values, list) or not all(isinstance(v, str) for v in values):
            raise SettingsError(f"{key} must be a list of strings")
        seen = []
        for v in values:
            v = v.strip()
            if v and v not in seen:
                seen.append(v)
        merged[key] = seen

    settings.bike_options_json = merged
    return _save(settings, user_id, "bike_options")


def update_theme(*, theme: dict, user_id: str) -> BusinessSettings:
    permission_service.require_capability(user_id, Capability.EDIT_THEME, resource="settings")
    if not isinstance(theme, dict):
        raise SettingsError("theme must be an object")
    primary = theme.get("primary")
    if not isinstance(primary, str) or not COLOR_RE.match(primary):
        raise SettingsError("primary must be a hex colour like #2563eb")

    settings = get_settings()
    settings.theme_json = {**(settings.theme_json or {}), "primary": primary.lower()}
    return _save(settings, user_id, "theme")
