from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP

from flask import current_app

from ..extensions import db
from ..models import StoreSettings
from ..models.settings import (
    CURRENCIES,
    CURRENCY_LOCALES,
    CURRENCY_NAMES,
    CURRENCY_SYMBOLS,
    DATE_FORMATS,
    LANGUAGES,
    TIMEZONES,
)
from ..validation import ModelValidationPolicy, ValidationError, require_choice, validate_payload


SETTINGS_POLICY = ModelValidationPolicy(
    writable_fields={
        "currency",
        "language",
        "timezone",
        "date_format",
        "email_notifications",
        "push_notifications",
        "sales_alerts",
        "low_stock_alerts",
        "tax_rate_bps",
        "company_name",
        "company_address",
        "company_phone",
        "company_email",
        "low_stock_threshold",
    },
    required_on_create=set(),
)

CHOICES = {
    "currency": CURRENCIES,
    "language": LANGUAGES,
    "timezone": TIMEZONES,
    "date_format": DATE_FORMATS,
}

MAX_TAX_RATE_BPS = 10_000


def get_settings() -> StoreSettings:
    """Return the settings row, creating it with defaults on first read."""
    settings = db.session.query(StoreSettings).order_by(StoreSettings.id.asc()).first()
    if settings is None:
        settings = StoreSettings()
        db.session.add(settings)
        db.session.commit()
        current_app.logger.info("Created default store settings")
    return settings


def _enforce_rules(patch: dict) -> None:
    for key, choices in CHOICES.items():
        if key in patch:
            require_choice(key, patch[key], choices)

    if "tax_rate_bps" in patch:
        rate = patch["tax_rate_bps"]
        if rate < 0 or rate > MAX_TAX_RATE_BPS:
            raise ValidationError(f"tax_rate_bps must be between 0 and {MAX_TAX_RATE_BPS}")

    if "low_stock_threshold" in patch and patch["low_stock_threshold"] < 0:
        raise ValidationError("low_stock_threshold must be >= 0")


def update_settings(payload: dict, user_id: int | None) -> StoreSettings:
    # Partial update: unknown keys and bad values fail before anything is written
    patch = validate_payload(model=StoreSettings, payload=payload, policy=SETTINGS_POLICY, partial=True)
    _enforce_rules(patch)

    settings = get_settings()
    for key, value in patch.items():
        setattr(settings, key, value)
    settings.last_updated_by_user_id = user_id
    db.session.commit()

    current_app.logger.info("Store settings updated by user %s: %s", user_id, sorted(patch))
    return settings


def suggested_tax_cents(subtotal_cents: int, settings: StoreSettings | None = None) -> int:
    """Tax on a subtotal at the store rate, rounded half-up to the cent."""
    settings = settings or get_settings()
    tax = Decimal(subtotal_cents) * Decimal(settings.tax_rate_bps) / Decimal(10_000)
    return int(tax.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def reset_settings(user_id: int | None) -> StoreSettings:
    """Replace the settings row with a fresh one holding the defaults."""
    db.session.query(StoreSettings).delete()
    settings = StoreSettings(last_updated_by_user_id=user_id)
    db.session.add(settings)
    db.session.commit()

    current_app.logger.info("Store settings reset to defaults by user %s", user_id)
    return settings


def list_currencies() -> list[dict]:
    return [
        {
            "code": code,
            "name": CURRENCY_NAMES[code],
            "symbol": CURRENCY_SYMBOLS[code],
            "locale": CURRENCY_LOCALES[code],
        }
        for code in CURRENCIES
    ]
