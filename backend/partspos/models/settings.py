from __future__ import annotations

from ..extensions import db
from partspos.time_utils import to_utc_z


CURRENCIES = ("USD", "EUR", "GBP", "INR")
LANGUAGES = ("en", "es", "fr")
TIMEZONES = ("UTC", "EST", "PST", "CST", "IST")
DATE_FORMATS = ("MM/DD/YYYY", "DD/MM/YYYY", "YYYY-MM-DD")

CURRENCY_SYMBOLS = {"USD": "$", "EUR": "€", "GBP": "£", "INR": "₹"}
CURRENCY_LOCALES = {"USD": "en-US", "EUR": "de-DE", "GBP": "en-GB", "INR": "en-IN"}
CURRENCY_NAMES = {"USD": "US Dollar", "EUR": "Euro", "GBP": "British Pound", "INR": "Indian Rupee"}


class StoreSettings(db.Model):
    """
    Process-wide settings singleton (one row).

    The sale workflow reads tax_rate_bps to suggest a tax amount on quotes;
    it never writes here.
    """
    __tablename__ = "store_settings"
    __table_args__ = (
        db.CheckConstraint("tax_rate_bps >= 0 AND tax_rate_bps <= 10000", name="tax_rate_range"),
        db.CheckConstraint("low_stock_threshold >= 0", name="low_stock_threshold_non_negative"),
    )

    id = db.Column(db.Integer, primary_key=True)

    currency = db.Column(db.String(3), nullable=False, default="USD")
    language = db.Column(db.String(2), nullable=False, default="en")
    timezone = db.Column(db.String(8), nullable=False, default="UTC")
    date_format = db.Column(db.String(16), nullable=False, default="MM/DD/YYYY")

    email_notifications = db.Column(db.Boolean, nullable=False, default=True)
    push_notifications = db.Column(db.Boolean, nullable=False, default=False)
    sales_alerts = db.Column(db.Boolean, nullable=False, default=True)
    low_stock_alerts = db.Column(db.Boolean, nullable=False, default=True)

    # Basis points: 825 = 8.25%
    tax_rate_bps = db.Column(db.Integer, nullable=False, default=0)

    company_name = db.Column(db.String(255), nullable=False, default="Car Parts Store")
    company_address = db.Column(db.Text, nullable=False, default="")
    company_phone = db.Column(db.String(64), nullable=False, default="")
    company_email = db.Column(db.String(255), nullable=False, default="")

    low_stock_threshold = db.Column(db.Integer, nullable=False, default=10)

    last_updated_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def currency_symbol(self) -> str:
        return CURRENCY_SYMBOLS.get(self.currency, "$")

    @property
    def currency_locale(self) -> str:
        return CURRENCY_LOCALES.get(self.currency, "en-US")

    def to_dict(self) -> dict:
        return {
            "currency": self.currency,
            "language": self.language,
            "timezone": self.timezone,
            "date_format": self.date_format,
            "email_notifications": self.email_notifications,
            "push_notifications": self.push_notifications,
            "sales_alerts": self.sales_alerts,
            "low_stock_alerts": self.low_stock_alerts,
            "tax_rate_bps": self.tax_rate_bps,
            "company_name": self.company_name,
            "company_address": self.company_address,
            "company_phone": self.company_phone,
            "company_email": self.company_email,
            "low_stock_threshold": self.low_stock_threshold,
            "currency_symbol": self.currency_symbol,
            "currency_locale": self.currency_locale,
            "version_id": self.version_id,
            "last_updated": to_utc_z(self.updated_at),
        }
