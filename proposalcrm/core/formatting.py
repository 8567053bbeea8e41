"""Locale-aware display formatting for money, percentages and dates."""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from babel.dates import format_date as babel_format_date
from babel.numbers import format_currency as babel_format_currency
from babel.numbers import format_decimal
from pydantic import BaseModel, ConfigDict


class FormatConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    currency_code: str = "EUR"
    currency_symbol: Optional[str] = None
    locale: str = "en_IE"
    vat_rate_percent: Decimal = Decimal("18")
    percent_decimals: int = 1
    date_format: str = "medium"


def format_currency(amount: Decimal | float | int | None, config: FormatConfig) -> str:
    value = Decimal(str(amount or 0))
    if config.currency_symbol:
        number = format_decimal(value, format="#,##0.00", locale=config.locale)
        if value < 0:
            return f"-{config.currency_symbol}{number.lstrip('-')}"
        return f"{config.currency_symbol}{number}"
    return babel_format_currency(value, config.currency_code, locale=config.locale, format_type="standard")


def format_percent(value: Decimal | float | int | None, config: FormatConfig) -> str:
    """Format a value that is already a percentage (40 means 40%)."""
    pattern = "#,##0" + ("." + "0" * config.percent_decimals if config.percent_decimals > 0 else "")
    return format_decimal(Decimal(str(value or 0)), format=pattern, locale=config.locale) + "%"


def format_quantity(value: Decimal | float | int | None, config: FormatConfig) -> str:
    return format_decimal(Decimal(str(value or 0)), format="#,##0.##", locale=config.locale)


def format_date(value: date | datetime | None, config: FormatConfig) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        value = value.date()
    return babel_format_date(value, format=config.date_format, locale=config.locale)
