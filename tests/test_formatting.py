from datetime import date, datetime, timezone
from decimal import Decimal

from proposalcrm.core.formatting import FormatConfig, format_currency, format_date, format_percent, format_quantity


def test_format_currency_default_locale():
    config = FormatConfig()
    assert format_currency(Decimal("1234.5"), config) == "€1,234.50"
    assert format_currency(None, config) == "€0.00"


def test_format_currency_follows_locale():
    config = FormatConfig(locale="de_DE")
    assert format_currency(Decimal("1234.5"), config) == "1.234,50\xa0€"


def test_format_currency_with_symbol_override():
    config = FormatConfig(currency_code="TRY", currency_symbol="₺", locale="tr_TR")
    assert format_currency(Decimal("1234.5"), config) == "₺1.234,50"
    assert format_currency(Decimal("-20"), config) == "-₺20,00"


def test_format_percent():
    config = FormatConfig()
    assert format_percent(Decimal("40"), config) == "40.0%"
    assert format_percent(Decimal("-12.34"), config) == "-12.3%"
    assert format_percent(Decimal("40"), FormatConfig(percent_decimals=0)) == "40%"


def test_format_quantity():
    config = FormatConfig()
    assert format_quantity(Decimal("2.5"), config) == "2.5"
    assert format_quantity(Decimal("1000"), config) == "1,000"


def test_format_date():
    config = FormatConfig(date_format="yyyy-MM-dd")
    assert format_date(date(2026, 10, 19), config) == "2026-10-19"
    assert format_date(datetime(2026, 10, 19, 15, 30, tzinfo=timezone.utc), config) == "2026-10-19"
    assert format_date(None, config) == ""
