from decimal import Decimal

from proposalcrm.core.settings import get_settings


def test_settings_defaults():
    settings = get_settings()
    assert settings.app_name == "ProposalCRM"
    assert settings.environment == "development"
    assert isinstance(settings.database_url, str) and settings.database_url
    assert settings.vat_rate_percent == Decimal("18")
    assert settings.import_batch_size == 5000


def test_format_config_uses_settings():
    settings = get_settings()
    config = settings.format_config()
    assert config.vat_rate_percent == settings.vat_rate_percent
    assert config.currency_code == settings.currency_code
    assert config.locale == settings.locale
