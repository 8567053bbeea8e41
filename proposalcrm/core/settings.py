import os
from decimal import Decimal

from proposalcrm.core.formatting import FormatConfig


class Settings:
    def __init__(self):
        self.app_name = "ProposalCRM"
        self.api_version = "1.0.0"
        self.environment = os.getenv("PROPOSALCRM_ENVIRONMENT", "development")
        self.database_url = os.getenv("PROPOSALCRM_DATABASE_URL", "sqlite:///./proposalcrm.db")
        self.log_level = os.getenv("PROPOSALCRM_LOG_LEVEL", "INFO").upper()

        self.locale = os.getenv("PROPOSALCRM_LOCALE", "en_IE")
        self.currency_code = os.getenv("PROPOSALCRM_CURRENCY", "EUR")
        self.currency_symbol = os.getenv("PROPOSALCRM_CURRENCY_SYMBOL") or None
        self.vat_rate_percent = Decimal(os.getenv("PROPOSALCRM_VAT_RATE", "18"))
        self.target_margin_pct = Decimal(os.getenv("PROPOSALCRM_TARGET_MARGIN", "50"))

        self.import_batch_size = int(os.getenv("PROPOSALCRM_IMPORT_BATCH_SIZE", "5000"))
        self.delete_batch_size = int(os.getenv("PROPOSALCRM_DELETE_BATCH_SIZE", "1000"))

        self.company_name = os.getenv("PROPOSALCRM_COMPANY_NAME", "Your Company")
        self.company_address = os.getenv("PROPOSALCRM_COMPANY_ADDRESS", "Street, City, Country")
        self.company_contact = os.getenv("PROPOSALCRM_COMPANY_CONTACT", "sales@example.com")
        self.offer_validity_days = int(os.getenv("PROPOSALCRM_OFFER_VALIDITY_DAYS", "30"))

    def format_config(self) -> FormatConfig:
        return FormatConfig(
            currency_code=self.currency_code,
            currency_symbol=self.currency_symbol,
            locale=self.locale,
            vat_rate_percent=self.vat_rate_percent,
        )


_settings_instance = None


def get_settings():
    """Return a singleton Settings instance."""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
    return _settings_instance
