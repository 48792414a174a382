from django.apps import AppConfig
import logging

logger = logging.getLogger(__name__)


class SettingsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "settings"

    def ready(self):
        """
        Report the pricing configuration the process starts with.
        """
        from settings.config import PricingSettings

        pricing = PricingSettings()
        logger.debug(
            f"Pricing settings: currency={pricing.default_currency} "
            f"platform_fee_usd={pricing.platform_fee_usd} live_rates={pricing.live_rates_enabled}"
        )
