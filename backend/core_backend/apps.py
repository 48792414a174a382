from django.apps import AppConfig
from django.conf import settings
import logging

logger = logging.getLogger(__name__)


class CoreBackendConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "core_backend"

    def ready(self):
        """
        Warm the exchange-rate cache when a live rate source is configured.
        """
        self._startup_rate_warming()

    def _startup_rate_warming(self):
        """
        Fetch live exchange rates in the background so the first checkout
        does not pay for the round trip. Skipped when no live source is set.
        """
        if not getattr(settings, "EXCHANGE_RATE_API_URL", ""):
            logger.debug("Exchange rate warming skipped (EXCHANGE_RATE_API_URL not set)")
            return

        try:
            from threading import Thread

            def warm_rates_background():
                from payments.currency import ExchangeRateService

                rates = ExchangeRateService.get_rates()
                logger.info(f"Startup exchange rate warming loaded {len(rates)} rates")

            warming_thread = Thread(target=warm_rates_background, daemon=True)
            warming_thread.start()

        except RuntimeError as e:
            logger.error(f"Failed to initiate startup exchange rate warming: {e}")
