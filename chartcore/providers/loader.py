from typing import Optional

from chartcore.config import Settings, get_settings
from chartcore.providers.base import BarProvider
from chartcore.providers.biying import BiyingProvider
from chartcore.providers.offline import OfflineProvider

PROVIDERS = ("BIYING", "OFFLINE")


def get_provider(settings: Optional[Settings] = None) -> BarProvider:
    """
    Provider factory, keyed by PROVIDER.

    BIYING   live REST history + 1m webhook (needs BIYING_LICENCE)
    OFFLINE  CSV files under OFFLINE_DATA_DIR, for local runs and demos
    """
    settings = settings or get_settings()
    provider_name = settings.provider.strip().upper()

    if provider_name == "BIYING":
        return BiyingProvider(settings)
    if provider_name == "OFFLINE":
        return OfflineProvider(settings)

    raise ValueError(f"Unknown PROVIDER='{settings.provider}'. Expected one of {PROVIDERS}")
