"""
wifiticket — captive-portal payments that end in exactly one Wi-Fi ticket.

    from wifiticket import tickets as T        # Inventory and atomic claim
    from wifiticket import ledger as L         # Notification dedup
    from wifiticket import payments as P       # Payment lifecycle
    from wifiticket import gateway as GW       # Payment aggregator
    from wifiticket import confirmation as CF  # Webhook / poll settlement
"""

from wifiticket import catalog
from wifiticket import tickets
from wifiticket import ledger
from wifiticket import payments
from wifiticket import gateway
from wifiticket import confirmation
from wifiticket._types import Result, Ok, Error, LazyCoroResult, utcnow
from wifiticket.config import Settings, ConfigError
from wifiticket.errors import ErrorKind, ServiceError, StoreError
from wifiticket.service import PaymentService, IntentRequest, PaymentIntent

__version__ = "0.1.0"

__all__ = (
    "catalog",
    "tickets",
    "ledger",
    "payments",
    "gateway",
    "confirmation",
    "Result",
    "Ok",
    "Error",
    "LazyCoroResult",
    "utcnow",
    "Settings",
    "ConfigError",
    "ErrorKind",
    "ServiceError",
    "StoreError",
    "PaymentService",
    "IntentRequest",
    "PaymentIntent",
)
