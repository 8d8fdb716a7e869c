"""Services for site checks, incident tracking, alerting, and scheduling."""
from .checker import CheckOutcome, ContactFormChecker, SslChecker, UptimeChecker
from .recorder import CheckRecorder
from .aggregator import StatusAggregator
from .incidents import IncidentManager
from .notifier import TelegramNotifier
from .orchestrator import MonitoringOrchestrator, SiteRunResult

__all__ = [
    "CheckOutcome",
    "ContactFormChecker",
    "SslChecker",
    "UptimeChecker",
    "CheckRecorder",
    "StatusAggregator",
    "IncidentManager",
    "TelegramNotifier",
    "MonitoringOrchestrator",
    "SiteRunResult",
]
