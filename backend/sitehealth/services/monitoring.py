"""Monitoring service - builds the check pipeline from settings."""
import logging
from datetime import timedelta
from typing import Dict, List, Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from ..config import Settings, settings
from ..database import async_session
from ..models.enums import CheckType
from .aggregator import StatusAggregator
from .checker import ContactFormChecker, SiteChecker, SslChecker, UptimeChecker
from .incidents import IncidentManager, Notifier
from .notifier import TelegramNotifier
from .orchestrator import MonitoringOrchestrator, SiteRunResult
from .recorder import CheckRecorder

logger = logging.getLogger(__name__)


class MonitoringService:
    """One orchestrator per check type, sharing recorder, aggregator and incidents."""

    def __init__(
        self,
        checkers: Dict[CheckType, SiteChecker],
        recorder: CheckRecorder,
        aggregator: StatusAggregator,
        incidents: IncidentManager,
        session_factory: async_sessionmaker,
    ):
        missing = set(CheckType) - set(checkers)
        if missing:
            raise ValueError(f"No checker for: {', '.join(sorted(t.value for t in missing))}")

        self.recorder = recorder
        self.aggregator = aggregator
        self.incidents = incidents
        self._session_factory = session_factory
        self.orchestrators = {
            check_type: MonitoringOrchestrator(checker, recorder, aggregator, incidents, session_factory)
            for check_type, checker in checkers.items()
        }

    async def run_check(self, check_type: CheckType) -> List[SiteRunResult]:
        """Run one check type across all eligible sites."""
        return await self.orchestrators[check_type].run()

    async def prune_checks(self) -> int:
        """Delete check results older than the retention window."""
        async with self._session_factory() as session:
            return await self.recorder.prune(session)


def create_checkers(config: Settings) -> Dict[CheckType, SiteChecker]:
    return {
        CheckType.UPTIME: UptimeChecker(
            timeout=config.uptime_timeout_seconds,
            slow_response_ms=config.slow_response_ms,
        ),
        CheckType.SSL: SslChecker(
            timeout=config.ssl_timeout_seconds,
            warning_days=config.ssl_warning_days,
        ),
        CheckType.CONTACT_FORM: ContactFormChecker(
            timeout=config.contact_form_timeout_seconds,
            email=config.health_check_email,
        ),
    }


def create_monitoring_service(
    config: Settings,
    session_factory: async_sessionmaker = async_session,
    notifier: Optional[Notifier] = None,
) -> MonitoringService:
    """Wire the pipeline with values from config."""
    if notifier is None:
        notifier = TelegramNotifier(
            bot_token=config.telegram_bot_token,
            chat_id=config.telegram_chat_id,
            timeout=config.notifier_timeout_seconds,
        )
        if not notifier.is_configured:
            logger.warning("Telegram alerts not configured - incidents will be tracked without notifications")

    recorder = CheckRecorder(retention_days=config.check_retention_days)
    return MonitoringService(
        checkers=create_checkers(config),
        recorder=recorder,
        aggregator=StatusAggregator(recorder),
        incidents=IncidentManager(
            notifier,
            first_repeat=timedelta(minutes=config.alert_first_repeat_minutes),
            repeat=timedelta(minutes=config.alert_repeat_minutes),
        ),
        session_factory=session_factory,
    )


# Global instance
monitoring_service = create_monitoring_service(settings)


def get_monitoring_service() -> MonitoringService:
    """Dependency returning the process-wide monitoring service."""
    return monitoring_service
