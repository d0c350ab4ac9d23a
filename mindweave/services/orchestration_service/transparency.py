"""Transparency sink: where finished TransparencyReports go.

The sink is a pure consumer. The engine logs and ignores its errors, so
a broken sink can never change a reply.
"""
import logging
from abc import ABC, abstractmethod

from .recorder import TransparencyReport

logger = logging.getLogger(__name__)


class TransparencySink(ABC):

    @abstractmethod
    def publish(self, report: TransparencyReport) -> None:
        pass


class LoggingTransparencySink(TransparencySink):
    """Writes each report to the application log.

    Reports carry no message text or raw user ids (ADR-003).
    """

    def publish(self, report: TransparencyReport) -> None:
        logger.info(
            "TRANSPARENCY_REPORT",
            extra={
                "message_id": report.message_id,
                "strategy": report.strategy,
                "execution_pattern": report.execution_pattern,
                "agent_agreement": report.agent_agreement,
                "total_time_ms": report.total_time_ms,
                "step_count": report.step_count,
                "parallel_efficiency": report.parallel_efficiency,
                "adaptations": report.adaptations,
            }
        )
