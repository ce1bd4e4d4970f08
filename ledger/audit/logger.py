"""
Audit Logger

DESIGN DECISION: Every intent applied to the ledger, and every intent that
was refused, is logged. The document only records the end state; the audit
trail records how it got there.

The audit logger:
- Writes structured JSON lines through structlog
- Never raises (a logging failure must not lose a user's edit)
- Is shared by every component through the controller
"""

import logging
from typing import Optional

import structlog

from ledger.models.audit import AuditEvent, AuditSeverity


def configure_logging(level: str = "INFO") -> None:
    """
    Configure structlog for local logging.

    Safe to call more than once; the last call wins.
    """
    logging.basicConfig(format="%(message)s", level=getattr(logging, level.upper(), logging.INFO))
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging()


class AuditLogger:
    """
    Central audit logging service.

    Keeps the events of the current session in memory as well, so a caller
    (or a test) can inspect what happened without parsing log output.
    """

    def __init__(self, keep_history: int = 500):
        """
        Initialize audit logger.

        Args:
            keep_history: How many recent events to keep in memory
        """
        self._logger = structlog.get_logger("ledger.audit")
        self._keep_history = keep_history
        self._history: list[AuditEvent] = []

    @property
    def history(self) -> list[AuditEvent]:
        """Recent events, oldest first."""
        return list(self._history)

    def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Returns True if the event was written.
        """
        self._history.append(event)
        if len(self._history) > self._keep_history:
            del self._history[: len(self._history) - self._keep_history]

        log_dict = event.to_log_dict()
        try:
            if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
                self._logger.error("audit_event", **log_dict)
            elif event.severity == AuditSeverity.WARNING:
                self._logger.warning("audit_event", **log_dict)
            elif event.severity == AuditSeverity.DEBUG:
                self._logger.debug("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except Exception as e:
            # Log failure but don't raise
            logging.getLogger("ledger.audit").error(
                "audit logging failed for %s: %s", event.event_id, e
            )
            return False

        return True

    def events_of_type(self, event_type: str) -> list[AuditEvent]:
        return [event for event in self._history if event.event_type.value == event_type]

    def last_event(self) -> Optional[AuditEvent]:
        return self._history[-1] if self._history else None
