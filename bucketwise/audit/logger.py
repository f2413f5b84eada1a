"""
Audit Logger

DESIGN DECISION: Every state change a user triggers is logged.
This provides:
1. Traceability of each week's money movements
2. Debugging capability when a store call fails
3. Visibility into rejected input

The audit logger:
- Writes JSON lines through structlog on top of stdlib logging
- Never persists events; the store only holds budget data
- Is configured once, on first use, from AppSettings.log_level
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

import structlog

from bucketwise.config import get_settings
from bucketwise.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from bucketwise.models.results import ValidationIssue

_configured = False


def configure_logging(log_level: Optional[str] = None) -> None:
    """
    Configure structlog for local JSON logging.

    Safe to call repeatedly; only the first call takes effect.
    """
    global _configured
    if _configured:
        return

    level = log_level or get_settings().app.log_level
    logging.basicConfig(format="%(message)s", level=getattr(logging, level, logging.INFO))

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
    _configured = True


def _money(amount: Decimal) -> str:
    return f"{amount:.2f}"


class AuditLogger:
    """
    Central audit logging service.

    One helper per event type so flows never build events by hand.
    """

    def __init__(self):
        configure_logging()
        self._logger = structlog.get_logger("bucketwise.audit")

    async def log(self, event: AuditEvent) -> None:
        """Write an event at the level matching its severity."""
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

    async def log_income_recorded(self, user_id: str, week_start: date, amount: Decimal) -> None:
        await self.log(AuditEventBuilder.income_recorded(
            user_id=user_id,
            week_start=week_start,
            amount=_money(amount),
        ))

    async def log_budgets_rebuilt(
        self,
        user_id: str,
        week_start: date,
        allocations: dict[str, Decimal],
    ) -> None:
        await self.log(AuditEventBuilder.budgets_rebuilt(
            user_id=user_id,
            week_start=week_start,
            allocations={bucket: _money(amount) for bucket, amount in allocations.items()},
        ))

    async def log_transaction_saved(
        self,
        user_id: str,
        transaction_id: UUID,
        category: str,
        amount: Decimal,
        is_new: bool,
    ) -> None:
        await self.log(AuditEventBuilder.transaction_saved(
            user_id=user_id,
            transaction_id=transaction_id,
            category=category,
            amount=_money(amount),
            is_new=is_new,
        ))

    async def log_transaction_deleted(self, user_id: str, transaction_id: UUID) -> None:
        await self.log(AuditEventBuilder.transaction_deleted(
            user_id=user_id,
            transaction_id=transaction_id,
        ))

    async def log_mapping_saved(self, user_id: str, raw_category: str, bucket: str) -> None:
        await self.log(AuditEventBuilder.mapping_saved(
            user_id=user_id,
            raw_category=raw_category,
            bucket=bucket,
        ))

    async def log_bucket_collected(
        self,
        user_id: str,
        week_start: date,
        bucket: str,
        amount: Decimal,
        collection_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.bucket_collected(
            user_id=user_id,
            week_start=week_start,
            bucket=bucket,
            amount=_money(amount),
            collection_id=collection_id,
        ))

    async def log_collection_undone(
        self,
        user_id: str,
        week_start: date,
        bucket: str,
        collection_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.collection_undone(
            user_id=user_id,
            week_start=week_start,
            bucket=bucket,
            collection_id=collection_id,
        ))

    async def log_transfer_recorded(
        self,
        user_id: str,
        week_start: date,
        from_bucket: str,
        to_bucket: str,
        amount: Decimal,
        transfer_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.transfer_recorded(
            user_id=user_id,
            week_start=week_start,
            from_bucket=from_bucket,
            to_bucket=to_bucket,
            amount=_money(amount),
            transfer_id=transfer_id,
        ))

    async def log_adjustment_recorded(
        self,
        user_id: str,
        week_start: date,
        label: str,
        amount: Decimal,
        collection_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.adjustment_recorded(
            user_id=user_id,
            week_start=week_start,
            label=label,
            amount=_money(amount),
            collection_id=collection_id,
        ))

    async def log_goal_saved(self, user_id: str, key: str, target: Decimal) -> None:
        await self.log(AuditEventBuilder.goal_saved(
            user_id=user_id,
            key=key,
            target=_money(target),
        ))

    async def log_goal_deleted(self, user_id: str, key: str, goal_id: UUID) -> None:
        await self.log(AuditEventBuilder.goal_deleted(
            user_id=user_id,
            key=key,
            goal_id=goal_id,
        ))

    async def log_preferences_saved(
        self,
        user_id: str,
        week_start_dow: int,
        notice_dow: Optional[int],
    ) -> None:
        await self.log(AuditEventBuilder.preferences_saved(
            user_id=user_id,
            week_start_dow=week_start_dow,
            notice_dow=notice_dow,
        ))

    async def log_validation_failed(
        self,
        operation: str,
        issues: list[ValidationIssue],
        user_id: Optional[str] = None,
    ) -> None:
        await self.log(AuditEventBuilder.validation_failed(
            operation=operation,
            issues=[
                {"field": i.field, "type": i.issue_type, "message": i.message}
                for i in issues
            ],
            user_id=user_id,
        ))

    async def log_not_found(
        self,
        operation: str,
        message: str,
        user_id: Optional[str] = None,
    ) -> None:
        await self.log(AuditEventBuilder.entity_not_found(
            operation=operation,
            message=message,
            user_id=user_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        user_id: Optional[str] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            user_id=user_id,
        ))
