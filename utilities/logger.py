"""
Structured logging using structlog.
Provides logging setup plus the inventory outcome logger used as the
observability hook for stock operations.
"""

import logging
import sys
from pathlib import Path
from typing import Optional
import structlog
from structlog.stdlib import LoggerFactory


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "json",
    log_file: Optional[str] = None,
    debug: bool = False
) -> None:
    """
    Set up structured logging with configurable output formats.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Output format (json or console)
        log_file: Optional log file path
        debug: Add call-site information to every event
    """

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if debug:
        processors.append(structlog.processors.CallsiteParameterAdder())

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(getattr(logging, log_level.upper()))
        file_handler.setFormatter(logging.Formatter('%(message)s'))
        logging.getLogger().addHandler(file_handler)

    logger = structlog.get_logger(__name__)
    logger.info(
        "Logging system initialized",
        level=log_level,
        format=log_format,
        file=str(log_file) if log_file else None,
        debug=debug
    )


def quantity_range(quantity: int) -> str:
    """Bucket a quantity into a low-cardinality label."""
    if quantity <= 5:
        return "1-5"
    if quantity <= 10:
        return "6-10"
    if quantity <= 25:
        return "11-25"
    if quantity <= 50:
        return "26-50"
    return "50+"


class InventoryLogger:
    """
    Outcome logger for inventory operations.

    Receives notifications after an operation has committed (or has been
    rejected). Nothing here participates in the write path.
    """

    def __init__(self, name: str = "inventory"):
        self.logger = structlog.get_logger(name)
        self.context = {}

    def bind_context(self, **kwargs) -> 'InventoryLogger':
        """
        Bind context variables to the logger.

        Args:
            **kwargs: Context variables to bind

        Returns:
            Self for method chaining
        """
        self.context.update(kwargs)
        return self

    def clear_context(self) -> 'InventoryLogger':
        """Clear all context variables."""
        self.context.clear()
        return self

    def log_reserved(self, book_id: str, quantity: int, available_after: int) -> None:
        self.logger.info(
            "Inventory reserved",
            book_id=book_id,
            quantity=quantity,
            quantity_range=quantity_range(quantity),
            available_after=available_after,
            **self.context
        )

    def log_released(self, book_id: str, quantity: int, reserved_after: int) -> None:
        self.logger.info(
            "Reservation released",
            book_id=book_id,
            quantity=quantity,
            quantity_range=quantity_range(quantity),
            reserved_after=reserved_after,
            **self.context
        )

    def log_adjusted(
        self,
        book_id: str,
        quantity_change: int,
        adjustment_type: str,
        reason: Optional[str],
        quantity_after: int
    ) -> None:
        self.logger.info(
            "Inventory adjusted",
            book_id=book_id,
            quantity_change=quantity_change,
            adjustment_type=adjustment_type,
            reason=reason,
            quantity_after=quantity_after,
            **self.context
        )

    def log_reorder_level(self, book_id: str, reorder_level: int) -> None:
        self.logger.info(
            "Reorder level updated",
            book_id=book_id,
            reorder_level=reorder_level,
            **self.context
        )

    def log_bulk_complete(self, applied: int, requested: int) -> None:
        """Log a bulk update that ran to the end or stopped early."""
        level = "info" if applied == requested else "warning"
        getattr(self.logger, level)(
            "Bulk inventory update finished",
            applied=applied,
            requested=requested,
            **self.context
        )

    def log_rejected(self, operation: str, book_id: str, error: str) -> None:
        self.logger.warning(
            "Inventory operation rejected",
            operation=operation,
            book_id=book_id,
            error=error,
            **self.context
        )
