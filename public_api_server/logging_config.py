"""
Structured logging configuration with request tracking and rotation.
"""
import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import structlog
from structlog.types import EventDict, Processor


def add_app_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Add application context to all log entries."""
    event_dict["app"] = "public-api"
    return event_dict


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "json",
    log_file: Optional[str] = None,
    log_max_bytes: int = 10485760,  # 10MB
    log_backup_count: int = 5,
) -> None:
    """
    Configure structured logging with rotation.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Output format ('json' or 'console')
        log_file: Optional log file path
        log_max_bytes: Max log file size before rotation
        log_backup_count: Number of backup files to keep
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=numeric_level,
    )

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        add_app_context,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
    ]

    if log_format == "json":
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer()
        ]
    else:
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(colors=True)
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            filename=log_file,
            maxBytes=log_max_bytes,
            backupCount=log_backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(numeric_level)
        logging.getLogger().addHandler(file_handler)


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    """
    Get a configured logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured logger instance
    """
    return structlog.get_logger(name)


def mask_api_key(api_key: Optional[str]) -> str:
    """Keep the first 8 characters of a key, hide the rest."""
    if not api_key:
        return "***"
    return f"{api_key[:8]}..." if len(api_key) > 8 else "***"


def log_request_start(
    method: str,
    path: str,
    request_id: str,
    client_ip: Optional[str] = None,
    **kwargs
) -> None:
    """
    Log incoming API request.

    Args:
        method: HTTP method
        path: Request path
        request_id: Unique request ID
        client_ip: Client IP address
        **kwargs: Additional context
    """
    logger = get_logger("api")
    logger.info(
        "request_start",
        method=method,
        path=path,
        request_id=request_id,
        client_ip=client_ip,
        **kwargs
    )


def log_request_end(
    method: str,
    path: str,
    request_id: str,
    status_code: int,
    duration_ms: float,
    **kwargs
) -> None:
    """
    Log completed API request.

    Args:
        method: HTTP method
        path: Request path
        request_id: Unique request ID
        status_code: HTTP status code
        duration_ms: Request duration in milliseconds
        **kwargs: Additional context
    """
    logger = get_logger("api")
    logger.info(
        "request_end",
        method=method,
        path=path,
        request_id=request_id,
        status_code=status_code,
        duration_ms=duration_ms,
        **kwargs
    )


def log_auth_failure(reason: str, api_key: Optional[str] = None, **kwargs) -> None:
    """Log a rejected authentication attempt with the key masked."""
    logger = get_logger("auth")
    logger.warning(
        "auth_failed",
        reason=reason,
        api_key=mask_api_key(api_key),
        **kwargs
    )


def log_ip_blocked(client_ip: str, key_id: str, allowed_count: int, **kwargs) -> None:
    """Log a request refused by the key's IP allow-list."""
    logger = get_logger("auth")
    logger.warning(
        "ip_blocked",
        client_ip=client_ip,
        key_id=key_id,
        allowed_count=allowed_count,
        **kwargs
    )


def log_rate_limit_exceeded(
    api_key: str,
    limit_type: str,
    limit_value: int,
    current_count: int,
    **kwargs
) -> None:
    """
    Log rate limit exceeded event.

    Args:
        api_key: Raw API key (masked before logging)
        limit_type: Type of limit (minute/day)
        limit_value: Limit threshold
        current_count: Current request count
        **kwargs: Additional context
    """
    logger = get_logger("rate_limiter")
    logger.warning(
        "rate_limit_exceeded",
        api_key=mask_api_key(api_key),
        limit_type=limit_type,
        limit_value=limit_value,
        current_count=current_count,
        **kwargs
    )


def log_usage_warning(
    key_id: str,
    percent: int,
    current_count: int,
    limit_value: int,
    **kwargs
) -> None:
    """Log that a key crossed a daily usage warning threshold."""
    logger = get_logger("rate_limiter")
    logger.info(
        "usage_warning_threshold",
        key_id=key_id,
        percent=percent,
        current_count=current_count,
        limit_value=limit_value,
        **kwargs
    )


def log_provider_call(
    action: str,
    success: bool,
    duration_ms: float,
    error: Optional[str] = None,
    **kwargs
) -> None:
    """
    Log a call to the upstream SMM provider.

    Args:
        action: Provider action (services, balance, add, status, refill, cancel)
        success: Whether the provider accepted the call
        duration_ms: Call duration in milliseconds
        error: Provider or transport error message if failed
        **kwargs: Additional context
    """
    logger = get_logger("smm_provider")

    if success:
        logger.info(
            "provider_call",
            action=action,
            duration_ms=duration_ms,
            **kwargs
        )
    else:
        logger.warning(
            "provider_call_failed",
            action=action,
            duration_ms=duration_ms,
            error=error,
            **kwargs
        )


def log_exception(
    exception: Exception,
    context: Optional[Dict[str, Any]] = None,
    **kwargs
) -> None:
    """
    Log exception with full context.

    Args:
        exception: Exception instance
        context: Additional context dictionary
        **kwargs: Additional context
    """
    logger = get_logger("exception")

    log_data = {
        "exception_type": type(exception).__name__,
        "exception_message": str(exception),
        **(context or {}),
        **kwargs
    }

    logger.exception(
        "exception_occurred",
        **log_data
    )


if __name__ == "__main__":
    setup_logging(log_level="DEBUG", log_format="console")

    logger = get_logger(__name__)
    logger.info("Testing structured logging", test_id=12345)

    log_request_start("GET", "/public-api/products", "req-123", client_ip="192.168.1.1")
    log_request_end("GET", "/public-api/products", "req-123", 200, 12.5)
    log_rate_limit_exceeded("pk_live_1234567890", "minute", 60, 60)
    log_provider_call("balance", True, 85.2)

    try:
        raise ValueError("Test exception")
    except Exception as e:
        log_exception(e, context={"operation": "test"})
