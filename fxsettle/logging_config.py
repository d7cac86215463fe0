"""
Structured logging for fxsettle.

Every module logs through the stdlib `logging` module; structlog renders the
records. Development (DEBUG) gets the console renderer, everything else gets
JSON lines. Workflow identifiers are carried in contextvars so each line from
a step can be traced back to its workflow.
"""

import logging
import sys
from typing import Any, List, Optional

import structlog

from .config import settings

# Event keys whose values must never reach a log sink
SECRET_KEYS = frozenset({
    "private_key",
    "privateKey",
    "relayer_private_key",
    "relayerPrivateKey",
    "entity_secret",
    "entitySecretCiphertext",
    "api_key",
    "authorization",
})

QUIET_LOGGERS = ("uvicorn.access", "httpcore", "httpx")


def redact_secrets(_logger: Any, _method: str, event_dict: structlog.types.EventDict) -> structlog.types.EventDict:
    """structlog processor masking signing keys and service credentials."""
    for key in SECRET_KEYS.intersection(event_dict):
        event_dict[key] = "***"
    return event_dict


def _renderer(is_dev: bool) -> structlog.types.Processor:
    if is_dev:
        return structlog.dev.ConsoleRenderer()
    return structlog.processors.JSONRenderer()


def setup_logging(log_level: Optional[str] = None) -> None:
    """Install the structlog formatter on the root logger.

    Args:
        log_level: Override log level (default: from settings.log_level)
    """
    level = getattr(logging, (log_level or settings.log_level).upper(), logging.INFO)
    is_dev = level == logging.DEBUG

    pre_chain: List[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        redact_secrets,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if not is_dev:
        pre_chain.append(structlog.processors.format_exc_info)

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, _renderer(is_dev)],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def bind_workflow_context(workflow_id: str, flow_type: str, step: Optional[str] = None) -> None:
    """Attach workflow identifiers to every log line emitted in the current context."""
    structlog.contextvars.bind_contextvars(workflow_id=workflow_id, flow_type=flow_type)
    if step:
        structlog.contextvars.bind_contextvars(step=step)
