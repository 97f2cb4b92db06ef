# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""structlog + stdlib bridge for entitymap and its host application.

Library modules only call ``logging.getLogger(__name__)``; nothing is
configured at import. Applications (and the CLI) call ``configure(config)``
once with the same ``EngineConfig`` they build entities with.

Records emitted while an entity is built carry ``entity_class`` and
``entity_field`` (plus ``entity_path`` on failures) from
``structlog.contextvars``.

Leaf module. No entitymap imports besides config.
"""

from __future__ import annotations

import logging
import sys
from typing import TextIO

import structlog

from .config import EngineConfig

_ENTITY_KEYS = ("entity_class", "entity_field", "entity_path")


def _order_entity_keys(logger: object, method_name: str, event_dict: dict) -> dict:
    """Move entity context keys right after the event so console lines read naturally."""
    moved = {k: event_dict.pop(k) for k in _ENTITY_KEYS if k in event_dict}
    event_dict.update(moved)
    return event_dict


def _shared_processors() -> list:
    """Processors applied to both structlog and foreign stdlib records."""
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        _order_entity_keys,
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]


def _renderer(config: EngineConfig):
    if config.json_logs:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=False)


def configure(config: EngineConfig | None = None, *, stream: TextIO | None = None) -> None:
    """Install the structlog pipeline on the root logger.

    ``config.json_logs`` selects JSON lines over the console format and
    ``config.log_level`` sets the root level (unknown names fall back to
    INFO). Without a config the ``EngineConfig`` defaults apply.

    Args:
        config: Engine settings carrying the logging options.
        stream: Output stream, stderr by default.
    """
    config = config or EngineConfig()
    shared = _shared_processors()

    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, _renderer(config)],
            foreign_pre_chain=shared,
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, config.log_level.upper(), logging.INFO))
