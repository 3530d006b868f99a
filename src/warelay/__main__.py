"""Process entry point: ``python -m warelay``.

Exit codes:
    0 - clean shutdown
    1 - configuration error, or the WhatsApp session failed authentication
"""

from __future__ import annotations

import sys
import threading

import uvicorn

from warelay.api.factory import create_app
from warelay.config import MISSING_EVOLUTION_CONFIG, load_settings
from warelay.errors import ConfigError
from warelay.observability.logging import configure_logging, get_logger
from warelay.session.gate import SessionGate
from warelay.whatsapp.evolution import EvolutionClient

logger = get_logger(__name__)


def _stop_on_terminal(gate: SessionGate, server: uvicorn.Server) -> None:
    gate.wait_terminal()
    logger.error(
        "session is terminal, shutting down",
        extra={"extra_fields": {"reason": gate.terminal_reason}},
    )
    server.should_exit = True


def main() -> int:
    """Load settings, build the app and serve until shutdown."""
    configure_logging()

    try:
        settings = load_settings()
    except ConfigError as e:
        logger.error("invalid configuration", extra={"extra_fields": {"error": str(e)}})
        return 1

    configure_logging(settings.log_level, settings.log_dir)

    if settings.evolution is None:
        logger.error(
            "invalid configuration",
            extra={"extra_fields": {"error": MISSING_EVOLUTION_CONFIG}},
        )
        return 1

    gate = SessionGate()
    client = EvolutionClient(settings.evolution)
    app = create_app(settings, client, gate=gate)

    logger.info(
        "starting WhatsApp relay",
        extra={
            "extra_fields": {
                "port": settings.port,
                "instance": settings.evolution.instance,
                "token_configured": bool(settings.api_token),
            }
        },
    )

    server = uvicorn.Server(
        uvicorn.Config(app, host=settings.host, port=settings.port, log_config=None)
    )
    threading.Thread(
        target=_stop_on_terminal, args=(gate, server), name="session-supervisor", daemon=True
    ).start()

    server.run()

    if gate.terminal_reason is not None:
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
