from __future__ import annotations

"""
Process entrypoint for the `web-terminal-exec` console script.

Loads configuration from the environment (and the optional .env file), sets
up logging, builds the activity manager so configuration or client errors
fail before the socket is opened, then serves the app over TLS with uvicorn.
"""

import logging
import sys

import uvicorn

from wte_server.app.config import ConfigError, ServerConfig
from wte_server.app.errors import InternalError
from wte_server.app.logging_setup import initialize_from_env
from wte_server.app.main import create_app
from wte_server.app.workspaces.clients import KubernetesClientProvider
from wte_server.app.workspaces.lifecycle import new_activity_manager

logger = logging.getLogger("wte_server")


def build_server(settings: ServerConfig) -> uvicorn.Server:
    client_provider = KubernetesClientProvider(exec_timeout_seconds=settings.exec_timeout_seconds)
    try:
        manager = new_activity_manager(settings, client_provider)
    except (ConfigError, InternalError) as e:
        logger.critical("Failed to set up activity manager: %s", e)
        raise SystemExit(1)

    app = create_app(settings, client_provider=client_provider, activity_manager=manager)
    host, port = settings.listen_address()
    config = uvicorn.Config(
        app,
        host=host,
        port=port,
        ssl_certfile=settings.tls_cert_file,
        ssl_keyfile=settings.tls_key_file,
        log_level=logger.getEffectiveLevel(),
        # Handlers are installed by logging_setup; keep uvicorn from replacing them.
        log_config=None,
    )
    return uvicorn.Server(config)


def main() -> int:
    try:
        settings = ServerConfig.from_env(dotenv=True)
    except ConfigError as e:
        print(f"web-terminal-exec: invalid configuration: {e}", file=sys.stderr)
        raise SystemExit(1)

    log_path = initialize_from_env(level=settings.log_level)
    logger.info("Web Terminal Exec logging to file: %s", log_path)
    settings.log_summary(logger)

    server = build_server(settings)
    host, port = settings.listen_address()
    logger.info("Starting server on %s:%s", host, port)
    server.run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
