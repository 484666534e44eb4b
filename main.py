"""Main entry point for the gifguard service."""

import uvicorn

from gifguard.app import create_app
from gifguard.shared.config import Config
from gifguard.shared.logging import LoggingManager


def main() -> None:
    server_config = Config()
    LoggingManager.setup_logging(server_config.log_level, config=server_config)
    app = create_app(config=server_config)
    uvicorn.run(app, host=server_config.server_host, port=server_config.server_port)


if __name__ == "__main__":
    main()
