import asyncio
import logging
from chatrelay.server.config import configure_logging, load_settings
from chatrelay.server.server import MessengerServer


def main():
    settings = load_settings()
    configure_logging(settings.log_level)
    server = MessengerServer(settings)
    logging.getLogger(__name__).info("Server starting: direct chats, groups, typing indicators")
    try:
        asyncio.run(server.start())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
