import logging
import uvicorn
import websockets
from websockets.exceptions import ConnectionClosed
from .storage import InMemoryStorage
from .cache import RedisCache
from .chat_manager import ChatManager
from .registry import PresenceRegistry
from .relay import EventRelay
from .api import create_app
from .config import Settings
from chatrelay.protocol.events import EventCodec, ProtocolError

logger = logging.getLogger(__name__)


class MessengerServer:
    def __init__(self, settings: Settings | None = None, storage: InMemoryStorage | None = None):
        self.settings = settings or Settings()
        self.storage = storage or InMemoryStorage()
        # chat metadata goes to Redis when REDIS_URL or USE_REDIS is set
        self.cache = None
        if self.settings.use_redis:
            self.cache = RedisCache(self.settings.redis_url)

        self.chat_mgr = ChatManager(self.storage, cache=self.cache)
        self.registry = PresenceRegistry()
        self.relay = EventRelay(self.registry, profiles=self.chat_mgr)
        self.app = create_app(self.chat_mgr, prefix=self.settings.api_prefix)

    async def websocket_handler(self, websocket):
        peer = getattr(websocket, 'remote_address', None)
        logger.info("[WS+] %s connected", peer)
        try:
            async for raw in websocket:
                try:
                    event = EventCodec.unpack(raw)
                except ProtocolError as e:
                    logger.warning("[WS] %s sent a bad frame: %s", peer, e)
                    continue
                await self.relay.handle(websocket, event)
        except ConnectionClosed as e:
            logger.info("[WS-] %s closed: %s", peer, e)
        except Exception:
            logger.exception("[WS-] %s handler failed", peer)
        finally:
            # runs on every close path, including keepalive timeouts
            await self.registry.unbind(websocket)
            logger.info("[WS-] %s disconnected", peer)

    def serve_ws(self, port: int | None = None):
        return websockets.serve(
            self.websocket_handler,
            self.settings.host,
            self.settings.ws_port if port is None else port,
            ping_interval=self.settings.ping_interval,
            ping_timeout=self.settings.ping_timeout,
        )

    async def start(self):
        # the WS relay and the HTTP API share one loop; uvicorn owns the
        # signal handling, and the relay stops when the API server exits
        http_server = uvicorn.Server(uvicorn.Config(
            self.app,
            host=self.settings.host,
            port=self.settings.http_port,
            log_level=self.settings.log_level.lower(),
        ))
        try:
            async with self.serve_ws():
                logger.info("WS relay on %s:%s, HTTP API on %s:%s%s",
                            self.settings.host, self.settings.ws_port,
                            self.settings.host, self.settings.http_port, self.settings.api_prefix)
                await http_server.serve()
        finally:
            await self.registry.close()
