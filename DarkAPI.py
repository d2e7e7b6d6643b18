import logging
import time
from aiohttp import web
import config
import helpers
import ui

logger = logging.getLogger('DarkAPI')

class DarkAPI:
    """Keep-alive web server for uptime monitors, plus a read-only status endpoint."""

    def __init__(self, bot_client, port=None):
        self.bot = bot_client
        self.app = web.Application()
        self.port = port if port is not None else config.PORT

        # Routes
        self.app.router.add_get('/', self.handle_root)
        self.app.router.add_get('/api/status', self.handle_status)

        self.runner = None
        self.site = None

    async def start(self):
        """Starts the web server."""
        self.runner = web.AppRunner(self.app, access_log=None)
        await self.runner.setup()
        self.site = web.TCPSite(self.runner, '0.0.0.0', self.port)
        await self.site.start()
        logger.info(f"🌐 Web server running on port {self.port}")

    async def stop(self):
        """Stops the web server."""
        if self.runner:
            await self.runner.cleanup()
            self.runner = None
            self.site = None

    # --- Handlers ---

    async def handle_root(self, request):
        return web.Response(text=ui.FLAVOR_TEXT["KEEPALIVE_TEXT"])

    async def handle_status(self, request):
        """Returns bot health and game server status."""
        snapshot = self.bot.server.snapshot()
        user = self.bot.user
        return web.json_response({
            'status': 'online' if user else 'connecting',
            'user': str(user) if user else None,
            'uptime': helpers.format_uptime(time.time() - self.bot.start_time),
            'server': {
                'status': snapshot.status.value,
                'address': snapshot.address,
                'simulated': self.bot.server.simulated,
                'usage': snapshot.usage,
            },
        })
