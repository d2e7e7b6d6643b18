import discord
from discord import app_commands
import logging
import asyncio
import os
import sys
import time
import traceback

# Local Modules
import config

# ==========================================
# LOGGING SETUP (Must be before other imports)
# ==========================================
os.makedirs(config.LOGS_DIR, exist_ok=True)

class RateLimitTraceFilter(logging.Filter):
    def filter(self, record):
        # Catch "We are being rate limited" from discord.http and point at our code
        if record.name == "discord.http" and "rate limited" in record.getMessage().lower():
            stack = traceback.format_stack()
            local = [f" >> {line.strip()}" for line in stack
                     if any(x in line for x in ["DarkMC.py", "command_handler.py", "ui.py", "announce.py", "server_control.py"])]
            if local:
                record.msg = f"{record.msg}\n🚨 RATE LIMIT SOURCE TRACE:\n" + "\n".join(local)
        return True

# Configure Logging
logger = logging.getLogger('DarkMC') # Local logger for this file
root_logger = logging.getLogger()
root_logger.setLevel(logging.INFO)
formatter = logging.Formatter('%(asctime)s [%(levelname)s] %(name)s: %(message)s')

rate_limit_filter = RateLimitTraceFilter()

# Console Handler
console_handler = logging.StreamHandler(sys.stdout)
console_handler.setFormatter(formatter)
console_handler.addFilter(rate_limit_filter)

# File Handler
file_handler = logging.FileHandler(os.path.join(config.LOGS_DIR, 'darkmc.log'), encoding='utf-8')
file_handler.setFormatter(formatter)
file_handler.addFilter(rate_limit_filter)

# Apply handlers to root (captures all loggers: DarkMC, Supervisor, Server, discord, etc.)
if not root_logger.handlers:
    root_logger.addHandler(console_handler)
    root_logger.addHandler(file_handler)

# Other Local Modules (Imported AFTER logging is set up)
import DarkAPI
import command_handler
import rate_limiter
import storage
import ui
from announce import AnnounceManager
from console_relay import ConsoleRelay
from leveling import LevelBook
from scheduler import Scheduler
from server_control import ServerController
from supervisor import ProcessSupervisor

# ==========================================
# BOT SETUP
# ==========================================

intents = discord.Intents.default()
intents.messages = True
intents.message_content = True
intents.guilds = True
intents.members = True

class DarkMCBot(discord.Client):
    """Owns every piece of runtime state; handlers reach it through the client instance."""

    def __init__(self):
        super().__init__(intents=intents)
        self.tree = app_commands.CommandTree(self)

        self.start_time = time.time()
        self.restart_requested = False

        self.scheduler = Scheduler()
        self.settings = storage.JsonStore(config.CONFIG_FILE, storage.SETTINGS_DEFAULTS)
        self.levels = LevelBook(storage.JsonStore(config.LEVELS_FILE), self.scheduler)

        self.relay = ConsoleRelay(self.send_console_chunk, self.scheduler,
                                  is_enabled=lambda: bool(self.settings.get("console_channel_id")))
        self.supervisor = None
        if config.LOCAL_SERVER:
            self.supervisor = ProcessSupervisor()
            self.supervisor.on_output = self.relay.feed
        self.server = ServerController(self.scheduler, self.supervisor)
        self.announcer = AnnounceManager(config.ADMIN_ID, self.scheduler, self.resolve_text_channel,
                                         limiter=rate_limiter.limiter)

        # Keep-alive server
        self.api_server = DarkAPI.DarkAPI(self)

    async def setup_hook(self):
        try:
            await self.api_server.start()
        except OSError as e:
            logger.error(f"Failed to start web server on port {self.api_server.port}: {e}")

        try:
            logger.info("Registering slash commands...")
            await self.tree.sync()
            logger.info("✅ Commands registered")
        except discord.HTTPException as e:
            logger.error(f"Failed to register commands: {e}")

        asyncio.create_task(self.heartbeat_task())

    async def heartbeat_task(self):
        """Periodic keep-alive log line."""
        while not self.is_closed():
            await asyncio.sleep(config.KEEPALIVE_LOG_SECONDS)
            logger.info("🔁 Keep-alive ping")

    def resolve_text_channel(self, guild_id, channel_id):
        """Channel the bot can post in, or None."""
        guild = self.get_guild(guild_id) if guild_id else None
        channel = guild.get_channel(channel_id) if guild else self.get_channel(channel_id)
        if channel is None or not hasattr(channel, "send"):
            return None
        if guild and not channel.permissions_for(guild.me).send_messages:
            return None
        return channel

    async def send_console_chunk(self, chunk):
        channel_id = self.settings.get("console_channel_id")
        channel = self.get_channel(channel_id) if channel_id else None
        if not channel:
            return
        await rate_limiter.limiter.wait_for_slot("send_message", channel.id)
        await channel.send(ui.console_block(chunk))

    async def shutdown(self, restart=False):
        """Stops the game server if we own it, flushes state and closes the client."""
        self.restart_requested = restart
        try:
            await self.server.shutdown()
        except Exception as e:
            logger.error(f"Server shutdown failed: {e}")
        await self.relay.wait_idle()
        self.levels.flush()
        await self.api_server.stop()
        await self.close()

    async def on_ready(self):
        logger.info(f"✅ {self.user} is online")

client = DarkMCBot()

# ==========================================
# SLASH COMMANDS
# ==========================================

@client.tree.command(name="announce", description="Open interactive announcement panel (admin only)")
async def announce_command(interaction: discord.Interaction):
    await command_handler.open_announce_panel(client, interaction)

@client.tree.command(name="setwelcomechannel", description="Set welcome channel")
@app_commands.describe(channel="Select welcome channel")
async def setwelcomechannel_command(interaction: discord.Interaction, channel: discord.TextChannel = None):
    await command_handler.set_channel_setting(client, interaction, "welcome", channel)

@client.tree.command(name="setautorole", description="Set auto role for new members")
@app_commands.describe(role="Select role to assign")
async def setautorole_command(interaction: discord.Interaction, role: discord.Role = None):
    await command_handler.set_auto_role(client, interaction, role)

@client.tree.command(name="setevent", description="Set a server event")
@app_commands.describe(name="Event name", duration="Duration (10s,5m,1h)")
async def setevent_command(interaction: discord.Interaction, name: str, duration: str):
    await command_handler.set_event(client, interaction, name, duration)

@client.tree.command(name="greettest", description="Test welcome greeting")
async def greettest_command(interaction: discord.Interaction):
    await command_handler.greet_test(client, interaction)

@client.tree.command(name="uptime", description="Check bot uptime")
async def uptime_command(interaction: discord.Interaction):
    await command_handler.uptime(client, interaction)

@client.tree.command(name="help", description="Show bot commands")
async def help_command(interaction: discord.Interaction):
    await command_handler.show_help(client, interaction)

@client.tree.command(name="setlevelchannel", description="Set channel for level-up messages")
@app_commands.describe(channel="Select channel")
async def setlevelchannel_command(interaction: discord.Interaction, channel: discord.TextChannel = None):
    await command_handler.set_channel_setting(client, interaction, "level", channel)

@client.tree.command(name="setconsolechannel", description="Set channel for live server console output (admin only)")
@app_commands.describe(channel="Select channel")
async def setconsolechannel_command(interaction: discord.Interaction, channel: discord.TextChannel = None):
    await command_handler.set_channel_setting(client, interaction, "console", channel)

@client.tree.command(name="rank", description="Check your level")
async def rank_command(interaction: discord.Interaction):
    await command_handler.rank(client, interaction)

@client.tree.command(name="leaderboard", description="Show top 10 active users")
async def leaderboard_command(interaction: discord.Interaction):
    await command_handler.leaderboard(client, interaction)

@client.tree.command(name="ping", description="Check bot latency")
async def ping_command(interaction: discord.Interaction):
    await command_handler.ping(client, interaction)

@client.tree.command(name="stop", description="Stop the bot")
async def stop_command(interaction: discord.Interaction):
    await command_handler.stop_bot(client, interaction)

@client.tree.command(name="restart", description="Restart the bot")
async def restart_command(interaction: discord.Interaction):
    await command_handler.restart_bot(client, interaction)

# --- Server control ---

@client.tree.command(name="serverstart", description="Start the Minecraft server (anyone)")
async def serverstart_command(interaction: discord.Interaction):
    await command_handler.server_command(client, interaction, "start")

@client.tree.command(name="serverstop", description="Stop the Minecraft server (admin only)")
async def serverstop_command(interaction: discord.Interaction):
    await command_handler.server_command(client, interaction, "stop")

@client.tree.command(name="serverrestart", description="Restart the Minecraft server (admin only)")
async def serverrestart_command(interaction: discord.Interaction):
    await command_handler.server_command(client, interaction, "restart")

@client.tree.command(name="serverstatus", description="Get the Minecraft server status")
async def serverstatus_command(interaction: discord.Interaction):
    await command_handler.server_status(client, interaction)

@client.tree.error
async def on_app_command_error(interaction: discord.Interaction, error: app_commands.AppCommandError):
    logger.error(f"Interaction handler error: {error}")
    await ui.respond_error(interaction, error)

# ==========================================
# GATEWAY EVENTS
# ==========================================

@client.event
async def on_member_join(member):
    await command_handler.handle_member_join(client, member)

@client.event
async def on_message(message):
    await command_handler.handle_message(client, message)

def main():
    if not config.BOT_TOKEN:
        logger.error("❌ BOT_TOKEN not found.")
        sys.exit(1)
    try:
        client.run(config.BOT_TOKEN, log_handler=None)
    except KeyboardInterrupt:
        logger.info("🛑 Keyboard Interrupt received.")
    finally:
        client.levels.flush()
        if client.restart_requested:
            logger.info("🔄 Restart requested. Re-executing...")
            python = sys.executable
            os.execl(python, python, *sys.argv)
        logger.info("🛑 Process ended naturally.")
    sys.exit(0)

if __name__ == "__main__":
    main()
