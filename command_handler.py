import time
import logging
import discord
import helpers
import ui
from errors import BotError, InvalidState

logger = logging.getLogger("CommandHandler")

# Admin-only server/bot operations; /serverstart is open to everyone
ADMIN_SERVER_OPS = ("stop", "restart")


async def require_admin(interaction):
    """Returns True for the admin, otherwise answers with a refusal and returns False."""
    if helpers.is_admin(interaction.user):
        return True
    await interaction.response.send_message(ui.FLAVOR_TEXT["NOT_AUTHORIZED"], ephemeral=True)
    return False


# ==========================================
# MINECRAFT SERVER
# ==========================================

async def server_command(client, interaction, op):
    """Acknowledges the command, then runs start/stop/restart reporting into the invoking channel."""
    if op in ADMIN_SERVER_OPS and not await require_admin(interaction):
        return

    await interaction.response.send_message(embed=ui.command_ack_embed(op))

    action = getattr(client.server, op)
    try:
        await action(interaction.channel)
    except InvalidState as e:
        logger.info(f"/server{op} rejected while {e.status.value if e.status else '?'}")
        try:
            await interaction.followup.send(embed=ui.server_notice("rejected", error=e.message))
        except discord.HTTPException as http_err:
            logger.error(f"Failed to deliver rejection: {http_err}")


async def server_status(client, interaction):
    await interaction.response.send_message(embed=ui.server_status_embed(client.server.snapshot()))


# ==========================================
# ANNOUNCEMENTS
# ==========================================

async def open_announce_panel(client, interaction):
    async def publish(session):
        await interaction.response.send_message(embed=ui.announce_panel_embed(session), view=ui.AnnouncePanelView(client.announcer))
        return await interaction.original_response()

    try:
        await client.announcer.open(interaction.user.id, interaction.guild_id, publish)
    except BotError as e:
        await ui.respond_error(interaction, e)


# ==========================================
# SETTINGS
# ==========================================

CHANNEL_SETTINGS = {
    # command -> (settings key, already-set reply, success reply)
    "welcome": ("welcome_channel_id", "Welcome messages are already set for this channel 🎉", "✅ Welcome channel set to {mention}"),
    "level": ("level_channel_id", "Chill, level-up messages already go to this channel 💧", "✅ Level-up messages will be sent in {mention}"),
    "console": ("console_channel_id", "Server console output already goes to this channel 💧", "✅ Server console output will be shown in {mention}\nNote: Only works when LOCAL_SERVER=true"),
}


async def set_channel_setting(client, interaction, which, channel):
    if not await require_admin(interaction):
        return
    if channel is None:
        await interaction.response.send_message("❌ Please provide a channel.", ephemeral=True)
        return

    key, already, done = CHANNEL_SETTINGS[which]
    if client.settings.get(key) == channel.id:
        await interaction.response.send_message(already, ephemeral=True)
        return

    client.settings.set(key, channel.id)
    logger.info(f"Setting {key} = {channel.id}")
    await interaction.response.send_message(done.format(mention=channel.mention))


async def set_auto_role(client, interaction, role):
    if not await require_admin(interaction):
        return
    if role is None:
        await interaction.response.send_message("❌ Please provide a role.", ephemeral=True)
        return
    client.settings.set("auto_role_id", role.id)
    await interaction.response.send_message(f"✅ Auto role set to {role.mention}")


async def set_event(client, interaction, name, duration):
    if not await require_admin(interaction):
        return
    await interaction.response.send_message(f'✅ Event "{name}" set for {duration}')


async def greet_test(client, interaction):
    channel_id = client.settings.get("welcome_channel_id")
    if not channel_id:
        await interaction.response.send_message("❌ Welcome channel not set", ephemeral=True)
        return
    channel = interaction.guild.get_channel(channel_id) if interaction.guild else None
    if channel:
        try:
            await channel.send("Test Greeting! Welcome!")
        except discord.HTTPException as e:
            logger.error(f"Greeting test failed: {e}")
    await interaction.response.send_message("✅ Greeting test sent")


# ==========================================
# COMMUNITY
# ==========================================

async def rank(client, interaction):
    record = client.levels.peek(interaction.user.id)
    await interaction.response.send_message(f"You are Level **{record['level']}** with **{record['xp']} XP**")


async def leaderboard(client, interaction):
    await interaction.response.send_message(ui.leaderboard_text(client.levels.leaderboard()))


async def uptime(client, interaction):
    await interaction.response.send_message(f"Bot Uptime: {helpers.format_uptime(time.time() - client.start_time)}")


async def ping(client, interaction):
    await interaction.response.send_message(f"🏓 Pong! Latency: {round(client.latency * 1000)}ms")


async def show_help(client, interaction):
    await interaction.response.send_message(embed=ui.help_embed())


# ==========================================
# BOT PROCESS
# ==========================================

async def stop_bot(client, interaction):
    if not await require_admin(interaction):
        return
    await interaction.response.send_message("Shutting down bot... Bye!")
    await client.shutdown(restart=False)


async def restart_bot(client, interaction):
    if not await require_admin(interaction):
        return
    await interaction.response.send_message("Restarting bot...")
    await client.shutdown(restart=True)


# ==========================================
# GATEWAY EVENTS
# ==========================================

async def handle_member_join(client, member):
    role_id = client.settings.get("auto_role_id")
    if role_id:
        role = member.guild.get_role(role_id)
        if role:
            try:
                await member.add_roles(role, reason="Auto role")
            except discord.HTTPException as e:
                logger.error(f"Failed to assign auto role to {member.id}: {e}")

    channel_id = client.settings.get("welcome_channel_id")
    if channel_id:
        channel = member.guild.get_channel(channel_id)
        if channel:
            try:
                await channel.send(embed=ui.welcome_embed(member))
            except discord.HTTPException as e:
                logger.error(f"Failed to send welcome for {member.id}: {e}")


async def handle_message(client, message):
    if message.author.bot:
        return
    new_level = client.levels.award(message.author.id)
    if not new_level:
        return

    channel_id = client.settings.get("level_channel_id")
    if not channel_id or not message.guild:
        return
    channel = message.guild.get_channel(channel_id)
    if channel:
        try:
            await channel.send(content=message.author.mention, embed=ui.level_up_embed(new_level))
        except discord.HTTPException as e:
            logger.error(f"Failed to announce level up: {e}")
