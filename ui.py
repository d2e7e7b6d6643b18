import discord
import logging
import config
import helpers
from errors import BotError

logger = logging.getLogger("UI")

# ==========================================
# FLAVOR TEXT & UI CONFIGURATION
# ==========================================
FLAVOR_TEXT = {
    "NOT_AUTHORIZED": "⛔ Only admin can use this command.",
    "GENERIC_ERROR": "❌ An error occurred.",
    "STATUS_FOOTER": f"{config.BRAND_NAME} • Server Status 💧",
    "ANNOUNCE_FOOTER": f"{config.BRAND_NAME} • Announcement 💧",
    "BUILDER_FOOTER": f"{config.BRAND_NAME} • Announcement Builder 💧",
    "WELCOME_FOOTER": f"{config.BRAND_NAME} • Stay Cool 💧",
    "HELP_FOOTER": f"{config.BRAND_NAME} • Made with 💧",
    "NOT_SET": "_Not set_",
    "NOT_SELECTED": "_Not selected_",
    "PANEL_SENT": "✅ Announcement sent!",
    "PANEL_CLOSED": "❌ Announcement session closed.",
    "PANEL_EXPIRED": "⏳ Announcement builder session expired.",
    "PANEL_UNDELIVERED": "⚠️ Announcement could not be delivered.",
    "NO_CHANNELS": "No selectable channels available.",
    "PICK_CHANNEL": "Choose a channel from the menu below:",
    "CHANNEL_PICKED": "✅ Channel selected.",
    "WELCOME_TITLE": f"🎉 Welcome to {config.BRAND_NAME}!",
    "WELCOME_BODY": f"Hey! 🎉\nWelcome to the {config.BRAND_NAME} Community 💀\nChill, chat and level up ⚡\nCheck #rules and #updates channels!",
    "LEVEL_UP_TITLE": "🎯 Level Up!",
    "KEEPALIVE_TEXT": f"✅ {config.BRAND_NAME} Bot is alive and running!",
}

# kind -> (title, description, color). Descriptions may use {address}, {error}, {code}.
SERVER_NOTICES = {
    "starting": ("🟢 Server Starting...", "Please wait, the Minecraft server is starting...", config.BRAND_COLOR),
    "started": ("✅ Server has started!", "Server is online — join at `{address}`", config.BRAND_COLOR),
    "started_fallback": ("✅ Server Started (fallback)", "Server assumed online — join at `{address}`", config.BRAND_COLOR),
    "spawn_failed": ("❌ Failed to start server", "{error}", config.ERROR_COLOR),
    "stopping": ("🔴 Server Stopping...", "Please wait, server is shutting down...", config.BRAND_COLOR),
    "stopped": ("🛑 Server Stopped", "Server has been stopped successfully.", config.ERROR_COLOR),
    "crashed": ("❌ Server stopped unexpectedly", "Server process exited ({code}).", config.ERROR_COLOR),
    "auto_restart": ("🔁 Auto-restart", "Auto-restart enabled — attempting to restart in {delay} seconds...", config.BRAND_COLOR),
    "restarting": ("🔁 Server Restarting...", "Server will stop and restart — please wait...", config.BRAND_COLOR),
    "booting": ("🟡 Server Starting...", "Booting up the server again...", config.BRAND_COLOR),
    "restarted": ("✅ Server Restarted!", "Server is back online 💧", config.BRAND_COLOR),
    "rejected": ("⚠️ Not possible right now", "{error}", config.BRAND_COLOR),
    "status": ("📡 Server Status", "Current status: **{status}**\nIP: `{address}`", config.BRAND_COLOR),
}

# Acknowledgements for the slash commands themselves
COMMAND_ACKS = {
    "start": ("🟢 Starting Server", "Attempting to start the Minecraft server..."),
    "stop": ("🔴 Stopping Server", "Attempting to stop the Minecraft server..."),
    "restart": ("🔁 Restarting Server", "Attempting to restart the Minecraft server..."),
}


def to_color(value, default=config.BRAND_COLOR):
    try:
        return discord.Color.from_str(value or default)
    except ValueError:
        return discord.Color.from_str(default)


def status_embed(title, description, color=config.BRAND_COLOR):
    embed = discord.Embed(title=title, description=description, color=to_color(color), timestamp=discord.utils.utcnow())
    embed.set_footer(text=FLAVOR_TEXT["STATUS_FOOTER"])
    return embed


def server_notice(kind, **fields):
    title, template, color = SERVER_NOTICES[kind]
    fields.setdefault("address", config.SERVER_IP)
    try:
        description = template.format(**fields)
    except KeyError:
        description = template
    return status_embed(title, description, color)


def server_status_embed(snapshot):
    embed = server_notice("status", status=snapshot.status.value, address=snapshot.address)
    if snapshot.usage:
        embed.add_field(name="CPU", value=f"{snapshot.usage['cpu_percent']:.0f}%")
        embed.add_field(name="Memory", value=f"{snapshot.usage['memory_mb']} MB")
    return embed


def command_ack_embed(op):
    title, description = COMMAND_ACKS[op]
    return status_embed(title, description)


def console_block(chunk):
    return f"```\n{chunk}\n```"


# ==========================================
# ANNOUNCEMENT PANEL RENDERING
# ==========================================

def announce_panel_embed(session):
    description = helpers.truncate(session.description, 80)
    image = "_Set_" if session.image_url else FLAVOR_TEXT["NOT_SET"]
    channel = f"<#{session.channel_id}>" if session.channel_id else FLAVOR_TEXT["NOT_SELECTED"]
    ttl_minutes = int(config.ANNOUNCE_TTL_SECONDS // 60)

    embed = discord.Embed(
        title="📣 Announcement Builder",
        color=to_color(config.BRAND_COLOR),
        description=(
            f"**Title:** {session.title or FLAVOR_TEXT['NOT_SET']}\n"
            f"**Description:** {description or FLAVOR_TEXT['NOT_SET']}\n"
            f"**Color:** {session.color}\n"
            f"**Image:** {image}\n"
            f"**Channel:** {channel}\n\n"
            f"_Tip: Use the buttons below to set each field. Session expires in {ttl_minutes} minutes._"
        ),
        timestamp=discord.utils.utcnow(),
    )
    embed.set_footer(text=FLAVOR_TEXT["BUILDER_FOOTER"])
    return embed


def announcement_embed(session):
    embed = discord.Embed(
        title=session.title or config.DEFAULT_ANNOUNCE_TITLE,
        description=session.description or config.DEFAULT_ANNOUNCE_DESCRIPTION,
        color=to_color(session.color),
        timestamp=discord.utils.utcnow(),
    )
    embed.set_footer(text=FLAVOR_TEXT["ANNOUNCE_FOOTER"])
    if session.image_url:
        embed.set_image(url=session.image_url)
    return embed


PANEL_ENDINGS = {
    "sent": FLAVOR_TEXT["PANEL_SENT"],
    "closed": FLAVOR_TEXT["PANEL_CLOSED"],
    "expired": FLAVOR_TEXT["PANEL_EXPIRED"],
    "undelivered": FLAVOR_TEXT["PANEL_UNDELIVERED"],
}


# ==========================================
# COMMUNITY EMBEDS
# ==========================================

def welcome_embed(member):
    embed = discord.Embed(title=FLAVOR_TEXT["WELCOME_TITLE"], description=FLAVOR_TEXT["WELCOME_BODY"], color=to_color(config.BRAND_COLOR))
    embed.set_thumbnail(url=member.display_avatar.url)
    embed.set_footer(text=FLAVOR_TEXT["WELCOME_FOOTER"])
    return embed


def level_up_embed(level):
    return discord.Embed(
        title=FLAVOR_TEXT["LEVEL_UP_TITLE"],
        description=f"You just reached **Level {level}!** 🔥\nKeep chatting and flex your grind!",
        color=to_color(config.BRAND_COLOR),
    )


def leaderboard_text(entries):
    if not entries:
        return "No data yet."
    return "\n".join(
        f"{i}. <@{user_id}> — Level {record['level']} ({record['xp']} XP)"
        for i, (user_id, record) in enumerate(entries, start=1)
    )


def help_embed():
    embed = discord.Embed(title=f"{config.BRAND_NAME} Bot Commands", color=to_color(config.BRAND_COLOR))
    embed.add_field(name="General Commands", value="`/help` - Show this help\n`/ping` - Check bot latency\n`/uptime` - Check bot uptime", inline=False)
    embed.add_field(name="Level System", value="`/rank` - Check your level\n`/leaderboard` - Top 10 users", inline=False)
    embed.add_field(
        name="Admin Commands",
        value=(
            "`/announce` - Open announcement panel\n`/setwelcomechannel <channel>`\n`/setautorole <role>`\n"
            "`/setlevelchannel <channel>`\n`/setconsolechannel <channel>` - Live server console\n"
            "`/setevent <name> <duration>`\n`/greettest` - Test welcome\n`/stop` - Stop bot\n`/restart` - Restart bot"
        ),
        inline=False,
    )
    embed.add_field(
        name="Minecraft Server",
        value="`/serverstart` - Start server (anyone)\n`/serverstop` - Stop server (admin)\n`/serverrestart` - Restart server (admin)\n`/serverstatus` - Check status",
        inline=False,
    )
    embed.set_footer(text=FLAVOR_TEXT["HELP_FOOTER"])
    return embed


# ==========================================
# INTERACTION HELPERS
# ==========================================

async def respond_error(interaction, error):
    """Answers an interaction with an ephemeral error, whether or not it was already acknowledged."""
    message = error.message if isinstance(error, BotError) else FLAVOR_TEXT["GENERIC_ERROR"]
    try:
        if interaction.response.is_done():
            await interaction.followup.send(message, ephemeral=True)
        else:
            await interaction.response.send_message(message, ephemeral=True)
    except discord.HTTPException as e:
        logger.error(f"Failed to deliver error response: {e}")


# ==========================================
# ANNOUNCEMENT PANEL VIEW, MODALS & PICKER
# ==========================================

FIELD_INPUTS = {
    # field -> (modal title, input label, style, max length)
    "title": ("Set Announcement Title", "Title (leave empty to clear)", discord.TextStyle.short, config.ANNOUNCE_TITLE_MAX),
    "description": ("Set Announcement Description", "Description", discord.TextStyle.paragraph, config.ANNOUNCE_DESCRIPTION_MAX),
    "color": ("Set Embed Color (hex)", "Hex color (e.g. #00E5E5)", discord.TextStyle.short, 7),
    "image_url": ("Set Image URL (valid 10 min)", "Image URL (https://...)", discord.TextStyle.short, config.ANNOUNCE_IMAGE_URL_MAX),
}


class FieldModal(discord.ui.Modal):
    def __init__(self, manager, panel_ref, field, current=None):
        modal_title, label, style, max_length = FIELD_INPUTS[field]
        super().__init__(title=modal_title)
        self.manager = manager
        self.panel_ref = panel_ref
        self.field = field
        self.value_input = discord.ui.TextInput(label=label, style=style, max_length=max_length, required=False, default=current)
        self.add_item(self.value_input)

    async def on_submit(self, interaction: discord.Interaction):
        await interaction.response.defer()
        try:
            await self.manager.edit_field(self.panel_ref, interaction.user.id, self.field, self.value_input.value)
        except BotError as e:
            await respond_error(interaction, e)


class ChannelSelect(discord.ui.Select):
    def __init__(self, manager, panel_ref, options):
        super().__init__(placeholder="Choose channel for announcement", options=options, min_values=1, max_values=1)
        self.manager = manager
        self.panel_ref = panel_ref

    async def callback(self, interaction: discord.Interaction):
        try:
            await self.manager.pick_channel(self.panel_ref, interaction.user.id, int(self.values[0]))
        except BotError as e:
            await respond_error(interaction, e)
            return
        await interaction.response.edit_message(content=FLAVOR_TEXT["CHANNEL_PICKED"], view=None)


class ChannelPickView(discord.ui.View):
    def __init__(self, manager, panel_ref, options):
        super().__init__(timeout=config.ANNOUNCE_TTL_SECONDS)
        self.add_item(ChannelSelect(manager, panel_ref, options))


def channel_options(guild, limit=25):
    """Text channels the bot can see, as select options (Discord allows 25)."""
    options = []
    for channel in guild.text_channels:
        if not channel.permissions_for(guild.me).view_channel:
            continue
        options.append(discord.SelectOption(label=channel.name[:100], value=str(channel.id)))
        if len(options) >= limit:
            break
    return options


class AnnouncePanelView(discord.ui.View):
    """
    Buttons on the builder panel. The panel message id is the session key, so the
    view itself holds no session state; the manager owns expiry.
    """

    def __init__(self, manager):
        super().__init__(timeout=None)
        self.manager = manager

    async def _open_modal(self, interaction, field):
        panel_ref = interaction.message.id
        try:
            session = await self.manager.check(panel_ref, interaction.user.id)
        except BotError as e:
            await respond_error(interaction, e)
            return
        current = getattr(session, field)
        await interaction.response.send_modal(FieldModal(self.manager, panel_ref, field, current))

    @discord.ui.button(label="Title", style=discord.ButtonStyle.primary, custom_id="ann_title", row=0)
    async def title_button(self, interaction: discord.Interaction, button: discord.ui.Button):
        await self._open_modal(interaction, "title")

    @discord.ui.button(label="Description", style=discord.ButtonStyle.primary, custom_id="ann_desc", row=0)
    async def description_button(self, interaction: discord.Interaction, button: discord.ui.Button):
        await self._open_modal(interaction, "description")

    @discord.ui.button(label="Color", style=discord.ButtonStyle.secondary, custom_id="ann_color", row=0)
    async def color_button(self, interaction: discord.Interaction, button: discord.ui.Button):
        await self._open_modal(interaction, "color")

    @discord.ui.button(label="Image (URL)", style=discord.ButtonStyle.secondary, custom_id="ann_image", row=0)
    async def image_button(self, interaction: discord.Interaction, button: discord.ui.Button):
        await self._open_modal(interaction, "image_url")

    @discord.ui.button(label="Pick Channel", style=discord.ButtonStyle.success, custom_id="ann_channel", row=1)
    async def channel_button(self, interaction: discord.Interaction, button: discord.ui.Button):
        panel_ref = interaction.message.id
        try:
            await self.manager.check(panel_ref, interaction.user.id)
        except BotError as e:
            await respond_error(interaction, e)
            return
        options = channel_options(interaction.guild) if interaction.guild else []
        if not options:
            await interaction.response.send_message(FLAVOR_TEXT["NO_CHANNELS"], ephemeral=True)
            return
        await interaction.response.send_message(FLAVOR_TEXT["PICK_CHANNEL"], view=ChannelPickView(self.manager, panel_ref, options), ephemeral=True)

    @discord.ui.button(label="🚀 Send", style=discord.ButtonStyle.success, custom_id="ann_send", row=1)
    async def send_button(self, interaction: discord.Interaction, button: discord.ui.Button):
        await interaction.response.defer()
        try:
            await self.manager.send(interaction.message.id, interaction.user.id)
        except BotError as e:
            await respond_error(interaction, e)

    @discord.ui.button(label="❌ Close", style=discord.ButtonStyle.danger, custom_id="ann_close", row=1)
    async def close_button(self, interaction: discord.Interaction, button: discord.ui.Button):
        await interaction.response.defer()
        try:
            await self.manager.close(interaction.message.id, interaction.user.id)
        except BotError as e:
            await respond_error(interaction, e)
