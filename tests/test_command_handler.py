import pytest
from unittest.mock import MagicMock, AsyncMock, patch
import command_handler
import config
import ui
from errors import InvalidState, Unauthorized
from server_control import ServerStatus, ServerSnapshot

ADMIN = 123


def make_interaction(user_id=ADMIN):
    interaction = MagicMock()
    interaction.user.id = user_id
    interaction.guild_id = 9000
    interaction.response.send_message = AsyncMock()
    interaction.response.is_done = MagicMock(return_value=False)
    interaction.followup.send = AsyncMock()
    interaction.original_response = AsyncMock()
    return interaction


class TestCommandHandler:

    @pytest.fixture(autouse=True)
    def admin(self):
        with patch.object(config, "ADMIN_ID", ADMIN):
            yield

    @pytest.fixture
    def mock_client(self):
        client = MagicMock()
        client.server.start = AsyncMock()
        client.server.stop = AsyncMock()
        client.server.restart = AsyncMock()
        client.shutdown = AsyncMock()
        client.settings.get = MagicMock(return_value=None)
        client.latency = 0.042
        return client

    @pytest.mark.asyncio
    async def test_server_start_open_to_everyone(self, mock_client):
        interaction = make_interaction(user_id=999)
        await command_handler.server_command(mock_client, interaction, "start")

        ack = interaction.response.send_message.call_args.kwargs["embed"]
        assert ack.title == ui.COMMAND_ACKS["start"][0]
        mock_client.server.start.assert_awaited_once_with(interaction.channel)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("op", ["stop", "restart"])
    async def test_admin_only_server_ops(self, mock_client, op):
        interaction = make_interaction(user_id=999)
        await command_handler.server_command(mock_client, interaction, op)

        interaction.response.send_message.assert_awaited_once_with(ui.FLAVOR_TEXT["NOT_AUTHORIZED"], ephemeral=True)
        getattr(mock_client.server, op).assert_not_called()

    @pytest.mark.asyncio
    async def test_rejected_operation_is_reported(self, mock_client):
        mock_client.server.stop.side_effect = InvalidState("⚠️ Already stopped — server is already stopped.", status=ServerStatus.STOPPED)
        interaction = make_interaction()
        await command_handler.server_command(mock_client, interaction, "stop")

        notice = interaction.followup.send.call_args.kwargs["embed"]
        assert notice.title == ui.SERVER_NOTICES["rejected"][0]
        assert "Already stopped" in notice.description

    @pytest.mark.asyncio
    async def test_server_status(self, mock_client):
        mock_client.server.snapshot.return_value = ServerSnapshot(ServerStatus.STARTED, "play.example.net", {"cpu_percent": 12.0, "memory_mb": 2048.5})
        interaction = make_interaction(user_id=999)
        await command_handler.server_status(mock_client, interaction)

        embed = interaction.response.send_message.call_args.kwargs["embed"]
        assert "started" in embed.description
        assert "play.example.net" in embed.description
        assert [f.name for f in embed.fields] == ["CPU", "Memory"]

    @pytest.mark.asyncio
    async def test_announce_panel_published(self, mock_client):
        interaction = make_interaction()

        async def fake_open(actor_id, guild_id, publish):
            return await publish(MagicMock(title=None, description=None, color=config.BRAND_COLOR, image_url=None, channel_id=None))

        mock_client.announcer.open = AsyncMock(side_effect=fake_open)
        await command_handler.open_announce_panel(mock_client, interaction)

        kwargs = interaction.response.send_message.call_args.kwargs
        assert kwargs["embed"].title == "📣 Announcement Builder"
        assert isinstance(kwargs["view"], ui.AnnouncePanelView)
        interaction.original_response.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_announce_refused_for_non_admin(self, mock_client):
        interaction = make_interaction(user_id=999)
        mock_client.announcer.open = AsyncMock(side_effect=Unauthorized("⛔ Only admin can open announce panel."))
        await command_handler.open_announce_panel(mock_client, interaction)
        interaction.response.send_message.assert_awaited_once_with("⛔ Only admin can open announce panel.", ephemeral=True)

    @pytest.mark.asyncio
    async def test_set_channel_setting(self, mock_client):
        interaction = make_interaction()
        channel = MagicMock(id=555, mention="<#555>")
        await command_handler.set_channel_setting(mock_client, interaction, "level", channel)

        mock_client.settings.set.assert_called_once_with("level_channel_id", 555)
        assert "<#555>" in interaction.response.send_message.call_args.args[0]

    @pytest.mark.asyncio
    async def test_set_channel_setting_already_set(self, mock_client):
        mock_client.settings.get.return_value = 555
        interaction = make_interaction()
        await command_handler.set_channel_setting(mock_client, interaction, "welcome", MagicMock(id=555))

        mock_client.settings.set.assert_not_called()
        interaction.response.send_message.assert_awaited_once_with(command_handler.CHANNEL_SETTINGS["welcome"][1], ephemeral=True)

    @pytest.mark.asyncio
    async def test_settings_require_admin(self, mock_client):
        interaction = make_interaction(user_id=999)
        await command_handler.set_channel_setting(mock_client, interaction, "console", MagicMock(id=1))
        await command_handler.set_auto_role(mock_client, interaction, MagicMock(id=2))
        mock_client.settings.set.assert_not_called()

    @pytest.mark.asyncio
    async def test_rank_and_leaderboard(self, mock_client):
        mock_client.levels.peek.return_value = {"xp": 40, "level": 3}
        interaction = make_interaction()
        await command_handler.rank(mock_client, interaction)
        assert interaction.response.send_message.call_args.args[0] == "You are Level **3** with **40 XP**"

        mock_client.levels.leaderboard.return_value = [("1", {"xp": 5, "level": 4})]
        interaction = make_interaction()
        await command_handler.leaderboard(mock_client, interaction)
        assert "<@1>" in interaction.response.send_message.call_args.args[0]

    @pytest.mark.asyncio
    async def test_ping(self, mock_client):
        interaction = make_interaction()
        await command_handler.ping(mock_client, interaction)
        assert interaction.response.send_message.call_args.args[0] == "🏓 Pong! Latency: 42ms"

    @pytest.mark.asyncio
    async def test_restart_bot(self, mock_client):
        interaction = make_interaction()
        await command_handler.restart_bot(mock_client, interaction)
        mock_client.shutdown.assert_awaited_once_with(restart=True)

    @pytest.mark.asyncio
    async def test_stop_bot_requires_admin(self, mock_client):
        interaction = make_interaction(user_id=999)
        await command_handler.stop_bot(mock_client, interaction)
        mock_client.shutdown.assert_not_called()

    @pytest.mark.asyncio
    async def test_level_up_announced(self, mock_client):
        mock_client.levels.award.return_value = 2
        mock_client.settings.get.return_value = 777
        channel = MagicMock()
        channel.send = AsyncMock()
        message = MagicMock()
        message.author.bot = False
        message.author.mention = "<@42>"
        message.guild.get_channel.return_value = channel

        await command_handler.handle_message(mock_client, message)

        kwargs = channel.send.call_args.kwargs
        assert kwargs["content"] == "<@42>"
        assert kwargs["embed"].title == ui.FLAVOR_TEXT["LEVEL_UP_TITLE"]

    @pytest.mark.asyncio
    async def test_bot_messages_ignored(self, mock_client):
        message = MagicMock()
        message.author.bot = True
        await command_handler.handle_message(mock_client, message)
        mock_client.levels.award.assert_not_called()

    @pytest.mark.asyncio
    async def test_member_join(self, mock_client):
        mock_client.settings.get.side_effect = lambda key, default=None: {"auto_role_id": 10, "welcome_channel_id": 20}.get(key)
        role = MagicMock()
        channel = MagicMock()
        channel.send = AsyncMock()
        member = MagicMock()
        member.add_roles = AsyncMock()
        member.guild.get_role.return_value = role
        member.guild.get_channel.return_value = channel
        member.display_avatar.url = "https://cdn.example.com/avatar.png"

        await command_handler.handle_member_join(mock_client, member)

        member.add_roles.assert_awaited_once_with(role, reason="Auto role")
        assert channel.send.call_args.kwargs["embed"].title == ui.FLAVOR_TEXT["WELCOME_TITLE"]
