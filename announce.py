import logging
from collections import OrderedDict
from dataclasses import dataclass
import config
import helpers
import ui
from errors import (
    Unauthorized, Forbidden, SessionNotFound, SessionExpired, ValidationError,
    NoChannelSelected, StaleImage, ChannelUnavailable, DeliveryError,
)

logger = logging.getLogger("Announce")

EDITABLE_FIELDS = ("title", "description", "color", "image_url")


@dataclass
class AnnounceSession:
    owner_id: int
    guild_id: int
    created_at: float
    expires_at: float
    title: str = None
    description: str = None
    color: str = config.BRAND_COLOR
    image_url: str = None
    image_set_at: float = None
    channel_id: int = None
    panel: object = None
    panel_ref: int = None


class AnnounceManager:
    """
    Announcement builder sessions, one per open panel, keyed by the panel message id.

    Only `admin_id` may open a panel and only the opener may touch it. Every
    session expires `ttl` seconds after creation; send, close and expiry all
    destroy it, so each panel delivers at most one announcement.
    `resolve_channel(guild_id, channel_id)` returns something with an async
    `send(embed=...)`, or None when the channel is gone or not visible.
    Panel edits wait on `limiter` (a RateLimiter) when one is given.
    """

    MAX_REMEMBERED_OWNERS = 500

    def __init__(self, admin_id, scheduler, resolve_channel, ttl=config.ANNOUNCE_TTL_SECONDS, limiter=None):
        self.admin_id = admin_id
        self.scheduler = scheduler
        self.resolve_channel = resolve_channel
        self.ttl = ttl
        self.limiter = limiter
        self.sessions = {}
        self._timers = {}
        # panel_ref -> owner for destroyed sessions, so strangers still get Forbidden
        self._past_owners = OrderedDict()

    # ==========================================
    # OPERATIONS
    # ==========================================

    async def open(self, actor_id, guild_id, publish):
        """
        Creates a session and publishes its panel. `publish(session)` must return
        the panel message (anything with `.id` and async `.edit`).
        """
        if actor_id != self.admin_id or not self.admin_id:
            raise Unauthorized("⛔ Only admin can open announce panel.")

        now = self.scheduler.time()
        session = AnnounceSession(owner_id=actor_id, guild_id=guild_id, created_at=now, expires_at=now + self.ttl)
        panel = await publish(session)
        session.panel = panel
        session.panel_ref = panel.id

        self.sessions[panel.id] = session
        self._timers[panel.id] = self.scheduler.call_later(self.ttl, self._expire, panel.id)
        logger.info(f"Announcement panel {panel.id} opened by {actor_id}")
        return session

    async def check(self, panel_ref, actor_id):
        """Returns the live session or raises Forbidden / SessionNotFound / SessionExpired."""
        session = self.sessions.get(panel_ref)
        owner = session.owner_id if session else self._past_owners.get(panel_ref, self.admin_id)
        if actor_id != owner:
            raise Forbidden()
        if not session:
            raise SessionNotFound()
        if self.scheduler.time() >= session.expires_at:
            await self._expire(panel_ref)
            raise SessionExpired()
        return session

    async def edit_field(self, panel_ref, actor_id, field, value):
        session = await self.check(panel_ref, actor_id)
        if field not in EDITABLE_FIELDS:
            raise ValidationError(f"❌ Unknown field `{field}`.")

        value = (value or "").strip() or None

        if field == "title":
            if value and len(value) > config.ANNOUNCE_TITLE_MAX:
                raise ValidationError(f"❌ Title must be at most {config.ANNOUNCE_TITLE_MAX} characters.")
            session.title = value
        elif field == "description":
            if value and len(value) > config.ANNOUNCE_DESCRIPTION_MAX:
                raise ValidationError(f"❌ Description must be at most {config.ANNOUNCE_DESCRIPTION_MAX} characters.")
            session.description = value
        elif field == "color":
            if value is None:
                session.color = config.BRAND_COLOR
            else:
                color = helpers.normalize_hex_color(value)
                if not color:
                    raise ValidationError("❌ Color must be a hex value like #00E5E5.")
                session.color = color
        elif field == "image_url":
            if value is None:
                session.image_url = None
                session.image_set_at = None
            else:
                if not helpers.is_http_url(value):
                    raise ValidationError("❌ Image URL must start with http:// or https://")
                session.image_url = value
                session.image_set_at = self.scheduler.time()

        await self._render(session)
        return session

    async def pick_channel(self, panel_ref, actor_id, channel_id):
        session = await self.check(panel_ref, actor_id)
        session.channel_id = channel_id
        await self._render(session)
        return session

    async def send(self, panel_ref, actor_id):
        """Delivers the announcement once. Raises DeliveryError if the destination refused it."""
        session = await self.check(panel_ref, actor_id)

        if not session.channel_id:
            raise NoChannelSelected()
        if session.image_url and session.image_set_at is not None:
            if self.scheduler.time() - session.image_set_at > self.ttl:
                raise StaleImage()

        target = self.resolve_channel(session.guild_id, session.channel_id)
        if target is None:
            raise ChannelUnavailable()

        embed = ui.announcement_embed(session)
        # Destroy before the first await so a second click finds nothing to send
        self._destroy(panel_ref)

        try:
            await target.send(embed=embed)
        except Exception as e:
            logger.error(f"Failed to send announcement: {e}")
            await self._finish(session, "undelivered")
            raise DeliveryError(channel_id=session.channel_id) from e

        logger.info(f"Announcement from panel {panel_ref} sent to {session.channel_id}")
        await self._finish(session, "sent")
        return True

    async def close(self, panel_ref, actor_id):
        session = await self.check(panel_ref, actor_id)
        self._destroy(panel_ref)
        await self._finish(session, "closed")

    # ==========================================
    # INTERNALS
    # ==========================================

    async def _expire(self, panel_ref):
        session = self.sessions.get(panel_ref)
        if not session:
            return
        self._destroy(panel_ref)
        logger.info(f"Announcement panel {panel_ref} expired")
        await self._finish(session, "expired")

    def _destroy(self, panel_ref):
        session = self.sessions.pop(panel_ref, None)
        timer = self._timers.pop(panel_ref, None)
        if timer:
            timer.cancel()
        if session:
            self._past_owners[panel_ref] = session.owner_id
            self._past_owners.move_to_end(panel_ref)
            while len(self._past_owners) > self.MAX_REMEMBERED_OWNERS:
                self._past_owners.popitem(last=False)

    async def _edit_slot(self, session):
        if self.limiter:
            await self.limiter.wait_for_slot("edit_message", session.panel_ref)

    async def _render(self, session):
        await self._edit_slot(session)
        try:
            await session.panel.edit(embed=ui.announce_panel_embed(session))
        except Exception as e:
            logger.error(f"Failed to refresh announcement panel {session.panel_ref}: {e}")

    async def _finish(self, session, ending):
        await self._edit_slot(session)
        try:
            await session.panel.edit(content=ui.PANEL_ENDINGS[ending], embed=None, view=None)
        except Exception as e:
            # Message may be deleted
            logger.warning(f"Failed to close announcement panel {session.panel_ref}: {e}")
