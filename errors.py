"""
Exception hierarchy for the bot.

Every error raised by the server controller, the process supervisor and the
announcement manager derives from `BotError` and carries a short message that
can be shown to the user as-is. Command handlers and views catch `BotError`
and turn it into an ephemeral rejection; nothing here is allowed to reach the
event loop.
"""


class BotError(Exception):
    """Base class. `message` is user-facing."""

    default_message = "❌ Something went wrong."

    def __init__(self, message=None, **details):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


# --- Authorization ---

class Unauthorized(BotError):
    default_message = "⛔ Only admin can use this command."


class Forbidden(Unauthorized):
    """Actor is not the owner of the panel they are touching."""

    default_message = "⛔ Only the admin who opened this panel can interact."


# --- Lifecycle ---

class InvalidState(BotError):
    default_message = "⚠️ That is not possible right now."

    def __init__(self, message=None, status=None, **details):
        super().__init__(message, **details)
        self.status = status


# --- Sessions ---

class SessionNotFound(BotError):
    default_message = "Session expired or not found."


class SessionExpired(SessionNotFound):
    default_message = "⏳ This announcement session has expired."


# --- External process ---

class ProcessError(BotError):
    default_message = "❌ The server process could not be reached."


class SpawnError(ProcessError):
    default_message = "❌ Failed to start server."


class NotRunningError(ProcessError):
    default_message = "⚠️ The server process is not running."


# --- Input validation ---

class ValidationError(BotError):
    default_message = "❌ Invalid input."


class NoChannelSelected(ValidationError):
    default_message = "❌ Please select a channel first."


class StaleImage(ValidationError):
    default_message = "❌ The provided image URL is older than 10 minutes. Set it again."


class ChannelUnavailable(BotError):
    default_message = "❌ Selected channel not found or bot has no access."


# --- Delivery ---

class DeliveryError(BotError):
    default_message = "⚠️ Message could not be delivered."
