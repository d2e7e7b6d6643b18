import random
import logging
import config

logger = logging.getLogger("Leveling")


def xp_for_next_level(level):
    return level * 100


class LevelBook:
    """Per-user XP and level, persisted in a JsonStore keyed by user id (as a string)."""

    def __init__(self, store, scheduler, save_delay=config.LEVEL_SAVE_DEBOUNCE_SECONDS, rng=None):
        self.store = store
        self.scheduler = scheduler
        self.save_delay = save_delay
        self.rng = rng or random.Random()
        self._save_timer = None

    def get(self, user_id):
        key = str(user_id)
        record = self.store.data.get(key)
        if record is None:
            record = {"xp": 0, "level": 1}
            self.store.data[key] = record
        return record

    def peek(self, user_id):
        """Read-only lookup; users without messages read as level 1 and are not stored."""
        record = self.store.data.get(str(user_id))
        return dict(record) if record else {"xp": 0, "level": 1}

    def award(self, user_id, amount=None):
        """Adds message XP. Returns the new level on level-up, else None."""
        if amount is None:
            amount = self.rng.randint(config.XP_GAIN_MIN, config.XP_GAIN_MAX)
        record = self.get(user_id)
        record["xp"] += max(0, amount)

        leveled = None
        needed = xp_for_next_level(record["level"])
        if record["xp"] >= needed:
            record["level"] += 1
            record["xp"] -= needed
            leveled = record["level"]
            logger.info(f"User {user_id} reached level {leveled}")

        self.request_save()
        return leveled

    def leaderboard(self, limit=config.LEADERBOARD_SIZE):
        ranked = sorted(self.store.data.items(), key=lambda item: (-item[1]["level"], -item[1]["xp"]))
        return ranked[:limit]

    def request_save(self):
        """Debounced save: at most one write per `save_delay` window."""
        if self._save_timer and self._save_timer.active:
            return
        self._save_timer = self.scheduler.call_later(self.save_delay, self.flush)

    def flush(self):
        if self._save_timer:
            self._save_timer.cancel()
            self._save_timer = None
        self.store.save()
