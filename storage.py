import os
import json
import logging

logger = logging.getLogger("Storage")


class JsonStore:
    """
    Small key/value store backed by a JSON file.
    Loaded once at startup; `set` writes through, bulk mutators call `save`.
    """

    def __init__(self, path, defaults=None):
        self.path = path
        self.data = dict(defaults or {})
        self.load()

    def load(self):
        if not os.path.exists(self.path):
            return
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                loaded = json.load(f)
            if isinstance(loaded, dict):
                self.data.update(loaded)
            else:
                logger.error(f"{os.path.basename(self.path)} does not hold an object, ignoring it")
        except (OSError, ValueError) as e:
            logger.error(f"{os.path.basename(self.path)} parse error: {e}")

    def get(self, key, default=None):
        value = self.data.get(key)
        return default if value is None else value

    def set(self, key, value):
        self.data[key] = value
        self.save()

    def save(self):
        tmp_path = f"{self.path}.tmp"
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(self.data, f, indent=4)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
        except OSError as e:
            logger.error(f"Failed to save {os.path.basename(self.path)}: {e}")

    def __contains__(self, key):
        return key in self.data


# Settings persisted across restarts
SETTINGS_DEFAULTS = {
    "welcome_channel_id": None,
    "level_channel_id": None,
    "auto_role_id": None,
    "console_channel_id": None,
}
