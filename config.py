import os

import keyring
import yaml

from settings_schema import SettingsSchema, validate_settings

APP_VERSION = "1.0.0"
DEFAULT_DB_PATH = "tracker.db"
KEYRING_SERVICE = "liftcadence"
ENV_PREFIX = "TRACKER_"


class YamlConfig:
    """Tracker settings kept in a YAML file.

    With ``ENCRYPT_SETTINGS=1`` secret values (the API token) go to the OS
    keyring under the ``liftcadence`` service and the file only records
    that one is set.
    """

    SECRET_KEYS = ("api_token",)

    def __init__(self, path: str = "settings.yaml", use_keyring: bool | None = None) -> None:
        self.path = path
        if use_keyring is None:
            use_keyring = os.environ.get("ENCRYPT_SETTINGS") == "1"
        self.use_keyring = use_keyring

    def _read_file(self) -> dict:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                raw = yaml.safe_load(f)
        except FileNotFoundError:
            return {}
        if raw is None:
            return {}
        if not isinstance(raw, dict):
            raise ValueError(f"{self.path} must contain a mapping of settings")
        return raw

    def load(self) -> dict:
        data = self._read_file()
        if not self.use_keyring:
            return data
        for key in self.SECRET_KEYS:
            if key not in data:
                continue
            secret = keyring.get_password(KEYRING_SERVICE, key)
            if secret is None:
                del data[key]
            else:
                data[key] = secret
        return data

    def save(self, data: dict) -> None:
        stored = {}
        for key, value in data.items():
            if value is None:
                continue
            if self.use_keyring and key in self.SECRET_KEYS:
                keyring.set_password(KEYRING_SERVICE, key, str(value))
                value = True
            stored[key] = value
        if self.use_keyring:
            for key in self.SECRET_KEYS:
                if key not in stored and keyring.get_password(KEYRING_SERVICE, key) is not None:
                    keyring.delete_password(KEYRING_SERVICE, key)
        with open(self.path, "w", encoding="utf-8") as f:
            yaml.safe_dump(stored, f, sort_keys=True)

    def update(self, **changes) -> SettingsSchema:
        """Apply ``changes`` and persist them once they validate."""
        data = self.load()
        data.update(changes)
        settings = validate_settings(data)
        values = settings.model_dump()
        self.save({key: values[key] for key in data if key in values})
        return settings


def env_overrides() -> dict:
    """Settings given as ``TRACKER_<NAME>`` environment variables."""
    found = {}
    for name in SettingsSchema.model_fields:
        value = os.environ.get(ENV_PREFIX + name.upper())
        if value is not None:
            found[name] = value
    return found


def load_settings(path: str = "settings.yaml") -> SettingsSchema:
    """Return validated settings: defaults, then the file, then the environment."""
    data = YamlConfig(path).load()
    data.update(env_overrides())
    return validate_settings(data)


def database_path(default: str = DEFAULT_DB_PATH) -> str:
    return os.environ.get("TRACKER_DB", default)
