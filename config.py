import os
from typing import Optional

import keyring
import yaml


class YamlConfig:
    """Client settings in a YAML file; the API token can live in the keyring.

    With ``ENCRYPT_SETTINGS=1`` the token is written to the system keyring
    and the file only records ``api_token: true`` as a marker.
    """

    SENSITIVE_KEYS = {"api_token"}
    SERVICE = "workouts-view"

    def __init__(self, path: str = "settings.yaml", encrypt: Optional[bool] = None) -> None:
        self.path = path
        if encrypt is None:
            encrypt = os.environ.get("ENCRYPT_SETTINGS") == "1"
        self.encrypt = encrypt

    def _read(self) -> dict:
        if not os.path.exists(self.path):
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{self.path} must contain a mapping")
        return data

    def load(self) -> dict:
        data = self._read()
        if not self.encrypt:
            return data
        for key in self.SENSITIVE_KEYS & set(data):
            secret = keyring.get_password(self.SERVICE, key)
            if secret is None:
                del data[key]
            else:
                data[key] = secret
        return data

    def save(self, data: dict) -> None:
        out = {k: v for k, v in data.items() if v is not None}
        if self.encrypt:
            for key in self.SENSITIVE_KEYS & set(out):
                keyring.set_password(self.SERVICE, key, str(out[key]))
                out[key] = True
        with open(self.path, "w", encoding="utf-8") as f:
            yaml.safe_dump(out, f, sort_keys=True)

    def update(self, changes: dict) -> dict:
        """Merge non-None ``changes`` into the stored settings and return them."""
        data = self.load()
        data.update({k: v for k, v in changes.items() if v is not None})
        return data

    def forget(self, key: str) -> None:
        """Drop ``key`` from the file and, for sensitive keys, from the keyring."""
        data = self._read()
        data.pop(key, None)
        if self.encrypt and key in self.SENSITIVE_KEYS:
            if keyring.get_password(self.SERVICE, key) is not None:
                keyring.delete_password(self.SERVICE, key)
        with open(self.path, "w", encoding="utf-8") as f:
            yaml.safe_dump(data, f, sort_keys=True)
