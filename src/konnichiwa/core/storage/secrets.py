"""API key storage: OS keyring, or a passphrase-encrypted JSON file."""

from __future__ import annotations

import base64
import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

logger = logging.getLogger(__name__)

KEYRING_SERVICE_NAME = "konnichiwa"
SECRETS_FILE_VERSION = 1


@dataclass(frozen=True, slots=True)
class SecretSpec:
    key: str  # name inside the secret store
    env_var: str  # fallback environment variable


OPENAI_API_KEY = SecretSpec(key="openai_api_key", env_var="OPENAI_API_KEY")
GOOGLE_API_KEY = SecretSpec(key="google_api_key", env_var="GOOGLE_API_KEY")

KNOWN_SECRETS: tuple[SecretSpec, ...] = (OPENAI_API_KEY, GOOGLE_API_KEY)


class SecretStore(Protocol):
    def get(self, key: str) -> str | None: ...
    def set(self, key: str, value: str) -> None: ...
    def delete(self, key: str) -> None: ...


class MissingSecret(ValueError):
    def __init__(self, spec: SecretSpec) -> None:
        super().__init__(f"Missing secret `{spec.key}` (or env var {spec.env_var})")
        self.spec = spec


def resolve_secret(secrets: SecretStore, spec: SecretSpec) -> str | None:
    value = secrets.get(spec.key)
    if value:
        return value
    return os.getenv(spec.env_var) or None


def require_secret(secrets: SecretStore, spec: SecretSpec) -> str:
    value = resolve_secret(secrets, spec)
    if value:
        return value
    raise MissingSecret(spec)


def mask_secret(value: str, *, unmasked_prefix: int = 3) -> str:
    if not value:
        return value
    if len(value) <= unmasked_prefix:
        return "*" * len(value)
    return value[:unmasked_prefix] + "****"


class InMemorySecretStore:
    def __init__(self, items: dict[str, str] | None = None) -> None:
        self._items = dict(items or {})

    def get(self, key: str) -> str | None:
        return self._items.get(key)

    def set(self, key: str, value: str) -> None:
        self._items[key] = value

    def delete(self, key: str) -> None:
        self._items.pop(key, None)


@dataclass(slots=True)
class KeyringSecretStore:
    service_name: str = KEYRING_SERVICE_NAME

    def _keyring(self):
        try:
            import keyring  # type: ignore
        except ModuleNotFoundError as exc:
            raise ModuleNotFoundError(
                "keyring is required for KeyringSecretStore; install with `pip install keyring`"
            ) from exc
        return keyring

    def get(self, key: str) -> str | None:
        return self._keyring().get_password(self.service_name, key)

    def set(self, key: str, value: str) -> None:
        self._keyring().set_password(self.service_name, key, value)

    def delete(self, key: str) -> None:
        keyring = self._keyring()
        try:
            keyring.delete_password(self.service_name, key)
        except keyring.errors.PasswordDeleteError:
            logger.debug(f"[Secrets] Nothing to delete for `{key}`")


class EncryptedFileSecretStore:
    """Each value is a Fernet token; the key is derived from a passphrase with scrypt.

    File layout: {"version": 1, "salt": <b64>, "items": {name: token}}.
    """

    def __init__(self, path: Path, *, passphrase: str) -> None:
        if not passphrase:
            raise ValueError("passphrase must be non-empty")
        self.path = path

        if path.exists():
            raw = json.loads(path.read_text(encoding="utf-8"))
            if raw.get("version") != SECRETS_FILE_VERSION:
                raise ValueError(f"unsupported secrets file version: {raw.get('version')}")
            salt = base64.b64decode(raw["salt"])
            items = dict(raw.get("items", {}))
        else:
            salt = os.urandom(16)
            items = {}

        self._salt = salt
        self._items: dict[str, str] = items
        self._fernet = Fernet(_derive_key(passphrase=passphrase, salt=salt))
        if not path.exists():
            self._save()

    def get(self, key: str) -> str | None:
        token = self._items.get(key)
        if token is None:
            return None
        try:
            return self._fernet.decrypt(token.encode("ascii")).decode("utf-8")
        except InvalidToken as exc:
            raise ValueError("invalid passphrase or corrupted secrets file") from exc

    def set(self, key: str, value: str) -> None:
        self._items[key] = self._fernet.encrypt(value.encode("utf-8")).decode("ascii")
        self._save()

    def delete(self, key: str) -> None:
        if self._items.pop(key, None) is not None:
            self._save()

    def _save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = {
            "version": SECRETS_FILE_VERSION,
            "salt": base64.b64encode(self._salt).decode("ascii"),
            "items": self._items,
        }
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
        tmp.replace(self.path)


def _derive_key(*, passphrase: str, salt: bytes) -> bytes:
    kdf = Scrypt(salt=salt, length=32, n=2**14, r=8, p=1)
    return base64.urlsafe_b64encode(kdf.derive(passphrase.encode("utf-8")))
