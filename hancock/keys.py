"""Key lookup: map a public key id to its secret key and freshness policy.

A key lookup is any callable ``lookup(public_key) -> KeyRecord`` that raises
``KeyNotFoundError`` for an unknown key.
"""
from collections.abc import Callable, Mapping
from dataclasses import dataclass

from sqlalchemy.orm import Session, sessionmaker

from hancock.models import ApiKey
from hancock.schemas import FreshnessPolicy


class KeyNotFoundError(LookupError):
    """The public key id is not known to the key store."""


@dataclass(frozen=True)
class KeyRecord:
    secret_key: bytes
    policy: FreshnessPolicy


KeyLookup = Callable[[str], KeyRecord]


def _secret_bytes(secret: bytes | str) -> bytes:
    return secret.encode("utf-8") if isinstance(secret, str) else bytes(secret)


class StaticKeyLookup:
    """Key lookup over a fixed mapping of public key id to KeyRecord."""

    def __init__(self, keys: Mapping[str, KeyRecord]) -> None:
        self._keys = dict(keys)

    @classmethod
    def from_secrets(
        cls,
        secrets: Mapping[str, bytes | str],
        policy: FreshnessPolicy,
    ) -> "StaticKeyLookup":
        """Build a lookup where every key shares the same policy."""
        return cls(
            {key: KeyRecord(_secret_bytes(secret), policy) for key, secret in secrets.items()}
        )

    def __call__(self, public_key: str) -> KeyRecord:
        try:
            return self._keys[public_key]
        except KeyError:
            raise KeyNotFoundError(f"Unknown API key: {public_key!r}") from None


class DatabaseKeyLookup:
    """Key lookup over the ``api_keys`` table, one session per lookup."""

    def __init__(self, session_factory: sessionmaker) -> None:
        self.session_factory = session_factory

    def __call__(self, public_key: str) -> KeyRecord:
        if not public_key:
            raise KeyNotFoundError("Missing API key.")
        with self.session_factory() as db:
            row = db.get(ApiKey, public_key)
            if row is None:
                raise KeyNotFoundError(f"Unknown API key: {public_key!r}")
            return KeyRecord(secret_key=bytes(row.secret_key), policy=row.policy)


def register_key(
    db: Session,
    public_key: str,
    secret_key: bytes | str,
    policy: FreshnessPolicy,
) -> ApiKey:
    """Insert or update an API key row and commit."""
    row = db.get(ApiKey, public_key)
    if row is None:
        row = ApiKey(public_key=public_key)
        db.add(row)
    row.secret_key = _secret_bytes(secret_key)
    row.expire_seconds = policy.to_seconds()
    db.commit()
    return row
