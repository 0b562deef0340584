"""RS256 signing keys with multi-key verification and zero-downtime rollover.

Rotation procedure
------------------
1. Add the new PEM pair to ``JWT_PEM_PUBLIC``/``JWT_PEM_PRIVATE`` while keeping
   ``JWT_CURRENT_KID`` on the old key; every instance now *verifies* both.
2. Flip ``JWT_CURRENT_KID`` to the new key; instances start *signing* with it
   while tokens signed by the old key keep verifying.
3. Remove the old pair once its last token has expired.
"""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from uuid import uuid4

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from jwt.algorithms import RSAAlgorithm

from taskauth.core.config import is_production_like
from taskauth.services._shared.errors import ConfigurationError

log = logging.getLogger(__name__)

ALGORITHM = "RS256"
MIN_KEY_BITS = 2048
PEM_MARKER = "-----BEGIN"


class KeyConfigurationError(ConfigurationError):
    """The configured key material cannot produce a usable key set."""


@dataclass(frozen=True, slots=True)
class SigningKey:
    """
    One asymmetric key pair.

    :ivar key_id: Value written into the ``kid`` header.
    :ivar public_key: RSA public key used for verification.
    :ivar private_key: RSA private key; ``None`` for verify-only keys.
    :ivar algorithm: JWS algorithm, always ``RS256``.
    """

    key_id: str
    public_key: rsa.RSAPublicKey
    private_key: rsa.RSAPrivateKey | None = field(default=None, repr=False)
    algorithm: str = ALGORITHM

    def public_jwk(self) -> dict[str, Any]:
        jwk = json.loads(RSAAlgorithm.to_jwk(self.public_key))
        jwk.update({"kid": self.key_id, "alg": self.algorithm, "use": "sig"})
        return jwk


@dataclass(frozen=True, slots=True)
class KeySet:
    """Immutable, ordered set of keys plus the id of the signing key."""

    keys: tuple[SigningKey, ...]
    current_key_id: str
    ephemeral: bool = False

    def __post_init__(self) -> None:
        if not self.keys:
            raise KeyConfigurationError("Key set must contain at least one key")
        if self.current_key_id not in {k.key_id for k in self.keys}:
            raise KeyConfigurationError(f"Current key id {self.current_key_id!r} is not loaded")

    @property
    def current(self) -> SigningKey:
        return next(k for k in self.keys if k.key_id == self.current_key_id)

    @property
    def key_ids(self) -> tuple[str, ...]:
        return tuple(k.key_id for k in self.keys)


@dataclass(frozen=True, slots=True)
class KeyStoreSettings:
    """
    Key-loading inputs, usually read from the Flask config.

    :ivar public_pems: PEM file paths or inline PEM text, one per key.
    :ivar private_pems: Matching private keys, same order and length.
    :ivar key_ids: Optional explicit ids, same order; fresh uuids otherwise.
    :ivar current_key_id: Hint naming the signing key.
    :ivar production_like: Refuse to synthesize an ephemeral key.
    """

    public_pems: tuple[str, ...] = ()
    private_pems: tuple[str, ...] = ()
    key_ids: tuple[str, ...] = ()
    current_key_id: str | None = None
    production_like: bool = False

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> KeyStoreSettings:
        return cls(
            public_pems=tuple(config.get("JWT_PEM_PUBLIC") or ()),
            private_pems=tuple(config.get("JWT_PEM_PRIVATE") or ()),
            key_ids=tuple(config.get("JWT_KEY_IDS") or ()),
            current_key_id=config.get("JWT_CURRENT_KID") or None,
            production_like=is_production_like(config),
        )


# ---------------------------------------------------------------------------
# PEM helpers
# ---------------------------------------------------------------------------


def _read_pem(source: str) -> bytes:
    if source.lstrip().startswith(PEM_MARKER):
        # Inline PEM passed through an env var often has literal "\n"
        return source.strip().replace("\\n", "\n").encode()
    path = Path(source).expanduser()
    try:
        return path.read_bytes()
    except OSError as exc:
        raise KeyConfigurationError(f"Cannot read PEM file {str(path)!r}: {exc}") from exc


def _load_public(source: str, position: int) -> rsa.RSAPublicKey:
    try:
        key = serialization.load_pem_public_key(_read_pem(source))
    except (ValueError, UnsupportedAlgorithm) as exc:
        raise KeyConfigurationError(f"Public key #{position} is not a valid PEM") from exc
    if not isinstance(key, rsa.RSAPublicKey):
        raise KeyConfigurationError(f"Public key #{position} is not an RSA key")
    return key


def _load_private(source: str, position: int) -> rsa.RSAPrivateKey:
    try:
        key = serialization.load_pem_private_key(_read_pem(source), password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise KeyConfigurationError(f"Private key #{position} is not a valid PEM") from exc
    if not isinstance(key, rsa.RSAPrivateKey):
        raise KeyConfigurationError(f"Private key #{position} is not an RSA key")
    return key


def generate_rsa_keypair(bits: int = MIN_KEY_BITS) -> tuple[bytes, bytes]:
    """
    Generate an RSA key pair.

    :returns: ``(private_pem, public_pem)`` as bytes (PKCS8 / SubjectPublicKeyInfo).
    """
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=bits)
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    return private_pem, public_pem


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------


def load_key_set(settings: KeyStoreSettings) -> KeySet:
    """
    Build a :class:`KeySet` from PEM pairs, or an ephemeral one outside production.

    :raises KeyConfigurationError: On missing keys in a production-like
        environment, mismatched list lengths, unreadable or non-RSA PEMs,
        keys shorter than 2048 bits, or a public key not matching its private key.
    """
    publics, privates = settings.public_pems, settings.private_pems

    if len(publics) != len(privates):
        raise KeyConfigurationError(
            f"JWT_PEM_PUBLIC has {len(publics)} entries but JWT_PEM_PRIVATE has {len(privates)}"
        )
    if settings.key_ids and len(settings.key_ids) != len(publics):
        raise KeyConfigurationError("JWT_KEY_IDS must list one id per configured key pair")

    if not publics:
        if settings.production_like:
            raise KeyConfigurationError("No JWT keys configured for a production environment")
        private_key = rsa.generate_private_key(public_exponent=65537, key_size=MIN_KEY_BITS)
        key = SigningKey(
            key_id=uuid4().hex,
            public_key=private_key.public_key(),
            private_key=private_key,
        )
        log.warning(
            "No JWT keys configured; generated an ephemeral signing key",
            extra={"event": "keys.ephemeral", "kid": key.key_id},
        )
        return KeySet(keys=(key,), current_key_id=key.key_id, ephemeral=True)

    keys: list[SigningKey] = []
    for position, (pub_src, priv_src) in enumerate(zip(publics, privates, strict=True), start=1):
        public_key = _load_public(pub_src, position)
        private_key = _load_private(priv_src, position)
        if public_key.key_size < MIN_KEY_BITS:
            raise KeyConfigurationError(
                f"Key #{position} is {public_key.key_size} bits; at least {MIN_KEY_BITS} required"
            )
        if private_key.public_key().public_numbers() != public_key.public_numbers():
            raise KeyConfigurationError(f"Public key #{position} does not match its private key")
        key_id = settings.key_ids[position - 1] if settings.key_ids else uuid4().hex
        keys.append(SigningKey(key_id=key_id, public_key=public_key, private_key=private_key))

    ids = [k.key_id for k in keys]
    if len(set(ids)) != len(ids):
        raise KeyConfigurationError("JWT_KEY_IDS contains duplicates")

    hint = settings.current_key_id
    current = hint if hint in ids else ids[-1]
    if hint and hint != current:
        log.warning(
            "JWT_CURRENT_KID does not name a loaded key; signing with the last key",
            extra={"event": "keys.current_kid_ignored", "kid": current},
        )
    return KeySet(keys=tuple(keys), current_key_id=current)


class KeyStore:
    """
    Holds the active :class:`KeySet` behind a single swappable reference.

    Readers never take a lock: they read the reference once and work on that
    immutable snapshot, so a concurrent :meth:`reload` is seen entirely or
    not at all.
    """

    def __init__(self, settings: KeyStoreSettings) -> None:
        self._settings = settings
        self._reload_lock = threading.Lock()
        self._key_set = load_key_set(settings)

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> KeyStore:
        return cls(KeyStoreSettings.from_config(config))

    # ---- reads ----

    def snapshot(self) -> KeySet:
        return self._key_set

    def current_signing_key(self) -> SigningKey:
        return self._key_set.current

    def all_verification_keys(self) -> tuple[SigningKey, ...]:
        return self._key_set.keys

    def keys_loaded(self) -> bool:
        """Health signal: at least one key is loaded and one can sign."""
        ks = self._key_set
        return bool(ks.keys) and ks.current.private_key is not None

    def public_jwks(self) -> dict[str, list[dict[str, Any]]]:
        """Return public JWKs only, in load order."""
        return {"keys": [k.public_jwk() for k in self._key_set.keys]}

    # ---- writes ----

    def reload(self, settings: KeyStoreSettings | None = None) -> KeySet:
        """
        Rebuild the key set and swap it in.

        A failed load raises and leaves the previous set in place.
        """
        with self._reload_lock:
            new_settings = settings or self._settings
            new_set = load_key_set(new_settings)
            self._settings = new_settings
            self._key_set = new_set
        log.info(
            "Signing keys reloaded",
            extra={"event": "keys.reloaded", "kid": new_set.current_key_id},
        )
        return new_set


def describe_keys(key_ids: Sequence[str], current: str) -> list[str]:
    """Render key ids for CLI output, marking the signing key."""
    return [f"{kid} (current)" if kid == current else kid for kid in key_ids]
