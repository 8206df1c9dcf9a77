"""
Account Key Cipher

Reversible XOR masking of the stored password with a per-account key.
This is obfuscation, not encryption: the key sits in the same record as
the masked password.
"""

import random
from typing import Optional

from src.config import CipherSettings, get_settings


# Byte that ends a line in an account record; a key must never contain it.
RECORD_TERMINATOR = 0x0A


def _xor(data: bytes, key: bytes) -> bytes:
    if not key:
        raise ValueError("Obfuscation key cannot be empty")
    key_length = len(key)
    return bytes(b ^ key[i % key_length] for i, b in enumerate(data))


class AccountKeyCipher:
    """
    Per-account key generation plus the self-inverse XOR transform.

    Byte ``i`` of the input is XORed with byte ``i % len(key)`` of the key,
    so ``reveal(obfuscate(p, k), k) == p`` for any non-empty key.
    """

    def __init__(
        self,
        settings: Optional[CipherSettings] = None,
        rng: Optional[random.Random] = None,
    ):
        self._settings = settings or get_settings().cipher
        self._rng = rng or random.Random()

    def generate_key(self, length: int) -> bytes:
        """
        Generate a key of ``length`` bytes.

        Each byte is drawn from [key_min, key_max] and narrowed to its
        low 8 bits. Collisions across accounts are acceptable.
        """
        if length < 1:
            raise ValueError("Key length must be at least 1")
        key = bytearray()
        while len(key) < length:
            value = self._rng.randint(self._settings.key_min, self._settings.key_max) & 0xFF
            if value == RECORD_TERMINATOR:
                continue
            key.append(value)
        return bytes(key)

    @staticmethod
    def obfuscate(plaintext: str, key: bytes) -> bytes:
        return _xor(plaintext.encode("utf-8"), key)

    @staticmethod
    def reveal(data: bytes, key: bytes) -> str:
        # surrogateescape keeps garbage from a wrong key comparable instead of raising
        return _xor(data, key).decode("utf-8", errors="surrogateescape")
