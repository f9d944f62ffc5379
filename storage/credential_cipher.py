"""AES-256-GCM encryption for the password fields of stored settings.

Wire format: ``enc:<iv>.<ciphertext+tag>``, both parts unpadded base64url.
Without a key, values pass through unchanged so development setups work
without any configuration.
"""
import base64
import binascii
import copy
import logging
import os
import re
from typing import Any, Dict, Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

logger = logging.getLogger(__name__)

SENTINEL = 'enc:'
IV_LENGTH = 12
KEY_PATTERN = re.compile(r'^[0-9a-fA-F]{64}$')
ENCRYPTED_CONFIGS = ('daysmart_config', 'icehockeypro_config')
ENCRYPTED_FIELD = 'password'


def _b64url_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode('ascii').rstrip('=')


def _b64url_decode(text: str) -> bytes:
    return base64.urlsafe_b64decode(text + '=' * (-len(text) % 4))


class CredentialCipher:
    """Encrypts and decrypts credential strings with a 256-bit key."""

    def __init__(self, key_hex: Optional[str]):
        """
        Args:
            key_hex: 64 hex characters; anything else disables encryption
        """
        key_hex = (key_hex or '').strip()
        self._aead = AESGCM(bytes.fromhex(key_hex)) if KEY_PATTERN.match(key_hex) else None
        if key_hex and self._aead is None:
            logger.warning("CREDENTIAL_ENCRYPTION_KEY is not 64 hex characters; encryption disabled")

    @property
    def is_configured(self) -> bool:
        return self._aead is not None

    def encrypt(self, plaintext: str) -> str:
        """
        Encrypt a value. Empty, already encrypted, or unkeyed values are
        returned unchanged.
        """
        if not plaintext or plaintext.startswith(SENTINEL) or not self.is_configured:
            return plaintext
        iv = os.urandom(IV_LENGTH)
        sealed = self._aead.encrypt(iv, plaintext.encode('utf-8'), None)
        return f'{SENTINEL}{_b64url_encode(iv)}.{_b64url_encode(sealed)}'

    def decrypt(self, value: str) -> str:
        """
        Decrypt a wire string.

        Plain values are returned unchanged. A value that cannot be
        decrypted (wrong key, tampering, missing key) becomes an empty
        string so the user is asked to re-enter the password.
        """
        if not value or not value.startswith(SENTINEL):
            return value
        if not self.is_configured:
            logger.warning("Encrypted credential found but no key is configured")
            return ''

        try:
            iv_part, sealed_part = value[len(SENTINEL):].split('.', 1)
            plaintext = self._aead.decrypt(_b64url_decode(iv_part), _b64url_decode(sealed_part), None)
            return plaintext.decode('utf-8')
        except (ValueError, binascii.Error, InvalidTag, UnicodeDecodeError):
            logger.warning("Failed to decrypt stored credential")
            return ''

    def _transform(self, settings: Dict[str, Any], operation) -> Dict[str, Any]:
        result = copy.deepcopy(settings)
        for key in ENCRYPTED_CONFIGS:
            config = result.get(key)
            if isinstance(config, dict) and isinstance(config.get(ENCRYPTED_FIELD), str):
                config[ENCRYPTED_FIELD] = operation(config[ENCRYPTED_FIELD])
        return result

    def encrypt_settings(self, settings: Dict[str, Any]) -> Dict[str, Any]:
        return self._transform(settings, self.encrypt)

    def decrypt_settings(self, settings: Dict[str, Any]) -> Dict[str, Any]:
        return self._transform(settings, self.decrypt)
