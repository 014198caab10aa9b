# src/patinfly/encryption.py

import logging
import os
from cryptography.fernet import Fernet, InvalidToken

logger = logging.getLogger(__name__)

class EncryptionManager:
    """
    Loads (or creates on first run) the Fernet key that protects secrets at rest:
    the persisted session token, stored user tokens and the activity log.
    """
    def __init__(self, key_path: str | None = None, key: bytes | None = None):
        self.key_path = key_path
        if key is not None:
            self.key = key
        else:
            self._load_or_generate_key()
        self.cipher = Fernet(self.key)

    def _load_or_generate_key(self):
        """Loads the key from key_path or generates a new one if it doesn't exist."""
        if not self.key_path:
            raise ValueError("Either key_path or key must be provided.")
        if os.path.exists(self.key_path):
            with open(self.key_path, 'rb') as key_file:
                self.key = key_file.read().strip()
        else:
            directory = os.path.dirname(os.path.abspath(self.key_path))
            os.makedirs(directory, exist_ok=True)
            self.key = Fernet.generate_key()
            with open(self.key_path, 'wb') as key_file:
                key_file.write(self.key)
            logger.info("Generated new encryption key at %s", self.key_path)

    def encrypt(self, data: str) -> bytes:
        if not isinstance(data, str):
            raise TypeError("Data to be encrypted must be a string.")
        return self.cipher.encrypt(data.encode('utf-8'))

    def decrypt(self, encrypted_data: bytes) -> str:
        """
        Decrypts bytes back into a string.
        Data written under a different key cannot be recovered; it reads as an empty string.
        """
        if isinstance(encrypted_data, memoryview):
            encrypted_data = bytes(encrypted_data)
        if not isinstance(encrypted_data, bytes):
            raise TypeError("Data to be decrypted must be bytes.")
        try:
            return self.cipher.decrypt(encrypted_data).decode('utf-8')
        except InvalidToken:
            logger.warning("Could not decrypt stored value; key mismatch or corrupt data")
            return ""

    def encrypt_optional(self, data: str | None) -> bytes | None:
        return None if not data else self.encrypt(data)

    def decrypt_optional(self, encrypted_data: bytes | None) -> str:
        return "" if encrypted_data is None else self.decrypt(encrypted_data)
