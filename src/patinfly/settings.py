# src/patinfly/settings.py

from patinfly.database import Database


class SettingsStore:
    """
    Small durable key-value store, scoped by namespace.
    Values are encrypted before they touch the disk.
    """
    def __init__(self, database: Database, namespace: str):
        self.database = database
        self.namespace = namespace
        self.encryption_manager = database.encryption_manager

    def get(self, key: str, default: str | None = None) -> str | None:
        with self.database.connect() as conn:
            row = conn.execute(
                "SELECT value FROM settings WHERE namespace = ? AND key = ?",
                (self.namespace, key)
            ).fetchone()
        if row is None or row['value'] is None:
            return default
        return self.encryption_manager.decrypt(row['value'])

    def put(self, key: str, value: str | None):
        if value is None:
            self.remove(key)
            return
        with self.database.connect() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO settings (namespace, key, value) VALUES (?, ?, ?)",
                (self.namespace, key, self.encryption_manager.encrypt(value))
            )

    def remove(self, key: str):
        with self.database.connect() as conn:
            conn.execute("DELETE FROM settings WHERE namespace = ? AND key = ?", (self.namespace, key))
