# src/patinfly/logger.py

import logging
from datetime import datetime

from patinfly import config
from patinfly.database import Database


def configure_logging(level: str | int = config.LOG_LEVEL):
    """Sets up the diagnostic log handlers for the whole package."""
    logging.basicConfig(level=level, format=config.LOG_FORMAT)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


class SecureLogger:
    """
    Activity log for security relevant events (logins, lockouts).
    Entries are encrypted before being written to the logs table.
    """
    def __init__(self, database: Database):
        self.database = database
        self.encryption_manager = database.encryption_manager

    def log(self, username: str, activity_desc: str, additional_info: str = "", is_suspicious: bool = False):
        """
        Creates a formatted log entry, encrypts it, and saves it to the database.
        """
        now = datetime.now()
        date = now.strftime("%Y-%m-%d")
        time = now.strftime("%H:%M:%S")

        encrypted_username = self.encryption_manager.encrypt(username)
        encrypted_activity_desc = self.encryption_manager.encrypt(activity_desc)
        encrypted_additional_info = self.encryption_manager.encrypt(additional_info)

        with self.database.connect() as conn:
            conn.execute(
                # New entries are unread by default
                "INSERT INTO logs (date, time, username, description_of_activity, additional_information, suspicious, is_read) VALUES (?, ?, ?, ?, ?, ?, ?)",
                (date, time, encrypted_username, encrypted_activity_desc, encrypted_additional_info, 1 if is_suspicious else 0, 0)
            )

    def get_logs(self, limit: int = 100) -> list[dict]:
        """
        Retrieves and decrypts the most recent log entries, marking them as read.
        """
        with self.database.connect() as conn:
            rows = conn.execute(
                "SELECT * FROM logs ORDER BY date DESC, time DESC, id DESC LIMIT ?", (limit,)
            ).fetchall()

        decrypted_logs = []
        for row in rows:
            decrypted_logs.append({
                "id": row["id"],
                "date": row["date"],
                "time": row["time"],
                "username": self.encryption_manager.decrypt(row["username"]),
                "activity_description": self.encryption_manager.decrypt(row["description_of_activity"]),
                "additional_info": self.encryption_manager.decrypt(row["additional_information"]),
                "is_suspicious": row["suspicious"] == 1
            })

        self.mark_logs_as_read([entry["id"] for entry in decrypted_logs])
        return decrypted_logs

    def mark_logs_as_read(self, log_ids: list[int]):
        if not log_ids:
            return
        placeholders = ','.join('?' for _ in log_ids)
        with self.database.connect() as conn:
            conn.execute(f"UPDATE logs SET is_read = 1 WHERE id IN ({placeholders})", log_ids)

    def check_unread_alerts(self) -> int:
        """Counts the number of unread suspicious log entries."""
        with self.database.connect() as conn:
            row = conn.execute("SELECT COUNT(*) as count FROM logs WHERE suspicious = 1 AND is_read = 0").fetchone()
        return row['count'] if row else 0
