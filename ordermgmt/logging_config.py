import datetime
import json
import logging

from .config import get_settings


class JSONFormatter(logging.Formatter):
    """One JSON object per record, with sensitive keys redacted."""

    SENSITIVE_KEYS = {"password", "password_hash", "token", "access_token", "secret", "authorization"}

    def _scrub(self, data):
        if isinstance(data, dict):
            return {
                k: self._scrub(v) if k.lower() not in self.SENSITIVE_KEYS else "***REDACTED***"
                for k, v in data.items()
            }
        if isinstance(data, list):
            return [self._scrub(i) for i in data]
        return data

    def format(self, record):
        if isinstance(record.msg, dict):
            record.msg = self._scrub(record.msg)
        if isinstance(record.args, dict):
            record.args = self._scrub(record.args)

        log_record = {
            "ts": datetime.datetime.now(datetime.timezone.utc).isoformat(),
            "lvl": record.levelname,
            "msg": record.getMessage(),
            "logger": record.name,
        }
        if hasattr(record, "order_id"):
            log_record["order_id"] = record.order_id
        if hasattr(record, "user_id"):
            log_record["user_id"] = record.user_id
        if record.exc_info:
            log_record["exc"] = self.formatException(record.exc_info)
        return json.dumps(log_record, default=str)


def configure_logging(level: str | None = None) -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter())
    root = logging.getLogger("ordermgmt")
    root.handlers[:] = [handler]
    root.setLevel(level or get_settings().log_level)
