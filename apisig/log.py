"""
Logging setup with secret redaction.

Library modules log through ``logging.getLogger(__name__)``; applications call
``configure_logging()`` once at startup.
"""

import logging
import re
from collections import OrderedDict
from typing import Any, ClassVar, Optional, Pattern

REDACTED = '[REDACTED]'

DEFAULT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Rotating session tokens would otherwise accumulate for the life of the process.
MAX_SECRETS = 32


class SecretFilter(logging.Filter):
    """Replaces registered secrets in log records with ``[REDACTED]``.

    The registry is shared by every instance and only records secrets once a
    filter has been created. It keeps the ``MAX_SECRETS`` most recently used
    secrets.
    """

    _secrets: ClassVar['OrderedDict[str, None]'] = OrderedDict()
    _pattern: ClassVar[Optional[Pattern[str]]] = None
    _installed: ClassVar[bool] = False

    def __init__(self, name: str = '') -> None:
        super().__init__(name)
        SecretFilter._installed = True

    @classmethod
    def redact(cls, value: Any) -> Any:
        if cls._pattern is None or not isinstance(value, str):
            return value
        return cls._pattern.sub(REDACTED, value)

    def filter(self, record: logging.LogRecord) -> bool:
        if self._pattern is None:
            return True
        record.msg = self.redact(str(record.msg))
        if isinstance(record.args, tuple):
            record.args = tuple(self.redact(arg) for arg in record.args)
        elif isinstance(record.args, dict):
            record.args = {key: self.redact(arg) for key, arg in record.args.items()}
        return True

    @classmethod
    def register_secret(cls, secret: Optional[str]) -> None:
        """Register a secret; ignored when empty or when no filter exists."""
        if not secret or not cls._installed:
            return
        if secret in cls._secrets:
            cls._secrets.move_to_end(secret)
            return
        cls._secrets[secret] = None
        while len(cls._secrets) > MAX_SECRETS:
            cls._secrets.popitem(last=False)
        cls._rebuild_pattern()

    @classmethod
    def clear_secrets(cls) -> None:
        """Forget all secrets and the installed state. Primarily for testing."""
        cls._secrets.clear()
        cls._pattern = None
        cls._installed = False

    @classmethod
    def _rebuild_pattern(cls) -> None:
        # Longest first so a secret containing another is redacted whole.
        escaped = [re.escape(s) for s in sorted(cls._secrets, key=len, reverse=True)]
        cls._pattern = re.compile('|'.join(escaped)) if escaped else None


def configure_logging(
        level: int = logging.INFO,
        format_string: Optional[str] = None,
        add_secret_filter: bool = True
) -> None:
    """Configure the root logger with a single stream handler.

    Existing root handlers are removed so repeated calls do not duplicate
    output.
    """
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(format_string or DEFAULT_FORMAT))
    if add_secret_filter:
        handler.addFilter(SecretFilter())

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for existing in root_logger.handlers[:]:
        root_logger.removeHandler(existing)
    root_logger.addHandler(handler)
