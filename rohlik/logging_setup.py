"""
Logging configuration for the storefront client.

Console output keeps ANSI colours, the log file gets them stripped. Every
handler carries a RedactingFilter so credential-bearing header values never
reach an output stream.
"""

import logging
import re

from .config import Settings


class Colors:
    """Colour helpers for the CLI summary lines."""
    RESET = '\033[0m'
    GREEN = '\033[92m'
    YELLOW = '\033[93m'
    RED = '\033[91m'

    @staticmethod
    def green(text):
        return f"{Colors.GREEN}{text}{Colors.RESET}"

    @staticmethod
    def yellow(text):
        return f"{Colors.YELLOW}{text}{Colors.RESET}"

    @staticmethod
    def red(text):
        return f"{Colors.RED}{text}{Colors.RESET}"


class ColorStripFormatter(logging.Formatter):
    """Formatter that strips ANSI color codes from log messages."""
    ansi_escape = re.compile(r'\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])')

    def format(self, record):
        message = super().format(record)
        return self.ansi_escape.sub('', message)


class RedactingFilter(logging.Filter):
    """Replace Cookie, Set-Cookie and Authorization values in log messages."""

    REDACTED = '[REDACTED]'
    header_pattern = re.compile(
        r"""(?P<key>['"]?(?:set-cookie|cookie|authorization)['"]?\s*[:=]\s*)"""
        r"""(?P<value>'[^']*'|"[^"]*"|[^,}\n]+)""",
        re.IGNORECASE,
    )

    def filter(self, record):
        try:
            message = record.getMessage()
        except Exception:  # noqa: BLE001 - malformed args, leave the record alone
            return True
        redacted = self.redact(message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True

    @classmethod
    def redact(cls, text: str) -> str:
        return cls.header_pattern.sub(lambda m: f"{m.group('key')}{cls.REDACTED}", text)


def configure_logging(settings: Settings, log_to_file: bool = True) -> logging.Logger:
    """
    Configure root and package loggers from settings.

    Args:
        settings: Client settings (level, format, log file location)
        log_to_file: Also write to settings.log_file

    Returns:
        The package logger ('rohlik')
    """
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    redactor = RedactingFilter()

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter(settings.log_format))
    console_handler.addFilter(redactor)
    handlers = [console_handler]

    if log_to_file:
        settings.log_dir.mkdir(exist_ok=True)
        file_handler = logging.FileHandler(settings.log_file, encoding='utf-8')
        file_handler.setFormatter(ColorStripFormatter(settings.log_format))
        file_handler.addFilter(redactor)
        handlers.append(file_handler)

    logging.basicConfig(
        level=level,
        handlers=handlers,
        force=True  # Override any existing configuration
    )

    # httpx logs every request line at INFO; keep it out of normal output
    logging.getLogger('httpx').setLevel(max(level, logging.WARNING))

    package_logger = logging.getLogger('rohlik')
    package_logger.setLevel(level)
    return package_logger

