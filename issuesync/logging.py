"""Logging for the issuesync commands.

Records go to stderr so pull and push reports on stdout stay readable by
scripts. Levels (inclusive):
- ERROR: the command failed (exit status 1)
- WARNING: problems a sync carried on past (cache refresh failures, skipped
  files, rejected edits) and ERROR
- INFO: one summary line per pull or push, WARNING, and ERROR
- DEBUG: every file write and reference rewrite, and all levels above

Configure via config.yaml (logging.level, logging.format) or env
(LOGGING_LEVEL, LOGGING_FORMAT). ``--verbose`` forces DEBUG.
"""

import logging
import sys

from issuesync.config import LoggingConfig

LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# HTTP client internals stay at WARNING even with --verbose
QUIET_LOGGERS = ("urllib3",)


def resolve_level(level: str, verbose: bool = False) -> int:
    """Map a level name to a logging constant; unknown names mean INFO."""
    if verbose:
        return logging.DEBUG
    return LEVELS.get(level.upper().strip(), logging.INFO)


class IssueSyncLogging:
    """Configures the root logger from LoggingConfig and the --verbose flag."""

    def __init__(self, config: LoggingConfig, verbose: bool = False) -> None:
        self.level = resolve_level(config.level, verbose)
        self.format = config.format or DEFAULT_FORMAT

    def setup(self) -> None:
        logging.basicConfig(
            level=self.level,
            format=self.format,
            stream=sys.stderr,
            force=True,
        )
        for name in QUIET_LOGGERS:
            logging.getLogger(name).setLevel(max(self.level, logging.WARNING))
