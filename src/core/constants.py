"""Core constants used across journaltail modules.

This module centralizes non-domain-specific constants.
Keeping values here avoids magic literals in business logic.
"""

from __future__ import annotations

from pathlib import Path

DEFAULT_DATA_ROOT = Path(".journaltail")
CHECKPOINT_DIR_NAME = "journalctl"
CHECKPOINT_FILE_SUFFIX = ".cursor"
DEFAULT_JOURNALCTL_BIN = "journalctl"
JOURNALCTL_BASE_ARGS = ("-o", "export", "--no-pager", "--all", "--follow")
AFTER_CURSOR_FLAG = "--after-cursor"
CURSOR_FIELD_NAME = "__CURSOR"
MESSAGE_FIELD_NAME = "MESSAGE"
SEEK_FAILURE_PREFIX = "Failed to seek to cursor"
MATCH_FAILURE_PREFIX = "Failed to add match"
DEFAULT_MAX_RECORD_SIZE = 64 * 1024
MIN_MAX_RECORD_SIZE = 1024
INITIAL_BUFFER_SIZE = 8 * 1024
BUFFER_LOW_WATER_MARK = 4 * 1024
BINARY_LENGTH_SIZE = 8
MAX_SKIPPABLE_RECORD_FACTOR = 16
DEFAULT_QUEUE_SIZE = 64
DEFAULT_TERMINATE_TIMEOUT_SECONDS = 5.0
OFFSET_METHOD_MANUAL = "manual"
OFFSET_METHOD_OLDEST = "oldest"
OFFSET_METHOD_NEWEST = "newest"
SUPPORTED_OFFSET_METHODS = (OFFSET_METHOD_MANUAL, OFFSET_METHOD_OLDEST, OFFSET_METHOD_NEWEST)
OLDEST_LINES_FLAG = "--lines=all"
NEWEST_LINES_FLAG = "--lines=0"
DEFAULT_RETRY_MAX_ATTEMPTS = 3
DEFAULT_RETRY_BASE_DELAY = 1.0
DEFAULT_RETRY_MAX_DELAY = 60.0
DEFAULT_RETRY_JITTER = 1.0
MESSAGE_TYPE_NAME = "JournalCtlInput"
EXIT_CODE_OK = 0
EXIT_CODE_RECOVERABLE = 1
EXIT_CODE_CONFIG = 2
