from typing import Final


DEFAULT_DECISIONS_PATH: Final[str] = "decisions.md"
CONFIG_FILENAME: Final[str] = ".decision-guardian.yml"
WORKSPACE_ENV_VAR: Final[str] = "GITHUB_WORKSPACE"

DECISION_FILE_SUFFIXES: Final[tuple[str, ...]] = (".md", ".markdown")

MAX_RULE_DEPTH: Final[int] = 10
MAX_REGEX_PATTERN_LENGTH: Final[int] = 1000
MAX_CONTENT_BYTES: Final[int] = 1024 * 1024
REGEX_TIMEOUT_SECONDS: Final[float] = 5.0
REGEX_SANDBOX_WORKERS: Final[int] = 4
ALLOWED_REGEX_FLAGS: Final[str] = "gimsuy"

# Repetition count above which a pattern is considered too expensive to run.
MAX_REGEX_REPETITIONS: Final[int] = 25

REGEX_CACHE_SIZE: Final[int] = 500
REGEX_CACHE_EVICT_FRACTION: Final[float] = 0.1

RULE_BATCH_SIZE: Final[int] = 50
PATH_CHUNK_SIZE: Final[int] = 500

GLOB_SPECIAL_CHARS: Final[frozenset[str]] = frozenset("*?{}[]")
