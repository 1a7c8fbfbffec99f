from pathlib import Path


class GuardianError(Exception):
    """Base user-facing application error."""


class DecisionFileError(GuardianError):
    def __init__(self, path: Path, message: str) -> None:
        self.path = path
        self.message = message
        super().__init__(f"{message}: {path}")


class MissingDecisionFileError(DecisionFileError):
    def __init__(self, path: Path) -> None:
        super().__init__(path=path, message="Decision file not found")


class InvalidYamlFormatError(DecisionFileError):
    def __init__(self, path: Path, detail: str) -> None:
        self.detail = detail
        super().__init__(path=path, message=f"Invalid YAML format ({detail})")


class InvalidConfigSchemaError(DecisionFileError):
    def __init__(self, path: Path, detail: str) -> None:
        self.detail = detail
        super().__init__(path=path, message=f"Invalid config schema ({detail})")


class RuleValidationError(GuardianError):
    """A rule tree was rejected before evaluation."""


class RuleDepthError(RuleValidationError):
    def __init__(self, depth: int, limit: int) -> None:
        self.depth = depth
        self.limit = limit
        super().__init__(f"Rule nesting exceeds max depth of {limit} (reached {depth})")


class UnsafeRegexError(RuleValidationError):
    def __init__(self, pattern: str, reason: str) -> None:
        self.pattern = pattern
        self.reason = reason
        super().__init__(f"Unsafe regex pattern ({reason}): {pattern}")


class RegexTimeoutError(GuardianError):
    def __init__(self, pattern: str, timeout_seconds: float) -> None:
        self.pattern = pattern
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"Regex timed out after {timeout_seconds:.2f}s: {pattern[:50]}"
        )


class GitCommandError(GuardianError):
    def __init__(self, args: list[str], detail: str) -> None:
        self.args_list = args
        self.detail = detail
        super().__init__(f"Git command failed: git {' '.join(args)}\n{detail}")


class InvalidBranchNameError(GuardianError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(
            f'Invalid base branch: "{name}". Branch names may only contain '
            "letters, digits, '-', '_', '/' and '.'."
        )


class RegexExecutionError(GuardianError):
    def __init__(self, pattern: str, detail: str) -> None:
        self.pattern = pattern
        self.detail = detail
        super().__init__(f"Regex execution failed ({detail}): {pattern[:50]}")
