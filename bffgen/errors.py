"""Error taxonomy shared by every generation stage.

Four kinds, never conflated by callers:

- ConfigError: bad CLI flags or a malformed facts file. Carries a code from
  VALID_ERROR_CODES and an optional suggestion.
- GenerationError: the facts are well formed but a target cannot be generated
  (for example no link command for a linkable target). Names the target.
- CycleDetectedError: the topological sorter could not make progress.
- InternalError: a programmer invariant was violated (unbalanced scopes,
  non-unique node names). Never caused by well-formed input.
"""

VALID_ERROR_CODES = {
    "PATH_NOT_FOUND",
    "INVALID_FACTS",
    "UNKNOWN_REFERENCE",
    "DUPLICATE_NAME",
    "INVALID_CONFIGURATION",
    "CONFLICT_GENERATE_DISCOVERY",
    "FILTER_WITHOUT_LIST",
}


class ConfigError(Exception):
    def __init__(self, code: str, message: str, suggestion: str | None = None):
        if code not in VALID_ERROR_CODES:
            raise ValueError(f"Unknown config error code: {code}")
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion


class GenerationError(Exception):
    """A user-facing failure to generate one target.

    Attributes:
        target: Name of the offending target.
        message: Human-readable description without the target prefix.
    """

    def __init__(self, target: str, message: str):
        super().__init__(f"{target}: {message}")
        self.target = target
        self.message = message


class CycleDetectedError(Exception):
    """Raised when a topological sort pass removes nothing while nodes remain.

    Attributes:
        nodes: Labels of every node left unresolved, in input order. At least
            one of them participates in the cycle.
    """

    def __init__(self, nodes: tuple[str, ...]):
        super().__init__(f"Dependency cycle between: {', '.join(nodes)}")
        self.nodes = nodes


class InternalError(RuntimeError):
    pass
