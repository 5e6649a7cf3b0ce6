"""Domain-specific exceptions — framework-independent."""


class EntityNotFoundError(Exception):
    """Raised when a requested entity does not exist."""

    def __init__(self, entity_type: str, entity_id: int | str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} with id '{entity_id}' not found")


class InvalidEmbeddingError(ValueError):
    """Raised when an embedding does not match the index dimensionality."""

    def __init__(self, expected: int, actual: int, owner: str = "query"):
        self.expected = expected
        self.actual = actual
        self.owner = owner
        super().__init__(f"{owner} embedding has dimension {actual}, expected {expected}")


class MalformedScoreError(ValueError):
    """Raised when a score object is missing fields or holds out-of-range values.

    Always a programming-contract violation, never a user-facing condition.
    """

    def __init__(self, resource_id: str, problem: str):
        self.resource_id = resource_id
        self.problem = problem
        super().__init__(f"Malformed scores for resource '{resource_id}': {problem}")


class InvalidFeedbackError(ValueError):
    """Raised when a feedback record is incomplete or carries personal data."""

    def __init__(self, reason: str, field: str | None = None):
        self.reason = reason
        self.field = field
        prefix = f"{field}: " if field else ""
        super().__init__(f"Invalid feedback — {prefix}{reason}")


class QueryInputError(ValueError):
    """Raised when a query cannot be interpreted; recoverable with clarification."""

    def __init__(self, reason: str, clarifying_questions: list[str] | None = None):
        self.reason = reason
        self.clarifying_questions = clarifying_questions or []
        super().__init__(reason)


class RecommendationError(Exception):
    """Structured error raised at the pipeline boundary.

    Every internal failure that cannot be turned into a degraded response
    leaves the orchestrator as this type.
    """

    def __init__(self, code: str, message: str, query_id: str | None = None):
        self.code = code
        self.message = message
        self.query_id = query_id
        super().__init__(f"[{code}] {message}")

    def as_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "query_id": self.query_id}
