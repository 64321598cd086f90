"""
Exception hierarchy for course-gen.

Every domain error carries a human-readable ``message`` and the HTTP
``status_code`` the API layer renders it with.
"""


class CourseGenError(Exception):
    """Base class for all course-gen errors."""

    status_code = 500

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)


class ConfigurationError(CourseGenError):
    """A required credential or setting is missing. Raised at startup."""


class DocumentNotFound(CourseGenError):
    status_code = 404

    def __init__(self, collection: str, doc_id: str) -> None:
        self.collection = collection
        self.doc_id = doc_id
        super().__init__(f"No document '{doc_id}' in collection '{collection}'")


class CredentialRefreshError(CourseGenError):
    """A Drive access token could not be refreshed for an import."""

    status_code = 401


class LLMResponseError(CourseGenError):
    """The model returned empty or non-JSON content."""

    status_code = 502


class SynthesisError(CourseGenError):
    """The generative model call itself failed."""

    status_code = 502


class PersistenceError(CourseGenError):
    """Writing the course tree failed; partial writes were rolled back."""
