"""
Error taxonomy shared by the repositories, the search engine and the HTTP layer.

Repository code catches transport/driver errors at its boundary and re-raises
one of these; routers never see a raw ``SQLAlchemyError``.
"""
from typing import Any, Iterable, Optional


class PromptManagerError(Exception):
    """Base class for every error the core raises."""


class ValidationError(PromptManagerError):
    """Caller-correctable input problem (empty name, unknown parent, ...)."""


class NotFoundError(ValidationError):
    """The referenced folder or item does not exist for this owner."""


class StoreUnavailable(PromptManagerError):
    """An underlying store call failed; the operation had no effect."""


class PartialFailure(PromptManagerError):
    """
    A multi-step operation succeeded only in part.

    ``result`` is what the caller would have received on full success and
    ``failed`` names the steps (usually record ids) that must be retried.
    """

    def __init__(self, message: str, result: Any = None, failed: Optional[Iterable[str]] = None):
        super().__init__(message)
        self.result = result
        self.failed = list(failed or [])


class SearchUnavailable(PromptManagerError):
    """Search backend failure. Degraded to an empty result by the engine."""
