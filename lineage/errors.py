"""Exception hierarchy for the lineage graph.

Pure graph algorithms never raise: a cycle is reported as ``None`` or
``False``. The errors below are raised by the merge engine and the
controllers that talk to external collaborators.
"""

from typing import Iterable, Optional


class LineageError(Exception):
    """Base class for all lineage graph errors."""

    pass


class ValidationError(LineageError, ValueError):
    """User input rejected before any mutation.

    Raised for a merge selection of fewer than two projects, an empty
    required name, or an unknown entity id.
    """

    pass


class MergeCycleError(LineageError):
    """The edges induced by a merge selection contain a cycle."""

    def __init__(self, selected_ids: Iterable[str]) -> None:
        self.selected_ids = list(selected_ids)
        super().__init__(
            "Cannot merge: cycle detected in selection "
            f"({', '.join(self.selected_ids)})"
        )


class ExternalOperationError(LineageError):
    """An external collaborator call failed; local state was preserved.

    Attributes:
        operation: Human-readable operation name, e.g. ``"delete project"``.
    """

    def __init__(self, operation: str, detail: Optional[str] = None) -> None:
        self.operation = operation
        self.detail = detail
        message = f"Failed to {operation}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class StaleResponseError(LineageError):
    """A hover preview response was superseded by a newer hover.

    Only used internally by the preview cache; never shown to the user.
    """

    def __init__(self, requested_id: str, current_id: Optional[str]) -> None:
        self.requested_id = requested_id
        self.current_id = current_id
        super().__init__(
            f"Preview for {requested_id} superseded by {current_id or 'no hover'}"
        )


__all__ = [
    "ExternalOperationError",
    "LineageError",
    "MergeCycleError",
    "StaleResponseError",
    "ValidationError",
]
