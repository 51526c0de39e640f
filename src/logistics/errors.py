"""Error kinds raised by logistics operations beyond Protean's built-ins.

``ValidationError`` (bad input, illegal transition) and ``ObjectNotFoundError``
come from Protean. The classes here cover state conflicts that only appear
once the request is valid, and failures of collaborators outside the domain.
"""

from protean.exceptions import InvalidOperationError


class ConflictError(InvalidOperationError):
    """The request is well-formed but clashes with recorded state.

    Raised for re-invoicing a parcel, paying a salary period twice, and
    COD settlements that do not match. ``context`` carries the ids and
    figures an operator needs to resolve it.
    """

    def __init__(self, message: str, **context):
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        return self.message


class ReconciliationMismatch(ConflictError):
    """Entered settlement amounts do not cover the selected parcels' COD."""

    @property
    def difference(self) -> float:
        return self.context.get("difference", 0.0)


class UpstreamError(Exception):
    """An external collaborator (identity provider, store) failed."""

    def __init__(self, message: str, source: str | None = None):
        super().__init__(message)
        self.message = message
        self.source = source


def describe(exc: Exception) -> str:
    """Flatten an exception into one operator-readable line."""
    messages = getattr(exc, "messages", None)
    if isinstance(messages, dict):
        parts = []
        for field_name, field_messages in messages.items():
            if isinstance(field_messages, list | tuple):
                field_messages = ", ".join(str(m) for m in field_messages)
            parts.append(f"{field_name}: {field_messages}")
        return "; ".join(parts)
    return str(exc)
