"""Typed exceptions for the economy engine.

This module defines a small, explicit exception hierarchy shared by the store,
the ledger, the cooldown gate, and the shop engine.

Design intent:
    - Expected absence ("item not found", "empty shop") is represented by
      ``False``/``None``/``[]`` return values, never by exceptions.
    - Caller mistakes (wrong type or shape of an argument) raise
      :class:`InvalidArgumentError` synchronously.
    - Storage failures raise typed :class:`StorageError` subclasses that carry
      the operation that failed, so hosts can log them deterministically.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class StorageOperationContext:
    """Structured operation metadata carried by storage exceptions.

    Attributes:
        operation: Stable operation identifier (for example ``"store.load"``).
        details: Optional human-readable context for logs and debugging.
    """

    operation: str
    details: str | None = None


class EconomyError(RuntimeError):
    """Base exception for every failure raised by the engine."""


class InvalidArgumentError(EconomyError, ValueError):
    """An identifier, amount, or item field has the wrong type or shape."""


class NotReadyError(EconomyError):
    """An operation was invoked before the economy finished initializing."""

    def __init__(self, message: str = "The economy is not ready to work.") -> None:
        super().__init__(message)


class StorageError(EconomyError):
    """Base exception for storage file failures.

    Args:
        context: Structured operation metadata.
        cause: Optional underlying exception.
    """

    def __init__(
        self,
        *,
        context: StorageOperationContext,
        cause: Exception | None = None,
    ) -> None:
        message = context.operation
        if context.details:
            message = f"{message}: {context.details}"
        super().__init__(message)
        self.context = context
        self.cause = cause


class CorruptStorageError(StorageError):
    """The storage file exists but does not hold a valid document."""


class StorageWriteError(StorageError):
    """Serializing or replacing the storage file failed."""


class ExternalCollaboratorError(EconomyError):
    """A host-supplied side channel (such as a role grant) failed.

    Never raised out of the engine's public operations; it is created so the
    failure is logged with a consistent type.
    """
