"""Error taxonomy and the domain-error translator.

Every failure that reaches the HTTP boundary is reduced to one of a small,
closed set of kinds.  Each kind has a fixed status code and the response
body is always ``{"code": <kind>, "message": <text>}``.

Two ways to get there:

  1. Services raise a typed ``DomainError`` subclass.  The subclass carries
     its kind explicitly, so no guessing is needed.

  2. Anything else (a plain ``Exception`` or ``ValueError`` raised with a
     human-readable message) goes through ``translate_error()``, which
     matches the message against an ordered list of phrases.  The first
     matching phrase decides the kind.  Nothing matching means
     INTERNAL_SERVER_ERROR.

``ProcedureError`` is the already-translated form.  Guards raise it
directly and the translator passes it through untouched.
"""

from __future__ import annotations

from enum import StrEnum


class ErrorKind(StrEnum):
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    BAD_REQUEST = "BAD_REQUEST"
    PRECONDITION_FAILED = "PRECONDITION_FAILED"
    CONFLICT = "CONFLICT"
    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"


STATUS_CODES: dict[ErrorKind, int] = {
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.BAD_REQUEST: 400,
    ErrorKind.PRECONDITION_FAILED: 412,
    ErrorKind.CONFLICT: 409,
    ErrorKind.INTERNAL_SERVER_ERROR: 500,
}


class ProcedureError(Exception):
    """An error that already carries its wire-level kind."""

    def __init__(self, kind: ErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message

    @property
    def status_code(self) -> int:
        return STATUS_CODES[self.kind]

    def to_dict(self) -> dict[str, str]:
        return {"code": self.kind.value, "message": self.message}

    def __repr__(self) -> str:
        return f"ProcedureError({self.kind.value}, {self.message!r})"


# ---------------------------------------------------------------------------
# Typed domain errors raised by services
# ---------------------------------------------------------------------------


class DomainError(Exception):
    """Base for business-rule failures.  Subclasses pin the kind."""

    kind: ErrorKind = ErrorKind.INTERNAL_SERVER_ERROR

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class UnauthorizedError(DomainError):
    kind = ErrorKind.UNAUTHORIZED


class ForbiddenError(DomainError):
    kind = ErrorKind.FORBIDDEN


class NotAMemberError(ForbiddenError):
    def __init__(self, message: str = "Not a member of this organization") -> None:
        super().__init__(message)


class InsufficientRoleError(ForbiddenError):
    def __init__(self, message: str = "Insufficient role for this operation") -> None:
        super().__init__(message)


class NotFoundError(DomainError):
    kind = ErrorKind.NOT_FOUND


class BadRequestError(DomainError):
    kind = ErrorKind.BAD_REQUEST


class LimitReachedError(DomainError):
    kind = ErrorKind.PRECONDITION_FAILED


class PreconditionFailedError(DomainError):
    kind = ErrorKind.PRECONDITION_FAILED


class ConflictError(DomainError):
    kind = ErrorKind.CONFLICT


# ---------------------------------------------------------------------------
# Translator
# ---------------------------------------------------------------------------

# Order matters: the first pattern found in the message wins.
ERROR_MAPPINGS: tuple[tuple[tuple[str, ...], ErrorKind], ...] = (
    (("Limit reached", "limit reached"), ErrorKind.PRECONDITION_FAILED),
    (("Unauthorized", "unauthorized"), ErrorKind.UNAUTHORIZED),
    (("Not a member", "not a member"), ErrorKind.FORBIDDEN),
    (("Not found", "not found"), ErrorKind.NOT_FOUND),
)


def classify_message(message: str) -> ErrorKind | None:
    """Return the kind for the first matching phrase, or None."""
    for patterns, kind in ERROR_MAPPINGS:
        if any(p in message for p in patterns):
            return kind
    return None


def translate_error(exc: BaseException) -> ProcedureError:
    """Normalize any exception into a ``ProcedureError``.

    >>> translate_error(ValueError("Limit reached: 3 invites")).kind
    <ErrorKind.PRECONDITION_FAILED: 'PRECONDITION_FAILED'>
    """
    if isinstance(exc, ProcedureError):
        return exc

    if isinstance(exc, DomainError):
        return ProcedureError(exc.kind, exc.message)

    message = str(exc)
    kind = classify_message(message)
    if kind is None:
        return ProcedureError(ErrorKind.INTERNAL_SERVER_ERROR, "Internal server error")
    return ProcedureError(kind, message)
