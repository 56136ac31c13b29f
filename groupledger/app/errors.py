"""
errors.py — AppError base class and error code registry.

Every error returned by the GroupLedger API must use a code defined here.
Do not raise strings or generic exceptions from service or route code.

Rules:
  - Error codes are a versioned contract. They do not change once published.
  - Error messages are human-readable prose. They may be improved at any time.
  - Never conflate 401 (unauthenticated) with 403 (not a group member).
"""

from __future__ import annotations


class AppError(Exception):

    def __init__(
            self,
            code: str,
            message: str,
            http_status: int,
            field: str | None = None,
            errors: list[dict] | None = None,
    ) -> None:
        super().__init__(message)
        self.code        = code
        self.message     = message
        self.http_status = http_status
        self.field       = field   # which request field caused the error
        self.errors      = errors  # structured per-row detail (CSV validation)

    @property
    def is_client_error(self) -> bool:
        """True for 4xx errors: retrying the same input cannot succeed."""
        return 400 <= self.http_status < 500

    def to_dict(self) -> dict:
        payload = {
            "code":    self.code,
            "message": self.message,
        }
        if self.field is not None:
            payload["field"] = self.field
        if self.errors is not None:
            payload["errors"] = self.errors
        return {"error": payload}

    def __repr__(self) -> str:
        return (
            f"AppError(code={self.code!r}, "
            f"http_status={self.http_status}, "
            f"message={self.message!r})"
        )


# ── Error Code Registry ────────────────────────────────────────────────────
#
# Organised by category. HTTP status is indicated in the comment.
# These are the string values sent in the API response.
# ──────────────────────────────────────────────────────────────────────────

class ErrorCode:

    # ── Schema / Input Errors (400) ────────────────────────────────────────
    MISSING_FIELD              = "MISSING_FIELD"
    INVALID_FIELD              = "INVALID_FIELD"
    VALIDATION_FAILED          = "VALIDATION_FAILED"     # CSV structure / rows
    FILE_MISSING               = "FILE_MISSING"
    FILE_TOO_LARGE             = "FILE_TOO_LARGE"        # 413

    # ── Conflict Errors (409) ──────────────────────────────────────────────
    DUPLICATE_EMAIL            = "DUPLICATE_EMAIL"
    ALREADY_MEMBER             = "ALREADY_MEMBER"

    # ── Not Found Errors (404) ─────────────────────────────────────────────
    USER_NOT_FOUND             = "USER_NOT_FOUND"
    GROUP_NOT_FOUND            = "GROUP_NOT_FOUND"       # absent or soft-deleted
    NOT_FOUND                  = "NOT_FOUND"             # unknown route

    # ── Business Rule Violations (422) ────────────────────────────────────
    INVALID_PAYER              = "INVALID_PAYER"
    INVALID_MEMBER_IDS         = "INVALID_MEMBER_IDS"
    INVALID_MEMBER             = "INVALID_MEMBER"        # settlement from/to
    EMPTY_SPLIT                = "EMPTY_SPLIT"
    SELF_SETTLEMENT            = "SELF_SETTLEMENT"

    # ── Auth Errors ────────────────────────────────────────────────────────
    # 401 = we do not know who you are (unauthenticated)
    # 403 = we know who you are, but you do not belong to the group
    TOKEN_MISSING              = "TOKEN_MISSING"          # 401
    TOKEN_INVALID              = "TOKEN_INVALID"          # 401
    TOKEN_EXPIRED              = "TOKEN_EXPIRED"          # 401
    NOT_A_GROUP_MEMBER         = "NOT_A_GROUP_MEMBER"     # 403
    FORBIDDEN                  = "FORBIDDEN"              # 403

    # ── Infrastructure Errors ──────────────────────────────────────────────
    STORAGE_UNAVAILABLE        = "STORAGE_UNAVAILABLE"    # 502 blob store / queue
    METHOD_NOT_ALLOWED         = "METHOD_NOT_ALLOWED"     # 405
    INTERNAL_ERROR             = "INTERNAL_ERROR"         # 500


# ── Shared constructors ────────────────────────────────────────────────────
# Preconditions shared by almost every ledger operation.

def group_not_found(group_id: str) -> AppError:
    return AppError(
        ErrorCode.GROUP_NOT_FOUND,
        f"Group {group_id} does not exist.",
        404,
    )


def not_a_group_member(group_id: str) -> AppError:
    return AppError(
        ErrorCode.NOT_A_GROUP_MEMBER,
        f"You are not a member of group {group_id}.",
        403,
    )


def validation_failed(message: str, errors: list[dict]) -> AppError:
    return AppError(
        ErrorCode.VALIDATION_FAILED,
        message,
        400,
        errors=errors,
    )
