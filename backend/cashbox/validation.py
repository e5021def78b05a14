"""
Error taxonomy for the cash ledger.

Validation problems map to HTTP 400, missing resources to 404 and
state conflicts to 409. All of them are terminal: the caller must fix
the input or re-fetch register state before trying again.
"""

from __future__ import annotations


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., appending to a closed register)."""


class NotFoundError(LookupError):
    """404-level missing resource."""


class InvalidAmountError(ValidationError):
    """Amount is negative, zero where not allowed, or not representable in cents."""


class ScopeError(ValidationError):
    """Tenant, branch or actor identifier missing."""


class DenominationError(ValidationError):
    """Malformed denomination breakdown (unknown face value, non-numeric count)."""


class DenominationMismatchError(ValidationError):
    """Denomination total disagrees with the counted cash in strict mode."""


class RegisterNotFoundError(NotFoundError):
    """No register with that id in the tenant/branch scope."""


class AuditNotFoundError(NotFoundError):
    """No audit with that id in the tenant/branch scope."""


class RegisterClosedError(ConflictError):
    """Movement targeted a register that is no longer OPEN."""


class RegisterAlreadyClosedError(ConflictError):
    """Close requested on a register that is already CLOSED."""


class RegisterAlreadyOpenError(ConflictError):
    """Branch already has an OPEN register."""


def require_scope(tenant_id: str | None, branch_id: str | None) -> tuple[str, str]:
    """Return stripped scope identifiers or raise ScopeError."""
    tenant = str(tenant_id).strip() if tenant_id is not None else ""
    branch = str(branch_id).strip() if branch_id is not None else ""
    if not tenant or not branch:
        raise ScopeError("tenant_id and branch_id are required")
    return tenant, branch


def clean_actor(actor: str | None) -> str:
    if actor is None or not str(actor).strip():
        raise ScopeError("actor is required")
    return str(actor).strip()


def clean_text(value, *, field: str, max_length: int = 255, required: bool = False) -> str | None:
    """Normalize an optional free-text field."""
    if value is None:
        if required:
            raise ValidationError(f"{field} is required")
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    text = value.strip()
    if not text:
        if required:
            raise ValidationError(f"{field} is required")
        return None
    if len(text) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters")
    return text
