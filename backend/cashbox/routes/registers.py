# Overview: Flask API routes for cash registers, movements and audits; parses input and returns JSON responses.

# backend/cashbox/routes/registers.py
"""
Cash Register API Routes

DESIGN:
- Every route is scoped by tenant and branch in the URL.
- The acting user comes from the X-Actor-Id header (see require_actor).
- Amounts travel as integer cents ("amount_cents") or as exact decimal
  strings ("amount": "12.50"); floats are refused.
- Register lifecycle: open -> close (never reopened)
- Movements and audits are append-only.

STATUS CODES:
- 400 validation problems, 404 unknown register/audit,
  409 state conflicts (closed register, register already open).
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_actor
from ..money import coerce_cents, to_cents
from ..services import audit_service, movement_service, register_service, summary_service
from ..validation import ConflictError, NotFoundError, ValidationError


cash_registers_bp = Blueprint(
    "cash_registers",
    __name__,
    url_prefix="/api/tenants/<tenant_id>/branches/<branch_id>/cash-registers",
)


def _error_response(exc: Exception):
    if isinstance(exc, NotFoundError):
        status = 404
    elif isinstance(exc, ConflictError):
        status = 409
    else:
        status = 400
    return jsonify({"error": str(exc), "error_type": type(exc).__name__}), status


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def _amount(data: dict, name: str, *, required: bool = True) -> int | None:
    """Read "<name>_cents" (integer) or "<name>" (decimal string) from a payload."""
    cents_key = f"{name}_cents"
    if data.get(cents_key) is not None:
        return coerce_cents(data[cents_key], field=cents_key)
    if data.get(name) is not None:
        return to_cents(data[name], field=name)
    if required:
        raise ValidationError(f"{cents_key} required")
    return None


# =============================================================================
# REGISTER LIFECYCLE
# =============================================================================

@cash_registers_bp.post("")
@require_actor
def open_register_route(tenant_id: str, branch_id: str):
    """
    Open a new register.

    Request body:
    {
        "initial_amount_cents": 10000,   // or "initial_amount": "100.00"
        "name": "Front counter",          (optional)
        "notes": "Morning shift"          (optional)
    }

    Returns 409 if the branch already has an open register.
    """
    try:
        data = _json_body()
        register = register_service.open_register(
            tenant_id,
            branch_id,
            g.actor,
            _amount(data, "initial_amount"),
            notes=data.get("notes"),
            name=data.get("name"),
        )
        return jsonify({"register": register.to_dict()}), 201

    except (ValidationError, ConflictError, NotFoundError) as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to open register")
        return jsonify({"error": "Internal server error"}), 500


@cash_registers_bp.get("")
def list_registers_route(tenant_id: str, branch_id: str):
    """List registers, newest first. Optional ?status=OPEN|CLOSED."""
    try:
        registers = register_service.list_registers(
            tenant_id, branch_id, status=request.args.get("status")
        )
    except ValidationError as e:
        return _error_response(e)
    return jsonify({"registers": [r.to_dict() for r in registers]}), 200


@cash_registers_bp.get("/current")
def current_register_route(tenant_id: str, branch_id: str):
    """Currently open register of the branch (null when none)."""
    try:
        register = register_service.get_current_register(tenant_id, branch_id)
    except ValidationError as e:
        return _error_response(e)
    return jsonify({
        "register": register.to_dict() if register else None,
        "is_open": register is not None,
    }), 200


@cash_registers_bp.get("/<int:register_id>")
def get_register_route(tenant_id: str, branch_id: str, register_id: int):
    try:
        register = register_service.get_register(tenant_id, branch_id, register_id)
    except (ValidationError, NotFoundError) as e:
        return _error_response(e)
    return jsonify({"register": register.to_dict()}), 200


@cash_registers_bp.post("/<int:register_id>/close")
@require_actor
def close_register_route(tenant_id: str, branch_id: str, register_id: int):
    """
    Close a register.

    Request body (all optional):
    {
        "counted_balance_cents": 12500,   // physical count, books an adjustment if it differs
        "expected_balance_cents": 13000,  // caller-computed expectation
        "notes": "End of day"
    }
    """
    try:
        data = _json_body()
        register = register_service.close_register(
            tenant_id,
            branch_id,
            register_id,
            g.actor,
            counted_balance_cents=_amount(data, "counted_balance", required=False),
            expected_balance_cents=_amount(data, "expected_balance", required=False),
            notes=data.get("notes"),
        )
        return jsonify({"register": register.to_dict()}), 200

    except (ValidationError, ConflictError, NotFoundError) as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to close register")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# MOVEMENTS
# =============================================================================

@cash_registers_bp.get("/<int:register_id>/movements")
def list_movements_route(tenant_id: str, branch_id: str, register_id: int):
    """List movements newest first. Optional ?type=SALE and ?limit=50."""
    try:
        movements = movement_service.list_movements(
            tenant_id,
            branch_id,
            register_id,
            movement_type=request.args.get("type"),
            limit=request.args.get("limit", type=int),
        )
    except (ValidationError, NotFoundError) as e:
        return _error_response(e)
    return jsonify({"movements": [m.to_dict() for m in movements]}), 200


@cash_registers_bp.post("/<int:register_id>/movements")
@require_actor
def append_movement_route(tenant_id: str, branch_id: str, register_id: int):
    """
    Append a manual movement.

    Request body:
    {
        "type": "EXPENSE",
        "amount_cents": 2000,
        "payment_method": "CASH",       (optional, default CASH)
        "description": "Ice delivery",
        "reference": "INV-332",          (optional)
        "idempotency_key": "ui-7f1c"     (optional, safe retries)
    }
    """
    try:
        data = _json_body()
        if not data.get("type"):
            raise ValidationError("type required")
        movement = movement_service.append_movement(
            tenant_id,
            branch_id,
            g.actor,
            register_id,
            data["type"],
            _amount(data, "amount"),
            payment_method=data.get("payment_method"),
            description=data.get("description"),
            reference=data.get("reference"),
            order_id=data.get("order_id"),
            order_number=data.get("order_number"),
            idempotency_key=data.get("idempotency_key"),
        )
        return jsonify({"movement": movement.to_dict()}), 201

    except (ValidationError, ConflictError, NotFoundError) as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to append cash movement")
        return jsonify({"error": "Internal server error"}), 500


@cash_registers_bp.post("/<int:register_id>/sales")
@require_actor
def register_sale_route(tenant_id: str, branch_id: str, register_id: int):
    """Record an order payment. Body: order_id, order_number, amount_cents, payment_method."""
    try:
        data = _json_body()
        movement = movement_service.register_sale(
            tenant_id,
            branch_id,
            g.actor,
            register_id,
            data.get("order_id"),
            data.get("order_number"),
            _amount(data, "amount"),
            payment_method=data.get("payment_method"),
            idempotency_key=data.get("idempotency_key"),
        )
        return jsonify({"movement": movement.to_dict()}), 201

    except (ValidationError, ConflictError, NotFoundError) as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to register sale")
        return jsonify({"error": "Internal server error"}), 500


@cash_registers_bp.post("/<int:register_id>/refunds")
@require_actor
def register_refund_route(tenant_id: str, branch_id: str, register_id: int):
    """Record an order refund. Body: order_id, order_number, amount_cents, payment_method, reason."""
    try:
        data = _json_body()
        movement = movement_service.register_refund(
            tenant_id,
            branch_id,
            g.actor,
            register_id,
            data.get("order_id"),
            data.get("order_number"),
            _amount(data, "amount"),
            payment_method=data.get("payment_method"),
            reason=data.get("reason"),
            idempotency_key=data.get("idempotency_key"),
        )
        return jsonify({"movement": movement.to_dict()}), 201

    except (ValidationError, ConflictError, NotFoundError) as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to register refund")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# REPORTING
# =============================================================================

@cash_registers_bp.get("/<int:register_id>/summary")
def summary_route(tenant_id: str, branch_id: str, register_id: int):
    try:
        summary = summary_service.summarize(tenant_id, branch_id, register_id)
    except (ValidationError, NotFoundError) as e:
        return _error_response(e)
    return jsonify({"summary": summary.to_dict()}), 200


@cash_registers_bp.get("/<int:register_id>/integrity")
def integrity_route(tenant_id: str, branch_id: str, register_id: int):
    """Running balance vs. balance re-derived from movement history."""
    try:
        check = summary_service.check_ledger_integrity(tenant_id, branch_id, register_id)
    except (ValidationError, NotFoundError) as e:
        return _error_response(e)
    return jsonify({"integrity": check.to_dict()}), 200


# =============================================================================
# AUDITS
# =============================================================================

@cash_registers_bp.get("/<int:register_id>/audits")
def list_audits_route(tenant_id: str, branch_id: str, register_id: int):
    try:
        audits = audit_service.list_audits(tenant_id, branch_id, register_id)
    except (ValidationError, NotFoundError) as e:
        return _error_response(e)
    return jsonify({"audits": [a.to_dict() for a in audits]}), 200


@cash_registers_bp.post("/<int:register_id>/audits")
@require_actor
def perform_audit_route(tenant_id: str, branch_id: str, register_id: int):
    """
    Perform a cash audit.

    Request body:
    {
        "actual_cash_cents": 12500,
        "expected_cash_cents": 5000,          (optional, derived when omitted)
        "notes": "Mid-shift count",           (optional)
        "denominations": {                    (optional)
            "bills": {"100": 1, "20": 1},
            "coins": {"0.5": 10}
        }
    }
    """
    try:
        data = _json_body()
        audit = audit_service.perform_audit(
            tenant_id,
            branch_id,
            g.actor,
            register_id,
            _amount(data, "actual_cash"),
            expected_cash_cents=_amount(data, "expected_cash", required=False),
            notes=data.get("notes"),
            denominations=data.get("denominations"),
        )
        return jsonify({"audit": audit.to_dict()}), 201

    except (ValidationError, ConflictError, NotFoundError) as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to perform cash audit")
        return jsonify({"error": "Internal server error"}), 500


@cash_registers_bp.get("/<int:register_id>/audits/last")
def last_audit_route(tenant_id: str, branch_id: str, register_id: int):
    try:
        audit = audit_service.get_last_audit(tenant_id, branch_id, register_id)
    except (ValidationError, NotFoundError) as e:
        return _error_response(e)
    return jsonify({"audit": audit.to_dict() if audit else None}), 200


@cash_registers_bp.get("/<int:register_id>/audits/<int:audit_id>")
def get_audit_route(tenant_id: str, branch_id: str, register_id: int, audit_id: int):
    try:
        audit = audit_service.get_audit(tenant_id, branch_id, audit_id)
        if audit.register_id != register_id:
            raise NotFoundError(f"Audit {audit_id} not found")
    except (ValidationError, NotFoundError) as e:
        return _error_response(e)
    return jsonify({"audit": audit.to_dict()}), 200
