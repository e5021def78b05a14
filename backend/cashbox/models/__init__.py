from .registers import (
    AuditStatus,
    CashAudit,
    CashMovement,
    CashRegister,
    MovementType,
    PaymentMethod,
    RegisterStatus,
)

__all__ = [
    'AuditStatus', 'MovementType', 'PaymentMethod', 'RegisterStatus',
    'CashRegister', 'CashMovement', 'CashAudit',
]
