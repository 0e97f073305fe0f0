# Overview: Centralized state machines for audits and transfers.

"""
Audit and Transfer lifecycles.

AUDIT:
    Pending -> Resolved          (terminal; resolution writes one adjustment)

TRANSFER:
    Pending   -> InTransit
    InTransit -> Pending         (backward move allowed until completion)
    Pending   -> Completed       (moves stock)
    InTransit -> Completed       (moves stock)
    Completed -> (nothing)       (terminal and immutable)

Same-state requests are rejected so that a repeated completion can never
deduct stock twice. Services ask this module whether a move is legal instead
of comparing status strings themselves.
"""
from __future__ import annotations

from ..errors import InvalidTransition, ValidationFailed
from ..models import AuditStatus, TransferStatus


AUDIT_TRANSITIONS: dict[AuditStatus, frozenset[AuditStatus]] = {
    AuditStatus.PENDING: frozenset({AuditStatus.RESOLVED}),
    AuditStatus.RESOLVED: frozenset(),
}

TRANSFER_TRANSITIONS: dict[TransferStatus, frozenset[TransferStatus]] = {
    TransferStatus.PENDING: frozenset({TransferStatus.IN_TRANSIT, TransferStatus.COMPLETED}),
    TransferStatus.IN_TRANSIT: frozenset({TransferStatus.PENDING, TransferStatus.COMPLETED}),
    TransferStatus.COMPLETED: frozenset(),
}


def parse_transfer_status(value) -> TransferStatus:
    try:
        return TransferStatus(value)
    except ValueError:
        valid = ", ".join(s.value for s in TransferStatus)
        raise ValidationFailed(f"Invalid transfer status '{value}'. Must be one of: {valid}")


def parse_audit_status(value) -> AuditStatus:
    try:
        return AuditStatus(value)
    except ValueError:
        valid = ", ".join(s.value for s in AuditStatus)
        raise ValidationFailed(f"Invalid audit status '{value}'. Must be one of: {valid}")


def can_transition_audit(from_status, to_status) -> bool:
    return parse_audit_status(to_status) in AUDIT_TRANSITIONS[parse_audit_status(from_status)]


def can_transition_transfer(from_status, to_status) -> bool:
    return parse_transfer_status(to_status) in TRANSFER_TRANSITIONS[parse_transfer_status(from_status)]


def require_audit_transition(audit, to_status) -> AuditStatus:
    target = parse_audit_status(to_status)
    if not can_transition_audit(audit.status, target):
        raise InvalidTransition(
            f"Cannot move audit {audit.id} from {audit.status} to {target.value}",
            audit_id=audit.id,
            from_status=audit.status,
            to_status=target.value,
        )
    return target


def require_transfer_transition(transfer, to_status) -> TransferStatus:
    target = parse_transfer_status(to_status)
    if not can_transition_transfer(transfer.status, target):
        raise InvalidTransition(
            f"Cannot move transfer {transfer.id} from {transfer.status} to {target.value}",
            transfer_id=transfer.id,
            from_status=transfer.status,
            to_status=target.value,
        )
    return target


def is_audit_editable(audit) -> bool:
    return parse_audit_status(audit.status) == AuditStatus.PENDING


def is_transfer_editable(transfer) -> bool:
    return bool(TRANSFER_TRANSITIONS[parse_transfer_status(transfer.status)])
