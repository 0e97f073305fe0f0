# Overview: Actor identity consumed from the auth collaborator for adjustment attribution.

from __future__ import annotations

from dataclasses import dataclass

from ..extensions import db
from ..errors import NotFound, Unauthenticated
from ..models import Staff


SYSTEM_ACTOR_ROLE = "admin"


@dataclass(frozen=True)
class Actor:
    """The staff member on whose behalf a ledger mutation runs."""
    id: int
    role: str = "staff"


def require_actor(actor: Actor | None) -> Actor:
    if actor is None or actor.id is None:
        raise Unauthenticated("Authenticated actor required")
    return actor


def system_actor() -> Actor:
    """
    Actor used for automated deductions (e.g. order completion).

    The oldest active admin is treated as the system account.
    """
    staff = (
        db.session.query(Staff)
        .filter_by(role=SYSTEM_ACTOR_ROLE, is_active=True)
        .order_by(Staff.created_at.asc(), Staff.id.asc())
        .first()
    )
    if staff is None:
        raise NotFound("No system admin found for automated adjustments")
    return Actor(id=staff.id, role=staff.role)
