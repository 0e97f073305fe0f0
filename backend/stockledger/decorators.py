# Overview: Request decorators and result-to-response helpers for API routes.

from functools import wraps
from flask import request, jsonify, g

from .errors import (
    InsufficientStock,
    InvalidTransition,
    NotFound,
    OPERATION_FAILED,
    Unauthenticated,
    ValidationFailed,
)
from .services.actor_service import Actor


ACTOR_ID_HEADER = "X-Actor-Id"
ACTOR_ROLE_HEADER = "X-Actor-Role"

STATUS_BY_CODE = {
    NotFound.code: 404,
    InsufficientStock.code: 409,
    InvalidTransition.code: 409,
    ValidationFailed.code: 400,
    Unauthenticated.code: 401,
    OPERATION_FAILED: 500,
}


def require_actor(f):
    """
    Require an actor identity established by the upstream auth layer.

    The session collaborator forwards the authenticated staff member as
    X-Actor-Id / X-Actor-Role. Sets g.current_actor for the route.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw_id = request.headers.get(ACTOR_ID_HEADER, "").strip()
        if not raw_id:
            return jsonify({"error": "Authentication required", "code": Unauthenticated.code}), 401
        try:
            actor_id = int(raw_id)
        except ValueError:
            return jsonify({"error": "Invalid actor id", "code": Unauthenticated.code}), 401

        g.current_actor = Actor(id=actor_id, role=request.headers.get(ACTOR_ROLE_HEADER, "staff"))
        return f(*args, **kwargs)

    return decorated_function


def result_response(result, *, success_status: int = 200, serialize=None):
    """Translate an OperationResult into a JSON response."""
    if result.ok:
        payload = serialize(result.value) if serialize else result.value
        return jsonify(payload), success_status

    body = {"error": result.message, "code": result.code}
    if result.details:
        body["details"] = result.details
    return jsonify(body), STATUS_BY_CODE.get(result.code, 400)


def error_response(error):
    """Translate a raised InventoryError from a read helper into a JSON response."""
    return jsonify({"error": error.message, "code": error.code}), STATUS_BY_CODE.get(error.code, 400)
