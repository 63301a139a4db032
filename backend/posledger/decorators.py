# Overview: Caller-identity decorator for API routes.

from functools import wraps
from flask import request, jsonify, g

from .validation import ValidationError, coerce_int

ACTOR_HEADER = "X-Actor-Id"
MERCHANT_HEADER = "X-Merchant-Id"


def require_actor(f):
    """
    Establish the caller identity forwarded by the auth gateway.

    The gateway has already authenticated the user and checked the
    permission for the route; this only reads the result. Sets:
    - g.actor_id: the authenticated user id
    - g.merchant_id: the user's tenant

    Returns 401 when either header is missing or not an integer.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        actor_raw = request.headers.get(ACTOR_HEADER)
        merchant_raw = request.headers.get(MERCHANT_HEADER)

        if not actor_raw or not merchant_raw:
            return jsonify({"error": "Caller identity required", "code": "UNAUTHENTICATED"}), 401

        try:
            g.actor_id = coerce_int(actor_raw, ACTOR_HEADER)
            g.merchant_id = coerce_int(merchant_raw, MERCHANT_HEADER)
        except ValidationError:
            return jsonify({"error": "Invalid caller identity", "code": "UNAUTHENTICATED"}), 401

        return f(*args, **kwargs)

    return decorated_function
