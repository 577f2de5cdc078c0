# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g


COMPANY_HEADER = "X-Company-Id"
USER_HEADER = "X-User-Id"
ROLE_HEADER = "X-User-Role"


def require_company_context(f):
    """
    Establish the caller's tenant context.

    The upstream auth gateway has already authenticated the caller and
    forwards the result as headers. This decorator trusts them and does no
    authorization of its own.

    MULTI-TENANT: Sets the following Flask g attributes:
    - g.company_id: The company (tenant) the request acts on - REQUIRED
    - g.user_id: The acting user (may be None for service calls)
    - g.role: The caller's role name (may be None)

    Returns 401 when the company header is missing.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        company_id = (request.headers.get(COMPANY_HEADER) or "").strip()
        if not company_id:
            return jsonify({"error": "Company context required"}), 401

        g.company_id = company_id
        g.user_id = (request.headers.get(USER_HEADER) or "").strip() or None
        g.role = (request.headers.get(ROLE_HEADER) or "").strip() or None

        return f(*args, **kwargs)

    return decorated_function
