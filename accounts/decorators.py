from functools import wraps

from marketplace.services.exceptions import Forbidden, Unauthenticated

from .tokens import user_from_token


def bearer_token(request):
    header = request.headers.get("Authorization", "")
    if not header.startswith("Bearer "):
        return None
    return header[len("Bearer ") :].strip() or None


def token_required(*roles):
    """
    Authenticate a JSON API view with a bearer token.

    The authenticated user replaces ``request.user``. With ``roles`` given,
    any other role gets Forbidden; admins always pass.
    """

    def decorator(view_func):
        @wraps(view_func)
        def _wrapped(request, *args, **kwargs):
            token = bearer_token(request)
            if token is None:
                raise Unauthenticated("Token not provided.")
            user = user_from_token(token)
            if roles and user.role not in roles and not user.is_marketplace_admin:
                raise Forbidden("Your role cannot access this resource.")
            request.user = user
            return view_func(request, *args, **kwargs)

        return _wrapped

    return decorator


def token_optional(view_func):
    """Like token_required, but anonymous requests pass through untouched."""

    @wraps(view_func)
    def _wrapped(request, *args, **kwargs):
        token = bearer_token(request)
        if token is not None:
            request.user = user_from_token(token)
        return view_func(request, *args, **kwargs)

    return _wrapped
