import json
import logging
from functools import wraps

from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt

from .exceptions import ComplaintDeskError, NotAuthenticated, Unauthorized, ValidationError
from .models import get_role

logger = logging.getLogger(__name__)


def error_response(exc):
    return JsonResponse(exc.to_dict(), status=exc.status_code)


def api_view(methods):
    """
    Wrap a JSON endpoint: restrict HTTP methods, exempt it from CSRF (callers
    authenticate with a bearer token, not a cookie) and translate errors.
    """
    methods = [m.upper() for m in methods]

    def decorator(view_func):
        @csrf_exempt
        @wraps(view_func)
        def wrapper(request, *args, **kwargs):
            if request.method not in methods:
                response = JsonResponse(
                    {'message': f"Method {request.method} not allowed",
                     'error': 'MethodNotAllowed'},
                    status=405,
                )
                response['Allow'] = ', '.join(methods)
                return response
            try:
                return view_func(request, *args, **kwargs)
            except ComplaintDeskError as exc:
                return error_response(exc)
            except Exception:
                logger.exception(f"Unhandled error on {request.method} {request.path}")
                return JsonResponse(
                    {'message': 'Internal server error', 'error': 'ServerError'},
                    status=500,
                )
        return wrapper
    return decorator


def api_login_required(view_func):
    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        if getattr(request, 'api_user', None) is None:
            raise NotAuthenticated()
        return view_func(request, *args, **kwargs)
    return wrapper


def role_required(*roles):
    def decorator(view_func):
        @wraps(view_func)
        @api_login_required
        def wrapper(request, *args, **kwargs):
            if get_role(request.api_user) not in roles:
                raise Unauthorized()
            return view_func(request, *args, **kwargs)
        return wrapper
    return decorator


def parse_json_body(request):
    if not request.body:
        return {}
    try:
        payload = json.loads(request.body)
    except (TypeError, ValueError):
        raise ValidationError("Request body is not valid JSON")
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload


def form_errors(form):
    return {field: [str(e) for e in errors] for field, errors in form.errors.items()}
