import logging

from django.conf import settings
from django.utils import timezone

from .models import AuthToken

logger = logging.getLogger(__name__)


class BearerTokenMiddleware:
    """
    Resolves ``Authorization: Bearer <key>`` into ``request.api_user``.

    Missing, unknown or expired tokens leave ``api_user`` as None; the view
    decorators decide whether that is an error. Expired tokens are deleted.
    """

    keyword = 'bearer'

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        request.api_user   = None
        request.auth_token = None

        token = self.authenticate(request)
        if token is not None:
            request.api_user   = token.user
            request.auth_token = token

        return self.get_response(request)

    def authenticate(self, request):
        parts = request.META.get('HTTP_AUTHORIZATION', '').split()
        if len(parts) != 2 or parts[0].lower() != self.keyword:
            return None

        token = AuthToken.objects.select_related('user', 'user__profile').filter(key=parts[1]).first()
        if token is None or not token.user.is_active:
            return None

        if token.is_expired(settings.AUTH_TOKEN_TTL):
            logger.info(f"Expired token for {token.user.username} discarded")
            token.delete()
            return None

        now = timezone.now()
        AuthToken.objects.filter(pk=token.pk).update(last_used_at=now)
        token.last_used_at = now
        return token
