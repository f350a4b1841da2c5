import logging

from django.contrib.auth.models import User
from django.db import OperationalError
from django.db.models import F, Q
from django.utils import timezone

from .exceptions import Conflict, NotFound
from .models import Complaint, Role

logger = logging.getLogger(__name__)

# Columns the lifecycle engine is allowed to write back on save().
MUTABLE_FIELDS = ('status', 'priority', 'assigned_to', 'rejection_reason', 'resolved_at')


class ComplaintStore:
    """
    Persistence gateway for complaints.

    ``save`` is a conditional update on ``version``: a writer holding a stale
    copy updates zero rows and gets ``Conflict`` instead of overwriting.
    Callers are expected to run load/save inside ``transaction.atomic()``.
    """

    def load(self, complaint_id, for_update=False):
        queryset = Complaint.objects.select_related('submitted_by', 'assigned_to')
        if for_update:
            queryset = queryset.select_for_update(nowait=True, of=('self',))
        try:
            return queryset.get(pk=complaint_id)
        except Complaint.DoesNotExist:
            raise NotFound(f"Complaint {complaint_id} not found")
        except OperationalError as exc:
            logger.warning(f"Complaint {complaint_id} is locked by another writer: {exc}")
            raise Conflict()

    def create(self, **fields):
        return Complaint.objects.create(**fields)

    def save(self, complaint):
        now = timezone.now()
        values = {field: getattr(complaint, field) for field in MUTABLE_FIELDS}
        updated = Complaint.objects.filter(
            pk=complaint.pk, version=complaint.version,
        ).update(version=F('version') + 1, updated_at=now, **values)
        if not updated:
            logger.warning(
                f"Stale write on complaint {complaint.pk} (version {complaint.version})"
            )
            raise Conflict()
        complaint.version += 1
        complaint.updated_at = now
        return complaint

    def delete(self, complaint):
        complaint.delete()

    def query(self, filters=None):
        filters = filters or {}
        queryset = Complaint.objects.select_related(
            'submitted_by', 'assigned_to', 'feedback',
        )
        for field in ('status', 'category', 'priority'):
            if filters.get(field):
                queryset = queryset.filter(**{field: filters[field]})
        if filters.get('submitted_by') is not None:
            queryset = queryset.filter(submitted_by=filters['submitted_by'])
        search = (filters.get('search') or '').strip()
        if search:
            queryset = queryset.filter(
                Q(title__icontains=search) | Q(description__icontains=search)
            )
        return queryset.order_by('-created_at', '-id')

    def list_users_by_role(self, roles):
        if isinstance(roles, str):
            roles = [roles]
        roles = list(roles)
        condition = Q(profile__role__in=roles)
        if Role.SUPERADMIN in roles:
            condition |= Q(is_superuser=True, profile__isnull=True)
        return (
            User.objects.filter(condition, is_active=True)
            .select_related('profile')
            .order_by('first_name', 'username')
        )
