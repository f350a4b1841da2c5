import pytest
from django.contrib.auth.models import User
from django.core.management import CommandError, call_command

from complaints.models import Role, UserProfile

pytestmark = pytest.mark.django_db


def test_creates_missing_profiles():
    User.objects.create_user('nina', 'nina@campus.edu', 'secret123')
    User.objects.create_superuser('root', 'root@campus.edu', 'secret123')

    call_command('sync_user_roles')

    assert UserProfile.objects.get(user__username='nina').role == Role.STUDENT
    assert UserProfile.objects.get(user__username='root').role == Role.SUPERADMIN


def test_promotes_single_user(student):
    call_command('sync_user_roles', '--user', 'ALICE@campus.edu', '--role', 'admin')
    student.profile.refresh_from_db()
    assert student.profile.role == Role.ADMIN


def test_unknown_user_is_an_error():
    with pytest.raises(CommandError):
        call_command('sync_user_roles', '--user', 'ghost@campus.edu', '--role', 'admin')
