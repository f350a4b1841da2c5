import pytest
from django.contrib.auth.models import User

from complaints.exceptions import Conflict, NotFound
from complaints.lifecycle import lifecycle
from complaints.models import Complaint, Role, UserProfile
from complaints.store import ComplaintStore


@pytest.fixture
def store():
    return ComplaintStore()


def test_load_missing_complaint(store, db):
    with pytest.raises(NotFound):
        store.load(12345)


def test_save_bumps_version(store, complaint):
    loaded = store.load(complaint.pk)
    loaded.priority = Complaint.Priority.LOW
    store.save(loaded)

    assert loaded.version == 2
    stored = Complaint.objects.get(pk=complaint.pk)
    assert stored.version == 2
    assert stored.priority == Complaint.Priority.LOW


def test_stale_copy_cannot_overwrite(store, complaint):
    first = store.load(complaint.pk)
    second = store.load(complaint.pk)

    first.priority = Complaint.Priority.LOW
    store.save(first)

    second.priority = Complaint.Priority.CRITICAL
    with pytest.raises(Conflict):
        store.save(second)

    assert Complaint.objects.get(pk=complaint.pk).priority == Complaint.Priority.LOW


def test_query_filters(store, student, other_student):
    noisy = lifecycle.create(student, title='Noisy corridor', description='Music at night',
                             category='Hostel', priority='Low')
    lifecycle.create(student, title='Slow wifi', description='Library wifi drops',
                     category='Library', priority='Critical')
    lifecycle.create(other_student, title='Cold food', description='Lunch served cold',
                     category='Cafeteria')

    assert store.query().count() == 3
    assert list(store.query({'category': 'Hostel'})) == [noisy]
    assert store.query({'priority': 'Critical'}).get().title == 'Slow wifi'
    assert store.query({'submitted_by': other_student}).get().title == 'Cold food'
    assert store.query({'search': 'WIFI'}).get().title == 'Slow wifi'
    assert store.query({'search': 'at night'}).get() == noisy
    assert store.query({'status': 'Closed'}).count() == 0


def test_query_is_newest_first(store, student):
    first = lifecycle.create(student, title='First', description='one', category='Other')
    second = lifecycle.create(student, title='Second', description='two', category='Other')
    assert list(store.query()) == [second, first]


def test_list_users_by_role(store, student, admin_user, superadmin):
    root = User.objects.create_superuser('root', 'root@campus.edu', 'secret123')
    retired = User.objects.create_user('frank', 'frank@campus.edu', 'secret123', is_active=False)
    UserProfile.objects.create(user=retired, role=Role.ADMIN)

    admins = set(store.list_users_by_role([Role.ADMIN, Role.SUPERADMIN]))
    assert admins == {admin_user, superadmin, root}

    assert set(store.list_users_by_role(Role.STUDENT)) == {student}
    assert set(store.list_users_by_role(Role.ADMIN)) == {admin_user}
