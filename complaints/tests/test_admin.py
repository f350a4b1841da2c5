import pytest
from django.contrib.auth.models import User

from complaints.admin import ComplaintResource
from complaints.lifecycle import lifecycle

pytestmark = pytest.mark.django_db


def test_resource_masks_anonymous_submitters(student, admin_user):
    public = lifecycle.create(student, title='Dusty shelves', description='Level 2',
                              category='Library')
    lifecycle.create(student, title='Bullying', description='Dorm C',
                     category='Hostel', anonymous=True)
    lifecycle.assign(admin_user, public.pk, admin_user)

    rows = {row['title']: row for row in ComplaintResource().export().dict}

    assert rows['Dusty shelves']['submitter_email'] == student.email
    assert rows['Dusty shelves']['assignee_email'] == admin_user.email
    assert rows['Bullying']['submitter_email'] == ''
    assert rows['Bullying']['assignee_email'] == ''


def test_complaint_admin_changelist(client, complaint):
    User.objects.create_superuser('root', 'root@campus.edu', 'secret123')
    client.login(username='root', password='secret123')

    resp = client.get('/admin/complaints/complaint/')
    assert resp.status_code == 200
    assert b'Broken projector' in resp.content
