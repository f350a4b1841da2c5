import json

import pytest
from django.contrib.auth.models import User

from complaints.lifecycle import lifecycle
from complaints.models import AuthToken, Role, UserProfile


def make_user(username, role=None, **profile):
    user = User.objects.create_user(
        username=username,
        email=f"{username}@campus.edu",
        password="secret123",
        first_name=username.capitalize(),
    )
    if role is not None:
        UserProfile.objects.create(user=user, role=role, **profile)
    return user


@pytest.fixture
def student(db):
    return make_user('alice', Role.STUDENT, student_id='S100', department='Physics')


@pytest.fixture
def other_student(db):
    return make_user('bob', Role.STUDENT, student_id='S200')


@pytest.fixture
def admin_user(db):
    return make_user('carol', Role.ADMIN, department='Facilities')


@pytest.fixture
def second_admin(db):
    return make_user('dave', Role.ADMIN, department='Library')


@pytest.fixture
def superadmin(db):
    return make_user('erin', Role.SUPERADMIN)


@pytest.fixture
def complaint(student):
    return lifecycle.create(
        student,
        title='Broken projector',
        description='The projector in room 204 keeps flickering.',
        category='Infrastructure',
        priority='High',
    )


class ApiClient:
    """Django test client that sends JSON and a bearer token for one user."""

    def __init__(self, client, user=None):
        self.client = client
        self.headers = {}
        if user is not None:
            token = AuthToken.objects.create(user=user)
            self.headers['HTTP_AUTHORIZATION'] = f'Bearer {token.key}'

    def get(self, path, params=None, **extra):
        return self.client.get(path, params or {}, **self.headers, **extra)

    def post(self, path, data=None, **extra):
        return self.client.post(path, json.dumps(data or {}),
                                content_type='application/json', **self.headers, **extra)

    def patch(self, path, data=None, **extra):
        return self.client.patch(path, json.dumps(data or {}),
                                 content_type='application/json', **self.headers, **extra)

    def delete(self, path, **extra):
        return self.client.delete(path, **self.headers, **extra)


@pytest.fixture
def api_for(client):
    def build(user=None):
        return ApiClient(client, user)
    return build
