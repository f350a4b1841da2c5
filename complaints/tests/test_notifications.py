import pytest

from complaints import notifications
from complaints.lifecycle import lifecycle
from complaints.models import Complaint, Notification

pytestmark = pytest.mark.django_db


def test_assignment_notifies_assignee_but_not_self(complaint, admin_user, second_admin):
    lifecycle.assign(admin_user, complaint.pk, admin_user)
    assert not Notification.objects.filter(user=admin_user).exists()

    lifecycle.assign(admin_user, complaint.pk, second_admin)
    notification = Notification.objects.get(user=second_admin)
    assert notification.notification_type == 'ASSIGNED'


def test_info_submission_notifies_requester(complaint, admin_user, student):
    lifecycle.request_info(admin_user, complaint.pk, 'Which room?')
    lifecycle.submit_info(student, complaint.pk, 'Room 204')

    assert Notification.objects.get(user=student).notification_type == 'INFO_REQUESTED'
    assert Notification.objects.get(user=admin_user).notification_type == 'INFO_SUBMITTED'


def test_feedback_notifies_assignee(complaint, admin_user, second_admin, student):
    lifecycle.assign(admin_user, complaint.pk, second_admin)
    lifecycle.update_status(second_admin, complaint.pk, Complaint.Status.RESOLVED)
    lifecycle.add_feedback(student, complaint.pk, 2)

    feedback = Notification.objects.get(user=second_admin, notification_type='FEEDBACK')
    assert feedback.extra_data['rating'] == 2


def test_email_can_be_switched_off(complaint, admin_user, settings, mailoutbox):
    settings.COMPLAINT_EMAIL_NOTIFICATIONS = False
    lifecycle.reject(admin_user, complaint.pk, 'Out of scope')

    notification = Notification.objects.get(notification_type='REJECTED')
    assert notification.email_sent is False
    assert mailoutbox == []


def test_mail_failure_keeps_notification(complaint, student, monkeypatch,
                                        django_capture_on_commit_callbacks):
    def broken_send_mail(**kwargs):
        raise ConnectionRefusedError('smtp down')

    monkeypatch.setattr(notifications, 'send_mail', broken_send_mail)
    with django_capture_on_commit_callbacks(execute=True) as callbacks:
        notification = notifications.create_notification(
            student, 'SYSTEM', 'Maintenance', 'Portal offline tonight', complaint=complaint,
        )

    assert len(callbacks) == 1

    notification.refresh_from_db()
    assert notification.email_sent is False
