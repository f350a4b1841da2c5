import logging

from django.core.mail import send_mail
from django.conf import settings
from django.db import transaction
from django.utils import timezone

from .models import Notification, display_name

logger = logging.getLogger(__name__)


def create_notification(user, notification_type, title, message, complaint=None, extra_data=None):
    notification = Notification.objects.create(
        user=user,
        complaint=complaint,
        notification_type=notification_type,
        title=title,
        message=message,
        extra_data=extra_data or {},
    )

    # Mail only once the change that produced the notification is committed.
    if user.email and settings.COMPLAINT_EMAIL_NOTIFICATIONS:
        transaction.on_commit(lambda: send_notification_email(notification))

    return notification


def send_notification_email(notification):
    try:
        send_mail(
            subject        = notification.title or 'Complaint Desk Notification',
            message        = notification.message,
            from_email     = settings.DEFAULT_FROM_EMAIL,
            recipient_list = [notification.user.email],
            fail_silently  = False,
        )
    except Exception:
        logger.exception(f"Could not email notification {notification.pk} to {notification.user.email}")
        return False

    notification.email_sent    = True
    notification.email_sent_at = timezone.now()
    notification.save(update_fields=['email_sent', 'email_sent_at'])
    return True


def notify_status_changed(complaint, changed_by, comment=''):
    if complaint.submitted_by_id == changed_by.id:
        return None

    return create_notification(
        user=complaint.submitted_by,
        notification_type='STATUS_CHANGED',
        title=f'Complaint status: {complaint.status}',
        message=f'Your complaint "{complaint.title}" is now {complaint.status}.'
                + (f' Comment: {comment}' if comment else ''),
        complaint=complaint,
        extra_data={'status': complaint.status, 'priority': complaint.priority},
    )


def notify_assigned(complaint, assigned_to, assigned_by):
    if assigned_to.id == assigned_by.id:
        return None

    return create_notification(
        user=assigned_to,
        notification_type='ASSIGNED',
        title='Complaint assigned to you',
        message=f'{display_name(assigned_by)} assigned you complaint "{complaint.title}"',
        complaint=complaint,
        extra_data={'assigned_by': assigned_by.username, 'priority': complaint.priority},
    )


def notify_rejected(complaint, rejected_by):
    if complaint.submitted_by_id == rejected_by.id:
        return None

    return create_notification(
        user=complaint.submitted_by,
        notification_type='REJECTED',
        title='Your complaint was rejected',
        message=f'Complaint "{complaint.title}" was rejected. Reason: {complaint.rejection_reason}',
        complaint=complaint,
        extra_data={'reason': complaint.rejection_reason},
    )


def notify_info_requested(complaint, info_request):
    return create_notification(
        user=complaint.submitted_by,
        notification_type='INFO_REQUESTED',
        title='More information needed',
        message=f'An admin asked about "{complaint.title}": {info_request.question[:200]}',
        complaint=complaint,
        extra_data={'request_id': info_request.id},
    )


def notify_info_submitted(complaint, submission):
    requester = submission.request.requested_by
    if requester is None:
        return None

    return create_notification(
        user=requester,
        notification_type='INFO_SUBMITTED',
        title=f'Response received on "{complaint.title}"',
        message=submission.response[:200],
        complaint=complaint,
        extra_data={'request_id': submission.request_id},
    )


def notify_replied(complaint, reply):
    return create_notification(
        user=complaint.submitted_by,
        notification_type='ADMIN_REPLY',
        title=f'New reply on "{complaint.title}"',
        message=f'{display_name(reply.admin)}: {reply.message[:100]}',
        complaint=complaint,
    )


def notify_feedback(complaint, feedback):
    if not complaint.assigned_to:
        return None

    return create_notification(
        user=complaint.assigned_to,
        notification_type='FEEDBACK',
        title=f'Complaint rated {feedback.rating}/5',
        message=f'"{complaint.title}" received a {feedback.rating}-star rating.',
        complaint=complaint,
        extra_data={
            'rating':  feedback.rating,
            'comment': feedback.comment[:200] if feedback.comment else '',
        },
    )
