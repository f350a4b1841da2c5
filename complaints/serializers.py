"""
JSON shapes returned by the API.

Keys are camelCase to match what the client reads. Submitter identity on an
anonymous complaint is only ever rendered for its own submitter.
"""
from django.conf import settings
from django.core.exceptions import ObjectDoesNotExist

from .models import Role, display_name, get_role

# Related sets every complaint payload walks; pass to prefetch_related().
COMPLAINT_PREFETCH = (
    'attachments',
    'status_history__updated_by',
    'assignment_history__assigned_to',
    'assignment_history__assigned_by',
    'additional_info_requests__requested_by',
    'additional_info_submissions__submitted_by',
    'additional_info_submissions__attachments',
    'admin_replies__admin',
)


def _iso(value):
    return value.isoformat() if value else None


def serialize_user(user):
    if user is None:
        return None
    try:
        profile = user.profile
    except ObjectDoesNotExist:
        profile = None
    return {
        'id':         user.pk,
        'name':       display_name(user),
        'email':      user.email,
        'role':       get_role(user) or Role.STUDENT,
        'studentId':  profile.student_id if profile else '',
        'department': profile.department if profile else '',
    }


def _user_ref(user):
    if user is None:
        return None
    return {'id': user.pk, 'name': display_name(user), 'email': user.email}


def serialize_attachment(attachment):
    return {
        'id':         attachment.pk,
        'name':       attachment.name,
        'path':       attachment.path,
        'url':        settings.MEDIA_URL + attachment.path,
        'mimeType':   attachment.mime_type,
        'size':       attachment.size,
        'uploadedAt': _iso(attachment.uploaded_at),
    }


def _feedback(complaint):
    try:
        feedback = complaint.feedback
    except ObjectDoesNotExist:
        return None
    return {
        'rating':    feedback.rating,
        'comment':   feedback.comment,
        'timestamp': _iso(feedback.timestamp),
    }


def can_see_submitter(complaint, viewer):
    return not complaint.anonymous or complaint.is_owned_by(viewer)


def serialize_complaint(complaint, viewer):
    requests = list(complaint.additional_info_requests.all())
    pending = bool(requests) and not requests[-1].answered

    return {
        'id':              complaint.pk,
        'title':           complaint.title,
        'description':     complaint.description,
        'category':        complaint.category,
        'priority':        complaint.priority,
        'status':          complaint.status,
        'anonymous':       complaint.anonymous,
        'submittedBy':     serialize_user(complaint.submitted_by)
                           if can_see_submitter(complaint, viewer) else None,
        'assignedTo':      _user_ref(complaint.assigned_to),
        'rejectionReason': complaint.rejection_reason or None,
        'attachments': [
            serialize_attachment(a) for a in complaint.attachments.all()
            if a.submission_id is None
        ],
        'statusHistory': [
            {
                'status':    entry.status,
                'comment':   entry.comment,
                'updatedBy': _user_ref(entry.updated_by),
                'timestamp': _iso(entry.timestamp),
            }
            for entry in complaint.status_history.all()
        ],
        'assignmentHistory': [
            {
                'assignedTo': _user_ref(entry.assigned_to),
                'assignedBy': _user_ref(entry.assigned_by),
                'department': entry.department,
                'note':       entry.note,
                'timestamp':  _iso(entry.timestamp),
            }
            for entry in complaint.assignment_history.all()
        ],
        'additionalInfoRequests': [
            {
                'id':          entry.pk,
                'question':    entry.question,
                'requestedBy': _user_ref(entry.requested_by),
                'timestamp':   _iso(entry.timestamp),
                'answered':    entry.answered,
            }
            for entry in requests
        ],
        'additionalInfoSubmissions': [
            {
                'id':          entry.pk,
                'requestId':   entry.request_id,
                'response':    entry.response,
                'attachments': [serialize_attachment(a) for a in entry.attachments.all()],
                'submittedBy': _user_ref(entry.submitted_by)
                               if can_see_submitter(complaint, viewer) else None,
                'timestamp':   entry.timestamp.isoformat(),
            }
            for entry in complaint.additional_info_submissions.all()
        ],
        'adminReplies': [
            {
                'admin':     _user_ref(entry.admin),
                'message':   entry.message,
                'timestamp': _iso(entry.timestamp),
            }
            for entry in complaint.admin_replies.all()
        ],
        'feedback':           _feedback(complaint),
        'pendingInfoRequest': pending,
        'version':            complaint.version,
        'createdAt':          _iso(complaint.created_at),
        'updatedAt':          _iso(complaint.updated_at),
        'resolvedAt':         _iso(complaint.resolved_at),
    }


def serialize_complaint_brief(complaint):
    return {
        'id':        complaint.pk,
        'title':     complaint.title,
        'category':  complaint.category,
        'priority':  complaint.priority,
        'status':    complaint.status,
        'version':   complaint.version,
        'createdAt': _iso(complaint.created_at),
    }


def serialize_credibility(credibility):
    return {
        'total':          credibility['total'],
        'genuine':        credibility['genuine'],
        'rejected':       credibility['rejected'],
        'percentGenuine': credibility['percent_genuine'],
    }


def serialize_summary(summary):
    stats = summary['stats']
    return {
        'stats': {
            'total':      stats['total'],
            'open':       stats['open'],
            'inProgress': stats['in_progress'],
            'resolved':   stats['resolved'],
            'closed':     stats['closed'],
            'critical':   stats['critical'],
            'escalated':  stats['escalated'],
            'rejected':   stats['rejected'],
        },
        'genuineRate':            summary['genuine_rate'],
        'resolutionRate':         summary['resolution_rate'],
        'averageRating':          summary['average_rating'],
        'satisfactionRate':       summary['satisfaction_rate'],
        'averageResolutionHours': summary['average_resolution_hours'],
        'categoryDistribution':   summary['category_distribution'],
        'priorityDistribution':   summary['priority_distribution'],
    }


def serialize_notification(notification):
    return {
        'id':          notification.pk,
        'type':        notification.notification_type,
        'title':       notification.title,
        'message':     notification.message,
        'complaintId': notification.complaint_id,
        'data':        notification.extra_data,
        'isRead':      notification.is_read,
        'readAt':      _iso(notification.read_at),
        'createdAt':   _iso(notification.created_at),
    }
