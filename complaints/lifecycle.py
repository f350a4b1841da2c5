"""
Complaint lifecycle engine.

Every command validates the actor's role and the complaint's current state,
mutates the complaint inside one transaction, appends the matching history
record and returns the updated complaint. Failures are raised as the typed
errors in ``complaints.exceptions``; nothing is retried or swallowed here.

Status graph::

    Open        -> In Progress | Resolved | Closed | Escalated | Rejected
    In Progress -> Resolved | Closed | Escalated | Rejected
    Escalated   -> In Progress | Resolved | Closed | Rejected
    Resolved, Closed, Rejected are terminal.
"""
import logging
import os
from contextlib import contextmanager
from functools import wraps

from django.conf import settings
from django.core.files.storage import default_storage
from django.db import OperationalError, transaction
from django.utils import timezone

from . import notifications
from .exceptions import (
    AlreadyRated, ComplaintDeskError, Conflict, InvalidTransition, MissingReason,
    NoPendingRequest, NotResolved, RequestAlreadyPending, Unauthorized,
    UnknownAssignee, ValidationError,
)
from .models import (
    ADMIN_ROLES, AdminReply, AssignmentHistory, Attachment, Complaint, Feedback,
    InfoRequest, InfoSubmission, Role, StatusHistory, get_role,
)
from .store import ComplaintStore

logger = logging.getLogger(__name__)

Status = Complaint.Status

ALLOWED_TRANSITIONS = {
    Status.OPEN:        {Status.IN_PROGRESS, Status.RESOLVED, Status.CLOSED,
                         Status.ESCALATED, Status.REJECTED},
    Status.IN_PROGRESS: {Status.RESOLVED, Status.CLOSED, Status.ESCALATED, Status.REJECTED},
    Status.ESCALATED:   {Status.IN_PROGRESS, Status.RESOLVED, Status.CLOSED, Status.REJECTED},
    Status.RESOLVED:    set(),
    Status.CLOSED:      set(),
    Status.REJECTED:    set(),
}


def can_transition(current, target):
    return target in ALLOWED_TRANSITIONS.get(current, set())


def _logged(operation):
    def decorator(method):
        @wraps(method)
        def wrapper(self, actor, *args, **kwargs):
            try:
                return method(self, actor, *args, **kwargs)
            except ComplaintDeskError as exc:
                logger.warning(
                    f"{operation} refused for {getattr(actor, 'username', None)}: "
                    f"{exc.error_code}: {exc.message}"
                )
                raise
        return wrapper
    return decorator


def _require_admin(actor, action):
    if get_role(actor) not in ADMIN_ROLES:
        raise Unauthorized(f"Only admins can {action}")


def _require_text(value, field, error=ValidationError):
    value = (value or '').strip()
    if not value:
        raise error(f"{field.capitalize()} is required", details={field: 'This field is required.'})
    return value


def _ensure_active(complaint, action):
    if complaint.is_terminal:
        raise InvalidTransition(
            f"Cannot {action}: complaint is {complaint.status}",
            details={'status': complaint.status},
        )


def _validate_priority(priority):
    if priority not in Complaint.Priority.values:
        raise ValidationError(
            f"Unknown priority '{priority}'",
            details={'priority': f"Choose one of {', '.join(Complaint.Priority.values)}."},
        )


def _validate_uploads(files, existing=0):
    if existing + len(files) > settings.COMPLAINT_MAX_ATTACHMENTS:
        raise ValidationError(
            f"At most {settings.COMPLAINT_MAX_ATTACHMENTS} attachments are allowed",
            details={'attachments': 'Too many files.'},
        )
    for upload in files:
        if upload.size > settings.COMPLAINT_MAX_ATTACHMENT_SIZE:
            raise ValidationError(
                f"{upload.name} is larger than {settings.COMPLAINT_MAX_ATTACHMENT_SIZE} bytes",
                details={'attachments': 'File too large.'},
            )


def _store_uploads(complaint, files, saved_paths, submission=None):
    stored = []
    for upload in files:
        path = default_storage.save(
            os.path.join(settings.COMPLAINT_ATTACHMENT_DIR, str(complaint.pk), upload.name),
            upload,
        )
        saved_paths.append(path)
        stored.append(Attachment.objects.create(
            complaint=complaint,
            submission=submission,
            name=upload.name,
            path=path,
            mime_type=getattr(upload, 'content_type', '') or '',
            size=upload.size,
        ))
    return stored


def _discard_uploads(paths):
    for path in paths:
        try:
            default_storage.delete(path)
        except OSError:
            logger.exception(f"Could not remove orphaned upload {path}")


def _whole_number(value):
    if isinstance(value, bool):
        return None
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


@contextmanager
def _write_transaction(label, saved_paths=None):
    """
    Run one command in a single transaction.

    A writer that loses a lock race (``OperationalError`` from the backend,
    e.g. SQLite's "database table is locked" or a Postgres NOWAIT failure)
    gets ``Conflict`` once the transaction has rolled back. Files stored
    while the transaction was open are removed again on any failure.
    """
    try:
        with transaction.atomic():
            yield
    except OperationalError as exc:
        _discard_uploads(saved_paths or ())
        logger.warning(f"{label}: lost write race: {exc}")
        raise Conflict() from exc
    except Exception:
        _discard_uploads(saved_paths or ())
        raise


class ComplaintLifecycle:
    def __init__(self, store=None):
        self.store = store or ComplaintStore()

    @contextmanager
    def _editing(self, complaint_id, expected_version=None, saved_paths=None):
        """Atomic load -> mutate -> save on one complaint row."""
        with _write_transaction(f"Complaint {complaint_id}", saved_paths):
            complaint = self.store.load(complaint_id, for_update=True)
            if expected_version is not None and complaint.version != int(expected_version):
                raise Conflict(
                    details={'expected_version': int(expected_version),
                             'current_version': complaint.version},
                )
            yield complaint
            self.store.save(complaint)

    @_logged('create')
    def create(self, actor, title, description, category, priority=Complaint.Priority.MEDIUM,
               anonymous=False, attachments=(), files=()):
        if get_role(actor) != Role.STUDENT:
            raise Unauthorized("Only students can submit complaints")

        errors = {}
        title = (title or '').strip()
        description = (description or '').strip()
        if not title:
            errors['title'] = 'This field is required.'
        if not description:
            errors['description'] = 'This field is required.'
        if not category:
            errors['category'] = 'This field is required.'
        elif category not in Complaint.Category.values:
            errors['category'] = f"Choose one of {', '.join(Complaint.Category.values)}."
        if (priority or Complaint.Priority.MEDIUM) not in Complaint.Priority.values:
            errors['priority'] = f"Choose one of {', '.join(Complaint.Priority.values)}."
        if errors:
            raise ValidationError("Complaint is missing required fields", details=errors)

        attachments = list(attachments)
        files = list(files)
        _validate_uploads(files, existing=len(attachments))

        saved_paths = []
        with _write_transaction("New complaint", saved_paths):
            complaint = self.store.create(
                title=title,
                description=description,
                category=category,
                priority=priority or Complaint.Priority.MEDIUM,
                anonymous=bool(anonymous),
                submitted_by=actor,
            )
            for item in attachments:
                Attachment.objects.create(
                    complaint=complaint,
                    name=item.get('name') or os.path.basename(item.get('path', '')),
                    path=item.get('path', ''),
                    mime_type=item.get('mime_type', ''),
                    size=item.get('size'),
                )
            _store_uploads(complaint, files, saved_paths)

        logger.info(f"Complaint {complaint.pk} created by {actor.username} ({complaint.category})")
        return complaint

    @_logged('update_status')
    def update_status(self, actor, complaint_id, status, comment='', priority=None,
                      expected_version=None):
        _require_admin(actor, 'update complaint status')
        if status not in Status.values:
            raise ValidationError(
                f"Unknown status '{status}'",
                details={'status': f"Choose one of {', '.join(Status.values)}."},
            )
        if priority:
            _validate_priority(priority)
        if status == Status.REJECTED:
            return self.reject(actor, complaint_id, comment, priority=priority,
                               expected_version=expected_version)

        comment = (comment or '').strip()
        with self._editing(complaint_id, expected_version) as complaint:
            _ensure_active(complaint, 'change status')
            if not can_transition(complaint.status, status):
                raise InvalidTransition(
                    f"Cannot move complaint from {complaint.status} to {status}",
                    details={'from': complaint.status, 'to': status},
                )
            previous = complaint.status
            complaint.status = status
            if priority:
                complaint.priority = priority
            if status == Status.RESOLVED:
                complaint.resolved_at = timezone.now()
            StatusHistory.objects.create(
                complaint=complaint, status=status, comment=comment, updated_by=actor,
            )
            notifications.notify_status_changed(complaint, actor, comment)

        logger.info(f"Complaint {complaint.pk}: {previous} -> {status} by {actor.username}")
        return complaint

    @_logged('update_priority')
    def update_priority(self, actor, complaint_id, priority, expected_version=None):
        _require_admin(actor, 'change complaint priority')
        _validate_priority(priority)
        with self._editing(complaint_id, expected_version) as complaint:
            _ensure_active(complaint, 'change priority')
            previous = complaint.priority
            complaint.priority = priority

        logger.info(f"Complaint {complaint.pk}: priority {previous} -> {priority} by {actor.username}")
        return complaint

    @_logged('assign')
    def assign(self, actor, complaint_id, assigned_to, department='', note='',
               expected_version=None):
        _require_admin(actor, 'assign complaints')
        requested = getattr(assigned_to, 'pk', assigned_to)
        assignee_id = _whole_number(requested)
        assignee = None
        if assignee_id is not None:
            assignee = self.store.list_users_by_role(ADMIN_ROLES).filter(pk=assignee_id).first()
        if assignee is None:
            raise UnknownAssignee(details={'assignedTo': requested})

        with self._editing(complaint_id, expected_version) as complaint:
            _ensure_active(complaint, 'assign')
            complaint.assigned_to = assignee
            AssignmentHistory.objects.create(
                complaint=complaint,
                assigned_to=assignee,
                assigned_by=actor,
                department=(department or '').strip(),
                note=(note or '').strip(),
            )
            notifications.notify_assigned(complaint, assignee, actor)

        logger.info(f"Complaint {complaint.pk} assigned to {assignee.username} by {actor.username}")
        return complaint

    @_logged('reject')
    def reject(self, actor, complaint_id, reason, priority=None, expected_version=None):
        _require_admin(actor, 'reject complaints')
        reason = _require_text(reason, 'reason', error=MissingReason)
        with self._editing(complaint_id, expected_version) as complaint:
            _ensure_active(complaint, 'reject')
            complaint.status = Status.REJECTED
            complaint.rejection_reason = reason
            if priority:
                complaint.priority = priority
            StatusHistory.objects.create(
                complaint=complaint, status=Status.REJECTED, comment=reason, updated_by=actor,
            )
            notifications.notify_rejected(complaint, actor)

        logger.info(f"Complaint {complaint.pk} rejected by {actor.username}")
        return complaint

    @_logged('request_info')
    def request_info(self, actor, complaint_id, question, expected_version=None):
        _require_admin(actor, 'request information')
        question = _require_text(question, 'question')
        with self._editing(complaint_id, expected_version) as complaint:
            _ensure_active(complaint, 'request information')
            if complaint.pending_info_request:
                raise RequestAlreadyPending()
            info_request = InfoRequest.objects.create(
                complaint=complaint, question=question, requested_by=actor,
            )
            notifications.notify_info_requested(complaint, info_request)

        logger.info(f"Complaint {complaint.pk}: information requested by {actor.username}")
        return complaint

    @_logged('submit_info')
    def submit_info(self, actor, complaint_id, response, files=(), expected_version=None):
        response = (response or '').strip()
        files = list(files)
        saved_paths = []
        with self._editing(complaint_id, expected_version, saved_paths) as complaint:
            if not complaint.is_owned_by(actor):
                raise Unauthorized("Only the submitter can answer an information request")
            latest = complaint.latest_info_request()
            if latest is None or latest.answered:
                raise NoPendingRequest()
            if not response:
                raise ValidationError("Response is required",
                                      details={'response': 'This field is required.'})
            _validate_uploads(files)
            submission = InfoSubmission.objects.create(
                complaint=complaint, request=latest, response=response, submitted_by=actor,
            )
            latest.mark_answered()
            _store_uploads(complaint, files, saved_paths, submission=submission)
            notifications.notify_info_submitted(complaint, submission)

        logger.info(f"Complaint {complaint.pk}: information submitted by {actor.username}")
        return complaint

    @_logged('add_reply')
    def add_reply(self, actor, complaint_id, message, expected_version=None):
        _require_admin(actor, 'reply to complaints')
        message = _require_text(message, 'message')
        with self._editing(complaint_id, expected_version) as complaint:
            reply = AdminReply.objects.create(complaint=complaint, admin=actor, message=message)
            notifications.notify_replied(complaint, reply)

        logger.info(f"Complaint {complaint.pk}: reply added by {actor.username}")
        return complaint

    @_logged('add_feedback')
    def add_feedback(self, actor, complaint_id, rating, comment='', expected_version=None):
        rating = _whole_number(rating)
        if rating is None or not 1 <= rating <= 5:
            raise ValidationError("Rating must be between 1 and 5",
                                  details={'rating': 'Enter a whole number from 1 to 5.'})

        with self._editing(complaint_id, expected_version) as complaint:
            if not complaint.is_owned_by(actor):
                raise Unauthorized("Only the submitter can rate a complaint")
            if complaint.status != Status.RESOLVED:
                raise NotResolved(details={'status': complaint.status})
            if Feedback.objects.filter(complaint=complaint).exists():
                raise AlreadyRated()
            feedback = Feedback.objects.create(
                complaint=complaint,
                submitted_by=actor,
                rating=rating,
                comment=(comment or '').strip(),
            )
            notifications.notify_feedback(complaint, feedback)

        logger.info(f"Complaint {complaint.pk} rated {rating}/5 by {actor.username}")
        return complaint

    @_logged('delete')
    def delete(self, actor, complaint_id, expected_version=None):
        _require_admin(actor, 'delete complaints')
        with _write_transaction(f"Complaint {complaint_id}"):
            complaint = self.store.load(complaint_id, for_update=True)
            if expected_version is not None and complaint.version != int(expected_version):
                raise Conflict()
            self.store.delete(complaint)

        logger.info(f"Complaint {complaint_id} deleted by {actor.username}")


lifecycle = ComplaintLifecycle()
