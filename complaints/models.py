from django.db import models
from django.contrib.auth.models import User
from django.core.validators import MinValueValidator, MaxValueValidator
from django.utils import timezone
from django.utils.crypto import get_random_string


class Role(models.TextChoices):
    STUDENT    = 'student',    'Student'
    ADMIN      = 'admin',      'Admin'
    SUPERADMIN = 'superadmin', 'Super Admin'


ADMIN_ROLES = (Role.ADMIN, Role.SUPERADMIN)


class AppendOnlyModel(models.Model):
    """History rows are written once and never edited."""

    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError(f"{self.__class__.__name__} entries are immutable once saved")
        super().save(*args, **kwargs)


class UserProfile(models.Model):
    user       = models.OneToOneField(User, on_delete=models.CASCADE, related_name='profile')
    role       = models.CharField(max_length=20, choices=Role.choices, default=Role.STUDENT)
    student_id = models.CharField(max_length=50, blank=True)
    department = models.CharField(max_length=100, blank=True)
    phone      = models.CharField(max_length=15, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "User Profile"
        verbose_name_plural = "User Profiles"

    def __str__(self):
        return f"{self.user.username} ({self.get_role_display()})"


def get_role(user):
    """Resolve the workflow role of a Django user; None for anonymous users."""
    if user is None or not user.is_authenticated:
        return None
    try:
        return user.profile.role
    except UserProfile.DoesNotExist:
        return Role.SUPERADMIN if user.is_superuser else Role.STUDENT


def is_admin_role(user):
    return get_role(user) in ADMIN_ROLES


def display_name(user):
    if user is None:
        return ''
    return user.get_full_name() or user.username


def _generate_token_key():
    return get_random_string(40)


class AuthToken(models.Model):
    key          = models.CharField(max_length=40, unique=True, default=_generate_token_key)
    user         = models.ForeignKey(User, on_delete=models.CASCADE, related_name='auth_tokens')
    created_at   = models.DateTimeField(auto_now_add=True)
    last_used_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['-created_at']
        verbose_name = "Auth Token"
        verbose_name_plural = "Auth Tokens"

    def __str__(self):
        return f"Token for {self.user.username}"

    def is_expired(self, ttl_seconds):
        return (timezone.now() - self.created_at).total_seconds() > ttl_seconds


class Complaint(models.Model):
    class Status(models.TextChoices):
        OPEN        = 'Open',        'Open'
        IN_PROGRESS = 'In Progress', 'In Progress'
        RESOLVED    = 'Resolved',    'Resolved'
        CLOSED      = 'Closed',      'Closed'
        ESCALATED   = 'Escalated',   'Escalated'
        REJECTED    = 'Rejected',    'Rejected'

    class Priority(models.TextChoices):
        LOW      = 'Low',      'Low'
        MEDIUM   = 'Medium',   'Medium'
        HIGH     = 'High',     'High'
        CRITICAL = 'Critical', 'Critical'

    class Category(models.TextChoices):
        INFRASTRUCTURE = 'Infrastructure', 'Infrastructure'
        CAFETERIA      = 'Cafeteria',      'Cafeteria'
        LIBRARY        = 'Library',        'Library'
        TRANSPORTATION = 'Transportation', 'Transportation'
        ACADEMIC       = 'Academic',       'Academic'
        HOSTEL         = 'Hostel',         'Hostel'
        ADMINISTRATIVE = 'Administrative', 'Administrative'
        OTHER          = 'Other',          'Other'

    TERMINAL_STATUSES = (Status.RESOLVED, Status.CLOSED, Status.REJECTED)

    PRIORITY_RANK = {
        Priority.CRITICAL: 0,
        Priority.HIGH:     1,
        Priority.MEDIUM:   2,
        Priority.LOW:      3,
    }

    title       = models.CharField(max_length=200)
    description = models.TextField()
    category    = models.CharField(max_length=30, choices=Category.choices)
    priority    = models.CharField(max_length=10, choices=Priority.choices, default=Priority.MEDIUM)
    status      = models.CharField(max_length=20, choices=Status.choices, default=Status.OPEN,
                                   db_index=True)
    anonymous   = models.BooleanField(default=False)

    submitted_by = models.ForeignKey(User, on_delete=models.CASCADE,
                                     related_name='submitted_complaints')
    assigned_to  = models.ForeignKey(User, on_delete=models.SET_NULL,
                                     null=True, blank=True,
                                     related_name='assigned_complaints')

    rejection_reason = models.TextField(blank=True)

    version     = models.PositiveIntegerField(default=1)
    created_at  = models.DateTimeField(auto_now_add=True)
    updated_at  = models.DateTimeField(auto_now=True)
    resolved_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['-created_at', '-id']
        verbose_name = "Complaint"
        verbose_name_plural = "Complaints"
        indexes = [
            models.Index(fields=['submitted_by', '-created_at'], name='complaint_submitter_idx'),
        ]

    def __str__(self):
        return f"#{self.id} - {self.title}"

    @property
    def is_terminal(self):
        return self.status in self.TERMINAL_STATUSES

    @property
    def priority_rank(self):
        return self.PRIORITY_RANK.get(self.priority, len(self.PRIORITY_RANK))

    def latest_info_request(self):
        return self.additional_info_requests.order_by('-id').first()

    @property
    def pending_info_request(self):
        latest = self.latest_info_request()
        return latest is not None and not latest.answered

    def is_owned_by(self, user):
        return user is not None and self.submitted_by_id == user.id


class Attachment(models.Model):
    complaint   = models.ForeignKey(Complaint, on_delete=models.CASCADE,
                                    related_name='attachments')
    submission  = models.ForeignKey('InfoSubmission', on_delete=models.CASCADE,
                                    null=True, blank=True, related_name='attachments')
    name        = models.CharField(max_length=255)
    path        = models.CharField(max_length=500)
    mime_type   = models.CharField(max_length=100, blank=True)
    size        = models.PositiveIntegerField(null=True, blank=True)
    uploaded_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['id']

    def __str__(self):
        return self.name


class StatusHistory(AppendOnlyModel):
    complaint  = models.ForeignKey(Complaint, on_delete=models.CASCADE,
                                   related_name='status_history')
    status     = models.CharField(max_length=20, choices=Complaint.Status.choices)
    comment    = models.TextField(blank=True)
    updated_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True,
                                   related_name='status_updates')
    timestamp  = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['id']
        verbose_name = "Status History"
        verbose_name_plural = "Status History"

    def __str__(self):
        return f"Complaint #{self.complaint_id} -> {self.status}"


class AssignmentHistory(AppendOnlyModel):
    complaint   = models.ForeignKey(Complaint, on_delete=models.CASCADE,
                                    related_name='assignment_history')
    assigned_to = models.ForeignKey(User, on_delete=models.SET_NULL, null=True,
                                    related_name='assignments_received')
    assigned_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True,
                                    related_name='assignments_made')
    department  = models.CharField(max_length=100, blank=True)
    note        = models.TextField(blank=True)
    timestamp   = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['id']
        verbose_name = "Assignment History"
        verbose_name_plural = "Assignment History"

    def __str__(self):
        return f"Complaint #{self.complaint_id} assigned to {self.assigned_to}"


class InfoRequest(models.Model):
    complaint    = models.ForeignKey(Complaint, on_delete=models.CASCADE,
                                     related_name='additional_info_requests')
    question     = models.TextField()
    requested_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True,
                                     related_name='info_requests_made')
    timestamp    = models.DateTimeField(default=timezone.now)
    answered     = models.BooleanField(default=False)

    class Meta:
        ordering = ['id']
        verbose_name = "Information Request"
        verbose_name_plural = "Information Requests"

    def __str__(self):
        return f"Complaint #{self.complaint_id}: {self.question[:50]}"

    def mark_answered(self):
        if not self.answered:
            self.answered = True
            self.save(update_fields=['answered'])


class InfoSubmission(AppendOnlyModel):
    complaint    = models.ForeignKey(Complaint, on_delete=models.CASCADE,
                                     related_name='additional_info_submissions')
    request      = models.OneToOneField(InfoRequest, on_delete=models.CASCADE,
                                        related_name='submission')
    response     = models.TextField()
    submitted_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True,
                                     related_name='info_submissions')
    timestamp    = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['id']
        verbose_name = "Information Submission"
        verbose_name_plural = "Information Submissions"

    def __str__(self):
        return f"Complaint #{self.complaint_id}: answer to request #{self.request_id}"


class AdminReply(AppendOnlyModel):
    complaint = models.ForeignKey(Complaint, on_delete=models.CASCADE,
                                  related_name='admin_replies')
    admin     = models.ForeignKey(User, on_delete=models.SET_NULL, null=True,
                                  related_name='complaint_replies')
    message   = models.TextField()
    timestamp = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['id']
        verbose_name = "Admin Reply"
        verbose_name_plural = "Admin Replies"

    def __str__(self):
        return f"Reply on complaint #{self.complaint_id}"


class Feedback(models.Model):
    complaint    = models.OneToOneField(Complaint, on_delete=models.CASCADE,
                                        related_name='feedback')
    submitted_by = models.ForeignKey(User, on_delete=models.CASCADE,
                                     related_name='complaint_feedback')
    rating       = models.PositiveSmallIntegerField(
        choices=[
            (1, '1 - Very Dissatisfied'), (2, '2 - Dissatisfied'), (3, '3 - Neutral'),
            (4, '4 - Satisfied'), (5, '5 - Very Satisfied'),
        ],
        validators=[MinValueValidator(1), MaxValueValidator(5)],
    )
    comment   = models.TextField(blank=True)
    timestamp = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['-timestamp']
        verbose_name = "Feedback"
        verbose_name_plural = "Feedback"

    def __str__(self):
        return f"Complaint #{self.complaint_id} - {self.rating}/5"


class Notification(models.Model):
    NOTIFICATION_TYPES = (
        ('STATUS_CHANGED',   'Status Changed'),
        ('ASSIGNED',         'Complaint Assigned'),
        ('REJECTED',         'Complaint Rejected'),
        ('INFO_REQUESTED',   'Information Requested'),
        ('INFO_SUBMITTED',   'Information Submitted'),
        ('ADMIN_REPLY',      'Admin Reply'),
        ('FEEDBACK',         'Feedback Received'),
        ('SYSTEM',           'System Notification'),
    )

    user              = models.ForeignKey(User, on_delete=models.CASCADE,
                                          related_name='notifications')
    complaint         = models.ForeignKey(Complaint, on_delete=models.CASCADE,
                                          null=True, blank=True, related_name='notifications')
    notification_type = models.CharField(max_length=50, choices=NOTIFICATION_TYPES,
                                         default='SYSTEM')
    title             = models.CharField(max_length=200, blank=True)
    message           = models.TextField()
    extra_data        = models.JSONField(default=dict, blank=True)
    is_read           = models.BooleanField(default=False, db_index=True)
    read_at           = models.DateTimeField(null=True, blank=True)
    created_at        = models.DateTimeField(auto_now_add=True, db_index=True)
    email_sent        = models.BooleanField(default=False)
    email_sent_at     = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['user', '-created_at'], name='notification_user_created_idx'),
            models.Index(fields=['user', 'is_read'], name='notification_user_read_idx'),
        ]

    def __str__(self):
        return f"{self.user.username} - {self.notification_type}"

    def mark_as_read(self):
        if not self.is_read:
            self.is_read = True
            self.read_at = timezone.now()
            self.save(update_fields=['is_read', 'read_at'])
