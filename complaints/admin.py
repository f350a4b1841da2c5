from django.contrib import admin
from django.utils import timezone
from django.utils.html import format_html
from import_export import fields, resources
from import_export.admin import ExportMixin

from .models import (
    AdminReply, AssignmentHistory, Attachment, AuthToken, Complaint, Feedback,
    InfoRequest, InfoSubmission, Notification, StatusHistory, UserProfile,
)


class ComplaintResource(resources.ModelResource):
    submitter_email = fields.Field(column_name='submitter_email')
    assignee_email  = fields.Field(column_name='assignee_email')

    class Meta:
        model = Complaint
        fields = (
            'id', 'title', 'category', 'priority', 'status', 'anonymous',
            'submitter_email', 'assignee_email', 'rejection_reason',
            'created_at', 'updated_at', 'resolved_at',
        )

    def dehydrate_submitter_email(self, complaint):
        if complaint.anonymous:
            return ''
        return complaint.submitted_by.email

    def dehydrate_assignee_email(self, complaint):
        return complaint.assigned_to.email if complaint.assigned_to else ''


class ReadOnlyInline(admin.TabularInline):
    extra = 0
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False


class StatusHistoryInline(ReadOnlyInline):
    model  = StatusHistory
    fields = ['status', 'comment', 'updated_by', 'timestamp']


class AssignmentHistoryInline(ReadOnlyInline):
    model  = AssignmentHistory
    fields = ['assigned_to', 'assigned_by', 'department', 'note', 'timestamp']


class InfoRequestInline(ReadOnlyInline):
    model  = InfoRequest
    fields = ['question', 'requested_by', 'answered', 'timestamp']


class AdminReplyInline(ReadOnlyInline):
    model  = AdminReply
    fields = ['admin', 'message', 'timestamp']


class AttachmentInline(ReadOnlyInline):
    model  = Attachment
    fields = ['name', 'path', 'mime_type', 'size', 'submission', 'uploaded_at']


@admin.register(Complaint)
class ComplaintAdmin(ExportMixin, admin.ModelAdmin):
    resource_classes = [ComplaintResource]

    list_display   = ['id', 'title', 'category', 'priority_badge', 'status_badge',
                      'anonymous', 'submitted_by', 'assigned_to', 'created_at']
    list_filter    = ['status', 'priority', 'category', 'anonymous', 'created_at']
    search_fields  = ['title', 'description', 'submitted_by__email', 'submitted_by__username']
    date_hierarchy = 'created_at'
    list_per_page  = 25
    # Workflow fields only move through the lifecycle API.
    readonly_fields = ['status', 'priority', 'assigned_to', 'rejection_reason', 'submitted_by',
                       'version', 'created_at', 'updated_at', 'resolved_at']
    inlines = [AttachmentInline, StatusHistoryInline, AssignmentHistoryInline,
               InfoRequestInline, AdminReplyInline]

    fieldsets = (
        ('Complaint', {'fields': ('title', 'description', 'category', 'anonymous')}),
        ('Workflow', {'fields': ('status', 'priority', 'assigned_to', 'rejection_reason', 'version')}),
        ('Metadata', {'fields': ('submitted_by', 'created_at', 'updated_at', 'resolved_at'),
                      'classes': ('collapse',)}),
    )

    def has_add_permission(self, request):
        return False

    def status_badge(self, obj):
        colors = {
            'Open': '#3b82f6', 'In Progress': '#f59e0b', 'Escalated': '#8b5cf6',
            'Resolved': '#10b981', 'Closed': '#64748b', 'Rejected': '#ef4444',
        }
        return format_html(
            '<span style="background:{};color:white;padding:4px 12px;border-radius:6px;font-weight:600;">{}</span>',
            colors.get(obj.status, '#94a3b8'), obj.status
        )
    status_badge.short_description = 'Status'

    def priority_badge(self, obj):
        colors = {'Low': '#94a3b8', 'Medium': '#3b82f6', 'High': '#f59e0b', 'Critical': '#ef4444'}
        return format_html('<span style="color:{};font-weight:600;">{}</span>',
                           colors.get(obj.priority, '#94a3b8'), obj.priority)
    priority_badge.short_description = 'Priority'


@admin.register(UserProfile)
class UserProfileAdmin(admin.ModelAdmin):
    list_display  = ['user', 'role', 'student_id', 'department', 'phone']
    list_filter   = ['role', 'department']
    search_fields = ['user__username', 'user__email', 'student_id']


@admin.register(AuthToken)
class AuthTokenAdmin(admin.ModelAdmin):
    list_display    = ['user', 'created_at', 'last_used_at']
    search_fields   = ['user__username', 'user__email']
    readonly_fields = ['key', 'created_at', 'last_used_at']


@admin.register(Feedback)
class FeedbackAdmin(admin.ModelAdmin):
    list_display    = ['complaint', 'rating_stars', 'submitted_by', 'timestamp']
    list_filter     = ['rating']
    search_fields   = ['complaint__title', 'comment']
    readonly_fields = ['complaint', 'submitted_by', 'rating', 'comment', 'timestamp']

    def rating_stars(self, obj):
        color = '#10b981' if obj.rating >= 4 else '#f59e0b' if obj.rating == 3 else '#ef4444'
        return format_html('<span style="color:{};font-weight:600;">{}/5</span>', color, obj.rating)
    rating_stars.short_description = 'Rating'

    def has_add_permission(self, request):
        return False


@admin.register(InfoSubmission)
class InfoSubmissionAdmin(admin.ModelAdmin):
    list_display    = ['complaint', 'request', 'submitted_by', 'timestamp']
    search_fields   = ['complaint__title', 'response']
    readonly_fields = ['complaint', 'request', 'response', 'submitted_by', 'timestamp']

    def has_add_permission(self, request):
        return False


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display    = ['id', 'user', 'notification_type', 'title', 'complaint',
                       'is_read', 'email_sent', 'created_at']
    list_filter     = ['notification_type', 'is_read', 'email_sent', 'created_at']
    search_fields   = ['user__username', 'user__email', 'title', 'message', 'complaint__title']
    readonly_fields = ['created_at', 'read_at', 'email_sent_at']
    list_per_page   = 50
    date_hierarchy  = 'created_at'

    fieldsets = (
        ('Basic', {'fields': ('user', 'complaint', 'notification_type')}),
        ('Content', {'fields': ('title', 'message', 'extra_data')}),
        ('Status', {'fields': ('is_read', 'read_at', 'email_sent', 'email_sent_at')}),
        ('Timestamps', {'fields': ('created_at',), 'classes': ('collapse',)}),
    )

    actions = ['mark_as_read', 'mark_as_unread']

    def mark_as_read(self, request, queryset):
        updated = queryset.update(is_read=True, read_at=timezone.now())
        self.message_user(request, f'{updated} notifications marked as read.')
    mark_as_read.short_description = 'Mark selected as read'

    def mark_as_unread(self, request, queryset):
        updated = queryset.update(is_read=False, read_at=None)
        self.message_user(request, f'{updated} notifications marked as unread.')
    mark_as_unread.short_description = 'Mark selected as unread'
