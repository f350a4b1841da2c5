import logging

from django.contrib.auth import authenticate
from django.contrib.auth.models import User
from django.http import JsonResponse
from django.http.multipartparser import MultiPartParser
from django.utils import timezone
from django.utils.datastructures import MultiValueDict

from .analytics import (
    dashboard_summary, pending_for_admin, prepare_export_data, submitter_credibility,
)
from .decorators import (
    api_login_required, api_view, form_errors, parse_json_body, role_required,
)
from .exceptions import NotAuthenticated, NotFound, Unauthorized, ValidationError
from .exports import excel_response, pdf_response
from .forms import ComplaintFilterForm, LoginForm, RegisterForm
from .lifecycle import lifecycle
from .models import ADMIN_ROLES, AuthToken, Complaint, Notification, Role, get_role, is_admin_role
from .serializers import (
    COMPLAINT_PREFETCH, serialize_complaint, serialize_complaint_brief,
    serialize_credibility, serialize_notification, serialize_summary, serialize_user,
)

logger = logging.getLogger(__name__)

store = lifecycle.store

TRUE_VALUES = ('1', 'true', 'yes', 'on')


def _flag(value):
    if isinstance(value, bool):
        return value
    return str(value or '').strip().lower() in TRUE_VALUES


def _expected_version(request):
    value = request.headers.get('If-Match', '').strip()
    if value.startswith('W/'):
        value = value[2:]
    value = value.strip('"')
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        raise ValidationError("If-Match must carry the complaint version",
                              details={'If-Match': value})


def _request_payload(request):
    """JSON body, or form fields plus files for multipart requests (POST or PATCH)."""
    if request.content_type != 'multipart/form-data':
        return parse_json_body(request), MultiValueDict()
    if request.method == 'POST':
        return request.POST, request.FILES
    parser = MultiPartParser(request.META, request, request.upload_handlers, request.encoding)
    return parser.parse()


def _uploaded_files(files):
    return files.getlist('attachments') + files.getlist('files')


def _attachment_metadata(items):
    if not items:
        return []
    if not isinstance(items, list) or not all(isinstance(item, dict) for item in items):
        raise ValidationError("Attachments must be a list of objects",
                              details={'attachments': 'Expected [{name, path, mimeType}].'})
    metadata = []
    for item in items:
        if not item.get('path'):
            raise ValidationError("Attachment path is required",
                                  details={'attachments': 'Each attachment needs a path.'})
        metadata.append({
            'name':      item.get('name', ''),
            'path':      item['path'],
            'mime_type': item.get('mimeType', ''),
            'size':      item.get('size'),
        })
    return metadata


def _complaint_queryset():
    return (
        Complaint.objects
        .select_related('submitted_by__profile', 'assigned_to', 'feedback')
        .prefetch_related(*COMPLAINT_PREFETCH)
    )


def _get_complaint(complaint_id):
    try:
        return _complaint_queryset().get(pk=complaint_id)
    except Complaint.DoesNotExist:
        raise NotFound(f"Complaint {complaint_id} not found")


def _complaint_response(complaint_id, viewer, status=200):
    complaint = _get_complaint(complaint_id)
    return JsonResponse(serialize_complaint(complaint, viewer), status=status)


def _scope_filters(user, filters):
    if get_role(user) == Role.STUDENT:
        filters['submitted_by'] = user
    return filters


def _token_response(user, status=200):
    token = AuthToken.objects.create(user=user)
    return JsonResponse({'token': token.key, 'user': serialize_user(user)}, status=status)


# Auth


@api_view(['POST'])
def register(request):
    payload = parse_json_body(request)
    form = RegisterForm({
        'name':       payload.get('name', ''),
        'email':      payload.get('email', ''),
        'password':   payload.get('password', ''),
        'student_id': payload.get('studentId', ''),
        'department': payload.get('department', ''),
    })
    if not form.is_valid():
        raise ValidationError("Registration failed", details=form_errors(form))

    user = form.save()
    logger.info(f"Registered student account {user.username}")
    return _token_response(user, status=201)


@api_view(['POST'])
def login(request):
    form = LoginForm(parse_json_body(request))
    if not form.is_valid():
        raise ValidationError("Email and password are required", details=form_errors(form))

    candidate = User.objects.filter(email__iexact=form.cleaned_data['email']).first()
    user = None
    if candidate is not None:
        user = authenticate(request, username=candidate.username,
                            password=form.cleaned_data['password'])
    if user is None:
        logger.warning(f"Failed login for {form.cleaned_data['email']}")
        raise NotAuthenticated("Invalid email or password")

    user.last_login = timezone.now()
    user.save(update_fields=['last_login'])
    return _token_response(user)


@api_view(['POST'])
@api_login_required
def logout(request):
    request.auth_token.delete()
    return JsonResponse({'message': 'Logged out'})


@api_view(['GET'])
@api_login_required
def me(request):
    return JsonResponse({'user': serialize_user(request.api_user)})


# Complaints


@api_view(['GET', 'POST'])
@api_login_required
def complaints(request):
    if request.method == 'POST':
        return _create_complaint(request)

    form = ComplaintFilterForm(request.GET)
    if not form.is_valid():
        raise ValidationError("Invalid filters", details=form_errors(form))

    filters = _scope_filters(request.api_user, dict(form.cleaned_data))
    queryset = store.query(filters).select_related('submitted_by__profile') \
                                   .prefetch_related(*COMPLAINT_PREFETCH)
    results = [serialize_complaint(c, request.api_user) for c in queryset]
    return JsonResponse({'complaints': results, 'count': len(results)})


def _create_complaint(request):
    payload, files = _request_payload(request)
    # Multipart bodies carry real files; JSON bodies carry already-stored metadata.
    attachments = None if files else payload.get('attachments')
    complaint = lifecycle.create(
        request.api_user,
        title=payload.get('title', ''),
        description=payload.get('description', ''),
        category=payload.get('category', ''),
        priority=payload.get('priority') or Complaint.Priority.MEDIUM,
        anonymous=_flag(payload.get('anonymous')),
        attachments=_attachment_metadata(attachments),
        files=_uploaded_files(files),
    )
    return _complaint_response(complaint.pk, request.api_user, status=201)


@api_view(['GET', 'DELETE'])
@api_login_required
def complaint_detail(request, complaint_id):
    user = request.api_user
    if request.method == 'DELETE':
        lifecycle.delete(user, complaint_id, expected_version=_expected_version(request))
        return JsonResponse({'message': 'Complaint deleted', 'id': complaint_id})

    complaint = _get_complaint(complaint_id)
    if not is_admin_role(user) and not complaint.is_owned_by(user):
        raise Unauthorized("You can only view your own complaints")

    payload = serialize_complaint(complaint, user)
    if is_admin_role(user) and not complaint.anonymous:
        history = list(store.query({'submitted_by': complaint.submitted_by}))
        payload['submitterStats'] = serialize_credibility(
            submitter_credibility(complaint.submitted_by_id, history)
        )
    return JsonResponse(payload)


@api_view(['PATCH'])
@role_required(*ADMIN_ROLES)
def update_status(request, complaint_id):
    payload = parse_json_body(request)
    complaint = lifecycle.update_status(
        request.api_user, complaint_id,
        status=payload.get('status'),
        comment=payload.get('comment', ''),
        priority=payload.get('priority'),
        expected_version=_expected_version(request),
    )
    return _complaint_response(complaint.pk, request.api_user)


@api_view(['PATCH'])
@role_required(*ADMIN_ROLES)
def update_priority(request, complaint_id):
    payload = parse_json_body(request)
    complaint = lifecycle.update_priority(
        request.api_user, complaint_id,
        priority=payload.get('priority'),
        expected_version=_expected_version(request),
    )
    return _complaint_response(complaint.pk, request.api_user)


@api_view(['PATCH'])
@role_required(*ADMIN_ROLES)
def assign(request, complaint_id):
    payload = parse_json_body(request)
    assigned_to = payload.get('assignedTo')
    if isinstance(assigned_to, dict):
        assigned_to = assigned_to.get('id')
    complaint = lifecycle.assign(
        request.api_user, complaint_id,
        assigned_to=assigned_to,
        department=payload.get('department', ''),
        note=payload.get('note', ''),
        expected_version=_expected_version(request),
    )
    return _complaint_response(complaint.pk, request.api_user)


@api_view(['PATCH'])
@role_required(*ADMIN_ROLES)
def reject(request, complaint_id):
    payload = parse_json_body(request)
    complaint = lifecycle.reject(
        request.api_user, complaint_id,
        reason=payload.get('reason', ''),
        expected_version=_expected_version(request),
    )
    return _complaint_response(complaint.pk, request.api_user)


@api_view(['PATCH'])
@role_required(*ADMIN_ROLES)
def request_info(request, complaint_id):
    payload = parse_json_body(request)
    complaint = lifecycle.request_info(
        request.api_user, complaint_id,
        question=payload.get('question', ''),
        expected_version=_expected_version(request),
    )
    return _complaint_response(complaint.pk, request.api_user)


@api_view(['PATCH'])
@api_login_required
def submit_info(request, complaint_id):
    payload, files = _request_payload(request)
    complaint = lifecycle.submit_info(
        request.api_user, complaint_id,
        response=payload.get('response', ''),
        files=_uploaded_files(files),
        expected_version=_expected_version(request),
    )
    return _complaint_response(complaint.pk, request.api_user)


@api_view(['PATCH'])
@role_required(*ADMIN_ROLES)
def reply(request, complaint_id):
    payload = parse_json_body(request)
    complaint = lifecycle.add_reply(
        request.api_user, complaint_id,
        message=payload.get('message', ''),
        expected_version=_expected_version(request),
    )
    return _complaint_response(complaint.pk, request.api_user)


@api_view(['PATCH'])
@api_login_required
def feedback(request, complaint_id):
    payload = parse_json_body(request)
    complaint = lifecycle.add_feedback(
        request.api_user, complaint_id,
        rating=payload.get('rating'),
        comment=payload.get('comment', ''),
        expected_version=_expected_version(request),
    )
    return _complaint_response(complaint.pk, request.api_user)


@api_view(['GET'])
@role_required(*ADMIN_ROLES)
def admin_users(request):
    admins = store.list_users_by_role(ADMIN_ROLES)
    return JsonResponse({'admins': [serialize_user(u) for u in admins]})


@api_view(['GET'])
def categories(request):
    return JsonResponse({
        'categories': Complaint.Category.values,
        'priorities': Complaint.Priority.values,
        'statuses':   Complaint.Status.values,
    })


# Dashboard


@api_view(['GET'])
@api_login_required
def stats(request):
    user = request.api_user
    snapshot = list(store.query(_scope_filters(user, {})))
    payload = serialize_summary(dashboard_summary(snapshot))
    if is_admin_role(user):
        payload['pending'] = [serialize_complaint_brief(c) for c in pending_for_admin(snapshot)]
    return JsonResponse(payload)


@api_view(['GET'])
@role_required(Role.SUPERADMIN)
def export_stats_excel(request):
    data = prepare_export_data(list(store.query()))
    logger.info(f"Statistics spreadsheet exported by {request.api_user.username}")
    return excel_response(data)


@api_view(['GET'])
@role_required(Role.SUPERADMIN)
def export_stats_pdf(request):
    data = prepare_export_data(list(store.query()))
    logger.info(f"Statistics PDF exported by {request.api_user.username}")
    return pdf_response(data)


# Notifications


def _notifications_for_user(user):
    return Notification.objects.filter(user=user).select_related('complaint')


@api_view(['GET'])
@api_login_required
def notifications_list(request):
    notifs = _notifications_for_user(request.api_user)
    filter_type = request.GET.get('filter', 'all')
    if filter_type == 'unread':
        notifs = notifs.filter(is_read=False)
    elif filter_type == 'read':
        notifs = notifs.filter(is_read=True)
    return JsonResponse({
        'notifications': [serialize_notification(n) for n in notifs],
        'unreadCount':   _notifications_for_user(request.api_user).filter(is_read=False).count(),
    })


@api_view(['POST'])
@api_login_required
def mark_notification_read(request, notification_id):
    notif = _notifications_for_user(request.api_user).filter(pk=notification_id).first()
    if notif is None:
        raise NotFound(f"Notification {notification_id} not found")
    notif.mark_as_read()
    return JsonResponse(serialize_notification(notif))


@api_view(['POST'])
@api_login_required
def mark_all_read(request):
    updated = _notifications_for_user(request.api_user).filter(is_read=False) \
                                                       .update(is_read=True, read_at=timezone.now())
    return JsonResponse({'updated': updated})
