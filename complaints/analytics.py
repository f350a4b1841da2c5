"""
Read-only derivations over a snapshot of complaints.

These functions never query or mutate: callers pass a list (or an already
evaluated queryset) of ``Complaint`` instances. Feedback-based figures read
``complaint.feedback``, so pass querysets built with
``select_related('feedback')`` to keep them free of per-row queries.
"""
from django.core.exceptions import ObjectDoesNotExist
from django.utils import timezone

from .models import Complaint

Status = Complaint.Status
Priority = Complaint.Priority

PENDING_STATUSES = (Status.OPEN, Status.IN_PROGRESS)


def aggregate_stats(complaints):
    stats = {
        'total':       0,
        'open':        0,
        'in_progress': 0,
        'resolved':    0,
        'closed':      0,
        'critical':    0,
        'escalated':   0,
        'rejected':    0,
    }
    by_status = {
        Status.OPEN:        'open',
        Status.IN_PROGRESS: 'in_progress',
        Status.RESOLVED:    'resolved',
        Status.CLOSED:      'closed',
        Status.ESCALATED:   'escalated',
        Status.REJECTED:    'rejected',
    }
    for complaint in complaints:
        stats['total'] += 1
        key = by_status.get(complaint.status)
        if key:
            stats[key] += 1
        if complaint.priority == Priority.CRITICAL:
            stats['critical'] += 1
    return stats


def genuine_rate(stats):
    """Resolved share of the complaints that were not rejected, in percent."""
    denominator = stats['total'] - stats['rejected']
    if denominator <= 0:
        return 0
    return stats['resolved'] / denominator * 100


def resolution_rate(stats):
    if not stats['total']:
        return 0
    return round(stats['resolved'] / stats['total'] * 100)


def submitter_credibility(user_id, complaints):
    own = [
        c for c in complaints
        if c.submitted_by_id == user_id and not c.anonymous
    ]
    rejected = sum(1 for c in own if c.status == Status.REJECTED)
    total = len(own)
    genuine = total - rejected
    return {
        'total':           total,
        'genuine':         genuine,
        'rejected':        rejected,
        'percent_genuine': round(genuine / total * 100, 2) if total else 0,
    }


def pending_for_admin(complaints):
    # sorted() is stable, so equal priorities keep their incoming order.
    pending = [c for c in complaints if c.status in PENDING_STATUSES]
    return sorted(pending, key=lambda c: c.priority_rank)


def category_distribution(complaints):
    counts = {}
    for complaint in complaints:
        counts[complaint.category] = counts.get(complaint.category, 0) + 1
    ranked = sorted(counts.items(), key=lambda item: -item[1])
    return [{'category': category, 'count': count} for category, count in ranked]


def priority_distribution(complaints):
    counts = {priority: 0 for priority in Priority.values}
    for complaint in complaints:
        if complaint.priority in counts:
            counts[complaint.priority] += 1
    return counts


def _feedback_of(complaint):
    try:
        return complaint.feedback
    except ObjectDoesNotExist:
        return None


def average_rating(complaints):
    ratings = [f.rating for f in map(_feedback_of, complaints) if f is not None]
    if not ratings:
        return 0
    return round(sum(ratings) / len(ratings), 2)


def satisfaction_rate(complaints):
    """Average 5-star rating expressed as a percentage."""
    return round(average_rating(complaints) * 20)


def average_resolution_hours(complaints):
    durations = [
        (c.resolved_at - c.created_at).total_seconds() / 3600
        for c in complaints
        if c.resolved_at and c.created_at
    ]
    if not durations:
        return 0
    return round(sum(durations) / len(durations), 2)


def dashboard_summary(complaints):
    complaints = list(complaints)
    stats = aggregate_stats(complaints)
    return {
        'stats':                    stats,
        'genuine_rate':             round(genuine_rate(stats), 2),
        'resolution_rate':          resolution_rate(stats),
        'average_rating':           average_rating(complaints),
        'satisfaction_rate':        satisfaction_rate(complaints),
        'average_resolution_hours': average_resolution_hours(complaints),
        'category_distribution':    category_distribution(complaints),
        'priority_distribution':    priority_distribution(complaints),
    }


def prepare_export_data(complaints):
    summary = dashboard_summary(complaints)
    summary['generated_at'] = timezone.now()
    return summary
