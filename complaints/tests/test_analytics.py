from datetime import datetime, timedelta, timezone

from complaints.analytics import (
    aggregate_stats, average_rating, average_resolution_hours, category_distribution,
    dashboard_summary, genuine_rate, pending_for_admin, resolution_rate,
    satisfaction_rate, submitter_credibility,
)
from complaints.models import Complaint, Feedback

Status = Complaint.Status
Priority = Complaint.Priority


def make(status=Status.OPEN, priority=Priority.MEDIUM, category='Other', title='',
         submitted_by_id=1, anonymous=False, **extra):
    return Complaint(status=status, priority=priority, category=category, title=title,
                     submitted_by_id=submitted_by_id, anonymous=anonymous, **extra)


def with_rating(complaint, rating):
    complaint.feedback = Feedback(rating=rating)
    return complaint


def test_empty_snapshot_is_all_zero():
    stats = aggregate_stats([])
    assert set(stats.values()) == {0}
    assert genuine_rate(stats) == 0
    assert resolution_rate(stats) == 0
    assert pending_for_admin([]) == []
    assert category_distribution([]) == []
    assert average_rating([]) == 0
    assert average_resolution_hours([]) == 0


def test_aggregate_stats_partitions_by_status_and_priority():
    complaints = [
        make(Status.OPEN, Priority.CRITICAL),
        make(Status.IN_PROGRESS),
        make(Status.RESOLVED),
        make(Status.RESOLVED, Priority.CRITICAL),
        make(Status.CLOSED),
        make(Status.ESCALATED),
        make(Status.REJECTED),
    ]
    assert aggregate_stats(complaints) == {
        'total': 7, 'open': 1, 'in_progress': 1, 'resolved': 2, 'closed': 1,
        'critical': 2, 'escalated': 1, 'rejected': 1,
    }


def test_genuine_rate_excludes_rejected():
    stats = aggregate_stats([make(Status.RESOLVED), make(Status.OPEN), make(Status.REJECTED)])
    assert genuine_rate(stats) == 50
    assert resolution_rate(stats) == 33


def test_genuine_rate_when_everything_was_rejected():
    stats = aggregate_stats([make(Status.REJECTED), make(Status.REJECTED)])
    assert genuine_rate(stats) == 0


def test_submitter_credibility_ignores_anonymous_and_other_users():
    complaints = [
        make(Status.REJECTED, submitted_by_id=7),
        make(Status.RESOLVED, submitted_by_id=7),
        make(Status.OPEN, submitted_by_id=7),
        make(Status.OPEN, submitted_by_id=7),
        make(Status.REJECTED, submitted_by_id=7, anonymous=True),
        make(Status.REJECTED, submitted_by_id=8),
    ]
    assert submitter_credibility(7, complaints) == {
        'total': 4, 'genuine': 3, 'rejected': 1, 'percent_genuine': 75.0,
    }
    assert submitter_credibility(99, complaints)['percent_genuine'] == 0


def test_pending_for_admin_is_a_stable_priority_sort():
    complaints = [
        make(priority=Priority.LOW, title='low-1'),
        make(priority=Priority.HIGH, title='high-1', status=Status.IN_PROGRESS),
        make(priority=Priority.CRITICAL, title='crit-1'),
        make(priority=Priority.HIGH, title='high-2'),
        make(priority=Priority.CRITICAL, title='closed', status=Status.CLOSED),
        make(priority=Priority.MEDIUM, title='escalated', status=Status.ESCALATED),
        make(priority=Priority.LOW, title='low-2', status=Status.IN_PROGRESS),
        make(priority=Priority.MEDIUM, title='med-1'),
    ]
    titles = [c.title for c in pending_for_admin(complaints)]
    assert titles == ['crit-1', 'high-1', 'high-2', 'med-1', 'low-1', 'low-2']


def test_pending_for_admin_leaves_input_untouched():
    complaints = [make(priority=Priority.LOW), make(priority=Priority.CRITICAL)]
    original = list(complaints)
    pending_for_admin(complaints)
    assert complaints == original


def test_category_distribution_orders_by_count_then_first_seen():
    complaints = [
        make(category='Library'),
        make(category='Hostel'),
        make(category='Cafeteria'),
        make(category='Hostel'),
        make(category='Cafeteria'),
        make(category='Academic'),
    ]
    assert category_distribution(complaints) == [
        {'category': 'Hostel', 'count': 2},
        {'category': 'Cafeteria', 'count': 2},
        {'category': 'Library', 'count': 1},
        {'category': 'Academic', 'count': 1},
    ]


def test_ratings_ignore_complaints_without_feedback():
    complaints = [
        with_rating(make(Status.RESOLVED), 5),
        with_rating(make(Status.RESOLVED), 4),
        make(Status.RESOLVED),
    ]
    assert average_rating(complaints) == 4.5
    assert satisfaction_rate(complaints) == 90


def test_average_resolution_hours():
    created = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)
    complaints = [
        make(Status.RESOLVED, created_at=created, resolved_at=created + timedelta(hours=2)),
        make(Status.RESOLVED, created_at=created, resolved_at=created + timedelta(hours=4)),
        make(Status.OPEN, created_at=created),
    ]
    assert average_resolution_hours(complaints) == 3


def test_dashboard_summary_combines_figures():
    summary = dashboard_summary(iter([make(Status.RESOLVED, category='Hostel'), make(Status.OPEN)]))
    assert summary['stats']['total'] == 2
    assert summary['genuine_rate'] == 50
    assert summary['category_distribution'][0] == {'category': 'Hostel', 'count': 1}
    assert summary['priority_distribution'][Priority.MEDIUM] == 2
