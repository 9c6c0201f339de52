"""
Analytics event log and engagement aggregation.

Monthly series always cover a fixed window of calendar months ending with
the current one (in the project time zone); months without activity are
reported as zeros rather than omitted.
"""

import calendar
import logging
from datetime import datetime, timedelta

from django.db import DatabaseError, transaction
from django.db.models import Avg, Count
from django.db.models.functions import TruncMonth
from django.utils import timezone

from .models import AnalyticsLog

logger = logging.getLogger(__name__)

ANALYTICS_MONTHS = 6
RATING_SCALE = 5


def log_event(event_type, entity_type='', entity_id='', metadata=None):
    """Record a platform event; returns None (and logs) when the insert fails."""
    try:
        with transaction.atomic():
            return AnalyticsLog.objects.create(
                event_type=event_type,
                entity_type=entity_type or '',
                entity_id=str(entity_id) if entity_id is not None else '',
                metadata=metadata or {},
            )
    except DatabaseError as e:
        logger.error(f"Failed to record analytics event '{event_type}': {e}", exc_info=True)
        return None


# ============================================================================
# MONTH WINDOWS
# ============================================================================

def recent_months(count=ANALYTICS_MONTHS, now=None):
    """[(year, month), ...] oldest first, ending with the month of ``now``."""
    now = timezone.localtime(now or timezone.now())
    months = []
    for offset in range(count - 1, -1, -1):
        year_shift, month_index = divmod(now.month - 1 - offset, 12)
        months.append((now.year + year_shift, month_index + 1))
    return months


def window_start(months):
    year, month = months[0]
    return timezone.make_aware(datetime(year, month, 1))


def _month_key(value):
    value = timezone.localtime(value) if timezone.is_aware(value) else value
    return value.year, value.month


def _month_label(year, month):
    return {"month": calendar.month_abbr[month], "year": year}


def monthly_engagement(posts, count=ANALYTICS_MONTHS, now=None):
    """
    Posts, likes, comments and saves per month for ``posts``.

    Engagement is attributed to the month the post was published, so a
    like on an old post counts towards that post's month.
    """
    months = recent_months(count, now)
    rows = (
        posts.filter(created_at__gte=window_start(months))
        .annotate(month=TruncMonth('created_at'))
        .values('month')
        .annotate(
            posts=Count('id', distinct=True),
            likes=Count('likes', distinct=True),
            comments=Count('comments', distinct=True),
            saves=Count('saves', distinct=True),
        )
        .order_by('month')
    )
    by_month = {_month_key(row['month']): row for row in rows}

    series = []
    for year, month in months:
        row = by_month.get((year, month), {})
        series.append({
            **_month_label(year, month),
            "posts": row.get('posts', 0),
            "likes": row.get('likes', 0),
            "comments": row.get('comments', 0),
            "saves": row.get('saves', 0),
        })
    return series


# ============================================================================
# RATINGS
# ============================================================================

def to_score(average):
    """A 1-5 average as a 0-100 score."""
    if average is None:
        return None
    return round(average / RATING_SCALE * 100)


def rounded(value, digits=2):
    return round(value, digits) if value is not None else None


def rating_breakdown(ratings, category_labels):
    rows = ratings.values('category').annotate(average=Avg('rating'), total=Count('id')).order_by('category')
    return [
        {
            "category": row['category'],
            "skill": category_labels.get(row['category'], row['category']),
            "score": to_score(row['average']),
            "averageRating": rounded(row['average']),
            "ratingsCount": row['total'],
        }
        for row in rows
    ]


def monthly_ratings(ratings, count=ANALYTICS_MONTHS, now=None):
    months = recent_months(count, now)
    rows = (
        ratings.filter(created_at__gte=window_start(months))
        .annotate(month=TruncMonth('created_at'))
        .values('month')
        .annotate(average=Avg('rating'), total=Count('id'))
        .order_by('month')
    )
    by_month = {_month_key(row['month']): row for row in rows}
    return [
        {
            **_month_label(year, month),
            "averageRating": rounded(by_month.get((year, month), {}).get('average')),
            "ratingsCount": by_month.get((year, month), {}).get('total', 0),
        }
        for year, month in months
    ]


def distribution(queryset, field, blank_label):
    """{value: count} for ``field``, with empty values grouped under ``blank_label``."""
    counts = {}
    for row in queryset.order_by().values(field).annotate(total=Count('id')):
        key = row[field] or blank_label
        counts[key] = counts.get(key, 0) + row['total']
    return counts


# ============================================================================
# EVENT STATS
# ============================================================================

def event_stats(now=None):
    now = now or timezone.now()
    by_type = dict(
        AnalyticsLog.objects.order_by().values_list('event_type').annotate(total=Count('id'))
    )
    recent = AnalyticsLog.objects.filter(timestamp__gte=now - timedelta(days=30)).count()
    return {
        "userSignups": by_type.get('user_signup', 0),
        "postCreated": by_type.get('post_created', 0),
        "schoolOnboarded": by_type.get('school_onboarded', 0),
        "totalEvents": sum(by_type.values()),
        "last30Days": recent,
        "byType": by_type,
    }
