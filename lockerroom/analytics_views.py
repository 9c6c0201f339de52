"""
Analytics API: per-student engagement and performance, per-school
breakdowns, and the platform event log.
"""

import logging
import re

from django.db.models import Avg, Count
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from .admin_views import school_for_caller
from .analytics import (
    distribution, event_stats, log_event, monthly_engagement, monthly_ratings, rating_breakdown,
    rounded, to_score,
)
from .api import bad_request, clean_str, error_response, get_object_or_error, parse_json
from .auth import api_login_required, role_required
from .models import AnalyticsLog, Post, School, Student, StudentRating
from .roles import ANALYST, SCHOOL_ADMIN, SCOUT_ADMIN, XEN_SCOUT
from .serializers import analytics_log_to_dict
from .views import student_stats

logger = logging.getLogger(__name__)

EVENT_TYPE_PATTERN = re.compile(r'^[a-z0-9][a-z0-9_.-]{0,49}$')
MAX_LOG_LIMIT = 500


# ============================================================================
# SECTION 1: STUDENT ANALYTICS
# ============================================================================

@require_GET
@api_login_required
def student_analytics(request, student_id):
    student = get_object_or_error(Student.objects.select_related('user'), "Student", id=student_id)
    stats = student_stats(student, request.user)
    posts = Post.objects.filter(student=student, type='post').exclude(status='processing')

    return JsonResponse({
        "studentId": student.id,
        "monthlyEngagement": monthly_engagement(posts),
        "totalStats": {
            "posts": stats["postsCount"],
            "likes": stats["totalLikes"],
            "comments": stats["totalComments"],
            "saves": stats["totalSaves"],
            "views": stats["totalViews"],
            "followers": stats["followersCount"],
        },
    })


@require_GET
@api_login_required
def student_performance(request, student_id):
    """Performance profile built from the ratings coaches and scouts gave the player."""
    student = get_object_or_error(Student, "Student", id=student_id)
    ratings = StudentRating.objects.filter(student=student)
    overall = ratings.aggregate(avg=Avg('rating'))['avg']

    return JsonResponse({
        "studentId": student.id,
        "sport": student.sport or None,
        "sportsPerformance": rating_breakdown(ratings, dict(StudentRating.CATEGORY_CHOICES)),
        "monthlyRatings": monthly_ratings(ratings),
        "overallRating": to_score(overall),
        "averageRating": rounded(overall),
        "ratingsCount": ratings.count(),
    })


# ============================================================================
# SECTION 2: SCHOOL ANALYTICS
# ============================================================================

@require_GET
@role_required(SCHOOL_ADMIN, SCOUT_ADMIN, XEN_SCOUT, ANALYST)
def school_analytics(request, school_id):
    if request.user.role == SCHOOL_ADMIN:
        school = school_for_caller(request, school_id)
    else:
        school = get_object_or_error(School, "School", id=school_id)

    students = school.students.all()
    rated = (
        students.annotate(avg_rating=Avg('ratings__rating'), ratings_count=Count('ratings'))
        .filter(ratings_count__gt=0)
        .order_by('-avg_rating', 'name')
    )
    ratings_stats = [
        {
            "studentId": s.id,
            "name": s.name,
            "avgRating": rounded(s.avg_rating),
            "ratingsCount": s.ratings_count,
        }
        for s in rated
    ]
    # Mean of per-player averages, so heavily rated players do not dominate
    school_average = (
        sum(stat["avgRating"] for stat in ratings_stats) / len(ratings_stats) if ratings_stats else None
    )

    school_posts = Post.objects.filter(student__school=school, type='post').exclude(status='processing')
    return JsonResponse({
        "schoolId": school.id,
        "totalStudents": students.count(),
        "averageSchoolRating": rounded(school_average),
        "gradeDistribution": distribution(students, 'grade', 'Unknown'),
        "genderDistribution": distribution(students, 'gender', 'Not specified'),
        "ratingsStats": ratings_stats,
        "monthlyEngagement": monthly_engagement(school_posts),
    })


# ============================================================================
# SECTION 3: EVENT LOG
# ============================================================================

@csrf_exempt
@require_POST
@api_login_required
def log_analytics_event(request):
    data = parse_json(request)
    event_type = clean_str(data, 'eventType').lower()
    if not EVENT_TYPE_PATTERN.match(event_type):
        raise bad_request("eventType must be a lowercase identifier of at most 50 characters")

    metadata = data.get('metadata') or {}
    if not isinstance(metadata, dict):
        raise bad_request("metadata must be an object")

    entry = log_event(
        event_type,
        entity_type=clean_str(data, 'entityType', max_length=30),
        entity_id=clean_str(data, 'entityId', max_length=40),
        metadata={**metadata, 'userId': request.user.id},
    )
    if entry is None:
        return error_response(503, "log_failed", "Event not recorded")
    logger.info(f"Client event {event_type} recorded for user {request.user.id}")
    return JsonResponse(analytics_log_to_dict(entry), status=201)


@require_GET
@role_required(ANALYST)
def analytics_logs(request):
    queryset = AnalyticsLog.objects.all()
    event_type = request.GET.get('eventType')
    if event_type:
        queryset = queryset.filter(event_type=event_type)

    try:
        limit = int(request.GET.get('limit', 100))
    except ValueError:
        raise bad_request("limit must be a whole number")
    limit = max(1, min(limit, MAX_LOG_LIMIT))
    return JsonResponse({"logs": [analytics_log_to_dict(log) for log in queryset[:limit]]})


@require_GET
@role_required(ANALYST)
def analytics_stats(request):
    return JsonResponse(event_stats())
