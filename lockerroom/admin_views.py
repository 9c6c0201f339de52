"""
Administrative API: academies, school admins, platform admins, banners,
announcements, applications, settings and platform statistics.

Every handler here is guarded by ``role_required``; system admins pass all
role checks, so "school admin" handlers also serve system admins acting on
a school of their choice.
"""

import logging
import random
from decimal import Decimal, InvalidOperation

import cloudinary.exceptions
from django.db import transaction
from django.db.models import Count, Q, Sum
from django.http import JsonResponse
from django.utils import timezone
from django.utils.dateparse import parse_datetime
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from . import media
from .analytics import log_event
from .api import (
    ApiError, bad_request, clean_str, error_response, forbidden, get_object_or_error,
    pagination_params, parse_bool, parse_json,
)
from .auth import generate_otp, role_required
from .emails import send_account_created_email
from .models import (
    AdminRole, Banner, PaymentTransaction, Post, PostComment, PostLike, PostView, SavedPost,
    School, SchoolApplication, SchoolPaymentRecord, SchoolSetting, Student, StudentFollower,
    SystemSetting, User, otp_expiry,
)
from .notifications import notify_system_admins, set_school_members_frozen
from .roles import (
    ADMIN_ROLES, DEFAULT_ADMIN_PERMISSIONS, ROLES, SCHOOL_ADMIN, SCOUT_ADMIN, STUDENT,
    SYSTEM_ADMIN, XEN_SCOUT, XEN_WATCH_AUDIENCE, XEN_WATCH_ROLES, requires_otp, role_display_name,
)
from .serializers import (
    application_to_dict, banner_to_dict, payment_record_to_dict, post_to_dict, school_to_dict,
    setting_to_dict, student_to_dict, user_to_dict, with_engagement,
)
from .views import (
    STUDENT_EDITABLE_FIELDS, announcement_visibility, apply_updates, email_is_valid,
    require_media_service,
)

logger = logging.getLogger(__name__)

PAYMENT_FREQUENCIES = ('monthly', 'annual')
OTP_VALID_DAYS = 7


# ============================================================================
# HELPERS
# ============================================================================

def parse_amount(value, field='paymentAmount'):
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise bad_request("Valid payment amount is required")
    if not amount.is_finite() or amount <= 0:
        raise bad_request("Valid payment amount is required")
    return amount.quantize(Decimal('0.01'))


def parse_frequency(value):
    if value not in PAYMENT_FREQUENCIES:
        raise bad_request("Payment frequency must be monthly or annual")
    return value


def parse_positive_int(value, field):
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise bad_request(f"{field} must be a whole number")
    if number < 1:
        raise bad_request(f"{field} must be at least 1")
    return number


def ensure_email_available(email):
    if not email_is_valid(email):
        raise bad_request("Please enter a valid email address.")
    if User.objects.filter(email__iexact=email).exists():
        raise ApiError(409, "email_exists", "An account with this email already exists")


def school_for_caller(request, school_id):
    """Resolve ``school_id``; school admins may only touch their own school."""
    school = get_object_or_error(School, "School", id=school_id)
    if request.user.role != SYSTEM_ADMIN and request.user.school_id != school.id:
        raise forbidden("You can only manage your own academy")
    return school


def caller_school(request, data=None):
    """The school an enrollment call applies to: own school, or ``schoolId`` for system admins."""
    if request.user.role == SYSTEM_ADMIN:
        school_id = (data or {}).get('schoolId') or request.GET.get('schoolId')
        if not school_id:
            raise bad_request("schoolId is required", code="missing_school_id")
        return get_object_or_error(School, "School", id=school_id)
    if not request.user.school_id:
        raise bad_request("You are not linked to an academy.", code="missing_school_id")
    return get_object_or_error(School, "School", id=request.user.school_id)


def create_otp_account(email, name, role, school=None, **extra):
    """Create an admin-issued account whose password is a fresh OTP."""
    otp = generate_otp()
    user = User.objects.create_user(
        email,
        otp,
        name=name,
        role=role,
        school=school,
        is_one_time_password=True,
        otp_expires_at=otp_expiry(OTP_VALID_DAYS),
        email_verified=True,
        **extra,
    )
    return user, otp


def generate_xen_id():
    prefix = f"XSA-{timezone.now():%y}"
    for _ in range(50):
        candidate = f"{prefix}{random.randint(0, 999):03d}"
        if not User.objects.filter(xen_id=candidate).exists():
            return candidate
    raise ApiError(409, "xen_id_exhausted", "Could not allocate a free XEN ID; provide one explicitly")


def enrollment_status(school):
    current = school.students.count()
    maximum = school.max_students
    utilization = round(current / maximum * 100, 2) if maximum else 0
    if utilization >= 100:
        warning = 'at_limit'
    elif utilization >= 80:
        warning = 'approaching'
    else:
        warning = 'none'
    return {
        "currentCount": current,
        "maxStudents": maximum,
        "availableSlots": max(0, maximum - current),
        "utilizationPercentage": utilization,
        "warningLevel": warning,
        "canEnroll": current < maximum,
    }


def school_summary(school):
    return {
        **school_to_dict(school, include_billing=True),
        "studentCount": getattr(school, 'student_count', None),
        "adminCount": getattr(school, 'admin_count', None),
    }


# ============================================================================
# SECTION 1: SCHOOLS (SYSTEM ADMIN)
# ============================================================================

@csrf_exempt
@require_http_methods(["GET", "POST"])
@role_required(SYSTEM_ADMIN)
def schools(request):
    if request.method == "POST":
        return create_school(request)

    queryset = School.objects.annotate(
        student_count=Count('students', distinct=True),
        admin_count=Count('members', filter=Q(members__role=SCHOOL_ADMIN), distinct=True),
    ).order_by('name')
    return JsonResponse({"schools": [school_summary(s) for s in queryset]})


def create_school(request):
    data = parse_json(request)
    name = clean_str(data, 'name', max_length=200)
    if not name:
        raise bad_request("School name is required")
    amount = parse_amount(data.get('paymentAmount'))
    frequency = parse_frequency(data.get('paymentFrequency'))
    max_students = parse_positive_int(data.get('maxStudents', 100), 'maxStudents')

    with transaction.atomic():
        school = School(
            name=name,
            address=clean_str(data, 'address'),
            contact_email=clean_str(data, 'contactEmail'),
            contact_phone=clean_str(data, 'contactPhone'),
            payment_amount=amount,
            max_students=max_students,
            is_active=True,
        )
        school.extend_subscription(frequency)
        school.save()
        SchoolPaymentRecord.objects.create(
            school=school,
            payment_amount=amount,
            payment_frequency=frequency,
            payment_type='initial',
            student_limit_after=max_students,
            subscription_expires_at=school.subscription_expires_at,
            notes=clean_str(data, 'notes'),
            recorded_by=request.user,
        )

    logger.info(f"School created: {school.name} (ID: {school.id}) - {amount} {frequency}")
    log_event('school_onboarded', entity_type='school', entity_id=school.id,
              metadata={'createdBy': request.user.id, 'source': 'direct'})
    notify_system_admins(
        'school_created',
        'New School Created',
        f'A new school "{school.name}" has been added to the platform',
        exclude=request.user,
        entity_type='school',
        entity_id=school.id,
    )
    return JsonResponse({"success": True, "school": school_to_dict(school, include_billing=True)}, status=201)


@csrf_exempt
@require_http_methods(["GET", "DELETE"])
@role_required(SYSTEM_ADMIN)
def school_detail(request, school_id):
    school = get_object_or_error(School, "School", id=school_id)

    if request.method == "DELETE":
        with transaction.atomic():
            removed, _ = User.objects.filter(school=school, role__in=[SCHOOL_ADMIN, STUDENT]).delete()
            school.delete()
        logger.warning(f"School {school_id} ({school.name}) permanently deleted by {request.user.email}")
        return JsonResponse({"success": True, "message": "School deleted", "deletedObjects": removed})

    return JsonResponse({
        "school": school_to_dict(school, include_billing=True),
        "enrollment": enrollment_status(school),
        "admins": [user_to_dict(u) for u in school.members.filter(role=SCHOOL_ADMIN)],
        "paymentRecords": [payment_record_to_dict(r) for r in school.payment_records.all()],
    })


@csrf_exempt
@require_http_methods(["PUT", "POST"])
@role_required(SYSTEM_ADMIN)
def disable_school(request, school_id):
    school = get_object_or_error(School, "School", id=school_id)
    school.is_active = False
    school.save(update_fields=['is_active', 'updated_at'])
    frozen = set_school_members_frozen(school, True)
    logger.warning(f"School {school.name} disabled by {request.user.email}; froze {frozen} account(s)")
    return JsonResponse({"success": True, "school": school_to_dict(school, include_billing=True), "accountsAffected": frozen})


@csrf_exempt
@require_http_methods(["PUT", "POST"])
@role_required(SYSTEM_ADMIN)
def enable_school(request, school_id):
    school = get_object_or_error(School, "School", id=school_id)
    school.is_active = True
    school.save(update_fields=['is_active', 'updated_at'])
    restored = set_school_members_frozen(school, False)
    logger.info(f"School {school.name} enabled by {request.user.email}; restored {restored} account(s)")
    return JsonResponse({"success": True, "school": school_to_dict(school, include_billing=True), "accountsAffected": restored})


@csrf_exempt
@require_POST
@role_required(SYSTEM_ADMIN)
def renew_school(request, school_id):
    school = get_object_or_error(School, "School", id=school_id)
    data = parse_json(request)
    amount = parse_amount(data.get('paymentAmount'))
    frequency = parse_frequency(data.get('paymentFrequency'))
    previous_frequency = school.payment_frequency

    with transaction.atomic():
        school.payment_amount = amount
        school.extend_subscription(frequency)
        school.is_active = True
        school.save()
        set_school_members_frozen(school, False)
        SchoolPaymentRecord.objects.create(
            school=school,
            payment_amount=amount,
            payment_frequency=frequency,
            payment_type='renewal',
            subscription_expires_at=school.subscription_expires_at,
            notes=clean_str(data, 'notes') or (
                f"Frequency changed from {previous_frequency} to {frequency}"
                if previous_frequency != frequency else ''
            ),
            recorded_by=request.user,
        )

    logger.info(f"School subscription renewed: {school.name} (ID: {school.id}) - Payment: {amount} {frequency}")
    notify_system_admins(
        'school_payment_recorded',
        'School Payment Recorded',
        f"{school.name} renewed its {frequency} subscription ({amount})",
        exclude=request.user,
        entity_type='school',
        entity_id=school.id,
    )
    return JsonResponse({"success": True, "school": school_to_dict(school, include_billing=True)})


@csrf_exempt
@require_http_methods(["PUT"])
@role_required(SYSTEM_ADMIN)
def update_student_limit(request, school_id):
    school = get_object_or_error(School, "School", id=school_id)
    data = parse_json(request)
    new_limit = parse_positive_int(data.get('maxStudents'), 'maxStudents')
    current = school.students.count()

    if new_limit == school.max_students:
        raise bad_request("New limit is the same as the current limit")
    if new_limit < current:
        raise bad_request(
            f"Cannot set limit below current enrollment ({current} students)",
            code="limit_below_enrollment",
        )

    amount = Decimal('0')
    if data.get('paymentAmount') not in (None, ''):
        amount = parse_amount(data.get('paymentAmount'))

    old_limit = school.max_students
    with transaction.atomic():
        school.max_students = new_limit
        school.save(update_fields=['max_students', 'updated_at'])
        SchoolPaymentRecord.objects.create(
            school=school,
            payment_amount=amount,
            payment_frequency=school.payment_frequency,
            payment_type='student_limit_increase' if new_limit > old_limit else 'student_limit_decrease',
            student_limit_before=old_limit,
            student_limit_after=new_limit,
            subscription_expires_at=school.subscription_expires_at,
            notes=clean_str(data, 'notes'),
            recorded_by=request.user,
        )

    return JsonResponse({"success": True, "school": school_to_dict(school, include_billing=True),
                         "enrollment": enrollment_status(school)})


@csrf_exempt
@require_POST
@role_required(SYSTEM_ADMIN, SCHOOL_ADMIN)
def school_profile_picture(request, school_id):
    school = school_for_caller(request, school_id)
    require_media_service()
    upload = request.FILES.get('file') or request.FILES.get('profilePic')
    if upload is None:
        return error_response(400, "validation_error", "No file provided")
    if not (upload.content_type or '').startswith('image/'):
        return error_response(400, "unsupported_media", "Profile picture must be an image")

    try:
        school.profile_pic_url = media.upload_profile_picture(upload, folder='school-profiles')
    except cloudinary.exceptions.Error as e:
        logger.error(f"School picture upload failed for school {school.id}: {e}")
        return error_response(502, "upload_failed", "Could not upload school picture")

    school.save(update_fields=['profile_pic_url', 'updated_at'])
    return JsonResponse({"success": True, "profilePicUrl": school.profile_pic_url})


@require_GET
@role_required(SYSTEM_ADMIN)
def school_admins(request, school_id):
    school = get_object_or_error(School, "School", id=school_id)
    return JsonResponse({"admins": [user_to_dict(u) for u in school.members.filter(role=SCHOOL_ADMIN)]})


@csrf_exempt
@require_POST
@role_required(SYSTEM_ADMIN)
def create_school_admin(request):
    data = parse_json(request)
    name = clean_str(data, 'name', max_length=150)
    email = clean_str(data, 'email').lower()
    if not name or not email or not data.get('schoolId'):
        raise bad_request("schoolId, name and email are required")

    school = get_object_or_error(School, "School", id=data.get('schoolId'))
    ensure_email_available(email)

    with transaction.atomic():
        user, otp = create_otp_account(
            email, name, SCHOOL_ADMIN, school=school, position=clean_str(data, 'position', max_length=100),
        )
        StudentFollower.objects.bulk_create(
            [StudentFollower(follower=user, student=s) for s in school.students.all()],
            ignore_conflicts=True,
        )

    result = send_account_created_email(user, otp, school=school)
    logger.info(f"School admin {email} created for {school.name}; email sent: {result.success}")
    notify_system_admins(
        'school_admin_created',
        'New School Admin Created',
        f"{name} has been added as an admin for {school.name}",
        exclude=request.user,
        entity_type='school',
        entity_id=school.id,
        related_user=user,
    )
    return JsonResponse({
        "success": True,
        "user": user_to_dict(user),
        "otp": otp,
        "emailSent": result.success,
        "emailError": result.error,
    }, status=201)


# ============================================================================
# SECTION 2: SCHOOL ADMIN
# ============================================================================

@require_GET
@role_required(SCHOOL_ADMIN)
def school_enrollment_status(request):
    school = caller_school(request)
    return JsonResponse({"success": True, "enrollmentStatus": enrollment_status(school)})


@csrf_exempt
@require_POST
@role_required(SCHOOL_ADMIN)
def add_student(request):
    data = parse_json(request)
    school = caller_school(request, data)

    if not school.is_active:
        return error_response(403, "school_inactive", "This academy's subscription is inactive")

    status = enrollment_status(school)
    if not status["canEnroll"]:
        return error_response(
            403,
            "enrollment_limit_reached",
            f"Enrollment limit reached ({status['maxStudents']} players). Contact the platform to raise the limit.",
            enrollmentStatus=status,
        )

    name = clean_str(data, 'name', max_length=150)
    email = clean_str(data, 'email').lower()
    if not name or not email:
        raise bad_request("Name and email are required")
    ensure_email_available(email)

    upload = request.FILES.get('profilePic')
    profile_pic_url = ''
    if upload is not None:
        require_media_service()
        try:
            profile_pic_url = media.upload_profile_picture(upload, folder='student-profiles')
        except cloudinary.exceptions.Error as e:
            logger.error(f"Student picture upload failed: {e}")
            return error_response(502, "upload_failed", "Could not upload profile picture")

    with transaction.atomic():
        user, otp = create_otp_account(email, name, STUDENT, school=school, profile_pic_url=profile_pic_url)
        student = Student.objects.create(user=user, school=school, name=name, profile_pic_url=profile_pic_url)
        apply_updates(student, data, {k: v for k, v in STUDENT_EDITABLE_FIELDS.items() if k != 'name'})
        admins = school.members.filter(role=SCHOOL_ADMIN)
        StudentFollower.objects.bulk_create(
            [StudentFollower(follower=admin, student=student) for admin in admins],
            ignore_conflicts=True,
        )

    result = send_account_created_email(user, otp, school=school)
    logger.info(f"Player {email} enrolled at {school.name} by {request.user.email}")
    return JsonResponse({
        "success": True,
        "student": student_to_dict(student),
        "otp": otp,
        "emailSent": result.success,
        "enrollmentStatus": enrollment_status(school),
    }, status=201)


@require_GET
@role_required(SCHOOL_ADMIN, SCOUT_ADMIN, XEN_SCOUT)
def school_students(request, school_id):
    if request.user.role == SCHOOL_ADMIN:
        school = school_for_caller(request, school_id)
    else:
        school = get_object_or_error(School, "School", id=school_id)

    students = school.students.select_related('user')
    query = request.GET.get('q', '').strip()
    if query:
        students = students.filter(
            Q(name__icontains=query) | Q(sport__icontains=query)
            | Q(position__icontains=query) | Q(role_number__icontains=query)
        )
    return JsonResponse({"students": [student_to_dict(s) for s in students]})


@require_GET
@role_required(SCHOOL_ADMIN)
def school_stats(request, school_id):
    school = school_for_caller(request, school_id)
    school_posts = Post.objects.filter(student__school=school, type='post')
    top = (
        school.students.annotate(likes=Count('posts__likes'))
        .order_by('-likes', 'name')[:5]
    )
    return JsonResponse({
        "schoolId": school.id,
        "totalStudents": school.students.count(),
        "totalPosts": school_posts.count(),
        "totalLikes": PostLike.objects.filter(post__in=school_posts).count(),
        "totalComments": PostComment.objects.filter(post__in=school_posts).count(),
        "totalViews": PostView.objects.filter(post__in=school_posts).count(),
        "totalSaves": SavedPost.objects.filter(post__in=school_posts).count(),
        "totalFollowers": StudentFollower.objects.filter(student__school=school).count(),
        "announcements": school.announcements.count(),
        "enrollment": enrollment_status(school),
        "topStudents": [
            {"id": s.id, "name": s.name, "sport": s.sport, "likes": s.likes} for s in top
        ],
    })


@csrf_exempt
@require_http_methods(["GET", "POST"])
@role_required(SCHOOL_ADMIN)
def school_settings(request, school_id):
    school = school_for_caller(request, school_id)

    if request.method == "POST":
        data = parse_json(request)
        key = clean_str(data, 'key', max_length=100)
        if not key:
            raise bad_request("key is required")
        setting, _created = SchoolSetting.objects.update_or_create(
            school=school,
            key=key,
            defaults={
                'value': '' if data.get('value') is None else str(data.get('value')),
                'category': clean_str(data, 'category', max_length=50) or 'general',
                'updated_by': request.user,
            },
        )
        return JsonResponse(setting_to_dict(setting))

    return JsonResponse({"settings": [setting_to_dict(s) for s in school.settings.all()]})


@csrf_exempt
@require_http_methods(["DELETE"])
@role_required(SCHOOL_ADMIN)
def delete_school_setting(request, school_id, key):
    school = school_for_caller(request, school_id)
    deleted, _ = school.settings.filter(key=key).delete()
    if not deleted:
        return error_response(404, "not_found", "Setting not found")
    return JsonResponse({"success": True})


# ============================================================================
# SECTION 3: ANNOUNCEMENTS
# ============================================================================

def announcement_media(request, data):
    """Media for an announcement: an uploaded file or a previously uploaded URL."""
    upload = request.FILES.get('file') or request.FILES.get('media')
    if upload is not None:
        require_media_service()
        try:
            media_type = media.media_type_for(upload.content_type)
            result = media.upload_file(upload, 'announcements', media_type, size=upload.size)
        except media.UnsupportedMediaType as e:
            raise ApiError(400, "unsupported_media", str(e))
        except cloudinary.exceptions.Error as e:
            logger.error(f"Announcement media upload failed: {e}")
            raise ApiError(502, "upload_failed", "Could not upload announcement media")
        return {
            'media_url': result.url,
            'media_type': media_type,
            'cloudinary_public_id': result.public_id,
            'thumbnail_url': result.thumbnail_url,
        }

    attached = data.get('media')
    if isinstance(attached, dict) and attached.get('url'):
        return {
            'media_url': str(attached['url']),
            'media_type': 'video' if attached.get('type') == 'video' else 'image',
            'cloudinary_public_id': str(attached.get('publicId') or ''),
            'thumbnail_url': str(attached.get('thumbnailUrl') or ''),
        }
    return {'media_url': '', 'media_type': 'text'}


def create_announcement(request, scope, school=None):
    data = parse_json(request)
    title = clean_str(data, 'title', max_length=200)
    content = clean_str(data, 'content', max_length=5000)
    if not title or not content:
        raise bad_request("Title and content are required")

    announcement = Post.objects.create(
        type='announcement',
        title=title,
        caption=content,
        broadcast=True,
        scope=scope,
        school=school,
        created_by_admin=request.user,
        status='ready',
        **announcement_media(request, data),
    )
    logger.info(f"Announcement created: {title} ({scope}{' ' + school.name if school else ''}, ID: {announcement.id})")
    annotated = with_engagement(Post.objects.filter(id=announcement.id), request.user).get()
    return JsonResponse({"success": True, "announcement": post_to_dict(annotated)}, status=201)


@csrf_exempt
@require_POST
@role_required(SYSTEM_ADMIN)
def global_announcements(request):
    return create_announcement(request, 'global')


@csrf_exempt
@require_POST
@role_required(SCHOOL_ADMIN)
def school_announcements(request, school_id):
    school = school_for_caller(request, school_id)
    return create_announcement(request, 'school', school=school)


@require_GET
@role_required(SYSTEM_ADMIN, SCOUT_ADMIN, XEN_SCOUT, SCHOOL_ADMIN, STUDENT)
def announcements(request):
    visibility = announcement_visibility(request.user)
    if visibility is None:
        return JsonResponse({"announcements": []})
    limit, offset = pagination_params(request)
    queryset = with_engagement(Post.objects.filter(visibility), request.user).order_by('-created_at')
    return JsonResponse({"announcements": [post_to_dict(p) for p in queryset[offset:offset + limit]]})


@csrf_exempt
@require_http_methods(["PUT", "DELETE"])
@role_required(SYSTEM_ADMIN, SCHOOL_ADMIN)
def announcement_detail(request, announcement_id):
    announcement = get_object_or_error(Post, "Announcement", id=announcement_id, type='announcement')
    if request.user.role != SYSTEM_ADMIN and announcement.created_by_admin_id != request.user.id:
        raise forbidden("You can only change announcements you created")

    if request.method == "DELETE":
        announcement.delete()
        return JsonResponse({"success": True, "message": "Announcement deleted"})

    data = parse_json(request)
    if 'title' in data:
        announcement.title = clean_str(data, 'title', max_length=200)
    if 'content' in data:
        announcement.caption = clean_str(data, 'content', max_length=5000)
    if not announcement.title or not announcement.caption:
        raise bad_request("Title and content are required")
    announcement.save(update_fields=['title', 'caption'])
    annotated = with_engagement(Post.objects.filter(id=announcement.id), request.user).get()
    return JsonResponse({"success": True, "announcement": post_to_dict(annotated)})


# ============================================================================
# SECTION 4: BANNERS
# ============================================================================

BANNER_TARGETS = set(ROLES) | {XEN_WATCH_AUDIENCE}


def parse_banner(data, banner=None):
    """Validate banner input; returns a dict of model field values."""
    fields = {}
    creating = banner is None

    for key in ('title', 'message'):
        if creating or key in data:
            value = clean_str(data, key, max_length=200 if key == 'title' else 2000)
            if not value:
                raise bad_request(f"{key} is required")
            fields[key] = value

    if creating or 'category' in data:
        category = data.get('category') or 'info'
        if category not in dict(Banner.CATEGORY_CHOICES):
            raise bad_request("Invalid banner category")
        fields['category'] = category

    if creating or 'targetRoles' in data:
        roles = data.get('targetRoles')
        if not isinstance(roles, list) or not roles:
            raise bad_request("targetRoles must be a non-empty list")
        unknown = [r for r in roles if r not in BANNER_TARGETS]
        if unknown:
            raise bad_request(f"Unknown target roles: {', '.join(map(str, unknown))}")
        fields['target_roles'] = roles

    if 'targetSchoolIds' in data:
        school_ids = data.get('targetSchoolIds')
        if school_ids is not None and not isinstance(school_ids, list):
            raise bad_request("targetSchoolIds must be a list")
        fields['target_school_ids'] = [str(s) for s in school_ids] if school_ids else None

    for key, field in (('startDate', 'start_date'), ('endDate', 'end_date')):
        if key in data:
            raw = data.get(key)
            try:
                value = parse_datetime(str(raw)) if raw else None
            except ValueError:
                value = None
            if raw and value is None:
                raise bad_request(f"{key} must be an ISO 8601 datetime")
            if value is not None and timezone.is_naive(value):
                value = timezone.make_aware(value)
            fields[field] = value

    start = fields.get('start_date', banner.start_date if banner else None)
    end = fields.get('end_date', banner.end_date if banner else None)
    if start and end and end <= start:
        raise bad_request("endDate must be after startDate")

    if 'priority' in data:
        try:
            fields['priority'] = int(data.get('priority') or 0)
        except (TypeError, ValueError):
            raise bad_request("priority must be a whole number")
    if 'isActive' in data:
        fields['is_active'] = parse_bool(data.get('isActive'), 'isActive')
    return fields


@csrf_exempt
@require_http_methods(["GET", "POST"])
@role_required(SYSTEM_ADMIN)
def banners(request):
    if request.method == "POST":
        banner = Banner.objects.create(created_by=request.user, **parse_banner(parse_json(request)))
        logger.info(f"Banner {banner.id} created by {request.user.email}")
        return JsonResponse({"success": True, "banner": banner_to_dict(banner)}, status=201)

    return JsonResponse({"success": True, "banners": [banner_to_dict(b) for b in Banner.objects.all()]})


@csrf_exempt
@require_http_methods(["GET", "PUT", "DELETE"])
@role_required(SYSTEM_ADMIN)
def banner_detail(request, banner_id):
    banner = get_object_or_error(Banner, "Banner", id=banner_id)

    if request.method == "DELETE":
        banner.delete()
        return JsonResponse({"success": True, "message": "Banner deleted"})

    if request.method == "PUT":
        for field, value in parse_banner(parse_json(request), banner).items():
            setattr(banner, field, value)
        banner.save()

    return JsonResponse({"success": True, "banner": banner_to_dict(banner)})


def banner_targets_user(banner, user):
    roles = banner.target_roles or []
    shown = user.role in roles or (XEN_WATCH_AUDIENCE in roles and user.role in XEN_WATCH_ROLES)
    if not shown:
        return False
    if user.role == SCHOOL_ADMIN and SCHOOL_ADMIN in roles and banner.target_school_ids:
        return user.school_id is not None and str(user.school_id) in map(str, banner.target_school_ids)
    return True


@require_GET
@role_required(*ROLES)
def active_banners(request):
    now = timezone.now()
    candidates = Banner.objects.filter(is_active=True).filter(
        Q(start_date__isnull=True) | Q(start_date__lte=now),
        Q(end_date__isnull=True) | Q(end_date__gte=now),
    ).order_by('-priority', '-created_at')
    visible = [b for b in candidates if banner_targets_user(b, request.user)]
    return JsonResponse({"success": True, "banners": [banner_to_dict(b) for b in visible]})


# ============================================================================
# SECTION 5: PLATFORM ADMINS
# ============================================================================

def admin_summary(user):
    data = user_to_dict(user)
    grant = getattr(user, 'admin_role', None)
    data["permissions"] = grant.permissions if grant else []
    return data


@csrf_exempt
@require_http_methods(["GET", "POST"])
@role_required(SYSTEM_ADMIN)
def admins(request):
    if request.method == "POST":
        return create_admin(request)

    queryset = User.objects.filter(role__in=ADMIN_ROLES).select_related('admin_role').order_by('role', 'name')
    role = request.GET.get('role')
    if role:
        queryset = queryset.filter(role=role)
    return JsonResponse({"admins": [admin_summary(u) for u in queryset]})


def create_admin(request):
    data = parse_json(request)
    name = clean_str(data, 'name', max_length=150)
    email = clean_str(data, 'email').lower()
    role = clean_str(data, 'role')
    if not name or not email or not role:
        raise bad_request("Name, email, and role are required")
    if role not in ADMIN_ROLES:
        raise bad_request(f"Invalid role specified. Allowed: {', '.join(ADMIN_ROLES)}")
    ensure_email_available(email)

    xen_id = None
    if requires_otp(role):
        xen_id = clean_str(data, 'xenId', max_length=20) or generate_xen_id()
        if User.objects.filter(xen_id=xen_id).exists():
            raise ApiError(409, "xen_id_exists", "An admin with this XEN ID already exists")

    permissions = data.get('permissions')
    if not isinstance(permissions, list):
        permissions = DEFAULT_ADMIN_PERMISSIONS.get(role, [])

    with transaction.atomic():
        user, otp = create_otp_account(email, name, role, xen_id=xen_id)
        AdminRole.objects.create(user=user, role=role, permissions=permissions, assigned_by=request.user)

    result = send_account_created_email(user, otp)
    label = role_display_name(role)
    logger.info(f"{label} account created for {email} by {request.user.email}")
    notify_system_admins(
        f"{role}_created",
        f"New {label} Created",
        f"A new {label} {name}{f' ({xen_id})' if xen_id else ''} has been added to the platform",
        exclude=request.user,
        entity_type='user',
        entity_id=user.id,
        related_user=user,
    )
    return JsonResponse({
        "success": True,
        "admin": admin_summary(user),
        "otp": otp,
        "emailSent": result.success,
    }, status=201)


def managed_admin(request, admin_id):
    target = get_object_or_error(User, "Admin", id=admin_id, role__in=ADMIN_ROLES)
    if target.id == request.user.id:
        raise bad_request("You cannot change your own admin account here", code="self_action")
    return target


@csrf_exempt
@require_http_methods(["PUT", "POST"])
@role_required(SYSTEM_ADMIN)
def disable_admin(request, admin_id):
    target = managed_admin(request, admin_id)
    target.is_frozen = True
    target.save(update_fields=['is_frozen'])
    logger.warning(f"Admin {target.email} disabled by {request.user.email}")
    return JsonResponse({"success": True, "admin": admin_summary(target)})


@csrf_exempt
@require_http_methods(["PUT", "POST"])
@role_required(SYSTEM_ADMIN)
def enable_admin(request, admin_id):
    target = managed_admin(request, admin_id)
    target.is_frozen = False
    target.save(update_fields=['is_frozen'])
    return JsonResponse({"success": True, "admin": admin_summary(target)})


@csrf_exempt
@require_http_methods(["DELETE"])
@role_required(SYSTEM_ADMIN)
def delete_admin(request, admin_id):
    target = managed_admin(request, admin_id)
    email = target.email
    target.delete()
    logger.warning(f"Admin {email} deleted by {request.user.email}")
    return JsonResponse({"success": True, "message": "Admin deleted"})


# ============================================================================
# SECTION 6: SCHOOL APPLICATIONS
# ============================================================================

@csrf_exempt
@require_POST
def apply_school(request):
    data = parse_json(request)
    school_name = clean_str(data, 'schoolName', max_length=200)
    contact_name = clean_str(data, 'contactName', max_length=150)
    contact_email = clean_str(data, 'contactEmail').lower()
    if not school_name or not contact_name:
        raise bad_request("schoolName and contactName are required")
    if not email_is_valid(contact_email):
        raise bad_request("Please enter a valid contact email address.")

    frequency = data.get('paymentFrequency') or 'monthly'
    application = SchoolApplication.objects.create(
        school_name=school_name,
        contact_name=contact_name,
        contact_email=contact_email,
        contact_phone=clean_str(data, 'contactPhone', max_length=40),
        address=clean_str(data, 'address'),
        expected_students=parse_positive_int(data.get('expectedStudents', 100), 'expectedStudents'),
        payment_frequency=parse_frequency(frequency),
        notes=clean_str(data, 'notes', max_length=2000),
    )
    notify_system_admins(
        'school_application',
        'New School Application',
        f"{school_name} has applied to join the platform",
        entity_type='school_application',
        entity_id=application.id,
    )
    return JsonResponse({"success": True, "application": application_to_dict(application)}, status=201)


@require_GET
@role_required(SYSTEM_ADMIN)
def school_applications(request):
    queryset = SchoolApplication.objects.all()
    status = request.GET.get('status')
    if status:
        queryset = queryset.filter(status=status)
    return JsonResponse({"applications": [application_to_dict(a) for a in queryset]})


def pending_application(application_id):
    application = get_object_or_error(SchoolApplication, "Application", id=application_id)
    if application.status != 'pending':
        raise ApiError(409, "already_reviewed", f"Application is already {application.status}")
    return application


@csrf_exempt
@require_POST
@role_required(SYSTEM_ADMIN)
def approve_application(request, application_id):
    application = pending_application(application_id)
    data = parse_json(request)
    amount = parse_amount(data.get('paymentAmount'))
    frequency = parse_frequency(data.get('paymentFrequency') or application.payment_frequency)

    with transaction.atomic():
        school = School(
            name=application.school_name,
            address=application.address,
            contact_email=application.contact_email,
            contact_phone=application.contact_phone,
            payment_amount=amount,
            max_students=application.expected_students,
        )
        school.extend_subscription(frequency)
        school.save()
        SchoolPaymentRecord.objects.create(
            school=school,
            payment_amount=amount,
            payment_frequency=frequency,
            payment_type='initial',
            student_limit_after=school.max_students,
            subscription_expires_at=school.subscription_expires_at,
            notes=f"Approved from application {application.id}",
            recorded_by=request.user,
        )
        application.status = 'approved'
        application.school = school
        application.reviewed_by = request.user
        application.reviewed_at = timezone.now()
        application.save()

    logger.info(f"Application {application.id} approved; created school {school.id}")
    log_event('school_onboarded', entity_type='school', entity_id=school.id,
              metadata={'approvedBy': request.user.id, 'applicationId': application.id})
    return JsonResponse({
        "success": True,
        "application": application_to_dict(application),
        "school": school_to_dict(school, include_billing=True),
    })


@csrf_exempt
@require_POST
@role_required(SYSTEM_ADMIN)
def reject_application(request, application_id):
    application = pending_application(application_id)
    data = parse_json(request)
    application.status = 'rejected'
    application.reviewed_by = request.user
    application.reviewed_at = timezone.now()
    notes = clean_str(data, 'notes', max_length=2000)
    if notes:
        application.notes = notes
    application.save()
    return JsonResponse({"success": True, "application": application_to_dict(application)})


# ============================================================================
# SECTION 7: SYSTEM SETTINGS & PLATFORM STATS
# ============================================================================

@csrf_exempt
@require_http_methods(["GET", "POST"])
@role_required(SYSTEM_ADMIN)
def system_settings(request):
    if request.method == "POST":
        data = parse_json(request)
        key = clean_str(data, 'key', max_length=100)
        if not key:
            raise bad_request("key is required")
        setting, _created = SystemSetting.objects.update_or_create(
            key=key,
            defaults={
                'value': '' if data.get('value') is None else str(data.get('value')),
                'category': clean_str(data, 'category', max_length=50) or 'general',
                'description': clean_str(data, 'description'),
                'updated_by': request.user,
            },
        )
        return JsonResponse(setting_to_dict(setting))

    queryset = SystemSetting.objects.all()
    category = request.GET.get('category')
    if category:
        queryset = queryset.filter(category=category)
    return JsonResponse({"settings": [setting_to_dict(s) for s in queryset]})


@csrf_exempt
@require_http_methods(["DELETE"])
@role_required(SYSTEM_ADMIN)
def delete_system_setting(request, key):
    deleted, _ = SystemSetting.objects.filter(key=key).delete()
    if not deleted:
        return error_response(404, "not_found", "Setting not found")
    return JsonResponse({"success": True})


@require_GET
@role_required(SYSTEM_ADMIN)
def platform_stats(request):
    users_by_role = dict(User.objects.order_by().values_list('role').annotate(total=Count('id')))
    school_revenue = SchoolPaymentRecord.objects.aggregate(total=Sum('payment_amount'))['total'] or Decimal('0')
    transaction_cents = PaymentTransaction.objects.filter(status='completed').aggregate(
        total=Sum('amount_cents'))['total'] or 0

    return JsonResponse({
        "users": {
            "total": sum(users_by_role.values()),
            "byRole": {role: users_by_role.get(role, 0) for role in ROLES},
        },
        "schools": {
            "total": School.objects.count(),
            "active": School.objects.filter(is_active=True).count(),
        },
        "students": Student.objects.count(),
        "posts": Post.objects.filter(type='post').count(),
        "announcements": Post.objects.filter(type='announcement').count(),
        "likes": PostLike.objects.count(),
        "comments": PostComment.objects.count(),
        "views": PostView.objects.count(),
        "saves": SavedPost.objects.count(),
        "follows": StudentFollower.objects.count(),
        "revenue": {
            "schoolPayments": float(school_revenue),
            "transactionsCents": transaction_cents,
        },
    })
