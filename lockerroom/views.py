import logging
from datetime import timedelta

import cloudinary.exceptions
import cloudinary.uploader
import requests
from django.conf import settings
from django.db import DatabaseError, IntegrityError, connection, transaction
from django.db.models import Avg, OuterRef, Q, Subquery
from django.http import HttpResponse, JsonResponse
from django.utils import timezone
from django.utils.dateparse import parse_date
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from . import media
from .analytics import log_event
from .api import (
    ApiError, bad_request, clean_str, error_response, forbidden, get_object_or_error,
    pagination_params, parse_json, query_flag,
)
from .auth import api_login_required, generate_token, issue_token, rate_limit
from .emails import send_password_reset_email, send_verification_email, send_welcome_email
from .models import (
    GENDER_CHOICES, PLACEHOLDER_FAILED, PLACEHOLDER_PROCESSING, PLACEHOLDER_VIDEO_THUMBNAIL,
    Notification, PaymentTransaction, Post, PostComment, PostLike, PostView, ReportedPost,
    SavedPost, Student, StudentFollower, StudentRating, SystemSetting, User,
)
from .notifications import (
    notify_new_follower, notify_post_commented, notify_post_liked, notify_system_admins,
)
from .roles import (
    SCHOOL_ADMIN, SCOUT_ADMIN, SCOUT_ROLES, STUDENT, SYSTEM_ADMIN, VIEWER, XEN_SCOUT,
)
from .serializers import (
    comment_to_dict, notification_to_dict, post_to_dict, rating_to_dict, school_to_dict,
    student_to_dict, transaction_to_dict, user_to_dict, with_engagement,
)


# Logger
logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8
VERIFICATION_TTL = timedelta(hours=24)
PASSWORD_RESET_TTL = timedelta(hours=1)
GOOGLE_TOKENINFO_URL = 'https://oauth2.googleapis.com/tokeninfo'
MAX_CAPTION_LENGTH = 2200
MAX_COMMENT_LENGTH = 2000

STUDENT_EDITABLE_FIELDS = {
    'name': 'name',
    'phone': 'phone',
    'gender': 'gender',
    'dateOfBirth': 'date_of_birth',
    'grade': 'grade',
    'guardianContact': 'guardian_contact',
    'roleNumber': 'role_number',
    'position': 'position',
    'sport': 'sport',
    'bio': 'bio',
    'coverPhoto': 'cover_photo',
    'height': 'height',
    'weight': 'weight',
}

USER_EDITABLE_FIELDS = {
    'name': 'name',
    'bio': 'bio',
    'phone': 'phone',
    'position': 'position',
}


def password_errors(password):
    errors = []
    if not password:
        errors.append("Password is required.")
    elif len(password) < MIN_PASSWORD_LENGTH:
        errors.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")
    return errors


def email_is_valid(email):
    return bool(email) and '@' in email and '.' in email.split('@')[-1]


def auth_payload(user):
    return {
        "token": issue_token(user),
        "user": user_to_dict(user),
        "requiresPasswordReset": user.is_one_time_password,
    }


def email_cooldown_remaining(user):
    if not user.last_email_sent_at:
        return 0
    elapsed = (timezone.now() - user.last_email_sent_at).total_seconds()
    return max(0, int(settings.EMAIL_RESEND_COOLDOWN_SECONDS - elapsed))


# ============================================================================
# SECTION 1: AUTHENTICATION
# ============================================================================

@csrf_exempt
@require_POST
@rate_limit(10, 15 * 60)
def register(request):
    """Self sign-up. Only viewers can register; everyone else is created by an admin."""
    data = parse_json(request)
    email = clean_str(data, 'email').lower()
    name = clean_str(data, 'name', max_length=150)
    password = data.get('password') or ''

    errors = []
    if not name:
        errors.append("Name is required.")
    if not email:
        errors.append("Email is required.")
    elif not email_is_valid(email):
        errors.append("Please enter a valid email address.")
    errors.extend(password_errors(password))

    if errors:
        return error_response(400, "validation_error", errors[0], details=errors)

    if User.objects.filter(email__iexact=email).exists():
        return error_response(409, "email_taken", "An account with this email already exists")

    try:
        user = User.objects.create_user(email, password, name=name, role=VIEWER)
    except IntegrityError as e:
        logger.warning(f"IntegrityError during registration: {str(e)}")
        return error_response(409, "email_taken", "An account with this email already exists")

    user.email_verification_token = generate_token()
    user.email_verification_expires_at = timezone.now() + VERIFICATION_TTL
    user.last_email_sent_at = timezone.now()
    user.save(update_fields=[
        'email_verification_token', 'email_verification_expires_at', 'last_email_sent_at',
    ])

    log_event('user_signup', entity_type='user', entity_id=user.id, metadata={'method': 'email'})
    result = send_verification_email(user, user.email_verification_token)
    logger.info(f"Registration success for {email}. Verification email sent: {result.success}")

    return JsonResponse({
        "success": True,
        "message": "Account created. Check your email to verify your address.",
        "emailSent": result.success,
        "user": user_to_dict(user),
    }, status=201)


@csrf_exempt
@require_POST
@rate_limit(20, 15 * 60)
def login_view(request):
    data = parse_json(request)
    email = clean_str(data, 'email').lower()
    password = data.get('password') or ''

    if not email or not password:
        return error_response(400, "validation_error", "Email and password are required")

    user = User.objects.select_related('school').filter(email__iexact=email).first()
    if user is None or not user.is_active or not user.check_password(password):
        logger.info(f"Failed login for {email}")
        return error_response(401, "invalid_credentials", "Invalid email or password")

    if user.otp_expired:
        return error_response(401, "otp_expired", "Your one-time password has expired. Ask your administrator for a new one.")

    if user.role in (SCHOOL_ADMIN, STUDENT) and user.school is not None and not user.school.is_active:
        return error_response(403, "school_inactive", "Your academy's subscription is inactive. Contact your administrator.")

    if user.is_frozen:
        return error_response(403, "account_frozen", "This account has been disabled")

    if user.role == VIEWER and not user.email_verified:
        return error_response(403, "email_not_verified", "Please verify your email before signing in")

    user.last_login = timezone.now()
    user.save(update_fields=['last_login'])
    logger.info(f"Login success for {email} ({user.role})")
    return JsonResponse(auth_payload(user))


@csrf_exempt
@require_POST
@rate_limit(20, 15 * 60)
def google_login(request):
    """Sign in with a Google ID token; unknown emails become verified viewers."""
    if not settings.GOOGLE_CLIENT_ID:
        return error_response(503, "oauth_unavailable", "Google sign-in is not configured")

    data = parse_json(request)
    credential = clean_str(data, 'credential')
    if not credential:
        return error_response(400, "validation_error", "Google credential is required")

    try:
        resp = requests.get(
            GOOGLE_TOKENINFO_URL,
            params={'id_token': credential},
            timeout=8,
            headers={"User-Agent": "LockerRoom/1.0 (+https://lockerroom.app)"},
        )
    except requests.RequestException as e:
        logger.error(f"Google token verification failed: {e}")
        return error_response(502, "oauth_unavailable", "Could not reach Google to verify sign-in")

    if resp.status_code != 200:
        return error_response(401, "invalid_credential", "Google sign-in could not be verified")

    info = resp.json()
    if info.get('aud') != settings.GOOGLE_CLIENT_ID or str(info.get('email_verified')).lower() != 'true':
        return error_response(401, "invalid_credential", "Google sign-in could not be verified")

    email = (info.get('email') or '').lower()
    user = User.objects.select_related('school').filter(email__iexact=email).first()
    if user is None:
        user = User.objects.create_user(
            email,
            None,
            name=info.get('name') or email.split('@')[0],
            role=VIEWER,
            email_verified=True,
            profile_pic_url=info.get('picture') or '',
        )
        logger.info(f"Created viewer {email} from Google sign-in")
        log_event('user_signup', entity_type='user', entity_id=user.id, metadata={'method': 'google'})
        send_welcome_email(user)
    elif user.is_frozen:
        return error_response(403, "account_frozen", "This account has been disabled")
    elif not user.email_verified:
        user.email_verified = True
        user.save(update_fields=['email_verified'])

    return JsonResponse(auth_payload(user))


@csrf_exempt
@require_POST
def verify_email(request):
    data = parse_json(request)
    token = clean_str(data, 'token')
    if not token:
        return error_response(400, "validation_error", "Verification token is required")

    user = User.objects.filter(email_verification_token=token).first()
    if user is None or not user.email_verification_expires_at or user.email_verification_expires_at < timezone.now():
        return error_response(400, "invalid_token", "Verification link is invalid or has expired")

    user.email_verified = True
    user.email_verification_token = None
    user.email_verification_expires_at = None
    user.save(update_fields=['email_verified', 'email_verification_token', 'email_verification_expires_at'])
    send_welcome_email(user)

    return JsonResponse({"success": True, "message": "Email verified", **auth_payload(user)})


@csrf_exempt
@require_POST
@rate_limit(5, 15 * 60)
def resend_verification(request):
    data = parse_json(request)
    email = clean_str(data, 'email').lower()
    generic = {"success": True, "message": "If the account exists and is unverified, a new link has been sent."}

    user = User.objects.filter(email__iexact=email).first()
    if user is None or user.email_verified:
        return JsonResponse(generic)

    remaining = email_cooldown_remaining(user)
    if remaining:
        return error_response(
            429, "rate_limit_exceeded",
            f"Please wait {remaining} seconds before requesting another email",
            retryAfter=remaining,
        )

    user.email_verification_token = generate_token()
    user.email_verification_expires_at = timezone.now() + VERIFICATION_TTL
    user.last_email_sent_at = timezone.now()
    user.save(update_fields=['email_verification_token', 'email_verification_expires_at', 'last_email_sent_at'])
    send_verification_email(user, user.email_verification_token)
    return JsonResponse(generic)


@csrf_exempt
@require_POST
@rate_limit(5, 15 * 60)
def forgot_password(request):
    data = parse_json(request)
    email = clean_str(data, 'email').lower()

    user = User.objects.filter(email__iexact=email, is_active=True).first()
    if user is not None and not user.is_frozen and not email_cooldown_remaining(user):
        user.password_reset_token = generate_token()
        user.password_reset_expires_at = timezone.now() + PASSWORD_RESET_TTL
        user.last_email_sent_at = timezone.now()
        user.save(update_fields=['password_reset_token', 'password_reset_expires_at', 'last_email_sent_at'])
        send_password_reset_email(user, user.password_reset_token)
    elif user is None:
        logger.info(f"Password reset requested for unknown email {email}")

    return JsonResponse({
        "success": True,
        "message": "If an account exists for that email, a reset link has been sent.",
    })


@csrf_exempt
@require_POST
def reset_password(request):
    data = parse_json(request)
    token = clean_str(data, 'token')
    password = data.get('password') or ''

    errors = password_errors(password)
    if not token:
        errors.insert(0, "Reset token is required.")
    if errors:
        return error_response(400, "validation_error", errors[0], details=errors)

    user = User.objects.filter(password_reset_token=token).first()
    if user is None or not user.password_reset_expires_at or user.password_reset_expires_at < timezone.now():
        return error_response(400, "invalid_token", "Reset link is invalid or has expired")

    user.set_password(password)
    user.password_reset_token = None
    user.password_reset_expires_at = None
    user.is_one_time_password = False
    user.otp_expires_at = None
    user.save()
    logger.info(f"Password reset completed for {user.email}")
    return JsonResponse({"success": True, "message": "Password has been reset. You can now sign in."})


@csrf_exempt
@require_POST
@api_login_required
def set_password(request):
    """Replace the one-time password issued by an administrator."""
    user = request.user
    if not user.is_one_time_password:
        return error_response(400, "not_required", "This account does not use a one-time password")

    data = parse_json(request)
    new_password = data.get('newPassword') or ''
    errors = password_errors(new_password)
    if errors:
        return error_response(400, "validation_error", errors[0], details=errors)
    if user.check_password(new_password):
        return error_response(400, "validation_error", "Choose a password different from your one-time password")

    user.set_password(new_password)
    user.is_one_time_password = False
    user.otp_expires_at = None
    if not user.email_verified:
        user.email_verified = True
    user.save()
    return JsonResponse({"success": True, "message": "Password updated", **auth_payload(user)})


@csrf_exempt
@require_POST
@api_login_required
def change_password(request):
    data = parse_json(request)
    current = data.get('currentPassword') or ''
    new_password = data.get('newPassword') or ''

    if not request.user.check_password(current):
        return error_response(400, "invalid_password", "Current password is incorrect")
    errors = password_errors(new_password)
    if errors:
        return error_response(400, "validation_error", errors[0], details=errors)

    request.user.set_password(new_password)
    request.user.is_one_time_password = False
    request.user.otp_expires_at = None
    request.user.save()
    return JsonResponse({"success": True, "message": "Password changed"})


@require_GET
@api_login_required
def me(request):
    user = request.user
    student = Student.objects.filter(user=user).select_related('school', 'user').first()
    return JsonResponse({
        "user": user_to_dict(user),
        "student": student_to_dict(student) if student else None,
        "school": school_to_dict(user.school),
        "requiresPasswordReset": user.is_one_time_password,
    })


# ============================================================================
# SECTION 2: PROFILE & UPLOADS
# ============================================================================

def apply_updates(instance, data, field_map):
    """Copy whitelisted camelCase keys from ``data`` onto ``instance`` and save."""
    changed = []
    for key, field in field_map.items():
        if key not in data:
            continue
        value = data[key]
        if field in ('height', 'weight'):
            if value in (None, ''):
                value = None
            else:
                try:
                    value = round(float(value), 1)
                except (TypeError, ValueError):
                    raise bad_request(f"{key} must be a number.")
                if value <= 0:
                    raise bad_request(f"{key} must be positive.")
        elif field == 'date_of_birth':
            if value:
                try:
                    parsed = parse_date(str(value)[:10])
                except ValueError:
                    parsed = None
                if parsed is None:
                    raise bad_request("dateOfBirth must be a date (YYYY-MM-DD).")
                value = parsed
            else:
                value = None
        elif field == 'gender':
            value = (value or '').strip().lower()
            if value and value not in dict(GENDER_CHOICES):
                raise bad_request("gender must be male, female or other.")
        else:
            value = '' if value is None else str(value).strip()
        setattr(instance, field, value)
        changed.append(field)

    if 'name' in changed and not instance.name:
        raise bad_request("name cannot be empty.")
    if changed:
        instance.save()
    return changed


@csrf_exempt
@require_http_methods(["GET", "PUT"])
@api_login_required
def profile(request):
    user = request.user
    student = Student.objects.filter(user=user).select_related('school', 'user').first()

    if request.method == "PUT":
        data = parse_json(request)
        # Both rows change together or not at all
        with transaction.atomic():
            apply_updates(user, data, USER_EDITABLE_FIELDS)
            if student is not None:
                apply_updates(student, data, STUDENT_EDITABLE_FIELDS)

    return JsonResponse({
        "user": user_to_dict(user),
        "student": student_to_dict(student) if student else None,
        "school": school_to_dict(user.school),
    })


def require_media_service():
    if not media.is_configured():
        raise ApiError(503, "media_unavailable", "Media uploads are not configured")


@csrf_exempt
@require_POST
@api_login_required
def profile_picture(request):
    require_media_service()
    upload = request.FILES.get('file') or request.FILES.get('profilePic')
    if upload is None:
        return error_response(400, "validation_error", "No file provided")
    if not (upload.content_type or '').startswith('image/'):
        return error_response(400, "unsupported_media", "Profile picture must be an image")

    try:
        url = media.upload_profile_picture(upload)
    except cloudinary.exceptions.Error as e:
        logger.error(f"Profile picture upload failed for user {request.user.id}: {e}")
        return error_response(502, "upload_failed", "Could not upload profile picture")

    request.user.profile_pic_url = url
    request.user.save(update_fields=['profile_pic_url'])
    Student.objects.filter(user=request.user).update(profile_pic_url=url)
    return JsonResponse({"success": True, "profilePicUrl": url, "user": user_to_dict(request.user)})


@csrf_exempt
@require_POST
@api_login_required
def upload_image(request):
    """Generic media upload (cover photos, announcement media, ...)."""
    require_media_service()
    upload = request.FILES.get('file')
    if upload is None:
        return error_response(400, "validation_error", "No file provided")

    folder = request.GET.get('folder', 'misc')
    if not folder.replace('-', '').replace('_', '').replace('/', '').isalnum():
        return error_response(400, "validation_error", "Invalid folder name")

    try:
        media_type = media.media_type_for(upload.content_type)
        result = media.upload_file(upload, folder, media_type, size=upload.size)
    except media.UnsupportedMediaType as e:
        return error_response(400, "unsupported_media", str(e))
    except cloudinary.exceptions.Error as e:
        logger.error(f"Upload to {folder} failed: {e}")
        return error_response(502, "upload_failed", "Upload failed")

    return JsonResponse({
        "url": result.url,
        "publicId": result.public_id,
        "resourceType": result.resource_type,
        "thumbnailUrl": result.thumbnail_url or None,
    })


PLACEHOLDER_LABELS = {
    'processing': ('Processing…', '#1f2937'),
    'video-thumbnail': ('Video processing…', '#1f2937'),
    'failed': ('Upload failed', '#7f1d1d'),
    'failed-thumbnail': ('Upload failed', '#7f1d1d'),
}


@require_GET
def placeholder(request, kind):
    label, color = PLACEHOLDER_LABELS.get(kind, ('', '#1f2937'))
    svg = (
        '<svg xmlns="http://www.w3.org/2000/svg" width="400" height="400" viewBox="0 0 400 400">'
        f'<rect width="400" height="400" fill="{color}"/>'
        '<text x="200" y="205" font-family="Arial, sans-serif" font-size="22" fill="#f9fafb" '
        f'text-anchor="middle">{label}</text></svg>'
    )
    response = HttpResponse(svg, content_type='image/svg+xml')
    response['Cache-Control'] = 'public, max-age=86400'
    return response


# ============================================================================
# SECTION 3: FEED & POSTS
# ============================================================================

def announcement_visibility(user):
    """Q filter for the announcements ``user`` may see, or None for none."""
    base = Q(type='announcement', broadcast=True)
    if user.role in (SYSTEM_ADMIN, SCOUT_ADMIN, XEN_SCOUT):
        return base
    if user.role in (SCHOOL_ADMIN, STUDENT):
        global_only = Q(scope='global', school__isnull=True)
        if not user.school_id:
            return base & global_only
        return base & (
            Q(scope='global', school__isnull=True) | Q(scope='school', school_id=user.school_id)
        )
    return None


def feed_queryset(user, include_announcements):
    visible = Q(type='post', student__isnull=False)
    if include_announcements:
        announcements = announcement_visibility(user)
        if announcements is not None:
            visible |= announcements
    return (
        Post.objects.filter(visible)
        .exclude(status='processing')
        .exclude(media_url='', caption='')
        .order_by('-created_at', '-id')
    )


def annotated_post(post_id, user):
    try:
        return with_engagement(Post.objects.filter(id=post_id), user).get()
    except Post.DoesNotExist:
        raise ApiError(404, "not_found", "Post not found")


def can_moderate_post(user, post):
    if user.role == SYSTEM_ADMIN:
        return True
    if post.is_announcement:
        if post.created_by_admin_id == user.id:
            return True
        return user.role == SCHOOL_ADMIN and post.school_id is not None and post.school_id == user.school_id
    if post.student is not None and post.student.user_id == user.id:
        return True
    return user.role == SCHOOL_ADMIN and post.student is not None and post.student.school_id == user.school_id


def can_view_post(user, post):
    if not post.is_announcement:
        return True
    visibility = announcement_visibility(user)
    if post.created_by_admin_id == user.id:
        return True
    if visibility is None:
        return False
    return Post.objects.filter(visibility, id=post.id).exists()


@csrf_exempt
@require_http_methods(["GET", "POST"])
@api_login_required
def posts(request):
    if request.method == "POST":
        return create_post(request)

    limit, offset = pagination_params(request)
    include_announcements = query_flag(request, 'includeAnnouncements', default=True)
    queryset = with_engagement(feed_queryset(request.user, include_announcements), request.user)
    page = list(queryset[offset:offset + limit])
    return JsonResponse({
        "posts": [post_to_dict(post) for post in page],
        "limit": limit,
        "offset": offset,
        "hasMore": len(page) == limit,
    })


def create_post(request):
    if request.user.role != STUDENT:
        raise forbidden("Only players can create posts")
    student = Student.objects.filter(user=request.user).first()
    if student is None:
        raise forbidden("No player profile is linked to this account")

    upload = request.FILES.get('file') or request.FILES.get('media')
    if upload is None:
        return error_response(400, "validation_error", "Media file required")

    try:
        media_type = media.media_type_for(upload.content_type)
    except media.UnsupportedMediaType as e:
        return error_response(400, "unsupported_media", str(e))

    if upload.size > settings.MAX_POST_UPLOAD_SIZE:
        return error_response(400, "file_too_large", "File exceeds the 500MB upload limit")

    caption = clean_str(request.POST, 'caption', max_length=MAX_CAPTION_LENGTH)
    require_media_service()

    post = Post.objects.create(
        student=student,
        media_url=PLACEHOLDER_PROCESSING,
        media_type=media_type,
        caption=caption,
        status='processing',
        thumbnail_url=PLACEHOLDER_VIDEO_THUMBNAIL,
    )
    logger.info(f"Placeholder post {post.id} created for student {student.id} ({media_type}, {upload.size} bytes)")
    media.start_post_upload(post, upload)

    post = annotated_post(post.id, request.user)
    return JsonResponse({"post": post_to_dict(post), "isProcessing": post.status == 'processing'}, status=202)


@csrf_exempt
@require_http_methods(["GET", "DELETE"])
@api_login_required
def post_detail(request, post_id):
    post = annotated_post(post_id, request.user)

    if request.method == "DELETE":
        if not can_moderate_post(request.user, post):
            raise forbidden("You can only delete your own posts")
        public_id, resource_type = post.cloudinary_public_id, post.media_type
        post.delete()
        logger.info(f"Post {post_id} deleted by user {request.user.id}")
        if public_id and media.is_configured():
            try:
                media.configure()
                cloudinary.uploader.destroy(public_id, resource_type=resource_type)
            except cloudinary.exceptions.Error as e:
                logger.warning(f"Could not remove Cloudinary asset {public_id}: {e}")
        return JsonResponse({"success": True, "message": "Post deleted"})

    if not can_view_post(request.user, post):
        raise ApiError(404, "not_found", "Post not found")
    return JsonResponse(post_to_dict(post))


@csrf_exempt
@require_POST
@api_login_required
def retry_post(request, post_id):
    post = get_object_or_error(Post.objects.select_related('student'), "Post", id=post_id)
    if post.student is None or post.student.user_id != request.user.id:
        raise forbidden("Unauthorized to retry this post")

    valid_media = post.has_valid_media_url
    if post.status != 'failed' and valid_media:
        return error_response(400, "not_retryable", "Post is not in a retryable state")

    if not valid_media:
        post.status = 'failed'
        post.media_url = PLACEHOLDER_FAILED
        post.save(update_fields=['status', 'media_url'])
        return JsonResponse({
            "success": False,
            "message": "Cannot retry upload without original file. Please delete and recreate the post.",
            "post": post_to_dict(annotated_post(post.id, request.user)),
        })

    post.status = 'ready'
    post.save(update_fields=['status'])
    return JsonResponse({
        "success": True,
        "message": "Retry successful",
        "post": post_to_dict(annotated_post(post.id, request.user)),
    })


def engagement_counts(post):
    return {
        "likesCount": post.likes.count(),
        "savesCount": post.saves.count(),
        "commentsCount": post.comments.count(),
    }


@csrf_exempt
@require_http_methods(["POST", "DELETE"])
@api_login_required
def like_post(request, post_id):
    post = get_object_or_error(Post.objects.select_related('student__user'), "Post", id=post_id)

    if request.method == "POST":
        _like, created = PostLike.objects.get_or_create(post=post, user=request.user)
        if created:
            notify_post_liked(post, request.user)
        liked = True
    else:
        PostLike.objects.filter(post=post, user=request.user).delete()
        liked = False

    return JsonResponse({"success": True, "isLiked": liked, **engagement_counts(post)})


@csrf_exempt
@require_http_methods(["POST", "DELETE"])
@api_login_required
def save_post(request, post_id):
    post = get_object_or_error(Post, "Post", id=post_id)

    if request.method == "POST":
        SavedPost.objects.get_or_create(post=post, user=request.user)
        saved = True
    else:
        SavedPost.objects.filter(post=post, user=request.user).delete()
        saved = False

    return JsonResponse({"success": True, "isSaved": saved, **engagement_counts(post)})


@require_GET
@api_login_required
def saved_posts(request):
    limit, offset = pagination_params(request)
    saved_at = SavedPost.objects.filter(post=OuterRef('pk'), user=request.user).values('created_at')[:1]
    queryset = with_engagement(
        Post.objects.filter(saves__user=request.user).exclude(status='processing'),
        request.user,
    ).annotate(saved_at=Subquery(saved_at)).order_by('-saved_at')
    return JsonResponse({"posts": [post_to_dict(post) for post in queryset[offset:offset + limit]]})


@csrf_exempt
@require_http_methods(["GET", "POST"])
@api_login_required
def post_comments(request, post_id):
    post = get_object_or_error(Post.objects.select_related('student__user'), "Post", id=post_id)

    if request.method == "POST":
        data = parse_json(request)
        content = clean_str(data, 'content', max_length=MAX_COMMENT_LENGTH)
        if not content:
            return error_response(400, "validation_error", "Comment cannot be empty")
        comment = PostComment.objects.create(post=post, user=request.user, content=content)
        notify_post_commented(post, request.user, comment)
        return JsonResponse(comment_to_dict(comment), status=201)

    comments = post.comments.select_related('user').order_by('created_at')
    return JsonResponse({"comments": [comment_to_dict(c) for c in comments]})


@csrf_exempt
@require_http_methods(["DELETE"])
@api_login_required
def delete_comment(request, comment_id):
    comment = get_object_or_error(PostComment, "Comment", id=comment_id)
    if comment.user_id != request.user.id and request.user.role != SYSTEM_ADMIN:
        raise forbidden("You can only delete your own comments")
    comment.delete()
    return JsonResponse({"success": True, "message": "Comment deleted"})


@csrf_exempt
@require_POST
@api_login_required
def record_view(request, post_id):
    post = get_object_or_error(Post, "Post", id=post_id)
    _view, created = PostView.objects.get_or_create(post=post, user=request.user)
    return JsonResponse({"success": True, "recorded": created, "viewCount": post.views.count()})


@csrf_exempt
@require_POST
@api_login_required
def report_post(request, post_id):
    post = get_object_or_error(Post, "Post", id=post_id)
    data = parse_json(request)
    reason = clean_str(data, 'reason', max_length=1000)

    if ReportedPost.objects.filter(post=post, user=request.user).exists():
        return error_response(409, "already_reported", "You have already reported this post")

    ReportedPost.objects.create(post=post, user=request.user, reason=reason)
    notify_system_admins(
        'post_reported',
        'Post Reported',
        f"{request.user.name or request.user.email} reported a post",
        entity_type='post',
        entity_id=post.id,
        related_user=request.user,
        metadata={'reason': reason},
    )
    return JsonResponse({"success": True, "message": "Report submitted"}, status=201)


# ============================================================================
# SECTION 4: STUDENTS & FOLLOWS
# ============================================================================

def can_manage_student(user, student):
    if user.role == SYSTEM_ADMIN:
        return True
    return user.role == SCHOOL_ADMIN and user.school_id == student.school_id


def student_stats(student, viewer):
    student_posts = Post.objects.filter(student=student, type='post')
    return {
        "postsCount": student_posts.exclude(status='processing').count(),
        "totalLikes": PostLike.objects.filter(post__in=student_posts).count(),
        "totalViews": PostView.objects.filter(post__in=student_posts).count(),
        "totalSaves": SavedPost.objects.filter(post__in=student_posts).count(),
        "totalComments": PostComment.objects.filter(post__in=student_posts).count(),
        "followersCount": student.followers.count(),
        "followingCount": StudentFollower.objects.filter(follower_id=student.user_id).count(),
        "isFollowing": student.followers.filter(follower=viewer).exists(),
        "averageRating": student.ratings.aggregate(avg=Avg('rating'))['avg'],
    }


@csrf_exempt
@require_http_methods(["GET", "PUT", "DELETE"])
@api_login_required
def student_detail(request, student_id):
    student = get_object_or_error(Student.objects.select_related('user', 'school'), "Student", id=student_id)

    if request.method == "PUT":
        if student.user_id != request.user.id and not can_manage_student(request.user, student):
            raise forbidden("You cannot edit this player")
        apply_updates(student, parse_json(request), STUDENT_EDITABLE_FIELDS)
        if student.user.name != student.name:
            student.user.name = student.name
            student.user.save(update_fields=['name'])

    elif request.method == "DELETE":
        if not can_manage_student(request.user, student):
            raise forbidden("You cannot delete this player")
        user = student.user
        logger.warning(f"Student {student.id} ({user.email}) deleted by user {request.user.id}")
        user.delete()
        return JsonResponse({"success": True, "message": "Player deleted"})

    stats = student_stats(student, request.user)
    return JsonResponse({
        **student_to_dict(student, is_following=stats["isFollowing"]),
        "school": school_to_dict(student.school),
        "stats": stats,
    })


@require_GET
@api_login_required
def student_posts(request, student_id):
    student = get_object_or_error(Student, "Student", id=student_id)
    limit, offset = pagination_params(request)
    queryset = Post.objects.filter(student=student, type='post').order_by('-created_at')
    if student.user_id != request.user.id:
        queryset = queryset.exclude(status='processing')
    queryset = with_engagement(queryset, request.user)
    return JsonResponse({"posts": [post_to_dict(post) for post in queryset[offset:offset + limit]]})


@csrf_exempt
@require_http_methods(["POST", "DELETE"])
@api_login_required
def follow_student(request, student_id):
    student = get_object_or_error(Student.objects.select_related('user'), "Student", id=student_id)

    if request.method == "POST":
        if student.user_id == request.user.id:
            return error_response(400, "validation_error", "You cannot follow yourself")
        _follow, created = StudentFollower.objects.get_or_create(follower=request.user, student=student)
        if not created:
            return error_response(409, "already_following", "You already follow this player")
        notify_new_follower(student, request.user)
        action = "followed"
    else:
        StudentFollower.objects.filter(follower=request.user, student=student).delete()
        action = "unfollowed"

    return JsonResponse({
        "success": True,
        "action": action,
        "isFollowing": action == "followed",
        "followersCount": student.followers.count(),
    })


@require_GET
@api_login_required
def student_followers(request, student_id):
    student = get_object_or_error(Student, "Student", id=student_id)
    follows = student.followers.select_related('follower')
    return JsonResponse({"followers": [
        {
            "id": follow.follower_id,
            "name": follow.follower.name,
            "role": follow.follower.role,
            "profilePicUrl": follow.follower.profile_pic_url or None,
            "followedAt": follow.created_at.isoformat(),
        }
        for follow in follows
    ]})


@require_GET
@api_login_required
def my_following(request):
    follows = StudentFollower.objects.filter(follower=request.user).select_related('student__user', 'student__school')
    return JsonResponse({"following": [
        {**student_to_dict(follow.student, is_following=True), "schoolName": follow.student.school.name}
        for follow in follows
    ]})


@require_GET
@api_login_required
def search_students(request):
    query = request.GET.get('q', '').strip()
    if not query:
        return JsonResponse({"students": []})

    students = (
        Student.objects.select_related('user', 'school')
        .filter(
            Q(name__icontains=query)
            | Q(sport__icontains=query)
            | Q(position__icontains=query)
            | Q(school__name__icontains=query)
        )
        .order_by('name')[:20]
    )
    followed = set(
        StudentFollower.objects.filter(follower=request.user).values_list('student_id', flat=True)
    )
    return JsonResponse({"students": [
        {**student_to_dict(s, is_following=s.id in followed), "schoolName": s.school.name}
        for s in students
    ]})


# ============================================================================
# SECTION 5: RATINGS
# ============================================================================

def can_rate_student(user, student):
    return can_manage_student(user, student) or user.role in SCOUT_ROLES


def parse_rating(data, partial=False):
    cleaned = {}
    if 'rating' in data or not partial:
        try:
            rating = int(data.get('rating'))
        except (TypeError, ValueError):
            raise bad_request("rating must be a whole number between 1 and 5.")
        if not 1 <= rating <= 5:
            raise bad_request("rating must be a whole number between 1 and 5.")
        cleaned['rating'] = rating
    if 'category' in data or not partial:
        category = data.get('category') or 'overall'
        if category not in dict(StudentRating.CATEGORY_CHOICES):
            raise bad_request("Invalid rating category.")
        cleaned['category'] = category
    if 'comments' in data:
        cleaned['comments'] = clean_str(data, 'comments', max_length=2000)
    return cleaned


@csrf_exempt
@require_http_methods(["GET", "POST"])
@api_login_required
def student_ratings(request, student_id):
    student = get_object_or_error(Student, "Student", id=student_id)

    if request.method == "POST":
        if not can_rate_student(request.user, student):
            raise forbidden("You cannot rate this player")
        rating = StudentRating.objects.create(
            student=student, rated_by=request.user, **parse_rating(parse_json(request))
        )
        return JsonResponse(rating_to_dict(rating), status=201)

    ratings = student.ratings.select_related('rated_by')
    return JsonResponse({
        "ratings": [rating_to_dict(r) for r in ratings],
        "averageRating": ratings.aggregate(avg=Avg('rating'))['avg'],
    })


@csrf_exempt
@require_http_methods(["PUT", "DELETE"])
@api_login_required
def rating_detail(request, rating_id):
    rating = get_object_or_error(StudentRating.objects.select_related('rated_by'), "Rating", id=rating_id)
    if rating.rated_by_id != request.user.id and request.user.role != SYSTEM_ADMIN:
        raise forbidden("You can only change your own ratings")

    if request.method == "DELETE":
        rating.delete()
        return JsonResponse({"success": True, "message": "Rating deleted"})

    for field, value in parse_rating(parse_json(request), partial=True).items():
        setattr(rating, field, value)
    rating.save()
    return JsonResponse(rating_to_dict(rating))


# ============================================================================
# SECTION 6: NOTIFICATIONS
# ============================================================================

@csrf_exempt
@require_http_methods(["GET", "DELETE"])
@api_login_required
def notifications(request):
    if request.method == "DELETE":
        deleted, _ = request.user.notifications.all().delete()
        return JsonResponse({'success': True, 'message': 'All notifications cleared.', 'deleted': deleted})

    limit, offset = pagination_params(request, max_limit=100)
    queryset = request.user.notifications.all()
    if query_flag(request, 'unreadOnly'):
        queryset = queryset.filter(is_read=False)
    return JsonResponse({
        "notifications": [notification_to_dict(n) for n in queryset[offset:offset + limit]],
        "unreadCount": request.user.notifications.filter(is_read=False).count(),
    })


@require_GET
@api_login_required
def unread_count(request):
    return JsonResponse({"count": request.user.notifications.filter(is_read=False).count()})


@csrf_exempt
@require_POST
@api_login_required
def mark_notification_read(request, notification_id):
    updated = Notification.objects.filter(id=notification_id, user=request.user).update(is_read=True)
    if not updated:
        return error_response(404, "not_found", "Notification not found")
    return JsonResponse({'success': True})


@csrf_exempt
@require_POST
@api_login_required
def mark_all_notifications_read(request):
    updated = request.user.notifications.filter(is_read=False).update(is_read=True)
    return JsonResponse({'success': True, 'message': 'All notifications marked as read.', 'updated': updated})


@csrf_exempt
@require_http_methods(["DELETE"])
@api_login_required
def delete_notification(request, notification_id):
    deleted, _ = Notification.objects.filter(id=notification_id, user=request.user).delete()
    if not deleted:
        return error_response(404, "not_found", "Notification not found")
    return JsonResponse({'success': True, 'message': 'Notification deleted.'})


# ============================================================================
# SECTION 7: PAYMENTS
# ============================================================================

DEFAULT_PRICE_CENTS = 1000


@csrf_exempt
@require_POST
@api_login_required
def checkout(request):
    """Mock checkout: records a completed transaction without a payment provider."""
    data = parse_json(request)
    payment_type = clean_str(data, 'type')
    if payment_type not in dict(PaymentTransaction.TYPE_CHOICES):
        return error_response(400, "validation_error", "type must be xen_watch or scout_ai")

    currency = clean_str(data, 'currency').upper() or 'USD'
    if len(currency) != 3 or not currency.isalpha():
        return error_response(400, "validation_error", "currency must be a 3-letter ISO code")

    try:
        amount = int(SystemSetting.get_value(f"{payment_type}_price_cents", DEFAULT_PRICE_CENTS))
    except (TypeError, ValueError):
        logger.warning(f"Invalid price setting for {payment_type}; using default")
        amount = DEFAULT_PRICE_CENTS

    payment = PaymentTransaction.objects.create(
        user=request.user,
        type=payment_type,
        amount_cents=amount,
        currency=currency,
        status='completed',
        provider='mock',
        provider_transaction_id=f"mock_{generate_token()[:16]}",
        metadata={'mode': 'mock'},
    )
    log_event('payment_completed', entity_type='payment', entity_id=payment.id,
              metadata={'type': payment_type, 'amountCents': amount})
    notify_system_admins(
        'payment_received',
        'Payment Received',
        f"{request.user.name or request.user.email} paid {amount / 100:.2f} {currency} for {payment_type}",
        entity_type='payment',
        entity_id=payment.id,
        related_user=request.user,
    )
    return JsonResponse({"success": True, "transaction": transaction_to_dict(payment)}, status=201)


@require_GET
@api_login_required
def my_payments(request):
    transactions = request.user.payment_transactions.all()
    return JsonResponse({"transactions": [transaction_to_dict(t) for t in transactions]})


# ============================================================================
# SECTION 8: HEALTH
# ============================================================================

@require_GET
def health(request):
    try:
        connection.ensure_connection()
        db_connected = True
    except DatabaseError as e:
        logger.error(f"Health check database failure: {e}")
        db_connected = False

    return JsonResponse({
        "status": "ok" if db_connected else "degraded",
        "dbConnected": db_connected,
        "cloudinaryConfigured": media.is_configured(),
        "timestamp": timezone.now().isoformat(),
    }, status=200 if db_connected else 503)
