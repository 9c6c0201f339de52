"""
================================================================================
LOCKERROOM - URL CONFIGURATION
================================================================================

@file        urls.py
@description JSON API routing for the LockerRoom platform

MODULE PURPOSE
================================================================================
Maps every /api/ path to its view function. Routes are grouped by area:

1. Authentication & Profile
2. Uploads & Placeholders
3. Feed, Posts & Interactions
4. Students, Follows & Ratings
5. Notifications
6. Announcements & Banners
7. System Administration (schools, admins, applications, settings)
8. School Administration
9. Analytics
10. Payments & Health

NAMING CONVENTIONS
================================================================================
- Paths are kebab-case under /api/, without trailing slashes
- URL names are underscore_case and match the view function name
- Numeric ids use <int:...>; setting keys and placeholder kinds use <str:...>

AUTHENTICATION
================================================================================
Views authenticate with a bearer token (see auth.py). Role checks live on the
views themselves, not in this file.

================================================================================
"""

from django.urls import path

from . import admin_views, analytics_views, views


urlpatterns = [

    # ========================================================================
    # SECTION 1: AUTHENTICATION & PROFILE
    # ========================================================================

    path("api/auth/register", views.register, name="register"),
    path("api/auth/login", views.login_view, name="login"),
    path("api/auth/google", views.google_login, name="google_login"),
    path("api/auth/verify-email", views.verify_email, name="verify_email"),
    path("api/auth/resend-verification", views.resend_verification, name="resend_verification"),
    path("api/auth/forgot-password", views.forgot_password, name="forgot_password"),
    path("api/auth/reset-password", views.reset_password, name="reset_password"),
    path("api/auth/set-password", views.set_password, name="set_password"),  # OTP accounts
    path("api/auth/change-password", views.change_password, name="change_password"),
    path("api/auth/me", views.me, name="me"),

    path("api/profile", views.profile, name="profile"),
    path("api/profile/picture", views.profile_picture, name="profile_picture"),


    # ========================================================================
    # SECTION 2: UPLOADS & PLACEHOLDERS
    # ========================================================================

    path("api/upload/image", views.upload_image, name="upload_image"),
    path("api/placeholder/<str:kind>", views.placeholder, name="placeholder"),


    # ========================================================================
    # SECTION 3: FEED, POSTS & INTERACTIONS
    # ========================================================================

    path("api/posts", views.posts, name="posts"),  # GET feed, POST create
    path("api/posts/<int:post_id>", views.post_detail, name="post_detail"),
    path("api/posts/<int:post_id>/retry", views.retry_post, name="retry_post"),
    path("api/posts/<int:post_id>/like", views.like_post, name="like_post"),
    path("api/posts/<int:post_id>/save", views.save_post, name="save_post"),
    path("api/posts/<int:post_id>/comments", views.post_comments, name="post_comments"),
    path("api/posts/<int:post_id>/view", views.record_view, name="record_view"),
    path("api/posts/<int:post_id>/report", views.report_post, name="report_post"),
    path("api/comments/<int:comment_id>", views.delete_comment, name="delete_comment"),
    path("api/saved-posts", views.saved_posts, name="saved_posts"),


    # ========================================================================
    # SECTION 4: STUDENTS, FOLLOWS & RATINGS
    # ========================================================================

    path("api/students/<int:student_id>", views.student_detail, name="student_detail"),
    path("api/students/<int:student_id>/posts", views.student_posts, name="student_posts"),
    path("api/students/<int:student_id>/follow", views.follow_student, name="follow_student"),
    path("api/students/<int:student_id>/followers", views.student_followers, name="student_followers"),
    path("api/students/<int:student_id>/ratings", views.student_ratings, name="student_ratings"),
    path("api/ratings/<int:rating_id>", views.rating_detail, name="rating_detail"),
    path("api/users/me/following", views.my_following, name="my_following"),
    path("api/search/students", views.search_students, name="search_students"),


    # ========================================================================
    # SECTION 5: NOTIFICATIONS
    # ========================================================================

    path("api/notifications", views.notifications, name="notifications"),
    path("api/notifications/unread-count", views.unread_count, name="unread_count"),
    path("api/notifications/read-all", views.mark_all_notifications_read, name="mark_all_notifications_read"),
    path("api/notifications/<int:notification_id>", views.delete_notification, name="delete_notification"),
    path("api/notifications/<int:notification_id>/read", views.mark_notification_read,
         name="mark_notification_read"),


    # ========================================================================
    # SECTION 6: ANNOUNCEMENTS & BANNERS
    # ========================================================================

    path("api/announcements", admin_views.announcements, name="announcements"),
    path("api/announcements/<int:announcement_id>", admin_views.announcement_detail, name="announcement_detail"),
    path("api/system-admin/announcements", admin_views.global_announcements, name="global_announcements"),
    path("api/schools/<int:school_id>/announcements", admin_views.school_announcements,
         name="school_announcements"),

    path("api/banners/active", admin_views.active_banners, name="active_banners"),
    path("api/system-admin/banners", admin_views.banners, name="banners"),
    path("api/system-admin/banners/<int:banner_id>", admin_views.banner_detail, name="banner_detail"),


    # ========================================================================
    # SECTION 7: SYSTEM ADMINISTRATION
    # ========================================================================

    path("api/system-admin/stats", admin_views.platform_stats, name="platform_stats"),
    path("api/system-admin/schools", admin_views.schools, name="schools"),
    path("api/system-admin/schools/<int:school_id>", admin_views.school_detail, name="school_detail"),
    path("api/system-admin/schools/<int:school_id>/disable", admin_views.disable_school, name="disable_school"),
    path("api/system-admin/schools/<int:school_id>/enable", admin_views.enable_school, name="enable_school"),
    path("api/system-admin/schools/<int:school_id>/renew", admin_views.renew_school, name="renew_school"),
    path("api/system-admin/schools/<int:school_id>/student-limit", admin_views.update_student_limit,
         name="update_student_limit"),
    path("api/system-admin/schools/<int:school_id>/profile-pic", admin_views.school_profile_picture,
         name="school_profile_picture"),
    path("api/system-admin/schools/<int:school_id>/admins", admin_views.school_admins, name="school_admins"),
    path("api/system-admin/school-admins", admin_views.create_school_admin, name="create_school_admin"),

    path("api/admin/admins", admin_views.admins, name="admins"),
    path("api/admin/admins/<int:admin_id>", admin_views.delete_admin, name="delete_admin"),
    path("api/admin/admins/<int:admin_id>/disable", admin_views.disable_admin, name="disable_admin"),
    path("api/admin/admins/<int:admin_id>/enable", admin_views.enable_admin, name="enable_admin"),

    path("api/school-applications", admin_views.apply_school, name="apply_school"),  # public
    path("api/admin/school-applications", admin_views.school_applications, name="school_applications"),
    path("api/admin/school-applications/<int:application_id>/approve", admin_views.approve_application,
         name="approve_application"),
    path("api/admin/school-applications/<int:application_id>/reject", admin_views.reject_application,
         name="reject_application"),

    path("api/admin/system-settings", admin_views.system_settings, name="system_settings"),
    path("api/admin/system-settings/<str:key>", admin_views.delete_system_setting, name="delete_system_setting"),


    # ========================================================================
    # SECTION 8: SCHOOL ADMINISTRATION
    # ========================================================================

    path("api/school-admin/enrollment-status", admin_views.school_enrollment_status,
         name="school_enrollment_status"),
    path("api/school-admin/students", admin_views.add_student, name="add_student"),
    path("api/schools/<int:school_id>/students", admin_views.school_students, name="school_students"),
    path("api/schools/<int:school_id>/stats", admin_views.school_stats, name="school_stats"),
    path("api/schools/<int:school_id>/settings", admin_views.school_settings, name="school_settings"),
    path("api/schools/<int:school_id>/settings/<str:key>", admin_views.delete_school_setting,
         name="delete_school_setting"),


    # ========================================================================
    # SECTION 9: ANALYTICS
    # ========================================================================

    path("api/students/<int:student_id>/analytics", analytics_views.student_analytics,
         name="student_analytics"),
    path("api/students/<int:student_id>/performance", analytics_views.student_performance,
         name="student_performance"),
    path("api/schools/<int:school_id>/analytics", analytics_views.school_analytics, name="school_analytics"),
    path("api/analytics/log", analytics_views.log_analytics_event, name="log_analytics_event"),
    path("api/analytics/logs", analytics_views.analytics_logs, name="analytics_logs"),
    path("api/analytics/stats", analytics_views.analytics_stats, name="analytics_stats"),


    # ========================================================================
    # SECTION 10: PAYMENTS & HEALTH
    # ========================================================================

    path("api/payments/checkout", views.checkout, name="checkout"),
    path("api/payments/me", views.my_payments, name="my_payments"),
    path("api/health", views.health, name="health"),
]
