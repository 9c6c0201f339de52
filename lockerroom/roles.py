"""
Role codes, hierarchy and display names.

Role codes are stored on User.role and embedded in bearer tokens. The UI
labels some roles differently from their codes ("school_admin" is shown as
"Academy Admin", "student" as "Player").
"""

SYSTEM_ADMIN = 'system_admin'
MODERATOR = 'moderator'
SCOUT_ADMIN = 'scout_admin'
XEN_SCOUT = 'xen_scout'
FINANCE = 'finance'
SUPPORT = 'support'
COACH = 'coach'
ANALYST = 'analyst'
SCHOOL_ADMIN = 'school_admin'
STUDENT = 'student'
VIEWER = 'viewer'

# Higher number means more privileges
ROLE_HIERARCHY = {
    SYSTEM_ADMIN: 10,
    MODERATOR: 8,
    SCOUT_ADMIN: 7,
    XEN_SCOUT: 6,
    FINANCE: 5,
    SUPPORT: 5,
    COACH: 5,
    ANALYST: 5,
    SCHOOL_ADMIN: 4,
    STUDENT: 2,
    VIEWER: 1,
}

ROLES = list(ROLE_HIERARCHY)

ROLE_CHOICES = [
    (SYSTEM_ADMIN, 'System Admin'),
    (MODERATOR, 'Moderator'),
    (SCOUT_ADMIN, 'Scout Admin'),
    (XEN_SCOUT, 'XEN Scout'),
    (FINANCE, 'Finance'),
    (SUPPORT, 'Support'),
    (COACH, 'Coach'),
    (ANALYST, 'Analyst'),
    (SCHOOL_ADMIN, 'Academy Admin'),
    (STUDENT, 'Player'),
    (VIEWER, 'Viewer'),
]

# Roles a system admin can create from admin management
ADMIN_ROLES = [SYSTEM_ADMIN, MODERATOR, SCOUT_ADMIN, XEN_SCOUT, FINANCE, SUPPORT, COACH, ANALYST]

SCOUT_ROLES = (SCOUT_ADMIN, XEN_SCOUT)

# Pseudo-role used by banners to target the XEN Watch audience
XEN_WATCH_AUDIENCE = 'xen_watch'
XEN_WATCH_ROLES = (STUDENT, VIEWER)

DEFAULT_ADMIN_PERMISSIONS = {
    SYSTEM_ADMIN: ['*'],
    MODERATOR: ['moderate_posts', 'view_reports'],
    SCOUT_ADMIN: ['manage_scouts', 'rate_students', 'view_students'],
    XEN_SCOUT: ['rate_students', 'view_students'],
    FINANCE: ['view_payments', 'view_analytics'],
    SUPPORT: ['view_users'],
    COACH: ['view_students'],
    ANALYST: ['view_analytics'],
}

_DISPLAY_OVERRIDES = {
    SCHOOL_ADMIN: 'Academy Admin',
    STUDENT: 'Player',
    XEN_SCOUT: 'XEN Scout',
    'school': 'Academy',
    'schools': 'Academies',
}


def has_role_permission(user_role, required_role):
    """True when ``user_role`` ranks at or above ``required_role``."""
    return ROLE_HIERARCHY.get(user_role, 0) >= ROLE_HIERARCHY.get(required_role, 0)


def is_system_admin(role):
    return role == SYSTEM_ADMIN


def is_scout_role(role):
    return role in SCOUT_ROLES


def requires_otp(role):
    """Scouts always sign in with an XEN ID and one-time password first."""
    return is_scout_role(role)


def role_display_name(role):
    if not role:
        return ''
    if role in _DISPLAY_OVERRIDES:
        return _DISPLAY_OVERRIDES[role]
    return role.replace('_', ' ').title()
