from django import template

from lockerroom.roles import role_display_name

register = template.Library()


@register.filter
def role_display(role):
    """
    Human label for a role code, as shown in the app.
    Example: {{ "school_admin"|role_display }} -> "Academy Admin"
    """
    return role_display_name(role)
