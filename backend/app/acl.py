"""Access control list constants and helpers.

The API uses string permission names to authorize actions.  This module
defines all available permissions and maps default permissions for each
user role.  Having these values in one place makes it easy to audit and
update the security model.
"""

PERM_MANAGE_QUIZZES = "manage_quizzes"
PERM_MANAGE_QUESTIONS = "manage_questions"
PERM_MANAGE_STAFF = "manage_staff"
PERM_VIEW_STAFF_PROGRESS = "view_staff_progress"
PERM_TAKE_QUIZZES = "take_quizzes"
PERM_VIEW_NOTIFICATIONS = "view_notifications"

ALL_PERMISSIONS = [
    PERM_MANAGE_QUIZZES,
    PERM_MANAGE_QUESTIONS,
    PERM_MANAGE_STAFF,
    PERM_VIEW_STAFF_PROGRESS,
    PERM_TAKE_QUIZZES,
    PERM_VIEW_NOTIFICATIONS,
]

ROLE_DEFAULT_PERMISSIONS = {
    "admin": ALL_PERMISSIONS,
    "manager": [
        PERM_MANAGE_QUIZZES,
        PERM_MANAGE_QUESTIONS,
        PERM_MANAGE_STAFF,
        PERM_VIEW_STAFF_PROGRESS,
        PERM_VIEW_NOTIFICATIONS,
    ],
    "staff": [PERM_TAKE_QUIZZES],
}


def get_default_permissions_for_role(role: str) -> list[str]:
    return ROLE_DEFAULT_PERMISSIONS.get(role, [])
