from typing import Optional

ROLES = ("SUPER_ADMIN", "ADMIN", "BRANCH_LEADER", "MEMBER", "GUEST")
ADMIN_ROLES = ("SUPER_ADMIN", "ADMIN")

PERMISSION_KEYS = (
    # Viewing
    "view_family_tree",
    "view_member_profiles",
    "view_member_contact",
    "view_member_photos",
    "view_analytics",
    "view_change_history",
    # Member management
    "add_member",
    "edit_member",
    "delete_member",
    "suggest_edit",
    "approve_pending_members",
    # Data operations
    "export_data",
    "import_data",
    "create_snapshot",
    "restore_snapshot",
    # User management
    "view_users",
    "invite_users",
    "approve_access_requests",
    "change_user_roles",
    "disable_users",
    # System settings
    "manage_site_settings",
    "manage_privacy_settings",
    "manage_permission_matrix",
    "view_audit_logs",
    "manage_branch_links",
)

_GUEST = {"view_family_tree"}

_MEMBER = _GUEST | {
    "view_member_profiles",
    "view_member_contact",
    "view_member_photos",
    "view_analytics",
    "suggest_edit",
}

# Branch-scoped: see can_act_on_branch
_BRANCH_LEADER = _MEMBER | {
    "view_change_history",
    "add_member",
    "edit_member",
    "approve_pending_members",
    "invite_users",
    "manage_branch_links",
}

_ADMIN = _BRANCH_LEADER | {
    "export_data",
    "create_snapshot",
    "view_users",
    "approve_access_requests",
    "change_user_roles",
    "view_audit_logs",
}

DEFAULT_PERMISSION_MATRIX: dict[str, dict[str, bool]] = {
    role: {key: key in granted for key in PERMISSION_KEYS}
    for role, granted in (
        ("GUEST", _GUEST),
        ("MEMBER", _MEMBER),
        ("BRANCH_LEADER", _BRANCH_LEADER),
        ("ADMIN", _ADMIN),
        ("SUPER_ADMIN", set(PERMISSION_KEYS)),
    )
}


def has_permission(role: Optional[str], permission: str) -> bool:
    return DEFAULT_PERMISSION_MATRIX.get(role, {}).get(permission, False)


def can_act_on_branch(
    role: str,
    user_branch: Optional[str],
    target_branch: Optional[str],
    permission: str,
) -> bool:
    """
    Admins act on any branch; branch leaders only inside their assigned one.
    """
    if role in ADMIN_ROLES:
        return has_permission(role, permission)

    if role == "BRANCH_LEADER":
        if not user_branch or not target_branch or user_branch != target_branch:
            return False

    return has_permission(role, permission)


def get_assignable_roles(role: str) -> list[str]:
    if role == "SUPER_ADMIN":
        return list(ROLES)
    if role == "ADMIN":
        return ["ADMIN", "BRANCH_LEADER", "MEMBER", "GUEST"]
    if role == "BRANCH_LEADER":
        return ["MEMBER"]
    return []
