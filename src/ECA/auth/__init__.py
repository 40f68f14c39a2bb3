from .deps import Principal, get_current_user, require_auth, require_roles, require_staff

__all__ = ["Principal", "get_current_user", "require_auth", "require_roles", "require_staff"]
