from .auth import (
    oauth2_scheme,
    create_access_token,
    get_current_user,
    require_roles,
    require_admin
)
from .money import to_money, to_minor_units, from_minor_units

__all__ = [
    "oauth2_scheme",
    "create_access_token",
    "get_current_user",
    "require_roles",
    "require_admin",
    "to_money",
    "to_minor_units",
    "from_minor_units"
]
