DASHBOARD = {"label": "Dashboard", "url": "dashboard"}
LOAD_BOARD = {"label": "Load Board", "url": "loads_list"}
POST_LOAD = {"label": "Post Load", "url": "create_load"}

SIDEBAR_BY_ROLE = {
    "shipper": [DASHBOARD, POST_LOAD, LOAD_BOARD],
    "carrier": [DASHBOARD, LOAD_BOARD],
    "admin": [DASHBOARD, LOAD_BOARD, POST_LOAD],
}


def get_sidebar_items(user):
    """Sidebar links for the user's role; empty for anonymous users."""
    if getattr(user, "is_superuser", False):
        return list(SIDEBAR_BY_ROLE["admin"])
    return list(SIDEBAR_BY_ROLE.get(getattr(user, "role", None), []))
