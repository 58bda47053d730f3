"""
Action classification for Docker Engine API requests.

Every intercepted request is reduced to a normalized action id such as
``container_create`` or ``image_list`` before policy evaluation. Policies
are written against these ids, never against raw paths.

How it works:
    1. The query string is dropped
    2. A leading API version prefix (``/v1.41``) is stripped
    3. The remaining path is matched against ROUTES in order
    4. The first route whose method and path match names the action

Requests that match no route are classified as GENERIC_ACTION. This never
fails: policies rarely allow the generic id, so unknown requests end up
denied.
"""

import logging
import re
from dataclasses import dataclass

logger = logging.getLogger(__name__)

GENERIC_ACTION = "unknown"

_VERSION_PREFIX = re.compile(r"^/v\d+(?:\.\d+)?(?=/)")


@dataclass(frozen=True)
class Route:
    """
    A single Docker API route.

    Attributes:
        method: HTTP method
        pattern: Compiled full-match path expression
        action: Action id produced for this route
        read: Whether the route only reads daemon state
    """

    method: str
    pattern: re.Pattern[str]
    action: str
    read: bool


def _route(method: str, path: str, action: str, read: bool | None = None) -> Route:
    if read is None:
        read = method in ("GET", "HEAD")
    return Route(method=method, pattern=re.compile(path), action=action, read=read)


_ID = r"[^/]+"
# Image references may contain slashes (registry/namespace/name:tag)
_NAME = r".+"

ROUTES: tuple[Route, ...] = (
    # Containers
    _route("GET", r"/containers/json", "container_list"),
    _route("POST", r"/containers/create", "container_create"),
    _route("POST", r"/containers/prune", "container_prune"),
    _route("GET", rf"/containers/{_ID}/json", "container_inspect"),
    _route("GET", rf"/containers/{_ID}/top", "container_top"),
    _route("GET", rf"/containers/{_ID}/logs", "container_logs"),
    _route("GET", rf"/containers/{_ID}/changes", "container_changes"),
    _route("GET", rf"/containers/{_ID}/export", "container_export"),
    _route("GET", rf"/containers/{_ID}/stats", "container_stats"),
    _route("GET", rf"/containers/{_ID}/attach/ws", "container_attach_websocket", read=False),
    _route("POST", rf"/containers/{_ID}/attach", "container_attach"),
    _route("POST", rf"/containers/{_ID}/resize", "container_resize"),
    _route("POST", rf"/containers/{_ID}/start", "container_start"),
    _route("POST", rf"/containers/{_ID}/stop", "container_stop"),
    _route("POST", rf"/containers/{_ID}/restart", "container_restart"),
    _route("POST", rf"/containers/{_ID}/kill", "container_kill"),
    _route("POST", rf"/containers/{_ID}/update", "container_update"),
    _route("POST", rf"/containers/{_ID}/rename", "container_rename"),
    _route("POST", rf"/containers/{_ID}/pause", "container_pause"),
    _route("POST", rf"/containers/{_ID}/unpause", "container_unpause"),
    _route("POST", rf"/containers/{_ID}/wait", "container_wait"),
    _route("POST", rf"/containers/{_ID}/exec", "container_exec_create"),
    _route("HEAD", rf"/containers/{_ID}/archive", "container_archive_info"),
    _route("GET", rf"/containers/{_ID}/archive", "container_archive"),
    _route("PUT", rf"/containers/{_ID}/archive", "container_archive_extract"),
    _route("DELETE", rf"/containers/{_ID}", "container_delete"),
    # Exec
    _route("POST", rf"/exec/{_ID}/start", "container_exec_start"),
    _route("POST", rf"/exec/{_ID}/resize", "container_exec_resize"),
    _route("GET", rf"/exec/{_ID}/json", "container_exec_inspect"),
    # Images
    _route("GET", r"/images/json", "image_list"),
    _route("GET", r"/images/search", "image_search"),
    _route("GET", r"/images/get", "image_save"),
    _route("POST", r"/images/create", "image_create"),
    _route("POST", r"/images/load", "image_load"),
    _route("POST", r"/images/prune", "image_prune"),
    _route("GET", rf"/images/{_NAME}/json", "image_inspect"),
    _route("GET", rf"/images/{_NAME}/history", "image_history"),
    _route("GET", rf"/images/{_NAME}/get", "image_save"),
    _route("POST", rf"/images/{_NAME}/push", "image_push"),
    _route("POST", rf"/images/{_NAME}/tag", "image_tag"),
    _route("DELETE", rf"/images/{_NAME}", "image_delete"),
    _route("POST", r"/build", "image_build"),
    _route("POST", r"/build/prune", "image_build_prune"),
    _route("POST", r"/commit", "image_commit"),
    # Distribution
    _route("GET", rf"/distribution/{_NAME}/json", "image_distribution_inspect"),
    # System
    _route("POST", r"/auth", "docker_check_auth"),
    _route("GET", r"/info", "docker_info"),
    _route("GET", r"/version", "docker_version"),
    _route("GET", r"/_ping", "docker_ping"),
    _route("HEAD", r"/_ping", "docker_ping"),
    _route("GET", r"/events", "docker_events"),
    _route("GET", r"/system/df", "docker_disk_usage"),
    # Volumes
    _route("GET", r"/volumes", "volume_list"),
    _route("POST", r"/volumes/create", "volume_create"),
    _route("POST", r"/volumes/prune", "volume_prune"),
    _route("GET", rf"/volumes/{_ID}", "volume_inspect"),
    _route("DELETE", rf"/volumes/{_ID}", "volume_remove"),
    # Networks
    _route("GET", r"/networks", "network_list"),
    _route("POST", r"/networks/create", "network_create"),
    _route("POST", r"/networks/prune", "network_prune"),
    _route("GET", rf"/networks/{_ID}", "network_inspect"),
    _route("POST", rf"/networks/{_ID}/connect", "network_connect"),
    _route("POST", rf"/networks/{_ID}/disconnect", "network_disconnect"),
    _route("DELETE", rf"/networks/{_ID}", "network_remove"),
    # Plugins
    _route("GET", r"/plugins", "plugin_list"),
    _route("GET", r"/plugins/privileges", "plugin_privileges"),
    _route("POST", r"/plugins/pull", "plugin_pull"),
    _route("POST", r"/plugins/create", "plugin_create"),
    _route("GET", rf"/plugins/{_NAME}/json", "plugin_inspect"),
    _route("POST", rf"/plugins/{_NAME}/enable", "plugin_enable"),
    _route("POST", rf"/plugins/{_NAME}/disable", "plugin_disable"),
    _route("POST", rf"/plugins/{_NAME}/upgrade", "plugin_upgrade"),
    _route("POST", rf"/plugins/{_NAME}/push", "plugin_push"),
    _route("POST", rf"/plugins/{_NAME}/set", "plugin_set"),
    _route("DELETE", rf"/plugins/{_NAME}", "plugin_remove"),
    # Swarm
    _route("GET", r"/swarm", "swarm_inspect"),
    _route("POST", r"/swarm/init", "swarm_init"),
    _route("POST", r"/swarm/join", "swarm_join"),
    _route("POST", r"/swarm/leave", "swarm_leave"),
    _route("POST", r"/swarm/update", "swarm_update"),
    _route("GET", r"/swarm/unlockkey", "swarm_unlock_key", read=False),
    _route("POST", r"/swarm/unlock", "swarm_unlock"),
    # Nodes
    _route("GET", r"/nodes", "node_list"),
    _route("GET", rf"/nodes/{_ID}", "node_inspect"),
    _route("POST", rf"/nodes/{_ID}/update", "node_update"),
    _route("DELETE", rf"/nodes/{_ID}", "node_remove"),
    # Services
    _route("GET", r"/services", "service_list"),
    _route("POST", r"/services/create", "service_create"),
    _route("GET", rf"/services/{_ID}/logs", "service_logs"),
    _route("POST", rf"/services/{_ID}/update", "service_update"),
    _route("GET", rf"/services/{_ID}", "service_inspect"),
    _route("DELETE", rf"/services/{_ID}", "service_remove"),
    # Tasks
    _route("GET", r"/tasks", "task_list"),
    _route("GET", rf"/tasks/{_ID}/logs", "task_logs"),
    _route("GET", rf"/tasks/{_ID}", "task_inspect"),
    # Secrets
    _route("GET", r"/secrets", "secret_list"),
    _route("POST", r"/secrets/create", "secret_create"),
    _route("GET", rf"/secrets/{_ID}", "secret_inspect"),
    _route("POST", rf"/secrets/{_ID}/update", "secret_update"),
    _route("DELETE", rf"/secrets/{_ID}", "secret_remove"),
    # Configs
    _route("GET", r"/configs", "config_list"),
    _route("POST", r"/configs/create", "config_create"),
    _route("GET", rf"/configs/{_ID}", "config_inspect"),
    _route("POST", rf"/configs/{_ID}/update", "config_update"),
    _route("DELETE", rf"/configs/{_ID}", "config_remove"),
)

READ_ACTIONS: frozenset[str] = frozenset(r.action for r in ROUTES if r.read)


def normalize_path(uri: str) -> str:
    """
    Reduce a request URI to the path used for route matching.

    Examples:
        /v1.41/containers/json?all=1 -> /containers/json
        /containers/abc/start/ -> /containers/abc/start
    """
    path = uri.split("?", 1)[0].split("#", 1)[0] or "/"
    path = _VERSION_PREFIX.sub("", path)
    if len(path) > 1:
        path = path.rstrip("/")
    return path


def find_route(method: str, uri: str) -> Route | None:
    """Return the first route matching the request, if any."""
    method = method.upper()
    path = normalize_path(uri)
    for route in ROUTES:
        if route.method == method and route.pattern.fullmatch(path):
            return route
    return None


def classify(method: str, uri: str) -> str:
    """
    Map a raw (method, uri) pair to a normalized action id.

    Unknown requests yield GENERIC_ACTION instead of an error.
    """
    route = find_route(method, uri)
    if route is None:
        logger.debug("No route for %s %s, using generic action", method, uri)
        return GENERIC_ACTION
    return route.action


def is_read_action(action: str) -> bool:
    """Whether an action id only reads daemon state."""
    return action in READ_ACTIONS
