"""
dkim-manager Settings

Settings are read from the Django settings module, falling back to
the defaults below. The controller's own identity and namespace are
discovered from the pod's service account when not configured.
"""

from django.conf import settings
from functools import lru_cache
from typing import Any
import logging

import jwt

logger = logging.getLogger(__name__)

SERVICE_ACCOUNT_DIR = "/var/run/secrets/kubernetes.io/serviceaccount"
SERVICE_ACCOUNT_TOKEN_PATH = f"{SERVICE_ACCOUNT_DIR}/token"
SERVICE_ACCOUNT_NAMESPACE_PATH = f"{SERVICE_ACCOUNT_DIR}/namespace"

FALLBACK_SERVICE_ACCOUNT = "system:serviceaccount:dkim-manager:dkim-manager-controller-manager"

DEFAULTS = {
    'DKIM_MANAGER_NAMESPACE': '',
    'DKIM_MANAGER_NAMESPACED': False,
    'DKIM_MANAGER_SERVICE_ACCOUNT': '',
    'DKIM_MANAGER_FIELD_MANAGER': 'dkim-manager',
    'DKIM_MANAGER_WEBHOOKS_ENABLED': True,
    'DKIM_MANAGER_RESYNC_INTERVAL': 300,
}


def get_setting(name: str) -> Any:
    """Get a dkim-manager setting, falling back to its default."""
    return getattr(settings, name, DEFAULTS[name])


def read_service_account_subject(token_path: str = SERVICE_ACCOUNT_TOKEN_PATH) -> str:
    """
    Read the username of the pod's service account from its token.

    The token is only inspected, not verified: it is the pod's own
    credential, mounted by the kubelet.

    Returns:
        The 'sub' claim, or FALLBACK_SERVICE_ACCOUNT if it cannot be read
    """
    try:
        with open(token_path) as f:
            token = f.read().strip()
    except OSError as e:
        logger.warning(f"Could not read service account token: {e}")
        return FALLBACK_SERVICE_ACCOUNT

    try:
        claims = jwt.decode(token, options={"verify_signature": False})
    except jwt.InvalidTokenError as e:
        logger.warning(f"Could not parse service account token: {e}")
        return FALLBACK_SERVICE_ACCOUNT

    subject = claims.get("sub")
    if not isinstance(subject, str) or not subject:
        logger.warning("Service account token has no subject claim")
        return FALLBACK_SERVICE_ACCOUNT
    return subject


def read_service_account_namespace(namespace_path: str = SERVICE_ACCOUNT_NAMESPACE_PATH) -> str:
    """Read the pod's namespace, or '' if unavailable."""
    try:
        with open(namespace_path) as f:
            return f.read().strip()
    except OSError as e:
        logger.warning(f"Could not read service account namespace: {e}")
        return ""


@lru_cache(maxsize=1)
def get_token_username() -> str:
    """The service account token subject, read once per process."""
    return read_service_account_subject()


def get_controller_username() -> str:
    """Username the controller authenticates as."""
    return get_setting('DKIM_MANAGER_SERVICE_ACCOUNT') or get_token_username()


def get_watch_namespace() -> str:
    """
    Namespace the controller manages ('' for all namespaces).

    DKIM_MANAGER_NAMESPACE takes precedence over DKIM_MANAGER_NAMESPACED.
    """
    namespace = get_setting('DKIM_MANAGER_NAMESPACE')
    if not namespace and get_setting('DKIM_MANAGER_NAMESPACED'):
        namespace = read_service_account_namespace()
    return namespace
