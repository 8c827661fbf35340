from __future__ import annotations

import logging
import os

import urllib3
from kubernetes import client, config
from kubernetes.client.exceptions import ApiException

from .errors import ConfigError

logger = logging.getLogger(__name__)

# Errors raised by CoreV1Api calls: API status errors and transport failures.
API_ERRORS: tuple[type[BaseException], ...] = (ApiException, urllib3.exceptions.HTTPError, OSError)

# Seconds before a single API call is abandoned.
DEFAULT_REQUEST_TIMEOUT = 30


def core_api(kubeconfig: str | None = None) -> client.CoreV1Api:
    """Return a CoreV1Api client.

    The kubeconfig ($KUBECONFIG, else ~/.kube/config) wins; when none can be
    loaded we assume we run inside a pod and use the service account.
    """
    path = kubeconfig or os.getenv("KUBECONFIG") or os.path.join(os.path.expanduser("~"), ".kube", "config")
    try:
        config.load_kube_config(config_file=path)
        logger.info("Loaded kubeconfig from %s", path)
    except (config.ConfigException, OSError):
        logger.info("No kubeconfig found. Using in-cluster config...")
        try:
            config.load_incluster_config()
        except config.ConfigException as e:
            raise ConfigError(f"no usable Kubernetes configuration: {e}") from e
    return client.CoreV1Api()


def api_status(exc: BaseException) -> int | None:
    if isinstance(exc, ApiException):
        return exc.status
    return None


def is_not_found(exc: BaseException) -> bool:
    return api_status(exc) == 404


def describe(exc: BaseException) -> str:
    """Short, single-line description of an API error for logs."""
    if isinstance(exc, ApiException):
        return f"HTTP {exc.status} {exc.reason or ''}".strip()
    return f"{type(exc).__name__}: {exc}"
