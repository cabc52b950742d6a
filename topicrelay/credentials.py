"""Gateway basic-auth credentials read from mounted secrets."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Mapping

import httpx

from .contracts import CredentialsError

DEFAULT_SECRET_MOUNT_PATH = "/var/secrets/"
USER_FILE = "basic-auth-user"
PASSWORD_FILE = "basic-auth-password"

logger = logging.getLogger(__name__)


def read_basic_auth(secret_mount_path: str | os.PathLike[str]) -> httpx.BasicAuth:
    base = Path(secret_mount_path)
    try:
        user = (base / USER_FILE).read_text().strip()
        password = (base / PASSWORD_FILE).read_text().strip()
    except OSError as exc:
        raise CredentialsError(f"unable to read basic auth from {base}: {exc}") from exc
    return httpx.BasicAuth(user, password)


def get_credentials(environ: Mapping[str, str] | None = None) -> httpx.BasicAuth | None:
    """Return gateway credentials when ``basic_auth`` is enabled in ``environ``.

    ``basic_auth`` accepts ``true`` or ``1``; secrets are read from
    ``secret_mount_path`` (default ``/var/secrets/``).
    """

    env = os.environ if environ is None else environ
    if env.get("basic_auth", "") not in ("true", "1"):
        return None
    mount_path = env.get("secret_mount_path") or DEFAULT_SECRET_MOUNT_PATH
    logger.debug("reading basic auth credentials from %s", mount_path)
    return read_basic_auth(mount_path)
