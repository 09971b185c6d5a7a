"""The lab's authorized_keys file, built from the host user's public keys."""

from __future__ import annotations

import glob
import logging
import os

log = logging.getLogger(__name__)

AUTHZ_KEYS_FILE = "authorized_keys"


def create_authz_keys_file(lab_dir: str, ssh_dir: str | None = None) -> str | None:
    """Concatenate ``*.pub`` and ``authorized_keys`` from ``ssh_dir`` into the lab dir.

    ``ssh_dir`` defaults to ``~/.ssh``. Returns the path of the file written,
    or None when no keys were found.
    """
    ssh_dir = ssh_dir if ssh_dir is not None else os.path.expanduser("~/.ssh")
    files = sorted(glob.glob(os.path.join(ssh_dir, "*.pub")))
    host_keys = os.path.join(ssh_dir, AUTHZ_KEYS_FILE)
    if os.path.isfile(host_keys):
        log.debug("%s found, adding the public keys it contains", host_keys)
        files.append(host_keys)
    if not files:
        log.debug("no public keys found")
        return None
    log.debug("found public key files %s", files)

    content = bytearray()
    for fn in files:
        try:
            with open(fn, "rb") as f:
                content += f.read()
        except OSError as err:
            log.debug("skipping unreadable key file %s: %s", fn, err)

    path = os.path.join(lab_dir, AUTHZ_KEYS_FILE)
    with open(path, "wb") as f:
        f.write(bytes(content))
    # readable by anyone, so that container users can use it
    os.chmod(path, 0o644)
    return path