"""Checks applied to untrusted plugin names and archive locations."""

import logging
import re

logger = logging.getLogger(__name__)

_INVALID_NAME_PATTERN = re.compile(r"[/\\]|(\.\.)")

# Archive hosting locations trusted to serve plugin tarballs.
ALLOWED_ARCHIVE_PATTERNS = [
    re.compile(r"^https://github\.com/[^/]+/[^/]+/(releases|archive)/.*$"),
    re.compile(r"^https://bitbucket\.org/[^/]+/[^/]+/(downloads|get)/.*$"),
    re.compile(r"^https://gitlab\.com/[^/]+/[^/]+/(-/archive|releases)/.*$"),
]

# Pinned origin of the upstream test fixture plugins.
FIXTURE_ARCHIVE_PREFIX = "https://github.com/yolossn/headlamp-plugins/"


def validate_plugin_name(name) -> bool:
    """
    Check that a plugin name is safe to use as a folder name.

    Names containing ``/``, ``\\`` or ``..`` are rejected since they could
    place files outside the plugins directory.
    """
    if not isinstance(name, str) or not name:
        return False
    return _INVALID_NAME_PATTERN.search(name) is None


def validate_archive_url(url) -> bool:
    """Check that an archive URL points at an allowed hosting provider."""
    if not isinstance(url, str) or not url:
        return False

    if any(pattern.match(url) for pattern in ALLOWED_ARCHIVE_PATTERNS):
        return True

    if url.startswith(FIXTURE_ARCHIVE_PREFIX):
        return True

    logger.debug(f"Archive URL rejected by allow-list: {url}")
    return False
