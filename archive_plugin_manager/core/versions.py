"""Semantic version ordering and npm-style compatibility ranges."""

import nodesemver
import semver

from ..errors import InvalidInputError


def parse_version(text) -> semver.Version:
    """Parse a version string, tolerating a leading ``v`` and missing minor/patch."""
    if isinstance(text, semver.Version):
        return text
    if not isinstance(text, str) or not text.strip():
        raise InvalidInputError(f"Invalid version: {text!r}")

    cleaned = text.strip().lstrip("=v").strip()
    try:
        return semver.Version.parse(cleaned, optional_minor_and_patch=True)
    except (ValueError, TypeError) as e:
        raise InvalidInputError(f"Invalid version: {text!r}") from e


def is_newer(candidate, current) -> bool:
    """True if ``candidate`` is strictly greater than ``current``."""
    return parse_version(candidate) > parse_version(current)


def satisfies(version, range_expr: str) -> bool:
    """
    Check whether ``version`` falls inside an npm-style range expression.

    Range semantics (``||``, hyphen ranges, caret, tilde, x-ranges and the
    prerelease rule) are those of node-semver. ``version`` is normalized
    first, so ``0.25`` is read as ``0.25.0``.

    Raises:
        InvalidInputError: if the version or the range cannot be parsed
    """
    normalized = str(parse_version(version))

    if not isinstance(range_expr, str) or nodesemver.valid_range(range_expr, False) is None:
        raise InvalidInputError(f"Invalid version range: {range_expr!r}")

    try:
        return bool(nodesemver.satisfies(normalized, range_expr, False))
    except (ValueError, TypeError) as e:
        raise InvalidInputError(f"Could not match {normalized} against {range_expr!r}: {e}") from e
