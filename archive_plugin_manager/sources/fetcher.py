"""Archive download and checksum verification."""

import hashlib
import logging
from typing import Optional

import httpx

from ..cancellation import check_cancelled
from ..errors import IntegrityError, InvalidInputError, NetworkError

logger = logging.getLogger(__name__)

CHECKSUM_PREFIX = "sha256:"


def normalize_checksum(value: Optional[str]) -> str:
    """Strip an optional ``sha256:`` prefix and lowercase a declared checksum."""
    if not isinstance(value, str) or not value.strip():
        raise InvalidInputError("Invalid plugin metadata: missing archive checksum")

    checksum = value.strip()
    if checksum.lower().startswith(CHECKSUM_PREFIX):
        checksum = checksum[len(CHECKSUM_PREFIX):]
    return checksum.strip().lower()


def compute_checksum(data: bytes) -> str:
    """SHA-256 digest of ``data`` as lowercase hex."""
    return hashlib.sha256(data).hexdigest()


def verify_checksum(data: bytes, expected: str) -> None:
    """Raise IntegrityError unless ``data`` hashes to ``expected``."""
    actual = compute_checksum(data)
    if actual != normalize_checksum(expected):
        logger.warning(f"Checksum mismatch: expected {expected}, got {actual}")
        raise IntegrityError("Checksum mismatch.")


class ArchiveFetcher:
    """
    Downloads plugin archives into memory and verifies them.

    The whole body is buffered; archive size is bounded only by what the
    registry allows to be published.
    """

    def __init__(self, client: httpx.AsyncClient):
        self.session = client

    async def fetch_and_verify(self, url: str, expected_checksum: str, cancel_token=None) -> bytes:
        """
        Download ``url`` and return its bytes if they match ``expected_checksum``.

        The cancel token is checked before the request, once headers arrive,
        between body chunks and after the body completes.

        Raises:
            CancelledError: if the token fired at any checkpoint
            NetworkError: on transport failure, non-success status or empty body
            IntegrityError: if the digest does not match
        """
        expected = normalize_checksum(expected_checksum)
        check_cancelled(cancel_token)

        logger.info(f"Downloading plugin archive from {url}")
        chunks = []
        try:
            async with self.session.stream("GET", url, follow_redirects=True) as response:
                check_cancelled(cancel_token)

                if not response.is_success:
                    raise NetworkError(
                        f"Failed to download tarball. Status code: {response.status_code}",
                        status_code=response.status_code,
                    )

                async for chunk in response.aiter_bytes():
                    check_cancelled(cancel_token)
                    chunks.append(chunk)
        except httpx.HTTPError as e:
            raise NetworkError(f"Failed to download tarball: {e}") from e

        check_cancelled(cancel_token)

        data = b"".join(chunks)
        if not data:
            raise NetworkError("Download empty")

        verify_checksum(data, expected)
        logger.info(f"Downloaded {len(data)} bytes, checksum verified")
        return data
