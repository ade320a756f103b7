"""Integrity digests for release artifacts.

Packaging recipes pin both a SHA-256 and a SHA-512 of the upstream tarball.
Both digests are computed from a single streamed download so they always
describe the same bytes, even if the remote file changes between requests.
"""

from __future__ import annotations

import hashlib
import http.client
import ssl
import urllib.error
import urllib.request
from collections.abc import Callable
from dataclasses import dataclass
from typing import Literal, Protocol

from postrel.core.result import Err, Ok, Result

__all__ = [
    "ChecksumError",
    "ChecksumPair",
    "ReleaseArtifacts",
    "compute_checksums",
    "fetch_release_artifacts",
]

_CHUNK_SIZE = 64 * 1024
_USER_AGENT = "postrel/0.1.0"
_TIMEOUT_SECONDS = 5 * 60.0


class _Body(Protocol):
    def read(self, amt: int, /) -> bytes: ...

    def close(self) -> None: ...


Opener = Callable[[str], _Body]


@dataclass(frozen=True, slots=True)
class ChecksumError:
    """Failure while computing checksums.

    Attributes:
        url: The artifact URL.
        kind: "fetch" if the request failed or returned an error status,
            "read" if the body broke off partway through.
        message: Human-readable detail.
    """

    url: str
    kind: Literal["fetch", "read"]
    message: str

    def __str__(self) -> str:
        return f"{self.kind} {self.url}: {self.message}"


@dataclass(frozen=True, slots=True)
class ChecksumPair:
    sha256: str
    sha512: str


def _urlopen(url: str) -> _Body:
    req = urllib.request.Request(url, headers={"User-Agent": _USER_AGENT})
    return urllib.request.urlopen(
        req, timeout=_TIMEOUT_SECONDS, context=ssl.create_default_context()
    )


def compute_checksums(
    url: str,
    *,
    opener: Opener = _urlopen,
    chunk_size: int = _CHUNK_SIZE,
) -> Result[ChecksumPair, ChecksumError]:
    """Download ``url`` once and return its SHA-256 and SHA-512 digests.

    The body is streamed in chunks, never held in memory as a whole.
    No digest is returned unless the full body was read.

    Args:
        url: Artifact to fetch.
        opener: Returns a readable response for a URL. Raises on failure.
        chunk_size: Bytes per read.

    Returns:
        Ok(ChecksumPair) or Err(ChecksumError).
    """
    try:
        body = opener(url)
    except urllib.error.HTTPError as e:
        return Err(ChecksumError(url=url, kind="fetch", message=f"HTTP {e.code}: {e.reason}"))
    except urllib.error.URLError as e:
        return Err(ChecksumError(url=url, kind="fetch", message=str(e.reason)))
    except (OSError, ValueError) as e:
        return Err(ChecksumError(url=url, kind="fetch", message=str(e)))

    s256 = hashlib.sha256()
    s512 = hashlib.sha512()
    try:
        while True:
            chunk = body.read(chunk_size)
            if not chunk:
                break
            s256.update(chunk)
            s512.update(chunk)
    except (OSError, ValueError, http.client.HTTPException) as e:
        return Err(ChecksumError(url=url, kind="read", message=str(e) or type(e).__name__))
    finally:
        body.close()

    return Ok(ChecksumPair(sha256=s256.hexdigest(), sha512=s512.hexdigest()))


@dataclass(frozen=True, slots=True)
class ReleaseArtifacts:
    """Download locations and digests of one upstream release."""

    release_url: str
    release: ChecksumPair
    archive_url: str
    archive: ChecksumPair


def fetch_release_artifacts(
    *,
    release_url: str,
    archive_url: str,
    opener: Opener = _urlopen,
) -> Result[ReleaseArtifacts, ChecksumError]:
    release = compute_checksums(release_url, opener=opener)
    if isinstance(release, Err):
        return release
    archive = compute_checksums(archive_url, opener=opener)
    if isinstance(archive, Err):
        return archive
    return Ok(
        ReleaseArtifacts(
            release_url=release_url,
            release=release.value,
            archive_url=archive_url,
            archive=archive.value,
        )
    )
