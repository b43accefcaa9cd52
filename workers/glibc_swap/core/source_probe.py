"""
Source probe — check that a glibc release archive is downloadable.

Runs before any Docker work so a typo'd or unpublished version fails fast.
Only the status line is read; the archive body is not downloaded.
"""
import logging

import requests

from glibc_swap.errors import NetworkError
from glibc_swap.policy.profile import BuildProfile
from glibc_swap.policy.version import GlibcVersion

logger = logging.getLogger(__name__)


def source_url(archive_url: str, version: GlibcVersion, profile: BuildProfile) -> str:
    return f"{archive_url.rstrip('/')}/{profile.archive_name(version)}"


def probe_source(
    version: GlibcVersion,
    archive_url: str,
    profile: BuildProfile,
    timeout: int = 30,
) -> str:
    """Return the archive URL for *version* if it answers ``200 OK``."""
    url = source_url(archive_url, version, profile)
    logger.info("Accessing %s.", url)

    try:
        with requests.get(url, stream=True, timeout=timeout) as response:
            status, reason = response.status_code, response.reason
    except requests.RequestException as e:
        raise NetworkError(str(e)) from e

    if status != requests.codes.ok:
        raise NetworkError(f'The request failed with a status "{status} {reason}".')

    logger.info("Glibc %s is available.", version)
    return url
