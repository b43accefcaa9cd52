"""
Schema — Pydantic model for the build receipt stored in each cache entry.

One receipt per successful build:
    <root>/glibc-<version>/receipt.json

Runtime contract fields (present in every receipt):
  package_name, package_version, schema_version, profile_id.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from glibc_swap import PACKAGE_NAME, RECEIPT_SCHEMA_VERSION, __version__


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class StageStatus(str, Enum):
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class StageRecord(BaseModel):
    """Outcome of one build stage."""
    description: str
    cwd: str
    argv: List[str]
    status: StageStatus
    duration_s: float = 0.0


class BuildReceipt(BaseModel):
    """What was built, from where, and how long each stage took."""

    package_name: str = PACKAGE_NAME
    package_version: str = __version__
    schema_version: str = RECEIPT_SCHEMA_VERSION
    profile_id: str

    glibc_version: str
    source_url: str
    image: str
    jobs: int

    started_at: str = Field(default_factory=now_iso)
    finished_at: Optional[str] = None

    stages: List[StageRecord] = Field(default_factory=list)
