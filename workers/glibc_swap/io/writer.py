"""
Writer — serialize the build receipt next to the cached libraries.
"""
import json
import logging
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from glibc_swap.io.schema import BuildReceipt

logger = logging.getLogger(__name__)

RECEIPT_NAME = "receipt.json"


def write_receipt(receipt: BuildReceipt, entry_dir: Path) -> Path:
    """
    Write receipt.json into *entry_dir*.

    *entry_dir* must already exist.  Returns the receipt path.
    """
    path = entry_dir / RECEIPT_NAME
    path.write_text(
        json.dumps(
            receipt.model_dump(mode="json"),
            indent=2,
            sort_keys=True,
        )
        + "\n"
    )
    return path


def read_receipt(entry_dir: Path) -> Optional[BuildReceipt]:
    """Load receipt.json from *entry_dir*; None if absent or unreadable."""
    path = entry_dir / RECEIPT_NAME
    if not path.is_file():
        return None
    try:
        return BuildReceipt.model_validate_json(path.read_text())
    except (OSError, ValidationError) as e:
        logger.warning("Ignoring unreadable receipt %s: %s", path, e)
        return None
