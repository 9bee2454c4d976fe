"""Batch input reading and parsing"""

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Tuple, Union

from ..core.errors import MalformedIdentifier
from ..core.identifier import parse_resource_id
from ..core.models import InputRejection, ResourceIdentifier
from .logger import setup_logger

logger = setup_logger("BatchInput")


@dataclass
class BatchLine:
    """A non-comment line of batch input"""
    line_number: int
    text: str


def read_batch_lines(lines: Iterable[str]) -> List[BatchLine]:
    """Drop blank lines and ``#`` comments, keeping original line numbers"""
    batch = []
    for line_number, raw in enumerate(lines, start=1):
        text = raw.strip()
        if not text or text.startswith("#"):
            continue
        batch.append(BatchLine(line_number=line_number, text=text))
    return batch


def load_batch_file(path: Union[str, Path]) -> List[BatchLine]:
    with open(path, "r", encoding="utf-8") as f:
        batch = read_batch_lines(f)
    logger.info(f"Read {len(batch)} resource lines from {path}")
    return batch


def parse_batch(
    batch: Iterable[BatchLine]
) -> Tuple[List[Tuple[BatchLine, ResourceIdentifier]], List[InputRejection]]:
    """Parse each line; malformed lines become rejections instead of aborting the batch"""

    parsed: List[Tuple[BatchLine, ResourceIdentifier]] = []
    rejections: List[InputRejection] = []
    for line in batch:
        try:
            parsed.append((line, parse_resource_id(line.text)))
        except MalformedIdentifier as e:
            logger.warning(f"Line {line.line_number} rejected: {e}")
            rejections.append(InputRejection(
                line_number=line.line_number,
                raw=line.text,
                error_kind=type(e).__name__,
                message=str(e),
            ))
    return parsed, rejections
