"""Single-part vs multipart upload selection."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

# S3 limits
MAXIMUM_UPLOAD_PARTS_COUNT = 10000
MINIMUM_UPLOAD_PART_SIZE = 5 * 1024 * 1024


class UploadStrategy(str, Enum):
    SINGLE = "single"
    MULTIPART = "multipart"


@dataclass(frozen=True, slots=True)
class UploadPlan:
    """How a payload of a given size is sent to the store."""

    strategy: UploadStrategy
    part_size: int | None = None

    def __post_init__(self) -> None:
        if self.is_multipart and (self.part_size is None or self.part_size <= 0):
            raise ValueError("multipart plans need a positive part_size")

    @property
    def is_multipart(self) -> bool:
        return self.strategy is UploadStrategy.MULTIPART

    def part_count_for(self, payload_size: int) -> int:
        if not self.is_multipart or not self.part_size:
            return 1
        return max(1, -(-payload_size // self.part_size))


def plan_upload(
    payload_size: int,
    *,
    threshold: int,
    min_part_size: int = MINIMUM_UPLOAD_PART_SIZE,
    max_part_count: int = MAXIMUM_UPLOAD_PARTS_COUNT,
) -> UploadPlan:
    """Choose the upload strategy for ``payload_size`` bytes.

    Payloads below ``threshold`` go up in one request. Larger ones are split
    into parts no smaller than ``min_part_size`` and large enough that the
    part count stays within ``max_part_count``.
    """
    if payload_size < threshold:
        return UploadPlan(strategy=UploadStrategy.SINGLE)
    part_size = max(-(-payload_size // max_part_count), min_part_size)
    return UploadPlan(strategy=UploadStrategy.MULTIPART, part_size=part_size)
