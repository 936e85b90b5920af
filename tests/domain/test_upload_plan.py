from __future__ import annotations

import pytest

from objstore.domain.upload_plan import (
    MAXIMUM_UPLOAD_PARTS_COUNT,
    MINIMUM_UPLOAD_PART_SIZE,
    UploadPlan,
    UploadStrategy,
    plan_upload,
)

MB = 1024 * 1024


def test_below_threshold_is_single_part():
    plan = plan_upload(100 * MB - 1, threshold=100 * MB)

    assert plan.strategy is UploadStrategy.SINGLE
    assert plan.part_size is None
    assert plan.part_count_for(100 * MB - 1) == 1


def test_threshold_itself_is_multipart():
    plan = plan_upload(100 * MB, threshold=100 * MB)

    assert plan.strategy is UploadStrategy.MULTIPART


def test_minimum_part_size_wins_for_moderate_payloads():
    plan = plan_upload(
        150 * MB,
        threshold=100 * MB,
        min_part_size=5 * MB,
        max_part_count=10000,
    )

    assert plan.is_multipart
    assert plan.part_size == 5 * MB
    assert plan.part_count_for(150 * MB) == 30


def test_part_size_grows_to_respect_part_count_cap():
    size = 100 * 1024 * MB  # 100 GiB
    plan = plan_upload(size, threshold=100 * MB)

    assert plan.part_size == -(-size // MAXIMUM_UPLOAD_PARTS_COUNT)
    assert plan.part_size > MINIMUM_UPLOAD_PART_SIZE
    assert plan.part_count_for(size) <= MAXIMUM_UPLOAD_PARTS_COUNT


@pytest.mark.parametrize(
    "size, threshold, min_part, max_parts",
    [
        (10, 10, 1, 3),
        (11, 10, 1, 3),
        (1000, 1, 7, 10),
        (999_999, 500, 1, 7),
        (5 * MB + 1, MB, MB, 5),
    ],
)
def test_parts_cover_payload_within_limits(size, threshold, min_part, max_parts):
    plan = plan_upload(
        size, threshold=threshold, min_part_size=min_part, max_part_count=max_parts
    )
    parts = plan.part_count_for(size)

    assert plan.part_size >= min_part
    assert plan.part_size * parts >= size
    assert parts <= max_parts


@pytest.mark.parametrize("part_size", [None, 0])
def test_multipart_plan_requires_part_size(part_size):
    with pytest.raises(ValueError, match="part_size"):
        UploadPlan(strategy=UploadStrategy.MULTIPART, part_size=part_size)
