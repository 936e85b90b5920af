"""
Domain layer package housing the pure upload, checksum and header rules.
"""

from .checksums import (
    SUPPORTED_CHECKSUM_ALGORITHMS,
    ChecksumAlgorithm,
    compute_checksum,
    http_headers,
    request_params,
    validate,
)
from .content_disposition import content_disposition_with, sanitize_filename
from .upload_plan import (
    MAXIMUM_UPLOAD_PARTS_COUNT,
    MINIMUM_UPLOAD_PART_SIZE,
    UploadPlan,
    UploadStrategy,
    plan_upload,
)

__all__ = [
    "ChecksumAlgorithm",
    "MAXIMUM_UPLOAD_PARTS_COUNT",
    "MINIMUM_UPLOAD_PART_SIZE",
    "SUPPORTED_CHECKSUM_ALGORITHMS",
    "UploadPlan",
    "UploadStrategy",
    "compute_checksum",
    "content_disposition_with",
    "http_headers",
    "plan_upload",
    "request_params",
    "sanitize_filename",
    "validate",
]
