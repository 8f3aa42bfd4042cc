"""
Core functionality for the SCED Bulk Verifier.

Architecture:
    verification/ - Bulk verification batch lifecycle
      ├── api/        - REST calls to the verification backend
      ├── models/     - Batch, contact and result data model
      ├── poller/     - Adaptive progress polling
      ├── controller/ - Upload, start, poll and finalize orchestration
      ├── results/    - Result fetching, download and export
      └── summary/    - Results summaries

    utils/        - Shared utilities and infrastructure
      ├── clients/     - HTTP client creation
      ├── misc/        - General utilities (internal)
      ├── registry/    - CLI session store (internal)
      └── environment/ - Environment setup (internal)
"""

from . import verification
from . import utils

from .verification.controller import BatchController

__all__ = [
    'verification',
    'utils',
    'BatchController',
]
