"""
SCED Bulk Verifier - Bulk teacher certification verification client

Uploads a CSV of contacts to the certification lookup backend, starts an
asynchronous verification batch, follows its progress with adaptive
polling and retrieves the results once the batch completes.

Key Features:
    - CSV upload with contact preview (all contacts or CTE/WBL only)
    - Adaptive progress polling with rate-limit backoff
    - Result retrieval, summaries and CSV/JSONL/Parquet export
    - Command-line interface for the whole workflow

Example Usage:

    Programmatic:
        import asyncio
        import sced_bulk_verifier as sbv

        async def main():
            async with sbv.create_verification_api() as api:
                controller = sbv.BatchController(api)
                await controller.run('./contacts.csv', cte_only=True)
                sbv.verification.results.save_results(controller.results, './results.csv')

        asyncio.run(main())

    CLI Usage:
        $ bulkverify upload ./contacts.csv
        $ bulkverify start --cte-only
        $ bulkverify download --output-folder ./downloads/

Environment Setup:
    - BULK_VERIFY_TOKEN    (bearer token for the API)
    - BULK_VERIFY_API_URL  (defaults to http://localhost:4000/api/v1)

    These can be set via .env files in:
    - Current working directory (.env, .env.local)
    - Project root directory
"""

__version__ = "0.1.0"
__author__ = "Alvar"

# Load environment on package import
from .core.utils.environment import setup_environment
setup_environment()

from . import core
from .core.utils.clients import create_verification_api
verification = core.verification
utils = core.utils
BatchController = core.BatchController

__all__ = [
    '__version__',
    '__author__',
    'verification',
    'utils',
    'BatchController',
    'create_verification_api',
]

del setup_environment, core
