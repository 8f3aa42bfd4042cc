"""
Bulk verification batch lifecycle.

Submodules:
    api:        REST wrapper for the /bulk-verification endpoints
    models:     BatchJob, UploadPreview, VerificationResult, ...
    poller:     Adaptive progress poller and its PollingPolicy
    controller: BatchController orchestrating upload, start, polling and finalization
    results:    ResultRetriever and result file writers
    summary:    Text / JSON summaries of verification results
    errors:     Exception hierarchy

Example Usage:
    import asyncio
    from sced_bulk_verifier.core.utils.clients import create_verification_api
    from sced_bulk_verifier.core.verification import BatchController

    async def main():
        async with create_verification_api() as api:
            controller = BatchController(api)
            job = await controller.run('./contacts.csv', cte_only=True)
            await controller.download('./downloads/')

    asyncio.run(main())
"""

from . import api
from . import errors
from . import models
from . import poller
from . import results
from . import summary
from . import controller

from .controller import BatchController
from .poller import AdaptivePoller, PollingPolicy
from .results import ResultRetriever

__all__ = [
    'api',
    'errors',
    'models',
    'poller',
    'results',
    'summary',
    'controller',
    'BatchController',
    'AdaptivePoller',
    'PollingPolicy',
    'ResultRetriever',
]
