"""
Shared utilities for the SCED Bulk Verifier.

Submodules:
    clients:     HTTP client and VerificationAPI creation
    misc:        File type, path and serialization helpers
    registry:    CLI session store (internal)
    environment: Environment configuration (internal)

Example Usage:
    from sced_bulk_verifier.core.utils.clients import create_verification_api

    api = create_verification_api(api_url='https://certs.example.org/api/v1')
"""

from . import misc

__all__ = [
    'misc',
]

# Not imported here:
# - clients (depends on core.verification, import it directly)
# - registry (internal session management)
# - environment (internal environment setup)
