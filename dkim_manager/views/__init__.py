"""
dkim-manager views package

Re-exports the webhook and health check views for the URL configuration.
"""

from .webhooks import (
    validate_dkimkey_view,
    validate_secret_view,
    validate_dnsendpoint_view,
    convert_view,
    healthz,
    readyz,
)

__all__ = [
    'validate_dkimkey_view',
    'validate_secret_view',
    'validate_dnsendpoint_view',
    'convert_view',
    'healthz',
    'readyz',
]
