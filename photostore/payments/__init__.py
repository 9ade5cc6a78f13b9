"""
Module 'payments' (feature-first): adaptateur Stripe et lecture des événements webhook.
"""

from .metadata import CompletionEvent, extract_completion
from .stripe_client import StripeGateway

__all__ = [
    "CompletionEvent",
    "extract_completion",
    "StripeGateway",
]
