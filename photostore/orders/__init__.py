"""
Module 'orders' (feature-first): commandes, checkout idempotent et machine à états d'exécution.
Les cas d'usage vivent dans orders.checkout et orders.fulfillment; ce module n'expose que le modèle.
"""

from .models import OrderStatus, Order, CartLine, TRANSITIONS, can_transition, sources_for

__all__ = [
    "OrderStatus",
    "Order",
    "CartLine",
    "TRANSITIONS",
    "can_transition",
    "sources_for",
]
