"""
PhotographI.nes: boutique de photos (prix par lots, checkout Stripe idempotent, livraison des fichiers).
"""

__version__ = "0.1.0"
