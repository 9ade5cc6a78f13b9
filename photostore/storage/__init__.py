"""
Module 'storage': dépôt des fichiers de livraison (Supabase Storage).
"""

from .blob_store import SupabaseBlobStore

__all__ = ["SupabaseBlobStore"]
