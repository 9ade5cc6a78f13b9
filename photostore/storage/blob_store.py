"""
Adaptateur Supabase Storage pour les fichiers de livraison.
- upload sans écrasement (upsert=false): un chemin déjà pris est une erreur
- liens de téléchargement signés à durée limitée
- URL d'upload signée (dépôt direct depuis le navigateur admin)
"""
import logging
from typing import Any, Dict

from photostore.errors import UpstreamUnavailable

logger = logging.getLogger(__name__)


def _signed_url_from(res: Any) -> str:
    # Selon la version de storage3: "signedURL" ou "signedUrl"
    if isinstance(res, dict):
        url = res.get("signedURL") or res.get("signedUrl") or res.get("signed_url")
        if url:
            return str(url)
    raise UpstreamUnavailable("Lien signé absent de la réponse du stockage")


# module photostore.storage.blob_store
class SupabaseBlobStore:
    def __init__(self, client):
        self.client = client

    def _bucket(self, bucket: str):
        return self.client.storage.from_(bucket)

    def upload(self, bucket: str, path: str, data: bytes, content_type: str) -> None:
        try:
            self._bucket(bucket).upload(
                path,
                data,
                file_options={"content-type": content_type or "application/octet-stream", "upsert": "false"},
            )
        except Exception as e:
            logger.exception("storage.upload failed bucket=%s path=%s", bucket, path)
            raise UpstreamUnavailable(f"Upload impossible: {path}") from e

    def create_signed_url(self, bucket: str, path: str, expires_in: int) -> str:
        try:
            res = self._bucket(bucket).create_signed_url(path, expires_in)
        except Exception as e:
            logger.exception("storage.create_signed_url failed bucket=%s path=%s", bucket, path)
            raise UpstreamUnavailable(f"Lien signé impossible: {path}") from e
        return _signed_url_from(res)

    def create_signed_upload_url(self, bucket: str, path: str) -> Dict[str, Any]:
        """Retour: {"path", "token", "signed_url"} pour un PUT direct vers le bucket."""
        try:
            res = self._bucket(bucket).create_signed_upload_url(path)
        except Exception as e:
            logger.exception("storage.create_signed_upload_url failed bucket=%s path=%s", bucket, path)
            raise UpstreamUnavailable(f"URL d'upload impossible: {path}") from e
        res = res or {}
        return {
            "path": res.get("path") or path,
            "token": res.get("token"),
            "signed_url": res.get("signed_url") or res.get("signedUrl") or res.get("signedURL"),
        }
