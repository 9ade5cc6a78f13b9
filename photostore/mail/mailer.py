"""
Envoi d'emails via Resend.
- resend.api_key est global au module: on le positionne le temps de l'appel puis on restaure
  l'ancienne valeur (verrou pour les appels concurrents du threadpool FastAPI).
- Toute erreur (clé absente, refus, réseau) remonte en UpstreamUnavailable: la commande
  ne passe jamais à SENT si l'email n'est pas parti.
"""
import logging
import threading
from typing import Any, Dict, Optional

import resend

from photostore.errors import UpstreamUnavailable

logger = logging.getLogger(__name__)

_api_key_lock = threading.Lock()


# module photostore.mail.mailer
class ResendMailer:
    def __init__(self, api_key: str, sender: str):
        self.api_key = (api_key or "").strip()
        self.sender = (sender or "").strip()

    def send(self, to: str, subject: str, text: str, html: Optional[str] = None) -> str:
        if not self.api_key or not self.sender:
            logger.error("mail.send not configured api_key=%s sender=%s", bool(self.api_key), bool(self.sender))
            raise UpstreamUnavailable("Envoi d'email non configuré (RESEND_API_KEY / EMAIL_FROM)")

        payload: Dict[str, Any] = {
            "from": self.sender,
            "to": [to],
            "subject": subject,
            "text": text,
        }
        if html:
            payload["html"] = html

        with _api_key_lock:
            previous_api_key = getattr(resend, "api_key", None)
            resend.api_key = self.api_key
            try:
                response = resend.Emails.send(payload)
            except Exception as e:
                logger.exception("mail.send failed to=%s", to)
                raise UpstreamUnavailable("Envoi de l'email impossible") from e
            finally:
                resend.api_key = previous_api_key

        message_id = response.get("id") if isinstance(response, dict) else getattr(response, "id", None)
        if not message_id:
            logger.error("mail.send unexpected response=%r", response)
            raise UpstreamUnavailable("Réponse inattendue du service d'email")
        logger.info("mail.send ok to=%s id=%s", to, message_id)
        return str(message_id)
