"""
Nommage des fichiers de livraison dans le bucket privé.
- sanitize_filename: nom affiché dans l'email (caractères sûrs, 120 max)
- build_delivery_path: orders/{id}/{timestamp_ms}-{suffixe}.{ext}, jamais deux fois le même chemin
- build_upload_path: orders/{id}/{timestamp_ms}-{suffixe}-{nom slugifié}, dépôt direct (URL d'upload signée)
"""
import re
import secrets
import string
from datetime import datetime
from typing import Optional

MAX_FILENAME_LENGTH = 120
DEFAULT_FILENAME = "photo.jpg"
DEFAULT_EXTENSION = "jpg"
SUFFIX_LENGTH = 6

_UNSAFE_DISPLAY_CHARS = re.compile(r"[^\w.\-() ]")
_UNSAFE_PATH_CHARS = re.compile(r"[^a-zA-Z0-9._-]")
_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits


def sanitize_filename(name: Optional[str]) -> str:
    cleaned = _UNSAFE_DISPLAY_CHARS.sub("_", (name or "").strip())[:MAX_FILENAME_LENGTH]
    return cleaned or DEFAULT_FILENAME


def file_extension(safe_name: str) -> str:
    if "." not in safe_name:
        return DEFAULT_EXTENSION
    ext = _UNSAFE_PATH_CHARS.sub("", safe_name.rsplit(".", 1)[1]).lower()
    return ext or DEFAULT_EXTENSION


def random_suffix(length: int = SUFFIX_LENGTH) -> str:
    return "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(length))


def _millis(now: datetime) -> int:
    return int(now.timestamp() * 1000)


def build_delivery_path(order_id: str, safe_name: str, now: datetime) -> str:
    return f"orders/{order_id}/{_millis(now)}-{random_suffix()}.{file_extension(safe_name)}"


def build_upload_path(order_id: str, file_name: str, now: datetime) -> str:
    safe = _UNSAFE_PATH_CHARS.sub("_", (file_name or "").strip())[:MAX_FILENAME_LENGTH]
    return f"orders/{order_id}/{_millis(now)}-{random_suffix()}-{safe}"
