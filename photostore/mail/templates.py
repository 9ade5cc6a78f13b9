"""
Rendu de l'email de livraison (texte + HTML) avec Jinja2.
Le HTML est auto-échappé: le message saisi par l'admin et les noms de fichiers
ne peuvent pas injecter de balisage.
"""
from typing import Iterable, Tuple

from jinja2 import Environment, StrictUndefined

DEFAULT_MESSAGE = "Bonjour,\n\nMerci pour votre achat ! Voici vos photos :\n"

_TEXT_TEMPLATE = """{{ message }}

{% for name, url in links %}{{ loop.index }}. {{ name }}
{{ url }}

{% endfor %}Bonne journée,
{{ shop_name }}
"""

_HTML_TEMPLATE = """<p>{{ message | replace("\\n", "<br/>" | safe) }}</p>
<ol>
{%- for name, url in links %}
  <li><strong>{{ name }}</strong><br/><a href="{{ url }}" target="_blank" rel="noreferrer">{{ url }}</a></li>
{%- endfor %}
</ol>
<p>Bonne journée,<br/>{{ shop_name }}</p>
"""

_text_env = Environment(autoescape=False, undefined=StrictUndefined, keep_trailing_newline=True)
_html_env = Environment(autoescape=True, undefined=StrictUndefined)

_text_template = _text_env.from_string(_TEXT_TEMPLATE)
_html_template = _html_env.from_string(_HTML_TEMPLATE)


def default_subject(shop_name: str, order_id: str) -> str:
    return f"Vos photos {shop_name} (commande {order_id})"


def render_delivery_email(
    links: Iterable[Tuple[str, str]],
    *,
    message: str = "",
    shop_name: str,
) -> Tuple[str, str]:
    """
    Retourne (text, html) pour une liste de (nom de fichier, lien signé), dans l'ordre d'upload.
    Un message vide est remplacé par le message par défaut.
    """
    ctx = {
        "message": (message or "").strip() or DEFAULT_MESSAGE.strip(),
        "links": list(links),
        "shop_name": shop_name,
    }
    return _text_template.render(**ctx), _html_template.render(**ctx)
