import re
from datetime import datetime, timezone

from photostore.mail.templates import DEFAULT_MESSAGE, default_subject, render_delivery_email
from photostore.orders.delivery import (
    build_delivery_path,
    build_upload_path,
    file_extension,
    random_suffix,
    sanitize_filename,
)

NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def test_sanitize_filename_keeps_safe_characters():
    assert sanitize_filename("Mariage (1).JPG") == "Mariage (1).JPG"
    assert sanitize_filename("a/b\\c<d>.png") == "a_b_c_d_.png"
    assert sanitize_filename("") == "photo.jpg"
    assert sanitize_filename(None) == "photo.jpg"
    assert len(sanitize_filename("x" * 300 + ".jpg")) == 120


def test_file_extension():
    assert file_extension("IMG.JPEG") == "jpeg"
    assert file_extension("archive.tar.gz") == "gz"
    assert file_extension("noext") == "jpg"
    assert file_extension("weird.") == "jpg"


def test_delivery_paths_never_collide():
    paths = {build_delivery_path("o1", "IMG_1.jpg", NOW) for _ in range(200)}
    assert len(paths) == 200
    for path in paths:
        assert re.fullmatch(r"orders/o1/\d{13}-[a-z0-9]{6}\.jpg", path)


def test_random_suffix_alphabet():
    assert re.fullmatch(r"[a-z0-9]{6}", random_suffix())
    assert len(random_suffix(10)) == 10


def test_upload_path_is_slugged_and_unique():
    ms = int(NOW.timestamp() * 1000)
    path = build_upload_path("o1", "été 2026/../x.png", NOW)
    assert re.fullmatch(rf"orders/o1/{ms}-[a-z0-9]{{6}}-_t__2026_\.\._x\.png", path)
    # même nom, même milliseconde: chemins distincts
    assert len({build_upload_path("o1", "x.png", NOW) for _ in range(20)}) == 20


def test_default_subject():
    assert default_subject("PhotographI.nes", "o1") == "Vos photos PhotographI.nes (commande o1)"


def test_render_delivery_email_lists_links_in_order():
    text, html = render_delivery_email(
        [("a.jpg", "https://s.test/a"), ("b.jpg", "https://s.test/b")],
        message="Merci !",
        shop_name="PhotographI.nes",
    )
    assert text == (
        "Merci !\n\n"
        "1. a.jpg\nhttps://s.test/a\n\n"
        "2. b.jpg\nhttps://s.test/b\n\n"
        "Bonne journée,\nPhotographI.nes\n"
    )
    assert html.index("https://s.test/a") < html.index("https://s.test/b")
    assert html.count("<li>") == 2


def test_render_delivery_email_defaults_and_escapes_html():
    text, html = render_delivery_email(
        [("<b>x</b>.jpg", "https://s.test/x?a=1&b=2")],
        message="<script>alert(1)</script>\nligne 2",
        shop_name="PhotographI.nes",
    )
    assert "<script>" not in html
    assert "&lt;script&gt;" in html
    assert "&lt;b&gt;x&lt;/b&gt;.jpg" in html
    assert "a=1&amp;b=2" in html
    assert "<br/>ligne 2" in html
    # le texte brut n'est pas échappé
    assert "<script>alert(1)</script>" in text

    default_text, _ = render_delivery_email([("a.jpg", "u")], message="  ", shop_name="S")
    assert default_text.startswith(DEFAULT_MESSAGE.strip())
