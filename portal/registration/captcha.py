"""
Captcha de l'inscription: défi de 6 caractères alphanumériques conservé en session,
servi au navigateur uniquement sous forme d'image SVG.
"""
import secrets
import string
from html import escape
from typing import Any, MutableMapping, Optional

CAPTCHA_KEY = "captcha"
CAPTCHA_LENGTH = 6
CAPTCHA_ALPHABET = string.ascii_uppercase + string.ascii_lowercase + string.digits

_COLORS = ("#333", "#555", "#666", "#444", "#222")


def generate(store: MutableMapping[str, Any]) -> str:
    """Nouveau défi, remplace le précédent."""
    text = "".join(secrets.choice(CAPTCHA_ALPHABET) for _ in range(CAPTCHA_LENGTH))
    store[CAPTCHA_KEY] = text
    return text


def current(store: MutableMapping[str, Any]) -> Optional[str]:
    value = store.get(CAPTCHA_KEY)
    return value if isinstance(value, str) and value else None


def verify(store: MutableMapping[str, Any], answer: str) -> bool:
    """Comparaison exacte, sensible à la casse. Sans défi en session, aucune réponse n'est valide."""
    expected = current(store)
    if expected is None or not isinstance(answer, str):
        return False
    return secrets.compare_digest(expected, answer)


def render_svg(text: str, width: int = 120, height: int = 40) -> str:
    rng = secrets.SystemRandom()
    parts = [
        f'<svg xmlns="http://www.w3.org/2000/svg" width="{width}" height="{height}" viewBox="0 0 {width} {height}">',
        '<defs><linearGradient id="bg" x1="0" y1="0" x2="1" y2="1">'
        '<stop offset="0" stop-color="#f8f9fa"/><stop offset="1" stop-color="#e9ecef"/></linearGradient></defs>',
        f'<rect width="{width}" height="{height}" fill="url(#bg)"/>',
    ]
    # lignes de bruit
    for _ in range(5):
        x1, x2 = rng.uniform(0, width), rng.uniform(0, width)
        y1, y2 = rng.uniform(0, height), rng.uniform(0, height)
        r, g, b = (rng.randint(0, 255) for _ in range(3))
        parts.append(
            f'<line x1="{x1:.1f}" y1="{y1:.1f}" x2="{x2:.1f}" y2="{y2:.1f}" '
            f'stroke="rgba({r},{g},{b},0.3)" stroke-width="1"/>'
        )
    step = width / max(len(text), 1)
    for i, char in enumerate(text):
        x = step * i + step / 2
        y = height / 2 + rng.uniform(-5, 5)
        angle = rng.uniform(-9, 9)
        size = rng.uniform(16, 20)
        weight = "bold" if rng.random() > 0.5 else "normal"
        parts.append(
            f'<text x="{x:.1f}" y="{y:.1f}" font-family="Arial, sans-serif" font-size="{size:.1f}" '
            f'font-weight="{weight}" fill="{rng.choice(_COLORS)}" text-anchor="middle" dominant-baseline="middle" '
            f'transform="rotate({angle:.1f} {x:.1f} {y:.1f})">{escape(char)}</text>'
        )
    parts.append("</svg>")
    return "".join(parts)
