import re
from portal.registration import captcha

def test_generate_stores_six_alphanumerics():
    store = {}
    text = captcha.generate(store)
    assert re.fullmatch(r"[A-Za-z0-9]{6}", text)
    assert store[captcha.CAPTCHA_KEY] == text

def test_generate_replaces_previous_challenge():
    store = {}
    texts = {captcha.generate(store) for _ in range(5)}
    assert store[captcha.CAPTCHA_KEY] in texts

def test_verify_is_exact_and_case_sensitive():
    store = {captcha.CAPTCHA_KEY: "AbC123"}
    assert captcha.verify(store, "AbC123") is True
    assert captcha.verify(store, "abc123") is False
    assert captcha.verify(store, " AbC123") is False

def test_verify_without_challenge_fails():
    assert captcha.verify({}, "AbC123") is False

def test_render_svg_contains_each_character():
    svg = captcha.render_svg("AbC123")
    assert svg.startswith("<svg")
    assert svg.endswith("</svg>")
    for char in "AbC123":
        assert f">{char}</text>" in svg
