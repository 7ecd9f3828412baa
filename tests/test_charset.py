from __future__ import annotations

import pytest

from seogen.charset import (
    charset_from_content_type,
    count_replacements,
    decode_as,
    detect_charset_from_html,
    normalize_charset,
    resolve,
)

KOREAN_TEXT = "자주 묻는 질문 게시판입니다. 회원 가입과 결제 방법을 안내합니다. " * 4


def korean_page(meta: str = "") -> bytes:
    html = f"<html><head>{meta}<title>게시판</title></head><body><p>{KOREAN_TEXT}</p></body></html>"
    return html.encode("euc-kr")


def test_meta_charset_without_header_decodes_cleanly():
    page = resolve(korean_page('<meta charset="euc-kr">'), None)

    assert page.charset_used == "euc-kr"
    assert page.replacement_count == 0
    assert count_replacements(page.text) == 0
    assert "자주 묻는 질문" in page.text


def test_http_equiv_meta_is_used():
    meta = '<meta http-equiv="Content-Type" content="text/html; charset=EUC-KR">'
    page = resolve(korean_page(meta), None)

    assert page.charset_used == "euc-kr"
    assert "게시판" in page.text


def test_first_meta_declaration_wins():
    html = (
        '<meta http-equiv="Content-Type" content="text/html; charset=ks_c_5601-1987">'
        '<meta charset="utf-8">'
    )
    assert detect_charset_from_html(html) == "ks_c_5601-1987"


def test_mislabeled_korean_bytes_are_redecoded():
    data = korean_page()
    as_utf8 = decode_as(data, "utf-8")
    assert count_replacements(as_utf8) >= 6

    page = resolve(data, "utf-8")

    assert page.charset_used == "euc-kr"
    assert page.replacement_count <= count_replacements(as_utf8)
    assert page.replacement_count == 0


def test_clean_utf8_is_not_redecoded():
    data = ("<p>" + KOREAN_TEXT + "</p>").encode("utf-8")
    page = resolve(data, "utf-8")

    assert page.charset_used == "utf-8"
    assert page.text.startswith("<p>자주")


def test_unknown_charset_falls_back_to_utf8():
    page = resolve("<p>héllo</p>".encode("utf-8"), "x-made-up-charset")

    assert page.charset_used == "utf-8"
    assert page.text == "<p>héllo</p>"


BODY = "<html><body><p>plain ascii body text for the page</p></body></html>"


@pytest.mark.parametrize("name", ["base64", "rot13", "idna", "hex", "zlib"])
def test_non_text_codec_from_header_falls_back_to_utf8(name):
    page = resolve(BODY.encode("utf-8"), name)

    assert page.charset_used == "utf-8"
    assert page.text == BODY


@pytest.mark.parametrize("name", ["base64", "idna"])
def test_non_text_codec_from_meta_falls_back_to_utf8(name):
    html = f'<meta charset="{name}">{BODY}'
    page = resolve(html.encode("utf-8"), None)

    assert page.charset_used == "utf-8"
    assert page.text == html


def test_empty_buffer():
    page = resolve(b"", None)

    assert page.text == ""
    assert page.replacement_count == 0


@pytest.mark.parametrize(
    "name,expected",
    [
        ("EUC-KR", "euc-kr"),
        ("cp949", "euc-kr"),
        ("KS_C_5601-1987", "euc-kr"),
        ('"ks_c_5601"', "euc-kr"),
        ("windows-949", "euc-kr"),
        ("Shift-JIS", "shift_jis"),
        ("SJIS", "shift_jis"),
        ("EUC_JP", "euc-jp"),
        ("GB2312", "gb2312"),
        ("Big5", "big5"),
        ("latin1", "iso-8859-1"),
        ("UTF8", "utf-8"),
        ("utf-16", "utf-16"),
        ("windows-1252", "windows-1252"),
    ],
)
def test_normalize_charset(name, expected):
    assert normalize_charset(name) == expected


def test_charset_from_content_type():
    assert charset_from_content_type('text/html; charset="Shift_JIS"') == "Shift_JIS"
    assert charset_from_content_type("text/html") is None
    assert charset_from_content_type("") is None


def test_japanese_page_with_meta():
    html = '<meta charset="Shift_JIS"><p>よくある質問</p>'.encode("shift_jis")
    page = resolve(html, None)

    assert page.charset_used == "shift_jis"
    assert "よくある質問" in page.text
