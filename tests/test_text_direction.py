"""Direction detection for mixed Arabic / Latin record text."""

import pytest
from fastapi.testclient import TestClient

from auth.permissions import Role
from ui.text_direction import (
    Segment, detect_direction, has_mixed_content, input_direction, segment_mixed_content,
)

from conftest import PASSWORD, ROLE_EMAILS


@pytest.mark.parametrize("text,expected", [
    ("شركة النيل", "rtl"),
    ("Nile Co.", "ltr"),
    ("2024 annual retainer", "ltr"),
    ("  مكتب الدلتا", "rtl"),
    ("שלום", "rtl"),
    ("شركة Nile للتجارة", "rtl"),
    ("Nile شركة", "ltr"),
    ("", "auto"),
    (None, "auto"),
    ("-- ", "auto"),
])
def test_detect_direction(text, expected):
    assert detect_direction(text) == expected


def test_non_string_values():
    assert detect_direction(42) == "ltr"
    assert detect_direction(True) == "ltr"


def test_mixed_content():
    assert has_mixed_content("شركة Nile")
    assert not has_mixed_content("شركة النيل")
    assert not has_mixed_content("Nile Co.")
    assert not has_mixed_content("")


def test_segments_follow_direction_changes():
    assert segment_mixed_content("قضية ABC 123 رقم") == [
        Segment("قضية ", "rtl"),
        Segment("ABC 123 ", "ltr"),
        Segment("رقم", "rtl"),
    ]
    assert segment_mixed_content("") == []
    assert segment_mixed_content("Nile Co.") == [Segment("Nile Co.", "ltr")]


@pytest.mark.parametrize("input_type,expected", [
    ("email", "ltr"), ("tel", "ltr"), ("password", "ltr"), ("text", "auto"), ("date", "auto"),
])
def test_input_direction(input_type, expected):
    assert input_direction(input_type) == expected


def test_list_cells_carry_their_own_direction(app, auth_headers):
    api = TestClient(app)
    api.post("/api/clients", headers=auth_headers(Role.ADMIN), json={
        "client_name_ar": "شركة النيل", "client_name_en": "Nile Co.",
        "client_type": "company", "cash_pro_bono": "cash",
    })

    browser = TestClient(app)
    browser.post("/login", data={"email": ROLE_EMAILS[Role.STAFF], "password": PASSWORD},
                 follow_redirects=False)
    browser.cookies.set("lang", "en")
    html = browser.get("/clients").text
    assert 'dir="ltr"' in html.split("<html", 1)[1].split(">", 1)[0]
    assert '<td dir="rtl">شركة النيل</td>' in html
    assert '<td dir="ltr">Nile Co.</td>' in html
