# tests/test_view_router.py
import pytest

from clinic_agenda.models import Session
from clinic_agenda.service.view_router import ViewKind, parse_fragment, resolve_view

ADMIN = "doctora@clinica.test"


def session_for(email):
    return Session(session_id="s", email=email, created_at=0, expires_at=1)


@pytest.mark.parametrize("fragment,expected", [
    ("#appt-abc123", "abc123"),
    ("appt-abc123", "abc123"),
    ("#appt-", ""),
    ("#admin", None),
    ("", None),
    (None, None),
])
def test_parse_fragment(fragment, expected):
    assert parse_fragment(fragment) == expected


def test_appointment_fragment_is_public_even_without_session():
    view = resolve_view("#appt-abc", None, ADMIN)
    assert view.kind == ViewKind.PATIENT
    assert view.appointment_id == "abc"


def test_appointment_fragment_wins_over_admin_session():
    assert resolve_view("#appt-abc", session_for(ADMIN), ADMIN).kind == ViewKind.PATIENT


def test_no_session_goes_to_sign_in():
    assert resolve_view("", None, ADMIN).kind == ViewKind.SIGN_IN


def test_other_account_is_denied():
    view = resolve_view("", session_for("intruso@example.com"), ADMIN)
    assert view.kind == ViewKind.ACCESS_DENIED
    assert view.email == "intruso@example.com"


def test_admin_match_is_exact():
    assert resolve_view("", session_for("Doctora@clinica.test"), ADMIN).kind == ViewKind.ACCESS_DENIED
    assert resolve_view("", session_for(ADMIN), ADMIN).kind == ViewKind.ADMIN
