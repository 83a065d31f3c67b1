# tests/test_identity.py
import pytest

from clinic_agenda.service import identity as identity_module
from clinic_agenda.service.identity import IdentityProvider, SignInError, google_token_verifier


@pytest.mark.asyncio
async def test_sign_in_opens_a_session(identity):
    session = await identity.sign_in("admin-credential")
    assert session.email == "doctora@clinica.test"
    assert identity.get_session(session.session_id) == session
    assert identity.is_admin(session)


@pytest.mark.asyncio
async def test_bad_credential_is_rejected(identity):
    with pytest.raises(SignInError):
        await identity.sign_in("forged")


@pytest.mark.asyncio
async def test_non_admin_account_signs_in_but_is_not_admin(identity):
    session = await identity.sign_in("other-credential")
    assert not identity.is_admin(session)
    assert not identity.is_admin(None)


@pytest.mark.asyncio
async def test_listener_fires_immediately_and_on_sign_out(identity):
    session = await identity.sign_in("admin-credential")
    seen = []
    detach = identity.on_session_change(session.session_id, seen.append)
    assert seen == [session]

    identity.sign_out(session.session_id)
    assert seen == [session, None]
    assert identity.get_session(session.session_id) is None

    detach()
    identity.sign_out(session.session_id)
    assert seen == [session, None]


@pytest.mark.asyncio
async def test_expired_session_is_dropped(identity):
    session = await identity.sign_in("admin-credential")
    seen = []
    identity.on_session_change(session.session_id, seen.append)
    identity._sessions[session.session_id] = session.model_copy(update={"expires_at": 0})

    assert identity.get_session(session.session_id) is None
    assert seen[-1] is None


@pytest.mark.asyncio
async def test_close_detaches_listeners(identity):
    session = await identity.sign_in("admin-credential")
    seen = []
    identity.on_session_change(session.session_id, seen.append)
    identity.close()
    identity.sign_out(session.session_id)
    assert seen == [session]


@pytest.mark.asyncio
async def test_sign_in_rejected_without_client_id(monkeypatch):
    calls = []

    def verify_oauth2_token(credential, request, audience):
        calls.append(audience)
        return {"email": "doctora@clinica.test", "email_verified": True}

    monkeypatch.setattr(identity_module.id_token, "verify_oauth2_token", verify_oauth2_token)
    provider = IdentityProvider(google_token_verifier(None), admin_email="doctora@clinica.test")

    with pytest.raises(SignInError):
        await provider.sign_in("token-for-another-client")
    assert calls == []


def test_google_verifier_checks_our_audience(monkeypatch):
    calls = []

    def verify_oauth2_token(credential, request, audience):
        calls.append((credential, audience))
        return {"email": "doctora@clinica.test"}

    monkeypatch.setattr(identity_module.id_token, "verify_oauth2_token", verify_oauth2_token)
    google_token_verifier("clinic.apps.googleusercontent.com")("id-token")
    assert calls == [("id-token", "clinic.apps.googleusercontent.com")]
