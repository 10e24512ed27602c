from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs, urlparse

from jose import jwt

from conftest import API


def make_id_token(settings, secret=None, **claims):
    now = datetime.now(timezone.utc)
    payload = {
        "iss": settings.auth0_issuer,
        "aud": settings.AUTH0_CLIENT_ID,
        "sub": "auth0|abc123",
        "email": "carol@example.com",
        "name": "Carol",
        "email_verified": True,
        "iat": now,
        "exp": now + timedelta(minutes=5),
    }
    payload.update(claims)
    return jwt.encode(payload, secret or settings.AUTH0_CLIENT_SECRET, algorithm="HS256")


def callback(client, id_token=None):
    params = {"id_token": id_token} if id_token else None
    return client.get(f"{API}/auth/auth0/callback", params=params, follow_redirects=False)


def test_missing_identity_returns_401(client):
    response = callback(client)

    assert response.status_code == 401
    assert response.json() == {"message": "Authentication failed"}


def test_forged_identity_returns_401(client, settings):
    response = callback(client, make_id_token(settings, secret="someone-elses-secret"))

    assert response.status_code == 401


def test_wrong_audience_returns_401(client, settings):
    response = callback(client, make_id_token(settings, aud="another-app"))

    assert response.status_code == 401


def test_redirects_to_frontend_with_tokens(client, settings):
    response = callback(client, make_id_token(settings))

    assert response.status_code == 302
    location = urlparse(response.headers["location"])
    assert f"{location.scheme}://{location.netloc}" == "http://localhost:3000"
    query = parse_qs(location.query)
    assert query["accessToken"][0]
    assert query["expiresIn"] == [str(15 * 60)]

    cookies = [h for h in response.headers.get_list("set-cookie") if h.startswith("refreshToken=")]
    assert len(cookies) == 1
    assert "httponly" in cookies[0].lower()


def test_creates_user_once_and_reuses_it(client, settings):
    first = callback(client, make_id_token(settings))
    second = callback(client, make_id_token(settings))

    ids = []
    for response in (first, second):
        access_token = parse_qs(urlparse(response.headers["location"]).query)["accessToken"][0]
        me = client.get(f"{API}/auth/me", headers={"Authorization": f"Bearer {access_token}"})
        assert me.status_code == 200
        assert me.json()["email"] == "carol@example.com"
        assert me.json()["isEmailVerified"] is True
        ids.append(me.json()["id"])

    assert ids[0] == ids[1]


def test_links_existing_password_account_by_email(client, settings, register_user):
    registered = register_user(email="carol@example.com", name="Carol")

    response = callback(client, make_id_token(settings))

    access_token = parse_qs(urlparse(response.headers["location"]).query)["accessToken"][0]
    me = client.get(f"{API}/auth/me", headers={"Authorization": f"Bearer {access_token}"})
    assert me.json()["id"] == registered["id"]


def test_unverified_email_does_not_take_over_password_account(client, settings, register_user, login):
    registered = register_user(email="victim@example.com", name="Victim")

    response = callback(
        client,
        make_id_token(settings, sub="auth0|attacker", email="victim@example.com", email_verified=False),
    )

    assert response.status_code == 401
    assert response.json() == {
        "message": "Verify your email address with the identity provider before signing in",
    }
    assert not [h for h in response.headers.get_list("set-cookie") if h.startswith("refreshToken=")]

    # The password account is left unlinked and still usable
    own_login = login(email="victim@example.com")
    assert own_login.status_code == 200
    assert own_login.json()["user"]["id"] == registered["id"]

    retry = callback(
        client,
        make_id_token(settings, sub="auth0|attacker", email="victim@example.com", email_verified=False),
    )
    assert retry.status_code == 401


def test_unverified_email_still_creates_a_new_account(client, settings):
    response = callback(client, make_id_token(settings, email="dave@example.com", email_verified=False))

    assert response.status_code == 302
    access_token = parse_qs(urlparse(response.headers["location"]).query)["accessToken"][0]
    me = client.get(f"{API}/auth/me", headers={"Authorization": f"Bearer {access_token}"})
    assert me.json()["email"] == "dave@example.com"
    assert me.json()["isEmailVerified"] is False
