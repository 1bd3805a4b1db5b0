"""
Test cases for the authentication HTTP endpoints.
"""
import pytest


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_login_then_refresh_issues_new_access_token(api, make_user):
    await make_user("a@b.com")

    login = await api.login("a@b.com", "Valid123!@#")
    assert login.status_code == 200
    body = login.json()
    assert body["accessToken"]
    assert body["email"] == "a@b.com"
    assert body["role"] == "User"
    assert "refreshToken" not in body

    cookie_header = api.refresh_cookie_header(login)
    assert "HttpOnly" in cookie_header
    assert "samesite=lax" in cookie_header.lower()
    refresh_token = api.refresh_cookie(login)
    assert refresh_token

    refreshed = await api.refresh(refresh_token)
    assert refreshed.status_code == 200
    assert refreshed.json()["accessToken"]
    assert refreshed.json()["accessToken"] != body["accessToken"]
    assert refreshed.json()["id"] == body["id"]


@pytest.mark.asyncio
async def test_login_failure_is_problem_details(api, make_user):
    await make_user("a@b.com")
    response = await api.login("a@b.com", "Wrong123!")

    assert response.status_code == 401
    assert response.headers["content-type"].startswith("application/problem+json")
    problem = response.json()
    assert problem["title"] == "Authorization.IncorrectPasswordOrUsername"
    assert problem["errorCode"] == 1002
    assert problem["status"] == 401
    assert api.refresh_cookie_header(response) is None


@pytest.mark.asyncio
async def test_login_validation_error(client):
    response = await client.post("/login", json={"email": "a@b.com"})
    assert response.status_code == 400
    problem = response.json()
    assert problem["title"] == "General.ValidationFailed"
    assert problem["errors"][0]["field"] == "password"


@pytest.mark.asyncio
async def test_registration_logs_in_immediately(api):
    response = await api.register("new@example.com", displayName="Newcomer")
    assert response.status_code == 200
    assert response.json()["displayName"] == "Newcomer"
    assert response.json()["role"] == "User"
    assert api.refresh_cookie(response)


@pytest.mark.asyncio
async def test_registration_password_mismatch(client):
    response = await client.post("/user-registration", json={
        "email": "new@example.com", "password": "Valid123!@#", "confirmPassword": "Other123!@#",
    })
    assert response.status_code == 400
    assert response.json()["title"] == "General.ValidationFailed"


@pytest.mark.asyncio
async def test_registration_duplicate(api, make_user):
    await make_user("a@b.com")
    response = await api.register("a@b.com")
    assert response.status_code == 400
    assert response.json()["title"] == "Users.EmailNotUnique"


@pytest.mark.asyncio
async def test_registration_duplicate_user_name(api):
    assert (await api.register("one@example.com", userName="taken")).status_code == 200

    response = await api.register("two@example.com", userName="taken")
    assert response.status_code == 400
    problem = response.json()
    assert problem["title"] == "Users.UserNotCreated"
    assert problem["errorCode"] == 3006


@pytest.mark.asyncio
async def test_registration_with_confirmation(api, confirmation_required, email_service):
    response = await api.register("new@example.com", callbackUrl="https://app.estatehub.test/confirm")
    assert response.status_code == 200
    assert response.content == b""
    assert api.refresh_cookie_header(response) is None

    login = await api.login("new@example.com")
    assert login.status_code == 403
    assert login.json()["title"] == "Authorization.EmailNotConfirmed"

    token, user_id = email_service.last_link()
    confirmed = await api.client.patch("/confirm-email", json={"userId": user_id, "token": token})
    assert confirmed.status_code == 200
    assert confirmed.json()["id"] == user_id
    assert api.refresh_cookie(confirmed)

    assert (await api.login("new@example.com")).status_code == 200


@pytest.mark.asyncio
async def test_refresh_without_cookie(api):
    response = await api.refresh(None)
    assert response.status_code == 400
    assert response.json()["title"] == "Authorization.NotFoundRefreshToken"


@pytest.mark.asyncio
async def test_refresh_with_invalid_token_clears_cookie(api):
    response = await api.refresh("garbage")
    assert response.status_code == 401
    assert response.json()["title"] == "Authorization.InvalidToken"
    assert api.cookie_cleared(response)


@pytest.mark.asyncio
async def test_logout_revokes_session_and_clears_cookie(api, make_user):
    await make_user("a@b.com")
    login = await api.login("a@b.com")
    access_token = login.json()["accessToken"]
    refresh_token = api.refresh_cookie(login)

    me = await api.client.get("/user-id-from-token", headers=api.bearer(access_token))
    assert me.status_code == 200
    assert me.json()["userId"] == login.json()["id"]

    logout = await api.logout(refresh_token)
    assert logout.status_code == 200
    assert api.cookie_cleared(logout)

    revoked = await api.client.get("/user-id-from-token", headers=api.bearer(access_token))
    assert revoked.status_code == 401
    assert revoked.json()["title"] == "Authorization.InvalidAccessToken"
    assert revoked.headers["www-authenticate"] == "Bearer"

    refreshed = await api.refresh(refresh_token)
    assert refreshed.status_code == 404
    assert refreshed.json()["title"] == "Sessions.NotFoundByRefreshToken"
    assert api.cookie_cleared(refreshed)


@pytest.mark.asyncio
async def test_logout_always_clears_cookie(api):
    missing = await api.logout(None)
    assert missing.status_code == 400
    assert api.cookie_cleared(missing)

    unknown = await api.logout("no-such-token")
    assert unknown.status_code == 404
    assert api.cookie_cleared(unknown)


@pytest.mark.asyncio
async def test_user_id_from_token_requires_bearer(client):
    response = await client.get("/user-id-from-token")
    assert response.status_code == 401
    assert response.json()["errorCode"] == 1014


@pytest.mark.asyncio
async def test_current_session(api, make_user):
    await make_user("a@b.com")
    login = await api.login("a@b.com")
    access_token = login.json()["accessToken"]

    response = await api.client.get("/session", headers=api.bearer(access_token))
    assert response.status_code == 200
    session = response.json()
    assert session["userId"] == login.json()["id"]
    assert session["accessToken"] == access_token
    assert session["expirationDate"]
    assert "refreshToken" not in session

    await api.logout(api.refresh_cookie(login))
    revoked = await api.client.get("/session", headers=api.bearer(access_token))
    assert revoked.status_code == 401


@pytest.mark.asyncio
async def test_current_session_requires_bearer(client):
    response = await client.get("/session")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_password_reset_flow(api, make_user, email_service):
    await make_user("a@b.com")
    old_refresh = api.refresh_cookie(await api.login("a@b.com"))

    forgot = await api.client.post("/forgot-password", json={"email": "a@b.com", "returnUrl": "https://app/reset"})
    assert forgot.status_code == 200
    token, user_id = email_service.last_link()

    reset = await api.client.put("/reset-password", json={
        "userId": user_id, "token": token, "password": "NewPass123", "confirmPassword": "NewPass123",
    })
    assert reset.status_code == 200

    refreshed = await api.refresh(old_refresh)
    assert refreshed.status_code == 404
    assert (await api.login("a@b.com", "NewPass123")).status_code == 200


@pytest.mark.asyncio
async def test_forgot_password_unknown_email(client):
    response = await client.post("/forgot-password", json={"email": "nobody@example.com"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_account_recovery_flow(api, make_user, email_service):
    await make_user("a@b.com")
    login = await api.login("a@b.com")
    user_id = login.json()["id"]

    deleted = await api.client.delete(f"/user/{user_id}", headers=api.bearer(login.json()["accessToken"]))
    assert deleted.status_code == 204
    gone = await api.login("a@b.com")
    assert gone.status_code == 410
    assert gone.json()["title"] == "Users.UserIsDeleted"

    requested = await api.client.put("/manage-account-state", json={
        "email": "a@b.com", "actionType": "Recover", "returnUrl": "https://app/recover",
    })
    assert requested.status_code == 200
    token, mailed_id = email_service.last_link()
    assert mailed_id == user_id

    confirmed = await api.client.patch("/confirm-account-action", json={
        "userId": user_id, "token": token, "actionType": "Recover",
    })
    assert confirmed.status_code == 200
    assert (await api.login("a@b.com")).status_code == 200


@pytest.mark.asyncio
async def test_manage_account_state_rejects_unknown_action(client):
    response = await client.put("/manage-account-state", json={"email": "a@b.com", "actionType": "Explode"})
    assert response.status_code == 400

