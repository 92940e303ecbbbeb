from __future__ import annotations

import asyncio
import time

import httpx

DEMO_PASSWORD = "password"


def assert_status(response: httpx.Response, expected: int | tuple[int, ...]) -> None:
    expected_codes = (expected,) if isinstance(expected, int) else expected
    if response.status_code not in expected_codes:
        raise RuntimeError(
            f"{response.request.method} {response.request.url} expected {expected_codes}, "
            f"got {response.status_code}: {response.text}"
        )


def assert_redirect(response: httpx.Response, location: str) -> None:
    assert_status(response, 303)
    actual = response.headers.get("location")
    if actual != location:
        raise RuntimeError(f"{response.request.url} redirected to {actual}, expected {location}")


def auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


async def wait_ok(client: httpx.AsyncClient, path: str, timeout_seconds: float = 60.0) -> None:
    deadline = time.monotonic() + timeout_seconds
    while time.monotonic() < deadline:
        try:
            response = await client.get(path)
            if response.status_code == 200:
                return
        except httpx.HTTPError:
            pass
        await asyncio.sleep(1.0)
    raise RuntimeError(f"timeout waiting for {path}")


async def api_login(client: httpx.AsyncClient, email: str) -> dict[str, object]:
    response = await client.post("/api/auth/login", json={"email": email, "password": DEMO_PASSWORD})
    assert_status(response, 200)
    return response.json()


async def console_login(client: httpx.AsyncClient, email: str) -> httpx.Response:
    """Sign in through the HTML form; ``client`` keeps the session cookie."""
    login_page = await client.get("/auth/login")
    assert_status(login_page, 200)
    csrf_token = client.cookies.get("oceanus_csrf")
    if not csrf_token:
        raise RuntimeError("login page did not issue a csrf cookie")
    return await client.post(
        "/auth/login",
        data={"email": email, "password": DEMO_PASSWORD, "csrf_token": csrf_token},
    )
