from __future__ import annotations

import asyncio
import os

import httpx

from demo_common import api_login, assert_redirect, assert_status, auth_headers, console_login, wait_ok

PROCESSING_WAIT_SECONDS = float(os.getenv("DEMO_PROCESSING_WAIT_SECONDS", "15"))


async def _wait_processed(client: httpx.AsyncClient, dataset_id: str) -> None:
    deadline = asyncio.get_running_loop().time() + PROCESSING_WAIT_SECONDS
    while asyncio.get_running_loop().time() < deadline:
        response = await client.get(f"/api/datasets/{dataset_id}")
        assert_status(response, 200)
        if response.json()["status"] == "processed":
            return
        await asyncio.sleep(0.5)
    raise RuntimeError(f"dataset {dataset_id} was not processed within {PROCESSING_WAIT_SECONDS}s")


async def _run() -> None:
    base_url = os.getenv("APP_BASE_URL", "http://localhost:8000").rstrip("/")
    timeout = httpx.Timeout(20.0)

    async with httpx.AsyncClient(base_url=base_url, timeout=timeout) as client:
        await wait_ok(client, "/healthz")
        await wait_ok(client, "/readyz")

        admin = await console_login(client, "admin@oceanus.com")
        assert_redirect(admin, "/admin")
        assert_status(await client.get("/admin"), 200)

    async with httpx.AsyncClient(base_url=base_url, timeout=timeout) as client:
        guest = await console_login(client, "guest@oceanus.com")
        assert_redirect(guest, "/explorer")
        assert_status(await client.get("/explorer"), 200)
        assert_redirect(await client.get("/admin"), "/403")

    async with httpx.AsyncClient(base_url=base_url, timeout=timeout) as client:
        login = await api_login(client, "researcher@oceanus.com")
        token = str(login["token"])

        upload_resp = await client.post(
            "/api/upload",
            json={"name": "Demo Kelp Transects", "type": "Ocean Data", "location": "Monterey Bay"},
            headers=auth_headers(token),
        )
        assert_status(upload_resp, 200)
        dataset = upload_resp.json()["dataset"]
        if dataset["status"] != "pending":
            raise RuntimeError(f"new dataset should start pending, got {dataset['status']}")
        await _wait_processed(client, dataset["id"])

        empty_dna = await client.post("/api/ai/dna-match", json={"sequence": ""})
        assert_status(empty_dna, 400)
        dna_resp = await client.post("/api/ai/dna-match", json={"sequence": "ATCGGCTA"})
        assert_status(dna_resp, 200)
        similarities = [item["similarity"] for item in dna_resp.json()["matches"]]
        if similarities != sorted(similarities, reverse=True):
            raise RuntimeError(f"dna matches not sorted: {similarities}")

        refresh_resp = await client.post("/api/auth/refresh", headers=auth_headers(token))
        assert_status(refresh_resp, 200)

    print("demo_e2e: console guard + upload processing + dna match ok")


def main() -> None:
    asyncio.run(_run())


if __name__ == "__main__":
    main()
