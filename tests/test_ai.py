from __future__ import annotations

from collections.abc import Generator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlmodel import SQLModel, create_engine

from oceanus import main as app_main
from oceanus.infra import db, redis_state
from oceanus.services import ai_service


class FakeRedis:
    def __init__(self) -> None:
        self._store: dict[str, str] = {}

    def set(self, key: str, value: str, ex: int | None = None) -> bool:
        self._store[key] = value
        return True

    def get(self, key: str) -> str | None:
        return self._store.get(key)

    def delete(self, *keys: str) -> int:
        return sum(1 for key in keys if self._store.pop(key, None) is not None)

    def ping(self) -> bool:
        return True


@pytest.fixture()
def ai_client(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> Generator[TestClient, None, None]:
    db_path = tmp_path / "ai_test.db"
    test_engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False},
    )
    SQLModel.metadata.create_all(test_engine)
    fake_redis = FakeRedis()
    monkeypatch.setattr(db, "engine", test_engine)
    monkeypatch.setattr(redis_state, "get_redis", lambda: fake_redis)
    monkeypatch.setattr(ai_service, "SPECIES_PREDICT_LATENCY_SECONDS", 0)
    monkeypatch.setattr(ai_service, "DNA_MATCH_LATENCY_SECONDS", 0)
    with TestClient(app_main.app) as client:
        yield client


def test_species_predict_returns_fixed_prediction(ai_client: TestClient) -> None:
    response = ai_client.post(
        "/api/ai/species-predict",
        files={"image": ("rockfish.jpg", b"\xff\xd8\xff fake jpeg", "image/jpeg")},
    )
    assert response.status_code == 200
    prediction = response.json()["prediction"]
    assert prediction["commonName"] == "Blue Rockfish"
    assert prediction["species"] == "Sebastes mystinus"
    assert prediction["confidence"] == 0.94
    assert [item["commonName"] for item in prediction["alternates"]] == [
        "Yellowtail Rockfish",
        "Olive Rockfish",
    ]


def test_species_predict_without_image(ai_client: TestClient) -> None:
    response = ai_client.post("/api/ai/species-predict")
    assert response.status_code == 200
    assert response.json()["prediction"]["commonName"] == "Blue Rockfish"


def test_dna_match_sorted_by_similarity(ai_client: TestClient) -> None:
    response = ai_client.post("/api/ai/dna-match", json={"sequence": "ATCGATCGGCTA"})
    assert response.status_code == 200
    matches = response.json()["matches"]
    assert len(matches) == 3
    similarities = [item["similarity"] for item in matches]
    assert similarities == sorted(similarities, reverse=True)
    assert matches[0]["commonName"] == "Atlantic Bluefin Tuna"


@pytest.mark.parametrize("body", [{}, {"sequence": ""}, {"sequence": "  \n\t "}, {"sequence": None}])
def test_dna_match_requires_sequence(ai_client: TestClient, body: dict) -> None:
    response = ai_client.post("/api/ai/dna-match", json=body)
    assert response.status_code == 400
    assert response.json()["detail"] == "DNA sequence required"


def test_ai_calls_are_counted_on_dashboard(ai_client: TestClient) -> None:
    ai_client.post("/api/ai/dna-match", json={"sequence": "ATCG"})
    ai_client.post("/api/ai/species-predict")
    rejected = ai_client.post("/api/ai/dna-match", json={"sequence": ""})
    assert rejected.status_code == 400

    summary = ai_client.get("/api/dashboard/summary").json()
    assert summary["aiAnalyses"] == 2


def test_taxonomy_tree_and_species(ai_client: TestClient) -> None:
    tree = ai_client.get("/api/taxonomy/tree")
    assert tree.status_code == 200
    body = tree.json()
    assert body["kingdom"] == "Animalia"
    perciformes = body["children"][0]["children"][0]["children"][0]
    assert perciformes["order"] == "Perciformes"
    assert [item["family"] for item in perciformes["children"]] == ["Scombridae", "Carangidae"]

    species = ai_client.get("/api/taxonomy/species").json()
    assert len(species) == 4
    assert species[0] == {
        "kingdom": "Animalia",
        "phylum": "Chordata",
        "class": "Actinopterygii",
        "order": "Perciformes",
        "family": "Scombridae",
        "species": "Thunnus thynnus",
    }
