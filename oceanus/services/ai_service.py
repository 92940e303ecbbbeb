from __future__ import annotations

import hashlib
import logging
import os

from sqlmodel import Session

from oceanus.domain.errors import ValidationError
from oceanus.domain.models import (
    AiAnalysis,
    AiAnalysisKind,
    DnaMatch,
    DnaMatchResponse,
    SpeciesCandidate,
    SpeciesPrediction,
    SpeciesPredictResponse,
)
from oceanus.infra.db import get_engine

logger = logging.getLogger(__name__)

SPECIES_PREDICT_LATENCY_SECONDS = float(os.getenv("SPECIES_PREDICT_LATENCY_SECONDS", "2"))
DNA_MATCH_LATENCY_SECONDS = float(os.getenv("DNA_MATCH_LATENCY_SECONDS", "3"))

SPECIES_PREDICTION = SpeciesPrediction(
    species="Sebastes mystinus",
    common_name="Blue Rockfish",
    confidence=0.94,
    alternates=[
        SpeciesCandidate(species="Sebastes flavidus", common_name="Yellowtail Rockfish", confidence=0.78),
        SpeciesCandidate(species="Sebastes serranoides", common_name="Olive Rockfish", confidence=0.65),
    ],
)

DNA_REFERENCE_MATCHES: tuple[DnaMatch, ...] = (
    DnaMatch(species="Thunnus orientalis", common_name="Pacific Bluefin Tuna", similarity=97.2),
    DnaMatch(species="Thunnus thynnus", common_name="Atlantic Bluefin Tuna", similarity=98.5),
    DnaMatch(species="Thunnus maccoyii", common_name="Southern Bluefin Tuna", similarity=96.8),
)


class AiService:
    """Fixed-answer stand-ins for the species and DNA analysis tools.

    Every call is recorded as an ``AiAnalysis`` row so the dashboard can count
    them; the answers themselves never depend on the input.
    """

    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _record(self, kind: AiAnalysisKind, user_id: str | None, summary: str, result: dict) -> None:
        with self._session() as session:
            session.add(AiAnalysis(kind=kind, user_id=user_id, summary=summary, result=result))
            session.commit()

    def species_predict(
        self,
        *,
        image_name: str | None,
        image_bytes: bytes | None,
        user_id: str | None = None,
    ) -> SpeciesPredictResponse:
        digest = hashlib.sha256(image_bytes or b"").hexdigest()[:16]
        response = SpeciesPredictResponse(prediction=SPECIES_PREDICTION.model_copy(deep=True))
        self._record(
            AiAnalysisKind.SPECIES_PREDICT,
            user_id,
            f"image={image_name or 'unnamed'} sha256={digest}",
            response.model_dump(mode="json", by_alias=True),
        )
        logger.info("species prediction served for %s", image_name or "unnamed image")
        return response

    def dna_match(self, sequence: str | None, *, user_id: str | None = None) -> DnaMatchResponse:
        cleaned = "".join((sequence or "").split())
        if not cleaned:
            raise ValidationError("DNA sequence required")
        matches = sorted(DNA_REFERENCE_MATCHES, key=lambda item: item.similarity, reverse=True)
        response = DnaMatchResponse(matches=[item.model_copy() for item in matches])
        self._record(
            AiAnalysisKind.DNA_MATCH,
            user_id,
            f"sequence_length={len(cleaned)}",
            response.model_dump(mode="json", by_alias=True),
        )
        return response
