from __future__ import annotations

import asyncio
from typing import Annotated

from fastapi import APIRouter, Depends, File, UploadFile
from starlette.concurrency import run_in_threadpool

from oceanus.api.deps import raise_http_error
from oceanus.domain.errors import ValidationError
from oceanus.domain.models import DnaMatchRequest, DnaMatchResponse, SpeciesPredictResponse
from oceanus.services import ai_service
from oceanus.services.ai_service import AiService

router = APIRouter()


def get_ai_service() -> AiService:
    return AiService()


Service = Annotated[AiService, Depends(get_ai_service)]


@router.post("/species-predict", response_model=SpeciesPredictResponse)
async def species_predict(
    service: Service,
    image: UploadFile | None = File(default=None),
) -> SpeciesPredictResponse:
    image_bytes = await image.read() if image is not None else None
    await asyncio.sleep(ai_service.SPECIES_PREDICT_LATENCY_SECONDS)
    return await run_in_threadpool(
        service.species_predict,
        image_name=image.filename if image is not None else None,
        image_bytes=image_bytes,
    )


@router.post("/dna-match", response_model=DnaMatchResponse)
async def dna_match(payload: DnaMatchRequest, service: Service) -> DnaMatchResponse:
    try:
        response = await run_in_threadpool(service.dna_match, payload.sequence)
    except ValidationError as exc:
        raise_http_error(exc)
    await asyncio.sleep(ai_service.DNA_MATCH_LATENCY_SECONDS)
    return response
