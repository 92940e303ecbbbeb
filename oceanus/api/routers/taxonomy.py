from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends

from oceanus.services.taxonomy_service import TaxonomyService

router = APIRouter()


def get_taxonomy_service() -> TaxonomyService:
    return TaxonomyService()


Service = Annotated[TaxonomyService, Depends(get_taxonomy_service)]


@router.get("/tree")
def taxonomy_tree(service: Service) -> dict[str, Any]:
    return service.tree()


@router.get("/species")
def taxonomy_species(service: Service) -> list[dict[str, str]]:
    return service.species_paths()
