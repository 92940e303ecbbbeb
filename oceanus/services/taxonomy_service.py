from __future__ import annotations

import copy
from typing import Any

TAXONOMY_TREE: dict[str, Any] = {
    "kingdom": "Animalia",
    "children": [
        {
            "phylum": "Chordata",
            "children": [
                {
                    "class": "Actinopterygii",
                    "children": [
                        {
                            "order": "Perciformes",
                            "children": [
                                {"family": "Scombridae", "species": ["Thunnus thynnus", "Katsuwonus pelamis"]},
                                {"family": "Carangidae", "species": ["Seriola dumerili", "Caranx hippos"]},
                            ],
                        }
                    ],
                }
            ],
        }
    ],
}

RANKS = ("kingdom", "phylum", "class", "order", "family")


class TaxonomyService:
    def tree(self) -> dict[str, Any]:
        return copy.deepcopy(TAXONOMY_TREE)

    def species_paths(self) -> list[dict[str, str]]:
        """Flatten the tree into one row per species with its full lineage."""
        rows: list[dict[str, str]] = []

        def walk(node: dict[str, Any], lineage: dict[str, str]) -> None:
            current = dict(lineage)
            for rank in RANKS:
                if rank in node:
                    current[rank] = node[rank]
            for species in node.get("species", []):
                rows.append({**current, "species": species})
            for child in node.get("children", []):
                walk(child, current)

        walk(TAXONOMY_TREE, {})
        return rows
