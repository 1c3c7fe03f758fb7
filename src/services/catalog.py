"""In-process scheme catalog.

Holds validated :class:`SchemeDocument` instances keyed by id and
answers the two questions the engine needs: "what are this scheme's
criteria?" and "which schemes are candidates for these filters?".
Filters combine with AND semantics; inactive schemes are hidden unless
``include_inactive`` is set.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from pathlib import Path

import structlog

from src.data.seed import load_schemes
from src.errors import SchemeNotFound
from src.models.criteria import EligibilityCriteria
from src.models.scheme import SchemeCategory, SchemeDocument

logger = structlog.get_logger(__name__)


@dataclass(slots=True, frozen=True)
class CatalogFilters:
    """Candidate filters; every field that is set must match."""

    category: SchemeCategory | None = None
    state: str | None = None  # central schemes match every state
    occupation: str | None = None
    include_inactive: bool = False


class SchemeCatalog:
    """Validated schemes with an O(1) category pre-index."""

    __slots__ = ("_category_index", "_schemes")

    def __init__(self, schemes: list[SchemeDocument] | None = None) -> None:
        self._schemes: dict[str, SchemeDocument] = {}
        self._category_index: defaultdict[SchemeCategory, list[str]] = defaultdict(list)
        for scheme in schemes or []:
            self.add(scheme)

    @classmethod
    def from_file(cls, path: Path | None = None) -> SchemeCatalog:
        return cls(load_schemes(path))

    def add(self, scheme: SchemeDocument) -> None:
        """Ingest *scheme*; raises :class:`~src.errors.InvalidCriteria` if malformed."""
        scheme.eligibility.validate()
        previous = self._schemes.get(scheme.scheme_id)
        if previous is not None:
            self._category_index[previous.category].remove(scheme.scheme_id)
        self._schemes[scheme.scheme_id] = scheme
        self._category_index[scheme.category].append(scheme.scheme_id)
        logger.debug("catalog.scheme_added", scheme_id=scheme.scheme_id, replaced=previous is not None)

    def __len__(self) -> int:
        return len(self._schemes)

    def get_scheme(self, scheme_id: str) -> SchemeDocument:
        scheme = self._schemes.get(scheme_id)
        if scheme is None:
            raise SchemeNotFound(f"scheme {scheme_id} not found")
        return scheme

    def get_criteria(self, scheme_id: str) -> EligibilityCriteria:
        return self.get_scheme(scheme_id).eligibility

    def list_candidates(self, filters: CatalogFilters | None = None) -> list[str]:
        """Return scheme ids matching *filters*, in catalog order."""
        filters = filters or CatalogFilters()
        if filters.category is not None:
            pool = [self._schemes[sid] for sid in self._category_index.get(filters.category, [])]
        else:
            pool = list(self._schemes.values())
        return [s.scheme_id for s in pool if self._matches(s, filters)]

    @staticmethod
    def _matches(scheme: SchemeDocument, filters: CatalogFilters) -> bool:
        if not scheme.is_active and not filters.include_inactive:
            return False
        if filters.state is not None and not scheme.serves_state(filters.state):
            return False
        if filters.occupation is not None and not scheme.open_to_occupation(filters.occupation):
            return False
        return True
