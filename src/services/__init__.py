"""Service layer: deterministic eligibility core plus its stateful collaborators.

The reasoning collaborator imports the Vertex AI SDK only on first use,
so ``import src.services`` works without GCP credentials.
"""

from __future__ import annotations

from src.services.catalog import CatalogFilters, SchemeCatalog
from src.services.conversation import ConversationContextManager
from src.services.lifecycle import (
    TRANSITIONS,
    ApplicationLifecycleTracker,
    ApplicationRepository,
    current_status,
)
from src.services.profiles import ProfileRepository
from src.services.ranker import rank
from src.services.reasoning import ReasoningService
from src.services.relevance import criteria_relevance, get_strategy, uniform_relevance
from src.services.rule_evaluator import evaluate
from src.services.store import (
    InMemoryVersionedBackend,
    RedisVersionedBackend,
    VersionedStore,
)
from src.services.synthesizer import synthesize

__all__ = [
    "TRANSITIONS",
    "ApplicationLifecycleTracker",
    "ApplicationRepository",
    "CatalogFilters",
    "ConversationContextManager",
    "InMemoryVersionedBackend",
    "ProfileRepository",
    "ReasoningService",
    "RedisVersionedBackend",
    "SchemeCatalog",
    "VersionedStore",
    "criteria_relevance",
    "current_status",
    "evaluate",
    "get_strategy",
    "rank",
    "synthesize",
    "uniform_relevance",
]
