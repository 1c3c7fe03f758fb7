from src.models.application import ApplicationRecord, DocumentRef, StatusHistoryEntry
from src.models.conversation import ConversationContext, ExtractedIntent, Message
from src.models.criteria import AgeRange, CustomRule, EligibilityCriteria
from src.models.decision import (
    CriterionVerdict,
    EligibilityDecision,
    RankedScheme,
    RelevanceScore,
)
from src.models.enums import (
    ApplicationStatus,
    ContextState,
    CustomOperator,
    EligibilityOutcome,
    Gender,
    GenderRequirement,
    IncomeBand,
    LanguageCode,
    MessageRole,
    QueryIntent,
    SocialCategory,
)
from src.models.scheme import SchemeCategory, SchemeDocument
from src.models.user_profile import Location, UserProfile

__all__ = [
    "AgeRange",
    "ApplicationRecord",
    "ApplicationStatus",
    "ContextState",
    "ConversationContext",
    "CriterionVerdict",
    "CustomOperator",
    "CustomRule",
    "DocumentRef",
    "EligibilityCriteria",
    "EligibilityDecision",
    "EligibilityOutcome",
    "ExtractedIntent",
    "Gender",
    "GenderRequirement",
    "IncomeBand",
    "LanguageCode",
    "Location",
    "Message",
    "MessageRole",
    "QueryIntent",
    "RankedScheme",
    "RelevanceScore",
    "SchemeCategory",
    "SchemeDocument",
    "SocialCategory",
    "StatusHistoryEntry",
    "UserProfile",
]
