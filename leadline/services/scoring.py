"""
Qualification scoring - keyword categories, each worth a flat bonus.

A category fires at most once per message no matter how many of its
keywords appear. The message score is the sum of fired category bonuses.
Matching is case-insensitive substring matching, so "now" also fires on
"know"; the keyword lists are policy and live in config.
"""
import logging

from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)


class ScoringCategory(BaseModel):
    """One keyword category and the bonus it contributes."""
    name: str
    keywords: list[str] = Field(..., min_length=1)
    bonus: int = Field(..., ge=0)

    @field_validator("keywords")
    @classmethod
    def _lowercase_keywords(cls, value: list[str]) -> list[str]:
        cleaned = [k.strip().lower() for k in value if k and k.strip()]
        if not cleaned:
            raise ValueError("category needs at least one non-empty keyword")
        return cleaned


class ScoringPolicy(BaseModel):
    """Ordered, disjoint set of categories."""
    categories: list[ScoringCategory]

    @field_validator("categories")
    @classmethod
    def _categories_disjoint(cls, value: list[ScoringCategory]) -> list[ScoringCategory]:
        seen: dict[str, str] = {}
        for category in value:
            for keyword in category.keywords:
                owner = seen.get(keyword)
                if owner is not None and owner != category.name:
                    raise ValueError(
                        f"keyword {keyword!r} is in both {owner!r} and {category.name!r}"
                    )
                seen[keyword] = category.name
        return value

    @property
    def max_score(self) -> int:
        return sum(c.bonus for c in self.categories)


DEFAULT_CATEGORIES = (
    ScoringCategory(
        name="positive_intent",
        keywords=["interested", "yes", "want", "need", "buy", "purchase", "budget"],
        bonus=10,
    ),
    ScoringCategory(
        name="urgency",
        keywords=["urgent", "asap", "soon", "now", "today"],
        bonus=15,
    ),
    ScoringCategory(
        name="qualifying_question",
        keywords=["timeline", "when", "how much", "cost", "price"],
        bonus=5,
    ),
)

DEFAULT_POLICY = ScoringPolicy(categories=list(DEFAULT_CATEGORIES))


def matched_categories(message_text: str, policy: ScoringPolicy = DEFAULT_POLICY) -> list[str]:
    """Names of the categories with at least one keyword in the message."""
    if not message_text:
        return []
    text = message_text.lower()
    return [
        category.name
        for category in policy.categories
        if any(keyword in text for keyword in category.keywords)
    ]


def score_message(message_text: str, policy: ScoringPolicy = DEFAULT_POLICY) -> int:
    """
    Score delta for one inbound message.

    "This is urgent, what's the timeline and cost?" -> 15 + 5 = 20
    "hello" -> 0
    """
    fired = set(matched_categories(message_text, policy))
    return sum(c.bonus for c in policy.categories if c.name in fired)
