"""
Qualification scoring tests - category bonuses, idempotence, policy validation.
"""
import pytest
from pydantic import ValidationError

from leadline.services.scoring import (
    DEFAULT_POLICY,
    ScoringCategory,
    ScoringPolicy,
    matched_categories,
    score_message,
)


class TestScoreMessage:
    def test_urgent_timeline_cost_scores_twenty(self):
        assert score_message("This is urgent, what's the timeline and cost?") == 20

    def test_plain_greeting_scores_zero(self):
        assert score_message("hello") == 0

    def test_empty_message_scores_zero(self):
        assert score_message("") == 0

    def test_positive_intent_only(self):
        assert score_message("I'd like to buy one") == 10

    def test_all_categories(self):
        assert score_message("Interested! Need it today, what's the price?") == 30

    def test_case_insensitive(self):
        assert score_message("ASAP PLEASE") == 15

    def test_repeated_keyword_counts_once(self):
        """'interested' twice still only fires positive intent once."""
        assert score_message("interested, very interested") == 10

    def test_several_keywords_same_category_count_once(self):
        assert score_message("yes I want to buy, budget is fine") == 10

    def test_multi_word_keyword(self):
        assert score_message("how much is it") == 5

    def test_substring_match(self):
        # "know" contains "now"; substring matching is intentional policy
        assert score_message("let me know") == 15

    @pytest.mark.parametrize("text", ["hello", "thanks", "ok cool", "who is this?"])
    def test_neutral_messages(self, text):
        assert score_message(text) == 0


class TestMatchedCategories:
    def test_reports_category_names_in_policy_order(self):
        fired = matched_categories("price? asap")
        assert fired == ["urgency", "qualifying_question"]

    def test_nothing_matched(self):
        assert matched_categories("hi there") == []


class TestScoringPolicy:
    def test_default_policy_shape(self):
        names = [c.name for c in DEFAULT_POLICY.categories]
        assert names == ["positive_intent", "urgency", "qualifying_question"]
        assert DEFAULT_POLICY.max_score == 30

    def test_custom_policy(self):
        policy = ScoringPolicy(categories=[
            ScoringCategory(name="referral", keywords=["friend", "referred"], bonus=7),
        ])
        assert score_message("my friend referred me", policy) == 7
        assert score_message("urgent", policy) == 0

    def test_keywords_are_lowercased(self):
        category = ScoringCategory(name="x", keywords=["  URGENT "], bonus=1)
        assert category.keywords == ["urgent"]

    def test_overlapping_categories_rejected(self):
        with pytest.raises(ValidationError):
            ScoringPolicy(categories=[
                ScoringCategory(name="a", keywords=["buy"], bonus=1),
                ScoringCategory(name="b", keywords=["BUY"], bonus=2),
            ])

    def test_negative_bonus_rejected(self):
        with pytest.raises(ValidationError):
            ScoringCategory(name="bad", keywords=["x"], bonus=-5)

    def test_empty_keywords_rejected(self):
        with pytest.raises(ValidationError):
            ScoringCategory(name="bad", keywords=["  "], bonus=5)
