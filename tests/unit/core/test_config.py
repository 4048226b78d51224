"""
Tests for grounded_search/core/config.py
"""

import os
from unittest.mock import patch

import pytest


class TestSettings:
    """Tests for the Settings class."""

    def test_settings_singleton(self):
        """Test that get_settings returns the same instance."""
        from grounded_search.core.config import get_settings

        settings1 = get_settings()
        settings2 = get_settings()
        assert settings1 is settings2

    def test_search_defaults(self):
        """Test the default search constants."""
        from grounded_search.core.config import Settings

        settings = Settings()
        assert settings.SEARCH_DEFAULT_LIMIT == 5
        assert settings.SEARCH_MAX_LIMIT == 100
        assert settings.SEARCH_DEFAULT_THRESHOLD == 0.3
        assert settings.SEARCH_MIN_THRESHOLD == 0.2
        assert settings.SEARCH_MAX_THRESHOLD == 0.8

    def test_hybrid_defaults(self):
        """Test the default hybrid weights."""
        from grounded_search.core.config import Settings

        settings = Settings()
        assert settings.HYBRID_VECTOR_WEIGHT == 0.7
        assert settings.HYBRID_KEYWORD_WEIGHT == 0.3
        assert settings.KEYWORD_PLACEHOLDER_SCORE == 0.5

    def test_cache_defaults(self):
        """Test the default cache bounds."""
        from grounded_search.core.config import Settings

        settings = Settings()
        assert settings.CACHE_MAX_SIZE == 200
        assert settings.CACHE_TTL_SECONDS == 900

    def test_settings_env_override(self):
        """Test that environment variables override defaults."""
        from grounded_search.core.config import Settings

        with patch.dict(os.environ, {"CACHE_MAX_SIZE": "10", "SEARCH_DEFAULT_LIMIT": "7"}):
            settings = Settings()

        assert settings.CACHE_MAX_SIZE == 10
        assert settings.SEARCH_DEFAULT_LIMIT == 7

    def test_hybrid_weights_must_sum_to_one(self):
        """Test that unbalanced hybrid weights are rejected."""
        from pydantic import ValidationError
        from grounded_search.core.config import Settings

        with pytest.raises(ValidationError):
            Settings(HYBRID_VECTOR_WEIGHT=0.5, HYBRID_KEYWORD_WEIGHT=0.3)

    def test_threshold_out_of_range_rejected(self):
        """Test that thresholds outside [0, 1] are rejected."""
        from pydantic import ValidationError
        from grounded_search.core.config import Settings

        with pytest.raises(ValidationError):
            Settings(SEARCH_DEFAULT_THRESHOLD=1.5)


class TestScoringConfig:
    """Tests for the ScoringConfig dataclass."""

    def test_default_weights(self):
        """Test the enhanced score weights."""
        from grounded_search.core.config import ScoringConfig

        scoring = ScoringConfig()
        assert scoring.max_similarity_weight == 0.5
        assert scoring.avg_similarity_weight == 0.3
        assert scoring.position_weight == 0.2
        assert scoring.max_diversity_bonus == 0.2
        assert scoring.max_chunks_per_document == 3

    def test_scoring_config_is_frozen(self):
        """Test that a ScoringConfig cannot be mutated."""
        from dataclasses import FrozenInstanceError
        from grounded_search.core.config import ScoringConfig

        scoring = ScoringConfig()
        with pytest.raises(FrozenInstanceError):
            scoring.position_weight = 0.9

    def test_scoring_config_override(self):
        """Test per-instance overrides."""
        from grounded_search.core.config import ScoringConfig

        scoring = ScoringConfig(max_excerpt_length=120)
        assert scoring.max_excerpt_length == 120
        assert scoring.excerpt_separator == "\n\n---\n\n"
