"""
Unit tests for model pricing and the model catalog.
"""
import pytest

from datadeck.services.agent.pricing import calculate_cost, format_cost, list_models, model_info


class TestCalculateCost:
    """Tests for calculate_cost."""

    def test_flat_rate_model(self):
        """1M input and 1M output tokens of gpt-4.1 cost 2 + 8 dollars."""
        assert calculate_cost("gpt-4.1", 1_000_000, 1_000_000) == pytest.approx(10.0)

    def test_tiered_model_below_threshold(self):
        cost = calculate_cost("gemini-2.5-pro", 100_000, 50_000)

        assert cost == pytest.approx(0.1 * 1.25 + 0.05 * 10.0)

    def test_tiered_model_above_threshold_reprices_whole_run(self):
        """Crossing the threshold applies the higher rates to every token."""
        cost = calculate_cost("gemini-2.5-pro", 150_000, 100_000)

        assert cost == pytest.approx(0.15 * 2.50 + 0.1 * 15.0)

    def test_threshold_is_exclusive(self):
        cost = calculate_cost("gemini-2.5-pro", 200_000, 0)

        assert cost == pytest.approx(0.2 * 1.25)

    def test_unknown_model_costs_nothing(self):
        assert calculate_cost("mystery-model", 1_000_000, 1_000_000) == 0.0

    def test_zero_tokens(self):
        assert calculate_cost("gemini-2.5-flash", 0, 0) == 0.0


class TestFormatCost:
    """Tests for format_cost."""

    def test_small_amounts_keep_four_decimals(self):
        assert format_cost(0.00123) == "$0.0012"

    def test_regular_amounts_use_cents(self):
        assert format_cost(1.5) == "$1.50"


class TestModelCatalog:
    """Tests for model_info and list_models."""

    def test_model_info_includes_pricing(self):
        info = model_info("gpt-4.1", "sdk").to_dict()

        assert info["name"] == "GPT-4.1"
        assert info["provider"] == "sdk"
        assert info["pricing"] == {"inputPer1M": 2.0, "outputPer1M": 8.0}

    def test_unknown_model_has_no_pricing(self):
        info = model_info("custom-deployment", "sdk").to_dict()

        assert info["name"] == "custom-deployment"
        assert info["pricing"] is None

    def test_only_configured_providers_are_listed(self, settings):
        """The fixture configures the OpenAI-compatible endpoint only."""
        models = list_models(settings)

        assert [m.id for m in models] == ["gemini-2.5-flash", "gemini-2.5-pro"]
        assert {m.provider for m in models} == {"direct"}

    def test_both_providers(self, settings):
        settings.azure_openai_api_key = "azure-key"
        settings.azure_openai_endpoint = "https://example.openai.azure.com"

        providers = [m.provider for m in list_models(settings)]

        assert providers == ["direct", "direct", "sdk", "sdk"]
