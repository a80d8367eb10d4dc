"""
Unit tests for HeuristicVariationGenerator.
"""
import pytest

from agent_council.core.task_variation_generator import HeuristicVariationGenerator


class TestHeuristicVariationGenerator:
    """Test per-agent task variations."""

    @pytest.mark.asyncio
    async def test_one_variation_per_agent(self, sample_task):
        generator = HeuristicVariationGenerator()

        variations = await generator.generate_variations(sample_task, ["backend", "qa"])

        assert [v.agent_id for v in variations] == ["backend", "qa"]
        backend = variations[0]
        assert backend.original_task_id == sample_task.id
        assert backend.emphasis == ["performance", "security"]
        assert backend.similarity == 0.9
        assert backend.variation.description.startswith(sample_task.description)
        assert backend.variation.description.endswith("[Focus: performance, security]")
        assert backend.variation.id == sample_task.id

    @pytest.mark.asyncio
    async def test_original_task_untouched(self, sample_task):
        description = sample_task.description

        await HeuristicVariationGenerator().generate_variations(sample_task, ["frontend"])

        assert sample_task.description == description

    @pytest.mark.asyncio
    async def test_unknown_agent_gets_general_focus(self, sample_task):
        variations = await HeuristicVariationGenerator().generate_variations(sample_task, ["custom"])

        assert variations[0].emphasis == ["general"]

    @pytest.mark.asyncio
    async def test_several_variations_cycle_strategies(self, sample_task):
        variations = await HeuristicVariationGenerator().generate_variations(sample_task, ["backend"], count=2)

        assert [v.emphasis for v in variations] == [
            ["performance", "security"],
            ["maintainability", "scalability"],
        ]

    @pytest.mark.asyncio
    async def test_results_are_cached(self, sample_task):
        generator = HeuristicVariationGenerator()

        first = await generator.generate_variations(sample_task, ["qa"])
        second = await generator.generate_variations(sample_task, ["qa"])
        assert first is second

        generator.clear_cache()
        assert await generator.generate_variations(sample_task, ["qa"]) is not first
