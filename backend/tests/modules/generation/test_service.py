"""Tests for generation service."""

import pytest

from modules.credits.exceptions import InsufficientCreditsError
from modules.credits.models import AccountRef, CreditAction, Feature
from modules.generation.exceptions import GenerationFailedError, ProviderRateLimitedError
from modules.generation.interfaces import IGenerationService
from shared.models import AuthenticatedUser
from tests.conftest import TEST_TEAM_ID, TEST_USER_EMAIL, TEST_USER_ID

USER_REF = AccountRef.user(TEST_USER_ID)


@pytest.fixture
def user() -> AuthenticatedUser:
    return AuthenticatedUser(id=TEST_USER_ID, email=TEST_USER_EMAIL)


class TestGenerationService:
    def test_implements_interface(self, generation_service):
        assert isinstance(generation_service, IGenerationService)

    @pytest.mark.asyncio
    async def test_successful_generation_is_charged(self, generation_service, generation_gateway, credit_repo, user):
        result = await generation_service.generate(user, Feature.COMPLETE_IMAGE, {"prompt": "a cat"})

        assert result.output == {"image_url": "https://cdn.example.com/out.png"}
        assert result.credits_charged == 6
        assert result.credits_before == 50
        assert result.new_balance == 44
        assert result.history_entry_id == credit_repo.history[0].id
        assert generation_gateway.calls == [(Feature.COMPLETE_IMAGE, {"prompt": "a cat"})]

        entry = credit_repo.history[0]
        assert entry.action_type == CreditAction.CONSUMPTION
        assert entry.metadata["feature"] == "complete_image"

    @pytest.mark.asyncio
    async def test_failed_generation_is_free(self, generation_service, generation_gateway, credit_repo, user):
        generation_gateway.error = GenerationFailedError("quick_image", "gateway returned an error", 500)

        with pytest.raises(GenerationFailedError):
            await generation_service.generate(user, Feature.QUICK_IMAGE, {})

        assert credit_repo.accounts[USER_REF].credits == 50
        assert credit_repo.history == []

    @pytest.mark.asyncio
    async def test_rate_limit_is_free(self, generation_service, generation_gateway, credit_repo, user):
        generation_gateway.error = ProviderRateLimitedError("10")

        with pytest.raises(ProviderRateLimitedError):
            await generation_service.generate(user, Feature.QUICK_IMAGE, {})

        assert credit_repo.accounts[USER_REF].credits == 50

    @pytest.mark.asyncio
    async def test_insufficient_credits_skips_gateway(self, generation_service, generation_gateway, credit_repo, user):
        credit_repo.accounts[USER_REF] = credit_repo.accounts[USER_REF].model_copy(update={"credits": 10})

        with pytest.raises(InsufficientCreditsError) as exc_info:
            await generation_service.generate(user, Feature.VIDEO_GENERATION, {})

        assert exc_info.value.required == 20
        assert exc_info.value.available == 10
        assert generation_gateway.calls == []

    @pytest.mark.asyncio
    async def test_team_account(self, generation_service, credit_repo, user):
        result = await generation_service.generate(
            user, Feature.CAPTION_GENERATION, {}, account=AccountRef.team(TEST_TEAM_ID)
        )

        assert result.new_balance == 99
        assert credit_repo.history[0].user_id == TEST_USER_ID
        assert credit_repo.accounts[USER_REF].credits == 50
