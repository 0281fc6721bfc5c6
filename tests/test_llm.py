"""Unit tests for LLM utilities."""

import asyncio
import pytest
from unittest.mock import patch, Mock, AsyncMock

from pydantic_ai.messages import ModelResponse, SystemPromptPart, TextPart, UserPromptPart
from pydantic_ai.models.function import AgentInfo, FunctionModel

from examiner_panel.libs.llm import InferenceClient, InferenceError, create_agent, create_model


def _echo_model(captured):
    """FunctionModel that records the prompts it sees and replies with a fixed JSON string."""
    def respond(messages, info: AgentInfo) -> ModelResponse:
        for message in messages:
            for part in message.parts:
                if isinstance(part, SystemPromptPart):
                    captured['system'] = part.content
                elif isinstance(part, UserPromptPart):
                    captured['user'] = part.content
        captured['settings'] = info.model_settings
        return ModelResponse(parts=[TextPart('{"score": 2}')])
    return FunctionModel(respond)


class TestCreateModel:
    """Test the create_model function."""

    def test_create_model_from_config(self):
        configs = {
            "openai": {
                "api_key": "test-key",
                "base_url": "http://localhost:9999/v1",
                "model": "kimi-latest"
            }
        }
        model = create_model(configs)
        assert model.model_name == "kimi-latest"

    def test_model_override(self):
        configs = {"openai": {"api_key": "test-key", "model": "kimi-latest"}}
        model = create_model(configs, model="moonshot-v1-8k")
        assert model.model_name == "moonshot-v1-8k"

    def test_missing_api_key(self):
        """A missing or empty key is a configuration problem."""
        with pytest.raises(ValueError, match="api_key not configured"):
            create_model({"openai": {"model": "kimi-latest"}})
        with pytest.raises(ValueError, match="api_key not configured"):
            create_model({"openai": {"api_key": "", "model": "kimi-latest"}})

    def test_missing_model(self):
        with pytest.raises(KeyError):
            create_model({"openai": {"api_key": "test-key"}})


class TestCreateAgent:
    """Test the create_agent function."""

    def test_create_agent_with_system_prompt(self):
        agent = create_agent(FunctionModel(lambda messages, info: ModelResponse(parts=[TextPart("ok")])),
                             system_prompt="You are an examiner.")
        assert agent is not None

    def test_create_agent_with_settings_dict(self):
        agent = create_agent(FunctionModel(lambda messages, info: ModelResponse(parts=[TextPart("ok")])),
                             settings_dict={"temperature": 0.7, "max_tokens": 1000})
        assert agent is not None


class TestInferenceClient:
    """Test InferenceClient.complete against a FunctionModel."""

    def test_from_configs(self):
        configs = {
            "openai": {
                "api_key": "test-key",
                "model": "kimi-latest",
                "pydantic_ai_settings": {"temperature": 0.1}
            }
        }
        client = InferenceClient.from_configs(configs)
        assert client.model_name == "kimi-latest"
        assert client.settings == {"temperature": 0.1}

    @pytest.mark.asyncio
    async def test_complete_returns_text(self):
        captured = {}
        client = InferenceClient(_echo_model(captured))

        reply = await client.complete("You are an examiner.", "STUDENT RESPONSE: text",
                                      max_tokens=300, temperature=0.2, timeout=5)

        assert reply == '{"score": 2}'
        assert captured['system'] == "You are an examiner."
        assert captured['user'] == "STUDENT RESPONSE: text"
        assert captured['settings']['max_tokens'] == 300
        assert captured['settings']['temperature'] == 0.2

    @pytest.mark.asyncio
    async def test_complete_times_out(self):
        async def slow(messages, info):
            await asyncio.sleep(1)
            return ModelResponse(parts=[TextPart("late")])

        client = InferenceClient(FunctionModel(slow))
        with pytest.raises(asyncio.TimeoutError):
            await client.complete("system", "user", timeout=0.05)

    @pytest.mark.asyncio
    async def test_empty_reply_raises(self):
        client = InferenceClient(FunctionModel(lambda messages, info: ModelResponse(parts=[TextPart("x")])))
        agent = Mock()
        agent.run = AsyncMock(return_value=Mock(output="   "))

        with patch('examiner_panel.libs.llm.create_agent', return_value=agent):
            with pytest.raises(InferenceError, match="Empty response"):
                await client.complete("system", "user")


@pytest.mark.integration_test
@pytest.mark.asyncio
async def test_real_inference_service():
    """Calls the configured inference service (needs openai.api_key in config/local.yaml)."""
    from examiner_panel.libs.config_loader import load_all_configs

    configs = load_all_configs()
    if not configs.get("openai", {}).get("api_key"):
        pytest.skip("openai.api_key not configured")

    client = InferenceClient.from_configs(configs)
    reply = await client.complete("Reply with the single word: ready", "Are you ready?",
                                  max_tokens=10, temperature=0, timeout=30)
    assert reply.strip()
