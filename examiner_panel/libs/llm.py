"""LLM utilities for talking to an OpenAI-compatible inference service."""


import asyncio
import logging
from typing import Optional, Dict, Any, Union

from pydantic_ai import Agent
from pydantic_ai.models import Model
from pydantic_ai.models.openai import OpenAIChatModel, OpenAIChatModelSettings
from pydantic_ai.providers.openai import OpenAIProvider
from pydantic_ai.settings import ModelSettings

from examiner_panel.libs.config_loader import ConfigType, get_config


# Fix up logging level for httpx to WARNING to reduce noise
logging.getLogger("httpx").setLevel(logging.WARNING)

LOG = logging.getLogger(__name__)


class InferenceError(Exception):
    """Raised when the inference service returns nothing usable."""


def create_model(configs: ConfigType, model: Optional[str] = None) -> OpenAIChatModel:
    """
    Create a chat model bound to the configured OpenAI-compatible endpoint.

    Args:
        configs: Configuration dictionary (required)
        model: Model to use (overrides config value)

    Returns:
        Configured OpenAIChatModel

    Raises:
        ValueError: If the API key is missing or empty in config
    """
    api_key = get_config("openai.api_key", configs, default=None)
    if not api_key:
        raise ValueError("openai.api_key not configured")
    base_url = get_config("openai.base_url", configs, default=None)
    model = model or get_config("openai.model", configs)

    provider = OpenAIProvider(base_url=base_url, api_key=api_key)
    return OpenAIChatModel(model, provider=provider)


def create_agent(model: Union[Model, str],
                 system_prompt: Optional[str] = None,
                 settings_dict: Optional[Dict[str, Any]] = None) -> Agent:
    """
    Create a pydantic-ai Agent around an already configured model.

    Args:
        model: pydantic-ai model instance (or model name)
        system_prompt: System prompt for the agent (optional)
        settings_dict: Pydantic AI settings dict

    Returns:
        Configured Agent
    """
    model_settings = OpenAIChatModelSettings(**settings_dict) if settings_dict else None
    if system_prompt:
        agent = Agent(
            model=model,
            model_settings=model_settings,
            system_prompt=system_prompt,
            retries=0,
        )
    else:
        agent = Agent(
            model=model,
            model_settings=model_settings,
            retries=0,
        )
    return agent


class InferenceClient:
    """Issue single role-tagged completions against the inference service."""

    def __init__(self, model: Union[Model, str], settings: Optional[Dict[str, Any]] = None):
        """
        Initialize the client.

        Args:
            model: pydantic-ai model instance (tests pass a FunctionModel)
            settings: Base pydantic-ai settings applied to every call
        """
        self.model = model
        self.settings = settings or {}
        self.model_name = model if isinstance(model, str) else getattr(model, "model_name", type(model).__name__)

    @classmethod
    def from_configs(cls, configs: ConfigType, model: Optional[str] = None) -> "InferenceClient":
        """Build a client from the ``openai`` config section."""
        chat_model = create_model(configs, model=model)
        settings = get_config("openai.pydantic_ai_settings", configs, default={}) or {}
        return cls(chat_model, settings=settings)

    async def complete(self, system_prompt: str, user_content: str, *,
                       max_tokens: Optional[int] = None,
                       temperature: Optional[float] = None,
                       timeout: Optional[float] = None) -> str:
        """
        Run one completion and return the reply text.

        The deadline is enforced with asyncio.wait_for so that it covers the
        whole call, not only the HTTP read.

        Raises:
            asyncio.TimeoutError: If the deadline expires
            InferenceError: If the service returned an empty payload
            pydantic_ai.exceptions.ModelHTTPError: On non-success HTTP status
        """
        agent = create_agent(self.model, system_prompt=system_prompt, settings_dict=self.settings)

        run_settings = ModelSettings()
        if max_tokens is not None:
            run_settings['max_tokens'] = max_tokens
        if temperature is not None:
            run_settings['temperature'] = temperature
        if timeout is not None:
            run_settings['timeout'] = timeout

        run = agent.run(user_content, model_settings=run_settings)
        if timeout is not None:
            result = await asyncio.wait_for(run, timeout=timeout)
        else:
            result = await run

        response_text = "" if result.output is None else str(result.output)
        if not response_text.strip():
            raise InferenceError("Empty response from inference service")
        return response_text
