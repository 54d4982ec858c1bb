"""
Provider-agnostic LLM client for the knowledge base pipeline.

Supports Azure OpenAI, OpenAI, Anthropic, and Google Gemini with a shared
text-generation interface that also reports token usage.
"""

from __future__ import annotations

import logging
from typing import Optional, Tuple

from .errors import ProviderError

logger = logging.getLogger("rag_navigator.common.llm_client")


class LLMClient:
    """Unified text generation client across LLM providers."""

    def __init__(
        self,
        provider: str = "azure",
        model: str = "",
        azure_api_key: Optional[str] = None,
        azure_endpoint: Optional[str] = None,
        azure_api_version: str = "2024-06-01",
        openai_api_key: Optional[str] = None,
        anthropic_api_key: Optional[str] = None,
        google_api_key: Optional[str] = None,
    ) -> None:
        self.provider = (provider or "azure").lower()
        self.model = model
        self._client = None

        if self.provider == "azure":
            if not azure_api_key or not azure_endpoint:
                logger.info("%s API key or endpoint not provided, LLM client unavailable", self.provider)
                return
            try:
                from openai import AzureOpenAI

                self._client = AzureOpenAI(
                    api_key=azure_api_key,
                    azure_endpoint=azure_endpoint,
                    api_version=azure_api_version,
                )
            except ImportError:
                logger.warning("openai package not installed")
            except Exception as e:
                logger.warning("Failed to initialize Azure OpenAI client: %s", e)
            return

        if self.provider == "openai":
            if not openai_api_key:
                logger.info("%s API key not provided, LLM client unavailable", self.provider)
                return
            try:
                from openai import OpenAI

                self._client = OpenAI(api_key=openai_api_key)
            except ImportError:
                logger.warning("openai package not installed")
            except Exception as e:
                logger.warning("Failed to initialize OpenAI client: %s", e)
            return

        if self.provider == "anthropic":
            if not anthropic_api_key:
                logger.info("%s API key not provided, LLM client unavailable", self.provider)
                return
            try:
                import anthropic

                self._client = anthropic.Anthropic(api_key=anthropic_api_key)
            except ImportError:
                logger.warning("anthropic package not installed")
            except Exception as e:
                logger.warning("Failed to initialize Anthropic client: %s", e)
            return

        if self.provider == "google":
            if not google_api_key:
                logger.info("%s API key not provided, LLM client unavailable", self.provider)
                return
            try:
                import google.generativeai as genai

                genai.configure(api_key=google_api_key)
                self._client = genai  # Store the module, not a model instance
                self._google_models = {}  # Cache models by system prompt hash
            except ImportError:
                logger.warning("google-generativeai package not installed")
            except Exception as e:
                logger.warning("Failed to initialize Gemini client: %s", e)
            return

        logger.warning("Unsupported LLM provider: %s", self.provider)

    @classmethod
    def from_config(cls, llm_config) -> "LLMClient":
        """Build a client for the provider selected in LLMConfig."""
        models = {
            "azure": llm_config.azure_deployment,
            "openai": llm_config.openai_model,
            "anthropic": llm_config.anthropic_model,
            "google": llm_config.google_model,
        }
        return cls(
            provider=llm_config.provider,
            model=models.get((llm_config.provider or "").lower(), ""),
            azure_api_key=llm_config.azure_api_key or None,
            azure_endpoint=llm_config.azure_endpoint or None,
            azure_api_version=llm_config.azure_api_version,
            openai_api_key=llm_config.openai_api_key or None,
            anthropic_api_key=llm_config.anthropic_api_key or None,
            google_api_key=llm_config.google_api_key or None,
        )

    @property
    def is_available(self) -> bool:
        return self._client is not None

    def generate(
        self,
        prompt: str,
        *,
        system: Optional[str] = None,
        max_tokens: int = 1024,
        timeout: float = 60.0,
    ) -> Tuple[str, int]:
        """Generate text for a prompt.

        Returns:
            (generated_text, total_token_count). Token count is 0 when the
            provider does not report usage.

        Raises:
            ProviderError: client unavailable or the provider call failed.
        """
        if not self.is_available:
            raise ProviderError("LLM client is not available")

        try:
            return self._generate(prompt, system, max_tokens, timeout)
        except ProviderError:
            raise
        except Exception as e:
            raise ProviderError(f"{self.provider} completion failed: {e}") from e

    def _generate(
        self,
        prompt: str,
        system: Optional[str],
        max_tokens: int,
        timeout: float,
    ) -> Tuple[str, int]:
        if self.provider in ("azure", "openai"):
            messages = []
            if system:
                messages.append({"role": "system", "content": system})
            messages.append({"role": "user", "content": prompt})
            response = self._client.chat.completions.create(
                model=self.model,
                max_tokens=max_tokens,
                messages=messages,
                timeout=timeout,
            )
            usage = getattr(response, "usage", None)
            tokens = getattr(usage, "total_tokens", 0) or 0
            return (response.choices[0].message.content or "").strip(), tokens

        if self.provider == "anthropic":
            kwargs = {}
            if system:
                kwargs["system"] = system
            response = self._client.messages.create(
                model=self.model,
                max_tokens=max_tokens,
                messages=[{"role": "user", "content": prompt}],
                timeout=timeout,
                **kwargs,
            )
            usage = getattr(response, "usage", None)
            tokens = (getattr(usage, "input_tokens", 0) or 0) + (getattr(usage, "output_tokens", 0) or 0)
            return response.content[0].text.strip(), tokens

        if self.provider == "google":
            import hashlib

            cache_key = hashlib.md5((system or "").encode()).hexdigest()
            if cache_key not in self._google_models:
                kwargs = {"model_name": self.model}
                if system:
                    kwargs["system_instruction"] = system
                self._google_models[cache_key] = self._client.GenerativeModel(**kwargs)
            model = self._google_models[cache_key]
            response = model.generate_content(
                prompt,
                generation_config={"max_output_tokens": max_tokens},
                request_options={"timeout": timeout},
            )
            usage = getattr(response, "usage_metadata", None)
            tokens = getattr(usage, "total_token_count", 0) or 0
            return response.text.strip(), tokens

        raise ProviderError(f"Unsupported LLM provider: {self.provider}")
