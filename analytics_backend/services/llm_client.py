from __future__ import annotations

from threading import Lock
from typing import Any

from google import genai
from google.genai import types
from langchain_core.output_parsers import StrOutputParser
from langchain_core.prompts import ChatPromptTemplate
from langchain_openai import ChatOpenAI
from openai import AsyncOpenAI
from tenacity import AsyncRetrying, stop_after_attempt, wait_exponential

from analytics_backend.config import Settings, settings
from analytics_backend.errors import ConfigurationError
from analytics_backend.utils.logger import logger


class TextGenerator:
    """Hosted language model behind a single ``generate(prompt) -> text`` call."""

    name = "llm"

    def __init__(self, config: Settings = settings) -> None:
        self._config = config
        self._client: Any = None
        self._lock = Lock()

    def ensure_initialized(self) -> Any:
        if self._client is not None:
            return self._client
        with self._lock:
            if self._client is None:
                self._client = self._connect()
                logger.info("Initialized %s text generator", self.name)
        return self._client

    def _connect(self) -> Any:
        raise NotImplementedError

    async def generate(self, prompt: str) -> str:
        raise NotImplementedError


class LangChainGenerator(TextGenerator):
    """LCEL pipeline: prompt -> ChatOpenAI -> plain string."""

    name = "langchain"

    def _connect(self) -> Any:
        if not self._config.openai_api_key:
            raise ConfigurationError("OPENAI_API_KEY environment variable is not set")
        llm = ChatOpenAI(
            model=self._config.openai_model,
            temperature=self._config.llm_temperature,
            api_key=self._config.openai_api_key,
            timeout=self._config.llm_timeout_seconds,
            max_retries=self._config.llm_max_retries,
        )
        prompt = ChatPromptTemplate.from_messages([("human", "{prompt}")])
        return prompt | llm | StrOutputParser()

    async def generate(self, prompt: str) -> str:
        chain = self.ensure_initialized()
        return await chain.ainvoke({"prompt": prompt})


class OpenAIGenerator(TextGenerator):
    name = "openai"

    def _connect(self) -> AsyncOpenAI:
        if not self._config.openai_api_key:
            raise ConfigurationError("OPENAI_API_KEY environment variable is not set")
        return AsyncOpenAI(
            api_key=self._config.openai_api_key,
            timeout=self._config.llm_timeout_seconds,
            max_retries=self._config.llm_max_retries,
        )

    async def generate(self, prompt: str) -> str:
        client = self.ensure_initialized()
        completion = await client.chat.completions.create(
            model=self._config.openai_model,
            messages=[{"role": "user", "content": prompt}],
            temperature=self._config.llm_temperature,
        )
        return completion.choices[0].message.content or ""


class GeminiGenerator(TextGenerator):
    name = "gemini"

    def _connect(self) -> genai.Client:
        if not self._config.gemini_api_key:
            raise ConfigurationError("GEMINI_API_KEY environment variable is not set")
        return genai.Client(
            api_key=self._config.gemini_api_key,
            http_options=types.HttpOptions(timeout=int(self._config.llm_timeout_seconds * 1000)),
        )

    async def generate(self, prompt: str) -> str:
        client = self.ensure_initialized()
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._config.llm_max_retries + 1),
            wait=wait_exponential(min=1, max=20),
            reraise=True,
        ):
            with attempt:
                response = await client.aio.models.generate_content(
                    model=self._config.gemini_model,
                    contents=prompt,
                    config=types.GenerateContentConfig(temperature=self._config.llm_temperature),
                )
        return response.text or ""


GENERATORS = {
    LangChainGenerator.name: LangChainGenerator,
    OpenAIGenerator.name: OpenAIGenerator,
    GeminiGenerator.name: GeminiGenerator,
}


def build_generator(config: Settings = settings) -> TextGenerator:
    try:
        cls = GENERATORS[config.llm_provider.lower()]
    except KeyError as exc:
        raise ConfigurationError(
            f"Unsupported LLM_PROVIDER: {config.llm_provider}. Choose one of: {', '.join(GENERATORS)}"
        ) from exc
    return cls(config)
