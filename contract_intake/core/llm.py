import logging
from abc import ABC, abstractmethod
from typing import Any, List, Optional, Sequence, Union

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import BaseMessage, AIMessage, HumanMessage, SystemMessage
from langchain_core.outputs import ChatGeneration, ChatResult
from langchain_core.prompt_values import PromptValue
from groq import Groq

from contract_intake.core.config import Settings
from contract_intake.core.errors import CompletionServiceError

logger = logging.getLogger(__name__)

Prompt = Union[PromptValue, Sequence[BaseMessage], str]


class GroqChatModel(BaseChatModel):
    """Custom LLM class for Groq integration."""

    client: Any = None
    api_key: str = ""
    model_name: str = "llama-3.3-70b-versatile"
    temperature: float = 0.0
    max_tokens: int = 1024
    top_p: float = 0.9
    timeout: Optional[float] = None
    json_mode: bool = True

    def __init__(self, **kwargs):
        """Initialize the Groq chat model."""
        super().__init__(**kwargs)
        if self.client is None:
            self.client = Groq(api_key=self.api_key, timeout=self.timeout)

    def _convert_messages_to_prompt(self, messages: List[BaseMessage]) -> List[dict]:
        """Convert messages to Groq chat format.

        Args:
            messages: List of messages

        Returns:
            List of message dictionaries in Groq format
        """
        groq_messages = []
        for message in messages:
            if isinstance(message, SystemMessage):
                role = "system"
            elif isinstance(message, HumanMessage):
                role = "user"
            elif isinstance(message, AIMessage):
                role = "assistant"
            else:
                role = "user"

            groq_messages.append({
                "role": role,
                "content": message.content
            })
        return groq_messages

    def _generate(
        self,
        messages: List[BaseMessage],
        stop: Optional[List[str]] = None,
        run_manager: Optional[Any] = None,
        **kwargs: Any,
    ) -> ChatResult:
        """Generate a response using Groq.

        Args:
            messages: List of messages
            stop: Optional stop sequences
            run_manager: Optional run manager
            **kwargs: Additional arguments

        Returns:
            ChatResult containing the generated response
        """
        request = {
            "model": self.model_name,
            "messages": self._convert_messages_to_prompt(messages),
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "top_p": self.top_p,
            "stream": False,
            "stop": stop,
        }
        if self.json_mode:
            request["response_format"] = {"type": "json_object"}

        try:
            completion = self.client.chat.completions.create(**request)
        except Exception as e:
            raise ValueError(f"Error in Groq chat completion: {str(e)}")

        content = completion.choices[0].message.content if completion.choices else None
        message = AIMessage(content=content or "")
        return ChatResult(generations=[ChatGeneration(message=message)])

    @property
    def _llm_type(self) -> str:
        """Return the type of LLM."""
        return "groq"


class CompletionService(ABC):
    """Prompt in, text out. Raises CompletionServiceError on failure."""

    @abstractmethod
    def complete(self, prompt: Prompt) -> str:
        ...


class GroqCompletionService(CompletionService):
    """Completion service backed by a langchain chat model talking to Groq."""

    def __init__(self, model: BaseChatModel):
        self.model = model

    def complete(self, prompt: Prompt) -> str:
        try:
            response = self.model.invoke(prompt)
        except Exception as e:
            logger.error(f"Completion request failed: {str(e)}")
            raise CompletionServiceError(f"Completion request failed: {str(e)}")

        content = response.content
        if isinstance(content, list):
            # Content blocks; keep the text parts only
            content = "".join(
                block.get("text", "") if isinstance(block, dict) else str(block)
                for block in content
            )
        return content or ""


def build_completion_service(settings: Settings) -> Optional[CompletionService]:
    """Build the completion service once at startup.

    Returns None when no API key is configured, which leaves the AI
    extraction strategy unavailable.
    """
    if not settings.GROQ_API_KEY:
        logger.warning("GROQ_API_KEY not set, AI contract extraction will not be available")
        return None

    model = GroqChatModel(
        api_key=settings.GROQ_API_KEY,
        model_name=settings.LLM_MODEL,
        temperature=settings.LLM_TEMPERATURE,
        max_tokens=settings.LLM_MAX_TOKENS,
        timeout=settings.LLM_TIMEOUT_SECONDS,
    )
    logger.info(f"Groq completion service ready with model {settings.LLM_MODEL}")
    return GroqCompletionService(model)
