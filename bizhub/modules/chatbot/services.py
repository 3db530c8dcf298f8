# bizhub/modules/chatbot/services.py
from loguru import logger

from bizhub.services.llm_client import OpenAIClient
from .models import ChatbotRequestAPI, ChatbotResponseAPI
from .rules import rule_based_reply

HISTORY_TURNS = 10
SYSTEM_PROMPT = (
    "You are a helpful assistant for AI Business Hub, a small-business operations platform with product and "
    "inventory management, sales tracking, sales forecasting, team performance, email/WhatsApp/SMS messaging "
    "and real-time notifications. Answer questions about using and setting up the platform. "
    "Be concise, accurate and friendly."
)


class ChatbotService:
    """Answers with the LLM when one is configured and falls back to keyword rules."""

    def __init__(self, llm_client: OpenAIClient):
        self.llm_client = llm_client

    async def reply(self, request_in: ChatbotRequestAPI) -> ChatbotResponseAPI:
        history = request_in.conversation_history[-HISTORY_TURNS:]
        if self.llm_client.enabled:
            messages = [{"role": "system", "content": SYSTEM_PROMPT}]
            messages += [
                {"role": "user" if turn.role == "user" else "assistant", "content": turn.content}
                for turn in history
            ]
            messages.append({"role": "user", "content": request_in.message})
            result = await self.llm_client.get_completion(messages, temperature=0.7, max_tokens=150)
            if result.content:
                return ChatbotResponseAPI(response=result.content, source="openai")
            logger.warning(f"LLM chatbot reply failed ({result.error}); using rule-based fallback")

        return ChatbotResponseAPI(response=rule_based_reply(request_in.message, history), source="rule-based")
