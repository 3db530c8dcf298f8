# bizhub/modules/chatbot/routers.py
from fastapi import APIRouter, Depends, Request

from bizhub.core.rate_limit import PUBLIC_ENDPOINT_LIMIT, limiter
from bizhub.services.llm_client import OpenAIClient, get_llm_client
from .models import ChatbotRequestAPI, ChatbotResponseAPI
from .services import ChatbotService

router = APIRouter()


async def get_chatbot_service(llm_client: OpenAIClient = Depends(get_llm_client)) -> ChatbotService:
    return ChatbotService(llm_client)


@router.post("/chatbot", response_model=ChatbotResponseAPI, summary="Ask the assistant")
@limiter.limit(PUBLIC_ENDPOINT_LIMIT)
async def chatbot(
    request: Request,
    payload: ChatbotRequestAPI,
    service: ChatbotService = Depends(get_chatbot_service),
):
    return await service.reply(payload)
