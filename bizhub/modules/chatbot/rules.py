# bizhub/modules/chatbot/rules.py
"""Keyword rules used when no LLM is configured or the LLM call fails."""

import re
from typing import List, Optional, Sequence, Tuple

from .models import ChatTurn

Rule = Tuple[str, Tuple[re.Pattern, ...], str]


def _words(*words: str) -> re.Pattern:
    return re.compile(r"\b(" + "|".join(words) + r")\b")


# Evaluated in order; every pattern of a rule must match.
RULES: List[Rule] = [
    ("greeting", (_words("hi", "hello", "hey", "greetings", "good morning", "good afternoon", "good evening"),),
     "Hello! I'm the AI Business Hub assistant. I can answer questions about products, sales, forecasting, "
     "messaging, setup and the API. What would you like to know?"),
    ("overview", (_words("project", "system", "application", "business hub", "platform"),
                  _words("what is", "overview", "about", "tell me")),
     "AI Business Hub is a small-business operations platform. It covers:\n\n"
     "- Product & inventory management with low-stock alerts\n"
     "- Point-of-sale recording and revenue analytics\n"
     "- Sales and inventory forecasting\n"
     "- Email, WhatsApp and SMS messaging plus a customer inbox\n"
     "- Team management, invitations and a performance leaderboard\n"
     "- Real-time notifications over WebSockets"),
    ("technology", (_words("tech", "technology", "stack", "framework", "built with", "uses"),),
     "Technology stack:\n\n"
     "- FastAPI with pydantic models\n"
     "- MongoDB through the motor async driver\n"
     "- JWT authentication with bcrypt password hashing\n"
     "- loguru for structured logging\n"
     "- SMTP for email and Twilio for SMS/WhatsApp\n"
     "- Celery with Redis for background email alerts"),
    ("setup", (_words("setup", "install", "run", "start", "deploy", "get started"),),
     "To run the service:\n\n"
     "1. Install the package: pip install -e .\n"
     "2. Copy .env.example to .env and set MONGODB_URI and SECRET_KEY\n"
     "3. Optionally configure SMTP, Twilio and OPENAI_API_KEY\n"
     "4. Start the API: uvicorn bizhub.main:app --reload\n"
     "5. Optionally start the worker: celery -A bizhub.worker.celery_app worker"),
    ("features", (_words("feature", "features", "functionality", "what can", "capabilities"),),
     "Key features:\n\n"
     "- Dashboard with sales, revenue and stock statistics\n"
     "- Products with QR labels and low-stock alerts\n"
     "- Sales with automatic stock updates\n"
     "- AI forecasting and suggestions\n"
     "- Multi-channel communication and customer inbox\n"
     "- Team performance and activity log\n"
     "- Real-time notifications"),
    ("voice", (_words("voice", "speech", "microphone", "talk", "speak", "audio"),),
     "Voice chat happens in the browser: speech is transcribed on the client and sent to this chatbot as text, "
     "and replies can be read aloud with text-to-speech. Make sure microphone permissions are allowed."),
    ("api", (_words("api", "backend", "server", "endpoint", "route"),),
     "API structure (all under /api/v1):\n\n"
     "Auth: /auth/*\nUsers: /users/*\nProducts: /products/*\nSales: /sales/*\nAI: /ai/*\n"
     "Communication: /communication/*\nCustomer messages: /customer-messages/*\nTeams: /teams/*\n\n"
     "Endpoints require a Bearer JWT except login, registration and public webhooks."),
    ("database", (_words("database", "mongodb", "data", "storage", "model"),),
     "Data is stored in MongoDB. Collections: users, products, sales, messages, customer_messages, "
     "notifications, activities, teams, collaborator_invites and chat_messages. "
     "Every document carries created_at and updated_at timestamps."),
    ("forecast", (_words("ai", "forecast", "prediction", "analytics", "machine learning"),),
     "AI features:\n\n"
     "- Monthly sales forecasting with exponential smoothing\n"
     "- Reorder quantities and days until stockout\n"
     "- Restock, promotion and markdown suggestions\n"
     "- 30 day insights across sales and messaging\n\n"
     "Forecasts use the last six months of completed sales for each product."),
    ("communication", (_words("email", "whatsapp", "message", "contact", "customer", "send", "communication", "sms"),),
     "Communication system:\n\n"
     "- Email over SMTP\n- WhatsApp and SMS through Twilio\n- Customer inbox with threads\n"
     "- Internal web chat\n- Message history and per-channel statistics\n\n"
     "Check /communication/email-status and friends to see which channels are configured."),
    ("products", (_words("product", "products", "inventory", "stock", "items"),),
     "Product management:\n\n"
     "- Add, edit and delete products\n- Stock tracking with a minimum threshold\n"
     "- Category statistics\n- Low-stock alerts and notifications\n- QR code labels"),
    ("sales", (_words("sale", "sales", "revenue", "income", "profit", "transaction"),),
     "Sales management:\n\n"
     "- Record sales with one or more items\n- Quick sales without items\n"
     "- Revenue statistics by day, week, month or year\n- Top products\n- Cancellation with stock restore\n\n"
     "Recording a sale updates inventory automatically."),
    ("help", (_words("help", "how", "what can you do", "assist", "support"),),
     "I can help with:\n\n- Feature explanations\n- Setup and configuration\n- The API and data model\n"
     "- Forecasting and analytics\n\nAsk me anything about the platform!"),
    ("thanks", (_words("thank", "thanks", "appreciate"),),
     "You're welcome! Feel free to ask anything else about the platform."),
    ("bye", (_words("bye", "goodbye", "see you", "exit", "quit"),),
     "Goodbye! I'm here whenever you need help with AI Business Hub."),
    ("code", (_words("code", "file", "structure", "folder", "directory", "component", "module"),),
     "Project structure:\n\n"
     "- bizhub/core: configuration, logging, database and security\n"
     "- bizhub/modules/<name>: models, repository, services and routers per feature\n"
     "- bizhub/services: email, Twilio, LLM and QR helpers\n"
     "- bizhub/websocket: real-time connection managers\n"
     "- bizhub/worker: Celery tasks"),
]

DEFAULT_RESPONSE = (
    "I can help with questions about AI Business Hub:\n\n"
    "- Features and how to use them\n- Setup and configuration\n- The API and data model\n- Troubleshooting\n\n"
    "Could you be more specific? For example: 'How do I set it up?' or 'How does forecasting work?'"
)

_ADD = _words("add", "create", "new", "record")
_EDIT = _words("edit", "update", "change", "modify")
_VIEW = _words("view", "see", "check", "show")

PRODUCT_ADD_HELP = (
    "To add a product, open the Products page and click 'Add Product'. Fill in name, category, price, quantity "
    "and minimum threshold. You'll be alerted automatically when stock runs low!"
)
PRODUCT_EDIT_HELP = (
    "To edit a product, open the Products page, find the product and click the edit icon. "
    "Any field can be updated there."
)
SALE_ADD_HELP = (
    "To record a sale, open the Sales page and click 'New Sale'. Pick the products, enter quantities and "
    "customer details. Inventory is updated automatically!"
)
SALE_VIEW_HELP = (
    "All sales are listed on the Sales page. The Dashboard also shows sales statistics, "
    "revenue charts and top-selling products."
)


def match_rule(message: str) -> Tuple[str, str]:
    """Returns (category, response) for the first rule whose patterns all match."""
    text = message.lower().strip()
    for category, patterns, response in RULES:
        if all(p.search(text) for p in patterns):
            return category, response
    return "default", DEFAULT_RESPONSE


def contextual_response(message: str, history: Sequence[ChatTurn]) -> Optional[str]:
    """How-to answers for follow-ups on the product or sale the user just asked about."""
    last_user = next((t.content.lower() for t in reversed(history) if t.role == "user"), "")
    text = message.lower()
    if "product" in last_user:
        if _ADD.search(text):
            return PRODUCT_ADD_HELP
        if _EDIT.search(text):
            return PRODUCT_EDIT_HELP
    if "sale" in last_user:
        if _ADD.search(text):
            return SALE_ADD_HELP
        if _VIEW.search(text):
            return SALE_VIEW_HELP
    return None


def rule_based_reply(message: str, history: Sequence[ChatTurn] = ()) -> str:
    return contextual_response(message, history) or match_rule(message)[1]
