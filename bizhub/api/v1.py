# bizhub/api/v1.py
from fastapi import APIRouter

from bizhub.api.endpoints import auth
from bizhub.modules.activity.routers import router as activity_router
from bizhub.modules.chat.routers import router as chat_router
from bizhub.modules.chatbot.routers import router as chatbot_router
from bizhub.modules.dashboard.routers import router as dashboard_router
from bizhub.modules.forecast.routers import router as forecast_router
from bizhub.modules.inbox.routers import router as inbox_router
from bizhub.modules.invites.routers import router as invites_router
from bizhub.modules.messaging.routers import router as messaging_router
from bizhub.modules.notifications.routers import router as notifications_router
from bizhub.modules.products.routers import router as products_router
from bizhub.modules.sales.routers import router as sales_router
from bizhub.modules.teams.routers import router as teams_router
from bizhub.modules.users.routers import router as users_router

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
api_router.include_router(users_router, prefix="/users", tags=["Users"])
api_router.include_router(products_router, prefix="/products", tags=["Products"])
api_router.include_router(sales_router, prefix="/sales", tags=["Sales"])
api_router.include_router(dashboard_router, prefix="/dashboard", tags=["Dashboard"])
api_router.include_router(notifications_router, prefix="/notifications", tags=["Notifications"])
api_router.include_router(activity_router, prefix="/activity", tags=["Activity Log"])
api_router.include_router(teams_router, prefix="/teams", tags=["Teams"])
api_router.include_router(invites_router, prefix="/invites", tags=["Collaborator Invites"])
api_router.include_router(messaging_router, prefix="/communication", tags=["Communication"])
api_router.include_router(chatbot_router, prefix="/communication", tags=["Chatbot"])
api_router.include_router(inbox_router, prefix="/customer-messages", tags=["Customer Inbox"])
api_router.include_router(chat_router, prefix="/chat", tags=["Internal Chat"])
api_router.include_router(forecast_router, prefix="/ai", tags=["Forecasting & Insights"])
