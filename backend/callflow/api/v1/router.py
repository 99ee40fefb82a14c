from fastapi import APIRouter

from callflow.api.v1.endpoints import phone_lines, routing_rules, webhooks

api_v1_router = APIRouter()

api_v1_router.include_router(phone_lines.router, prefix="/phone-lines", tags=["phone-lines"])
api_v1_router.include_router(routing_rules.router, prefix="/routing-rules", tags=["routing-rules"])
api_v1_router.include_router(webhooks.router, prefix="/webhooks", tags=["webhooks"])
