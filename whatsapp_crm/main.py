import os

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session

from whatsapp_crm.config import settings
from whatsapp_crm.database import get_db
from whatsapp_crm.logging_config import setup_logging
from whatsapp_crm.models import Conversation, Handoff, Message, WhatsAppAccount
from whatsapp_crm.routers import accounts, ads, conversations, conversions, webhook

setup_logging(settings.log_level)

app = FastAPI(
    title="WhatsApp CRM API",
    description="WhatsApp inbox, AI/human handoff and ads conversion ingestion",
    version="0.1.0",
)

cors_env = os.environ.get("CORS_ALLOW_ORIGINS", "*")
cors_origins = [origin.strip() for origin in cors_env.split(",") if origin.strip()]
if not cors_origins:
    cors_origins = ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(webhook.router)
app.include_router(conversations.router)
app.include_router(accounts.router)
app.include_router(conversions.router)
app.include_router(ads.router)


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/db-check")
def db_check(db: Session = Depends(get_db)):
    return {
        "status": "ok",
        "accounts": db.query(WhatsAppAccount).count(),
        "conversations": db.query(Conversation).count(),
        "messages": db.query(Message).count(),
        "handoffs": db.query(Handoff).count(),
    }
