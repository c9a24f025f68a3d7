import logging

import stripe
from fastapi import FastAPI, Request, Header, HTTPException, Depends
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from starlette.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from zapshift.config import LOG_LEVEL
from zapshift.database import Base, engine, get_db
from zapshift.errors import register_exception_handlers
from zapshift.reconciliation import PaymentReconciler
from zapshift.routes import router
from zapshift.stripe_service import StripeGateway, get_gateway

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="ZapShift Parcel Service")

app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])
register_exception_handlers(app)
app.include_router(router)

Base.metadata.create_all(bind=engine)


@app.get("/", response_class=PlainTextResponse)
def root():
    return "Hello World, zap is shifting!"


@app.post("/webhook")
async def stripe_webhook(
    request: Request,
    stripe_signature: str = Header(None),
    db: Session = Depends(get_db),
    gateway: StripeGateway = Depends(get_gateway),
):
    payload = await request.body()

    try:
        event = gateway.construct_event(payload, stripe_signature)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid payload")
    except stripe.SignatureVerificationError:
        raise HTTPException(status_code=400, detail="Invalid signature")

    if event["type"] == "checkout.session.completed":
        session_id = event["data"]["object"]["id"]
        result = await run_in_threadpool(PaymentReconciler(db, gateway).reconcile, session_id)
        logger.info("Webhook reconciled session %s: %s", session_id, result.outcome.value)

    return {"ok": True}
