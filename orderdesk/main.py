# orderdesk/main.py
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from orderdesk.config import settings
from orderdesk.db import Base, engine
from orderdesk.errors import register_exception_handlers
from orderdesk.middleware import RequestIdMiddleware
from orderdesk.realtime import SocketRelay
from orderdesk.routers import orders, realtime, sales

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Orderdesk API", version="1.0.0")
app.state.relay = SocketRelay()


@app.on_event("startup")
def init_db():
    Base.metadata.create_all(bind=engine)
    logger.info("orderdesk started (%s, tz %s)", settings.APP_ENV, settings.BUSINESS_TZ)


# Middlewares
app.add_middleware(RequestIdMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(orders.router)
app.include_router(sales.router)
app.include_router(realtime.router)


@app.get("/healthz")
def healthz():
    return {"ok": True}
