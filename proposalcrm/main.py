# ProposalCRM backend entrypoint.

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from proposalcrm.api import customers, products, proposals, templates
from proposalcrm.core.dev_seed import ensure_default_templates
from proposalcrm.core.settings import get_settings
from proposalcrm.db.base import Base
from proposalcrm.db.session import SessionLocal, engine

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.app_name, version=settings.api_version)

origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(products.router)
app.include_router(customers.router)
app.include_router(proposals.router)
app.include_router(templates.router)


@app.get("/")
def read_root():
    return {"app": "ProposalCRM backend", "status": "ok"}


@app.get("/health")
def health_check():
    return {"status": "ok"}


@app.on_event("startup")
def seed_default_templates():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        ensure_default_templates(db)
    finally:
        db.close()
    logger.info("%s started (%s)", settings.app_name, settings.environment)
