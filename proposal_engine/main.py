# proposal_engine/main.py
from dotenv import load_dotenv
load_dotenv()

from fastapi import FastAPI
from proposal_engine.middleware import install_middlewares
from proposal_engine.logging_config import setup_logging
from proposal_engine.routers import ai, health, pricing, proposal

setup_logging()
app = FastAPI(
    title="Legal Proposal Engine",
    description="Assembly, pricing and override tracking for legal-services fee proposals",
    version="1.0.0",
)
install_middlewares(app)

# Routers
app.include_router(health.router)
app.include_router(pricing.router)
app.include_router(proposal.router)
app.include_router(ai.router)

@app.get("/")
def root():
    return {"app": "legal_proposal_engine", "status": "running", "version": "1.0.0", "docs": "/docs"}
