# ------------------------------ IMPORTS ------------------------------
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging

from core.config.settings import settings
from tgvmax.routes import router as runs_router

# ------------------------------ SETUP ------------------------------
logger = logging.getLogger("tgvmax")

# ------------------------------ LIFESPAN ------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Refuse to start with an invalid configuration."""
    logger.info("Validating configuration...")
    settings.validate()
    logger.info(f"Configuration valid, {len(settings.accounts)} account(s) loaded\n")
    yield
    logger.info("Shutting down MAX confirmation API...")

# ------------------------------ APP ------------------------------
app = FastAPI(
    title="MAX Confirmation API",
    description="Triggers and monitors MAX reservation confirmation runs",
    version="1.0.0",
    lifespan=lifespan,
)

# ------------------------------ CORS ------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ------------------------------ ROUTERS ------------------------------
app.include_router(runs_router, prefix="/api/runs", tags=["Runs"])

# ------------------------------ HEALTH ENDPOINTS ------------------------------
@app.get("/", tags=["Health"])
async def root():
    return {"message": "MAX Confirmation API", "status": "running"}

@app.get("/health", tags=["Health"])
async def health():
    return {"status": "healthy"}

# ------------------------------ MAIN ------------------------------
if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host=settings.api.host, port=settings.api.port)

# ------------------------------ END OF FILE ------------------------------
