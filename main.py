from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging

from database import Base, engine, SessionLocal, get_settings
from api import raffles
from core.collaborators import get_oracle, get_payout_gateway
from core.upkeep_scheduler import UpkeepScheduler

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="[%(asctime)s] %(levelname)-8s [%(name)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: 建立資料庫表，啟動 upkeep 排程（upkeep_poll_seconds > 0 時）
    Base.metadata.create_all(bind=engine)

    scheduler = None
    if settings.upkeep_poll_seconds > 0:
        scheduler = UpkeepScheduler(
            SessionLocal,
            get_oracle(),
            poll_seconds=settings.upkeep_poll_seconds,
            request_timeout_seconds=settings.request_timeout_seconds,
            payout_gateway=get_payout_gateway(),
        )
        scheduler.start()

    yield

    # Shutdown
    if scheduler:
        await scheduler.stop()


app = FastAPI(
    title="Raffle API",
    description="Periodic, verifiably-fair raffle backed by a randomness oracle",
    version="1.0.0",
    lifespan=lifespan
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure this properly in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(raffles.router)


@app.get("/")
def root():
    return {"message": "Raffle API", "status": "ok"}


@app.get("/health")
def health():
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
