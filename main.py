from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging

import models  # noqa: F401  確保所有資料表都註冊到 Base.metadata
from database import Base, engine, get_settings
from api import games, players, tokens


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: 設定 log 等級並建立資料庫表
    logging.basicConfig(
        level=get_settings().log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
    Base.metadata.create_all(bind=engine)
    yield


app = FastAPI(
    title="Savings Pool Game API",
    description="Pooled-savings game: segment payments, external yield, winner payouts",
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
app.include_router(games.router)
app.include_router(players.router)
app.include_router(tokens.router)


@app.get("/")
def root():
    return {"message": "Savings Pool Game API", "status": "ok"}


@app.get("/health")
def health():
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
