"""
Retirement Assistant Backend - Main Application Entry Point
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from assistant.core.config import settings
from assistant.core.langfuse_handler import flush_langfuse
from assistant.api.routes import chat


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle management."""
    print(f"Starting {settings.APP_NAME} in {settings.APP_ENV} mode")
    print(f"Fallback model: {settings.LLM_PROVIDER} (enabled={settings.FALLBACK_ENABLED})")
    yield
    flush_langfuse()
    print("Shutting down...")


app = FastAPI(
    title=settings.APP_NAME,
    description="Conversational assistant for retirement plan participants",
    version="1.0.0",
    lifespan=lifespan,
)

# The rendering layer runs on the Vite or CRA dev server locally
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(chat.router, prefix="/chat", tags=["Chat"])


@app.get("/")
async def root():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "app": settings.APP_NAME,
        "env": settings.APP_ENV,
        "fallback_provider": settings.LLM_PROVIDER,
    }
