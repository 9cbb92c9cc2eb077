import os

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

try:
    load_dotenv()
except OSError as exc:
    # Prevent startup from crashing if .env is unreadable in the container.
    print(f"[tunebridge] Warning: could not load .env ({exc})")

from tunebridge.web.api import router as api_router

app = FastAPI(title="tunebridge")

allowed_origins = [o.strip() for o in os.getenv("TUNEBRIDGE_CORS_ORIGINS", "*").split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)
