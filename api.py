from __future__ import annotations

import logging
import os

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel

from assistant.conversation import handle_turn
from assistant.session import SessionStore, build_store
from assistant.tools.flights import PROVIDERS
from llm.client import is_offline, provider_key_env
from util.exceptions import UpstreamError


load_dotenv()
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("api")


def _check_keys() -> None:
    """Warn about missing credentials; requests needing them fail at call time instead."""
    key_env = provider_key_env()
    if key_env and not is_offline():
        if os.getenv(key_env):
            logger.info("%s loaded", key_env)
        else:
            logger.warning("%s is missing; chat replies will fail until it is set", key_env)
    provider = os.getenv("FLIGHT_PROVIDER", "flyscraper").strip().lower()
    if provider not in PROVIDERS:
        logger.warning("FLIGHT_PROVIDER=%s is unknown; expected one of %s", provider, ", ".join(PROVIDERS))
    flight_key = {"kiwi": "KIWI_API_KEY", "flyscraper": "FLYSCRAPER_API_KEY"}.get(provider)
    if flight_key and not os.getenv(flight_key):
        logger.warning("%s is missing; flight searches will fail until it is set", flight_key)


app = FastAPI(title="Travel Chat API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class ChatRequest(BaseModel):
    prompt: str | None = None
    sessionId: str | None = None


SESSIONS: SessionStore = build_store()
_check_keys()


@app.get("/", response_class=PlainTextResponse)
def index():
    return "Travel Chat API is running"


@app.post("/chat")
def chat(req: ChatRequest):
    user = (req.prompt or "").strip()
    session_id = (req.sessionId or "").strip()
    if not user:
        return JSONResponse({"error": "Prompt is required"}, status_code=400)
    if not session_id:
        return JSONResponse({"error": "sessionId is required"}, status_code=400)

    try:
        with SESSIONS.lock(session_id):
            sess = SESSIONS.get_or_create(session_id)
            try:
                reply = handle_turn(sess, user)
            finally:
                SESSIONS.upsert(session_id, sess)
    except UpstreamError as exc:
        logger.error("Chat turn failed for session %s: %s", session_id, exc)
        return JSONResponse({"error": "Server error"}, status_code=500)
    return {"reply": reply}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "10000")))
