"""
gsio Admin API
HTTP surface over the orchestration core

Provides:
- Session snapshot (/api/session)
- Chat (/api/chat) - starts a chat turn in the background
- Ambient input (/api/ambient) - feeds the linger loop
- Approvals (/api/approvals/*)
- Event log (/api/events)
- Linger settings (/api/linger)
- Todos (/api/todos)
- System Health (/health)
"""

from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

import config
from core.bridge import CoreBridge, get_bridge
from core.errors import TurnBusyError
from core.lifecycle.task import get_todo_store
from core.models import LingerConfig
from utils.logger import log_info


class ChatBody(BaseModel):
    text: str = Field(..., min_length=1)


class AmbientBody(BaseModel):
    utterance: str = Field(..., min_length=1)


class DecisionBody(BaseModel):
    approve: bool = True
    always: bool = False


class SelectBody(BaseModel):
    index: int


class LingerUpdate(BaseModel):
    enabled: Optional[bool] = None
    behavior: Optional[str] = None
    min_interval_sec: Optional[float] = Field(default=None, ge=0)


def create_app(bridge: Optional[CoreBridge] = None) -> FastAPI:
    app = FastAPI(
        title="gsio Admin API",
        description="Session, approvals and linger control for the gsio assistant",
        version="0.1.0",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[o.strip() for o in config.ALLOWED_ORIGINS.split(",") if o.strip()],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def _bridge() -> CoreBridge:
        return bridge if bridge is not None else get_bridge()

    @app.get("/health")
    async def health():
        orchestrator = _bridge().orchestrator
        return {
            "status": "ok",
            "busy": orchestrator.is_busy,
            "active_source": orchestrator.active_source.value if orchestrator.active_source else None,
            "reasoning_summaries": orchestrator.breaker.is_enabled(),
        }

    @app.get("/api/session")
    async def session_snapshot():
        return _bridge().session.snapshot().to_dict()

    @app.post("/api/chat", status_code=202)
    async def chat(body: ChatBody):
        try:
            _bridge().send_user_message(body.text)
        except TurnBusyError as e:
            raise HTTPException(status_code=409, detail=str(e))
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return {"accepted": True}

    @app.post("/api/ambient")
    async def ambient(body: AmbientBody):
        task = await _bridge().hear(body.utterance)
        return {"linger_started": task is not None, "summary": _bridge().ambient.summary}

    # ═══════════════════════════════════════════════════════════
    # APPROVALS
    # ═══════════════════════════════════════════════════════════

    @app.get("/api/approvals")
    async def approvals():
        queue = _bridge().session.approvals
        return {"cursor": queue.cursor, "items": [e.to_dict() for e in queue.items]}

    @app.post("/api/approvals/select")
    async def select(body: SelectBody):
        return {"cursor": _bridge().orchestrator.select(body.index)}

    @app.post("/api/approvals/{approval_id}")
    async def decide(approval_id: str, body: DecisionBody):
        decision = _bridge().orchestrator.submit_decision(approval_id, body.approve, body.always)
        if not decision.applied:
            status = 404 if decision.entry is None else 409
            raise HTTPException(status_code=status, detail=decision.error)
        return {
            "applied": True,
            "approved": decision.approved,
            "always": decision.always,
            "resumed": decision.resume is not None,
            "remaining": [e.to_dict() for e in decision.remaining],
        }

    # ═══════════════════════════════════════════════════════════
    # EVENTS / SETTINGS / TODOS
    # ═══════════════════════════════════════════════════════════

    @app.get("/api/events")
    async def events(limit: int = 50):
        return {"events": _bridge().session.event_log.lines(max(1, limit))}

    @app.get("/api/linger", response_model=LingerConfig)
    async def get_linger():
        return config.get_linger_config()

    @app.put("/api/linger", response_model=LingerConfig)
    async def put_linger(body: LingerUpdate):
        config.set_linger_config(**body.model_dump())
        log_info("[AdminAPI] Linger settings updated")
        return config.get_linger_config()

    @app.get("/api/todos")
    async def todos(include_completed: bool = True):
        return {"items": [t.model_dump() for t in get_todo_store().list(include_completed)]}

    return app


def main():
    import uvicorn

    uvicorn.run(create_app(), host=config.ADMIN_API_HOST, port=config.ADMIN_API_PORT)


if __name__ == "__main__":
    main()
