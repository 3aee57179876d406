import base64
import hashlib
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, File, HTTPException, Request, UploadFile

from .config import load_config_from_env
from .models import (
    AttemptItem,
    CharsetsResponse,
    Direction,
    HealthResponse,
    NegotiationConfig,
    RelayedMessage,
    RelayReport,
    RelayResponse,
)
from .negotiate import CharsetNegotiator, NegotiationResult
from .rules import CONVERT_BUFFER_LEN


def _relay_response(direction: Direction, result: NegotiationResult) -> dict:
    return {
        "message": RelayedMessage(
            sha256=hashlib.sha256(result.data).hexdigest(),
            encoding=result.target_encoding if result.converted else None,
            content_b64=base64.b64encode(result.data).decode("ascii"),
        ),
        "report": RelayReport(
            direction=direction,
            converted=result.converted,
            source_encoding=result.source_encoding,
            target_encoding=result.target_encoding,
            detected=list(result.detected),
            attempts=[
                AttemptItem(source=a.source, status=a.status.value) for a in result.attempts
            ],
        ),
    }


def create_app(config: Optional[NegotiationConfig] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # ConfigurationError here aborts startup
        active = config if config is not None else load_config_from_env()
        with CharsetNegotiator(active) as negotiator:
            app.state.negotiator = negotiator
            yield

    app = FastAPI(
        title="charset-relay",
        description="Charset negotiation between a local and a remote party",
        version="0.1.0",
        lifespan=lifespan,
    )

    @app.get("/health", response_model=HealthResponse)
    def health():
        return {"ok": True}

    @app.get("/charsets", response_model=CharsetsResponse)
    def charsets(request: Request):
        active = request.app.state.negotiator.config
        return {
            "local_charsets": list(active.local_charsets),
            "remote_charsets": list(active.remote_charsets),
            "guess": active.guess,
            "inbound_only": active.inbound_only,
        }

    @app.post("/relay/{direction}", response_model=RelayResponse)
    def relay(direction: Direction, request: Request, file: UploadFile = File(...)):
        # sync route: runs in the threadpool, negotiator serializes access
        raw = file.file.read()
        if len(raw) > CONVERT_BUFFER_LEN:
            raise HTTPException(
                status_code=413,
                detail=f"Message exceeds {CONVERT_BUFFER_LEN} bytes",
            )

        negotiator: CharsetNegotiator = request.app.state.negotiator
        result = negotiator.negotiate(direction, raw)
        return _relay_response(direction, result)

    return app


app = create_app()
