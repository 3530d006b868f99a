"""Public status routes."""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from warelay.api.deps import get_gate
from warelay.session.gate import SessionGate
from warelay.whatsapp.models import ClientInfo

router = APIRouter(tags=["status"])

# Ready but identity not fetched yet
UNKNOWN_CLIENT_INFO = ClientInfo(pushname=None, phone_number=None, platform=None)


@router.get("/health")
def health() -> dict:
    """Liveness probe, independent of the WhatsApp session."""
    return {"status": "ok"}


@router.get("/status")
def status(gate: SessionGate = Depends(get_gate)) -> JSONResponse:
    """Readiness of the WhatsApp session.

    Returns:
        200 with clientInfo when the session is ready, 503 otherwise.
    """
    ready = gate.is_ready()
    info = gate.client_info() or UNKNOWN_CLIENT_INFO
    return JSONResponse(
        status_code=200 if ready else 503,
        content={
            "success": ready,
            "status": "WhatsApp client ready" if ready else "WhatsApp client not ready",
            "clientInfo": info.to_dict() if ready else None,
        },
    )
