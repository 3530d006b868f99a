"""FastAPI dependencies resolving app-owned collaborators from app.state."""

from fastapi import Request

from warelay.config import Settings
from warelay.domain.dispatch import DispatchPolicy
from warelay.session.gate import SessionGate
from warelay.whatsapp.client import MessagingClient


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_gate(request: Request) -> SessionGate:
    return request.app.state.gate


def get_client(request: Request) -> MessagingClient:
    return request.app.state.client


def get_dispatch_policy(request: Request) -> DispatchPolicy:
    return request.app.state.dispatch_policy
