"""
Dependency Wiring — Hands routes their explicitly constructed collaborators.

Long-lived objects (the M-Pesa client, the session factory, the callback
handler) are built once at startup and kept on app.state. Tests replace
them through app.dependency_overrides.
"""
from fastapi import Depends, Request
from sqlalchemy.orm import Session

from app.database import get_db
from app.services.callback_handler import CallbackHandler
from app.services.entitlement_service import EntitlementService
from app.services.mpesa_client import MpesaClient
from app.services.payment_initiator import PaymentInitiator
from app.services.payment_store import PaymentStore


def get_store(db: Session = Depends(get_db)) -> PaymentStore:
    return PaymentStore(db)


def get_mpesa_client(request: Request) -> MpesaClient:
    return request.app.state.mpesa_client


def get_callback_handler(request: Request) -> CallbackHandler:
    return request.app.state.callback_handler


def get_payment_initiator(
    client: MpesaClient = Depends(get_mpesa_client),
    store: PaymentStore = Depends(get_store),
) -> PaymentInitiator:
    return PaymentInitiator(client, store)


def get_entitlement_service(store: PaymentStore = Depends(get_store)) -> EntitlementService:
    return EntitlementService(store)
