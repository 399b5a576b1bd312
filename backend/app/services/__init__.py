from app.services.payment_store import PaymentStore
from app.services.mpesa_client import MpesaClient
from app.services.payment_initiator import PaymentInitiator
from app.services.callback_handler import CallbackHandler
from app.services.entitlement_service import EntitlementService

__all__ = ["PaymentStore", "MpesaClient", "PaymentInitiator", "CallbackHandler", "EntitlementService"]
