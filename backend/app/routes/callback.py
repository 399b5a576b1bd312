"""
Callback Routes — M-Pesa STK push result webhook.

The acknowledgement goes out as soon as the envelope parses; the state
change is scheduled as a background task that runs after the response
has been sent and never touches the request's own database session.
"""
import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Request

from app.dependencies import get_callback_handler
from app.errors import InvalidRequest
from app.schemas.schemas import ErrorResponse
from app.services.callback_handler import ACK_BODY, CallbackHandler, parse_callback

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/mpesa", tags=["M-Pesa Callback"])


@router.post("/callback", responses={400: {"model": ErrorResponse}})
async def mpesa_callback(
    request: Request,
    background_tasks: BackgroundTasks,
    handler: CallbackHandler = Depends(get_callback_handler),
):
    """Receive an STK push result from Daraja."""
    try:
        payload = await request.json()
    except ValueError as exc:
        raise InvalidRequest("Invalid M-Pesa callback format: body is not JSON.") from exc

    callback = parse_callback(payload)
    logger.info(
        "M-Pesa callback received for %s (ResultCode %s)",
        callback.correlation, callback.result_code,
    )
    background_tasks.add_task(handler.process, callback)
    return ACK_BODY
