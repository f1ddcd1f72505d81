import time
from typing import Dict, Optional, Type, TypeVar

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError

from x402_facilitator.api.dependencies import get_payment_processor, get_rate_limit, limiter, logger
from x402_facilitator.payments.errors import ErrorKind, MalformedRequestError
from x402_facilitator.payments.models import SettleRequest, SettleResponse, VerifyRequest, VerifyResponse
from x402_facilitator.payments.processor import PaymentProcessor

router = APIRouter(tags=["Facilitator"])

RequestModel = TypeVar("RequestModel", bound=BaseModel)

STATUS_BY_KIND = {
    ErrorKind.MALFORMED_REQUEST: status.HTTP_400_BAD_REQUEST,
    ErrorKind.DECODE_ERROR: status.HTTP_400_BAD_REQUEST,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.SUBMISSION_FAILURE: status.HTTP_502_BAD_GATEWAY,
    ErrorKind.SPONSOR_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorKind.INTERNAL: status.HTTP_500_INTERNAL_SERVER_ERROR,
}

INTERNAL_ERROR_MESSAGE = "Internal server error"


async def _parse_body(request: Request, model: Type[RequestModel]) -> RequestModel:
    try:
        body = await request.json()
    except ValueError:
        raise MalformedRequestError("Request body must be valid JSON")

    if not isinstance(body, dict):
        raise MalformedRequestError("Request body must be a JSON object")

    try:
        return model.model_validate(body)
    except ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first["loc"]) or "body"
        raise MalformedRequestError(f"Invalid request: {field}: {first['msg']}")


def _respond(
    model: BaseModel,
    status_code: int,
    timing_header: str,
    started: float,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    elapsed_ms = int((time.perf_counter() - started) * 1000)
    headers = dict(headers or {})
    headers[timing_header] = str(elapsed_ms)
    return JSONResponse(
        content=model.model_dump(by_alias=True),
        status_code=status_code,
        headers=headers,
    )


@router.post("/verify", response_model=VerifyResponse)
@router.post("/api/facilitator/verify", response_model=VerifyResponse, include_in_schema=False)
@limiter.limit(get_rate_limit)
async def verify_payment(request: Request, processor: PaymentProcessor = Depends(get_payment_processor)):
    """
    Verify an x402 payment without submitting it.

    Body: {x402Version, paymentHeader, paymentRequirements}
    """
    started = time.perf_counter()
    try:
        payload = await _parse_body(request, VerifyRequest)
    except MalformedRequestError as e:
        return _respond(
            VerifyResponse(is_valid=False, invalid_reason=e.reason),
            status.HTTP_400_BAD_REQUEST,
            "X-Verification-Time",
            started,
        )

    try:
        result = await processor.verify(payload)
    except Exception:
        logger.exception("verify_internal_error", network=payload.payment_requirements.network)
        return _respond(
            VerifyResponse(is_valid=False, invalid_reason=INTERNAL_ERROR_MESSAGE),
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "X-Verification-Time",
            started,
        )

    return _respond(result, status.HTTP_200_OK, "X-Verification-Time", started)


@router.post("/settle", response_model=SettleResponse)
@router.post("/api/facilitator/settle", response_model=SettleResponse, include_in_schema=False)
@limiter.limit(get_rate_limit)
async def settle_payment(request: Request, processor: PaymentProcessor = Depends(get_payment_processor)):
    """
    Submit an x402 payment to the chain.

    Returns once the transaction is accepted; confirmation happens in the background.
    A repeated payload within the idempotency window returns the original hash with X-Cached: true.
    """
    started = time.perf_counter()
    try:
        payload = await _parse_body(request, SettleRequest)
    except MalformedRequestError as e:
        return _respond(
            SettleResponse(success=False, error=e.reason),
            status.HTTP_400_BAD_REQUEST,
            "X-Settlement-Time",
            started,
        )

    network = payload.payment_requirements.network
    try:
        outcome = await processor.settle(payload)
    except Exception:
        logger.exception("settle_internal_error", network=network)
        return _respond(
            SettleResponse(success=False, network=network, error=INTERNAL_ERROR_MESSAGE),
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "X-Settlement-Time",
            started,
        )

    status_code = STATUS_BY_KIND.get(outcome.kind, status.HTTP_200_OK)
    headers = {"X-Cached": "true"} if outcome.cached else {}
    return _respond(outcome.response, status_code, "X-Settlement-Time", started, headers)
