from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from x402_facilitator import __version__
from x402_facilitator.aptos.networks import SUPPORTED_NETWORKS
from x402_facilitator.config import get_facilitator_config
from x402_facilitator.payments.matcher import SUPPORTED_SCHEMES, SUPPORTED_X402_VERSIONS
from x402_facilitator.payments.models import SupportedKind, SupportedResponse
from x402_facilitator.payments.processor import PaymentProcessor
from x402_facilitator.api.dependencies import get_payment_processor

router = APIRouter(tags=["General"])


@router.get("/", tags=["Health"])
async def root():
    """Root endpoint with basic info"""
    config = get_facilitator_config()
    return {
        "name": "x402 Aptos Facilitator",
        "version": __version__,
        "status": "operational",
        "network": config.network,
        "endpoints": {
            "verify": "/verify",
            "settle": "/settle",
            "supported": "/supported",
        },
    }


@router.get("/health", tags=["Health"])
async def health_check(processor: PaymentProcessor = Depends(get_payment_processor)):
    """Health check endpoint"""
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "idempotency_entries": len(processor.cache),
        "pending_confirmations": processor.pending_confirmations,
    }


@router.get("/supported", response_model=SupportedResponse, response_model_by_alias=True, tags=["Payments"])
async def supported_kinds():
    """
    x402 payment kinds this facilitator can verify and settle
    """
    config = get_facilitator_config()
    extra = {"sponsored": bool(config.gas_station_api_key)}
    kinds = [
        SupportedKind(x402_version=version, scheme=scheme, network=network, extra=extra)
        for version in SUPPORTED_X402_VERSIONS
        for scheme in SUPPORTED_SCHEMES
        for network in SUPPORTED_NETWORKS
    ]
    return SupportedResponse(kinds=kinds)
