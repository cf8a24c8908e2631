"""Coupon acquisition against upstream campaign sources."""

from .campaign_client import CampaignClient, credential_cookie
from .orchestrator import AcquisitionOrchestrator, AcquisitionResult, build_orchestrator
from .retry import RetryDecision, RetryPolicy
from .signature import HttpSignatureProvider, SignatureError, SignatureProvider, SignedFingerprint

__all__ = [
    "AcquisitionOrchestrator",
    "AcquisitionResult",
    "CampaignClient",
    "HttpSignatureProvider",
    "RetryDecision",
    "RetryPolicy",
    "SignatureError",
    "SignatureProvider",
    "SignedFingerprint",
    "build_orchestrator",
    "credential_cookie",
]
