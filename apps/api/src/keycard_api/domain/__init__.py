"""Key card domain helpers."""

from .campaigns import CampaignConfig, CampaignSource, load_campaign_config  # noqa: F401
from .coupons import (  # noqa: F401
    AcquisitionAttempt,
    AcquisitionOutcome,
    Coupon,
    parse_coupon,
    parse_grab_response,
)
