"""Configuration loader for upstream coupon campaign sources."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import tomllib

from .coupons import DEFAULT_COUPON_TAG

DEFAULT_ACQUISITION_URL = "https://mediacps.meituan.com/gundam/gundamGrabV4"
DEFAULT_JUMPPAGE_TYPE = 8


@dataclass(slots=True)
class CampaignSource:
    """Describe one independently configured upstream coupon pool."""

    id: str
    gundam_id: int
    instance_id: str
    coupon_config_ids: list[str]
    activity_urls: list[str]
    acquisition_url: str = DEFAULT_ACQUISITION_URL
    login_url: str | None = None
    jumppage_type: int = DEFAULT_JUMPPAGE_TYPE
    tag: str = DEFAULT_COUPON_TAG
    headers: dict[str, str] = field(default_factory=dict)

    def build_payload(self, fingerprint: str) -> dict[str, Any]:
        """Return the grab request body for this campaign."""

        config_ids = ",".join(self.coupon_config_ids)
        return {
            "actualLatitude": 0,
            "actualLongitude": 0,
            "ctype": "h5",
            "app": -1,
            "platform": 3,
            "couponConfigIdOrderCommaString": config_ids,
            "couponAllConfigIdOrderString": config_ids,
            "gundamId": self.gundam_id,
            "instanceId": self.instance_id,
            "h5Fingerprint": fingerprint,
            "needTj": False,
        }


@dataclass(slots=True)
class CampaignConfig:
    """Root campaign configuration; source order drives coupon merge order."""

    sources: list[CampaignSource]


def _string_list(value: Any) -> list[str]:
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    if isinstance(value, (list, tuple)):
        return [str(item).strip() for item in value if str(item).strip()]
    return []


def _string_map(value: Any) -> dict[str, str]:
    if not isinstance(value, dict):
        return {}
    return {str(key): str(item) for key, item in value.items() if item is not None}


def load_campaign_config(config_path: Path) -> CampaignConfig:
    """Load campaign sources from a TOML file.

    Entries missing an identifier, a gundam id, coupon config ids or activity
    URLs are skipped.
    """

    if not config_path.exists():
        raise FileNotFoundError(f"Campaign config not found: {config_path}")

    data = tomllib.loads(config_path.read_text())
    defaults = data.get("defaults", {})
    if not isinstance(defaults, dict):
        defaults = {}
    default_headers = _string_map(defaults.get("headers"))

    sources: list[CampaignSource] = []
    for key, payload in data.get("sources", {}).items():
        if not isinstance(payload, dict):
            continue
        source_id = str(payload.get("id") or key)
        gundam_id = payload.get("gundam_id")
        instance_id = payload.get("instance_id")
        coupon_config_ids = _string_list(payload.get("coupon_config_ids"))
        activity_urls = _string_list(payload.get("activity_urls"))
        if isinstance(gundam_id, bool) or not isinstance(gundam_id, int):
            continue
        if not isinstance(instance_id, str) or not coupon_config_ids or not activity_urls:
            continue

        acquisition_url = payload.get("acquisition_url") or defaults.get("acquisition_url") or DEFAULT_ACQUISITION_URL
        login_url = payload.get("login_url")
        jumppage_type = payload.get("jumppage_type", defaults.get("jumppage_type", DEFAULT_JUMPPAGE_TYPE))
        tag = payload.get("tag") or defaults.get("tag") or DEFAULT_COUPON_TAG
        headers = {**default_headers, **_string_map(payload.get("headers"))}

        sources.append(
            CampaignSource(
                id=source_id,
                gundam_id=gundam_id,
                instance_id=instance_id,
                coupon_config_ids=coupon_config_ids,
                activity_urls=activity_urls,
                acquisition_url=str(acquisition_url),
                login_url=str(login_url) if isinstance(login_url, str) and login_url.strip() else None,
                jumppage_type=int(jumppage_type),
                tag=str(tag),
                headers=headers,
            )
        )

    return CampaignConfig(sources=sources)


__all__ = ["CampaignConfig", "CampaignSource", "load_campaign_config"]
