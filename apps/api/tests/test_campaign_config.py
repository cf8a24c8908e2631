from pathlib import Path

import pytest

from keycard_api.domain.campaigns import DEFAULT_ACQUISITION_URL, load_campaign_config


def test_loads_sources_with_defaults(tmp_path: Path) -> None:
    config_path = tmp_path / "campaigns.toml"
    config_path.write_text(
        """
[defaults]
tag = "text-blue-600"

[defaults.headers]
Origin = "https://campaign.example"

[sources.alpha]
gundam_id = 101
instance_id = "inst-alpha"
coupon_config_ids = ["1", "2"]
activity_urls = ["https://campaign.example/a"]

[sources.beta]
gundam_id = 202
instance_id = "inst-beta"
coupon_config_ids = "3, 4"
activity_urls = ["https://campaign.example/b"]
login_url = "https://campaign.example/login"
tag = "text-green-600"

[sources.beta.headers]
Referer = "https://campaign.example/b"
"""
    )

    config = load_campaign_config(config_path)

    assert [source.id for source in config.sources] == ["alpha", "beta"]
    alpha, beta = config.sources
    assert alpha.acquisition_url == DEFAULT_ACQUISITION_URL
    assert alpha.tag == "text-blue-600"
    assert alpha.login_url is None
    assert beta.coupon_config_ids == ["3", "4"]
    assert beta.tag == "text-green-600"
    assert beta.login_url == "https://campaign.example/login"
    assert beta.headers == {"Origin": "https://campaign.example", "Referer": "https://campaign.example/b"}


def test_skips_incomplete_sources(tmp_path: Path) -> None:
    config_path = tmp_path / "campaigns.toml"
    config_path.write_text(
        """
[sources.no_urls]
gundam_id = 1
instance_id = "x"
coupon_config_ids = ["1"]
activity_urls = []

[sources.bad_gundam]
gundam_id = "abc"
instance_id = "x"
coupon_config_ids = ["1"]
activity_urls = ["https://campaign.example"]
"""
    )

    assert load_campaign_config(config_path).sources == []


def test_missing_file_raises(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_campaign_config(tmp_path / "absent.toml")


def test_shipped_config_defines_both_campaigns() -> None:
    config_path = Path(__file__).resolve().parents[1] / "config" / "campaigns.toml"

    config = load_campaign_config(config_path)

    assert [source.id for source in config.sources] == ["daily_red_packets", "member_voucher"]
    payload = config.sources[0].build_payload("fp-token")
    assert payload["gundamId"] == 531693
    assert payload["h5Fingerprint"] == "fp-token"
    assert payload["couponConfigIdOrderCommaString"] == payload["couponAllConfigIdOrderString"]
    assert config.sources[1].login_url is not None
