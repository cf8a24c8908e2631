from keycard_api.domain.coupons import (
    AcquisitionOutcome,
    Coupon,
    deserialize_coupons,
    parse_coupon,
    parse_grab_response,
    serialize_coupons,
)


def _record(**overrides):
    record = {
        "jumppageType": 8,
        "couponName": "Lunch Red Packet",
        "amountLimit": "满20可用",
        "couponAmount": 5,
        "useCondition": "限138****1234使用",
    }
    record.update(overrides)
    return record


def test_parse_coupon_builds_display_text_and_mask() -> None:
    coupon = parse_coupon(_record(), jumppage_type=8)

    assert coupon == Coupon(display_text="Lunch Red Packet|20-5", tag="text-green-600", owner_mask="138****1234")


def test_parse_coupon_ignores_other_categories() -> None:
    assert parse_coupon(_record(jumppageType=3), jumppage_type=8) is None


def test_parse_coupon_requires_owner_mask() -> None:
    assert parse_coupon(_record(useCondition="any user"), jumppage_type=8) is None


def test_parse_coupon_tolerates_malformed_records() -> None:
    assert parse_coupon(None, jumppage_type=8) is None
    assert parse_coupon(["not", "a", "record"], jumppage_type=8) is None
    assert parse_coupon(_record(couponName=""), jumppage_type=8) is None
    assert parse_coupon(_record(amountLimit=None), jumppage_type=8) is None
    assert parse_coupon(_record(couponAmount=None), jumppage_type=8) is None


def test_parse_grab_response_success() -> None:
    body = {"code": 0, "data": {"allCoupons": [_record(), _record(jumppageType=2)]}}

    result = parse_grab_response(body, jumppage_type=8, tag="text-red-600")

    assert result.outcome is AcquisitionOutcome.SUCCESS
    assert len(result.coupons) == 1
    assert result.coupons[0].tag == "text-red-600"


def test_parse_grab_response_empty_when_nothing_matches() -> None:
    assert parse_grab_response({"code": 0, "data": {"allCoupons": []}}, jumppage_type=8).outcome is AcquisitionOutcome.EMPTY
    assert parse_grab_response({"code": 0, "data": {}}, jumppage_type=8).outcome is AcquisitionOutcome.EMPTY
    assert (
        parse_grab_response({"code": 0, "data": {"allCoupons": [_record(jumppageType=1)]}}, jumppage_type=8).outcome
        is AcquisitionOutcome.EMPTY
    )


def test_parse_grab_response_failed_on_error_code_or_shape() -> None:
    error = parse_grab_response({"code": 7, "msg": "limit"}, jumppage_type=8)

    assert error.outcome is AcquisitionOutcome.FAILED
    assert error.upstream_code == 7
    assert parse_grab_response("oops", jumppage_type=8).outcome is AcquisitionOutcome.FAILED
    assert parse_grab_response({"code": False}, jumppage_type=8).outcome is AcquisitionOutcome.FAILED


def test_stored_coupons_keep_text_tag_and_user() -> None:
    coupons = [Coupon("A|10-2", "text-green-600", "138****0000"), Coupon("B|30-6", "text-green-600", "139****1111")]

    payload = serialize_coupons(coupons)

    assert payload[0] == {"text": "A|10-2", "tag": "text-green-600", "user": "138****0000"}
    assert deserialize_coupons(payload) == coupons
    assert deserialize_coupons(None) == []
    assert deserialize_coupons([{"text": "missing fields"}, "junk"]) == []
