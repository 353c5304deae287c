"""Tests for phone OTP issuing, verification and SMS delivery."""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from hypothesis import given
from hypothesis import strategies as st

from krafts.core.security import hash_otp
from krafts.models.user import OtpVerification
from krafts.services.otp import (
    OtpService,
    SmsDeliveryError,
    format_phone_number,
    generate_otp,
    is_valid_phone_number,
    send_otp_sms,
)


@pytest.fixture
def mock_db():
    db = AsyncMock()
    db.add = MagicMock()
    return db


def _result(value) -> MagicMock:
    result = MagicMock()
    result.scalar_one_or_none.return_value = value
    return result


# =============================================================================
# Phone numbers and codes
# =============================================================================


class TestPhoneNumbers:
    """Validation and normalisation of Indian mobile numbers."""

    @pytest.mark.parametrize(
        "phone",
        ["9876543210", "919876543210", "+91 98765 43210", "+91-9876543210", "6000000000"],
    )
    def test_valid_numbers(self, phone):
        assert is_valid_phone_number(phone)

    @pytest.mark.parametrize(
        "phone",
        ["", "12345", "5876543210", "98765432101", "+1 415 555 0100", "98765abcde"],
    )
    def test_invalid_numbers(self, phone):
        assert not is_valid_phone_number(phone)

    def test_country_code_is_stripped(self):
        assert format_phone_number("+91 98765-43210") == "9876543210"
        assert format_phone_number("919876543210") == "9876543210"

    def test_national_number_unchanged(self):
        assert format_phone_number("9876543210") == "9876543210"


class TestGenerateOtp:
    """Tests for generate_otp."""

    @given(length=st.integers(min_value=4, max_value=8))
    def test_length_and_no_leading_zero(self, length):
        otp = generate_otp(length)

        assert len(otp) == length
        assert otp.isdigit()
        assert otp[0] != "0"

    def test_default_length_from_settings(self):
        from krafts.core.config import settings

        assert len(generate_otp()) == settings.otp_length


# =============================================================================
# OtpService
# =============================================================================


class TestStoreOtp:
    """Tests for OtpService.store_otp."""

    @pytest.mark.asyncio
    async def test_stores_digest_not_code(self, mock_db):
        service = OtpService(mock_db)

        record = await service.store_otp("9876543210", "123456")

        assert record.otp_hash == hash_otp("9876543210", "123456")
        assert "123456" not in record.otp_hash
        mock_db.add.assert_called_once_with(record)
        mock_db.flush.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_expires_pending_codes_first(self, mock_db):
        service = OtpService(mock_db)

        await service.store_otp("9876543210", "123456")

        # First statement expires still-pending rows for the phone
        statement = mock_db.execute.await_args_list[0].args[0]
        assert statement.is_update
        assert statement.table.name == "otp_verifications"

    @pytest.mark.asyncio
    async def test_expiry_window(self, mock_db):
        from krafts.core.config import settings

        service = OtpService(mock_db)
        before = datetime.now(UTC)

        record = await service.store_otp("9876543210", "123456")

        expected = before + timedelta(minutes=settings.otp_expire_minutes)
        assert abs((record.expires_at - expected).total_seconds()) < 5


class TestVerifyOtp:
    """Tests for OtpService.verify_otp."""

    @pytest.mark.asyncio
    async def test_matching_code_is_consumed(self, mock_db):
        record = OtpVerification(
            phone="9876543210",
            otp_hash=hash_otp("9876543210", "123456"),
            expires_at=datetime.now(UTC) + timedelta(minutes=5),
        )
        mock_db.execute.return_value = _result(record)

        assert await OtpService(mock_db).verify_otp("9876543210", "123456")
        assert record.verified_at is not None
        mock_db.flush.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_wrong_code_rejected(self, mock_db):
        record = OtpVerification(
            phone="9876543210",
            otp_hash=hash_otp("9876543210", "123456"),
            expires_at=datetime.now(UTC) + timedelta(minutes=5),
        )
        mock_db.execute.return_value = _result(record)

        assert not await OtpService(mock_db).verify_otp("9876543210", "654321")
        assert record.verified_at is None

    @pytest.mark.asyncio
    async def test_code_bound_to_phone(self, mock_db):
        """A digest for one number never verifies another number."""
        record = OtpVerification(
            phone="9876543210",
            otp_hash=hash_otp("9123456789", "123456"),
            expires_at=datetime.now(UTC) + timedelta(minutes=5),
        )
        mock_db.execute.return_value = _result(record)

        assert not await OtpService(mock_db).verify_otp("9876543210", "123456")

    @pytest.mark.asyncio
    async def test_no_pending_code(self, mock_db):
        mock_db.execute.return_value = _result(None)

        assert not await OtpService(mock_db).verify_otp("9876543210", "123456")
        mock_db.flush.assert_not_awaited()


class TestCleanupExpired:
    """Tests for OtpService.cleanup_expired."""

    @pytest.mark.asyncio
    async def test_returns_rowcount(self, mock_db):
        result = MagicMock()
        result.rowcount = 7
        mock_db.execute.return_value = result

        assert await OtpService(mock_db).cleanup_expired() == 7

    @pytest.mark.asyncio
    async def test_none_rowcount_is_zero(self, mock_db):
        result = MagicMock()
        result.rowcount = None
        mock_db.execute.return_value = result

        assert await OtpService(mock_db).cleanup_expired() == 0


# =============================================================================
# SMS delivery
# =============================================================================


@pytest.fixture
def mock_http_client():
    with patch("krafts.services.otp.httpx.AsyncClient") as mock_client_class:
        client = MagicMock()
        client.get = AsyncMock()
        mock_client_class.return_value.__aenter__.return_value = client
        yield client


class TestSendOtpSms:
    """Tests for send_otp_sms."""

    @pytest.mark.asyncio
    async def test_sends_templated_message(self, mock_http_client):
        mock_http_client.get.return_value = MagicMock(status_code=200, text="OK")

        await send_otp_sms("9876543210", "482913")

        params = mock_http_client.get.await_args.kwargs["params"]
        assert params["receiver"] == "9876543210"
        assert "482913" in params["sms"]

    @pytest.mark.asyncio
    async def test_non_200_raises(self, mock_http_client):
        mock_http_client.get.return_value = MagicMock(status_code=503, text="down")

        with pytest.raises(SmsDeliveryError) as exc_info:
            await send_otp_sms("9876543210", "482913")

        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    async def test_transport_error_raises(self, mock_http_client):
        mock_http_client.get.side_effect = httpx.ConnectError("refused")

        with pytest.raises(SmsDeliveryError) as exc_info:
            await send_otp_sms("9876543210", "482913")

        assert "Failed to reach SMS gateway" in exc_info.value.message
