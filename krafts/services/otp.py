"""Phone OTP issuing, verification and SMS delivery."""

import logging
import re
import secrets
from datetime import UTC, datetime, timedelta

import httpx
from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from krafts.core.config import settings
from krafts.core.security import hash_otp, otp_matches
from krafts.models.user import OtpVerification

logger = logging.getLogger(__name__)

# Indian mobile numbers, with or without the 91 country code
PHONE_PATTERN = re.compile(r"^([6-9]\d{9}|91[6-9]\d{9})$")

SMS_TEMPLATE = (
    "Welcome to 24 Krafts. Your OTP for authentication is {otp}. "
    "Do not share it with anybody. Thank you"
)


class SmsDeliveryError(Exception):
    """Raised when the SMS gateway does not accept a message."""

    def __init__(self, message: str, status_code: int | None = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


def _strip(phone: str) -> str:
    return re.sub(r"[\s\-+]", "", phone)


def format_phone_number(phone: str) -> str:
    """Normalise to the 10-digit national number."""
    cleaned = _strip(phone)
    if len(cleaned) == 12 and cleaned.startswith("91"):
        return cleaned[2:]
    return cleaned


def is_valid_phone_number(phone: str) -> bool:
    return bool(PHONE_PATTERN.match(_strip(phone)))


def generate_otp(length: int | None = None) -> str:
    """Random numeric code without a leading zero."""
    length = length or settings.otp_length
    low = 10 ** (length - 1)
    return str(low + secrets.randbelow(9 * low))


async def send_otp_sms(phone: str, otp: str) -> None:
    """Deliver the OTP through the HTTP SMS gateway.

    Raises:
        SmsDeliveryError: gateway unreachable or returned non-200
    """
    params = {
        "secret": settings.sms_secret,
        "sender": settings.sms_sender,
        "tempid": settings.sms_template_id,
        "receiver": phone,
        "route": settings.sms_route,
        "msgtype": settings.sms_msgtype,
        "sms": SMS_TEMPLATE.format(otp=otp),
    }
    try:
        async with httpx.AsyncClient(timeout=settings.sms_timeout_seconds) as client:
            response = await client.get(
                settings.sms_base_url,
                params=params,
                headers={"User-Agent": "krafts-api/1.0"},
            )
    except httpx.HTTPError as e:
        raise SmsDeliveryError(f"Failed to reach SMS gateway: {e}") from e

    if response.status_code != 200:
        raise SmsDeliveryError(
            f"SMS gateway returned status {response.status_code}: {response.text[:200]}",
            status_code=response.status_code,
        )
    logger.info(f"OTP SMS accepted for {phone[-4:].rjust(len(phone), '*')}")


class OtpService:
    """Stores OTP digests and checks submitted codes."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def store_otp(self, phone: str, otp: str) -> OtpVerification:
        """Persist a new OTP, expiring any still-pending codes for the phone."""
        now = datetime.now(UTC)
        await self.db.execute(
            update(OtpVerification)
            .where(
                OtpVerification.phone == phone,
                OtpVerification.verified_at.is_(None),
                OtpVerification.expires_at > now,
            )
            .values(expires_at=now)
        )
        record = OtpVerification(
            phone=phone,
            otp_hash=hash_otp(phone, otp),
            expires_at=now + timedelta(minutes=settings.otp_expire_minutes),
        )
        self.db.add(record)
        await self.db.flush()
        return record

    async def verify_otp(self, phone: str, otp: str) -> bool:
        """Consume the latest pending OTP if it matches."""
        now = datetime.now(UTC)
        result = await self.db.execute(
            select(OtpVerification)
            .where(
                OtpVerification.phone == phone,
                OtpVerification.verified_at.is_(None),
                OtpVerification.expires_at > now,
            )
            .order_by(OtpVerification.created_at.desc())
            .limit(1)
        )
        record = result.scalar_one_or_none()
        if record is None or not otp_matches(phone, otp, record.otp_hash):
            return False

        record.verified_at = now
        await self.db.flush()
        return True

    async def cleanup_expired(self) -> int:
        """Delete expired OTP rows, returning how many were removed."""
        result = await self.db.execute(
            delete(OtpVerification).where(OtpVerification.expires_at < datetime.now(UTC))
        )
        deleted = result.rowcount or 0
        logger.info(f"Cleaned up {deleted} expired OTPs")
        return deleted
