"""Conversion reporting to ad platforms (Meta Conversions API, Google Ads click conversions).

Per call: compute the payload hash, record the funnel event, attempt the send,
then upsert the conversion attempt with the final status. Missing credentials
and upstream failures come back as a ConversionResult, never as an exception.
"""

import hashlib
import json
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

import httpx
from sqlalchemy.orm import Session

from whatsapp_crm.config import settings
from whatsapp_crm.database import dialect_insert, utcnow
from whatsapp_crm.logging_config import get_logger
from whatsapp_crm.models import ConversionEvent, FunnelEvent
from whatsapp_crm.schemas.conversion import (
    BaseConversionRequest,
    ConversionEventType,
    GoogleConversionRequest,
    MetaConversionRequest,
)

logger = get_logger("conversion_service")

PLATFORM_META = "meta"
PLATFORM_GOOGLE = "google"

META_EVENT_NAMES = {
    "sale": "Purchase",
    "opportunity": "AddPaymentInfo",
    "mql": "CompleteRegistration",
    "lead": "Lead",
}


@dataclass
class ConversionResult:
    status: str  # sent, skipped, pending, error
    payload_hash: str
    reason: Optional[str] = None
    external_response: Optional[Any] = None


def _hash_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)


def compute_payload_hash(fields: dict[str, Any]) -> str:
    """SHA-256 over canonical JSON (sorted keys, no whitespace) of the given fields."""
    canonical = json.dumps(
        {key: _hash_value(value) for key, value in fields.items()},
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _base_hash_fields(request: BaseConversionRequest) -> dict[str, Any]:
    return {
        "organizationId": request.organization_id,
        "projectId": request.project_id,
        "leadId": request.lead_id,
        "eventType": request.event_type,
        "eventTime": request.event_time,
        "amount": request.amount,
        "currency": request.currency,
    }


def meta_payload_hash(request: MetaConversionRequest) -> str:
    return compute_payload_hash(
        {**_base_hash_fields(request), "clickId": request.click_id, "fbclid": request.fbclid}
    )


def google_payload_hash(request: GoogleConversionRequest) -> str:
    return compute_payload_hash(
        {**_base_hash_fields(request), "gclid": request.gclid, "clickId": request.click_id}
    )


def map_meta_event_name(event_type: ConversionEventType) -> str:
    return META_EVENT_NAMES.get(event_type, "Lead")


def _sha256(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def _read_json(response: httpx.Response) -> Optional[Any]:
    try:
        return response.json()
    except ValueError:
        return None


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def format_google_datetime(value: Optional[datetime]) -> str:
    """Google Ads expects 'yyyy-mm-dd hh:mm:ss+hh:mm'."""
    return _as_utc(value or utcnow()).isoformat(sep=" ", timespec="seconds")


class MetaConversionsClient:
    BASE_URL = "https://graph.facebook.com/{version}"

    def __init__(self, api_version: Optional[str] = None, timeout: Optional[float] = None):
        self.base_url = self.BASE_URL.format(version=api_version or settings.meta_conversions_api_version)
        self.timeout = timeout if timeout is not None else settings.http_timeout_seconds

    def build_event(self, request: MetaConversionRequest, payload_hash: str) -> dict:
        event_time = _as_utc(request.event_time) if request.event_time else utcnow()

        user_data = {}
        if request.email:
            user_data["em"] = [_sha256(request.email.strip().lower())]
        if request.phone:
            user_data["ph"] = [_sha256(re.sub(r"\D", "", request.phone))]
        if request.fbclid:
            user_data["fbc"] = request.fbclid
        if request.click_id:
            user_data["fbp"] = request.click_id

        return {
            "event_name": map_meta_event_name(request.event_type),
            "event_time": int(event_time.timestamp()),
            "event_id": payload_hash,
            "action_source": "website",
            "user_data": user_data,
            "custom_data": {
                "currency": request.currency or settings.default_currency,
                "value": request.amount if request.amount is not None else 0,
            },
        }

    def send(self, request: MetaConversionRequest, payload_hash: str) -> ConversionResult:
        if not request.pixel_id or not request.access_token:
            return ConversionResult(status="skipped", payload_hash=payload_hash, reason="missing_meta_credentials")

        url = f"{self.base_url}/{request.pixel_id}/events"
        body = {"data": [self.build_event(request, payload_hash)]}

        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(url, params={"access_token": request.access_token}, json=body)
        except Exception as e:
            logger.error(f"Meta conversion request failed: {e}", extra={"context": {"payload_hash": payload_hash}})
            return ConversionResult(
                status="error",
                payload_hash=payload_hash,
                reason="meta_request_failed",
                external_response={"message": str(e)},
            )

        data = _read_json(response)
        if not response.is_success:
            return ConversionResult(
                status="error",
                payload_hash=payload_hash,
                reason=f"meta_http_{response.status_code}",
                external_response=data,
            )
        return ConversionResult(status="sent", payload_hash=payload_hash, external_response=data)


class GoogleAdsConversionsClient:
    BASE_URL = "https://googleads.googleapis.com/{version}"

    def __init__(self, api_version: Optional[str] = None, timeout: Optional[float] = None):
        self.base_url = self.BASE_URL.format(version=api_version or settings.google_ads_api_version)
        self.timeout = timeout if timeout is not None else settings.http_timeout_seconds

    def build_body(self, request: GoogleConversionRequest, gclid: str, payload_hash: str) -> dict:
        return {
            "partialFailure": True,
            "validateOnly": False,
            "conversions": [
                {
                    "gclid": gclid,
                    "conversionAction": (
                        f"customers/{request.customer_id}/conversionActions/{request.conversion_action_id}"
                    ),
                    "conversionDateTime": format_google_datetime(request.event_time),
                    "conversionValue": request.amount if request.amount is not None else 0,
                    "currencyCode": request.currency or settings.default_currency,
                    "orderId": payload_hash,
                }
            ],
        }

    def send(self, request: GoogleConversionRequest, payload_hash: str) -> ConversionResult:
        if (
            not request.customer_id
            or not request.conversion_action_id
            or not request.developer_token
            or not request.access_token
        ):
            return ConversionResult(status="skipped", payload_hash=payload_hash, reason="missing_google_credentials")

        gclid = request.gclid or request.click_id
        if not gclid:
            return ConversionResult(status="skipped", payload_hash=payload_hash, reason="missing_gclid")

        headers = {
            "authorization": f"Bearer {request.access_token}",
            "developer-token": request.developer_token,
        }
        if request.login_customer_id:
            headers["login-customer-id"] = request.login_customer_id

        url = f"{self.base_url}/customers/{request.customer_id}:uploadClickConversions"
        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(url, json=self.build_body(request, gclid, payload_hash), headers=headers)
        except Exception as e:
            logger.error(
                f"Google conversion request failed: {e}", extra={"context": {"payload_hash": payload_hash}}
            )
            return ConversionResult(
                status="error",
                payload_hash=payload_hash,
                reason="google_request_failed",
                external_response={"message": str(e)},
            )

        data = _read_json(response)
        if not response.is_success:
            return ConversionResult(
                status="error",
                payload_hash=payload_hash,
                reason=f"google_http_{response.status_code}",
                external_response=data,
            )

        # A 2xx with partialFailureError means the conversion was rejected.
        if isinstance(data, dict) and data.get("partialFailureError"):
            return ConversionResult(
                status="error",
                payload_hash=payload_hash,
                reason="google_partial_failure",
                external_response=data,
            )
        return ConversionResult(status="sent", payload_hash=payload_hash, external_response=data)


def record_funnel_event(db: Session, request: BaseConversionRequest, platform: str) -> FunnelEvent:
    event = FunnelEvent(
        organization_id=request.organization_id,
        project_id=request.project_id,
        lead_id=request.lead_id,
        event_type=request.event_type,
        platform=platform,
        click_id=request.click_id,
        gclid=request.gclid,
        fbclid=request.fbclid,
        amount=request.amount,
        currency=request.currency,
        occurred_at=request.event_time or utcnow(),
        created_at=utcnow(),
    )
    db.add(event)
    db.flush()
    return event


def record_conversion_event(
    db: Session,
    request: BaseConversionRequest,
    platform: str,
    result: ConversionResult,
) -> None:
    """Upsert the attempt keyed by (organization, platform, payload_hash); retries bump attempts."""
    now = utcnow()
    stmt = dialect_insert(db, ConversionEvent).values(
        organization_id=request.organization_id,
        project_id=request.project_id,
        lead_id=request.lead_id,
        event_type=request.event_type,
        platform=platform,
        payload_hash=result.payload_hash,
        status=result.status,
        reason=result.reason,
        external_response=result.external_response,
        attempts=1,
        attempted_at=now,
        created_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["organization_id", "platform", "payload_hash"],
        set_={
            "status": stmt.excluded.status,
            "reason": stmt.excluded.reason,
            "external_response": stmt.excluded.external_response,
            "attempted_at": stmt.excluded.attempted_at,
            "attempts": ConversionEvent.__table__.c.attempts + 1,
        },
    )
    db.execute(stmt)


def _dispatch(db: Session, request: BaseConversionRequest, platform: str, send) -> ConversionResult:
    # The funnel event is committed before the send so it survives any delivery outcome.
    record_funnel_event(db, request, platform)
    db.commit()

    result = send()

    record_conversion_event(db, request, platform, result)
    db.commit()

    logger.info(
        "Conversion attempt recorded",
        extra={
            "context": {
                "organization_id": str(request.organization_id),
                "platform": platform,
                "event_type": request.event_type,
                "status": result.status,
                "reason": result.reason,
                "payload_hash": result.payload_hash,
            }
        },
    )
    return result


def handle_meta_conversion(
    db: Session,
    request: MetaConversionRequest,
    client: Optional[MetaConversionsClient] = None,
) -> ConversionResult:
    client = client or MetaConversionsClient()
    payload_hash = meta_payload_hash(request)
    return _dispatch(db, request, PLATFORM_META, lambda: client.send(request, payload_hash))


def handle_google_conversion(
    db: Session,
    request: GoogleConversionRequest,
    client: Optional[GoogleAdsConversionsClient] = None,
) -> ConversionResult:
    client = client or GoogleAdsConversionsClient()
    payload_hash = google_payload_hash(request)
    return _dispatch(db, request, PLATFORM_GOOGLE, lambda: client.send(request, payload_hash))
