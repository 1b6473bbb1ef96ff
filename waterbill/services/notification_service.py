"""Best-effort delivery of customer notifications through the messaging gateway."""

import logging
from typing import Any

import requests
from sqlalchemy.orm import sessionmaker

from waterbill.config import Settings, get_settings
from waterbill.models.notification_log import NotificationKind, NotificationLog, NotificationStatus
from waterbill.services.messages import normalize_phone
from waterbill.services.transitions import ensure_transition

logger = logging.getLogger(__name__)

SEND_PATH = {
    NotificationKind.BILL_REMINDER: "/send",
    NotificationKind.BILL_DOCUMENT: "/send-document",
}


class NotificationDispatcher:
    """Sends messages through ``POST {base}/send`` and ``POST {base}/send-document``.

    Every attempt is logged: a PENDING entry is committed before the network
    call and moved to SENT or FAILED afterwards. No database transaction is
    held open across the call, and delivery errors never reach the caller.
    There are no automatic retries.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        settings: Settings | None = None,
        http: requests.Session | None = None,
    ):
        self.session_factory = session_factory
        self.settings = settings or get_settings()
        self.http = http or requests.Session()

    def send(
        self,
        destination: str,
        payload: dict[str, Any],
        kind: NotificationKind = NotificationKind.BILL_REMINDER,
    ) -> NotificationStatus:
        """Deliver a message; returns the final status of the logged attempt."""
        try:
            return self._deliver(kind, destination, payload)
        except Exception:
            logger.exception("Notification to %s could not be logged or delivered", destination)
            return NotificationStatus.FAILED

    def send_document(
        self,
        destination: str,
        url: str,
        filename: str,
        caption: str | None = None,
    ) -> NotificationStatus:
        return self.send(
            destination,
            {
                "url": url,
                "filename": filename,
                "caption": caption,
                "mimeType": "application/pdf",
            },
            kind=NotificationKind.BILL_DOCUMENT,
        )

    def _deliver(
        self, kind: NotificationKind, destination: str, payload: dict[str, Any]
    ) -> NotificationStatus:
        to = normalize_phone(destination)
        body = {"to": to, **payload}
        base = self.settings.notification_gateway_url.rstrip("/")

        if not base:
            self._write_log(
                to, kind, body, NotificationStatus.FAILED, error="gateway url not configured"
            )
            logger.warning("Notification gateway not configured; %s to %s marked failed", kind.value, to)
            return NotificationStatus.FAILED

        log_id = self._write_log(to, kind, body, NotificationStatus.PENDING)

        headers = {"Content-Type": "application/json"}
        if self.settings.notification_gateway_api_key:
            headers["x-api-key"] = self.settings.notification_gateway_api_key

        http_status = None
        error = None
        try:
            response = self.http.post(
                f"{base}{SEND_PATH[kind]}",
                json=body,
                headers=headers,
                timeout=self.settings.notification_timeout_seconds,
            )
            http_status = response.status_code
            status = NotificationStatus.SENT if response.ok else NotificationStatus.FAILED
            if not response.ok:
                error = f"HTTP {response.status_code}"
        except requests.Timeout:
            status = NotificationStatus.FAILED
            error = f"timed out after {self.settings.notification_timeout_seconds}s"
        except requests.RequestException as e:
            status = NotificationStatus.FAILED
            error = str(e)

        self._finish_log(log_id, status, http_status, error)
        if status == NotificationStatus.SENT:
            logger.info("Sent %s to %s (log %d)", kind.value, to, log_id)
        else:
            logger.warning("Failed %s to %s (log %d): %s", kind.value, to, log_id, error)
        return status

    def _write_log(
        self,
        to: str,
        kind: NotificationKind,
        body: dict[str, Any],
        status: NotificationStatus,
        error: str | None = None,
    ) -> int:
        with self.session_factory() as db:
            entry = NotificationLog(
                destination=to, kind=kind, payload=body, status=status, error=error
            )
            db.add(entry)
            db.commit()
            return entry.id

    def _finish_log(
        self,
        log_id: int,
        status: NotificationStatus,
        http_status: int | None,
        error: str | None,
    ) -> None:
        with self.session_factory() as db:
            entry = db.get(NotificationLog, log_id)
            ensure_transition("notification", entry.status, status)
            entry.status = status
            entry.http_status = http_status
            entry.error = error[:1000] if error else None
            db.commit()


__all__ = ["NotificationDispatcher"]
