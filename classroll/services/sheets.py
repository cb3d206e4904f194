"""Google Sheets side channel for attendance changes.

Each successful attendance write is appended as a row to a spreadsheet,
authenticated with a service account. Delivery happens in the background;
the attendance store never waits for it and a failed delivery is only logged.
"""

import asyncio
import logging
import time
from typing import Any, Protocol

import requests
from jose import jwt
from jose.exceptions import JOSEError

from classroll.core.config import Settings
from classroll.schemas.attendance import AttendanceNotification

logger = logging.getLogger(__name__)

TOKEN_URL = "https://oauth2.googleapis.com/token"
SHEETS_SCOPE = "https://www.googleapis.com/auth/spreadsheets"
APPEND_URL = "https://sheets.googleapis.com/v4/spreadsheets/{spreadsheet_id}/values/A1:append"
JWT_BEARER_GRANT = "urn:ietf:params:oauth:grant-type:jwt-bearer"

REQUEST_TIMEOUT_SECONDS = 10
TOKEN_LIFETIME_SECONDS = 3600
TOKEN_REFRESH_MARGIN_SECONDS = 60

STATUS_PRESENT = "Presente"
STATUS_ABSENT = "Ausente"
UNKNOWN_STUDENT = "Desconhecido"
UNKNOWN_CLASS = "Desconhecida"
SYNC_NOTE = "Sincronização Automática"


class AttendanceNotifier(Protocol):
    """Receives attendance writes after they reach the store."""

    def submit(self, notification: AttendanceNotification) -> None:
        raise NotImplementedError


def build_sheet_row(notification: AttendanceNotification) -> list[str]:
    """Spreadsheet columns: student, class, status, date, note."""
    return [
        notification.student_name or UNKNOWN_STUDENT,
        notification.class_name or UNKNOWN_CLASS,
        STATUS_PRESENT if notification.present else STATUS_ABSENT,
        notification.attendance_date.isoformat(),
        SYNC_NOTE,
    ]


class SheetsNotifier:
    """Appends attendance changes to a Google spreadsheet."""

    def __init__(
        self,
        service_account_email: str,
        private_key: str,
        spreadsheet_id: str,
        http: requests.Session | None = None,
    ):
        self.service_account_email = service_account_email
        self.private_key = private_key
        self.spreadsheet_id = spreadsheet_id
        self.http = http or requests.Session()
        self._access_token: str | None = None
        self._token_expires_at = 0.0
        self._pending: set[asyncio.Task] = set()

    @classmethod
    def from_settings(cls, settings: Settings) -> "SheetsNotifier | None":
        """Build a notifier when sync is enabled and fully configured."""
        if not settings.sheets_configured:
            if settings.SHEETS_SYNC_ENABLED:
                logger.warning("[SHEETS] Sync enabled but service account settings are incomplete")
            return None
        return cls(
            service_account_email=settings.GOOGLE_SERVICE_ACCOUNT_EMAIL,
            private_key=settings.GOOGLE_PRIVATE_KEY,
            spreadsheet_id=settings.GOOGLE_SHEETS_SPREADSHEET_ID,
        )

    @property
    def pending(self) -> int:
        return len(self._pending)

    def create_assertion(self, issued_at: int) -> str:
        """Sign the service-account JWT exchanged for an access token."""
        claims = {
            "iss": self.service_account_email,
            "scope": SHEETS_SCOPE,
            "aud": TOKEN_URL,
            "iat": issued_at,
            "exp": issued_at + TOKEN_LIFETIME_SECONDS,
        }
        return jwt.encode(claims, self.private_key, algorithm="RS256")

    def get_access_token(self) -> str:
        """Return a cached access token, refreshing it shortly before expiry."""
        now = time.time()
        if self._access_token and now < self._token_expires_at - TOKEN_REFRESH_MARGIN_SECONDS:
            return self._access_token

        issued_at = int(now)
        response = self.http.post(
            TOKEN_URL,
            data={"grant_type": JWT_BEARER_GRANT, "assertion": self.create_assertion(issued_at)},
            timeout=REQUEST_TIMEOUT_SECONDS,
        )
        response.raise_for_status()
        payload = response.json()
        self._access_token = payload["access_token"]
        self._token_expires_at = issued_at + int(payload.get("expires_in", TOKEN_LIFETIME_SECONDS))
        return self._access_token

    def append_row(self, values: list[str]) -> dict[str, Any]:
        response = self.http.post(
            APPEND_URL.format(spreadsheet_id=self.spreadsheet_id),
            params={"valueInputOption": "USER_ENTERED"},
            headers={"Authorization": f"Bearer {self.get_access_token()}"},
            json={"values": [values]},
            timeout=REQUEST_TIMEOUT_SECONDS,
        )
        response.raise_for_status()
        return response.json()

    def deliver(self, notification: AttendanceNotification) -> dict[str, Any]:
        """Append one notification synchronously."""
        return self.append_row(build_sheet_row(notification))

    def submit(self, notification: AttendanceNotification) -> None:
        """Schedule delivery on the running loop without waiting for it."""
        task = asyncio.get_running_loop().create_task(self._deliver_in_background(notification))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _deliver_in_background(self, notification: AttendanceNotification) -> None:
        try:
            await asyncio.to_thread(self.deliver, notification)
        except (requests.RequestException, JOSEError, KeyError, ValueError) as e:
            logger.error(
                f"[SHEETS] Failed to sync attendance for student {notification.student_id} "
                f"on {notification.attendance_date}: {e}"
            )
            return
        logger.info(
            f"[SHEETS] Synced attendance for student {notification.student_id} "
            f"on {notification.attendance_date}"
        )

    async def drain(self) -> None:
        """Wait for every scheduled delivery to finish.

        Errors escaping a delivery are logged, never raised.
        """
        if not self._pending:
            return
        results = await asyncio.gather(*list(self._pending), return_exceptions=True)
        for result in results:
            if isinstance(result, BaseException):
                logger.error(f"[SHEETS] Delivery crashed: {type(result).__name__}: {result}")

    def close(self) -> None:
        self.http.close()
