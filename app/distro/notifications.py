from __future__ import annotations

import http.client
import json
import logging
import urllib.error
import urllib.request
from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from app.distro.modules.releases.models import Release

logger = logging.getLogger(__name__)

EMAILJS_SEND_URL = "https://api.emailjs.com/api/v1.0/email/send"


class NotificationError(RuntimeError):
    pass


@dataclass(frozen=True)
class EmailJSClient:
    service_id: str
    template_id: str
    public_key: str
    private_key: str = ""
    send_url: str = EMAILJS_SEND_URL
    timeout_seconds: int = 15

    def send(self, template_params: dict[str, Any]) -> None:
        body = {
            "service_id": self.service_id,
            "template_id": self.template_id,
            "user_id": self.public_key,
            "template_params": template_params,
        }
        if self.private_key:
            body["accessToken"] = self.private_key

        req = urllib.request.Request(self.send_url, data=json.dumps(body).encode("utf-8"), method="POST")
        req.add_header("Content-Type", "application/json")
        try:
            with urllib.request.urlopen(req, timeout=self.timeout_seconds) as resp:
                resp.read()
        except urllib.error.HTTPError as e:
            detail = e.read().decode("utf-8", errors="ignore")
            raise NotificationError(f"HTTP {e.code} from EmailJS: {detail[:300]}") from e
        except urllib.error.URLError as e:
            raise NotificationError(f"EmailJS unreachable: {e.reason}") from e
        except (TimeoutError, OSError, http.client.HTTPException) as e:
            raise NotificationError(f"EmailJS request failed: {e}") from e


def emailjs_from_config(config: dict) -> EmailJSClient | None:
    service_id = (config.get("EMAILJS_SERVICE_ID") or "").strip()
    template_id = (config.get("EMAILJS_TEMPLATE_ID") or "").strip()
    public_key = (config.get("EMAILJS_PUBLIC_KEY") or "").strip()
    if not (service_id and template_id and public_key):
        return None
    return EmailJSClient(
        service_id=service_id,
        template_id=template_id,
        public_key=public_key,
        private_key=(config.get("EMAILJS_PRIVATE_KEY") or "").strip(),
    )


def release_status_params(release: "Release") -> dict[str, Any]:
    user = release.user
    singer = next((t.singer for t in release.tracks if t.singer), None)
    return {
        "user_name": user.name or user.email,
        "to_email": user.email,
        "song_name": release.title,
        "singer_name": singer or user.name or "",
        "song_status": release.status,
        "date": date.today().strftime("%m/%d/%Y"),
    }


def notify_release_status(config: dict, release: "Release") -> bool:
    """
    Email the release owner about a moderation decision.

    Never raises: a failed send must not undo the status change, so errors are
    logged and reported through the return value only.
    """
    client = emailjs_from_config(config)
    if client is None:
        logger.info("Email not configured; skipping status email for release %s", release.id)
        return False
    try:
        client.send(release_status_params(release))
    except NotificationError as e:
        logger.warning("Status email for release %s failed: %s", release.id, e)
        return False
    logger.info("Status email sent for release %s (%s)", release.id, release.status)
    return True
