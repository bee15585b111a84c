from __future__ import annotations

import urllib.error
import urllib.request
from dataclasses import dataclass


class WebhookError(RuntimeError):
    pass


@dataclass(frozen=True)
class WebhookResponse:
    status: int
    text: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


@dataclass(frozen=True)
class WebhookClient:
    timeout_seconds: int = 10
    user_agent: str = "Boaz-Webhooks/1.0"

    def post(self, url: str, body: bytes, headers: dict[str, str]) -> WebhookResponse:
        """
        POST a JSON body. Non-2xx responses are returned, not raised;
        transport failures (DNS, refused, timeout) raise WebhookError.
        """
        req = urllib.request.Request(url, data=body, method="POST")
        req.add_header("Content-Type", "application/json")
        req.add_header("User-Agent", self.user_agent)
        for k, v in headers.items():
            req.add_header(k, v)
        try:
            with urllib.request.urlopen(req, timeout=self.timeout_seconds) as resp:
                raw = resp.read()
                return WebhookResponse(status=resp.status, text=raw.decode("utf-8", errors="ignore"))
        except urllib.error.HTTPError as e:
            try:
                text = e.read().decode("utf-8", errors="ignore")
            except OSError:
                text = ""
            return WebhookResponse(status=e.code, text=text)
        except TimeoutError as e:
            raise WebhookError("timeout") from e
        except (urllib.error.URLError, OSError, ValueError) as e:
            reason = getattr(e, "reason", None) or e
            raise WebhookError(f"fetch_failed: {reason}") from e
