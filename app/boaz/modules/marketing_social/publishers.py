"""
Per-platform publishing over each network's HTTP API.

Every publisher takes the connected account and the post and returns a
PublishResult; network and API failures are reported in the result, never
raised.
"""
from __future__ import annotations

import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from collections.abc import Callable
from dataclasses import dataclass

from app.boaz.modules.marketing_social.models import SocialAccount, SocialPost

logger = logging.getLogger(__name__)

TIMEOUT_SECONDS = 15


@dataclass(frozen=True)
class PublishResult:
    ok: bool
    post_id: str | None = None
    error: str | None = None


def post_text(post: SocialPost) -> str:
    text = post.content
    tags = " ".join(f"#{h}" for h in (post.hashtags or []))
    return f"{text}\n\n{tags}" if tags else text


def _http_post(url: str, body: bytes, headers: dict[str, str]) -> tuple[int, dict]:
    req = urllib.request.Request(url, data=body, headers=headers, method="POST")
    try:
        with urllib.request.urlopen(req, timeout=TIMEOUT_SECONDS) as resp:
            raw = resp.read().decode("utf-8", "replace")
            status = resp.status
    except urllib.error.HTTPError as e:
        raw = e.read().decode("utf-8", "replace")
        status = e.code
    try:
        data = json.loads(raw) if raw else {}
    except ValueError:
        data = {"raw": raw[:500]}
    return status, data if isinstance(data, dict) else {"data": data}


def _call(platform: str, url: str, body: bytes, headers: dict[str, str], id_of: Callable[[dict], str | None]) -> PublishResult:
    try:
        status, data = _http_post(url, body, headers)
    except (urllib.error.URLError, TimeoutError, OSError) as e:
        logger.warning("%s publish request failed: %s", platform, e)
        return PublishResult(ok=False, error=f"{platform}: {e}")
    if 200 <= status < 300:
        return PublishResult(ok=True, post_id=id_of(data))
    message = (data.get("error") or {}).get("message") if isinstance(data.get("error"), dict) else data.get("detail")
    return PublishResult(ok=False, error=f"{platform} API error {status}" + (f": {message}" if message else ""))


def publish_facebook(account: SocialAccount, post: SocialPost) -> PublishResult:
    form = {"message": post_text(post), "access_token": account.access_token or ""}
    if post.link:
        form["link"] = post.link
    return _call(
        "Facebook",
        f"https://graph.facebook.com/v18.0/{urllib.parse.quote(account.account_id)}/feed",
        urllib.parse.urlencode(form).encode("utf-8"),
        {"Content-Type": "application/x-www-form-urlencoded"},
        lambda d: d.get("id"),
    )


def publish_twitter(account: SocialAccount, post: SocialPost) -> PublishResult:
    text = post_text(post)
    if post.link:
        text = f"{text} {post.link}"
    return _call(
        "Twitter",
        "https://api.twitter.com/2/tweets",
        json.dumps({"text": text[:280]}).encode("utf-8"),
        {"Content-Type": "application/json", "Authorization": f"Bearer {account.access_token}"},
        lambda d: (d.get("data") or {}).get("id"),
    )


def publish_linkedin(account: SocialAccount, post: SocialPost) -> PublishResult:
    share: dict = {"shareCommentary": {"text": post_text(post)}, "shareMediaCategory": "NONE"}
    if post.link:
        share["shareMediaCategory"] = "ARTICLE"
        share["media"] = [{"status": "READY", "originalUrl": post.link}]
    body = {
        "author": f"urn:li:person:{account.account_id}",
        "lifecycleState": "PUBLISHED",
        "specificContent": {"com.linkedin.ugc.ShareContent": share},
        "visibility": {"com.linkedin.ugc.MemberNetworkVisibility": "PUBLIC"},
    }
    return _call(
        "LinkedIn",
        "https://api.linkedin.com/v2/ugcPosts",
        json.dumps(body).encode("utf-8"),
        {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {account.access_token}",
            "X-Restli-Protocol-Version": "2.0.0",
        },
        lambda d: d.get("id"),
    )


def publish_instagram(account: SocialAccount, post: SocialPost) -> PublishResult:
    return PublishResult(ok=False, error="Instagram publishing coming soon")


PUBLISHERS: dict[str, Callable[[SocialAccount, SocialPost], PublishResult]] = {
    "facebook": publish_facebook,
    "twitter": publish_twitter,
    "linkedin": publish_linkedin,
    "instagram": publish_instagram,
}

PLATFORM_LABELS = {"facebook": "Facebook", "twitter": "Twitter", "linkedin": "LinkedIn", "instagram": "Instagram"}


def publish_to(account: SocialAccount, post: SocialPost) -> PublishResult:
    label = PLATFORM_LABELS.get(account.platform, account.platform)
    if not account.access_token:
        return PublishResult(ok=False, error=f"No access token for {label} account")
    publisher = PUBLISHERS.get(account.platform)
    if publisher is None:
        return PublishResult(ok=False, error=f"Unsupported platform {account.platform}")
    return publisher(account, post)
