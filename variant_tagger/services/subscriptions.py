# variant_tagger/services/subscriptions.py
from dataclasses import dataclass, field
from typing import Optional

import requests

from .. import config
from ..clients.shopify import admin_base, rest_headers, ShopifyError
from ..utils.logger import info, warn

@dataclass
class SubscriptionReport:
    topic: str
    address: str
    webhook_id: Optional[int] = None
    created: bool = False
    deleted: list[int] = field(default_factory=list)
    failures: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    def summary(self) -> str:
        if self.failures:
            return f"FAIL {self.topic}: {'; '.join(self.failures)}"
        parts = [f"{'CREATED' if self.created else 'OK'} {self.webhook_id}"]
        if self.deleted:
            parts.append(f"DELETED {','.join(str(d) for d in self.deleted)}")
        return f"{self.topic}: {' '.join(parts)}"

def _same_address(a: Optional[str], b: str) -> bool:
    return (a or "").rstrip("/") == b.rstrip("/")

def list_webhooks(store: dict, topic: str) -> list[dict]:
    resp = requests.get(f"{admin_base(store['domain'])}/webhooks.json",
                        headers=rest_headers(store["token"]), params={"topic": topic}, timeout=20)
    if resp.status_code != 200:
        raise ShopifyError(f"list webhooks {resp.status_code}: {resp.text}")
    return [w for w in resp.json().get("webhooks", []) if w.get("topic") == topic]

def ensure_subscription(store: dict, topic: str = config.WEBHOOK_TOPIC,
                        address: Optional[str] = None) -> SubscriptionReport:
    """Converge to exactly one webhook for (topic, address). Safe to repeat."""
    address = address or f"{config.BASE_URL}{config.WEBHOOK_PATH}"
    report = SubscriptionReport(topic=topic, address=address)
    base = admin_base(store["domain"])
    headers = rest_headers(store["token"])

    try:
        existing = list_webhooks(store, topic)
    except (requests.RequestException, ShopifyError, ValueError) as e:
        report.failures.append(f"read existing webhooks: {e}")
        warn(report.summary(), "subscriptions")
        return report

    mine = [w for w in existing if _same_address(w.get("address"), address)]

    if mine:
        report.webhook_id = mine[0].get("id")
        # Duplicates at our address -> keep the first, delete the rest
        for dup in mine[1:]:
            wid = dup.get("id")
            try:
                d = requests.delete(f"{base}/webhooks/{wid}.json", headers=headers, timeout=20)
                if d.status_code in (200, 204):
                    report.deleted.append(wid)
                else:
                    report.failures.append(f"delete {wid} {d.status_code} {d.text}")
            except requests.RequestException as e:
                report.failures.append(f"delete {wid} exception {e}")
    else:
        try:
            crt = requests.post(
                f"{base}/webhooks.json",
                headers=headers,
                json={"webhook": {"topic": topic, "address": address, "format": "json"}},
                timeout=20,
            )
            if crt.status_code in (201, 202):
                report.created = True
                report.webhook_id = (crt.json().get("webhook") or {}).get("id")
            else:
                report.failures.append(f"create {crt.status_code} {crt.text}")
        except (requests.RequestException, ValueError) as e:
            report.failures.append(f"create exception {e}")

    (info if not report.failures else warn)(report.summary(), "subscriptions")
    return report
