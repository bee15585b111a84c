from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import TYPE_CHECKING, Any

from app.boaz.api import ApiError
from app.boaz.audit import record_event
from app.boaz.modules.accounts.models import Account
from app.boaz.modules.assets.models import Environment, InstalledProduct, License
from app.boaz.utils import normalize_str_list

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.boaz.models import User

RENEWAL_WINDOW_DAYS = 90
ASSET_RISK_CAP = 100

# days-until-expiry threshold -> risk points (first match wins)
EXPIRY_RISK = ((0, 40), (30, 30), (60, 15), (90, 10))
PRODUCT_STATUS_RISK = {"Needs Upgrade": 10, "Pending Renewal": 10}


def list_customers(s: "Session", limit: int = 500) -> list[dict]:
    rows = s.query(Account).order_by(Account.name.asc()).limit(limit).all()
    return [{"id": a.id, "name": a.name or a.company_name or "Account", "account_number": a.account_number} for a in rows]


def require_customer(s: "Session", customer_id: int) -> Account:
    account = s.get(Account, customer_id)
    if account is None:
        raise ApiError("customer_not_found", 404)
    return account


def apply_update(obj: Any, data: dict, *, required: tuple[str, ...] = ()) -> list[str]:
    """Copy set fields onto `obj`; None is ignored for `required` columns."""
    changed = []
    for field, value in data.items():
        if value is None and field in required:
            continue
        if isinstance(value, str):
            value = value.strip() or (None if field not in required else getattr(obj, field))
        if getattr(obj, field) != value:
            setattr(obj, field, value)
            changed.append(field)
    obj.updated_at = datetime.utcnow()
    return changed


def _audit(s: "Session", user: "User | None", action: str, obj: Any, **metadata) -> None:
    record_event(
        s,
        actor=user,
        action=action,
        entity_type=type(obj).__name__,
        entity_id=str(obj.id),
        metadata=metadata or None,
    )


def create_row(s: "Session", model: type, data: dict, user: "User | None", action: str):
    now = datetime.utcnow()
    obj = model(**data, created_at=now, updated_at=now)
    s.add(obj)
    s.flush()
    _audit(s, user, action, obj)
    return obj


def create_environment(s: "Session", data: dict, user: "User | None") -> Environment:
    require_customer(s, data["customer_id"])
    return create_row(s, Environment, data, user, "asset.environment.create")


def create_product(s: "Session", data: dict, user: "User | None") -> InstalledProduct:
    require_customer(s, data["customer_id"])
    if data.get("environment_id") is not None:
        env = s.get(Environment, data["environment_id"])
        if env is None or env.customer_id != data["customer_id"]:
            raise ApiError("invalid_environment", 400)
    return create_row(s, InstalledProduct, data, user, "asset.product.create")


def create_license(s: "Session", data: dict, user: "User | None") -> License:
    if s.get(InstalledProduct, data["product_id"]) is None:
        raise ApiError("product_not_found", 404)
    data["assigned_users"] = normalize_str_list(data.get("assigned_users"), max_items=500, max_len=255)
    return create_row(s, License, data, user, "asset.license.create")


# ---------- Risk ----------
def license_expiry_risk(expiration: date | None, today: date) -> int:
    if expiration is None:
        return 0
    days = (expiration - today).days
    if days < 0:
        return EXPIRY_RISK[0][1]
    for threshold, points in EXPIRY_RISK[1:]:
        if days <= threshold:
            return points
    return 0


def asset_risk_by_customer(
    s: "Session", customer_ids: list[int] | None = None, today: date | None = None
) -> dict[int, dict]:
    """
    Per customer risk score 0-100 from license expiry and product status,
    with the counts that produced it.
    """
    today = today or date.today()
    query = s.query(InstalledProduct).filter(InstalledProduct.status != "Retired")
    if customer_ids:
        query = query.filter(InstalledProduct.customer_id.in_(customer_ids))
    products = query.all()
    by_id = {p.id: p for p in products}
    licenses = s.query(License).filter(License.product_id.in_(list(by_id))).all() if by_id else []

    out: dict[int, dict] = {}

    def row(customer_id: int) -> dict:
        return out.setdefault(
            customer_id,
            {"score": 0, "expired": 0, "expiring_30": 0, "expiring_60": 0, "expiring_90": 0, "needs_upgrade": 0, "pending_renewal": 0},
        )

    for p in products:
        r = row(p.customer_id)
        points = PRODUCT_STATUS_RISK.get(p.status, 0)
        if p.status == "Needs Upgrade":
            r["needs_upgrade"] += 1
        elif p.status == "Pending Renewal":
            r["pending_renewal"] += 1
        r["score"] += points

    for lic in licenses:
        r = row(by_id[lic.product_id].customer_id)
        points = license_expiry_risk(lic.expiration_date, today)
        if not points:
            continue
        days = (lic.expiration_date - today).days
        bucket = "expired" if days < 0 else "expiring_30" if days <= 30 else "expiring_60" if days <= 60 else "expiring_90"
        r[bucket] += 1
        r["score"] += points

    for r in out.values():
        r["score"] = min(ASSET_RISK_CAP, r["score"])
    return out


# ---------- Reports ----------
def customer_summary(s: "Session", customer_id: int, today: date | None = None) -> dict:
    today = today or date.today()
    until = today + timedelta(days=RENEWAL_WINDOW_DAYS)
    environments = s.query(Environment).filter(Environment.customer_id == customer_id).all()
    products = s.query(InstalledProduct).filter(InstalledProduct.customer_id == customer_id).all()
    product_ids = [p.id for p in products]
    licenses = s.query(License).filter(License.product_id.in_(product_ids)).all() if product_ids else []

    renewals = [l for l in licenses if l.expiration_date and today <= l.expiration_date <= until]
    allocation = []
    for p in products:
        own = [l for l in licenses if l.product_id == p.id]
        total = sum(l.license_count or 0 for l in own)
        assigned = sum(l.seats_assigned or 0 for l in own)
        allocation.append(
            {
                "product_id": p.id,
                "product_name": p.product_name,
                "license_count": total,
                "seats_assigned": assigned,
                "over_allocated": total > 0 and assigned > total,
            }
        )
    health = {status: 0 for status in ("Active", "Needs Upgrade", "Pending Renewal", "Retired")}
    for p in products:
        health[p.status] = health.get(p.status, 0) + 1
    return {
        "customer_id": customer_id,
        "total_environments": len(environments),
        "total_products": len(products),
        "total_licenses": len(licenses),
        "upcoming_renewals": [l.to_dict() for l in sorted(renewals, key=lambda l: l.expiration_date)],
        "license_allocation": allocation,
        "product_health": health,
    }


def license_report(
    s: "Session",
    *,
    license_status: str = "",
    window_days: int = RENEWAL_WINDOW_DAYS,
    customer_id: int | None = None,
    environment_id: int | None = None,
    vendor: str = "",
    product_status: str = "",
    product_type: str = "",
    today: date | None = None,
) -> list[dict]:
    """
    License rows joined with their product and environment.

    `license_status`: expired (past expiry), expiring (within `window_days`),
    active (not expired) or empty for all.
    """
    today = today or date.today()
    query = (
        s.query(License, InstalledProduct, Environment)
        .join(InstalledProduct, InstalledProduct.id == License.product_id)
        .outerjoin(Environment, Environment.id == InstalledProduct.environment_id)
    )
    if customer_id is not None:
        query = query.filter(InstalledProduct.customer_id == customer_id)
    if environment_id is not None:
        query = query.filter(InstalledProduct.environment_id == environment_id)
    if vendor:
        query = query.filter(InstalledProduct.vendor.ilike(f"%{vendor}%"))
    if product_status:
        query = query.filter(InstalledProduct.status == product_status)
    if product_type:
        query = query.filter(InstalledProduct.product_type == product_type)
    if license_status == "expired":
        query = query.filter(License.expiration_date < today)
    elif license_status == "expiring":
        query = query.filter(
            License.expiration_date >= today, License.expiration_date <= today + timedelta(days=window_days)
        )
    elif license_status == "active":
        query = query.filter((License.expiration_date.is_(None)) | (License.expiration_date >= today))

    rows = []
    for lic, product, env in query.order_by(License.expiration_date.asc(), License.id.asc()).all():
        rows.append(
            {
                **lic.to_dict(),
                "days_to_expiry": (lic.expiration_date - today).days if lic.expiration_date else None,
                "customer_id": product.customer_id,
                "product_name": product.product_name,
                "product_type": product.product_type,
                "product_status": product.status,
                "vendor": product.vendor,
                "environment_id": env.id if env else None,
                "environment_name": env.name if env else None,
            }
        )
    return rows
