from __future__ import annotations

from flask import Blueprint

from app.boaz.api import current_user, get_or_404, ok, parse_body
from app.boaz.audit import record_event
from app.boaz.db import db_session
from app.boaz.modules.assets.models import Environment, InstalledProduct, License
from app.boaz.modules.assets.schemas import (
    EnvironmentCreate,
    EnvironmentUpdate,
    LicenseCreate,
    LicenseUpdate,
    ProductCreate,
    ProductUpdate,
)
from app.boaz.modules.assets.service import (
    RENEWAL_WINDOW_DAYS,
    apply_update,
    create_environment,
    create_license,
    create_product,
    customer_summary,
    license_report,
    list_customers,
)
from app.boaz.rbac import require_permission
from app.boaz.utils import arg_int, arg_str, normalize_str_list

bp = Blueprint("assets", __name__)


def _delete(s, obj, action: str):
    record_event(s, actor=current_user(), action=action, entity_type=type(obj).__name__, entity_id=str(obj.id))
    s.delete(obj)
    s.commit()
    return ok({"ok": True})


def _update(s, obj, payload, action: str, required: tuple[str, ...]):
    changed = apply_update(obj, payload.model_dump(exclude_unset=True), required=required)
    record_event(
        s,
        actor=current_user(),
        action=action,
        entity_type=type(obj).__name__,
        entity_id=str(obj.id),
        metadata={"fields": changed},
    )
    s.commit()
    return ok(obj.to_dict())


@bp.get("/customers")
@require_permission("assets.view")
def customers_list():
    return ok({"items": list_customers(db_session())})


# ---------- Environments ----------
@bp.post("/environments")
@require_permission("assets.edit")
def environments_create():
    s = db_session()
    env = create_environment(s, parse_body(EnvironmentCreate).model_dump(), current_user())
    s.commit()
    return ok(env.to_dict(), 201)


@bp.get("/environments/<int:customer_id>")
@require_permission("assets.view")
def environments_for_customer(customer_id: int):
    s = db_session()
    items = s.query(Environment).filter(Environment.customer_id == customer_id).order_by(Environment.name.asc()).all()
    return ok({"items": [e.to_dict() for e in items]})


@bp.put("/environments/<int:environment_id>")
@require_permission("assets.edit")
def environment_update(environment_id: int):
    s = db_session()
    env = get_or_404(s, Environment, environment_id)
    return _update(s, env, parse_body(EnvironmentUpdate), "asset.environment.edit", ("name", "environment_type", "status"))


@bp.delete("/environments/<int:environment_id>")
@require_permission("assets.edit")
def environment_delete(environment_id: int):
    s = db_session()
    return _delete(s, get_or_404(s, Environment, environment_id), "asset.environment.delete")


# ---------- Products ----------
@bp.post("/products")
@require_permission("assets.edit")
def products_create():
    s = db_session()
    product = create_product(s, parse_body(ProductCreate).model_dump(), current_user())
    s.commit()
    return ok(product.to_dict(), 201)


@bp.get("/products/<int:customer_id>")
@require_permission("assets.view")
def products_for_customer(customer_id: int):
    s = db_session()
    items = (
        s.query(InstalledProduct)
        .filter(InstalledProduct.customer_id == customer_id)
        .order_by(InstalledProduct.product_name.asc())
        .all()
    )
    return ok({"items": [p.to_dict() for p in items]})


@bp.get("/products/environment/<int:environment_id>")
@require_permission("assets.view")
def products_for_environment(environment_id: int):
    s = db_session()
    items = (
        s.query(InstalledProduct)
        .filter(InstalledProduct.environment_id == environment_id)
        .order_by(InstalledProduct.product_name.asc())
        .all()
    )
    return ok({"items": [p.to_dict() for p in items]})


@bp.put("/products/<int:product_id>")
@require_permission("assets.edit")
def product_update(product_id: int):
    s = db_session()
    product = get_or_404(s, InstalledProduct, product_id)
    return _update(s, product, parse_body(ProductUpdate), "asset.product.edit", ("product_name", "product_type", "status"))


@bp.delete("/products/<int:product_id>")
@require_permission("assets.edit")
def product_delete(product_id: int):
    s = db_session()
    return _delete(s, get_or_404(s, InstalledProduct, product_id), "asset.product.delete")


# ---------- Licenses ----------
@bp.post("/licenses")
@require_permission("assets.edit")
def licenses_create():
    s = db_session()
    lic = create_license(s, parse_body(LicenseCreate).model_dump(), current_user())
    s.commit()
    return ok(lic.to_dict(), 201)


@bp.get("/licenses/product/<int:product_id>")
@require_permission("assets.view")
def licenses_for_product(product_id: int):
    s = db_session()
    items = s.query(License).filter(License.product_id == product_id).order_by(License.expiration_date.asc()).all()
    return ok({"items": [l.to_dict() for l in items]})


@bp.put("/licenses/<int:license_id>")
@require_permission("assets.edit")
def license_update(license_id: int):
    s = db_session()
    lic = get_or_404(s, License, license_id)
    payload = parse_body(LicenseUpdate)
    if payload.assigned_users is not None:
        payload.assigned_users = normalize_str_list(payload.assigned_users, max_items=500, max_len=255)
    return _update(
        s, lic, payload, "asset.license.edit", ("license_type", "license_count", "seats_assigned", "renewal_status")
    )


@bp.delete("/licenses/<int:license_id>")
@require_permission("assets.edit")
def license_delete(license_id: int):
    s = db_session()
    return _delete(s, get_or_404(s, License, license_id), "asset.license.delete")


# ---------- Reports ----------
@bp.get("/summary/<int:customer_id>")
@require_permission("assets.view")
def summary(customer_id: int):
    return ok(customer_summary(db_session(), customer_id))


@bp.get("/license-report")
@require_permission("assets.view")
def license_report_view():
    items = license_report(
        db_session(),
        license_status=arg_str("license_status"),
        window_days=arg_int("window_days", RENEWAL_WINDOW_DAYS) or RENEWAL_WINDOW_DAYS,
        customer_id=arg_int("customer_id"),
        environment_id=arg_int("environment_id"),
        vendor=arg_str("vendor"),
        product_status=arg_str("product_status"),
        product_type=arg_str("product_type"),
    )
    return ok({"items": items, "total": len(items)})
