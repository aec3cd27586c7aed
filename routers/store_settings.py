from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, Query

from routers.common import ok, out
from schemas import SettingsSection, SettingsUpdate, ShippingQuoteRequest, TaxQuoteRequest
from security import require_admin
from services import store_settings

router = APIRouter(prefix="/api/settings", tags=["settings"])


@router.get("/site-info")
def site_info(lang: str = Query("en", pattern="^(en|ar)$")):
    return ok(store_settings.site_info(lang), language=lang)


@router.get("/shipping")
def shipping():
    return ok(store_settings.get_section("shipping"))


@router.post("/calculate-shipping")
def calculate_shipping(payload: ShippingQuoteRequest):
    return ok(store_settings.calculate_shipping(payload.country, payload.order_total, payload.shipping_type))


@router.get("/taxes")
def taxes():
    return ok(store_settings.get_section("taxes"))


@router.post("/calculate-tax")
def calculate_tax(payload: TaxQuoteRequest):
    return ok(store_settings.calculate_tax(payload.amount, payload.country))


@router.get("")
def get_settings(admin: dict = Depends(require_admin)):
    return ok(out(store_settings.get_settings()))


@router.put("")
def update_settings(payload: SettingsUpdate, admin: dict = Depends(require_admin)):
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    return ok(out(store_settings.update_settings(changes, admin)), message="Settings updated")


@router.post("/reset")
def reset(admin: dict = Depends(require_admin)):
    return ok(out(store_settings.reset_settings(admin)), message="Settings reset to defaults")


@router.get("/{section}")
def get_section(section: SettingsSection, admin: dict = Depends(require_admin)):
    return ok(out(store_settings.get_section(section)), section=section)


@router.put("/{section}")
def update_section(section: SettingsSection, values: Dict[str, Any] = Body(...),
                   admin: dict = Depends(require_admin)):
    doc = store_settings.update_section(section, values, admin)
    return ok(out(doc[section]), message=f"{section.capitalize()} settings updated", section=section)
