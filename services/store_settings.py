"""
Store settings: a single document holding site information, SEO,
appearance, feature toggles, shipping rates, tax rates and localization.

Checkout prices shipping and tax from this document, so the shipping
and tax sections are validated on every write.
"""

import copy
import logging
from typing import Any, Dict, Optional

from pydantic import ValidationError as SchemaError
from pymongo import ReturnDocument

from database import get_collection, utcnow
from errors import ValidationError
from i18n import localize, normalize_language
from schemas import SettingsUpdate

logger = logging.getLogger(__name__)

COLLECTION = "settings"
SETTINGS_ID = "store"

SECTIONS = ("site", "seo", "appearance", "features", "shipping", "taxes", "localization")

COUNTRY_CODES = {
    "egypt": "EG",
    "saudi arabia": "SA",
    "united arab emirates": "AE",
    "uae": "AE",
    "kuwait": "KW",
    "qatar": "QA",
    "bahrain": "BH",
    "oman": "OM",
    "jordan": "JO",
    "lebanon": "LB",
    "united states": "US",
    "united kingdom": "GB",
    "france": "FR",
    "germany": "DE",
}

DEFAULT_SETTINGS: Dict[str, Any] = {
    "site": {
        "title": {"en": "Maison Darin", "ar": "دار دارين"},
        "tagline": {"en": "Luxury Fragrances", "ar": "عطور فاخرة"},
        "description": {"en": "Luxury perfumes for the modern woman", "ar": "عطور فاخرة للمرأة العصرية"},
        "email": "hello@maisondarin.com",
        "phone": "+1 (555) 123-4567",
        "address": "Luxury Boutique, Fashion District",
        "social_media": {"instagram": "", "facebook": "", "twitter": "", "tiktok": "", "youtube": ""},
    },
    "seo": {
        "meta_title": {"en": "Maison Darin - Luxury Perfumes", "ar": "دار دارين - عطور فاخرة"},
        "meta_description": {
            "en": "Discover our curated collection of luxury perfumes for women",
            "ar": "اكتشفي مجموعتنا المختارة من العطور الفاخرة للنساء",
        },
        "keywords": {
            "en": "luxury perfume, women fragrance, artisanal scents",
            "ar": "عطور فاخرة، عطور نسائية، عطور حرفية",
        },
        "enable_sitemap": True,
        "enable_robots": True,
    },
    "appearance": {
        "primary_color": "#1E6660",
        "accent_color": "#CD9D82",
        "logo_url": "",
        "favicon_url": "",
        "enable_animations": True,
        "enable_parallax": True,
    },
    "features": {
        "enable_sample_requests": True,
        "enable_newsletter": True,
        "enable_live_chat": False,
        "enable_analytics": True,
        "maintenance_mode": False,
    },
    "shipping": {
        "enable_shipping": True,
        "free_shipping_threshold": 100,
        "domestic_shipping": {
            "enabled": True, "cost": 10, "estimated_days": "3-5",
            "description": {"en": "Standard domestic shipping", "ar": "الشحن المحلي العادي"},
        },
        "international_shipping": {
            "enabled": True, "cost": 25, "estimated_days": "7-14",
            "description": {"en": "International shipping", "ar": "الشحن الدولي"},
        },
        "express_shipping": {
            "enabled": True, "cost": 20, "estimated_days": "1-2",
            "description": {"en": "Express shipping", "ar": "الشحن السريع"},
        },
        "shipping_zones": [
            {"name": {"en": "Local Area", "ar": "المنطقة المحلية"},
             "countries": ["EG"], "cost": 5, "estimated_days": "1-2"},
            {"name": {"en": "Middle East", "ar": "الشرق الأوسط"},
             "countries": ["SA", "AE", "KW", "QA", "BH", "OM"], "cost": 15, "estimated_days": "3-7"},
            {"name": {"en": "International", "ar": "دولي"},
             "countries": ["*"], "cost": 25, "estimated_days": "7-14"},
        ],
    },
    "taxes": {
        "enable_taxes": True,
        "tax_included_in_price": False,
        "default_tax_rate": 14,
        "tax_rates": [
            {"name": {"en": "VAT", "ar": "ضريبة القيمة المضافة"},
             "rate": 14, "countries": ["EG"], "enabled": True},
            {"name": {"en": "Gulf VAT", "ar": "ضريبة القيمة المضافة الخليجية"},
             "rate": 5, "countries": ["AE", "SA", "BH", "OM"], "enabled": True},
            {"name": {"en": "Kuwait VAT", "ar": "ضريبة الكويت"},
             "rate": 0, "countries": ["KW"], "enabled": False},
        ],
        "display_tax_breakdown": True,
    },
    "localization": {
        "default_language": "en",
        "enable_rtl": True,
        "date_format": "MM/DD/YYYY",
        "currency_symbol": "$",
        "currency_code": "USD",
        "timezone": "UTC",
    },
}


def _defaults() -> Dict[str, Any]:
    doc = copy.deepcopy(DEFAULT_SETTINGS)
    doc["system"] = {"version": "1.0.0", "last_updated": utcnow(), "updated_by": None}
    return doc


def get_settings() -> dict:
    """The settings document, created from the defaults on first read."""
    now = utcnow()
    return get_collection(COLLECTION).find_one_and_update(
        {"_id": SETTINGS_ID},
        {"$setOnInsert": {**_defaults(), "created_at": now, "updated_at": now}},
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )


def _check_section(section: str) -> None:
    if section not in SECTIONS:
        raise ValidationError(
            f"Invalid settings section: {section}",
            code="INVALID_SECTION",
            details={"valid_sections": list(SECTIONS)},
        )


def get_section(section: str) -> Dict[str, Any]:
    _check_section(section)
    return get_settings().get(section, {})


def update_settings(changes: Dict[str, Any], user: Optional[dict] = None) -> dict:
    """Merge each given section into the stored one, key by key."""
    if not changes:
        raise ValidationError("No settings to update")
    current = get_settings()
    now = utcnow()
    update = {
        section: {**current.get(section, {}), **values}
        for section, values in changes.items()
    }
    update.update({
        "system.last_updated": now,
        "system.updated_by": str(user["_id"]) if user else None,
        "updated_at": now,
    })
    doc = get_collection(COLLECTION).find_one_and_update(
        {"_id": SETTINGS_ID}, {"$set": update}, return_document=ReturnDocument.AFTER
    )
    logger.info(f"Settings updated: {', '.join(changes)}")
    return doc


def update_section(section: str, values: Dict[str, Any], user: Optional[dict] = None) -> dict:
    _check_section(section)
    try:
        parsed = SettingsUpdate.model_validate({section: values})
    except SchemaError as e:
        raise ValidationError(
            f"Invalid {section} settings",
            details=e.errors(include_url=False, include_context=False),
        )
    return update_settings(parsed.model_dump(exclude_unset=True, exclude_none=True), user)


def reset_settings(user: Optional[dict] = None) -> dict:
    now = utcnow()
    doc = _defaults()
    doc["system"]["updated_by"] = str(user["_id"]) if user else None
    doc.update({"created_at": now, "updated_at": now})
    get_collection(COLLECTION).replace_one({"_id": SETTINGS_ID}, doc, upsert=True)
    logger.warning("Settings reset to defaults")
    return get_settings()


def site_info(lang: Optional[str] = None) -> Dict[str, Any]:
    lang = normalize_language(lang)
    settings = get_settings()
    site = localize(settings["site"], lang)
    return {
        **site,
        "seo": {
            key: localize(settings["seo"][key], lang)
            for key in ("meta_title", "meta_description", "keywords")
        },
        "appearance": settings["appearance"],
        "features": settings["features"],
        "localization": settings["localization"],
    }


def country_code(country: str) -> str:
    """ISO code for a country given either as a code or by English name."""
    value = (country or "").strip()
    if len(value) == 2:
        return value.upper()
    return COUNTRY_CODES.get(value.lower(), value.upper())


def _zone_for(shipping: dict, code: str) -> Optional[dict]:
    zones = shipping.get("shipping_zones") or []
    for zone in zones:
        if code in zone["countries"]:
            return zone
    for zone in zones:
        if "*" in zone["countries"]:
            return zone
    return None


def calculate_shipping(country: str, order_total: float = 0, shipping_type: str = "standard",
                       settings: Optional[dict] = None) -> Dict[str, Any]:
    settings = settings or get_settings()
    shipping = settings["shipping"]
    code = country_code(country)
    if not shipping.get("enable_shipping", True):
        return {"cost": 0, "is_free": False, "reason": "Shipping disabled", "country_code": code}
    if order_total >= shipping.get("free_shipping_threshold", 0):
        return {"cost": 0, "is_free": True, "reason": "Free shipping threshold met", "country_code": code}

    express = shipping.get("express_shipping") or {}
    zone = _zone_for(shipping, code)
    if shipping_type == "express" and express.get("enabled"):
        cost = express["cost"]
    elif zone is not None:
        cost = zone["cost"]
    else:
        international = shipping.get("international_shipping") or {}
        cost = international["cost"] if international.get("enabled") else 0
    return {
        "cost": cost,
        "is_free": False,
        "type": shipping_type,
        "zone": zone["name"] if zone else None,
        "country_code": code,
    }


def tax_rate(taxes: dict, code: str) -> float:
    if not taxes.get("enable_taxes", True):
        return 0
    for rate in taxes.get("tax_rates") or []:
        if rate.get("enabled") and code in rate["countries"]:
            return rate["rate"]
    return taxes.get("default_tax_rate", 0)


def calculate_tax(amount: float, country: str, settings: Optional[dict] = None) -> Dict[str, Any]:
    settings = settings or get_settings()
    taxes = settings["taxes"]
    code = country_code(country)
    rate = tax_rate(taxes, code)
    included = bool(taxes.get("tax_included_in_price"))
    if included:
        tax = amount * rate / (100 + rate)
    else:
        tax = amount * rate / 100
    return {"tax_amount": round(tax, 2), "tax_rate": rate, "tax_included": included, "country_code": code}


def checkout_quote(subtotal: float, country: str, shipping_type: str = "standard") -> Dict[str, Any]:
    """
    Shipping and tax a checkout must charge on top of its subtotal.

    Tax already included in the prices adds nothing to the order.
    """
    settings = get_settings()
    shipping = calculate_shipping(country, subtotal, shipping_type, settings)
    tax = calculate_tax(subtotal, country, settings)
    return {
        "shipping_cost": round(shipping["cost"], 2),
        "tax": 0 if tax["tax_included"] else tax["tax_amount"],
        "tax_rate": tax["tax_rate"],
        "country_code": shipping["country_code"],
    }
