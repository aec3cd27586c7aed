"""
Database Schemas for the Maison Darin store

Each Pydantic model represents a collection in MongoDB. The collection name is the
lowercase of the class name (e.g., User -> "user"). Request bodies that only
touch part of a document live next to the collection they write to.
"""

from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Optional

from pydantic import BaseModel, BeforeValidator, EmailStr, Field, field_validator, model_validator

from i18n import LocalizedText, OptionalLocalizedText

PRODUCT_CATEGORIES = ("floral", "oriental", "fresh", "woody", "citrus", "spicy", "aquatic", "gourmand")

Role = Literal["admin", "super_admin", "customer"]
Language = Literal["en", "ar"]
PaymentMethod = Literal["cash_on_delivery", "bank_transfer", "credit_card", "paypal"]
PaymentStatus = Literal["pending", "paid", "failed", "refunded"]
OrderStatus = Literal["pending", "confirmed", "processing", "shipped", "delivered", "cancelled"]
SampleStatus = Literal["pending", "approved", "rejected", "processing", "shipped", "delivered", "cancelled"]
Priority = Literal["low", "normal", "high"]
ContactPriority = Literal["low", "normal", "high", "urgent"]
ContactStatus = Literal["new", "read", "in_progress", "resolved", "closed"]
ContactCategory = Literal[
    "general_inquiry", "product_question", "order_support", "sample_request",
    "partnership", "complaint", "compliment", "technical_support",
    "wholesale_inquiry", "media_press", "other",
]
ContentSection = Literal["hero", "about", "nav", "contact", "collections", "footer"]
ShippingType = Literal["standard", "express"]
SettingsSection = Literal["site", "seo", "appearance", "features", "shipping", "taxes", "localization"]


def _max_localized(value, limit: int, label: str):
    if value is None:
        return value
    for lang in ("en", "ar"):
        text = getattr(value, lang, None)
        if text and len(text) > limit:
            raise ValueError(f"{label} ({lang}) cannot exceed {limit} characters")
    return value


def _lower(v):
    return v.strip().lower() if isinstance(v, str) else v


Email = Annotated[EmailStr, BeforeValidator(_lower)]
FragranceFamily = Annotated[Literal[PRODUCT_CATEGORIES], BeforeValidator(_lower)]


# ============================================================
# Users
# ============================================================

class User(BaseModel):
    """
    Users collection schema
    Collection name: "user"
    """
    email: Email = Field(..., description="Login email, stored lowercase")
    password_hash: str = Field(..., description="bcrypt hash")
    first_name: str = Field(..., max_length=50)
    last_name: str = Field(..., max_length=50)
    phone: Optional[str] = None
    role: Role = "customer"
    is_active: bool = True
    login_attempts: int = 0
    lock_until: Optional[datetime] = None
    last_login: Optional[datetime] = None


class RegisterRequest(BaseModel):
    email: Email
    password: str
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    phone: Optional[str] = None


class LoginRequest(BaseModel):
    email: Email
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str


# ============================================================
# Products
# ============================================================

class ProductImage(BaseModel):
    url: str
    cloudinary_id: str
    alt: OptionalLocalizedText = Field(default_factory=OptionalLocalizedText)
    order: int = Field(0, ge=0)


class NoteList(BaseModel):
    en: List[str] = Field(default_factory=list)
    ar: List[str] = Field(default_factory=list)


class FragranceNotes(BaseModel):
    top: NoteList = Field(default_factory=NoteList)
    middle: NoteList = Field(default_factory=NoteList)
    base: NoteList = Field(default_factory=NoteList)


class Seo(BaseModel):
    meta_title: OptionalLocalizedText = Field(default_factory=OptionalLocalizedText)
    meta_description: OptionalLocalizedText = Field(default_factory=OptionalLocalizedText)

    @field_validator("meta_title")
    @classmethod
    def title_length(cls, v):
        return _max_localized(v, 60, "Meta title")

    @field_validator("meta_description")
    @classmethod
    def description_length(cls, v):
        return _max_localized(v, 160, "Meta description")


class Product(BaseModel):
    """
    Products collection schema
    Collection name: "product"
    """
    name: LocalizedText
    description: LocalizedText
    long_description: Optional[OptionalLocalizedText] = None
    price: float = Field(..., ge=0, description="Price in store currency")
    size: str = Field(..., pattern=r"(?i)^\d+(\.\d+)?(ml|oz|g)$", description='e.g. "50ml", "3.4oz"')
    category: FragranceFamily = Field(..., description="Fragrance family")
    images: List[ProductImage] = Field(default_factory=list)
    featured: bool = False
    in_stock: bool = True
    stock: int = Field(0, ge=0)
    concentration: Optional[OptionalLocalizedText] = None
    notes: FragranceNotes = Field(default_factory=FragranceNotes)
    seo: Seo = Field(default_factory=Seo)

    @field_validator("name")
    @classmethod
    def name_length(cls, v):
        return _max_localized(v, 200, "Name")

    @field_validator("description")
    @classmethod
    def description_length(cls, v):
        return _max_localized(v, 1000, "Description")

    @field_validator("long_description")
    @classmethod
    def long_description_length(cls, v):
        return _max_localized(v, 5000, "Long description")


class ProductUpdate(BaseModel):
    name: Optional[LocalizedText] = None
    description: Optional[LocalizedText] = None
    long_description: Optional[OptionalLocalizedText] = None
    price: Optional[float] = Field(None, ge=0)
    size: Optional[str] = Field(None, pattern=r"(?i)^\d+(\.\d+)?(ml|oz|g)$")
    category: Optional[FragranceFamily] = None
    images: Optional[List[ProductImage]] = None
    featured: Optional[bool] = None
    in_stock: Optional[bool] = None
    stock: Optional[int] = Field(None, ge=0)
    concentration: Optional[OptionalLocalizedText] = None
    notes: Optional[FragranceNotes] = None
    seo: Optional[Seo] = None


class StockUpdate(BaseModel):
    quantity: int = Field(..., description="Signed stock delta")


class BulkStockItem(BaseModel):
    product_id: str
    quantity: int


# ============================================================
# Categories
# ============================================================

class CategoryImage(BaseModel):
    url: str
    alt: OptionalLocalizedText = Field(default_factory=OptionalLocalizedText)


class Category(BaseModel):
    """
    Categories collection schema
    Collection name: "category"
    """
    name: LocalizedText
    description: Optional[OptionalLocalizedText] = None
    slug: Optional[str] = Field(None, pattern=r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
    is_active: bool = True
    image: Optional[CategoryImage] = None
    seo: Seo = Field(default_factory=Seo)
    sort_order: int = 0

    @field_validator("name")
    @classmethod
    def name_length(cls, v):
        return _max_localized(v, 100, "Category name")


class CategoryUpdate(BaseModel):
    name: Optional[LocalizedText] = None
    description: Optional[OptionalLocalizedText] = None
    slug: Optional[str] = Field(None, pattern=r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
    is_active: Optional[bool] = None
    image: Optional[CategoryImage] = None
    seo: Optional[Seo] = None
    sort_order: Optional[int] = None


class ReorderItem(BaseModel):
    id: str
    sort_order: int


# ============================================================
# Orders
# ============================================================

class CustomerInfo(BaseModel):
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    email: Email
    phone: str = Field(..., min_length=1)
    address: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    postal_code: Optional[str] = None
    country: str = Field(..., min_length=1)
    notes: Optional[str] = None

    @field_validator("first_name", "last_name", "phone", "address", "city", "country", mode="before")
    @classmethod
    def strip(cls, v):
        return v.strip() if isinstance(v, str) else v


class OrderItem(BaseModel):
    product_id: str
    product_name: str
    product_image: str = ""
    price: float = Field(..., gt=0)
    quantity: int = Field(..., ge=1)


class Order(BaseModel):
    """
    Orders collection schema
    Collection name: "order"

    This is the checkout payload; order_number, subtotals, statuses and
    history are filled in by the order service.
    """
    customer_info: CustomerInfo
    items: List[OrderItem] = Field(..., min_length=1)
    shipping_cost: float = Field(0, ge=0)
    tax: float = Field(0, ge=0)
    total: float = Field(..., gt=0, description="Client-computed total, checked server-side")
    payment_method: PaymentMethod = "cash_on_delivery"
    shipping_method: ShippingType = "standard"


class OrderStatusUpdate(BaseModel):
    status: OrderStatus
    note: Optional[str] = Field(None, max_length=500)
    tracking_number: Optional[str] = None


class ReasonRequest(BaseModel):
    reason: str = Field("", max_length=500)


# ============================================================
# Sample requests
# ============================================================

class Address(BaseModel):
    street: str = Field(..., min_length=1, max_length=200)
    city: str = Field(..., min_length=1, max_length=100)
    postal_code: str = Field(..., min_length=1, max_length=20)
    country: str = Field(..., min_length=1, max_length=100)


class SampleCustomerInfo(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    email: Email
    phone: str = Field(..., pattern=r"^\+?[1-9]\d{0,15}$")
    address: Address


class RequestedProduct(BaseModel):
    product: str
    quantity: int = Field(1, ge=1)
    sample_size: Literal["1ml", "2ml", "5ml"] = "2ml"


class SampleRequest(BaseModel):
    """
    Sample requests collection schema
    Collection name: "sample_request"
    """
    customer_info: SampleCustomerInfo
    requested_products: List[RequestedProduct] = Field(default_factory=list)
    priority: Priority = "normal"
    message: Optional[str] = Field(None, max_length=1000)
    preferred_language: Language = "en"


class SampleStatusUpdate(BaseModel):
    status: SampleStatus
    reason: Optional[str] = Field(None, max_length=200)


class AdminNoteRequest(BaseModel):
    note: str = Field(..., min_length=1, max_length=500)


class ShippingInfoUpdate(BaseModel):
    tracking_number: Optional[str] = None
    shipping_method: Optional[Literal["standard", "express", "overnight"]] = None
    estimated_delivery: Optional[datetime] = None


# ============================================================
# Contact messages
# ============================================================

class ContactCustomerInfo(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    email: Email
    phone: Optional[str] = None
    company: Optional[str] = Field(None, max_length=100)


class ContactMessage(BaseModel):
    """
    Contact messages collection schema
    Collection name: "contact_message"
    """
    customer_info: ContactCustomerInfo
    subject: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1, max_length=2000)
    category: ContactCategory = "general_inquiry"
    priority: ContactPriority = "normal"
    preferred_language: Language = "en"
    source: Literal["website_form", "email", "phone", "social_media", "admin_panel"] = "website_form"


class ContactStatusUpdate(BaseModel):
    status: ContactStatus
    reason: Optional[str] = Field(None, max_length=200)


class AssignRequest(BaseModel):
    user_id: str


class ContactNoteRequest(BaseModel):
    note: str = Field(..., min_length=1, max_length=500)
    is_internal: bool = True


class ContactResponseRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=2000)
    method: Literal["email", "phone", "internal"] = "email"


class SpamRequest(BaseModel):
    reasons: List[str] = Field(default_factory=list)


class FollowUpRequest(BaseModel):
    follow_up_required: bool = True
    follow_up_date: Optional[datetime] = None


# ============================================================
# Content
# ============================================================

class ContentBody(BaseModel):
    en: Dict[str, Any]
    ar: Dict[str, Any]


class Content(BaseModel):
    """
    Site content collection schema
    Collection name: "content"
    """
    content: ContentBody
    change_log: Optional[str] = Field(None, max_length=500)


class RollbackRequest(BaseModel):
    version: int = Field(..., ge=1)
    change_log: Optional[str] = None


class TranslationsUpdate(BaseModel):
    sections: Dict[ContentSection, ContentBody]
    change_log: Optional[str] = None


# ============================================================
# Media
# ============================================================

class MediaUpdate(BaseModel):
    alt: Optional[OptionalLocalizedText] = None
    tags: Optional[List[str]] = None

    @model_validator(mode="after")
    def not_empty(self):
        if self.alt is None and self.tags is None:
            raise ValueError("Nothing to update")
        return self


# ============================================================
# Store settings
# ============================================================

def _upper_codes(v):
    return [c.strip().upper() for c in v] if isinstance(v, list) else v


CountryCodes = Annotated[List[str], Field(min_length=1), BeforeValidator(_upper_codes)]


class ShippingMethod(BaseModel):
    enabled: bool = True
    cost: float = Field(..., ge=0)
    estimated_days: str
    description: Optional[OptionalLocalizedText] = None


class ShippingZone(BaseModel):
    name: LocalizedText
    countries: CountryCodes
    cost: float = Field(..., ge=0)
    estimated_days: str


class ShippingSettingsUpdate(BaseModel):
    enable_shipping: Optional[bool] = None
    free_shipping_threshold: Optional[float] = Field(None, ge=0)
    domestic_shipping: Optional[ShippingMethod] = None
    international_shipping: Optional[ShippingMethod] = None
    express_shipping: Optional[ShippingMethod] = None
    shipping_zones: Optional[List[ShippingZone]] = None


class TaxRate(BaseModel):
    name: LocalizedText
    rate: float = Field(..., ge=0, le=100)
    countries: CountryCodes
    enabled: bool = True


class TaxSettingsUpdate(BaseModel):
    enable_taxes: Optional[bool] = None
    tax_included_in_price: Optional[bool] = None
    default_tax_rate: Optional[float] = Field(None, ge=0, le=100)
    tax_rates: Optional[List[TaxRate]] = None
    display_tax_breakdown: Optional[bool] = None


class SettingsUpdate(BaseModel):
    """
    Store settings collection schema
    Collection name: "settings"

    A single document; each section is merged key by key into the stored one.
    """
    site: Optional[Dict[str, Any]] = None
    seo: Optional[Dict[str, Any]] = None
    appearance: Optional[Dict[str, Any]] = None
    features: Optional[Dict[str, bool]] = None
    shipping: Optional[ShippingSettingsUpdate] = None
    taxes: Optional[TaxSettingsUpdate] = None
    localization: Optional[Dict[str, Any]] = None


class ShippingQuoteRequest(BaseModel):
    country: str = Field(..., min_length=1)
    order_total: float = Field(0, ge=0)
    shipping_type: ShippingType = "standard"


class TaxQuoteRequest(BaseModel):
    amount: float = Field(..., ge=0)
    country: str = Field(..., min_length=1)


# ============================================================
# Payments
# ============================================================

class PayPalCreateRequest(BaseModel):
    order_id: str
