"""Pydantic models and request types shared by the loader, renderer and service."""

import logging
import re
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Literal, Mapping

from babel import Locale
from babel.core import UnknownLocaleError
from babel.dates import get_timezone
from pydantic import BaseModel, ConfigDict, Field, field_validator

from donation_leaderboard.errors import InvalidParameter

logger = logging.getLogger(__name__)

OrderBy = Literal["date", "total"]
ORDER_BY_MODES: tuple[OrderBy, ...] = ("date", "total")

DEFAULT_ACCENT_COLOR = "#30bf76"
_HEX_COLOR = re.compile(r"^#([0-9a-fA-F]{3}){1,2}$")
_INT_TOKEN = re.compile(r"^-?\d+$")


class ProductFilter(Enum):
    """Sentinel for "no product filter", kept apart from an empty id set."""

    MATCH_ALL = "match-all"


MATCH_ALL = ProductFilter.MATCH_ALL


class OrderRecord(BaseModel):
    """Flat, cacheable view of a completed order."""

    model_config = ConfigDict(frozen=True)

    completed_at: int = Field(..., description="Seconds since epoch", examples=[1767225600])
    billing_first_name: str = Field("", examples=["Jane"])
    billing_last_name: str = Field("", examples=["Doe Smith"])
    company: str = ""
    city: str = ""
    country: str = Field("", description="ISO 3166-1 alpha-2 code", examples=["DE"])
    postcode: str = ""
    total: Decimal = Field(..., ge=0, examples=["12.50"])
    currency: str = Field(..., description="ISO 4217 code", examples=["USD"])
    product_ids: frozenset[int] = Field(default_factory=frozenset)
    customer_note: str = ""


class LeaderboardSettings(BaseModel):
    """Options read by both the loader and the renderer."""

    max_orders: int = Field(1000, ge=1)
    cache_ttl_seconds: int = Field(6 * 60 * 60, ge=1)
    refresh_window_seconds: int = Field(90, ge=0)
    accent_color: str = DEFAULT_ACCENT_COLOR
    locale: str = "en_US"
    timezone: str = "UTC"
    date_format: str = "medium"
    time_format: str = "short"
    icon_url: str = "/static/donation.svg"

    @field_validator("accent_color", mode="before")
    @classmethod
    def _sanitize_color(cls, value: Any) -> str:
        if isinstance(value, str) and _HEX_COLOR.match(value.strip()):
            return value.strip()
        logger.warning("Ignoring invalid accent color %r", value)
        return DEFAULT_ACCENT_COLOR

    @field_validator("locale")
    @classmethod
    def _known_locale(cls, value: str) -> str:
        try:
            Locale.parse(value)
        except (UnknownLocaleError, ValueError) as e:
            raise ValueError(f"unknown locale {value!r}") from e
        return value

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        try:
            get_timezone(value)
        except LookupError as e:
            raise ValueError(f"unknown timezone {value!r}") from e
        return value


class StatusChange(BaseModel):
    """Order status notification sent by the order-management system."""

    order_id: int = Field(..., examples=[1042])
    old_status: str = Field(..., examples=["processing"])
    new_status: str = Field(..., examples=["completed"])


class Received(BaseModel):
    """Acknowledgement for a status notification."""

    message: str = Field(default="OK", examples=["OK"])


def to_int(value: Any) -> int:
    try:
        return int(float(str(value).strip()))
    except (TypeError, ValueError, OverflowError) as e:
        raise InvalidParameter(f"expected an integer, got {value!r}") from e


def _int_attribute(attributes: Mapping[str, Any], name: str, default: int) -> int:
    try:
        return to_int(attributes.get(name, default))
    except InvalidParameter as e:
        logger.debug("Attribute %s: %s, using %s", name, e, default)
        return default


def parse_product_ids(value: Any) -> frozenset[int] | ProductFilter:
    """Parse a comma separated id list; ``-1`` (or blank) means every product."""
    text = str(value).strip() if value is not None else ""
    if text in ("", "-1"):
        return MATCH_ALL
    ids = set()
    for token in text.split(","):
        token = token.strip()
        if _INT_TOKEN.match(token):
            ids.add(int(token))
    return frozenset(ids)


@dataclass(frozen=True)
class RenderRequest:
    limit: int = 10
    product_ids: frozenset[int] | ProductFilter = MATCH_ALL
    order_by: OrderBy = "date"
    title: str = "{firstname} donated {amount}"
    subtitle: str = "{timediff}"
    style: int = 1
    split: int = -1

    @classmethod
    def from_attributes(cls, attributes: Mapping[str, Any]) -> "RenderRequest":
        """Build a request from shortcode attributes, falling back to defaults
        for anything malformed instead of failing."""
        defaults = cls()

        limit = _int_attribute(attributes, "limit", defaults.limit)
        if limit < -1:
            limit = defaults.limit

        order_by = str(attributes.get("orderby", defaults.order_by)).strip().lower()
        if order_by not in ORDER_BY_MODES:
            order_by = defaults.order_by

        style = 2 if _int_attribute(attributes, "style", defaults.style) == 2 else 1

        split = _int_attribute(attributes, "split", defaults.split)
        if split < -1:
            split = -1

        title = attributes.get("title")
        subtitle = attributes.get("subtitle")
        return cls(
            limit=limit,
            product_ids=parse_product_ids(attributes.get("ids", "-1")),
            order_by=order_by,
            title=defaults.title if title is None else str(title),
            subtitle=defaults.subtitle if subtitle is None else str(subtitle),
            style=style,
            split=split,
        )
