"""
Pydantic models for normalized renovation quotes.

The completion service returns loosely typed JSON; these models are the
checkpoint between that payload and storage. Hierarchy:

    ParsedQuote (one vendor's quote)
    └── ParsedQuoteItem (one priced line of work, tagged with a Category)
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


UNKNOWN_VENDOR = "업체명 미상"


class Category(str, Enum):
    """Standard work categories used as the comparison axis."""

    DEMOLITION = "철거"
    CARPENTRY = "목공"
    WALLPAPER = "도배"
    PAINT = "페인트"
    TILE = "타일"
    FLOORING = "바닥"
    ELECTRICAL = "전기"
    PLUMBING = "설비"
    LIGHTING = "조명"
    FILM = "필름"
    WINDOWS = "창호"
    BATHROOM = "욕실"
    KITCHEN = "주방"
    HAULING = "운반/폐기물"
    OTHER = "기타"

    @classmethod
    def coerce(cls, value: Any) -> "Category":
        """Map free text onto the closed set; anything unrecognised becomes OTHER."""
        text = str(value or "").strip()
        for member in cls:
            if member.value == text:
                return member
        return cls.OTHER


CATEGORY_DESCRIPTIONS: dict[Category, str] = {
    Category.DEMOLITION: "기존 시설 철거, 해체",
    Category.CARPENTRY: "목공사, 가구, 몰딩",
    Category.WALLPAPER: "도배, 벽지",
    Category.PAINT: "페인트, 도장",
    Category.TILE: "타일, 욕실 타일",
    Category.FLOORING: "바닥재, 마루, 장판",
    Category.ELECTRICAL: "전기 공사, 배선",
    Category.PLUMBING: "배관, 수도, 난방",
    Category.LIGHTING: "조명 설치, 조명 기구",
    Category.FILM: "시트지, 필름",
    Category.WINDOWS: "창문, 샷시",
    Category.BATHROOM: "욕실 시공, 위생 도기",
    Category.KITCHEN: "싱크대, 주방 가구",
    Category.HAULING: "폐기물 처리, 운반",
    Category.OTHER: "위에 해당하지 않는 항목",
}

_NUMERIC_NOISE = re.compile(r"[,\s원₩]")


def _to_number(value: Any) -> Any:
    """Accept "1,200,000원"-style strings; leave everything else to pydantic."""
    if isinstance(value, str):
        cleaned = _NUMERIC_NOISE.sub("", value)
        return cleaned if cleaned else None
    return value


def _to_text(value: Any) -> Any:
    """Numbers the model emits for text fields (e.g. unit: 1) become strings."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


class ParsedQuoteItem(BaseModel):
    """One line of a quote as returned by the completion service."""

    model_config = ConfigDict(extra="ignore")

    category: Category = Field(
        default=Category.OTHER,
        description="Standardised work category",
    )
    description: str = Field(default="", description="Free-text line description")
    quantity: Optional[float] = None
    unit: Optional[str] = None
    unit_price: Optional[float] = None
    amount: float = Field(ge=0, description="Line amount in KRW (required)")

    @field_validator("category", mode="before")
    @classmethod
    def _coerce_category(cls, value: Any) -> Category:
        return Category.coerce(value)

    @field_validator("description", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else _to_text(value)

    @field_validator("quantity", "unit_price", mode="before")
    @classmethod
    def _optional_number(cls, value: Any) -> Any:
        # "약 3" or "별도" must not reject the whole quote
        if isinstance(value, bool):
            return None
        value = _to_number(value)
        if isinstance(value, str):
            try:
                return float(value)
            except ValueError:
                return None
        return value

    @field_validator("amount", mode="before")
    @classmethod
    def _required_number(cls, value: Any) -> Any:
        if isinstance(value, bool):
            raise ValueError("amount must be a number")
        return _to_number(value)

    @field_validator("unit", mode="before")
    @classmethod
    def _blank_unit(cls, value: Any) -> Any:
        value = _to_text(value)
        if isinstance(value, str) and not value.strip():
            return None
        return value

    def to_row(self) -> dict:
        row = self.model_dump()
        row["category"] = self.category.value
        return row


class ParsedQuote(BaseModel):
    """
    Normalized quote record.

    `total_amount` is whatever the vendor document states; it is not forced
    to equal the sum of item amounts (see `reconcile_total`). When the
    payload has no total at all, the item sum is used.
    """

    model_config = ConfigDict(extra="ignore")

    company: str = Field(default=UNKNOWN_VENDOR)
    items: list[ParsedQuoteItem] = Field(default_factory=list)
    total_amount: Optional[float] = Field(default=None, ge=0)

    @field_validator("company", mode="before")
    @classmethod
    def _company_or_sentinel(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return UNKNOWN_VENDOR
        value = _to_text(value)
        return value.strip() if isinstance(value, str) else value

    @field_validator("items", mode="before")
    @classmethod
    def _null_items(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("total_amount", mode="before")
    @classmethod
    def _total_number(cls, value: Any) -> Any:
        if isinstance(value, bool):
            raise ValueError("total_amount must be a number")
        return _to_number(value)

    @model_validator(mode="after")
    def _default_total(self) -> "ParsedQuote":
        if self.total_amount is None:
            self.total_amount = self.items_sum
        return self

    @property
    def items_sum(self) -> float:
        return float(sum(item.amount for item in self.items))

    def to_dict(self) -> dict:
        return {
            "company": self.company,
            "items": [item.to_row() for item in self.items],
            "total_amount": self.total_amount,
        }
