"""
Vendor quote comparison by work category.

Buckets every quote's line items by category and sums them per quote, then
flags the lowest and highest bidder in each category.

Usage:
    from tools.quote.quote_compare import build_comparison

    report = build_comparison(load_group_quotes(group_id))
    report.to_dict()
"""

from dataclasses import dataclass, field
from typing import Optional


@dataclass
class CategoryCell:
    """One quote's share of one category."""
    quote_id: str
    items: list[dict] = field(default_factory=list)
    total: float = 0.0
    is_lowest: bool = False
    is_highest: bool = False

    def to_dict(self) -> dict:
        return {
            "quote_id": self.quote_id,
            "total": self.total,
            "item_count": len(self.items),
            "items": self.items,
            "is_lowest": self.is_lowest,
            "is_highest": self.is_highest,
        }


@dataclass
class CategoryComparison:
    """
    A category row across all quotes of a group.

    Only quotes with at least one item in the category get a cell; the rest
    count as 0 when picking min/max.
    """
    category: str
    cells: dict[str, CategoryCell] = field(default_factory=dict)
    min_amount: Optional[float] = None
    max_amount: Optional[float] = None

    def amount_for(self, quote_id: str) -> float:
        cell = self.cells.get(quote_id)
        return cell.total if cell else 0.0

    def calculate_flags(self, quote_ids: list[str]):
        """Lowest = smallest positive total; highest needs two or more positive bidders."""
        amounts = [self.amount_for(qid) for qid in quote_ids]
        positive = [a for a in amounts if a > 0]

        self.min_amount = min(positive) if positive else None
        self.max_amount = max(amounts) if amounts else None
        competitive = len(positive) > 1

        for cell in self.cells.values():
            cell.is_lowest = (
                self.min_amount is not None
                and cell.total > 0
                and cell.total == self.min_amount
            )
            cell.is_highest = competitive and cell.total == self.max_amount

    def is_lowest(self, quote_id: str) -> bool:
        cell = self.cells.get(quote_id)
        return bool(cell and cell.is_lowest)

    def is_highest(self, quote_id: str) -> bool:
        cell = self.cells.get(quote_id)
        return bool(cell and cell.is_highest)

    def to_dict(self) -> dict:
        return {
            "category": self.category,
            "min_amount": self.min_amount,
            "max_amount": self.max_amount,
            "cells": {qid: cell.to_dict() for qid, cell in self.cells.items()},
        }


@dataclass
class QuoteSummary:
    """Column header and totals-row entry for one quote."""
    quote_id: str
    company: str
    name: str
    total_amount: float
    items_total: float

    @property
    def total_gap(self) -> float:
        return self.total_amount - self.items_total

    def to_dict(self) -> dict:
        return {
            "quote_id": self.quote_id,
            "company": self.company,
            "name": self.name,
            "total_amount": self.total_amount,
            "items_total": self.items_total,
            "total_gap": self.total_gap,
        }


@dataclass
class ComparisonReport:
    """Category x quote matrix for one comparison group."""
    quotes: list[QuoteSummary] = field(default_factory=list)
    categories: list[CategoryComparison] = field(default_factory=list)

    @property
    def quote_ids(self) -> list[str]:
        return [q.quote_id for q in self.quotes]

    def category(self, name: str) -> Optional[CategoryComparison]:
        for row in self.categories:
            if row.category == name:
                return row
        return None

    def to_dict(self) -> dict:
        return {
            "quotes": [q.to_dict() for q in self.quotes],
            "categories": [row.to_dict() for row in self.categories],
        }


def group_by_category(quotes: list[dict]) -> dict[str, dict[str, CategoryCell]]:
    """
    {category: {quote_id: CategoryCell}} in quote input order.

    Categories are matched exactly; no trimming or case folding.
    """
    buckets: dict[str, dict[str, CategoryCell]] = {}
    for quote in quotes:
        quote_id = quote["id"]
        for item in quote.get("items") or []:
            per_quote = buckets.setdefault(item["category"], {})
            cell = per_quote.get(quote_id)
            if cell is None:
                cell = per_quote[quote_id] = CategoryCell(quote_id=quote_id)
            cell.items.append(item)
            cell.total += item["amount"]
    return buckets


def build_comparison(quotes: list[dict]) -> ComparisonReport:
    """
    Build the comparison matrix for quotes as returned by `load_group_quotes`.
    """
    report = ComparisonReport(
        quotes=[
            QuoteSummary(
                quote_id=q["id"],
                company=q.get("company", ""),
                name=q.get("name", ""),
                total_amount=q.get("total_amount") or 0.0,
                items_total=float(sum(i["amount"] for i in q.get("items") or [])),
            )
            for q in quotes
        ]
    )

    buckets = group_by_category(quotes)
    for category in sorted(buckets):
        row = CategoryComparison(category=category, cells=buckets[category])
        row.calculate_flags(report.quote_ids)
        report.categories.append(row)

    return report
