import pytest

from tools.quote.quote_compare import build_comparison, group_by_category


def _quote(quote_id, items, total=None, company=None):
    return {
        "id": quote_id,
        "company": company or f"업체 {quote_id}",
        "name": f"{quote_id}.xlsx",
        "total_amount": total if total is not None else sum(a for _, a in items),
        "items": [{"category": c, "description": "", "amount": a} for c, a in items],
    }


def test_lowest_and_highest_per_category():
    quotes = [
        _quote("Q1", [("타일", 100)]),
        _quote("Q2", [("타일", 200)]),
        _quote("Q3", [("도배", 50)]),
    ]

    report = build_comparison(quotes)
    tile = report.category("타일")

    assert tile.min_amount == 100
    assert tile.max_amount == 200
    assert tile.is_lowest("Q1") and not tile.is_highest("Q1")
    assert tile.is_highest("Q2") and not tile.is_lowest("Q2")
    assert "Q3" not in tile.cells
    assert tile.amount_for("Q3") == 0
    assert not tile.is_lowest("Q3") and not tile.is_highest("Q3")


def test_single_bidder_is_lowest_but_never_highest():
    report = build_comparison(
        [
            _quote("Q1", [("타일", 100)]),
            _quote("Q2", [("도배", 300)]),
        ]
    )
    wallpaper = report.category("도배")

    assert wallpaper.is_lowest("Q2")
    assert not wallpaper.is_highest("Q2")


def test_tied_totals_share_the_flag():
    report = build_comparison(
        [
            _quote("Q1", [("전기", 100)]),
            _quote("Q2", [("전기", 100)]),
            _quote("Q3", [("전기", 250)]),
        ]
    )
    electrical = report.category("전기")

    assert electrical.is_lowest("Q1") and electrical.is_lowest("Q2")
    assert electrical.is_highest("Q3")


def test_zero_total_cell_is_never_lowest():
    report = build_comparison(
        [
            _quote("Q1", [("기타", 0)]),
            _quote("Q2", [("기타", 40)]),
            _quote("Q3", [("기타", 60)]),
        ]
    )
    other = report.category("기타")

    assert other.min_amount == 40
    assert not other.is_lowest("Q1")
    assert other.is_lowest("Q2")
    assert other.is_highest("Q3")


def test_category_total_sums_items_of_same_quote():
    quotes = [_quote("Q1", [("타일", 100), ("철거", 30), ("타일", 250)])]

    buckets = group_by_category(quotes)

    assert buckets["타일"]["Q1"].total == 350
    assert len(buckets["타일"]["Q1"].items) == 2
    assert buckets["철거"]["Q1"].total == 30


def test_categories_match_exactly():
    report = build_comparison([_quote("Q1", [("타일", 10), ("타일 ", 20)])])
    assert [row.category for row in report.categories] == sorted(["타일", "타일 "])


def test_totals_row_uses_stated_total_and_reports_gap():
    report = build_comparison(
        [
            _quote("Q1", [("철거", 100), ("타일", 200)], total=330),
            _quote("Q2", [], total=0),
        ]
    )

    q1, q2 = report.quotes
    assert q1.total_amount == 330
    assert q1.items_total == 300
    assert q1.total_gap == pytest.approx(30)
    assert q2.items_total == 0
    assert report.quote_ids == ["Q1", "Q2"]


def test_empty_group_gives_empty_matrix():
    report = build_comparison([])
    assert report.to_dict() == {"quotes": [], "categories": []}


def test_to_dict_shape():
    data = build_comparison([_quote("Q1", [("타일", 100)]), _quote("Q2", [("타일", 200)])]).to_dict()

    (row,) = data["categories"]
    assert row["category"] == "타일"
    assert row["cells"]["Q1"]["is_lowest"] is True
    assert row["cells"]["Q2"]["is_highest"] is True
    assert row["cells"]["Q2"]["item_count"] == 1
    assert [q["quote_id"] for q in data["quotes"]] == ["Q1", "Q2"]
