import pytest
from google.genai.types import Part

from conftest import reply_for
from utils.core.errors import NoStructuredPayload, PayloadInvalid, PayloadMalformed
from utils.core.jsonval import find_json_block
from utils.document.doc import ImageContent, TextContent
from tools.quote.quote_models import UNKNOWN_VENDOR, Category, ParsedQuote
from tools.quote.quote_normalize import (
    build_prompt_parts,
    normalize_quote,
    reconcile_total,
    validate_payload,
)

CSV_TEXT = "공종,금액\n철거,500000\n타일,900000\n"


@pytest.mark.parametrize(
    "before, after",
    [
        ("", ""),
        ("다음은 분석 결과입니다:\n```json\n", "\n```"),
        ("Sure! Here is the quote.\n", "\nLet me know if you need anything else."),
    ],
)
def test_json_surrounded_by_noise_round_trips(fake_llm, sample_quote, before, after):
    llm = fake_llm(reply_for(sample_quote, before, after))

    quote = normalize_quote(TextContent(CSV_TEXT), "견적서_A.xlsx", llm=llm, total_policy="trust")

    assert quote.to_dict() == sample_quote
    assert len(llm.calls) == 1


def test_find_json_block_is_greedy_first_to_last_brace():
    text = 'prefix {"a": {"b": 1}} suffix'
    assert find_json_block(text) == '{"a": {"b": 1}}'


@pytest.mark.parametrize("reply", ["", "견적서를 읽을 수 없습니다.", "[1, 2, 3]"])
def test_reply_without_braces_raises(fake_llm, reply):
    with pytest.raises(NoStructuredPayload, match="Could not find JSON in the AI response"):
        normalize_quote(TextContent(CSV_TEXT), "a.xlsx", llm=fake_llm(reply))


def test_malformed_json_raises(fake_llm):
    llm = fake_llm('결과: {"company": "A", "items": [,]}')
    with pytest.raises(PayloadMalformed, match="JSON parsing failed"):
        normalize_quote(TextContent(CSV_TEXT), "a.xlsx", llm=llm)


def test_completion_failure_propagates(fake_llm):
    with pytest.raises(RuntimeError, match="quota"):
        normalize_quote(TextContent(CSV_TEXT), "a.xlsx", llm=fake_llm(RuntimeError("quota exceeded")))


def test_item_without_amount_is_invalid():
    with pytest.raises(PayloadInvalid) as exc_info:
        validate_payload({"company": "A", "items": [{"category": "타일", "description": "벽"}]})
    assert any(p.startswith("items.0.amount") for p in exc_info.value.problems)


@pytest.mark.parametrize("amount", ["많음", True, -1000])
def test_non_numeric_or_negative_amount_is_invalid(amount):
    with pytest.raises(PayloadInvalid):
        validate_payload({"company": "A", "items": [{"category": "타일", "amount": amount}]})


def test_unknown_category_is_coerced_to_other():
    quote = validate_payload(
        {
            "company": "A",
            "items": [
                {"category": "인테리어 소품", "amount": 1000},
                {"category": None, "amount": 2000},
                {"category": "도배", "amount": 3000},
            ],
        }
    )
    assert [i.category for i in quote.items] == [Category.OTHER, Category.OTHER, Category.WALLPAPER]
    assert quote.items[0].to_row()["category"] == "기타"


def test_missing_company_uses_sentinel_and_missing_total_uses_item_sum():
    quote = validate_payload({"company": "  ", "items": [{"category": "전기", "amount": "1,200,000원"}]})
    assert quote.company == UNKNOWN_VENDOR
    assert quote.items[0].amount == 1200000
    assert quote.total_amount == 1200000


def test_empty_items_is_valid():
    quote = validate_payload({"company": "A", "items": None, "total_amount": 0})
    assert quote.items == []
    assert quote.total_amount == 0


def _mismatched_quote() -> ParsedQuote:
    return validate_payload(
        {
            "company": "A",
            "items": [{"category": "철거", "amount": 100}, {"category": "타일", "amount": 200}],
            "total_amount": 330,
        }
    )


def test_trust_policy_keeps_stated_total():
    assert reconcile_total(_mismatched_quote(), "trust").total_amount == 330


def test_recompute_policy_uses_item_sum():
    quote = _mismatched_quote()
    recomputed = reconcile_total(quote, "recompute")
    assert recomputed.total_amount == 300
    assert quote.total_amount == 330


def test_unknown_policy_rejected():
    with pytest.raises(ValueError, match="Unknown total policy"):
        reconcile_total(_mismatched_quote(), "average")


def test_policy_setting_is_read_when_not_given(fake_llm, monkeypatch):
    monkeypatch.setenv("QUOTE_TOTAL_POLICY", "recompute")
    payload = {"company": "A", "items": [{"category": "철거", "amount": 100}], "total_amount": 999}

    quote = normalize_quote(TextContent(CSV_TEXT), "a.xlsx", llm=fake_llm(reply_for(payload)))

    assert quote.total_amount == 100


def test_text_prompt_embeds_document_and_file_name():
    parts = build_prompt_parts(TextContent(CSV_TEXT), "한빛_견적.xlsx")
    assert len(parts) == 1
    assert isinstance(parts[0], str)
    assert CSV_TEXT in parts[0]
    assert "한빛_견적.xlsx" in parts[0]
    for category in Category:
        assert category.value in parts[0]


def test_image_prompt_sends_image_part(fake_llm, sample_quote):
    llm = fake_llm(reply_for(sample_quote))
    content = ImageContent(data=b"\xff\xd8jpeg", mime_type="image/jpeg")

    normalize_quote(content, "photo.jpg", llm=llm)

    (parts,) = llm.calls
    assert isinstance(parts[0], str)
    assert isinstance(parts[1], Part)
    assert parts[1].inline_data.data == b"\xff\xd8jpeg"
    assert parts[1].inline_data.mime_type == "image/jpeg"


def test_loose_optional_fields_do_not_reject_quote():
    quote = validate_payload(
        {
            "company": 2024,
            "items": [
                {
                    "category": "설비",
                    "description": 15,
                    "quantity": "약 3",
                    "unit": 1,
                    "unit_price": "별도",
                    "amount": "300,000",
                },
                {"category": "전기", "quantity": True, "unit": "  ", "unit_price": "12,000원", "amount": 12000},
            ],
        }
    )

    first, second = quote.items
    assert quote.company == "2024"
    assert first.description == "15"
    assert first.quantity is None
    assert first.unit == "1"
    assert first.unit_price is None
    assert first.amount == 300000
    assert second.quantity is None
    assert second.unit is None
    assert second.unit_price == 12000
