"""
Prompt templates for quote normalization.

The model is asked for bare JSON in a fixed shape; category names must come
from the Category vocabulary so that quotes from different vendors line up.
"""

from tools.quote.quote_models import CATEGORY_DESCRIPTIONS, UNKNOWN_VENDOR


CATEGORY_GUIDE = "\n".join(
    f"- {category.value}: {description}"
    for category, description in CATEGORY_DESCRIPTIONS.items()
)


def _response_rules(company_source: str) -> str:
    return f"""다음 JSON 형식으로 반환해주세요. 반드시 유효한 JSON만 반환하고 다른 텍스트는 포함하지 마세요:
{{
  "company": "업체명 ({company_source}에서 추출, 없으면 '{UNKNOWN_VENDOR}')",
  "items": [
    {{
      "category": "공사 카테고리 (예: 철거, 목공, 도배, 타일, 전기, 설비, 필름, 조명, 기타 등으로 표준화)",
      "description": "상세 내용",
      "quantity": 수량 (숫자 또는 null),
      "unit": "단위 (예: 식, 개, m, m2, 평 등 또는 null)",
      "unit_price": 단가 (숫자 또는 null),
      "amount": 금액 (숫자, 필수)
    }}
  ],
  "total_amount": 총 합계 금액 (숫자)
}}

카테고리는 다음 중에서 선택해서 표준화해주세요:
{CATEGORY_GUIDE}"""


def text_quote_prompt(file_name: str, content: str) -> str:
    return f"""다음은 인테리어 견적서 내용입니다. 이 견적서를 분석해서 JSON 형식으로 반환해주세요.

파일명: {file_name}

견적서 내용:
{content}

{_response_rules("파일명이나 내용")}"""


def image_quote_prompt(file_name: str) -> str:
    return f"""이 이미지는 인테리어 견적서입니다. 이미지에서 견적 내용을 읽어서 JSON 형식으로 반환해주세요.

파일명: {file_name}

{_response_rules("이미지")}"""
