"""
Quote comparison module - vendor quote normalization and category comparison.

Submodules:
- quote: orchestration (single upload, sequential batch, CLI)
- quote_models: Pydantic models (ParsedQuote, ParsedQuoteItem, Category)
- prompts_quote: instruction templates for the completion service
- quote_normalize: completion call, JSON payload extraction and validation
- quote_compare: category x quote matrix with lowest/highest flags
"""
