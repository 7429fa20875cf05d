"""
Configuration settings for License Finder
"""

import os

# =============================================================================
# LLM CONFIGURATION
# =============================================================================

_DEFAULT_MODELS = {
    "openai": "gpt-4o-mini",
    "openrouter": "openai/gpt-4o-mini",
    "anthropic": "claude-3-5-sonnet-latest",
    "mock": "mock",
}

_provider = os.getenv("LLM_PROVIDER", "openai").lower()

LLM_CONFIG = {
    "provider": _provider,  # openai, openrouter, anthropic, mock
    "model": os.getenv("LLM_MODEL") or _DEFAULT_MODELS.get(_provider, "gpt-4o-mini"),
    "default_models": _DEFAULT_MODELS,
    "api_keys": {
        "openai": os.getenv("OPENAI_API_KEY", ""),
        "openrouter": os.getenv("OPENROUTER_API_KEY", ""),
        "anthropic": os.getenv("ANTHROPIC_API_KEY", ""),
    },
    "base_url": os.getenv("LLM_BASE_URL", "https://openrouter.ai/api/v1"),
    "max_tokens": 1800,
    "temperature": 0.2,
    "max_retries": 4,
    "backoff_initial_seconds": 1,
    "backoff_max_seconds": 16,
    # OpenRouter specific headers
    "site_url": os.getenv("OPENROUTER_SITE_URL", "http://localhost:8000"),
    "app_name": os.getenv("OPENROUTER_APP_NAME", "License Finder"),
}

# =============================================================================
# WEB SEARCH & PAGE FETCH
# =============================================================================

SEARCH_CONFIG = {
    "serper_api_key": os.getenv("SERPER_API_KEY", ""),
    "serper_url": "https://google.serper.dev/search",
    "google_api_key": os.getenv("GOOGLE_API_KEY", ""),
    "google_cse_id": os.getenv("GOOGLE_CSE_ID", ""),
    "google_url": "https://www.googleapis.com/customsearch/v1",
    "timeout_seconds": 10,
}

FETCH_CONFIG = {
    "timeout_seconds": 8,
    "max_redirects": 5,
    "raw_limit": 25000,
    "text_limit": 12000,
    "user_agent": "License-Finder/1.0 (+prototype)",
    "accept": "text/html,application/xhtml+xml,application/xml,text/plain;q=0.9,*/*;q=0.8",
}

# =============================================================================
# AUTHENTICATION
# =============================================================================

AUTH_CONFIG = {
    # Secrets are read from APP_PASSWORD / AUTH_SECRET at request time
    "password_env": "APP_PASSWORD",
    "secret_env": "AUTH_SECRET",
    "cookie_name": "lf_session",
    "max_age_seconds": 60 * 60 * 24 * 7,
    "algorithm": "HS256",
    "secure_cookie": os.getenv("APP_ENV", "development") == "production",
    "operator_email": os.getenv("APP_OPERATOR_EMAIL", "operator@license-finder.local"),
}

# =============================================================================
# PIPELINE
# =============================================================================

PIPELINE_CONFIG = {
    "call_delay_seconds": 1.0,
    "search_delay_seconds": 0.5,
    "max_csv_rows": 200,
    "max_generated_candidates": 25,
    "max_links_per_row": 10,
    "research_queries": 3,
    "results_per_query": 2,
    "research_evidence_links": 3,
    "max_evidence_bullets": 8,
}

FIELD_LIMITS = {
    "project_name": 80,
    "candidate_name": 120,
    "candidate_notes": 500,
    "excerpt": 2000,
    "outreach_subject": 140,
    "outreach_body": 2500,
    "max_flags": 10,
    "max_disqualifiers": 10,
    "max_rationale": 5,
}

# =============================================================================
# DEFAULT SCORING WEIGHTS
# =============================================================================

DEFAULT_WEIGHTS = {
    "category_fit": 0.30,
    "distribution_alignment": 0.30,
    "licensing_activity": 0.20,
    "scale_appropriateness": 0.04,
    "quality_reputation": 0.04,
    "geo_coverage": 0.04,
    "recent_momentum": 0.04,
    "manufacturing_capability": 0.04,
}

# =============================================================================
# TIERING
# =============================================================================

TIER_CONFIG = {
    "a_target": 5,
    "a_unconditional": 3,
    "b_target": 7,
    "b_floor": 5,
    "hard_penalty": 40,
    "soft_penalty": 15,
}

# =============================================================================
# NO-INFORMATION PLACEHOLDER
# =============================================================================

NO_INFO_SCORECARD = {
    "disqualifier": "No information available; cannot evaluate",
    "rationale": "No information available to evaluate this candidate.",
    "next_step": "Provide a website, notes, or evidence links before scoring.",
}

# =============================================================================
# PROJECT INTAKE
# =============================================================================

REQUIRED_INTAKE_FIELDS = [
    ("brand_category", "Brand category"),
    ("product_type_sought", "Product type sought"),
    ("price_range", "Price range"),
    ("distribution_preference", "Distribution preference"),
]

OPTIONAL_INTAKE_FIELDS = [
    ("geography", "Geography"),
    ("positioning_keywords", "Positioning keywords"),
    ("constraints", "Constraints"),
]

DEFAULT_GIANTS_EXCLUDE = [
    "YETI",
    "Patagonia",
    "The North Face",
    "Coleman",
    "Hydro Flask",
    "Stanley",
    "Igloo",
    "RTIC",
    "CamelBak",
    "REI Co-op",
]

# =============================================================================
# LOGGING
# =============================================================================

LOGGING_CONFIG = {
    "level": os.getenv("LOG_LEVEL", "INFO").upper(),
    "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
}
