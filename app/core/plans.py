from typing import Dict

# Dodo product ids that may be sold through hosted checkout
PRODUCT_PLANS: Dict[str, str] = {
    "pdt_aCU0mubTSuDWGXLcIE9fw": "basic",
    "pdt_YQiSHzKDpVGlDUuYaSCR2": "pro",
    "pdt_NKyYYMcKtZ8Hpdfmt4fB4": "max",
}

# Unknown products fall back to the lowest tier rather than dropping the purchase
DEFAULT_PLAN = "basic"
SUBSCRIPTION_PLAN = "subscription"


def is_valid_product(product_id: str) -> bool:
    return product_id in PRODUCT_PLANS


def plan_for_product(product_id: str) -> str:
    """Get the plan tier label for a Dodo product id."""
    return PRODUCT_PLANS.get(product_id, DEFAULT_PLAN)
