# wealthwise/nlp.py
"""
Rule-based text helpers used whenever the external categorizer is
unavailable: keyword categorization, necessity tiers and savings tips.
"""
import re

from .money import to_minor_units

CATEGORIES = (
    "food_and_drinks", "groceries", "shopping", "entertainment",
    "transportation", "health", "utilities", "housing",
    "education", "travel", "personal_care", "gifts",
    "investment", "bills", "other",
)

TIERS = ("necessary", "avoidable", "unnecessary")


# --- Expense categorization ---
# Checked in order, first match wins.
CATEGORY_PATTERNS = [
    ("food_and_drinks", r"restaurant|cafe|coffee|tea|lunch|dinner|breakfast|food|meal|snack|drinks|pizza|burger"),
    ("groceries", r"grocery|vegetables|fruits|supermarket|market|bread|milk|egg"),
    ("shopping", r"shopping|clothes|shirt|dress|pants|shoes|accessories|mall|store|buy"),
    ("entertainment", r"movie|cinema|theatre|concert|show|entertainment|game|subscription|netflix|amazon|prime|disney"),
    ("transportation", r"transport|uber|ola|lyft|taxi|train|bus|metro|subway|cab|petrol|gas|fuel|car|bike"),
    ("health", r"doctor|hospital|medicine|medical|pharmacy|health|healthcare|fitness|gym|yoga"),
    ("utilities", r"electricity|water|gas|internet|phone|bill|utility|broadband|wifi"),
    ("housing", r"rent|mortgage|property|house|apartment|maintenance|repair|furniture|home"),
    ("education", r"school|college|university|tuition|course|class|education|book|learning|tutorial"),
    ("travel", r"travel|holiday|vacation|hotel|resort|flight|ticket|booking|tour|trip"),
    ("personal_care", r"salon|spa|haircut|beauty|personal|care|cosmetics|grooming"),
    ("gifts", r"gift|present|donation|charity"),
    ("investment", r"investment|stock|mutual fund|gold|equity|shares|bond|crypto|bitcoin"),
    ("bills", r"bill|payment|subscription|fee|insurance|tax|emi"),
]
_COMPILED_PATTERNS = [(cat, re.compile(pattern)) for cat, pattern in CATEGORY_PATTERNS]


def classify_category(text: str) -> str:
    """Keyword category for an expense name; "other" when nothing matches."""
    if not text:
        return "other"
    t = text.lower()
    for category, pattern in _COMPILED_PATTERNS:
        if pattern.search(t):
            return category
    return "other"


# --- Necessity tiers ---
# Each group: categories, threshold in rupees, tier above threshold, tier at or below it.
TIER_RULES = {
    "necessary_leaning": {
        "categories": {"groceries", "utilities", "housing", "health", "transportation", "bills", "education"},
        "threshold": 5000,
        "above": "avoidable",
        "otherwise": "necessary",
    },
    "context_dependent": {
        "categories": {"food_and_drinks", "personal_care", "investment"},
        "threshold": 1000,
        "above": "avoidable",
        "otherwise": "necessary",
    },
    "discretionary_leaning": {
        "categories": {"entertainment", "shopping", "travel", "gifts"},
        "threshold": 2000,
        "above": "unnecessary",
        "otherwise": "avoidable",
    },
}
DEFAULT_TIER_RULE = {"threshold": 3000, "above": "unnecessary", "otherwise": "avoidable"}


def fallback_tier(category: str, amount: int, rules=None, default_rule=None) -> str:
    """
    Deterministic necessity tier from category membership and amount (paise).
    Pass ``rules`` / ``default_rule`` to swap the policy table.
    """
    rules = TIER_RULES if rules is None else rules
    default_rule = DEFAULT_TIER_RULE if default_rule is None else default_rule

    category = (category or "").strip().lower()
    rule = next((r for r in rules.values() if category in r["categories"]), default_rule)
    if amount > to_minor_units(rule["threshold"]):
        return rule["above"]
    return rule["otherwise"]


# --- Savings tips ---
TIPS_BY_CATEGORY = {
    "food_and_drinks": [
        "Try meal prepping on weekends to reduce eating out expenses",
        "Consider bringing lunch to work instead of buying every day",
        "Look for happy hour deals when dining out to save on food and drinks",
    ],
    "groceries": [
        "Make a shopping list and stick to it to avoid impulse purchases",
        "Buy seasonal produce to get better prices on fruits and vegetables",
        "Consider store brands instead of name brands for staple items",
    ],
    "shopping": [
        "Wait 24 hours before making non-essential purchases to avoid impulse buys",
        "Look for secondhand options for clothing and accessories",
        "Use price tracking apps to buy items when they're at their lowest price",
    ],
    "entertainment": [
        "Consider sharing subscription services with family or friends",
        "Look for free entertainment options like parks, community events, or libraries",
        "Use student or other available discounts for entertainment venues",
    ],
    "transportation": [
        "Consider carpooling or using public transport to save on fuel costs",
        "Plan your routes to minimize distance and avoid traffic",
        "Maintain your vehicle regularly to prevent expensive repairs later",
    ],
    "health": [
        "Look for generic medication options instead of brand names",
        "Take advantage of preventive care services covered by insurance",
        "Consider telemedicine options which may be less expensive than in-person visits",
    ],
    "utilities": [
        "Turn off lights and appliances when not in use to reduce electricity bills",
        "Consider installing energy-efficient bulbs and appliances",
        "Check for better plans or providers for internet and phone services",
    ],
    "housing": [
        "Consider a roommate to share housing costs if feasible",
        "Negotiate rent when renewing your lease",
        "DIY minor home repairs instead of hiring someone",
    ],
    "education": [
        "Look for used textbooks or digital versions to save money",
        "Apply for scholarships and grants, even small ones add up",
        "Consider community college courses that can transfer to universities",
    ],
    "travel": [
        "Book flights and accommodations well in advance to get better rates",
        "Travel during off-peak seasons for lower prices",
        "Consider budget accommodations like hostels or vacation rentals",
    ],
    "other": [
        "Review your expenses regularly to identify areas to cut back",
        "Use budgeting apps to track spending and set limits",
        "Consider if purchases are wants or needs before spending",
    ],
}

GENERAL_TIPS = [
    "Track your expenses regularly to identify areas where you can cut back",
    "Set up automatic transfers to your savings account on payday",
    "Try the 30-day rule: wait 30 days before making non-essential purchases",
    "Review and cancel unused subscriptions and memberships",
    "Use cash instead of cards for discretionary spending to be more mindful",
]

STARTER_TIPS = [
    "Start tracking your expenses to get personalized savings tips.",
    "Try creating a budget to manage your finances better.",
    "Consider setting up savings goals to stay motivated.",
]


def top_categories(expenses, limit: int = 3) -> list:
    """Category names ordered by total amount, largest first."""
    totals = {}
    for e in expenses:
        totals[e.category] = totals.get(e.category, 0) + e.amount
    ranked = sorted(totals.items(), key=lambda x: x[1], reverse=True)
    return [cat for cat, _ in ranked[:limit]]


def fallback_savings_tips(categories) -> list:
    """Exactly three tips: one per top category, padded with general tips."""
    tips = []
    for category in categories[:3]:
        pool = TIPS_BY_CATEGORY.get(category, TIPS_BY_CATEGORY["other"])
        tip = next((t for t in pool if t not in tips), None)
        if tip:
            tips.append(tip)

    i = 0
    while len(tips) < 3:
        general = GENERAL_TIPS[i % len(GENERAL_TIPS)]
        if general not in tips:
            tips.append(general)
        i += 1
    return tips[:3]
