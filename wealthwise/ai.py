# wealthwise/ai.py
"""
External categorizer backed by an OpenAI chat model.

Every call makes a single attempt with a bounded timeout. Errors, timeouts,
a missing API key or an answer outside the allowed labels all fall back to
the deterministic rules in ``nlp``; nothing here raises to the caller.
"""
import json
import logging

from openai import OpenAI

from . import config, nlp
from .money import to_major_units

logger = logging.getLogger(__name__)

CATEGORIZE_PROMPT = (
    "You are a financial categorization assistant. Categorize the expense into one of these categories:\n"
    + "\n".join(f"- {c}" for c in nlp.CATEGORIES)
    + "\nRespond with only the category name, nothing else."
)

TIER_PROMPT = (
    "You are a financial advisor helping users classify their expenses. "
    "Based on the expense name, category, and amount, classify it as one of: "
    "\n- necessary: Essential expenses that are difficult to avoid"
    "\n- avoidable: Expenses that could potentially be reduced"
    "\n- unnecessary: Discretionary spending that could be eliminated"
    "\nRespond with only one of these three words, nothing else."
)


class Categorizer:
    """Categorize / classify expenses and suggest tips, with rule-based fallbacks."""

    def __init__(self, api_key=None, model=None, timeout=None, client=None):
        self.model = model or config.OPENAI_MODEL
        self.timeout = timeout if timeout is not None else config.AI_TIMEOUT_SECONDS
        self.client = client
        api_key = config.OPENAI_API_KEY if api_key is None else api_key
        if self.client is None and api_key:
            try:
                self.client = OpenAI(api_key=api_key, timeout=self.timeout, max_retries=0)
            except Exception as e:
                logger.warning("OpenAI client init failed, using rule-based fallbacks: %s", e)
                self.client = None

    def _complete(self, messages, **kwargs):
        """One chat completion; returns stripped content or None."""
        if self.client is None:
            return None
        response = self.client.chat.completions.create(
            model=self.model,
            messages=messages,
            timeout=self.timeout,
            **kwargs,
        )
        content = response.choices[0].message.content
        return content.strip() if content else None

    # --- Category auto-fill ---
    def categorize(self, name: str) -> str:
        try:
            answer = self._complete(
                [
                    {"role": "system", "content": CATEGORIZE_PROMPT},
                    {"role": "user", "content": name},
                ],
                max_tokens=20,
                temperature=0.3,
            )
        except Exception as e:
            logger.warning("Categorizer call failed for %r: %s", name, e)
            answer = None

        category = (answer or "").lower()
        if category in nlp.CATEGORIES:
            return category
        if answer:
            logger.info("Categorizer returned unknown category %r, using keyword rules", answer)
        return nlp.classify_category(name)

    # --- Necessity tier ---
    def classify_tier(self, name: str, category: str, amount: int) -> str:
        try:
            answer = self._complete(
                [
                    {"role": "system", "content": TIER_PROMPT},
                    {
                        "role": "user",
                        "content": f"Expense name: {name}\nCategory: {category}\nAmount: ₹{to_major_units(amount)}",
                    },
                ],
                max_tokens=20,
                temperature=0.3,
            )
        except Exception as e:
            logger.warning("Tier classification failed for %r: %s", name, e)
            answer = None

        tier = (answer or "").lower()
        if tier in nlp.TIERS:
            return tier
        if answer:
            logger.info("Classifier returned unknown tier %r, using rule table", answer)
        return nlp.fallback_tier(category, amount)

    # --- Savings tips ---
    def suggest_savings_tips(self, expenses) -> list:
        if not expenses:
            return list(nlp.STARTER_TIPS)

        top = nlp.top_categories(expenses)
        by_status = {}
        by_category = {}
        for e in expenses:
            by_status[e.status] = by_status.get(e.status, 0) + e.amount
            by_category[e.category] = by_category.get(e.category, 0) + e.amount

        prompt = (
            "Based on the user's spending data:\n\n"
            f"Total avoidable expenses: ₹{to_major_units(by_status.get('avoidable', 0))}\n"
            f"Total unnecessary expenses: ₹{to_major_units(by_status.get('unnecessary', 0))}\n\n"
            "Top spending categories:\n"
            + "\n".join(f"- {c}: ₹{to_major_units(by_category[c])}" for c in top)
            + "\n\nPlease provide 3 practical, specific savings tips. Each tip should be concise "
            "(max 150 characters) and actionable.\n"
            'Format your response as a JSON object {"tips": [...]} with exactly 3 tips.'
        )
        try:
            content = self._complete(
                [
                    {"role": "system", "content": "You are a financial advisor specializing in helping users save money."},
                    {"role": "user", "content": prompt},
                ],
                response_format={"type": "json_object"},
                temperature=0.7,
            )
            if content:
                tips = json.loads(content).get("tips")
                if isinstance(tips, list) and tips and all(isinstance(t, str) for t in tips):
                    return _pad_tips(tips, top)
                logger.info("Savings tips response had no usable 'tips' list")
        except Exception as e:
            logger.warning("Savings tips call failed: %s", e)

        return nlp.fallback_savings_tips(top)


def _pad_tips(tips, categories, count=3) -> list:
    """First ``count`` distinct tips, topped up from the rule-based pool."""
    result = []
    for tip in list(tips) + nlp.fallback_savings_tips(categories) + nlp.GENERAL_TIPS:
        tip = tip.strip()
        if tip and tip not in result:
            result.append(tip)
        if len(result) == count:
            break
    return result


_default_categorizer = None


def get_categorizer() -> Categorizer:
    """FastAPI dependency returning the shared categorizer."""
    global _default_categorizer
    if _default_categorizer is None:
        _default_categorizer = Categorizer()
    return _default_categorizer
