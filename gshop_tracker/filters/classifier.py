# gshop_tracker/filters/classifier.py

"""Brand and category inference from a product's display name.

Both classifiers walk an ordered rule table of ``(label, patterns)``
pairs against the lower-cased name; the first pattern that matches wins
and ends the scan. Patterns carry English and Arabic spellings side by
side. Tables are plain data so new brands or categories are added by
appending a row, not by touching the matching loop.
"""

import logging
import re

logger = logging.getLogger("gshop_tracker.classifier")

UNKNOWN_BRAND = "Unknown"
OTHER_CATEGORY = "other"

RuleTable = list[tuple[str, list[re.Pattern[str]]]]


def _rules(
    rows: list[tuple[str, list[str]]],
) -> RuleTable:
    """Compile a rule table once at import time."""
    return [
        (label, [re.compile(p) for p in patterns])
        for label, patterns in rows
    ]


BRAND_RULES: RuleTable = _rules([
    ("Apple", [
        r"iphone|آيفون|أيفون|ايفون",
        r"ipad|آيباد|أيباد|ايباد",
        r"macbook|ماك بوك|ماكبوك",
        r"apple watch|ساعة ابل|ساعة آبل|أبل واتش",
        r"airpods|ايربودز|إيربودز",
        r"^apple |^أبل |^آبل |^ابل ",
    ]),
    ("Samsung", [
        r"galaxy|جالاكسي|جالكسي",
        r"samsung|سامسونج|سامسونغ",
        r"note\s*\d+|نوت\s*\d+",
        r"s\s*\d+\s*(plus|ultra)?|اس\s*\d+",
        r"tab\s*[a-s]\d*|تاب\s*[a-s]\d*",
    ]),
    ("Google", [
        r"pixel|بيكسل",
        r"google|جوجل",
    ]),
    ("Xiaomi", [
        r"xiaomi|شاومي|شياومي",
        r"redmi|ريدمي",
        r"poco|بوكو",
        r"mi\s*\d+|مي\s*\d+",
    ]),
    ("Huawei", [
        r"huawei|هواوي|هواويه",
        r"mate\s*\d+|ميت\s*\d+",
        r"p\s*\d+\s*(pro|lite)?|بي\s*\d+",
    ]),
    ("Sony", [
        r"sony|سوني",
        r"xperia|اكسبيريا|إكسبيريا",
        r"playstation|بلايستيشن|بلاي ستيشن",
    ]),
    ("LG", [
        r"^lg\s|^ال جي\s",
        r"lg\s*([a-z])?\d+|ال جي\s*([a-z])?\d+",
    ]),
    ("Nokia", [
        r"nokia|نوكيا",
    ]),
    ("OnePlus", [
        r"oneplus|ون بلس|وان بلس",
    ]),
    ("Oppo", [
        r"oppo|أوبو|اوبو",
        r"reno\s*\d+|رينو\s*\d+",
        r"find\s*x\d*|فايند\s*[إكس]\d*",
    ]),
    ("Vivo", [
        r"vivo|فيفو",
    ]),
    ("Realme", [
        r"realme|ريلمي|ريلمى",
    ]),
])

# Checked before CATEGORY_RULES: laptop and tablet names overlap with
# phone patterns ("MacBook ... 256GB", "Galaxy Tab").
PRIORITY_CATEGORY_RULES: RuleTable = _rules([
    ("laptops", [
        r"macbook|ماك بوك|ماكبوك",
        r"laptop|لابتوب|نوت بوك",
        r"notebook|نوتبوك",
        r"chromebook|كروم بوك",
        r"thinkpad|ثينك باد",
        r"surface book|سيرفس",
        r"dell xps|ديل",
        r"hp spectre|إتش بي",
    ]),
    ("tablets", [
        r"ipad|آيباد|أيباد|ايباد",
        r"tablet|تابلت|لوحي",
        r"galaxy tab|جالاكسي تاب",
        r"mi pad|شاومي باد",
    ]),
])

CATEGORY_RULES: RuleTable = _rules([
    ("phones", [
        r"iphone|آيفون|أيفون|ايفون",
        r"galaxy\s*[a-z]?\d+|جالاكسي|جالكسي",
        r"pixel\s*\d+|بيكسل",
        r"redmi|ريدمي",
        r"poco|بوكو",
        r"هاتف|موبايل|جوال|تليفون",
        r"smartphone|phone|mobile|جوال",
        r"xiaomi|شاومي|هواوي",
        r"\d+g|5g|4g",
        r"128gb|256gb|512gb|128 جيجا|256 جيجا",
        r"pro\s*max|برو\s*ماكس",
        r"facetime",
    ]),
    ("audio", [
        r"airpods|ايربودز|إيربودز",
        r"headphone|سماعة رأس|سماعات",
        r"earbuds|سماعات أذن",
        r"speaker|مكبر صوت|سبيكر",
        r"bose|بوز",
        r"sony wh|سوني",
        r"homepod|هوم بود",
        r"echo dot|إيكو دوت",
    ]),
    ("watches", [
        r"watch|ساعة|ووتش",
        r"apple watch|ساعة ابل|أبل واتش",
        r"galaxy watch|ساعة جالاكسي",
        r"mi band|مي باند",
        r"fitbit|فيت بيت",
        r"garmin|جارمن",
        r"الساعة الذكية|smartwatch",
    ]),
    ("tvs", [
        r"tv|تلفزيون|تلفاز|شاشة",
        r"(\d+)\s*inch tv|(\d+)\s*بوصة",
        r"oled|qled|mini led",
        r"smart tv|التلفزيون الذكي",
    ]),
    ("gaming", [
        r"playstation|بلايستيشن|ps5|ps4",
        r"xbox|إكس بوكس|اكس بوكس",
        r"nintendo switch|نينتندو",
        r"gaming|الألعاب|للألعاب",
        r"controller|يد التحكم|جويستيك",
    ]),
    ("cameras", [
        r"camera|كاميرا",
        r"dslr|digital camera",
        r"canon eos|كانون",
        r"nikon|نيكون",
        r"sony a\d+|سوني",
        r"gopro|جو برو",
    ]),
])


def match_rules(name: str, *tables: RuleTable) -> str | None:
    """Return the label of the first matching rule across *tables*."""
    lowered = name.lower()
    for table in tables:
        for label, patterns in table:
            for pattern in patterns:
                if pattern.search(lowered):
                    return label
    return None


def classify_brand(product_name: str | None) -> str:
    """Infer the brand, falling back to ``'Unknown'``."""
    if not product_name:
        return UNKNOWN_BRAND
    brand = match_rules(product_name, BRAND_RULES)
    logger.debug("Brand for %r: %s", product_name, brand)
    return brand or UNKNOWN_BRAND


def classify_category(product_name: str | None) -> str:
    """Infer the category, falling back to ``'other'``."""
    if not product_name:
        return OTHER_CATEGORY
    category = match_rules(
        product_name, PRIORITY_CATEGORY_RULES, CATEGORY_RULES
    )
    logger.debug("Category for %r: %s", product_name, category)
    return category or OTHER_CATEGORY
