# gshop_tracker/parsers/numerals.py

"""Arabic-Indic numeral normalisation."""

# Ten Arabic-Indic digits plus the Arabic thousands and decimal separators
_NUMERAL_TABLE: dict[int, str] = str.maketrans({
    "٠": "0", "١": "1", "٢": "2", "٣": "3", "٤": "4",
    "٥": "5", "٦": "6", "٧": "7", "٨": "8", "٩": "9",
    "٬": ",", "٫": ".",
})


def normalize_numerals(text: str | None) -> str | None:
    """Map Arabic-Indic digits/separators to Western ones.

    Every other character passes through unchanged. Returns ``None``
    for empty or missing input.
    """
    if not text:
        return None
    return text.translate(_NUMERAL_TABLE)
