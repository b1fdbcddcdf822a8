import re

import pandas as pd

# =====================================================================
# Formatting Helpers (undefined -> N/A)
# =====================================================================

CURRENCY_SYMBOL = "€"


def _is_blank(x) -> bool:
    return x is None or pd.isna(x)


def fmt_pct_clean(x):
    if _is_blank(x):
        return "N/A"
    return f"{float(x) * 100:.2f}%"


def fmt_money_clean(x):
    if _is_blank(x):
        return "N/A"
    return f"{float(x):,.2f} {CURRENCY_SYMBOL}"


# =====================================================================
# Input parsing
# =====================================================================

_GROUPED_COMMA_DECIMAL = re.compile(r"^-?\d{1,3}(\.\d{3})+(,\d+)?$")


def parse_amount(raw):
    """
    Parse a typed amount. Accepts "1234.5", "1,234.50" and "1.234,50".
    Empty input is "no data" and returns None; unparseable input also
    returns None.
    """
    if raw is None:
        return None
    if isinstance(raw, (int, float)):
        return None if pd.isna(raw) else float(raw)

    cleaned = str(raw).replace(CURRENCY_SYMBOL, "").replace(" ", "").strip()
    if not cleaned:
        return None

    if _GROUPED_COMMA_DECIMAL.match(cleaned) or ("," in cleaned and "." not in cleaned):
        cleaned = cleaned.replace(".", "").replace(",", ".")
    else:
        cleaned = cleaned.replace(",", "")

    try:
        return float(cleaned)
    except ValueError:
        return None
