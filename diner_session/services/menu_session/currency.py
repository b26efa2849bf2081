"""Currency symbols and price formatting."""
from typing import Optional, Union

CURRENCY_SYMBOLS = {
    "LKR": "Rs",
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
    "CAD": "CA$",
    "AUD": "A$",
    "CHF": "Fr",
    "CNY": "¥",
    "INR": "₹",
    "SGD": "S$",
    "HKD": "HK$",
    "NZD": "NZ$",
    "SEK": "kr",
    "NOK": "kr",
    "DKK": "kr",
    "MXN": "MX$",
    "BRL": "R$",
    "ZAR": "R",
    "AED": "د.إ",
    "SAR": "﷼",
}


def get_currency_symbol(currency: Optional[str] = None) -> str:
    """Symbol for a currency code, falling back to rupees."""
    return CURRENCY_SYMBOLS.get(currency or "LKR", "Rs")


def format_price(price: Union[float, int, str], currency: Optional[str] = None) -> str:
    """Format a price like ``Rs1250.00``."""
    amount = price if isinstance(price, (int, float)) else float(price)
    return f"{get_currency_symbol(currency)}{amount:.2f}"
