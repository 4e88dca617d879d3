# storefront/utils/money.py

from decimal import Decimal, ROUND_HALF_UP

Money = Decimal

def D(x) -> Money:
    return x if isinstance(x, Decimal) else Decimal(str(x if x is not None else "0"))

def round_money(x: Money) -> Money:
    return D(x).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)

def format_brl(x) -> str:
    # R$1.234,56
    text = f"{round_money(x):,.2f}"
    return "R$" + text.replace(",", "_").replace(".", ",").replace("_", ".")
