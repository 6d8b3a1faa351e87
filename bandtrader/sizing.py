"""Trade sizing."""


def calc_lot_count(
    max_deal_sum: float,
    price: float,
    lot: int,
    operation_lots: int,
) -> int:
    """
    Number of lots to trade at ``price``.

    Uses ``operation_lots`` when ``max_deal_sum`` covers
    ``price * lot * operation_lots``, otherwise as many whole lots as
    ``max_deal_sum`` buys.

    Args:
        max_deal_sum: Money available for a single deal
        price: Limit price per share
        lot: Shares per lot
        operation_lots: Preferred number of lots per trade

    Returns:
        Lot count; 0 when nothing is affordable or price/lot are not positive
    """
    if price <= 0 or lot <= 0:
        return 0
    if max_deal_sum >= price * lot * operation_lots:
        return int(operation_lots)
    return int(max_deal_sum // (lot * price))
