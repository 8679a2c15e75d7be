from typing import Dict, Iterable, Mapping, Optional, Tuple


def variation_pairs(selection: Optional[Mapping[str, str]]) -> Tuple[Tuple[str, str], ...]:
    if not selection:
        return ()
    return tuple(sorted((str(k).strip(), str(v).strip()) for k, v in selection.items()))


def variation_key(selection: Optional[Mapping[str, str]]) -> Optional[str]:
    """Normalized key for a variation selection, e.g. ``color=red|size=L``.

    Attribute order in the incoming mapping does not matter.
    """
    pairs = variation_pairs(selection)
    if not pairs:
        return None
    return "|".join(f"{name}={value}" for name, value in pairs)


def normalize_stocks(stocks: Optional[Iterable[Tuple[Mapping[str, str], int]]]) -> Optional[Dict[str, int]]:
    """Build a ``variation_stocks`` mapping from (selection, units) pairs."""
    if stocks is None:
        return None
    result: Dict[str, int] = {}
    for selection, units in stocks:
        key = variation_key(selection)
        if key is None:
            continue
        result[key] = result.get(key, 0) + int(units)
    return result
