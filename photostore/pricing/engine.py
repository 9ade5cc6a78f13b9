"""
Moteur de prix par lots (pur: pas de I/O, pas d'état).
- FIXED_PRICES: prix curés (en euros) pour 1 à 20 photos, non dérivés d'un prix unitaire.
- Au-delà de 20: couverture optimale par des packs de 1..20 (programmation dynamique, type rendu de monnaie).
- Les calculs internes sont en Decimal (unités majeures); conversion en centimes une seule fois, arrondi half-up.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Tuple

# module photostore.pricing.engine
FIXED_PRICES: Dict[int, Decimal] = {
    1: Decimal("8"),
    2: Decimal("16"),
    3: Decimal("20"),
    4: Decimal("28"),
    5: Decimal("30"),
    6: Decimal("38"),
    7: Decimal("46"),
    8: Decimal("50"),
    9: Decimal("58"),
    10: Decimal("60"),
    11: Decimal("68"),
    12: Decimal("76"),
    13: Decimal("80"),
    14: Decimal("88"),
    15: Decimal("90"),
    16: Decimal("98"),
    17: Decimal("106"),
    18: Decimal("110"),
    19: Decimal("118"),
    20: Decimal("120"),
}

# Toutes les tailles tabulées sont des packs combinables (1 est toujours présent), du plus grand au plus petit
PACK_SIZES: Tuple[int, ...] = tuple(sorted(FIXED_PRICES, reverse=True))
MAX_TABULATED = PACK_SIZES[0]

_CENT = Decimal("0.01")


def _check_count(photo_count: int) -> int:
    # bool est un int en Python: on le refuse explicitement
    if isinstance(photo_count, bool) or not isinstance(photo_count, int):
        raise ValueError(f"photo_count must be an integer, got {photo_count!r}")
    if photo_count < 0:
        raise ValueError(f"photo_count must be >= 0, got {photo_count}")
    return photo_count


def _solve(photo_count: int, prices: Dict[int, Decimal]) -> Tuple[List[Decimal], List[int]]:
    """
    dp[n] = prix minimum pour n photos, choice[n] = taille du dernier pack retenu.
    À égalité, le plus grand pack est conservé (résultat déterministe).
    """
    if 1 not in prices:
        raise ValueError("price table must include a pack of size 1")
    sizes = PACK_SIZES if prices is FIXED_PRICES else tuple(sorted(prices, reverse=True))
    dp: List[Decimal] = [Decimal(0)] * (photo_count + 1)
    choice: List[int] = [0] * (photo_count + 1)
    for n in range(1, photo_count + 1):
        best = None
        best_size = 0
        for size in sizes:
            if size > n:
                continue
            candidate = dp[n - size] + prices[size]
            if best is None or candidate < best:
                best = candidate
                best_size = size
        dp[n] = best
        choice[n] = best_size
    return dp, choice


def price_for_major(photo_count: int, prices: Dict[int, Decimal] = FIXED_PRICES) -> Decimal:
    """
    Prix total en unités majeures (euros), non arrondi.
    - 0 photo -> 0
    - dans la table -> lecture directe
    - au-delà -> minimum sur toutes les décompositions en packs tabulés
    """
    n = _check_count(photo_count)
    if n == 0:
        return Decimal(0)
    if n in prices:
        return prices[n]
    dp, _ = _solve(n, prices)
    return dp[n]


def to_minor_units(amount: Decimal) -> int:
    """Convertit un montant en euros vers des centimes (arrondi half-up au centime)."""
    return int((amount.quantize(_CENT, rounding=ROUND_HALF_UP) * 100).to_integral_value())


def price_for(photo_count: int, prices: Dict[int, Decimal] = FIXED_PRICES) -> int:
    """
    Prix officiel d'un panier de `photo_count` photos, en centimes.
    Fonction pure, utilisée par le checkout (montant figé sur la commande) et par l'affichage panier.
    """
    return to_minor_units(price_for_major(photo_count, prices))


def best_packs(photo_count: int, prices: Dict[int, Decimal] = FIXED_PRICES) -> List[int]:
    """
    Une décomposition optimale (tailles de packs, ordre décroissant) cohérente avec price_for.
    - Dans la table: un seul pack de la taille demandée.
    """
    n = _check_count(photo_count)
    if n == 0:
        return []
    if n in prices:
        return [n]
    _, choice = _solve(n, prices)
    packs: List[int] = []
    while n > 0:
        packs.append(choice[n])
        n -= choice[n]
    return sorted(packs, reverse=True)
