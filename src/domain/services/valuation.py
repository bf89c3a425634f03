"""Valuation functions for the derived UCS assets.

Each derived asset has exactly one pure function mapping the current values
of its direct inputs to its own new value.  The arithmetic, including the
rounding and truncation points, reproduces the external automation (N8N)
that produces the daily series, so a manual recalculation lands on the same
numbers the scheduled run would have produced.

Layout:
    rent_media_*      — normalized-yield ("rentabilidade média") helpers
                        turning a raw commodity quote into BRL yield
    value_*           — one function per derived asset, registered in
                        VALUATIONS with the input ids it reads
    valuate           — dispatch by asset id

Missing inputs raise MissingInputError instead of silently defaulting to
zero.  The orchestrator seeds a zero quote for every asset it reads, so a
legitimate zero still flows through as 0.0.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field

from src.domain.errors import MissingInputError, UnknownAssetError

# Weights of the agricultural legs (boi / milho / soja).
WEIGHT_BOI = 0.35
WEIGHT_MILHO = 0.30
WEIGHT_SOJA = 0.35

LEASE_DISCOUNT = 0.048        # "Famed": average lease factor applied to VUS
VUS_AREA_FACTOR = 25
WATER_COST_RATE = 0.07
VMAD_FACTOR = 5
CARBON_CRS_FACTOR = 25
UCS_PDM_DIVISOR = 900

# Quotes read by every valuation built on the CH2O yield base.
_COMMODITY_INPUTS = ("boi_gordo", "milho", "soja", "madeira", "carbono", "usd", "eur")


@dataclass(frozen=True)
class Valuation:
    """Result of one valuation function.

    components are the named sub-values worth storing next to the quote;
    conversions are human-readable currency conversion traces.
    """

    value: float
    components: dict[str, float] = field(default_factory=dict)
    conversions: dict[str, str] = field(default_factory=dict)


ValuationFunction = Callable[[Mapping[str, float]], Valuation]


@dataclass(frozen=True)
class _Registered:
    inputs: tuple[str, ...]
    function: Callable[[dict[str, float]], Valuation]


VALUATIONS: dict[str, _Registered] = {}


def valuation(asset_id: str, *inputs: str):
    """Register the decorated function as the valuation of asset_id."""

    def decorator(function: Callable[[dict[str, float]], Valuation]):
        VALUATIONS[asset_id] = _Registered(inputs=tuple(inputs), function=function)
        return function

    return decorator


def required_inputs(asset_id: str) -> tuple[str, ...]:
    try:
        return VALUATIONS[asset_id].inputs
    except KeyError:
        raise UnknownAssetError(asset_id) from None


def valuate(asset_id: str, values: Mapping[str, float]) -> Valuation:
    """Compute asset_id's value from the current value map.

    Raises:
        UnknownAssetError: asset_id has no valuation function (e.g. a base asset).
        MissingInputError: one of the asset's inputs is absent or None.
    """
    try:
        registered = VALUATIONS[asset_id]
    except KeyError:
        raise UnknownAssetError(asset_id) from None
    missing = [i for i in registered.inputs if values.get(i) is None]
    if missing:
        raise MissingInputError(asset_id, missing)
    return registered.function({i: float(values[i]) for i in registered.inputs})


# ---------------------------------------------------------------------- #
# Rounding                                                                 #
# ---------------------------------------------------------------------- #


def round_half_up(x: float, places: int = 2) -> float:
    """Round half towards +inf, matching the automation's Math.round usage."""
    scale = 10.0 ** places
    return math.floor(x * scale + 0.5) / scale


def truncate(x: float, places: int = 2) -> float:
    """Floor to the given number of decimal places."""
    scale = 10.0 ** places
    return math.floor(x * scale) / scale


# ---------------------------------------------------------------------- #
# Normalized yield helpers                                                 #
# ---------------------------------------------------------------------- #


def rent_media_soja(price: float, usd: float) -> float:
    """Soy: (price in BRL per 60kg bag → per tonne, plus spreadsheet offset) × 3.3."""
    ton_brl = (price * usd / 60) * 1000 + 0.01990
    return round_half_up(ton_brl * 3.3)


def rent_media_milho(price: float) -> float:
    ton = (price / 60) * 1000
    return round_half_up(ton * 7.20)


def rent_media_boi(price: float) -> float:
    return round_half_up(price * 18)


def rent_media_carbono(price: float, eur: float) -> float:
    """Carbon yield, truncated to 4 places like the source spreadsheet."""
    return truncate(price * eur * 2.59, 4)


def rent_media_madeira(price: float, usd: float) -> float:
    tora_usd = price * 0.375620342
    tora_brl = tora_usd * usd + 0.02
    return round_half_up(tora_brl * 1196.54547720813 * 0.10)


# ---------------------------------------------------------------------- #
# Derived assets                                                           #
# ---------------------------------------------------------------------- #


@valuation("vus", "boi_gordo", "milho", "soja", "usd")
def value_vus(v: dict[str, float]) -> Valuation:
    boi = rent_media_boi(v["boi_gordo"])
    milho = rent_media_milho(v["milho"])
    soja = rent_media_soja(v["soja"], v["usd"])

    boi_leg = round_half_up(boi * VUS_AREA_FACTOR * WEIGHT_BOI, 4)
    milho_leg = round_half_up(milho * VUS_AREA_FACTOR * WEIGHT_MILHO, 4)
    soja_leg = round_half_up(soja * VUS_AREA_FACTOR * WEIGHT_SOJA, 4)
    total = round_half_up(boi_leg + milho_leg + soja_leg, 4)
    discount = round_half_up(total * LEASE_DISCOUNT, 4)

    return Valuation(
        value=round_half_up(total - discount, 2),
        components={
            "boi_component": round_half_up(boi_leg),
            "milho_component": round_half_up(milho_leg),
            "soja_component": round_half_up(soja_leg),
        },
    )


@valuation("vmad", "madeira", "usd")
def value_vmad(v: dict[str, float]) -> Valuation:
    rent = rent_media_madeira(v["madeira"], v["usd"])
    return Valuation(value=truncate(rent * VMAD_FACTOR), components={"rent_media_madeira": rent})


@valuation("carbono_crs", "carbono", "eur")
def value_carbono_crs(v: dict[str, float]) -> Valuation:
    rent = rent_media_carbono(v["carbono"], v["eur"])
    return Valuation(
        value=truncate(rent * CARBON_CRS_FACTOR), components={"rent_media_carbono": rent}
    )


def ch2o_legs(
    boi: float, milho: float, soja: float, madeira: float, carbono: float
) -> dict[str, float]:
    """Weighted commodity legs of the CH2O water index, from normalized yields."""
    return {
        # The epsilon keeps exact products like 12.25 from flooring to 12.24.
        "boi_35": math.floor(boi * WEIGHT_BOI * 100 + 0.0000001) / 100,
        "milho_30": round_half_up(milho * WEIGHT_MILHO),
        "soja_35": round_half_up(soja * WEIGHT_SOJA),
        "madeira_100": round_half_up(madeira),
        "carbono_100": round_half_up(carbono),
    }


@valuation("ch2o_agua", *_COMMODITY_INPUTS)
def value_ch2o_agua(v: dict[str, float]) -> Valuation:
    legs = ch2o_legs(
        rent_media_boi(v["boi_gordo"]),
        rent_media_milho(v["milho"]),
        rent_media_soja(v["soja"], v["usd"]),
        rent_media_madeira(v["madeira"], v["usd"]),
        rent_media_carbono(v["carbono"], v["eur"]),
    )
    return Valuation(value=round_half_up(sum(legs.values())), components=legs)


def water_yield_base(v: Mapping[str, float]) -> float:
    """Unrounded weighted yield sum behind CH2O.

    Water cost and PDM are computed from this base, not from the rounded
    ch2o_agua value, as the automation does.
    """
    return (
        rent_media_boi(v["boi_gordo"]) * WEIGHT_BOI
        + rent_media_milho(v["milho"]) * WEIGHT_MILHO
        + rent_media_soja(v["soja"], v["usd"]) * WEIGHT_SOJA
        + rent_media_madeira(v["madeira"], v["usd"])
        + rent_media_carbono(v["carbono"], v["eur"])
    )


@valuation("custo_agua", *_COMMODITY_INPUTS)
def value_custo_agua(v: dict[str, float]) -> Valuation:
    base = water_yield_base(v)
    return Valuation(
        value=round_half_up(base * WATER_COST_RATE),
        components={"base_calculo": round_half_up(base)},
    )


@valuation("Agua_CRS", "ch2o_agua")
def value_agua_crs(v: dict[str, float]) -> Valuation:
    return Valuation(value=round_half_up(v["ch2o_agua"]), components={"ch2o_agua": v["ch2o_agua"]})


@valuation("valor_uso_solo", "vus", "vmad", "carbono_crs", "Agua_CRS")
def value_valor_uso_solo(v: dict[str, float]) -> Valuation:
    parts = {k: v[k] for k in ("vus", "vmad", "carbono_crs", "Agua_CRS")}
    return Valuation(value=round_half_up(sum(parts.values())), components=parts)


@valuation("pdm", *_COMMODITY_INPUTS, "custo_agua")
def value_pdm(v: dict[str, float]) -> Valuation:
    base = water_yield_base(v)
    return Valuation(
        value=round_half_up(base + v["custo_agua"]),
        components={"base_calculo": round_half_up(base), "custo_agua": v["custo_agua"]},
    )


@valuation("ucs", "pdm")
def value_ucs(v: dict[str, float]) -> Valuation:
    return Valuation(
        value=round_half_up((v["pdm"] / UCS_PDM_DIVISOR) / 2), components={"pdm": v["pdm"]}
    )


def convert_from_brl(amount_brl: float, rate: float) -> float:
    """BRL → foreign currency at rate (BRL per unit); 0 when the rate is unusable."""
    if rate <= 0:
        return 0.0
    return round_half_up(amount_brl / rate)


@valuation("ucs_ase", "ucs", "usd", "eur")
def value_ucs_ase(v: dict[str, float]) -> Valuation:
    ucs, usd, eur = v["ucs"], v["usd"], v["eur"]
    brl = ucs * 2
    value_brl = round_half_up(brl)
    value_usd = convert_from_brl(brl, usd)
    value_eur = convert_from_brl(brl, eur)
    return Valuation(
        value=value_brl,
        components={
            "ucs_original_brl": ucs,
            "resultado_final_brl": value_brl,
            "resultado_final_usd": value_usd,
            "resultado_final_eur": value_eur,
        },
        conversions={
            "brl_para_usd": f"{brl} ÷ {usd} = {value_usd}",
            "brl_para_eur": f"{brl} ÷ {eur} = {value_eur}",
        },
    )
