"""
Physical and monetary units used by the coalition formation model
"""

from typing import Union, cast
from pint import DimensionalityError, UnitRegistry
from pint.facets.plain import PlainQuantity as Quantity

# Define new units
ureg = UnitRegistry()
ureg.define("usd = [currency]")


class CheckedDimensionality(Quantity):
    _my_dimensionality = "[]"

    def __init_subclass__(cls, dimensionality="[]", **kwargs):
        # The dimensionality is stored in the subclass
        super().__init_subclass__(**kwargs)
        cls._my_dimensionality = dimensionality

    def __new__(cls, v: Union[str, Quantity]) -> "CheckedDimensionality":
        # Inherited by the subclasses, so the dimensionality is checked on creation
        obj = ureg.Quantity(v)  # type: ignore
        if not obj.check(cls._my_dimensionality):
            raise DimensionalityError(v, cls._my_dimensionality)
        return obj


# -----------------------------------------------------------------------------------
# Dimension types for the provider model
# -----------------------------------------------------------------------------------
class Power(CheckedDimensionality, dimensionality="[power]"):
    def to(self, other=None, *ctx, **ctx_kwargs):  # pragma: no cover
        return cast("Power", super().to(other, *ctx, **ctx_kwargs))


class CurrencyPerTime(CheckedDimensionality, dimensionality="[currency]/[time]"):
    def to(self, other=None, *ctx, **ctx_kwargs):  # pragma: no cover
        return cast("CurrencyPerTime", super().to(other, *ctx, **ctx_kwargs))


class EnergyPrice(CheckedDimensionality, dimensionality="[currency]/[energy]"):
    def to(self, other=None, *ctx, **ctx_kwargs):  # pragma: no cover
        return cast("EnergyPrice", super().to(other, *ctx, **ctx_kwargs))


__all__ = [
    "ureg",
    "Quantity",
    "CheckedDimensionality",
    "Power",
    "CurrencyPerTime",
    "EnergyPrice",
]
