from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any

from estimador.utils.formatters import plain

MVA_AUTOPECAS_PADRAO = Decimal("71.78")
_QUOTE_KEYS = frozenset({"ipi_aliquota", "mva_st_ajustada"})


@dataclass(frozen=True)
class RateQuote:
    """IPI rate and adjusted ST margin returned by the rate service."""

    ipi_aliquota: Decimal
    mva_st_ajustada: Decimal

    @classmethod
    def parse(cls, data: Any) -> RateQuote | None:
        """Parse a loosely typed answer.

        Anything but a dict with exactly the two keys, both finite
        non-negative numbers, is None.
        """
        if isinstance(data, RateQuote):
            return data
        if not isinstance(data, dict) or set(data) != _QUOTE_KEYS:
            return None
        values = []
        for key in ("ipi_aliquota", "mva_st_ajustada"):
            value = data.get(key)
            if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
                return None
            if isinstance(value, float) and not math.isfinite(value):
                return None
            d = value if isinstance(value, Decimal) else Decimal(str(value))
            if not d.is_finite() or d < 0:
                return None
            values.append(d)
        return cls(ipi_aliquota=values[0], mva_st_ajustada=values[1])


class RateSource(Enum):
    LOOKUP = "consulta"
    FALLBACK = "fallback"
    UNRESOLVED = "desconhecido"


@dataclass(frozen=True)
class ResolvedProductRate:
    ncm: str
    source: RateSource
    ipi_aliquota: Decimal = Decimal("0")
    mva: Decimal = MVA_AUTOPECAS_PADRAO

    @property
    def resolved(self) -> bool:
        return self.source is not RateSource.UNRESOLVED


@dataclass(frozen=True)
class ItemTaxBreakdown:
    base: Decimal
    icms: Decimal = Decimal("0")
    ipi: Decimal = Decimal("0")
    pis: Decimal = Decimal("0")
    cofins: Decimal = Decimal("0")

    @property
    def total(self) -> Decimal:
        """Item value including every estimated tax."""
        return self.base + self.icms + self.ipi + self.pis + self.cofins

    def to_dict(self) -> dict[str, str]:
        return {
            "base": plain(self.base),
            "icms": plain(self.icms),
            "ipi": plain(self.ipi),
            "pis": plain(self.pis),
            "cofins": plain(self.cofins),
            "total": plain(self.total),
        }


@dataclass(frozen=True)
class TaxEstimateReport:
    """Invoice-level estimate. Built once per estimate run and never mutated."""

    total: Decimal
    icms: Decimal
    ipi: Decimal
    pis_cofins: Decimal
    diferenca: Decimal
    ncm_desconhecido: bool
    premissas: tuple[str, ...]
    data_calculo: str
    itens: tuple[ItemTaxBreakdown, ...] = ()

    @property
    def premissas_texto(self) -> str:
        return "\n".join(self.premissas)

    def to_dict(self) -> dict[str, Any]:
        return {
            "imposto_estimado_total": plain(self.total),
            "imposto_estimado_icms": plain(self.icms),
            "imposto_estimado_ipi": plain(self.ipi),
            "imposto_estimado_pis_cofins": plain(self.pis_cofins),
            "diferenca_imposto": plain(self.diferenca),
            "possui_ncm_desconhecido": self.ncm_desconhecido,
            "calculo_premissas": self.premissas_texto,
            "data_calculo": self.data_calculo,
            "itens": [item.to_dict() for item in self.itens],
        }
