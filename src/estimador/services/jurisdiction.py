"""Per-state ICMS rates and the interstate rate rule (Resolução do Senado 22/89)."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from types import MappingProxyType

from estimador.utils.validators import normalize_uf


@dataclass(frozen=True)
class JurisdictionRate:
    uf: str
    aliquota: Decimal
    fcp: Decimal

    @property
    def efetiva(self) -> Decimal:
        """Internal rate including the poverty-fund surcharge."""
        return self.aliquota + self.fcp


def _rate(uf: str, aliquota: str, fcp: str) -> tuple[str, JurisdictionRate]:
    return uf, JurisdictionRate(uf, Decimal(aliquota), Decimal(fcp))


ESTADOS_ICMS = MappingProxyType(dict([
    _rate("AC", "19", "0"), _rate("AL", "19", "2"), _rate("AP", "18", "0"),
    _rate("AM", "20", "2"), _rate("BA", "20.5", "2"), _rate("CE", "20", "2"),
    _rate("DF", "20", "2"), _rate("ES", "17", "0"), _rate("GO", "19", "2"),
    _rate("MA", "22", "2"), _rate("MT", "17", "2"), _rate("MS", "17", "2"),
    _rate("MG", "18", "2"), _rate("PA", "19", "0"), _rate("PB", "20", "2"),
    _rate("PR", "19.5", "0"), _rate("PE", "20.5", "2"), _rate("PI", "21", "2"),
    _rate("RJ", "20", "2"), _rate("RN", "20", "2"), _rate("RS", "17", "2"),
    _rate("RO", "19.5", "0"), _rate("RR", "20", "0"), _rate("SC", "17", "0"),
    _rate("SP", "18", "0"), _rate("SE", "19", "2"), _rate("TO", "20", "2"),
]))

ALIQUOTA_PADRAO = Decimal("18")

SUL = frozenset({"PR", "RS", "SC"})
SUDESTE = frozenset({"ES", "MG", "RJ", "SP"})
NORTE = frozenset({"AC", "AP", "AM", "PA", "RO", "RR", "TO"})
NORDESTE = frozenset({"AL", "BA", "CE", "MA", "PB", "PE", "PI", "RN", "SE"})
CENTRO_OESTE = frozenset({"DF", "GO", "MT", "MS"})

_ORIGEM_SUL_SUDESTE = (SUL | SUDESTE) - {"ES"}
_DESTINO_N_NE_CO_ES = NORTE | NORDESTE | CENTRO_OESTE | {"ES"}

ALIQUOTA_INTERESTADUAL_REDUZIDA = Decimal("7")
ALIQUOTA_INTERESTADUAL_PADRAO = Decimal("12")


def state_rate(uf: str | None) -> JurisdictionRate:
    """Return the ICMS rate of a state; unknown codes get 18% with no FCP."""
    code = normalize_uf(uf)
    found = ESTADOS_ICMS.get(code)
    if found is not None:
        return found
    return JurisdictionRate(code, ALIQUOTA_PADRAO, Decimal("0"))


def interstate_rate(uf_origem: str | None, uf_destino: str | None) -> Decimal:
    """Interstate ICMS rate between two states; 0 when the operation is not interstate.

    7% from S/SE (except ES) to N/NE/CO/ES, 12% for every other pair.
    """
    origem = normalize_uf(uf_origem)
    destino = normalize_uf(uf_destino)
    if not origem or not destino or origem == destino:
        return Decimal("0")
    if origem in _ORIGEM_SUL_SUDESTE and destino in _DESTINO_N_NE_CO_ES:
        return ALIQUOTA_INTERESTADUAL_REDUZIDA
    return ALIQUOTA_INTERESTADUAL_PADRAO
