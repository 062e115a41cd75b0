from __future__ import annotations

from decimal import Decimal

from estimador.models.invoice import InvoiceCore, LineItem, TaxRegime
from estimador.models.report import ItemTaxBreakdown, ResolvedProductRate
from estimador.services.jurisdiction import JurisdictionRate, interstate_rate

CSTS_ISENTOS_OU_NAO_TRIBUTADOS = frozenset(
    {"40", "41", "50", "51", "102", "103", "300", "400", "500"}
)

# Regime cumulativo (Lucro Presumido)
PIS_CUMULATIVO = Decimal("0.65")
COFINS_CUMULATIVO = Decimal("3.00")

_ZERO = Decimal("0")
_CEM = Decimal("100")


def is_cst_isento(cst: str | None) -> bool:
    return (cst or "").strip() in CSTS_ISENTOS_OU_NAO_TRIBUTADOS


def _pct(value: Decimal, aliquota: Decimal) -> Decimal:
    return value * aliquota / _CEM


def icms_interno(base_icms: Decimal, origem: JurisdictionRate) -> Decimal:
    return _pct(base_icms, origem.efetiva)


def icms_difal(base_icms: Decimal, origem: JurisdictionRate, destino: JurisdictionRate) -> Decimal:
    """Sale to a non-taxpayer in another state: interstate leg plus DIFAL, base "por dentro"."""
    rd = destino.efetiva
    base_difal = base_icms / (1 - rd / _CEM)
    icms_destino_total = _pct(base_difal, rd)
    icms_interestadual = _pct(base_icms, interstate_rate(origem.uf, destino.uf))
    difal = max(_ZERO, icms_destino_total - icms_interestadual)
    return icms_interestadual + difal


def icms_st(
    base_icms: Decimal, origem: JurisdictionRate, destino: JurisdictionRate, mva: Decimal
) -> Decimal:
    """Sale to a taxpayer in another state: own ICMS plus ST collected with the MVA."""
    icms_proprio = _pct(base_icms, interstate_rate(origem.uf, destino.uf))
    base_st = base_icms * (1 + mva / _CEM)
    icms_total_st = _pct(base_st, destino.efetiva)
    icms_st_a_recolher = max(_ZERO, icms_total_st - icms_proprio)
    return icms_proprio + icms_st_a_recolher


def compute_item(
    item: LineItem,
    core: InvoiceCore,
    origem: JurisdictionRate,
    destino: JurisdictionRate,
    rate: ResolvedProductRate,
) -> ItemTaxBreakdown:
    """Estimate ICMS, IPI, PIS and COFINS for one line item."""
    base = item.valor_base
    if core.regime_tributario is TaxRegime.SIMPLES:
        # Everything is collected through the DAS
        return ItemTaxBreakdown(base=base)

    ipi = _pct(base, rate.ipi_aliquota) if rate.resolved else _ZERO
    base_icms = base + ipi

    if is_cst_isento(item.cst_icms):
        icms = _ZERO
    elif not core.is_interestadual:
        icms = icms_interno(base_icms, origem)
    elif core.is_nao_contribuinte:
        icms = icms_difal(base_icms, origem, destino)
    else:
        icms = icms_st(base_icms, origem, destino, rate.mva)

    pis = cofins = _ZERO
    if core.regime_tributario is TaxRegime.NORMAL:
        pis = _pct(base, PIS_CUMULATIVO)
        cofins = _pct(base, COFINS_CUMULATIVO)

    return ItemTaxBreakdown(base=base, icms=icms, ipi=ipi, pis=pis, cofins=cofins)
