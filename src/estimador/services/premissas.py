"""Assumption trail ("premissas") attached to every estimate.

Notices are collected by category while items are processed and rendered
in a fixed order, so the text depends only on the input and never on the
order in which lookups finished.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal

from estimador.models.invoice import InvoiceCore, LineItem, TaxRegime
from estimador.models.report import (
    ItemTaxBreakdown,
    RateSource,
    ResolvedProductRate,
    TaxEstimateReport,
)
from estimador.services.item_calculator import COFINS_CUMULATIVO, PIS_CUMULATIVO
from estimador.services.jurisdiction import JurisdictionRate
from estimador.utils.formatters import format_percent

DISCLAIMER = "- Cálculo não considera regimes especiais ou benefícios fiscais."


def regime_notices(regime: TaxRegime) -> list[str]:
    if regime is TaxRegime.NORMAL:
        return [
            f"- PIS/COFINS ({PIS_CUMULATIVO}%/{COFINS_CUMULATIVO}%) calculado com base no "
            "Regime Normal (presumindo Lucro Presumido).",
            "- Análise considera que o emitente está no Regime Normal (Lucro Presumido/Real).",
        ]
    if regime is TaxRegime.SIMPLES:
        return [
            "- PIS/COFINS estimado em 0% (Recolhimento unificado via DAS).",
            "- Análise considera que o emitente é optante pelo Simples Nacional.",
        ]
    return [
        "- PIS/COFINS estimado em 0%. Premissa: Regime Monofásico ou Simples Nacional "
        "(excesso de sublimite).",
    ]


def simples_notices() -> list[str]:
    return [
        "- ICMS: Estimado em R$ 0,00 (Recolhimento unificado via DAS).",
        "- IPI: Estimado em R$ 0,00 (Regra do Simples Nacional).",
    ]


def icms_method_notice(
    core: InvoiceCore, origem: JurisdictionRate, destino: JurisdictionRate
) -> str:
    if not core.is_interestadual:
        return (
            f"- ICMS calculado como Operação Interna em {origem.uf} "
            f"(Alíquota {origem.efetiva:.2f}%)."
        )
    if core.is_nao_contribuinte:
        return (
            f"- ICMS calculado com DIFAL de {origem.uf} para {destino.uf} "
            '(venda a não contribuinte, com base "por dentro").'
        )
    return f"- ICMS-ST calculado de {origem.uf} para {destino.uf} (venda a contribuinte)."


def rate_source_notice(rate: ResolvedProductRate) -> str | None:
    if rate.source is RateSource.LOOKUP:
        return (
            f"- IPI ({format_percent(rate.ipi_aliquota)}%) e MVA ({format_percent(rate.mva)}%) "
            f"aplicados. (Consulta IA NCM {rate.ncm})"
        )
    if rate.source is RateSource.FALLBACK:
        return (
            f"- IPI ({format_percent(rate.ipi_aliquota)}%) e MVA padrão "
            f"({format_percent(rate.mva)}%) aplicados com base em alíquotas padrão. "
            f"(Fallback NCM {rate.ncm})"
        )
    if rate.ncm:
        return f"- IPI/MVA aplicados com base em alíquotas padrão. (Fallback NCM {rate.ncm})"
    return None


def unknown_ncm_notice(item: LineItem) -> str:
    if not item.ncm_limpo:
        return f"- Item (Cód: {item.codigo}): NCM não informado, IPI não calculado."
    return f"- Item (Cód: {item.codigo}): NCM '{item.codigo_ncm}' desconhecido na base, IPI não calculado."


@dataclass
class Premissas:
    """Per-run accumulator for the notices that depend on the items."""

    _fontes: dict[str, str] = field(default_factory=dict)
    _csts: dict[str, str] = field(default_factory=dict)
    _desconhecidos: list[str] = field(default_factory=list)

    def add_rate(self, rate: ResolvedProductRate) -> None:
        if rate.ncm in self._fontes:
            return
        notice = rate_source_notice(rate)
        if notice is not None:
            self._fontes[rate.ncm] = notice

    def add_cst_isento(self, cst: str) -> None:
        cst = cst.strip()
        if cst not in self._csts:
            self._csts[cst] = (
                f"- Itens com CST/CSOSN {cst} tiveram ICMS estimado como zero "
                "(Operação isenta/não tributada)."
            )

    def add_unknown(self, item: LineItem) -> None:
        self._desconhecidos.append(unknown_ncm_notice(item))

    @property
    def has_unknown(self) -> bool:
        return bool(self._desconhecidos)

    def render(
        self, core: InvoiceCore, origem: JurisdictionRate, destino: JurisdictionRate
    ) -> tuple[str, ...]:
        simples = core.regime_tributario is TaxRegime.SIMPLES
        lines = regime_notices(core.regime_tributario)
        if simples:
            lines.extend(simples_notices())
        else:
            lines.append(icms_method_notice(core, origem, destino))
            lines.append("- O valor do IPI foi somado à base de cálculo do ICMS.")
        lines.extend(self._fontes.values())
        lines.extend(self._csts.values())
        lines.extend(self._desconhecidos)
        lines.append(DISCLAIMER)
        return tuple(lines)


def aggregate(
    core: InvoiceCore,
    breakdowns: Sequence[ItemTaxBreakdown],
    premissas: Sequence[str],
    *,
    ncm_desconhecido: bool = False,
    now: datetime | None = None,
) -> TaxEstimateReport:
    """Fold item breakdowns into the invoice-level report."""
    zero = Decimal("0")
    icms = sum((b.icms for b in breakdowns), zero)
    ipi = sum((b.ipi for b in breakdowns), zero)
    pis_cofins = sum((b.pis + b.cofins for b in breakdowns), zero)
    total = icms + ipi + pis_cofins
    return TaxEstimateReport(
        total=total,
        icms=icms,
        ipi=ipi,
        pis_cofins=pis_cofins,
        diferenca=total - core.imposto_declarado,
        ncm_desconhecido=ncm_desconhecido,
        premissas=tuple(premissas),
        data_calculo=(now or datetime.now(UTC)).isoformat(),
        itens=tuple(breakdowns),
    )
