from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from datetime import datetime

from estimador.models.invoice import InvoiceCore, LineItem, TaxRegime
from estimador.models.report import RateSource, ResolvedProductRate, TaxEstimateReport
from estimador.services.item_calculator import compute_item, is_cst_isento
from estimador.services.jurisdiction import state_rate
from estimador.services.premissas import Premissas, aggregate
from estimador.services.rate_resolver import RateLookup, RateResolver

logger = logging.getLogger(__name__)

_NO_RATE = ResolvedProductRate(ncm="", source=RateSource.UNRESOLVED)


async def estimate(
    core: InvoiceCore,
    items: Sequence[LineItem],
    lookup: RateLookup | None = None,
    *,
    now: datetime | None = None,
) -> TaxEstimateReport:
    """Estimate the taxes of an invoice and compare them with the declared amount.

    *lookup* is the external rate source; None runs offline on the fallback
    table. Lookup failures never propagate, they degrade to the fallback.
    """
    origem = state_rate(core.uf_emitente)
    destino = state_rate(core.uf_destinatario) if core.uf_destinatario else origem
    simples = core.regime_tributario is TaxRegime.SIMPLES

    premissas = Premissas()
    breakdowns = []
    sem_ncm = False

    if simples:
        # No lookups: IPI and ICMS are part of the DAS
        for item in items:
            sem_ncm = sem_ncm or not item.ncm_limpo
            breakdowns.append(compute_item(item, core, origem, destino, _NO_RATE))
    else:
        resolver = RateResolver(lookup, origem.uf, destino.uf, core.is_nao_contribuinte)
        rates = await resolver.resolve_all(item.codigo_ncm for item in items)
        for item, rate in zip(items, rates):
            if rate.ncm:
                premissas.add_rate(rate)
            if not rate.resolved:
                premissas.add_unknown(item)
            if is_cst_isento(item.cst_icms):
                premissas.add_cst_isento(item.cst_icms)
            breakdowns.append(compute_item(item, core, origem, destino, rate))

    report = aggregate(
        core,
        breakdowns,
        premissas.render(core, origem, destino),
        ncm_desconhecido=premissas.has_unknown or sem_ncm,
        now=now,
    )
    logger.debug(
        "Estimativa %s: total=%s declarado=%s itens=%d",
        core.chave_acesso or "-",
        report.total,
        core.imposto_declarado,
        len(breakdowns),
    )
    return report


def estimate_sync(
    core: InvoiceCore,
    items: Sequence[LineItem],
    lookup: RateLookup | None = None,
) -> TaxEstimateReport:
    """Blocking wrapper around estimate() for callers without an event loop."""
    return asyncio.run(estimate(core, items, lookup))
