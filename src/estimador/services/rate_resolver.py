from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from decimal import Decimal
from types import MappingProxyType
from typing import Any

from estimador.models.report import (
    MVA_AUTOPECAS_PADRAO,
    RateQuote,
    RateSource,
    ResolvedProductRate,
)
from estimador.utils.validators import clean_ncm

logger = logging.getLogger(__name__)

# (ncm, uf_origem, uf_destino, nao_contribuinte) -> quote or None
RateLookup = Callable[[str, str, str, bool], Awaitable[Any]]

IPI_RATES_FALLBACK = MappingProxyType({
    "87082999": Decimal("4.88"),  # outros acessórios de carroçaria
    "87087090": Decimal("4.88"),  # rodas e suas partes
    "40169990": Decimal("4.23"),  # outras obras de borracha vulcanizada
    "84099112": Decimal("3.25"),  # pistões
    "85111000": Decimal("3.25"),  # velas de ignição
    "84212300": Decimal("3.25"),  # filtros de óleo
    "87083090": Decimal("3.25"),  # outras partes de freios
})


class RateResolver:
    """Resolves IPI rate and ST margin per NCM for a single estimate run.

    Owns the run's memo: each distinct cleaned NCM is looked up at most once,
    and the memo dies with the resolver. Never share an instance between
    invoices, the margin depends on the state pair.
    """

    def __init__(
        self,
        lookup: RateLookup | None,
        uf_origem: str,
        uf_destino: str,
        nao_contribuinte: bool,
    ) -> None:
        self._lookup = lookup
        self.uf_origem = uf_origem
        self.uf_destino = uf_destino
        self.nao_contribuinte = nao_contribuinte
        self._tasks: dict[str, asyncio.Future[ResolvedProductRate]] = {}

    async def resolve(self, codigo_ncm: str | None) -> ResolvedProductRate:
        ncm = clean_ncm(codigo_ncm)
        if not ncm:
            return ResolvedProductRate(ncm="", source=RateSource.UNRESOLVED)
        task = self._tasks.get(ncm)
        if task is None:
            task = asyncio.ensure_future(self._resolve_uncached(ncm))
            self._tasks[ncm] = task
        return await task

    async def resolve_all(self, codes: Iterable[str | None]) -> list[ResolvedProductRate]:
        """Resolve every code concurrently; the result is aligned with *codes*."""
        return list(await asyncio.gather(*(self.resolve(c) for c in codes)))

    async def _resolve_uncached(self, ncm: str) -> ResolvedProductRate:
        quote = await self._safe_lookup(ncm)
        if quote is not None:
            return ResolvedProductRate(
                ncm=ncm,
                source=RateSource.LOOKUP,
                ipi_aliquota=quote.ipi_aliquota,
                mva=quote.mva_st_ajustada,
            )
        ipi = IPI_RATES_FALLBACK.get(ncm)
        if ipi is not None:
            return ResolvedProductRate(
                ncm=ncm, source=RateSource.FALLBACK, ipi_aliquota=ipi, mva=MVA_AUTOPECAS_PADRAO
            )
        logger.info("NCM %s sem alíquota conhecida", ncm)
        return ResolvedProductRate(ncm=ncm, source=RateSource.UNRESOLVED)

    async def _safe_lookup(self, ncm: str) -> RateQuote | None:
        if self._lookup is None:
            return None
        try:
            answer = await self._lookup(ncm, self.uf_origem, self.uf_destino, self.nao_contribuinte)
        except Exception:
            logger.warning("Consulta de alíquotas falhou para NCM %s", ncm, exc_info=True)
            return None
        quote = RateQuote.parse(answer)
        if answer is not None and quote is None:
            logger.warning("Consulta de alíquotas devolveu formato inválido para NCM %s", ncm)
        return quote
