from __future__ import annotations

import asyncio
import logging

from requests import get, post

from estimador import config
from estimador.models.report import RateQuote
from estimador.services.exceptions import RateServiceError
from estimador.services.http_retry import RATE_SERVICE_PING, raise_if_retryable, retry_call

logger = logging.getLogger(__name__)


def build_payload(ncm: str, uf_origem: str, uf_destino: str, nao_contribuinte: bool) -> dict:
    """Request body understood by the /api/get-tax-rates endpoint."""
    return {
        "ncm": ncm,
        "ufOrigem": uf_origem,
        "ufDestino": uf_destino,
        "isNaoContribuinte": nao_contribuinte,
    }


class HttpRateLookup:
    """Rate lookup backed by the tax-rate HTTP service.

    One POST per call, no retries: a failed lookup is the caller's cue to
    use the static fallback table.
    """

    def __init__(
        self,
        url: str,
        *,
        timeout: float = config.RATE_SERVICE_TIMEOUT,
        api_key: str | None = None,
    ) -> None:
        self.url = url
        self.timeout = timeout
        self.api_key = api_key

    @classmethod
    def from_config(cls) -> HttpRateLookup | None:
        """Build a lookup from settings/env, or None when no service URL is configured."""
        url = config.get_rate_service_url()
        if not url:
            return None
        return cls(
            url,
            timeout=config.get_rate_service_timeout(),
            api_key=config.get_rate_api_key(),
        )

    def _headers(self) -> dict[str, str]:
        if not self.api_key:
            return {}
        return {"Authorization": f"Bearer {self.api_key}"}

    def fetch(
        self, ncm: str, uf_origem: str, uf_destino: str, nao_contribuinte: bool
    ) -> RateQuote | None:
        """Blocking lookup. Raises on transport or HTTP errors, returns None on a bad body."""
        resp = post(
            self.url,
            json=build_payload(ncm, uf_origem, uf_destino, nao_contribuinte),
            headers=self._headers(),
            timeout=self.timeout,
        )
        if not resp.ok:
            body = resp.text[:500] if resp.text else ""
            raise RateServiceError(
                f"Erro no serviço de alíquotas ({resp.status_code}): {body}",
                status_code=resp.status_code,
            )
        try:
            data = resp.json()
        except ValueError:
            logger.warning("Resposta não-JSON do serviço de alíquotas para NCM %s", ncm)
            return None
        quote = RateQuote.parse(data)
        if quote is None:
            logger.warning("Resposta malformada do serviço de alíquotas para NCM %s: %r", ncm, data)
        return quote

    async def __call__(
        self, ncm: str, uf_origem: str, uf_destino: str, nao_contribuinte: bool
    ) -> RateQuote | None:
        return await asyncio.to_thread(self.fetch, ncm, uf_origem, uf_destino, nao_contribuinte)


def check_rate_service(url: str, timeout: float = config.RATE_SERVICE_TIMEOUT) -> int:
    """Probe the rate service with a GET and return the HTTP status.

    Any answer proves the endpoint is reachable; a 405 is expected since
    lookups are POST-only. Transient statuses and connection errors are
    retried, then re-raised.
    """

    def _do_get():
        resp = get(url, timeout=timeout)
        raise_if_retryable(resp, RATE_SERVICE_PING)
        return resp

    return retry_call(_do_get, RATE_SERVICE_PING).status_code
