from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from estimador.utils.validators import clean_ncm, normalize_uf, parse_decimal

INDICADOR_NAO_CONTRIBUINTE = "9"


class TaxRegime(Enum):
    """Emitter tax regime, collapsed from the NF-e CRT field."""

    SIMPLES = "1"
    NORMAL = "3"
    UNKNOWN = ""

    @classmethod
    def from_crt(cls, crt: object) -> TaxRegime:
        """Map a CRT code: 1 = Simples Nacional, 3 = Regime Normal, anything else unknown."""
        code = str(crt).strip() if crt is not None else ""
        if code == "1":
            return cls.SIMPLES
        if code == "3":
            return cls.NORMAL
        return cls.UNKNOWN


@dataclass(frozen=True)
class InvoiceCore:
    """Jurisdiction and regime data of one NF-e, as read by the estimator."""

    uf_emitente: str
    uf_destinatario: str | None = None
    indicador_ie_destinatario: str | None = None
    regime_tributario: TaxRegime = TaxRegime.UNKNOWN
    imposto_declarado: Decimal = Decimal("0")

    chave_acesso: str = ""
    numero: str = ""
    data_emissao: str = ""
    nome_emitente: str = ""
    nome_destinatario: str = ""
    doc_destinatario: str = ""
    valor_total: Decimal = Decimal("0")

    @property
    def is_interestadual(self) -> bool:
        destino = normalize_uf(self.uf_destinatario)
        return bool(destino) and destino != normalize_uf(self.uf_emitente)

    @property
    def is_nao_contribuinte(self) -> bool:
        return (self.indicador_ie_destinatario or "").strip() == INDICADOR_NAO_CONTRIBUINTE

    @classmethod
    def from_dict(cls, d: dict) -> InvoiceCore:
        """Create an InvoiceCore from a database row or JSON dict."""
        regime = d.get("regime_tributario_emitente", d.get("regime_tributario"))
        if not isinstance(regime, TaxRegime):
            regime = TaxRegime.from_crt(regime)
        ind_ie = d.get("indicador_ie_destinatario")
        return cls(
            uf_emitente=normalize_uf(d["uf_emitente"]),
            uf_destinatario=normalize_uf(d.get("uf_destinatario")) or None,
            indicador_ie_destinatario=str(ind_ie) if ind_ie is not None else None,
            regime_tributario=regime,
            imposto_declarado=parse_decimal(d.get("imposto_total")),
            chave_acesso=d.get("chave_acesso") or "",
            numero=str(d.get("numero") or ""),
            data_emissao=d.get("data_emissao") or "",
            nome_emitente=d.get("nome_emitente") or "",
            nome_destinatario=d.get("nome_destinatario") or "",
            doc_destinatario=d.get("doc_destinatario") or "",
            valor_total=parse_decimal(d.get("valor_total")),
        )


@dataclass(frozen=True)
class LineItem:
    """One <det> of the NF-e: product classification, quantities and ICMS situation."""

    codigo: str = ""
    codigo_ncm: str = ""
    descricao: str = ""
    quantidade: Decimal | None = None
    unidade: str = ""
    valor_unitario: Decimal | None = None
    valor_total: Decimal | None = None
    cst_icms: str = ""

    @property
    def valor_base(self) -> Decimal:
        """quantidade x valor_unitario, or the precomputed total when unit fields are absent."""
        if self.quantidade and self.valor_unitario:
            return self.quantidade * self.valor_unitario
        return self.valor_total or Decimal("0")

    @property
    def ncm_limpo(self) -> str:
        return clean_ncm(self.codigo_ncm)

    @classmethod
    def from_dict(cls, d: dict) -> LineItem:
        def opt_decimal(key: str) -> Decimal | None:
            value = d.get(key)
            if value is None or value == "":
                return None
            return parse_decimal(value)

        return cls(
            codigo=str(d.get("codigo") or ""),
            codigo_ncm=str(d.get("codigo_ncm") or ""),
            descricao=d.get("descricao") or "",
            quantidade=opt_decimal("quantidade"),
            unidade=d.get("unidade") or "",
            valor_unitario=opt_decimal("valor_unitario"),
            valor_total=opt_decimal("valor_total"),
            cst_icms=str(d.get("cst_icms") or "").strip(),
        )
