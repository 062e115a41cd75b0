from __future__ import annotations

from decimal import Decimal

import pytest

from estimador.models.invoice import InvoiceCore, LineItem, TaxRegime
from estimador.models.report import RateQuote


class FakeLookup:
    """Async rate lookup returning canned answers and recording every call."""

    def __init__(self, answers: dict | None = None, error: Exception | None = None) -> None:
        self.answers = answers or {}
        self.error = error
        self.calls: list[tuple[str, str, str, bool]] = []

    async def __call__(self, ncm, uf_origem, uf_destino, nao_contribuinte):
        self.calls.append((ncm, uf_origem, uf_destino, nao_contribuinte))
        if self.error is not None:
            raise self.error
        return self.answers.get(ncm)


def nfe_xml(
    *,
    uf_emit: str = "SP",
    uf_dest: str = "SP",
    crt: str = "3",
    ind_ie_dest: str = "1",
    items: list[dict] | None = None,
    proc: bool = False,
) -> bytes:
    """Build a minimal namespaced NF-e document."""
    if items is None:
        items = [
            {
                "cProd": "P001",
                "NCM": "87082999",
                "xProd": "PARACHOQUE DIANTEIRO",
                "qCom": "2.0000",
                "uCom": "UN",
                "vUnCom": "500.00",
                "vProd": "1000.00",
                "icms": "<ICMS00><orig>0</orig><CST>00</CST></ICMS00>",
            }
        ]
    dets = "".join(
        f"""<det nItem="{n}">
          <prod>
            <cProd>{it['cProd']}</cProd><xProd>{it['xProd']}</xProd><NCM>{it['NCM']}</NCM>
            <uCom>{it.get('uCom', 'UN')}</uCom><qCom>{it['qCom']}</qCom>
            <vUnCom>{it['vUnCom']}</vUnCom><vProd>{it['vProd']}</vProd>
          </prod>
          <imposto><ICMS>{it['icms']}</ICMS></imposto>
        </det>"""
        for n, it in enumerate(items, start=1)
    )
    nfe = f"""<NFe xmlns="http://www.portalfiscal.inf.br/nfe">
      <infNFe Id="NFe35240812345678000199550010000012341000012345" versao="4.00">
        <ide><nNF>1234</nNF><dhEmi>2024-08-20T10:00:00-03:00</dhEmi></ide>
        <emit>
          <CNPJ>12345678000199</CNPJ><xNome>AUTOPECAS EXEMPLO LTDA</xNome>
          <enderEmit><xMun>SAO PAULO</xMun><UF>{uf_emit}</UF></enderEmit>
          <CRT>{crt}</CRT>
        </emit>
        <dest>
          <CNPJ>98765432000188</CNPJ><xNome>OFICINA CLIENTE LTDA</xNome>
          <enderDest><xMun>DESTINO</xMun><UF>{uf_dest}</UF></enderDest>
          <indIEDest>{ind_ie_dest}</indIEDest>
        </dest>
        {dets}
        <total><ICMSTot>
          <vBC>1048.80</vBC><vICMS>188.78</vICMS><vICMSDeson>0.00</vICMSDeson>
          <vST>0.00</vST><vFCPST>0.00</vFCPST><vProd>1000.00</vProd><vII>0.00</vII>
          <vIPI>48.80</vIPI><vPIS>6.50</vPIS><vCOFINS>30.00</vCOFINS><vOutro>0.00</vOutro>
          <vNF>1048.80</vNF>
        </ICMSTot></total>
      </infNFe>
    </NFe>"""
    if proc:
        nfe = f'<nfeProc xmlns="http://www.portalfiscal.inf.br/nfe" versao="4.00">{nfe}</nfeProc>'
    return f'<?xml version="1.0" encoding="UTF-8"?>{nfe}'.encode()


@pytest.fixture
def fake_lookup() -> FakeLookup:
    return FakeLookup()


@pytest.fixture
def core_sp_normal() -> InvoiceCore:
    return InvoiceCore(
        uf_emitente="SP",
        uf_destinatario="SP",
        indicador_ie_destinatario="1",
        regime_tributario=TaxRegime.NORMAL,
        imposto_declarado=Decimal("250.00"),
    )


@pytest.fixture
def item_parachoque() -> LineItem:
    return LineItem(
        codigo="P001",
        codigo_ncm="8708.29.99",
        descricao="PARACHOQUE DIANTEIRO",
        quantidade=Decimal("2"),
        unidade="UN",
        valor_unitario=Decimal("500"),
        valor_total=Decimal("1000"),
        cst_icms="00",
    )


@pytest.fixture
def quote_vela() -> RateQuote:
    return RateQuote(ipi_aliquota=Decimal("3.25"), mva_st_ajustada=Decimal("60"))
