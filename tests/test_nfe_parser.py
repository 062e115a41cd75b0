from __future__ import annotations

from decimal import Decimal

import pytest

from conftest import nfe_xml
from estimador.models.invoice import TaxRegime
from estimador.services.estimator import estimate_sync
from estimador.services.exceptions import NFeParseError
from estimador.services.nfe_parser import parse_nfe, parse_nfe_file


class TestParseNfe:
    def test_core_fields(self):
        core, _ = parse_nfe(nfe_xml(uf_emit="SP", uf_dest="ba", crt="3", ind_ie_dest="9"))
        assert core.chave_acesso == "35240812345678000199550010000012341000012345"
        assert core.numero == "1234"
        assert core.data_emissao == "2024-08-20T10:00:00-03:00"
        assert core.uf_emitente == "SP"
        assert core.uf_destinatario == "BA"
        assert core.is_nao_contribuinte
        assert core.regime_tributario is TaxRegime.NORMAL
        assert core.nome_emitente == "AUTOPECAS EXEMPLO LTDA"
        assert core.nome_destinatario == "OFICINA CLIENTE LTDA"
        assert core.doc_destinatario == "98765432000188"
        assert core.valor_total == Decimal("1048.80")

    def test_declared_tax_sums_icmstot(self):
        core, _ = parse_nfe(nfe_xml())
        # vICMS + vIPI + vPIS + vCOFINS; vICMSDeson is not part of it
        assert core.imposto_declarado == Decimal("274.08")

    def test_items(self):
        _, items = parse_nfe(nfe_xml())
        assert len(items) == 1
        item = items[0]
        assert item.codigo == "P001"
        assert item.codigo_ncm == "87082999"
        assert item.descricao == "PARACHOQUE DIANTEIRO"
        assert item.quantidade == Decimal("2.0000")
        assert item.unidade == "UN"
        assert item.valor_unitario == Decimal("500.00")
        assert item.valor_base == Decimal("1000")
        assert item.cst_icms == "00"

    def test_csosn(self):
        _, items = parse_nfe(
            nfe_xml(
                crt="1",
                items=[
                    {
                        "cProd": "S1", "NCM": "40169990", "xProd": "BORRACHA",
                        "qCom": "1", "vUnCom": "10.00", "vProd": "10.00",
                        "icms": "<ICMSSN102><orig>0</orig><CSOSN>102</CSOSN></ICMSSN102>",
                    }
                ],
            )
        )
        assert items[0].cst_icms == "102"

    def test_multiple_items_keep_order(self):
        base = {"xProd": "X", "qCom": "1", "vUnCom": "1.00", "vProd": "1.00",
                "icms": "<ICMS40><CST>40</CST></ICMS40>"}
        _, items = parse_nfe(
            nfe_xml(items=[{**base, "cProd": "A", "NCM": "1"}, {**base, "cProd": "B", "NCM": "2"}])
        )
        assert [i.codigo for i in items] == ["A", "B"]
        assert all(i.cst_icms == "40" for i in items)

    def test_nfe_proc_wrapper(self):
        core, items = parse_nfe(nfe_xml(proc=True))
        assert core.uf_emitente == "SP"
        assert len(items) == 1

    @pytest.mark.parametrize(("crt", "regime"), [("1", TaxRegime.SIMPLES), ("2", TaxRegime.UNKNOWN)])
    def test_regime(self, crt, regime):
        core, _ = parse_nfe(nfe_xml(crt=crt))
        assert core.regime_tributario is regime

    def test_without_namespace(self):
        xml = nfe_xml().replace(b' xmlns="http://www.portalfiscal.inf.br/nfe"', b"")
        core, items = parse_nfe(xml)
        assert core.uf_emitente == "SP"
        assert len(items) == 1

    def test_accepts_str(self):
        core, _ = parse_nfe(nfe_xml().decode())
        assert core.uf_emitente == "SP"

    def test_parse_file(self, tmp_path):
        path = tmp_path / "nota.xml"
        path.write_bytes(nfe_xml())
        core, items = parse_nfe_file(path)
        assert core.numero == "1234"
        assert len(items) == 1

    def test_parsed_invoice_estimates(self):
        core, items = parse_nfe(nfe_xml())
        report = estimate_sync(core, items)
        assert report.total == Decimal("274.084")
        assert report.diferenca == Decimal("0.004")


class TestParseErrors:
    def test_malformed_xml(self):
        with pytest.raises(NFeParseError, match="Falha ao parsear XML"):
            parse_nfe(b"<NFe><infNFe>")

    def test_no_nfe_tag(self):
        with pytest.raises(NFeParseError, match="<NFe>"):
            parse_nfe(b"<outro/>")

    @pytest.mark.parametrize("tag", ["ide", "dest", "total"])
    def test_missing_mandatory_tag(self, tag):
        xml = nfe_xml().decode()
        start = xml.index(f"<{tag}>")
        end = xml.index(f"</{tag}>") + len(f"</{tag}>")
        with pytest.raises(NFeParseError, match=f"<{tag}>"):
            parse_nfe(xml[:start] + xml[end:])

    def test_missing_ender_emit(self):
        xml = nfe_xml().decode()
        start = xml.index("<enderEmit>")
        end = xml.index("</enderEmit>") + len("</enderEmit>")
        with pytest.raises(NFeParseError, match="enderEmit"):
            parse_nfe(xml[:start] + xml[end:])

    def test_missing_id(self):
        xml = nfe_xml().replace(b'Id="NFe35240812345678000199550010000012341000012345" ', b"")
        with pytest.raises(NFeParseError, match="chave de acesso"):
            parse_nfe(xml)
