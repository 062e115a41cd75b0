from __future__ import annotations

import logging
from decimal import Decimal
from pathlib import Path

from lxml import etree

from estimador.config import NFE_NS
from estimador.models.invoice import InvoiceCore, LineItem, TaxRegime
from estimador.services.exceptions import NFeParseError
from estimador.utils.validators import normalize_uf, parse_decimal

logger = logging.getLogger(__name__)

# ICMSTot fields that make up the tax declared on the invoice
_TAX_TOTAL_TAGS = ("vICMS", "vST", "vFCPST", "vII", "vIPI", "vPIS", "vCOFINS", "vOutro")

_PARSER = etree.XMLParser(resolve_entities=False, no_network=True, remove_blank_text=True)


def _find(el: etree._Element | None, tag: str) -> etree._Element | None:
    """First descendant named *tag*, with or without the NF-e namespace."""
    if el is None:
        return None
    found = el.find(f".//{{{NFE_NS}}}{tag}")
    if found is None:
        found = el.find(f".//{tag}")
    return found


def _text(el: etree._Element | None, tag: str) -> str:
    found = _find(el, tag)
    if found is None or found.text is None:
        return ""
    return found.text.strip()


def _require(el: etree._Element | None, tag: str, where: str = "") -> etree._Element:
    found = _find(el, tag)
    if found is None:
        suffix = f" dentro de <{where}>" if where else ""
        raise NFeParseError(f"Estrutura de NFe inválida: Faltando tag obrigatória <{tag}>{suffix}.")
    return found


def _local_name(el: etree._Element) -> str:
    return etree.QName(el).localname


def _cst_icms(det: etree._Element) -> str:
    """CST or CSOSN of the item's ICMS group (ICMS00, ICMSSN102, ...)."""
    icms = _find(det, "ICMS")
    if icms is None:
        return ""
    for group in icms:
        if not isinstance(group.tag, str):
            continue
        for child in group:
            if isinstance(child.tag, str) and _local_name(child) in ("CST", "CSOSN"):
                return (child.text or "").strip()
    return ""


def _optional_decimal(el: etree._Element, tag: str) -> Decimal | None:
    raw = _text(el, tag)
    return parse_decimal(raw) if raw else None


def _parse_item(det: etree._Element) -> LineItem | None:
    prod = _find(det, "prod")
    if prod is None:
        return None
    return LineItem(
        codigo=_text(prod, "cProd"),
        codigo_ncm=_text(prod, "NCM"),
        descricao=_text(prod, "xProd"),
        quantidade=_optional_decimal(prod, "qCom"),
        unidade=_text(prod, "uCom"),
        valor_unitario=_optional_decimal(prod, "vUnCom"),
        valor_total=_optional_decimal(prod, "vProd"),
        cst_icms=_cst_icms(det),
    )


def _locate_nfe(root: etree._Element) -> etree._Element:
    if _local_name(root) == "NFe":
        return root
    nfe = _find(root, "NFe")
    if nfe is None:
        raise NFeParseError("Estrutura de NFe inválida: tag <NFe> não encontrada.")
    return nfe


def parse_nfe(xml: bytes | str) -> tuple[InvoiceCore, list[LineItem]]:
    """Read an NF-e (<NFe> or <nfeProc>) into the estimator's input types."""
    if isinstance(xml, str):
        xml = xml.encode("utf-8")
    try:
        root = etree.fromstring(xml, _PARSER)
    except etree.XMLSyntaxError as e:
        raise NFeParseError(f"Falha ao parsear XML: {e}") from e

    nfe = _locate_nfe(root)
    inf = _find(nfe, "infNFe")
    if inf is None:
        raise NFeParseError("Estrutura de NFe inválida: tag <infNFe> não encontrada.")

    ide = _require(inf, "ide")
    emit = _require(inf, "emit")
    ender_emit = _require(emit, "enderEmit", "emit")
    dest = _require(inf, "dest")
    total = _require(inf, "total")
    icms_tot = _require(total, "ICMSTot", "total")

    chave = (inf.get("Id") or "").replace("NFe", "").strip()
    if not chave:
        raise NFeParseError(
            "Estrutura de NFe inválida: Atributo 'Id' da tag <infNFe> não encontrado, "
            "não foi possível extrair a chave de acesso."
        )

    imposto_total = sum(
        (parse_decimal(_text(icms_tot, tag)) for tag in _TAX_TOTAL_TAGS), Decimal("0")
    )
    ender_dest = _find(dest, "enderDest")

    core = InvoiceCore(
        uf_emitente=normalize_uf(_text(ender_emit, "UF")),
        uf_destinatario=normalize_uf(_text(ender_dest, "UF")) or None,
        indicador_ie_destinatario=_text(dest, "indIEDest") or None,
        regime_tributario=TaxRegime.from_crt(_text(emit, "CRT")),
        imposto_declarado=imposto_total,
        chave_acesso=chave,
        numero=_text(ide, "nNF") or "0",
        data_emissao=_text(ide, "dhEmi"),
        nome_emitente=_text(emit, "xNome"),
        nome_destinatario=_text(dest, "xNome"),
        doc_destinatario=_text(dest, "CNPJ") or _text(dest, "CPF"),
        valor_total=parse_decimal(_text(icms_tot, "vNF")),
    )

    items = []
    for det in inf.iterfind(f"{{{NFE_NS}}}det"):
        item = _parse_item(det)
        if item is not None:
            items.append(item)
    if not items:
        for det in inf.iterfind("det"):
            item = _parse_item(det)
            if item is not None:
                items.append(item)

    logger.debug("NF-e %s: %d itens", chave, len(items))
    return core, items


def parse_nfe_file(path: str | Path) -> tuple[InvoiceCore, list[LineItem]]:
    return parse_nfe(Path(path).read_bytes())
