from __future__ import annotations

import argparse
import getpass
import json
import logging
import sys
from importlib.resources import files
from pathlib import Path

USAGE = """\
Uso:
  estimador-nfe <arquivo.xml> [...] [--json] [--offline]
  estimador-nfe init
  estimador-nfe check
"""


def _upsert_env_var(env_file: Path, key: str, value: str) -> None:
    """Set or update a key=value pair in a .env file, creating it if needed."""
    from dotenv import set_key

    env_file.parent.mkdir(parents=True, exist_ok=True)
    if not env_file.exists():
        env_file.touch()
    set_key(str(env_file), key, value)


def _setup_api_key(config_dir: Path) -> bool:
    """Interactive API key setup. Returns True if a key was stored."""
    api_key = getpass.getpass("Chave de API do serviço de alíquotas (vazio para pular): ").strip()
    if not api_key:
        print("  Chave de API não configurada.")
        return False

    from estimador.config import _set_keyring_api_key

    if _set_keyring_api_key(api_key):
        print("  Chave armazenada no keychain do sistema.")
        return True
    env_file = config_dir / ".env"
    _upsert_env_var(env_file, "ESTIMADOR_RATE_API_KEY", api_key)
    print(f"  Keychain indisponível. Chave salva em {env_file}")
    return True


def _init_config() -> None:
    """Copy the bundled settings template to the user's config directory."""
    from estimador.config import get_config_dir

    config_dir = get_config_dir()
    config_dir.mkdir(parents=True, exist_ok=True)

    dest = config_dir / "settings.yaml.example"
    if dest.exists():
        print(f"  já existe: {dest}")
    else:
        src = files("estimador") / "templates" / "settings.yaml.example"
        dest.write_bytes(src.read_bytes())
        print(f"  criado: {dest}")

    print()
    print(f"Configuração: {config_dir}")
    print()
    try:
        _setup_api_key(config_dir)
    except (EOFError, KeyboardInterrupt):
        print()

    print()
    print("Próximos passos:")
    print(f"  1. cp {dest} {config_dir / 'settings.yaml'}")
    print("  2. Informe a URL do serviço de alíquotas em rate_service.url")
    print("  3. Execute: estimador-nfe <nota.xml>")


def _check_service() -> bool:
    """Probe the configured rate service. Returns True when it answered."""
    from estimador.config import get_rate_service_timeout, get_rate_service_url
    from estimador.services.rate_client import check_rate_service

    url = get_rate_service_url()
    if not url:
        print("Serviço de alíquotas não configurado (ESTIMADOR_RATE_SERVICE_URL ou settings.yaml).")
        print("As estimativas usarão apenas a tabela padrão de IPI.")
        return False
    try:
        status = check_rate_service(url, timeout=get_rate_service_timeout())
    except Exception as e:
        print(f"Erro: serviço de alíquotas inacessível em {url}: {e}")
        return False
    print(f"Serviço de alíquotas acessível em {url} (HTTP {status}).")
    return True


def _render_report(core, items, report) -> str:
    from estimador.utils.formatters import format_brl

    destino = core.uf_destinatario or core.uf_emitente
    lines = [
        f"NF-e {core.chave_acesso or '?'} nº {core.numero or '?'}: "
        f"{core.nome_emitente or 'emitente'} ({core.uf_emitente} -> {destino})",
        f"  Imposto declarado:  {format_brl(core.imposto_declarado)}",
        f"  Imposto estimado:   {format_brl(report.total)}",
        f"    ICMS:             {format_brl(report.icms)}",
        f"    IPI:              {format_brl(report.ipi)}",
        f"    PIS/COFINS:       {format_brl(report.pis_cofins)}",
        f"  Diferença:          {format_brl(report.diferenca)}",
    ]
    if report.ncm_desconhecido:
        lines.append("  AVISO: há itens com NCM desconhecido; IPI não calculado para eles.")
    if items:
        lines.append("")
        lines.append("Itens:")
        for item, tax in zip(items, report.itens):
            lines.append(
                f"  {item.codigo or '-'} {item.descricao[:40]}: base {format_brl(tax.base)}"
                f" | ICMS {format_brl(tax.icms)} | IPI {format_brl(tax.ipi)}"
                f" | PIS {format_brl(tax.pis)} | COFINS {format_brl(tax.cofins)}"
                f" | total {format_brl(tax.total)}"
            )
    lines.append("")
    lines.append("Premissas:")
    lines.extend(f"  {p}" for p in report.premissas)
    return "\n".join(lines)


def _estimate_files(paths: list[str], as_json: bool, offline: bool) -> bool:
    """Estimate every file. Returns False if any of them could not be read."""
    from estimador.services.estimator import estimate_sync
    from estimador.services.exceptions import NFeParseError
    from estimador.services.nfe_parser import parse_nfe_file
    from estimador.services.rate_client import HttpRateLookup

    lookup = None if offline else HttpRateLookup.from_config()
    ok = True
    results = []
    for path in paths:
        try:
            core, items = parse_nfe_file(path)
        except FileNotFoundError:
            print(f"Erro: arquivo não encontrado: {path}", file=sys.stderr)
            ok = False
            continue
        except NFeParseError as e:
            print(f"Erro em {path}: {e}", file=sys.stderr)
            ok = False
            continue
        except OSError as e:
            print(f"Erro: não foi possível ler {path}: {e}", file=sys.stderr)
            ok = False
            continue
        report = estimate_sync(core, items, lookup)
        if as_json:
            results.append({"arquivo": path, "chave_acesso": core.chave_acesso, **report.to_dict()})
        else:
            print(_render_report(core, items, report))
            print()
    if as_json:
        print(json.dumps(results, indent=2, ensure_ascii=False))
    return ok


def _parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="estimador-nfe", usage=USAGE)
    parser.add_argument("arquivos", nargs="*")
    parser.add_argument("--json", action="store_true", dest="as_json")
    parser.add_argument("--offline", action="store_true")
    return parser.parse_args(argv)


def main() -> None:
    """Entry point for the estimador-nfe CLI."""
    from estimador.config import get_log_level

    logging.basicConfig(level=get_log_level(), format="%(levelname)s %(name)s: %(message)s")

    if len(sys.argv) > 1 and sys.argv[1] == "init":
        _init_config()
        return
    if len(sys.argv) > 1 and sys.argv[1] == "check":
        if not _check_service():
            sys.exit(1)
        return

    args = _parse_args(sys.argv[1:])
    if not args.arquivos:
        print(USAGE)
        sys.exit(2)
    if not _estimate_files(args.arquivos, args.as_json, args.offline):
        sys.exit(1)


if __name__ == "__main__":
    main()
