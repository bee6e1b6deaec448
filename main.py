from __future__ import annotations

import argparse
import json
import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

from errors import FiscalError
from report_formatters import (
    render_aliquotas_irpj,
    render_das_section,
    render_erro,
    render_irpj_section,
    render_mei_section,
)
from ruleset_loader import DEFAULT_RULESET_ID
from tax_engine import FiscalCalculationService

logger = logging.getLogger(__name__)


def _decimal_arg(valor: str) -> Decimal:
    # aceita virgula decimal (ex.: 40500,00)
    try:
        return Decimal(valor.strip().replace(",", "."))
    except InvalidOperation as exc:
        raise argparse.ArgumentTypeError(f"valor numerico invalido: {valor!r}") from exc


def _competencia_padrao(periodicidade: str = "mensal") -> str:
    agora = datetime.now()
    if periodicidade == "trimestral":
        trimestre = ((agora.month - 1) // 3) + 1
        return f"{agora.year}-T{trimestre}"
    if periodicidade == "anual":
        return agora.strftime("%Y")
    return agora.strftime("%Y-%m")


def _payload_das(args: argparse.Namespace) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "grossRevenue": args.receita,
        "annex": args.anexo,
        "competence": args.competencia or _competencia_padrao(),
    }
    if args.fator_r is not None:
        payload["factorR"] = args.fator_r
    return payload


def _payload_irpj(args: argparse.Namespace) -> Dict[str, Any]:
    return {
        "grossRevenue": args.receita,
        "activityKey": args.atividade,
        "competence": args.competencia or _competencia_padrao(args.periodicidade),
        "period": args.periodicidade,
    }


def _payload_aliquotas(args: argparse.Namespace) -> Dict[str, Any]:
    return {"activityKey": args.atividade, "year": args.ano}


def _payload_mei(args: argparse.Namespace) -> Dict[str, Any]:
    return {
        "grossRevenue": args.receita,
        "activity": args.atividade,
        "competence": args.competencia or _competencia_padrao(),
    }


_OPERACOES: Dict[str, tuple] = {
    "das": ("calcular_das", _payload_das, render_das_section),
    "irpj": ("calcular_irpj", _payload_irpj, render_irpj_section),
    "irpj-aliquotas": ("consultar_aliquotas_irpj", _payload_aliquotas, render_aliquotas_irpj),
    "mei": ("calcular_mei", _payload_mei, render_mei_section),
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Calculo de DAS (Simples/MEI) e IRPJ (Lucro Presumido)")
    parser.add_argument("--ruleset-id", default=DEFAULT_RULESET_ID)
    parser.add_argument("--json", action="store_true", help="Imprime a resposta JSON em vez do texto")
    parser.add_argument("--verbose", "-v", action="store_true", help="Habilita logs de depuracao")
    sub = parser.add_subparsers(dest="comando", required=True)

    das = sub.add_parser("das", help="DAS do Simples Nacional")
    das.add_argument("--receita", type=_decimal_arg, required=True, help="Receita bruta (RBT12)")
    das.add_argument("--anexo", required=True, help="I, II, III, IV ou V")
    das.add_argument("--competencia", help="YYYY-MM (padrao: mes atual)")
    das.add_argument("--fator-r", type=_decimal_arg, default=None, help="Razao folha/receita (0.28 = 28%%)")

    irpj = sub.add_parser("irpj", help="IRPJ no Lucro Presumido")
    irpj.add_argument("--receita", type=_decimal_arg, required=True)
    irpj.add_argument("--atividade", required=True, help="Chave da atividade (ex.: advocacia)")
    irpj.add_argument("--competencia", help="YYYY-MM, YYYY-Tn ou YYYY conforme a periodicidade")
    irpj.add_argument("--periodicidade", choices=("mensal", "trimestral", "anual"), default="mensal")

    aliquotas = sub.add_parser("irpj-aliquotas", help="Consulta percentuais de presuncao e aliquotas do IRPJ")
    aliquotas.add_argument("--atividade", default=None)
    aliquotas.add_argument("--ano", type=int, default=None)

    mei = sub.add_parser("mei", help="DAS-SIMEI do MEI")
    mei.add_argument("--receita", type=_decimal_arg, required=True, help="Receita bruta do mes")
    mei.add_argument("--atividade", required=True, help="comercio, servicos ou comercio_servicos")
    mei.add_argument("--competencia", help="YYYY-MM (padrao: mes atual)")
    return parser


def main(argv: Optional[list] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    metodo, montar_payload, render = _OPERACOES[args.comando]
    logger.debug("comando=%s ruleset_id=%s", args.comando, args.ruleset_id)
    try:
        service = FiscalCalculationService(args.ruleset_id)
        resposta = getattr(service, metodo)(montar_payload(args))
    except FiscalError as exc:
        resposta = {"success": False, "error": exc.to_dict()}

    if args.json:
        print(json.dumps(resposta, ensure_ascii=False, indent=2))
    elif resposta["success"]:
        print(render(resposta["data"]))
    else:
        print(render_erro(resposta["error"]))
    return 0 if resposta["success"] else 1


if __name__ == "__main__":
    raise SystemExit(main())
