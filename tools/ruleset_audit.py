from __future__ import annotations

import argparse
import hashlib
import json
import os
import re
import sys
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional, Sequence

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from dto import TRIBUTOS_DAS
from errors import InternalError
from fiscal_tables import montar_tabelas
from ruleset_loader import (
    DEFAULT_RULESET_ID,
    get_baseline_mei_params,
    get_baseline_presumido_params,
    get_baseline_simples_tables,
    get_mei_params,
    get_presumido_params,
    get_simples_tables,
    load_ruleset,
)

SIMPLES_ANEXOS_ESPERADOS = ("I", "II", "III", "IV", "V")
ANEXOS_FATOR_R_ESPERADOS = ("III", "IV", "V")
FAIXAS_POR_ANEXO = 6
PRESUMIDO_CHAVES_OBRIGATORIAS = (
    "irpj",
    "adicional_irpj",
    "csll",
    "limite_adicional_irpj_mensal",
    "meses_por_periodicidade",
    "percentual_presuncao",
)
PERIODICIDADES_ESPERADAS = ("mensal", "trimestral", "anual")
MEI_ATIVIDADES_ESPERADAS = ("comercio", "servicos", "comercio_servicos")
CHAVE_ATIVIDADE_RE = re.compile(r"^[a-z_]+$")
TOLERANCIA = 1e-6

CHECKED_FILES = (
    "simples_tables.json",
    "presumido_params.json",
    "mei_params.json",
)
AUSENTE = "<ausente>"


@dataclass(frozen=True)
class CheckResult:
    name: str
    status: str  # PASS | FAIL
    expected: Any = None
    actual: Any = None
    details: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _check(ok: bool, name: str, expected: Any = None, actual: Any = None, details: str = "") -> CheckResult:
    if ok:
        return CheckResult(name, "PASS", details=details)
    return CheckResult(name, "FAIL", expected=expected, actual=actual, details=details)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_percentual(value: Any, *, inclui_zero: bool = True) -> bool:
    if not _is_number(value):
        return False
    return (0 <= value <= 100) if inclui_zero else (0 < value <= 100)


def _sha256(payload: Any) -> str:
    canonico = json.dumps(payload, ensure_ascii=False, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonico.encode("utf-8")).hexdigest()


def _divergencias(esperado: Any, atual: Any, caminho: str) -> Iterator[Dict[str, Any]]:
    """Percorre baseline e ruleset em paralelo e emite uma entrada por divergencia."""
    if type(esperado) is not type(atual):
        yield {"path": caminho, "expected": esperado, "actual": atual, "details": "tipo diferente"}
    elif isinstance(esperado, dict):
        for chave in sorted(set(esperado) | set(atual)):
            sub = f"{caminho}.{chave}"
            if chave not in atual:
                yield {"path": sub, "expected": esperado[chave], "actual": AUSENTE, "details": "chave ausente no ruleset"}
            elif chave not in esperado:
                yield {"path": sub, "expected": AUSENTE, "actual": atual[chave], "details": "chave extra no ruleset"}
            else:
                yield from _divergencias(esperado[chave], atual[chave], sub)
    elif isinstance(esperado, list) and len(esperado) != len(atual):
        yield {"path": caminho, "expected": len(esperado), "actual": len(atual), "details": "tamanho de lista diferente"}
    elif isinstance(esperado, list):
        for idx, (item_esperado, item_atual) in enumerate(zip(esperado, atual)):
            yield from _divergencias(item_esperado, item_atual, f"{caminho}[{idx}]")
    elif esperado != atual:
        yield {"path": caminho, "expected": esperado, "actual": atual, "details": "valor diferente"}


def _simples_sentinels(metadata: Dict[str, Any]) -> List[Dict[str, Any]]:
    audit_cfg = metadata.get("audit_sentinels")
    sentinels = audit_cfg.get("simples") if isinstance(audit_cfg, dict) else None
    if not isinstance(sentinels, list):
        return []
    return [item for item in sentinels if isinstance(item, dict)]


def _validate_partilha(anexo: str, faixas: List[Any]) -> CheckResult:
    problemas: List[str] = []
    for idx, faixa in enumerate(faixas, start=1):
        partilha = faixa.get("percentuais_partilha") if isinstance(faixa, dict) else None
        if not isinstance(partilha, dict):
            problemas.append(f"faixa {idx}: percentuais_partilha ausente")
            continue
        faltantes = [tributo for tributo in TRIBUTOS_DAS if not _is_percentual(partilha.get(tributo))]
        if faltantes:
            problemas.append(f"faixa {idx}: tributos invalidos {faltantes}")
            continue
        soma = sum(float(partilha[tributo]) for tributo in TRIBUTOS_DAS)
        if abs(soma - 100.0) > TOLERANCIA:
            problemas.append(f"faixa {idx}: soma={soma:.4f}")
    return _check(
        not problemas,
        f"Simples: anexo {anexo} partilha do DAS soma 100%",
        expected=f"{', '.join(TRIBUTOS_DAS)} em [0, 100] somando 100",
        actual=problemas,
    )


def _validate_anexo(anexo: str, faixas: Any, limite_simples: Any) -> List[CheckResult]:
    if not isinstance(faixas, list):
        return [
            _check(
                False,
                f"Simples: anexo {anexo} existe",
                expected=f"lista de {FAIXAS_POR_ANEXO} faixas",
                actual=type(faixas).__name__,
            )
        ]

    checks = [
        _check(
            len(faixas) == FAIXAS_POR_ANEXO,
            f"Simples: anexo {anexo} possui {FAIXAS_POR_ANEXO} faixas",
            expected=FAIXAS_POR_ANEXO,
            actual=len(faixas),
        )
    ]

    limites: List[float] = []
    invalidos: List[str] = []
    for idx, faixa in enumerate(faixas, start=1):
        faixa = faixa if isinstance(faixa, dict) else {}
        limite = faixa.get("limite_superior")
        if _is_number(limite) and limite > 0:
            limites.append(float(limite))
        else:
            invalidos.append(f"faixa {idx}: limite_superior={limite!r}")
        aliq = faixa.get("aliquota_nominal")
        if not (_is_percentual(aliq) and aliq < 100):
            invalidos.append(f"faixa {idx}: aliquota_nominal={aliq!r}")
        pd = faixa.get("parcela_deduzir")
        if not (_is_number(pd) and pd >= 0):
            invalidos.append(f"faixa {idx}: parcela_deduzir={pd!r}")
    checks.append(
        _check(
            not invalidos,
            f"Simples: anexo {anexo} valores validos",
            expected="limite > 0, aliquota em [0, 100), parcela >= 0",
            actual=invalidos,
        )
    )

    crescente = all(atual > anterior for anterior, atual in zip(limites, limites[1:]))
    checks.append(
        _check(
            len(limites) == len(faixas) and crescente,
            f"Simples: anexo {anexo} limites crescentes",
            expected="estritamente crescente",
            actual=limites,
        )
    )

    ultimo = limites[-1] if limites else None
    cobre = ultimo is not None and _is_number(limite_simples) and abs(ultimo - float(limite_simples)) < TOLERANCIA
    checks.append(
        _check(
            cobre,
            f"Simples: anexo {anexo} cobre receitas ate o limite",
            expected=limite_simples,
            actual=ultimo,
        )
    )
    checks.append(_validate_partilha(anexo, faixas))
    return checks


def _validate_sentinels(anexos: Dict[str, Any], sentinels: Sequence[Dict[str, Any]]) -> List[CheckResult]:
    checks: List[CheckResult] = []
    for sentinel in sentinels:
        anexo = str(sentinel.get("anexo", "")).strip()
        faixa = sentinel.get("faixa")
        esperada = sentinel.get("aliquota_nominal")
        if not anexo or not isinstance(faixa, int) or faixa <= 0 or not _is_number(esperada):
            checks.append(_check(False, "Sentinela Simples: estrutura", details=f"Sentinela invalida: {sentinel}"))
            continue

        tabela = anexos.get(anexo)
        linha = tabela[faixa - 1] if isinstance(tabela, list) and len(tabela) >= faixa else None
        atual = linha.get("aliquota_nominal") if isinstance(linha, dict) else None
        checks.append(
            _check(
                _is_number(atual) and abs(float(atual) - float(esperada)) < TOLERANCIA,
                f"Sentinela Simples: Anexo {anexo} faixa {faixa}",
                expected=esperada,
                actual=atual,
                details="" if linha is not None else "Faixa nao encontrada.",
            )
        )
    return checks


def validate_simples_tables(
    simples_tables: Dict[str, Any],
    simples_sentinels: Optional[Sequence[Dict[str, Any]]] = None,
) -> List[CheckResult]:
    anexos = simples_tables.get("anexos")
    if not isinstance(anexos, dict):
        return [_check(False, "Simples: estrutura anexos", expected="dict", actual=type(anexos).__name__)]

    limite = simples_tables.get("limite_elegibilidade_simples")
    base = simples_tables.get("aliquota_base")
    fator_r_limite = simples_tables.get("fator_r_limite")
    checks = [
        _check(
            _is_number(limite) and limite > 0,
            "Simples: limite_elegibilidade_simples presente e valido",
            expected="numero > 0",
            actual=limite,
        ),
        _check(
            base == "percentual_0_100",
            "Simples: aliquota_base definida como percentual_0_100",
            expected="percentual_0_100",
            actual=base,
        ),
        _check(
            _is_number(fator_r_limite) and 0 <= fator_r_limite <= 1,
            "Simples: fator_r_limite presente e valido",
            expected="numero >= 0 e <= 1",
            actual=fator_r_limite,
        ),
    ]

    reducoes = simples_tables.get("reducao_fator_r")
    if not isinstance(reducoes, dict):
        checks.append(_check(False, "Simples: reducao_fator_r", expected="dict", actual=type(reducoes).__name__))
    else:
        for anexo in ANEXOS_FATOR_R_ESPERADOS:
            fator = reducoes.get(anexo)
            checks.append(
                _check(
                    _is_number(fator) and 0 <= fator < 1,
                    f"Simples: reducao Fator R do anexo {anexo} em [0, 1)",
                    expected="numero em [0, 1)",
                    actual=fator,
                )
            )
        extras = sorted(set(reducoes) - set(ANEXOS_FATOR_R_ESPERADOS))
        checks.append(
            _check(
                not extras,
                "Simples: reducao Fator R apenas para anexos III/IV/V",
                expected=list(ANEXOS_FATOR_R_ESPERADOS),
                actual=extras,
            )
        )

    for anexo in SIMPLES_ANEXOS_ESPERADOS:
        checks.extend(_validate_anexo(anexo, anexos.get(anexo), limite))

    checks.extend(_validate_sentinels(anexos, simples_sentinels or []))
    return checks


def validate_required_keys(payload: Dict[str, Any], section_name: str, required_keys: Sequence[str]) -> List[CheckResult]:
    return [
        _check(
            key in payload,
            f"{section_name}: chave obrigatoria '{key}'",
            expected="presente",
            actual="ausente",
        )
        for key in required_keys
    ]


def validate_presumido_params(payload: Dict[str, Any]) -> List[CheckResult]:
    checks = validate_required_keys(payload, "Presumido", PRESUMIDO_CHAVES_OBRIGATORIAS)

    for key in ("irpj", "adicional_irpj", "csll"):
        value = payload.get(key)
        checks.append(
            _check(
                _is_number(value) and 0 < value < 100,
                f"Presumido: aliquota '{key}' valida",
                expected="percentual em (0, 100)",
                actual=value,
            )
        )

    limite = payload.get("limite_adicional_irpj_mensal")
    checks.append(
        _check(
            _is_number(limite) and limite > 0,
            "Presumido: limite_adicional_irpj_mensal valido",
            expected="numero > 0",
            actual=limite,
        )
    )

    meses = payload.get("meses_por_periodicidade")
    meses = meses if isinstance(meses, dict) else {}
    for periodicidade in PERIODICIDADES_ESPERADAS:
        valor = meses.get(periodicidade)
        checks.append(
            _check(
                isinstance(valor, int) and not isinstance(valor, bool) and valor > 0,
                f"Presumido: meses da periodicidade '{periodicidade}'",
                expected="inteiro > 0",
                actual=valor,
            )
        )

    catalogo = payload.get("percentual_presuncao")
    if not isinstance(catalogo, dict) or not catalogo:
        checks.append(
            _check(False, "Presumido: catalogo de presuncao", expected="objeto nao vazio", actual=type(catalogo).__name__)
        )
        return checks

    invalidos: List[str] = []
    for chave, item in catalogo.items():
        item = item if isinstance(item, dict) else {}
        if not CHAVE_ATIVIDADE_RE.match(str(chave)):
            invalidos.append(f"{chave}: chave fora de [a-z_]")
        for campo in ("percentual", "percentual_csll"):
            if not _is_percentual(item.get(campo), inclui_zero=False):
                invalidos.append(f"{chave}: {campo}={item.get(campo)!r}")
        descricao = item.get("descricao")
        if not isinstance(descricao, str) or not descricao.strip():
            invalidos.append(f"{chave}: descricao ausente")
    checks.append(
        _check(
            not invalidos,
            f"Presumido: catalogo de presuncao bem formado ({len(catalogo)} atividades)",
            expected="chaves [a-z_], percentual e percentual_csll em (0, 100], descricao",
            actual=invalidos,
        )
    )
    return checks


def validate_mei_params(payload: Dict[str, Any]) -> List[CheckResult]:
    limite = payload.get("limite_receita_mensal")
    checks = [
        _check(
            _is_number(limite) and limite > 0,
            "MEI: limite_receita_mensal valido",
            expected="numero > 0",
            actual=limite,
        )
    ]

    atividades = payload.get("atividades")
    if not isinstance(atividades, dict):
        checks.append(_check(False, "MEI: atividades", expected="dict", actual=type(atividades).__name__))
        return checks

    for atividade in MEI_ATIVIDADES_ESPERADAS:
        item = atividades.get(atividade)
        valor = item.get("valor_fixo") if isinstance(item, dict) else None
        checks.append(
            _check(
                _is_number(valor) and valor > 0,
                f"MEI: valor fixo da atividade '{atividade}'",
                expected="numero > 0",
                actual=valor,
            )
        )
    return checks


def validate_engine_tables(ruleset_id: str) -> List[CheckResult]:
    """Confere se o motor consegue montar as tabelas tipadas a partir do ruleset."""
    name = "Motor: tabelas tipadas montadas sem erro"
    try:
        montar_tabelas(ruleset_id)
    except InternalError as exc:
        return [_check(False, name, expected="sem erro", actual=exc.code, details=exc.message)]
    return [_check(True, name)]


def audit_ruleset(ruleset_id: str = DEFAULT_RULESET_ID) -> Dict[str, Any]:
    """Auditoria estrutural do ruleset e paridade com o baseline em evidence/."""
    metadata = load_ruleset(ruleset_id)
    ruleset = {
        "simples_tables.json": get_simples_tables(ruleset_id),
        "presumido_params.json": get_presumido_params(ruleset_id),
        "mei_params.json": get_mei_params(ruleset_id),
    }
    baseline = {
        "simples_tables.json": get_baseline_simples_tables(ruleset_id),
        "presumido_params.json": get_baseline_presumido_params(ruleset_id),
        "mei_params.json": get_baseline_mei_params(ruleset_id),
    }

    warnings: List[str] = []
    sentinels = _simples_sentinels(metadata)
    if not sentinels:
        warnings.append("WARNING: metadata sem audit_sentinels.simples; conferencia pontual de aliquotas ignorada.")

    checks = validate_simples_tables(ruleset["simples_tables.json"], simples_sentinels=sentinels)
    checks += validate_presumido_params(ruleset["presumido_params.json"])
    checks += validate_mei_params(ruleset["mei_params.json"])
    checks += validate_engine_tables(ruleset_id)

    json_diffs: List[Dict[str, Any]] = []
    for filename in CHECKED_FILES:
        diffs = list(_divergencias(baseline[filename], ruleset[filename], f"$.{filename}"))
        json_diffs.extend(diffs)
        checks.append(
            _check(
                not diffs,
                f"Baseline parity: {filename}",
                expected="igual ao baseline",
                actual=f"{len(diffs)} divergencia(s)",
            )
        )

    ruleset_hashes = {filename: _sha256(ruleset[filename]) for filename in CHECKED_FILES}
    baseline_hashes = {filename: _sha256(baseline[filename]) for filename in CHECKED_FILES}
    return {
        "ruleset_id": ruleset_id,
        "timestamp": datetime.now().isoformat(timespec="seconds"),
        "metadata": {key: metadata.get(key) for key in ("ruleset_id", "vigencia_inicio", "vigencia_fim", "descricao")},
        "checked_files": list(CHECKED_FILES),
        "ruleset_file_hashes": ruleset_hashes,
        "baseline_file_hashes": baseline_hashes,
        "ruleset_hash_sha256": _sha256(ruleset_hashes),
        "baseline_hash_sha256": _sha256(baseline_hashes),
        "overall_status": "PASS" if all(c.status == "PASS" for c in checks) else "FAIL",
        "checks": [c.to_dict() for c in checks],
        "differences": [c.to_dict() for c in checks if c.status == "FAIL"],
        "json_differences": json_diffs,
        "warnings": warnings,
    }


def _lista_ou_nenhum(itens: Sequence[str]) -> List[str]:
    return [f"- {item}" for item in itens] or ["- nenhum"]


def render_relatorio_auditoria(result: Dict[str, Any]) -> str:
    hashes_ruleset = result.get("ruleset_file_hashes", {})
    hashes_baseline = result.get("baseline_file_hashes", {})

    linhas = [
        "=== AUDITORIA DE RULESET ===",
        f"Ruleset: {result.get('ruleset_id')}",
        f"Gerado em: {result.get('timestamp')}",
        f"Status geral: {result.get('overall_status')}",
        f"Hash do ruleset (SHA-256): {result.get('ruleset_hash_sha256')}",
        f"Hash do baseline (SHA-256): {result.get('baseline_hash_sha256')}",
        "",
        "=== METADADOS ===",
    ]
    linhas += [f"{chave}: {valor}" for chave, valor in result.get("metadata", {}).items()]

    linhas += ["", "=== HASHES POR ARQUIVO ==="]
    for filename in result.get("checked_files", []):
        linhas.append(f"{filename}: ruleset={hashes_ruleset.get(filename)} baseline={hashes_baseline.get(filename)}")

    linhas += ["", "=== AVISOS ==="]
    linhas += _lista_ou_nenhum(result.get("warnings", []))

    linhas += ["", "=== CONFERENCIAS ==="]
    for check in result.get("checks", []):
        linhas.append(f"[{check['status']}] {check['name']}")
        if check["status"] == "FAIL":
            linhas.append(f"  esperado={check.get('expected')} | obtido={check.get('actual')}")
        if check.get("details"):
            linhas.append(f"  {check['details']}")

    linhas += ["", "=== DIVERGENCIAS JSON (baseline x ruleset) ==="]
    linhas += _lista_ou_nenhum(
        [
            f"{diff['path']}: esperado={diff['expected']} | obtido={diff['actual']} ({diff['details']})"
            for diff in result.get("json_differences", [])
        ]
    )
    return "\n".join(linhas)


def gravar_relatorio_auditoria(result: Dict[str, Any], output_dir: str = "outputs") -> str:
    os.makedirs(output_dir, exist_ok=True)
    carimbo = datetime.now().strftime("%Y%m%d_%H%M%S")
    path = os.path.join(output_dir, f"auditoria_{result.get('ruleset_id', 'ruleset')}_{carimbo}.txt")
    with open(path, "w", encoding="utf-8") as f:
        f.write(render_relatorio_auditoria(result) + "\n")
    return path


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Audita integridade estrutural e paridade com baseline de um ruleset fiscal.")
    parser.add_argument("--ruleset-id", default=DEFAULT_RULESET_ID)
    parser.add_argument("--output-dir", default="outputs")
    args = parser.parse_args(argv)

    try:
        result = audit_ruleset(args.ruleset_id)
    except (OSError, ValueError) as exc:
        print(f"Erro ao auditar ruleset '{args.ruleset_id}': {exc}")
        return 2

    print(f"Relatorio de auditoria gerado: {gravar_relatorio_auditoria(result, output_dir=args.output_dir)}")
    print(f"Status geral: {result['overall_status']}")
    return 0 if result["overall_status"] == "PASS" else 1


if __name__ == "__main__":
    raise SystemExit(main())
