from __future__ import annotations

from typing import Any, Dict, List, Mapping

from formatters import formatar_data_br, formatar_percentual, formatar_reais


def _num(valor: Any, formatador) -> str:
    if isinstance(valor, bool) or not isinstance(valor, (int, float)):
        return "N/D"
    return formatador(valor)


def render_das_section(data: Mapping[str, Any]) -> str:
    lines: List[str] = ["=== DAS - SIMPLES NACIONAL ==="]
    if not isinstance(data, Mapping) or not data:
        lines.append("Sem dados de calculo.")
        return "\n".join(lines)

    lines.append(f"Competencia: {data.get('competence', 'N/D')}")
    lines.append(f"Anexo: {data.get('annex', 'N/D')} | Faixa: {data.get('bracket', 'N/D')}")
    lines.append(f"Limite da faixa: {_num(data.get('bracketCeiling'), formatar_reais)}")
    lines.append(f"Aliquota nominal: {_num(data.get('nominalRatePercent'), formatar_percentual)}")
    if "factorRReductionPercent" in data:
        lines.append(
            f"Reducao por Fator R: {_num(data.get('factorRReductionPercent'), formatar_percentual)}"
        )
    lines.append(f"Aliquota efetiva: {_num(data.get('effectiveRatePercent'), formatar_percentual)}")
    lines.append(f"Parcela a deduzir (informativa): {_num(data.get('deductionParcel'), formatar_reais)}")
    lines.append(f"Valor devido: {_num(data.get('amountDue'), formatar_reais)}")
    lines.append(f"Vencimento: {formatar_data_br(data.get('dueDate', 'N/D'))}")
    lines.append("")
    lines.append(_render_partilha(data.get("taxBreakdown")))
    return "\n".join(lines)


def _render_partilha(parcelas: Any) -> str:
    lines: List[str] = ["=== PARTILHA DO DAS POR TRIBUTO ==="]
    if not isinstance(parcelas, list) or not parcelas:
        lines.append("Partilha indisponivel.")
        return "\n".join(lines)

    lines.append("Tributo | Percentual | Valor")
    lines.append("-----------------------------------")
    for parcela in parcelas:
        if not isinstance(parcela, dict):
            continue
        lines.append(
            f"{parcela.get('tax', 'N/D')} | "
            f"{_num(parcela.get('sharePercent'), formatar_percentual)} | "
            f"{_num(parcela.get('amount'), formatar_reais)}"
        )
    return "\n".join(lines)


def render_irpj_section(data: Mapping[str, Any]) -> str:
    lines: List[str] = ["=== IRPJ - LUCRO PRESUMIDO ==="]
    if not isinstance(data, Mapping) or not data:
        lines.append("Sem dados de calculo.")
        return "\n".join(lines)

    lines.append(f"Competencia: {data.get('competence', 'N/D')} ({data.get('period', 'mensal')})")
    lines.append(f"Atividade: {data.get('activityKey', 'N/D')}")
    lines.append(f"Percentual de presuncao: {_num(data.get('presumptionPercent'), formatar_percentual)}")
    lines.append(f"Base de calculo: {_num(data.get('taxBase'), formatar_reais)}")
    lines.append(f"IRPJ (15%): {_num(data.get('baseTaxAmount'), formatar_reais)}")
    lines.append(
        f"Adicional (10% acima de {_num(data.get('surtaxThreshold'), formatar_reais)}): "
        f"{_num(data.get('surtaxAmount'), formatar_reais)}"
    )
    lines.append(f"Valor devido: {_num(data.get('amountDue'), formatar_reais)}")
    lines.append(
        f"CSLL (9% sobre base de {_num(data.get('csllBase'), formatar_reais)}, "
        f"presuncao {_num(data.get('csllPresumptionPercent'), formatar_percentual)}): "
        f"{_num(data.get('csllAmount'), formatar_reais)}"
    )
    lines.append(f"Total IRPJ + CSLL: {_num(data.get('totalWithCsll'), formatar_reais)}")
    lines.append(f"Vencimento: {formatar_data_br(data.get('dueDate', 'N/D'))}")
    return "\n".join(lines)


def render_aliquotas_irpj(rows: List[Dict[str, Any]]) -> str:
    lines: List[str] = ["=== ALIQUOTAS IRPJ - LUCRO PRESUMIDO ==="]
    if not isinstance(rows, list) or not rows:
        lines.append("Sem atividades no catalogo.")
        return "\n".join(lines)

    primeiro = rows[0] if isinstance(rows[0], dict) else {}
    lines.append(f"Ano de referencia: {primeiro.get('year', 'N/D')}")
    lines.append(
        f"IRPJ: {_num(primeiro.get('normalIrpjRatePercent'), formatar_percentual)} | "
        f"Adicional: {_num(primeiro.get('surtaxRatePercent'), formatar_percentual)} "
        f"acima de {_num(primeiro.get('surtaxMonthlyThreshold'), formatar_reais)}/mes"
    )
    lines.append(f"CSLL: {_num(primeiro.get('csllRatePercent'), formatar_percentual)}")
    lines.append("Atividade | Presuncao IRPJ | Presuncao CSLL | Descricao")
    lines.append("------------------------------------------------")
    for row in rows:
        if not isinstance(row, dict):
            continue
        lines.append(
            f"{row.get('activityKey', 'N/D')} | "
            f"{_num(row.get('presumptionPercent'), formatar_percentual)} | "
            f"{_num(row.get('csllPresumptionPercent'), formatar_percentual)} | "
            f"{row.get('description', '')}"
        )
    return "\n".join(lines)


def render_mei_section(data: Mapping[str, Any]) -> str:
    lines: List[str] = ["=== DAS-SIMEI - MEI ==="]
    if not isinstance(data, Mapping) or not data:
        lines.append("Sem dados de calculo.")
        return "\n".join(lines)

    lines.append(f"Competencia: {data.get('competence', 'N/D')}")
    lines.append(f"Atividade: {data.get('activity', 'N/D')}")
    lines.append(
        f"Receita bruta: {_num(data.get('grossRevenue'), formatar_reais)} "
        f"(limite mensal {_num(data.get('monthlyRevenueLimit'), formatar_reais)})"
    )
    lines.append(f"Valor devido: {_num(data.get('amountDue'), formatar_reais)}")
    lines.append(f"Vencimento: {formatar_data_br(data.get('dueDate', 'N/D'))}")
    return "\n".join(lines)


def render_erro(error: Mapping[str, Any]) -> str:
    code = str((error or {}).get("code", "Erro"))
    message = str((error or {}).get("message", "Sem detalhe."))
    return f"=== ERRO ===\n[{code}] {message}"
