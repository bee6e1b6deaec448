from __future__ import annotations

import math
import re
from datetime import date
from decimal import Decimal
from typing import Any, Mapping, Optional

from dto import (
    ANEXOS_COM_FATOR_R,
    PERIODICIDADES_VALIDAS,
    Annex,
    Competencia,
    DASInput,
    IRPJInput,
    MEIInput,
)
from errors import (
    ACTIVITY_NOT_FOUND,
    INVALID_COMPETENCE,
    INVALID_FACTOR_R,
    INVALID_MEI_ACTIVITY,
    INVALID_PERIODICITY,
    INVALID_REQUEST,
    INVALID_REVENUE,
    INVALID_YEAR,
    MEI_REVENUE_EXCEEDS_LIMIT,
    REVENUE_EXCEEDS_LIMIT,
    UNKNOWN_ANNEX,
    DomainLimitError,
    FiscalLookupError,
    ValidationError,
)
from regimes import normalizar_chave_atividade

ANO_MINIMO = 1900
ANO_MAXIMO = 2999

_RE_MENSAL = re.compile(r"^(\d{4})-(\d{2})$")
_RE_TRIMESTRAL = re.compile(r"^(\d{4})-T([1-4])$")
_RE_ANUAL = re.compile(r"^(\d{4})$")


def _exigir_mapa(entrada: Any) -> Mapping[str, Any]:
    if not isinstance(entrada, Mapping):
        raise ValidationError("Requisicao deve ser um objeto com os campos do calculo.", INVALID_REQUEST)
    return entrada


def _to_decimal(valor: Any, campo: str, code: str) -> Decimal:
    if isinstance(valor, bool) or not isinstance(valor, (int, float, Decimal)):
        raise ValidationError(f"{campo} deve ser numerico (recebido: {valor!r}).", code)
    if isinstance(valor, float) and not math.isfinite(valor):
        raise ValidationError(f"{campo} deve ser finito.", code)
    if isinstance(valor, Decimal):
        if not valor.is_finite():
            raise ValidationError(f"{campo} deve ser finito.", code)
        return valor
    return Decimal(str(valor))


def validar_receita(valor: Any, limite: Optional[Decimal] = None) -> Decimal:
    """Receita finita e > 0; com limite informado, rejeita valores acima dele."""
    receita = _to_decimal(valor, "grossRevenue", INVALID_REVENUE)
    if receita <= 0:
        raise ValidationError("grossRevenue deve ser maior que zero.", INVALID_REVENUE)
    if limite is not None and receita > limite:
        raise DomainLimitError(
            f"grossRevenue {receita} excede o limite do Simples Nacional ({limite}).",
            REVENUE_EXCEEDS_LIMIT,
        )
    return receita


def parse_anexo(valor: Any) -> Annex:
    if isinstance(valor, Annex):
        return valor
    if isinstance(valor, str):
        try:
            return Annex(valor.strip().upper())
        except ValueError:
            pass
    raise FiscalLookupError(f"Anexo invalido: {valor!r}. Use I, II, III, IV ou V.", UNKNOWN_ANNEX)


def validar_periodicidade(valor: Any) -> str:
    """Normaliza periodicidade para mensal/trimestral/anual com default mensal."""
    if valor is None:
        return "mensal"
    if isinstance(valor, str):
        v = valor.strip().lower()
        if not v:
            return "mensal"
        if v in PERIODICIDADES_VALIDAS:
            return v
    raise ValidationError(
        f"Periodicidade invalida: {valor!r}. Use mensal, trimestral ou anual.", INVALID_PERIODICITY
    )


def parse_competencia(valor: Any, periodicidade: str = "mensal") -> Competencia:
    """
    Converte a competencia conforme a periodicidade.
    Aceita:
      - YYYY-MM (todas as periodicidades)
      - YYYY-T1..T4 (trimestral; mes de encerramento do trimestre)
      - YYYY (anual; dezembro)
    """
    p = validar_periodicidade(periodicidade)
    competencia: Optional[Competencia] = None

    if isinstance(valor, Competencia):
        competencia = valor
    elif isinstance(valor, str):
        c = valor.strip().upper()
        mensal = _RE_MENSAL.match(c)
        trimestral = _RE_TRIMESTRAL.match(c)
        anual = _RE_ANUAL.match(c)
        if mensal:
            competencia = Competencia(int(mensal.group(1)), int(mensal.group(2)))
        elif p == "trimestral" and trimestral:
            competencia = Competencia(int(trimestral.group(1)), int(trimestral.group(2)) * 3)
        elif p == "anual" and anual:
            competencia = Competencia(int(anual.group(1)), 12)

    if competencia is None:
        raise ValidationError(
            f"Competencia invalida: {valor!r}. Use formato YYYY-MM.", INVALID_COMPETENCE
        )
    if not (1 <= competencia.mes <= 12):
        raise ValidationError(f"Mes da competencia fora de 1..12: {valor!r}.", INVALID_COMPETENCE)
    if not (ANO_MINIMO <= competencia.ano <= ANO_MAXIMO):
        raise ValidationError(
            f"Ano da competencia fora de {ANO_MINIMO}..{ANO_MAXIMO}: {valor!r}.", INVALID_COMPETENCE
        )
    if p == "trimestral" and competencia.mes % 3 != 0:
        raise ValidationError(
            f"Competencia trimestral deve encerrar em marco, junho, setembro ou dezembro: {valor!r}.",
            INVALID_COMPETENCE,
        )
    if p == "anual" and competencia.mes != 12:
        raise ValidationError(f"Competencia anual deve encerrar em dezembro: {valor!r}.", INVALID_COMPETENCE)
    return competencia


def validar_fator_r(valor: Any) -> Optional[Decimal]:
    if valor is None:
        return None
    fator_r = _to_decimal(valor, "factorR", INVALID_FACTOR_R)
    if fator_r < 0:
        raise ValidationError("factorR nao pode ser negativo.", INVALID_FACTOR_R)
    return fator_r


def validar_entrada_das(entrada: Any, limite_simples: Decimal) -> DASInput:
    if isinstance(entrada, DASInput):
        bruto: Mapping[str, Any] = {
            "grossRevenue": entrada.receita_bruta,
            "annex": entrada.anexo,
            "competence": entrada.competencia,
            "factorR": entrada.fator_r,
        }
    else:
        bruto = _exigir_mapa(entrada)

    receita = validar_receita(bruto.get("grossRevenue"), limite_simples)
    anexo = parse_anexo(bruto.get("annex"))
    competencia = parse_competencia(bruto.get("competence"))
    fator_r = validar_fator_r(bruto.get("factorR"))
    if anexo not in ANEXOS_COM_FATOR_R:
        # validado sempre; sem efeito fora dos anexos de servicos
        fator_r = None
    return DASInput(receita_bruta=receita, anexo=anexo, competencia=competencia, fator_r=fator_r)


def validar_atividade(valor: Any) -> str:
    if not isinstance(valor, str) or not valor.strip():
        raise FiscalLookupError("activityKey obrigatorio para o calculo do IRPJ.", ACTIVITY_NOT_FOUND)
    return valor.strip()


def validar_entrada_irpj(entrada: Any) -> IRPJInput:
    if isinstance(entrada, IRPJInput):
        bruto: Mapping[str, Any] = {
            "grossRevenue": entrada.receita_bruta,
            "activityKey": entrada.atividade,
            "competence": entrada.competencia,
            "period": entrada.periodicidade,
        }
    else:
        bruto = _exigir_mapa(entrada)

    receita = validar_receita(bruto.get("grossRevenue"))
    atividade = validar_atividade(bruto.get("activityKey"))
    periodicidade = validar_periodicidade(bruto.get("period"))
    competencia = parse_competencia(bruto.get("competence"), periodicidade)
    return IRPJInput(
        receita_bruta=receita,
        atividade=atividade,
        competencia=competencia,
        periodicidade=periodicidade,
    )


def validar_ano(valor: Any) -> int:
    if valor is None:
        return date.today().year
    if isinstance(valor, bool) or not isinstance(valor, int):
        raise ValidationError(f"year deve ser inteiro (recebido: {valor!r}).", INVALID_YEAR)
    if not (ANO_MINIMO <= valor <= ANO_MAXIMO):
        raise ValidationError(f"year fora de {ANO_MINIMO}..{ANO_MAXIMO}: {valor}.", INVALID_YEAR)
    return valor


def validar_entrada_mei(
    entrada: Any,
    atividades: Mapping[str, Decimal],
    limite_mensal: Decimal,
) -> MEIInput:
    if isinstance(entrada, MEIInput):
        bruto: Mapping[str, Any] = {
            "grossRevenue": entrada.receita_bruta,
            "activity": entrada.atividade,
            "competence": entrada.competencia,
        }
    else:
        bruto = _exigir_mapa(entrada)

    receita = _to_decimal(bruto.get("grossRevenue"), "grossRevenue", INVALID_REVENUE)
    if receita < 0:
        raise ValidationError("grossRevenue nao pode ser negativo.", INVALID_REVENUE)
    if receita > limite_mensal:
        raise DomainLimitError(
            f"Receita mensal {receita} excede o limite do MEI ({limite_mensal}).", MEI_REVENUE_EXCEEDS_LIMIT
        )

    atividade_raw = bruto.get("activity")
    atividade = normalizar_chave_atividade(atividade_raw) if isinstance(atividade_raw, str) else ""
    if atividade not in atividades:
        raise FiscalLookupError(
            f"Atividade MEI invalida: {atividade_raw!r}. Use {', '.join(atividades)}.", INVALID_MEI_ACTIVITY
        )

    competencia = parse_competencia(bruto.get("competence"))
    return MEIInput(receita_bruta=receita, atividade=atividade, competencia=competencia)
