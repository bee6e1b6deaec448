from __future__ import annotations

import re
import string
from dataclasses import dataclass, replace
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Mapping, Optional, Sequence, Tuple

from dto import ANEXOS_COM_FATOR_R, ActivityPresumption, Annex, ParcelaTributo, TaxBracket
from errors import (
    ACTIVITY_NOT_FOUND,
    BRACKET_NOT_FOUND,
    INVALID_REVENUE,
    DomainLimitError,
    FiscalLookupError,
    InternalError,
    ValidationError,
)

CEM = Decimal("100")
CENTAVOS = Decimal("0.01")
FATOR_R_LIMITE_PADRAO = Decimal("0.28")

_ASCII_MINUSCULAS = str.maketrans(string.ascii_uppercase, string.ascii_lowercase)
_RE_NAO_LETRA = re.compile(r"[^a-z]")


def arredondar_moeda(valor: Decimal) -> Decimal:
    return valor.quantize(CENTAVOS, rounding=ROUND_HALF_UP)


def resolver_faixa(faixas: Sequence[TaxBracket], receita_bruta: Decimal) -> TaxBracket:
    """
    Seleciona a faixa do anexo: primeira com limite_superior >= receita.
    Receita igual ao limite permanece na faixa (nao sobe para a seguinte).
    """
    if receita_bruta <= 0:
        raise ValidationError("receita_bruta deve ser maior que zero.", INVALID_REVENUE)
    if not faixas:
        raise InternalError("Tabela do anexo vazia.")

    for faixa in faixas:
        if receita_bruta <= faixa.limite_superior:
            return faixa

    ultima = faixas[-1]
    raise DomainLimitError(
        f"Receita {receita_bruta} excede a ultima faixa do Anexo {ultima.annex.value} "
        f"(limite {ultima.limite_superior}).",
        BRACKET_NOT_FOUND,
    )


@dataclass(frozen=True)
class AliquotaEfetiva:
    aliquota_efetiva: Decimal
    reducao: Optional[Decimal] = None


def fator_reducao_do_anexo(anexo: Annex, fatores_reducao: Mapping[Annex, Decimal]) -> Optional[Decimal]:
    if anexo not in ANEXOS_COM_FATOR_R:
        return None
    if anexo not in fatores_reducao:
        raise InternalError(f"Fator de reducao ausente para o Anexo {anexo.value}.")
    return fatores_reducao[anexo]


def calcular_aliquota_efetiva(
    faixa: TaxBracket,
    anexo: Annex,
    fator_r: Optional[Decimal],
    fatores_reducao: Mapping[Annex, Decimal],
    fator_r_limite: Decimal = FATOR_R_LIMITE_PADRAO,
) -> AliquotaEfetiva:
    """
    Aliquota efetiva = nominal, exceto Anexos III/IV/V com Fator R informado
    abaixo do limite: efetiva = nominal - nominal * fator_reducao[anexo].
    """
    nominal = faixa.aliquota_nominal
    fator_reducao = fator_reducao_do_anexo(anexo, fatores_reducao)
    if fator_reducao is None or fator_r is None or fator_r >= fator_r_limite:
        return AliquotaEfetiva(aliquota_efetiva=nominal)

    reducao = nominal * fator_reducao
    return AliquotaEfetiva(aliquota_efetiva=nominal - reducao, reducao=reducao)


def calcular_partilha_das(valor_devido: Decimal, faixa: TaxBracket) -> Tuple[ParcelaTributo, ...]:
    """
    Reparte o DAS entre os tributos pelos percentuais da faixa.
    Tributos com percentual zero ficam de fora; a sobra de arredondamento
    vai para o tributo de maior percentual, de modo que a soma feche no total.
    """
    ativos = [(tributo, percentual) for tributo, percentual in faixa.partilha if percentual > 0]
    if not ativos:
        return ()

    valores = {tributo: arredondar_moeda(valor_devido * percentual / CEM) for tributo, percentual in ativos}
    maior = max(ativos, key=lambda item: item[1])[0]
    valores[maior] += valor_devido - sum(valores.values())
    return tuple(ParcelaTributo(tributo, percentual, valores[tributo]) for tributo, percentual in ativos)


def normalizar_chave_atividade(texto: str) -> str:
    """Minusculas ASCII; qualquer caractere fora de a-z vira '_'."""
    return _RE_NAO_LETRA.sub("_", texto.strip().translate(_ASCII_MINUSCULAS))


def titulo_atividade(chave: str) -> str:
    return " ".join(parte[:1].upper() + parte[1:] for parte in chave.split("_"))


def resolver_presuncao(atividade: str, catalogo: Mapping[str, ActivityPresumption]) -> ActivityPresumption:
    chave = normalizar_chave_atividade(atividade)
    presuncao = catalogo.get(chave)
    if presuncao is None:
        raise FiscalLookupError(
            f"Atividade '{atividade}' (chave '{chave}') sem percentual de presuncao no catalogo.",
            ACTIVITY_NOT_FOUND,
        )
    return presuncao


def listar_presuncoes(catalogo: Mapping[str, ActivityPresumption]) -> List[ActivityPresumption]:
    """Todas as atividades do catalogo, com descricao substituida pelo titulo da chave."""
    return [replace(item, descricao=titulo_atividade(item.chave)) for item in catalogo.values()]


@dataclass(frozen=True)
class ComponentesIRPJ:
    base_calculo: Decimal
    irpj_normal: Decimal
    adicional_irpj: Decimal
    valor_devido: Decimal
    limite_adicional: Decimal


def calcular_irpj_presumido(
    receita_bruta: Decimal,
    percentual_presuncao: Decimal,
    *,
    aliquota_irpj: Decimal,
    aliquota_adicional: Decimal,
    limite_adicional_mensal: Decimal,
    meses: int = 1,
) -> ComponentesIRPJ:
    """
    IRPJ no Lucro Presumido:
    - base = receita * presuncao
    - IRPJ normal sobre a base
    - adicional somente sobre o excedente ao limite mensal * meses do periodo
    """
    if receita_bruta <= 0:
        raise ValidationError("receita_bruta deve ser maior que zero.", INVALID_REVENUE)
    if meses <= 0:
        raise InternalError("Numero de meses do periodo deve ser positivo.")

    base = arredondar_moeda(receita_bruta * percentual_presuncao / CEM)
    irpj_normal = arredondar_moeda(base * aliquota_irpj / CEM)
    limite = limite_adicional_mensal * meses
    excedente = max(Decimal("0"), base - limite)
    adicional = arredondar_moeda(excedente * aliquota_adicional / CEM)

    return ComponentesIRPJ(
        base_calculo=base,
        irpj_normal=irpj_normal,
        adicional_irpj=adicional,
        valor_devido=irpj_normal + adicional,
        limite_adicional=arredondar_moeda(limite),
    )


def calcular_csll_presumido(
    receita_bruta: Decimal,
    percentual_presuncao_csll: Decimal,
    aliquota_csll: Decimal,
) -> Tuple[Decimal, Decimal]:
    """CSLL no Lucro Presumido: (base presumida, CSLL). Sem adicional."""
    if receita_bruta <= 0:
        raise ValidationError("receita_bruta deve ser maior que zero.", INVALID_REVENUE)
    base = arredondar_moeda(receita_bruta * percentual_presuncao_csll / CEM)
    return base, arredondar_moeda(base * aliquota_csll / CEM)
