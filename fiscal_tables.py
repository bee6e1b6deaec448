from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal
from types import MappingProxyType
from typing import Any, Dict, Mapping, Tuple

from dto import ANEXOS_COM_FATOR_R, PERIODICIDADES_VALIDAS, TRIBUTOS_DAS, ActivityPresumption, Annex, TaxBracket
from errors import InternalError
from ruleset_loader import (
    DEFAULT_RULESET_ID,
    get_mei_params,
    get_presumido_params,
    get_simples_tables,
    load_ruleset,
)

DIA_VENCIMENTO_PADRAO = 20
PARTILHA_SOMA_TOLERANCIA = Decimal("0.000001")

_RE_CHAVE_NORMALIZADA = re.compile(r"^[a-z_]+$")

_TABLES: Dict[str, "FiscalTables"] = {}


@dataclass(frozen=True)
class FiscalTables:
    """Tabelas estaticas de um ruleset, validadas e imutaveis."""

    ruleset_id: str
    faixas: Mapping[Annex, Tuple[TaxBracket, ...]]
    limite_simples: Decimal
    fator_r_limite: Decimal
    reducao_fator_r: Mapping[Annex, Decimal]
    presuncoes: Mapping[str, ActivityPresumption]
    aliquota_irpj: Decimal
    aliquota_adicional_irpj: Decimal
    aliquota_csll: Decimal
    limite_adicional_mensal: Decimal
    meses_por_periodicidade: Mapping[str, int]
    mei_valores: Mapping[str, Decimal]
    mei_limite_mensal: Decimal
    dia_vencimento: int = DIA_VENCIMENTO_PADRAO


def _ruleset_error(
    ruleset_id: str,
    arquivo: str,
    chave: str,
    regime: str,
    impacto: str,
    detalhe: str = "",
) -> InternalError:
    msg = (
        f"ruleset_id={ruleset_id} | arquivo={arquivo} | chave={chave} | "
        f"regime={regime} | impacto={impacto}"
    )
    if detalhe:
        msg += f" | detalhe={detalhe}"
    return InternalError(msg)


def _required_number(
    payload: Dict[str, Any],
    key: str,
    *,
    ruleset_id: str,
    arquivo: str,
    regime: str,
    impacto: str,
    path: str = "",
) -> Decimal:
    chave = f"{path}.{key}" if path else key
    if key not in payload:
        raise _ruleset_error(ruleset_id, arquivo, chave, regime, impacto, "chave ausente")
    value = payload[key]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise _ruleset_error(ruleset_id, arquivo, chave, regime, impacto, "valor nao numerico")
    return Decimal(str(value))


def _required_object(
    payload: Dict[str, Any],
    key: str,
    *,
    ruleset_id: str,
    arquivo: str,
    regime: str,
    impacto: str,
) -> Dict[str, Any]:
    if key not in payload:
        raise _ruleset_error(ruleset_id, arquivo, key, regime, impacto, "chave ausente")
    value = payload[key]
    if not isinstance(value, dict):
        raise _ruleset_error(ruleset_id, arquivo, key, regime, impacto, "objeto invalido")
    return value


def _build_partilha(
    faixa: Dict[str, Any],
    path: str,
    ruleset_id: str,
) -> Tuple[Tuple[str, Decimal], ...]:
    arquivo = "simples_tables.json"
    regime = "Simples Nacional"
    impacto = "Nao e possivel calcular partilha do DAS"
    raw = faixa.get("percentuais_partilha")
    if not isinstance(raw, dict):
        raise _ruleset_error(
            ruleset_id, arquivo, f"{path}.percentuais_partilha", regime, impacto, "objeto ausente/invalido"
        )

    percentuais = []
    for tributo in TRIBUTOS_DAS:
        percentual = _required_number(
            raw, tributo, ruleset_id=ruleset_id, arquivo=arquivo, regime=regime, impacto=impacto,
            path=f"{path}.percentuais_partilha",
        )
        if percentual < 0:
            raise _ruleset_error(
                ruleset_id, arquivo, f"{path}.percentuais_partilha.{tributo}", regime, impacto, "percentual negativo"
            )
        percentuais.append((tributo, percentual))

    soma = sum(p for _, p in percentuais)
    if abs(soma - Decimal("100")) > PARTILHA_SOMA_TOLERANCIA:
        raise _ruleset_error(
            ruleset_id, arquivo, f"{path}.percentuais_partilha", regime, impacto,
            f"soma dos percentuais invalida: {soma}",
        )
    return tuple(percentuais)


def _build_faixas(
    tabelas: Dict[str, Any],
    limite_simples: Decimal,
    ruleset_id: str,
) -> Mapping[Annex, Tuple[TaxBracket, ...]]:
    arquivo = "simples_tables.json"
    regime = "Simples Nacional"
    impacto = "Nao e possivel calcular DAS"
    anexos = _required_object(
        tabelas, "anexos", ruleset_id=ruleset_id, arquivo=arquivo, regime=regime, impacto=impacto
    )

    faixas: Dict[Annex, Tuple[TaxBracket, ...]] = {}
    for anexo in Annex:
        tabela_anexo = anexos.get(anexo.value)
        if not isinstance(tabela_anexo, list) or not tabela_anexo:
            raise _ruleset_error(
                ruleset_id, arquivo, f"anexos.{anexo.value}", regime, impacto, "tabela de faixas ausente ou vazia"
            )

        itens = []
        limite_anterior = Decimal("0")
        for idx, faixa in enumerate(tabela_anexo, start=1):
            path = f"anexos.{anexo.value}[{idx - 1}]"
            if not isinstance(faixa, dict):
                raise _ruleset_error(ruleset_id, arquivo, path, regime, impacto, "faixa deve ser objeto")
            numeros = {
                key: _required_number(
                    faixa, key, ruleset_id=ruleset_id, arquivo=arquivo, regime=regime, impacto=impacto, path=path
                )
                for key in ("limite_superior", "aliquota_nominal", "parcela_deduzir")
            }
            if numeros["limite_superior"] <= limite_anterior:
                raise _ruleset_error(
                    ruleset_id, arquivo, f"{path}.limite_superior", regime, impacto,
                    "limites devem ser estritamente crescentes",
                )
            if not (Decimal("0") <= numeros["aliquota_nominal"] < Decimal("100")):
                raise _ruleset_error(
                    ruleset_id, arquivo, f"{path}.aliquota_nominal", regime, impacto, "aliquota fora de [0, 100)"
                )
            if numeros["parcela_deduzir"] < 0:
                raise _ruleset_error(
                    ruleset_id, arquivo, f"{path}.parcela_deduzir", regime, impacto, "parcela negativa"
                )
            itens.append(
                TaxBracket(
                    annex=anexo,
                    faixa=idx,
                    limite_superior=numeros["limite_superior"],
                    aliquota_nominal=numeros["aliquota_nominal"],
                    parcela_deduzir=numeros["parcela_deduzir"],
                    partilha=_build_partilha(faixa, path, ruleset_id),
                )
            )
            limite_anterior = numeros["limite_superior"]

        if itens[-1].limite_superior != limite_simples:
            raise _ruleset_error(
                ruleset_id, arquivo, f"anexos.{anexo.value}", regime, impacto,
                f"ultima faixa ({itens[-1].limite_superior}) difere do limite do Simples ({limite_simples})",
            )
        faixas[anexo] = tuple(itens)

    return MappingProxyType(faixas)


def _build_reducoes(tabelas: Dict[str, Any], ruleset_id: str) -> Mapping[Annex, Decimal]:
    arquivo = "simples_tables.json"
    regime = "Simples Nacional"
    impacto = "Nao e possivel aplicar reducao por Fator R"
    raw = _required_object(
        tabelas, "reducao_fator_r", ruleset_id=ruleset_id, arquivo=arquivo, regime=regime, impacto=impacto
    )

    reducoes: Dict[Annex, Decimal] = {}
    for anexo in Annex:
        if anexo not in ANEXOS_COM_FATOR_R:
            if anexo.value in raw:
                raise _ruleset_error(
                    ruleset_id, arquivo, f"reducao_fator_r.{anexo.value}", regime, impacto,
                    "anexo nao sujeito ao Fator R",
                )
            continue
        fator = _required_number(
            raw, anexo.value, ruleset_id=ruleset_id, arquivo=arquivo, regime=regime, impacto=impacto,
            path="reducao_fator_r",
        )
        if not (Decimal("0") <= fator < Decimal("1")):
            raise _ruleset_error(
                ruleset_id, arquivo, f"reducao_fator_r.{anexo.value}", regime, impacto, "fator fora de [0, 1)"
            )
        reducoes[anexo] = fator
    return MappingProxyType(reducoes)


def _build_presuncoes(params: Dict[str, Any], ruleset_id: str) -> Mapping[str, ActivityPresumption]:
    arquivo = "presumido_params.json"
    regime = "Lucro Presumido"
    impacto = "Nao e possivel definir base presumida por atividade"
    raw = _required_object(
        params, "percentual_presuncao", ruleset_id=ruleset_id, arquivo=arquivo, regime=regime, impacto=impacto
    )
    if not raw:
        raise _ruleset_error(ruleset_id, arquivo, "percentual_presuncao", regime, impacto, "catalogo vazio")

    catalogo: Dict[str, ActivityPresumption] = {}
    for chave, item in raw.items():
        path = f"percentual_presuncao.{chave}"
        if not _RE_CHAVE_NORMALIZADA.match(chave):
            raise _ruleset_error(ruleset_id, arquivo, path, regime, impacto, "chave fora do formato normalizado")
        if not isinstance(item, dict):
            raise _ruleset_error(ruleset_id, arquivo, path, regime, impacto, "objeto invalido")
        percentual = _required_number(
            item, "percentual", ruleset_id=ruleset_id, arquivo=arquivo, regime=regime, impacto=impacto, path=path
        )
        if not (Decimal("0") < percentual <= Decimal("100")):
            raise _ruleset_error(ruleset_id, arquivo, f"{path}.percentual", regime, impacto, "percentual fora de (0, 100]")
        percentual_csll = _required_number(
            item, "percentual_csll", ruleset_id=ruleset_id, arquivo=arquivo, regime=regime, impacto=impacto, path=path
        )
        if not (Decimal("0") < percentual_csll <= Decimal("100")):
            raise _ruleset_error(
                ruleset_id, arquivo, f"{path}.percentual_csll", regime, impacto, "percentual fora de (0, 100]"
            )
        descricao = item.get("descricao")
        if not isinstance(descricao, str) or not descricao.strip():
            raise _ruleset_error(ruleset_id, arquivo, f"{path}.descricao", regime, impacto, "descricao ausente")
        catalogo[chave] = ActivityPresumption(
            chave=chave,
            percentual_presuncao=percentual,
            descricao=descricao.strip(),
            percentual_presuncao_csll=percentual_csll,
        )
    return MappingProxyType(catalogo)


def _build_meses(params: Dict[str, Any], ruleset_id: str) -> Mapping[str, int]:
    arquivo = "presumido_params.json"
    regime = "Lucro Presumido"
    impacto = "Nao e possivel calcular adicional de IRPJ"
    raw = _required_object(
        params, "meses_por_periodicidade", ruleset_id=ruleset_id, arquivo=arquivo, regime=regime, impacto=impacto
    )
    meses: Dict[str, int] = {}
    for periodicidade in PERIODICIDADES_VALIDAS:
        valor = raw.get(periodicidade)
        if isinstance(valor, bool) or not isinstance(valor, int) or valor <= 0:
            raise _ruleset_error(
                ruleset_id, arquivo, f"meses_por_periodicidade.{periodicidade}", regime, impacto,
                "numero de meses invalido",
            )
        meses[periodicidade] = valor
    return MappingProxyType(meses)


def _build_mei(params: Dict[str, Any], ruleset_id: str) -> Tuple[Mapping[str, Decimal], Decimal]:
    arquivo = "mei_params.json"
    regime = "MEI"
    impacto = "Nao e possivel calcular DAS-SIMEI"
    limite = _required_number(
        params, "limite_receita_mensal", ruleset_id=ruleset_id, arquivo=arquivo, regime=regime, impacto=impacto
    )
    atividades = _required_object(
        params, "atividades", ruleset_id=ruleset_id, arquivo=arquivo, regime=regime, impacto=impacto
    )
    if not atividades:
        raise _ruleset_error(ruleset_id, arquivo, "atividades", regime, impacto, "catalogo vazio")

    valores: Dict[str, Decimal] = {}
    for chave, item in atividades.items():
        path = f"atividades.{chave}"
        if not isinstance(item, dict):
            raise _ruleset_error(ruleset_id, arquivo, path, regime, impacto, "objeto invalido")
        valor = _required_number(
            item, "valor_fixo", ruleset_id=ruleset_id, arquivo=arquivo, regime=regime, impacto=impacto, path=path
        )
        if valor <= 0:
            raise _ruleset_error(ruleset_id, arquivo, f"{path}.valor_fixo", regime, impacto, "valor deve ser positivo")
        valores[chave] = valor
    return MappingProxyType(valores), limite


def _dia_vencimento(metadata: Dict[str, Any], ruleset_id: str) -> int:
    dia = metadata.get("dia_vencimento", DIA_VENCIMENTO_PADRAO)
    if isinstance(dia, bool) or not isinstance(dia, int) or not (1 <= dia <= 28):
        raise _ruleset_error(
            ruleset_id, "metadata.json", "dia_vencimento", "Todos", "Nao e possivel calcular vencimento",
            "dia deve estar entre 1 e 28",
        )
    return dia


def montar_tabelas(ruleset_id: str = DEFAULT_RULESET_ID) -> FiscalTables:
    """Carrega e valida os arquivos do ruleset, sem cache."""
    try:
        metadata = load_ruleset(ruleset_id)
        simples = get_simples_tables(ruleset_id)
        presumido = get_presumido_params(ruleset_id)
        mei = get_mei_params(ruleset_id)
    except (FileNotFoundError, ValueError) as exc:
        raise InternalError(f"ruleset_id={ruleset_id} | detalhe={exc}") from exc

    limite_simples = _required_number(
        simples,
        "limite_elegibilidade_simples",
        ruleset_id=ruleset_id,
        arquivo="simples_tables.json",
        regime="Simples Nacional",
        impacto="Nao e possivel validar limite do Simples",
    )
    fator_r_limite = _required_number(
        simples,
        "fator_r_limite",
        ruleset_id=ruleset_id,
        arquivo="simples_tables.json",
        regime="Simples Nacional",
        impacto="Nao e possivel aplicar reducao por Fator R",
    )
    presumido_kwargs = dict(
        ruleset_id=ruleset_id,
        arquivo="presumido_params.json",
        regime="Lucro Presumido",
        impacto="Nao e possivel calcular IRPJ",
    )
    mei_valores, mei_limite = _build_mei(mei, ruleset_id)

    return FiscalTables(
        ruleset_id=ruleset_id,
        faixas=_build_faixas(simples, limite_simples, ruleset_id),
        limite_simples=limite_simples,
        fator_r_limite=fator_r_limite,
        reducao_fator_r=_build_reducoes(simples, ruleset_id),
        presuncoes=_build_presuncoes(presumido, ruleset_id),
        aliquota_irpj=_required_number(presumido, "irpj", **presumido_kwargs),
        aliquota_adicional_irpj=_required_number(presumido, "adicional_irpj", **presumido_kwargs),
        aliquota_csll=_required_number(presumido, "csll", **presumido_kwargs),
        limite_adicional_mensal=_required_number(presumido, "limite_adicional_irpj_mensal", **presumido_kwargs),
        meses_por_periodicidade=_build_meses(presumido, ruleset_id),
        mei_valores=mei_valores,
        mei_limite_mensal=mei_limite,
        dia_vencimento=_dia_vencimento(metadata, ruleset_id),
    )


def get_fiscal_tables(ruleset_id: str = DEFAULT_RULESET_ID) -> FiscalTables:
    tables = _TABLES.get(ruleset_id)
    if tables is None:
        tables = montar_tabelas(ruleset_id)
        _TABLES[ruleset_id] = tables
    return tables
