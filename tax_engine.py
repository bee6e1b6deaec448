from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional

from dto import DASResult, IRPJRateInfo, IRPJResult, MEIResult
from errors import FiscalError, InternalError
from fiscal_tables import FiscalTables, get_fiscal_tables
from input_utils import (
    validar_ano,
    validar_atividade,
    validar_entrada_das,
    validar_entrada_irpj,
    validar_entrada_mei,
)
from regimes import (
    CEM,
    arredondar_moeda,
    calcular_aliquota_efetiva,
    calcular_csll_presumido,
    calcular_irpj_presumido,
    calcular_partilha_das,
    listar_presuncoes,
    resolver_faixa,
    resolver_presuncao,
)
from ruleset_loader import DEFAULT_RULESET_ID
from vencimentos import calcular_vencimento

logger = logging.getLogger(__name__)


def _resolve_tables(tables: Optional[FiscalTables], ruleset_id: str) -> FiscalTables:
    if tables is not None:
        return tables
    return get_fiscal_tables(ruleset_id)


class DASCalculator:
    """Simples Nacional: validacao -> faixa -> aliquota efetiva (Fator R) -> vencimento."""

    def __init__(self, tables: Optional[FiscalTables] = None, ruleset_id: str = DEFAULT_RULESET_ID) -> None:
        self.tables = _resolve_tables(tables, ruleset_id)

    def calcular(self, entrada: Any) -> DASResult:
        tables = self.tables
        inp = validar_entrada_das(entrada, tables.limite_simples)

        faixa = resolver_faixa(tables.faixas[inp.anexo], inp.receita_bruta)
        aliquota = calcular_aliquota_efetiva(
            faixa,
            inp.anexo,
            inp.fator_r,
            tables.reducao_fator_r,
            tables.fator_r_limite,
        )
        # Aliquota nominal da faixa; parcela a deduzir apenas informada.
        valor = arredondar_moeda(inp.receita_bruta * aliquota.aliquota_efetiva / CEM)

        return DASResult(
            valor_devido=valor,
            aliquota_nominal=faixa.aliquota_nominal,
            aliquota_efetiva=aliquota.aliquota_efetiva,
            reducao_fator_r=aliquota.reducao,
            vencimento=calcular_vencimento(inp.competencia, tables.dia_vencimento),
            anexo=inp.anexo,
            competencia=inp.competencia,
            faixa=faixa.faixa,
            limite_faixa=faixa.limite_superior,
            parcela_deduzir=faixa.parcela_deduzir,
            partilha=calcular_partilha_das(valor, faixa),
        )


class IRPJCalculator:
    """Lucro Presumido: presuncao por atividade -> base -> IRPJ 15% + adicional 10%; CSLL 9%."""

    def __init__(self, tables: Optional[FiscalTables] = None, ruleset_id: str = DEFAULT_RULESET_ID) -> None:
        self.tables = _resolve_tables(tables, ruleset_id)

    def calcular(self, entrada: Any) -> IRPJResult:
        tables = self.tables
        inp = validar_entrada_irpj(entrada)
        presuncao = resolver_presuncao(inp.atividade, tables.presuncoes)

        componentes = calcular_irpj_presumido(
            inp.receita_bruta,
            presuncao.percentual_presuncao,
            aliquota_irpj=tables.aliquota_irpj,
            aliquota_adicional=tables.aliquota_adicional_irpj,
            limite_adicional_mensal=tables.limite_adicional_mensal,
            meses=tables.meses_por_periodicidade[inp.periodicidade],
        )
        base_csll, csll = calcular_csll_presumido(
            inp.receita_bruta, presuncao.percentual_presuncao_csll, tables.aliquota_csll
        )

        return IRPJResult(
            atividade=presuncao.chave,
            percentual_presuncao=presuncao.percentual_presuncao,
            base_calculo=componentes.base_calculo,
            irpj_normal=componentes.irpj_normal,
            adicional_irpj=componentes.adicional_irpj,
            valor_devido=componentes.valor_devido,
            vencimento=calcular_vencimento(inp.competencia, tables.dia_vencimento),
            competencia=inp.competencia,
            periodicidade=inp.periodicidade,
            limite_adicional=componentes.limite_adicional,
            percentual_presuncao_csll=presuncao.percentual_presuncao_csll,
            base_csll=base_csll,
            csll=csll,
        )

    def consultar_aliquotas(self, atividade: Optional[str] = None, ano: Optional[int] = None) -> List[IRPJRateInfo]:
        """
        Sem atividade (None ou texto em branco): catalogo completo com titulos legiveis.
        Com atividade: uma unica linha com a descricao do catalogo.
        """
        tables = self.tables
        ano_ref = validar_ano(ano)
        if atividade is None or (isinstance(atividade, str) and not atividade.strip()):
            presuncoes = listar_presuncoes(tables.presuncoes)
        else:
            presuncoes = [resolver_presuncao(validar_atividade(atividade), tables.presuncoes)]

        return [
            IRPJRateInfo(
                atividade=item.chave,
                percentual_presuncao=item.percentual_presuncao,
                aliquota_irpj=tables.aliquota_irpj,
                aliquota_adicional=tables.aliquota_adicional_irpj,
                limite_adicional_mensal=tables.limite_adicional_mensal,
                ano=ano_ref,
                descricao=item.descricao,
                percentual_presuncao_csll=item.percentual_presuncao_csll,
                aliquota_csll=tables.aliquota_csll,
            )
            for item in presuncoes
        ]


class MEICalculator:
    """DAS-SIMEI: valor fixo mensal por atividade, limitado pela receita mensal do MEI."""

    def __init__(self, tables: Optional[FiscalTables] = None, ruleset_id: str = DEFAULT_RULESET_ID) -> None:
        self.tables = _resolve_tables(tables, ruleset_id)

    def calcular(self, entrada: Any) -> MEIResult:
        tables = self.tables
        inp = validar_entrada_mei(entrada, tables.mei_valores, tables.mei_limite_mensal)
        return MEIResult(
            atividade=inp.atividade,
            valor_devido=tables.mei_valores[inp.atividade],
            limite_mensal=tables.mei_limite_mensal,
            receita_bruta=inp.receita_bruta,
            vencimento=calcular_vencimento(inp.competencia, tables.dia_vencimento),
            competencia=inp.competencia,
        )


class FiscalCalculationService:
    """
    Fachada request/response: recebe payloads no formato JSON (camelCase)
    e devolve {"success": True, "data": ...} ou {"success": False, "error": {code, message}}.
    Erros internos (ruleset corrompido) sao registrados e propagados.
    """

    def __init__(self, ruleset_id: str = DEFAULT_RULESET_ID) -> None:
        try:
            tables = get_fiscal_tables(ruleset_id)
        except InternalError:
            logger.exception("Falha ao carregar ruleset %s", ruleset_id)
            raise
        self.ruleset_id = ruleset_id
        self.das = DASCalculator(tables)
        self.irpj = IRPJCalculator(tables)
        self.mei = MEICalculator(tables)

    @staticmethod
    def _executar(operacao: str, calcular: Callable[[], Any]) -> Dict[str, Any]:
        try:
            data = calcular()
        except InternalError:
            logger.exception("Erro interno em %s", operacao)
            raise
        except FiscalError as exc:
            logger.info("%s rejeitado: %s", operacao, exc)
            return {"success": False, "error": exc.to_dict()}
        except Exception:
            logger.exception("Falha inesperada em %s", operacao)
            raise
        logger.debug("%s concluido", operacao)
        return {"success": True, "data": data}

    def calcular_das(self, payload: Any) -> Dict[str, Any]:
        return self._executar("calcular_das", lambda: self.das.calcular(payload).to_payload())

    def calcular_irpj(self, payload: Any) -> Dict[str, Any]:
        return self._executar("calcular_irpj", lambda: self.irpj.calcular(payload).to_payload())

    def consultar_aliquotas_irpj(self, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        payload = payload or {}

        def _consultar() -> List[Dict[str, Any]]:
            linhas = self.irpj.consultar_aliquotas(payload.get("activityKey"), payload.get("year"))
            return [linha.to_payload() for linha in linhas]

        return self._executar("consultar_aliquotas_irpj", _consultar)

    def calcular_mei(self, payload: Any) -> Dict[str, Any]:
        return self._executar("calcular_mei", lambda: self.mei.calcular(payload).to_payload())
