from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional, Tuple

PERIODICIDADES_VALIDAS = ("mensal", "trimestral", "anual")
# Tributos que compoem o DAS, na ordem da partilha.
TRIBUTOS_DAS = ("IRPJ", "CSLL", "COFINS", "PIS", "CPP", "IPI", "ICMS", "ISS")


class Annex(Enum):
    I = "I"
    II = "II"
    III = "III"
    IV = "IV"
    V = "V"


# Anexos de servicos sujeitos a reducao por Fator R.
ANEXOS_COM_FATOR_R = frozenset({Annex.III, Annex.IV, Annex.V})


@dataclass(frozen=True)
class Competencia:
    ano: int
    mes: int

    def proxima(self) -> "Competencia":
        if self.mes == 12:
            return Competencia(self.ano + 1, 1)
        return Competencia(self.ano, self.mes + 1)

    def __str__(self) -> str:
        return f"{self.ano:04d}-{self.mes:02d}"


@dataclass(frozen=True)
class TaxBracket:
    annex: Annex
    faixa: int
    limite_superior: Decimal
    aliquota_nominal: Decimal  # percentual (ex: 13.5)
    parcela_deduzir: Decimal = Decimal("0")
    partilha: Tuple[Tuple[str, Decimal], ...] = ()  # (tributo, percentual do DAS)


@dataclass(frozen=True)
class ParcelaTributo:
    tributo: str
    percentual: Decimal
    valor: Decimal

    def to_payload(self) -> Dict[str, Any]:
        return {"tax": self.tributo, "sharePercent": float(self.percentual), "amount": float(self.valor)}


@dataclass(frozen=True)
class DASInput:
    receita_bruta: Decimal
    anexo: Annex
    competencia: Competencia
    fator_r: Optional[Decimal] = None


@dataclass(frozen=True)
class DASResult:
    valor_devido: Decimal
    aliquota_nominal: Decimal
    aliquota_efetiva: Decimal
    vencimento: date
    anexo: Annex
    competencia: Competencia
    faixa: int
    limite_faixa: Decimal
    parcela_deduzir: Decimal
    reducao_fator_r: Optional[Decimal] = None
    partilha: Tuple[ParcelaTributo, ...] = ()

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "amountDue": float(self.valor_devido),
            "effectiveRatePercent": float(self.aliquota_efetiva),
            "nominalRatePercent": float(self.aliquota_nominal),
            "annex": self.anexo.value,
            "competence": str(self.competencia),
            "dueDate": self.vencimento.isoformat(),
            "bracket": self.faixa,
            "bracketCeiling": float(self.limite_faixa),
            "deductionParcel": float(self.parcela_deduzir),
        }
        if self.reducao_fator_r is not None:
            payload["factorRReductionPercent"] = float(self.reducao_fator_r)
        payload["taxBreakdown"] = [parcela.to_payload() for parcela in self.partilha]
        return payload


@dataclass(frozen=True)
class ActivityPresumption:
    chave: str
    percentual_presuncao: Decimal
    descricao: str
    percentual_presuncao_csll: Decimal = Decimal("0")


@dataclass(frozen=True)
class IRPJInput:
    receita_bruta: Decimal
    atividade: str
    competencia: Competencia
    periodicidade: str = "mensal"  # mensal | trimestral | anual


@dataclass(frozen=True)
class IRPJResult:
    atividade: str
    percentual_presuncao: Decimal
    base_calculo: Decimal
    irpj_normal: Decimal
    adicional_irpj: Decimal
    valor_devido: Decimal
    vencimento: date
    competencia: Competencia
    periodicidade: str
    limite_adicional: Decimal
    percentual_presuncao_csll: Decimal = Decimal("0")
    base_csll: Decimal = Decimal("0")
    csll: Decimal = Decimal("0")

    @property
    def total_com_csll(self) -> Decimal:
        return self.valor_devido + self.csll

    def to_payload(self) -> Dict[str, Any]:
        return {
            "activityKey": self.atividade,
            "presumptionPercent": float(self.percentual_presuncao),
            "taxBase": float(self.base_calculo),
            "baseTaxAmount": float(self.irpj_normal),
            "surtaxAmount": float(self.adicional_irpj),
            "amountDue": float(self.valor_devido),
            "dueDate": self.vencimento.isoformat(),
            "competence": str(self.competencia),
            "period": self.periodicidade,
            "surtaxThreshold": float(self.limite_adicional),
            "csllPresumptionPercent": float(self.percentual_presuncao_csll),
            "csllBase": float(self.base_csll),
            "csllAmount": float(self.csll),
            "totalWithCsll": float(self.total_com_csll),
        }


@dataclass(frozen=True)
class IRPJRateInfo:
    atividade: str
    percentual_presuncao: Decimal
    aliquota_irpj: Decimal
    aliquota_adicional: Decimal
    limite_adicional_mensal: Decimal
    ano: int
    descricao: str
    percentual_presuncao_csll: Decimal = Decimal("0")
    aliquota_csll: Decimal = Decimal("0")

    def to_payload(self) -> Dict[str, Any]:
        return {
            "activityKey": self.atividade,
            "presumptionPercent": float(self.percentual_presuncao),
            "normalIrpjRatePercent": float(self.aliquota_irpj),
            "surtaxRatePercent": float(self.aliquota_adicional),
            "surtaxMonthlyThreshold": float(self.limite_adicional_mensal),
            "year": self.ano,
            "description": self.descricao,
            "csllPresumptionPercent": float(self.percentual_presuncao_csll),
            "csllRatePercent": float(self.aliquota_csll),
        }


@dataclass(frozen=True)
class MEIInput:
    receita_bruta: Decimal
    atividade: str  # comercio | servicos | comercio_servicos
    competencia: Competencia


@dataclass(frozen=True)
class MEIResult:
    atividade: str
    valor_devido: Decimal
    limite_mensal: Decimal
    receita_bruta: Decimal
    vencimento: date
    competencia: Competencia

    def to_payload(self) -> Dict[str, Any]:
        return {
            "activity": self.atividade,
            "amountDue": float(self.valor_devido),
            "grossRevenue": float(self.receita_bruta),
            "monthlyRevenueLimit": float(self.limite_mensal),
            "competence": str(self.competencia),
            "dueDate": self.vencimento.isoformat(),
        }
