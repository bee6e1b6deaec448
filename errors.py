from __future__ import annotations

from typing import Dict

# Codigos de erro expostos ao chamador (payload {"code", "message"}).
INVALID_REQUEST = "InvalidRequest"
INVALID_REVENUE = "InvalidRevenue"
INVALID_COMPETENCE = "InvalidCompetence"
INVALID_FACTOR_R = "InvalidFactorR"
INVALID_PERIODICITY = "InvalidPeriodicity"
INVALID_YEAR = "InvalidYear"
REVENUE_EXCEEDS_LIMIT = "RevenueExceedsLimit"
BRACKET_NOT_FOUND = "BracketNotFound"
MEI_REVENUE_EXCEEDS_LIMIT = "MeiRevenueExceedsLimit"
UNKNOWN_ANNEX = "UnknownAnnex"
ACTIVITY_NOT_FOUND = "ActivityNotFound"
INVALID_MEI_ACTIVITY = "InvalidMeiActivity"
RULESET_INTEGRITY = "RulesetIntegrity"


class FiscalError(Exception):
    """Base de todos os erros tipados do motor de calculo."""

    default_code = "FiscalError"

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.code = code or self.default_code
        self.message = message

    def to_dict(self) -> Dict[str, str]:
        return {"code": self.code, "message": self.message}

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


class ValidationError(FiscalError):
    """Entrada com formato ou faixa invalida."""

    default_code = INVALID_REVENUE


class DomainLimitError(FiscalError):
    """Receita fora da faixa legal modelada."""

    default_code = REVENUE_EXCEEDS_LIMIT


class FiscalLookupError(FiscalError, LookupError):
    """Chave de enumeracao ou catalogo sem correspondencia."""

    default_code = ACTIVITY_NOT_FOUND


class InternalError(FiscalError):
    """Estado que o motor nao deveria alcancar (ex.: ruleset corrompido)."""

    default_code = RULESET_INTEGRITY
