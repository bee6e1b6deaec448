from datetime import date

from dto import Competencia
from errors import INVALID_COMPETENCE, InternalError, ValidationError
from fiscal_tables import DIA_VENCIMENTO_PADRAO


def calcular_vencimento(competencia: Competencia, dia: int = DIA_VENCIMENTO_PADRAO) -> date:
    """Vencimento no dia `dia` do mes subsequente a competencia (dez -> jan do ano seguinte)."""
    if not (1 <= competencia.mes <= 12):
        raise ValidationError(f"Mes da competencia fora de 1..12: {competencia.mes}.", INVALID_COMPETENCE)
    if not (1 <= dia <= 28):
        raise InternalError(f"Dia de vencimento fora de 1..28: {dia}.")
    seguinte = competencia.proxima()
    return date(seguinte.ano, seguinte.mes, dia)
