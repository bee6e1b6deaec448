from datetime import date
from decimal import Decimal
from typing import Union

Numero = Union[int, float, Decimal]


def _separadores_br(s: str) -> str:
    # troca separadores estilo US -> BR
    return s.replace(",", "X").replace(".", ",").replace("X", ".")


def formatar_reais(valor: Numero) -> str:
    # Formato simples PT-BR (console)
    try:
        return f"R$ {_separadores_br(f'{Decimal(str(valor)):,.2f}')}"
    except (TypeError, ValueError, ArithmeticError):
        return f"R$ {valor}"


def formatar_percentual(valor: Numero, casas: int = 2, ja_percentual: bool = True) -> str:
    """Formata percentual em pt-BR (ex.: 13,50%). Por padrao o valor ja vem em 0..100."""
    try:
        numero = Decimal(str(valor))
        if not ja_percentual:
            numero *= 100
        return f"{_separadores_br(f'{numero:,.{casas}f}')}%"
    except (TypeError, ValueError, ArithmeticError):
        return f"{valor}%"


def formatar_data_br(valor: Union[date, str]) -> str:
    """Data ISO (YYYY-MM-DD) ou date -> DD/MM/AAAA."""
    if isinstance(valor, str):
        try:
            valor = date.fromisoformat(valor)
        except ValueError:
            return valor
    return valor.strftime("%d/%m/%Y")
