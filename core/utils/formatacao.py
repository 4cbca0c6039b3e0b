"""
Utilitários de formatação no padrão brasileiro.

- format_brl: valores monetários (1.234,56)
- normalize_name: comparação de nomes sem diferenciar caixa e espaços
"""

from decimal import Decimal, InvalidOperation


def format_brl(value) -> str:
    """
    Formata um valor numérico como moeda brasileira.

    Exemplos:
        - 1000 -> 1.000,00
        - 1234567.89 -> 1.234.567,89
        - None -> 0,00

    Args:
        value: Valor numérico (Decimal, float, int ou string)

    Returns:
        String formatada no padrão brasileiro (1.000,00)
    """
    if value is None:
        return "0,00"

    try:
        if isinstance(value, str):
            value = value.replace(',', '.')
        decimal_value = Decimal(str(value)).quantize(Decimal('0.01'))
    except (InvalidOperation, ValueError, TypeError):
        return "0,00"

    is_negative = decimal_value < 0
    integer_str, decimal_str = f"{abs(decimal_value):.2f}".split('.')

    # Agrupa a parte inteira de três em três dígitos
    grupos = []
    while len(integer_str) > 3:
        grupos.insert(0, integer_str[-3:])
        integer_str = integer_str[:-3]
    grupos.insert(0, integer_str)

    formatted = f"{'.'.join(grupos)},{decimal_str}"
    return f"-{formatted}" if is_negative else formatted


def normalize_name(name) -> str:
    """Remove espaços extras e normaliza caixa para comparação de nomes."""
    return ' '.join((name or '').split()).casefold()
