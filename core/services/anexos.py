"""
Metadados de comprovantes anexados aos lançamentos.

O arquivo em si fica no storage externo. Aqui registramos nome, tipo,
tamanho, caminho e hash SHA-256, recusando o mesmo comprovante duas vezes
para o mesmo colaborador.
"""

import hashlib
import logging
from typing import List, Optional

from django.db import transaction

from core.exceptions import PeriodClosed, ValidationFailure
from core.models import Anexo, Lancamento
from core.services.lancamentos import check_owner, load_expense
from core.services.roles import Principal

logger = logging.getLogger(__name__)


def compute_hash(conteudo: bytes) -> str:
    return hashlib.sha256(conteudo).hexdigest()


def has_attachments(expense_id) -> bool:
    return Anexo.objects.filter(lancamento_id=expense_id).exists()


def attachment_metadata(expense_id) -> List[dict]:
    return [
        {
            'id': str(anexo.id),
            'nome_arquivo': anexo.nome_arquivo,
            'tipo_arquivo': anexo.tipo_arquivo,
            'tamanho': anexo.tamanho,
            'storage_path': anexo.storage_path,
            'hash_comprovante': anexo.hash_comprovante,
            'created_at': anexo.created_at.isoformat(),
        }
        for anexo in Anexo.objects.filter(lancamento_id=expense_id).order_by('created_at')
    ]


def find_duplicate(colaborador_id, hash_comprovante: str) -> Optional[Anexo]:
    """Comprovante com o mesmo hash já enviado pelo colaborador."""
    return Anexo.objects.select_related('lancamento').filter(
        lancamento__colaborador_id=colaborador_id,
        hash_comprovante=hash_comprovante,
    ).first()


@transaction.atomic
def add_attachment(
    principal: Principal,
    expense_id,
    nome_arquivo: str,
    tipo_arquivo: str,
    tamanho: int,
    conteudo: Optional[bytes] = None,
    hash_comprovante: Optional[str] = None,
    storage_path: str = '',
) -> Anexo:
    """
    Registra os metadados de um comprovante.

    Informe o conteúdo (para calcular o hash) ou o hash já calculado.

    Raises:
        ValidationFailure: Dados ausentes ou comprovante duplicado
        PeriodClosed: Lançamento já incluído em fechamento
    """
    lancamento: Lancamento = load_expense(expense_id)
    check_owner(principal, lancamento.colaborador)

    if lancamento.is_locked:
        raise PeriodClosed('O lançamento já foi incluído em um fechamento.')

    if conteudo is not None:
        hash_comprovante = compute_hash(conteudo)
        tamanho = tamanho or len(conteudo)
    if not hash_comprovante:
        raise ValidationFailure('Informe o conteúdo ou o hash do comprovante.')
    if not nome_arquivo:
        raise ValidationFailure('Informe o nome do arquivo.', errors={'nome_arquivo': 'Campo obrigatório.'})

    duplicado = find_duplicate(lancamento.colaborador_id, hash_comprovante)
    if duplicado is not None:
        logger.warning(
            f'Comprovante duplicado para o colaborador {lancamento.colaborador_id}: '
            f'{nome_arquivo} (já anexado ao lançamento {duplicado.lancamento_id})'
        )
        raise ValidationFailure(
            'Este comprovante já foi enviado anteriormente.',
            errors={'hash_comprovante': f'Duplicado do lançamento {duplicado.lancamento_id}.'},
        )

    anexo = Anexo.objects.create(
        lancamento=lancamento,
        nome_arquivo=nome_arquivo,
        tipo_arquivo=tipo_arquivo or 'application/octet-stream',
        tamanho=int(tamanho or 0),
        storage_path=storage_path or '',
        hash_comprovante=hash_comprovante,
    )
    logger.info(f'Anexo {anexo.nome_arquivo} registrado no lançamento {lancamento.id}')
    return anexo
