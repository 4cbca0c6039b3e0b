"""
Conciliação entre o nome oficial do RH e o nome de exibição da conta.

O RH é o sistema de registro: RH e Financeiro sempre veem o nome oficial.
O próprio colaborador vê o nome que escolheu para a conta.

A detecção consulta uma conta por colaborador vinculado. As consultas são
independentes, rodam em paralelo com limite de concorrência e timeout
individual; uma consulta que falha é apenas omitida do resultado.
"""

import logging
import time
from collections import deque
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence

import requests
from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import DatabaseError

from core.exceptions import DependencyUnavailable
from core.models import ColaboradorElegivel
from core.utils.formatacao import normalize_name

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Account:
    """Conta de acesso vinculada a um colaborador."""

    user_id: str
    nome: str
    email: str = ''


@dataclass(frozen=True)
class NameInconsistency:
    """Par de nomes divergentes (calculado sob demanda, não persistido)."""

    colaborador_id: str
    user_id: str
    matricula: str
    nome_rh: str
    nome_conta: str

    def as_dict(self) -> dict:
        return {
            'colaborador_id': self.colaborador_id,
            'user_id': self.user_id,
            'matricula': self.matricula,
            'nome_rh': self.nome_rh,
            'nome_conta': self.nome_conta,
        }


def names_differ(nome_rh: str, nome_conta: str) -> bool:
    """Compara ignorando caixa e espaços; conta sem nome não diverge."""
    if not (nome_conta or '').strip():
        return False
    return normalize_name(nome_rh) != normalize_name(nome_conta)


class AccountLookup:
    """Interface de consulta de contas."""

    def get_account(self, user_id) -> Optional[Account]:
        raise NotImplementedError


class DatabaseAccountLookup(AccountLookup):
    """
    Contas lidas do banco local.

    As contas são carregadas de uma vez na thread chamadora; as consultas
    individuais apenas leem o cache.
    """

    def __init__(self, user_ids: Iterable):
        User = get_user_model()
        try:
            self._accounts = {
                str(pk): Account(user_id=str(pk), nome=nome, email=email)
                for pk, nome, email in User.objects.filter(pk__in=list(user_ids)).values_list('pk', 'nome', 'email')
            }
        except DatabaseError as e:
            logger.error(f'Erro ao carregar contas de usuário: {str(e)}')
            raise DependencyUnavailable() from e

    def get_account(self, user_id) -> Optional[Account]:
        return self._accounts.get(str(user_id))


class HttpAccountLookup(AccountLookup):
    """
    Contas consultadas em um serviço externo.

    Endpoint esperado: GET {base_url}/accounts/{user_id}
    Resposta: {"id": "...", "nome": "...", "email": "..."}
    """

    def __init__(self, base_url: Optional[str] = None, token: Optional[str] = None, timeout: Optional[float] = None):
        self.base_url = (base_url or getattr(settings, 'REREPORTS_ACCOUNT_LOOKUP_URL', '')).rstrip('/')
        self.timeout = timeout or getattr(settings, 'REREPORTS_LOOKUP_TIMEOUT', 5)
        token = token if token is not None else getattr(settings, 'REREPORTS_ACCOUNT_LOOKUP_TOKEN', '')

        if not self.base_url:
            logger.warning('REREPORTS_ACCOUNT_LOOKUP_URL não configurada. Configure no arquivo .env')

        self.headers = {'Accept': 'application/json'}
        if token:
            self.headers['Authorization'] = f'Bearer {token}'

    def get_account(self, user_id) -> Optional[Account]:
        url = f'{self.base_url}/accounts/{user_id}'
        try:
            response = requests.get(url, headers=self.headers, timeout=self.timeout)
            if response.status_code == 404:
                return None
            response.raise_for_status()
            data = response.json()
            if not isinstance(data, dict):
                raise ValueError(f'esperado um objeto JSON, recebido {type(data).__name__}')
            return Account(
                user_id=str(data.get('id') or user_id),
                nome=str(data.get('nome') or ''),
                email=str(data.get('email') or ''),
            )
        except requests.exceptions.Timeout as e:
            logger.error(f'Timeout ao consultar conta {user_id}')
            raise DependencyUnavailable() from e
        except requests.exceptions.RequestException as e:
            logger.error(f'Erro na requisição de conta {user_id}: {str(e)}')
            raise DependencyUnavailable() from e
        except ValueError as e:
            logger.error(f'Resposta inválida ao consultar conta {user_id}: {str(e)}')
            raise DependencyUnavailable() from e


def detect(
    colaboradores: Sequence[ColaboradorElegivel],
    lookup: AccountLookup,
    max_workers: Optional[int] = None,
    timeout: Optional[float] = None,
) -> List[NameInconsistency]:
    """
    Detecta divergências de nome para colaboradores com conta vinculada.

    No máximo `max_workers` consultas ficam em andamento ao mesmo tempo.
    O prazo de cada consulta conta a partir do seu início; a que estoura
    o prazo é abandonada e libera a vaga para a próxima, então uma conta
    lenta não derruba as demais.

    Args:
        colaboradores: Colaboradores a verificar (sem conta são ignorados)
        lookup: Consulta de contas
        max_workers: Limite de consultas simultâneas
        timeout: Prazo de cada consulta, em segundos

    Returns:
        Divergências encontradas, na ordem recebida (consultas com falha
        são omitidas)
    """
    max_workers = max(1, max_workers or getattr(settings, 'REREPORTS_LOOKUP_CONCURRENCY', 4))
    timeout = timeout or getattr(settings, 'REREPORTS_LOOKUP_TIMEOUT', 5)

    vinculados = [c for c in colaboradores if c.user_id]
    if not vinculados:
        return []

    contas = {}
    fila = deque(enumerate(vinculados))
    em_andamento = {}
    # Uma thread por consulta: consultas abandonadas não ocupam a vaga das próximas
    executor = ThreadPoolExecutor(max_workers=len(vinculados), thread_name_prefix='account-lookup')
    try:
        while fila or em_andamento:
            while fila and len(em_andamento) < max_workers:
                posicao, colaborador = fila.popleft()
                future = executor.submit(lookup.get_account, colaborador.user_id)
                em_andamento[future] = (posicao, colaborador, time.monotonic() + timeout)

            proximo_prazo = min(prazo for _, _, prazo in em_andamento.values())
            concluidas, _ = wait(
                list(em_andamento),
                timeout=max(0.0, proximo_prazo - time.monotonic()),
                return_when=FIRST_COMPLETED,
            )

            for future in concluidas:
                posicao, colaborador, _ = em_andamento.pop(future)
                account = _lookup_result(future, colaborador)
                if account is not None:
                    contas[posicao] = (colaborador, account)

            agora = time.monotonic()
            for future, (posicao, colaborador, prazo) in list(em_andamento.items()):
                if prazo <= agora:
                    del em_andamento[future]
                    future.cancel()
                    logger.warning(f'Timeout na consulta da conta do colaborador {colaborador.matricula}')
    finally:
        executor.shutdown(wait=False, cancel_futures=True)

    inconsistencias = []
    for posicao in sorted(contas):
        colaborador, account = contas[posicao]
        if names_differ(colaborador.nome, account.nome):
            inconsistencias.append(NameInconsistency(
                colaborador_id=str(colaborador.id),
                user_id=str(colaborador.user_id),
                matricula=colaborador.matricula,
                nome_rh=colaborador.nome,
                nome_conta=account.nome,
            ))
    return inconsistencias


def _lookup_result(future, colaborador: ColaboradorElegivel) -> Optional[Account]:
    """Resultado de uma consulta concluída; falhas viram None."""
    try:
        return future.result()
    except DependencyUnavailable as e:
        logger.warning(f'Conta do colaborador {colaborador.matricula} indisponível: {e.message}')
    except Exception as e:
        logger.exception(f'Erro inesperado na consulta da conta do colaborador {colaborador.matricula}: {str(e)}')
    return None


def detect_name_inconsistencies(lookup: Optional[AccountLookup] = None, **kwargs) -> List[NameInconsistency]:
    """Detecta divergências para todos os colaboradores ativos com conta."""
    try:
        colaboradores = list(
            ColaboradorElegivel.objects.filter(ativo=True, user__isnull=False).order_by('nome')
        )
    except DatabaseError as e:
        logger.error(f'Erro ao carregar colaboradores: {str(e)}')
        raise DependencyUnavailable() from e

    if lookup is None:
        if getattr(settings, 'REREPORTS_ACCOUNT_LOOKUP_URL', ''):
            lookup = HttpAccountLookup()
        else:
            lookup = DatabaseAccountLookup(c.user_id for c in colaboradores)

    inconsistencias = detect(colaboradores, lookup, **kwargs)
    logger.info(f'{len(inconsistencias)} divergência(s) de nome em {len(colaboradores)} colaborador(es)')
    return inconsistencias


def display_name(nome_rh: str, nome_conta: Optional[str], viewer_is_hr: bool) -> str:
    """Sem divergência, ou para RH/Financeiro, vale o nome oficial."""
    if viewer_is_hr or not nome_conta or not names_differ(nome_rh, nome_conta):
        return nome_rh
    return nome_conta


def resolve_display_name(
    colaborador_id,
    nome_rh: str,
    viewer_is_hr: bool,
    lookup: Optional[AccountLookup] = None,
) -> str:
    """
    Nome a exibir para um colaborador conforme quem está vendo.

    Args:
        colaborador_id: Colaborador exibido
        nome_rh: Nome oficial do RH
        viewer_is_hr: Se o visualizador é RH/Financeiro
        lookup: Consulta de contas (padrão: banco local)
    """
    if viewer_is_hr:
        return nome_rh

    try:
        user_id = ColaboradorElegivel.objects.filter(pk=colaborador_id).values_list('user_id', flat=True).first()
    except DatabaseError as e:
        logger.error(f'Erro ao carregar colaborador {colaborador_id}: {str(e)}')
        raise DependencyUnavailable() from e
    if not user_id:
        return nome_rh

    lookup = lookup or DatabaseAccountLookup([user_id])
    account = lookup.get_account(user_id)
    return display_name(nome_rh, account.nome if account else None, viewer_is_hr)


def display_names_for(colaboradores: Iterable[ColaboradorElegivel], viewer_is_hr: bool) -> Dict[str, str]:
    """Nome de exibição de vários colaboradores de uma vez."""
    colaboradores = list(colaboradores)
    lookup = DatabaseAccountLookup(c.user_id for c in colaboradores if c.user_id)
    nomes = {}
    for colaborador in colaboradores:
        account = lookup.get_account(colaborador.user_id) if colaborador.user_id else None
        nomes[str(colaborador.id)] = display_name(colaborador.nome, account.nome if account else None, viewer_is_hr)
    return nomes
