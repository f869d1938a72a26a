"""
Правила выбора ревьюверов.

Здесь только чистые функции: на вход списки идентификаторов и источник
случайности, на выход выбранные идентификаторы. Чтение и запись в БД делают
сервисы через хранилища.
"""
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Set

from .errors import NoCandidate

REVIEWERS_PER_PULL_REQUEST = 2


@dataclass(frozen=True)
class Assignment:
    """Открытый PR, где один из деактивируемых пользователей назначен ревьювером"""
    pull_request_id: str
    author_id: str
    old_reviewer_id: str
    reviewer_ids: tuple = ()


@dataclass
class Reassignment:
    pull_request_id: str
    old_reviewer_id: str
    new_reviewer_id: str = ''
    error: str = ''


@dataclass
class ReassignmentPlan:
    successful: List[Reassignment] = field(default_factory=list)
    failed: List[Reassignment] = field(default_factory=list)
    blocked_user_ids: Set[str] = field(default_factory=set)


@dataclass
class DeactivationResult:
    deactivated: List[str] = field(default_factory=list)
    successful: List[Reassignment] = field(default_factory=list)
    failed: List[Reassignment] = field(default_factory=list)
    skipped: List[Reassignment] = field(default_factory=list)


def eligible_candidates(candidate_ids: Iterable[str], exclude: Iterable[str]) -> List[str]:
    """
    Кандидаты без исключенных, порядок исходного списка сохраняется, дубликаты убираются
    """
    excluded = set(exclude)
    return [user_id for user_id in dict.fromkeys(candidate_ids) if user_id not in excluded]


def select_reviewers(author_id: str, active_member_ids: Iterable[str], rng,
                     limit: int = REVIEWERS_PER_PULL_REQUEST) -> List[str]:
    """
    Выбирает до `limit` ревьюверов из активных участников команды автора.

    Пул сначала перемешивается и только потом обрезается, поэтому результат
    не зависит от порядка участников. Пустой пул дает пустой список.
    """
    pool = eligible_candidates(active_member_ids, [author_id])
    rng.shuffle(pool)
    return pool[:limit]


def pick_random_replacement(candidate_ids: Iterable[str], exclude: Iterable[str], rng) -> Optional[str]:
    pool = eligible_candidates(candidate_ids, exclude)
    if not pool:
        return None
    return rng.choice(pool)


def pick_first_replacement(candidate_ids: Iterable[str], exclude: Iterable[str]) -> Optional[str]:
    pool = eligible_candidates(candidate_ids, exclude)
    return pool[0] if pool else None


def plan_reassignments(assignments: Iterable[Assignment], candidate_ids: List[str]) -> ReassignmentPlan:
    """
    Подбирает замену для каждого назначения из общего пула кандидатов.

    Для каждого PR исключаются автор, все текущие ревьюверы и замены, уже
    выбранные для этого же PR. Сначала берется кандидат, еще не
    использованный в этой пачке; если свободных нет, допускается повтор.
    Если подходящих кандидатов нет совсем, назначение попадает в failed,
    а старый ревьювер блокируется от деактивации.
    """
    plan = ReassignmentPlan()
    consumed = set()
    added_per_pr = defaultdict(set)

    for assignment in assignments:
        exclude = {assignment.author_id, *assignment.reviewer_ids}
        exclude |= added_per_pr[assignment.pull_request_id]

        new_reviewer_id = pick_first_replacement(candidate_ids, exclude | consumed)
        if new_reviewer_id is None:
            new_reviewer_id = pick_first_replacement(candidate_ids, exclude)

        if new_reviewer_id is None:
            plan.failed.append(Reassignment(
                pull_request_id=assignment.pull_request_id,
                old_reviewer_id=assignment.old_reviewer_id,
                error=NoCandidate.default_message,
            ))
            plan.blocked_user_ids.add(assignment.old_reviewer_id)
            continue

        consumed.add(new_reviewer_id)
        added_per_pr[assignment.pull_request_id].add(new_reviewer_id)
        plan.successful.append(Reassignment(
            pull_request_id=assignment.pull_request_id,
            old_reviewer_id=assignment.old_reviewer_id,
            new_reviewer_id=new_reviewer_id,
        ))

    return plan
