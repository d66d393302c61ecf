"""Query keys, staleness policies and the mutation invalidation map.

Reads go through fetch_query(), which serves fresh cache entries and
otherwise calls the repository (retrying database errors a few times).
Writes go through run_mutation(), which runs the write once and, only if
it succeeds, drops every cache key the MUTATIONS table lists for it.

Both portals share these keys: a client comment invalidates the same
('comments', 'task', id) entry the admin portal reads.
"""

import copy
import time
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, Optional, Tuple

import psycopg2

from atelier.config import get_config
from atelier.core.cache import QueryKey, get_query_cache
from atelier.core.utils.logging_config import LogContext

logger = logging.getLogger('atelier.core.queries')

SECOND = 1
MINUTE = 60 * SECOND


@dataclass
class ServiceResult:
    """Result of a service operation."""
    success: bool
    data: Any = None
    error: Optional[str] = None
    status_code: int = 200
    message: Optional[str] = None


# ════════════════════════════════════════════════════════════════
# Query keys
# ════════════════════════════════════════════════════════════════

SIDEBAR_COUNTS = ('sidebar-counts',)
ALL_TASKS = ('all-tasks',)
ALL_TICKETS = ('all-tickets',)
CLIENTS = ('clients',)
PROSPECTS = ('prospects',)
PROJECTS = ('projects',)
DASHBOARD_STATS = ('dashboard-stats',)


def client_key(client_id):
    return ('clients', client_id)


def client_projects_key(client_id):
    return ('clients', client_id, 'projects')


def prospect_key(prospect_id):
    return ('prospects', prospect_id)


def project_key(project_id):
    return ('projects', project_id)


def milestones_key(project_id):
    return ('milestones', 'project', project_id)


def milestone_key(milestone_id):
    return ('milestones', 'detail', milestone_id)


def milestone_tasks_key(milestone_id):
    return ('milestone-tasks', milestone_id)


def tasks_key(project_id):
    return ('tasks', 'project', project_id)


def tickets_key(project_id):
    return ('tickets', 'project', project_id)


def ticket_attachments_key(ticket_id):
    return ('ticket-attachments', ticket_id)


def documents_key(project_id):
    return ('documents', 'project', project_id)


def documents_to_sign_key(project_id):
    return ('documents', 'to-sign', project_id)


def comments_key(target, target_id):
    """target is 'task', 'milestone' or 'project'."""
    return ('comments', target, target_id)


def reviews_key(project_id):
    return ('reviews', project_id)


def admin_notifications_key():
    return ('notifications', 'admin')


def admin_unread_key():
    return ('notifications', 'admin', 'unread-count')


def client_notifications_key(client_id):
    return ('notifications', 'client', client_id)


def client_unread_key(client_id):
    return ('notifications', 'client', client_id, 'unread-count')


def client_sidebar_key(client_id, project_id=None):
    """Under SIDEBAR_COUNTS, so every sidebar-invalidating mutation drops it too."""
    if project_id is None:
        return ('sidebar-counts', 'client', client_id)
    return ('sidebar-counts', 'client', client_id, project_id)


# ════════════════════════════════════════════════════════════════
# Staleness policies
# ════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class QueryPolicy:
    stale_time: float
    gc_time: float


POLICIES: Dict[str, QueryPolicy] = {
    'clients': QueryPolicy(5 * MINUTE, 30 * MINUTE),
    'client': QueryPolicy(10 * MINUTE, 60 * MINUTE),
    'client-projects': QueryPolicy(3 * MINUTE, 15 * MINUTE),
    'prospects': QueryPolicy(2 * MINUTE, 10 * MINUTE),
    'prospect': QueryPolicy(5 * MINUTE, 30 * MINUTE),
    'projects': QueryPolicy(3 * MINUTE, 15 * MINUTE),
    'project': QueryPolicy(5 * MINUTE, 30 * MINUTE),
    'dashboard-stats': QueryPolicy(1 * MINUTE, 5 * MINUTE),
    'milestones': QueryPolicy(3 * MINUTE, 15 * MINUTE),
    'milestone': QueryPolicy(5 * MINUTE, 30 * MINUTE),
    'milestone-tasks': QueryPolicy(2 * MINUTE, 10 * MINUTE),
    'tasks': QueryPolicy(2 * MINUTE, 10 * MINUTE),
    'all-tasks': QueryPolicy(2 * MINUTE, 10 * MINUTE),
    'tickets': QueryPolicy(1 * MINUTE, 5 * MINUTE),
    'all-tickets': QueryPolicy(2 * MINUTE, 10 * MINUTE),
    'ticket-attachments': QueryPolicy(2 * MINUTE, 10 * MINUTE),
    'documents': QueryPolicy(5 * MINUTE, 15 * MINUTE),
    'documents-to-sign': QueryPolicy(1 * MINUTE, 5 * MINUTE),
    'comments': QueryPolicy(1 * MINUTE, 5 * MINUTE),
    'project-comments': QueryPolicy(2 * MINUTE, 10 * MINUTE),
    'reviews': QueryPolicy(10 * MINUTE, 30 * MINUTE),
    'notifications': QueryPolicy(1 * MINUTE, 5 * MINUTE),
    'unread-count': QueryPolicy(30 * SECOND, 2 * MINUTE),
    'sidebar-counts': QueryPolicy(30 * SECOND, 2 * MINUTE),
}


# ════════════════════════════════════════════════════════════════
# Mutation -> invalidated keys
# ════════════════════════════════════════════════════════════════

class Param(str):
    """Placeholder in a key template, filled from the mutation context."""


@dataclass(frozen=True)
class Mutation:
    invalidates: Tuple[tuple, ...]
    success: str
    error: str
    status_code: int = 200
    # (key template, policy name): result rows written straight into the cache
    seeds: Tuple[Tuple[tuple, str], ...] = field(default_factory=tuple)


P_ID = Param('id')
P_CLIENT = Param('client_id')
P_PROJECT = Param('projet_id')
P_MILESTONE = Param('milestone_id')
P_TASK = Param('task_id')
P_TICKET = Param('ticket_id')

_NOTIF_ADMIN = ('notifications', 'admin')
_NOTIF_CLIENT = ('notifications', 'client', P_CLIENT)

MUTATIONS: Dict[str, Mutation] = {
    # Clients
    'client.create': Mutation(
        invalidates=(CLIENTS, SIDEBAR_COUNTS),
        success='Client créé avec succès',
        error='Erreur lors de la création du client',
        status_code=201,
    ),
    'client.update': Mutation(
        invalidates=(CLIENTS, PROJECTS, ('milestones', 'detail'), ALL_TASKS, ALL_TICKETS),
        success='Client mis à jour avec succès',
        error='Erreur lors de la mise à jour du client',
    ),
    'client.delete': Mutation(
        invalidates=(CLIENTS, PROJECTS, ('milestones',), ('milestone-tasks',), ('tasks',),
                     ALL_TASKS, ('tickets',), ALL_TICKETS, ('documents',), ('comments',),
                     ('reviews',), ('notifications',), DASHBOARD_STATS, SIDEBAR_COUNTS),
        success='Client supprimé avec succès',
        error='Erreur lors de la suppression du client',
    ),
    'client.create_account': Mutation(
        invalidates=(client_key(P_CLIENT),),
        success='Compte client créé avec succès',
        error='Erreur lors de la création du compte client',
        status_code=201,
    ),

    # Prospects
    'prospect.create': Mutation(
        invalidates=(PROSPECTS, DASHBOARD_STATS, SIDEBAR_COUNTS),
        success='Prospect créé avec succès',
        error='Erreur lors de la création du prospect',
        status_code=201,
    ),
    'prospect.update': Mutation(
        invalidates=(PROSPECTS, DASHBOARD_STATS, SIDEBAR_COUNTS),
        success='Prospect mis à jour avec succès',
        error='Erreur lors de la mise à jour du prospect',
    ),
    'prospect.update_status': Mutation(
        invalidates=(PROSPECTS, DASHBOARD_STATS, SIDEBAR_COUNTS),
        success='Statut du prospect mis à jour',
        error='Erreur lors de la mise à jour du statut',
    ),
    'prospect.archive': Mutation(
        invalidates=(PROSPECTS, DASHBOARD_STATS, SIDEBAR_COUNTS),
        success='Prospect archivé',
        error="Erreur lors de l'archivage du prospect",
    ),
    'prospect.delete': Mutation(
        invalidates=(PROSPECTS, DASHBOARD_STATS, SIDEBAR_COUNTS),
        success='Prospect supprimé avec succès',
        error='Erreur lors de la suppression du prospect',
    ),
    'prospect.convert': Mutation(
        invalidates=(PROSPECTS, CLIENTS, PROJECTS, DASHBOARD_STATS, SIDEBAR_COUNTS),
        success='Prospect converti en client avec succès',
        error='Erreur lors de la conversion du prospect',
        status_code=201,
    ),

    # Projects
    'project.create': Mutation(
        invalidates=(PROJECTS, client_projects_key(P_CLIENT), DASHBOARD_STATS, SIDEBAR_COUNTS),
        success='Projet créé avec succès',
        error='Erreur lors de la création du projet',
        status_code=201,
    ),
    'project.update': Mutation(
        invalidates=(PROJECTS, ('clients',), ('milestones', 'detail'), ALL_TASKS, ALL_TICKETS,
                     ('notifications',), DASHBOARD_STATS, SIDEBAR_COUNTS),
        success='Projet mis à jour avec succès',
        error='Erreur lors de la mise à jour du projet',
        seeds=((project_key(P_ID), 'project'),),
    ),
    'project.update_status': Mutation(
        invalidates=(PROJECTS, ('clients',), ('milestones', 'detail'), ALL_TASKS, ALL_TICKETS,
                     ('notifications',), DASHBOARD_STATS, SIDEBAR_COUNTS),
        success='Statut du projet mis à jour',
        error='Erreur lors de la mise à jour du statut',
    ),
    'project.delete': Mutation(
        invalidates=(PROJECTS, client_projects_key(P_CLIENT), milestones_key(P_ID),
                     ('milestones', 'detail'), ('milestone-tasks',), tasks_key(P_ID), ALL_TASKS,
                     tickets_key(P_ID), ALL_TICKETS, ('ticket-attachments',),
                     documents_key(P_ID), documents_to_sign_key(P_ID), ('comments',),
                     reviews_key(P_ID), ('notifications',), DASHBOARD_STATS, SIDEBAR_COUNTS),
        success='Projet supprimé avec succès',
        error='Erreur lors de la suppression du projet',
    ),

    # Milestones
    'milestone.create': Mutation(
        invalidates=(milestones_key(P_PROJECT),),
        success='Milestone créé avec succès',
        error='Erreur lors de la création du milestone',
        status_code=201,
    ),
    'milestone.update': Mutation(
        invalidates=(milestones_key(P_PROJECT), milestone_key(P_ID), tasks_key(P_PROJECT),
                     ALL_TASKS, tickets_key(P_PROJECT), comments_key('milestone', P_ID),
                     comments_key('project', P_PROJECT)),
        success='Milestone mis à jour avec succès',
        error='Erreur lors de la mise à jour du milestone',
    ),
    'milestone.delete': Mutation(
        invalidates=(milestones_key(P_PROJECT), milestone_key(P_ID), milestone_tasks_key(P_ID),
                     tasks_key(P_PROJECT), ALL_TASKS, comments_key('milestone', P_ID),
                     comments_key('project', P_PROJECT)),
        success='Milestone supprimé avec succès',
        error='Erreur lors de la suppression du milestone',
    ),

    # Tasks
    'task.create': Mutation(
        invalidates=(tasks_key(P_PROJECT), ALL_TASKS, milestone_tasks_key(P_MILESTONE),
                     milestones_key(P_PROJECT), SIDEBAR_COUNTS),
        success='Tâche créée avec succès',
        error='Erreur lors de la création de la tâche',
        status_code=201,
    ),
    'task.update': Mutation(
        invalidates=(tasks_key(P_PROJECT), ALL_TASKS, ('milestone-tasks',),
                     milestones_key(P_PROJECT), comments_key('task', P_ID),
                     comments_key('project', P_PROJECT), SIDEBAR_COUNTS),
        success='Tâche mise à jour avec succès',
        error='Erreur lors de la mise à jour de la tâche',
    ),
    'task.update_status': Mutation(
        invalidates=(tasks_key(P_PROJECT), ALL_TASKS, milestone_tasks_key(P_MILESTONE),
                     milestones_key(P_PROJECT), SIDEBAR_COUNTS),
        success='Statut de la tâche mis à jour',
        error='Erreur lors de la mise à jour du statut',
    ),
    'task.delete': Mutation(
        invalidates=(tasks_key(P_PROJECT), ALL_TASKS, milestone_tasks_key(P_MILESTONE),
                     comments_key('task', P_ID), comments_key('project', P_PROJECT),
                     milestones_key(P_PROJECT), SIDEBAR_COUNTS),
        success='Tâche supprimée avec succès',
        error='Erreur lors de la suppression de la tâche',
    ),

    # Tickets
    'ticket.create': Mutation(
        invalidates=(tickets_key(P_PROJECT), ALL_TICKETS, SIDEBAR_COUNTS),
        success='Ticket créé avec succès',
        error='Erreur lors de la création du ticket',
        status_code=201,
    ),
    'ticket.update': Mutation(
        invalidates=(tickets_key(P_PROJECT), ALL_TICKETS),
        success='Ticket mis à jour avec succès',
        error='Erreur lors de la mise à jour du ticket',
    ),
    'ticket.update_status': Mutation(
        invalidates=(tickets_key(P_PROJECT), ALL_TICKETS, SIDEBAR_COUNTS),
        success='Statut du ticket mis à jour',
        error='Erreur lors de la mise à jour du statut',
    ),
    'ticket.delete': Mutation(
        invalidates=(tickets_key(P_PROJECT), ALL_TICKETS, ticket_attachments_key(P_ID),
                     SIDEBAR_COUNTS),
        success='Ticket supprimé avec succès',
        error='Erreur lors de la suppression du ticket',
    ),
    'ticket_attachment.create': Mutation(
        invalidates=(ticket_attachments_key(P_TICKET), ('tickets',)),
        success='Pièce jointe ajoutée',
        error="Erreur lors de l'ajout de la pièce jointe",
        status_code=201,
    ),
    'ticket_attachment.delete': Mutation(
        invalidates=(ticket_attachments_key(P_TICKET), ('tickets',)),
        success='Pièce jointe supprimée',
        error='Erreur lors de la suppression de la pièce jointe',
    ),

    # Documents
    'document.upload': Mutation(
        invalidates=(documents_key(P_PROJECT), documents_to_sign_key(P_PROJECT),
                     SIDEBAR_COUNTS),
        success='Document uploadé avec succès',
        error="Erreur lors de l'upload du document",
        status_code=201,
    ),
    'document.update': Mutation(
        invalidates=(documents_key(P_PROJECT), documents_to_sign_key(P_PROJECT)),
        success='Document mis à jour avec succès',
        error='Erreur lors de la mise à jour du document',
    ),
    'document.sign': Mutation(
        invalidates=(documents_key(P_PROJECT), documents_to_sign_key(P_PROJECT),
                     SIDEBAR_COUNTS),
        success='Document signé avec succès',
        error='Erreur lors de la signature du document',
    ),
    'document.delete': Mutation(
        invalidates=(documents_key(P_PROJECT), documents_to_sign_key(P_PROJECT),
                     SIDEBAR_COUNTS),
        success='Document supprimé avec succès',
        error='Erreur lors de la suppression du document',
    ),

    # Comments
    'comment.create': Mutation(
        invalidates=(comments_key('task', P_TASK), comments_key('milestone', P_MILESTONE),
                     comments_key('project', P_PROJECT)),
        success='Commentaire ajouté',
        error="Erreur lors de l'ajout du commentaire",
        status_code=201,
    ),

    # Reviews
    'review.create': Mutation(
        invalidates=(reviews_key(P_PROJECT),),
        success='Merci pour votre avis !',
        error="Erreur lors de l'envoi de l'avis",
        status_code=201,
    ),

    # Notifications
    'notification.mark_read': Mutation(
        invalidates=(_NOTIF_ADMIN, _NOTIF_CLIENT, SIDEBAR_COUNTS),
        success='Notification marquée comme lue',
        error='Erreur lors de la mise à jour de la notification',
    ),
    'notification.mark_all_read': Mutation(
        invalidates=(_NOTIF_ADMIN, _NOTIF_CLIENT, SIDEBAR_COUNTS),
        success='Toutes les notifications ont été marquées comme lues',
        error='Erreur lors de la mise à jour des notifications',
    ),
}


def resolve_key(template: tuple, context: Dict[str, Any]) -> Optional[QueryKey]:
    """Fill Param placeholders from context. None if any value is unknown."""
    resolved = []
    for part in template:
        if isinstance(part, Param):
            value = context.get(str(part))
            if value is None:
                return None
            resolved.append(value)
        else:
            resolved.append(part)
    return tuple(resolved)


def resolve_keys(templates: Iterable[tuple], context: Dict[str, Any]):
    """Resolved keys for a mutation, unknown ones skipped, order kept."""
    keys = []
    for template in templates:
        key = resolve_key(template, context)
        if key is not None and key not in keys:
            keys.append(key)
    return keys


# ════════════════════════════════════════════════════════════════
# Reads
# ════════════════════════════════════════════════════════════════

def fetch_query(name: str, key: QueryKey, fetch: Callable[[], Any],
                enabled: bool = True, default: Any = None) -> Any:
    """Cached read.

    Returns `default` without touching the backend when the query is
    disabled or any key part is still unknown (None). Database errors are
    retried QUERY_RETRY_COUNT times, then raised.
    """
    if not enabled or any(part is None for part in key):
        return default

    policy = POLICIES[name]
    cache = get_query_cache()
    hit, data = cache.get(key)
    if hit:
        return copy.deepcopy(data)

    data = _fetch_with_retry(key, fetch)
    cache.set(key, copy.deepcopy(data), policy.stale_time, policy.gc_time)
    return data


def set_query_data(name: str, key: QueryKey, data: Any) -> None:
    policy = POLICIES[name]
    get_query_cache().set(key, copy.deepcopy(data), policy.stale_time, policy.gc_time)


def invalidate_queries(*prefixes: QueryKey) -> int:
    cache = get_query_cache()
    return sum(cache.invalidate(prefix) for prefix in prefixes)


def _fetch_with_retry(key, fetch):
    retries = get_config().QUERY_RETRY_COUNT
    for attempt in range(retries + 1):
        try:
            return fetch()
        except psycopg2.Error as e:
            if attempt >= retries:
                logger.error(f'Query {key} failed after {attempt + 1} attempts: {e}')
                raise
            logger.warning(f'Query {key} failed (attempt {attempt + 1}/{retries + 1}), retrying: {e}')
            time.sleep(min(0.2 * 2 ** attempt, 2.0))


# ════════════════════════════════════════════════════════════════
# Writes
# ════════════════════════════════════════════════════════════════

def run_mutation(name: str, write: Callable[[], Any], context: Optional[Dict[str, Any]] = None,
                 not_found: str = 'Ressource introuvable') -> ServiceResult:
    """Run a write once and invalidate its declared keys on success.

    - write() returning None means the target row doesn't exist: 404, no invalidation
    - ValueError from write(): 400 with the message, cache untouched
    - any other exception: logged, generic per-mutation error, cache untouched
    """
    rule = MUTATIONS[name]
    context = dict(context or {})

    with LogContext(mutation=name):
        try:
            result = write()
        except ValueError as e:
            logger.info(f'Mutation {name} rejected: {e}')
            return ServiceResult(success=False, error=str(e), status_code=400)
        except Exception:
            logger.exception(f'Mutation {name} failed')
            return ServiceResult(success=False, error=rule.error, status_code=500)

        if result is None:
            return ServiceResult(success=False, error=not_found, status_code=404)

        if isinstance(result, dict):
            for k, v in result.items():
                context.setdefault(k, v)

        keys = resolve_keys(rule.invalidates, context)
        dropped = invalidate_queries(*keys)
        for template, policy_name in rule.seeds:
            seed_key = resolve_key(template, context)
            if seed_key is not None:
                set_query_data(policy_name, seed_key, result)
        logger.debug(f'Mutation {name} succeeded, {len(keys)} keys invalidated ({dropped} entries)')

    return ServiceResult(success=True, data=result, status_code=rule.status_code,
                         message=rule.success)
