"""
Access policy: a single (actor, action, resource) -> allow/deny decision.

Route handlers and the transfer lifecycle call ``authorize`` instead of
comparing owner ids inline. Role-only gates stay on the routes as
``require_role`` decorators.
"""
from baggs.errors import Forbidden


def _is_admin(actor, resource):
    return actor.role == 'admin'


def _is_owner(actor, resource):
    return resource is not None and getattr(resource, 'user_id', None) == actor.id


def _owner_or_admin(actor, resource):
    return _is_admin(actor, resource) or _is_owner(actor, resource)


def _is_customer(actor, resource):
    return actor.role == 'customer'


def _notification_audience(actor, resource):
    return _is_admin(actor, resource) or resource.is_global or resource.is_targeted_to(actor.id)


def _ad_creator(actor, resource):
    return _is_admin(actor, resource) and resource.created_by_admin_id == actor.id


RULES = {
    'transfer:read': (_owner_or_admin, 'Not authorized to access this transfer'),
    'transfer:update': (_owner_or_admin, 'Not authorized to update this transfer'),
    'complaint:create': (_is_customer, 'Only customers can file complaints'),
    'complaint:file-for-transfer': (_is_owner, 'Not authorized to file a complaint for this transfer'),
    'complaint:read': (_owner_or_admin, 'Not authorized to access this complaint'),
    'complaint:respond': (_owner_or_admin, 'Not authorized to respond to this complaint'),
    'notification:read': (_notification_audience, 'Not authorized to access this notification'),
    'ad:modify': (_ad_creator, 'Not authorized to modify this ad'),
}


def can(actor, action, resource=None):
    if actor is None:
        return False
    check, _ = RULES[action]
    return bool(check(actor, resource))


def authorize(actor, action, resource=None):
    """Raise Forbidden unless ``actor`` may perform ``action`` on ``resource``"""
    if not can(actor, action, resource):
        raise Forbidden(RULES[action][1])
