import logging

from flask import Blueprint, g

from baggs import db
from baggs.errors import NotFound
from baggs.models import Ad, utcnow
from baggs.policy import authorize
from baggs.responses import STATUS_CODES, success_response
from baggs.utils import json_body, require_auth, require_role
from baggs.validators import Validator

logger = logging.getLogger(__name__)

ads_bp = Blueprint('ads', __name__)


def ad_rules(validator, creating=False):
    return (validator
            .string('title', required=creating, max_length=255)
            .string('url', max_length=500)
            .string('image', max_length=500)
            .date('startAt')
            .date('expireDate', required=creating))


def get_ad_or_404(ad_id):
    ad = db.session.get(Ad, ad_id)
    if not ad:
        raise NotFound(f'Ad not found with id of {ad_id}')
    return ad


@ads_bp.route('', methods=['POST'])
@require_auth
@require_role('admin')
def create_ad():
    """
    Create an ad (admin only)
    POST /api/v1/ads
    Body: { "title": "Summer promo", "url": "https://...", "image": "https://...",
            "startAt": "2024-06-01T00:00:00Z", "expireDate": "2024-07-01T00:00:00Z" }
    """
    data = ad_rules(Validator(json_body()), creating=True).validate()

    ad = Ad(created_by_admin_id=g.current_user.id, **data)
    db.session.add(ad)
    db.session.commit()

    logger.info('Admin %s created ad %s', g.current_user.id, ad.id)
    return success_response(STATUS_CODES.CREATED, 'Ad created successfully', ad.to_dict())


@ads_bp.route('', methods=['GET'])
@require_auth
@require_role('admin')
def list_ads():
    """Active ads, those whose expireDate is still in the future (admin only)"""
    ads = (Ad.query
           .filter(Ad.expire_date > utcnow())
           .order_by(Ad.created_at.desc())
           .all())
    return success_response(
        STATUS_CODES.OK,
        'Ads retrieved successfully',
        [ad.to_dict(include_relationships=True) for ad in ads],
        count=len(ads),
    )


@ads_bp.route('/stats', methods=['GET'])
@require_auth
@require_role('admin')
def ad_stats():
    """Total, active and inactive ad counts (admin only)"""
    total = Ad.query.count()
    active = Ad.query.filter(Ad.expire_date > utcnow()).count()
    return success_response(STATUS_CODES.OK, 'Ad statistics retrieved successfully', {
        'total': total,
        'active': active,
        'inactive': total - active,
    })


@ads_bp.route('/<ad_id>', methods=['GET'])
def get_ad(ad_id):
    """Get a single ad (public)"""
    ad = get_ad_or_404(ad_id)
    return success_response(STATUS_CODES.OK, 'Ad retrieved successfully', ad.to_dict())


@ads_bp.route('/<ad_id>', methods=['PUT'])
@require_auth
@require_role('admin')
def update_ad(ad_id):
    """Update an ad; only the admin who created it may"""
    data = ad_rules(Validator(json_body())).validate()

    ad = get_ad_or_404(ad_id)
    authorize(g.current_user, 'ad:modify', ad)
    ad.apply(data)
    db.session.commit()

    return success_response(STATUS_CODES.OK, 'Ad updated successfully', ad.to_dict())


@ads_bp.route('/<ad_id>', methods=['DELETE'])
@require_auth
@require_role('admin')
def delete_ad(ad_id):
    ad = get_ad_or_404(ad_id)
    authorize(g.current_user, 'ad:modify', ad)
    db.session.delete(ad)
    db.session.commit()

    logger.info('Admin %s deleted ad %s', g.current_user.id, ad_id)
    return success_response(STATUS_CODES.OK, 'Ad deleted successfully', None)
