from flask import request
from marketplace.errors import ValidationError
import logging

logger = logging.getLogger(__name__)


def get_json_body():
    """Return the request JSON object, rejecting anything else with a 400."""
    data = request.get_json(silent=True)
    if data is None:
        if request.get_data(cache=True):
            raise ValidationError('Malformed JSON body', status_code=400)
        data = {}
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object',
                              status_code=400)
    return data


def get_page_args(default_per_page=20):
    page = request.args.get('page', 1, type=int)
    per_page = request.args.get('per_page', default_per_page, type=int)
    return max(page, 1), min(max(per_page, 1), 100)


def paginate_query(query, page=1, per_page=20):
    pagination = query.paginate(
        page=page,
        per_page=per_page,
        error_out=False
    )
    return {
        'items': pagination.items,
        'page': pagination.page,
        'pages': pagination.pages,
        'per_page': pagination.per_page,
        'total': pagination.total,
        'has_next': pagination.has_next,
        'has_prev': pagination.has_prev
    }


def isoformat(value):
    return value.isoformat() if value else None
