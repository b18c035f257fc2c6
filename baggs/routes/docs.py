"""
OpenAPI 3 document generated from the registered routes.

Paths come from ``app.url_map``, summaries and descriptions from the view
docstrings, and protected views (``requires_auth``) are marked with the
bearer security scheme.
"""
import re

from flask import Blueprint, current_app, jsonify

from baggs.extensions import limiter

docs_bp = Blueprint('docs', __name__)

_CONVERTER = re.compile(r'<(?:[^:<>]+:)?([^<>]+)>')
_IGNORED_METHODS = {'HEAD', 'OPTIONS'}


def openapi_path(rule):
    return _CONVERTER.sub(r'{\1}', rule)


def describe(view):
    doc = (view.__doc__ or '').strip()
    if not doc:
        return view.__name__.replace('_', ' ').capitalize(), None
    lines = [line.strip() for line in doc.splitlines()]
    return lines[0], '\n'.join(lines[1:]).strip() or None


def build_openapi(app):
    prefix = app.config['API_PREFIX']
    paths = {}

    for rule in sorted(app.url_map.iter_rules(), key=lambda r: r.rule):
        if not rule.rule.startswith(prefix):
            continue
        view = app.view_functions[rule.endpoint]
        summary, description = describe(view)
        tag = rule.endpoint.split('.', 1)[0]
        parameters = [
            {'name': name, 'in': 'path', 'required': True, 'schema': {'type': 'string'}}
            for name in sorted(rule.arguments)
        ]

        for method in sorted(rule.methods - _IGNORED_METHODS):
            operation = {
                'tags': [tag],
                'summary': summary,
                'operationId': f'{rule.endpoint}_{method.lower()}',
                'responses': {'200': {'description': 'Success envelope'}},
            }
            if description:
                operation['description'] = description
            if parameters:
                operation['parameters'] = parameters
            if getattr(view, 'requires_auth', False):
                operation['security'] = [{'bearerAuth': []}]
                operation['responses']['401'] = {'description': 'Not authorized'}
            paths.setdefault(openapi_path(rule.rule), {})[method.lower()] = operation

    return {
        'openapi': '3.0.3',
        'info': {'title': 'Baggs API', 'version': '1.0.0'},
        'servers': [{'url': '/'}],
        'paths': paths,
        'components': {
            'securitySchemes': {
                'bearerAuth': {'type': 'http', 'scheme': 'bearer', 'bearerFormat': 'JWT'},
            },
        },
    }


@docs_bp.route('/api-docs', methods=['GET'])
@limiter.exempt
def api_docs():
    return jsonify(build_openapi(current_app))
