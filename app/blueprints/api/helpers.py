"""
API helper functions: response envelope builders and lat,lng parsing.
"""
from flask import jsonify

from app.errors import ValidationError


def api_success(data, status=200, results=None):
    """Build the standard success envelope: {status, results?, data: {data}}."""
    body = {'status': 'success'}
    if results is not None:
        body['results'] = results
    body['data'] = {'data': data}
    return jsonify(body), status


def no_content():
    return '', 204


def parse_latlng(latlng):
    """Split "lat,lng" into two floats; malformed input is a 400."""
    parts = (latlng or '').split(',')
    try:
        lat, lng = (float(p) for p in parts)
    except ValueError:
        raise ValidationError('Please provide latitude and longitude in the format lat,lng.')
    return lat, lng
