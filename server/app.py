"""Flask ingestion server for agent-visualizer events."""

import os
import sys
import sqlite3
import time

PLUGIN_ROOT = os.environ.get('CLAUDE_PLUGIN_ROOT') or os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PLUGIN_ROOT)

from flask import Flask, jsonify, request
from core.config import DEFAULT_PORT, parse_port
from core.db import (
    MAX_QUERY_LIMIT, init_db, insert_event, get_events, get_event_by_id, get_sessions, get_event_count,
)
from core.validation import InvalidEventError, validate_event

MAX_BODY_SIZE = 1024 * 1024


def create_app(db_path=None):
    """Build the Flask app storing events in db_path (default: core.db.get_db_path())."""
    app = Flask(__name__)
    app.config['DATABASE'] = db_path
    app.config['MAX_CONTENT_LENGTH'] = MAX_BODY_SIZE
    app.config['STARTED_AT'] = time.time()

    init_db(db_path)

    @app.after_request
    def _add_cors(response):
        response.headers['Access-Control-Allow-Origin'] = '*'
        response.headers['Access-Control-Allow-Methods'] = 'GET, POST, OPTIONS'
        response.headers['Access-Control-Allow-Headers'] = 'Content-Type'
        return response

    @app.route('/api/health')
    def api_health():
        return jsonify({
            'status': 'ok',
            'uptime': int(time.time() - app.config['STARTED_AT']),
            'eventCount': get_event_count(db_path),
        })

    @app.route('/api/events', methods=['POST'])
    def api_post_event():
        body = request.get_json(silent=True)
        try:
            event = validate_event(body)
        except InvalidEventError as exc:
            return jsonify({'error': str(exc)}), 400

        try:
            insert_event(event, db_path)
        except sqlite3.Error:
            app.logger.exception('Failed to store event %s', event['id'])
            return jsonify({'error': 'Failed to process event'}), 500
        return jsonify({'ok': True}), 201

    @app.route('/api/events')
    def api_events():
        limit = request.args.get('limit', 100, type=int) or 100
        offset = request.args.get('offset', 0, type=int) or 0
        events = get_events(
            session_id=request.args.get('session_id') or None,
            event_type=request.args.get('type') or None,
            limit=min(max(limit, 1), MAX_QUERY_LIMIT),
            offset=max(offset, 0),
            db_path=db_path,
        )
        return jsonify(events)

    @app.route('/api/events/<event_id>')
    def api_event_detail(event_id):
        event = get_event_by_id(event_id, db_path)
        if event is None:
            return jsonify({'error': 'Event not found'}), 404
        return jsonify(event)

    @app.route('/api/sessions')
    def api_sessions():
        return jsonify(get_sessions(db_path))

    return app


if __name__ == '__main__':
    import argparse
    parser = argparse.ArgumentParser()
    parser.add_argument('--port', type=int, default=parse_port(os.environ.get('VISUALIZER_PORT')) or DEFAULT_PORT)
    parser.add_argument('--db', default=None, help='SQLite database path')
    args = parser.parse_args()
    create_app(args.db).run(host='127.0.0.1', port=args.port, debug=False, threaded=True)
