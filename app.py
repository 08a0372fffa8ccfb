"""
Tutoring Center Engagement Core - Main Application

This module wires the engagement core into a Flask application. The dashboard
front end talks to these JSON endpoints to run scan surfaces and guardian
report runs; everything else in the dashboard lives elsewhere.

Features:
- Scan surfaces: open, scan, poll feedback, close
- Report runs: open, change kind, edit, send, skip, close
- Delivery-status CSV export
- Student badge QR codes
"""

import logging
from datetime import datetime

from flask import Flask, Response, current_app, jsonify, request

from config import get_config, validate_config
from engagement.modules.attendance_manager import ScannerRegistry
from engagement.modules.database_manager import DeliveryRecordStore, MemoryDeliveryStore
from engagement.modules.delivery_tracker import DeliveryTracker
from engagement.modules.models import ReportKind
from engagement.modules.notification_system import (
    LoggingDeliveryChannel,
    NotificationSystem,
    WhatsAppLinkChannel,
)
from engagement.modules.qr_generator import BadgeGenerator
from engagement.modules.report_generator import ReportContentGenerator, export_delivery_status
from engagement.modules.report_queue import EmptyRecipientSet, ReportQueue, ReportQueueError
from engagement.modules.student_manager import ActivityLog, RosterStore
from engagement.modules.text_generation import GeminiReportWriter

logger = logging.getLogger(__name__)


def create_app(config_name=None, roster=None, activity=None, text_service=None,
               channel=None, speaker=None, delivery_store=None, scan_clock=None,
               report_clock=None, executor=None):
    """
    Build the Flask application and its engagement components.

    Every collaborator can be injected; defaults come from the configuration.
    """
    config_class = get_config(config_name)
    errors = validate_config(config_class)
    if errors:
        for error in errors:
            logger.error(f"Configuration error: {error}")
        raise RuntimeError("Configuration validation failed")

    app = Flask(__name__)
    config_class.init_app(app)

    roster = roster if roster is not None else RosterStore()
    activity = activity if activity is not None else ActivityLog()
    notifier = NotificationSystem(speaker=speaker)

    if delivery_store is None:
        db_path = app.config.get('DELIVERY_DATABASE_PATH')
        delivery_store = DeliveryRecordStore(db_path) if db_path else MemoryDeliveryStore()

    if text_service is None:
        text_service = GeminiReportWriter(
            app.config['GEMINI_API_KEY'],
            model=app.config['GEMINI_MODEL'],
            timeout=app.config['GENERATION_TIMEOUT']
        )

    report_clock = report_clock or datetime.now
    tracker = DeliveryTracker(delivery_store, app.config['REPORT_REPEAT_INTERVAL'])
    generator = ReportContentGenerator(activity, text_service, app.config['ISSUER_NAME'], clock=report_clock)

    components = {
        'roster': roster,
        'activity': activity,
        'notifier': notifier,
        'tracker': tracker,
        'badges': BadgeGenerator(app.config['QR_CODE_SIZE'], app.config['QR_CODE_BORDER']),
        'scanners': ScannerRegistry(
            roster,
            notifier=notifier,
            clock=scan_clock,
            debounce_window=app.config['SCAN_DEBOUNCE_SECONDS'],
            feedback_window=app.config['SCAN_FEEDBACK_SECONDS'],
            points_award=app.config['ATTENDANCE_POINTS']
        ),
        'queue': ReportQueue(
            generator,
            tracker,
            channel=channel or _default_channel(app.config),
            notifier=notifier,
            intent_sink=roster,
            executor=executor,
            clock=report_clock
        ),
        'report_clock': report_clock,
        'links': WhatsAppLinkChannel(country_code=app.config['WHATSAPP_COUNTRY_CODE']),
    }
    app.extensions['engagement'] = components

    register_routes(app)
    return app


def _default_channel(settings):
    if settings['DELIVERY_CHANNEL'] == 'whatsapp':
        return WhatsAppLinkChannel(country_code=settings['WHATSAPP_COUNTRY_CODE'])
    return LoggingDeliveryChannel()


def _components():
    return current_app.extensions['engagement']


def _error(message, error_type, status):
    return jsonify({
        'success': False,
        'message': message,
        'error_type': error_type
    }), status


def register_routes(app):
    """Attach the JSON endpoints to the application."""

    @app.route('/api/scanners', methods=['POST'])
    def open_scanner():
        """Open a scan surface"""
        scanner_id = _components()['scanners'].open()
        return jsonify({'success': True, 'scanner_id': scanner_id}), 201

    @app.route('/api/scanners/<scanner_id>', methods=['GET'])
    def scanner_state(scanner_id):
        """Current feedback state of a scan surface"""
        resolver = _components()['scanners'].get(scanner_id)
        if resolver is None:
            return _error('Scan session not found', 'scanner_not_found', 404)
        return jsonify({'success': True, 'session': resolver.snapshot()})

    @app.route('/api/scanners/<scanner_id>', methods=['DELETE'])
    def close_scanner(scanner_id):
        """Close a scan surface"""
        if not _components()['scanners'].close(scanner_id):
            return _error('Scan session not found', 'scanner_not_found', 404)
        return jsonify({'success': True})

    @app.route('/api/scanners/<scanner_id>/scan', methods=['POST'])
    def process_scan(scanner_id):
        """Process one decoded scanner string"""
        components = _components()
        resolver = components['scanners'].get(scanner_id)
        if resolver is None:
            return _error('Scan session not found', 'scanner_not_found', 404)

        data = request.get_json(silent=True) or {}
        if 'code' not in data:
            return _error('No code data provided', 'missing_code', 400)

        previous = resolver.last_outcome
        outcome = resolver.resolve(data['code'], components['roster'].snapshot())
        suppressed = outcome is not None and outcome is previous

        return jsonify({
            'success': True,
            'suppressed': suppressed,
            'outcome': outcome.to_dict() if outcome else None,
            'session': resolver.snapshot()
        })

    @app.route('/api/reports', methods=['POST'])
    def open_report_run():
        """Start a report run for explicit students, a group, or today's absentees"""
        components = _components()
        roster = components['roster']
        data = request.get_json(silent=True) or {}

        try:
            kind = ReportKind.parse(data.get('kind', ''))
        except ValueError as e:
            return _error(str(e), 'invalid_kind', 400)

        students = roster.snapshot()
        if data.get('student_ids') is not None:
            student_ids = data['student_ids']
            if not isinstance(student_ids, list) or not all(isinstance(sid, str) for sid in student_ids):
                return _error('student_ids must be a list of student ids', 'invalid_student_ids', 400)
            by_id = {s.id: s for s in students}
            missing = [sid for sid in student_ids if sid not in by_id]
            if missing:
                return _error(f"Unknown students: {', '.join(map(str, missing))}", 'student_not_found', 400)
            students = [by_id[sid] for sid in student_ids]
        elif data.get('group_id'):
            students = [s for s in students if s.group_id == data['group_id']]

        if data.get('absent_only'):
            students = [s for s in students if not s.attendance]

        try:
            components['queue'].open(students, kind, only_due=bool(data.get('only_due')))
        except EmptyRecipientSet as e:
            return _error(str(e), e.error_type, 400)

        return jsonify({'success': True, 'queue': components['queue'].snapshot()}), 201

    @app.route('/api/reports/current', methods=['GET'])
    def report_state():
        """Current state of the report run"""
        return jsonify({'success': True, 'queue': _components()['queue'].snapshot()})

    @app.route('/api/reports/current/<action>', methods=['POST'])
    def report_action(action):
        """Operator action on the current recipient"""
        components = _components()
        queue = components['queue']
        data = request.get_json(silent=True) or {}
        response = {'success': True}

        try:
            if action == 'send':
                current = queue.snapshot()
                queue.send()
                # the dashboard opens this on the operator's device
                response['delivery_link'] = components['links'].build_link(
                    current['recipient']['phone'], current['content']
                ) if current['recipient'] else None
            elif action == 'skip':
                queue.skip()
            elif action == 'edit':
                if not isinstance(data.get('text'), str):
                    return _error('No text provided', 'missing_text', 400)
                queue.edit(data['text'])
            elif action == 'kind':
                queue.set_kind(ReportKind.parse(data.get('kind', '')))
            else:
                return _error(f"Unknown action: {action}", 'unknown_action', 404)
        except ReportQueueError as e:
            return _error(str(e), e.error_type, 409)
        except ValueError as e:
            return _error(str(e), 'invalid_kind', 400)

        response['queue'] = queue.snapshot()
        return jsonify(response)

    @app.route('/api/reports/current', methods=['DELETE'])
    def close_report_run():
        """Cancel the report run"""
        queue = _components()['queue']
        queue.close()
        return jsonify({'success': True, 'queue': queue.snapshot()})

    @app.route('/api/reports/due.csv', methods=['GET'])
    def delivery_status():
        """Delivery status of every student for one report kind"""
        components = _components()
        try:
            kind = ReportKind.parse(request.args.get('kind', ReportKind.PERIODIC_SHORT.value))
        except ValueError as e:
            return _error(str(e), 'invalid_kind', 400)

        csv_text = export_delivery_status(
            components['roster'].snapshot(),
            components['tracker'],
            kind,
            components['report_clock']()
        )
        return Response(
            csv_text,
            mimetype='text/csv',
            headers={'Content-Disposition': f'attachment; filename=delivery_status_{kind.value}.csv'}
        )

    @app.route('/api/students/<student_id>/badge', methods=['GET'])
    def student_badge(student_id):
        """PNG badge with the student's QR code"""
        components = _components()
        student = components['roster'].get(student_id)
        if student is None:
            return _error('Student not found', 'student_not_found', 404)
        try:
            png = components['badges'].generate_png(student)
        except ValueError as e:
            return _error(str(e), 'badge_error', 400)
        return Response(png, mimetype='image/png')

    @app.route('/api/notifications', methods=['GET'])
    def recent_notifications():
        """Recent scan and delivery feedback"""
        limit = request.args.get('limit', 10, type=int)
        return jsonify({
            'success': True,
            'notifications': _components()['notifier'].get_recent_notifications(limit)
        })


if __name__ == '__main__':
    app = create_app()
    app.run(debug=app.config['DEBUG'], host='0.0.0.0', port=5000)
