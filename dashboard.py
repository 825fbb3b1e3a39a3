"""
Payment Reconciliation Operator API

A Flask-based JSON API over the reconciliation engine. Operators load the
account-holder directory, submit payments, run a batch at a chosen threshold,
review the flagged queue and manually assign flagged payments.

Rendering is left to the consuming UI; every endpoint returns JSON.
"""

import os

from flask import Flask, jsonify, request

from reconciliation_engine.classification.policy import MatchStatus
from reconciliation_engine.config.matching_config import DEFAULT_THRESHOLD
from reconciliation_engine.ledger.reconciliation_ledger import (
    InvalidTransitionError,
    PaymentInFlightError,
    UnknownPaymentError,
)
from reconciliation_engine.override.manual_override import UnknownAccountHolderError
from reconciliation_engine.records.payment_records import InvalidRecordError
from reconciliation_service import ReconciliationEngine


app = Flask(__name__)
app.config['DEFAULT_THRESHOLD'] = DEFAULT_THRESHOLD
app.config['MAX_WORKERS'] = int(os.environ.get('RECONCILIATION_MAX_WORKERS', '1'))

# Single in-process engine; tests may swap it through app.config['ENGINE']
app.config['ENGINE'] = ReconciliationEngine(max_workers=app.config['MAX_WORKERS'])


def get_engine() -> ReconciliationEngine:
    return app.config['ENGINE']


def _payload_list(data, key: str):
    """Accept either a bare JSON array or an object holding the array under `key`."""
    if isinstance(data, list):
        return data
    if isinstance(data, dict) and isinstance(data.get(key), list):
        return data[key]
    return None


@app.route('/account-holders', methods=['POST'])
def load_account_holders():
    """Replace the account-holder directory snapshot."""
    holders = _payload_list(request.get_json(silent=True), 'account_holders')
    if holders is None:
        return jsonify({'error': 'account_holders must be an array'}), 400

    try:
        directory = get_engine().set_account_holders(holders)
    except InvalidRecordError as e:
        app.logger.warning(f"Directory load rejected: {e}")
        return jsonify({'error': str(e)}), 400

    return jsonify({
        'success': True,
        'account_holders': [h.to_dict() for h in directory],
    })


@app.route('/account-holders', methods=['GET'])
def list_account_holders():
    return jsonify({'account_holders': [h.to_dict() for h in get_engine().account_holders]})


@app.route('/payments', methods=['POST'])
def submit_payments():
    """
    Submit unprocessed payments.

    Malformed and duplicate payments are reported under 'rejected'; the
    remaining payments are still accepted.
    """
    payments = _payload_list(request.get_json(silent=True), 'payments')
    if payments is None:
        return jsonify({'error': 'payments must be an array'}), 400

    report = get_engine().submit_payments(payments)

    if not report.accepted and report.rejected:
        return jsonify({
            'error': 'All payments failed validation',
            'details': report.to_dict()['rejected'],
        }), 400

    response = report.to_dict()
    response['success'] = True
    response['summary'] = get_engine().summary().to_dict()
    return jsonify(response)


@app.route('/payments', methods=['GET'])
def list_payments():
    """List payments, optionally filtered by ?status=pending|reconciled|flagged."""
    status_param = request.args.get('status')
    engine = get_engine()

    status = None
    if status_param:
        try:
            status = MatchStatus(status_param.lower())
        except ValueError:
            return jsonify({'error': f'Unknown status: {status_param}'}), 400

    items = []
    if status in (None, MatchStatus.PENDING):
        for payment in engine.pending_payments():
            item = payment.to_dict()
            item['status'] = MatchStatus.PENDING.value
            items.append(item)

    if status != MatchStatus.PENDING:
        items.extend(result.to_dict() for result in engine.results(status))

    return jsonify({'payments': items, 'count': len(items)})


@app.route('/reconcile', methods=['POST'])
def reconcile():
    """
    Run a reconciliation batch over all pending payments.

    Expects an optional JSON body {"threshold": 90|70|50|"high"|"medium"|"low"}.
    """
    data = request.get_json(silent=True) or {}
    threshold = data.get('threshold', app.config['DEFAULT_THRESHOLD'])

    try:
        result = get_engine().run_batch(threshold=threshold)
    except ValueError as e:
        app.logger.warning(f"Reconcile rejected: {e}")
        return jsonify({'error': str(e)}), 400

    response = result.to_dict()
    response['summary'] = get_engine().summary().to_dict()
    return jsonify(response)


@app.route('/payments/<payment_id>/assign', methods=['POST'])
def assign_payment(payment_id: str):
    """Manually assign a flagged payment to an account holder."""
    data = request.get_json(silent=True) or {}
    account_holder_id = data.get('account_holder_id')
    if not account_holder_id:
        return jsonify({'error': 'account_holder_id is required'}), 400

    try:
        result = get_engine().manually_assign(payment_id, str(account_holder_id))
    except (UnknownPaymentError, UnknownAccountHolderError) as e:
        return jsonify({'error': str(e)}), 404
    except PaymentInFlightError as e:
        return jsonify({'error': str(e)}), 409
    except InvalidTransitionError as e:
        app.logger.warning(f"Manual assignment rejected: {e}")
        return jsonify({'error': str(e), 'current_status': e.current.value}), 409

    return jsonify({
        'success': True,
        'result': result.to_dict(),
        'summary': get_engine().summary().to_dict(),
    })


@app.route('/summary', methods=['GET'])
def summary():
    return jsonify(get_engine().summary().to_dict())


@app.route('/events', methods=['GET'])
def events():
    """Classification event stream for audit consumers."""
    items = [event.to_dict() for event in get_engine().events()]
    return jsonify({'events': items, 'count': len(items)})


if __name__ == '__main__':
    # Debug mode is controlled by environment variable; set FLASK_DEBUG=1 only in development
    debug_mode = os.environ.get('FLASK_DEBUG', '0') == '1'
    app.run(debug=debug_mode, port=5001, host='0.0.0.0')
