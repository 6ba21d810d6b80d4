#!/usr/bin/env python3
"""
PlantOps: plant maintenance and production tracking.

Breakdown work orders from report to Ready For Use (RFU), with the manpower
and spare parts used on each, a unit roster, a spare part catalog, shift
production logs and cost/production reports.

HOW TO RUN:
    pip install -e .
    python3 plantops.py

Then open your browser at: http://localhost:5000

The JSON API lives under /api. Any other path serves the frontend build from
PLANTOPS_BUILD_DIR.
"""

import io
import logging
import os
import secrets
import threading
import time
from datetime import datetime, timedelta
from functools import wraps

from flask import Flask, jsonify, request, send_file, send_from_directory, session

from errors import NotFoundError, StorageError, ValidationError
from export import EXPORT_FILENAME, export_work_orders
from ledger import STATUS_OPEN, STATUS_RFU, STATUSES
from reports import summary
from store import SECRET_KEY, AppState, SqliteStore, fetch_units
from suggestions import FIELDS as SUGGESTION_FIELDS

APP_NAME      = "PlantOps"
APP_VERSION   = "1.0.0"

DB_PATH       = os.environ.get("PLANTOPS_DB_PATH", "plantops.db")
PORT          = int(os.environ.get("PORT", 5000))
BUILD_DIR     = os.environ.get("PLANTOPS_BUILD_DIR", "build")
UNITS_URL     = os.environ.get("PLANTOPS_UNITS_URL",
                               "https://raw.githubusercontent.com/aankcryzers/Monitoring-Breakdown/main/unit.json")
LOG_LEVEL     = os.environ.get("PLANTOPS_LOG_LEVEL", "INFO")

# Fixed credential in front of the Edit Work Order screen. A UI gate, not authentication.
EDIT_USERNAME = os.environ.get("PLANTOPS_EDIT_USERNAME", "admin")
EDIT_PASSWORD = os.environ.get("PLANTOPS_EDIT_PASSWORD", "admin")

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

PLACEHOLDER_HTML = """<!DOCTYPE html>
<html lang="en"><head><meta charset="UTF-8"><title>PlantOps</title></head>
<body><h1>PlantOps</h1><p>Frontend build not found. The API is available under /api.</p></body>
</html>"""

logger = logging.getLogger(__name__)

app = Flask(__name__, static_folder=None)
app.config['SESSION_COOKIE_HTTPONLY'] = True
app.config['SESSION_COOKIE_SAMESITE'] = 'Lax'
app.config['PERMANENT_SESSION_LIFETIME'] = timedelta(hours=12)

_state = None
# one client, but the dev server is threaded: mutations run one at a time
_state_lock = threading.Lock()


def _get_or_create_secret_key(store):
    """Load the session secret from the store, creating it on first run."""
    try:
        key = store.load(SECRET_KEY)
        if key:
            return key
        key = secrets.token_hex(32)
        store.save(SECRET_KEY, key)
        return key
    except StorageError as e:
        logger.warning("Session secret not persisted, sessions end on restart: %s", e)
        return secrets.token_hex(32)


def init_state(db_path=DB_PATH, units_url=UNITS_URL, fetch=fetch_units):
    """Open the state store and load every collection into the application state."""
    global _state
    store = SqliteStore(db_path)
    app.secret_key = _get_or_create_secret_key(store)
    _state = AppState.load(store, units_url=units_url, fetch=fetch)
    return _state


def get_state():
    if _state is None:
        with _state_lock:
            if _state is None:
                init_state()
    return _state


# Rate limiting dictionary (simple in-memory rate limiter)
rate_limit_store = {}
def rate_limit(max_requests=200, window_seconds=60):
    """Simple rate limiting decorator"""
    def decorator(f):
        @wraps(f)
        def decorated(*args, **kwargs):
            key = f"{request.remote_addr}:{request.endpoint}"
            now = time.time()
            recent = [t for t in rate_limit_store.get(key, []) if now - t < window_seconds]
            if len(recent) >= max_requests:
                rate_limit_store[key] = recent
                return jsonify({'success': False, 'error': 'Rate limit exceeded. Please try again later.'}), 429
            recent.append(now)
            rate_limit_store[key] = recent
            return f(*args, **kwargs)
        return decorated
    return decorator


def handle_api_errors(f):
    """Turn PlantOps errors into JSON responses"""
    @wraps(f)
    def decorated(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except ValidationError as e:
            return jsonify({'success': False, 'error': 'Invalid input value', 'details': str(e)}), 400
        except (NotFoundError, IndexError) as e:
            return jsonify({'success': False, 'error': 'Not found', 'details': str(e)}), 404
        except StorageError as e:
            logger.error("Saving state failed in %s: %s", f.__name__, e)
            return jsonify({'success': False, 'error': 'Saving data failed', 'details': str(e)}), 500
        except Exception as e:
            logger.exception("Unexpected error in %s", f.__name__)
            return jsonify({'success': False, 'error': 'An unexpected error occurred', 'details': str(e)}), 500
    return decorated


def edit_authorized_required(f):
    @wraps(f)
    def decorated(*args, **kwargs):
        if not session.get('edit_authorized'):
            return jsonify({'success': False, 'error': 'Edit login required'}), 403
        return f(*args, **kwargs)
    return decorated


def _json_body():
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def _require_confirmation():
    """Deletes are irreversible; the client must say it asked the user."""
    confirmed = request.args.get('confirm', '').lower() in ('1', 'true', 'yes')
    if not confirmed and _json_body().get('confirm') is not True:
        raise ValidationError("Deletion must be confirmed (confirm=true)")


# ── PLACEHOLDER / HEALTH ──────────────────────────────────────────────────────

@app.route('/api/hello')
def hello():
    return jsonify({'message': 'Hello from PlantOps backend!'})

@app.route('/api/health')
def health():
    return jsonify({'status': 'ok', 'app': APP_NAME, 'version': APP_VERSION, 'time': datetime.now().isoformat()})

# ── WORK ORDERS ───────────────────────────────────────────────────────────────

@app.route('/api/work-orders', methods=['GET'])
@handle_api_errors
def get_work_orders():
    status = request.args.get('status', '').upper()
    if status and status not in STATUSES:
        raise ValidationError(f"Unknown status {status!r}")
    ledger = get_state().ledger
    if status == STATUS_OPEN:
        wos = ledger.open_orders()
    elif status == STATUS_RFU:
        wos = ledger.closed_orders()
    else:
        wos = list(ledger)
    return jsonify({'items': [wo.to_dict() for wo in wos], 'total': len(wos)})

@app.route('/api/work-orders/next-number', methods=['GET'])
@handle_api_errors
def next_wo_number():
    return jsonify({'wo_number': get_state().sequence.peek_next()})

@app.route('/api/work-orders', methods=['POST'])
@handle_api_errors
def create_work_order():
    data = _json_body()
    state = get_state()
    with _state_lock:
        if not data.get('unit_type'):
            unit = state.units.get(data.get('unit'))
            if unit:
                data = dict(data, unit_type=unit.type)
        wo = state.ledger.create(data)
        state.save('work_orders', 'sequence', 'suggestions')
    return jsonify({'success': True, 'wo_number': wo.wo_number, 'work_order': wo.to_dict(),
                    'message': f'WO {wo.wo_number} created.'})

@app.route('/api/work-orders/<wo_number>', methods=['GET'])
@handle_api_errors
def get_work_order(wo_number):
    return jsonify({'work_order': get_state().ledger.get(wo_number).to_dict()})

@app.route('/api/work-orders/<wo_number>/manpower', methods=['POST'])
@handle_api_errors
def add_manpower(wo_number):
    data = _json_body()
    state = get_state()
    with _state_lock:
        wo = state.ledger.add_manpower(wo_number, data.get('name'))
        state.save('work_orders', 'suggestions')
    return jsonify({'success': True, 'manpower': wo.manpower, 'message': 'Manpower added.'})

@app.route('/api/work-orders/<wo_number>/manpower/<int:index>', methods=['DELETE'])
@handle_api_errors
def remove_manpower(wo_number, index):
    state = get_state()
    with _state_lock:
        name = state.ledger.remove_manpower(wo_number, index)
        state.save('work_orders')
    return jsonify({'success': True, 'removed': name, 'message': 'Manpower removed.'})

@app.route('/api/work-orders/<wo_number>/materials', methods=['POST'])
@handle_api_errors
def add_material(wo_number):
    data = _json_body()
    state = get_state()
    with _state_lock:
        line = state.ledger.add_material(wo_number, data)
        state.save('work_orders', 'suggestions')
    return jsonify({'success': True, 'material': line.to_dict(), 'message': 'Spare part added.'})

@app.route('/api/work-orders/<wo_number>/materials/<int:index>', methods=['DELETE'])
@handle_api_errors
def remove_material(wo_number, index):
    state = get_state()
    with _state_lock:
        line = state.ledger.remove_material(wo_number, index)
        state.save('work_orders')
    return jsonify({'success': True, 'removed': line.to_dict(), 'message': 'Spare part removed.'})

@app.route('/api/work-orders/<wo_number>/close', methods=['POST'])
@handle_api_errors
def close_work_order(wo_number):
    """Commit the close dialog: end time, work description and the final staged lists."""
    data = _json_body()
    state = get_state()
    with _state_lock:
        current = state.ledger.get(wo_number)
        wo = state.ledger.close(wo_number, data.get('end_time'), data.get('work_description'),
                                data.get('manpower', current.manpower),
                                data.get('materials', current.materials))
        state.save('work_orders', 'suggestions')
    return jsonify({'success': True, 'work_order': wo.to_dict(),
                    'message': f'WO {wo.wo_number} closed (RFU).'})

@app.route('/api/edit-login', methods=['POST'])
@rate_limit(max_requests=20, window_seconds=300)  # 20 attempts per 5 minutes
@handle_api_errors
def edit_login():
    data = _json_body()
    username = str(data.get('username') or '').strip().encode()
    password = str(data.get('password') or '').strip().encode()
    if (secrets.compare_digest(username, EDIT_USERNAME.encode())
            and secrets.compare_digest(password, EDIT_PASSWORD.encode())):
        session.permanent = True
        session['edit_authorized'] = True
        return jsonify({'success': True, 'message': 'Admin login successful.'})
    return jsonify({'success': False, 'message': 'Wrong username or password.'}), 401

@app.route('/api/edit-logout', methods=['POST'])
def edit_logout():
    session.pop('edit_authorized', None)
    return jsonify({'success': True})

@app.route('/api/work-orders/<wo_number>', methods=['PUT'])
@edit_authorized_required
@handle_api_errors
def update_work_order(wo_number):
    data = _json_body()
    state = get_state()
    with _state_lock:
        wo = state.ledger.edit(wo_number, data)
        state.save('work_orders', 'suggestions')
    return jsonify({'success': True, 'work_order': wo.to_dict(),
                    'message': f'WO {wo.wo_number} updated.'})

@app.route('/api/work-orders/<wo_number>', methods=['DELETE'])
@handle_api_errors
def delete_work_order(wo_number):
    _require_confirmation()
    state = get_state()
    with _state_lock:
        state.ledger.delete(wo_number)
        state.save('work_orders')
    return jsonify({'success': True, 'message': 'WO deleted.'})

@app.route('/api/work-orders/export')
@handle_api_errors
def export_work_orders_xlsx():
    data = export_work_orders(get_state().ledger)
    return send_file(io.BytesIO(data), mimetype=XLSX_MIMETYPE,
                     as_attachment=True, download_name=EXPORT_FILENAME)

# ── UNITS ─────────────────────────────────────────────────────────────────────

@app.route('/api/units', methods=['GET'])
@handle_api_errors
def get_units():
    return jsonify([u.to_dict() for u in get_state().units])

@app.route('/api/units', methods=['POST'])
@handle_api_errors
def create_unit():
    data = _json_body()
    state = get_state()
    with _state_lock:
        unit = state.units.add(data.get('code'), data.get('type'),
                               data.get('cost_per_operational_hour'), data.get('display_name'))
        state.save('units')
    return jsonify({'success': True, 'unit': unit.to_dict(), 'message': f"Unit '{unit.code}' added."})

@app.route('/api/units/<code>', methods=['DELETE'])
@handle_api_errors
def delete_unit(code):
    _require_confirmation()
    state = get_state()
    with _state_lock:
        state.units.delete(code)
        state.save('units')
    return jsonify({'success': True, 'message': 'Unit deleted.'})

# ── SPARE PARTS ───────────────────────────────────────────────────────────────

@app.route('/api/spare-parts', methods=['GET'])
@handle_api_errors
def get_spare_parts():
    return jsonify([p.to_dict() for p in get_state().spare_parts])

@app.route('/api/spare-parts', methods=['POST'])
@handle_api_errors
def create_spare_part():
    data = _json_body()
    state = get_state()
    with _state_lock:
        part = state.spare_parts.add(data.get('part_no'), data.get('name'), data.get('unit_price'),
                                     data.get('unit_of_measure') or 'pcs')
        state.save('spare_parts')
    return jsonify({'success': True, 'part': part.to_dict(), 'message': f"Spare part '{part.name}' added."})

@app.route('/api/spare-parts/<part_no>', methods=['DELETE'])
@handle_api_errors
def delete_spare_part(part_no):
    _require_confirmation()
    state = get_state()
    with _state_lock:
        state.spare_parts.delete(part_no)
        state.save('spare_parts')
    return jsonify({'success': True, 'message': 'Spare part deleted.'})

# ── PRODUCTION ────────────────────────────────────────────────────────────────

@app.route('/api/production', methods=['GET'])
@handle_api_errors
def get_production():
    return jsonify([r.to_dict() for r in get_state().production])

@app.route('/api/production', methods=['POST'])
@handle_api_errors
def create_production_record():
    data = _json_body()
    state = get_state()
    with _state_lock:
        record = state.production.add(data)
        state.save('production')
    return jsonify({'success': True, 'record': record.to_dict(),
                    'message': f'Production record for {record.unit} ({record.activity_type}) added.'})

@app.route('/api/production/<record_id>', methods=['DELETE'])
@handle_api_errors
def delete_production_record(record_id):
    _require_confirmation()
    state = get_state()
    with _state_lock:
        state.production.delete(record_id)
        state.save('production')
    return jsonify({'success': True, 'message': 'Production record deleted.'})

# ── SUGGESTIONS ───────────────────────────────────────────────────────────────

@app.route('/api/suggestions')
@handle_api_errors
def get_suggestions():
    return jsonify(get_state().suggestions.to_dict())

@app.route('/api/suggestions/<field>')
@handle_api_errors
def get_field_suggestions(field):
    if field not in SUGGESTION_FIELDS:
        return jsonify({'error': 'Unknown suggestion field'}), 404
    return jsonify(get_state().suggestions.get(field))

# ── REPORTS ───────────────────────────────────────────────────────────────────

@app.route('/api/reports/summary')
@handle_api_errors
def report_summary():
    state = get_state()
    return jsonify(summary(state.ledger, state.production))

# ── FRONTEND ──────────────────────────────────────────────────────────────────

@app.route('/', defaults={'path': ''})
@app.route('/<path:path>')
def index(path):
    if path.startswith('api/'):
        return jsonify({'error': 'Not found'}), 404
    build_dir = os.path.abspath(BUILD_DIR)
    if path and os.path.isfile(os.path.join(build_dir, path)):
        return send_from_directory(build_dir, path)
    if os.path.isfile(os.path.join(build_dir, 'index.html')):
        return send_from_directory(build_dir, 'index.html')
    return PLACEHOLDER_HTML


def main():
    logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    print("╔═══════════════════════════════════════════════════════╗")
    print(f"║   {APP_NAME} {APP_VERSION}: Plant Maintenance & Production     ║")
    print("╚═══════════════════════════════════════════════════════╝")
    init_state()
    print(f"✓ State loaded from {DB_PATH}")
    print(f"✓ Server running on http://localhost:{PORT}")
    app.run(debug=False, port=PORT, host='0.0.0.0')


if __name__ == '__main__':
    main()
