import logging
import os
from datetime import date

from flask import Flask, jsonify, request
from flask_cors import CORS

import database
import engine
import timeline

# --- 1. APP INITIALIZATION ---
app = Flask(__name__)

# --- Load Config from Environment Variables ---
app.config['FORECAST_YEARS_BACK'] = int(os.environ.get('FORECAST_YEARS_BACK', 2))
app.config['FORECAST_YEARS_AHEAD'] = int(os.environ.get('FORECAST_YEARS_AHEAD', 5))
FRONTEND_URL = os.environ.get('FRONTEND_URL', '*')
LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO').upper()

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)

# Enable CORS
CORS(app, resources={r"/api/*": {"origins": [FRONTEND_URL]}})

class RequestError(ValueError):
    """A missing or ill-formed request field."""

def get_db():
    """Helper to get a fresh db connection."""
    return database.create_connection()

def forecast_error_response(e):
    return jsonify({"error": str(e), "kind": e.kind}), 400

def parse_flag(value):
    return str(value).lower() in ('1', 'true', 'yes')

def parse_date_arg(value, name):
    try:
        return engine.to_date(value)
    except engine.InvalidItem:
        raise RequestError(f"'{name}' must be a date in YYYY-MM-DD format")

def resolve_today(value):
    """The server's current date unless the caller pins one."""
    if value:
        return parse_date_arg(value, 'today')
    return date.today()

def parse_item(data):
    """Builds and validates a RecurringItem from a request body."""
    if not isinstance(data, dict):
        raise RequestError("Request body must be a JSON object")
    item = engine.RecurringItem.from_dict(data)
    engine.validate_item(item)
    return item

def forecast_response(days, today, only_activity=False, types=None):
    if only_activity:
        days = timeline.filter_with_activity(days)
    if types is not None:
        days = timeline.filter_transaction_types(days, types)
    return jsonify({
        "today": today.isoformat(),
        "today_index": timeline.find_today_index(days, today),
        "days": timeline.days_to_records(days),
    })

def stored_forecast(conn, start, end):
    settings = database.get_settings(conn)
    if settings is None:
        raise RequestError("Forecast settings have not been initialized")
    items = database.load_recurring_items(conn)
    return engine.generate_forecast(
        start, end, settings['starting_balance'], items, settings['min_balance'])

def requested_range(today):
    start_arg = request.args.get('start')
    end_arg = request.args.get('end')
    default_start, default_end = engine.default_range(
        today, app.config['FORECAST_YEARS_BACK'], app.config['FORECAST_YEARS_AHEAD'])
    start = parse_date_arg(start_arg, 'start') if start_arg else default_start
    end = parse_date_arg(end_arg, 'end') if end_arg else default_end
    return start, end

# --- 2. SETTINGS ENDPOINTS ---

@app.route('/api/settings', methods=['GET'])
def get_settings():
    conn = get_db()
    try:
        settings = database.get_settings(conn)
    finally:
        conn.close()
    if settings:
        return jsonify(settings)
    return jsonify({"error": "Settings not found"}), 404

@app.route('/api/settings', methods=['POST'])
def update_settings():
    data = request.get_json(silent=True) or {}
    try:
        if 'starting_balance' not in data or 'min_balance' not in data:
            raise RequestError("starting_balance and min_balance are required")
        engine.check_amount(data['starting_balance'], "starting_balance")
        engine.check_amount(data['min_balance'], "min_balance")
    except engine.ForecastError as e:
        return forecast_error_response(e)
    except RequestError as e:
        return jsonify({"error": str(e)}), 400

    conn = get_db()
    try:
        database.update_settings(conn, data['starting_balance'], data['min_balance'])
    finally:
        conn.close()
    return jsonify({"status": "success"})

# --- 3. RECURRING ITEM ENDPOINTS ---

@app.route('/api/recurring', methods=['GET'])
def get_recurring_items():
    conn = get_db()
    try:
        rows = database.get_recurring_items(conn)
    finally:
        conn.close()
    items = []
    for row in rows:
        item = engine.RecurringItem.from_dict(row).to_dict()
        item['item_id'] = row['item_id']
        items.append(item)
    return jsonify(items)

@app.route('/api/recurring/<int:item_id>', methods=['GET'])
def get_recurring_item(item_id):
    conn = get_db()
    try:
        row = database.get_recurring_item(conn, item_id)
    finally:
        conn.close()
    if row is None:
        return jsonify({"error": "Recurring item not found"}), 404
    item = engine.RecurringItem.from_dict(row).to_dict()
    item['item_id'] = row['item_id']
    return jsonify(item)

@app.route('/api/recurring', methods=['POST'])
def add_recurring_item():
    try:
        item = parse_item(request.get_json(silent=True))
    except engine.ForecastError as e:
        return forecast_error_response(e)
    except RequestError as e:
        return jsonify({"error": str(e)}), 400

    conn = get_db()
    try:
        new_id = database.add_recurring_item(conn, item)
    finally:
        conn.close()
    logger.info("Added recurring item %s (%s)", new_id, item.name)
    return jsonify({"status": "success", "message": "Recurring item added", "new_id": new_id}), 201

@app.route('/api/recurring/<int:item_id>', methods=['PUT'])
def update_recurring_item(item_id):
    try:
        item = parse_item(request.get_json(silent=True))
    except engine.ForecastError as e:
        return forecast_error_response(e)
    except RequestError as e:
        return jsonify({"error": str(e)}), 400

    conn = get_db()
    try:
        updated = database.update_recurring_item(conn, item_id, item)
    finally:
        conn.close()
    if not updated:
        return jsonify({"error": "Recurring item not found"}), 404
    return jsonify({"status": "success", "message": "Recurring item updated"})

@app.route('/api/recurring/<int:item_id>', methods=['DELETE'])
def delete_recurring_item(item_id):
    conn = get_db()
    try:
        deleted = database.delete_recurring_item(conn, item_id)
    finally:
        conn.close()
    if not deleted:
        return jsonify({"error": "Recurring item not found"}), 404
    return jsonify({"status": "success", "message": "Recurring item deleted"})

# --- 4. FORECAST ENDPOINTS ---

@app.route('/api/forecast', methods=['POST'])
def post_forecast():
    """
    Stateless forecast: everything the engine needs comes in the body.
    """
    data = request.get_json(silent=True)
    try:
        if not isinstance(data, dict):
            raise RequestError("Request body must be a JSON object")
        missing = [key for key in ('start', 'end', 'starting_balance', 'min_balance')
                   if key not in data]
        if missing:
            raise RequestError(f"Missing field(s): {', '.join(missing)}")
        raw_items = data.get('recurring_items') or []
        if not isinstance(raw_items, list):
            raise RequestError("recurring_items must be a list")

        today = resolve_today(data.get('today'))
        items = [engine.RecurringItem.from_dict(raw) for raw in raw_items]
        days = engine.generate_forecast(
            parse_date_arg(data['start'], 'start'),
            parse_date_arg(data['end'], 'end'),
            data['starting_balance'],
            items,
            data['min_balance'],
        )
        types = data.get('types')
        if isinstance(types, str):
            types = timeline.parse_types(types)
        return forecast_response(days, today, parse_flag(data.get('only_activity', False)), types)

    except engine.ForecastError as e:
        return forecast_error_response(e)
    except (RequestError, ValueError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception as e:
        logger.exception("Error in post_forecast")
        return jsonify({"error": f"Error in post_forecast: {str(e)}"}), 500

@app.route('/api/forecast', methods=['GET'])
def get_forecast():
    try:
        today = resolve_today(request.args.get('today'))
        start, end = requested_range(today)
        only_activity = parse_flag(request.args.get('only_activity', 'false'))
        types = timeline.parse_types(request.args.get('types'))

        conn = get_db()
        try:
            days = stored_forecast(conn, start, end)
        finally:
            conn.close()
        return forecast_response(days, today, only_activity, types)

    except engine.ForecastError as e:
        return forecast_error_response(e)
    except (RequestError, ValueError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception as e:
        logger.exception("Error in get_forecast")
        return jsonify({"error": f"Error in get_forecast: {str(e)}"}), 500

@app.route('/api/calendar_data', methods=['GET'])
def get_calendar_data():
    start_date = request.args.get('start')
    end_date = request.args.get('end')

    if not start_date or not end_date:
        return jsonify({"error": "start and end parameters are required"}), 400

    try:
        start = parse_date_arg(start_date, 'start')
        end = parse_date_arg(end_date, 'end')
        conn = get_db()
        try:
            days = stored_forecast(conn, start, end)
        finally:
            conn.close()

        df = timeline.calendar_frame(days)
        if df.empty:
            return jsonify([])

        df['date'] = df['date'].dt.strftime('%Y-%m-%d')
        return jsonify(df.to_dict('records'))

    except engine.ForecastError as e:
        return forecast_error_response(e)
    except RequestError as e:
        return jsonify({"error": str(e)}), 400
    except Exception as e:
        logger.exception("Error in get_calendar_data")
        return jsonify({"error": f"Error in get_calendar_data: {str(e)}"}), 500

# --- 5. RUN THE APP ---
if __name__ == '__main__':
    try:
        logger.info("Initializing database...")
        conn = database.initialize_database()
        conn.close()
        logger.info("Initialization complete.")
    except Exception:
        logger.exception("Error during startup")

    logger.info("Flask server is starting for LOCAL DEVELOPMENT at http://127.0.0.1:5000")
    logger.info("Allowed frontend origin: %s", FRONTEND_URL)
    app.run(debug=False, port=5000)
