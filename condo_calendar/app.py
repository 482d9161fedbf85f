from datetime import date
import logging
import os
from functools import wraps
from flask import Flask, render_template, request, flash, redirect, g, url_for, jsonify, abort
import secrets
from flask_debugtoolbar import DebugToolbarExtension
from flask_httpauth import HTTPTokenAuth
from condo_calendar.booking import database, auth_session, owner_status, gmail
from condo_calendar.booking import booking_utils as util
from condo_calendar.booking.calendar import BookingCalendar, DAY_NAMES, parse_month
from condo_calendar.booking.error_utils import AuthenticationError, BackendError, StatusTransitionError, VisitValidationError
from condo_calendar.booking.models import VisitStatus
from condo_calendar.booking.supabase_client import SupabaseClient
logger = logging.getLogger(__name__)

def create_app(test_config=None):
    app = Flask(__name__)
    app.secret_key = os.environ.get('SECRET_KEY') or secrets.token_hex(32) #256 bit
    app.config['SECRET_KEY'] = app.secret_key
    app.config['SUPABASE_URL'] = os.environ.get('SUPABASE_URL', '')
    app.config['SUPABASE_ANON_KEY'] = os.environ.get('SUPABASE_ANON_KEY', '')
    app.config['SUPABASE_TIMEOUT'] = float(os.environ.get('SUPABASE_TIMEOUT', 10))
    app.config['PROPERTY_NAME'] = os.environ.get('PROPERTY_NAME', 'Alaska Condo')
    app.config['NOTIFY_EMAILS'] = [email.strip() for email in os.environ.get('NOTIFY_EMAILS', '').split(',') if email.strip()]
    app.config['SERVICE_ACCOUNT_FILE'] = os.environ.get('SERVICE_ACCOUNT_FILE')
    app.config['NOTIFY_SENDER'] = os.environ.get('NOTIFY_SENDER', '')
    app.config['SESSION_COOKIE_HTTPONLY'] = True
    app.config['SESSION_COOKIE_SAMESITE'] = 'Lax'
    if os.environ.get('FLASK_ENV') == 'production':
        app.config['DOMAIN'] = os.environ.get('PUBLIC_DOMAIN', 'https://calendar.example.com')
        app.config['SESSION_COOKIE_SECURE'] = True
    else:
        app.config['DOMAIN'] = 'http://localhost:5003'
        app.config["DEBUG_TB_INTERCEPT_REDIRECTS"] = False  # Prevents redirect issues
    if test_config:
        app.config.update(test_config)

    app.jinja_env.filters['time_compact'] = util.format_time
    app.jinja_env.filters['time_long'] = lambda value: util.format_time(value, compact=False)
    app.jinja_env.filters['date_long'] = util.format_date
    app.jinja_env.filters['date_short'] = util.format_short_date
    app.jinja_env.globals['status_badge'] = util.status_badge
    return app

app = create_app()
token_auth = HTTPTokenAuth(scheme='Bearer')


def supabase_client(access_token=None):
    return SupabaseClient(app.config['SUPABASE_URL'], app.config['SUPABASE_ANON_KEY'], access_token,
                          app.config['SUPABASE_TIMEOUT'])


def is_api_request():
    return request.path.startswith('/api/')


# Only paths on this site are followed after a form post
def local_url(next_url, default):
    if next_url and next_url.startswith('/') and not next_url.startswith('//'):
        return next_url
    return default


# Load the signed in user (if any) for every page request. g.db acts as that user so the backend's row level rules apply.
@app.before_request
def load_current_user():
    g.user = None
    g.profile = None
    g.is_admin = False
    if is_api_request() or request.endpoint == 'static':
        return None
    stored = auth_session.ensure_fresh_session(database.DatabasePersistence(supabase_client()))
    g.db = database.DatabasePersistence(supabase_client(stored['access_token'] if stored else None))
    if stored is None:
        return None
    g.user = stored['user']
    try:
        g.profile = g.db.get_profile(g.user['id'])
    except AuthenticationError:
        logger.warning("Stored session rejected by backend, signing out")
        auth_session.clear_session()
        g.user = None
        g.db = database.DatabasePersistence(supabase_client())
        return None
    except BackendError as e:
        # Pages still render for a signed in user without profile data
        logger.error("Profile lookup failed: %s", e.message)
    g.is_admin = bool(g.profile and g.profile.is_admin)
    return None


@app.context_processor
def inject_user():
    return {'current_user': g.get('user'),
            'current_profile': g.get('profile'),
            'is_admin': g.get('is_admin', False),
            'property_name': app.config['PROPERTY_NAME']}


def login_required(f):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not g.user:
            flash("Please sign in first.", "error")
            return redirect(url_for('signin', next=request.path))
        return f(*args, **kwargs)
    return decorated_function


def admin_required(f):
    @wraps(f)
    @login_required
    def decorated_function(*args, **kwargs):
        if not g.is_admin:
            abort(403)
        return f(*args, **kwargs)
    return decorated_function


def display_name():
    if g.profile:
        return g.profile.display_name
    return (g.user.get('user_metadata') or {}).get('name') or g.user.get('email', '').split('@')[0] or 'Guest'


def notify_owners(visit):
    """
    Emails the configured owners about a new proposal. A missing mail setup or failed send never fails the proposal.
    """
    if not app.config.get('SERVICE_ACCOUNT_FILE') or not app.config.get('NOTIFY_EMAILS'):
        logger.info("Owner notification not configured, skipping for visit %s", visit.id)
        return None
    try:
        mailer = gmail.GmailIntegration(app.config['SERVICE_ACCOUNT_FILE'], app.config['NOTIFY_SENDER'])
        return mailer.send_new_visit_notification(visit, app.config['NOTIFY_EMAILS'], app.config['PROPERTY_NAME'])
    except Exception as e:
        logger.error(f'An error occurred during owner notification: {e.args}. Associated visit: {visit.id}')
        return None


def propose_visit(db, user, form):
    """Validates a proposal and stores it as a pending visit of the user's visitor record."""
    proposal = util.validate_proposal(form, date.today())
    visitor_id = db.find_or_create_visitor(user['id'], display_name())
    visit = db.insert_visit(visitor_id, user['id'], proposal)
    notify_owners(visit)
    return visit


@app.route('/')
def home():
    return redirect(url_for('calendar_view'))

# Month view with the owner status panel and the visitor legend
@app.route('/calendar')
def calendar_view():
    today = date.today()
    month = parse_month(request.args.get('month'), today)
    visitors = g.db.list_visitors()
    visits = g.db.list_visits(visitors)
    owners = owner_status.expire_owner_statuses(g.db, g.db.list_admins(), today)
    summaries = [owner_status.summarize(owner, visits, today) for owner in owners]
    booking_calendar = BookingCalendar(visits, month, today)
    return render_template('calendar.html', calendar=booking_calendar, weeks=booking_calendar.weeks(),
                           day_names=DAY_NAMES, visitors=visitors, owners=summaries)


@app.route('/auth/signin', methods=['GET', 'POST'])
def signin():
    if request.method == 'GET':
        return render_template('signin.html', next_url=request.args.get('next', ''))
    email = request.form.get('email', '').strip()
    password = request.form.get('password', '')
    try:
        payload = g.db.sign_in(email, password)
    except AuthenticationError as e:
        flash(f"Invalid credentials: {e.message}", "error")
        return render_template('signin.html', email=email, next_url=request.form.get('next', '')), 422
    auth_session.store_session(payload)
    flash("Welcome back!", "success")
    return redirect(local_url(request.form.get('next'), url_for('calendar_view')))


@app.route('/auth/signup', methods=['GET', 'POST'])
def signup():
    if request.method == 'GET':
        return render_template('signup.html')
    name = request.form.get('name', '').strip()
    try:
        if not name:
            raise VisitValidationError("A name is required.")
        email = util.sanitize_email(request.form.get('email'))
        password = util.validate_password(request.form.get('password'))
    except VisitValidationError as e:
        flash(e.message, "error")
        return render_template('signup.html', name=name, email=request.form.get('email', '')), 422
    try:
        g.db.sign_up(email, password, name, app.config['DOMAIN'] + url_for('confirm_email'))
    except BackendError as e:
        flash(f"Sign up failed: {e.message}", "error")
        return render_template('signup.html', name=name, email=email), 422
    flash("Check your email to confirm your account!", "success")
    return redirect(url_for('signin'))

# Target of the confirmation email link. The backend sends tokens in the URL fragment, the layout script turns them into query parameters.
@app.route('/auth/confirm')
def confirm_email():
    access_token = request.args.get('access_token')
    refresh_token = request.args.get('refresh_token')
    if not access_token or not refresh_token:
        return render_template('confirm.html')
    try:
        auth_session.confirm_from_tokens(g.db, access_token, refresh_token, request.args.get('expires_in'))
    except BackendError as e:
        logger.error("Email confirmation failed: %s", e.message)
        flash("The confirmation link is invalid or has expired.", "error")
        return redirect(url_for('signin'))
    flash("Your email is confirmed. Welcome!", "success")
    return redirect(url_for('calendar_view'))


@app.route('/auth/signout', methods=['POST'])
def signout():
    token = auth_session.access_token()
    if token:
        g.db.sign_out(token)
    auth_session.clear_session()
    flash("You have been signed out.", "success")
    return redirect(url_for('calendar_view'))


@app.route('/profile', methods=['GET', 'POST'])
@login_required
def profile():
    if request.method == 'POST':
        name = request.form.get('name', '').strip()
        if not name:
            flash("A name is required.", "error")
            return render_template('profile.html'), 422
        if g.db.update_profile(g.user['id'], {'name': name}):
            flash("Profile updated.", "success")
        else:
            flash("Profile update failed.", "error")
        return redirect(url_for('profile'))
    return render_template('profile.html')


@app.route('/visits/propose', methods=['GET', 'POST'])
@login_required
def propose():
    if request.method == 'GET':
        return render_template('propose.html', form={}, today=date.today().isoformat())
    try:
        propose_visit(g.db, g.user, request.form)
    except VisitValidationError as e:
        flash(e.message, "error")
        return render_template('propose.html', form=request.form, today=date.today().isoformat()), 422
    flash("Your visit proposal was submitted for review.", "success")
    return redirect(url_for('my_visits'))


@app.route('/visits/mine')
@login_required
def my_visits():
    visits = g.db.visits_for_user(g.user['id'])
    return render_template('my_visits.html', visits=visits)


@app.route('/visits/<visit_id>/cancel', methods=['POST'])
@login_required
def cancel_visit(visit_id):
    if g.db.cancel_visit(visit_id, g.user['id']):
        flash("Your proposal was cancelled.", "success")
    else:
        flash("Only your own pending proposals can be cancelled.", "error")
    return redirect(url_for('my_visits'))


@app.route('/admin/pending')
@admin_required
def pending_visits():
    return render_template('pending.html', visits=g.db.pending_visits())


@app.route('/admin/visits/<visit_id>/decision', methods=['POST'])
@admin_required
def decide_visit(visit_id):
    try:
        status = VisitStatus(request.form.get('status', ''))
    except ValueError:
        flash("Unknown decision.", "error")
        return redirect(url_for('pending_visits'))
    visit = g.db.decide_visit(visit_id, status, g.user['id'])
    flash(f"Visit {'approved' if visit.status is VisitStatus.CONFIRMED else 'denied'}.", "success")
    return redirect(url_for('pending_visits'))


@app.route('/admin/visits/<visit_id>/delete', methods=['POST'])
@admin_required
def delete_visit(visit_id):
    if g.db.delete_visit(visit_id):
        flash("Visit deleted.", "success")
    else:
        flash("Visit not found.", "error")
    return redirect(local_url(request.form.get('next'), url_for('calendar_view')))


@app.route('/owners/<owner_id>/toggle', methods=['POST'])
@admin_required
def toggle_owner_status(owner_id):
    owner = g.db.get_profile(owner_id)
    if owner is None or not owner.is_admin:
        abort(404)
    if owner_status.current_visit(owner.id, g.db.list_visits(), date.today()):
        flash("Status locked during active visit.", "error")
        return redirect(url_for('calendar_view'))
    g.db.update_profile(owner.id, owner_status.toggle_updates(owner.owner_status))
    return redirect(url_for('calendar_view'))


@app.route('/owners/<owner_id>/until', methods=['POST'])
@admin_required
def set_owner_until(owner_id):
    until = request.form.get('until', '').strip()
    if until:
        try:
            until = date.fromisoformat(until).isoformat()
        except ValueError:
            flash("Until must be a date in YYYY-MM-DD format.", "error")
            return redirect(url_for('calendar_view'))
    g.db.update_profile(owner_id, {'owner_status_until': until or None})
    return redirect(url_for('calendar_view'))


# JSON API. Callers pass the same access token the pages keep in the session as a bearer token.

@token_auth.verify_token
def verify_token(token):
    if not token:
        return None
    db = database.DatabasePersistence(supabase_client(token))
    try:
        user = db.get_user(token)
        profile = db.get_profile(user['id'])
    except AuthenticationError:
        return None
    g.user = user
    g.profile = profile
    g.db = db
    return {'user': user, 'profile': profile}


@token_auth.get_user_roles
def get_user_roles(identity):
    profile = identity.get('profile')
    return ['admin'] if profile and profile.is_admin else []


@token_auth.error_handler
def token_auth_error(status):
    message = "Admin role required" if status == 403 else "Invalid or missing access token"
    return jsonify({"error": message}), status


def json_body():
    body = request.get_json(silent=True)
    if body is None:
        return {}
    if not isinstance(body, dict):
        raise VisitValidationError("Request body must be a JSON object.")
    return body


@app.route('/api/calendar')
def api_calendar():
    today = date.today()
    db = database.DatabasePersistence(supabase_client())
    booking_calendar = BookingCalendar(db.list_visits(), parse_month(request.args.get('month'), today), today)
    return jsonify(booking_calendar.to_dict())


@app.route('/api/visits/mine')
@token_auth.login_required
def api_my_visits():
    visits = g.db.visits_for_user(g.user['id'])
    return jsonify({"visits": [visit.to_dict() for visit in visits]})


@app.route('/api/visits', methods=['POST'])
@token_auth.login_required
def api_propose():
    visit = propose_visit(g.db, g.user, json_body())
    return jsonify(visit.to_dict()), 201


@app.route('/api/visits/<visit_id>/decision', methods=['POST'])
@token_auth.login_required(role='admin')
def api_decide_visit(visit_id):
    try:
        status = VisitStatus(json_body().get('status', ''))
    except ValueError:
        return jsonify({"error": "status must be confirmed or denied"}), 400
    visit = g.db.decide_visit(visit_id, status, g.user['id'])
    return jsonify(visit.to_dict())


@app.errorhandler(VisitValidationError)
def handle_invalid_visit(error):
    if is_api_request():
        return jsonify({"error": error.message}), 400
    flash(error.message, "error")
    return redirect(url_for('calendar_view'))


@app.errorhandler(StatusTransitionError)
def handle_status_transition(error):
    if is_api_request():
        return jsonify({"error": error.message}), 409
    flash(error.message, "error")
    return redirect(url_for('pending_visits'))

# Handle failed calls to the hosted backend
@app.errorhandler(BackendError)
def handle_backend_error(error):
    logger.error(f"Backend error on {request.method} {request.path}: {error.message}")
    if is_api_request():
        return jsonify({"error": error.message}), 502
    if request.method == 'GET':
        return render_template('error.html', message=error.message), 502
    flash(f"Could not save your change. {error.message}", "error")
    return redirect(url_for('calendar_view'))


@app.errorhandler(403)
def forbidden(error):
    return render_template('error.html', message="Only admins can do that."), 403


@app.errorhandler(404)
def error_handler(error):
    if is_api_request():
        return jsonify({"error": "Not found"}), 404
    flash("An error occurred.", "error")
    return redirect(url_for('calendar_view'))


if __name__ == '__main__':
    # production
    if os.environ.get('FLASK_ENV') == 'production':
       app.run(debug=False)
    else:
       toolbar = DebugToolbarExtension(app)
       app.run(debug=True, port=5003)
