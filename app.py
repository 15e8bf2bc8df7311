import io
import logging
import os

from flask import Blueprint, Flask, current_app, jsonify, request, send_file, session
from flask_cors import CORS
from flask_login import login_required
from flask_migrate import Migrate

from catalog_manager import CatalogManager
from client_manager import ClientManager
from company_profile import CompanyProfileManager
from config import Config
from entitlement import is_entitled
from errors import AppError, AuthError, BackendError, ValidationError
from gateway import create_gateway
from logging_config import setup_logging
from models import db, login_manager
from quote_composer import QuoteComposer, QuoteDraft
from quote_ledger import QuoteLedger
from records import User
from tax_registry import TaxRegistryClient

log = logging.getLogger(__name__)

migrate = Migrate()
api = Blueprint('api', __name__)

DRAFT_KEY = 'quote_draft'
MIN_PASSWORD_LENGTH = 6

SETUP_INSTRUCTIONS = {
    "error": "Setup required",
    "message": "The data store must be configured for the app to work.",
    "steps": [
        "Set DATABASE_URL to a SQLAlchemy database URL (e.g. sqlite:///quotes.db or postgresql://...)",
        "Set SECRET_KEY to a random value",
        "Restart the application",
    ],
}


def init_database(app):
    """Create any missing tables; schema changes go through `flask db` migrations."""
    db.create_all()
    log.info("Database tables ready.")


def create_app(config_overrides=None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)
    if app.config.get('DATABASE_URL'):
        app.config['SQLALCHEMY_DATABASE_URI'] = app.config['DATABASE_URL']

    setup_logging(app.config['LOG_LEVEL'], app.config['JSON_LOGS'])
    CORS(app)
    login_manager.init_app(app)

    if app.config.get('SQLALCHEMY_DATABASE_URI'):
        db.init_app(app)
        migrate.init_app(app, db)
        with app.app_context():
            init_database(app)

    # Chosen once; an unconfigured gateway sends every request to the setup view
    app.extensions['gateway'] = create_gateway(app)
    app.extensions['tax_registry'] = TaxRegistryClient(
        app.config['TAX_REGISTRY_URL'], timeout=app.config['TAX_REGISTRY_TIMEOUT'])

    @app.before_request
    def require_configuration():
        if not app.extensions['gateway'].configured and request.endpoint != 'api.health':
            return jsonify(SETUP_INSTRUCTIONS), 503

    @login_manager.unauthorized_handler
    def unauthorized():
        raise AuthError()

    @app.errorhandler(AppError)
    def handle_app_error(e):
        if isinstance(e, BackendError):
            log.error("%s (%s)", e.message, e.detail, extra={'route': request.path})
        return jsonify(e.to_dict()), e.status_code

    app.register_blueprint(api)
    return app


# --------------------------------------------------------------------------
# Helpers
# --------------------------------------------------------------------------

def gateway():
    return current_app.extensions['gateway']


def form_data():
    data = request.get_json(silent=True)
    if data is None:
        return request.form.to_dict()
    if not isinstance(data, dict):
        raise ValidationError("Expected a JSON object")
    return data


def account():
    """The signed-in user as a domain record."""
    return User.from_row(gateway().auth.get_current_user().unwrap())


def pdf_response(data, name):
    return send_file(io.BytesIO(data), mimetype='application/pdf',
                     as_attachment=request.args.get('download') == '1', download_name=name)


def composer():
    draft = QuoteDraft.from_dict(session.get(DRAFT_KEY))
    return QuoteComposer(gateway(), account(), draft, settings=current_app.config).load()


def draft_payload(comp):
    session[DRAFT_KEY] = comp.draft.to_dict()
    return {'draft': comp.draft.to_dict(), 'total': comp.total()}


def ledger_entry(entry):
    data = entry.quote.to_dict()
    data['client_name'] = entry.client_name
    data['badge'] = entry.badge._asdict()
    return data


# --------------------------------------------------------------------------
# Shell
# --------------------------------------------------------------------------

@api.route('/')
def index():
    return jsonify({"message": current_app.config['BRAND_NAME'] + " API"})


@api.route('/health')
def health():
    return jsonify({"status": "ok", "configured": gateway().configured})


@api.route('/api/auth/signup', methods=['POST'])
def signup():
    data = form_data()
    email = (data.get('email') or "").strip()
    password = data.get('password') or ""
    confirm = data.get('confirm_password') or ""
    if not email or not password or not confirm:
        raise ValidationError("Fill in all fields")
    if password != confirm:
        raise ValidationError("Passwords do not match")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

    user = User.from_row(gateway().auth.sign_up(email, password).unwrap())
    return jsonify(user.to_dict()), 201


@api.route('/api/auth/login', methods=['POST'])
def login():
    data = form_data()
    if not data.get('email') or not data.get('password'):
        raise ValidationError("Fill in all fields")
    user = User.from_row(gateway().auth.sign_in(data['email'], data['password']).unwrap())
    return jsonify(user.to_dict())


@api.route('/api/auth/logout', methods=['POST'])
def logout():
    result = gateway().auth.sign_out()
    if not result.ok:
        log.warning("Sign out failed: %s", result.error)
    session.pop(DRAFT_KEY, None)
    return jsonify({"status": "signed out"})


@api.route('/api/auth/me')
@login_required
def me():
    return jsonify(account().to_dict())


@api.route('/api/dashboard')
@login_required
def dashboard():
    user = account()
    summary = QuoteLedger(gateway(), user).monthly_summary()
    return jsonify({'user': user.to_dict(), 'stats': summary})


@api.route('/api/plan')
@login_required
def plan():
    return jsonify({
        'is_pro': is_entitled(account()),
        'checkout_url': current_app.config['CHECKOUT_URL'],
    })


# --------------------------------------------------------------------------
# Clients
# --------------------------------------------------------------------------

@api.route('/api/clients', methods=['GET', 'POST'])
@login_required
def clients():
    manager = ClientManager(gateway(), account())
    if request.method == 'POST':
        client = manager.save(form_data())
        return jsonify(client.to_dict()), 201
    manager.load()
    return jsonify([c.to_dict() for c in manager.list(request.args.get('search', ''))])


@api.route('/api/clients/<client_id>', methods=['GET', 'PUT', 'DELETE'])
@login_required
def client_detail(client_id):
    manager = ClientManager(gateway(), account())
    if request.method == 'PUT':
        return jsonify(manager.save(form_data(), client_id=client_id).to_dict())
    if request.method == 'DELETE':
        manager.delete(client_id)
        return jsonify({"status": "deleted"})
    return jsonify(manager.get(client_id).to_dict())


# --------------------------------------------------------------------------
# Catalog
# --------------------------------------------------------------------------

@api.route('/api/items', methods=['GET', 'POST'])
@login_required
def items():
    manager = CatalogManager(gateway(), account())
    if request.method == 'POST':
        item = manager.save(form_data())
        return jsonify(item.to_dict()), 201
    manager.load()
    return jsonify([i.to_dict() for i in manager.list(request.args.get('search', ''))])


@api.route('/api/items/<item_id>', methods=['GET', 'PUT', 'DELETE'])
@login_required
def item_detail(item_id):
    manager = CatalogManager(gateway(), account())
    if request.method == 'PUT':
        return jsonify(manager.save(form_data(), item_id=item_id).to_dict())
    if request.method == 'DELETE':
        manager.delete(item_id)
        return jsonify({"status": "deleted"})
    return jsonify(manager.get(item_id).to_dict())


@api.route('/api/items/<item_id>/photo', methods=['POST'])
@login_required
def item_photo(item_id):
    manager = CatalogManager(gateway(), account())
    return jsonify(manager.attach_photo(item_id, form_data().get('photo')).to_dict())


@api.route('/api/items/adjust-prices', methods=['POST'])
@login_required
def adjust_prices():
    manager = CatalogManager(gateway(), account())
    percent = form_data().get('percent')
    updated = manager.bulk_price_adjustment(percent)
    return jsonify({'updated': updated, 'items': [i.to_dict() for i in manager.items]})


# --------------------------------------------------------------------------
# Company profile
# --------------------------------------------------------------------------

def profile_manager():
    return CompanyProfileManager(gateway(), account(), registry=current_app.extensions['tax_registry'])


@api.route('/api/company', methods=['GET', 'PUT'])
@login_required
def company():
    manager = profile_manager()
    if request.method == 'PUT':
        profile = manager.from_form(form_data(), base=manager.load())
        return jsonify(manager.save(profile).to_dict())
    return jsonify(manager.load().to_dict())


@api.route('/api/company/lookup', methods=['POST'])
@login_required
def company_lookup():
    manager = profile_manager()
    profile = manager.from_form(form_data(), base=manager.load())
    return jsonify(manager.lookup_by_tax_id(profile).to_dict())


# --------------------------------------------------------------------------
# Draft quote
# --------------------------------------------------------------------------

@api.route('/api/draft', methods=['GET', 'DELETE'])
@login_required
def draft():
    comp = composer()
    if request.method == 'DELETE':
        comp.clear()
    return jsonify(draft_payload(comp))


@api.route('/api/draft/client', methods=['PUT'])
@login_required
def draft_client():
    comp = composer()
    comp.select_client(form_data().get('client_id'))
    return jsonify(draft_payload(comp))


@api.route('/api/draft/items', methods=['POST'])
@login_required
def draft_add_item():
    comp = composer()
    comp.add_item(form_data().get('item_id'))
    return jsonify(draft_payload(comp)), 201


@api.route('/api/draft/items/<item_id>', methods=['PUT', 'DELETE'])
@login_required
def draft_item(item_id):
    comp = composer()
    if request.method == 'DELETE':
        comp.remove_item(item_id)
    else:
        comp.set_quantity(item_id, form_data().get('quantity'))
    return jsonify(draft_payload(comp))


@api.route('/api/draft/notes', methods=['PUT'])
@login_required
def draft_notes():
    comp = composer()
    comp.set_notes(form_data().get('notes'))
    return jsonify(draft_payload(comp))


@api.route('/api/draft/signature', methods=['PUT'])
@login_required
def draft_signature():
    comp = composer()
    comp.set_signature(form_data().get('signature'))
    return jsonify(draft_payload(comp))


@api.route('/api/draft/save', methods=['POST'])
@login_required
def draft_save():
    comp = composer()
    quote = comp.save()
    session[DRAFT_KEY] = comp.draft.to_dict()
    return jsonify(quote.to_dict()), 201


@api.route('/api/draft/pdf')
@login_required
def draft_pdf():
    comp = composer()
    data = comp.export_pdf(profile_manager().load())
    return pdf_response(data, "quote.pdf")


@api.route('/api/draft/share')
@login_required
def draft_share():
    return jsonify({'url': composer().share_link()})


# --------------------------------------------------------------------------
# Quote ledger
# --------------------------------------------------------------------------

def ledger():
    return QuoteLedger(gateway(), account(), settings=current_app.config)


@api.route('/api/quotes')
@login_required
def quotes():
    entries = ledger().list(request.args.get('client', ''))
    return jsonify([ledger_entry(e) for e in entries])


@api.route('/api/quotes/<quote_id>', methods=['GET', 'DELETE'])
@login_required
def quote_detail(quote_id):
    led = ledger()
    if request.method == 'DELETE':
        confirmed = request.args.get('confirm', '').lower() in ('1', 'true', 'yes')
        led.delete(quote_id, confirmed=confirmed)
        return jsonify({"status": "deleted"})
    return jsonify(led.get(quote_id).to_dict())


@api.route('/api/quotes/<quote_id>/duplicate', methods=['POST'])
@login_required
def quote_duplicate(quote_id):
    return jsonify(ledger().duplicate(quote_id).to_dict()), 201


@api.route('/api/quotes/<quote_id>/pdf')
@login_required
def quote_pdf(quote_id):
    led = ledger()
    led.load()
    data = led.render_pdf(quote_id, profile_manager().load())
    return pdf_response(data, f"quote-{quote_id}.pdf")


@api.route('/api/quotes/<quote_id>/share')
@login_required
def quote_share(quote_id):
    return jsonify({'url': ledger().share_link(quote_id)})


if __name__ == '__main__':
    create_app().run(debug=False, port=int(os.environ.get('PORT', 5000)))
