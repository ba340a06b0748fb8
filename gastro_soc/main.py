# ==============================================================================
# API HTTP - Flask
# ==============================================================================
# Capa fina sobre los services: cada ruta lee la petición, llama al service
# con la socia de la sesión y devuelve JSON {"ok": ...}.
#
# SEGURIDAD:
#   - Sesión por PIN (session['member_id'])
#   - Token CSRF en toda petición que modifica (cabecera X-CSRF-Token)
#   - Permisos por capacidad del rol (permission_required)
#   - Cabeceras de seguridad en todas las respuestas
#
# Los errores del dominio (gastro_soc.errors) se convierten en JSON con su
# código HTTP en un único errorhandler; las rutas no los capturan.
# ==============================================================================

import os
import uuid
from functools import wraps

from flask import Blueprint, Flask, current_app, request, session
from werkzeug.exceptions import HTTPException

from . import config
from .app_container import get_container
from .errors import AuthenticationError, ClubError, ValidationError
from .performance_logger import init_profiling

api = Blueprint('api', __name__, url_prefix='/api')

MUTATING_METHODS = ('POST', 'PUT', 'PATCH', 'DELETE')


def _container():
    return current_app.extensions['gastro_soc']


def _payload() -> dict:
    """Cuerpo JSON o formulario de la petición."""
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        return data
    return request.form.to_dict()


def current_member():
    """Socia de la sesión, o None si no hay sesión o ya no está activa."""
    member_id = session.get('member_id')
    if not member_id:
        return None
    member = _container().member_service.get_member(member_id)
    if member is None or not member.is_active:
        return None
    return member


# ═══════════════════════════════════════════════════════════════════════════════
# DECORADORES
# ═══════════════════════════════════════════════════════════════════════════════

def login_required(f):
    @wraps(f)
    def wrapper(*args, **kwargs):
        if current_member() is None:
            raise AuthenticationError("Debes iniciar sesión")
        return f(*args, **kwargs)
    return wrapper


def permission_required(capability):
    """Exige que el rol de la socia tenga la capacidad indicada."""
    def deco(f):
        @wraps(f)
        def wrapper(*args, **kwargs):
            _container().permission_service.require(current_member(), capability)
            return f(*args, **kwargs)
        return wrapper
    return deco


def generate_csrf_token():
    if 'csrf_token' not in session:
        session['csrf_token'] = uuid.uuid4().hex
    return session['csrf_token']


def verify_csrf(f):
    @wraps(f)
    def wrapper(*args, **kwargs):
        if request.method in MUTATING_METHODS:
            token = session.get('csrf_token')
            sent_token = (
                request.form.get('csrf_token') or
                request.headers.get('X-CSRF-Token') or
                request.headers.get('X-CSRFToken')
            )
            if not sent_token and request.is_json:
                json_data = request.get_json(silent=True) or {}
                sent_token = json_data.get('csrf_token')

            if not token or not sent_token or token != sent_token:
                return {"ok": False, "error": "CSRF token inválido"}, 403
        return f(*args, **kwargs)
    return wrapper


# ═══════════════════════════════════════════════════════════════════════════════
# SESIÓN
# ═══════════════════════════════════════════════════════════════════════════════

@api.route('/session', methods=['GET'])
def api_session():
    """Estado de la sesión y token CSRF (también sin iniciar sesión)."""
    member = current_member()
    data = {"ok": True, "authenticated": member is not None, "csrf_token": generate_csrf_token()}
    if member is not None:
        data['member'] = member.to_dict()
        data['permissions'] = _container().permission_service.permissions_for(member)
    return data


@api.route('/login', methods=['POST'])
@verify_csrf
def api_login():
    member = _container().member_service.authenticate_pin(_payload().get('pin'))
    csrf_token = session.get('csrf_token')
    session.clear()
    session.permanent = True
    session['member_id'] = member.id
    session['csrf_token'] = csrf_token or uuid.uuid4().hex
    return {
        "ok": True,
        "member": member.to_dict(),
        "permissions": _container().permission_service.permissions_for(member),
        "csrf_token": session['csrf_token'],
    }


@api.route('/logout', methods=['POST'])
@login_required
@verify_csrf
def api_logout():
    member_id = session.get('member_id')
    session.clear()
    _container().audit_service.log_user_logout(member_id)
    return {"ok": True}


@api.route('/dashboard', methods=['GET'])
@login_required
def api_dashboard():
    return {"ok": True, "dashboard": _container().stats_service.dashboard(current_member())}


# ═══════════════════════════════════════════════════════════════════════════════
# ECONOMATO
# ═══════════════════════════════════════════════════════════════════════════════

@api.route('/inventory', methods=['GET'])
@login_required
def api_inventory_list():
    include_inactive = request.args.get('all') == '1'
    products = _container().inventory_service.list_products(include_inactive)
    return {"ok": True, "products": [dict(p.to_dict(), stockLevel=p.stock_level()) for p in products]}


@api.route('/inventory', methods=['POST'])
@login_required
@verify_csrf
def api_inventory_save():
    product = _container().inventory_service.save_product(current_member(), _payload())
    return {"ok": True, "product": product.to_dict()}


@api.route('/inventory/<product_id>', methods=['DELETE'])
@login_required
@verify_csrf
def api_inventory_delete(product_id):
    product = _container().inventory_service.delete_product(current_member(), product_id)
    return {"ok": True, "product": product.to_dict()}


@api.route('/inventory/<product_id>/deactivate', methods=['POST'])
@login_required
@verify_csrf
def api_inventory_deactivate(product_id):
    product = _container().inventory_service.deactivate_product(current_member(), product_id)
    return {"ok": True, "product": product.to_dict()}


@api.route('/inventory/<product_id>/restock', methods=['POST'])
@login_required
@verify_csrf
def api_inventory_restock(product_id):
    product = _container().inventory_service.increment_stock(
        current_member(), product_id, _payload().get('quantity')
    )
    return {"ok": True, "product": product.to_dict()}


@api.route('/inventory/<product_id>/withdraw', methods=['POST'])
@login_required
@verify_csrf
def api_inventory_withdraw(product_id):
    product = _container().inventory_service.decrement_stock(
        current_member(), product_id, _payload().get('quantity')
    )
    return {"ok": True, "product": product.to_dict()}


@api.route('/inventory/<product_id>/purchase', methods=['POST'])
@login_required
@verify_csrf
def api_inventory_purchase(product_id):
    data = _payload()
    product, transaction = _container().inventory_service.register_purchase(
        current_member(), product_id, data.get('quantity'),
        unit_cost=data.get('unitCost'),
        payment_method=data.get('paymentMethod') or 'Transferencia',
    )
    return {"ok": True, "product": product.to_dict(), "transaction": transaction.to_dict()}


@api.route('/inventory/<product_id>/audit', methods=['POST'])
@login_required
@verify_csrf
def api_inventory_audit(product_id):
    service = _container().inventory_service
    variance = service.apply_audit(current_member(), product_id, _payload().get('countedQuantity'))
    return {"ok": True, "variance": variance, "product": service.get_product(product_id).to_dict()}


@api.route('/inventory/<product_id>/shrinkage', methods=['POST'])
@login_required
@verify_csrf
def api_inventory_shrinkage(product_id):
    data = _payload()
    product, transaction = _container().inventory_service.apply_shrinkage(
        current_member(), product_id, data.get('quantity'), data.get('reason') or ''
    )
    return {"ok": True, "product": product.to_dict(), "transaction": transaction.to_dict()}


# ═══════════════════════════════════════════════════════════════════════════════
# EVENTOS Y CONSUMOS
# ═══════════════════════════════════════════════════════════════════════════════

@api.route('/events', methods=['GET'])
@login_required
def api_events_list():
    events = _container().event_service.list_events(
        status=request.args.get('status'), date_from=request.args.get('from')
    )
    return {"ok": True, "events": [e.to_dict() for e in events]}


@api.route('/events', methods=['POST'])
@login_required
@verify_csrf
def api_events_create():
    data = _payload()
    event = _container().event_service.create_event(
        current_member(),
        title=data.get('title'),
        date=data.get('date'),
        zone_id=data.get('zoneId'),
        organizer_id=data.get('organizerId'),
        attendee_ids=data.get('attendeeIds'),
        attendees=data.get('attendees'),
        guest_count=data.get('guestCount') or 0,
        payment_method=data.get('paymentMethod') or 'Efectivo',
    )
    return {"ok": True, "event": event.to_dict()}, 201


@api.route('/events/<event_id>', methods=['PUT'])
@login_required
@verify_csrf
def api_events_update(event_id):
    event = _container().event_service.update_event(current_member(), event_id, _payload())
    return {"ok": True, "event": event.to_dict()}


@api.route('/events/<event_id>', methods=['DELETE'])
@login_required
@verify_csrf
def api_events_delete(event_id):
    event = _container().event_service.delete_event(current_member(), event_id)
    return {"ok": True, "event": event.to_dict()}


@api.route('/events/<event_id>/consumptions', methods=['POST'])
@login_required
@verify_csrf
def api_events_add_consumption(event_id):
    """
    Añade una línea al evento.

    Body:
        {"type": "product", "productId": ..., "quantity": ...}
        {"type": "custom" | "service", "label": ..., "amount": ...}
    """
    data = _payload()
    service = _container().consumption_service
    actor = current_member()
    kind = data.get('type') or 'product'
    if kind == 'product':
        line = service.add_product_consumption(actor, event_id, data.get('productId'), data.get('quantity'))
    elif kind == 'custom':
        line = service.add_custom_consumption(actor, event_id, data.get('label'), data.get('amount'))
    elif kind == 'service':
        line = service.add_service_consumption(actor, event_id, data.get('label'), data.get('amount'))
    else:
        raise ValidationError(f"Tipo de consumo no válido: {kind}")
    event = _container().event_service.get_event(event_id)
    return {"ok": True, "line": line.to_dict(), "event": event.to_dict()}, 201


@api.route('/events/<event_id>/consumptions/<line_id>', methods=['DELETE'])
@login_required
@verify_csrf
def api_events_remove_consumption(event_id, line_id):
    line = _container().consumption_service.remove_consumption(current_member(), event_id, line_id)
    event = _container().event_service.get_event(event_id)
    return {"ok": True, "line": line.to_dict(), "event": event.to_dict()}


@api.route('/events/<event_id>/guests', methods=['POST'])
@login_required
@verify_csrf
def api_events_guests(event_id):
    event = _container().consumption_service.set_guest_count(
        current_member(), event_id, _payload().get('guestCount')
    )
    return {"ok": True, "event": event.to_dict()}


@api.route('/events/<event_id>/settle', methods=['POST'])
@login_required
@verify_csrf
def api_events_settle(event_id):
    event, transaction = _container().event_service.settle(
        current_member(), event_id, _payload().get('paymentMethod') or 'Efectivo'
    )
    return {"ok": True, "event": event.to_dict(), "transaction": transaction.to_dict()}


@api.route('/events/<event_id>/cancel', methods=['POST'])
@login_required
@verify_csrf
def api_events_cancel(event_id):
    event = _container().event_service.cancel(current_member(), event_id)
    return {"ok": True, "event": event.to_dict()}


@api.route('/events/<event_id>/finalize', methods=['POST'])
@login_required
@verify_csrf
def api_events_finalize(event_id):
    event = _container().event_service.finalize(current_member(), event_id)
    return {"ok": True, "event": event.to_dict()}


# ═══════════════════════════════════════════════════════════════════════════════
# TESORERÍA
# ═══════════════════════════════════════════════════════════════════════════════

@api.route('/transactions', methods=['GET'])
@login_required
@permission_required('view_sensitive_data')
def api_transactions_list():
    transactions = _container().transaction_service.list_transactions(
        month=request.args.get('month'), category=request.args.get('category')
    )
    return {"ok": True, "transactions": [t.to_dict() for t in transactions]}


@api.route('/transactions', methods=['POST'])
@login_required
@verify_csrf
def api_transactions_append():
    transaction = _container().transaction_service.append(current_member(), _payload())
    return {"ok": True, "transaction": transaction.to_dict()}, 201


@api.route('/transactions/<transaction_id>', methods=['PUT'])
@login_required
@verify_csrf
def api_transactions_update(transaction_id):
    transaction = _container().transaction_service.update(current_member(), transaction_id, _payload())
    return {"ok": True, "transaction": transaction.to_dict()}


@api.route('/transactions/<transaction_id>/reconcile', methods=['POST'])
@login_required
@verify_csrf
def api_transactions_reconcile(transaction_id):
    transaction = _container().transaction_service.toggle_reconciled(current_member(), transaction_id)
    return {"ok": True, "transaction": transaction.to_dict()}


@api.route('/transactions/summary', methods=['GET'])
@login_required
@permission_required('view_sensitive_data')
def api_transactions_summary():
    return {"ok": True, "summary": _container().transaction_service.summary()}


@api.route('/transactions/monthly', methods=['GET'])
@login_required
@permission_required('view_sensitive_data')
def api_transactions_monthly():
    totals = _container().transaction_service.monthly_totals()
    return {"ok": True, "months": [dict(month=month, **values) for month, values in totals.items()]}


# ═══════════════════════════════════════════════════════════════════════════════
# SOCIAS
# ═══════════════════════════════════════════════════════════════════════════════

@api.route('/members', methods=['GET'])
@login_required
def api_members_list():
    members = _container().member_service.list_members(current_member(), request.args.get('status'))
    return {"ok": True, "members": members}


@api.route('/members', methods=['POST'])
@login_required
@verify_csrf
def api_members_save():
    service = _container().member_service
    actor = current_member()
    member = service.save_member(actor, _payload())
    return {"ok": True, "member": service.member_view(actor, member)}


@api.route('/members/<member_id>', methods=['DELETE'])
@login_required
@verify_csrf
def api_members_delete(member_id):
    member = _container().member_service.delete_member(current_member(), member_id)
    return {"ok": True, "member": member.to_public_dict()}


@api.route('/members/<member_id>/status', methods=['POST'])
@login_required
@verify_csrf
def api_members_status(member_id):
    service = _container().member_service
    actor = current_member()
    member = service.set_status(actor, member_id, _payload().get('status'))
    return {"ok": True, "member": service.member_view(actor, member)}


@api.route('/members/<member_id>/fee', methods=['POST'])
@login_required
@verify_csrf
def api_members_fee(member_id):
    data = _payload()
    transaction = _container().member_service.charge_monthly_fee(
        current_member(), member_id,
        payment_method=data.get('paymentMethod') or 'Transferencia',
        month=data.get('month'),
    )
    return {"ok": True, "transaction": transaction.to_dict()}, 201


# ═══════════════════════════════════════════════════════════════════════════════
# TABLÓN Y AVISOS
# ═══════════════════════════════════════════════════════════════════════════════

@api.route('/messages', methods=['GET'])
@login_required
def api_messages_list():
    service = _container().message_service
    return {
        "ok": True,
        "messages": [m.to_dict() for m in service.list_messages()],
        "unread": service.unread_count(),
    }


@api.route('/messages', methods=['POST'])
@login_required
@verify_csrf
def api_messages_send():
    message = _container().message_service.send_message(current_member(), _payload().get('content'))
    return {"ok": True, "message": message.to_dict()}, 201


@api.route('/messages/<message_id>/read', methods=['POST'])
@login_required
@verify_csrf
def api_messages_read(message_id):
    message = _container().message_service.mark_read(message_id)
    return {"ok": True, "message": message.to_dict()}


@api.route('/announcements', methods=['GET'])
@login_required
def api_announcements_list():
    announcements = _container().message_service.list_announcements()
    return {"ok": True, "announcements": [a.to_dict() for a in announcements]}


@api.route('/announcements', methods=['POST'])
@login_required
@verify_csrf
def api_announcements_post():
    data = _payload()
    announcement = _container().message_service.post_announcement(
        current_member(), data.get('title'), data.get('content')
    )
    return {"ok": True, "announcement": announcement.to_dict()}, 201


# ═══════════════════════════════════════════════════════════════════════════════
# CONFIGURACIÓN
# ═══════════════════════════════════════════════════════════════════════════════

@api.route('/roles', methods=['GET'])
@login_required
def api_roles_list():
    roles = _container().settings_service.list_roles()
    return {"ok": True, "roles": [r.to_dict() for r in roles]}


@api.route('/roles/<role>', methods=['POST'])
@login_required
@verify_csrf
def api_roles_update(role):
    definition = _container().permission_service.update_role_permissions(
        current_member(), role, _payload().get('permissions') or {}
    )
    return {"ok": True, "role": definition.to_dict()}


@api.route('/locations', methods=['GET'])
@login_required
def api_locations_list():
    locations = _container().settings_service.list_locations()
    return {"ok": True, "locations": [loc.to_dict() for loc in locations]}


@api.route('/locations', methods=['POST'])
@login_required
@verify_csrf
def api_locations_save():
    location = _container().settings_service.save_location(current_member(), _payload())
    return {"ok": True, "location": location.to_dict()}


@api.route('/sync/reload', methods=['POST'])
@login_required
@verify_csrf
def api_sync_reload():
    """Vacía la cola de escritura y vuelve a leer el almacén."""
    summary = _container().sync_service.refresh()
    return {"ok": True, "summary": summary, "degraded": _container().state.degraded}


# ═══════════════════════════════════════════════════════════════════════════════
# REGISTRO DE ACTIVIDAD
# ═══════════════════════════════════════════════════════════════════════════════

@api.route('/audit', methods=['GET'])
@login_required
@permission_required('view_sensitive_data')
def api_audit():
    """Actividad más reciente primero; filtros ?q=texto&type=PAGO&user=SOC-002&limit=50"""
    limit = request.args.get('limit', 100, type=int)
    if limit <= 0:
        raise ValidationError("El límite debe ser mayor que cero")
    logs = _container().audit_service.search(
        request.args.get('q', '').strip(),
        log_type=request.args.get('type') or None,
        user=request.args.get('user') or None,
    )
    return {"ok": True, "logs": logs[:limit], "total": len(logs)}


# ═══════════════════════════════════════════════════════════════════════════════
# APLICACIÓN
# ═══════════════════════════════════════════════════════════════════════════════

def set_security_headers(response):
    response.headers['X-Frame-Options'] = 'DENY'
    response.headers['X-Content-Type-Options'] = 'nosniff'
    response.headers['Referrer-Policy'] = 'no-referrer-when-downgrade'
    response.headers['Permissions-Policy'] = 'geolocation=(), microphone=()'
    # HSTS solo con HTTPS real
    if request.is_secure:
        response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'
    return response


def handle_club_error(err: ClubError):
    return err.to_dict(), err.http_status


def handle_http_error(err: HTTPException):
    if request.path.startswith('/api/'):
        return {"ok": False, "error": err.description}, err.code
    return err


def create_app(container=None) -> Flask:
    """
    Construye la aplicación Flask.

    Args:
        container: AppContainer ya configurado; por defecto el global,
                   que se arranca aquí (carga + escucha de cambios)
    """
    if container is None:
        container = get_container()
    container.start()

    app = Flask(__name__)
    app.config.update(config.flask_settings())
    app.extensions['gastro_soc'] = container

    init_profiling(app, os.path.join(container.data_dir, 'logs'))

    app.register_blueprint(api)
    app.after_request(set_security_headers)
    app.register_error_handler(ClubError, handle_club_error)
    app.register_error_handler(HTTPException, handle_http_error)
    return app


if __name__ == "__main__":
    # En producción usar WSGI (gunicorn wsgi:app)
    DEBUG = os.environ.get('FLASK_DEBUG', '0') == '1'
    HOST = os.environ.get('FLASK_HOST', '0.0.0.0')
    PORT = int(os.environ.get('FLASK_PORT', 5000))

    app = create_app()

    if not DEBUG:
        print(f"\n{'='*50}")
        print(f"  Servidor iniciado en http://{HOST}:{PORT}")
        print(f"  Acceso local: http://localhost:{PORT}")
        print(f"  Datos: {app.extensions['gastro_soc'].data_dir}")
        print(f"{'='*50}\n")

    app.run(host=HOST, port=PORT, debug=DEBUG)
