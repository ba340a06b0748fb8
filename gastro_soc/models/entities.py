# ==============================================================================
# ENTIDADES DEL DOMINIO - Definiciones de dataclasses
# ==============================================================================
# Cada entidad representa un concepto del club (socias, economato, eventos,
# tesorería, mensajes). El formato persistido conserva las claves camelCase
# y los valores en castellano del snapshot original, así que to_dict() y
# from_dict() son el único punto de traducción.
# ==============================================================================

import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


def new_id(prefix: str) -> str:
    """Genera un identificador con prefijo, p.ej. 'EV-3F9A1C2B'."""
    return f"{prefix}-{uuid.uuid4().hex[:8].upper()}"


def now_iso() -> str:
    """Timestamp ISO en UTC."""
    return datetime.now(timezone.utc).isoformat()


def today_iso() -> str:
    return datetime.now(timezone.utc).date().isoformat()


def money(value: Any) -> float:
    """
    Normaliza un importe a 2 decimales.

    Raises:
        ValueError: Si no es un número finito ('nan', 'inf'...)
    """
    amount = float(value or 0)
    if not math.isfinite(amount):
        raise ValueError(f"Importe no válido: {value!r}")
    return round(amount, 2)


def _enum_value(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


def _parse_enum(enum_cls, value: Any, default):
    try:
        return enum_cls(value)
    except ValueError:
        return default


# ==============================================================================
# ENUMERACIONES
# ==============================================================================

class ProductCategory(str, Enum):
    """Categorías del economato."""
    BEBIDA = "Bebida"
    ALIMENTO = "Alimento"
    LIMPIEZA = "Limpieza"
    OTROS = "Otros"


class ConsumptionType(str, Enum):
    """Tipo de línea de consumo de un evento."""
    PRODUCT = "product"
    CUSTOM = "custom"
    SERVICE = "service"


class EventStatus(str, Enum):
    """Estado de ciclo de vida de una reserva."""
    PROGRAMADA = "Programada"
    FINALIZADA = "Finalizada"
    CANCELADA = "Cancelada"


class PaymentStatus(str, Enum):
    PENDIENTE = "Pendiente"
    PAGADA = "Pagada"


class PaymentMethod(str, Enum):
    """Métodos de pago aceptados."""
    EFECTIVO = "Efectivo"
    TRANSFERENCIA = "Transferencia"
    BIZUM = "Bizum"
    NA = "N/A"


class TransactionCategory(str, Enum):
    """Categorías contables (enumeración cerrada)."""
    CUOTA = "Cuota"
    EVENTO = "Evento"
    COMPRA_INSUMOS = "Compra Insumos"
    VENTA_DIRECTA = "Venta Directa Economato"
    SUMINISTROS = "Suministros (Luz/Agua/Internet)"
    MANTENIMIENTO = "Mantenimiento"
    IMPUESTOS = "Impuestos"
    OTROS = "Otros"


class MemberStatus(str, Enum):
    ACTIVE = "Activa"
    INACTIVE = "Inactiva"
    PENDING = "Pendiente"


class Role(str, Enum):
    """Roles de la junta y de las socias."""
    PRESIDENT = "Presidenta"
    TREASURER = "Tesorera"
    SECRETARY = "Secretaria"
    MEMBER = "Socia"
    USER = "Usuaria"


# Capacidades que puede otorgar un rol
CAPABILITIES = (
    'manage_events',
    'manage_members',
    'manage_inventory',
    'manage_finance',
    'manage_settings',
    'view_sensitive_data',
)


# ==============================================================================
# ECONOMATO
# ==============================================================================

@dataclass
class Product:
    """
    Producto del economato.

    Attributes:
        id: Identificador (PROD-001)
        name: Nombre visible
        category: Categoría del economato
        unit: Etiqueta de unidad (Botella, Paquete...)
        current_stock: Existencias actuales, nunca negativas
        min_stock: Umbral de aviso de stock bajo
        emergency_stock: Umbral de emergencia (menor que min_stock)
        cost_price: Precio de compra
        sale_price: Precio de venta a socias
        provider: Proveedor habitual
        is_active: False = baja lógica
        last_audit_date: Fecha del último recuento físico
    """
    id: str
    name: str
    category: ProductCategory = ProductCategory.OTROS
    unit: str = 'Unidad'
    current_stock: int = 0
    min_stock: int = 0
    emergency_stock: int = 0
    cost_price: float = 0.0
    sale_price: float = 0.0
    provider: str = ''
    is_active: bool = True
    last_audit_date: Optional[str] = None

    def stock_level(self) -> str:
        """Nivel de alerta: 'emergencia', 'bajo' u 'ok'."""
        if self.current_stock <= self.emergency_stock:
            return 'emergencia'
        if self.current_stock <= self.min_stock:
            return 'bajo'
        return 'ok'

    @property
    def is_critical(self) -> bool:
        """Stock en o por debajo del mínimo."""
        return self.current_stock <= self.min_stock

    def to_dict(self) -> Dict[str, Any]:
        """Convierte a diccionario para persistencia."""
        d = {
            'id': self.id,
            'name': self.name,
            'category': _enum_value(self.category),
            'unit': self.unit,
            'currentStock': self.current_stock,
            'minStock': self.min_stock,
            'emergencyStock': self.emergency_stock,
            'costPrice': self.cost_price,
            'salePrice': self.sale_price,
            'provider': self.provider,
            'isActive': self.is_active,
        }
        if self.last_audit_date:
            d['lastAuditDate'] = self.last_audit_date
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Product':
        """Crea instancia desde diccionario."""
        return cls(
            id=data.get('id', ''),
            name=data.get('name', ''),
            category=_parse_enum(ProductCategory, data.get('category'), ProductCategory.OTROS),
            unit=data.get('unit', 'Unidad'),
            current_stock=max(0, int(data.get('currentStock', 0) or 0)),
            min_stock=int(data.get('minStock', 0) or 0),
            emergency_stock=int(data.get('emergencyStock', 0) or 0),
            cost_price=money(data.get('costPrice')),
            sale_price=money(data.get('salePrice')),
            provider=data.get('provider', ''),
            is_active=bool(data.get('isActive', True)),
            last_audit_date=data.get('lastAuditDate'),
        )


# ==============================================================================
# EVENTOS Y CONSUMOS
# ==============================================================================

@dataclass
class EventConsumption:
    """
    Línea de consumo de un evento.

    Las líneas de producto guardan una referencia débil al producto
    (solo para devolver stock) y el precio copiado al añadirse.
    """
    id: str
    type: ConsumptionType
    name: str
    quantity: int
    unit_cost: float
    product_id: Optional[str] = None
    total_cost: float = 0.0

    def __post_init__(self):
        self.total_cost = money(self.quantity * self.unit_cost)

    @property
    def is_product(self) -> bool:
        return self.type == ConsumptionType.PRODUCT

    def to_dict(self) -> Dict[str, Any]:
        d = {
            'id': self.id,
            'type': _enum_value(self.type),
            'name': self.name,
            'quantity': self.quantity,
            'unitCost': self.unit_cost,
            'totalCost': self.total_cost,
        }
        if self.product_id:
            d['productId'] = self.product_id
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'EventConsumption':
        return cls(
            id=data.get('id', ''),
            type=_parse_enum(ConsumptionType, data.get('type'), ConsumptionType.CUSTOM),
            name=data.get('name', ''),
            quantity=int(data.get('quantity', 1) or 0),
            unit_cost=money(data.get('unitCost')),
            product_id=data.get('productId'),
        )


@dataclass
class Event:
    """
    Reserva de un espacio del local.

    Attributes:
        id: Identificador (EV-...)
        title: Título de la reserva
        date: Fecha (YYYY-MM-DD)
        organizer_id: Socia organizadora
        attendee_ids: Socias apuntadas
        attendees: Número total de asistentes
        guest_count: Invitadas no socias (pagan GUEST_FEE cada una)
        zone_id: Espacio reservado
        status: Programada / Finalizada / Cancelada
        consumptions: Líneas de consumo (propiedad exclusiva del evento)
        total_cost: Consumos + invitadas, recalculado tras cada cambio
        payment_status: Pendiente / Pagada (Pagada es terminal)
        payment_method: Método de pago
        settled_by: Socia que liquidó
        settlement_date: Fecha de liquidación
    """
    id: str
    title: str
    date: str
    zone_id: str
    organizer_id: str = ''
    attendee_ids: List[str] = field(default_factory=list)
    attendees: int = 1
    guest_count: int = 0
    status: EventStatus = EventStatus.PROGRAMADA
    consumptions: List[EventConsumption] = field(default_factory=list)
    total_cost: float = 0.0
    payment_status: PaymentStatus = PaymentStatus.PENDIENTE
    payment_method: PaymentMethod = PaymentMethod.EFECTIVO
    settled_by: Optional[str] = None
    settlement_date: Optional[str] = None

    @property
    def is_paid(self) -> bool:
        return self.payment_status == PaymentStatus.PAGADA

    @property
    def is_cancelled(self) -> bool:
        return self.status == EventStatus.CANCELADA

    def find_consumption(self, line_id: str) -> Optional[EventConsumption]:
        for line in self.consumptions:
            if line.id == line_id:
                return line
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Convierte a diccionario para persistencia JSON."""
        d = {
            'id': self.id,
            'title': self.title,
            'date': self.date,
            'organizerId': self.organizer_id,
            'attendeeIds': list(self.attendee_ids),
            'attendees': self.attendees,
            'guestCount': self.guest_count,
            'zoneId': self.zone_id,
            'status': _enum_value(self.status),
            'consumptions': [c.to_dict() for c in self.consumptions],
            'totalCost': self.total_cost,
            'paymentStatus': _enum_value(self.payment_status),
            'paymentMethod': _enum_value(self.payment_method),
        }
        if self.settled_by:
            d['settledBy'] = self.settled_by
        if self.settlement_date:
            d['settlementDate'] = self.settlement_date
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Event':
        return cls(
            id=data.get('id', ''),
            title=data.get('title', ''),
            date=data.get('date', ''),
            zone_id=data.get('zoneId', ''),
            organizer_id=data.get('organizerId', ''),
            attendee_ids=list(data.get('attendeeIds', [])),
            attendees=int(data.get('attendees', 1) or 0),
            guest_count=int(data.get('guestCount', 0) or 0),
            status=_parse_enum(EventStatus, data.get('status'), EventStatus.PROGRAMADA),
            consumptions=[EventConsumption.from_dict(c) for c in data.get('consumptions', [])],
            total_cost=money(data.get('totalCost')),
            payment_status=_parse_enum(PaymentStatus, data.get('paymentStatus'), PaymentStatus.PENDIENTE),
            payment_method=_parse_enum(PaymentMethod, data.get('paymentMethod'), PaymentMethod.EFECTIVO),
            settled_by=data.get('settledBy'),
            settlement_date=data.get('settlementDate'),
        )


# ==============================================================================
# TESORERÍA
# ==============================================================================

@dataclass
class Transaction:
    """
    Apunte contable. Importe positivo = ingreso, negativo = gasto.
    is_reconciled se marca a mano al comprobarlo en banco/caja.
    """
    id: str
    date: str
    description: str
    amount: float
    category: TransactionCategory = TransactionCategory.OTROS
    related_event_id: Optional[str] = None
    related_member_id: Optional[str] = None
    is_reconciled: bool = False
    payment_method: PaymentMethod = PaymentMethod.EFECTIVO

    @property
    def month(self) -> str:
        """Mes contable 'YYYY-MM'."""
        return (self.date or '')[:7]

    def to_dict(self) -> Dict[str, Any]:
        d = {
            'id': self.id,
            'date': self.date,
            'description': self.description,
            'amount': self.amount,
            'category': _enum_value(self.category),
            'isReconciled': self.is_reconciled,
            'paymentMethod': _enum_value(self.payment_method),
        }
        if self.related_event_id:
            d['relatedEventId'] = self.related_event_id
        if self.related_member_id:
            d['relatedMemberId'] = self.related_member_id
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Transaction':
        return cls(
            id=data.get('id', ''),
            date=data.get('date', ''),
            description=data.get('description', ''),
            amount=money(data.get('amount')),
            category=_parse_enum(TransactionCategory, data.get('category'), TransactionCategory.OTROS),
            related_event_id=data.get('relatedEventId'),
            related_member_id=data.get('relatedMemberId'),
            is_reconciled=bool(data.get('isReconciled', False)),
            payment_method=_parse_enum(PaymentMethod, data.get('paymentMethod'), PaymentMethod.EFECTIVO),
        )


# ==============================================================================
# SOCIAS Y ROLES
# ==============================================================================

@dataclass
class Member:
    """
    Socia del club.

    Attributes:
        pin: Credencial de acceso de 4 dígitos (no se hashea)
        monthly_fee: Cuota personalizada; None = cuota general
    """
    id: str
    full_name: str
    role: Role = Role.USER
    pin: str = ''
    dni: str = ''
    email: str = ''
    phone: str = ''
    address: str = ''
    iban: str = ''
    monthly_fee: Optional[float] = None
    status: MemberStatus = MemberStatus.ACTIVE
    join_date: str = ''
    avatar_url: Optional[str] = None
    allergies: Optional[str] = None
    notes: Optional[str] = None
    documents_signed: Optional[Dict[str, Any]] = None

    # Campos que solo ve quien tiene view_sensitive_data
    SENSITIVE_FIELDS = ('dni', 'iban', 'pin', 'address', 'monthlyFee')

    def __post_init__(self):
        if not self.join_date:
            self.join_date = today_iso()

    @property
    def is_active(self) -> bool:
        return self.status == MemberStatus.ACTIVE

    def to_dict(self) -> Dict[str, Any]:
        d = {
            'id': self.id,
            'fullName': self.full_name,
            'dni': self.dni,
            'email': self.email,
            'phone': self.phone,
            'address': self.address,
            'iban': self.iban,
            'status': _enum_value(self.status),
            'joinDate': self.join_date,
            'role': _enum_value(self.role),
            'pin': self.pin,
        }
        if self.monthly_fee is not None:
            d['monthlyFee'] = self.monthly_fee
        if self.avatar_url:
            d['avatarUrl'] = self.avatar_url
        if self.allergies:
            d['allergies'] = self.allergies
        if self.notes:
            d['notes'] = self.notes
        if self.documents_signed:
            d['documentsSigned'] = dict(self.documents_signed)
        return d

    def to_public_dict(self) -> Dict[str, Any]:
        """Versión sin datos sensibles (DNI, IBAN, PIN...)."""
        d = self.to_dict()
        for key in self.SENSITIVE_FIELDS:
            d.pop(key, None)
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Member':
        fee = data.get('monthlyFee')
        return cls(
            id=data.get('id', ''),
            full_name=data.get('fullName', ''),
            role=_parse_enum(Role, data.get('role'), Role.USER),
            pin=str(data.get('pin', '') or ''),
            dni=data.get('dni', ''),
            email=data.get('email', ''),
            phone=data.get('phone', ''),
            address=data.get('address', ''),
            iban=data.get('iban', ''),
            monthly_fee=money(fee) if fee is not None else None,
            status=_parse_enum(MemberStatus, data.get('status'), MemberStatus.ACTIVE),
            join_date=data.get('joinDate', ''),
            avatar_url=data.get('avatarUrl'),
            allergies=data.get('allergies'),
            notes=data.get('notes'),
            documents_signed=data.get('documentsSigned'),
        )


@dataclass
class RolePermissions:
    """Seis capacidades independientes de un rol."""
    manage_events: bool = False
    manage_members: bool = False
    manage_inventory: bool = False
    manage_finance: bool = False
    manage_settings: bool = False
    view_sensitive_data: bool = False

    def allows(self, capability: str) -> bool:
        """False para capacidades desconocidas."""
        if capability not in CAPABILITIES:
            return False
        return bool(getattr(self, capability))

    def to_dict(self) -> Dict[str, bool]:
        return {cap: bool(getattr(self, cap)) for cap in CAPABILITIES}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RolePermissions':
        return cls(**{cap: bool(data.get(cap, False)) for cap in CAPABILITIES})


@dataclass
class RoleDefinition:
    id: Role
    name: str
    permissions: RolePermissions = field(default_factory=RolePermissions)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': _enum_value(self.id),
            'name': self.name,
            'permissions': self.permissions.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RoleDefinition':
        return cls(
            id=Role(data.get('id')),
            name=data.get('name', data.get('id', '')),
            permissions=RolePermissions.from_dict(data.get('permissions', {})),
        )


# ==============================================================================
# ESPACIOS Y MENSAJES
# ==============================================================================

@dataclass
class Location:
    """Espacio reservable del local (zona)."""
    id: str
    name: str
    capacity: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {'id': self.id, 'name': self.name, 'capacity': self.capacity}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Location':
        return cls(
            id=data.get('id', ''),
            name=data.get('name', ''),
            capacity=int(data.get('capacity', 0) or 0),
        )


@dataclass
class UserMessage:
    """Mensaje del tablón de la comunidad."""
    id: str
    sender_id: str
    content: str
    timestamp: str = ''
    is_read: bool = False

    def __post_init__(self):
        if not self.timestamp:
            self.timestamp = now_iso()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'senderId': self.sender_id,
            'content': self.content,
            'timestamp': self.timestamp,
            'isRead': self.is_read,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'UserMessage':
        return cls(
            id=data.get('id', ''),
            sender_id=data.get('senderId', ''),
            content=data.get('content', ''),
            timestamp=data.get('timestamp', ''),
            is_read=bool(data.get('isRead', False)),
        )


@dataclass
class SystemMessage:
    """Aviso oficial de la junta."""
    id: str
    author_id: str
    title: str
    content: str
    timestamp: str = ''

    def __post_init__(self):
        if not self.timestamp:
            self.timestamp = now_iso()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'authorId': self.author_id,
            'title': self.title,
            'content': self.content,
            'timestamp': self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SystemMessage':
        return cls(
            id=data.get('id', ''),
            author_id=data.get('authorId', ''),
            title=data.get('title', ''),
            content=data.get('content', ''),
            timestamp=data.get('timestamp', ''),
        )


# ==============================================================================
# ENTIDADES DE AUDITORÍA
# ==============================================================================

@dataclass
class AuditLog:
    """
    Registro de actividad.

    Attributes:
        type: Tipo de evento (EVENTO, PAGO, STOCK, ...)
        user: Socia que realizó la acción
        message: Mensaje descriptivo humanizado
        timestamp: Fecha y hora del evento
        related_id: ID relacionado (evento, producto, apunte...)
        details: Detalles adicionales
    """
    type: str
    user: str
    message: str
    timestamp: str = ''
    related_id: str = ''
    details: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not self.timestamp:
            self.timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': self.type,
            'user': self.user,
            'message': self.message,
            'timestamp': self.timestamp,
            'related_id': self.related_id,
            'details': self.details
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AuditLog':
        return cls(
            type=data.get('type', ''),
            user=data.get('user', ''),
            message=data.get('message', ''),
            timestamp=data.get('timestamp', ''),
            related_id=data.get('related_id', ''),
            details=data.get('details', {})
        )
