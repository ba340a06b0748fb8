# ==============================================================================
# SERVICIO DE INVENTARIO (ECONOMATO)
# ==============================================================================
# Libro de existencias del economato. Regla central: el stock nunca es
# negativo. La comprobación y la resta se hacen bajo el mismo lock, así que
# una salida o se aplica entera o no se aplica.
#
# Los movimientos con valor económico (recuento con diferencias, mermas,
# compras) generan su apunte en tesorería en la misma operación.
# ==============================================================================

from typing import Any, Dict, List, Optional, Tuple

from ..errors import InsufficientStockError, NotFoundError, ValidationError
from ..models.entities import (
    Member,
    PaymentMethod,
    Product,
    ProductCategory,
    Transaction,
    TransactionCategory,
    money,
    new_id,
    today_iso,
)
from ..models.state import ClubState
from .permission_service import PermissionService
from .transaction_service import TransactionService, parse_payment_method


def parse_quantity(value: Any, allow_zero: bool = False) -> int:
    """
    Convierte una cantidad de la API a entero.

    Raises:
        ValidationError: Si no es un entero positivo (o >= 0 con allow_zero)
    """
    if isinstance(value, float) and not value.is_integer():
        raise ValidationError("La cantidad debe ser un número entero")
    try:
        quantity = int(value)
    except (TypeError, ValueError):
        raise ValidationError("La cantidad debe ser un número entero")
    if quantity < 0 or (quantity == 0 and not allow_zero):
        raise ValidationError("La cantidad debe ser mayor que cero")
    return quantity


class InventoryService:
    """
    Servicio del economato.

    Responsabilidades:
    - Salidas y entradas de stock (con y sin comprobación de permisos)
    - Recuentos físicos, mermas y compras con su apunte contable
    - CRUD de productos y alertas de stock bajo

    withdraw()/restore() no comprueban permisos: son las primitivas que usa
    el constructor de consumos después de su propia comprobación.
    """

    CAPABILITY = 'manage_inventory'

    def __init__(
        self,
        state: ClubState,
        permissions: PermissionService,
        transactions: TransactionService,
        mirror=None,
        audit_service=None
    ):
        self.state = state
        self.permissions = permissions
        self.transactions = transactions
        self.mirror = mirror
        self.audit_service = audit_service

    def _get_product(self, product_id: str) -> Product:
        product = self.state.get_product(product_id)
        if product is None:
            raise NotFoundError('Producto', product_id)
        return product

    def _persist(self, product: Product) -> None:
        if self.mirror:
            self.mirror.save('inventory', product)

    def _log_movement(self, user: str, product: Product, delta: int, reason: str) -> None:
        if self.audit_service:
            self.audit_service.log_stock_movement(
                user or 'sistema', product.id, product.name, delta, reason, product.current_stock
            )

    # =========================================================================
    # PRIMITIVAS DEL LIBRO (sin permisos)
    # =========================================================================

    def withdraw(self, product_id: str, quantity: int, user: str = None, reason: str = 'evento') -> Product:
        """
        Resta stock de forma atómica.

        Raises:
            NotFoundError: Si el producto no existe
            InsufficientStockError: Si quantity > stock actual (no se modifica nada)
        """
        quantity = parse_quantity(quantity)
        with self.state.lock:
            product = self._get_product(product_id)
            if quantity > product.current_stock:
                raise InsufficientStockError(product_id, quantity, product.current_stock)
            product.current_stock -= quantity
        self._persist(product)
        self._log_movement(user, product, -quantity, reason)
        return product

    def restore(self, product_id: str, quantity: int, user: str = None,
                reason: str = 'devolución') -> Optional[Product]:
        """
        Devuelve stock. Si el producto ya no existe no hace nada.

        Returns:
            Producto actualizado o None si no existe
        """
        quantity = parse_quantity(quantity)
        with self.state.lock:
            product = self.state.get_product(product_id)
            if product is None:
                return None
            product.current_stock += quantity
        self._persist(product)
        self._log_movement(user, product, quantity, reason)
        return product

    # =========================================================================
    # MOVIMIENTOS DE STOCK
    # =========================================================================

    def decrement_stock(self, actor: Member, product_id: str, quantity: int) -> Product:
        """Salida manual de stock."""
        self.permissions.require(actor, self.CAPABILITY)
        return self.withdraw(product_id, quantity, actor.id, reason='salida manual')

    def increment_stock(self, actor: Member, product_id: str, quantity: int) -> Product:
        """Reposición manual (sin límite superior)."""
        self.permissions.require(actor, self.CAPABILITY)
        self._get_product(product_id)
        return self.restore(product_id, quantity, actor.id, reason='reposición')

    def apply_audit(self, actor: Member, product_id: str, counted_quantity: int) -> int:
        """
        Recuento físico: fija el stock al valor contado.

        Args:
            actor: Socia que hace el recuento
            product_id: Producto contado
            counted_quantity: Unidades contadas (>= 0)

        Returns:
            Diferencia con signo (contado - anterior)
        """
        self.permissions.require(actor, self.CAPABILITY)
        counted = parse_quantity(counted_quantity, allow_zero=True)
        with self.state.lock:
            product = self._get_product(product_id)
            variance = counted - product.current_stock
            product.current_stock = counted
            product.last_audit_date = today_iso()
        self._persist(product)
        self._log_movement(actor.id, product, variance, 'recuento')

        if variance != 0:
            self.transactions.record(
                f"Ajuste de inventario: {product.name} ({variance:+d})",
                variance * product.cost_price,
                TransactionCategory.OTROS,
                payment_method=PaymentMethod.NA,
                user=actor.id,
            )
        return variance

    def apply_shrinkage(self, actor: Member, product_id: str, quantity: int,
                        reason: str = '') -> Tuple[Product, Transaction]:
        """
        Registra una merma (rotura, caducidad...). El stock baja sin pasar de
        cero y se anota el coste de las unidades perdidas.

        Returns:
            Tupla (producto, apunte de gasto)
        """
        self.permissions.require(actor, self.CAPABILITY)
        quantity = parse_quantity(quantity)
        with self.state.lock:
            product = self._get_product(product_id)
            previous = product.current_stock
            product.current_stock = max(0, previous - quantity)
        self._persist(product)
        reason_text = reason.strip() if reason else 'sin motivo'
        self._log_movement(actor.id, product, product.current_stock - previous, f"merma: {reason_text}")

        transaction = self.transactions.record(
            f"Merma: {product.name} x{quantity} ({reason_text})",
            -(quantity * product.cost_price),
            TransactionCategory.OTROS,
            payment_method=PaymentMethod.NA,
            user=actor.id,
        )
        return product, transaction

    def register_purchase(
        self,
        actor: Member,
        product_id: str,
        quantity: int,
        unit_cost: float = None,
        payment_method: Any = PaymentMethod.TRANSFERENCIA,
    ) -> Tuple[Product, Transaction]:
        """
        Compra a proveedor: repone stock y anota el gasto.

        Args:
            unit_cost: Precio pagado por unidad; si se indica pasa a ser el nuevo coste
        """
        self.permissions.require(actor, self.CAPABILITY)
        quantity = parse_quantity(quantity)
        method = parse_payment_method(payment_method, PaymentMethod.TRANSFERENCIA)
        if unit_cost is not None:
            try:
                unit_cost = money(unit_cost)
            except (TypeError, ValueError):
                raise ValidationError("El coste unitario debe ser numérico")
            if unit_cost < 0:
                raise ValidationError("El coste unitario no puede ser negativo")
        with self.state.lock:
            product = self._get_product(product_id)
            if unit_cost is not None:
                product.cost_price = unit_cost
            product.current_stock += quantity
        self._persist(product)
        self._log_movement(actor.id, product, quantity, 'compra')

        transaction = self.transactions.record(
            f"Compra: {product.name} x{quantity}",
            -(quantity * product.cost_price),
            TransactionCategory.COMPRA_INSUMOS,
            payment_method=method,
            user=actor.id,
        )
        return product, transaction

    # =========================================================================
    # PRODUCTOS
    # =========================================================================

    def list_products(self, include_inactive: bool = False) -> List[Product]:
        with self.state.lock:
            products = list(self.state.inventory)
        if not include_inactive:
            products = [p for p in products if p.is_active]
        return products

    def get_product(self, product_id: str) -> Optional[Product]:
        return self.state.get_product(product_id)

    def low_stock_products(self) -> List[Product]:
        """Productos activos en o por debajo del mínimo, los más urgentes primero."""
        critical = [p for p in self.list_products() if p.is_critical]
        return sorted(critical, key=lambda p: (p.current_stock > p.emergency_stock, p.name))

    def save_product(self, actor: Member, data: Dict[str, Any]) -> Product:
        """
        Alta o edición completa de un producto.

        Args:
            data: Campos en formato persistido (name, category, salePrice...)
                  Si trae un id existente se edita; si no, se crea.
        """
        self.permissions.require(actor, self.CAPABILITY)
        name = (data.get('name') or '').strip()
        if not name:
            raise ValidationError("El nombre del producto es obligatorio")
        category = data.get('category') or ProductCategory.OTROS.value
        if category not in {c.value for c in ProductCategory}:
            raise ValidationError(f"Categoría no válida: {category}")
        for key in ('costPrice', 'salePrice'):
            try:
                if money(data.get(key)) < 0:
                    raise ValidationError("Los precios no pueden ser negativos")
            except (TypeError, ValueError):
                raise ValidationError("Los precios deben ser numéricos")
        for key in ('currentStock', 'minStock', 'emergencyStock'):
            parse_quantity(data.get(key) or 0, allow_zero=True)

        payload = dict(data)
        payload['name'] = name
        payload['category'] = category
        with self.state.lock:
            existing = self.state.get_product(payload.get('id')) if payload.get('id') else None
            if existing is None:
                payload['id'] = payload.get('id') or new_id('PROD')
                product = Product.from_dict(payload)
                self.state.inventory.append(product)
            else:
                payload.setdefault('lastAuditDate', existing.last_audit_date)
                product = Product.from_dict(payload)
                index = self.state.inventory.index(existing)
                self.state.inventory[index] = product
        self._persist(product)
        if self.audit_service:
            self.audit_service.log_product_saved(actor.id, product.id, product.name, existing is None)
        return product

    def deactivate_product(self, actor: Member, product_id: str) -> Product:
        """Baja lógica: deja de ofrecerse en consumos pero conserva el historial."""
        self.permissions.require(actor, self.CAPABILITY)
        with self.state.lock:
            product = self._get_product(product_id)
            product.is_active = False
        self._persist(product)
        if self.audit_service:
            self.audit_service.log_product_deleted(actor.id, product.id, product.name, soft=True)
        return product

    def delete_product(self, actor: Member, product_id: str) -> Product:
        """
        Elimina el producto. Las líneas de consumo que lo referencian se
        conservan; al retirarlas ya no devolverán stock.
        """
        self.permissions.require(actor, self.CAPABILITY)
        with self.state.lock:
            product = self._get_product(product_id)
            self.state.inventory.remove(product)
        if self.mirror:
            self.mirror.remove('inventory', product_id)
        if self.audit_service:
            self.audit_service.log_product_deleted(actor.id, product.id, product.name)
        return product
