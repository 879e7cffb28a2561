"""
Typed Exception Hierarchy for the Stock Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (the HTTP layer, batch jobs, tests) must react to stock errors by
TYPE, never by parsing messages.  Every exception here carries:

  1. A ``code`` class attribute (machine-readable, API-safe)
  2. Structured attributes (product_id, requested, available, ...)
  3. A human-readable message built from those attributes

Example:

    try:
        stock_service.remove_stock(owner_id, product_id, quantity=5)
    except InsufficientStockError as e:
        api_response(code=e.code, requested=e.requested, available=e.available)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    StockKernelError (base)
    |
    +-- NotFoundError
    |   +-- ProductNotFoundError
    |   +-- InventoryNotFoundError
    |   +-- InventoryEntryNotFoundError
    |   +-- CategoryNotFoundError
    |   +-- SupplierNotFoundError
    |   +-- InsightNotFoundError
    |
    +-- InsufficientStockError
    |   +-- InsufficientReservationError
    |
    +-- ValidationError
    |   +-- StockThresholdError
    |
    +-- ConflictError
    |   +-- DuplicateSkuError
    |   +-- DuplicateNameError
    |   +-- EntityReferencedError
    |
    +-- InsightStateError
    |
    +-- ConcurrencyError
    |   +-- OptimisticLockError
    |
    +-- ImmutabilityError
    |   +-- ImmutabilityViolationError
    |
    +-- StockMutationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category      | Code                       | When Raised
--------------|----------------------------|------------------------------------
Not found     | NOT_FOUND                  | Generic missing entity
              | PRODUCT_NOT_FOUND          | Product id unknown for the owner
              | INVENTORY_NOT_FOUND        | Owner has no inventory aggregate
              | INVENTORY_ENTRY_NOT_FOUND  | Product not held in the aggregate
              | CATEGORY_NOT_FOUND         | Referenced category missing
              | SUPPLIER_NOT_FOUND         | Referenced supplier missing
              | INSIGHT_NOT_FOUND          | Insight id unknown for the owner
--------------|----------------------------|------------------------------------
Stock         | INSUFFICIENT_STOCK         | Requested > available quantity
              | INSUFFICIENT_RESERVATION   | Release > reserved quantity
--------------|----------------------------|------------------------------------
Validation    | VALIDATION_ERROR           | Malformed argument
              | INVALID_STOCK_THRESHOLDS   | min_stock > max_stock
--------------|----------------------------|------------------------------------
Conflict      | CONFLICT                   | Generic uniqueness conflict
              | DUPLICATE_SKU              | SKU already used by the owner
              | DUPLICATE_NAME             | Category/supplier name or code taken
              | ENTITY_REFERENCED          | Delete blocked by references
--------------|----------------------------|------------------------------------
Insight       | INVALID_INSIGHT_TRANSITION | Insight is no longer active
--------------|----------------------------|------------------------------------
Concurrency   | OPTIMISTIC_LOCK_CONFLICT   | Row changed by another transaction
--------------|----------------------------|------------------------------------
Immutability  | IMMUTABILITY_VIOLATION     | Update/delete of a ledger row
--------------|----------------------------|------------------------------------
Mutation      | PARTIAL_STOCK_MUTATION     | Failure after partial application

===============================================================================
"""


class StockKernelError(Exception):
    """
    Base exception for all stock kernel errors.

    All subclasses define a ``code`` class attribute.
    """

    code: str = "STOCK_KERNEL_ERROR"


# Not-found exceptions


class NotFoundError(StockKernelError):
    """A referenced entity does not exist (or is not visible to the owner)."""

    code: str = "NOT_FOUND"
    entity_type: str = "Entity"

    def __init__(self, entity_id: str, entity_type: str | None = None):
        if entity_type is not None:
            self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{self.entity_type} not found: {entity_id}")


class ProductNotFoundError(NotFoundError):
    code: str = "PRODUCT_NOT_FOUND"
    entity_type: str = "Product"


class InventoryNotFoundError(NotFoundError):
    code: str = "INVENTORY_NOT_FOUND"
    entity_type: str = "Inventory"


class InventoryEntryNotFoundError(NotFoundError):
    """The product exists but is not held in the owner's inventory."""

    code: str = "INVENTORY_ENTRY_NOT_FOUND"
    entity_type: str = "InventoryEntry"


class CategoryNotFoundError(NotFoundError):
    code: str = "CATEGORY_NOT_FOUND"
    entity_type: str = "Category"


class SupplierNotFoundError(NotFoundError):
    code: str = "SUPPLIER_NOT_FOUND"
    entity_type: str = "Supplier"


class InsightNotFoundError(NotFoundError):
    code: str = "INSIGHT_NOT_FOUND"
    entity_type: str = "Insight"


# Stock exceptions


class InsufficientStockError(StockKernelError):
    """Requested quantity exceeds the available quantity."""

    code: str = "INSUFFICIENT_STOCK"

    def __init__(self, product_id: str, requested: int, available: int):
        self.product_id = product_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient stock for product {product_id}: "
            f"requested {requested}, available {available}"
        )


class InsufficientReservationError(InsufficientStockError):
    """Attempted to release more than is currently reserved."""

    code: str = "INSUFFICIENT_RESERVATION"


# Validation exceptions


class ValidationError(StockKernelError):
    """Malformed input supplied to a core operation."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")


class StockThresholdError(ValidationError):
    """min_stock is greater than max_stock."""

    code: str = "INVALID_STOCK_THRESHOLDS"

    def __init__(self, min_stock: int, max_stock: int):
        self.min_stock = min_stock
        self.max_stock = max_stock
        super().__init__(
            "min_stock",
            f"min_stock ({min_stock}) must not exceed max_stock ({max_stock})",
        )


# Conflict exceptions


class ConflictError(StockKernelError):
    """A uniqueness or referential rule would be broken."""

    code: str = "CONFLICT"

    def __init__(self, entity_type: str, field: str, value: str):
        self.entity_type = entity_type
        self.field = field
        self.value = value
        super().__init__(f"{entity_type} with {field}={value!r} already exists")


class DuplicateSkuError(ConflictError):
    code: str = "DUPLICATE_SKU"

    def __init__(self, sku: str):
        super().__init__("Product", "sku", sku)


class DuplicateNameError(ConflictError):
    code: str = "DUPLICATE_NAME"


class EntityReferencedError(ConflictError):
    """Deletion blocked because other records still reference the entity."""

    code: str = "ENTITY_REFERENCED"

    def __init__(self, entity_type: str, entity_id: str, referenced_by: str, count: int):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.referenced_by = referenced_by
        self.count = count
        StockKernelError.__init__(
            self,
            f"Cannot delete {entity_type} {entity_id}: "
            f"referenced by {count} {referenced_by}",
        )


# Insight lifecycle


class InsightStateError(StockKernelError):
    """Insight transitions are only allowed out of the active state."""

    code: str = "INVALID_INSIGHT_TRANSITION"

    def __init__(self, insight_id: str, current_status: str, requested_status: str):
        self.insight_id = insight_id
        self.current_status = current_status
        self.requested_status = requested_status
        super().__init__(
            f"Insight {insight_id} cannot move from {current_status} "
            f"to {requested_status}"
        )


# Concurrency


class ConcurrencyError(StockKernelError):
    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified by another transaction"
        )


# Immutability


class ImmutabilityError(StockKernelError):
    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempted to modify or delete an append-only ledger record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


# Partial failure


class StockMutationError(StockKernelError):
    """
    A stock mutation failed after some of its steps were applied.

    The caller's transaction must be rolled back; if the storage engine
    already made part of it durable, the record needs manual reconciliation.
    """

    code: str = "PARTIAL_STOCK_MUTATION"

    def __init__(self, product_id: str, step: str, cause: Exception):
        self.product_id = product_id
        self.step = step
        self.cause = cause
        super().__init__(
            f"Stock mutation for product {product_id} failed at step "
            f"'{step}': {cause}"
        )
