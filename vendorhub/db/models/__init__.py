"""
ORM models for the vendor platform: tenancy, customers and leads, finance,
inventory and promotions.

Importing this package ensures model classes are registered with the Base
metadata for Alembic and runtime usage.
"""

from .tenancy import (  # noqa: F401
    Vendor,
    Category,
)
from .customers import (  # noqa: F401
    Customer,
    Lead,
)
from .finance import (  # noqa: F401
    Supplier,
    SupplierPayment,
    LedgerTransaction,
    Expense,
)
from .inventory import (  # noqa: F401
    Product,
    StockMovement,
)
from .promotions import (  # noqa: F401
    Coupon,
    CouponUsage,
)
