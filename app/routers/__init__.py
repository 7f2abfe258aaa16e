# app/routers/__init__.py

from .tickets.ticket_router import router as ticket_router

from .products.product_router import router as product_router

from .pricing.pricing_router import router as pricing_router

from .admin.migration_router import router as migration_router


__all__ = [
"ticket_router",

"product_router",

"pricing_router",

"migration_router",

]
