from . import assignments, bills, health, orders, reference

ROUTERS = (
    health.router,
    reference.router,
    orders.router,
    assignments.router,
    bills.router,
)

__all__ = ["ROUTERS"]
