class OrderNotFound(LookupError):
    def __init__(self, order_id):
        super().__init__(f"Order {order_id} not found")
        self.order_id = order_id


class ServiceTypeNotFound(LookupError):
    def __init__(self, service_type_id):
        super().__init__(f"Service type {service_type_id} not found")
        self.service_type_id = service_type_id


class Forbidden(PermissionError):
    pass


class InvalidStatus(ValueError):
    pass


class InvalidTransition(ValueError):
    pass


class OptimisticLockError(Exception):
    pass


class InvalidOrder(ValueError):
    pass
