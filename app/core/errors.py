"""
Domain errors.

Raised by core + services, mapped to JSON responses in app.main.
Each carries the HTTP status it surfaces as and optional extra fields
for the response body.
"""


class AffiliateError(Exception):
    status_code: int = 400

    def __init__(self, detail: str, **extra):
        super().__init__(detail)
        self.detail = detail
        self.extra = extra


class NotFound(AffiliateError):
    status_code = 404

    def __init__(self, entity: str, entity_id):
        super().__init__(f"{entity} not found", entity=entity, id=str(entity_id))
        self.entity = entity
        self.entity_id = entity_id


class InvalidAmount(AffiliateError):
    status_code = 400

    def __init__(self, amount):
        super().__init__(f"Invalid sale amount: {amount!r}")
        self.amount = amount


class DeletionConflict(AffiliateError):
    status_code = 409

    def __init__(self, links_count: int):
        super().__init__(
            "Cannot delete campaign with existing links. Set status to cancelled instead.",
            links_count=links_count,
        )
        self.links_count = links_count


class InvalidTransition(AffiliateError):
    status_code = 409

    def __init__(self, kind: str, current: str, target: str):
        super().__init__(f"Cannot move {kind} from {current} to {target}")
        self.current = current
        self.target = target


class DuplicateConversion(AffiliateError):
    status_code = 409

    def __init__(self, order_id: str, conversion_id):
        super().__init__(
            "Duplicate conversion",
            order_id=order_id,
            conversion_id=str(conversion_id) if conversion_id is not None else None,
        )
        self.conversion_id = conversion_id


class MissingOrderId(AffiliateError):
    status_code = 422

    def __init__(self):
        super().__init__("order_id is required for conversion ingestion")
