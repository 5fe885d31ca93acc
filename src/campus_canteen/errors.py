"""
Error taxonomy shared by the catalog and order layers.

CRUD functions raise these; the API renders them as
{"detail": ..., "kind": ...} with the class status code.
"""


class CanteenError(Exception):
    kind = "Error"
    status_code = 400

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.kind
        super().__init__(self.detail)


class InvalidInput(CanteenError):
    kind = "InvalidInput"
    status_code = 400


class ItemNotFound(CanteenError):
    kind = "ItemNotFound"
    status_code = 404


class Unauthorized(CanteenError):
    kind = "Unauthorized"
    status_code = 401


class Forbidden(CanteenError):
    kind = "Forbidden"
    status_code = 403


class InvalidStatus(CanteenError):
    kind = "InvalidStatus"
    status_code = 400


class InvalidTransition(CanteenError):
    kind = "InvalidTransition"
    status_code = 409


class NotFound(CanteenError):
    kind = "NotFound"
    status_code = 404


class Unavailable(CanteenError):
    kind = "Unavailable"
    status_code = 409


ERRORS_BY_KIND = {
    cls.kind: cls
    for cls in (
        InvalidInput,
        ItemNotFound,
        Unauthorized,
        Forbidden,
        InvalidStatus,
        InvalidTransition,
        NotFound,
        Unavailable,
    )
}
