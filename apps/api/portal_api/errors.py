from __future__ import annotations


class ProjectPersistenceError(RuntimeError):
    """
    Raised for every failure while persisting portal data to the backend store.

    `kind` is one of `configuration`, `validation`, `not_found`, `backend`; the router layer maps it
    to an HTTP status. `status_code` carries the backend HTTP status when the store rejected a request.
    """

    def __init__(self, message: str, *, kind: str = "backend", status_code: int | None = None) -> None:
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code
