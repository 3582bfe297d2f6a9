"""Erreurs du hub d'état (ingestion, registre d'observateurs, diffusion)."""


class HubError(Exception):
    """Base de toutes les erreurs du hub."""


class IngestError(HubError):
    # message renvoyé tel quel au producteur dans {"ok": false, "error": ...}
    message: str = "bad request"

    def __init__(self, detail: str = "") -> None:
        super().__init__(detail or self.message)
        self.detail = detail


class BadRequestBody(IngestError):
    message = "bad body"


class InvalidPayloadEncoding(IngestError):
    message = "invalid json"


class CapacityExceeded(HubError):
    def __init__(self, capacity: int) -> None:
        super().__init__(f"observer registry full ({capacity})")
        self.capacity = capacity


class DeliveryFailure(HubError):
    pass
