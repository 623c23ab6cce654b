class PontoError(Exception):
    """Base para os erros de regra de negócio do ponto."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(PontoError):
    pass


class NotFoundError(PontoError):
    pass


class OutsideWindowError(PontoError):
    """Ação fora do horário permitido para a categoria/turno."""


class PermissionDeniedError(PontoError):
    pass


class InvalidTransitionError(PontoError):
    """Solicitação já respondida."""
