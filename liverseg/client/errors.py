from typing import Optional

from liverseg.client.outcome import ErrorKind, Failure


class ClientError(Exception):
    """Error base del cliente; cada subclase se traduce a un `Failure` de su tipo."""

    kind = ErrorKind.APPLICATION

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    def to_failure(self) -> Failure:
        return Failure(message=self.message, kind=self.kind, status_code=self.status_code)


class ValidationError(ClientError):
    """La petición no se puede enviar (sin archivo, modalidad inválida, ...)."""

    kind = ErrorKind.VALIDATION


class TransportError(ClientError):
    """Fallo de red: servicio inalcanzable, timeout o conexión abortada."""

    kind = ErrorKind.TRANSPORT


class ProtocolError(ClientError):
    """Respuesta no JSON, JSON malformado o sin los campos obligatorios."""

    kind = ErrorKind.PROTOCOL


class ApplicationError(ClientError):
    """Respuesta bien formada que informa de un fallo (o estado HTTP de error)."""

    kind = ErrorKind.APPLICATION


class DecodeError(ClientError):
    """El artefacto devuelto no es base64 válido."""

    kind = ErrorKind.DECODE
