"""
Cliente del servicio remoto de segmentación hepática.

Los módulos de este paquete construyen la petición multipart, clasifican la
respuesta del servicio (incluidas páginas de error no JSON), decodifican la
máscara devuelta en base64 y mantienen el estado de la sesión del usuario.
"""

from liverseg.client.errors import (
    ApplicationError,
    ClientError,
    DecodeError,
    ProtocolError,
    TransportError,
    ValidationError,
)
from liverseg.client.outcome import ErrorKind, Failure, SegmentationOutcome, Success
from liverseg.client.session import SegmentationSession, SessionState
from liverseg.client.settings import ClientSettings
from liverseg.client.submitter import Modality, RequestSubmitter, SelectedFile, UploadRequest

__all__ = [
    "ApplicationError",
    "ClientError",
    "ClientSettings",
    "DecodeError",
    "ErrorKind",
    "Failure",
    "Modality",
    "ProtocolError",
    "RequestSubmitter",
    "SegmentationOutcome",
    "SegmentationSession",
    "SelectedFile",
    "SessionState",
    "Success",
    "TransportError",
    "UploadRequest",
    "ValidationError",
]
