import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple

import requests
from pydantic import ValidationError as SchemaValidationError

from liverseg.client.classifier import ResponseClassifier
from liverseg.client.diagnostics import truncate
from liverseg.client.errors import ApplicationError, ProtocolError, TransportError, ValidationError
from liverseg.client.outcome import SegmentationOutcome
from liverseg.client.schemas import HealthStatus
from liverseg.client.settings import ClientSettings

logger = logging.getLogger("liverseg.client.submitter")

NO_FILE_MESSAGE = "no file selected"


class Modality(str, Enum):
    T1 = "T1"
    T2 = "T2"


@dataclass(frozen=True)
class SelectedFile:
    """Volumen elegido por el usuario, ya leído en memoria."""

    name: str
    content: bytes
    content_type: str = "application/octet-stream"

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass(frozen=True)
class UploadRequest:
    file: Optional[SelectedFile]
    modality: Modality = Modality.T1
    slice_idx: Optional[int] = None


class RequestSubmitter:
    """
    Envía volúmenes NIfTI a `POST /segment` y delega la interpretación de la
    respuesta en `ResponseClassifier`.

    No reintenta: un arranque en frío del modelo llega al usuario como mensaje
    para que vuelva a intentarlo.
    """

    def __init__(
        self,
        settings: Optional[ClientSettings] = None,
        http: Optional[requests.Session] = None,
        classifier: Optional[ResponseClassifier] = None,
    ):
        self.settings = settings or ClientSettings()
        self.http = http or requests.Session()
        self.classifier = classifier or ResponseClassifier(
            max_message_length=self.settings.max_message_length,
            snippet_length=self.settings.snippet_length,
        )

    async def submit(self, request: UploadRequest) -> SegmentationOutcome:
        """
        Ejecuta una segmentación. Nunca lanza: todo fallo llega como `Failure`.

        Las validaciones locales devuelven antes del primer `await`, así que no
        hay suspensión ni tráfico de red cuando la petición es inválida.
        """
        try:
            files, data = self.build_multipart(request)
        except ValidationError as exc:
            logger.info("Petición rechazada antes de enviar: %s", exc.message)
            return exc.to_failure()

        url = self.settings.segment_url
        logger.info(
            "Enviando %s (%d bytes, modalidad %s, slice %s) a %s",
            request.file.name, request.file.size, data["modality"], data.get("slice_idx", "-"), url,
        )
        try:
            response = await asyncio.to_thread(
                self.http.post, url, files=files, data=data, timeout=self.settings.request_timeout
            )
        except requests.RequestException as exc:
            logger.warning("Fallo de transporte contra %s: %s", url, exc)
            return TransportError(self._transport_message(exc)).to_failure()
        return self.classifier.classify(response)

    def build_multipart(self, request: UploadRequest) -> Tuple[Dict[str, tuple], Dict[str, str]]:
        """Arma los campos multipart; `slice_idx` solo se incluye si se indicó explícitamente."""
        selected = request.file
        if selected is None:
            raise ValidationError(NO_FILE_MESSAGE)
        self._ensure_nifti(selected.name)

        try:
            modality = Modality(getattr(request.modality, "value", request.modality))
        except ValueError as exc:
            raise ValidationError(f"Unsupported modality {request.modality!r}. Use T1 or T2.") from exc

        data = {"modality": modality.value}
        if request.slice_idx is not None:
            if isinstance(request.slice_idx, bool) or not isinstance(request.slice_idx, int) or request.slice_idx < 0:
                raise ValidationError("Slice index must be a non-negative integer.")
            data["slice_idx"] = str(request.slice_idx)

        files = {"file": (selected.name, selected.content, selected.content_type or "application/octet-stream")}
        return files, data

    def health(self) -> HealthStatus:
        """Consulta `GET /health`. A diferencia de `submit`, lanza `ClientError`."""
        url = self.settings.health_url
        try:
            response = self.http.get(url, timeout=self.settings.request_timeout)
        except requests.RequestException as exc:
            raise TransportError(self._transport_message(exc)) from exc
        if not response.ok:
            raise ApplicationError(f"HTTP error! status: {response.status_code}", status_code=response.status_code)
        try:
            return HealthStatus.model_validate(response.json())
        except (ValueError, SchemaValidationError) as exc:
            raise ProtocolError("health endpoint returned malformed data", status_code=response.status_code) from exc

    def _ensure_nifti(self, filename: str) -> None:
        allowed = tuple(ext.lower() for ext in self.settings.allowed_extensions)
        if not filename or not filename.lower().endswith(allowed):
            raise ValidationError(f"Unsupported file type. Use NIfTI files ({', '.join(allowed)}).")

    def _transport_message(self, exc: requests.RequestException) -> str:
        if isinstance(exc, requests.Timeout):
            message = f"The request to the segmentation service timed out ({exc}). Please try again."
        elif isinstance(exc, requests.ConnectionError):
            message = f"Could not reach the segmentation service: {exc}"
        else:
            message = str(exc) or exc.__class__.__name__
        return truncate(message, self.settings.max_message_length)
