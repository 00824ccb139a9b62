import base64
import binascii
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Union

from liverseg.client.errors import DecodeError

logger = logging.getLogger("liverseg.client.codec")


@dataclass(frozen=True)
class Artifact:
    data: bytes
    filename: str
    mime_type: str

    @property
    def size(self) -> int:
        return len(self.data)


ArtifactSink = Callable[[Artifact], object]


def strip_data_uri_prefix(payload: str) -> str:
    """Quita el prefijo `data:<mime>;base64,` si está presente."""
    return payload.split(",", 1)[1] if "," in payload else payload


def decode_base64(payload: str) -> bytes:
    """Decodifica base64 de forma estricta; cualquier carácter inválido es un `DecodeError`."""
    if not isinstance(payload, str):
        raise DecodeError("Segmentation artifact is not a base64 string")
    text = "".join(strip_data_uri_prefix(payload).split())
    try:
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise DecodeError(f"Segmentation artifact is not valid base64: {exc}") from exc


def decode_data_uri(uri: str) -> bytes:
    """Bytes de una imagen embebida (`data:image/png;base64,...`), p. ej. el overlay."""
    return decode_base64(uri)


def decode_and_offer(payload: str, filename: str, mime_type: str, sink: ArtifactSink) -> Artifact:
    """
    Decodifica `payload` y lo entrega una única vez a `sink` para que el usuario lo guarde.

    Parámetros
    ----------
    payload : str
        Base64 devuelto por el servicio, con o sin prefijo de data URI.
    filename : str
        Nombre sugerido para el archivo guardado.
    mime_type : str
        Tipo MIME con el que se etiqueta el binario.
    sink : callable
        Recibe el `Artifact`; en la app es el botón de descarga, en scripts un
        `DirectorySink`.

    Retorna
    -------
    Artifact
        El artefacto entregado al sink.

    Errores
    -------
    DecodeError
        Si el payload no es base64 válido. No se invoca el sink.
    """
    artifact = Artifact(data=decode_base64(payload), filename=filename, mime_type=mime_type)
    logger.info("Ofreciendo %s (%d bytes, %s)", artifact.filename, artifact.size, artifact.mime_type)
    sink(artifact)
    return artifact


class DirectorySink:
    """Guarda artefactos en un directorio escribiendo primero a un temporal."""

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)
        self.last_path: Optional[Path] = None

    def __call__(self, artifact: Artifact) -> Path:
        self.directory.mkdir(parents=True, exist_ok=True)
        target = self.directory / Path(artifact.filename).name
        tmp = tempfile.NamedTemporaryFile(dir=self.directory, prefix=".partial-", delete=False)
        tmp_path = Path(tmp.name)
        try:
            with tmp:
                tmp.write(artifact.data)
                tmp.flush()
            os.replace(tmp_path, target)
        finally:
            tmp_path.unlink(missing_ok=True)
        self.last_path = target
        return target
