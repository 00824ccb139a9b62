"""
Reglas heurísticas para diagnosticar cuerpos de error no JSON.

El servicio remoto devuelve páginas HTML del framework o del gateway cuando el
modelo aún se está cargando o la petición no llega al endpoint correcto. Cada
regla asocia un patrón de texto (y, opcionalmente, códigos HTTP) con un mensaje
legible; la primera regla que coincide gana.
"""

import re
from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, Optional, Pattern, Sequence


@dataclass(frozen=True)
class DiagnosticRule:
    pattern: Pattern[str]
    message: str
    statuses: FrozenSet[int] = field(default_factory=frozenset)

    def matches(self, status_code: Optional[int], body: str) -> bool:
        if status_code is not None and status_code in self.statuses:
            return True
        return bool(self.pattern.search(body))


def rule(
    pattern: str, message: str, statuses: Iterable[int] = (), flags: int = re.IGNORECASE
) -> DiagnosticRule:
    return DiagnosticRule(re.compile(pattern, flags), message, frozenset(statuses))


INTERNAL_ERROR_MESSAGE = (
    "Internal server error. The model may be loading or there was an error "
    "processing your file. Please try again in a moment."
)
UNAVAILABLE_MESSAGE = (
    "The segmentation service is temporarily unavailable (it may be starting up). "
    "Please try again in a moment."
)
METHOD_NOT_ALLOWED_MESSAGE = "Method not allowed. Please check the API endpoint."
TRACEBACK_MESSAGE = (
    "The server hit an error while processing your file. Please try again in a moment."
)

DEFAULT_RULES: Sequence[DiagnosticRule] = (
    rule(r"internal server error|\b500\b", INTERNAL_ERROR_MESSAGE, statuses=[500]),
    rule(
        r"bad gateway|service unavailable|gateway time-?out|\b50[234]\b",
        UNAVAILABLE_MESSAGE,
        statuses=[502, 503, 504],
    ),
    rule(
        r'Traceback \(most recent call last\)|File "[^"]+", line \d+|^\w+(Error|Exception):',
        TRACEBACK_MESSAGE,
        flags=re.MULTILINE,
    ),
    rule(r"method not allowed|\b405\b", METHOD_NOT_ALLOWED_MESSAGE, statuses=[405]),
)


def diagnose(
    body: str, status_code: Optional[int] = None, rules: Sequence[DiagnosticRule] = DEFAULT_RULES
) -> Optional[str]:
    """Devuelve el mensaje de la primera regla que coincide, o None."""
    for candidate in rules:
        if candidate.matches(status_code, body):
            return candidate.message
    return None


# Una etiqueta sin cerrar se corta hasta el final del texto.
_TAG_RE = re.compile(r"<[^>]*(?:>|$)")
_ANGLE_RE = re.compile(r"[<>]")
_SCRIPT_RE = re.compile(r"<(script|style)\b.*?</\1\s*>", re.IGNORECASE | re.DOTALL)
_SPACE_RE = re.compile(r"\s+")


def strip_markup(text: str) -> str:
    """Quita etiquetas HTML y colapsa espacios."""
    text = _SCRIPT_RE.sub(" ", text)
    text = _TAG_RE.sub(" ", text)
    text = _ANGLE_RE.sub(" ", text)
    return _SPACE_RE.sub(" ", text).strip()


def truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: max(limit - 3, 0)].rstrip() + "..."
