import base64
import json
import threading
from typing import Any, List, Optional, Union

import pytest
import requests

from liverseg.client.settings import ClientSettings
from liverseg.client.submitter import RequestSubmitter, SelectedFile

BASE_URL = "http://segmenter.test/api"


def make_response(
    status: int = 200,
    body: Union[bytes, str, dict, list] = b"",
    content_type: Optional[str] = "application/json",
) -> requests.Response:
    if isinstance(body, (dict, list)):
        body = json.dumps(body)
    if isinstance(body, str):
        body = body.encode("utf-8")
    resp = requests.Response()
    resp.status_code = status
    resp._content = body
    resp.encoding = "utf-8"
    resp.url = f"{BASE_URL}/segment"
    if content_type is not None:
        resp.headers["Content-Type"] = content_type
    return resp


class FakeHttp:
    """Sustituto de `requests.Session` que registra llamadas y devuelve respuestas en cola."""

    def __init__(self, responses: Optional[List[Any]] = None, gated: bool = False):
        self.responses = list(responses or [])
        self.calls: List[tuple] = []
        self.started = threading.Event()
        self.release = threading.Event()
        if not gated:
            self.release.set()

    def _next(self):
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def post(self, url, **kwargs):
        self.calls.append(("POST", url, kwargs))
        self.started.set()
        self.release.wait(5)
        return self._next()

    def get(self, url, **kwargs):
        self.calls.append(("GET", url, kwargs))
        return self._next()


def success_payload(**overrides) -> dict:
    payload = {
        "success": True,
        "overlay_image": "data:image/png;base64," + base64.b64encode(b"\x89PNG fake").decode(),
        "segmentation_file": base64.b64encode(b"\x1f\x8b mask bytes").decode(),
        "statistics": {
            "volume_shape": [256, 256, 80],
            "liver_voxels": 50000,
            "total_voxels": 2000000,
            "liver_percentage": 2.5,
            "slice_index": 40,
            "total_slices": 80,
            "modality": "T1",
            "liver_volume_ml": 1520.4,
        },
        "medical_report": {
            "patient_id": "ANON-001",
            "study_date": "2026-10-19",
            "modality": "T1",
            "findings": ["Liver segmented successfully."],
            "measurements": {
                "liver_volume_ml": 1520.4,
                "liver_percentage": 2.5,
                "volume_shape": [256, 256, 80],
                "morphology": {
                    "connected_components": 1,
                    "largest_component_ratio": 1.0,
                    "fragmentation": "none",
                },
            },
            "impression": "Normal liver volume.",
            "recommendations": [],
            "severity": "normal",
            "disclaimer": "Not for diagnostic use.",
        },
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def settings() -> ClientSettings:
    return ClientSettings(api_base_url=BASE_URL)


@pytest.fixture
def volume_file() -> SelectedFile:
    return SelectedFile(name="case_01.nii.gz", content=b"\x1f\x8bvolume-bytes")


@pytest.fixture
def make_submitter(settings):
    def _make(http: FakeHttp) -> RequestSubmitter:
        return RequestSubmitter(settings=settings, http=http)

    return _make
