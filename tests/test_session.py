import asyncio
import base64

import pytest

from conftest import FakeHttp, make_response, success_payload
from liverseg.client.outcome import ErrorKind, Failure, Success
from liverseg.client.session import SegmentationSession, SessionState
from liverseg.client.submitter import Modality, SelectedFile


class RecordingSink:
    def __init__(self):
        self.artifacts = []

    def __call__(self, artifact):
        self.artifacts.append(artifact)


@pytest.fixture
def make_session(make_submitter):
    def _make(http: FakeHttp) -> SegmentationSession:
        return SegmentationSession(make_submitter(http))

    return _make


def test_starts_idle_and_rejects_report_reveal(make_session):
    session = make_session(FakeHttp())
    assert session.state is SessionState.IDLE
    assert session.reveal_report() is False
    assert session.report_revealed is False


def test_successful_submission(make_session, volume_file):
    payload = success_payload()
    payload["statistics"] = {**payload["statistics"], "liver_percentage": None}
    session = make_session(FakeHttp([make_response(200, payload)]))
    session.select_file(volume_file)
    outcome = asyncio.run(session.submit(Modality.T1))
    assert isinstance(outcome, Success)
    assert session.state is SessionState.SUCCEEDED
    assert session.outcome is outcome
    assert session.success.statistics.liver_percentage == pytest.approx(2.5)


def test_report_reveal_is_reset_by_new_selection(make_session, volume_file):
    session = make_session(FakeHttp([make_response(200, success_payload())]))
    session.select_file(volume_file)
    asyncio.run(session.submit("T1"))
    assert session.reveal_report() is True
    assert session.report_revealed is True

    session.select_file(SelectedFile(name="other.nii", content=b"other"))
    assert session.state is SessionState.IDLE
    assert session.outcome is None
    assert session.report_revealed is False


def test_failed_submission(make_session, volume_file):
    session = make_session(FakeHttp([make_response(200, {"success": False, "error": "Model not loaded"})]))
    session.select_file(volume_file)
    asyncio.run(session.submit("T2"))
    assert session.state is SessionState.FAILED
    assert session.failure.message == "Model not loaded"
    assert session.reveal_report() is False
    assert session.request_download(RecordingSink()) is False


def test_submit_without_file_fails_without_network(make_session):
    http = FakeHttp()
    session = make_session(http)
    outcome = asyncio.run(session.submit("T1"))
    assert outcome == Failure(message="no file selected", kind=ErrorKind.VALIDATION)
    assert session.state is SessionState.FAILED
    assert http.calls == []


def test_retry_after_failure(make_session, volume_file):
    http = FakeHttp([make_response(500, "Internal Server Error", "text/html"), make_response(200, success_payload())])
    session = make_session(http)
    session.select_file(volume_file)
    asyncio.run(session.submit("T1"))
    assert session.state is SessionState.FAILED
    asyncio.run(session.submit("T1"))
    assert session.state is SessionState.SUCCEEDED
    assert len(http.calls) == 2


def test_download_offers_artifact_without_changing_state(make_session, volume_file):
    artifact = b"\x1f\x8b\x08mask"
    payload = success_payload(segmentation_file=base64.b64encode(artifact).decode())
    session = make_session(FakeHttp([make_response(200, payload)]))
    session.select_file(volume_file)
    asyncio.run(session.submit("T1"))
    sink = RecordingSink()
    assert session.request_download(sink) is True
    assert session.state is SessionState.SUCCEEDED
    assert len(sink.artifacts) == 1
    assert sink.artifacts[0].data == artifact
    assert sink.artifacts[0].filename == "liver_segmentation.nii.gz"
    assert sink.artifacts[0].mime_type == "application/octet-stream"


def test_download_requires_artifact(make_session, volume_file):
    payload = success_payload()
    del payload["segmentation_file"]
    session = make_session(FakeHttp([make_response(200, payload)]))
    session.select_file(volume_file)
    asyncio.run(session.submit("T1"))
    sink = RecordingSink()
    assert session.request_download(sink) is False
    assert sink.artifacts == []


def test_download_decode_error_is_recovered(make_session, volume_file):
    session = make_session(FakeHttp([make_response(200, success_payload(segmentation_file="%%%not-base64"))]))
    session.select_file(volume_file)
    asyncio.run(session.submit("T1"))
    sink = RecordingSink()
    assert session.request_download(sink) is False
    assert session.download_failure.kind is ErrorKind.DECODE
    assert session.state is SessionState.SUCCEEDED
    assert sink.artifacts == []


def test_download_rejected_while_idle(make_session):
    sink = RecordingSink()
    assert make_session(FakeHttp()).request_download(sink) is False
    assert sink.artifacts == []


def test_late_outcome_for_superseded_selection_is_discarded(make_session, volume_file):
    http = FakeHttp([make_response(200, success_payload()), make_response(200, success_payload())], gated=True)
    session = make_session(http)
    session.select_file(volume_file)
    newer = SelectedFile(name="newer.nii.gz", content=b"newer")

    async def scenario():
        task = asyncio.create_task(session.submit("T1"))
        assert await asyncio.to_thread(http.started.wait, 5)
        assert session.state is SessionState.SUBMITTING
        assert session.busy

        session.select_file(newer)
        assert session.state is SessionState.IDLE
        # a prior request is still in flight
        assert await session.submit("T1") is None

        http.release.set()
        return await task

    late = asyncio.run(scenario())
    assert isinstance(late, Success)
    assert session.state is SessionState.IDLE
    assert session.outcome is None
    assert session.selected_file is newer
    assert len(http.calls) == 1

    asyncio.run(session.submit("T1"))
    assert session.state is SessionState.SUCCEEDED
    assert http.calls[1][2]["files"]["file"][0] == "newer.nii.gz"


def test_duplicate_submit_is_rejected_while_in_flight(make_session, volume_file):
    http = FakeHttp([make_response(200, success_payload())], gated=True)
    session = make_session(http)
    session.select_file(volume_file)

    async def scenario():
        first = asyncio.create_task(session.submit("T1"))
        await asyncio.to_thread(http.started.wait, 5)
        second = await session.submit("T1")
        http.release.set()
        return await first, second

    first, second = asyncio.run(scenario())
    assert isinstance(first, Success)
    assert second is None
    assert len(http.calls) == 1
    assert session.state is SessionState.SUCCEEDED
