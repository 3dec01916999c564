"""
Unit tests for the ingredient detector client.

requests.post is patched with pytest-mock; the deadline test talks to a
local server that sends its answer slowly.
"""

import json
import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest
import requests

from cookit.detection.detector import IngredientDetector
from cookit.detection.ingredient_map import IngredientMap
from cookit.errors import DetectionTimeoutError, ExternalServiceError, ValidationError

IMAGE = b"\xff\xd8\xff\xe0fake-jpeg"


@pytest.fixture
def detector():
    ingredient_map = IngredientMap({"egg": "egg", "egg_white": "egg", "rice": "rice", "onion": "onion"})
    return IngredientDetector("http://detector:8000/", ingredient_map, timeout=30)


@pytest.fixture
def mock_post(mocker):
    return mocker.patch("cookit.detection.detector.requests.post")


class SlowBodyHandler(BaseHTTPRequestHandler):
    """Answers with a valid detection payload, one byte at a time."""

    body = json.dumps({"success": True, "detections": [{"class_name": "egg", "confidence": 0.9}]}).encode()

    def do_POST(self):
        self.rfile.read(int(self.headers.get("Content-Length", 0)))
        self.send_response(200)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(self.body)))
        self.end_headers()
        try:
            for i in range(len(self.body)):
                self.wfile.write(self.body[i:i + 1])
                self.wfile.flush()
                time.sleep(0.05)
        except (BrokenPipeError, ConnectionResetError):
            pass

    def log_message(self, format, *args):
        pass


@pytest.fixture
def slow_detector_url():
    server = ThreadingHTTPServer(("127.0.0.1", 0), SlowBodyHandler)
    server.daemon_threads = True
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{server.server_address[1]}"
    server.shutdown()
    server.server_close()


def detector_payload(*class_names, success=True):
    return {
        "success": success,
        "detections": [{"class_name": name, "confidence": 0.9} for name in class_names],
    }


class TestDetect:
    """Test IngredientDetector.detect()."""

    def test_maps_and_dedups(self, detector, mock_post):
        mock_post.return_value.json.return_value = detector_payload("rice", "spoon", "egg", "egg_white", "rice")

        assert detector.detect(IMAGE) == ["rice", "egg"]

    def test_request_shape(self, detector, mock_post):
        """One multipart POST to /detect/ with the configured timeout."""
        mock_post.return_value.json.return_value = detector_payload("egg")

        detector.detect(IMAGE, filename="fridge.png", content_type="image/png")

        mock_post.assert_called_once()
        args, kwargs = mock_post.call_args
        assert args[0] == "http://detector:8000/detect/"
        assert kwargs["files"] == {"file": ("fridge.png", IMAGE, "image/png")}
        assert kwargs["timeout"] == 30

    def test_timeout(self, detector, mock_post):
        mock_post.side_effect = requests.Timeout("read timed out")

        with pytest.raises(DetectionTimeoutError):
            detector.detect(IMAGE)
        assert mock_post.call_count == 1

    def test_slow_body_hits_overall_deadline(self, slow_detector_url):
        """A body that trickles in byte by byte still ends at the deadline."""
        ingredient_map = IngredientMap({"egg": "Egg"})
        detector = IngredientDetector(slow_detector_url, ingredient_map, timeout=0.5)

        start = time.monotonic()
        with pytest.raises(DetectionTimeoutError):
            detector.detect(IMAGE)

        assert time.monotonic() - start < 2.0

    def test_connection_error(self, detector, mock_post):
        mock_post.side_effect = requests.ConnectionError("refused")

        with pytest.raises(ExternalServiceError) as exc_info:
            detector.detect(IMAGE)
        assert not isinstance(exc_info.value, DetectionTimeoutError)

    def test_http_error(self, detector, mock_post):
        mock_post.return_value.raise_for_status.side_effect = requests.HTTPError("500 Server Error")

        with pytest.raises(ExternalServiceError):
            detector.detect(IMAGE)

    def test_reported_failure(self, detector, mock_post):
        mock_post.return_value.json.return_value = detector_payload("egg", success=False)

        with pytest.raises(ExternalServiceError):
            detector.detect(IMAGE)

    def test_non_json_body(self, detector, mock_post):
        mock_post.return_value.json.side_effect = ValueError("Expecting value")

        with pytest.raises(ExternalServiceError):
            detector.detect(IMAGE)

    def test_nothing_recognised(self, detector, mock_post):
        mock_post.return_value.json.return_value = detector_payload("spoon", "plate")

        with pytest.raises(ValidationError):
            detector.detect(IMAGE)

    def test_empty_image_not_sent(self, detector, mock_post):
        with pytest.raises(ValidationError):
            detector.detect(b"")
        mock_post.assert_not_called()

    def test_detect_raw_keeps_confidence(self, detector, mock_post):
        mock_post.return_value.json.return_value = detector_payload("egg")

        detections = detector.detect_raw(IMAGE)

        assert detections[0].class_name == "egg"
        assert detections[0].confidence == 0.9
