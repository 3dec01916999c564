"""
Client for the image-based ingredient detection service.

One multipart POST per image; the response lists detected classes, which are
mapped to ingredient names through the IngredientMap.
"""

import time
import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from typing import List, Optional

import requests

from cookit.detection.ingredient_map import IngredientMap
from cookit.errors import DetectionTimeoutError, ExternalServiceError, ValidationError

logger = logging.getLogger(__name__)

DETECT_PATH = "/detect/"
DEFAULT_TIMEOUT = 30.0

# Detector calls run here so the caller can stop waiting at the deadline
_executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="detector")


@dataclass(frozen=True)
class Detection:
    class_name: str
    confidence: Optional[float] = None


class IngredientDetector:
    """Sends images to the detector and returns recognised ingredient names."""

    def __init__(
        self,
        base_url: str,
        ingredient_map: IngredientMap,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.url = base_url.rstrip("/") + DETECT_PATH
        self.ingredient_map = ingredient_map
        self.timeout = timeout

    def _post(self, image: bytes, filename: str, content_type: str):
        try:
            response = requests.post(
                self.url,
                files={"file": (filename, image, content_type)},
                headers={"Accept": "application/json"},
                timeout=self.timeout,
            )
            response.raise_for_status()
            return response.json()
        except requests.Timeout as e:
            raise DetectionTimeoutError(f"Detector timed out after {self.timeout}s") from e
        except requests.RequestException as e:
            logger.error(f"[DETECT] Request failed: {e}")
            raise ExternalServiceError(f"Detector request failed: {e}") from e
        except ValueError as e:
            raise ExternalServiceError(f"Detector returned non-JSON body: {e}") from e

    def detect_raw(self, image: bytes, filename: str = "image.jpg", content_type: str = "image/jpeg") -> List[Detection]:
        """
        Run detection and return the raw detections.

        The timeout bounds the whole exchange, including a response body that
        trickles in slowly, not just each socket read.

        Raises:
            DetectionTimeoutError: No complete answer within the timeout
            ExternalServiceError: Network failure, HTTP error or unexpected payload
        """
        start = time.time()
        future = _executor.submit(self._post, image, filename, content_type)
        try:
            payload = future.result(timeout=self.timeout)
        except (FutureTimeoutError, DetectionTimeoutError) as e:
            future.cancel()
            logger.error(f"[DETECT] Timed out after {self.timeout}s")
            raise DetectionTimeoutError(f"Detector timed out after {self.timeout}s") from e

        if not isinstance(payload, dict) or not payload.get("success"):
            raise ExternalServiceError(
                "Detector reported failure",
                public_message="Ingredient recognition failed.",
            )

        detections = []
        for item in payload.get("detections") or []:
            if isinstance(item, dict) and item.get("class_name"):
                detections.append(Detection(class_name=item["class_name"], confidence=item.get("confidence")))

        logger.info(f"[DETECT] {len(detections)} detections in {time.time() - start:.3f}s")
        return detections

    def detect(self, image: bytes, filename: str = "image.jpg", content_type: str = "image/jpeg") -> List[str]:
        """
        Detect ingredients in an image.

        Returns:
            Distinct ingredient names in first-detected order

        Raises:
            ValidationError: Empty image, or nothing recognisable in it
            DetectionTimeoutError: No answer within the timeout
            ExternalServiceError: Detector failure
        """
        if not image:
            raise ValidationError("Empty image upload", public_message="An image is required.")

        detections = self.detect_raw(image, filename, content_type)
        names = self.ingredient_map.resolve(d.class_name for d in detections)
        if not names:
            raise ValidationError(
                f"No mapped ingredients among {len(detections)} detections",
                public_message="No ingredients were recognized.",
            )
        return names
