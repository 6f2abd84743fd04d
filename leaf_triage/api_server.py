#!/usr/bin/env python3
"""
Leaf Disease Segmentation API Server
Accepts a leaf photo as a data URI and returns masks, overlay,
percentages and per-lesion contours as JSON.
"""

import os
import logging
import time
from datetime import datetime, timezone
from typing import Optional

from dotenv import load_dotenv

# Load environment variables first
load_dotenv()

from flask import Flask, request, jsonify
from flask_cors import CORS

# --- Centralized Logging Configuration ---
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format='%(asctime)s - %(name)-25s - %(levelname)-8s - %(message)s',
    datefmt='%H:%M:%S'
)

from . import __version__
from .models.accelerator import AcceleratorStatus, load_accelerator
from .models.errors import DecodeError, InputError
from .models.segmentation_result import SegmentationResult
from .pipeline.disease_segmenter import DiseaseSegmenter
from .pipeline.triage_report import build_report

# Configuration
MAX_CONTENT_LENGTH = int(os.getenv("MAX_UPLOAD_SIZE_MB", "20")) * 1024 * 1024
API_HOST = os.getenv("API_HOST", "0.0.0.0")
API_PORT = int(os.getenv("API_PORT", "5000"))

logger = logging.getLogger(__name__)


def _elapsed_ms(start: float) -> int:
    return int(round((time.perf_counter() - start) * 1000))


def _failure(message: str, start: float, status: int):
    body = SegmentationResult.failure(message, _elapsed_ms(start)).to_dict()
    return jsonify(body), status


def create_app(
    segmenter: Optional[DiseaseSegmenter] = None,
    accelerator: Optional[AcceleratorStatus] = None,
) -> Flask:
    """
    Build the Flask app around one explicitly owned segmenter.

    When no segmenter is given, the accelerator is resolved once here
    and its backend handed to a new DiseaseSegmenter.
    """
    if segmenter is None:
        accelerator = accelerator or load_accelerator()
        segmenter = DiseaseSegmenter(backend=accelerator.backend)

    app = Flask(__name__)
    CORS(app)  # Enable CORS for frontend communication
    app.config['MAX_CONTENT_LENGTH'] = MAX_CONTENT_LENGTH
    started_at = time.monotonic()

    @app.route('/api/segment', methods=['POST'])
    def segment():
        """Segment the diseased areas of one leaf image."""
        start = time.perf_counter()
        body = request.get_json(silent=True)
        if not isinstance(body, dict) or not body.get('image'):
            return _failure('No image provided', start, 400)

        logger.info(f"Segmentation request received, payload length {len(str(body['image']))}")
        try:
            result = segmenter.segment_data_uri(body['image'])
        except InputError as e:
            logger.info(f"Rejected request: {e}")
            return _failure(str(e), start, 400)
        except DecodeError as e:
            logger.error(f"Decode error: {e}")
            return _failure(str(e), start, 500)
        except Exception as e:
            logger.exception(f"Unexpected segmentation error: {e}")
            return _failure(str(e) or 'Internal error', start, 500)

        payload = result.to_dict()
        if result.success and body.get('report'):
            payload['report'] = build_report(result)

        logger.info(f"Segmentation finished in {result.processing_time}ms (success={result.success})")
        return jsonify(payload), (200 if result.success else 500)

    @app.route('/api/segment', methods=['GET'])
    def segment_health():
        """Accelerator and codec status."""
        state = accelerator.to_dict() if accelerator else {
            'state': 'injected', 'backend': segmenter.backend.name, 'reason': None
        }
        codec_ok = segmenter.image_service.codec_available()
        accelerated = accelerator.ready if accelerator else segmenter.backend.name != 'pure'
        return jsonify({
            'status': 'ok' if (codec_ok and accelerated) else 'degraded',
            'service': 'Leaf Disease Segmentation Service',
            'accelerator': state,
            'codecAvailable': codec_ok,
            'colorProfile': segmenter.profile.name,
            'severityProfile': segmenter.severity.name,
            'timestamp': datetime.now(timezone.utc).isoformat()
        })

    @app.route('/api/health', methods=['GET'])
    def health_check():
        """Health check endpoint."""
        return jsonify({
            'status': 'healthy',
            'version': __version__,
            'uptime': round(time.monotonic() - started_at, 3),
            'timestamp': datetime.now(timezone.utc).isoformat()
        })

    @app.errorhandler(413)
    def too_large(e):
        """Handle payload too large error."""
        limit_mb = MAX_CONTENT_LENGTH // (1024 * 1024)
        return jsonify({'success': False, 'error': f'Payload too large. Maximum size is {limit_mb}MB.'}), 413

    @app.errorhandler(500)
    def internal_error(e):
        """Handle internal server error."""
        logger.error(f"Internal server error: {e}")
        return jsonify({'success': False, 'error': 'Internal server error'}), 500

    return app


def main():
    app = create_app()
    logger.info(f"Starting Leaf Disease Segmentation API on {API_HOST}:{API_PORT}")
    logger.info(f"Max upload size: {MAX_CONTENT_LENGTH // (1024 * 1024)}MB")
    app.run(host=API_HOST, port=API_PORT, debug=False, threaded=True)


if __name__ == '__main__':
    main()
