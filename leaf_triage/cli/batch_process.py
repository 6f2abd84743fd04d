"""
Batch segmentation of a folder of leaf photos.

    leaf-triage-batch data/leaves --out results.json
"""
import argparse
import json
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables first
load_dotenv()

from ..models.accelerator import ACCELERATOR_FLAG, load_accelerator
from ..pipeline.disease_segmenter import DiseaseSegmenter
from ..pipeline.triage_report import build_report
from ..services.image_service import ImageService

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Segment diseased areas on every leaf image in a folder.")
    parser.add_argument("folder", type=Path, help="folder with leaf images")
    parser.add_argument("--out", type=Path, default=None, help="write all results to this JSON file")
    parser.add_argument("--recursive", action="store_true", help="descend into sub-folders")
    parser.add_argument("--accelerator", default=ACCELERATOR_FLAG, help="'opencv' or 'none'")
    parser.add_argument("--with-images", action="store_true",
                        help="keep mask/overlay data URIs in the JSON output")
    return parser


def run(args: argparse.Namespace) -> int:
    status = load_accelerator(args.accelerator)
    image_service = ImageService()
    segmenter = DiseaseSegmenter(backend=status.backend, image_service=image_service)

    results = {}
    failures = 0
    for buffer in image_service.stream_folder(args.folder, recursive=args.recursive):
        name = str(buffer.path.relative_to(args.folder)) if buffer.path else f"image_{len(results)}"
        result = segmenter.segment(buffer)
        entry = result.to_dict()
        if not args.with_images:
            entry.pop("masks")
            entry.pop("overlayImage")
        if result.success:
            entry["report"] = build_report(result)
            p = result.percentages
            print(f"{name}: healthy {p.healthy:.1f}% | rust {p.rust:.1f}% | scab {p.scab:.1f}% "
                  f"| background {p.background:.1f}% → {entry['report']['overallSeverity']}")
        else:
            failures += 1
            print(f"{name}: FAILED ({result.error})")
        results[name] = entry

    print(f"\nProcessed {len(results)} images ({failures} failed) with the {segmenter.backend.name} backend")

    if args.out:
        args.out.parent.mkdir(parents=True, exist_ok=True)
        args.out.write_text(json.dumps(results, indent=2), encoding="utf-8")
        print(f"Results written to {args.out}")

    return 1 if failures else 0


def main(argv=None) -> int:
    # --- Centralized Logging Configuration ---
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "WARNING").upper(),
        format='%(asctime)s - %(name)-25s - %(levelname)-8s - %(message)s',
        datefmt='%H:%M:%S'
    )
    args = build_parser().parse_args(argv)
    if not args.folder.is_dir():
        print(f"Not a folder: {args.folder}", file=sys.stderr)
        return 2
    return run(args)


if __name__ == "__main__":
    sys.exit(main())
