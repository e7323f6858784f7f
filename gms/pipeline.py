from __future__ import annotations

import argparse
import json
import time
from pathlib import Path
from typing import Dict, List, Optional

import cv2
import numpy as np

from common.logging_setup import get_logger, setup_logging
from common.types import InvalidInputError
from common.utils import iso_now_ms
from gms.config import DEFAULT_CONFIG_PATH, GMSParams, load_yaml
from gms.display import MatchDisplay
from gms.features import OrbFeatureSource
from gms.matcher import GMSMatcher


log = get_logger("gms")


def load_image(path: str) -> np.ndarray:
    if not Path(path).exists():
        raise FileNotFoundError(f"Image not found: {path}")
    img = cv2.imread(str(path), cv2.IMREAD_COLOR)
    if img is None or img.size == 0:
        raise InvalidInputError(f"Cannot decode image: {path}")
    return img


def _write_metrics_row(path: Path, row: Dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("a", buffering=1) as f:
        f.write(json.dumps(row) + "\n")


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="GMS: grid-based motion statistics feature matching")
    ap.add_argument("image1")
    ap.add_argument("image2")
    ap.add_argument("--config", default=DEFAULT_CONFIG_PATH)
    ap.add_argument("--threshold-factor", type=float, default=None, help="Override gms.threshold_factor")
    ap.add_argument("--grid-size", type=int, default=None, help="Override gms.grid_size")
    ap.add_argument("--show", action="store_true", help="Show the inlier matches in a window")
    ap.add_argument("--out", default=None, help="Write the inlier rendering to this image path")
    ap.add_argument("--metrics", default=None, help="Append a JSON line with run statistics")
    ap.add_argument("--log-level", default=None)
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    P = load_yaml(args.config)
    setup_logging(args.log_level or P.get("logging", {}).get("level"), force=True)

    gms_cfg = dict(P.get("gms") or {})
    if args.threshold_factor is not None:
        gms_cfg["threshold_factor"] = args.threshold_factor
    if args.grid_size is not None:
        gms_cfg["grid_size"] = args.grid_size
    params = GMSParams.from_dict(gms_cfg)
    features = OrbFeatureSource.from_dict(P.get("features"))

    display = None
    if args.show or args.out:
        display = MatchDisplay(window_name="GMS matches" if args.show else None, save_path=args.out)

    img1 = load_image(args.image1)
    img2 = load_image(args.image2)

    matcher = GMSMatcher(params=params, features=features, display=display)
    matcher.init(img1, img2)

    t0 = time.perf_counter()
    inliers = matcher.run()
    dt_ms = int(1000.0 * (time.perf_counter() - t0))
    result = matcher.result

    log.info(
        "Matched image pair",
        extra={"extra": {
            "image1": args.image1,
            "image2": args.image2,
            "matches": result.total_matches,
            "inliers": len(inliers),
            "latency_ms": dt_ms,
        }},
    )

    metrics = args.metrics or P.get("logging", {}).get("metrics_file")
    if metrics:
        row = {
            "ts": iso_now_ms(),
            "image1": str(args.image1),
            "image2": str(args.image2),
            "params": params.to_dict(),
            "latency_ms": dt_ms,
            **result.summary(),
        }
        _write_metrics_row(Path(metrics), row)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
