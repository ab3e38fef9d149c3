"""Per-frame detection scoring against a ground-truth configuration."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Sequence

from .models import BoundingBox, DetectionRecord, FrameScore

DEFAULT_IOU_THRESHOLD = 0.5


def iou(a: BoundingBox, b: BoundingBox) -> float:
    """Intersection over union of two (x, y, width, height) boxes."""

    x = max(a.x, b.x)
    y = max(a.y, b.y)
    w = min(a.x + a.width, b.x + b.width) - x
    h = min(a.y + a.height, b.y + b.height) - y
    if w <= 0.0 or h <= 0.0:
        return 0.0
    intersection = w * h
    return intersection / (a.area + b.area - intersection)


def _group_by_frame(detections: Iterable[DetectionRecord]) -> dict[int, list[DetectionRecord]]:
    grouped: dict[int, list[DetectionRecord]] = defaultdict(list)
    for detection in detections:
        grouped[detection.validate().frame_num].append(detection)
    return grouped


def match_frame(
    predicted: Sequence[DetectionRecord],
    groundtruth: Sequence[DetectionRecord],
    iou_threshold: float = DEFAULT_IOU_THRESHOLD,
) -> list[tuple[int, int]]:
    """Greedy best-IoU-first assignment of predictions to ground-truth boxes.

    Returns (groundtruth_index, predicted_index) pairs. Only pairs with equal
    labels and IoU >= ``iou_threshold`` are eligible, and each box takes part
    in at most one pair.
    """

    candidates: list[tuple[float, int, int]] = []
    for gt_index, gt in enumerate(groundtruth):
        for pred_index, pred in enumerate(predicted):
            if pred.object_label != gt.object_label:
                continue
            overlap = iou(pred.bbox, gt.bbox)
            if overlap >= iou_threshold and overlap > 0.0:
                candidates.append((overlap, gt_index, pred_index))

    candidates.sort(key=lambda item: (-item[0], item[1], item[2]))

    used_gt: set[int] = set()
    used_pred: set[int] = set()
    pairs: list[tuple[int, int]] = []
    for _, gt_index, pred_index in candidates:
        if gt_index in used_gt or pred_index in used_pred:
            continue
        used_gt.add(gt_index)
        used_pred.add(pred_index)
        pairs.append((gt_index, pred_index))
    return pairs


def score_frame(
    frame_num: int,
    predicted: Sequence[DetectionRecord],
    groundtruth: Sequence[DetectionRecord],
    iou_threshold: float = DEFAULT_IOU_THRESHOLD,
) -> FrameScore:
    matched = len(match_frame(predicted, groundtruth, iou_threshold))
    return FrameScore(
        frame_num=frame_num,
        true_positive=matched,
        false_positive=len(predicted) - matched,
        false_negative=len(groundtruth) - matched,
    )


def score(
    configuration_detections: Iterable[DetectionRecord],
    ground_truth_detections: Iterable[DetectionRecord],
    iou_threshold: float = DEFAULT_IOU_THRESHOLD,
) -> list[FrameScore]:
    """Score one configuration frame by frame.

    Frames present in neither stream produce no FrameScore.
    """

    predicted_by_frame = _group_by_frame(configuration_detections)
    truth_by_frame = _group_by_frame(ground_truth_detections)

    frames = sorted(set(predicted_by_frame) | set(truth_by_frame))
    return [
        score_frame(
            frame_num,
            predicted_by_frame.get(frame_num, []),
            truth_by_frame.get(frame_num, []),
            iou_threshold,
        )
        for frame_num in frames
    ]


def score_frames(
    configuration_detections: Iterable[DetectionRecord],
    ground_truth_detections: Iterable[DetectionRecord],
    frame_count: int,
    iou_threshold: float = DEFAULT_IOU_THRESHOLD,
) -> list[FrameScore]:
    """Dense variant of :func:`score` covering every frame in ``range(frame_count)``."""

    scored = {
        item.frame_num: item
        for item in score(configuration_detections, ground_truth_detections, iou_threshold)
    }
    return [
        scored.get(frame_num, FrameScore(frame_num, 0, 0, 0))
        for frame_num in range(frame_count)
    ]


def align_to_ground_truth(
    detections: Iterable[DetectionRecord], skip: int, frame_count: int
) -> list[DetectionRecord]:
    """Re-index a frame-skipping configuration onto ground-truth frame numbers.

    With ``skip`` dropped frames between processed frames, ground-truth frame
    ``f`` is judged against configuration frame ``f // (skip + 1)``. The last
    processed frame is held once the configuration stream runs out.
    """

    if skip < 0:
        raise ValueError("skip must be >= 0")
    if frame_count <= 0:
        return []

    grouped = _group_by_frame(detections)
    if not grouped:
        return []
    last_frame = max(grouped)

    aligned: list[DetectionRecord] = []
    for gt_frame in range(frame_count):
        source_frame = min(gt_frame // (skip + 1), last_frame)
        for detection in grouped.get(source_frame, []):
            aligned.append(
                DetectionRecord(
                    frame_num=gt_frame,
                    process_time=detection.process_time,
                    object_label=detection.object_label,
                    probability=detection.probability,
                    bbox=detection.bbox,
                )
            )
    return aligned
