"""Synthetic landmark helpers shared by the test modules."""

from face_metrics import LandmarkPoint

# six-point eye contour whose centroid is exactly (0, 0)
EYE_OFFSETS = [(-10, 0), (-5, -3), (5, -3), (10, 0), (5, 3), (-5, 3)]


def eye_at(cx: float, cy: float):
    return tuple(LandmarkPoint(cx + dx, cy + dy) for dx, dy in EYE_OFFSETS)


def eye_json(cx: float, cy: float):
    return [{"x": p.x, "y": p.y} for p in eye_at(cx, cy)]


def face_api_positions(left=(280.0, 220.0), right=(360.0, 220.0)):
    """68 points with the eyes at indices 36-41 / 42-47, rest on the nose."""
    nose = [{"x": (left[0] + right[0]) / 2, "y": left[1] + 40.0}] * 36
    mouth = [{"x": (left[0] + right[0]) / 2, "y": left[1] + 80.0}] * 20
    return nose + eye_json(*left) + eye_json(*right) + mouth
