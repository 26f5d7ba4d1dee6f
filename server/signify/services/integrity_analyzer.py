"""Integrity and authenticity analysis of a stored keystroke log."""

from datetime import datetime, timezone
from typing import Any, Sequence

import numpy as np

from signify.models import StoredKeystroke

# Interval thresholds in seconds
SHORT_PAUSE = 0.5
LONG_PAUSE = 2.0
TEMPORAL_TOLERANCE = 0.05  # share of out-of-order timestamps allowed


def _round(value: float, digits: int = 4) -> float:
    return round(float(value), digits)


class IntegrityAnalyzer:
    """Checks that a keystroke log is complete and looks like human typing."""

    def keydown_intervals(self, keystrokes: Sequence[StoredKeystroke]) -> np.ndarray:
        timestamps = np.sort(
            np.array([k.timestamp for k in keystrokes if k.event_type == "keydown"], dtype=float)
        )
        if len(timestamps) < 2:
            return np.array([], dtype=float)
        return np.diff(timestamps)

    # ==================== DATA INTEGRITY ====================

    def sequence_integrity(self, keystrokes: Sequence[StoredKeystroke]) -> dict[str, Any]:
        sequences = np.unique([k.sequence_number for k in keystrokes])
        if len(sequences) == 0:
            return {"valid": False, "message": "No keystroke data found", "missing_count": 0}

        expected = np.arange(sequences[0], sequences[-1] + 1)
        missing = np.setdiff1d(expected, sequences)
        return {
            "valid": len(missing) == 0,
            "message": "Sequence integrity verified" if len(missing) == 0 else "Missing sequence numbers detected",
            "missing_sequences": [int(n) for n in missing[:100]],
            "missing_count": int(len(missing)),
            "total_expected": int(len(expected)),
            "integrity_percentage": round(len(sequences) / len(expected) * 100, 2),
        }

    def temporal_consistency(self, keystrokes: Sequence[StoredKeystroke]) -> dict[str, Any]:
        ordered = sorted(keystrokes, key=lambda k: k.sequence_number)
        timestamps = np.array([k.timestamp for k in ordered], dtype=float)
        if len(timestamps) < 2:
            return {"valid": False, "message": "Insufficient data for temporal analysis"}

        inconsistencies = int(np.sum(np.diff(timestamps) < 0))
        valid = inconsistencies <= len(timestamps) * TEMPORAL_TOLERANCE
        return {
            "valid": valid,
            "message": "Temporal consistency verified" if valid else "Significant timestamp inconsistencies detected",
            "inconsistency_count": inconsistencies,
            "inconsistency_percentage": round(inconsistencies / (len(timestamps) - 1) * 100, 2),
            "threshold_percentage": TEMPORAL_TOLERANCE * 100,
        }

    def duplicate_detection(self, keystrokes: Sequence[StoredKeystroke]) -> dict[str, Any]:
        values, counts = np.unique([k.sequence_number for k in keystrokes], return_counts=True)
        duplicates = values[counts > 1]
        return {
            "has_duplicates": bool(len(duplicates)),
            "duplicate_sequences": [int(n) for n in duplicates],
            "duplicate_count": int(np.sum(counts[counts > 1] - 1)),
            "message": "Duplicate sequence numbers detected" if len(duplicates) else "No duplicate sequences found",
        }

    def data_completeness(self, keystroke_count: int, character_count: int) -> dict[str, Any]:
        # Typing produces roughly 1.5-5 events per character once edits are counted
        min_expected = character_count * 1.5
        max_expected = character_count * 5
        ratio = keystroke_count / character_count if character_count > 0 else 0.0
        return {
            "content_character_count": character_count,
            "keystroke_count": keystroke_count,
            "keystroke_to_character_ratio": round(ratio, 2),
            "within_expected_range": min_expected <= keystroke_count <= max_expected,
            "expected_range": f"{int(min_expected)}-{int(max_expected)}",
            "completeness_assessment": self._assess_completeness(ratio),
        }

    # ==================== AUTHENTICITY ====================

    def natural_typing_patterns(self, intervals: np.ndarray) -> dict[str, Any]:
        if len(intervals) < 19:
            return {
                "detected": False,
                "message": "Insufficient data for pattern analysis",
                "confidence": 0,
            }

        avg = float(np.mean(intervals))
        std_dev = float(np.std(intervals))
        has_variance = 0.01 < std_dev < 2.0
        has_reasonable_speed = 0.05 < avg < 5.0

        confidence = min(
            (25 if has_variance else 0)
            + (25 if has_reasonable_speed else 0)
            + self._interval_distribution_score(intervals)
            + self._interval_consistency_score(intervals),
            100,
        )

        if has_variance and has_reasonable_speed and confidence > 70:
            message = "Strong indicators of natural human typing patterns"
        elif has_variance and has_reasonable_speed:
            message = "Moderate indicators of natural typing patterns"
        elif not has_variance:
            message = "Typing patterns show insufficient variance for natural typing"
        else:
            message = "Typing speed outside normal human range"

        return {
            "detected": has_variance and has_reasonable_speed,
            "confidence": confidence,
            "average_interval": _round(avg),
            "standard_deviation": _round(std_dev),
            "message": message,
        }

    def timing_variance(self, intervals: np.ndarray) -> dict[str, Any]:
        if len(intervals) < 9:
            return {}

        avg = float(np.mean(intervals))
        std_dev = float(np.std(intervals))
        cv = std_dev / avg if avg > 0 else 0.0
        return {
            "average_interval": _round(avg),
            "standard_deviation": _round(std_dev),
            "coefficient_of_variation": _round(cv),
            "variance_assessment": self._assess_variance(cv),
            "natural_variance": 0.2 < cv < 2.0,
        }

    def pause_patterns(self, intervals: np.ndarray) -> dict[str, Any]:
        if len(intervals) < 4:
            return {}

        total = len(intervals)
        short = int(np.sum(intervals < SHORT_PAUSE))
        medium = int(np.sum((intervals >= SHORT_PAUSE) & (intervals < LONG_PAUSE)))
        long = int(np.sum(intervals >= LONG_PAUSE))
        return {
            "total_intervals": total,
            "short_pauses": short,
            "medium_pauses": medium,
            "long_pauses": long,
            "longest_pause": round(float(np.max(intervals)), 2),
            "pause_distribution": {
                "short_percentage": round(short / total * 100, 1),
                "medium_percentage": round(medium / total * 100, 1),
                "long_percentage": round(long / total * 100, 1),
            },
            "natural_pattern": short / total > 0.5 and medium / total > 0.1 and long / total < 0.3,
        }

    # ==================== REPORT ====================

    def report(
        self,
        keystrokes: Sequence[StoredKeystroke],
        character_count: int,
        document_info: dict[str, Any],
    ) -> dict[str, Any]:
        """Full verification report for a published post."""
        integrity, authenticity = self._checks(keystrokes, character_count)
        score = self._confidence_score(integrity, authenticity)
        return {
            "document_info": document_info,
            "data_integrity": integrity,
            "authenticity_analysis": authenticity,
            "verification_summary": {
                "verified": self._all_checks_pass(integrity, authenticity),
                "overall_status": self._overall_status(score),
                "confidence_level": score,
                "issues": self._issues(integrity, authenticity),
                "summary": self._summary(integrity, authenticity),
            },
            "generated_at": datetime.now(timezone.utc).isoformat(),
        }

    def _checks(
        self,
        keystrokes: Sequence[StoredKeystroke],
        character_count: int,
    ) -> tuple[dict[str, Any], dict[str, Any]]:
        intervals = self.keydown_intervals(keystrokes)
        integrity = {
            "sequence_integrity": self.sequence_integrity(keystrokes),
            "temporal_consistency": self.temporal_consistency(keystrokes),
            "data_completeness": self.data_completeness(len(keystrokes), character_count),
            "duplicate_detection": self.duplicate_detection(keystrokes),
        }
        authenticity = {
            "natural_typing_patterns": self.natural_typing_patterns(intervals),
            "timing_variance": self.timing_variance(intervals),
            "pause_patterns": self.pause_patterns(intervals),
        }
        return integrity, authenticity

    def _all_checks_pass(self, integrity: dict[str, Any], authenticity: dict[str, Any]) -> bool:
        return bool(
            integrity["sequence_integrity"]["valid"]
            and integrity["temporal_consistency"]["valid"]
            and not integrity["duplicate_detection"]["has_duplicates"]
            and authenticity["natural_typing_patterns"]["detected"]
        )

    def _confidence_score(self, integrity: dict[str, Any], authenticity: dict[str, Any]) -> int:
        score = 0
        # Integrity: 40 points
        score += 10 if integrity["sequence_integrity"]["valid"] else 0
        score += 10 if integrity["temporal_consistency"]["valid"] else 0
        score += 10 if not integrity["duplicate_detection"]["has_duplicates"] else 0
        score += 10 if integrity["data_completeness"]["within_expected_range"] else 0
        # Authenticity: 60 points
        score += 20 if authenticity["natural_typing_patterns"]["detected"] else 0
        score += 20 if authenticity["timing_variance"].get("natural_variance") else 0
        score += 20 if authenticity["pause_patterns"].get("natural_pattern") else 0
        return score

    def _issues(self, integrity: dict[str, Any], authenticity: dict[str, Any]) -> list[str]:
        issues = []
        if not integrity["sequence_integrity"]["valid"]:
            issues.append("Sequence integrity compromised")
        if not integrity["temporal_consistency"]["valid"]:
            issues.append("Temporal inconsistencies detected")
        if integrity["duplicate_detection"]["has_duplicates"]:
            issues.append("Duplicate keystrokes found")
        if not authenticity["natural_typing_patterns"]["detected"]:
            issues.append("Unnatural typing patterns detected")
        if not authenticity["timing_variance"].get("natural_variance"):
            issues.append("Suspicious timing variance")
        return issues

    def _summary(self, integrity: dict[str, Any], authenticity: dict[str, Any]) -> str:
        if self._all_checks_pass(integrity, authenticity):
            return "Keystroke data verified as authentic with high confidence"
        if all(check.get("valid") is not False for check in integrity.values()):
            return "Data integrity verified, authenticity analysis shows mixed results"
        return "Significant issues detected in keystroke data verification"

    def _overall_status(self, score: int) -> str:
        if score >= 90:
            return "verified_high_confidence"
        if score >= 70:
            return "verified_medium_confidence"
        if score >= 50:
            return "verified_low_confidence"
        if score >= 30:
            return "questionable"
        return "unverified"

    def _interval_distribution_score(self, intervals: np.ndarray) -> int:
        total = len(intervals)
        short_pct = np.sum(intervals < 0.2) / total
        medium_pct = np.sum((intervals >= 0.2) & (intervals < 1.0)) / total
        long_pct = np.sum(intervals >= 1.0) / total

        # Mostly medium, some short, few long
        if medium_pct > 0.4 and short_pct > 0.1 and long_pct < 0.3:
            return 25
        if medium_pct > 0.3:
            return 15
        return 5

    def _interval_consistency_score(self, intervals: np.ndarray) -> int:
        if len(intervals) < 10:
            return 0
        # One dominant interval bucket suggests automation
        _, counts = np.unique(np.round(intervals, 1), return_counts=True)
        uniformity = counts.max() / len(intervals)
        if uniformity < 0.3:
            return 25
        if uniformity < 0.5:
            return 15
        return 5

    def _assess_completeness(self, ratio: float) -> str:
        if ratio <= 1.0:
            return "Very low - insufficient keystroke data"
        if ratio <= 2.0:
            return "Low - minimal keystroke data"
        if ratio <= 4.0:
            return "Normal - expected keystroke data"
        if ratio <= 6.0:
            return "High - above average keystroke data"
        return "Very high - excessive keystroke data"

    def _assess_variance(self, cv: float) -> str:
        if cv <= 0.1:
            return "Very low variance - potentially automated"
        if cv <= 0.5:
            return "Low variance - very consistent typing"
        if cv <= 1.5:
            return "Normal variance - natural typing patterns"
        if cv <= 3.0:
            return "High variance - irregular typing patterns"
        return "Very high variance - erratic typing patterns"


# Singleton instance
integrity_analyzer = IntegrityAnalyzer()
