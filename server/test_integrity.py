"""Tests for the keystroke integrity report."""

import random
from datetime import datetime, timezone

import numpy as np

from signify.models import StoredKeystroke
from signify.services.integrity_analyzer import integrity_analyzer

NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)


def stored(sequence_number, timestamp, event_type="keydown"):
    return StoredKeystroke(
        id=sequence_number + 1,
        event_type=event_type,
        key_code="KeyA",
        character="a",
        timestamp=timestamp,
        cursor_position=sequence_number,
        sequence_number=sequence_number,
        created_at=NOW,
    )


def human_session(count=60, seed=42):
    """Keydowns with gaussian spacing and the occasional thinking pause."""
    rng = random.Random(seed)
    keystrokes, ts = [], 1_700_000_000.0
    for n in range(count):
        ts += max(0.05, rng.gauss(0.35, 0.15))
        if n % 15 == 14:
            ts += rng.uniform(0.8, 2.5)
        keystrokes.append(stored(n, ts))
    return keystrokes


def bot_session(count=60):
    """Perfectly regular keydowns, as a script would produce."""
    return [stored(n, 1_700_000_000.0 + n * 0.1) for n in range(count)]


def test_sequence_gaps_are_reported():
    keystrokes = [stored(n, 1000.0 + n) for n in (0, 1, 2, 5, 6)]

    result = integrity_analyzer.sequence_integrity(keystrokes)

    assert result["valid"] is False
    assert result["missing_sequences"] == [3, 4]
    assert result["missing_count"] == 2


def test_temporal_consistency_tolerates_few_inversions():
    keystrokes = [stored(n, 1000.0 + n) for n in range(40)]
    keystrokes[10] = stored(10, 995.0)

    result = integrity_analyzer.temporal_consistency(keystrokes)

    assert result["inconsistency_count"] == 1
    assert result["valid"] is True


def test_temporal_consistency_flags_shuffled_clock():
    keystrokes = [stored(n, 1000.0 + (n % 2) * 10 - n * 0.1) for n in range(20)]

    assert integrity_analyzer.temporal_consistency(keystrokes)["valid"] is False


def test_data_completeness_ratio():
    result = integrity_analyzer.data_completeness(keystroke_count=300, character_count=100)

    assert result["keystroke_to_character_ratio"] == 3.0
    assert result["within_expected_range"] is True
    assert result["completeness_assessment"].startswith("Normal")


def test_keydown_intervals_ignore_keyups():
    keystrokes = [stored(0, 10.0), stored(1, 10.05, "keyup"), stored(2, 10.5)]

    intervals = integrity_analyzer.keydown_intervals(keystrokes)

    assert np.allclose(intervals, [0.5])


def test_short_sessions_skip_authenticity_checks():
    intervals = integrity_analyzer.keydown_intervals(human_session(count=5))

    assert integrity_analyzer.natural_typing_patterns(intervals)["detected"] is False
    assert integrity_analyzer.timing_variance(intervals) == {}
    assert integrity_analyzer.pause_patterns(intervals)["total_intervals"] == 4


def test_human_session_scores_higher_than_bot():
    human = integrity_analyzer.report(human_session(), 30, {})["verification_summary"]
    bot = integrity_analyzer.report(bot_session(), 30, {})["verification_summary"]

    assert human["confidence_level"] > bot["confidence_level"]
    assert "Suspicious timing variance" not in human["issues"]
    assert "Suspicious timing variance" in bot["issues"]


def test_report_shape():
    report = integrity_analyzer.report(human_session(), 30, {"title": "Essay"})

    assert report["document_info"] == {"title": "Essay"}
    assert set(report["data_integrity"]) == {
        "sequence_integrity",
        "temporal_consistency",
        "data_completeness",
        "duplicate_detection",
    }
    summary = report["verification_summary"]
    assert 0 <= summary["confidence_level"] <= 100
    assert summary["overall_status"] in {
        "verified_high_confidence",
        "verified_medium_confidence",
        "verified_low_confidence",
        "questionable",
        "unverified",
    }
