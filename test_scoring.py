"""
Scoring, options and eligibility tests.

Pure functions only -- no database, no Redis.

Run: python -m pytest test_scoring.py
"""

import os
import shutil
import sys
import tempfile
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path

# Ensure the project root is on the path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from trends.eligibility import is_eligible
from trends.errors import OptionsValidationError
from trends.models import Account, Status
from trends.options import TrendsOptions, load_options
from trends.scorer import compute_score, decay_factor, raw_score

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _status(reblogs=0, favourites=0, created_at=T0, **kwargs):
    account = kwargs.pop("account", None) or Account(id=1, discoverable=True)
    return Status(
        id=kwargs.pop("id", 100),
        account=account,
        created_at=created_at,
        reblogs_count=reblogs,
        favourites_count=favourites,
        **kwargs,
    )


# ═══════════════════════════════════════════════════════════════════════
# SCORE CALCULATION
# ═══════════════════════════════════════════════════════════════════════

class TestScoreCalculation(unittest.TestCase):

    def setUp(self):
        self.options = TrendsOptions(
            threshold=5,
            score_halflife=timedelta(hours=2),
            decay_threshold=0.3,
        )

    def test_halflife_scenario(self):
        """observed=6 scores 25.0, then halves every two hours."""
        status = _status(reblogs=3, favourites=3)
        self.assertEqual(compute_score(status, T0, self.options), 25.0)
        self.assertEqual(compute_score(status, T0 + timedelta(hours=2), self.options), 12.5)
        self.assertEqual(compute_score(status, T0 + timedelta(hours=4), self.options), 6.25)

    def test_below_threshold_is_zero_at_any_age(self):
        status = _status(reblogs=2, favourites=2)
        for hours in (0, 1, 5, 48):
            self.assertEqual(compute_score(status, T0 + timedelta(hours=hours), self.options), 0)

    def test_decay_is_exact_for_arbitrary_interval(self):
        status = _status(reblogs=10, favourites=7)
        now = T0 + timedelta(minutes=13)
        dt = timedelta(minutes=37)
        expected = compute_score(status, now, self.options) * 0.5 ** (37 / 120)
        self.assertAlmostEqual(compute_score(status, now + dt, self.options), expected, places=9)

    def test_raw_score_baseline(self):
        self.assertEqual(raw_score(6.0, threshold=5), 25.0)
        self.assertEqual(raw_score(0.0, threshold=0), 0.0)
        self.assertEqual(raw_score(0.5, threshold=0), 0.0)
        self.assertEqual(raw_score(4.0, threshold=5), 0.0)
        self.assertEqual(raw_score(5.0, threshold=5), 16.0)

    def test_decay_factor(self):
        self.assertEqual(decay_factor(timedelta(0), timedelta(hours=2)), 1.0)
        self.assertEqual(decay_factor(timedelta(hours=6), timedelta(hours=2)), 0.125)

    def test_reblogs_and_favourites_count_equally(self):
        a = _status(reblogs=8, favourites=0)
        b = _status(reblogs=0, favourites=8)
        self.assertEqual(compute_score(a, T0, self.options), compute_score(b, T0, self.options))


# ═══════════════════════════════════════════════════════════════════════
# OPTIONS
# ═══════════════════════════════════════════════════════════════════════

class TestOptions(unittest.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.tmpdir, ignore_errors=True)

    def _write(self, text):
        path = Path(self.tmpdir) / "trends.yaml"
        path.write_text(text)
        return path

    def test_defaults(self):
        options = TrendsOptions()
        self.assertEqual(options.threshold, 5)
        self.assertEqual(options.review_threshold, 3)
        self.assertEqual(options.score_halflife, timedelta(hours=2))
        self.assertEqual(options.decay_threshold, 0.3)
        self.assertEqual(options.usage_window, timedelta(days=1))

    def test_options_are_immutable(self):
        options = TrendsOptions()
        with self.assertRaises(Exception):
            options.threshold = 10

    def test_invalid_values_rejected_at_construction(self):
        invalid = [
            {"score_halflife": timedelta(0)},
            {"score_halflife": timedelta(hours=-1)},
            {"threshold": -1},
            {"threshold": True},
            {"review_threshold": 0},
            {"decay_threshold": -0.1},
            {"usage_window": timedelta(0)},
            {"default_locale": ""},
        ]
        for kwargs in invalid:
            with self.subTest(kwargs=kwargs):
                with self.assertRaises(OptionsValidationError):
                    TrendsOptions(**kwargs)

    def test_missing_file_gives_defaults(self):
        self.assertEqual(load_options(Path(self.tmpdir) / "absent.yaml"), TrendsOptions())
        self.assertEqual(load_options(None), TrendsOptions())

    def test_load_from_yaml(self):
        path = self._write(
            "trends:\n"
            "  threshold: 10\n"
            "  review_threshold: 5\n"
            "  score_halflife_hours: 0.5\n"
            "  decay_threshold: 1.5\n"
            "  default_locale: de\n"
        )
        options = load_options(path)
        self.assertEqual(options.threshold, 10)
        self.assertEqual(options.review_threshold, 5)
        self.assertEqual(options.score_halflife, timedelta(minutes=30))
        self.assertEqual(options.decay_threshold, 1.5)
        self.assertEqual(options.default_locale, "de")
        self.assertEqual(options.usage_window, timedelta(days=1))

    def test_unknown_key_rejected(self):
        path = self._write("trends:\n  halflife: 2\n")
        with self.assertRaises(OptionsValidationError):
            load_options(path)

    def test_invalid_value_in_yaml_rejected(self):
        path = self._write("trends:\n  score_halflife_hours: 0\n")
        with self.assertRaises(OptionsValidationError):
            load_options(path)

    def test_non_numeric_duration_rejected(self):
        path = self._write("trends:\n  score_halflife_hours: soon\n")
        with self.assertRaises(OptionsValidationError):
            load_options(path)

    def test_to_dict_reports_hours(self):
        data = TrendsOptions().to_dict()
        self.assertEqual(data["score_halflife_hours"], 2.0)
        self.assertEqual(data["usage_window_hours"], 24.0)


# ═══════════════════════════════════════════════════════════════════════
# ELIGIBILITY + MODEL PREDICATES
# ═══════════════════════════════════════════════════════════════════════

class TestEligibility(unittest.TestCase):

    def test_public_plain_status_is_eligible(self):
        self.assertTrue(is_eligible(_status()))

    def test_each_condition_disqualifies(self):
        cases = {
            "unlisted": _status(visibility="unlisted"),
            "not discoverable": _status(account=Account(id=1, discoverable=False)),
            "silenced": _status(account=Account(id=1, discoverable=True, silenced=True)),
            "spoiler": _status(spoiler_text="cw: food"),
            "sensitive": _status(sensitive=True),
            "reply": _status(in_reply_to_id=5),
        }
        for name, status in cases.items():
            with self.subTest(name):
                self.assertFalse(is_eligible(status))

    def test_blank_spoiler_text_is_ignored(self):
        self.assertTrue(is_eligible(_status(spoiler_text="   ")))


class TestModelPredicates(unittest.TestCase):

    def test_proper_resolves_reshare(self):
        original = _status(id=1)
        reshare = _status(id=2, reblog=original)
        self.assertIs(reshare.proper, original)
        self.assertIs(original.proper, original)

    def test_trendable_falls_back_to_account(self):
        approved = Account(id=1, trendable=True)
        self.assertTrue(_status(account=approved).trendable)
        self.assertFalse(_status(account=approved, trendable_flag=False).trendable)
        self.assertFalse(_status(account=Account(id=2)).trendable)

    def test_review_notification_only_once_per_account(self):
        account = Account(id=1)
        status = _status(account=account)
        self.assertTrue(status.requires_review_notification)

        account.requested_review_at = T0
        self.assertFalse(status.requires_review_notification)

    def test_reviewed_account_needs_no_notification(self):
        account = Account(id=1, reviewed_at=T0)
        self.assertFalse(_status(account=account).requires_review_notification)

    def test_status_level_decision_suppresses_notification(self):
        self.assertFalse(_status(account=Account(id=1), trendable_flag=False).requires_review_notification)


if __name__ == '__main__':
    unittest.main(verbosity=2)
