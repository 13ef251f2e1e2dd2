"""Tests for transcript truncation at a spoiler cutoff."""

import unittest

from podsummary.processors.truncator import (
    estimate_word_count_at_timestamp,
    truncate_transcript,
    validate_cutoff_timestamp,
)
from podsummary.utils.text import count_words, split_sentences

from fakes import words

TRANSCRIPT = (
    "Welcome to the show. Today we talk about rivers! Did you know they move? "
    "Our guest studies sediment. She has a lot to say about deltas. That is all."
)


class TestTruncateTranscript(unittest.TestCase):

    def test_cutoff_at_duration_returns_unchanged(self):
        self.assertEqual(truncate_transcript(TRANSCRIPT, 1800, 1800), TRANSCRIPT)

    def test_cutoff_beyond_duration_returns_unchanged(self):
        self.assertEqual(truncate_transcript(TRANSCRIPT, 2000, 1800), TRANSCRIPT)

    def test_zero_cutoff_returns_first_three_sentences(self):
        result = truncate_transcript(TRANSCRIPT, 0, 1800)
        self.assertEqual(
            result,
            "Welcome to the show. Today we talk about rivers! Did you know they move?",
        )
        self.assertLessEqual(len(split_sentences(result)), 3)

    def test_negative_cutoff_treated_as_start(self):
        self.assertEqual(len(split_sentences(truncate_transcript(TRANSCRIPT, -5, 1800))), 3)

    def test_word_count_proportional_to_cutoff(self):
        transcript = words(100)
        result = truncate_transcript(transcript, 900, 1800)
        self.assertEqual(count_words(result), 50)
        self.assertTrue(transcript.startswith(result))

    def test_trims_back_to_sentence_end_near_cut(self):
        tokens = ["aaaa"] * 20
        tokens[17] = "end."
        result = truncate_transcript(" ".join(tokens), 96, 100)
        self.assertTrue(result.endswith("end."))
        self.assertEqual(count_words(result), 18)

    def test_keeps_word_cut_when_sentence_end_is_far_back(self):
        tokens = ["aaaa"] * 20
        tokens[2] = "end."
        result = truncate_transcript(" ".join(tokens), 96, 100)
        self.assertEqual(count_words(result), 19)
        self.assertFalse(result.endswith("."))


class TestCutoffHelpers(unittest.TestCase):

    def test_estimate_word_count_at_timestamp(self):
        # 30 minutes at 150 wpm is 4500 words; halfway is 2250
        self.assertEqual(estimate_word_count_at_timestamp(1800, 900), 2250)
        self.assertEqual(estimate_word_count_at_timestamp(0, 900), 0)

    def test_validate_cutoff_timestamp(self):
        self.assertEqual(validate_cutoff_timestamp(-1, 1800), "Cutoff time cannot be negative")
        self.assertEqual(validate_cutoff_timestamp(2000, 1800), "Cutoff time cannot exceed episode duration")
        self.assertIn("very early", validate_cutoff_timestamp(30, 1800))
        self.assertIsNone(validate_cutoff_timestamp(900, 1800))


if __name__ == "__main__":
    unittest.main()
