from django.test import SimpleTestCase

from grievances.classification import (
    analyze_complexity,
    analyze_sentiment,
    analyze_urgency,
    calculate_priority,
    category_suggestions,
    classify,
    extract_key_info,
    suggest_department,
    tokenize,
)

BURST_PIPE = "URGENT: water pipe burst on Main St, need it fixed today"


class ClassifyTests(SimpleTestCase):
    def test_burst_pipe_scenario(self):
        result = classify(BURST_PIPE)

        self.assertEqual(result.urgency, 10)
        self.assertEqual(result.suggested_department, "Municipal Services")
        self.assertEqual(result.category, "utilities")
        self.assertIn(result.priority, {"high", "critical"})
        self.assertEqual(result.sentiment, "negative")

    def test_same_text_gives_identical_output(self):
        text = "The hospital ambulance is broken and the staff were terrible. Please help soon!"
        self.assertEqual(classify(text, "More details here."), classify(text, "More details here."))
        self.assertEqual(repr(classify(text)), repr(classify(text)))

    def test_keywords_and_tags(self):
        result = classify("Water supply problem", "The water supply has been cut. Water tanker never came.")
        self.assertEqual(result.keywords[0], "water")
        self.assertIn("utilities", result.tags)

    def test_unmatched_text_falls_back_to_other(self):
        result = classify("Something odd happened", "Nobody knows what.")
        self.assertEqual(result.suggested_department, "Other")
        self.assertEqual(result.category, "other")
        self.assertEqual(result.urgency, 1)


class TokenizeTests(SimpleTestCase):
    def test_strips_punctuation_and_lowercases(self):
        self.assertEqual(tokenize("EMERGENCY!!! Road, closed."), ["emergency", "road", "closed"])

    def test_empty_text(self):
        self.assertEqual(tokenize(""), [])
        self.assertEqual(tokenize(None), [])


class SentimentTests(SimpleTestCase):
    def test_majority_wins(self):
        self.assertEqual(analyze_sentiment(tokenize("Terrible broken road")), "negative")
        self.assertEqual(analyze_sentiment(tokenize("Great work, thank you")), "positive")

    def test_tie_is_neutral(self):
        self.assertEqual(analyze_sentiment(tokenize("good but bad")), "neutral")
        self.assertEqual(analyze_sentiment(tokenize("the bus is late")), "neutral")


class UrgencyTests(SimpleTestCase):
    def test_maximum_weight_wins(self):
        self.assertEqual(analyze_urgency(tokenize("please fix it soon, it is dangerous")), 8)

    def test_default_is_one(self):
        self.assertEqual(analyze_urgency(tokenize("the park needs benches")), 1)

    def test_phrase_match(self):
        self.assertEqual(analyze_urgency(tokenize("The lift is not working")), 6)

    def test_punctuation_does_not_hide_words(self):
        self.assertEqual(analyze_urgency(tokenize("Emergency!")), 10)


class ComplexityTests(SimpleTestCase):
    def test_short_plain_text(self):
        self.assertEqual(analyze_complexity("The tap leaks."), 1)

    def test_technical_terms_raise_complexity(self):
        self.assertEqual(analyze_complexity("The database server network is down."), 3)

    def test_long_text_raises_complexity(self):
        sentence = " ".join(["word"] * 25) + ". "
        text = sentence * 9
        # avg sentence length 25 (+2), 225 words (+2)
        self.assertEqual(analyze_complexity(text), 5)

    def test_bounded_between_one_and_ten(self):
        self.assertEqual(analyze_complexity(""), 1)
        text = ("system process procedure maintenance infrastructure network " * 40) + "."
        self.assertLessEqual(analyze_complexity(text), 10)


class DepartmentBucketTests(SimpleTestCase):
    def test_first_matching_bucket_wins(self):
        self.assertEqual(suggest_department(tokenize("The bus to school is always late")), ("education", "Education"))
        self.assertEqual(suggest_department(tokenize("Hospital road closed")), ("healthcare", "Healthcare"))
        self.assertEqual(
            suggest_department(tokenize("Water bill payment failed")),
            ("utilities", "Municipal Services"),
        )

    def test_plural_forms_match(self):
        self.assertEqual(suggest_department(tokenize("Potholes on all the roads")), ("transport", "Transportation"))

    def test_remaining_buckets(self):
        cases = {
            "Theft reported to police": "Police",
            "Property tax receipt missing": "Revenue",
            "Crop damage on my farm": "Agriculture",
            "Noise pollution from factory": "Environment",
        }
        for text, department in cases.items():
            with self.subTest(text=text):
                self.assertEqual(suggest_department(tokenize(text))[1], department)


class PriorityTests(SimpleTestCase):
    def test_bands(self):
        self.assertEqual(calculate_priority(10, 5, "neutral"), "critical")
        self.assertEqual(calculate_priority(10, 1, "negative"), "high")
        self.assertEqual(calculate_priority(6, 1, "negative"), "medium")
        self.assertEqual(calculate_priority(6, 1, "neutral"), "low")

    def test_positive_sentiment_lowers_score(self):
        self.assertEqual(calculate_priority(10, 2, "neutral"), "high")
        self.assertEqual(calculate_priority(10, 2, "positive"), "medium")


class KeyInfoTests(SimpleTestCase):
    def test_extracts_location_and_phone(self):
        info = extract_key_info("Pipe leaking near the old market. Call me on 9876543210 urgent")
        self.assertEqual(info.location, "the old market")
        self.assertEqual(info.contact, "9876543210")
        self.assertEqual(info.urgency_indicators, ("urgent",))

    def test_nothing_found(self):
        info = extract_key_info("")
        self.assertEqual(info.location, "")
        self.assertEqual(info.contact, "")
        self.assertEqual(info.urgency_indicators, ())


class CategorySuggestionTests(SimpleTestCase):
    def test_partial_text(self):
        self.assertEqual(category_suggestions("scho"), ["education"])
        self.assertEqual(category_suggestions("water bill"), ["utilities", "revenue"])

    def test_empty(self):
        self.assertEqual(category_suggestions("  "), [])
