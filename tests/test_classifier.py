import pytest

from jd_orchestrator.classifier import (
    InputClassification,
    InputClassifier,
    InputMode,
    classify,
    describe,
    extract_urls,
    is_job_related_url,
    is_substantial_brief,
    strip_urls,
    validate_brief,
    validate_link,
    validate_upload,
)
from jd_orchestrator.errors import ValidationFailedError

KENYA_BRIEF = "We need a field coordinator with 3 years humanitarian response experience in Kenya."
LINKED_BRIEF = "Looking for a program manager, remote, full-time, 5+ years. https://ngo.org/jobs/123"


def test_substantial_brief_without_link():
    c = classify(KENYA_BRIEF)
    assert c.mode is InputMode.BRIEF
    assert c.confidence >= 0.9
    assert c.brief_text == KENYA_BRIEF
    assert c.url is None
    assert c.is_reliable


def test_bare_non_job_url_is_reference_link_with_low_confidence():
    c = classify("https://example.org/about")
    assert c.mode is InputMode.REFERENCE_LINK
    assert c.confidence == 0.7
    assert c.url == "https://example.org/about"
    assert c.is_reliable


def test_job_board_url_is_reference_link_with_high_confidence():
    assert classify("https://www.linkedin.com/something/42").confidence == 0.9
    assert classify("https://example.org/careers/field-officer").confidence == 0.9
    assert classify("https://example.org/listing?vacancy=12").confidence == 0.9


def test_brief_next_to_link_is_brief_with_link():
    c = classify(LINKED_BRIEF)
    assert c.mode is InputMode.BRIEF_WITH_LINK
    assert c.confidence == 0.9
    assert c.url == "https://ngo.org/jobs/123"
    assert c.brief_text == "Looking for a program manager, remote, full-time, 5+ years."


def test_link_with_incidental_words_stays_reference_link():
    c = classify("see this https://example.org/about thanks")
    assert c.mode is InputMode.REFERENCE_LINK
    assert c.brief_text == "see this thanks"


@pytest.mark.parametrize("text", ["", "   ", "hi there", "\n\t\n"])
def test_short_input_is_unknown(text):
    c = classify(text)
    assert c.mode is InputMode.UNKNOWN
    assert c.confidence == 1.0
    assert not c.is_reliable


def test_off_topic_prose_is_unknown():
    c = classify("The weather today is lovely and we will walk along the river after lunch.")
    assert c.mode is InputMode.UNKNOWN
    assert c.confidence == 0.8
    assert not c.is_reliable


def test_thin_role_mention_is_low_confidence_brief():
    c = classify("manager please")
    assert c.mode is InputMode.BRIEF
    assert c.confidence == 0.6
    assert not c.is_reliable


def test_first_url_wins():
    c = classify("https://a.example.org/jobs/1 and https://b.example.org/jobs/2")
    assert c.url == "https://a.example.org/jobs/1"


def test_classification_is_deterministic():
    classifier = InputClassifier()
    assert classifier.classify(LINKED_BRIEF) == classifier.classify(LINKED_BRIEF)
    assert classify(KENYA_BRIEF) == InputClassifier().classify(KENYA_BRIEF)


def test_adding_role_vocabulary_never_lowers_confidence():
    base = "We are hiring someone to help our team with the annual report and budget tracking."
    richer = base + " The coordinator will manage the program."
    a, b = classify(base), classify(richer)
    assert b.mode is InputMode.BRIEF
    assert b.confidence >= a.confidence


def test_url_helpers():
    text = "Apply (https://example.org/jobs/9). Or http://x.test/a, thanks"
    assert extract_urls(text) == ["https://example.org/jobs/9", "http://x.test/a"]
    assert strip_urls(text) == "Apply ( Or thanks"
    assert extract_urls("ftp://example.org and https://") == []
    assert is_job_related_url("https://jobs.reliefweb.int/x")
    assert not is_job_related_url("https://example.org/blog/jobsite-news")


def test_substantial_needs_vocabulary_and_length():
    assert not is_substantial_brief("coordinator")
    assert not is_substantial_brief("one two three four five six seven eight nine ten eleven.")
    assert is_substantial_brief("Program officer needed. Will manage field partners across the region.")


def test_validate_brief_messages():
    assert validate_brief("  We need a program officer for Kenya  ") == "We need a program officer for Kenya"
    with pytest.raises(ValidationFailedError, match="20 characters"):
        validate_brief("officer needed")
    with pytest.raises(ValidationFailedError, match="5 words"):
        validate_brief("programmeofficer neededurgently")
    with pytest.raises(ValidationFailedError, match="more details"):
        validate_brief("we want somebody for our team here")


def test_validate_link_and_upload():
    assert validate_link(" https://example.org/jobs ") == "https://example.org/jobs"
    with pytest.raises(ValidationFailedError):
        validate_link("example.org/jobs")
    with pytest.raises(ValidationFailedError, match="too short"):
        validate_upload("Program Officer")
    assert validate_upload("x" * 60) == "x" * 60


def test_describe_mentions_mode_and_confidence():
    assert describe(classify(KENYA_BRIEF)) == "Job brief detected (90% confidence)"
    assert "link" in describe(classify("https://example.org/about"))
    assert describe(InputClassification(mode=InputMode.UNKNOWN, confidence=1.0)).startswith("Input type unclear")
