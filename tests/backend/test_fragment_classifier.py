import pytest

from src.notes_backend.core.fragment_classifier import FragmentClassifier, measure_fragment
from src.notes_backend.services.transcription.backends import DemoSpeechRecognizer


def make_chunk(size: int, value: int) -> memoryview:
    return memoryview(bytes([value]) * size)


@pytest.fixture
def classifier():
    return FragmentClassifier(
        recognizer=DemoSpeechRecognizer(min_analyzable_bytes=100, latency_ms=0),
        max_chunks=5,
        silence_threshold=10,
    )


def test_measure_fragment_computes_mean_amplitude():
    features = measure_fragment(memoryview(bytes([0, 100, 200])))
    assert features.size == 3
    assert features.mean_amplitude == 100


def test_measure_fragment_has_no_mean_for_empty_input():
    features = measure_fragment(memoryview(b""))
    assert features.size == 0
    assert features.mean_amplitude is None


@pytest.mark.parametrize(
    ("value", "first", "later"),
    [
        (30, "Hello", "and"),
        (75, "Welcome", "everyone"),
        (120, "Good morning", "to the meeting"),
        (200, "Thank you", "for joining us today"),
    ],
)
async def test_demo_recognizer_maps_amplitude_buckets(value, first, later):
    recognizer = DemoSpeechRecognizer(min_analyzable_bytes=100, latency_ms=0)

    assert await recognizer.recognize(make_chunk(1000, value), 1) == first
    assert await recognizer.recognize(make_chunk(1000, value), 2) == later


async def test_demo_recognizer_bucket_boundaries():
    recognizer = DemoSpeechRecognizer(min_analyzable_bytes=100, latency_ms=0)

    assert await recognizer.recognize(make_chunk(100, 50), 1) == "Welcome"
    assert await recognizer.recognize(make_chunk(100, 100), 1) == "Good morning"
    assert await recognizer.recognize(make_chunk(100, 150), 1) == "Thank you"


async def test_short_fragment_produces_no_text():
    recognizer = DemoSpeechRecognizer(min_analyzable_bytes=100, latency_ms=0)
    assert await recognizer.recognize(make_chunk(99, 128), 1) == ""


async def test_fragment_classifier_is_final_at_chunk_cap(classifier):
    result = await classifier.classify(make_chunk(1000, 120), 5)
    assert result.text == "to the meeting"
    assert result.is_final is True

    result = await classifier.classify(make_chunk(1000, 120), 4)
    assert result.is_final is False


async def test_near_silent_fragment_is_final(classifier):
    result = await classifier.classify(make_chunk(1000, 5), 1)
    assert result.text == "Hello"
    assert result.is_final is True


async def test_short_near_silent_fragment_is_still_final(classifier):
    result = await classifier.classify(make_chunk(50, 5), 1)
    assert result.text == ""
    assert result.is_final is True


def test_empty_fragment_is_not_silence(classifier):
    features = measure_fragment(memoryview(b""))
    assert classifier.is_final(features, 1) is False
    assert classifier.is_final(features, 5) is True
