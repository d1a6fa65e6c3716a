import sys

import atheris

with atheris.instrument_imports():
    from cadence.assistant.command_parser import CommandClassifier, normalize_text, score_pattern
    from cadence.assistant.models import CommandType

CLASSIFIER = CommandClassifier()


def TestOneInput(data: bytes) -> None:
    """Classify arbitrary text; parsing must never raise and confidence stays in range."""
    text = data.decode("utf-8", errors="ignore")

    result = CLASSIFIER.parse_command(text)
    if not text.strip():
        assert not result.ok
        return
    command = result.unwrap()
    assert 0.0 <= command.confidence <= 1.0
    if command.type is CommandType.UNKNOWN:
        assert command.confidence == 0.0

    normalized = normalize_text(text)
    half = len(normalized) // 2
    score = score_pattern(normalized, normalized[half:])
    assert score >= 0.0


def main() -> None:
    atheris.Setup(sys.argv, TestOneInput)
    atheris.Fuzz()


if __name__ == "__main__":
    main()
