import sys

import atheris

with atheris.instrument_imports():
    from cadence.assistant.template_engine import format_value, is_truthy, render


def TestOneInput(data: bytes) -> None:
    """Render arbitrary template bodies against a fixed variable set."""
    fdp = atheris.FuzzedDataProvider(data)
    variables = {
        "habitName": fdp.ConsumeUnicodeNoSurrogates(16),
        "streakCount": fdp.ConsumeIntInRange(0, 400),
        "rate": fdp.ConsumeRegularFloat(),
        "isNewRecord": fdp.ConsumeBool(),
        "tags": [fdp.ConsumeUnicodeNoSurrogates(4) for _ in range(fdp.ConsumeIntInRange(0, 3))],
    }
    body = fdp.ConsumeUnicodeNoSurrogates(256)

    text = render(body, variables)
    assert text == text.strip()

    for value in variables.values():
        format_value(value)
        is_truthy(value)


def main() -> None:
    atheris.Setup(sys.argv, TestOneInput)
    atheris.Fuzz()


if __name__ == "__main__":
    main()
