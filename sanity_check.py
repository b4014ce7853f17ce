import os
import sys

import gemini_core


def main() -> int:
    print("GENERATION_MODEL =", gemini_core.GENERATION_MODEL)
    print("FALLBACK_MODELS  =", ", ".join(gemini_core.FALLBACK_MODELS) or "-")
    if not os.getenv("GEMINI_API_KEY"):
        print("GEMINI_API_KEY is not set.")
        return 1

    try:
        # Plain generation
        print("Gen:", gemini_core.generate_text("Say hi in one short sentence."))
        # Structured generation
        items = gemini_core.generate_routine("Short test: one study block and one walk.")
        print("Routine items:", len(items))
    except gemini_core.GenerationError as exc:
        print("Failed:", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
