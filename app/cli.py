"""
app/cli.py

Command-line chat interface for the flight-search assistant.
- Reads user input
- Runs the same per-turn handler as the HTTP API (slots, policy, model, search)
- Prints the assistant's reply and appends both sides to a transcript file

Environment:
- FLIGHT_PROVIDER: kiwi | flyscraper | mock (the CLI defaults to mock)
- LLM_OFFLINE: set to 1 to run without a model
"""

import logging
import os
from datetime import datetime, timezone

from dotenv import load_dotenv

from assistant.conversation import handle_turn
from assistant.session import Session
from util.exceptions import UpstreamError


def _transcript_path():
    root_dir = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
    transcripts_dir = os.path.join(root_dir, "transcripts")
    os.makedirs(transcripts_dir, exist_ok=True)
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    return os.path.join(transcripts_dir, f"session-{stamp}.txt")


def main():
    """Run the interactive CLI loop."""
    load_dotenv()
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "WARNING").upper())
    os.environ.setdefault("FLIGHT_PROVIDER", "mock")

    print("Flight Assistant (type 'exit' to quit)\n")
    sess = Session()
    try:
        transcript_path = _transcript_path()
    except OSError:
        transcript_path = None
    while True:
        try:
            raw = input("You: ")
        except EOFError:
            print()
            break
        # Sanitize pasted scripts: remove repeated "You:" tokens and excess whitespace
        user = raw.replace("You:", "").replace("you:", "").replace("YOU:", "").strip()
        if not user:
            continue
        if user.lower() in {"exit", "quit"}:
            print("Bye!")
            break

        try:
            reply = handle_turn(sess, user)
        except UpstreamError as exc:
            print(f"Assistant: Sorry, something went wrong ({exc}). Please try again.\n")
            continue
        print(f"Assistant: {reply}\n")
        if transcript_path:
            with open(transcript_path, "a", encoding="utf-8") as f:
                f.write(f"You: {user}\n")
                f.write(f"Assistant: {reply}\n")


if __name__ == "__main__":
    main()
