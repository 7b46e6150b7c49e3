# python -m feynman.runner "Operating Systems" --message "A process is a program in execution."

import argparse
import asyncio
from typing import List, Optional

from feynman.core.config import settings
from feynman.core.logging import configure_logging
from feynman.services.client import ClientEvent, FeynmanClient


async def run(url: str, topic: str, messages: List[str], timeout: Optional[float] = None):
    client = FeynmanClient(url)
    pending = list(messages)
    done = asyncio.Event()

    def send_next():
        if pending:
            text = pending.pop(0)
            print(f"> {text}")
            client.send_user_message(text)
        else:
            client.close()

    def on_open(_):
        print(f"Connected to {url}")

    def on_initialized(event):
        print(f"Session initialized: {event.main_topic}")
        for name in event.subtopics:
            print(f"  - {name}")
        send_next()

    def on_agent_response(event):
        print(f"< {event.text}")
        send_next()

    def on_server_error(event):
        print(f"! server error: {event.message}")
        send_next()

    def on_error(event):
        print(f"! connection error: {event.cause}")

    def on_close(event):
        print(f"Closed (code={event.code}, reason={event.reason!r})")
        done.set()

    client.on(ClientEvent.OPEN, on_open)
    client.on(ClientEvent.INITIALIZED, on_initialized)
    client.on(ClientEvent.AGENT_RESPONSE, on_agent_response)
    client.on(ClientEvent.SERVER_ERROR, on_server_error)
    client.on(ClientEvent.ERROR, on_error)
    client.on(ClientEvent.CLOSE, on_close)

    client.connect(topic)
    try:
        await asyncio.wait_for(done.wait(), timeout)
    except asyncio.TimeoutError:
        print("Timed out waiting for the agent")
        client.close()
        await done.wait()


if __name__ == "__main__":
    ap = argparse.ArgumentParser()
    ap.add_argument("topic", help="Main topic to teach")
    ap.add_argument("--url", default=settings.WS_URL, help="WebSocket URL")
    ap.add_argument("--message", action="append", default=[], help="Explanation to send; repeat for several turns")
    ap.add_argument("--timeout", type=float, default=None, help="Give up after this many seconds")
    args = ap.parse_args()
    configure_logging(settings.LOG_LEVEL)
    asyncio.run(run(args.url, args.topic, args.message, timeout=args.timeout))
