import os

import dotenv
import httpx

from azure_agent_chat._config import ChatConfig
from azure_agent_chat._sse import StreamFrameDecoder
from azure_agent_chat.events import parse_event

dotenv.load_dotenv()

cfg = ChatConfig.from_env_or_value()
question = os.getenv("DEBUG_QUESTION", "こんにちは")

payload = {"question": question, "user_id": cfg.user_id}
headers = {"Content-Type": "application/json", "Accept": "text/event-stream"}

decoder = StreamFrameDecoder()

with httpx.Client(timeout=120.0) as client:
    with client.stream("POST", f"{cfg.base_url}/test_agent/", headers=headers, json=payload) as r:
        print("status:", r.status_code)
        print("headers:", dict(r.headers))
        for i, chunk in enumerate(r.iter_bytes()):
            print(f"chunk[{i}] raw=", repr(chunk))
            for line in decoder.feed(chunk):
                print("  line=", line)
                print("  event=", repr(parse_event(line)))
        for line in decoder.finish():
            print("tail line=", line)
            print("tail event=", repr(parse_event(line)))
