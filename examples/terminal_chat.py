import sys

import dotenv

from azure_agent_chat import AgentAPIError, AgentChat, ChatBusyError, Message

dotenv.load_dotenv()


def source_line(msg: Message) -> str:
    a = msg.attribution
    if a is None:
        return ""
    return f"Source:{a.source_title or ''} {a.source} ({a.source_id}){a.turn_id or ''}"


with AgentChat() as chat:
    print("Type a question, /reset to clear the conversation, /quit to leave.")
    for question in sys.stdin:
        question = question.strip()
        if question == "/quit":
            break
        if question == "/reset":
            try:
                chat.reset()
                print("セッションがリセットされました。")
            except (AgentAPIError, ChatBusyError) as e:
                print(f"セッションのリセットに失敗しました。 {e}")
            continue
        if not question:
            continue

        printed = 0
        for state in chat.ask(question):
            bot = state.messages[-1]
            if bot.pending:
                print(bot.text[printed:], end="", flush=True)
                printed = len(bot.text)
            elif bot.attribution and bot.attribution.source != "Error":
                print(bot.text[printed:])
            else:
                # error replaced the partial answer
                print(("\n" if printed else "") + bot.text)

        print(source_line(chat.state.messages[-1]))
        if chat.state.last_response_id:
            print(f"Last Response ID: {chat.state.last_response_id}")
