from __future__ import annotations

import unittest

from imcode.chat.history import ChatHistory


class ChatHistoryTests(unittest.TestCase):
    def test_context_returns_last_turns(self) -> None:
        history = ChatHistory()
        for index in range(6):
            history.add("user" if index % 2 == 0 else "assistant", f"m{index}")
        self.assertEqual(
            history.context(4),
            [
                {"role": "user", "content": "m2"},
                {"role": "assistant", "content": "m3"},
                {"role": "user", "content": "m4"},
                {"role": "assistant", "content": "m5"},
            ],
        )
        self.assertEqual(history.context(0), [])

    def test_restore_skips_malformed_messages(self) -> None:
        history = ChatHistory(
            [
                {"role": "user", "content": "hello"},
                {"role": "system", "content": "ignored"},
                {"role": "assistant", "content": None},
                {"role": "assistant", "content": "hi", "ts": "2024-01-01T00:00:00+00:00"},
            ]
        )
        self.assertEqual(len(history), 2)
        self.assertEqual(history.messages[1]["ts"], "2024-01-01T00:00:00+00:00")

    def test_max_messages(self) -> None:
        history = ChatHistory(max_messages=3)
        for index in range(5):
            history.add("user", str(index))
        self.assertEqual([item["content"] for item in history.messages], ["2", "3", "4"])

    def test_unknown_role(self) -> None:
        with self.assertRaises(ValueError):
            ChatHistory().add("system", "nope")

    def test_messages_are_copies(self) -> None:
        history = ChatHistory()
        history.add("user", "hello")
        history.messages[0]["content"] = "changed"
        self.assertEqual(history.messages[0]["content"], "hello")
        history.clear()
        self.assertEqual(len(history), 0)


if __name__ == "__main__":
    unittest.main()
